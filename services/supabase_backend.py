"""Gateway to the hosted Supabase project.

Supabase owns authentication, password storage, row-level security and the
``users`` / ``feedback`` tables. This module is the only place that talks to it;
route handlers and services work with plain row dicts and the small records
defined here.

Two kinds of credentials are used:

* the user's delegated access token, for feedback reads and writes, so the
  database enforces row-level policies as that user;
* the elevated service-role key, for the ``users`` table, so login
  reconciliation can create and repair profile rows regardless of policies.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from postgrest.exceptions import APIError
from supabase import AuthError, Client, create_client

from errors import AuthFailure, DataServiceError, UnexpectedFailure

logger = logging.getLogger(__name__)

USERS_TABLE = 'users'
FEEDBACK_TABLE = 'feedback'


@dataclass
class AuthIdentity:
    """An identity confirmed by Supabase Auth."""

    id: str
    email: str
    access_token: Optional[str] = None
    name: Optional[str] = None


@dataclass
class UserProfile:
    """A row of the ``users`` table."""

    id: str
    email: str
    name: str
    is_admin: bool = False

    @classmethod
    def from_row(cls, row: dict) -> 'UserProfile':
        return cls(
            id=str(row['id']),
            email=row.get('email') or '',
            name=row.get('name') or '',
            is_admin=bool(row.get('is_admin')),
        )

    def to_public(self) -> dict:
        return {'name': self.name, 'email': self.email, 'isAdmin': self.is_admin}


def _error_message(exc: Exception) -> str:
    return getattr(exc, 'message', None) or str(exc)


def _metadata_name(user) -> Optional[str]:
    """Display name chosen at sign-up, kept in Supabase user metadata."""
    metadata = getattr(user, 'user_metadata', None) or {}
    name = metadata.get('name')
    return name.strip() if isinstance(name, str) and name.strip() else None


class SupabaseBackend:
    def __init__(self, url: Optional[str], anon_key: Optional[str], service_key: Optional[str] = None):
        if not url or not anon_key:
            raise UnexpectedFailure('Supabase is not configured. Set SUPABASE_URL and SUPABASE_ANON_KEY.')
        self.url = url
        self.anon_key = anon_key
        self.service_key = service_key
        self._service_client: Optional[Client] = None
        if not service_key:
            logger.warning('SUPABASE_SERVICE_ROLE_KEY not set; profile reconciliation will use delegated user tokens')

    @classmethod
    def from_config(cls, config) -> 'SupabaseBackend':
        return cls(
            config.get('SUPABASE_URL'),
            config.get('SUPABASE_ANON_KEY'),
            config.get('SUPABASE_SERVICE_ROLE_KEY'),
        )

    # ===== CLIENTS =====

    def _anon_client(self) -> Client:
        # Fresh client per auth call: supabase-py keeps the signed-in session on the client.
        return create_client(self.url, self.anon_key)

    def _user_client(self, access_token: str) -> Client:
        client = create_client(self.url, self.anon_key)
        client.postgrest.auth(access_token)
        return client

    def _service(self) -> Client:
        if not self.service_key:
            raise UnexpectedFailure('SUPABASE_SERVICE_ROLE_KEY is required for this operation.')
        if self._service_client is None:
            self._service_client = create_client(self.url, self.service_key)
        return self._service_client

    def _profiles_client(self, access_token: Optional[str]) -> Client:
        if self.service_key:
            return self._service()
        if not access_token:
            raise UnexpectedFailure('No credential available for the users table.')
        return self._user_client(access_token)

    def _data_client(self, access_token: Optional[str]) -> Client:
        if access_token:
            return self._user_client(access_token)
        return self._service()

    @staticmethod
    def _execute(query):
        try:
            return query.execute()
        except APIError as exc:
            message = _error_message(exc)
            logger.warning('Supabase query failed: %s', message)
            raise DataServiceError(message) from exc

    # ===== AUTH =====

    def sign_up(self, email: str, password: str, name: str) -> AuthIdentity:
        try:
            response = self._anon_client().auth.sign_up({
                'email': email,
                'password': password,
                'options': {'data': {'name': name}},
            })
        except AuthError as exc:
            raise AuthFailure(_error_message(exc), status_code=400) from exc
        if response.user is None:
            raise AuthFailure('Signup failed', status_code=400)
        session = response.session
        return AuthIdentity(
            id=str(response.user.id),
            email=response.user.email or email,
            access_token=session.access_token if session else None,
            name=_metadata_name(response.user),
        )

    def sign_in(self, email: str, password: str) -> AuthIdentity:
        try:
            response = self._anon_client().auth.sign_in_with_password({'email': email, 'password': password})
        except AuthError as exc:
            raise AuthFailure(_error_message(exc)) from exc
        if response.user is None or response.session is None:
            raise AuthFailure('Login failed')
        return AuthIdentity(
            id=str(response.user.id),
            email=response.user.email or email,
            access_token=response.session.access_token,
            name=_metadata_name(response.user),
        )

    # ===== USERS TABLE =====

    def can_write_profiles(self, access_token: Optional[str]) -> bool:
        return bool(self.service_key or access_token)

    def find_user(self, column: str, value: str, access_token: Optional[str] = None) -> Optional[dict]:
        query = self._profiles_client(access_token).table(USERS_TABLE).select('*').eq(column, value).limit(1)
        rows = self._execute(query).data
        return rows[0] if rows else None

    def insert_user(self, row: dict, access_token: Optional[str] = None) -> Optional[dict]:
        query = self._profiles_client(access_token).table(USERS_TABLE).insert(row)
        rows = self._execute(query).data
        return rows[0] if rows else None

    def update_user(self, user_id: str, changes: dict, access_token: Optional[str] = None) -> None:
        query = self._profiles_client(access_token).table(USERS_TABLE).update(changes).eq('id', user_id)
        self._execute(query)

    # ===== FEEDBACK TABLE =====

    def insert_feedback(self, row: dict, access_token: Optional[str]) -> dict:
        rows = self._execute(self._data_client(access_token).table(FEEDBACK_TABLE).insert(row)).data
        if not rows:
            raise DataServiceError('Feedback was not saved')
        return rows[0]

    def list_feedback(self, access_token: Optional[str] = None, student_id: Optional[str] = None) -> list:
        """Return feedback rows newest first, optionally only one student's."""
        query = self._data_client(access_token).table(FEEDBACK_TABLE).select('*')
        if student_id is not None:
            query = query.eq('student_id', student_id)
        query = query.order('created_at', desc=True)
        return self._execute(query).data or []
