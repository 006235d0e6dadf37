import os
import tempfile
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

os.environ.setdefault('SECRET_KEY', 'test-secret')
os.environ.setdefault('LOG_DIR', os.path.join(tempfile.gettempdir(), 'feedback-portal-test-logs'))

from app import app  # noqa: E402
from errors import AuthFailure, DataServiceError  # noqa: E402
from services.sentiment import SentimentClassifier  # noqa: E402
from services.supabase_backend import AuthIdentity  # noqa: E402

ADMIN_EMAIL = 'admin@example.com'
ADMIN_NAME = 'Portal Administrator'


class FakeBackend:
    """In-memory stand-in for the Supabase gateway."""

    def __init__(self):
        self.accounts = {}
        self.users = []
        self.feedback = []
        self.feedback_tokens = []
        self.user_insert_error = None
        self.profiles_writable = True
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def add_account(self, email, password='Secret123', user_id=None, name=None):
        user_id = user_id or f'user-{len(self.accounts) + 1}'
        self.accounts[email] = {'id': user_id, 'password': password, 'name': name}
        return user_id

    def can_write_profiles(self, access_token):
        return self.profiles_writable

    def sign_up(self, email, password, name):
        if email in self.accounts:
            raise AuthFailure('User already registered', status_code=400)
        user_id = self.add_account(email, password, name=name)
        return AuthIdentity(id=user_id, email=email, access_token=f'token-{user_id}', name=name)

    def sign_in(self, email, password):
        account = self.accounts.get(email)
        if not account or account['password'] != password:
            raise AuthFailure('Invalid login credentials')
        return AuthIdentity(
            id=account['id'], email=email, access_token=f'token-{account["id"]}', name=account['name'],
        )

    def find_user(self, column, value, access_token=None):
        for row in self.users:
            if row.get(column) == value:
                return dict(row)
        return None

    def insert_user(self, row, access_token=None):
        if self.user_insert_error:
            raise DataServiceError(self.user_insert_error)
        if any(r['id'] == row['id'] or r['email'] == row['email'] for r in self.users):
            raise DataServiceError('duplicate key value violates unique constraint "users_email_key"')
        self.users.append(dict(row))
        return dict(row)

    def update_user(self, user_id, changes, access_token=None):
        for row in self.users:
            if row['id'] == user_id:
                row.update(changes)

    def insert_feedback(self, row, access_token):
        self._clock += timedelta(minutes=1)
        stored = dict(row, id=len(self.feedback) + 1, created_at=self._clock.isoformat())
        self.feedback.append(stored)
        self.feedback_tokens.append(access_token)
        return dict(stored)

    def list_feedback(self, access_token=None, student_id=None):
        rows = [dict(r) for r in self.feedback if student_id is None or r['student_id'] == student_id]
        return sorted(rows, key=lambda r: r['created_at'], reverse=True)


class StubModel:
    """Mimics ``genai.GenerativeModel``: returns ``answer`` or raises ``error``."""

    def __init__(self, answer='positive', error=None):
        self.answer = answer
        self.error = error
        self.prompts = []

    def generate_content(self, prompt, request_options=None):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return SimpleNamespace(text=self.answer)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def model():
    return StubModel('negative')


@pytest.fixture
def client(backend, model):
    app.config.update(
        TESTING=True,
        WTF_CSRF_ENABLED=False,
        SESSION_COOKIE_SECURE=False,
        ADMIN_EMAIL=ADMIN_EMAIL,
        ADMIN_NAME=ADMIN_NAME,
    )
    app.extensions['feedback_backend'] = backend
    app.extensions['sentiment_classifier'] = SentimentClassifier(None, 'stub-model', model=model)
    with app.test_client() as c:
        yield c
    app.extensions.pop('feedback_backend', None)
    app.extensions.pop('sentiment_classifier', None)


def signup_and_login(client, email, password='Secret123', name='Student'):
    client.post('/api/auth/signup', json={'name': name, 'email': email, 'password': password})
    return client.post('/api/auth/login', json={'email': email, 'password': password})
