"""Login-time reconciliation of Supabase identities with ``users`` rows."""

import logging

from errors import DataServiceError, UserRecordUnresolvable
from services.supabase_backend import UserProfile

logger = logging.getLogger(__name__)


def is_reserved_admin(email, admin_email):
    return bool(email) and email.strip().lower() == admin_email.strip().lower()


def default_display_name(email, admin_email, admin_name, chosen_name=None):
    if is_reserved_admin(email, admin_email):
        return admin_name
    return chosen_name or email.split('@', 1)[0]


def reconcile_user(backend, identity, admin_email, admin_name):
    """Make sure ``identity`` has a profile row and return it.

    Lookup goes by id first, then by email, since the two are not always
    indexed consistently right after sign-up. A missing row is created, named
    as chosen at sign-up when Supabase kept that name, otherwise after the
    email local part. If the insert fails (typically a concurrent insert of the same email) the email
    lookup is retried once. Whatever path resolved the row, the reserved
    administrator email always leaves with ``is_admin`` set and the canonical
    administrator name.

    Raises ``UserRecordUnresolvable`` when no row can be found or created.
    """
    token = identity.access_token
    row = backend.find_user('id', identity.id, token)
    if row is None:
        row = backend.find_user('email', identity.email, token)

    if row is None:
        is_admin = is_reserved_admin(identity.email, admin_email)
        new_row = {
            'id': identity.id,
            'email': identity.email,
            'name': default_display_name(identity.email, admin_email, admin_name, identity.name),
            'is_admin': is_admin,
        }
        try:
            row = backend.insert_user(new_row, token)
        except DataServiceError as exc:
            logger.warning('Profile insert failed for %s, retrying lookup: %s', identity.email, exc.message)
            row = None
        if row is None:
            row = backend.find_user('email', identity.email, token)
        if row is None:
            logger.error('Could not resolve a profile for %s', identity.email)
            raise UserRecordUnresolvable()
        logger.info('Created profile for %s (admin=%s)', identity.email, bool(row.get('is_admin')))

    profile = UserProfile.from_row(row)

    if is_reserved_admin(profile.email, admin_email) and not profile.is_admin:
        backend.update_user(profile.id, {'is_admin': True, 'name': admin_name}, token)
        profile.is_admin = True
        profile.name = admin_name
        logger.info('Restored admin flag on %s', profile.email)

    return profile
