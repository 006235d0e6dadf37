"""Error taxonomy for the feedback portal.

Every error that reaches the request boundary is a ``PortalError`` (or gets
wrapped into ``UnexpectedFailure``) and is rendered as ``{"error": message}``
with the class's HTTP status.
"""


class PortalError(Exception):
    status_code = 500
    default_message = 'An unexpected error occurred.'

    def __init__(self, message=None, status_code=None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class AuthFailure(PortalError):
    """Bad credentials or a rejected sign-up, carrying the upstream message."""

    status_code = 401
    default_message = 'Invalid login credentials'


class AccessDenied(PortalError):
    status_code = 403
    default_message = 'Access denied. Admin only.'


class ValidationFailure(PortalError):
    status_code = 400
    default_message = 'All fields are required'


class UserRecordUnresolvable(PortalError):
    """Login reconciliation could neither find nor create a profile row."""

    status_code = 400
    default_message = 'Could not create or find user record'


class DataServiceError(PortalError):
    """The hosted database rejected a query."""

    status_code = 400
    default_message = 'Database request failed'


class UpstreamClassificationFailure(PortalError):
    """Raised inside the classifier only; never leaves it."""

    status_code = 502
    default_message = 'Sentiment classification failed'


class UnexpectedFailure(PortalError):
    status_code = 500
