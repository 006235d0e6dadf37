"""Pydantic request schemas for the JSON API.

Request bodies are validated here, at the boundary, so handlers only ever see
well-formed values. Field aliases match the camelCase keys the browser sends.
"""

import re
from email.utils import parseaddr
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, ValidationError, field_validator

from errors import ValidationFailure

EMAIL_REGEX = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')

# Error types that mean "the client left a field out or blank".
_MISSING_ERROR_TYPES = {'missing', 'string_too_short', 'string_type'}

# Required free text: surrounding whitespace dropped, blank rejected. Passwords stay raw.
RequiredText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


def is_valid_email(email):
    if not email:
        return False
    _, parsed = parseaddr(email)
    return bool(parsed and EMAIL_REGEX.match(parsed) and len(parsed) <= 254)


class _RequestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='ignore')


class SignupRequest(_RequestModel):
    name: RequiredText = Field(..., max_length=120)
    email: RequiredText
    password: str = Field(..., min_length=1)

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v: str) -> str:
        if not is_valid_email(v):
            raise ValueError('Enter a valid email address')
        return v.lower()


class LoginRequest(_RequestModel):
    email: RequiredText
    password: str = Field(..., min_length=1)

    @field_validator('email')
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()


class FeedbackSubmission(_RequestModel):
    """Body of ``POST /api/feedback/submit``.

    Feedback text length is not limited; only presence is enforced.
    """

    faculty_name: RequiredText = Field(..., alias='facultyName', max_length=200)
    subject: RequiredText = Field(..., max_length=200)
    feedback_text: RequiredText = Field(..., alias='feedbackText')
    is_anonymous: bool = Field(False, alias='isAnonymous')

    @field_validator('is_anonymous', mode='before')
    @classmethod
    def null_means_not_anonymous(cls, v):
        return False if v is None else v


def parse_payload(model, payload, missing_message=ValidationFailure.default_message):
    """Validate ``payload`` against ``model`` or raise ``ValidationFailure``.

    Missing or blank fields collapse to ``missing_message``; any other problem
    reports the first offending field.
    """
    if not isinstance(payload, dict):
        raise ValidationFailure(missing_message)
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        errors = exc.errors()
        if any(err['type'] in _MISSING_ERROR_TYPES for err in errors):
            raise ValidationFailure(missing_message) from exc
        first = errors[0]
        field = '.'.join(str(part) for part in first['loc'])
        message = first['msg'].removeprefix('Value error, ')
        raise ValidationFailure(f'{field}: {message}') from exc
