"""
Credential validation.
"""

from pydantic import BaseModel, EmailStr, Field, ValidationError, field_validator

from loginguard.core import validation_error

EMAIL_MAX_LENGTH = 100


class LoginCredentials(BaseModel):
    """Login form values (email lower-cased, both fields trimmed)."""

    email: EmailStr
    password: str = Field(..., min_length=6, max_length=100)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: object) -> object:
        if not isinstance(v, str):
            return v
        v = v.strip().lower()
        if len(v) > EMAIL_MAX_LENGTH:
            raise ValueError("Email too long.")
        return v

    @field_validator("password", mode="before")
    @classmethod
    def strip_password(cls, v: object) -> object:
        return v.strip() if isinstance(v, str) else v


def parse_credentials(email: str, password: str) -> LoginCredentials:
    """
    Validate raw form input.

    Raises:
        SecurityError: ``validation`` kind naming the first offending field.
    """
    try:
        return LoginCredentials(email=email, password=password)
    except ValidationError as exc:
        first = exc.errors()[0]
        field = str(first["loc"][0]) if first.get("loc") else None
        raise validation_error(first["msg"], field=field, context="login") from exc
