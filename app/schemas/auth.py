# app/schemas/auth.py
from app.schemas.base import CamelModel


class RegisterRequest(CamelModel):
    """
    Registration payload.

    Fields are optional here so the service can answer with the
    MISSING_CREDENTIALS code instead of a generic validation error.
    """

    email: str | None = None
    password: str | None = None
    role: str | None = None


class LoginRequest(CamelModel):
    email: str | None = None
    password: str | None = None


class SessionTokens(CamelModel):
    """Client-held tokens to be exchanged for HTTP-only cookies."""

    access_token: str | None = None
    refresh_token: str | None = None


class RefreshRequest(CamelModel):
    refresh_token: str | None = None


class ConfirmEmailRequest(CamelModel):
    access_token: str | None = None
    refresh_token: str | None = None
    type: str | None = None


class EmailRequest(CamelModel):
    email: str | None = None


class PasswordUpdate(CamelModel):
    password: str | None = None
