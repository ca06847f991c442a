# app/core/provider_messages.py
"""
Best-effort mapping of Supabase Auth error text to stable client codes.

Supabase does not guarantee its message wording, so every rule here is a
lowercase substring match and every table ends in a catch-all. Keep the
tables in sync with tests/test_provider_messages.py.
"""
from dataclasses import dataclass

from fastapi import status

from app.core.errors import ErrorCode


@dataclass(frozen=True)
class ClassifiedError:
    code: ErrorCode
    message: str
    status_code: int


# (needles, code, user-facing message, status)
LOGIN_RULES: list[tuple[tuple[str, ...], ErrorCode, str, int]] = [
    (
        ("invalid login credentials",),
        ErrorCode.INVALID_CREDENTIALS,
        "Invalid email or password",
        status.HTTP_401_UNAUTHORIZED,
    ),
    (
        ("email not confirmed",),
        ErrorCode.EMAIL_NOT_CONFIRMED,
        "Please confirm your email before logging in",
        status.HTTP_401_UNAUTHORIZED,
    ),
    (
        ("too many requests", "rate limit"),
        ErrorCode.RATE_LIMITED,
        "Too many login attempts. Please wait before trying again.",
        status.HTTP_429_TOO_MANY_REQUESTS,
    ),
]
LOGIN_FALLBACK = ClassifiedError(
    ErrorCode.LOGIN_FAILED,
    "Login failed. Please try again.",
    status.HTTP_401_UNAUTHORIZED,
)

REFRESH_RULES: list[tuple[tuple[str, ...], ErrorCode, str, int]] = [
    (
        ("invalid", "expired"),
        ErrorCode.INVALID_REFRESH_TOKEN,
        "Refresh token is invalid or expired. Please login again.",
        status.HTTP_401_UNAUTHORIZED,
    ),
]
REFRESH_FALLBACK = ClassifiedError(
    ErrorCode.REFRESH_FAILED,
    "Failed to refresh session",
    status.HTTP_401_UNAUTHORIZED,
)

# Order matters: "already registered" must win over the generic "email" rule.
REGISTRATION_RULES: list[tuple[tuple[str, ...], ErrorCode, str, int]] = [
    (
        ("already registered", "already been registered", "already exists"),
        ErrorCode.EMAIL_ALREADY_EXISTS,
        "An account with this email already exists. Please use the login page.",
        status.HTTP_400_BAD_REQUEST,
    ),
    (
        ("database error checking email", "unexpected_failure"),
        ErrorCode.PROVIDER_UNAVAILABLE,
        "Authentication system is temporarily unavailable. Please try again in a few minutes.",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    ),
    (
        ("email",),
        ErrorCode.INVALID_EMAIL,
        "Please provide a valid email address",
        status.HTTP_400_BAD_REQUEST,
    ),
]
REGISTRATION_FALLBACK = ClassifiedError(
    ErrorCode.REGISTRATION_FAILED,
    "Registration failed. Please try again.",
    status.HTTP_400_BAD_REQUEST,
)


def _classify(
    message: str | None,
    rules: list[tuple[tuple[str, ...], ErrorCode, str, int]],
    fallback: ClassifiedError,
) -> ClassifiedError:
    text = (message or "").lower()
    for needles, code, user_message, status_code in rules:
        if any(needle in text for needle in needles):
            return ClassifiedError(code, user_message, status_code)
    return fallback


def classify_login_error(message: str | None) -> ClassifiedError:
    return _classify(message, LOGIN_RULES, LOGIN_FALLBACK)


def classify_refresh_error(message: str | None) -> ClassifiedError:
    return _classify(message, REFRESH_RULES, REFRESH_FALLBACK)


def classify_registration_error(message: str | None) -> ClassifiedError:
    return _classify(message, REGISTRATION_RULES, REGISTRATION_FALLBACK)
