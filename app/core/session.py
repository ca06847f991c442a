# app/core/session.py
"""
Session resolution and the server-side cookie credential store.

A request can carry credentials in two forms:
  - `Authorization: Bearer <access token>` (mobile and API clients)
  - the HTTP-only cookie pair `sb-access-token` / `sb-refresh-token`
    written by this backend (web clients)

The cookie jar is the authoritative copy of a web session. Anything the
browser keeps elsewhere is UI state only.
"""
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from fastapi import Request, Response

from app.core.config import Settings
from app.core.errors import UpstreamError
from app.core.identity import AuthSession, Identity, IdentityProvider, InvalidTokenError

logger = logging.getLogger(__name__)

ACCESS_TOKEN_COOKIE = "sb-access-token"
REFRESH_TOKEN_COOKIE = "sb-refresh-token"
USER_ID_COOKIE = "sb-user-id"


class UnauthenticatedReason(str, Enum):
    INVALID_TOKEN = "INVALID_TOKEN"
    NO_SESSION = "NO_SESSION"
    NO_CREDENTIALS = "NO_CREDENTIALS"


@dataclass
class Authenticated:
    identity: Identity
    source: str
    # Set when cookie resolution refreshed the tokens; must be written back.
    rotated_session: AuthSession | None = None


@dataclass
class Unauthenticated:
    reason: UnauthenticatedReason
    detail: str | None = None


Resolution = Authenticated | Unauthenticated


def bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an `Authorization: Bearer <token>` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def resolve_credentials(
    provider: IdentityProvider,
    authorization: str | None,
    cookies: Mapping[str, str],
) -> Resolution:
    """
    Resolve credentials to an identity. Never raises.

    Priority (first match wins):
      1. Bearer header   -> provider token verification
      2. Cookie pair     -> provider set_session (may rotate tokens)
      3. Nothing         -> NO_CREDENTIALS
    """
    token = bearer_token(authorization)
    if token:
        try:
            identity = provider.verify_token(token)
        except (InvalidTokenError, UpstreamError) as exc:
            logger.info("Bearer token rejected: %s", exc)
            return Unauthenticated(UnauthenticatedReason.INVALID_TOKEN, str(exc))
        return Authenticated(identity=identity, source="bearer")

    access = cookies.get(ACCESS_TOKEN_COOKIE)
    refresh = cookies.get(REFRESH_TOKEN_COOKIE)
    if access and refresh:
        try:
            result = provider.set_session(access, refresh)
        except UpstreamError as exc:
            logger.info("Cookie session rejected: %s", exc.details or exc.message)
            return Unauthenticated(UnauthenticatedReason.NO_SESSION, exc.message)
        rotated = None
        if result.session is not None and result.session.access_token != access:
            rotated = result.session
        return Authenticated(
            identity=result.identity,
            source="cookie",
            rotated_session=rotated,
        )

    return Unauthenticated(UnauthenticatedReason.NO_CREDENTIALS)


def resolve(request: Request, provider: IdentityProvider) -> Resolution:
    return resolve_credentials(
        provider,
        request.headers.get("Authorization"),
        request.cookies,
    )


class CookieCredentialStore:
    """Writes and clears the HTTP-only session cookies."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def _set(self, response: Response, name: str, value: str, max_age: int) -> None:
        response.set_cookie(
            name,
            value,
            max_age=max_age,
            httponly=True,
            secure=self.settings.is_production,
            samesite="lax",
            path="/",
        )

    def write(self, response: Response, session: AuthSession) -> None:
        self._set(
            response,
            ACCESS_TOKEN_COOKIE,
            session.access_token,
            self.settings.ACCESS_COOKIE_MAX_AGE,
        )
        self._set(
            response,
            REFRESH_TOKEN_COOKIE,
            session.refresh_token,
            self.settings.REFRESH_COOKIE_MAX_AGE,
        )
        self._set(
            response,
            USER_ID_COOKIE,
            session.user_id,
            self.settings.ACCESS_COOKIE_MAX_AGE,
        )

    def clear(self, response: Response) -> None:
        for name in (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE, USER_ID_COOKIE):
            response.delete_cookie(
                name,
                path="/",
                httponly=True,
                secure=self.settings.is_production,
                samesite="lax",
            )
