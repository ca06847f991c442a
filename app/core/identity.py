# app/core/identity.py
"""
Identity provider gateway.

Thin wrapper over Supabase Auth that:
  - returns plain Identity / AuthSession values instead of SDK objects
  - raises UpstreamError (carrying the provider message) on any failure
  - keeps session-bearing calls on a fresh anon client per call, so no
    session state is shared between requests
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

import httpx
from jose import JWTError, jwt
from supabase import AuthError, Client

from app.core.config import Settings
from app.core.errors import UpstreamError
from app.core.supabase_client import supabase_admin, supabase_public

logger = logging.getLogger(__name__)

PROVIDER_ERRORS = (AuthError, httpx.HTTPError)


@dataclass
class Identity:
    """An authenticated principal as reported by Supabase Auth."""

    id: str
    email: str | None = None
    email_confirmed_at: datetime | None = None
    created_at: datetime | None = None
    # Credential lifetime, read from the access token claims when known
    issued_at: datetime | None = None
    expires_at: datetime | None = None

    @property
    def email_confirmed(self) -> bool:
        return self.email_confirmed_at is not None


@dataclass
class AuthSession:
    access_token: str
    refresh_token: str
    user_id: str
    expires_at: int | None = None
    expires_in: int | None = None


@dataclass
class AuthResult:
    identity: Identity
    session: AuthSession | None = None


class InvalidTokenError(Exception):
    """Raised when a bearer token cannot be parsed or fails local checks."""


def _ts(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def read_token_claims(token: str, settings: Settings) -> dict[str, Any]:
    """
    Read the claims of a Supabase access token.

    With SUPABASE_JWT_SECRET configured the signature and `exp` are
    verified locally; otherwise the claims are only parsed and the
    provider call remains the sole verification.

    Raises:
        InvalidTokenError: malformed, badly signed or expired token.
    """
    try:
        if settings.SUPABASE_JWT_SECRET:
            return jwt.decode(
                token,
                settings.SUPABASE_JWT_SECRET,
                algorithms=[settings.SUPABASE_JWT_ALG],
                options={"verify_aud": False},
            )
        return jwt.get_unverified_claims(token)
    except JWTError as exc:
        raise InvalidTokenError(str(exc)) from exc


def identity_from_user(user: Any, claims: dict[str, Any] | None = None) -> Identity:
    claims = claims or {}
    return Identity(
        id=str(user.id),
        email=getattr(user, "email", None),
        email_confirmed_at=_ts(getattr(user, "email_confirmed_at", None)),
        created_at=_ts(getattr(user, "created_at", None)),
        issued_at=_ts(claims.get("iat")),
        expires_at=_ts(claims.get("exp")),
    )


def session_from_sdk(session: Any, user_id: str) -> AuthSession:
    return AuthSession(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        user_id=user_id,
        expires_at=getattr(session, "expires_at", None),
        expires_in=getattr(session, "expires_in", None),
    )


class IdentityProvider:
    """
    Supabase Auth behind a stable contract.

    Args:
        settings: application settings (URLs and keys).
        admin_client: long-lived service-role client; stateless for the
            calls made through it.
        public_client_factory: builds a fresh anon client per session call.
    """

    def __init__(
        self,
        settings: Settings,
        admin_client: Client | None = None,
        public_client_factory: Callable[[Settings], Client] = supabase_public,
    ):
        self.settings = settings
        self.admin = admin_client or supabase_admin(settings)
        self._public_client_factory = public_client_factory

    def _public(self) -> Client:
        return self._public_client_factory(self.settings)

    @staticmethod
    def _auth_result(response: Any) -> AuthResult:
        if response is None or response.user is None:
            raise UpstreamError("Identity provider returned no user")
        identity = identity_from_user(response.user)
        session = None
        if getattr(response, "session", None) is not None:
            session = session_from_sdk(response.session, identity.id)
            try:
                claims = jwt.get_unverified_claims(session.access_token)
            except JWTError:
                claims = {}
            identity.issued_at = _ts(claims.get("iat"))
            identity.expires_at = _ts(claims.get("exp"))
        return AuthResult(identity=identity, session=session)

    # ----- Public (anon) flows -----

    def sign_up(self, email: str, password: str, redirect_to: str | None = None) -> Identity:
        credentials: dict[str, Any] = {"email": email, "password": password}
        if redirect_to:
            credentials["options"] = {"email_redirect_to": redirect_to}
        try:
            response = self._public().auth.sign_up(credentials)
        except PROVIDER_ERRORS as exc:
            raise UpstreamError("Sign-up failed", details=str(exc)) from exc
        return self._auth_result(response).identity

    def sign_in_with_password(self, email: str, password: str) -> tuple[AuthResult, Client]:
        """
        Password sign-in.

        Returns the result together with the client holding the session,
        so the caller can sign that exact session out again.
        """
        client = self._public()
        try:
            response = client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except PROVIDER_ERRORS as exc:
            raise UpstreamError("Sign-in failed", details=str(exc)) from exc
        return self._auth_result(response), client

    def set_session(self, access_token: str, refresh_token: str) -> AuthResult:
        """Establish a session from client-held tokens; may rotate them."""
        try:
            response = self._public().auth.set_session(access_token, refresh_token)
        except PROVIDER_ERRORS as exc:
            raise UpstreamError("Invalid session", details=str(exc)) from exc
        return self._auth_result(response)

    def refresh_session(self, refresh_token: str) -> AuthResult:
        try:
            response = self._public().auth.refresh_session(refresh_token)
        except PROVIDER_ERRORS as exc:
            raise UpstreamError("Failed to refresh session", details=str(exc)) from exc
        return self._auth_result(response)

    def sign_out(self, client: Client | None = None) -> None:
        """
        Sign out the session held by `client`.

        Without a client there is no server-held session to end; the call
        is a no-op and clients simply drop their tokens.
        """
        if client is None:
            return
        try:
            client.auth.sign_out()
        except PROVIDER_ERRORS as exc:
            logger.warning("Sign-out failed: %s", exc)

    def revoke_session(self, access_token: str) -> None:
        """Revoke the refresh tokens behind a bearer token (mobile logout)."""
        try:
            self.admin.auth.admin.sign_out(access_token)
        except PROVIDER_ERRORS as exc:
            logger.warning("Session revocation failed: %s", exc)

    def resend_confirmation(self, email: str, redirect_to: str | None = None) -> None:
        payload: dict[str, Any] = {"type": "signup", "email": email}
        if redirect_to:
            payload["options"] = {"email_redirect_to": redirect_to}
        try:
            self._public().auth.resend(payload)
        except PROVIDER_ERRORS as exc:
            raise UpstreamError("Failed to send confirmation email", details=str(exc)) from exc

    # ----- Privileged (service role) -----

    def verify_token(self, token: str) -> Identity:
        """
        Validate a bearer token against the provider.

        Raises:
            InvalidTokenError: token malformed / fails local checks.
            UpstreamError: provider rejected the token.
        """
        claims = read_token_claims(token, self.settings)
        try:
            response = self.admin.auth.get_user(token)
        except PROVIDER_ERRORS as exc:
            raise UpstreamError("Invalid or expired token", details=str(exc)) from exc
        if response is None or response.user is None:
            raise UpstreamError("Invalid or expired token")
        return identity_from_user(response.user, claims)

    def create_user(
        self,
        email: str,
        password: str,
        *,
        email_confirm: bool,
        metadata: dict[str, Any] | None = None,
    ) -> Identity:
        attributes: dict[str, Any] = {
            "email": email,
            "password": password,
            "email_confirm": email_confirm,
        }
        if metadata:
            attributes["user_metadata"] = metadata
        try:
            response = self.admin.auth.admin.create_user(attributes)
        except PROVIDER_ERRORS as exc:
            raise UpstreamError("User creation failed", details=str(exc)) from exc
        return self._auth_result(response).identity

    def delete_user(self, user_id: str) -> None:
        try:
            self.admin.auth.admin.delete_user(user_id)
        except PROVIDER_ERRORS as exc:
            raise UpstreamError("Failed to delete auth user", details=str(exc)) from exc

    def update_user_by_id(self, user_id: str, attributes: dict[str, Any]) -> Identity:
        try:
            response = self.admin.auth.admin.update_user_by_id(user_id, attributes)
        except PROVIDER_ERRORS as exc:
            raise UpstreamError("Failed to update auth user", details=str(exc)) from exc
        return self._auth_result(response).identity

    def list_users(self) -> list[Identity]:
        try:
            users = self.admin.auth.admin.list_users()
        except PROVIDER_ERRORS as exc:
            raise UpstreamError("Failed to list auth users", details=str(exc)) from exc
        return [identity_from_user(u) for u in users]

    def get_user_by_id(self, user_id: str) -> Identity:
        try:
            response = self.admin.auth.admin.get_user_by_id(user_id)
        except PROVIDER_ERRORS as exc:
            raise UpstreamError("Failed to fetch auth user", details=str(exc)) from exc
        return self._auth_result(response).identity

    def find_user_by_email(self, email: str) -> Identity | None:
        wanted = email.strip().lower()
        for identity in self.list_users():
            if (identity.email or "").lower() == wanted:
                return identity
        return None
