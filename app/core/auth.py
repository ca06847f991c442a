# app/core/auth.py
"""
FastAPI dependencies for authentication and role lookup.

Web routes accept either a bearer token or the session cookie pair;
mobile routes accept only a bearer token. Both then resolve the caller's
profile/role on every request (no caching across requests).
"""
import logging
import uuid
from dataclasses import dataclass

from fastapi import Depends, Request
from sqlmodel import Session

from app.core.config import get_settings
from app.core.errors import AuthenticationError, AuthorizationError, ErrorCode, UpstreamError
from app.core.identity import Identity, IdentityProvider, InvalidTokenError
from app.core.policy import Role
from app.core.session import (
    CookieCredentialStore,
    Unauthenticated,
    UnauthenticatedReason,
    bearer_token,
    resolve,
)
from app.core.storage import ObjectStorage
from app.database import get_session
from app.models.profile import Profile
from app.repositories.profile_repo import ProfileRepository

logger = logging.getLogger(__name__)

profile_repo = ProfileRepository()

_UNAUTHENTICATED_MESSAGES = {
    UnauthenticatedReason.INVALID_TOKEN: "Invalid authentication token",
    UnauthenticatedReason.NO_SESSION: "Unauthorized - No active session found",
    UnauthenticatedReason.NO_CREDENTIALS: "Authentication required",
}


# -------- Collaborators (built in the app lifespan) --------


def get_identity_provider(request: Request) -> IdentityProvider:
    return request.app.state.identity_provider


def get_object_storage(request: Request) -> ObjectStorage:
    return request.app.state.object_storage


def get_cookie_store() -> CookieCredentialStore:
    return CookieCredentialStore(get_settings())


# -------- Role lookup --------


class ProfileMissing:
    """Marker result: the identity has no (valid) profile row."""

    def __repr__(self) -> str:
        return "ProfileMissing()"


@dataclass
class CurrentUser:
    identity: Identity
    profile: Profile
    role: Role

    @property
    def id(self) -> uuid.UUID:
        return self.profile.id

    @property
    def id_str(self) -> str:
        return str(self.profile.id)


def role_of(session: Session, identity: Identity) -> tuple[Profile, Role] | ProfileMissing:
    """
    Look up the caller's profile and role.

    A missing row (or an unknown role string) is reported, never defaulted.
    """
    try:
        profile_id = uuid.UUID(identity.id)
    except ValueError:
        return ProfileMissing()
    profile = profile_repo.get_by_id(session, profile_id)
    if profile is None:
        return ProfileMissing()
    role = Role.parse(profile.role)
    if role is None:
        logger.warning("Profile %s has unknown role %r", profile.id, profile.role)
        return ProfileMissing()
    return profile, role


def _current_user(session: Session, identity: Identity) -> CurrentUser:
    looked_up = role_of(session, identity)
    if isinstance(looked_up, ProfileMissing):
        raise AuthorizationError("User profile not found", ErrorCode.PROFILE_MISSING)
    profile, role = looked_up
    return CurrentUser(identity=identity, profile=profile, role=role)


# -------- Web: bearer or cookie session --------


def get_current_identity(
    request: Request,
    provider: IdentityProvider = Depends(get_identity_provider),
) -> Identity:
    """
    Resolve the caller from the bearer header or session cookies.

    A rotated cookie session is kept on `request.state`; the
    `write_rotated_session` middleware sets it on whatever response goes
    out, error envelopes included.

    Raises:
        AuthenticationError(401): no/invalid credentials.
    """
    resolution = resolve(request, provider)
    if isinstance(resolution, Unauthenticated):
        raise AuthenticationError(
            _UNAUTHENTICATED_MESSAGES[resolution.reason],
            ErrorCode(resolution.reason.value),
        )
    if resolution.rotated_session is not None:
        request.state.rotated_session = resolution.rotated_session
    return resolution.identity


def get_current_user(
    identity: Identity = Depends(get_current_identity),
    session: Session = Depends(get_session),
) -> CurrentUser:
    return _current_user(session, identity)


def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """
    Enforce admin role.

    Raises:
        HTTP 403: if role is not Admin.
    """
    if user.role is not Role.ADMIN:
        raise AuthorizationError("Admin access required", ErrorCode.INSUFFICIENT_PERMISSIONS)
    return user


# -------- Mobile: bearer only --------


def get_bearer_token(request: Request) -> str:
    token = bearer_token(request.headers.get("Authorization"))
    if token is None:
        raise AuthenticationError(
            "Authorization header required", ErrorCode.MISSING_AUTH_HEADER
        )
    return token


def get_mobile_identity(
    token: str = Depends(get_bearer_token),
    provider: IdentityProvider = Depends(get_identity_provider),
) -> Identity:
    try:
        return provider.verify_token(token)
    except (InvalidTokenError, UpstreamError) as exc:
        logger.info("Mobile bearer token rejected: %s", exc)
        raise AuthenticationError(
            "Invalid or expired token", ErrorCode.INVALID_TOKEN
        ) from exc


def get_mobile_user(
    identity: Identity = Depends(get_mobile_identity),
    session: Session = Depends(get_session),
) -> CurrentUser:
    return _current_user(session, identity)
