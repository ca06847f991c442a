# app/routers/mobile_auth.py
from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from app.core.auth import (
    CurrentUser,
    get_bearer_token,
    get_identity_provider,
    get_mobile_user,
)
from app.core.config import get_settings
from app.core.identity import AuthResult, Identity, IdentityProvider
from app.core.policy import Action, enforce
from app.database import get_session
from app.repositories.profile_repo import ProfileRepository
from app.schemas.auth import LoginRequest, PasswordUpdate, RefreshRequest, RegisterRequest
from app.schemas.envelope import mobile_ok
from app.services.auth_service import AuthService

router = APIRouter(prefix="/mobile/auth", tags=["Mobile Auth"])

service = AuthService(ProfileRepository(), get_settings())


def user_payload(identity: Identity, role: str | None) -> dict:
    return {
        "id": identity.id,
        "email": identity.email,
        "role": role,
        "emailConfirmed": identity.email_confirmed,
        "createdAt": identity.created_at,
    }


def session_payload(result: AuthResult, role: str | None) -> dict:
    session = result.session
    return {
        "user": user_payload(result.identity, role),
        "session": {
            "accessToken": session.access_token,
            "refreshToken": session.refresh_token,
            "expiresAt": session.expires_at,
            "expiresIn": session.expires_in,
        },
    }


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    session: Session = Depends(get_session),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    registration = service.register(session, provider, payload)
    message = (
        "Registration successful. Please check your email to confirm your account."
        if registration.requires_email_confirmation
        else "Registration successful."
    )
    return mobile_ok(
        {
            "user": user_payload(registration.identity, registration.profile.role),
            "requiresEmailConfirmation": registration.requires_email_confirmation,
        },
        message,
    )


@router.post("/login")
def login(
    payload: LoginRequest,
    session: Session = Depends(get_session),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    """
    Password login for mobile clients; tokens are returned in the body.
    """
    result = service.login(session, provider, payload)
    return mobile_ok(session_payload(result.result, result.role), "Login successful")


@router.post("/refresh")
def refresh(
    payload: RefreshRequest,
    session: Session = Depends(get_session),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    result = service.refresh(session, provider, payload)
    return mobile_ok(session_payload(result.result, result.role), "Token refreshed successfully")


@router.post("/logout")
def logout(
    token: str = Depends(get_bearer_token),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    """
    Revoke the session behind the bearer token.

    Revocation failures are logged; the client drops its tokens anyway.
    """
    provider.revoke_session(token)
    return mobile_ok(message="Logged out successfully")


@router.get("/profile")
def read_profile(user: CurrentUser = Depends(get_mobile_user)):
    enforce(user.role, Action.READ_OWN_PROFILE)
    data = user_payload(user.identity, user.profile.role)
    data["profileCreatedAt"] = user.profile.created_at
    return mobile_ok({"user": data})


@router.put("/profile")
def update_profile(
    payload: PasswordUpdate,
    user: CurrentUser = Depends(get_mobile_user),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    """
    Update the caller's own account.

    Only the password can be changed here (minimum 6 characters).
    """
    service.update_password(provider, user.identity, payload.password)
    return mobile_ok(
        {"user": user_payload(user.identity, user.profile.role)},
        "Profile updated successfully",
    )
