# app/routers/auth.py
from fastapi import APIRouter, Depends, Request, Response, status
from sqlmodel import Session

from app.core.auth import (
    CurrentUser,
    get_cookie_store,
    get_current_user,
    get_identity_provider,
    require_admin,
)
from app.core.config import get_settings
from app.core.identity import IdentityProvider
from app.core.policy import Action, enforce
from app.core.session import Authenticated, CookieCredentialStore, resolve
from app.database import get_session
from app.repositories.profile_repo import ProfileRepository
from app.schemas.auth import (
    ConfirmEmailRequest,
    EmailRequest,
    LoginRequest,
    RegisterRequest,
    SessionTokens,
)
from app.schemas.user import ProfileRead
from app.services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["Auth"])

profile_repo = ProfileRepository()
service = AuthService(profile_repo, get_settings())


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    session: Session = Depends(get_session),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    """
    Register a new Archivist or User.

    - Admin accounts cannot be self-registered.
    - Duplicate emails are rejected before anything is created.
    """
    registration = service.register(session, provider, payload)
    message = (
        "Registration successful. Please check your email to confirm your account."
        if registration.requires_email_confirmation
        else "Registration successful."
    )
    return {
        "message": message,
        "user": ProfileRead.model_validate(registration.profile),
        "requiresEmailConfirmation": registration.requires_email_confirmation,
    }


@router.post("/login")
def login(
    payload: LoginRequest,
    response: Response,
    session: Session = Depends(get_session),
    provider: IdentityProvider = Depends(get_identity_provider),
    cookie_store: CookieCredentialStore = Depends(get_cookie_store),
):
    """
    Password login for web clients.

    Tokens are only handed out as HTTP-only cookies, never in the body.
    """
    login_result = service.login(session, provider, payload)
    auth = login_result.result
    cookie_store.write(response, auth.session)
    return {
        "user": {
            "id": auth.identity.id,
            "email": auth.identity.email,
            "role": login_result.role,
            "emailConfirmed": auth.identity.email_confirmed,
        },
        "expiresAt": auth.session.expires_at,
    }


@router.get("/session")
def session_status(
    request: Request,
    response: Response,
    provider: IdentityProvider = Depends(get_identity_provider),
    cookie_store: CookieCredentialStore = Depends(get_cookie_store),
):
    """Report whether the caller has a valid session. Never fails."""
    resolution = resolve(request, provider)
    if not isinstance(resolution, Authenticated):
        return {"isLoggedIn": False, "user": None}
    if resolution.rotated_session is not None:
        cookie_store.write(response, resolution.rotated_session)
    return {
        "isLoggedIn": True,
        "user": {"id": resolution.identity.id, "email": resolution.identity.email},
    }


@router.post("/session")
def establish_session(
    payload: SessionTokens,
    response: Response,
    provider: IdentityProvider = Depends(get_identity_provider),
    cookie_store: CookieCredentialStore = Depends(get_cookie_store),
):
    """Verify client-held tokens and store them as HTTP-only cookies."""
    result = service.establish_session(provider, payload)
    cookie_store.write(response, result.session)
    return {
        "success": True,
        "user": {"id": result.identity.id, "email": result.identity.email},
    }


@router.delete("/session")
def clear_session(
    response: Response,
    cookie_store: CookieCredentialStore = Depends(get_cookie_store),
):
    cookie_store.clear(response)
    return {"success": True}


@router.post("/confirm-email")
def confirm_email(
    payload: ConfirmEmailRequest,
    response: Response,
    provider: IdentityProvider = Depends(get_identity_provider),
    cookie_store: CookieCredentialStore = Depends(get_cookie_store),
):
    """
    Verify the tokens from an email confirmation link.

    Leaves no session behind: any session cookies are cleared, so the
    user logs in explicitly afterwards.
    """
    identity = service.confirm_email(provider, payload)
    cookie_store.clear(response)
    return {
        "success": True,
        "message": "Email confirmed successfully. Please log in.",
        "user": {"id": identity.id, "email": identity.email},
    }


@router.post("/resend-confirmation")
def resend_confirmation(
    payload: EmailRequest,
    provider: IdentityProvider = Depends(get_identity_provider),
):
    service.resend_confirmation(provider, payload.email)
    return {"success": True, "message": "Confirmation email sent"}


@router.post("/cleanup", dependencies=[Depends(require_admin)])
def cleanup_orphan(
    payload: EmailRequest,
    session: Session = Depends(get_session),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    """Delete an identity that has no profile (failed registration)."""
    identity = service.cleanup_orphan(session, provider, payload.email)
    return {
        "success": True,
        "message": "Orphaned auth user deleted",
        "deletedUser": {"id": identity.id, "email": identity.email},
    }


@router.get("/me", response_model=ProfileRead)
def read_me(user: CurrentUser = Depends(get_current_user)):
    """Current user's profile."""
    enforce(user.role, Action.READ_OWN_PROFILE)
    return user.profile
