# app/services/auth_service.py
import logging
import uuid
from dataclasses import dataclass

from fastapi import status
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session

from app.core.config import Settings
from app.core.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    ErrorCode,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from app.core.identity import AuthResult, Identity, IdentityProvider
from app.core.policy import Role
from app.core.provider_messages import (
    classify_login_error,
    classify_refresh_error,
    classify_registration_error,
)
from app.models.profile import Profile
from app.repositories.profile_repo import ProfileRepository
from app.schemas.auth import (
    ConfirmEmailRequest,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    SessionTokens,
)

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

# Roles a caller may pick for themselves at registration.
SELF_SERVICE_ROLES = {Role.ARCHIVIST.value, Role.USER.value}

EMAIL_EXISTS_MESSAGE = "An account with this email already exists. Please use the login page."


@dataclass
class Registration:
    identity: Identity
    profile: Profile
    requires_email_confirmation: bool


@dataclass
class Login:
    result: AuthResult
    role: str | None


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthService:
    """
    Business logic for registration, login and session handling.

    Responsibilities:
      - validate credentials payloads
      - keep identity and profile creation all-or-nothing (compensating
        identity deletion when the profile insert fails)
      - classify provider errors into stable client codes
    """

    def __init__(self, profile_repo: ProfileRepository, settings: Settings):
        self.profile_repo = profile_repo
        self.settings = settings

    # ----- Helpers -----

    @staticmethod
    def _require_credentials(email: str | None, password: str | None) -> tuple[str, str]:
        if not email or not email.strip() or not password:
            raise ValidationError(
                "Email and password are required", ErrorCode.MISSING_CREDENTIALS
            )
        return normalize_email(email), password

    @staticmethod
    def _check_password(password: str) -> None:
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
                ErrorCode.WEAK_PASSWORD,
            )

    def confirmation_redirect(self) -> str:
        return f"{self.settings.SITE_URL.rstrip('/')}/confirm"

    def _role_for(self, session: Session, identity: Identity) -> str | None:
        try:
            profile = self.profile_repo.get_by_id(session, uuid.UUID(identity.id))
        except ValueError:
            return None
        return profile.role if profile else None

    # ----- Registration -----

    def register(
        self,
        session: Session,
        provider: IdentityProvider,
        payload: RegisterRequest,
    ) -> Registration:
        """
        Create identity + profile.

        Steps:
          1. Validate email/password/role (Admin cannot self-register).
          2. Reject emails that already have a profile (ConflictError).
          3. Create the identity via the admin API.
          4. Insert the profile; on failure delete the identity again.
          5. Send the confirmation email (failure is logged, not fatal).
        """
        email, password = self._require_credentials(payload.email, payload.password)
        self._check_password(password)

        if payload.role == Role.ADMIN.value:
            raise AuthorizationError(
                "Admin accounts cannot be created through registration",
                ErrorCode.ADMIN_REGISTRATION_BLOCKED,
            )
        role = payload.role if payload.role in SELF_SERVICE_ROLES else Role.USER.value

        if self.profile_repo.get_by_email(session, email) is not None:
            raise ConflictError(EMAIL_EXISTS_MESSAGE, ErrorCode.EMAIL_ALREADY_EXISTS)

        needs_confirmation = self.settings.REQUIRE_EMAIL_CONFIRMATION
        try:
            identity = provider.create_user(
                email,
                password,
                email_confirm=not needs_confirmation,
                metadata={"role": role},
            )
        except UpstreamError as exc:
            classified = classify_registration_error(exc.details or exc.message)
            logger.warning("Identity creation failed for %s: %s", email, exc.details)
            if classified.code is ErrorCode.EMAIL_ALREADY_EXISTS:
                raise ConflictError(classified.message, classified.code) from exc
            if classified.code is ErrorCode.PROVIDER_UNAVAILABLE:
                raise UpstreamError(
                    classified.message,
                    classified.code,
                    details=exc.details,
                    status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                ) from exc
            raise ValidationError(
                classified.message, classified.code, details=exc.details
            ) from exc

        profile = Profile(id=uuid.UUID(identity.id), email=email, role=role)
        try:
            profile = self.profile_repo.create(session, profile)
        except SQLAlchemyError as exc:
            session.rollback()
            self._discard_identity(provider, identity)
            if isinstance(exc, IntegrityError):
                raise ConflictError(EMAIL_EXISTS_MESSAGE, ErrorCode.EMAIL_ALREADY_EXISTS) from exc
            raise UpstreamError(
                "Failed to create user profile", details=str(exc)
            ) from exc

        if needs_confirmation:
            try:
                provider.resend_confirmation(email, self.confirmation_redirect())
            except UpstreamError as exc:
                logger.warning("Confirmation email for %s not sent: %s", email, exc.details)

        logger.info("Registered %s as %s", email, role)
        return Registration(
            identity=identity,
            profile=profile,
            requires_email_confirmation=needs_confirmation,
        )

    @staticmethod
    def _discard_identity(provider: IdentityProvider, identity: Identity) -> None:
        """Compensate a failed profile insert by deleting the new identity."""
        try:
            provider.delete_user(identity.id)
            logger.warning("Rolled back identity %s after profile failure", identity.id)
        except UpstreamError as exc:
            logger.error(
                "Orphaned identity %s (%s) left behind: %s",
                identity.id,
                identity.email,
                exc.details,
            )

    # ----- Login / sessions -----

    def login(
        self,
        session: Session,
        provider: IdentityProvider,
        payload: LoginRequest,
    ) -> Login:
        """
        Password login.

        An identity with an unconfirmed email is signed out again and
        rejected, so no session ever reaches the caller.
        """
        email, password = self._require_credentials(payload.email, payload.password)
        try:
            result, client = provider.sign_in_with_password(email, password)
        except UpstreamError as exc:
            classified = classify_login_error(exc.details or exc.message)
            raise AuthenticationError(
                classified.message,
                classified.code,
                details=exc.details,
                status_code=classified.status_code,
            ) from exc

        if not result.identity.email_confirmed:
            provider.sign_out(client)
            raise ValidationError(
                "Please confirm your email address before logging in. "
                "Check your email for the confirmation link.",
                ErrorCode.EMAIL_NOT_CONFIRMED,
            )
        if result.session is None:
            raise AuthenticationError(
                "Login failed - no session received", ErrorCode.LOGIN_FAILED
            )
        return Login(result=result, role=self._role_for(session, result.identity))

    def establish_session(
        self,
        provider: IdentityProvider,
        payload: SessionTokens,
    ) -> AuthResult:
        """Verify client-held tokens before they are turned into cookies."""
        if not payload.access_token or not payload.refresh_token:
            raise ValidationError("Access token and refresh token required")
        try:
            result = provider.set_session(payload.access_token, payload.refresh_token)
        except UpstreamError as exc:
            raise AuthenticationError("Invalid session", ErrorCode.NO_SESSION) from exc
        if result.session is None:
            raise AuthenticationError("Invalid session", ErrorCode.NO_SESSION)
        return result

    def refresh(
        self,
        session: Session,
        provider: IdentityProvider,
        payload: RefreshRequest,
    ) -> Login:
        if not payload.refresh_token:
            raise ValidationError(
                "Refresh token is required", ErrorCode.MISSING_REFRESH_TOKEN
            )
        try:
            result = provider.refresh_session(payload.refresh_token)
        except UpstreamError as exc:
            classified = classify_refresh_error(exc.details or exc.message)
            raise AuthenticationError(
                classified.message,
                classified.code,
                details=exc.details,
                status_code=classified.status_code,
            ) from exc
        if result.session is None:
            raise AuthenticationError("Failed to refresh session", ErrorCode.REFRESH_FAILED)
        return Login(result=result, role=self._role_for(session, result.identity))

    # ----- Email confirmation -----

    def confirm_email(
        self,
        provider: IdentityProvider,
        payload: ConfirmEmailRequest,
    ) -> Identity:
        """
        Check the tokens from a confirmation link.

        The tokens are verified on a throwaway client; no cookies are set,
        so the user still has to log in afterwards.
        """
        if payload.type and payload.type != "signup":
            raise ValidationError(f"Cannot confirm email for type: {payload.type}")
        if not payload.access_token:
            raise ValidationError("Missing access_token")
        try:
            result = provider.set_session(payload.access_token, payload.refresh_token or "")
        except UpstreamError as exc:
            raise ValidationError(
                "Confirmation link is invalid or has expired",
                ErrorCode.INVALID_TOKEN,
                details=exc.details,
            ) from exc
        if not result.identity.email_confirmed:
            raise ValidationError(
                "Email address is not confirmed yet", ErrorCode.EMAIL_NOT_CONFIRMED
            )
        return result.identity

    def resend_confirmation(self, provider: IdentityProvider, email: str | None) -> None:
        if not email or not email.strip():
            raise ValidationError("Email is required")
        provider.resend_confirmation(normalize_email(email), self.confirmation_redirect())

    def manual_confirm(self, provider: IdentityProvider, email: str | None) -> bool:
        """
        Confirm an email through the admin API.

        Returns False when the address was already confirmed.
        """
        if not email or not email.strip():
            raise ValidationError("Email is required")
        identity = provider.find_user_by_email(email)
        if identity is None:
            raise NotFoundError("User not found", ErrorCode.USER_NOT_FOUND)
        if identity.email_confirmed:
            return False
        provider.update_user_by_id(identity.id, {"email_confirm": True})
        return True

    # ----- Orphan cleanup -----

    def cleanup_orphan(
        self,
        session: Session,
        provider: IdentityProvider,
        email: str | None,
    ) -> Identity:
        """
        Delete an identity left behind by a failed registration.

        Only identities without any profile row are removed; users with a
        profile must go through the normal deletion path.
        """
        if not email or not email.strip():
            raise ValidationError("Email is required")
        identity = provider.find_user_by_email(email)
        if identity is None:
            raise NotFoundError("No auth user found with this email", ErrorCode.USER_NOT_FOUND)

        by_email = self.profile_repo.get_by_email(session, normalize_email(email))
        by_id = self.profile_repo.get_by_id(session, uuid.UUID(identity.id))
        if by_email is not None or by_id is not None:
            raise ValidationError("User has a profile - use normal deletion process")

        provider.delete_user(identity.id)
        logger.info("Deleted orphaned identity %s (%s)", identity.id, identity.email)
        return identity

    # ----- Profile -----

    def update_password(
        self,
        provider: IdentityProvider,
        identity: Identity,
        password: str | None,
    ) -> None:
        if not password:
            return
        self._check_password(password)
        try:
            provider.update_user_by_id(identity.id, {"password": password})
        except UpstreamError as exc:
            raise UpstreamError(
                "Failed to update password",
                ErrorCode.PASSWORD_UPDATE_ERROR,
                details=exc.details,
            ) from exc
