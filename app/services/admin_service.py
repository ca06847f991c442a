# app/services/admin_service.py
import logging
import uuid

from sqlmodel import Session

from app.core.auth import CurrentUser
from app.core.errors import AuthorizationError, ErrorCode, NotFoundError, UpstreamError
from app.core.identity import IdentityProvider
from app.core.policy import Action, ResourceContext, Role, enforce
from app.models.profile import Profile
from app.repositories.assignment_repo import AssignmentRepository
from app.repositories.profile_repo import ProfileRepository
from app.schemas.user import AdminUserRead, RoleUpdate

logger = logging.getLogger(__name__)


class AdminService:
    """User management for Admins: listing, role changes, deletion."""

    def __init__(self, profiles: ProfileRepository, assignments: AssignmentRepository):
        self.profiles = profiles
        self.assignments = assignments

    def _profile_or_404(self, session: Session, user_id: uuid.UUID) -> Profile:
        profile = self.profiles.get_by_id(session, user_id)
        if profile is None:
            raise NotFoundError("User not found", ErrorCode.USER_NOT_FOUND)
        return profile

    def list_users(
        self,
        session: Session,
        provider: IdentityProvider,
        actor: CurrentUser,
    ) -> list[AdminUserRead]:
        """
        Profiles, newest first, with their email confirmation timestamp.

        A failed provider lookup only blanks that user's timestamp.
        """
        enforce(actor.role, Action.MANAGE_USERS, ResourceContext(actor_id=actor.id_str))

        users: list[AdminUserRead] = []
        for profile in self.profiles.list_newest_first(session):
            if Role.parse(profile.role) is None:
                logger.warning("Profile %s has unknown role %r", profile.id, profile.role)
            confirmed_at = None
            try:
                confirmed_at = provider.get_user_by_id(str(profile.id)).email_confirmed_at
            except UpstreamError as exc:
                logger.warning("Confirmation lookup failed for %s: %s", profile.id, exc.details)
            users.append(
                AdminUserRead(
                    id=profile.id,
                    email=profile.email,
                    role=profile.role,
                    created_at=profile.created_at,
                    email_confirmed_at=confirmed_at,
                )
            )
        return users

    def get_user_role(
        self,
        session: Session,
        actor: CurrentUser,
        user_id: uuid.UUID,
    ) -> Profile:
        """Role of `user_id`; readable by the user themselves or an Admin."""
        if actor.id != user_id and actor.role is not Role.ADMIN:
            raise AuthorizationError("Admin access required", ErrorCode.INSUFFICIENT_PERMISSIONS)
        return self._profile_or_404(session, user_id)

    def update_role(
        self,
        session: Session,
        actor: CurrentUser,
        user_id: uuid.UUID,
        payload: RoleUpdate,
    ) -> Profile:
        enforce(
            actor.role,
            Action.MANAGE_USERS,
            ResourceContext(
                actor_id=actor.id_str,
                target_user_id=str(user_id),
                operation="updateRole",
            ),
        )
        profile = self._profile_or_404(session, user_id)
        previous = profile.role
        profile.role = payload.role
        profile = self.profiles.update(session, profile)
        logger.info("Role of %s changed %s -> %s by %s", user_id, previous, profile.role, actor.id)
        return profile

    def delete_user(
        self,
        session: Session,
        provider: IdentityProvider,
        actor: CurrentUser,
        user_id: uuid.UUID,
    ) -> str:
        """
        Delete a user: assignments and profile first, then the identity.

        Deleting one's own account is refused (400).

        Returns:
            the deleted user's email.
        """
        enforce(
            actor.role,
            Action.MANAGE_USERS,
            ResourceContext(
                actor_id=actor.id_str,
                target_user_id=str(user_id),
                operation="delete",
            ),
        )
        profile = self._profile_or_404(session, user_id)
        email = profile.email

        self.assignments.delete_for_user(session, user_id)
        self.profiles.delete(session, profile)

        try:
            provider.delete_user(str(user_id))
        except UpstreamError as exc:
            logger.error(
                "Profile %s deleted but identity remains (%s): %s",
                user_id,
                email,
                exc.details,
            )
            raise UpstreamError(
                "Profile deleted but failed to delete auth user",
                details=exc.details,
            ) from exc

        logger.info("User %s (%s) deleted by %s", user_id, email, actor.id)
        return email
