# app/services/assignment_service.py
import logging
import uuid
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from app.core.auth import CurrentUser
from app.core.errors import ErrorCode, NotFoundError, ValidationError
from app.core.policy import Action, enforce
from app.models.profile import Profile
from app.models.project import ProjectAssignment
from app.repositories.assignment_repo import AssignmentRepository
from app.repositories.profile_repo import ProfileRepository
from app.schemas.assignment import AssignedUser, AssignmentRead, AssignmentTarget
from app.services.project_service import ProjectService, assignment_read

logger = logging.getLogger(__name__)


@dataclass
class AssignmentOutcome:
    """
    Result of an assign call.

    `created` is False when the user was already assigned; the existing
    row (if it could be read back) is returned instead.
    """

    created: bool
    user: AssignedUser
    assignment: AssignmentRead | None = None


class AssignmentService:
    """
    Business logic for project assignments.

    Assignment is binary access: a row for (project, user) grants it.
    Duplicates are reported through AssignmentOutcome, not as errors.
    """

    def __init__(
        self,
        repo: AssignmentRepository,
        profiles: ProfileRepository,
        projects: ProjectService,
    ):
        self.repo = repo
        self.profiles = profiles
        self.projects = projects

    def _target_profile(self, session: Session, target: AssignmentTarget) -> Profile:
        if target.user_id is None and not (target.email and target.email.strip()):
            raise ValidationError("User ID or email is required")
        if target.user_id is not None:
            profile = self.profiles.get_by_id(session, target.user_id)
        else:
            profile = self.profiles.get_by_email(session, target.email.strip().lower())
        if profile is None:
            raise NotFoundError("User not found", ErrorCode.USER_NOT_FOUND)
        return profile

    def list_project_users(
        self,
        session: Session,
        user: CurrentUser,
        project_id: uuid.UUID,
    ) -> list[AssignmentRead]:
        self.projects.get_project_or_404(session, project_id)
        enforce(
            user.role,
            Action.LIST_PROJECT_USERS,
            self.projects.context_for(session, user, project_id),
        )
        return [
            assignment_read(a, p)
            for a, p in self.repo.list_with_profiles(session, project_id)
        ]

    def assign_user(
        self,
        session: Session,
        user: CurrentUser,
        project_id: uuid.UUID,
        target: AssignmentTarget,
    ) -> AssignmentOutcome:
        self.projects.get_project_or_404(session, project_id)
        enforce(
            user.role,
            Action.ASSIGN_USER,
            self.projects.context_for(session, user, project_id),
        )
        profile = self._target_profile(session, target)
        assigned_user = AssignedUser(id=profile.id, email=profile.email, role=profile.role)

        existing = self.repo.get(session, project_id, profile.id)
        if existing is not None:
            return AssignmentOutcome(
                created=False,
                user=assigned_user,
                assignment=assignment_read(existing, profile),
            )

        try:
            assignment = self.repo.create(
                session,
                ProjectAssignment(
                    project_id=project_id,
                    assigned_user_id=profile.id,
                    assigned_by=user.id,
                ),
            )
        except IntegrityError:
            # Lost a race against a concurrent assign of the same pair.
            session.rollback()
            return AssignmentOutcome(created=False, user=assigned_user)

        logger.info("Assigned %s to project %s (by %s)", profile.id, project_id, user.id)
        return AssignmentOutcome(
            created=True,
            user=assigned_user,
            assignment=assignment_read(assignment, profile),
        )

    def remove_user(
        self,
        session: Session,
        user: CurrentUser,
        project_id: uuid.UUID,
        target: AssignmentTarget,
    ) -> AssignedUser:
        self.projects.get_project_or_404(session, project_id)
        profile = self._target_profile(session, target)
        enforce(
            user.role,
            Action.REMOVE_ASSIGNMENT,
            self.projects.context_for(
                session, user, project_id, target_user_id=str(profile.id)
            ),
        )

        assignment = self.repo.get(session, project_id, profile.id)
        if assignment is None:
            raise NotFoundError("User is not assigned to this project")
        self.repo.delete(session, assignment)

        logger.info("Removed %s from project %s (by %s)", profile.id, project_id, user.id)
        return AssignedUser(id=profile.id, email=profile.email, role=profile.role)
