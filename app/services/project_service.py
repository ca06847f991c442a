# app/services/project_service.py
import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.core.auth import CurrentUser
from app.core.errors import ErrorCode, NotFoundError, UpstreamError, ValidationError
from app.core.policy import Action, ResourceContext, RowFilter, authorize, enforce
from app.core.storage import ObjectStorage
from app.models.project import Project, ProjectAssignment
from app.repositories.assignment_repo import AssignmentRepository
from app.repositories.file_repo import FileRepository
from app.repositories.project_repo import ProjectRepository
from app.schemas.assignment import AssignedUser, AssignmentRead
from app.schemas.file import FileRead
from app.schemas.project import (
    ProjectCreate,
    ProjectDetail,
    ProjectLocation,
    ProjectRead,
    ProjectUpdate,
)

logger = logging.getLogger(__name__)


def validate_coordinates(latitude: float | None, longitude: float | None) -> None:
    if latitude is not None and not -90 <= latitude <= 90:
        raise ValidationError(
            "Latitude must be between -90 and 90", ErrorCode.INVALID_COORDINATES
        )
    if longitude is not None and not -180 <= longitude <= 180:
        raise ValidationError(
            "Longitude must be between -180 and 180", ErrorCode.INVALID_COORDINATES
        )


def project_location(project: Project) -> ProjectLocation | None:
    values = {
        "latitude": project.location_latitude,
        "longitude": project.location_longitude,
        "name": project.location_name,
        "address": project.location_address,
        "description": project.location_description,
    }
    if all(v is None for v in values.values()):
        return None
    return ProjectLocation(**values)


def apply_location(project: Project, location: ProjectLocation | None) -> None:
    """Copy a nested location onto the flat columns (None clears it)."""
    location = location or ProjectLocation()
    validate_coordinates(location.latitude, location.longitude)
    project.location_latitude = location.latitude
    project.location_longitude = location.longitude
    project.location_name = location.name
    project.location_address = location.address
    project.location_description = location.description


class ProjectService:
    """
    Business logic for projects.

    Responsibilities:
      - policy checks (role + live assignment facts per request)
      - listing enrichment (creator email, counts, assignment flag)
      - project deletion including assignments, file rows and objects
    """

    def __init__(
        self,
        repo: ProjectRepository,
        assignments: AssignmentRepository,
        files: FileRepository,
    ):
        self.repo = repo
        self.assignments = assignments
        self.files = files

    # ----- Helpers -----

    def get_project_or_404(self, session: Session, project_id: uuid.UUID) -> Project:
        project = self.repo.get_by_id(session, project_id)
        if not project:
            raise NotFoundError("Project not found", ErrorCode.PROJECT_NOT_FOUND)
        return project

    def context_for(
        self,
        session: Session,
        user: CurrentUser,
        project_id: uuid.UUID,
        **extra,
    ) -> ResourceContext:
        """Access facts for `user` on `project_id`, read fresh from the DB."""
        return ResourceContext(
            actor_id=user.id_str,
            is_assigned=self.assignments.exists(session, project_id, user.id),
            **extra,
        )

    def _enrich(
        self,
        session: Session,
        projects: list[Project],
        assigned_ids: set[uuid.UUID] | None = None,
    ) -> list[ProjectRead]:
        ids = [p.id for p in projects]
        emails = self.repo.creator_emails(session, {p.created_by for p in projects})
        assignment_counts = self.repo.assignment_counts(session, ids)
        file_counts = self.repo.file_counts(session, ids)

        items: list[ProjectRead] = []
        for project in projects:
            item = self.to_read(project, created_by_email=emails.get(project.created_by))
            item.assignment_count = assignment_counts.get(project.id, 0)
            item.file_count = file_counts.get(project.id, 0)
            if assigned_ids is not None:
                item.is_assigned = project.id in assigned_ids
            items.append(item)
        return items

    @staticmethod
    def to_read(project: Project, created_by_email: str | None = None) -> ProjectRead:
        return ProjectRead(
            id=project.id,
            name=project.name,
            description=project.description,
            location=project_location(project),
            created_by=project.created_by,
            created_by_email=created_by_email,
            created_at=project.created_at,
            updated_at=project.updated_at,
        )

    # ----- Listings -----

    def list_assigned(self, session: Session, user: CurrentUser) -> list[ProjectRead]:
        """
        Projects the caller works on.

        Admins get every project here.
        """
        decision = enforce(user.role, Action.LIST_ASSIGNED_PROJECTS)
        if decision.filter is RowFilter.ALL:
            projects = self.repo.list_all(session)
        else:
            projects = self.repo.list_for_user(session, user.id)
        return self._enrich(session, projects)

    def browse(self, session: Session, user: CurrentUser) -> list[ProjectRead]:
        """Catalog of all projects, flagged with the caller's assignments."""
        enforce(user.role, Action.LIST_PROJECTS)
        projects = self.repo.list_all(session)
        assigned = set(self.assignments.project_ids_for_user(session, user.id))
        return self._enrich(session, projects, assigned_ids=assigned)

    # ----- CRUD -----

    def create_project(
        self,
        session: Session,
        user: CurrentUser,
        payload: ProjectCreate,
        *,
        assign_creator: bool = False,
    ) -> ProjectRead:
        """
        Create a project.

        With `assign_creator` the creator is also assigned to it; a failure
        there is logged and does not undo the project.
        """
        enforce(user.role, Action.CREATE_PROJECT)

        name = (payload.name or "").strip()
        if not name:
            raise ValidationError("Project name is required")

        project = Project(
            name=name,
            description=payload.description,
            created_by=user.id,
        )
        apply_location(project, payload.location)
        try:
            project = self.repo.create(session, project)
        except SQLAlchemyError as exc:
            session.rollback()
            raise UpstreamError("Failed to create project", details=str(exc)) from exc

        if assign_creator:
            try:
                self.assignments.create(
                    session,
                    ProjectAssignment(
                        project_id=project.id,
                        assigned_user_id=user.id,
                        assigned_by=user.id,
                    ),
                )
            except SQLAlchemyError as exc:
                session.rollback()
                logger.warning(
                    "Project %s created but creator %s not assigned: %s",
                    project.id,
                    user.id,
                    exc,
                )

        logger.info("Project %s created by %s", project.id, user.id)
        return self.to_read(project, created_by_email=user.profile.email)

    def get_project_detail(
        self,
        session: Session,
        user: CurrentUser,
        project_id: uuid.UUID,
    ) -> ProjectDetail:
        """
        Project with its files and users.

        Every role may read the project itself; files and users are only
        included when the caller may read them.
        """
        project = self.get_project_or_404(session, project_id)
        ctx = self.context_for(session, user, project_id)
        enforce(user.role, Action.READ_PROJECT, ctx)

        emails = self.repo.creator_emails(session, {project.created_by})
        base = self.to_read(project, created_by_email=emails.get(project.created_by))
        detail = ProjectDetail(**base.model_dump())
        detail.is_assigned = ctx.is_assigned
        if authorize(user.role, Action.READ_FILE, ctx).allowed:
            detail.files = [
                FileRead.model_validate(f)
                for f in self.files.list_for_project(session, project_id)
            ]
        if authorize(user.role, Action.LIST_PROJECT_USERS, ctx).allowed:
            detail.users = [
                assignment_read(a, p)
                for a, p in self.assignments.list_with_profiles(session, project_id)
            ]
        return detail

    def update_project(
        self,
        session: Session,
        user: CurrentUser,
        project_id: uuid.UUID,
        payload: ProjectUpdate,
    ) -> ProjectRead:
        project = self.get_project_or_404(session, project_id)
        enforce(user.role, Action.UPDATE_PROJECT, self.context_for(session, user, project_id))

        data = payload.model_dump(exclude_unset=True)
        if "name" in data:
            if payload.name is None:
                raise ValidationError("Project name is required")
            project.name = payload.name
        if "description" in data:
            project.description = (payload.description or "").strip() or None
        if "location" in data:
            apply_location(project, payload.location)
        project.updated_at = datetime.now(timezone.utc)

        project = self.repo.update(session, project)
        return self.to_read(project)

    def delete_projects(
        self,
        session: Session,
        storage: ObjectStorage,
        user: CurrentUser,
        project_ids: list[uuid.UUID] | None,
    ) -> list[uuid.UUID]:
        """
        Delete projects with their assignments, file rows and objects.

        Rows go first; object removal afterwards is best-effort and any
        leftover keys are logged.

        Returns:
            ids of the projects actually deleted.
        """
        enforce(user.role, Action.DELETE_PROJECT)
        if not project_ids:
            raise ValidationError("Project IDs array is required")

        projects = self.repo.list_by_ids(session, list(dict.fromkeys(project_ids)))
        if not projects:
            raise NotFoundError("No projects found", ErrorCode.PROJECT_NOT_FOUND)

        ids = [p.id for p in projects]
        keys = self.files.list_keys_for_projects(session, ids)
        self.repo.delete_many(session, projects)

        if keys:
            try:
                storage.remove(keys)
            except UpstreamError as exc:
                logger.error(
                    "Projects %s deleted; %d storage objects left behind: %s",
                    ids,
                    len(keys),
                    exc.details,
                )
        logger.info("Deleted %d project(s) for %s", len(ids), user.id)
        return ids

    def delete_project(
        self,
        session: Session,
        storage: ObjectStorage,
        user: CurrentUser,
        project_id: uuid.UUID,
    ) -> None:
        enforce(user.role, Action.DELETE_PROJECT)
        self.get_project_or_404(session, project_id)
        self.delete_projects(session, storage, user, [project_id])


def assignment_read(assignment: ProjectAssignment, profile) -> AssignmentRead:
    return AssignmentRead(
        id=assignment.id,
        project_id=assignment.project_id,
        assigned_at=assignment.assigned_at,
        assigned_by=assignment.assigned_by,
        role=assignment.role,
        assigned_user=AssignedUser(id=profile.id, email=profile.email, role=profile.role),
    )
