# app/repositories/project_repo.py
import uuid

from sqlalchemy import func
from sqlmodel import Session, select

from app.models.file import FileRecord
from app.models.profile import Profile
from app.models.project import Project, ProjectAssignment


class ProjectRepository:
    """
    Data access layer for Project.

    - Pure DB operations (CRUD + queries).
    - No FastAPI, no business logic.
    """

    def get_by_id(self, session: Session, project_id: uuid.UUID) -> Project | None:
        return session.get(Project, project_id)

    def list_all(self, session: Session) -> list[Project]:
        stmt = select(Project).order_by(Project.created_at.desc())
        return list(session.exec(stmt).all())

    def list_for_user(self, session: Session, user_id: uuid.UUID) -> list[Project]:
        """Projects the given profile is assigned to."""
        stmt = (
            select(Project)
            .join(ProjectAssignment, ProjectAssignment.project_id == Project.id)
            .where(ProjectAssignment.assigned_user_id == user_id)
            .order_by(Project.created_at.desc())
        )
        return list(session.exec(stmt).all())

    def list_by_ids(self, session: Session, project_ids: list[uuid.UUID]) -> list[Project]:
        if not project_ids:
            return []
        stmt = select(Project).where(Project.id.in_(project_ids))
        return list(session.exec(stmt).all())

    def creator_emails(
        self, session: Session, creator_ids: set[uuid.UUID]
    ) -> dict[uuid.UUID, str]:
        if not creator_ids:
            return {}
        stmt = select(Profile.id, Profile.email).where(Profile.id.in_(creator_ids))
        return {pid: email for pid, email in session.exec(stmt).all()}

    def assignment_counts(
        self, session: Session, project_ids: list[uuid.UUID]
    ) -> dict[uuid.UUID, int]:
        if not project_ids:
            return {}
        stmt = (
            select(ProjectAssignment.project_id, func.count())
            .where(ProjectAssignment.project_id.in_(project_ids))
            .group_by(ProjectAssignment.project_id)
        )
        return {pid: count for pid, count in session.exec(stmt).all()}

    def file_counts(
        self, session: Session, project_ids: list[uuid.UUID]
    ) -> dict[uuid.UUID, int]:
        if not project_ids:
            return {}
        stmt = (
            select(FileRecord.project_id, func.count())
            .where(FileRecord.project_id.in_(project_ids))
            .group_by(FileRecord.project_id)
        )
        return {pid: count for pid, count in session.exec(stmt).all()}

    def create(self, session: Session, project: Project) -> Project:
        session.add(project)
        session.commit()
        session.refresh(project)
        return project

    def update(self, session: Session, project: Project) -> Project:
        session.add(project)
        session.commit()
        session.refresh(project)
        return project

    def delete_many(self, session: Session, projects: list[Project]) -> None:
        """
        Delete projects together with their assignments and file rows.

        Storage objects are the caller's job.
        """
        ids = [p.id for p in projects]
        if not ids:
            return
        for assignment in session.exec(
            select(ProjectAssignment).where(ProjectAssignment.project_id.in_(ids))
        ).all():
            session.delete(assignment)
        for record in session.exec(
            select(FileRecord).where(FileRecord.project_id.in_(ids))
        ).all():
            session.delete(record)
        for project in projects:
            session.delete(project)
        session.commit()
