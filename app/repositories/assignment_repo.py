# app/repositories/assignment_repo.py
import uuid

from sqlalchemy import func
from sqlmodel import Session, select

from app.models.profile import Profile
from app.models.project import ProjectAssignment


class AssignmentRepository:
    """Data access layer for ProjectAssignment."""

    def get(
        self,
        session: Session,
        project_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> ProjectAssignment | None:
        stmt = select(ProjectAssignment).where(
            ProjectAssignment.project_id == project_id,
            ProjectAssignment.assigned_user_id == user_id,
        )
        return session.exec(stmt).first()

    def exists(
        self,
        session: Session,
        project_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> bool:
        return self.get(session, project_id, user_id) is not None

    def count(
        self,
        session: Session,
        project_id: uuid.UUID,
        user_id: uuid.UUID | None = None,
    ) -> int:
        stmt = select(func.count()).select_from(ProjectAssignment).where(
            ProjectAssignment.project_id == project_id
        )
        if user_id is not None:
            stmt = stmt.where(ProjectAssignment.assigned_user_id == user_id)
        return session.exec(stmt).one()

    def project_ids_for_user(self, session: Session, user_id: uuid.UUID) -> list[uuid.UUID]:
        stmt = select(ProjectAssignment.project_id).where(
            ProjectAssignment.assigned_user_id == user_id
        )
        return list(session.exec(stmt).all())

    def list_with_profiles(
        self,
        session: Session,
        project_id: uuid.UUID,
    ) -> list[tuple[ProjectAssignment, Profile]]:
        stmt = (
            select(ProjectAssignment, Profile)
            .join(Profile, Profile.id == ProjectAssignment.assigned_user_id)
            .where(ProjectAssignment.project_id == project_id)
            .order_by(ProjectAssignment.assigned_at)
        )
        return list(session.exec(stmt).all())

    def create(self, session: Session, assignment: ProjectAssignment) -> ProjectAssignment:
        session.add(assignment)
        session.commit()
        session.refresh(assignment)
        return assignment

    def delete(self, session: Session, assignment: ProjectAssignment) -> None:
        session.delete(assignment)
        session.commit()

    def delete_for_user(self, session: Session, user_id: uuid.UUID) -> None:
        """Drop every assignment of a profile (used before deleting it)."""
        stmt = select(ProjectAssignment).where(
            ProjectAssignment.assigned_user_id == user_id
        )
        for assignment in session.exec(stmt).all():
            session.delete(assignment)
        session.commit()
