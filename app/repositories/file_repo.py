# app/repositories/file_repo.py
import uuid

from sqlmodel import Session, select

from app.models.file import FileRecord


class FileRepository:
    """Data access layer for FileRecord."""

    def get_in_project(
        self,
        session: Session,
        project_id: uuid.UUID,
        file_id: uuid.UUID,
    ) -> FileRecord | None:
        """Return the file only if it belongs to `project_id`."""
        stmt = select(FileRecord).where(
            FileRecord.id == file_id,
            FileRecord.project_id == project_id,
        )
        return session.exec(stmt).first()

    def get_by_key(self, session: Session, file_url: str) -> FileRecord | None:
        stmt = select(FileRecord).where(FileRecord.file_url == file_url)
        return session.exec(stmt).first()

    def list_for_project(self, session: Session, project_id: uuid.UUID) -> list[FileRecord]:
        stmt = (
            select(FileRecord)
            .where(FileRecord.project_id == project_id)
            .order_by(FileRecord.created_at.desc())
        )
        return list(session.exec(stmt).all())

    def list_keys_for_projects(
        self, session: Session, project_ids: list[uuid.UUID]
    ) -> list[str]:
        if not project_ids:
            return []
        stmt = select(FileRecord.file_url).where(FileRecord.project_id.in_(project_ids))
        return list(session.exec(stmt).all())

    def create(self, session: Session, record: FileRecord) -> FileRecord:
        session.add(record)
        session.commit()
        session.refresh(record)
        return record

    def delete(self, session: Session, record: FileRecord) -> None:
        session.delete(record)
        session.commit()
