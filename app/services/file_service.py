# app/services/file_service.py
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import BinaryIO

from fastapi import status
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.core.auth import CurrentUser
from app.core.config import Settings
from app.core.errors import ErrorCode, NotFoundError, UpstreamError, ValidationError
from app.core.policy import Action, enforce
from app.core.storage import ObjectStorage, build_object_key
from app.models.file import FileRecord
from app.repositories.file_repo import FileRepository
from app.schemas.file import DownloadLink, FileDeleteRequest
from app.services.project_service import ProjectService, validate_coordinates

logger = logging.getLogger(__name__)

READ_CHUNK_BYTES = 1024 * 1024


@dataclass
class Upload:
    """An uploaded file as received from the multipart form."""

    filename: str | None
    content_type: str | None
    data: bytes
    latitude: float | None = None
    longitude: float | None = None
    height: float | None = None
    rotation: float | None = None


class FileService:
    """
    Business logic for project files.

    Responsibilities:
      - upload orchestration: object first, then metadata row; the object
        is removed again when the row cannot be written
      - deletion: object first, then row
      - short-lived signed download URLs and byte streaming
    """

    def __init__(self, repo: FileRepository, projects: ProjectService, settings: Settings):
        self.repo = repo
        self.projects = projects
        self.settings = settings

    def _file_or_404(
        self,
        session: Session,
        project_id: uuid.UUID,
        file_id: uuid.UUID,
    ) -> FileRecord:
        record = self.repo.get_in_project(session, project_id, file_id)
        if record is None:
            raise NotFoundError("File not found", ErrorCode.FILE_NOT_FOUND)
        return record

    def _authorize_read(self, session: Session, user: CurrentUser, record: FileRecord) -> None:
        ctx = self.projects.context_for(
            session,
            user,
            record.project_id,
            is_uploader=record.uploaded_by == user.id,
        )
        enforce(user.role, Action.READ_FILE, ctx)

    def _too_large(self) -> ValidationError:
        limit_mb = self.settings.MAX_UPLOAD_BYTES // (1024 * 1024)
        return ValidationError(
            f"File too large (max {limit_mb}MB)",
            ErrorCode.FILE_TOO_LARGE,
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        )

    def read_limited(self, stream: BinaryIO, declared_size: int | None = None) -> bytes:
        """
        Read an upload body, stopping as soon as it passes MAX_UPLOAD_BYTES.

        Raises:
            ValidationError(413, FILE_TOO_LARGE)
        """
        limit = self.settings.MAX_UPLOAD_BYTES
        if declared_size is not None and declared_size > limit:
            raise self._too_large()
        chunks: list[bytes] = []
        total = 0
        while True:
            chunk = stream.read(READ_CHUNK_BYTES)
            if not chunk:
                break
            total += len(chunk)
            if total > limit:
                raise self._too_large()
            chunks.append(chunk)
        return b"".join(chunks)

    # ----- Listing -----

    def list_files(
        self,
        session: Session,
        user: CurrentUser,
        project_id: uuid.UUID,
    ) -> list[FileRecord]:
        self.projects.get_project_or_404(session, project_id)
        enforce(
            user.role,
            Action.READ_FILE,
            self.projects.context_for(session, user, project_id),
        )
        return self.repo.list_for_project(session, project_id)

    # ----- Upload -----

    def upload_file(
        self,
        session: Session,
        storage: ObjectStorage,
        user: CurrentUser,
        project_id: uuid.UUID,
        upload: Upload,
    ) -> FileRecord:
        """
        Store a file and its metadata row.

        Steps:
          1. Policy + payload checks (size, coordinates).
          2. Upload to <project_id>/<epoch-ms>.<ext>.
          3. Insert the row; on failure remove the object again.
        """
        self.projects.get_project_or_404(session, project_id)
        enforce(
            user.role,
            Action.UPLOAD_FILE,
            self.projects.context_for(session, user, project_id),
        )

        if not upload.data:
            raise ValidationError("No file provided")
        if len(upload.data) > self.settings.MAX_UPLOAD_BYTES:
            raise self._too_large()
        validate_coordinates(upload.latitude, upload.longitude)

        key = build_object_key(str(project_id), upload.filename)
        storage.upload(key, upload.data, upload.content_type)

        record = FileRecord(
            project_id=project_id,
            file_name=upload.filename or key.rsplit("/", 1)[-1],
            file_url=key,
            file_size=len(upload.data),
            content_type=upload.content_type,
            latitude=upload.latitude,
            longitude=upload.longitude,
            height=upload.height,
            rotation=upload.rotation,
            uploaded_by=user.id,
        )
        try:
            record = self.repo.create(session, record)
        except SQLAlchemyError as exc:
            session.rollback()
            self._discard_object(storage, key)
            raise UpstreamError(
                "Failed to save file metadata",
                ErrorCode.FILE_UPLOAD_ERROR,
                details=str(exc),
            ) from exc

        logger.info("Uploaded %s to project %s (%d bytes)", key, project_id, record.file_size)
        return record

    @staticmethod
    def _discard_object(storage: ObjectStorage, key: str) -> None:
        try:
            storage.remove([key])
            logger.warning("Removed object %s after metadata insert failed", key)
        except UpstreamError as exc:
            logger.error("Orphaned storage object %s: %s", key, exc.details)

    # ----- Delete -----

    def delete_file(
        self,
        session: Session,
        storage: ObjectStorage,
        user: CurrentUser,
        project_id: uuid.UUID,
        file_id: uuid.UUID,
    ) -> None:
        """Remove the object, then the row. A storage failure keeps the row."""
        self.projects.get_project_or_404(session, project_id)
        record = self._file_or_404(session, project_id, file_id)
        enforce(
            user.role,
            Action.DELETE_FILE,
            self.projects.context_for(session, user, project_id),
        )

        storage.remove([record.file_url])
        self.repo.delete(session, record)
        logger.info("Deleted file %s from project %s", file_id, project_id)

    def delete_by_request(
        self,
        session: Session,
        storage: ObjectStorage,
        user: CurrentUser,
        payload: FileDeleteRequest,
    ) -> uuid.UUID:
        """
        Delete by (projectId, fileId) or (projectId, fileUrl).

        Returns:
            id of the deleted file.
        """
        if payload.project_id is None:
            raise ValidationError("Project ID is required")
        if payload.file_id is not None:
            self.delete_file(session, storage, user, payload.project_id, payload.file_id)
            return payload.file_id
        if not payload.file_url:
            raise ValidationError("File ID or file URL is required")

        record = self.repo.get_by_key(session, payload.file_url)
        if record is None or record.project_id != payload.project_id:
            raise NotFoundError("File not found", ErrorCode.FILE_NOT_FOUND)
        file_id = record.id
        self.delete_file(session, storage, user, payload.project_id, file_id)
        return file_id

    # ----- Download -----

    def signed_download(
        self,
        session: Session,
        storage: ObjectStorage,
        user: CurrentUser,
        project_id: uuid.UUID,
        file_id: uuid.UUID,
    ) -> DownloadLink:
        """
        Issue a signed URL for a file of `project_id`.

        A file id from another project is a 404, whatever the caller's role.
        """
        record = self._file_or_404(session, project_id, file_id)
        self._authorize_read(session, user, record)

        ttl = self.settings.SIGNED_URL_TTL_SECONDS
        url = storage.create_signed_url(record.file_url, ttl)
        return DownloadLink(
            id=record.id,
            name=record.file_name,
            size=record.file_size,
            download_url=url,
            expires_in=ttl,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=ttl),
        )

    def read_bytes(
        self,
        session: Session,
        storage: ObjectStorage,
        user: CurrentUser,
        project_id: uuid.UUID,
        file_id: uuid.UUID,
    ) -> tuple[FileRecord, bytes]:
        record = self._file_or_404(session, project_id, file_id)
        self._authorize_read(session, user, record)
        return record, storage.download(record.file_url)
