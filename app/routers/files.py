# app/routers/files.py
import uuid

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlmodel import Session

from app.core.auth import CurrentUser, get_current_user, get_object_storage
from app.core.config import get_settings
from app.core.storage import ObjectStorage
from app.database import get_session
from app.repositories.assignment_repo import AssignmentRepository
from app.repositories.file_repo import FileRepository
from app.repositories.project_repo import ProjectRepository
from app.schemas.file import DownloadLink, FileDeleteRequest, FileRead
from app.services.file_service import FileService, Upload
from app.services.project_service import ProjectService

router = APIRouter(tags=["Files"])

file_repo = FileRepository()
project_service = ProjectService(ProjectRepository(), AssignmentRepository(), file_repo)
service = FileService(file_repo, project_service, get_settings())


def read_upload(
    file: UploadFile,
    latitude: float | None,
    longitude: float | None,
    height: float | None,
    rotation: float | None,
) -> Upload:
    return Upload(
        filename=file.filename,
        content_type=file.content_type,
        data=service.read_limited(file.file, file.size),
        latitude=latitude,
        longitude=longitude,
        height=height,
        rotation=rotation,
    )


@router.get("/projects/{project_id}/files", response_model=list[FileRead])
def list_files(
    project_id: uuid.UUID,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
):
    """
    Files of a project, newest first.
    """
    return service.list_files(session, user, project_id)


@router.post(
    "/projects/{project_id}/files",
    response_model=FileRead,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a file to a project",
)
def upload_file(
    project_id: uuid.UUID,
    file: UploadFile = File(...),
    latitude: float | None = Form(None),
    longitude: float | None = Form(None),
    height: float | None = Form(None),
    rotation: float | None = Form(None),
    session: Session = Depends(get_session),
    storage: ObjectStorage = Depends(get_object_storage),
    user: CurrentUser = Depends(get_current_user),
):
    """
    Upload a file (Admin, or an Archivist assigned to the project).

    - Optional capture position: latitude, longitude, height, rotation.
    """
    upload = read_upload(file, latitude, longitude, height, rotation)
    return service.upload_file(session, storage, user, project_id, upload)


@router.delete("/projects/{project_id}/files/{file_id}")
def delete_file(
    project_id: uuid.UUID,
    file_id: uuid.UUID,
    session: Session = Depends(get_session),
    storage: ObjectStorage = Depends(get_object_storage),
    user: CurrentUser = Depends(get_current_user),
):
    service.delete_file(session, storage, user, project_id, file_id)
    return {"success": True, "message": "File deleted successfully"}


@router.get(
    "/projects/{project_id}/files/{file_id}/download",
    response_model=DownloadLink,
)
def download_file(
    project_id: uuid.UUID,
    file_id: uuid.UUID,
    session: Session = Depends(get_session),
    storage: ObjectStorage = Depends(get_object_storage),
    user: CurrentUser = Depends(get_current_user),
):
    """
    Short-lived signed URL for a file of this project.
    """
    return service.signed_download(session, storage, user, project_id, file_id)


# -------- Flat routes used by the web uploader --------


@router.post("/upload", response_model=FileRead, status_code=status.HTTP_201_CREATED)
def upload(
    project_id: uuid.UUID = Form(..., alias="projectId"),
    file: UploadFile = File(...),
    latitude: float | None = Form(None),
    longitude: float | None = Form(None),
    height: float | None = Form(None),
    rotation: float | None = Form(None),
    session: Session = Depends(get_session),
    storage: ObjectStorage = Depends(get_object_storage),
    user: CurrentUser = Depends(get_current_user),
):
    upload_data = read_upload(file, latitude, longitude, height, rotation)
    return service.upload_file(session, storage, user, project_id, upload_data)


@router.delete("/delete")
def delete(
    payload: FileDeleteRequest,
    session: Session = Depends(get_session),
    storage: ObjectStorage = Depends(get_object_storage),
    user: CurrentUser = Depends(get_current_user),
):
    """Delete a file by projectId plus fileId or fileUrl."""
    file_id = service.delete_by_request(session, storage, user, payload)
    return {"success": True, "message": "File deleted successfully", "fileId": file_id}
