"""Project file references. File bytes live in external storage; only URLs are kept."""

from typing import Annotated
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, status
from pydantic import Field
from sqlalchemy import select

from designhub.api.v1.common import (
    APIModel,
    Deleted,
    Envelope,
    Page,
    Timestamp,
    UserSummary,
    ok,
    paged,
)
from designhub.db.session import DBSession, refetch
from designhub.models.project import ProjectFile
from designhub.services.access_control import Grant, authorize, fetch_for
from designhub.services.outbox import Outbox
from designhub.services.pagination import PageParams, page_params, paginate

router = APIRouter()
logger = structlog.get_logger()

FILE_SORT_FIELDS = {
    "filename": ProjectFile.filename,
    "size": ProjectFile.size,
    "created_at": ProjectFile.created_at,
}


class FileResponse(APIModel):
    id: UUID
    project_id: UUID
    filename: str
    url: str
    mime_type: str | None = None
    size: int | None = None
    is_internal: bool
    uploaded_by: UserSummary | None = None
    created_at: Timestamp


class FileCreate(APIModel):
    project_id: UUID
    filename: str = Field(..., min_length=1, max_length=255)
    url: str = Field(..., min_length=1, max_length=1000, pattern=r"^https?://")
    mime_type: str | None = Field(None, max_length=100)
    size: int | None = Field(None, ge=0)
    is_internal: bool = False


@router.get("", response_model=Envelope[Page[FileResponse]])
async def list_files(
    grant: Annotated[Grant, authorize("file", "read")],
    db: DBSession,
    params: Annotated[PageParams, Depends(page_params)],
    project_id: UUID | None = Query(None, alias="projectId"),
    mime_type: str | None = Query(None, alias="mimeType", max_length=100),
) -> dict:
    """Files of the caller's visible projects; internal files are hidden from clients."""
    query = select(ProjectFile).where(grant.predicate)
    if project_id:
        query = query.where(ProjectFile.project_id == project_id)
    if mime_type:
        query = query.where(ProjectFile.mime_type.startswith(mime_type))

    files, pagination = await paginate(
        db, query, params, FILE_SORT_FIELDS, tiebreaker=ProjectFile.id
    )
    return ok(paged(files, pagination))


@router.post("", response_model=Envelope[FileResponse], status_code=status.HTTP_201_CREATED)
async def register_file(
    data: FileCreate,
    grant: Annotated[Grant, authorize("file", "create")],
    db: DBSession,
    outbox: Outbox,
) -> dict:
    """Attach an uploaded file's URL to a project."""
    project = await fetch_for(db, grant, data.project_id)

    project_file = ProjectFile(
        project_id=project.id,
        filename=data.filename.strip(),
        url=data.url,
        mime_type=data.mime_type,
        size=data.size,
        is_internal=data.is_internal,
        uploaded_by_id=grant.ctx.user_id,
    )
    db.add(project_file)
    await db.flush()

    outbox.record(
        "file.uploaded",
        {
            "file_id": project_file.id,
            "project_id": project.id,
            "filename": project_file.filename,
            "is_internal": project_file.is_internal,
            "actor_id": grant.ctx.user_id,
        },
    )
    project_file = await refetch(db, project_file)
    await outbox.commit()

    logger.info(
        "file_registered",
        file_id=str(project_file.id),
        project_id=str(project.id),
        is_internal=project_file.is_internal,
    )
    return ok(project_file, "File added successfully")


@router.delete("/{file_id}", response_model=Envelope[Deleted])
async def delete_file(
    file_id: UUID,
    grant: Annotated[Grant, authorize("file", "delete")],
    db: DBSession,
) -> dict:
    """Remove a file reference (uploader or super_admin)."""
    project_file = await fetch_for(db, grant, file_id)
    await db.delete(project_file)
    await db.commit()

    logger.info("file_deleted", file_id=str(file_id))
    return ok({"id": file_id}, "File deleted successfully")
