"""Site-schedule activity endpoints."""

from typing import Annotated, Any
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, status
from pydantic import Field
from sqlalchemy import delete, or_, select

from designhub.api.v1.common import (
    APIModel,
    CommentResponse,
    Deleted,
    Envelope,
    Page,
    ProjectRef,
    Timestamp,
    ok,
    paged,
)
from designhub.db.base import utc_now
from designhub.db.session import DBSession, refetch
from designhub.exceptions import AuthorizationDenied, ValidationFailed
from designhub.models.enums import ActivityCategory, ActivityStatus, Priority
from designhub.models.project import Project
from designhub.models.schedule import ActivityComment, ScheduleActivity
from designhub.services.access_control import Grant, RequestContext, authorize, fetch_for
from designhub.services.outbox import Outbox, OutboxRecorder
from designhub.services.pagination import PageParams, page_params, paginate
from designhub.services.schedule import recompute_progress
from designhub.utils.dates import ensure_aware

router = APIRouter()
logger = structlog.get_logger()

ACTIVITY_SORT_FIELDS = {
    "title": ScheduleActivity.title,
    "status": ScheduleActivity.status,
    "priority": ScheduleActivity.priority,
    "start_date": ScheduleActivity.start_date,
    "end_date": ScheduleActivity.end_date,
    "week_number": ScheduleActivity.week_number,
    "created_at": ScheduleActivity.created_at,
    "updated_at": ScheduleActivity.updated_at,
}


class ActivityResponse(APIModel):
    id: UUID
    project: ProjectRef
    phase_id: UUID
    week_number: int
    day_number: int
    title: str
    description: str | None = None
    contractor: str | None = None
    supervisor: str | None = None
    start_date: Timestamp | None = None
    end_date: Timestamp | None = None
    actual_start_date: Timestamp | None = None
    actual_end_date: Timestamp | None = None
    status: str
    priority: str
    category: str
    progress: int
    images: list[dict[str, Any]]
    comments: list[CommentResponse] | None = None
    created_at: Timestamp
    updated_at: Timestamp


class ActivityUpdate(APIModel):
    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=2000)
    contractor: str | None = Field(None, max_length=200)
    supervisor: str | None = Field(None, max_length=200)
    start_date: Timestamp | None = None
    end_date: Timestamp | None = None
    actual_start_date: Timestamp | None = None
    actual_end_date: Timestamp | None = None
    status: ActivityStatus | None = None
    priority: Priority | None = None
    category: ActivityCategory | None = None
    progress: int | None = Field(None, ge=0, le=100)
    images: list[dict[str, Any]] | None = None


class CommentCreate(APIModel):
    content: str = Field(..., min_length=1, max_length=2000)
    is_internal: bool = False


def _activity_to_response(
    activity: ScheduleActivity, comments: list[ActivityComment] | None = None
) -> dict[str, Any]:
    data = {c.name: getattr(activity, c.name) for c in ScheduleActivity.__table__.columns}
    data["project"] = activity.project
    data["comments"] = comments
    return data


async def _visible_comments(
    db: DBSession, ctx: RequestContext, activity_id: UUID
) -> list[ActivityComment]:
    query = select(ActivityComment).where(ActivityComment.activity_id == activity_id)
    if not ctx.sees_internal:
        query = query.where(ActivityComment.is_internal.is_(False))
    result = await db.execute(query.order_by(ActivityComment.created_at))
    return list(result.scalars().all())


async def _refresh_project_progress(
    db: DBSession, project: Project, outbox: OutboxRecorder, actor_id: UUID
) -> None:
    previous, progress = await recompute_progress(db, project)
    if previous != progress:
        outbox.record(
            "project.progress_changed",
            {
                "project_id": project.id,
                "previous_progress": previous,
                "progress": progress,
                "actor_id": actor_id,
            },
        )


@router.get("", response_model=Envelope[Page[ActivityResponse]])
async def list_activities(
    grant: Annotated[Grant, authorize("activity", "read")],
    db: DBSession,
    params: Annotated[PageParams, Depends(page_params)],
    project_id: UUID | None = Query(None, alias="projectId"),
    phase_id: UUID | None = Query(None, alias="phaseId"),
    status_filter: ActivityStatus | None = Query(None, alias="status"),
    category: ActivityCategory | None = None,
    search: str | None = Query(None, max_length=100),
) -> dict:
    """List activities across the caller's visible projects."""
    query = select(ScheduleActivity).where(grant.predicate)
    if project_id:
        query = query.where(ScheduleActivity.project_id == project_id)
    if phase_id:
        query = query.where(ScheduleActivity.phase_id == phase_id)
    if status_filter:
        query = query.where(ScheduleActivity.status == status_filter)
    if category:
        query = query.where(ScheduleActivity.category == category)
    if search:
        query = query.where(
            or_(
                ScheduleActivity.title.ilike(f"%{search}%"),
                ScheduleActivity.contractor.ilike(f"%{search}%"),
            )
        )

    activities, pagination = await paginate(
        db, query, params, ACTIVITY_SORT_FIELDS, tiebreaker=ScheduleActivity.id
    )
    return ok(paged([_activity_to_response(a) for a in activities], pagination))


@router.get("/{activity_id}", response_model=Envelope[ActivityResponse])
async def get_activity(
    activity_id: UUID,
    grant: Annotated[Grant, authorize("activity", "read")],
    db: DBSession,
) -> dict:
    """Get one activity with its comments; clients never see internal ones."""
    activity = await fetch_for(db, grant, activity_id)
    comments = await _visible_comments(db, grant.ctx, activity.id)
    return ok(_activity_to_response(activity, comments))


@router.patch("/{activity_id}", response_model=Envelope[ActivityResponse])
async def update_activity(
    activity_id: UUID,
    data: ActivityUpdate,
    grant: Annotated[Grant, authorize("activity", "update")],
    db: DBSession,
    outbox: Outbox,
) -> dict:
    """Update an activity; a status change recomputes the project's progress."""
    activity = await fetch_for(db, grant, activity_id)
    updates = data.model_dump(exclude_unset=True)

    for field in ("title", "status", "priority", "category", "progress"):
        if field in updates and updates[field] is None:
            raise ValidationFailed(f"{field} cannot be empty", field=field)

    start = ensure_aware(updates.get("start_date", activity.start_date))
    end = ensure_aware(updates.get("end_date", activity.end_date))
    if start and end and end < start:
        raise ValidationFailed("endDate must not be before startDate", field="endDate")

    old_status = activity.status
    for field, value in updates.items():
        if field == "images" and value is None:
            value = []
        setattr(activity, field, value)

    new_status = updates.get("status")
    if new_status and new_status != old_status:
        if new_status == "completed":
            activity.progress = 100
            if activity.actual_end_date is None:
                activity.actual_end_date = utc_now()
        elif new_status == "in_progress" and activity.actual_start_date is None:
            activity.actual_start_date = utc_now()
        await _refresh_project_progress(db, activity.project, outbox, grant.ctx.user_id)

    activity = await refetch(db, activity)
    comments = await _visible_comments(db, grant.ctx, activity.id)
    response = _activity_to_response(activity, comments)
    await outbox.commit()

    logger.info(
        "activity_updated",
        activity_id=str(activity.id),
        project_id=str(activity.project_id),
        status=activity.status,
    )
    return ok(response, "Activity updated successfully")


@router.delete("/{activity_id}", response_model=Envelope[Deleted])
async def delete_activity(
    activity_id: UUID,
    grant: Annotated[Grant, authorize("activity", "delete")],
    db: DBSession,
    outbox: Outbox,
) -> dict:
    activity = await fetch_for(db, grant, activity_id)
    project = activity.project

    await db.execute(delete(ActivityComment).where(ActivityComment.activity_id == activity.id))
    await db.delete(activity)
    await db.flush()

    await _refresh_project_progress(db, project, outbox, grant.ctx.user_id)
    await outbox.commit()

    logger.info("activity_deleted", activity_id=str(activity_id), project_id=str(project.id))
    return ok({"id": activity_id}, "Activity deleted successfully")


@router.post(
    "/{activity_id}/comments",
    response_model=Envelope[CommentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_activity_comment(
    activity_id: UUID,
    data: CommentCreate,
    grant: Annotated[Grant, authorize("activity", "comment")],
    db: DBSession,
) -> dict:
    activity = await fetch_for(db, grant, activity_id)
    if data.is_internal and not grant.ctx.sees_internal:
        raise AuthorizationDenied("Clients cannot post internal comments")

    comment = ActivityComment(
        activity_id=activity.id,
        author_id=grant.ctx.user_id,
        content=data.content.strip(),
        is_internal=data.is_internal,
    )
    db.add(comment)
    comment = await refetch(db, comment)
    await db.commit()

    logger.info(
        "activity_comment_added",
        activity_id=str(activity.id),
        comment_id=str(comment.id),
        is_internal=comment.is_internal,
    )
    return ok(comment, "Comment added successfully")
