"""Notification endpoints. Every operation is scoped to the caller's own notifications."""

from typing import Annotated, Any
from uuid import UUID

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
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
from designhub.exceptions import NotFound, ValidationFailed
from designhub.models.enums import NotificationCategory, NotificationType, Priority
from designhub.models.notification import Notification
from designhub.models.project import Project
from designhub.models.user import User
from designhub.services import live
from designhub.services.access_control import Context, Grant, authorize, fetch_for, fetch_visible
from designhub.services.notification import (
    NotificationService,
    notification_payload,
    unexpired,
)
from designhub.services.pagination import PageParams, page_params, paginate

router = APIRouter()
logger = structlog.get_logger()

NOTIFICATION_SORT_FIELDS = {
    "created_at": Notification.created_at,
    "priority": Notification.priority,
    "type": Notification.type,
}


class NotificationResponse(APIModel):
    id: UUID
    type: str
    title: str
    message: str
    data: dict[str, Any]
    project_id: UUID | None = None
    sender: UserSummary | None = None
    priority: str
    category: str
    is_read: bool
    read_at: Timestamp | None = None
    expires_at: Timestamp | None = None
    created_at: Timestamp


class NotificationPage(Page[NotificationResponse]):
    unread_count: int


class NotificationCreate(APIModel):
    recipient_id: UUID
    type: NotificationType
    title: str = Field(..., min_length=1, max_length=100)
    message: str = Field(..., min_length=1, max_length=500)
    data: dict[str, Any] = Field(default_factory=dict)
    project_id: UUID | None = None
    priority: Priority = "medium"
    category: NotificationCategory = "info"
    expires_at: Timestamp | None = None


class NotificationUpdate(APIModel):
    is_read: bool


class MarkAllResult(APIModel):
    updated: int


class UnreadCount(APIModel):
    unread_count: int


@router.get("", response_model=Envelope[NotificationPage])
async def list_notifications(
    grant: Annotated[Grant, authorize("notification", "read")],
    db: DBSession,
    params: Annotated[PageParams, Depends(page_params)],
    is_read: bool | None = Query(None, alias="isRead"),
    notification_type: NotificationType | None = Query(None, alias="type"),
    category: NotificationCategory | None = None,
    project_id: UUID | None = Query(None, alias="projectId"),
) -> dict:
    """The caller's unexpired notifications, newest first."""
    query = select(Notification).where(
        grant.predicate,
        unexpired(),
    )
    if is_read is not None:
        query = query.where(Notification.is_read.is_(is_read))
    if notification_type:
        query = query.where(Notification.type == notification_type)
    if category:
        query = query.where(Notification.category == category)
    if project_id:
        query = query.where(Notification.project_id == project_id)

    notifications, pagination = await paginate(
        db, query, params, NOTIFICATION_SORT_FIELDS, tiebreaker=Notification.id
    )
    unread = await NotificationService(db).unread_count(grant.ctx.user_id)
    return ok({**paged(notifications, pagination), "unread_count": unread})


@router.get("/unread-count", response_model=Envelope[UnreadCount])
async def get_unread_count(ctx: Context, db: DBSession) -> dict:
    return ok({"unread_count": await NotificationService(db).unread_count(ctx.user_id)})


@router.post(
    "", response_model=Envelope[NotificationResponse], status_code=status.HTTP_201_CREATED
)
async def create_notification(
    data: NotificationCreate,
    grant: Annotated[Grant, authorize("notification", "create")],
    db: DBSession,
    background_tasks: BackgroundTasks,
) -> dict:
    """Send a notification to another user and push it to their live sessions."""
    ctx = grant.ctx
    if data.recipient_id == ctx.user_id:
        raise ValidationFailed("You cannot notify yourself", field="recipientId")

    recipient = await db.get(User, data.recipient_id)
    if recipient is None or not recipient.is_active:
        raise NotFound("Recipient")
    if data.project_id is not None:
        await fetch_visible(db, ctx, Project, data.project_id)

    notification = await NotificationService(db).notify(
        recipient_id=recipient.id,
        notification_type=data.type,
        title=data.title,
        message=data.message,
        sender_id=ctx.user_id,
        project_id=data.project_id,
        data=data.data,
        priority=data.priority,
        category=data.category,
        expires_at=data.expires_at,
    )
    notification = await refetch(db, notification)
    await db.commit()

    background_tasks.add_task(
        live.notify_user, str(recipient.id), notification_payload(notification)
    )
    return ok(notification, "Notification sent successfully")


@router.post("/mark-all-read", response_model=Envelope[MarkAllResult])
async def mark_all_read(ctx: Context, db: DBSession) -> dict:
    updated = await NotificationService(db).mark_all_read(ctx.user_id)
    await db.commit()

    logger.info("notifications_marked_read", user_id=str(ctx.user_id), updated=updated)
    return ok({"updated": updated})


@router.patch("/{notification_id}", response_model=Envelope[NotificationResponse])
async def update_notification(
    notification_id: UUID,
    data: NotificationUpdate,
    grant: Annotated[Grant, authorize("notification", "update")],
    db: DBSession,
) -> dict:
    """Mark a notification read or unread. Marking read twice is a no-op."""
    notification = await fetch_for(db, grant, notification_id)
    await NotificationService(db).set_read(notification, data.is_read)
    notification = await refetch(db, notification)
    await db.commit()
    return ok(notification)


@router.delete("/{notification_id}", response_model=Envelope[Deleted])
async def delete_notification(
    notification_id: UUID,
    grant: Annotated[Grant, authorize("notification", "delete")],
    db: DBSession,
) -> dict:
    notification = await fetch_for(db, grant, notification_id)
    await db.delete(notification)
    await db.commit()
    return ok({"id": notification_id}, "Notification deleted successfully")
