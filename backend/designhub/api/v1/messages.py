"""Direct and project group messaging endpoints."""

from typing import Annotated, Any
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, status
from pydantic import Field
from sqlalchemy import select, update

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
from designhub.db.base import utc_now
from designhub.db.session import DBSession, refetch
from designhub.models.enums import MessageType
from designhub.models.messaging import Message
from designhub.services.access_control import Context, Grant, authorize, fetch_for
from designhub.services.messaging import (
    DEFAULT_CONVERSATION_LIMIT,
    conversations,
    thread_filter,
    validate_new_message,
)
from designhub.services.outbox import Outbox
from designhub.services.pagination import PageParams, page_params, paginate

router = APIRouter()
logger = structlog.get_logger()

MESSAGE_SORT_FIELDS = {"created_at": Message.created_at}


class MessageResponse(APIModel):
    id: UUID
    project_id: UUID | None = None
    sender: UserSummary
    recipient: UserSummary | None = None
    content: str
    message_type: str
    attachments: list[dict[str, Any]]
    is_read: bool
    read_at: Timestamp | None = None
    created_at: Timestamp


class MessageCreate(APIModel):
    """A direct message (``recipient_id``) or a project group message (``project_id`` only)."""

    recipient_id: UUID | None = None
    project_id: UUID | None = None
    content: str = Field(..., min_length=1, max_length=2000)
    message_type: MessageType = "text"
    attachments: list[dict[str, Any]] = Field(default_factory=list)


class MarkRead(APIModel):
    message_ids: list[UUID] | None = None
    sender_id: UUID | None = None
    project_id: UUID | None = None


class MarkReadResult(APIModel):
    updated: int


class ConversationResponse(APIModel):
    participant: UserSummary
    last_message: MessageResponse
    unread_count: int
    message_count: int


@router.get("", response_model=Envelope[Page[MessageResponse]])
async def list_messages(
    grant: Annotated[Grant, authorize("message", "read")],
    db: DBSession,
    params: Annotated[PageParams, Depends(page_params)],
    project_id: UUID | None = Query(None, alias="projectId"),
    with_user: UUID | None = Query(None, alias="withUser"),
    unread_only: bool = Query(False, alias="unreadOnly"),
) -> dict:
    """Messages the caller sent, received, or that were posted to their projects."""
    query = select(Message).where(grant.predicate)
    if project_id:
        query = query.where(Message.project_id == project_id)
    if with_user:
        query = query.where(thread_filter(grant.ctx.user_id, with_user))
    if unread_only:
        query = query.where(
            Message.recipient_id == grant.ctx.user_id, Message.is_read.is_(False)
        )

    messages, pagination = await paginate(
        db, query, params, MESSAGE_SORT_FIELDS, tiebreaker=Message.id
    )
    return ok(paged(messages, pagination))


@router.post("", response_model=Envelope[MessageResponse], status_code=status.HTTP_201_CREATED)
async def send_message(
    data: MessageCreate,
    grant: Annotated[Grant, authorize("message", "create")],
    db: DBSession,
    outbox: Outbox,
) -> dict:
    ctx = grant.ctx
    recipient, project = await validate_new_message(db, ctx, data.recipient_id, data.project_id)

    message = Message(
        project_id=project.id if project else None,
        sender_id=ctx.user_id,
        recipient_id=recipient.id if recipient else None,
        content=data.content.strip(),
        message_type=data.message_type,
        attachments=data.attachments,
        is_read=False,
    )
    db.add(message)
    await db.flush()

    outbox.record(
        "message.sent",
        {"message_id": message.id, "sender_name": ctx.user.name, "actor_id": ctx.user_id},
    )
    message = await refetch(db, message)
    await outbox.commit()

    logger.info(
        "message_sent",
        message_id=str(message.id),
        recipient_id=str(message.recipient_id) if message.recipient_id else None,
        project_id=str(message.project_id) if message.project_id else None,
    )
    return ok(message, "Message sent successfully")


@router.get("/conversations", response_model=Envelope[list[ConversationResponse]])
async def list_conversations(
    ctx: Context,
    db: DBSession,
    limit: int = Query(DEFAULT_CONVERSATION_LIMIT, ge=1, le=100),
) -> dict:
    """Direct conversations of the caller, most recent first."""
    return ok(await conversations(db, ctx.user_id, limit=limit))


@router.post("/mark-read", response_model=Envelope[MarkReadResult])
async def mark_messages_read(data: MarkRead, ctx: Context, db: DBSession) -> dict:
    """Mark received messages read, optionally narrowed by ids, sender or project."""
    stmt = update(Message).where(
        Message.recipient_id == ctx.user_id,
        Message.is_read.is_(False),
        Message.is_deleted.is_(False),
    )
    if data.message_ids is not None:
        stmt = stmt.where(Message.id.in_(data.message_ids))
    if data.sender_id is not None:
        stmt = stmt.where(Message.sender_id == data.sender_id)
    if data.project_id is not None:
        stmt = stmt.where(Message.project_id == data.project_id)

    result = await db.execute(
        stmt.values(is_read=True, read_at=utc_now()).execution_options(synchronize_session=False)
    )
    await db.commit()

    updated = result.rowcount or 0
    logger.info("messages_marked_read", user_id=str(ctx.user_id), updated=updated)
    return ok({"updated": updated})


@router.post("/{message_id}/read", response_model=Envelope[MessageResponse])
async def mark_message_read(
    message_id: UUID,
    grant: Annotated[Grant, authorize("message", "update")],
    db: DBSession,
) -> dict:
    """Mark one received message read. Repeating it is a no-op."""
    message = await fetch_for(db, grant, message_id)
    if not message.is_read:
        message.is_read = True
        message.read_at = utc_now()
        message = await refetch(db, message)
        await db.commit()
    return ok(message)


@router.delete("/{message_id}", response_model=Envelope[Deleted])
async def delete_message(
    message_id: UUID,
    grant: Annotated[Grant, authorize("message", "delete")],
    db: DBSession,
) -> dict:
    """Soft-delete a message the caller sent."""
    message = await fetch_for(db, grant, message_id)
    message.is_deleted = True
    message.deleted_at = utc_now()
    await db.commit()

    logger.info("message_deleted", message_id=str(message_id))
    return ok({"id": message_id}, "Message deleted successfully")
