"""Messaging rules and conversation grouping."""

from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from designhub.exceptions import AuthorizationDenied, NotFound, ValidationFailed
from designhub.models.messaging import Message
from designhub.models.project import Project, ProjectManager
from designhub.models.user import User
from designhub.services.access_control import RequestContext, fetch_visible

logger = structlog.get_logger()

DEFAULT_CONVERSATION_LIMIT = 50


async def shares_project(db: AsyncSession, manager_id: UUID, client_id: UUID) -> bool:
    """Whether ``manager_id`` manages any project owned by ``client_id``."""
    result = await db.execute(
        select(Project.id)
        .join(ProjectManager, ProjectManager.project_id == Project.id)
        .where(Project.client_id == client_id, ProjectManager.user_id == manager_id)
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def can_message(db: AsyncSession, sender: User, recipient: User) -> bool:
    """Direct-message rules outside a project.

    super_admin can message anyone and anyone can message a super_admin.
    Managers and clients can message each other when they share a project;
    managers can always message other managers.
    """
    if sender.id == recipient.id:
        return False
    if sender.role == "super_admin" or recipient.role == "super_admin":
        return True
    if sender.role == "project_manager" and recipient.role == "project_manager":
        return True
    if sender.role == "project_manager" and recipient.role == "client":
        return await shares_project(db, sender.id, recipient.id)
    if sender.role == "client" and recipient.role == "project_manager":
        return await shares_project(db, recipient.id, sender.id)
    return False


async def validate_new_message(
    db: AsyncSession,
    ctx: RequestContext,
    recipient_id: UUID | None,
    project_id: UUID | None,
) -> tuple[User | None, Project | None]:
    """Check a message can be sent; returns the loaded recipient and project.

    Raises:
        ValidationFailed: no target, self-message, or recipient outside the project
        NotFound: project or recipient unknown to the caller
        AuthorizationDenied: direct message not allowed between these users
    """
    if recipient_id is None and project_id is None:
        raise ValidationFailed("Either recipientId or projectId is required", field="recipientId")
    if recipient_id == ctx.user_id:
        raise ValidationFailed("You cannot send a message to yourself", field="recipientId")

    project = None
    if project_id is not None:
        project = await fetch_visible(db, ctx, Project, project_id)

    recipient = None
    if recipient_id is not None:
        recipient = await db.get(User, recipient_id)
        if recipient is None or not recipient.is_active:
            raise NotFound("Recipient")

        if project is not None:
            if recipient.role != "super_admin" and recipient.id not in project.participant_ids():
                raise ValidationFailed(
                    "Recipient does not have access to this project", field="recipientId"
                )
        elif not await can_message(db, ctx.user, recipient):
            raise AuthorizationDenied("You are not allowed to message this user")

    return recipient, project


async def conversations(
    db: AsyncSession, user_id: UUID, limit: int = DEFAULT_CONVERSATION_LIMIT
) -> list[dict[str, Any]]:
    """Direct conversations of a user, newest first.

    One entry per counterpart with the latest message, the number of
    messages exchanged and the number of unread messages received from
    them. Grouping happens in the database; only the latest message of
    each of the ``limit`` most recent conversations is loaded.
    """
    counterpart = case((Message.sender_id == user_id, Message.recipient_id), else_=Message.sender_id)
    unread = case(
        (and_(Message.recipient_id == user_id, Message.is_read.is_(False)), 1), else_=0
    )
    ranked = (
        select(
            Message.id.label("message_id"),
            func.row_number()
            .over(
                partition_by=counterpart,
                order_by=(Message.created_at.desc(), Message.id.desc()),
            )
            .label("position"),
            func.count(Message.id).over(partition_by=counterpart).label("message_count"),
            func.sum(unread).over(partition_by=counterpart).label("unread_count"),
        )
        .where(
            Message.is_deleted.is_(False),
            Message.recipient_id.is_not(None),
            or_(Message.sender_id == user_id, Message.recipient_id == user_id),
        )
        .subquery()
    )

    result = await db.execute(
        select(Message, ranked.c.message_count, ranked.c.unread_count)
        .join(ranked, ranked.c.message_id == Message.id)
        .where(ranked.c.position == 1)
        .order_by(Message.created_at.desc(), Message.id.desc())
        .limit(limit)
    )
    return [
        {
            "participant": message.sender if message.recipient_id == user_id else message.recipient,
            "last_message": message,
            "unread_count": unread_count or 0,
            "message_count": message_count,
        }
        for message, message_count, unread_count in result.all()
    ]


def thread_filter(user_id: UUID, other_id: UUID) -> Any:
    """Messages exchanged directly between two users."""
    return or_(
        and_(Message.sender_id == user_id, Message.recipient_id == other_id),
        and_(Message.sender_id == other_id, Message.recipient_id == user_id),
    )
