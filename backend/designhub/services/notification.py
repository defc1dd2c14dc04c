"""Notification service for creating in-app notifications."""

from datetime import datetime, timedelta
from typing import Any, Iterable
from uuid import UUID

import structlog
from sqlalchemy import ColumnElement, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from designhub.config import get_settings
from designhub.db.base import utc_now
from designhub.models.notification import Notification
from designhub.utils.dates import to_iso

logger = structlog.get_logger()
settings = get_settings()


def unexpired(now: datetime | None = None) -> ColumnElement[bool]:
    """Rows with no expiry or one still in the future."""
    now = now or utc_now()
    return or_(Notification.expires_at.is_(None), Notification.expires_at > now)


class NotificationService:
    """Service for creating and managing user notifications.

    The service only adds rows to the session; committing is left to the
    caller so notifications land atomically with whatever triggered them.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def notify(
        self,
        recipient_id: UUID,
        notification_type: str,
        title: str,
        message: str,
        sender_id: UUID | None = None,
        project_id: UUID | None = None,
        data: dict[str, Any] | None = None,
        priority: str = "medium",
        category: str = "info",
        expires_at: datetime | None = None,
    ) -> Notification | None:
        """
        Create a notification for a user.

        Args:
            recipient_id: The recipient user's ID
            notification_type: Type of notification (e.g., 'task_assigned')
            title: Notification title, truncated to 100 characters
            message: Notification body, truncated to 500 characters
            sender_id: Optional sender/actor user ID
            project_id: Project the notification relates to
            data: Related entity ids and other context
            expires_at: Defaults to the configured retention window

        Returns:
            Created Notification, or None when the recipient is the sender
        """
        # Don't notify users about their own actions
        if sender_id and sender_id == recipient_id:
            logger.debug(
                "skipping_self_notification",
                user_id=str(recipient_id),
                notification_type=notification_type,
            )
            return None

        notification = Notification(
            recipient_id=recipient_id,
            sender_id=sender_id,
            project_id=project_id,
            type=notification_type,
            title=title[:100],
            message=message[:500],
            data=data or {},
            priority=priority,
            category=category,
            is_read=False,
            expires_at=expires_at
            or utc_now() + timedelta(days=settings.notification_default_ttl_days),
        )
        self.db.add(notification)
        await self.db.flush()

        logger.info(
            "notification_created",
            notification_id=str(notification.id),
            user_id=str(recipient_id),
            notification_type=notification_type,
        )
        return notification

    async def notify_many(
        self,
        recipient_ids: Iterable[UUID],
        notification_type: str,
        title: str,
        message: str,
        **kwargs: Any,
    ) -> list[Notification]:
        """
        Create notifications for multiple users.

        Duplicate recipients are notified once.

        Returns:
            List of created Notifications (may be fewer than recipient_ids if the sender is among them)
        """
        notifications = []
        seen: set[UUID] = set()
        for recipient_id in recipient_ids:
            if recipient_id is None or recipient_id in seen:
                continue
            seen.add(recipient_id)
            notification = await self.notify(
                recipient_id=recipient_id,
                notification_type=notification_type,
                title=title,
                message=message,
                **kwargs,
            )
            if notification:
                notifications.append(notification)
        return notifications

    async def set_read(self, notification: Notification, is_read: bool) -> Notification:
        """Mark read or unread. Marking an already-read notification read is a no-op."""
        if is_read and not notification.is_read:
            notification.is_read = True
            notification.read_at = utc_now()
        elif not is_read:
            notification.is_read = False
            notification.read_at = None
        return notification

    async def mark_all_read(self, recipient_id: UUID) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.recipient_id == recipient_id, Notification.is_read.is_(False))
            .values(is_read=True, read_at=utc_now())
        )
        return result.rowcount or 0

    async def unread_count(self, recipient_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count(Notification.id)).where(
                Notification.recipient_id == recipient_id,
                Notification.is_read.is_(False),
                unexpired(),
            )
        )
        return result.scalar() or 0

    async def purge_expired(self, now: datetime | None = None) -> int:
        """Delete notifications past their expiry."""
        now = now or utc_now()
        result = await self.db.execute(
            delete(Notification).where(
                Notification.expires_at.is_not(None),
                Notification.expires_at < now,
            )
        )
        return result.rowcount or 0


def notification_payload(notification: Notification) -> dict[str, Any]:
    """Frame body pushed to live sessions."""
    return {
        "id": str(notification.id),
        "type": notification.type,
        "title": notification.title,
        "message": notification.message,
        "data": notification.data,
        "projectId": str(notification.project_id) if notification.project_id else None,
        "priority": notification.priority,
        "category": notification.category,
        "createdAt": to_iso(notification.created_at),
    }
