"""Direct and project group messages."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from designhub.db.base import BaseModel, JSONType, SoftDeleteMixin

if TYPE_CHECKING:
    from designhub.models.user import User


class Message(BaseModel, SoftDeleteMixin):
    """Message between two users, or to a whole project when ``recipient_id`` is null."""

    __tablename__ = "messages"

    project_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    sender_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    recipient_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    content: Mapped[str] = mapped_column(Text, nullable=False)
    message_type: Mapped[str] = mapped_column(
        String(16), nullable=False, default="text"
    )  # text, file, image, system
    attachments: Mapped[list[dict]] = mapped_column(JSONType, nullable=False, default=list)

    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    sender: Mapped["User"] = relationship("User", foreign_keys=[sender_id], lazy="selectin")
    recipient: Mapped["User | None"] = relationship(
        "User", foreign_keys=[recipient_id], lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<Message {self.sender_id} -> {self.recipient_id or self.project_id}>"
