"""Stored calendar events.

Project deadlines, milestone due dates and task deadlines also show up on
the calendar but are derived at read time; see ``designhub.services.calendar``.
"""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Table, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from designhub.db.base import Base, BaseModel

if TYPE_CHECKING:
    from designhub.models.user import User


calendar_event_attendees = Table(
    "calendar_event_attendees",
    Base.metadata,
    Column(
        "event_id",
        Uuid(as_uuid=True),
        ForeignKey("calendar_events.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "user_id",
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    ),
)


class CalendarEvent(BaseModel):
    """Explicitly created calendar entry."""

    __tablename__ = "calendar_events"

    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    all_day: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    type: Mapped[str] = mapped_column(
        String(16), nullable=False, default="event"
    )  # meeting, deadline, milestone, reminder, event

    project_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    task_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("tasks.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_by_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    location: Mapped[str | None] = mapped_column(String(200), nullable=True)
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    recurrence_rule: Mapped[str | None] = mapped_column(String(255), nullable=True)  # RRULE text
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default="medium")
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="scheduled"
    )  # scheduled, completed, cancelled

    created_by: Mapped["User"] = relationship("User", lazy="selectin")
    attendees: Mapped[list["User"]] = relationship(
        "User", secondary=calendar_event_attendees, lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<CalendarEvent {self.title} @ {self.start_date}>"
