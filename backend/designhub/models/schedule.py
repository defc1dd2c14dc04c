"""Site schedule models.

The schedule is a phase -> week -> day -> activity tree. Phases are rows;
weeks and days are carried on each activity as ``week_number`` and
``day_number`` so the tree can be queried flat.
"""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from designhub.db.base import BaseModel, JSONType

if TYPE_CHECKING:
    from designhub.models.project import Project
    from designhub.models.user import User


class SchedulePhase(BaseModel):
    """Top level of a project's site schedule."""

    __tablename__ = "schedule_phases"

    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    activities: Mapped[list["ScheduleActivity"]] = relationship(
        "ScheduleActivity",
        back_populates="phase",
        lazy="selectin",
        order_by="(ScheduleActivity.week_number, ScheduleActivity.day_number, ScheduleActivity.position)",
    )

    def __repr__(self) -> str:
        return f"<SchedulePhase {self.name}>"


class ScheduleActivity(BaseModel):
    """Single piece of site work scheduled on a given week and day."""

    __tablename__ = "schedule_activities"

    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    phase_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("schedule_phases.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    week_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    day_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    contractor: Mapped[str | None] = mapped_column(String(200), nullable=True)
    supervisor: Mapped[str | None] = mapped_column(String(200), nullable=True)

    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    actual_start_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    actual_end_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default="to-do", index=True
    )  # to-do, pending, in_progress, completed, delayed, on_hold
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default="medium")
    category: Mapped[str] = mapped_column(
        String(32), nullable=False, default="other"
    )  # structural, electrical, plumbing, finishing, other
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # [{"url": ..., "caption": ...}]
    images: Mapped[list[dict]] = mapped_column(JSONType, nullable=False, default=list)

    phase: Mapped["SchedulePhase"] = relationship("SchedulePhase", back_populates="activities")
    project: Mapped["Project"] = relationship("Project", lazy="selectin")

    def __repr__(self) -> str:
        return f"<ScheduleActivity {self.title} ({self.status})>"


class ActivityComment(BaseModel):
    """Site note on an activity. Internal notes are hidden from clients."""

    __tablename__ = "activity_comments"

    activity_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("schedule_activities.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    author_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_internal: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    author: Mapped["User | None"] = relationship("User", lazy="selectin")
