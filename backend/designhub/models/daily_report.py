"""Daily site progress report model."""

from datetime import date, datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from designhub.db.base import BaseModel, JSONType

if TYPE_CHECKING:
    from designhub.models.project import Project
    from designhub.models.user import User


class DailyReport(BaseModel):
    """One day of site work on a project.

    ``activities`` is the day's log as written by the site team; ``summary``
    holds the status counts derived from it. Clients only see a report once
    it has been approved.
    """

    __tablename__ = "daily_reports"
    __table_args__ = (
        UniqueConstraint("project_id", "report_date", name="uq_daily_report_project_date"),
    )

    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    report_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    activities: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)
    summary: Mapped[dict[str, int]] = mapped_column(JSONType, nullable=False, default=dict)

    weather_condition: Mapped[str | None] = mapped_column(String(100), nullable=True)
    site_condition: Mapped[str | None] = mapped_column(String(100), nullable=True)
    general_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    crew_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_hours: Mapped[float | None] = mapped_column(Numeric(6, 2, asdecimal=False), nullable=True)
    photos: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)

    created_by_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    submitted_by_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    approved_by_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    project: Mapped["Project"] = relationship("Project", lazy="selectin")
    created_by: Mapped["User | None"] = relationship(
        "User", foreign_keys=[created_by_id], lazy="selectin"
    )
    submitted_by: Mapped["User | None"] = relationship(
        "User", foreign_keys=[submitted_by_id], lazy="selectin"
    )
    approved_by: Mapped["User | None"] = relationship(
        "User", foreign_keys=[approved_by_id], lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<DailyReport {self.project_id} {self.report_date}>"
