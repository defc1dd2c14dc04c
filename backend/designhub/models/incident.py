"""Site incident model."""

from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from designhub.db.base import BaseModel, JSONType

if TYPE_CHECKING:
    from designhub.models.project import Project
    from designhub.models.user import User


class Incident(BaseModel):
    """Safety, equipment or quality incident reported on a project site."""

    __tablename__ = "incidents"
    __table_args__ = (
        UniqueConstraint("project_id", "incident_code", name="uq_incident_project_code"),
    )

    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    incident_code: Mapped[str] = mapped_column(String(16), nullable=False)  # INC-001, ...
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(
        String(32), nullable=False
    )  # safety, equipment, environmental, security, quality, other
    severity: Mapped[str] = mapped_column(
        String(16), nullable=False, index=True
    )  # low, medium, high, critical
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default="medium")
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="open", index=True
    )  # open, investigating, resolved, closed

    location: Mapped[str | None] = mapped_column(String(200), nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    weather_conditions: Mapped[str | None] = mapped_column(String(100), nullable=True)
    witness_names: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    equipment_involved: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    # injury_type, body_part, treatment_required, medical_attention
    injury_details: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    immediate_actions: Mapped[str | None] = mapped_column(Text, nullable=True)
    root_cause: Mapped[str | None] = mapped_column(Text, nullable=True)
    corrective_actions: Mapped[str | None] = mapped_column(Text, nullable=True)
    preventive_actions: Mapped[str | None] = mapped_column(Text, nullable=True)

    photos: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    follow_up_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    follow_up_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    reported_by_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    assigned_to_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    project: Mapped["Project"] = relationship("Project", lazy="selectin")
    reported_by: Mapped["User | None"] = relationship(
        "User", foreign_keys=[reported_by_id], lazy="selectin"
    )
    assigned_to: Mapped["User | None"] = relationship(
        "User", foreign_keys=[assigned_to_id], lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<Incident {self.incident_code} {self.severity}>"
