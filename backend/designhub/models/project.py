"""Project, manager assignment, milestone and file models."""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
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

from designhub.db.base import Base, BaseModel, JSONType, utc_now

if TYPE_CHECKING:
    from designhub.models.user import User


class Project(BaseModel):
    """Interior-design project owned by one client and run by one or more managers."""

    __tablename__ = "projects"

    # Basic info
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    # Status and priority
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default="planning", index=True
    )  # planning, in_progress, on_hold, completed, cancelled
    priority: Mapped[str] = mapped_column(
        String(20), nullable=False, default="medium"
    )  # low, medium, high, urgent

    # Derived from the site schedule
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_activities: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_activities: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    schedule_updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Ownership
    client_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    created_by_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Timeline
    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Site details
    budget: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    site_address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    scope_of_work: Mapped[str | None] = mapped_column(Text, nullable=True)
    design_style: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    tags: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)

    # Relationships
    client: Mapped["User"] = relationship("User", foreign_keys=[client_id], lazy="selectin")
    created_by: Mapped["User | None"] = relationship("User", foreign_keys=[created_by_id])
    managers: Mapped[list["User"]] = relationship(
        "User",
        secondary="project_managers",
        lazy="selectin",
        order_by="User.name",
    )
    milestones: Mapped[list["Milestone"]] = relationship(
        "Milestone",
        back_populates="project",
        lazy="selectin",
        order_by="Milestone.due_date",
    )

    @property
    def manager_ids(self) -> list[UUID]:
        return [m.id for m in self.managers]

    def participant_ids(self) -> set[UUID]:
        """Client plus every assigned manager."""
        return {self.client_id, *self.manager_ids}

    def __repr__(self) -> str:
        return f"<Project {self.title}>"


class ProjectManager(Base):
    """Association row assigning a manager to a project."""

    __tablename__ = "project_managers"

    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    def __repr__(self) -> str:
        return f"<ProjectManager project={self.project_id} user={self.user_id}>"


class Milestone(BaseModel):
    """Project milestone, normally one per phase."""

    __tablename__ = "milestones"
    __table_args__ = (
        UniqueConstraint("project_id", "phase", name="uq_milestone_project_phase"),
    )

    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    phase: Mapped[str | None] = mapped_column(
        String(32), nullable=True
    )  # construction, installation, styling; None for free-form milestones
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default="pending"
    )  # pending, in_progress, completed
    due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Completion stamps
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_by_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Relationships
    project: Mapped["Project"] = relationship("Project", back_populates="milestones")
    completed_by: Mapped["User | None"] = relationship("User", lazy="selectin")

    def __repr__(self) -> str:
        return f"<Milestone {self.title} ({self.status})>"


class ProjectFile(BaseModel):
    """Reference to an uploaded file; bytes live in object storage."""

    __tablename__ = "project_files"

    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str] = mapped_column(String(1000), nullable=False)
    mime_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_internal: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    uploaded_by_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    uploaded_by: Mapped["User | None"] = relationship("User", lazy="selectin")

    def __repr__(self) -> str:
        return f"<ProjectFile {self.filename}>"
