"""Risk register model."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from designhub.db.base import BaseModel

if TYPE_CHECKING:
    from designhub.models.project import Project
    from designhub.models.user import User


class Risk(BaseModel):
    """Project risk with probability/impact scoring."""

    __tablename__ = "risks"
    __table_args__ = (UniqueConstraint("project_id", "risk_code", name="uq_risk_project_code"),)

    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    risk_code: Mapped[str] = mapped_column(String(16), nullable=False)  # R-001, R-002, ...
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(
        String(32), nullable=False, default="technical"
    )  # technical, financial, schedule, safety, quality, environmental, legal, operational

    # Assessment; scores are derived
    probability: Mapped[str] = mapped_column(String(16), nullable=False)  # very_low .. very_high
    impact: Mapped[str] = mapped_column(String(16), nullable=False)
    risk_score: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    # Response planning
    triggers: Mapped[str | None] = mapped_column(Text, nullable=True)
    mitigation_strategy: Mapped[str | None] = mapped_column(Text, nullable=True)
    contingency_plan: Mapped[str | None] = mapped_column(Text, nullable=True)

    owner_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default="identified"
    )  # identified, assessed, mitigated, transferred, accepted, closed
    review_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_review_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Post-mitigation estimate
    residual_probability: Mapped[str | None] = mapped_column(String(16), nullable=True)
    residual_impact: Mapped[str | None] = mapped_column(String(16), nullable=True)
    residual_score: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_by_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    project: Mapped["Project"] = relationship("Project", lazy="selectin")
    owner: Mapped["User | None"] = relationship("User", foreign_keys=[owner_id], lazy="selectin")
    created_by: Mapped["User | None"] = relationship(
        "User", foreign_keys=[created_by_id], lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<Risk {self.risk_code} score={self.risk_score}>"
