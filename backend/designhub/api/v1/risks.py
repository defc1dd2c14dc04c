"""Risk register endpoints."""

import re
from typing import Annotated, Any
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, status
from pydantic import Field
from sqlalchemy import select

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
from designhub.exceptions import ValidationFailed
from designhub.models.enums import RiskCategory, RiskLevel, RiskStatus
from designhub.models.project import Project
from designhub.models.risk import Risk
from designhub.models.user import User
from designhub.services.access_control import Grant, authorize, fetch_for, fetch_visible
from designhub.services.metrics import residual_score, risk_score
from designhub.services.pagination import PageParams, page_params, paginate

router = APIRouter()
logger = structlog.get_logger()

RISK_CODE = re.compile(r"^R-(\d+)$")

RISK_SORT_FIELDS = {
    "risk_code": Risk.risk_code,
    "risk_score": Risk.risk_score,
    "status": Risk.status,
    "category": Risk.category,
    "review_date": Risk.review_date,
    "created_at": Risk.created_at,
}


class RiskResponse(APIModel):
    id: UUID
    project_id: UUID
    risk_code: str
    description: str
    category: str
    probability: str
    impact: str
    risk_score: int
    triggers: str | None = None
    mitigation_strategy: str | None = None
    contingency_plan: str | None = None
    owner: UserSummary | None = None
    status: str
    review_date: Timestamp | None = None
    last_review_date: Timestamp | None = None
    residual_probability: str | None = None
    residual_impact: str | None = None
    residual_score: int | None = None
    created_by: UserSummary | None = None
    created_at: Timestamp
    updated_at: Timestamp


class RiskCreate(APIModel):
    description: str = Field(..., min_length=5, max_length=2000)
    category: RiskCategory
    probability: RiskLevel
    impact: RiskLevel
    triggers: str | None = Field(None, max_length=2000)
    mitigation_strategy: str | None = Field(None, max_length=2000)
    contingency_plan: str | None = Field(None, max_length=2000)
    owner_id: UUID | None = None
    status: RiskStatus = "identified"
    review_date: Timestamp | None = None
    residual_probability: RiskLevel | None = None
    residual_impact: RiskLevel | None = None


class RiskUpdate(APIModel):
    description: str | None = Field(None, min_length=5, max_length=2000)
    category: RiskCategory | None = None
    probability: RiskLevel | None = None
    impact: RiskLevel | None = None
    triggers: str | None = Field(None, max_length=2000)
    mitigation_strategy: str | None = Field(None, max_length=2000)
    contingency_plan: str | None = Field(None, max_length=2000)
    owner_id: UUID | None = None
    status: RiskStatus | None = None
    review_date: Timestamp | None = None
    residual_probability: RiskLevel | None = None
    residual_impact: RiskLevel | None = None


async def next_risk_code(db: DBSession, project_id: UUID) -> str:
    """R-001, R-002, ... continuing from the highest code in the project."""
    result = await db.execute(select(Risk.risk_code).where(Risk.project_id == project_id))
    highest = 0
    for code in result.scalars().all():
        match = RISK_CODE.match(code or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return f"R-{highest + 1:03d}"


async def _check_owner(db: DBSession, project: Project, owner_id: UUID) -> None:
    owner = await db.get(User, owner_id)
    if owner is None or not owner.is_active:
        raise ValidationFailed("Risk owner not found", field="ownerId")
    if owner.role != "super_admin" and owner.id not in project.participant_ids():
        raise ValidationFailed("Risk owner must be a participant of the project", field="ownerId")


def _rescore(risk: Risk) -> None:
    risk.risk_score = risk_score(risk.probability, risk.impact)
    risk.residual_score = residual_score(risk.residual_probability, risk.residual_impact)


@router.get("/projects/{project_id}/risks", response_model=Envelope[Page[RiskResponse]])
async def list_risks(
    project_id: UUID,
    grant: Annotated[Grant, authorize("risk", "read")],
    db: DBSession,
    params: Annotated[PageParams, Depends(page_params)],
    status_filter: RiskStatus | None = Query(None, alias="status"),
    category: RiskCategory | None = None,
    min_score: int | None = Query(None, alias="minScore", ge=1, le=25),
) -> dict:
    """Risk register of one project, highest score first by default."""
    await fetch_visible(db, grant.ctx, Project, project_id)
    query = select(Risk).where(Risk.project_id == project_id, grant.predicate)
    if status_filter:
        query = query.where(Risk.status == status_filter)
    if category:
        query = query.where(Risk.category == category)
    if min_score is not None:
        query = query.where(Risk.risk_score >= min_score)

    risks, pagination = await paginate(
        db, query, params, RISK_SORT_FIELDS, default_sort="-risk_score", tiebreaker=Risk.risk_code
    )
    return ok(paged(risks, pagination))


@router.post(
    "/projects/{project_id}/risks",
    response_model=Envelope[RiskResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_risk(
    project_id: UUID,
    data: RiskCreate,
    grant: Annotated[Grant, authorize("risk", "create")],
    db: DBSession,
) -> dict:
    project = await fetch_for(db, grant, project_id)
    if data.owner_id is not None:
        await _check_owner(db, project, data.owner_id)

    risk = Risk(
        project_id=project.id,
        risk_code=await next_risk_code(db, project.id),
        created_by_id=grant.ctx.user_id,
        **data.model_dump(),
    )
    _rescore(risk)
    db.add(risk)
    risk = await refetch(db, risk)
    await db.commit()

    logger.info(
        "risk_created",
        risk_id=str(risk.id),
        project_id=str(project.id),
        risk_code=risk.risk_code,
        risk_score=risk.risk_score,
    )
    return ok(risk, "Risk created successfully")


@router.patch("/risks/{risk_id}", response_model=Envelope[RiskResponse])
async def update_risk(
    risk_id: UUID,
    data: RiskUpdate,
    grant: Annotated[Grant, authorize("risk", "update")],
    db: DBSession,
) -> dict:
    """Update a risk; scores follow the probability and impact estimates."""
    risk = await fetch_for(db, grant, risk_id)
    updates: dict[str, Any] = data.model_dump(exclude_unset=True)

    for field in ("description", "category", "probability", "impact", "status"):
        if field in updates and updates[field] is None:
            raise ValidationFailed(f"{field} cannot be empty", field=field)
    if updates.get("owner_id") is not None:
        await _check_owner(db, risk.project, updates["owner_id"])

    for field, value in updates.items():
        setattr(risk, field, value)
    if "status" in updates or "review_date" in updates:
        risk.last_review_date = utc_now()
    _rescore(risk)

    risk = await refetch(db, risk)
    await db.commit()

    logger.info(
        "risk_updated",
        risk_id=str(risk.id),
        risk_score=risk.risk_score,
        residual_score=risk.residual_score,
        fields=sorted(updates),
    )
    return ok(risk, "Risk updated successfully")


@router.delete("/risks/{risk_id}", response_model=Envelope[Deleted])
async def delete_risk(
    risk_id: UUID,
    grant: Annotated[Grant, authorize("risk", "delete")],
    db: DBSession,
) -> dict:
    """Delete a risk (super_admin only). Not notified."""
    risk = await fetch_for(db, grant, risk_id)
    await db.delete(risk)
    await db.commit()

    logger.info("risk_deleted", risk_id=str(risk_id), project_id=str(risk.project_id))
    return ok({"id": risk_id}, "Risk deleted successfully")
