"""Daily site progress reports.

Managers log each day's site work per project; a super admin approves the
report, which is what makes it visible to the project's client.
"""

from datetime import date, timedelta
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
    ProjectRef,
    Timestamp,
    UserSummary,
    ok,
    paged,
)
from designhub.db.base import utc_now
from designhub.db.session import DBSession, refetch
from designhub.exceptions import Conflict, ValidationFailed
from designhub.models.daily_report import DailyReport
from designhub.models.enums import DailyActivityStatus
from designhub.models.project import Project
from designhub.services.access_control import Grant, authorize, fetch_for, fetch_visible
from designhub.services.metrics import daily_progress_stats, daily_summary
from designhub.services.outbox import Outbox
from designhub.services.pagination import PageParams, page_params, paginate

router = APIRouter()
logger = structlog.get_logger()

HH_MM = r"^([01]\d|2[0-3]):[0-5]\d$"

REPORT_SORT_FIELDS = {
    "report_date": DailyReport.report_date,
    "created_at": DailyReport.created_at,
}


# --- Schemas ---


class DailyActivity(APIModel):
    """One line of the day's log."""

    title: str = Field(..., min_length=1, max_length=200)
    contractor: str | None = Field(None, max_length=100)
    supervisor: str | None = Field(None, max_length=100)
    status: DailyActivityStatus = "pending"
    start_time: str | None = Field(None, pattern=HH_MM)
    end_time: str | None = Field(None, pattern=HH_MM)
    comments: str | None = Field(None, max_length=2000)
    images: list[str] = Field(default_factory=list)
    incident_report: str | None = Field(None, max_length=2000)


class DailySummary(APIModel):
    total_activities: int = 0
    completed: int = 0
    in_progress: int = 0
    pending: int = 0
    delayed: int = 0


class DailyReportResponse(APIModel):
    id: UUID
    project: ProjectRef
    report_date: date
    activities: list[DailyActivity]
    summary: DailySummary
    weather_condition: str | None = None
    site_condition: str | None = None
    general_notes: str | None = None
    crew_size: int | None = None
    total_hours: float | None = None
    photos: list[str]
    created_by: UserSummary | None = None
    submitted_by: UserSummary | None = None
    submitted_at: Timestamp | None = None
    approved: bool
    approved_by: UserSummary | None = None
    approved_at: Timestamp | None = None
    created_at: Timestamp
    updated_at: Timestamp


class DailyReportCreate(APIModel):
    report_date: date
    activities: list[DailyActivity] = Field(..., min_length=1)
    weather_condition: str | None = Field(None, max_length=100)
    site_condition: str | None = Field(None, max_length=100)
    general_notes: str | None = Field(None, max_length=5000)
    crew_size: int | None = Field(None, ge=0, le=10000)
    total_hours: float | None = Field(None, ge=0, le=10000)
    photos: list[str] = Field(default_factory=list)


class DailyReportUpdate(APIModel):
    activities: list[DailyActivity] | None = Field(None, min_length=1)
    weather_condition: str | None = Field(None, max_length=100)
    site_condition: str | None = Field(None, max_length=100)
    general_notes: str | None = Field(None, max_length=5000)
    crew_size: int | None = Field(None, ge=0, le=10000)
    total_hours: float | None = Field(None, ge=0, le=10000)
    photos: list[str] | None = None


class DailyProgressStats(APIModel):
    total_days: int
    total_activities: int
    completed: int
    in_progress: int
    delayed: int
    average_activities_per_day: int


class DateRange(APIModel):
    start: date
    end: date


class DailyProgress(APIModel):
    entries: list[DailyReportResponse]
    stats: DailyProgressStats
    date_range: DateRange


def _set_activities(report: DailyReport, activities: list[DailyActivity]) -> None:
    report.activities = [a.model_dump() for a in activities]
    report.summary = daily_summary(a.status for a in activities)


async def _date_taken(db: DBSession, project_id: UUID, report_date: date) -> bool:
    result = await db.execute(
        select(DailyReport.id).where(
            DailyReport.project_id == project_id, DailyReport.report_date == report_date
        )
    )
    return result.first() is not None


# --- Routes ---


@router.get("/daily-reports", response_model=Envelope[Page[DailyReportResponse]])
async def list_daily_reports(
    grant: Annotated[Grant, authorize("daily_report", "read")],
    db: DBSession,
    params: Annotated[PageParams, Depends(page_params)],
    project_id: UUID | None = Query(None, alias="projectId"),
    report_date: date | None = Query(None, alias="date"),
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    approved: bool | None = None,
) -> dict:
    """Reports across the caller's projects, newest day first."""
    if start_date and end_date and end_date < start_date:
        raise ValidationFailed("endDate must not be before startDate", field="endDate")

    query = select(DailyReport).where(grant.predicate)
    if project_id:
        query = query.where(DailyReport.project_id == project_id)
    if report_date:
        query = query.where(DailyReport.report_date == report_date)
    else:
        if start_date:
            query = query.where(DailyReport.report_date >= start_date)
        if end_date:
            query = query.where(DailyReport.report_date <= end_date)
    if approved is not None:
        query = query.where(DailyReport.approved.is_(approved))

    reports, pagination = await paginate(
        db,
        query,
        params,
        REPORT_SORT_FIELDS,
        default_sort="-report_date",
        tiebreaker=DailyReport.id,
    )
    return ok(paged(reports, pagination))


@router.get("/projects/{project_id}/daily-progress", response_model=Envelope[DailyProgress])
async def get_daily_progress(
    project_id: UUID,
    grant: Annotated[Grant, authorize("daily_report", "read")],
    db: DBSession,
    days_back: int = Query(30, alias="daysBack", ge=1, le=366),
    limit: int = Query(30, ge=1, le=366),
) -> dict:
    """Recent reports of one project with totals over the window."""
    await fetch_visible(db, grant.ctx, Project, project_id)
    end = utc_now().date()
    start = end - timedelta(days=days_back)

    result = await db.execute(
        select(DailyReport)
        .where(
            DailyReport.project_id == project_id,
            DailyReport.report_date >= start,
            DailyReport.report_date <= end,
            grant.predicate,
        )
        .order_by(DailyReport.report_date.desc())
        .limit(limit)
    )
    reports = list(result.scalars().all())
    return ok(
        {
            "entries": reports,
            "stats": daily_progress_stats(r.summary for r in reports),
            "date_range": {"start": start, "end": end},
        }
    )


@router.post(
    "/projects/{project_id}/daily-reports",
    response_model=Envelope[DailyReportResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_daily_report(
    project_id: UUID,
    data: DailyReportCreate,
    grant: Annotated[Grant, authorize("daily_report", "create")],
    db: DBSession,
) -> dict:
    """Log a day of site work. One report per project and day."""
    project = await fetch_for(db, grant, project_id)
    if await _date_taken(db, project.id, data.report_date):
        raise Conflict("A daily report already exists for this date")

    report = DailyReport(
        project_id=project.id,
        report_date=data.report_date,
        weather_condition=data.weather_condition,
        site_condition=data.site_condition,
        general_notes=data.general_notes,
        crew_size=data.crew_size,
        total_hours=data.total_hours,
        photos=data.photos,
        created_by_id=grant.ctx.user_id,
        approved=False,
    )
    _set_activities(report, data.activities)
    db.add(report)
    report = await refetch(db, report)
    await db.commit()

    logger.info(
        "daily_report_created",
        report_id=str(report.id),
        project_id=str(project.id),
        report_date=report.report_date.isoformat(),
        activities=report.summary["total_activities"],
    )
    return ok(report, "Daily report created successfully")


@router.get("/daily-reports/{report_id}", response_model=Envelope[DailyReportResponse])
async def get_daily_report(
    report_id: UUID,
    grant: Annotated[Grant, authorize("daily_report", "read")],
    db: DBSession,
) -> dict:
    return ok(await fetch_for(db, grant, report_id))


@router.patch("/daily-reports/{report_id}", response_model=Envelope[DailyReportResponse])
async def update_daily_report(
    report_id: UUID,
    data: DailyReportUpdate,
    grant: Annotated[Grant, authorize("daily_report", "update")],
    db: DBSession,
) -> dict:
    """Edit a report. Editing an approved report withdraws the approval."""
    report = await fetch_for(db, grant, report_id)
    updates: dict[str, Any] = data.model_dump(exclude_unset=True)
    if "activities" in updates and data.activities is None:
        raise ValidationFailed("activities cannot be empty", field="activities")

    if data.activities is not None:
        _set_activities(report, data.activities)
        updates.pop("activities")
    for field, value in updates.items():
        if field == "photos" and value is None:
            value = []
        setattr(report, field, value)

    if report.approved and (updates or data.activities is not None):
        report.approved = False
        report.approved_by_id = None
        report.approved_at = None
        logger.info("daily_report_approval_withdrawn", report_id=str(report.id))

    report = await refetch(db, report)
    await db.commit()

    logger.info("daily_report_updated", report_id=str(report.id), fields=sorted(updates))
    return ok(report, "Daily report updated successfully")


@router.post("/daily-reports/{report_id}/submit", response_model=Envelope[DailyReportResponse])
async def submit_daily_report(
    report_id: UUID,
    grant: Annotated[Grant, authorize("daily_report", "update")],
    db: DBSession,
) -> dict:
    """Mark the report as ready for approval."""
    report = await fetch_for(db, grant, report_id)
    report.submitted_by_id = grant.ctx.user_id
    report.submitted_at = utc_now()
    report = await refetch(db, report)
    await db.commit()

    logger.info("daily_report_submitted", report_id=str(report.id))
    return ok(report, "Daily report submitted for approval")


@router.post("/daily-reports/{report_id}/approve", response_model=Envelope[DailyReportResponse])
async def approve_daily_report(
    report_id: UUID,
    grant: Annotated[Grant, authorize("daily_report", "approve")],
    db: DBSession,
    outbox: Outbox,
) -> dict:
    """Approve a report (super_admin only), publishing it to the client.

    Approving an approved report is a no-op and notifies nobody.
    """
    report = await fetch_for(db, grant, report_id)
    if not report.approved:
        report.approved = True
        report.approved_by_id = grant.ctx.user_id
        report.approved_at = utc_now()
        outbox.record(
            "daily_report.approved",
            {
                "report_id": report.id,
                "project_id": report.project_id,
                "report_date": report.report_date.isoformat(),
                "actor_id": grant.ctx.user_id,
            },
        )
    report = await refetch(db, report)
    await outbox.commit()

    logger.info("daily_report_approved", report_id=str(report.id))
    return ok(report, "Daily report approved")


@router.delete("/daily-reports/{report_id}", response_model=Envelope[Deleted])
async def delete_daily_report(
    report_id: UUID,
    grant: Annotated[Grant, authorize("daily_report", "delete")],
    db: DBSession,
) -> dict:
    report = await fetch_for(db, grant, report_id)
    await db.delete(report)
    await db.commit()

    logger.info("daily_report_deleted", report_id=str(report_id), project_id=str(report.project_id))
    return ok({"id": report_id}, "Daily report deleted successfully")
