"""Dashboard summary endpoint."""

from datetime import timedelta
from typing import Any
from uuid import UUID

from fastapi import APIRouter
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from designhub.api.v1.common import APIModel, Envelope, Timestamp, ok
from designhub.db.base import utc_now
from designhub.db.session import DBSession
from designhub.models.messaging import Message
from designhub.models.project import Milestone, Project
from designhub.models.risk import Risk
from designhub.models.task import Task
from designhub.services.access_control import Context, read_filter
from designhub.services.metrics import round_half_up
from designhub.services.notification import NotificationService

router = APIRouter()

# Scores at or above this count as high risk (e.g. high x high = 16)
HIGH_RISK_SCORE = 15
UPCOMING_DAYS = 14


# --- Schemas ---


class CountSummary(APIModel):
    total: int
    by_status: dict[str, int]


class ProjectSummary(CountSummary):
    average_progress: int


class TaskSummary(CountSummary):
    overdue: int
    assigned_to_me: int


class MilestoneSummary(APIModel):
    total: int
    completed: int


class RiskSummary(APIModel):
    open: int
    high: int


class UpcomingDeadline(APIModel):
    id: UUID
    title: str
    deadline: Timestamp
    project_id: UUID
    status: str


class DashboardSummary(APIModel):
    role: str
    projects: ProjectSummary
    tasks: TaskSummary
    milestones: MilestoneSummary
    risks: RiskSummary
    unread_notifications: int
    unread_messages: int
    upcoming_deadlines: list[UpcomingDeadline]


async def _counts_by_status(db: AsyncSession, model: type, predicate: Any) -> dict[str, int]:
    result = await db.execute(
        select(model.status, func.count(model.id)).where(predicate).group_by(model.status)
    )
    return {status: count for status, count in result.all()}


async def _count(db: AsyncSession, stmt: Any) -> int:
    return (await db.execute(stmt)).scalar() or 0


@router.get("/summary", response_model=Envelope[DashboardSummary])
async def get_summary(ctx: Context, db: DBSession) -> dict:
    """Counts over everything the caller can see."""
    now = utc_now()
    project_filter = read_filter(ctx, "project")
    task_filter = read_filter(ctx, "task")

    project_statuses = await _counts_by_status(db, Project, project_filter)
    average_progress = await db.scalar(
        select(func.avg(Project.progress)).where(project_filter)
    )

    task_statuses = await _counts_by_status(db, Task, task_filter)
    overdue = await _count(
        db,
        select(func.count(Task.id)).where(
            task_filter, Task.deadline < now, Task.status != "completed"
        ),
    )
    assigned_to_me = await _count(
        db,
        select(func.count(Task.id)).where(
            task_filter, Task.assignee_id == ctx.user_id, Task.status != "completed"
        ),
    )

    milestone_filter = read_filter(ctx, "milestone")
    milestone_statuses = await _counts_by_status(db, Milestone, milestone_filter)

    risk_filter = read_filter(ctx, "risk")
    open_risks = await _count(
        db, select(func.count(Risk.id)).where(risk_filter, Risk.status != "closed")
    )
    high_risks = await _count(
        db,
        select(func.count(Risk.id)).where(
            risk_filter, Risk.status != "closed", Risk.risk_score >= HIGH_RISK_SCORE
        ),
    )

    unread_notifications = await NotificationService(db).unread_count(ctx.user_id)
    unread_messages = await _count(
        db,
        select(func.count(Message.id)).where(
            Message.recipient_id == ctx.user_id,
            Message.is_read.is_(False),
            Message.is_deleted.is_(False),
        ),
    )

    result = await db.execute(
        select(Task)
        .where(
            task_filter,
            Task.status != "completed",
            Task.deadline >= now,
            Task.deadline <= now + timedelta(days=UPCOMING_DAYS),
        )
        .order_by(Task.deadline)
        .limit(5)
    )
    upcoming = [
        {
            "id": t.id,
            "title": t.title,
            "deadline": t.deadline,
            "project_id": t.project_id,
            "status": t.status,
        }
        for t in result.scalars().all()
    ]

    return ok(
        {
            "role": ctx.role,
            "projects": {
                "total": sum(project_statuses.values()),
                "by_status": project_statuses,
                "average_progress": round_half_up(average_progress),
            },
            "tasks": {
                "total": sum(task_statuses.values()),
                "by_status": task_statuses,
                "overdue": overdue,
                "assigned_to_me": assigned_to_me,
            },
            "milestones": {
                "total": sum(milestone_statuses.values()),
                "completed": milestone_statuses.get("completed", 0),
            },
            "risks": {"open": open_risks, "high": high_risks},
            "unread_notifications": unread_notifications,
            "unread_messages": unread_messages,
            "upcoming_deadlines": upcoming,
        }
    )
