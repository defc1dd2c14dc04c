"""Site schedule persistence and progress roll-up."""

from collections import defaultdict
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import case, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from designhub.db.base import utc_now
from designhub.models.project import Project
from designhub.models.schedule import ActivityComment, ScheduleActivity, SchedulePhase
from designhub.services.metrics import percentage, phase_status, project_progress
from designhub.utils.dates import to_iso

logger = structlog.get_logger()

ACTIVITY_FIELDS = (
    "title",
    "description",
    "contractor",
    "supervisor",
    "start_date",
    "end_date",
    "actual_start_date",
    "actual_end_date",
    "status",
    "priority",
    "category",
    "progress",
    "images",
)


async def load_phases(db: AsyncSession, project_id: UUID) -> list[SchedulePhase]:
    result = await db.execute(
        select(SchedulePhase)
        .where(SchedulePhase.project_id == project_id)
        .order_by(SchedulePhase.position, SchedulePhase.created_at)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


def _flatten_phase(phase: dict[str, Any]) -> list[dict[str, Any]]:
    """Activities of one phase payload, carrying their week and day numbers.

    Accepts either a nested ``weeks -> days -> activities`` tree or a flat
    ``activities`` list with ``week_number``/``day_number`` on each item.
    """
    activities: list[dict[str, Any]] = []
    for week in phase.get("weeks") or []:
        for day in week.get("days") or []:
            for activity in day.get("activities") or []:
                activities.append(
                    {
                        **activity,
                        "week_number": week.get("week_number", 1),
                        "day_number": day.get("day_number", 1),
                    }
                )
    for activity in phase.get("activities") or []:
        activities.append(activity)
    return activities


async def save_schedule(
    db: AsyncSession,
    project: Project,
    phases: list[dict[str, Any]],
) -> list[SchedulePhase]:
    """Replace a project's schedule tree.

    Activities whose payload carries the id of an existing activity of the
    same project keep that row (and its comments); every other existing
    activity is removed.
    """
    existing_result = await db.execute(
        select(ScheduleActivity).where(ScheduleActivity.project_id == project.id)
    )
    existing = {a.id: a for a in existing_result.scalars().all()}
    old_phase_ids = list(
        (await db.execute(select(SchedulePhase.id).where(SchedulePhase.project_id == project.id)))
        .scalars()
        .all()
    )

    kept: set[UUID] = set()
    for position, phase_data in enumerate(phases):
        phase = SchedulePhase(
            project_id=project.id,
            name=phase_data["name"],
            description=phase_data.get("description"),
            position=position,
            start_date=phase_data.get("start_date"),
            end_date=phase_data.get("end_date"),
        )
        db.add(phase)
        await db.flush()

        for activity_position, data in enumerate(_flatten_phase(phase_data)):
            activity_id = data.get("id")
            activity = existing.get(activity_id) if activity_id else None
            if activity is None:
                activity = ScheduleActivity(project_id=project.id)
                db.add(activity)
            else:
                kept.add(activity.id)
            activity.phase_id = phase.id
            activity.week_number = data.get("week_number") or 1
            activity.day_number = data.get("day_number") or 1
            activity.position = activity_position
            for field in ACTIVITY_FIELDS:
                if field in data and data[field] is not None:
                    setattr(activity, field, data[field])

    dropped = [activity_id for activity_id in existing if activity_id not in kept]
    if dropped:
        await db.execute(delete(ActivityComment).where(ActivityComment.activity_id.in_(dropped)))
        await db.execute(delete(ScheduleActivity).where(ScheduleActivity.id.in_(dropped)))
    await db.flush()
    if old_phase_ids:
        await db.execute(delete(SchedulePhase).where(SchedulePhase.id.in_(old_phase_ids)))

    logger.info(
        "schedule_saved",
        project_id=str(project.id),
        phases=len(phases),
        activities_dropped=len(dropped),
    )
    return await load_phases(db, project.id)


async def recompute_progress(db: AsyncSession, project: Project) -> tuple[int, int]:
    """Refresh the project's activity counters and progress.

    Returns:
        ``(previous_progress, new_progress)``
    """
    await db.flush()
    row = (
        await db.execute(
            select(
                func.count(ScheduleActivity.id),
                func.coalesce(
                    func.sum(case((ScheduleActivity.status == "completed", 1), else_=0)), 0
                ),
            ).where(ScheduleActivity.project_id == project.id)
        )
    ).one()
    total, completed = int(row[0]), int(row[1])

    previous = project.progress
    project.total_activities = total
    project.completed_activities = completed
    project.progress = project_progress(completed, total)
    project.schedule_updated_at = utc_now()

    if previous != project.progress:
        logger.info(
            "project_progress_changed",
            project_id=str(project.id),
            previous=previous,
            progress=project.progress,
        )
    return previous, project.progress


def activity_to_dict(activity: ScheduleActivity) -> dict[str, Any]:
    return {
        "id": str(activity.id),
        "title": activity.title,
        "description": activity.description,
        "contractor": activity.contractor,
        "supervisor": activity.supervisor,
        "startDate": to_iso(activity.start_date),
        "endDate": to_iso(activity.end_date),
        "actualStartDate": to_iso(activity.actual_start_date),
        "actualEndDate": to_iso(activity.actual_end_date),
        "status": activity.status,
        "priority": activity.priority,
        "category": activity.category,
        "progress": activity.progress,
        "images": activity.images,
        "weekNumber": activity.week_number,
        "dayNumber": activity.day_number,
        "updatedAt": to_iso(activity.updated_at),
    }


def phase_tree(phase: SchedulePhase) -> dict[str, Any]:
    """One phase with its activities grouped into weeks and days."""
    weeks: dict[int, dict[int, list[dict[str, Any]]]] = defaultdict(lambda: defaultdict(list))
    for activity in phase.activities:
        weeks[activity.week_number][activity.day_number].append(activity_to_dict(activity))

    total = len(phase.activities)
    completed = sum(1 for a in phase.activities if a.status == "completed")
    progress = percentage(completed, total)
    return {
        "id": str(phase.id),
        "name": phase.name,
        "description": phase.description,
        "startDate": to_iso(phase.start_date),
        "endDate": to_iso(phase.end_date),
        "progress": progress,
        "status": phase_status(progress, phase.start_date, phase.end_date),
        "totalActivities": total,
        "completedActivities": completed,
        "weeks": [
            {
                "weekNumber": week_number,
                "days": [
                    {"dayNumber": day_number, "activities": days[day_number]}
                    for day_number in sorted(days)
                ],
            }
            for week_number, days in sorted(weeks.items())
        ],
    }
