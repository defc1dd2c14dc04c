"""One-time import of the legacy document export.

The old document store accumulated several shapes for the same entity:

- projects with a single ``manager`` instead of a ``managers`` list,
- activities dated by ``plannedDate``/``actualDate`` instead of explicit
  start and end dates,
- milestones embedded in the project document as well as in their own
  collection,
- site schedules nested ``phases -> weeks -> days -> activities``,
- activity statuses from older enums.

The ``normalize_*`` functions map each variant onto the canonical shape as
plain dicts; :func:`import_documents` writes them. Identifiers are derived
deterministically from the old object ids, so re-running the import skips
rows that already exist.
"""

import math
import re
from dataclasses import dataclass, field
from typing import Any, get_args
from uuid import NAMESPACE_URL, UUID, uuid5

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from designhub.models.enums import (
    MILESTONE_PHASES,
    ROLES,
    ActivityCategory,
    ActivityStatus,
    Priority,
    ProjectStatus,
    TaskStatus,
)
from designhub.models.project import Milestone, Project, ProjectManager
from designhub.models.schedule import ActivityComment, ScheduleActivity, SchedulePhase
from designhub.models.task import Task
from designhub.models.user import User
from designhub.services.metrics import project_progress
from designhub.utils.dates import parse_datetime

logger = structlog.get_logger()

LEGACY_NAMESPACE = uuid5(NAMESPACE_URL, "designhub:legacy-import")

ACTIVITY_STATUSES = set(get_args(ActivityStatus))
ACTIVITY_CATEGORIES = set(get_args(ActivityCategory))
PROJECT_STATUSES = set(get_args(ProjectStatus))
TASK_STATUSES = set(get_args(TaskStatus))
PRIORITIES = set(get_args(Priority))
MILESTONE_STATUSES = {"pending", "in_progress", "completed"}

LEADING_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")


def legacy_id(value: Any) -> str | None:
    """Old object id as text; accepts ``{"$oid": ...}`` and plain strings."""
    if value is None or value == "":
        return None
    if isinstance(value, dict):
        value = value.get("$oid") or value.get("_id")
        return legacy_id(value)
    return str(value)


def mapped_uuid(value: Any) -> UUID | None:
    """Stable UUID for an old object id."""
    old = legacy_id(value)
    if old is None:
        return None
    return uuid5(LEGACY_NAMESPACE, old)


def _choice(value: Any, allowed: set[str], default: str) -> str:
    if isinstance(value, str) and value in allowed:
        return value
    return default


def _int(value: Any, default: int) -> int:
    """Integer from numbers or text such as ``"Week 2"`` and ``"50%"``."""
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else default
    if isinstance(value, str):
        match = LEADING_NUMBER.search(value)
        if match:
            return int(float(match.group()))
    return default


def _percent(value: Any, default: int) -> int:
    return max(0, min(100, _int(value, default)))


def normalize_status(value: Any) -> str:
    """Activity status; anything outside the current enum becomes ``to-do``."""
    if isinstance(value, str):
        value = value.strip().lower().replace(" ", "_")
        if value in ("todo", "to_do"):
            value = "to-do"
    return _choice(value, ACTIVITY_STATUSES, "to-do")


def normalize_managers(doc: dict[str, Any]) -> list[UUID]:
    """``managers`` list, falling back to the singular ``manager`` field."""
    raw = doc.get("managers") or []
    if not raw and doc.get("manager"):
        raw = [doc["manager"]]
    managers: list[UUID] = []
    for value in raw:
        manager_id = mapped_uuid(value)
        if manager_id is not None and manager_id not in managers:
            managers.append(manager_id)
    return managers


def normalize_activity(
    doc: dict[str, Any],
    week_number: int = 1,
    day_number: int = 1,
    day_date: Any = None,
) -> dict[str, Any]:
    """Canonical activity with explicit start and end dates."""
    planned = parse_datetime(doc.get("plannedDate"))
    start = (
        parse_datetime(doc.get("startDate"))
        or parse_datetime(doc.get("plannedStartDate"))
        or planned
        or parse_datetime(day_date)
    )
    end = (
        parse_datetime(doc.get("endDate"))
        or parse_datetime(doc.get("plannedEndDate"))
        or planned
        or start
    )
    actual = parse_datetime(doc.get("actualDate"))

    images = []
    for image in doc.get("images") or []:
        images.append(image if isinstance(image, dict) else {"url": str(image)})

    status = normalize_status(doc.get("status"))
    progress = _percent(doc.get("progress"), 100 if status == "completed" else 0)

    return {
        "legacy_id": legacy_id(doc.get("_id")),
        "title": (doc.get("title") or "Untitled activity")[:200],
        "description": doc.get("description") or doc.get("incidentReport"),
        "contractor": doc.get("contractor"),
        "supervisor": doc.get("supervisor"),
        "start_date": start,
        "end_date": end,
        "actual_start_date": parse_datetime(doc.get("actualStartDate")) or actual,
        "actual_end_date": parse_datetime(doc.get("actualEndDate")) or actual,
        "status": status,
        "priority": _choice(doc.get("priority"), PRIORITIES, "medium"),
        "category": _choice(doc.get("category"), ACTIVITY_CATEGORIES, "other"),
        "progress": progress,
        "images": images,
        "week_number": _int(doc.get("weekNumber"), week_number),
        "day_number": _int(doc.get("dayNumber"), day_number),
        "comment": doc.get("comments") if isinstance(doc.get("comments"), str) else None,
    }


def normalize_phase(doc: dict[str, Any]) -> dict[str, Any]:
    """Flatten ``weeks -> days -> activities`` into one activity list."""
    activities: list[dict[str, Any]] = []
    for week_index, week in enumerate(doc.get("weeks") or [], start=1):
        week_number = _int(week.get("weekNumber"), week_index)
        for day_index, day in enumerate(week.get("days") or [], start=1):
            day_number = _int(day.get("dayNumber"), day_index)
            for activity in day.get("activities") or []:
                activities.append(
                    normalize_activity(activity, week_number, day_number, day.get("date"))
                )
    # Later versions store activities directly on the phase
    for activity in doc.get("activities") or []:
        activities.append(normalize_activity(activity))

    return {
        "name": doc.get("name") or doc.get("title") or "Phase",
        "description": doc.get("description"),
        "start_date": parse_datetime(doc.get("startDate")),
        "end_date": parse_datetime(doc.get("endDate")),
        "activities": activities,
    }


def _phase_from_title(title: str | None) -> str | None:
    lowered = (title or "").lower()
    for phase in MILESTONE_PHASES:
        if phase in lowered:
            return phase
    return None


def normalize_milestone(doc: dict[str, Any]) -> dict[str, Any]:
    """Embedded or standalone milestone as a row."""
    title = doc.get("title") or doc.get("name") or "Milestone"
    phase = doc.get("phase") if doc.get("phase") in MILESTONE_PHASES else _phase_from_title(title)
    status = doc.get("status")
    if status == "delayed":
        status = "in_progress"
    status = _choice(status, MILESTONE_STATUSES, "pending")
    return {
        "legacy_id": legacy_id(doc.get("_id")),
        "phase": phase,
        "title": title[:200],
        "description": doc.get("description"),
        "status": status,
        "due_date": parse_datetime(doc.get("dueDate") or doc.get("targetDate")),
        "completed_at": parse_datetime(doc.get("completedDate"))
        if status == "completed"
        else None,
        "completed_by_id": mapped_uuid(doc.get("completedBy")) if status == "completed" else None,
        "notes": doc.get("notes"),
    }


def normalize_project(doc: dict[str, Any]) -> dict[str, Any]:
    schedule = doc.get("siteSchedule") or {}
    tags = doc.get("tags") or []
    return {
        "id": mapped_uuid(doc.get("_id")),
        "title": (doc.get("title") or "Untitled project")[:100],
        "description": doc.get("description") or "",
        "client_id": mapped_uuid(doc.get("client")),
        "managers": normalize_managers(doc),
        "status": _choice(doc.get("status"), PROJECT_STATUSES, "planning"),
        "priority": _choice(doc.get("priority"), PRIORITIES, "medium"),
        "start_date": parse_datetime(doc.get("startDate")),
        "end_date": parse_datetime(doc.get("endDate")),
        "budget": doc.get("budget"),
        "site_address": doc.get("siteAddress"),
        "scope_of_work": doc.get("scopeOfWork"),
        "design_style": doc.get("designStyle"),
        "notes": doc.get("notes"),
        "tags": [str(t) for t in tags],
        "phases": [normalize_phase(p) for p in schedule.get("phases") or []],
        "milestones": [normalize_milestone(m) for m in doc.get("milestones") or []],
        "created_at": parse_datetime(doc.get("createdAt")),
    }


def normalize_task(doc: dict[str, Any]) -> dict[str, Any]:
    status = doc.get("status")
    if status == "todo":
        status = "pending"
    status = _choice(status, TASK_STATUSES, "pending")
    return {
        "id": mapped_uuid(doc.get("_id")),
        "project_id": mapped_uuid(doc.get("projectId") or doc.get("project")),
        "title": (doc.get("title") or "Untitled task")[:100],
        "description": doc.get("description") or "",
        "assignee_id": mapped_uuid(doc.get("assignedTo") or doc.get("assignee")),
        "created_by_id": mapped_uuid(doc.get("createdBy")),
        "status": status,
        "priority": _choice(doc.get("priority"), PRIORITIES, "medium"),
        "progress": 100 if status == "completed" else _percent(doc.get("progress"), 0),
        "start_date": parse_datetime(doc.get("startDate")),
        "deadline": parse_datetime(doc.get("deadline") or doc.get("dueDate")),
        "completed_at": parse_datetime(doc.get("completedAt")),
    }


def normalize_user(doc: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": mapped_uuid(doc.get("_id")),
        "email": str(doc.get("email") or "").strip().lower(),
        "name": (doc.get("name") or doc.get("email") or "User")[:100],
        "role": _choice(doc.get("role"), set(ROLES), "client"),
        "phone": doc.get("phone"),
        "avatar_url": doc.get("avatar"),
        "is_active": bool(doc.get("isActive", True)),
    }


@dataclass
class ImportReport:
    users: int = 0
    projects: int = 0
    milestones: int = 0
    activities: int = 0
    tasks: int = 0
    skipped: int = 0
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "users": self.users,
            "projects": self.projects,
            "milestones": self.milestones,
            "activities": self.activities,
            "tasks": self.tasks,
            "skipped": self.skipped,
            "warnings": self.warnings,
        }


async def _exists(db: AsyncSession, model: type, entity_id: UUID | None) -> bool:
    if entity_id is None:
        return False
    return (await db.get(model, entity_id)) is not None


async def import_documents(db: AsyncSession, export: dict[str, list[dict[str, Any]]]) -> ImportReport:
    """Write a legacy export into the canonical schema.

    ``export`` maps collection names (``users``, ``projects``,
    ``milestones``, ``tasks``) to lists of documents. Passwords are not
    carried over; imported users must reset theirs.
    """
    report = ImportReport()
    known_users: set[UUID] = set()

    for doc in export.get("users", []):
        data = normalize_user(doc)
        user_id = data.pop("id")
        if user_id is None or not data["email"]:
            report.skipped += 1
            continue
        known_users.add(user_id)
        if await _exists(db, User, user_id):
            report.skipped += 1
            continue
        db.add(User(id=user_id, **data, password_hash=None))
        report.users += 1
    await db.flush()

    seen_phases: dict[UUID, set[str]] = {}
    for doc in export.get("projects", []):
        data = normalize_project(doc)
        if await _exists(db, Project, data["id"]):
            report.skipped += 1
            continue
        if data["client_id"] not in known_users:
            report.warnings.append(f"project {legacy_id(doc.get('_id'))}: unknown client, skipped")
            report.skipped += 1
            continue

        phases = data.pop("phases")
        milestones = data.pop("milestones")
        managers = [m for m in data.pop("managers") if m in known_users]
        if not managers:
            report.warnings.append(f"project {legacy_id(doc.get('_id'))}: no known manager")
        created_at = data.pop("created_at")
        if data["id"] is None:
            data.pop("id")

        project = Project(**data)
        if created_at is not None:
            project.created_at = created_at
        db.add(project)
        await db.flush()
        for manager_id in managers:
            db.add(ProjectManager(project_id=project.id, user_id=manager_id))

        total = completed = 0
        for position, phase_data in enumerate(phases):
            phase = SchedulePhase(
                project_id=project.id,
                name=phase_data["name"],
                description=phase_data["description"],
                position=position,
                start_date=phase_data["start_date"],
                end_date=phase_data["end_date"],
            )
            db.add(phase)
            await db.flush()
            for activity_position, activity_data in enumerate(phase_data["activities"]):
                comment = activity_data.pop("comment")
                activity_data.pop("legacy_id")
                activity = ScheduleActivity(
                    project_id=project.id,
                    phase_id=phase.id,
                    position=activity_position,
                    **activity_data,
                )
                db.add(activity)
                total += 1
                completed += int(activity.status == "completed")
                if comment:
                    await db.flush()
                    db.add(ActivityComment(activity_id=activity.id, content=comment, is_internal=True))
        report.activities += total
        project.total_activities = total
        project.completed_activities = completed
        project.progress = project_progress(completed, total)

        used = seen_phases.setdefault(project.id, set())
        for milestone_data in milestones:
            milestone_data.pop("legacy_id")
            if milestone_data["completed_by_id"] not in known_users:
                milestone_data["completed_by_id"] = None
            if milestone_data["phase"] in used:
                milestone_data["phase"] = None
            if milestone_data["phase"]:
                used.add(milestone_data["phase"])
            db.add(Milestone(project_id=project.id, **milestone_data))
            report.milestones += 1
        report.projects += 1
    await db.flush()

    for doc in export.get("milestones", []):
        data = normalize_milestone(doc)
        project_id = mapped_uuid(doc.get("projectId"))
        milestone_id = mapped_uuid(doc.get("_id"))
        data.pop("legacy_id")
        if project_id is None or not await _exists(db, Project, project_id):
            report.skipped += 1
            continue
        if await _exists(db, Milestone, milestone_id):
            report.skipped += 1
            continue
        used = seen_phases.setdefault(project_id, set())
        if data["phase"] is not None:
            duplicate = await db.scalar(
                select(Milestone.id).where(
                    Milestone.project_id == project_id, Milestone.phase == data["phase"]
                )
            )
            if duplicate is not None or data["phase"] in used:
                data["phase"] = None
            else:
                used.add(data["phase"])
        if data["completed_by_id"] not in known_users:
            data["completed_by_id"] = None
        if milestone_id is not None:
            data["id"] = milestone_id
        db.add(Milestone(project_id=project_id, **data))
        report.milestones += 1
    await db.flush()

    for doc in export.get("tasks", []):
        data = normalize_task(doc)
        if await _exists(db, Task, data["id"]):
            report.skipped += 1
            continue
        if data["project_id"] is None or not await _exists(db, Project, data["project_id"]):
            report.skipped += 1
            continue
        if data["assignee_id"] not in known_users:
            data["assignee_id"] = None
        if data["created_by_id"] not in known_users:
            data["created_by_id"] = None
        if data["id"] is None:
            data.pop("id")
        db.add(Task(**data))
        report.tasks += 1
    await db.flush()

    logger.info("legacy_import_completed", **{k: v for k, v in report.to_dict().items() if k != "warnings"})
    return report
