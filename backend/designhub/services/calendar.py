"""Calendar projection.

Project deadlines, milestone due dates and task deadlines appear on the
calendar without being stored. :func:`derive_events` builds them from
already-loaded rows; the router merges them with stored events at the
response boundary.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable

from designhub.models.calendar import CalendarEvent
from designhub.models.project import Milestone, Project
from designhub.models.task import Task
from designhub.utils.dates import ensure_aware, overlaps, to_iso

SYSTEM_CREATOR = "system"


@dataclass(frozen=True)
class DerivedEvent:
    """Read-only calendar entry synthesised from another entity."""

    id: str
    title: str
    description: str
    start_date: datetime
    end_date: datetime
    type: str
    project_id: str
    priority: str
    status: str
    task_id: str | None = None
    attendees: tuple[str, ...] = field(default_factory=tuple)
    all_day: bool = True
    is_automatic: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "startDate": to_iso(self.start_date),
            "endDate": to_iso(self.end_date),
            "allDay": self.all_day,
            "type": self.type,
            "projectId": self.project_id,
            "taskId": self.task_id,
            "createdBy": SYSTEM_CREATOR,
            "attendees": list(self.attendees),
            "priority": self.priority,
            "status": self.status,
            "location": None,
            "isRecurring": False,
            "isAutomatic": self.is_automatic,
        }


def _status_from(source_status: str) -> str:
    return "completed" if source_status == "completed" else "scheduled"


def derive_events(
    projects: Iterable[Project],
    tasks: Iterable[Task],
    milestones: Iterable[Milestone],
) -> list[DerivedEvent]:
    """Project deadlines, milestone due dates and task deadlines as events.

    Rows without the relevant date are skipped. Output order follows input
    order: projects, then milestones, then tasks.
    """
    titles: dict[Any, str] = {}
    events: list[DerivedEvent] = []

    for project in projects:
        titles[project.id] = project.title
        if project.end_date is None:
            continue
        due = ensure_aware(project.end_date)
        events.append(
            DerivedEvent(
                id=f"project_deadline_{project.id}",
                title=f"Project Deadline: {project.title}",
                description=f"Deadline for project: {project.title}",
                start_date=due,
                end_date=due,
                type="deadline",
                project_id=str(project.id),
                priority="high",
                status=_status_from(project.status),
            )
        )

    for milestone in milestones:
        if milestone.due_date is None:
            continue
        due = ensure_aware(milestone.due_date)
        project_title = titles.get(milestone.project_id, "Unknown Project")
        events.append(
            DerivedEvent(
                id=f"milestone_{milestone.project_id}_{milestone.id}",
                title=f"Milestone: {milestone.title}",
                description=milestone.description or f"Milestone for {project_title}",
                start_date=due,
                end_date=due,
                type="milestone",
                project_id=str(milestone.project_id),
                priority="medium",
                status=_status_from(milestone.status),
            )
        )

    for task in tasks:
        if task.deadline is None:
            continue
        due = ensure_aware(task.deadline)
        project_title = titles.get(task.project_id, "Unknown Project")
        events.append(
            DerivedEvent(
                id=f"task_deadline_{task.id}",
                title=f"Task Due: {task.title}",
                description=f"Task deadline in {project_title}",
                start_date=due,
                end_date=due,
                type="deadline",
                project_id=str(task.project_id),
                task_id=str(task.id),
                attendees=(str(task.assignee_id),) if task.assignee_id else (),
                priority=task.priority or "medium",
                status=_status_from(task.status),
            )
        )

    return events


def in_range(
    events: Iterable[DerivedEvent],
    start: datetime | None,
    end: datetime | None,
) -> list[DerivedEvent]:
    return [e for e in events if overlaps(e.start_date, e.end_date, start, end)]


def stored_event_to_dict(event: CalendarEvent) -> dict[str, Any]:
    return {
        "id": str(event.id),
        "title": event.title,
        "description": event.description,
        "startDate": to_iso(event.start_date),
        "endDate": to_iso(event.end_date),
        "allDay": event.all_day,
        "type": event.type,
        "projectId": str(event.project_id) if event.project_id else None,
        "taskId": str(event.task_id) if event.task_id else None,
        "createdBy": str(event.created_by_id),
        "attendees": [str(u.id) for u in event.attendees],
        "priority": event.priority,
        "status": event.status,
        "location": event.location,
        "isRecurring": event.is_recurring,
        "isAutomatic": False,
    }


def merge_events(
    stored: Iterable[CalendarEvent],
    derived: Iterable[DerivedEvent],
) -> list[dict[str, Any]]:
    """Stored and derived events as one list ordered by start."""
    keyed = [(ensure_aware(e.start_date), str(e.id), stored_event_to_dict(e)) for e in stored]
    keyed += [(e.start_date, e.id, e.to_dict()) for e in derived]
    keyed.sort(key=lambda item: (item[0], item[1]))
    return [item[2] for item in keyed]
