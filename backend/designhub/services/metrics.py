"""Derived project metrics.

Pure functions only; callers load the inputs and store the results.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from fractions import Fraction
from typing import Any, Iterable

from designhub.models.enums import MILESTONE_PHASES
from designhub.utils.dates import ensure_aware

# very_low .. very_high -> 1 .. 5
RISK_LEVEL_SCORES: dict[str, int] = {
    "very_low": 1,
    "low": 2,
    "medium": 3,
    "high": 4,
    "very_high": 5,
}

# (phase, title, description) created with every project
DEFAULT_MILESTONES: tuple[tuple[str, str, str], ...] = (
    (
        "construction",
        "Construction Phase",
        "Complete all structural and foundational construction work",
    ),
    (
        "installation",
        "Installation Phase",
        "Install all fixtures, utilities, and essential systems",
    ),
    (
        "styling",
        "Set up and Styling Phase",
        "Complete interior design, styling, and final setup",
    ),
)


def percentage(part: int, whole: int) -> int:
    """``round(100 * part / whole)`` rounding halves up; 0 when ``whole`` is 0."""
    if whole <= 0:
        return 0
    value = math.floor(Fraction(100 * part, whole) + Fraction(1, 2))
    return max(0, min(100, value))


def round_half_up(value: Any) -> int:
    """Nearest integer, halves rounding up. Accepts floats, Decimals and None."""
    if value is None:
        return 0
    return math.floor(Fraction(value) + Fraction(1, 2))


def project_progress(completed_activities: int, total_activities: int) -> int:
    """Project progress from the site schedule's activity counts."""
    return percentage(completed_activities, total_activities)


def risk_score(probability: str, impact: str) -> int:
    """Probability score times impact score, each 1..5."""
    try:
        return RISK_LEVEL_SCORES[probability] * RISK_LEVEL_SCORES[impact]
    except KeyError as exc:
        raise ValueError(f"Unknown risk level: {exc.args[0]}") from None


def residual_score(probability: str | None, impact: str | None) -> int | None:
    """Post-mitigation score, only when both residual estimates are present."""
    if not probability or not impact:
        return None
    return risk_score(probability, impact)


@dataclass(frozen=True)
class MilestoneProgress:
    completed: int
    total: int
    percentage: int

    def to_dict(self) -> dict[str, int]:
        return {"completed": self.completed, "total": self.total, "percentage": self.percentage}


def milestone_progress(statuses: Iterable[str]) -> MilestoneProgress:
    """Completed milestones out of the fixed phase count."""
    completed = sum(1 for s in statuses if s == "completed")
    total = len(MILESTONE_PHASES)
    return MilestoneProgress(completed=completed, total=total, percentage=percentage(completed, total))


def phase_status(
    progress: int,
    start_date: datetime | None,
    end_date: datetime | None,
    now: datetime | None = None,
) -> str:
    """Roll a phase up to upcoming, active, completed or delayed."""
    now = now or datetime.now(timezone.utc)
    if progress >= 100:
        return "completed"
    start_date = ensure_aware(start_date)
    end_date = ensure_aware(end_date)
    if start_date is not None and now < start_date:
        return "upcoming"
    if end_date is not None and now > end_date:
        return "delayed"
    return "active"


def schedule_summary(
    activities: Iterable[Any],
    project_end: datetime | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Counts and headline figures for a schedule's activities.

    ``activities`` only needs ``status`` attributes.
    """
    now = now or datetime.now(timezone.utc)
    statuses = [a.status for a in activities]
    total = len(statuses)
    completed = statuses.count("completed")
    delayed = statuses.count("delayed")
    project_end = ensure_aware(project_end)

    days_remaining = None
    if project_end is not None:
        days_remaining = max(0, math.ceil((project_end - now).total_seconds() / 86400))

    return {
        "total_activities": total,
        "completed_activities": completed,
        "active_activities": statuses.count("in_progress"),
        "delayed_activities": delayed,
        "overall_progress": project_progress(completed, total),
        "days_remaining": days_remaining,
        "on_schedule": delayed == 0 and (project_end is None or now <= project_end),
    }


def daily_summary(statuses: Iterable[str]) -> dict[str, int]:
    """Status counts for one daily report's activity log."""
    statuses = list(statuses)
    return {
        "total_activities": len(statuses),
        "completed": statuses.count("completed"),
        "in_progress": statuses.count("in_progress"),
        "pending": statuses.count("pending"),
        "delayed": statuses.count("delayed"),
    }


def daily_progress_stats(summaries: Iterable[dict[str, int]]) -> dict[str, int]:
    """Totals over a run of daily reports, plus the mean activities per day."""
    summaries = list(summaries)
    days = len(summaries)
    total = sum(s.get("total_activities", 0) for s in summaries)
    return {
        "total_days": days,
        "total_activities": total,
        "completed": sum(s.get("completed", 0) for s in summaries),
        "in_progress": sum(s.get("in_progress", 0) for s in summaries),
        "delayed": sum(s.get("delayed", 0) for s in summaries),
        "average_activities_per_day": round_half_up(Fraction(total, days)) if days else 0,
    }
