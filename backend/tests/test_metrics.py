"""Tests for derived project metrics."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from designhub.services.metrics import (
    daily_progress_stats,
    daily_summary,
    milestone_progress,
    percentage,
    phase_status,
    project_progress,
    residual_score,
    risk_score,
    round_half_up,
    schedule_summary,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@dataclass
class Activity:
    status: str


@pytest.mark.parametrize(
    ("part", "whole", "expected"),
    [
        (0, 0, 0),
        (0, 4, 0),
        (1, 4, 25),
        (1, 3, 33),
        (2, 3, 67),
        (1, 8, 13),
        (4, 4, 100),
    ],
)
def test_percentage_rounds_half_up(part, whole, expected):
    assert percentage(part, whole) == expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [(None, 0), (12.5, 13), (Decimal("62.5"), 63), (33.3333, 33), (0.5, 1), (2.5, 3)],
)
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected


def test_project_progress_without_activities_is_zero():
    assert project_progress(0, 0) == 0


def test_risk_score_multiplies_levels():
    assert risk_score("high", "medium") == 12
    assert risk_score("very_low", "very_low") == 1
    assert risk_score("very_high", "very_high") == 25


def test_risk_score_rejects_unknown_level():
    with pytest.raises(ValueError):
        risk_score("extreme", "low")


def test_residual_score_needs_both_estimates():
    assert residual_score("low", None) is None
    assert residual_score(None, None) is None
    assert residual_score("low", "medium") == 6


def test_milestone_progress_counts_against_fixed_phases():
    progress = milestone_progress(["completed", "pending", "in_progress"])
    assert progress.to_dict() == {"completed": 1, "total": 3, "percentage": 33}


def test_phase_status_rolls_up():
    assert phase_status(100, None, None, now=NOW) == "completed"
    assert phase_status(0, NOW + timedelta(days=1), None, now=NOW) == "upcoming"
    assert phase_status(50, NOW - timedelta(days=10), NOW - timedelta(days=1), now=NOW) == "delayed"
    assert phase_status(50, NOW - timedelta(days=1), NOW + timedelta(days=1), now=NOW) == "active"


def test_phase_status_accepts_naive_dates():
    start = datetime(2026, 3, 2)
    assert phase_status(0, start, None, now=NOW) == "upcoming"


def test_schedule_summary():
    activities = [Activity("completed"), Activity("in_progress"), Activity("delayed"), Activity("to-do")]
    summary = schedule_summary(activities, project_end=NOW + timedelta(hours=36), now=NOW)

    assert summary == {
        "total_activities": 4,
        "completed_activities": 1,
        "active_activities": 1,
        "delayed_activities": 1,
        "overall_progress": 25,
        "days_remaining": 2,
        "on_schedule": False,
    }


def test_schedule_summary_past_deadline():
    summary = schedule_summary([Activity("completed")], project_end=NOW - timedelta(days=3), now=NOW)
    assert summary["days_remaining"] == 0
    assert summary["on_schedule"] is False
    assert summary["overall_progress"] == 100


def test_daily_summary_counts_statuses():
    summary = daily_summary(["completed", "completed", "pending", "delayed"])
    assert summary == {
        "total_activities": 4,
        "completed": 2,
        "in_progress": 0,
        "pending": 1,
        "delayed": 1,
    }


def test_daily_progress_stats():
    summaries = [
        daily_summary(["completed", "in_progress"]),
        daily_summary(["completed"]),
        daily_summary(["delayed", "delayed"]),
        daily_summary(["pending"]),
    ]
    stats = daily_progress_stats(summaries)

    # 6 activities over 4 days: 1.5 rounds up
    assert stats == {
        "total_days": 4,
        "total_activities": 6,
        "completed": 2,
        "in_progress": 1,
        "delayed": 2,
        "average_activities_per_day": 2,
    }
    assert daily_progress_stats([])["average_activities_per_day"] == 0
