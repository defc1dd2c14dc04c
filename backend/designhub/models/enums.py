"""Allowed string values for enumerated columns.

Columns store plain strings; these literals drive request validation and
the handful of places that branch on a value.
"""

from typing import Literal, get_args

Role = Literal["super_admin", "project_manager", "client"]
ProjectStatus = Literal["planning", "in_progress", "on_hold", "completed", "cancelled"]
Priority = Literal["low", "medium", "high", "urgent"]
TaskStatus = Literal["pending", "in_progress", "completed", "blocked"]
MilestonePhase = Literal["construction", "installation", "styling"]
MilestoneStatus = Literal["pending", "in_progress", "completed"]
ActivityStatus = Literal["to-do", "pending", "in_progress", "completed", "delayed", "on_hold"]
ActivityCategory = Literal["structural", "electrical", "plumbing", "finishing", "other"]
RiskLevel = Literal["very_low", "low", "medium", "high", "very_high"]
RiskCategory = Literal[
    "technical",
    "financial",
    "schedule",
    "safety",
    "quality",
    "environmental",
    "legal",
    "operational",
]
RiskStatus = Literal["identified", "assessed", "mitigated", "transferred", "accepted", "closed"]
MessageType = Literal["text", "file", "image", "system"]
NotificationType = Literal[
    "task_assigned",
    "task_completed",
    "task_updated",
    "project_created",
    "project_updated",
    "milestone_reached",
    "deadline_approaching",
    "message_received",
    "file_uploaded",
    "user_mentioned",
    "project_invitation",
    "comment_added",
    "daily_report_approved",
    "incident_reported",
]
NotificationCategory = Literal["info", "success", "warning", "error"]
EventType = Literal["meeting", "deadline", "milestone", "reminder", "event"]
EventStatus = Literal["scheduled", "completed", "cancelled"]
DailyActivityStatus = Literal["pending", "in_progress", "completed", "delayed"]
IncidentCategory = Literal["safety", "equipment", "environmental", "security", "quality", "other"]
IncidentSeverity = Literal["low", "medium", "high", "critical"]
IncidentStatus = Literal["open", "investigating", "resolved", "closed"]
InjuryType = Literal["none", "minor", "major", "fatality"]
OutboxStatus = Literal["pending", "dispatched", "failed"]

ROLES: tuple[str, ...] = get_args(Role)
MILESTONE_PHASES: tuple[str, ...] = get_args(MilestonePhase)
RISK_LEVELS: tuple[str, ...] = get_args(RiskLevel)
DAILY_ACTIVITY_STATUSES: tuple[str, ...] = get_args(DailyActivityStatus)
