"""SQLAlchemy models package."""

from designhub.models.user import PasswordResetToken, User
from designhub.models.project import Milestone, Project, ProjectFile, ProjectManager
from designhub.models.task import Task, TaskComment, TaskDependency
from designhub.models.schedule import ActivityComment, ScheduleActivity, SchedulePhase
from designhub.models.risk import Risk
from designhub.models.messaging import Message
from designhub.models.notification import Notification, OutboxEvent
from designhub.models.calendar import CalendarEvent, calendar_event_attendees
from designhub.models.daily_report import DailyReport
from designhub.models.incident import Incident

__all__ = [
    # User
    "User",
    "PasswordResetToken",
    # Project
    "Project",
    "ProjectManager",
    "Milestone",
    "ProjectFile",
    # Task
    "Task",
    "TaskComment",
    "TaskDependency",
    # Schedule
    "SchedulePhase",
    "ScheduleActivity",
    "ActivityComment",
    # Risk
    "Risk",
    # Messaging
    "Message",
    # Notifications
    "Notification",
    "OutboxEvent",
    # Calendar
    "CalendarEvent",
    "calendar_event_attendees",
    # Site reporting
    "DailyReport",
    "Incident",
]
