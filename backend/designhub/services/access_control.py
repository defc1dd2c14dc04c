"""Role-scoped access control.

Every request resolves a :class:`RequestContext` from its bearer token.
What the caller may see or change is then looked up in a single permission
table keyed by ``(entity, operation)``; each row maps the roles allowed to
perform the operation to a predicate builder returning a SQLAlchemy
boolean clause over the row's target model.

- A role missing from a row is denied outright (403).
- Single-entity lookups combine the id with the *read* predicate, so an
  entity outside the caller's visible set is reported as not found (404).
- Once visible, the operation's own predicate decides between success and
  403.

Visible projects are expressed as sub-selects rather than materialised id
lists, so a manager with no projects matches nothing instead of everything.
"""

from dataclasses import dataclass
from typing import Annotated, Any, Callable
from uuid import UUID

import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import ColumnElement, Select, and_, false, or_, select, true
from sqlalchemy.ext.asyncio import AsyncSession

from designhub.db.session import DBSession
from designhub.exceptions import AuthenticationMissing, AuthorizationDenied, NotFound
from designhub.models.calendar import CalendarEvent
from designhub.models.daily_report import DailyReport
from designhub.models.incident import Incident
from designhub.models.messaging import Message
from designhub.models.notification import Notification
from designhub.models.project import Milestone, Project, ProjectFile, ProjectManager
from designhub.models.risk import Risk
from designhub.models.schedule import ScheduleActivity
from designhub.models.task import Task
from designhub.models.user import User
from designhub.services.security import decode_access_token

logger = structlog.get_logger()
security = HTTPBearer(auto_error=False)

SUPER_ADMIN = "super_admin"
PROJECT_MANAGER = "project_manager"
CLIENT = "client"


@dataclass(frozen=True)
class RequestContext:
    """Caller identity passed explicitly into every handler."""

    user_id: UUID
    role: str
    user: User

    @property
    def is_admin(self) -> bool:
        return self.role == SUPER_ADMIN

    @property
    def is_manager(self) -> bool:
        return self.role == PROJECT_MANAGER

    @property
    def is_client(self) -> bool:
        return self.role == CLIENT

    @property
    def sees_internal(self) -> bool:
        """Clients never see internal comments or files."""
        return not self.is_client


async def get_request_context(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: DBSession,
) -> RequestContext:
    """Resolve the caller from the bearer token."""
    if not credentials:
        raise AuthenticationMissing("Not authenticated")

    user_id = decode_access_token(credentials.credentials)
    user = await db.get(User, user_id)
    if user is None:
        raise AuthenticationMissing("User not found")
    if not user.is_active:
        raise AuthorizationDenied("User account is disabled")

    structlog.contextvars.bind_contextvars(user_id=str(user.id), role=user.role)
    return RequestContext(user_id=user.id, role=user.role, user=user)


Context = Annotated[RequestContext, Depends(get_request_context)]


# ---------------------------------------------------------------------------
# Predicate builders
# ---------------------------------------------------------------------------

Predicate = Callable[[RequestContext], ColumnElement[bool]]


def managed_project_ids(ctx: RequestContext) -> Select:
    return select(ProjectManager.project_id).where(ProjectManager.user_id == ctx.user_id)


def owned_project_ids(ctx: RequestContext) -> Select:
    return select(Project.id).where(Project.client_id == ctx.user_id)


def visible_project_ids(ctx: RequestContext) -> Select | None:
    """Sub-select of projects the caller can see; ``None`` means unrestricted."""
    if ctx.is_admin:
        return None
    if ctx.is_manager:
        return managed_project_ids(ctx)
    if ctx.is_client:
        return owned_project_ids(ctx)
    return select(Project.id).where(false())


def _anything(ctx: RequestContext) -> ColumnElement[bool]:
    return true()


def _in_visible_projects(column: Any) -> Predicate:
    def build(ctx: RequestContext) -> ColumnElement[bool]:
        project_ids = visible_project_ids(ctx)
        if project_ids is None:
            return true()
        return column.in_(project_ids)

    return build


def _in_managed_projects(column: Any) -> Predicate:
    def build(ctx: RequestContext) -> ColumnElement[bool]:
        return column.in_(managed_project_ids(ctx))

    return build


def _column_is_caller(column: Any) -> Predicate:
    def build(ctx: RequestContext) -> ColumnElement[bool]:
        return column == ctx.user_id

    return build


def _client_project(ctx: RequestContext) -> ColumnElement[bool]:
    return Project.client_id == ctx.user_id


def _task_contributor(ctx: RequestContext) -> ColumnElement[bool]:
    return or_(Task.assignee_id == ctx.user_id, Task.created_by_id == ctx.user_id)


def _managed_task_or_contributor(ctx: RequestContext) -> ColumnElement[bool]:
    return or_(Task.project_id.in_(managed_project_ids(ctx)), _task_contributor(ctx))


def _client_visible_file(ctx: RequestContext) -> ColumnElement[bool]:
    return and_(
        ProjectFile.project_id.in_(owned_project_ids(ctx)),
        ProjectFile.is_internal.is_(False),
    )


def _client_approved_report(ctx: RequestContext) -> ColumnElement[bool]:
    return and_(
        DailyReport.project_id.in_(owned_project_ids(ctx)),
        DailyReport.approved.is_(True),
    )


def _message_participant(ctx: RequestContext) -> ColumnElement[bool]:
    group_projects = visible_project_ids(ctx)
    group = Message.recipient_id.is_(None)
    if group_projects is not None:
        group = and_(group, Message.project_id.in_(group_projects))
    return and_(
        Message.is_deleted.is_(False),
        or_(Message.sender_id == ctx.user_id, Message.recipient_id == ctx.user_id, group),
    )


def _admin_messages(ctx: RequestContext) -> ColumnElement[bool]:
    return Message.is_deleted.is_(False)


def _calendar_participant(ctx: RequestContext) -> ColumnElement[bool]:
    return or_(
        CalendarEvent.created_by_id == ctx.user_id,
        CalendarEvent.attendees.any(User.id == ctx.user_id),
        _in_visible_projects(CalendarEvent.project_id)(ctx),
    )


def _manager_visible_users(ctx: RequestContext) -> ColumnElement[bool]:
    return User.role.in_([CLIENT, PROJECT_MANAGER])


@dataclass(frozen=True)
class Rule:
    """One row of the permission table."""

    target: type
    roles: dict[str, Predicate]


def _read_rule(model: type) -> Rule:
    predicate = _in_visible_projects(model.project_id)
    return Rule(model, {SUPER_ADMIN: predicate, PROJECT_MANAGER: predicate, CLIENT: predicate})


def _managed_rule(model: type, column: Any = None) -> Rule:
    """super_admin anywhere, managers on projects they manage."""
    column = column if column is not None else model.project_id
    return Rule(model, {SUPER_ADMIN: _anything, PROJECT_MANAGER: _in_managed_projects(column)})


PERMISSIONS: dict[tuple[str, str], Rule] = {
    # Projects
    ("project", "read"): Rule(
        Project,
        {
            SUPER_ADMIN: _anything,
            PROJECT_MANAGER: _in_managed_projects(Project.id),
            CLIENT: _client_project,
        },
    ),
    ("project", "create"): Rule(Project, {SUPER_ADMIN: _anything}),
    ("project", "update"): _managed_rule(Project, Project.id),
    ("project", "delete"): Rule(Project, {SUPER_ADMIN: _anything}),
    # Site schedule: writes are checked against the owning project
    ("schedule", "read"): _read_rule(ScheduleActivity),
    ("schedule", "update"): _managed_rule(Project, Project.id),
    ("activity", "read"): _read_rule(ScheduleActivity),
    ("activity", "update"): _managed_rule(ScheduleActivity),
    ("activity", "delete"): _managed_rule(ScheduleActivity),
    ("activity", "comment"): _read_rule(ScheduleActivity),
    # Tasks
    ("task", "read"): _read_rule(Task),
    ("task", "create"): _managed_rule(Project, Project.id),
    ("task", "update"): Rule(
        Task,
        {
            SUPER_ADMIN: _anything,
            PROJECT_MANAGER: _managed_task_or_contributor,
            CLIENT: _task_contributor,
        },
    ),
    ("task", "delete"): _managed_rule(Task),
    ("task", "comment"): _read_rule(Task),
    # Milestones
    ("milestone", "read"): _read_rule(Milestone),
    ("milestone", "create"): _managed_rule(Project, Project.id),
    ("milestone", "update"): _managed_rule(Milestone),
    # Risks
    ("risk", "read"): _read_rule(Risk),
    ("risk", "create"): _managed_rule(Project, Project.id),
    ("risk", "update"): _managed_rule(Risk),
    ("risk", "delete"): Rule(Risk, {SUPER_ADMIN: _anything}),
    # Daily reports: clients see approved reports only
    ("daily_report", "read"): Rule(
        DailyReport,
        {
            SUPER_ADMIN: _anything,
            PROJECT_MANAGER: _in_managed_projects(DailyReport.project_id),
            CLIENT: _client_approved_report,
        },
    ),
    ("daily_report", "create"): _managed_rule(Project, Project.id),
    ("daily_report", "update"): _managed_rule(DailyReport),
    ("daily_report", "approve"): Rule(DailyReport, {SUPER_ADMIN: _anything}),
    ("daily_report", "delete"): _managed_rule(DailyReport),
    # Incidents
    ("incident", "read"): _read_rule(Incident),
    ("incident", "create"): _managed_rule(Project, Project.id),
    ("incident", "update"): _managed_rule(Incident),
    ("incident", "delete"): Rule(Incident, {SUPER_ADMIN: _anything}),
    # Files
    ("file", "read"): Rule(
        ProjectFile,
        {
            SUPER_ADMIN: _anything,
            PROJECT_MANAGER: _in_managed_projects(ProjectFile.project_id),
            CLIENT: _client_visible_file,
        },
    ),
    ("file", "create"): _managed_rule(Project, Project.id),
    ("file", "delete"): Rule(
        ProjectFile,
        {SUPER_ADMIN: _anything, PROJECT_MANAGER: _column_is_caller(ProjectFile.uploaded_by_id)},
    ),
    # Messages
    ("message", "read"): Rule(
        Message,
        {SUPER_ADMIN: _admin_messages, PROJECT_MANAGER: _message_participant, CLIENT: _message_participant},
    ),
    ("message", "create"): Rule(
        Message, {SUPER_ADMIN: _anything, PROJECT_MANAGER: _anything, CLIENT: _anything}
    ),
    ("message", "update"): Rule(
        Message,
        {role: _column_is_caller(Message.recipient_id) for role in (SUPER_ADMIN, PROJECT_MANAGER, CLIENT)},
    ),
    ("message", "delete"): Rule(
        Message,
        {role: _column_is_caller(Message.sender_id) for role in (SUPER_ADMIN, PROJECT_MANAGER, CLIENT)},
    ),
    # Notifications are always recipient-scoped
    ("notification", "read"): Rule(
        Notification,
        {role: _column_is_caller(Notification.recipient_id) for role in (SUPER_ADMIN, PROJECT_MANAGER, CLIENT)},
    ),
    ("notification", "create"): Rule(
        Notification, {SUPER_ADMIN: _anything, PROJECT_MANAGER: _anything, CLIENT: _anything}
    ),
    ("notification", "update"): Rule(
        Notification,
        {role: _column_is_caller(Notification.recipient_id) for role in (SUPER_ADMIN, PROJECT_MANAGER, CLIENT)},
    ),
    ("notification", "delete"): Rule(
        Notification,
        {role: _column_is_caller(Notification.recipient_id) for role in (SUPER_ADMIN, PROJECT_MANAGER, CLIENT)},
    ),
    # Calendar
    ("calendar", "read"): Rule(
        CalendarEvent,
        {SUPER_ADMIN: _anything, PROJECT_MANAGER: _calendar_participant, CLIENT: _calendar_participant},
    ),
    ("calendar", "create"): Rule(
        CalendarEvent, {SUPER_ADMIN: _anything, PROJECT_MANAGER: _anything, CLIENT: _anything}
    ),
    ("calendar", "delete"): Rule(
        CalendarEvent,
        {
            SUPER_ADMIN: _anything,
            PROJECT_MANAGER: _column_is_caller(CalendarEvent.created_by_id),
            CLIENT: _column_is_caller(CalendarEvent.created_by_id),
        },
    ),
    # Users
    ("user", "read"): Rule(User, {SUPER_ADMIN: _anything, PROJECT_MANAGER: _manager_visible_users}),
    ("user", "create"): Rule(User, {SUPER_ADMIN: _anything}),
    ("user", "update"): Rule(User, {SUPER_ADMIN: _anything}),
}

# Entity whose read rule guards single lookups of each target model
_READ_ENTITY: dict[type, str] = {
    Project: "project",
    ScheduleActivity: "activity",
    Task: "task",
    Milestone: "milestone",
    Risk: "risk",
    ProjectFile: "file",
    DailyReport: "daily_report",
    Incident: "incident",
    Message: "message",
    Notification: "notification",
    CalendarEvent: "calendar",
    User: "user",
}

_ENTITY_LABELS: dict[str, str] = {
    "project": "Project",
    "schedule": "Project",
    "activity": "Activity",
    "task": "Task",
    "milestone": "Milestone",
    "risk": "Risk",
    "file": "File",
    "daily_report": "Daily report",
    "incident": "Incident",
    "message": "Message",
    "notification": "Notification",
    "calendar": "Event",
    "user": "User",
}


def rule_for(entity: str, operation: str) -> Rule:
    try:
        return PERMISSIONS[(entity, operation)]
    except KeyError:
        raise AuthorizationDenied() from None


def build_predicate(ctx: RequestContext, entity: str, operation: str) -> ColumnElement[bool]:
    """Predicate limiting ``entity`` rows to those ``ctx`` may ``operation``.

    Raises:
        AuthorizationDenied: the caller's role has no entry for this operation
    """
    builder = rule_for(entity, operation).roles.get(ctx.role)
    if builder is None:
        raise AuthorizationDenied()
    return builder(ctx)


def read_filter(ctx: RequestContext, entity: str) -> ColumnElement[bool]:
    return build_predicate(ctx, entity, "read")


def can(ctx: RequestContext, entity: str, operation: str) -> bool:
    """Whether the caller's role appears in the row at all."""
    rule = PERMISSIONS.get((entity, operation))
    return rule is not None and ctx.role in rule.roles


@dataclass(frozen=True)
class Grant:
    """Outcome of :func:`authorize`: the caller and the predicate to apply."""

    ctx: RequestContext
    entity: str
    operation: str
    target: type
    predicate: ColumnElement[bool]

    @property
    def label(self) -> str:
        return _ENTITY_LABELS.get(self.entity, "Resource")


def authorize(entity: str, operation: str) -> Any:
    """Dependency evaluating the permission table once, ahead of the handler."""
    rule = rule_for(entity, operation)

    async def dependency(ctx: Context) -> Grant:
        predicate = build_predicate(ctx, entity, operation)
        return Grant(
            ctx=ctx,
            entity=entity,
            operation=operation,
            target=rule.target,
            predicate=predicate,
        )

    return Depends(dependency)


async def fetch_visible(
    db: AsyncSession,
    ctx: RequestContext,
    model: type,
    entity_id: UUID,
    *,
    label: str | None = None,
) -> Any:
    """Load one row within the caller's read scope, else raise NotFound."""
    entity = _READ_ENTITY[model]
    predicate = read_filter(ctx, entity)
    result = await db.execute(select(model).where(model.id == entity_id, predicate))
    instance = result.scalar_one_or_none()
    if instance is None:
        raise NotFound(label or _ENTITY_LABELS[entity])
    return instance


async def fetch_for(db: AsyncSession, grant: Grant, entity_id: UUID) -> Any:
    """Load the grant's target row, distinguishing invisible (404) from denied (403)."""
    model = grant.target
    instance = await fetch_visible(db, grant.ctx, model, entity_id)
    if grant.operation == "read":
        return instance

    allowed = await db.scalar(select(model.id).where(model.id == entity_id, grant.predicate))
    if allowed is None:
        logger.info(
            "access_denied",
            entity=grant.entity,
            operation=grant.operation,
            entity_id=str(entity_id),
        )
        raise AuthorizationDenied()
    return instance

