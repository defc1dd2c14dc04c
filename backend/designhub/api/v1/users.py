"""User management endpoints."""

from typing import Annotated
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, status
from pydantic import EmailStr, Field
from sqlalchemy import func, or_, select

from designhub.api.v1.common import APIModel, Envelope, Page, Timestamp, ok, paged
from designhub.db.session import DBSession, refetch
from designhub.exceptions import Conflict, ValidationFailed
from designhub.models.enums import Role
from designhub.models.project import Project, ProjectManager
from designhub.models.user import User
from designhub.services.access_control import Grant, authorize, fetch_for
from designhub.services.pagination import PageParams, page_params, paginate
from designhub.services.security import hash_password

router = APIRouter()
logger = structlog.get_logger()

USER_SORT_FIELDS = {
    "name": User.name,
    "email": User.email,
    "role": User.role,
    "created_at": User.created_at,
}


class UserResponse(APIModel):
    """User information response."""

    id: UUID
    email: str
    name: str
    role: str
    phone: str | None = None
    avatar_url: str | None = None
    is_active: bool
    last_login_at: Timestamp | None = None
    created_at: Timestamp
    updated_at: Timestamp


class UserCreate(APIModel):
    email: EmailStr
    name: str = Field(..., min_length=2, max_length=100)
    role: Role
    password: str = Field(..., min_length=8, max_length=128)
    phone: str | None = Field(None, max_length=32)
    avatar_url: str | None = Field(None, max_length=500)


class UserUpdate(APIModel):
    name: str | None = Field(None, min_length=2, max_length=100)
    role: Role | None = None
    is_active: bool | None = None
    phone: str | None = Field(None, max_length=32)
    avatar_url: str | None = Field(None, max_length=500)
    password: str | None = Field(None, min_length=8, max_length=128)


async def email_taken(db: DBSession, email: str, exclude_id: UUID | None = None) -> bool:
    query = select(User.id).where(func.lower(User.email) == email.lower())
    if exclude_id is not None:
        query = query.where(User.id != exclude_id)
    return (await db.execute(query)).first() is not None


async def assignment_count(db: DBSession, user: User) -> int:
    """Projects that reference the user through their current role."""
    if user.role == "project_manager":
        query = select(func.count()).where(ProjectManager.user_id == user.id)
    elif user.role == "client":
        query = select(func.count(Project.id)).where(Project.client_id == user.id)
    else:
        return 0
    return (await db.execute(query)).scalar() or 0


@router.get("", response_model=Envelope[Page[UserResponse]])
async def list_users(
    grant: Annotated[Grant, authorize("user", "read")],
    db: DBSession,
    params: Annotated[PageParams, Depends(page_params)],
    role: Role | None = None,
    is_active: bool | None = Query(None, alias="isActive"),
    search: str | None = Query(None, max_length=100),
) -> dict:
    """List users. Managers only see clients and other managers."""
    query = select(User).where(grant.predicate)
    if role:
        query = query.where(User.role == role)
    if is_active is not None:
        query = query.where(User.is_active.is_(is_active))
    if search:
        query = query.where(
            or_(User.name.ilike(f"%{search}%"), User.email.ilike(f"%{search}%"))
        )

    users, pagination = await paginate(
        db, query, params, USER_SORT_FIELDS, default_sort="name", tiebreaker=User.id
    )
    return ok(paged(users, pagination))


@router.post("", response_model=Envelope[UserResponse], status_code=status.HTTP_201_CREATED)
async def create_user(
    data: UserCreate,
    grant: Annotated[Grant, authorize("user", "create")],
    db: DBSession,
) -> dict:
    """Create a user account (super_admin only)."""
    email = data.email.lower()
    if await email_taken(db, email):
        raise Conflict("A user with this email already exists")

    user = User(
        email=email,
        name=data.name.strip(),
        role=data.role,
        phone=data.phone,
        avatar_url=data.avatar_url,
        password_hash=hash_password(data.password),
        is_active=True,
    )
    db.add(user)
    user = await refetch(db, user)
    await db.commit()

    logger.info("user_created", user_id=str(user.id), role=user.role, created_by=str(grant.ctx.user_id))
    return ok(user, "User created successfully")


@router.get("/{user_id}", response_model=Envelope[UserResponse])
async def get_user(
    user_id: UUID,
    grant: Annotated[Grant, authorize("user", "read")],
    db: DBSession,
) -> dict:
    return ok(await fetch_for(db, grant, user_id))


@router.patch("/{user_id}", response_model=Envelope[UserResponse])
async def update_user(
    user_id: UUID,
    data: UserUpdate,
    grant: Annotated[Grant, authorize("user", "update")],
    db: DBSession,
) -> dict:
    """Update a user's profile, role or active flag (super_admin only)."""
    user = await fetch_for(db, grant, user_id)
    updates = data.model_dump(exclude_unset=True)

    if user.id == grant.ctx.user_id:
        if updates.get("is_active") is False:
            raise ValidationFailed("You cannot deactivate your own account", field="isActive")
        if "role" in updates and updates["role"] != user.role:
            raise ValidationFailed("You cannot change your own role", field="role")

    for field in ("name", "role", "is_active"):
        if field in updates and updates[field] is None:
            raise ValidationFailed(f"{field} cannot be empty", field=field)

    if updates.get("role", user.role) != user.role:
        assigned = await assignment_count(db, user)
        if assigned:
            raise Conflict(
                f"User is still assigned to {assigned} project(s); "
                "reassign them before changing the role"
            )

    password = updates.pop("password", None)
    if password:
        user.password_hash = hash_password(password)
    for field, value in updates.items():
        if field == "name" and value is not None:
            value = value.strip()
        setattr(user, field, value)

    user = await refetch(db, user)
    await db.commit()

    logger.info("user_updated", user_id=str(user.id), fields=sorted(updates))
    return ok(user, "User updated successfully")
