"""Schemas and helpers shared by every router."""

from datetime import datetime
from typing import Annotated, Any, Generic, TypeVar
from uuid import UUID

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from designhub.services.pagination import Pagination
from designhub.utils.dates import ensure_aware

T = TypeVar("T")

# Aware datetimes in and out; SQLite hands back naive values
Timestamp = Annotated[datetime, AfterValidator(ensure_aware)]


class APIModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class UserSummary(APIModel):
    """Referenced user without credential fields."""

    id: UUID
    name: str
    email: str
    role: str
    avatar_url: str | None = None


class ProjectRef(APIModel):
    id: UUID
    title: str


class CommentResponse(APIModel):
    """Task or activity comment."""

    id: UUID
    content: str
    is_internal: bool
    author: UserSummary | None = None
    created_at: Timestamp


class PaginationMeta(APIModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class Page(APIModel, Generic[T]):
    items: list[T]
    pagination: PaginationMeta


class Envelope(APIModel, Generic[T]):
    """Uniform response wrapper."""

    success: bool = True
    data: T | None = None
    error: str | None = None
    message: str | None = None


class Deleted(APIModel):
    id: UUID


def ok(data: Any = None, message: str | None = None) -> dict[str, Any]:
    return {"success": True, "data": data, "message": message}


def paged(items: list[Any], pagination: Pagination) -> dict[str, Any]:
    return {"items": items, "pagination": pagination.to_dict()}


def user_summary(user: Any) -> dict[str, Any] | None:
    if user is None:
        return None
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "avatar_url": user.avatar_url,
    }
