"""Tests for sort parsing and pagination arithmetic."""

import pytest

from designhub.exceptions import ValidationFailed
from designhub.models.project import Project
from designhub.services.pagination import PageParams, Pagination, order_clauses

SORTABLE = {"title": Project.title, "created_at": Project.created_at}


@pytest.mark.parametrize(
    "page, limit, total, total_pages, has_next, has_prev",
    [
        (1, 10, 0, 0, False, False),
        (1, 10, 10, 1, False, False),
        (1, 10, 11, 2, True, False),
        (2, 10, 11, 2, False, True),
        (5, 10, 11, 2, False, True),
    ],
)
def test_pagination(page, limit, total, total_pages, has_next, has_prev):
    pagination = Pagination(page=page, limit=limit, total=total)

    assert pagination.total_pages == total_pages
    assert pagination.has_next is has_next
    assert pagination.has_prev is has_prev


def test_offset():
    assert PageParams(page=3, limit=20).offset == 40


def test_order_clauses_direction():
    (ascending,) = order_clauses("title", SORTABLE, "-created_at")
    (descending,) = order_clauses(None, SORTABLE, "-created_at")

    assert str(ascending) == "projects.title ASC"
    assert str(descending) == "projects.created_at DESC"


def test_order_clauses_rejects_unknown_field():
    with pytest.raises(ValidationFailed) as exc_info:
        order_clauses("-password_hash", SORTABLE, "-created_at")

    assert exc_info.value.details == [
        {"field": "sort", "message": "Cannot sort by 'password_hash'. Allowed: created_at, title"}
    ]
