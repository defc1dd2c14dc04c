"""Tests for the legacy document import."""

import json
from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select

from designhub.models.project import Milestone, Project
from designhub.models.schedule import ScheduleActivity
from designhub.models.task import Task
from designhub.scripts import import_legacy_documents
from designhub.services.legacy_import import (
    import_documents,
    mapped_uuid,
    normalize_activity,
    normalize_managers,
    normalize_milestone,
    normalize_phase,
    normalize_status,
    normalize_task,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("todo", "to-do"),
        ("To Do", "to-do"),
        ("in progress", "in_progress"),
        ("completed", "completed"),
        ("cancelled", "to-do"),
        (None, "to-do"),
    ],
)
def test_normalize_status(raw, expected):
    assert normalize_status(raw) == expected


def test_singular_manager_becomes_list():
    assert normalize_managers({"manager": {"$oid": "abc"}}) == [mapped_uuid("abc")]
    assert normalize_managers({"managers": ["a", "a", "b"]}) == [mapped_uuid("a"), mapped_uuid("b")]
    assert normalize_managers({}) == []


def test_mapped_uuid_is_stable():
    assert mapped_uuid("65f1c0") == mapped_uuid({"$oid": "65f1c0"})
    assert mapped_uuid(None) is None


def test_planned_date_becomes_start_and_end():
    activity = normalize_activity(
        {"title": "Lay flooring", "plannedDate": "2024-03-04", "actualDate": "2024-03-05"}
    )

    planned = datetime(2024, 3, 4, tzinfo=timezone.utc)
    assert activity["start_date"] == planned
    assert activity["end_date"] == planned
    assert activity["actual_end_date"] == datetime(2024, 3, 5, tzinfo=timezone.utc)
    assert activity["status"] == "to-do"
    assert activity["progress"] == 0


def test_nested_phase_is_flattened():
    phase = normalize_phase(
        {
            "name": "Build",
            "weeks": [
                {
                    "weekNumber": 2,
                    "days": [
                        {"dayNumber": 3, "activities": [{"title": "Frame walls", "status": "completed"}]}
                    ],
                }
            ],
            "activities": [{"title": "Snagging"}],
        }
    )

    assert [(a["title"], a["week_number"], a["day_number"]) for a in phase["activities"]] == [
        ("Frame walls", 2, 3),
        ("Snagging", 1, 1),
    ]
    assert phase["activities"][0]["progress"] == 100


def test_numbers_written_as_text_are_read_leniently():
    activity = normalize_activity(
        {"title": "Paint", "weekNumber": "Week 2", "dayNumber": "day three", "progress": "50%"}
    )

    assert activity["week_number"] == 2
    assert activity["day_number"] == 1
    assert activity["progress"] == 50

    assert normalize_task({"title": "Order tiles", "progress": "50%"})["progress"] == 50
    assert normalize_task({"title": "Order tiles", "progress": "250"})["progress"] == 100
    assert normalize_task({"title": "Order tiles", "progress": "n/a"})["progress"] == 0


def test_milestone_phase_from_title():
    milestone = normalize_milestone({"title": "Styling Phase", "status": "delayed"})

    assert milestone["phase"] == "styling"
    assert milestone["status"] == "in_progress"


EXPORT = {
    "users": [
        {"_id": {"$oid": "u1"}, "email": "Pat@Example.com", "name": "Pat", "role": "project_manager"},
        {"_id": {"$oid": "u2"}, "email": "kim@example.com", "name": "Kim", "role": "client"},
        {"_id": {"$oid": "u3"}, "email": "", "name": "Nobody"},
    ],
    "projects": [
        {
            "_id": {"$oid": "p1"},
            "title": "Harbour View",
            "description": "Two-storey townhouse refit.",
            "client": {"$oid": "u2"},
            "manager": {"$oid": "u1"},
            "status": "in_progress",
            "siteSchedule": {
                "phases": [
                    {
                        "name": "Build",
                        "activities": [
                            {"title": "Demolish", "status": "completed"},
                            {"title": "Rewire", "status": "todo"},
                        ],
                    }
                ]
            },
            "milestones": [{"title": "Construction", "phase": "construction"}],
        },
        {"_id": {"$oid": "p2"}, "title": "Orphan", "client": {"$oid": "zz"}},
    ],
    "milestones": [
        {"_id": {"$oid": "m1"}, "projectId": {"$oid": "p1"}, "title": "Installation Phase"},
        {"_id": {"$oid": "m2"}, "projectId": {"$oid": "p1"}, "title": "Construction again"},
    ],
    "tasks": [
        {"_id": {"$oid": "t1"}, "projectId": {"$oid": "p1"}, "title": "Order fittings", "status": "todo"},
        {"_id": {"$oid": "t2"}, "projectId": {"$oid": "nope"}, "title": "Lost task"},
    ],
}


async def test_import_documents(session_factory):
    async with session_factory() as session:
        report = await import_documents(session, EXPORT)
        await session.commit()

    assert report.users == 2
    assert report.projects == 1
    assert report.milestones == 3
    assert report.activities == 2
    assert report.tasks == 1
    assert any("unknown client" in w for w in report.warnings)

    async with session_factory() as session:
        project = await session.get(Project, mapped_uuid("p1"))
        assert project.manager_ids == [mapped_uuid("u1")]
        assert project.progress == 50
        assert (project.total_activities, project.completed_activities) == (2, 1)
        assert sorted(m.phase or "" for m in project.milestones) == ["", "construction", "installation"]

        statuses = (
            await session.execute(
                select(ScheduleActivity.status).order_by(ScheduleActivity.position)
            )
        ).scalars().all()
        assert statuses == ["completed", "to-do"]

        task = await session.get(Task, mapped_uuid("t1"))
        assert task.status == "pending"


async def test_reimport_skips_existing_rows(session_factory):
    async with session_factory() as session:
        await import_documents(session, EXPORT)
        await session.commit()

    async with session_factory() as session:
        report = await import_documents(session, EXPORT)
        await session.commit()

    assert (report.users, report.projects, report.milestones, report.tasks) == (0, 0, 0, 0)

    async with session_factory() as session:
        assert await session.scalar(select(func.count(Project.id))) == 1
        assert await session.scalar(select(func.count(Milestone.id))) == 3


async def test_import_tolerates_text_numbers(session_factory):
    export = {
        "users": EXPORT["users"][:2],
        "projects": [
            {
                "_id": {"$oid": "p3"},
                "title": "Garden Room",
                "client": {"$oid": "u2"},
                "manager": {"$oid": "u1"},
                "siteSchedule": {
                    "phases": [
                        {
                            "name": "Fit-out",
                            "weeks": [
                                {
                                    "weekNumber": "Week 4",
                                    "days": [{"activities": [{"title": "Glaze", "progress": "80%"}]}],
                                }
                            ],
                        }
                    ]
                },
            }
        ],
        "tasks": [{"_id": {"$oid": "t3"}, "projectId": {"$oid": "p3"}, "progress": "25 %"}],
    }

    async with session_factory() as session:
        report = await import_documents(session, export)
        await session.commit()

    assert (report.projects, report.activities, report.tasks) == (1, 1, 1)
    async with session_factory() as session:
        activity = await session.scalar(select(ScheduleActivity))
        assert (activity.week_number, activity.progress) == (4, 80)
        assert (await session.get(Task, mapped_uuid("t3"))).progress == 25


def test_command_line_arguments():
    parser = import_legacy_documents.build_parser()

    args = parser.parse_args(["export.json", "--dry-run"])
    assert (str(args.path), args.dry_run) == ("export.json", True)
    assert parser.parse_args(["export.json"]).dry_run is False

    with pytest.raises(SystemExit):
        parser.parse_args([])


def test_missing_export_file_is_rejected(tmp_path):
    with pytest.raises(SystemExit) as exc_info:
        import_legacy_documents.main([str(tmp_path / "missing.json")])

    assert exc_info.value.code == 2


async def test_dry_run_writes_nothing(session_factory, monkeypatch, tmp_path):
    path = tmp_path / "export.json"
    path.write_text(json.dumps(EXPORT), encoding="utf-8")
    monkeypatch.setattr(import_legacy_documents, "async_session_factory", session_factory)

    report = await import_legacy_documents.run_import(path, dry_run=True)

    assert report.projects == 1
    async with session_factory() as session:
        assert await session.scalar(select(func.count(Project.id))) == 0
