import asyncio

import pytest

from lifesync import entity_store
from lifesync.entity_store import (
    ACHIEVEMENTS, BADGES, HABIT_LOGS, HABITS, JOURNAL_ENTRIES, EntityStore, get_entity_store,
)
from lifesync.errors import ConflictError, NotFoundError
from lifesync.main import app

from .conftest import USER
from .fakes import FakeFirestore, run_transactional

USER_ID = USER.user_id


@pytest.fixture
def firestore_client(monkeypatch) -> FakeFirestore:
    monkeypatch.setattr(entity_store.firestore, "transactional", run_transactional)
    return FakeFirestore()


@pytest.fixture
def entities(firestore_client) -> EntityStore:
    return EntityStore(firestore_client)


def _docs(firestore_client: FakeFirestore, collection: str) -> dict:
    return firestore_client.collections[f"users/{USER_ID}/{collection}"]


def test_filter_orders_descending_and_limits(firestore_client, entities) -> None:
    _docs(firestore_client, JOURNAL_ENTRIES).update({
        "a": {"date": "2024-06-01"},
        "b": {"date": "2024-06-03"},
        "c": {"date": "2024-06-02"},
        "undated": {"mood": 3},
    })

    newest = asyncio.run(entities.filter(USER_ID, JOURNAL_ENTRIES, order_by="-date", limit=2))
    oldest = asyncio.run(entities.filter(USER_ID, JOURNAL_ENTRIES, order_by="date"))

    assert [r["id"] for r in newest] == ["b", "c"]
    assert [r["id"] for r in oldest] == ["a", "c", "b"]


def test_filter_applies_every_where_clause(firestore_client, entities) -> None:
    _docs(firestore_client, HABIT_LOGS).update({
        "x": {"date": "2024-06-01", "completed": True},
        "y": {"date": "2024-06-05", "completed": True},
        "z": {"date": "2024-06-06", "completed": False},
    })

    rows = asyncio.run(entities.filter(
        USER_ID, HABIT_LOGS, where=[("completed", "==", True), ("date", ">=", "2024-06-02")]
    ))

    assert rows == [{"date": "2024-06-05", "completed": True, "id": "y"}]


def test_filter_is_scoped_to_the_user(firestore_client, entities) -> None:
    firestore_client.collections[f"users/someone-else/{HABITS}"]["h9"] = {"name": "Swim"}

    assert asyncio.run(entities.filter(USER_ID, HABITS)) == []


def test_get(firestore_client, entities) -> None:
    _docs(firestore_client, HABITS)["h1"] = {"name": "Read"}

    assert asyncio.run(entities.get(USER_ID, HABITS, "h1")) == {"name": "Read", "id": "h1"}
    assert asyncio.run(entities.get(USER_ID, HABITS, "missing")) is None


def test_upsert_stamps_created_date_on_first_write_only(firestore_client, entities) -> None:
    first = asyncio.run(entities.upsert(USER_ID, ACHIEVEMENTS, "streak_7", {"name": "7 Day Streak"}))

    assert first["id"] == "streak_7"
    assert first["created_date"] == first["updated_date"]

    _docs(firestore_client, ACHIEVEMENTS)["streak_7"]["created_date"] = "2020-01-01T00:00:00.000000Z"
    second = asyncio.run(entities.upsert(USER_ID, ACHIEVEMENTS, "streak_7", {"icon": "🔥"}))

    stored = _docs(firestore_client, ACHIEVEMENTS)
    assert list(stored) == ["streak_7"]
    assert stored["streak_7"]["created_date"] == "2020-01-01T00:00:00.000000Z"
    assert stored["streak_7"]["name"] == "7 Day Streak"
    assert stored["streak_7"]["icon"] == "🔥"
    assert second["created_date"] == "2020-01-01T00:00:00.000000Z"
    assert second["updated_date"] != "2020-01-01T00:00:00.000000Z"


def test_update_versioned_bumps_version_and_writes_related_records(firestore_client, entities) -> None:
    _docs(firestore_client, HABITS)["h1"] = {"name": "Read", "version": 2, "current_streak": 1}
    log = {"habit_id": "h1", "date": "2024-06-03", "completed": True}

    result = asyncio.run(entities.update_versioned(
        USER_ID, HABITS, "h1", 2, {"current_streak": 2},
        related_writes=[(HABIT_LOGS, "h1_2024-06-03", log)],
    ))

    assert result["id"] == "h1"
    assert result["name"] == "Read"
    assert result["version"] == 3
    assert result["current_streak"] == 2
    assert _docs(firestore_client, HABITS)["h1"]["version"] == 3
    stored_log = _docs(firestore_client, HABIT_LOGS)["h1_2024-06-03"]
    assert stored_log["completed"] is True
    assert stored_log["created_date"] == stored_log["updated_date"]

    asyncio.run(entities.update_versioned(
        USER_ID, HABITS, "h1", 3, {"current_streak": 1},
        related_writes=[(HABIT_LOGS, "h1_2024-06-03", None)],
    ))

    assert _docs(firestore_client, HABIT_LOGS) == {}
    assert _docs(firestore_client, HABITS)["h1"]["version"] == 4


def test_update_versioned_with_stale_version_conflicts(firestore_client, entities) -> None:
    _docs(firestore_client, HABITS)["h1"] = {"name": "Read", "version": 2, "current_streak": 1}

    with pytest.raises(ConflictError) as excinfo:
        asyncio.run(entities.update_versioned(USER_ID, HABITS, "h1", 1, {"current_streak": 5}))

    assert excinfo.value.status_code == 409
    assert excinfo.value.details == {"id": "h1", "version": 2}
    assert _docs(firestore_client, HABITS)["h1"] == {"name": "Read", "version": 2, "current_streak": 1}


def test_update_versioned_missing_record(entities) -> None:
    with pytest.raises(NotFoundError) as excinfo:
        asyncio.run(entities.update_versioned(USER_ID, HABITS, "missing", 0, {"current_streak": 1}))

    assert excinfo.value.details == {"id": "missing"}


def test_update_versioned_failed_commit_changes_nothing(firestore_client, entities) -> None:
    _docs(firestore_client, HABITS)["h1"] = {"name": "Read", "version": 2, "current_streak": 1}
    firestore_client.fail_writes_to.add(HABIT_LOGS)

    with pytest.raises(RuntimeError):
        asyncio.run(entities.update_versioned(
            USER_ID, HABITS, "h1", 2, {"current_streak": 2},
            related_writes=[(HABIT_LOGS, "h1_2024-06-03", {"habit_id": "h1", "completed": True})],
        ))

    assert _docs(firestore_client, HABITS)["h1"] == {"name": "Read", "version": 2, "current_streak": 1}
    assert _docs(firestore_client, HABIT_LOGS) == {}


def test_bulk_create_global_keeps_record_ids(firestore_client, entities) -> None:
    count = asyncio.run(entities.bulk_create_global(BADGES, [
        {"id": "first_steps", "name": "First Steps"},
        {"name": "Unnamed"},
    ]))

    badges = firestore_client.collections[BADGES]
    assert count == 2
    assert badges["first_steps"]["name"] == "First Steps"
    assert "id" not in badges["first_steps"]
    assert "created_date" in badges["first_steps"]
    assert sorted(b["name"] for b in badges.values()) == ["First Steps", "Unnamed"]


def test_list_global(firestore_client, entities) -> None:
    firestore_client.collections[BADGES].update({
        "b1": {"name": "Early Bird", "category": "habits"},
        "b2": {"name": "Zen", "category": "mindfulness"},
    })

    rows = asyncio.run(entities.list_global(BADGES, where=[("category", "==", "mindfulness")]))

    assert rows == [{"name": "Zen", "category": "mindfulness", "id": "b2"}]


def test_toggle_habit_leaves_habit_untouched_when_log_write_fails(
    client, firestore_client, entities, auth_headers
) -> None:
    app.dependency_overrides[get_entity_store] = lambda: entities
    habit = {"name": "Read", "version": 1, "current_streak": 2, "longest_streak": 5}
    _docs(firestore_client, HABITS)["h1"] = dict(habit)
    firestore_client.fail_writes_to.add(HABIT_LOGS)

    failed = client.post("/api/toggleHabit", json={"habit_id": "h1", "version": 1}, headers=auth_headers)

    assert failed.status_code == 500
    assert failed.json()["success"] is False
    assert _docs(firestore_client, HABITS)["h1"] == habit
    assert _docs(firestore_client, HABIT_LOGS) == {}

    firestore_client.fail_writes_to.clear()
    retried = client.post("/api/toggleHabit", json={"habit_id": "h1", "version": 1}, headers=auth_headers)

    assert retried.status_code == 200
    assert retried.json()["current_streak"] == 3
    assert retried.json()["version"] == 2
    assert len(_docs(firestore_client, HABIT_LOGS)) == 1
