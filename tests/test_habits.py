from datetime import timedelta

from lifesync.entity_store import ACHIEVEMENTS, HABIT_LOGS, HABITS, JOURNAL_ENTRIES, USER_PROFILES
from lifesync.habits import log_id, streak_after_toggle
from lifesync.utils import today_local


def _day(offset: int) -> str:
    return (today_local() - timedelta(days=offset)).isoformat()


def test_streak_after_toggle_never_negative() -> None:
    assert streak_after_toggle({"current_streak": 0, "longest_streak": 4}, completed=False) == (0, 4)
    assert streak_after_toggle({"current_streak": 4, "longest_streak": 4}, completed=True) == (5, 5)
    assert streak_after_toggle({}, completed=True) == (1, 1)


def test_toggle_habit_on_and_off(client, store, user, auth_headers) -> None:
    store.seed(user.user_id, HABITS,
               {"id": "h1", "name": "Read", "current_streak": 6, "longest_streak": 6, "version": 2})

    on = client.post("/api/toggleHabit", json={"habit_id": "h1", "version": 2}, headers=auth_headers)

    assert on.status_code == 200
    body = on.json()
    assert body["completed"] is True
    assert body["current_streak"] == 7
    assert body["longest_streak"] == 7
    assert body["version"] == 3
    assert body["celebration"] == {"streak": 7, "habitName": "Read"}
    assert [log["id"] for log in store.all(user.user_id, HABIT_LOGS)] == [log_id("h1", _day(0))]

    off = client.post("/api/toggleHabit", json={"habit_id": "h1", "version": 3}, headers=auth_headers).json()

    assert off["completed"] is False
    assert off["current_streak"] == 6
    assert off["longest_streak"] == 7
    assert off["celebration"] is None
    assert store.all(user.user_id, HABIT_LOGS) == []


def test_toggle_habit_with_stale_version_conflicts(client, store, user, auth_headers) -> None:
    store.seed(user.user_id, HABITS, {"id": "h1", "name": "Read", "current_streak": 1, "version": 3})

    response = client.post("/api/toggleHabit", json={"habit_id": "h1", "version": 2}, headers=auth_headers)

    assert response.status_code == 409
    assert response.json() == {
        "success": False,
        "error": "Record was modified by another request",
        "id": "h1",
        "version": 3,
    }
    assert store.all(user.user_id, HABITS)[0]["current_streak"] == 1
    assert store.all(user.user_id, HABIT_LOGS) == []


def test_toggle_unknown_habit(client, auth_headers) -> None:
    response = client.post("/api/toggleHabit", json={"habit_id": "missing", "version": 0}, headers=auth_headers)

    assert response.status_code == 404
    assert response.json()["success"] is False


def test_toggle_habit_rejects_bad_date(client, store, user, auth_headers) -> None:
    store.seed(user.user_id, HABITS, {"id": "h1", "name": "Read"})

    response = client.post(
        "/api/toggleHabit", json={"habit_id": "h1", "version": 0, "date": "yesterday"}, headers=auth_headers
    )

    assert response.status_code == 400


def test_toggle_habit_requires_version(client, auth_headers) -> None:
    response = client.post("/api/toggleHabit", json={"habit_id": "h1"}, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_dashboard_stats(client, store, user, auth_headers) -> None:
    store.seed(user.user_id, HABITS,
               {"id": "h1", "name": "Read", "is_active": True},
               {"id": "h2", "name": "Run", "is_active": True},
               {"id": "h3", "name": "Stretch", "is_active": True},
               {"id": "h4", "name": "Old", "is_active": False})
    logs = [{"habit_id": h, "date": _day(i), "completed": True} for h in ("h1", "h2") for i in range(7)]
    logs.append({"habit_id": "h3", "date": _day(0), "completed": True})
    logs.append({"habit_id": "h3", "date": _day(0), "completed": True})
    logs.append({"habit_id": "h3", "date": _day(10), "completed": True})
    store.seed(user.user_id, HABIT_LOGS, *logs)
    store.seed(user.user_id, JOURNAL_ENTRIES, {"content": "a"}, {"content": "b"})
    store.seed(user.user_id, ACHIEVEMENTS, {"name": "First Habit"})
    store.seed(user.user_id, USER_PROFILES, {"streak_days": 12})

    body = client.post("/api/getDashboardStats", headers=auth_headers).json()

    assert body == {
        "success": True,
        "habitRate": 71,
        "totalReflections": 2,
        "achievements": 1,
        "streakDays": 12,
    }


def test_dashboard_stats_empty(client, auth_headers) -> None:
    body = client.post("/api/getDashboardStats", headers=auth_headers).json()

    assert body["habitRate"] == 0
    assert body["streakDays"] == 0


def test_progress_stats_unlocks_achievements_once(client, store, user, auth_headers) -> None:
    store.seed(user.user_id, HABITS, {"id": "h1", "name": "Read", "is_active": True, "longest_streak": 2})
    store.seed(user.user_id, HABIT_LOGS,
               *[{"habit_id": "h1", "date": _day(i), "completed": True} for i in range(1, 8)])
    store.seed(user.user_id, JOURNAL_ENTRIES, {"content": "thanks", "gratitude": ["sunshine"]})

    first = client.post("/api/getProgressStats", headers=auth_headers).json()

    assert first["overallRate"] == 23
    assert first["currentStreak"] == 7
    assert first["longestStreak"] == 7
    assert [a["key"] for a in first["newAchievements"]] == ["streak_7", "first_habit", "journal_1"]
    assert first["achievements"] == 3

    second = client.post("/api/getProgressStats", headers=auth_headers).json()

    assert second["newAchievements"] == []
    assert second["achievements"] == 3
    assert len(store.all(user.user_id, ACHIEVEMENTS)) == 3


def test_toggle_habit_keeps_streak_when_log_write_fails(client, store, user, auth_headers) -> None:
    store.seed(user.user_id, HABITS, {"id": "h1", "name": "Read", "current_streak": 2, "version": 1})
    store.fail_writes_to.add(HABIT_LOGS)

    response = client.post("/api/toggleHabit", json={"habit_id": "h1", "version": 1}, headers=auth_headers)

    assert response.status_code == 500
    habit = store.all(user.user_id, HABITS)[0]
    assert habit["current_streak"] == 2
    assert habit["version"] == 1
    assert store.all(user.user_id, HABIT_LOGS) == []


def test_progress_stats_ignores_logs_of_inactive_habits(client, store, user, auth_headers) -> None:
    store.seed(user.user_id, HABITS,
               {"id": "h1", "name": "Read", "is_active": True},
               {"id": "h2", "name": "Walk", "is_active": True},
               {"id": "h3", "name": "Old habit", "is_active": False})
    store.seed(user.user_id, HABIT_LOGS,
               *[{"habit_id": habit_id, "date": _day(i), "completed": True}
                 for habit_id in ("h1", "h2", "h3") for i in range(1, 4)])

    body = client.post("/api/getProgressStats", headers=auth_headers).json()

    assert body["currentStreak"] == 3
    assert body["longestStreak"] == 3
    assert body["overallRate"] == 10
