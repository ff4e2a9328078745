from lifesync.entity_store import GOALS, HABITS, JOURNAL_ENTRIES, VALUES
from lifesync.suggestions import (
    GOAL_SUGGESTIONS_SCHEMA, HABIT_SUGGESTIONS_SCHEMA, NO_VALUES_MESSAGE, category_breakdown, journal_themes,
)


def test_journal_themes_budget() -> None:
    entries = [{"content": "a" * 300}, {"content": "b" * 300}]

    themes = journal_themes(entries, 500)

    assert len(themes) == 500
    assert themes.startswith("a" * 300 + " b")
    assert journal_themes([], 500) == "No recent journal entries"


def test_category_breakdown_defaults_to_other() -> None:
    breakdown = category_breakdown([{"category": "health"}, {"category": "health"}, {}])

    assert breakdown == {"health": 2, "other": 1}


def test_goal_suggestions_require_values(client, store, llm, user, auth_headers) -> None:
    store.seed(user.user_id, GOALS, {"title": "Run 5k", "status": "active"})

    response = client.post("/api/generateGoalSuggestions", headers=auth_headers)

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": NO_VALUES_MESSAGE}
    assert llm.calls == []


def test_habit_suggestions_require_values(client, llm, auth_headers) -> None:
    response = client.post("/api/generateHabitSuggestions", headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["error"] == NO_VALUES_MESSAGE
    assert llm.calls == []


def test_goal_suggestions(client, store, llm, user, auth_headers) -> None:
    store.seed(user.user_id, VALUES,
               {"id": "v1", "name": "Health", "description": "Feel strong"},
               {"id": "v2", "name": "Family"})
    store.seed(user.user_id, GOALS,
               {"title": "Run 5k", "status": "active"}, {"title": "Read 12 books", "status": "completed"})
    store.seed(user.user_id, HABITS, *[{"name": f"Habit {i}", "is_active": i % 2 == 0} for i in range(7)])
    store.seed(user.user_id, JOURNAL_ENTRIES, {"content": "Wanted more time outdoors"})
    suggestion = {"title": "Hike monthly", "value_id": "v1", "why": "You enjoy being outside"}
    llm.response = {"suggestions": [suggestion]}

    body = client.post("/api/generateGoalSuggestions", headers=auth_headers).json()

    assert body["success"] is True
    assert body["suggestions"] == [suggestion]
    assert [v["id"] for v in body["values"]] == ["v1", "v2"]

    prompt, schema = llm.calls[0]
    assert schema is GOAL_SUGGESTIONS_SCHEMA
    assert "- Health: Feel strong" in prompt
    assert "- Family: No description" in prompt
    assert "- Run 5k (active)" in prompt
    assert "- Read 12 books (completed)" in prompt
    assert "- Habit 4" in prompt
    assert "- Habit 5" not in prompt
    assert "Wanted more time outdoors" in prompt
    assert "choose from: v1, v2" in prompt


def test_habit_suggestions(client, store, llm, user, auth_headers) -> None:
    store.seed(user.user_id, VALUES, {"id": "v1", "name": "Health"})
    store.seed(user.user_id, GOALS,
               {"title": "Sleep better", "status": "active", "progress": 30},
               {"title": "Old goal", "status": "completed"})
    store.seed(user.user_id, HABITS,
               {"name": "Walk", "category": "health", "done_criteria": "20 minutes", "is_active": True},
               {"name": "Stretch", "category": "health", "is_active": True},
               {"name": "Journal", "is_active": True},
               {"name": "Retired", "category": "finance", "is_active": False})
    llm.response = {"suggestions": [{"name": "Evening wind-down", "times_per_week": 5}]}

    body = client.post("/api/generateHabitSuggestions", headers=auth_headers).json()

    assert body["suggestions"][0]["name"] == "Evening wind-down"
    assert body["suggestions"][0]["times_per_week"] == 5

    prompt, schema = llm.calls[0]
    assert schema is HABIT_SUGGESTIONS_SCHEMA
    assert "- Sleep better (Progress: 30%)" in prompt
    assert "Old goal" not in prompt
    assert "CURRENT HABITS (3 total)" in prompt
    assert "- Walk [health] - 20 minutes" in prompt
    assert "- health: 2\n- other: 1" in prompt
    assert "Retired" not in prompt
    assert "No recent journal entries" in prompt
