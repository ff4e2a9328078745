"""
suggestions.py - Goal and habit suggestions aligned with the user's core values

Both endpoints need at least one stored core value: suggestions are always
tied to a value id, so without values there is nothing to align with and the
request fails with a 400 before the LLM is called.
"""

import asyncio
import logging
from collections import Counter

from fastapi import APIRouter, Depends

from .auth import CurrentUser, get_current_user
from .entity_store import GOALS, HABITS, JOURNAL_ENTRIES, VALUES, EntityStore, get_entity_store
from .errors import InsufficientDataError, LifeSyncError, UpstreamError
from .gcp_clients import VertexLLM, fill_schema_defaults, get_llm
from .utils import excerpt

_logger = logging.getLogger(__name__)
router = APIRouter()

NO_VALUES_MESSAGE = "No core values found. Please set up your values first."
GOAL_JOURNAL_BUDGET = 500
HABIT_JOURNAL_BUDGET = 400

GOAL_SUGGESTIONS_SCHEMA = {
    "type": "object",
    "properties": {
        "suggestions": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "title": {"type": "string"},
                    "description": {"type": "string"},
                    "value_id": {"type": "string"},
                    "suggested_target_date": {"type": "string"},
                    "why": {"type": "string"},
                },
            },
        },
    },
}

HABIT_SUGGESTIONS_SCHEMA = {
    "type": "object",
    "properties": {
        "suggestions": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "description": {"type": "string"},
                    "category": {"type": "string"},
                    "done_criteria": {"type": "string"},
                    "frequency": {"type": "string"},
                    "times_per_week": {"type": "number"},
                    "value_id": {"type": "string"},
                    "icon": {"type": "string"},
                    "why": {"type": "string"},
                },
            },
        },
    },
}


def journal_themes(entries: list, budget: int) -> str:
    """All entry contents joined by spaces, cut to `budget` characters."""
    if not entries:
        return "No recent journal entries"
    return excerpt(" ".join(e.get("content") or "" for e in entries), budget)


def _values_list(values: list) -> str:
    return "\n".join(f"- {v.get('name')}: {v.get('description') or 'No description'}" for v in values)


def _build_goal_prompt(values: list, goals: list, habits: list, entries: list) -> str:
    existing_goals = "\n".join(f"- {g.get('title')} ({g.get('status')})" for g in goals)
    habits_list = "\n".join(f"- {h.get('name')}" for h in habits[:5])
    value_ids = ", ".join(str(v.get("id")) for v in values)

    prompt = (
        "You are a personal development coach helping someone set meaningful goals aligned with their core values.\n\n"
        f"USER'S CORE VALUES:\n{_values_list(values)}\n\n"
        f"EXISTING GOALS:\n{existing_goals or 'No goals yet'}\n\n"
        f"CURRENT HABITS:\n{habits_list or 'No habits yet'}\n\n"
        f"RECENT JOURNAL THEMES (last 10 entries):\n{journal_themes(entries, GOAL_JOURNAL_BUDGET)}\n\n"
    )
    prompt += (
        "Based on this information, suggest 3-5 specific, actionable goals that:\n"
        "1. Are directly aligned with their core values\n"
        "2. Build on their existing habits and activities\n"
        "3. Address gaps in their personal development\n"
        "4. Are SMART (Specific, Measurable, Achievable, Relevant, Time-bound)\n\n"
        "For each goal suggestion, provide:\n"
        "- title: A clear, concise goal title\n"
        "- description: Detailed description of what this goal entails and why it matters\n"
        f"- value_id: The ID of the core value this aligns with most (choose from: {value_ids})\n"
        "- suggested_target_date: A realistic target date (format: YYYY-MM-DD, should be 1-6 months from now)\n"
        "- why: A brief explanation of why this goal is recommended based on their values and activity"
    )
    return prompt


def category_breakdown(habits: list) -> Counter:
    return Counter(h.get("category") or "other" for h in habits)


def _build_habit_prompt(values: list, goals: list, habits: list, entries: list) -> str:
    goals_list = "\n".join(f"- {g.get('title')} (Progress: {g.get('progress') or 0}%)" for g in goals)
    habit_lines = []
    for h in habits:
        category = f" [{h['category']}]" if h.get("category") else ""
        criteria = f" - {h['done_criteria']}" if h.get("done_criteria") else ""
        habit_lines.append(f"- {h.get('name')}{category}{criteria}")
    habits_text = "\n".join(habit_lines)
    breakdown = "\n".join(f"- {cat}: {count}" for cat, count in category_breakdown(habits).items())
    value_ids = ", ".join(str(v.get("id")) for v in values)

    prompt = (
        "You are a personal development coach helping someone build better habits aligned with "
        "their core values and goals.\n\n"
        f"USER'S CORE VALUES:\n{_values_list(values)}\n\n"
        f"ACTIVE GOALS:\n{goals_list or 'No active goals'}\n\n"
        f"CURRENT HABITS ({len(habits)} total):\n{habits_text or 'No habits yet'}\n\n"
        f"HABIT CATEGORY BREAKDOWN:\n{breakdown or 'No habits yet'}\n\n"
        f"RECENT JOURNAL THEMES:\n{journal_themes(entries, HABIT_JOURNAL_BUDGET)}\n\n"
    )
    prompt += (
        "Based on this information, suggest 4-6 new habits that:\n"
        "1. Directly support their active goals and core values\n"
        "2. Fill gaps in their current habit categories\n"
        "3. Are realistic, specific, and actionable\n"
        "4. Complement (not duplicate) their existing habits\n"
        "5. Build on patterns you see in their journal entries\n\n"
        "For each habit suggestion, provide:\n"
        "- name: A clear, concise habit name (e.g., \"Morning meditation\")\n"
        "- description: Brief description of the habit\n"
        "- category: One of: health, productivity, mindfulness, learning, relationships, finance, other\n"
        "- done_criteria: Specific completion criteria (e.g., \"10 minutes\", \"3 times\", \"1 chapter\")\n"
        "- frequency: One of: daily, weekly, custom\n"
        "- times_per_week: If custom frequency, how many times (1-7)\n"
        f"- value_id: The ID of the core value this aligns with most (choose from: {value_ids})\n"
        "- icon: A single emoji that represents this habit\n"
        "- why: A personalized explanation of why this habit is recommended (2-3 sentences)"
    )
    return prompt


@router.post("/generateGoalSuggestions")
async def generate_goal_suggestions(
    user: CurrentUser = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
    llm: VertexLLM = Depends(get_llm),
):
    try:
        values, goals, habits, entries = await asyncio.gather(
            store.filter(user.user_id, VALUES),
            store.filter(user.user_id, GOALS),
            store.filter(user.user_id, HABITS),
            store.filter(user.user_id, JOURNAL_ENTRIES, order_by="-created_date", limit=10),
        )
        if not values:
            raise InsufficientDataError(NO_VALUES_MESSAGE)

        prompt = _build_goal_prompt(values, goals, habits, entries)
        result = fill_schema_defaults(await llm.invoke(prompt, GOAL_SUGGESTIONS_SCHEMA), GOAL_SUGGESTIONS_SCHEMA)
        return {"success": True, "suggestions": result["suggestions"], "values": values}
    except LifeSyncError:
        raise
    except Exception as e:
        _logger.exception("Error generating goal suggestions: %s", e)
        raise UpstreamError(str(e))


@router.post("/generateHabitSuggestions")
async def generate_habit_suggestions(
    user: CurrentUser = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
    llm: VertexLLM = Depends(get_llm),
):
    try:
        values, goals, habits, entries = await asyncio.gather(
            store.filter(user.user_id, VALUES),
            store.filter(user.user_id, GOALS, where=[("status", "==", "active")]),
            store.filter(user.user_id, HABITS, where=[("is_active", "==", True)]),
            store.filter(user.user_id, JOURNAL_ENTRIES, order_by="-created_date", limit=5),
        )
        if not values:
            raise InsufficientDataError(NO_VALUES_MESSAGE)

        prompt = _build_habit_prompt(values, goals, habits, entries)
        result = fill_schema_defaults(await llm.invoke(prompt, HABIT_SUGGESTIONS_SCHEMA), HABIT_SUGGESTIONS_SCHEMA)
        return {"success": True, "suggestions": result["suggestions"], "values": values}
    except LifeSyncError:
        raise
    except Exception as e:
        _logger.exception("Error generating habit suggestions: %s", e)
        raise UpstreamError(str(e))
