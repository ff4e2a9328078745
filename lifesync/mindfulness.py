"""
mindfulness.py - Mindfulness recommendations and the meditation library

- /generateMindfulnessSuggestions: recommends meditation, breathing and
  soundscape techniques from recent mood, habit struggle ("stress level")
  and journal themes.
- /initializeMeditationLibrary: admin-only, idempotent seed of the shared
  meditation library.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends

from . import analytics
from .auth import CurrentUser, get_current_user, require_admin
from .entity_store import (
    HABIT_LOGS, HABITS, JOURNAL_ENTRIES, MEDITATION_LIBRARY, MINDFULNESS_PRACTICES, EntityStore, get_entity_store,
)
from .errors import LifeSyncError, UpstreamError
from .gcp_clients import VertexLLM, fill_schema_defaults, get_llm
from .seed_data import MEDITATION_ITEMS
from .utils import excerpt

_logger = logging.getLogger(__name__)
router = APIRouter()

RECENT_MOODS = 10
HABIT_RECENT_LOGS = 14
STRUGGLING_RATE = 50

MINDFULNESS_SCHEMA = {
    "type": "object",
    "properties": {
        "suggestions": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "type": {"type": "string"},
                    "name": {"type": "string"},
                    "duration": {"type": "number"},
                    "description": {"type": "string"},
                    "benefits": {"type": "string"},
                    "when_to_use": {"type": "string"},
                    "instructions": {"type": "string"},
                    "why_recommended": {"type": "string"},
                },
            },
        },
    },
}


def habit_performance(habits: list, logs: list) -> list:
    """
    Integer completion rate per habit over its 14 most recent logs.
    `logs` must already be ordered newest first.
    """
    performance = []
    for habit in habits:
        recent = [log for log in logs if log.get("habit_id") == habit.get("id")][:HABIT_RECENT_LOGS]
        performance.append({
            "name": habit.get("name", ""),
            "completionRate": analytics.habit_log_rate(recent, ndigits=0),
        })
    return performance


def mood_label(avg_mood) -> str:
    if avg_mood < 3:
        return "low mood"
    if avg_mood > 4:
        return "maintaining good mood"
    return "moderate mood"


def _build_mindfulness_prompt(avg_mood, stress: str, struggling: list, entries: list, practices: list) -> str:
    journal_themes = " | ".join(excerpt(e.get("content"), 100) for e in entries[:5])
    if practices:
        practice_summary = (
            f"User has completed {len(practices)} mindfulness sessions recently. "
            f"Most common: {practices[0].get('type') or 'none'}"
        )
    else:
        practice_summary = "No recent mindfulness practice"
    struggling_names = ", ".join(h["name"] for h in struggling) if struggling else "none"

    # Step 1: Wellbeing snapshot
    prompt = (
        "You are a mindfulness and meditation expert helping someone build a consistent practice.\n\n"
        "USER WELLBEING ANALYSIS:\n"
        f"- Average mood (last {RECENT_MOODS} entries): {avg_mood}/5\n"
        f"- Stress level (based on habit struggles): {stress}\n"
        f"- Struggling habits: {struggling_names}\n\n"
        f"RECENT JOURNAL THEMES:\n{journal_themes or 'No recent journal entries'}\n\n"
        f"CURRENT MINDFULNESS PRACTICE:\n{practice_summary}\n\n"
    )

    # Step 2: Requested techniques
    prompt += (
        "Based on this analysis, recommend 4-5 mindfulness techniques across these categories:\n"
        "1. MEDITATION: Guided meditations for specific needs\n"
        "2. BREATHING: Breathing exercises for stress/energy\n"
        "3. SOUNDSCAPE: Ambient sounds for focus/relaxation\n\n"
        "For each technique, provide:\n"
        "- type: \"meditation\", \"breathing\", or \"soundscape\"\n"
        "- name: Clear technique name\n"
        "- duration: Recommended duration in minutes (5-20)\n"
        "- description: Brief explanation (1 sentence)\n"
        "- benefits: Primary benefits (e.g., \"Reduces anxiety\", \"Improves focus\")\n"
        "- when_to_use: Specific situations (e.g., \"Morning energy boost\", \"Before sleep\")\n"
        "- instructions: Step-by-step guide (2-4 steps)\n"
        "- why_recommended: Personalized explanation based on their mood, stress, and journal themes (2 sentences)\n\n"
        "Prioritize techniques that address:\n"
        f"- Their current mood level ({mood_label(avg_mood)})\n"
        f"- Their stress level ({stress})\n"
        "- Patterns in their journal entries"
    )
    return prompt


@router.post("/generateMindfulnessSuggestions")
async def generate_mindfulness_suggestions(
    user: CurrentUser = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
    llm: VertexLLM = Depends(get_llm),
):
    try:
        entries, logs, habits, practices = await asyncio.gather(
            store.filter(user.user_id, JOURNAL_ENTRIES, order_by="-date", limit=20),
            store.filter(user.user_id, HABIT_LOGS, order_by="-date", limit=100),
            store.filter(user.user_id, HABITS),
            store.filter(user.user_id, MINDFULNESS_PRACTICES, order_by="-date", limit=10),
        )

        avg_mood = analytics.mean_mood([e for e in entries if e.get("mood")][:RECENT_MOODS])
        struggling = [h for h in habit_performance(habits, logs) if h["completionRate"] < STRUGGLING_RATE]
        stress = analytics.stress_level(len(struggling))

        prompt = _build_mindfulness_prompt(avg_mood, stress, struggling, entries, practices)
        result = fill_schema_defaults(await llm.invoke(prompt, MINDFULNESS_SCHEMA), MINDFULNESS_SCHEMA)

        return {
            "success": True,
            "suggestions": result["suggestions"],
            "insights": {
                "avgMood": avg_mood,
                "stressLevel": stress,
                "strugglingHabitsCount": len(struggling),
            },
        }
    except LifeSyncError:
        raise
    except Exception as e:
        _logger.exception("Error generating mindfulness suggestions: %s", e)
        raise UpstreamError(str(e))


@router.post("/initializeMeditationLibrary")
async def initialize_meditation_library(
    user: CurrentUser = Depends(require_admin),
    store: EntityStore = Depends(get_entity_store),
):
    try:
        existing = await store.list_global(MEDITATION_LIBRARY)
        if existing:
            return {"success": True, "message": "Library already exists", "count": len(existing)}

        count = await store.bulk_create_global(MEDITATION_LIBRARY, MEDITATION_ITEMS)
        _logger.info("Seeded %d meditation library items (by %s)", count, user.user_id)
        return {"success": True, "message": "Meditation library initialized", "count": count}
    except LifeSyncError:
        raise
    except Exception as e:
        _logger.exception("Error initializing meditation library: %s", e)
        raise UpstreamError(str(e))
