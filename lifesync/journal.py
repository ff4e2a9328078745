"""
journal.py - Journal analysis endpoints

This module turns the user's journal entries into LLM-generated insight:
- /analyzeJournalEntries: themes, sentiment and growth areas across recent entries.
- /analyzeJournalSentiment: mood score and emotions for one entry; the score and
  themes are written back onto the stored entry.
- /generateMoodReport: weekly or monthly mood report.
- /suggestFromJournal: new habits and mindfulness practices drawn from
  recurring journal themes.
- /generateJournalPrompts: three writing prompts tied to the user's values,
  struggling or thriving habits and recently completed goals.

Every handler follows the same flow: fan out reads, aggregate, build the
prompt, call the LLM with a JSON schema, and shape the response. A handler
that has no journal data to work with fails with a 400 before the LLM is
called.
"""

import asyncio
import logging
from collections import defaultdict
from datetime import timedelta
from typing import Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from . import analytics
from .auth import CurrentUser, get_current_user
from .entity_store import (
    GOALS, HABIT_LOGS, HABITS, JOURNAL_ENTRIES, MINDFULNESS_PRACTICES, VALUES, EntityStore, get_entity_store,
)
from .errors import InsufficientDataError, LifeSyncError, UpstreamError, ValidationError
from .gcp_clients import VertexLLM, fill_schema_defaults, get_llm
from .utils import detect_crisis_language, excerpt, last_n_days, parse_iso_date, today_local

_logger = logging.getLogger(__name__)
router = APIRouter()

ENTRY_CONTENT_LIMIT = 500
SENTIMENT_CONTENT_LIMIT = 1000
MOOD_REPORT_EXCERPTS, MOOD_REPORT_EXCERPT_LEN = 10, 200
SUGGEST_EXCERPTS, SUGGEST_EXCERPT_LEN = 8, 150

STRUGGLING_RATE = 50
THRIVING_RATE = 80
RECENT_GOAL_DAYS = 14


# -------------------------
# Response schemas
# -------------------------
ANALYSIS_SCHEMA = {
    "type": "object",
    "properties": {
        "key_themes": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {"theme": {"type": "string"}, "description": {"type": "string"}},
            },
        },
        "sentiment_analysis": {
            "type": "object",
            "properties": {
                "overall_tone": {"type": "string"},
                "mood_trend": {"type": "string"},
                "emotional_patterns": {"type": "string"},
            },
        },
        "recurring_topics": {"type": "array", "items": {"type": "string"}},
        "growth_areas": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "area": {"type": "string"},
                    "insight": {"type": "string"},
                    "suggestion": {"type": "string"},
                },
            },
        },
        "positive_patterns": {"type": "array", "items": {"type": "string"}},
        "areas_of_concern": {"type": "array", "items": {"type": "string"}},
    },
}

SENTIMENT_SCHEMA = {
    "type": "object",
    "properties": {
        "mood_score": {"type": "number"},
        "primary_emotion": {"type": "string"},
        "secondary_emotions": {"type": "array", "items": {"type": "string"}},
        "sentiment_summary": {"type": "string"},
        "themes": {"type": "array", "items": {"type": "string"}},
    },
}

MOOD_REPORT_SCHEMA = {
    "type": "object",
    "properties": {
        "overall_mood_trend": {"type": "string"},
        "mood_description": {"type": "string"},
        "positive_highlights": {"type": "array", "items": {"type": "string"}},
        "areas_of_concern": {"type": "array", "items": {"type": "string"}},
        "recommendations": {"type": "array", "items": {"type": "string"}},
        "gratitude_moments": {"type": "number"},
        "energy_level": {"type": "string"},
    },
}

JOURNAL_SUGGESTIONS_SCHEMA = {
    "type": "object",
    "properties": {
        "suggestions": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "type": {"type": "string"},
                    "name": {"type": "string"},
                    "description": {"type": "string"},
                    "frequency": {"type": "string"},
                    "duration": {"type": "number"},
                    "why_suggested": {"type": "string"},
                    "expected_benefit": {"type": "string"},
                },
            },
        },
    },
}

JOURNAL_PROMPTS_SCHEMA = {
    "type": "object",
    "properties": {
        "prompts": {"type": "array", "items": {"type": "string"}, "minItems": 3, "maxItems": 3},
    },
}


# -------------------------
# Request models
# -------------------------
class AnalyzeEntriesRequest(BaseModel):
    limit: int = Field(30, ge=1, le=200)


class SentimentRequest(BaseModel):
    entryId: Optional[str] = None
    content: Optional[str] = None


class MoodReportRequest(BaseModel):
    period: Literal["week", "month"] = "week"


class JournalPromptsRequest(BaseModel):
    entry_type: str = "reflection"


# -------------------------
# Prompt builders
# -------------------------
def _build_analysis_prompt(entries: list) -> str:
    entries_text = "\n\n---\n\n".join(
        f"Date: {e.get('date')}\n"
        f"Title: {e.get('title') or 'Untitled'}\n"
        f"Content: {excerpt(e.get('content'), ENTRY_CONTENT_LIMIT)}\n"
        f"Mood: {e.get('mood') or 'N/A'}/5"
        for e in entries
    )
    return (
        f"You are analyzing journal entries to provide personal growth insights. "
        f"Analyze the following {len(entries)} journal entries and provide:\n\n"
        "1. Key Themes: 3-5 main recurring themes or topics\n"
        "2. Sentiment Analysis: Overall emotional tone and patterns\n"
        "3. Recurring Topics: Specific subjects that appear frequently\n"
        "4. Growth Areas: 3-4 potential areas for personal development based on the content\n"
        "5. Positive Patterns: What's going well or improving\n"
        "6. Areas of Concern: Any persistent challenges or struggles\n\n"
        f"JOURNAL ENTRIES:\n{entries_text}\n\n"
        "Provide thoughtful, compassionate insights that help the person understand their patterns "
        "and growth opportunities."
    )


def _build_sentiment_prompt(content: str) -> str:
    return (
        "Analyze the sentiment and mood of this journal entry. Provide a mood score (1-5) "
        "and identify key emotions.\n\n"
        f"Journal Entry:\n\"{excerpt(content, SENTIMENT_CONTENT_LIMIT)}\"\n\n"
        "Provide:\n"
        "- mood_score: A number from 1 (very negative) to 5 (very positive)\n"
        "- primary_emotion: Main emotion (e.g., \"joy\", \"anxiety\", \"contentment\", \"frustration\", \"gratitude\")\n"
        "- secondary_emotions: Array of 2-3 other emotions present\n"
        "- sentiment_summary: One sentence describing the overall emotional tone\n"
        "- themes: Array of 2-4 key themes or topics mentioned (e.g., \"work stress\", \"family time\")"
    )


def _build_mood_report_prompt(period: str, avg_mood, entry_count: int, top_themes: list, entries: list) -> str:
    recent_content = "\n---\n".join(
        excerpt(e.get("content"), MOOD_REPORT_EXCERPT_LEN) for e in entries[:MOOD_REPORT_EXCERPTS]
    )
    return (
        f"Generate a comprehensive {period}ly mood and wellbeing report based on these journal entries.\n\n"
        f"Average Mood: {avg_mood}/5\n"
        f"Total Entries: {entry_count}\n"
        f"Top Themes: {', '.join(top_themes)}\n\n"
        f"Recent Journal Excerpts:\n{recent_content}\n\n"
        "Provide:\n"
        "- overall_mood_trend: \"improving\", \"stable\", or \"declining\"\n"
        "- mood_description: 2-3 sentences describing emotional patterns\n"
        "- positive_highlights: Array of 2-3 positive patterns or wins\n"
        "- areas_of_concern: Array of 1-2 recurring challenges (if any)\n"
        "- recommendations: Array of 3-4 actionable suggestions for improvement\n"
        "- gratitude_moments: Number estimate of gratitude expressions found (0-10)\n"
        "- energy_level: Assessed energy level \"low\", \"moderate\", or \"high\""
    )


def _build_journal_suggestions_prompt(avg_mood, themes: list, entries: list, habits: list, practices: list) -> str:
    recent_content = "\n".join(
        excerpt(e.get("content"), SUGGEST_EXCERPT_LEN) for e in entries[:SUGGEST_EXCERPTS]
    )
    current_habits = ", ".join(h.get("name", "") for h in habits)
    recent_practices = ", ".join(p.get("technique") or "" for p in practices)

    # Step 1: Journal analysis and what the user already does
    prompt = (
        "Based on journal analysis, suggest habits and mindfulness practices to improve wellbeing.\n\n"
        "JOURNAL ANALYSIS:\n"
        f"- Average Mood: {avg_mood}/5\n"
        f"- Recurring Themes: {', '.join(themes)}\n"
        f"- Entry Count: {len(entries)}\n\n"
        f"CURRENT HABITS:\n{current_habits or 'None'}\n\n"
        f"RECENT MINDFULNESS:\n{recent_practices or 'None'}\n\n"
        f"RECENT JOURNAL EXCERPTS:\n{recent_content}\n\n"
    )

    # Step 2: What to suggest and the fields of each suggestion
    prompt += (
        "Suggest 2-3 NEW habits and 2-3 mindfulness practices that:\n"
        "1. Address patterns seen in the journal\n"
        "2. Complement (not duplicate) existing habits\n"
        "3. Target specific emotional needs identified\n\n"
        "For each suggestion provide:\n"
        "- type: \"habit\" or \"mindfulness\"\n"
        "- name: Clear name\n"
        "- description: Brief description\n"
        "- frequency: For habits: \"daily\", \"weekly\", or \"custom\"\n"
        "- duration: For mindfulness: duration in minutes\n"
        "- why_suggested: 2 sentences explaining why based on their journal patterns\n"
        "- expected_benefit: What improvement they can expect"
    )
    return prompt


def habit_week_context(habits: list, goals_by_id: dict, values_by_id: dict, logs: list, window: list) -> list:
    """Per active habit: its 7-day completion rate and the goal / value it serves."""
    context = []
    for habit in habits:
        goal = goals_by_id.get(habit.get("goal_id"))
        value = values_by_id.get(goal.get("value_id")) if goal else None
        habit_logs = [log for log in logs if log.get("habit_id") == habit.get("id")]
        completions = analytics.count_completed(habit_logs, window)
        context.append({
            "name": habit.get("name", ""),
            "completionRate": analytics.completion_rate(completions, 1, len(window)),
            "valueName": value.get("name") if value else None,
            "goalTitle": goal.get("title") if goal else None,
        })
    return context


def _build_journal_prompts_prompt(
    entry_type: str,
    values: list,
    goals: list,
    habit_context: list,
    recently_completed: list,
    recent_entries: list
) -> str:
    values_by_id = {v.get("id"): v for v in values}

    def _value_name(goal):
        value = values_by_id.get(goal.get("value_id"))
        return value.get("name") if value else None

    core_values = ", ".join(
        f"{v.get('name')} ({v['description']})" if v.get("description") else f"{v.get('name')}"
        for v in values
    )
    parts = [
        f"Generate 3 personalized journal prompts for a {entry_type} entry.",
        "",
        f"User's Core Values: {core_values}",
    ]

    active_goals = [g for g in goals if g.get("status") == "active"]
    if active_goals:
        parts += ["", "Active Goals:"]
        for g in active_goals:
            value_name = _value_name(g)
            link = f" - Connected to {value_name}" if value_name else ""
            parts.append(f"- {g.get('title')} ({g.get('progress') or 0}% complete){link}")

    struggling_by_value = defaultdict(list)
    for h in habit_context:
        if h["completionRate"] < STRUGGLING_RATE:
            struggling_by_value[h["valueName"] or "General"].append(h)
    if struggling_by_value:
        parts += ["", "Areas Needing Attention:"]
        for value_name, struggling in struggling_by_value.items():
            names = ", ".join(h["name"] for h in struggling)
            parts.append(f"- {value_name} value: {names} ({struggling[0]['completionRate']}% completion this week)")

    thriving = [h for h in habit_context if h["completionRate"] >= THRIVING_RATE]
    if thriving:
        parts += ["", "Strengths to Build On:"]
        for h in thriving[:3]:
            support = f" - Supporting {h['valueName']}" if h["valueName"] else ""
            parts.append(f"- {h['name']} ({h['completionRate']}% completion){support}")

    if recently_completed:
        parts += ["", "Recent Achievements:"]
        for g in recently_completed:
            value_name = _value_name(g)
            parts.append(f"- Completed: {g.get('title')}" + (f" ({value_name} value)" if value_name else ""))

    recent_themes = [e.get("title") or "general reflection" for e in recent_entries[:3]]
    if recent_themes:
        parts += ["", f"Recent journal themes: {', '.join(recent_themes)}"]

    parts += [
        "",
        "Create prompts that:",
        "1. Directly reference their specific core values by name",
        "2. If habits are struggling in a value area, ask compassionate questions about overcoming challenges in that value",
        "3. For recently completed goals, celebrate and prompt for new ambitious goals aligned with that value",
        "4. For thriving habits, ask how to expand or deepen that practice",
        f"5. Match the {entry_type} entry type",
        "6. Be specific, personal, warm, and actionable",
    ]
    return "\n".join(parts)


# -------------------------
# Endpoints
# -------------------------
@router.post("/analyzeJournalEntries")
async def analyze_journal_entries(
    payload: Optional[AnalyzeEntriesRequest] = None,
    user: CurrentUser = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
    llm: VertexLLM = Depends(get_llm),
):
    payload = payload or AnalyzeEntriesRequest()
    try:
        entries = await store.filter(user.user_id, JOURNAL_ENTRIES, order_by="-created_date", limit=payload.limit)
        if not entries:
            raise InsufficientDataError("No journal entries found to analyze")

        analysis = fill_schema_defaults(await llm.invoke(_build_analysis_prompt(entries), ANALYSIS_SCHEMA), ANALYSIS_SCHEMA)
        _logger.info("Analyzed %d journal entries for %s", len(entries), user.user_id)
        return {
            "success": True,
            "analysis": analysis,
            "entries_analyzed": len(entries),
            "date_range": {"from": entries[-1].get("date"), "to": entries[0].get("date")},
        }
    except LifeSyncError:
        raise
    except Exception as e:
        _logger.exception("Error analyzing journal entries: %s", e)
        raise UpstreamError(str(e))


@router.post("/analyzeJournalSentiment")
async def analyze_journal_sentiment(
    payload: SentimentRequest,
    user: CurrentUser = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
    llm: VertexLLM = Depends(get_llm),
):
    """
    Score one entry. When entryId names an existing entry, its mood becomes
    the rounded score (clamped to 1-5) and its tags become the themes.
    """
    if not payload.content:
        raise ValidationError("Content required")

    try:
        result = fill_schema_defaults(
            await llm.invoke(_build_sentiment_prompt(payload.content), SENTIMENT_SCHEMA), SENTIMENT_SCHEMA
        )

        if payload.entryId:
            entry = await store.get(user.user_id, JOURNAL_ENTRIES, payload.entryId)
            if entry is not None:
                update = {"tags": result.get("themes") or []}
                score = result.get("mood_score")
                if isinstance(score, (int, float)):
                    update["mood"] = min(max(analytics.round_half_up(score), 1), 5)
                await store.update(user.user_id, JOURNAL_ENTRIES, payload.entryId, update)
            else:
                _logger.info("Sentiment write-back skipped: entry %s not found", payload.entryId)

        flagged, matched = detect_crisis_language(payload.content)
        if flagged:
            _logger.warning("Crisis language detected in journal entry for %s: %r", user.user_id, matched)

        return {"success": True, **result, "safety_concern": flagged}
    except LifeSyncError:
        raise
    except Exception as e:
        _logger.exception("Error analyzing sentiment: %s", e)
        raise UpstreamError(str(e))


@router.post("/generateMoodReport")
async def generate_mood_report(
    payload: Optional[MoodReportRequest] = None,
    user: CurrentUser = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
    llm: VertexLLM = Depends(get_llm),
):
    payload = payload or MoodReportRequest()
    entry_limit = 30 if payload.period == "month" else 7
    try:
        entries = await store.filter(user.user_id, JOURNAL_ENTRIES, order_by="-date", limit=entry_limit)
        if not entries:
            raise InsufficientDataError("Not enough journal entries")

        avg_mood = analytics.mean_mood(entries)
        top_themes = analytics.top_tags(entries, 5)
        prompt = _build_mood_report_prompt(payload.period, avg_mood, len(entries), top_themes, entries)
        report = fill_schema_defaults(await llm.invoke(prompt, MOOD_REPORT_SCHEMA), MOOD_REPORT_SCHEMA)

        return {
            "success": True,
            "period": payload.period,
            "entry_count": len(entries),
            "avg_mood": avg_mood,
            "top_themes": top_themes,
            **report,
        }
    except LifeSyncError:
        raise
    except Exception as e:
        _logger.exception("Error generating mood report: %s", e)
        raise UpstreamError(str(e))


@router.post("/suggestFromJournal")
async def suggest_from_journal(
    user: CurrentUser = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
    llm: VertexLLM = Depends(get_llm),
):
    try:
        entries = await store.filter(user.user_id, JOURNAL_ENTRIES, order_by="-date", limit=15)
        if not entries:
            raise InsufficientDataError("Not enough journal entries")

        habits, practices = await asyncio.gather(
            store.filter(user.user_id, HABITS, where=[("is_active", "==", True)]),
            store.filter(user.user_id, MINDFULNESS_PRACTICES, order_by="-date", limit=10),
        )

        avg_mood = analytics.mean_mood(entries)
        themes = [f"{tag} ({count}x)" for tag, count in analytics.top_tags(entries, 5, with_counts=True)]
        prompt = _build_journal_suggestions_prompt(avg_mood, themes, entries, habits, practices)
        result = fill_schema_defaults(
            await llm.invoke(prompt, JOURNAL_SUGGESTIONS_SCHEMA), JOURNAL_SUGGESTIONS_SCHEMA
        )

        return {
            "success": True,
            "suggestions": result["suggestions"],
            "insights": {"avgMood": avg_mood, "topThemes": themes, "entryCount": len(entries)},
        }
    except LifeSyncError:
        raise
    except Exception as e:
        _logger.exception("Error generating suggestions from journal: %s", e)
        raise UpstreamError(str(e))


@router.post("/generateJournalPrompts")
async def generate_journal_prompts(
    payload: Optional[JournalPromptsRequest] = None,
    user: CurrentUser = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
    llm: VertexLLM = Depends(get_llm),
):
    payload = payload or JournalPromptsRequest()
    try:
        values, goals, habits, logs, recent_entries = await asyncio.gather(
            store.filter(user.user_id, VALUES),
            store.filter(user.user_id, GOALS),
            store.filter(user.user_id, HABITS, where=[("is_active", "==", True)]),
            store.filter(user.user_id, HABIT_LOGS, order_by="-date", limit=30),
            store.filter(user.user_id, JOURNAL_ENTRIES, order_by="-date", limit=10),
        )

        today = today_local()
        habit_context = habit_week_context(
            habits,
            {g.get("id"): g for g in goals},
            {v.get("id"): v for v in values},
            logs,
            last_n_days(7, today),
        )

        cutoff = today - timedelta(days=RECENT_GOAL_DAYS)
        recently_completed = []
        for g in goals:
            updated = parse_iso_date(g.get("updated_date"))
            if g.get("status") == "completed" and updated is not None and updated >= cutoff:
                recently_completed.append(g)

        prompt = _build_journal_prompts_prompt(
            payload.entry_type, values, goals, habit_context, recently_completed, recent_entries
        )
        result = fill_schema_defaults(await llm.invoke(prompt, JOURNAL_PROMPTS_SCHEMA), JOURNAL_PROMPTS_SCHEMA)
        return {"success": True, "prompts": result["prompts"]}
    except LifeSyncError:
        raise
    except Exception as e:
        _logger.exception("Error generating journal prompts: %s", e)
        raise UpstreamError(str(e))
