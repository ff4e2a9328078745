"""
coaching.py - Coaching reports and weekly summaries

Endpoints:
- /generatePersonalizedCoaching: a coaching note built from the user's whole
  current picture (mood, habits, goals, mindfulness, level).
- /generatePremiumCoachingReport: premium-only long-horizon report over a
  30 / 90 / 365 day window with weekly mood buckets, per-habit completion,
  goal velocity and mindfulness impact.
- /generateWeeklySummary: summary of one calendar range, stored as a
  WeeklySummary record keyed by week_start (re-running a week replaces it).
"""

import asyncio
import logging
from datetime import timedelta
from typing import Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from . import analytics
from .auth import CurrentUser, get_current_user
from .entity_store import (
    ACHIEVEMENTS, GAMIFICATION_PROFILES, GOALS, HABIT_LOGS, HABITS, JOURNAL_ENTRIES,
    MINDFULNESS_PRACTICES, SUBSCRIPTIONS, USER_PROFILES, VALUES, WEEKLY_SUMMARIES,
    EntityStore, get_entity_store,
)
from .errors import LifeSyncError, SubscriptionRequiredError, UpstreamError, ValidationError
from .gamification import PROFILE_DOC_ID
from .gcp_clients import VertexLLM, fill_schema_defaults, get_llm
from .utils import excerpt, now_utc, parse_iso_date, today_local

_logger = logging.getLogger(__name__)
router = APIRouter()

PREMIUM_TIERS = ("premium", "pro")
PERIOD_DAYS = {"month": 30, "quarter": 90, "year": 365}
MOOD_EMOJI = ["😔", "😕", "😐", "🙂", "😊"]


COACHING_SCHEMA = {
    "type": "object",
    "properties": {
        "status_assessment": {"type": "string"},
        "strengths": {"type": "array", "items": {"type": "string"}},
        "growth_opportunities": {"type": "array", "items": {"type": "string"}},
        "action_plan": {"type": "array", "items": {"type": "string"}},
        "motivation": {"type": "string"},
        "immediate_action": {"type": "string"},
    },
}

PREMIUM_REPORT_SCHEMA = {
    "type": "object",
    "properties": {
        "executive_summary": {"type": "string"},
        "trend_analysis": {"type": "array", "items": {"type": "string"}},
        "performance_insights": {"type": "array", "items": {"type": "string"}},
        "growth_gaps": {"type": "array", "items": {"type": "string"}},
        "strategic_recommendations": {"type": "array", "items": {"type": "string"}},
        "predictive_outlook": {"type": "string"},
        "personalized_challenge": {"type": "string"},
    },
}

WEEKLY_SUMMARY_SCHEMA = {
    "type": "object",
    "properties": {
        "summary": {"type": "string"},
        "highlights": {"type": "array", "items": {"type": "string"}, "minItems": 3, "maxItems": 3},
        "areas_for_growth": {"type": "array", "items": {"type": "string"}, "minItems": 2, "maxItems": 2},
        "next_week_intentions": {"type": "array", "items": {"type": "string"}, "minItems": 3, "maxItems": 3},
    },
}


class PremiumReportRequest(BaseModel):
    period: Literal["month", "quarter", "year"] = "month"


class WeeklySummaryRequest(BaseModel):
    week_start: str
    week_end: str


def is_premium(subscriptions: list) -> bool:
    """Only the first subscription record is consulted."""
    if not subscriptions:
        return False
    subscription = subscriptions[0]
    return subscription.get("tier") in PREMIUM_TIERS and subscription.get("status") == "active"


def mood_emoji(average_mood: Optional[int]) -> str:
    if not average_mood:
        return "Not tracked"
    return MOOD_EMOJI[min(max(average_mood, 1), 5) - 1]


def _completed_since(goal: dict, start_date) -> bool:
    """A goal's completion date is its last update while status is completed."""
    updated = parse_iso_date(goal.get("updated_date"))
    return updated is not None and updated >= start_date


# -------------------------
# Prompt builders
# -------------------------
def _build_coaching_prompt(
    user: CurrentUser,
    streak_days: int,
    level: int,
    avg_mood,
    mood_trend: float,
    goals: list,
    habits: list,
    practices: list,
    top_themes: list,
    entries: list
) -> str:
    completed_goals = sum(1 for g in goals if g.get("status") == "completed")
    recent_journal = "\n".join(
        f"[{e.get('date')}] {excerpt(e.get('content'), 100)}..." for e in entries[:5]
    )
    habit_performance = "\n".join(
        f"{h.get('name')}: {h.get('current_streak') or 0} day streak (longest: {h.get('longest_streak') or 0})"
        for h in habits
    )

    # Step 1: Who the coach is talking to
    prompt = (
        "You are a compassionate, highly personalized wellbeing coach. "
        "Based on comprehensive user data, provide tailored coaching guidance.\n\n"
        "USER PROFILE:\n"
        f"- Name: {user.full_name or 'Friend'}\n"
        f"- Days using app: {streak_days}\n"
        f"- Level: {level}\n"
        f"- Current mood: {avg_mood}/5 ({analytics.describe_trend(mood_trend)})\n\n"
    )

    # Step 2: Aggregated progress and recent context
    prompt += (
        "GOALS & PROGRESS:\n"
        f"- Completed: {completed_goals}/{len(goals)} goals\n"
        f"- Active habits: {len(habits)}\n"
        f"- Mindfulness sessions: {len(practices)}\n\n"
        f"RECURRING THEMES:\n{', '.join(top_themes) or 'Not enough data yet'}\n\n"
        f"HABIT PERFORMANCE:\n{habit_performance or 'No active habits'}\n\n"
        f"RECENT JOURNAL INSIGHTS:\n{recent_journal or 'No journal entries yet'}\n\n"
    )

    # Step 3: Output sections
    prompt += (
        "Provide coaching that includes:\n"
        "1. Current Status Assessment (2-3 sentences): Honest, compassionate assessment of their current wellbeing state\n"
        "2. Key Strengths (2-3 bullets): Specific wins and positive patterns you see\n"
        "3. Growth Opportunities (2-3 bullets): Areas where they can make progress (be encouraging, not critical)\n"
        "4. Personalized Action Plan (3-4 bullets): Specific, actionable steps tailored to their data and themes\n"
        "5. Motivation & Affirmation (2-3 sentences): Personalized encouragement based on their journey\n"
        "6. Immediate Next Step: One specific thing they can do today\n\n"
        "Make it personal, specific to their data, encouraging, and actionable."
    )
    return prompt


def _build_premium_prompt(period: str, days: int, counts: dict, mood_trends: list, habit_stats: list,
                          mindfulness_impact, goal_velocity: float) -> str:
    trends_text = "\n".join(f"Week -{t['week']}: {t['avg']}/5" for t in mood_trends[:8])
    habits_text = "\n".join(
        f"{h['name']}: {h['completionRate']}% completion, {h['currentStreak']} day streak" for h in habit_stats
    )
    return (
        "You are an elite performance coach providing a PREMIUM in-depth analysis. "
        f"Generate a comprehensive {period} coaching report with deep insights.\n\n"
        f"USER METRICS ({days} days):\n"
        f"- Journal entries: {counts['journal']}\n"
        f"- Active habits: {counts['active_habits']}\n"
        f"- Goals completed: {counts['completed_goals']}/{counts['goals']}\n"
        f"- Mindfulness sessions: {counts['practices']}\n"
        f"- Achievements unlocked: {counts['achievements']}\n"
        f"- Current level: {counts['level']}\n\n"
        f"MOOD TRENDS (Weekly averages, 0=current week):\n{trends_text or 'No mood data'}\n\n"
        f"HABIT PERFORMANCE:\n{habits_text or 'No habits'}\n\n"
        f"MINDFULNESS IMPACT:\nAverage mood improvement per session: +{mindfulness_impact}\n\n"
        f"GOAL VELOCITY:\n{goal_velocity:.1f} goals completed per month\n\n"
        "Provide a PREMIUM-LEVEL report including:\n"
        f"1. Executive Summary (3-4 sentences): High-level overview of their {period}\n"
        "2. Trend Analysis (4-5 bullets): Deep patterns in mood, habits, and progress with specific data\n"
        "3. Performance Insights (4-5 bullets): What's working exceptionally well and why\n"
        "4. Growth Gaps (3-4 bullets): Specific areas holding them back with root cause analysis\n"
        "5. Strategic Recommendations (5-6 bullets): Data-driven action items with expected impact\n"
        "6. Predictive Outlook (2-3 sentences): Where they're headed based on current trajectory\n"
        f"7. Personalized Challenge (2-3 sentences): A specific stretch goal for next {period}\n\n"
        "Make it deeply personalized, insight-rich, and actionable. Use their actual data and patterns."
    )


def _build_weekly_prompt(week_start: str, week_end: str, values: list, habits: list, week_logs: list,
                         days: int, completion_rate: int, week_entries: list, average_mood) -> str:
    habit_lines = []
    for h in habits:
        done = analytics.count_completed([log for log in week_logs if log.get("habit_id") == h.get("id")])
        habit_lines.append(f"- {h.get('name')}: {done}/{days} days completed")
    entry_lines = [f"- {e.get('date')}: \"{excerpt(e.get('content'), 100)}...\"" for e in week_entries]

    return (
        f"User's Weekly Data ({week_start} to {week_end}):\n\n"
        f"Core Values: {', '.join(v.get('name', '') for v in values)}\n\n"
        "Habits:\n" + "\n".join(habit_lines) + "\n\n"
        f"Overall Habit Completion Rate: {completion_rate}%\n\n"
        f"Journal Entries: {len(week_entries)} entries this week\n" + "\n".join(entry_lines) + "\n\n"
        f"Average Mood: {mood_emoji(average_mood)}\n\n"
        "Analyze this week and provide:\n"
        "1. A brief, encouraging summary (2-3 sentences)\n"
        "2. 3 specific highlights/wins\n"
        "3. 2 areas for growth\n"
        "4. 3 intention suggestions for next week that align with their values"
    )


# -------------------------
# Endpoints
# -------------------------
@router.post("/generatePersonalizedCoaching")
async def generate_personalized_coaching(
    user: CurrentUser = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
    llm: VertexLLM = Depends(get_llm),
):
    try:
        entries, habits, goals, practices, gam_profile, user_profiles = await asyncio.gather(
            store.filter(user.user_id, JOURNAL_ENTRIES, order_by="-date", limit=20),
            store.filter(user.user_id, HABITS, where=[("is_active", "==", True)]),
            store.filter(user.user_id, GOALS),
            store.filter(user.user_id, MINDFULNESS_PRACTICES, order_by="-date", limit=15),
            store.get(user.user_id, GAMIFICATION_PROFILES, PROFILE_DOC_ID),
            store.filter(user.user_id, USER_PROFILES, limit=1),
        )

        moods = [e["mood"] for e in entries if e.get("mood")]
        avg_mood = analytics.mean_mood(entries)
        mood_trend = analytics.mood_trend_delta(moods)
        top_themes = analytics.top_tags(entries, 4)
        level = (gam_profile or {}).get("level") or 1
        streak_days = (user_profiles[0] if user_profiles else {}).get("streak_days") or 0
        completed_goals = sum(1 for g in goals if g.get("status") == "completed")

        prompt = _build_coaching_prompt(
            user, streak_days, level, avg_mood, mood_trend, goals, habits, practices, top_themes, entries
        )
        coaching = fill_schema_defaults(await llm.invoke(prompt, COACHING_SCHEMA), COACHING_SCHEMA)

        return {
            "success": True,
            "coaching": coaching,
            "analytics": {
                "avgMood": avg_mood,
                "moodTrend": mood_trend,
                "activeHabits": len(habits),
                "goalCompletion": f"{completed_goals}/{len(goals)}",
                "topThemes": top_themes,
                "userLevel": level,
                "streakDays": streak_days,
            },
        }
    except LifeSyncError:
        raise
    except Exception as e:
        _logger.exception("Error generating coaching: %s", e)
        raise UpstreamError(str(e))


@router.post("/generatePremiumCoachingReport")
async def generate_premium_coaching_report(
    payload: Optional[PremiumReportRequest] = None,
    user: CurrentUser = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
    llm: VertexLLM = Depends(get_llm),
):
    """
    Premium gate first: without an active premium/pro subscription nothing
    else is read and the LLM is never called.

    Journal entries, habit logs and practices are restricted to the period
    window after fetching, so every metric covers the same days.
    """
    payload = payload or PremiumReportRequest()
    try:
        subscriptions = await store.filter(user.user_id, SUBSCRIPTIONS)
        if not is_premium(subscriptions):
            _logger.info("Premium report refused for %s: no active premium subscription", user.user_id)
            raise SubscriptionRequiredError()

        days = PERIOD_DAYS[payload.period]
        start_date = today_local() - timedelta(days=days)
        start = start_date.isoformat()

        (entries, habits, logs, goals,
         practices, gam_profile, achievements) = await asyncio.gather(
            store.filter(user.user_id, JOURNAL_ENTRIES, order_by="-date", limit=200),
            store.filter(user.user_id, HABITS),
            store.filter(user.user_id, HABIT_LOGS, order_by="-date", limit=500),
            store.filter(user.user_id, GOALS),
            store.filter(user.user_id, MINDFULNESS_PRACTICES, order_by="-date", limit=200),
            store.get(user.user_id, GAMIFICATION_PROFILES, PROFILE_DOC_ID),
            store.filter(user.user_id, ACHIEVEMENTS),
        )
        entries = [e for e in entries if (e.get("date") or "") >= start]
        logs = [log for log in logs if (log.get("date") or "") >= start]
        practices = [p for p in practices if (p.get("date") or "") >= start]

        mood_trends = analytics.mood_by_week(entries, now_utc())
        habit_stats = [
            {
                "name": h.get("name", ""),
                "completionRate": analytics.habit_log_rate(
                    [log for log in logs if log.get("habit_id") == h.get("id")], ndigits=1
                ),
                "currentStreak": h.get("current_streak") or 0,
                "longestStreak": h.get("longest_streak") or 0,
            }
            for h in habits
        ]
        completed_goals = [g for g in goals if g.get("status") == "completed"]
        completed_in_window = [g for g in completed_goals if _completed_since(g, start_date)]
        velocity = analytics.goal_velocity(len(completed_in_window), days)
        impact = analytics.mindfulness_impact(practices)

        counts = {
            "journal": len(entries),
            "active_habits": sum(1 for h in habits if h.get("is_active")),
            "completed_goals": len(completed_goals),
            "goals": len(goals),
            "practices": len(practices),
            "achievements": len(achievements),
            "level": (gam_profile or {}).get("level") or 1,
        }
        prompt = _build_premium_prompt(payload.period, days, counts, mood_trends, habit_stats, impact, velocity)
        report = fill_schema_defaults(await llm.invoke(prompt, PREMIUM_REPORT_SCHEMA), PREMIUM_REPORT_SCHEMA)

        return {
            "success": True,
            "isPremium": True,
            "report": report,
            "analytics": {
                "period": payload.period,
                "daysAnalyzed": days,
                "moodTrends": mood_trends,
                "habitStats": habit_stats,
                "goalVelocity": analytics.round_places(velocity, 1),
                "mindfulnessImpact": impact,
                "totalDataPoints": len(entries) + len(logs) + len(practices),
            },
        }
    except LifeSyncError:
        raise
    except Exception as e:
        _logger.exception("Error generating premium report: %s", e)
        raise UpstreamError(str(e))


@router.post("/generateWeeklySummary")
async def generate_weekly_summary(
    payload: WeeklySummaryRequest,
    user: CurrentUser = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
    llm: VertexLLM = Depends(get_llm),
):
    start_date = parse_iso_date(payload.week_start)
    end_date = parse_iso_date(payload.week_end)
    if start_date is None or end_date is None:
        raise ValidationError("week_start and week_end must be ISO dates (YYYY-MM-DD)")
    if end_date < start_date:
        raise ValidationError("week_end must not be before week_start")

    week_start, week_end = start_date.isoformat(), end_date.isoformat()
    days = (end_date - start_date).days + 1

    try:
        habits, week_logs, week_entries, values = await asyncio.gather(
            store.filter(user.user_id, HABITS, where=[("is_active", "==", True)]),
            store.filter(user.user_id, HABIT_LOGS, where=[("date", ">=", week_start), ("date", "<=", week_end)]),
            store.filter(user.user_id, JOURNAL_ENTRIES,
                         where=[("date", ">=", week_start), ("date", "<=", week_end)], order_by="-date"),
            store.filter(user.user_id, VALUES),
        )

        completion_rate = analytics.completion_rate(analytics.count_completed(week_logs), len(habits), days)
        moods = [e["mood"] for e in week_entries if e.get("mood")]
        average_mood = analytics.round_half_up(sum(moods) / len(moods)) if moods else None

        prompt = _build_weekly_prompt(
            week_start, week_end, values, habits, week_logs, days, completion_rate, week_entries, average_mood
        )
        result = fill_schema_defaults(await llm.invoke(prompt, WEEKLY_SUMMARY_SCHEMA), WEEKLY_SUMMARY_SCHEMA)

        summary = await store.upsert(user.user_id, WEEKLY_SUMMARIES, week_start, {
            "week_start": week_start,
            "week_end": week_end,
            "ai_summary": result["summary"],
            "habit_completion_rate": completion_rate,
            "average_mood": average_mood,
            "highlights": result["highlights"],
            "areas_for_growth": result["areas_for_growth"],
            "next_week_intentions": result["next_week_intentions"],
        })
        _logger.info("Weekly summary %s..%s stored for %s", week_start, week_end, user.user_id)
        return {"success": True, "summary": summary}
    except LifeSyncError:
        raise
    except Exception as e:
        _logger.exception("Error generating weekly summary: %s", e)
        raise UpstreamError(str(e))
