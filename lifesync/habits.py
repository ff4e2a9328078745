"""
habits.py - Habit toggling and the dashboard / progress statistics

Endpoints:
- /toggleHabit: marks a habit done (or undone) for a day and moves its
  streak counters. The habit update is versioned, so two racing toggles
  cannot both apply; the loser gets a 409 and must re-read the habit.
- /getDashboardStats: 7-day completion rate, reflections, achievements and
  the profile streak.
- /getProgressStats: 30-day completion rate, the backward-scanned current
  streak, the longest streak, and unlocks of threshold achievements.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from . import analytics
from .auth import CurrentUser, get_current_user
from .entity_store import (
    ACHIEVEMENTS, HABIT_LOGS, HABITS, JOURNAL_ENTRIES, USER_PROFILES, EntityStore, get_entity_store,
)
from .errors import LifeSyncError, NotFoundError, UpstreamError, ValidationError
from .utils import last_n_days, parse_iso_date, today_local

_logger = logging.getLogger(__name__)
router = APIRouter()

CELEBRATION_MILESTONES = (7, 14, 30, 60, 100)

DASHBOARD_WINDOW_DAYS = 7
PROGRESS_WINDOW_DAYS = 30

# (key, type, name, description, icon, stat, threshold)
ACHIEVEMENT_RULES = [
    ("streak_7", "streak", "7 Day Streak", "Complete habits for 7 days straight", "🔥", "longest_streak", 7),
    ("streak_14", "streak", "2 Week Streak", "Complete habits for 14 days straight", "🔥", "longest_streak", 14),
    ("streak_30", "streak", "30 Day Streak", "Complete habits for 30 days straight", "💪", "longest_streak", 30),
    ("streak_60", "streak", "60 Day Streak", "Complete habits for 60 days straight", "⚡", "longest_streak", 60),
    ("streak_100", "streak", "100 Day Streak", "Complete habits for 100 days straight", "👑", "longest_streak", 100),
    ("first_habit", "milestone", "First Habit", "Create your first habit", "🎯", "habits", 1),
    ("habits_5", "milestone", "Habit Builder", "Create 5 habits", "🧱", "habits", 5),
    ("habits_10", "milestone", "Habit Architect", "Create 10 habits", "🏗️", "habits", 10),
    ("journal_1", "milestone", "Journal Starter", "Write your first journal entry", "📝", "journal_entries", 1),
    ("journal_10", "milestone", "Reflective Writer", "Write 10 journal entries", "📓", "journal_entries", 10),
    ("journal_30", "milestone", "Dedicated Journaler", "Write 30 journal entries", "📔", "journal_entries", 30),
    ("journal_100", "milestone", "Journal Master", "Write 100 journal entries", "📚", "journal_entries", 100),
    ("gratitude_10", "badge", "Grateful Heart", "Log gratitude 10 times", "💛", "gratitude", 10),
    ("gratitude_20", "badge", "Gratitude Master", "Log gratitude 20 times", "🙏", "gratitude", 20),
]


class ToggleHabitRequest(BaseModel):
    habit_id: str
    version: int
    date: Optional[str] = None


def log_id(habit_id: str, day: str) -> str:
    """Habit logs are keyed by (habit, day), so a day never holds two logs."""
    return f"{habit_id}_{day}"


def streak_after_toggle(habit: dict, completed: bool):
    """Return (current_streak, longest_streak) after a toggle."""
    current = habit.get("current_streak") or 0
    longest = habit.get("longest_streak") or 0
    if completed:
        current += 1
        return current, max(current, longest)
    return max(current - 1, 0), longest


def unlocked_achievements(stats: dict, existing_keys) -> list:
    """Rules whose threshold is met and whose key has not been unlocked yet."""
    unlocked = []
    for key, a_type, name, description, icon, stat, threshold in ACHIEVEMENT_RULES:
        if key in existing_keys or stats.get(stat, 0) < threshold:
            continue
        unlocked.append({
            "key": key, "type": a_type, "name": name,
            "description": description, "icon": icon,
        })
    return unlocked


@router.post("/toggleHabit")
async def toggle_habit(
    payload: ToggleHabitRequest,
    user: CurrentUser = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
):
    day = payload.date or today_local().isoformat()
    if parse_iso_date(day) is None:
        raise ValidationError("date must be an ISO date (YYYY-MM-DD)")

    try:
        habit = await store.get(user.user_id, HABITS, payload.habit_id)
        if habit is None:
            raise NotFoundError("Habit not found", details={"id": payload.habit_id})

        existing_log = await store.get(user.user_id, HABIT_LOGS, log_id(payload.habit_id, day))
        completed = not (existing_log and existing_log.get("completed"))
        current, longest = streak_after_toggle(habit, completed)

        # The streak and the day's log change together or not at all
        log_data = {"habit_id": payload.habit_id, "date": day, "completed": True} if completed else None
        updated = await store.update_versioned(
            user.user_id, HABITS, payload.habit_id, payload.version,
            {"current_streak": current, "longest_streak": longest},
            related_writes=[(HABIT_LOGS, log_id(payload.habit_id, day), log_data)],
        )

        celebration = None
        if completed and current in CELEBRATION_MILESTONES:
            celebration = {"streak": current, "habitName": habit.get("name", "")}

        _logger.info("Habit %s toggled to %s for %s (streak=%d)", payload.habit_id, completed, day, current)
        return {
            "success": True,
            "completed": completed,
            "current_streak": current,
            "longest_streak": longest,
            "version": updated["version"],
            "celebration": celebration,
        }
    except LifeSyncError:
        raise
    except Exception as e:
        _logger.exception("Error toggling habit: %s", e)
        raise UpstreamError(str(e))


@router.post("/getDashboardStats")
async def get_dashboard_stats(
    user: CurrentUser = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
):
    try:
        window = last_n_days(DASHBOARD_WINDOW_DAYS)
        habits, logs, journal_entries, achievements, profiles = await asyncio.gather(
            store.filter(user.user_id, HABITS, where=[("is_active", "==", True)]),
            store.filter(user.user_id, HABIT_LOGS, where=[("date", ">=", window[-1])]),
            store.filter(user.user_id, JOURNAL_ENTRIES),
            store.filter(user.user_id, ACHIEVEMENTS),
            store.filter(user.user_id, USER_PROFILES, limit=1),
        )

        completed = analytics.count_completed(logs, window)
        profile = profiles[0] if profiles else {}
        return {
            "success": True,
            "habitRate": analytics.completion_rate(completed, len(habits), DASHBOARD_WINDOW_DAYS),
            "totalReflections": len(journal_entries),
            "achievements": len(achievements),
            "streakDays": profile.get("streak_days") or 0,
        }
    except LifeSyncError:
        raise
    except Exception as e:
        _logger.exception("Error building dashboard stats: %s", e)
        raise UpstreamError(str(e))


@router.post("/getProgressStats")
async def get_progress_stats(
    user: CurrentUser = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
):
    """
    Progress page numbers. Achievements are stored under their rule key, so
    calling this repeatedly never unlocks the same achievement twice.
    """
    try:
        today = today_local()
        window = last_n_days(PROGRESS_WINDOW_DAYS, today)
        habits, logs, journal_entries, achievements = await asyncio.gather(
            store.filter(user.user_id, HABITS),
            store.filter(user.user_id, HABIT_LOGS, where=[("completed", "==", True)]),
            store.filter(user.user_id, JOURNAL_ENTRIES),
            store.filter(user.user_id, ACHIEVEMENTS),
        )

        active = [h for h in habits if h.get("is_active")]
        active_ids = {h["id"] for h in active}
        active_logs = [log for log in logs if log.get("habit_id") in active_ids]
        overall_rate = analytics.completion_rate(
            analytics.count_completed(active_logs, window), len(active), PROGRESS_WINDOW_DAYS
        )
        current_streak = analytics.compute_streak(active_logs, len(active), today)
        longest_streak = max(analytics.max_longest_streak(active), current_streak)

        stats = {
            "longest_streak": longest_streak,
            "habits": len(habits),
            "journal_entries": len(journal_entries),
            "gratitude": sum(1 for e in journal_entries if e.get("gratitude")),
        }
        existing_keys = {a["id"] for a in achievements}
        unlocked = unlocked_achievements(stats, existing_keys)
        for achievement in unlocked:
            data = {k: v for k, v in achievement.items() if k != "key"}
            data["unlocked_date"] = today.isoformat()
            await store.upsert(user.user_id, ACHIEVEMENTS, achievement["key"], data)

        if unlocked:
            _logger.info("Unlocked %d achievement(s) for %s", len(unlocked), user.user_id)

        return {
            "success": True,
            "overallRate": overall_rate,
            "currentStreak": current_streak,
            "longestStreak": longest_streak,
            "achievements": len(achievements) + len(unlocked),
            "newAchievements": unlocked,
        }
    except LifeSyncError:
        raise
    except Exception as e:
        _logger.exception("Error building progress stats: %s", e)
        raise UpstreamError(str(e))
