"""
gamification.py - Points, levels and badges

Endpoints:
- /awardPoints: credits a fixed number of points for a user action, derives
  the level and unlocks streak-milestone / perfect-week achievements.
- /checkBadgeProgress: recomputes progress toward every badge definition from
  the user's records and stores it per badge.
- /initializeBadges: admin-only, idempotent seed of the badge catalogue.

Two badge paths exist on purpose:
- awardPoints only looks at the exact streak values 7, 30 and 100 sent by the
  client, so intermediate values never unlock anything there.
- checkBadgeProgress evaluates every badge continuously against stored data.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from . import analytics
from .auth import CurrentUser, get_current_user, require_admin
from .entity_store import (
    ACHIEVEMENTS, BADGES, ENCOURAGEMENTS, GAMIFICATION_PROFILES, GOALS, HABITS,
    JOURNAL_ENTRIES, MINDFULNESS_PRACTICES, USER_BADGES, EntityStore, get_entity_store,
)
from .errors import LifeSyncError, UpstreamError, ValidationError
from .seed_data import BADGE_DEFINITIONS
from .utils import today_local

_logger = logging.getLogger(__name__)
router = APIRouter()

PROFILE_DOC_ID = "current"
POINTS_PER_LEVEL = 100


class PointsAction(str, Enum):
    HABIT_COMPLETE = "habit_complete"
    MINDFULNESS_COMPLETE = "mindfulness_complete"
    GOAL_CREATE = "goal_create"
    GOAL_COMPLETE = "goal_complete"
    JOURNAL_ENTRY = "journal_entry"
    DAILY_LOGIN = "daily_login"
    STREAK_MILESTONE = "streak_milestone"
    CHALLENGE_COMPLETE = "challenge_complete"
    PERFECT_WEEK = "perfect_week"


ACTION_POINTS: Dict[PointsAction, int] = {
    PointsAction.HABIT_COMPLETE: 10,
    PointsAction.MINDFULNESS_COMPLETE: 15,
    PointsAction.GOAL_CREATE: 25,
    PointsAction.GOAL_COMPLETE: 100,
    PointsAction.JOURNAL_ENTRY: 5,
    PointsAction.DAILY_LOGIN: 10,
    PointsAction.STREAK_MILESTONE: 50,
    PointsAction.CHALLENGE_COMPLETE: 75,
    PointsAction.PERFECT_WEEK: 200,
}

if set(ACTION_POINTS) != set(PointsAction):
    raise RuntimeError("ACTION_POINTS must define points for every PointsAction")

# Exact streak value -> achievement unlocked by a streak_milestone award
STREAK_MILESTONE_ACHIEVEMENTS = {
    7: {"key": "streak_7", "type": "streak", "name": "7 Day Streak",
        "description": "Completed habits for 7 days straight", "icon": "🔥"},
    30: {"key": "streak_30", "type": "streak", "name": "30 Day Warrior",
         "description": "Completed habits for 30 days straight", "icon": "💪"},
    100: {"key": "streak_100", "type": "streak", "name": "Century Club",
          "description": "Completed habits for 100 days straight", "icon": "👑"},
}

PERFECT_WEEK_ACHIEVEMENT = {
    "key": "perfect_week", "type": "badge", "name": "Perfect Week",
    "description": "Completed all habits for a full week", "icon": "⭐",
}


# -------------------------
# Request models
# -------------------------
class AwardPointsRequest(BaseModel):
    action: str
    metadata: Optional[Dict[str, Any]] = None


# -------------------------
# Ledger
# -------------------------
def parse_action(action: str) -> PointsAction:
    try:
        return PointsAction(action)
    except ValueError:
        raise ValidationError("Invalid action")


def level_for(total_points: int) -> int:
    return total_points // POINTS_PER_LEVEL + 1


def milestone_achievements(action: PointsAction, metadata: Optional[Dict[str, Any]], earned: list) -> list:
    """Achievements this award unlocks, skipping keys already in `earned`."""
    unlocked = []
    if action is PointsAction.STREAK_MILESTONE:
        streak = (metadata or {}).get("streak")
        achievement = STREAK_MILESTONE_ACHIEVEMENTS.get(streak) if isinstance(streak, int) else None
        if achievement and achievement["key"] not in earned:
            unlocked.append(achievement)
    if action is PointsAction.PERFECT_WEEK and PERFECT_WEEK_ACHIEVEMENT["key"] not in earned:
        unlocked.append(PERFECT_WEEK_ACHIEVEMENT)
    return unlocked


async def _record_achievement(store: EntityStore, user_id: str, achievement: Dict[str, Any], today: str):
    data = {k: v for k, v in achievement.items() if k != "key"}
    data["unlocked_date"] = today
    return await store.upsert(user_id, ACHIEVEMENTS, achievement["key"], data)


@router.post("/awardPoints")
async def award_points(
    payload: AwardPointsRequest,
    user: CurrentUser = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
):
    action = parse_action(payload.action)
    points_earned = ACTION_POINTS[action]

    try:
        today = today_local().isoformat()
        profile = await store.get(user.user_id, GAMIFICATION_PROFILES, PROFILE_DOC_ID)
        if profile is None:
            profile = {
                "total_points": 0,
                "level": 1,
                "points_to_next_level": POINTS_PER_LEVEL,
                "badges_earned": [],
                "last_login_date": today,
            }

        previous_level = profile.get("level") or 1
        new_total = (profile.get("total_points") or 0) + points_earned
        new_level = level_for(new_total)

        badges = list(profile.get("badges_earned") or [])
        unlocked = milestone_achievements(action, payload.metadata, badges)
        for achievement in unlocked:
            await _record_achievement(store, user.user_id, achievement, today)
        new_badges = [a["key"] for a in unlocked]

        update = {
            "total_points": new_total,
            "level": new_level,
            "points_to_next_level": POINTS_PER_LEVEL,
            "badges_earned": badges + new_badges,
            "last_login_date": today if action is PointsAction.DAILY_LOGIN else profile.get("last_login_date", today),
        }
        await store.upsert(user.user_id, GAMIFICATION_PROFILES, PROFILE_DOC_ID, update)

        _logger.info("Awarded %d points to %s for %s (total=%d)", points_earned, user.user_id, action.value, new_total)
        return {
            "success": True,
            "pointsEarned": points_earned,
            "newTotal": new_total,
            "level": new_level,
            "leveledUp": new_level > previous_level,
            "newBadges": new_badges,
        }
    except LifeSyncError:
        raise
    except Exception as e:
        _logger.exception("Error awarding points: %s", e)
        raise UpstreamError(str(e))


# -------------------------
# Badge progress engine
# -------------------------
async def evaluate_badges(store: EntityStore, user_id: str) -> Dict[str, Any]:
    """
    Recompute progress for every badge definition and persist changes.

    - Badges already at progress >= 100 are skipped.
    - A newly earned badge is written with progress=100 and an earned_date.
    - Otherwise progress is only written when it increased.
    - Records are keyed by badge id, so repeating the call never duplicates them.
    """
    (all_badges, user_badges, habits, goals,
     journal_entries, practices, encouragements) = await asyncio.gather(
        store.list_global(BADGES),
        store.filter(user_id, USER_BADGES),
        store.filter(user_id, HABITS),
        store.filter(user_id, GOALS),
        store.filter(user_id, JOURNAL_ENTRIES),
        store.filter(user_id, MINDFULNESS_PRACTICES),
        store.filter(user_id, ENCOURAGEMENTS),
    )

    stats = analytics.badge_stats(habits, goals, journal_entries, practices, encouragements)
    existing_by_badge = {ub.get("badge_id"): ub for ub in user_badges}
    earned_ids = {badge_id for badge_id, ub in existing_by_badge.items() if (ub.get("progress") or 0) >= 100}

    today = today_local().isoformat()
    newly_earned = []

    for badge in all_badges:
        if badge["id"] in earned_ids:
            continue

        progress, earned = analytics.badge_progress(badge.get("criteria"), stats)
        existing = existing_by_badge.get(badge["id"])

        if earned:
            await store.upsert(user_id, USER_BADGES, badge["id"], {
                "badge_id": badge["id"], "progress": 100, "earned_date": today,
            })
            newly_earned.append(badge)
        elif existing is not None and (existing.get("progress") or 0) < progress:
            await store.upsert(user_id, USER_BADGES, badge["id"], {"progress": progress})
        elif existing is None and progress > 0:
            await store.upsert(user_id, USER_BADGES, badge["id"], {
                "badge_id": badge["id"], "progress": progress,
            })

    return {
        "stats": stats,
        "newlyEarned": newly_earned,
        "totalEarned": len(earned_ids) + len(newly_earned),
    }


@router.post("/checkBadgeProgress")
async def check_badge_progress(
    user: CurrentUser = Depends(get_current_user),
    store: EntityStore = Depends(get_entity_store),
):
    try:
        result = await evaluate_badges(store, user.user_id)
        if result["newlyEarned"]:
            _logger.info("User %s earned %d new badge(s)", user.user_id, len(result["newlyEarned"]))
        return {
            "success": True,
            "newlyEarned": result["newlyEarned"],
            "totalEarned": result["totalEarned"],
        }
    except LifeSyncError:
        raise
    except Exception as e:
        _logger.exception("Error checking badges: %s", e)
        raise UpstreamError(str(e))


@router.post("/initializeBadges")
async def initialize_badges(
    user: CurrentUser = Depends(require_admin),
    store: EntityStore = Depends(get_entity_store),
):
    try:
        existing = await store.list_global(BADGES)
        if existing:
            return {"success": True, "message": "Badges already exist", "count": len(existing)}

        count = await store.bulk_create_global(BADGES, BADGE_DEFINITIONS)
        _logger.info("Seeded %d badge definitions (by %s)", count, user.user_id)
        return {"success": True, "message": "Badges initialized", "count": count}
    except LifeSyncError:
        raise
    except Exception as e:
        _logger.exception("Error initializing badges: %s", e)
        raise UpstreamError(str(e))
