"""
analytics.py - Aggregation core shared by every coaching handler

Turns raw record collections (habits, habit logs, goals, journal entries,
mindfulness practices) into the numbers that get embedded in LLM prompts and
returned to the client.

Rules that hold for every function here:
- Pure: no I/O, no clock reads unless the caller passes `today`/`now`.
- Empty input yields a defined default (0, 3 or []), never an exception,
  NaN or a division by zero.
- Rounding is chosen by the caller. Handlers differ on whether a rate is an
  integer percentage or a 1-decimal float and that difference is kept.
"""

import math
from collections import Counter, defaultdict
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pytz

from .utils import parse_iso_date

# Midpoint of the 1-5 mood scale, used when no entry carries a mood.
DEFAULT_MOOD = 3

Record = Dict[str, Any]


# -------------------------
# Habit completion
# -------------------------
def count_completed(logs: Iterable[Record], dates: Optional[Iterable[str]] = None) -> int:
    """
    Count completed habit logs, optionally restricted to a set of ISO dates.

    Logs are deduplicated by (habit_id, date): a second log for the same habit
    on the same day never counts twice. Logs without a habit reference are
    counted individually.
    """
    allowed = set(dates) if dates is not None else None
    seen = set()
    count = 0
    for log in logs:
        if not log.get("completed"):
            continue
        log_date = log.get("date")
        if allowed is not None and log_date not in allowed:
            continue
        habit_id = log.get("habit_id")
        if habit_id is not None:
            key = (habit_id, log_date)
            if key in seen:
                continue
            seen.add(key)
        count += 1
    return count


def round_half_up(value: float) -> int:
    """Integer rounding where .5 always goes up (2.5 -> 3), unlike round()."""
    return int(math.floor(value + 0.5))


def round_places(value: float, ndigits: int) -> float:
    """Round to `ndigits` places with halves going up (3.25 -> 3.3), unlike round()."""
    quantum = Decimal(1).scaleb(-ndigits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def completion_rate(completed: int, habit_count: int, days: int, ndigits: Optional[int] = 0):
    """
    completed / (habit_count * days) * 100, clamped to [0, 100].

    ndigits=0 returns an int (Math.round style, halves round up); a positive
    ndigits returns a float rounded to that many places; None leaves the raw
    float. Returns 0 when habit_count * days is 0.
    """
    possible = habit_count * days
    if possible <= 0 or completed <= 0:
        return 0
    rate = min(completed / possible * 100, 100.0)
    if ndigits == 0:
        return round_half_up(rate)
    if ndigits is None:
        return rate
    return round_places(rate, ndigits)


def habit_log_rate(logs: Sequence[Record], ndigits: int = 1):
    """
    Share of the given logs marked completed, as a percentage.

    Used where a handler rates a single habit over its own recent logs rather
    than over a fixed calendar window. Empty -> 0.
    """
    if not logs:
        return 0
    done = sum(1 for log in logs if log.get("completed"))
    return completion_rate(done, 1, len(logs), ndigits=ndigits)


def compute_streak(
    logs: Iterable[Record],
    active_habit_count: int,
    today: date,
    max_days: int = 365
) -> int:
    """
    Count consecutive days, scanning backward from today, on which every
    active habit has a completed log.

    Today is lenient: an unfinished today does not end the scan, it simply
    does not count. Every earlier day is strict and the first miss stops it.
    """
    if active_habit_count <= 0:
        return 0

    completed_by_day = defaultdict(set)
    for log in logs:
        if log.get("completed") and log.get("date"):
            completed_by_day[log["date"]].add(log.get("habit_id") or log.get("id"))

    streak = 0
    for offset in range(max_days):
        day = (today - timedelta(days=offset)).isoformat()
        done = len(completed_by_day.get(day, ()))
        if done > 0 and done == active_habit_count:
            streak += 1
        elif offset > 0:
            break
    return streak


def max_longest_streak(habits: Iterable[Record]) -> int:
    return max([h.get("longest_streak") or 0 for h in habits] + [0])


def stress_level(struggling_count: int) -> str:
    if struggling_count > 2:
        return "high"
    if struggling_count > 0:
        return "moderate"
    return "low"


# -------------------------
# Mood
# -------------------------
def _moods(entries: Iterable[Record]) -> List[float]:
    return [e["mood"] for e in entries if e.get("mood")]


def mean_mood(entries: Iterable[Record]):
    """Mean of the present moods to 1 decimal, or exactly 3 when none exist."""
    moods = _moods(entries)
    if not moods:
        return DEFAULT_MOOD
    return round_places(float(np.mean(moods)), 1)


def mood_trend_delta(moods: Sequence[float]) -> float:
    """
    Newest mood minus oldest mood for a newest-first list.
    Fewer than three data points is treated as no trend (0).
    """
    if len(moods) < 3:
        return 0
    return moods[0] - moods[-1]


def describe_trend(delta: float) -> str:
    if delta > 0:
        return "improving ↑"
    if delta < 0:
        return "declining ↓"
    return "stable →"


def mood_by_week(entries: Iterable[Record], now: datetime) -> List[Dict[str, Any]]:
    """
    Average mood per week offset, offset = floor((now - entry_date) / 7 days).

    Entry dates are read as UTC midnight. Buckets are sorted by offset,
    descending, so the current week (offset 0) comes last.
    """
    if now.tzinfo is None:
        now = pytz.utc.localize(now)

    buckets = defaultdict(list)
    for entry in entries:
        mood = entry.get("mood")
        entry_date = parse_iso_date(entry.get("date"))
        if not mood or entry_date is None:
            continue
        entry_dt = datetime(entry_date.year, entry_date.month, entry_date.day, tzinfo=pytz.utc)
        week = math.floor((now - entry_dt) / timedelta(days=7))
        buckets[week].append(mood)

    trends = [
        {"week": week, "avg": round_places(float(np.mean(moods)), 1)}
        for week, moods in buckets.items()
    ]
    return sorted(trends, key=lambda t: t["week"], reverse=True)


# -------------------------
# Themes
# -------------------------
def top_tags(entries: Iterable[Record], k: int, with_counts: bool = False) -> List[Any]:
    """
    Most frequent tags across entries, highest count first.

    Ties keep first-seen order. with_counts=True returns (tag, count) pairs.
    """
    counts = Counter()
    for entry in entries:
        counts.update(entry.get("tags") or [])
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)[:k]
    if with_counts:
        return ranked
    return [tag for tag, _ in ranked]


# -------------------------
# Goals and mindfulness
# -------------------------
def goal_velocity(completed_in_window: int, window_days: int) -> float:
    """Goals completed per 30-day month. Not rounded; display code rounds."""
    if window_days <= 0:
        return 0.0
    return completed_in_window / (window_days / 30)


def mindfulness_impact(practices: Sequence[Record]) -> float:
    """Mean of (mood_after - mood_before) to 2 decimals, missing moods as 0."""
    if not practices:
        return 0
    deltas = [(p.get("mood_after") or 0) - (p.get("mood_before") or 0) for p in practices]
    return round_places(float(np.mean(deltas)), 2)


# -------------------------
# Badges
# -------------------------
# criteria.type -> key in the stats dict built by the badge engine
CRITERIA_STATS = {
    "streak": "max_streak",
    "goals_completed": "completed_goals",
    "journal_entries": "journal_entries",
    "mindfulness_sessions": "mindfulness_sessions",
    "encouragements_sent": "encouragements_sent",
}


def criteria_threshold(criteria: Record) -> Optional[float]:
    """`threshold`, falling back to the older `days` / `count` keys."""
    for key in ("threshold", "days", "count"):
        value = criteria.get(key)
        if value:
            return value
    return None


def badge_progress(criteria: Optional[Record], stats: Dict[str, int]) -> Tuple[float, bool]:
    """
    Return (progress_percent, earned) for one badge definition.

    progress is capped at 100; earned compares the raw value against the
    threshold so a value exactly at the threshold is always earned.
    Unsupported criteria types score (0, False).
    """
    criteria = criteria or {}
    stat_key = CRITERIA_STATS.get(criteria.get("type"))
    threshold = criteria_threshold(criteria)
    if stat_key is None or not threshold:
        return 0, False

    value = stats.get(stat_key, 0)
    progress = min(value / threshold * 100, 100)
    return progress, value >= threshold


def badge_stats(
    habits: Sequence[Record],
    goals: Sequence[Record],
    journal_entries: Sequence[Record],
    practices: Sequence[Record],
    encouragements: Sequence[Record]
) -> Dict[str, int]:
    return {
        "max_streak": max_longest_streak(habits),
        "completed_goals": sum(1 for g in goals if g.get("status") == "completed"),
        "journal_entries": len(journal_entries),
        "mindfulness_sessions": len(practices),
        "encouragements_sent": len(encouragements),
    }
