"""
utils.py - Small shared helpers for LifeSync

1. Calendar helpers: "today" is resolved in the configured LOCAL_TIMEZONE so
   that day-based aggregation (windows, streaks) matches the user's calendar.
2. Crisis-language detection for journal text. A match does not block
   anything; handlers surface it as a `safety_concern` flag so the client can
   show support resources.
"""

import os
import re
from datetime import date, datetime, timedelta
from typing import List, Optional, Tuple

import pytz

LOCAL_TIMEZONE = pytz.timezone(os.environ.get("LOCAL_TIMEZONE", "UTC"))


def now_utc() -> datetime:
    return datetime.now(pytz.utc)


def now_iso() -> str:
    """UTC timestamp in the `...Z` form used for stored records."""
    return now_utc().strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def today_local() -> date:
    return now_utc().astimezone(LOCAL_TIMEZONE).date()


def parse_iso_date(value) -> Optional[date]:
    """
    Parse `YYYY-MM-DD` (or a full ISO timestamp) into a date.
    Returns None for empty or unparseable input.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(str(value)[:10]).date()
    except ValueError:
        return None


def last_n_days(n: int, today: Optional[date] = None) -> List[str]:
    """ISO strings for today and the n-1 days before it, newest first."""
    today = today or today_local()
    return [(today - timedelta(days=i)).isoformat() for i in range(n)]


# Phrases that may indicate self-harm or an acute crisis in journal text.
CRISIS_KEYWORDS = [
    "suicide", "kill myself", "end my life", "hurt myself", "want to die",
    "i wish i was dead", "no reason to live", "better off dead", "can't go on",
    "cut myself", "self-harm", "hurting myself", "harm myself", "self injury",
    "can't cope", "breaking point", "no hope", "won't get better", "overdose",
]

_CRISIS_RE = re.compile(
    r"\b(" + r"|".join(re.escape(k) for k in CRISIS_KEYWORDS) + r")\b",
    flags=re.IGNORECASE
)


def detect_crisis_language(text: str) -> Tuple[bool, Optional[str]]:
    """
    Return (True, matched_phrase) when journal text contains crisis language.

    "can't go on" about work tasks is treated as ordinary
    frustration, not a crisis.
    """
    if not text or not text.strip():
        return False, None

    m = _CRISIS_RE.search(text)
    if not m:
        return False, None

    matched = m.group(0)
    context = text.lower()
    if matched.lower() == "can't go on" and "work" in context and "tasks" in context:
        return False, None

    return True, matched


def excerpt(text: Optional[str], limit: int) -> str:
    """First `limit` characters of `text`; missing text is ''."""
    return (text or "")[:limit]
