"""
Day normalization for hosted history rows.

Hosted rows have not always stored their day the same way, so each row's
calendar day is inferred by trying a fixed list of strategies in order. The
first strategy that yields a day wins; a row no strategy can date is skipped.
"""

import re
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from schemas import HistoryEntry

Row = Dict[str, Any]

DAY_PREFIX = re.compile(r"^(\d{4}-\d{2}-\d{2})")
CREATED_FIELDS = ("created_at", "inserted_at")


def parse_timestamp(value: Any) -> Optional[date]:
    """Best-effort timestamp parse; aware values are read in local time."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            # epoch milliseconds
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone()
    return parsed.date()


def _from_day_string(row: Row) -> Optional[str]:
    value = row.get("date")
    if isinstance(value, str):
        match = DAY_PREFIX.match(value)
        if match:
            return match.group(1)
    return None


def _from_day_timestamp(row: Row) -> Optional[str]:
    if not row.get("date"):
        return None
    parsed = parse_timestamp(row["date"])
    return parsed.isoformat() if parsed else None


def _from_created(row: Row) -> Optional[str]:
    for name in CREATED_FIELDS:
        if row.get(name):
            parsed = parse_timestamp(row[name])
            if parsed:
                return parsed.isoformat()
    return None


def _from_any_field(row: Row) -> Optional[str]:
    for value in row.values():
        if isinstance(value, str) and len(value) > 8 and "-" in value:
            parsed = parse_timestamp(value)
            if parsed:
                return parsed.isoformat()
    return None


DAY_STRATEGIES: List[Callable[[Row], Optional[str]]] = [
    _from_day_string,
    _from_day_timestamp,
    _from_created,
    _from_any_field,
]


def row_day(row: Optional[Row]) -> Optional[str]:
    if not row:
        return None
    for strategy in DAY_STRATEGIES:
        day = strategy(row)
        if day:
            return day
    return None


def index_by_day(rows: Iterable[Row], field: str) -> Dict[str, Any]:
    """Map normalized day -> ``row[field]``; a null value never overwrites."""
    out: Dict[str, Any] = {}
    for row in rows:
        day = row_day(row)
        if not day:
            continue
        value = row.get(field)
        if value is not None:
            out[day] = value
        else:
            out.setdefault(day, None)
    return out


def build_window(days: List[str], moods: Dict[str, Any], highlights: Dict[str, Any]) -> List[HistoryEntry]:
    return [
        HistoryEntry(date=day, mood=moods.get(day), highlight=highlights.get(day) or "")
        for day in days
    ]
