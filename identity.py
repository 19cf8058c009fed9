"""
Caller identity resolution from request headers.

There is no signature check: the headers are trusted as sent. Anything that
fails to parse is treated as "no identity" and never raised to the caller.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional
from urllib.parse import unquote

TELEGRAM_HEADER = "x-telegram-user"
DEV_HEADER = "x-dev-user"
DEV_FALLBACK_ID = 12345


@dataclass(frozen=True)
class Caller:
    id: int
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


def parse_header_value(raw: Optional[str]) -> Optional[Dict[str, Any]]:
    """JSON object first, then ``key=value&key=value``."""
    if not raw:
        return None
    # deeply nested arrays exhaust the decoder stack: RecursionError
    try:
        parsed = json.loads(raw)
    except (ValueError, RecursionError):
        parsed = None
    if isinstance(parsed, dict):
        return parsed
    if parsed is not None:
        return None
    out: Dict[str, Any] = {}
    for part in raw.split("&"):
        key, _, value = part.partition("=")
        if key:
            out[unquote(key)] = unquote(value)
    return out


def _numeric_id(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value or None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number or not number or not number.is_integer():
        return None
    return int(number)


def resolve_caller(headers: Mapping[str, str], production: bool = False) -> Optional[Caller]:
    tg = parse_header_value(headers.get(TELEGRAM_HEADER))
    if tg:
        caller_id = _numeric_id(tg.get("id"))
        if caller_id is not None:
            return Caller(
                id=caller_id,
                username=tg.get("username"),
                first_name=tg.get("first_name"),
                last_name=tg.get("last_name"),
            )

    dev = parse_header_value(headers.get(DEV_HEADER))
    if dev:
        caller_id = _numeric_id(dev.get("id"))
        if caller_id is not None:
            return Caller(
                id=caller_id,
                username=dev.get("username") or "dev",
                first_name=dev.get("first_name") or "Dev",
                last_name=dev.get("last_name"),
            )

    if not production:
        return Caller(id=DEV_FALLBACK_ID, username="devuser", first_name="Dev")
    return None
