"""Utility functions for the reading-list manager."""

import hashlib
import re
import sys
import time
from datetime import date, datetime, time as dtime, timezone
from typing import Iterable, List, Optional

# ASCII whitespace plus the ideographic (full-width) space
_SPACE_RE = re.compile(r"[\s　]+")
_LEADING_INT_RE = re.compile(r"\s*([+-]?\d+)")


def die(msg: str, code: int = 1) -> None:
    """Print error message and exit.

    Args:
        msg: Error message to display.
        code: Exit code (default 1).
    """
    print(f"rl: {msg}", file=sys.stderr)
    sys.exit(code)


def confirm(prompt: str, assume_yes: bool = False) -> bool:
    """Ask a yes/no question on the terminal; anything but y/yes is a no."""
    if assume_yes:
        return True
    try:
        answer = input(f"{prompt} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def now_epoch() -> int:
    """Current time as Unix seconds."""
    return int(time.time())


def parse_int(value: Optional[str]) -> Optional[int]:
    """Parse the leading integer of a string, like JavaScript's parseInt.

    Returns None when the string is empty or has no leading digits.
    """
    if not value:
        return None
    m = _LEADING_INT_RE.match(value)
    if not m:
        return None
    return int(m.group(1))


def parse_day(value) -> Optional[date]:
    """Parse 'YYYY-MM-DD' (or a full ISO timestamp) into a calendar day."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    value = value.strip()
    if not value:
        return None
    try:
        if re.fullmatch(r"\d{4}-\d{2}-\d{2}", value):
            return date.fromisoformat(value)
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        return datetime.fromisoformat(value).date()
    except ValueError:
        return None


def start_of_day(day: date) -> int:
    """Unix seconds of local midnight at the start of ``day``."""
    return int(datetime.combine(day, dtime.min).astimezone().timestamp())


def end_of_day(day: date) -> int:
    """Unix seconds of the last second of ``day`` in local time."""
    return int(datetime.combine(day, dtime(23, 59, 59)).astimezone().timestamp())


def fmt_epoch(ts: Optional[int]) -> str:
    """Render Unix seconds as a local ISO timestamp (empty for None)."""
    if ts is None:
        return ""
    return datetime.fromtimestamp(ts, timezone.utc).astimezone().replace(microsecond=0).isoformat()


def split_terms(text: str) -> List[str]:
    """Split free text on ASCII and full-width whitespace."""
    return [t for t in _SPACE_RE.split(text or "") if t]


def clean_tags(tags: Iterable) -> List[str]:
    """Drop empty and duplicate tags, keep first-seen order.

    Tags are kept verbatim; non-string entries are converted with ``str``.
    """
    seen = set()
    out = []
    for t in tags:
        if t is None:
            continue
        if not isinstance(t, str):
            t = str(t)
        if t and t not in seen:
            seen.add(t)
            out.append(t)
    return out


def split_tags(value: Optional[str]) -> List[str]:
    """Split comma-separated user input into stripped, clean tags."""
    return clean_tags(t.strip() for t in (value or "").split(","))


def rid(url: str) -> str:
    """Stable short ID based on URL only (rename-safe)."""
    return hashlib.blake2b(url.encode("utf-8"), digest_size=6).hexdigest()
