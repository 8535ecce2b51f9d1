"""Duration parsing utilities."""

import re

from carequery.types import Duration

_DURATION_PATTERN = re.compile(r"^(\d+)(ms|s|m|h|d)$")
_UNITS: dict[str, int] = {
    "ms": 1,
    "s": 1000,
    "m": 60_000,
    "h": 3_600_000,
    "d": 86_400_000,
}
_NEVER = frozenset({"never", "infinity"})


def parse_duration(duration: Duration) -> int:
    """Parse duration string to milliseconds. Passthrough if already int."""
    if isinstance(duration, bool):
        raise ValueError(f"Invalid duration: {duration!r}")
    if isinstance(duration, int):
        if duration < 0:
            raise ValueError(f"Invalid duration: {duration!r}")
        return duration

    match = _DURATION_PATTERN.match(duration)
    if not match:
        raise ValueError(f"Invalid duration: {duration!r}")

    value, unit = match.groups()
    return int(value) * _UNITS[unit]


def parse_stale_after(duration: Duration | None) -> int | None:
    """Parse a freshness window. None, "never" and "infinity" mean no expiry."""
    if duration is None:
        return None
    if isinstance(duration, str) and duration.lower() in _NEVER:
        return None
    return parse_duration(duration)
