"""Duration parsing for timers and timeouts."""

import re
from datetime import timedelta

from offsync.types import Duration

_DURATION_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h|d)\s*$")
_SECONDS: dict[str, float] = {
    "ms": 0.001,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
    "d": 86400.0,
}


def parse_duration(duration: Duration) -> float:
    """Parse a duration into seconds.

    Strings carry a unit ("250ms", "30s", "5m", "1.5h", "1d"), integers are
    milliseconds and ``timedelta`` values are converted directly.
    """
    if isinstance(duration, timedelta):
        seconds = duration.total_seconds()
    elif isinstance(duration, bool):
        raise ValueError(f"Invalid duration: {duration!r}")
    elif isinstance(duration, int):
        seconds = duration / 1000
    else:
        match = _DURATION_PATTERN.match(duration)
        if not match:
            raise ValueError(f"Invalid duration: {duration!r}")
        value, unit = match.groups()
        seconds = float(value) * _SECONDS[unit]

    if seconds < 0:
        raise ValueError(f"Duration must not be negative: {duration!r}")
    return seconds
