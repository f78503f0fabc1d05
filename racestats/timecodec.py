"""Conversions between ``HH:MM:SS`` clock strings and integer seconds."""

from __future__ import annotations

from typing import Optional

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400


def time_to_seconds(display: Optional[str]) -> int:
    """Return seconds for an ``HH:MM:SS`` timestamp.

    Components are not range-checked (``00:75:00`` is 4500 seconds). Raises
    ``ValueError`` unless the value is three groups of ASCII digits.
    """
    if display is None:
        raise ValueError("missing time value")
    parts = str(display).strip().split(":")
    if len(parts) != 3:
        raise ValueError(f"expected HH:MM:SS, got {display!r}")
    if not all(p.isascii() and p.isdigit() for p in parts):
        raise ValueError(f"expected HH:MM:SS, got {display!r}")
    h, m, s = (int(p) for p in parts)
    return h * SECONDS_PER_HOUR + m * SECONDS_PER_MINUTE + s


def seconds_to_time(seconds) -> Optional[str]:
    """Render seconds as a zero-padded ``HH:MM:SS`` string.

    Fractions are truncated. Values of a day or more wrap around midnight.
    """
    if seconds is None:
        return None
    total = int(seconds) % SECONDS_PER_DAY
    h, rem = divmod(total, SECONDS_PER_HOUR)
    m, s = divmod(rem, SECONDS_PER_MINUTE)
    return f"{h:02d}:{m:02d}:{s:02d}"
