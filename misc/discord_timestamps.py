from __future__ import annotations

"""Discord <t:...> tags and short human durations for stream embeds."""

from datetime import datetime


DISCORD_TIMESTAMP_STYLES = {"t", "T", "d", "D", "f", "F", "R"}

_DURATION_UNITS = (
    ("year", 365 * 24 * 3600),
    ("month", 30 * 24 * 3600),
    ("week", 7 * 24 * 3600),
    ("day", 24 * 3600),
    ("hour", 3600),
    ("minute", 60),
)


def _validate_style(style: str) -> str:
    clean = str(style or "").strip() or "f"
    if clean not in DISCORD_TIMESTAMP_STYLES:
        raise ValueError(f"Invalid Discord timestamp style: {clean}")
    return clean


def _require_aware_datetime(value: datetime, *, arg_name: str) -> datetime:
    if not isinstance(value, datetime):
        raise ValueError(f"{arg_name} must be a datetime")
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{arg_name} must be timezone-aware")
    return value


def format_discord_timestamp(dt: datetime, style: str = "f") -> str:
    aware = _require_aware_datetime(dt, arg_name="dt")
    style_clean = _validate_style(style)
    return f"<t:{int(aware.timestamp())}:{style_clean}>"


def humanize_duration(seconds: float, *, largest: int = 2) -> str:
    """`2 hours, 5 minutes` style; rounds half up to the smallest shown unit, floors at minutes."""
    total = max(0.0, float(seconds))
    largest = max(1, int(largest))
    first = next((i for i, (_, size) in enumerate(_DURATION_UNITS) if total >= size), len(_DURATION_UNITS) - 1)
    step = _DURATION_UNITS[min(first + largest - 1, len(_DURATION_UNITS) - 1)][1]
    remaining = int(total / step + 0.5) * step

    parts: list[str] = []
    for name, size in _DURATION_UNITS:
        if len(parts) >= largest:
            break
        count = remaining // size
        if count <= 0:
            continue
        remaining -= count * size
        parts.append(f"{count} {name}{'' if count == 1 else 's'}")
    return ", ".join(parts) if parts else "0 minutes"


def uptime_text(started_at: datetime | None, now: datetime) -> str:
    if started_at is None:
        return "unknown"
    started = _require_aware_datetime(started_at, arg_name="started_at")
    current = _require_aware_datetime(now, arg_name="now")
    return f"{humanize_duration((current - started).total_seconds())} ({format_discord_timestamp(started, 'R')})"
