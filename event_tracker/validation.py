from __future__ import annotations

import re
import shlex
from datetime import date, timedelta

from .errors import ValidationError
from .models import METRIC_FAMILIES

_INTERVAL_PATTERN = re.compile(r"^(\d+)(m|h|d)$", re.IGNORECASE)
_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_SPLIT_PATTERN = re.compile(r"[\s,]+")

_UNITS = {
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
}


def parse_interval(raw: str) -> timedelta:
    match = _INTERVAL_PATTERN.match(raw.strip())
    if not match:
        raise ValidationError("Invalid interval format. Use format like: 2h, 30m, 1d")
    value = int(match.group(1))
    if value <= 0:
        raise ValidationError("Interval must be greater than zero")
    return value * _UNITS[match.group(2).lower()]


def format_interval(interval: timedelta) -> str:
    """Render an interval the way it is shown in status replies."""
    total_minutes = int(interval.total_seconds() // 60)
    hours, minutes = divmod(total_minutes, 60)
    if hours and minutes:
        return f"{hours}h {minutes}m"
    if hours:
        return f"{hours}h"
    return f"{minutes}m"


def parse_event_date(raw: str) -> date:
    raw = raw.strip()
    if not _DATE_PATTERN.match(raw):
        raise ValidationError("Invalid date format. Use YYYY-MM-DD")
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise ValidationError(f"Invalid date: {raw}") from exc


def validate_event_window(start: date, end: date) -> tuple[date, date]:
    if end <= start:
        raise ValidationError("End date must be after start date")
    return start, end


def parse_metric_families(raw: str | None) -> list[str]:
    """Return the requested metric families, or all of them when none are given."""
    if raw is None or not raw.strip():
        return list(METRIC_FAMILIES)
    requested: list[str] = []
    for part in _SPLIT_PATTERN.split(raw.strip().lower()):
        if not part:
            continue
        if part not in METRIC_FAMILIES:
            raise ValidationError(
                f"Unknown metric family: {part} (choose from {', '.join(METRIC_FAMILIES)})"
            )
        if part not in requested:
            requested.append(part)
    # gexp drives the lottery score so it is always tracked
    if "gexp" not in requested:
        requested.insert(0, "gexp")
    return [family for family in METRIC_FAMILIES if family in requested]


def split_start_arguments(text: str) -> tuple[str, str, str, str]:
    """Split `"<name>" <start> <end> <interval>` into its four parts."""
    try:
        parts = shlex.split(text)
    except ValueError as exc:
        raise ValidationError(f"Could not parse arguments: {exc}") from exc
    if len(parts) < 4:
        raise ValidationError("Usage: <name> <startDate> <endDate> <update interval>")
    name = " ".join(parts[:-3]).strip()
    if not name:
        raise ValidationError("Event name cannot be empty")
    start, end, interval = parts[-3:]
    return name, start, end, interval
