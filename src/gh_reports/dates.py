"""Date ranges and durations used by the reports."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

QUARTERS = ("Q1", "Q2", "Q3", "Q4")

# (start month, start day, end month, end day)
_QUARTER_BOUNDS = {
    "Q1": (1, 1, 3, 31),
    "Q2": (4, 1, 6, 30),
    "Q3": (7, 1, 9, 30),
    "Q4": (10, 1, 12, 31),
}

TIMEFRAMES = {"2w": 14, "1m": 30, "1y": 365}


@dataclass(frozen=True)
class DateRange:
    """Inclusive UTC range."""

    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end

    @property
    def days(self) -> int:
        return max(1, round((self.end - self.start).total_seconds() / 86400))

    def iso_start(self) -> str:
        return _to_iso(self.start)

    def iso_end(self) -> str:
        return _to_iso(self.end)


def _to_iso(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a GitHub ISO 8601 timestamp (``2024-01-01T00:00:00Z``)."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def quarter_range(quarter: str, year: int) -> DateRange:
    """Return the inclusive range of a calendar quarter, e.g. Q1 2024."""
    bounds = _QUARTER_BOUNDS.get(quarter.upper())
    if bounds is None:
        raise ValueError(f"Invalid quarter {quarter!r}, expected one of {', '.join(QUARTERS)}")
    if not 1000 <= year <= 9999:
        raise ValueError(f"Invalid year {year!r}, expected four digits")
    start_month, start_day, end_month, end_day = bounds
    return DateRange(
        start=datetime(year, start_month, start_day, tzinfo=timezone.utc),
        end=datetime(year, end_month, end_day, 23, 59, 59, tzinfo=timezone.utc),
    )


def timeframe_range(timeframe: str, now: datetime | None = None) -> DateRange:
    """Return the analysis window ending now for ``2w``, ``1m`` or ``1y``."""
    days = TIMEFRAMES.get(timeframe)
    if days is None:
        raise ValueError(f"Invalid timeframe {timeframe!r}, expected one of {', '.join(TIMEFRAMES)}")
    end = now or datetime.now(timezone.utc)
    return DateRange(start=end - timedelta(days=days), end=end)


def parse_since(value: str, now: datetime | None = None) -> datetime | None:
    """Parse a relative date (7d, 2w, 3m, 1y) or an absolute YYYY-MM-DD into UTC."""
    now = now or datetime.now(timezone.utc)
    match = re.match(r"^(\d+)([dwmy])$", value)
    if match:
        amount = int(match.group(1))
        unit = match.group(2)
        if unit == "d":
            delta = timedelta(days=amount)
        elif unit == "w":
            delta = timedelta(weeks=amount)
        elif unit == "m":
            delta = timedelta(days=amount * 30)
        else:  # unit == "y"
            delta = timedelta(days=amount * 365)
        return now - delta
    try:
        return datetime.strptime(value, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def format_time_open(created: datetime, now: datetime | None = None) -> str:
    """Format how long something has been open as ``3d 4h`` or ``5h``."""
    now = now or datetime.now(timezone.utc)
    elapsed = max(0, int((now - created).total_seconds()))
    days, remainder = divmod(elapsed, 86400)
    hours = remainder // 3600
    if days >= 1:
        return f"{days}d {hours}h"
    return f"{hours}h"


def days_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 86400
