from __future__ import annotations

import calendar as _calendar
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Iterator
from zoneinfo import ZoneInfo


class DateType(str, Enum):
    weekday = "weekday"
    weekend = "weekend"
    holiday = "holiday"


# Danish public holidays, ISO dates, keyed by year.
HOLIDAYS: dict[int, frozenset[str]] = {
    2025: frozenset(
        {
            "2025-01-01",  # New Year's Day
            "2025-04-17",  # Maundy Thursday
            "2025-04-18",  # Good Friday
            "2025-04-21",  # Easter Monday
            "2025-05-16",  # Great Prayer Day
            "2025-05-29",  # Ascension Day
            "2025-06-05",  # Constitution Day
            "2025-06-09",  # Whit Monday
            "2025-12-24",  # Christmas Eve
            "2025-12-25",  # Christmas Day
            "2025-12-26",  # Boxing Day
            "2025-12-31",  # New Year's Eve
        }
    ),
    2026: frozenset(
        {
            "2026-01-01",
            "2026-04-02",
            "2026-04-03",
            "2026-04-06",
            "2026-05-14",
            "2026-05-25",
            "2026-06-05",
            "2026-12-24",
            "2026-12-25",
            "2026-12-26",
            "2026-12-31",
        }
    ),
}

# Fixed daily slots, in allocation order.
TIME_SLOTS: tuple[str, ...] = ("14:00-16:00", "16:00-18:00", "18:00-20:00", "20:00-22:00")
SLOT_DURATION_HOURS = 2


def is_holiday(day: date) -> bool:
    return day.isoformat() in HOLIDAYS.get(day.year, frozenset())


def is_weekend(day: date) -> bool:
    return day.weekday() >= 5


def classify_date(day: date) -> DateType:
    """Holiday takes precedence over weekend."""
    day = to_calendar_date(day)
    if is_holiday(day):
        return DateType.holiday
    if is_weekend(day):
        return DateType.weekend
    return DateType.weekday


def to_calendar_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def today_in(timezone: ZoneInfo) -> date:
    return datetime.now(timezone).date()


def add_months(day: date, months: int) -> date:
    """Calendar month arithmetic, clamping to the last day of the target month."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = _calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def iter_dates(start: date, end: date) -> Iterator[date]:
    """Yield every date from start to end, both inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def slot_times(day: date, slot: str, timezone: ZoneInfo) -> tuple[datetime, datetime]:
    if slot not in TIME_SLOTS:
        raise ValueError(f"Unknown time slot: {slot}")
    start_hour = int(slot.split(":", 1)[0])
    start = datetime.combine(day, time(hour=start_hour), tzinfo=timezone)
    return start, start + timedelta(hours=SLOT_DURATION_HOURS)
