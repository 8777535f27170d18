"""
Schedule helpers: time-string parsing, week/day grouping for the dashboard,
and the default weekly template used to generate a year of classes.

Everything here is pure (no DB access) so it works on loaded GymClass rows
as well as on any object exposing id/name/day/date/time/enabled.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Iterable, Sequence

WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
DAY_ORDER = {name: idx for idx, name in enumerate(WEEKDAY_NAMES)}

_TIME_12H = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*([AaPp][Mm])\s*$")
_TIME_24H = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")

# Unparseable times sort after every real time of day.
_UNPARSEABLE_SORT_VALUE = 24 * 60

# Default weekly template (24h hour values per weekday).
DEFAULT_WEEKLY_TEMPLATE: dict[str, tuple[int, ...]] = {
    "Monday": (8, 9, 10, 17, 18, 19, 20),
    "Tuesday": (8, 9, 17, 18, 19, 20),
    "Wednesday": (8, 9, 10, 17, 18, 19, 20),
    "Thursday": (8, 9, 17, 18, 19, 20),
    "Friday": (8, 9, 10, 16, 17, 18),
}
DEFAULT_CLASS_NAME = "CrossFit"
YEAR_SCHEDULE_THRESHOLD = 0.8


def parse_time_value(text: str | None) -> int | None:
    """
    Minutes since midnight for "7:00 AM" / "5:30 pm" / "17:30".
    Returns None when the text is not a time.
    """
    if not text or not isinstance(text, str):
        return None
    m = _TIME_12H.match(text)
    if m:
        hours, minutes, period = int(m.group(1)), int(m.group(2)), m.group(3).upper()
        if not (1 <= hours <= 12) or minutes > 59:
            return None
        if period == "PM" and hours < 12:
            hours += 12
        if period == "AM" and hours == 12:
            hours = 0
        return hours * 60 + minutes
    m = _TIME_24H.match(text)
    if m:
        hours, minutes = int(m.group(1)), int(m.group(2))
        if hours > 23 or minutes > 59:
            return None
        return hours * 60 + minutes
    return None


def time_sort_key(text: str | None) -> int:
    value = parse_time_value(text)
    return _UNPARSEABLE_SORT_VALUE if value is None else value


def format_time(hour: int | str, minute: int | str, period: str) -> str:
    """Build "7:05 AM" from the hour/minute/period form fields."""
    try:
        h = int(hour)
        m = int(minute)
    except (TypeError, ValueError):
        h = m = -1
    p = str(period or "").strip().upper()
    if not (1 <= h <= 12) or not (0 <= m <= 59) or p not in ("AM", "PM"):
        raise ValueError("Invalid time. Use hour 1-12, minute 0-59 and AM/PM.")
    return f"{h}:{m:02d} {p}"


def format_minutes(total: int) -> str:
    hours, minutes = divmod(total, 60)
    period = "AM" if hours < 12 else "PM"
    display = hours % 12 or 12
    return f"{display}:{minutes:02d} {period}"


def normalize_time(text: str | None) -> str:
    """Canonical "H:MM AM" form; raises ValueError for anything else."""
    value = parse_time_value(text)
    if value is None:
        raise ValueError(f"Invalid time: {text!r}. Use e.g. '7:00 AM' or '17:00'.")
    return format_minutes(value)


def weekday_name(d: date) -> str:
    return WEEKDAY_NAMES[d.weekday()]


def monday_of(d: date) -> date:
    return d - timedelta(days=d.weekday())


@dataclass
class DayGroup:
    day: str
    date: date
    classes: list[Any] = field(default_factory=list)


@dataclass
class WeekGroup:
    week_number: int
    start_date: date
    end_date: date
    class_count: int = 0
    enabled_count: int = 0
    day_groups: list[DayGroup] = field(default_factory=list)

    @property
    def all_enabled(self) -> bool:
        return self.class_count > 0 and self.enabled_count == self.class_count

    def class_ids(self) -> list[Any]:
        return [cls.id for dg in self.day_groups for cls in dg.classes]


def group_classes_by_week(classes: Iterable[Any]) -> list[WeekGroup]:
    sorted_classes = sorted(classes, key=lambda c: c.date)
    weeks: list[WeekGroup] = []
    if not sorted_classes:
        return weeks

    first_monday = monday_of(sorted_classes[0].date)
    by_number: dict[int, WeekGroup] = {}

    for cls in sorted_classes:
        monday = monday_of(cls.date)
        week_number = (monday - first_monday).days // 7

        week = by_number.get(week_number)
        if week is None:
            week = WeekGroup(
                week_number=week_number,
                start_date=monday,
                end_date=monday + timedelta(days=4),
            )
            by_number[week_number] = week
            weeks.append(week)

        week.class_count += 1
        if cls.enabled:
            week.enabled_count += 1

        day_group = next((dg for dg in week.day_groups if dg.day == cls.day), None)
        if day_group is None:
            day_group = DayGroup(day=cls.day, date=cls.date)
            week.day_groups.append(day_group)
        day_group.classes.append(cls)

    for week in weeks:
        week.day_groups.sort(key=lambda dg: DAY_ORDER.get(dg.day, len(DAY_ORDER)))
        for dg in week.day_groups:
            dg.classes.sort(key=lambda c: time_sort_key(c.time))

    return weeks


def group_classes_by_day(classes: Iterable[Any]) -> list[DayGroup]:
    groups: dict[date, DayGroup] = {}
    for cls in classes:
        dg = groups.get(cls.date)
        if dg is None:
            dg = DayGroup(day=weekday_name(cls.date), date=cls.date)
            groups[cls.date] = dg
        dg.classes.append(cls)
    ordered = [groups[d] for d in sorted(groups)]
    for dg in ordered:
        dg.classes.sort(key=lambda c: time_sort_key(c.time))
    return ordered


def class_ids_in_week(weeks: Sequence[WeekGroup], week_number: int) -> list[Any]:
    for week in weeks:
        if week.week_number == week_number:
            return week.class_ids()
    return []


def template_classes_per_week(template: dict[str, tuple[int, ...]] | None = None) -> int:
    template = template or DEFAULT_WEEKLY_TEMPLATE
    return sum(len(hours) for hours in template.values())


def iter_template_slots(
    start: date,
    weeks: int,
    template: dict[str, tuple[int, ...]] | None = None,
) -> Iterable[tuple[date, str, str]]:
    """Yield (date, day name, "H:MM AM") for every templated slot, week by week."""
    template = template or DEFAULT_WEEKLY_TEMPLATE
    first_monday = monday_of(start)
    for week in range(weeks):
        monday = first_monday + timedelta(weeks=week)
        for day_name, hours in template.items():
            d = monday + timedelta(days=DAY_ORDER[day_name])
            for hour in hours:
                yield d, day_name, format_minutes(hour * 60)


def schedule_status(count: int, weeks: int = 52) -> dict[str, Any]:
    expected = template_classes_per_week() * weeks
    has_year_schedule = count > expected * YEAR_SCHEDULE_THRESHOLD
    return {
        "classCount": count,
        "expected": expected,
        "hasYearSchedule": has_year_schedule,
        "message": (
            "Year-long schedule is already generated"
            if has_year_schedule
            else "Year-long schedule not detected"
        ),
    }
