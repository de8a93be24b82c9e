"""
Recurrence helpers for calendar events (RFC 5545 via dateutil.rrule).

Events store dt_start/dt_end as naive UTC plus an IANA timezone. Expansion
happens in that timezone so a weekly 16:00 lesson stays at 16:00 local time
across daylight-saving changes; results are converted back to UTC.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Optional

from dateutil import parser as date_parser
from dateutil import tz
from dateutil.rrule import FR, MO, SA, SU, TH, TU, WE, WEEKLY, rrule, rrulestr

logger = logging.getLogger(__name__)

# Index is day_of_week as stored on timeslots: 0 = Sunday ... 6 = Saturday
RRULE_WEEKDAYS = [SU, MO, TU, WE, TH, FR, SA]


class RecurrenceError(ValueError):
    """Raised when a stored recurrence rule cannot be parsed"""


def resolve_zone(name: Optional[str]):
    """tzinfo for an IANA name; UTC when empty or unknown"""
    zone = tz.gettz(name) if name else None
    return zone or timezone.utc


def to_utc_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to a naive stored value, or convert an aware one"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_iso(value: datetime) -> str:
    """UTC ISO-8601 with millisecond precision, e.g. 2025-03-05T15:00:00.000Z"""
    value = as_utc(value)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def js_day_of_week(value: datetime) -> int:
    """0 = Sunday ... 6 = Saturday"""
    return (value.weekday() + 1) % 7


def next_weekly_start(
    day_of_week: int, start_time: time, timezone_name: Optional[str], now: Optional[datetime] = None
) -> datetime:
    """
    Next occurrence of `day_of_week` at `start_time` local to the timezone.

    Today only counts while the start time is still in the future; otherwise
    the same weekday next week is used. Returns an aware datetime in the zone.
    """
    zone = resolve_zone(timezone_name)
    now_local = (now or datetime.now(timezone.utc)).astimezone(zone)

    days_ahead = (day_of_week - js_day_of_week(now_local)) % 7
    candidate = datetime.combine(now_local.date() + timedelta(days=days_ahead), start_time, tzinfo=zone)
    if days_ahead == 0 and candidate <= now_local:
        candidate = datetime.combine(now_local.date() + timedelta(days=7), start_time, tzinfo=zone)
    return candidate


def slot_duration(start_time: time, end_time: time) -> timedelta:
    anchor = date(2000, 1, 1)
    return datetime.combine(anchor, end_time) - datetime.combine(anchor, start_time)


def build_weekly_rrule(day_of_week: int, dtstart: datetime) -> str:
    """RRULE line for a weekly rule on the given weekday, without DTSTART"""
    rule = rrule(WEEKLY, byweekday=[RRULE_WEEKDAYS[day_of_week]], dtstart=dtstart)
    lines = [line for line in str(rule).splitlines() if line.startswith("RRULE:")]
    return lines[0]


def parse_rule(rule_text: str, dtstart: datetime):
    """
    Parse a stored rule anchored at `dtstart`.

    Any DTSTART embedded in the text is discarded; the event's own start is
    authoritative.
    """
    lines = [
        line.strip()
        for line in (rule_text or "").splitlines()
        if line.strip() and not line.strip().upper().startswith("DTSTART")
    ]
    if not lines:
        raise RecurrenceError("Empty recurrence rule")
    try:
        return rrulestr("\n".join(lines), dtstart=dtstart, forceset=True)
    except (ValueError, TypeError, KeyError, AttributeError) as e:
        raise RecurrenceError(f"Invalid recurrence rule {rule_text!r}: {e}") from e


def parse_exdates(values: Optional[Iterable], zone) -> set[date]:
    """
    Exception dates as local calendar dates.

    Date-only values ("2025-03-11", date objects) already name the local date.
    Values with a time are converted into the event zone; naive ones are read as UTC.
    """
    excluded: set[date] = set()
    if not values or not isinstance(values, (list, tuple)):
        return excluded
    for value in values:
        if isinstance(value, date) and not isinstance(value, datetime):
            excluded.add(value)
            continue
        try:
            if isinstance(value, datetime):
                parsed = value
            else:
                text = str(value).strip()
                if len(text) <= 10:
                    excluded.add(date_parser.isoparse(text).date())
                    continue
                parsed = date_parser.isoparse(text)
        except (ValueError, TypeError, OverflowError):
            logger.warning(f"⚠️ Ignoring unparsable exdate: {value!r}")
            continue
        excluded.add(as_utc(parsed).astimezone(zone).date())
    return excluded


def expand(
    rule_text: str,
    dt_start: datetime,
    dt_end: datetime,
    timezone_name: Optional[str],
    window_start: datetime,
    window_end: datetime,
    exdates: Optional[Iterable] = None,
) -> list[tuple[datetime, datetime]]:
    """
    Occurrences of a recurring event starting inside [window_start, window_end].

    Bounds are inclusive. Occurrences falling on an exception date (compared as
    local calendar dates) are skipped. Returns UTC-aware (start, end) pairs in
    chronological order.

    Raises:
        RecurrenceError: if the rule cannot be parsed
    """
    zone = resolve_zone(timezone_name)
    local_start = as_utc(dt_start).astimezone(zone)
    duration = as_utc(dt_end) - as_utc(dt_start)
    rule = parse_rule(rule_text, local_start)
    excluded = parse_exdates(exdates, zone)

    try:
        starts = rule.between(as_utc(window_start), as_utc(window_end), inc=True)
    except (ValueError, TypeError) as e:
        raise RecurrenceError(f"Cannot expand recurrence rule {rule_text!r}: {e}") from e

    occurrences = []
    for start in starts:
        if start.astimezone(zone).date() in excluded:
            continue
        start_utc = start.astimezone(timezone.utc)
        occurrences.append((start_utc, start_utc + duration))
    return occurrences


def format_occurrence(start: datetime, end: datetime, timezone_name: Optional[str]) -> str:
    """Render as "March 5, 2025 at 3:00 PM - 3:30 PM" in the event timezone"""
    zone = resolve_zone(timezone_name)
    local_start = as_utc(start).astimezone(zone)
    local_end = as_utc(end).astimezone(zone)
    return (
        f"{local_start:%B} {local_start.day}, {local_start.year} "
        f"at {_clock(local_start)} - {_clock(local_end)}"
    )


def _clock(value: datetime) -> str:
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {suffix}"
