from datetime import date, datetime, time, timezone

import pytest

from tempolink.domain.calendar.recurrence import (
    RecurrenceError,
    build_weekly_rrule,
    expand,
    format_occurrence,
    js_day_of_week,
    next_weekly_start,
    slot_duration,
    to_iso,
    to_utc_naive,
)

NY = "America/New_York"
WEEKLY_TUESDAY = "RRULE:FREQ=WEEKLY;BYDAY=TU"


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


class TestNextWeeklyStart:
    def test_later_in_week(self):
        # Wednesday morning in New York; next Tuesday is after the DST switch
        start = next_weekly_start(2, time(16, 0), NY, now=utc(2025, 3, 5, 12, 0))
        assert start.date() == date(2025, 3, 11)
        assert (start.hour, start.minute) == (16, 0)
        assert to_utc_naive(start) == datetime(2025, 3, 11, 20, 0)

    def test_same_day_before_start(self):
        start = next_weekly_start(2, time(16, 0), NY, now=utc(2025, 3, 4, 15, 0))
        assert start.date() == date(2025, 3, 4)
        assert to_utc_naive(start) == datetime(2025, 3, 4, 21, 0)

    def test_same_day_after_start_rolls_a_week(self):
        start = next_weekly_start(2, time(16, 0), NY, now=utc(2025, 3, 4, 22, 0))
        assert start.date() == date(2025, 3, 11)

    def test_unknown_timezone_uses_utc(self):
        start = next_weekly_start(3, time(9, 30), "Not/AZone", now=utc(2025, 3, 4, 12, 0))
        assert to_utc_naive(start) == datetime(2025, 3, 5, 9, 30)


def test_js_day_of_week_starts_on_sunday():
    assert js_day_of_week(datetime(2025, 3, 2)) == 0  # Sunday
    assert js_day_of_week(datetime(2025, 3, 8)) == 6  # Saturday


def test_slot_duration():
    assert slot_duration(time(16, 0), time(16, 45)).total_seconds() == 45 * 60


def test_build_weekly_rrule():
    dtstart = datetime(2025, 3, 4, 16, 0)
    assert build_weekly_rrule(2, dtstart) == WEEKLY_TUESDAY
    assert build_weekly_rrule(0, dtstart) == "RRULE:FREQ=WEEKLY;BYDAY=SU"


class TestExpand:
    def test_keeps_local_time_across_dst(self):
        occurrences = expand(
            WEEKLY_TUESDAY,
            datetime(2025, 3, 4, 21, 0),
            datetime(2025, 3, 4, 21, 30),
            NY,
            utc(2025, 3, 1),
            utc(2025, 3, 20),
        )
        assert [start for start, _ in occurrences] == [
            utc(2025, 3, 4, 21, 0),
            utc(2025, 3, 11, 20, 0),
            utc(2025, 3, 18, 20, 0),
        ]
        assert all((end - start).total_seconds() == 1800 for start, end in occurrences)

    def test_skips_exception_dates(self):
        occurrences = expand(
            WEEKLY_TUESDAY,
            datetime(2025, 3, 4, 21, 0),
            datetime(2025, 3, 4, 21, 30),
            NY,
            utc(2025, 3, 1),
            utc(2025, 3, 20),
            exdates=["2025-03-11T20:00:00.000Z", "not a date"],
        )
        assert [start for start, _ in occurrences] == [utc(2025, 3, 4, 21, 0), utc(2025, 3, 18, 20, 0)]

    @pytest.mark.parametrize("exdate", ["2025-03-11", date(2025, 3, 11)])
    def test_date_only_exception_is_a_local_date(self, exdate):
        # UTC midnight of the 11th is still the 10th in New York
        occurrences = expand(
            WEEKLY_TUESDAY,
            datetime(2025, 3, 4, 21, 0),
            datetime(2025, 3, 4, 21, 30),
            NY,
            utc(2025, 3, 1),
            utc(2025, 3, 20),
            exdates=[exdate],
        )
        assert [start.date() for start, _ in occurrences] == [date(2025, 3, 4), date(2025, 3, 18)]

    def test_ignores_embedded_dtstart(self):
        rule = "DTSTART:19990101T000000Z\n" + WEEKLY_TUESDAY
        occurrences = expand(
            rule,
            datetime(2025, 3, 4, 21, 0),
            datetime(2025, 3, 4, 21, 30),
            NY,
            utc(2025, 3, 1),
            utc(2025, 3, 8),
        )
        assert [start for start, _ in occurrences] == [utc(2025, 3, 4, 21, 0)]

    def test_invalid_rule(self):
        with pytest.raises(RecurrenceError):
            expand("RRULE:FREQ=NOPE", datetime(2025, 3, 4), datetime(2025, 3, 4, 1), NY, utc(2025, 3, 1), utc(2025, 4, 1))

    def test_empty_rule(self):
        with pytest.raises(RecurrenceError):
            expand("", datetime(2025, 3, 4), datetime(2025, 3, 4, 1), NY, utc(2025, 3, 1), utc(2025, 4, 1))


def test_to_iso_uses_milliseconds_and_z():
    assert to_iso(datetime(2025, 3, 5, 15, 0)) == "2025-03-05T15:00:00.000Z"
    assert to_iso(utc(2025, 3, 5, 15, 0, 0, 123456)) == "2025-03-05T15:00:00.123Z"


def test_format_occurrence_in_event_timezone():
    formatted = format_occurrence(utc(2025, 3, 5, 20, 0), utc(2025, 3, 5, 20, 30), NY)
    assert formatted == "March 5, 2025 at 3:00 PM - 3:30 PM"


def test_format_occurrence_midnight_and_noon():
    formatted = format_occurrence(utc(2025, 6, 1, 0, 0), utc(2025, 6, 1, 12, 0), "UTC")
    assert formatted == "June 1, 2025 at 12:00 AM - 12:00 PM"
