"""
Calendar service - Business logic for lesson calendar events.

Lessons are stored as a single weekly recurring event; individual occurrences
are only materialised when a calendar is read.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import CalendarEvent, CalendarEventAttendee, Lesson, User, utcnow
from ...shared.timezones import is_valid_timezone
from ..lessons.repository import LessonRepository
from ..lessons.service import can_view_lesson
from .recurrence import (
    RecurrenceError,
    as_utc,
    build_weekly_rrule,
    expand,
    format_occurrence,
    next_weekly_start,
    slot_duration,
    to_iso,
    to_utc_naive,
)
from .repository import CalendarRepository

logger = logging.getLogger(__name__)

EVENT_UID_DOMAIN = "tempo-link.xyz"
EXPANSION_WINDOW = timedelta(days=365)
MAX_PAST_OCCURRENCES = 4


def serialize_event(event: CalendarEvent, **overrides) -> dict:
    data = {
        "id": event.id,
        "uid": event.uid,
        "summary": event.summary,
        "description": event.description,
        "location": event.location,
        "dtStart": to_iso(event.dt_start),
        "dtEnd": to_iso(event.dt_end),
        "allDay": event.all_day,
        "timezone": event.timezone,
        "rrule": event.rrule,
        "exdates": event.exdates,
        "status": event.status,
        "eventType": event.event_type,
        "priority": event.priority,
        "organizerId": event.organizer_id,
        "lessonId": event.lesson_id,
        "timeslotId": event.timeslot_id,
        "sequence": event.sequence,
        "lastModified": to_iso(event.last_modified) if event.last_modified else None,
        "created": to_iso(event.created) if event.created else None,
        "isRecurringInstance": False,
        "parentEventId": None,
    }
    data.update(overrides)
    return data


class CalendarService:
    """Service for calendar event operations"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = CalendarRepository()

    # ============================================================================
    # EVENT CREATION
    # ============================================================================

    def build_lesson_event(self, lesson: Lesson, teacher_user: User, now: Optional[datetime] = None) -> CalendarEvent:
        """
        Stage the weekly recurring event for a lesson, plus its attendees.

        The lesson must already be flushed so it has an id. Nothing is
        committed here; callers own the transaction.
        """
        timeslot = lesson.timeslot
        student = lesson.student
        instrument_name = lesson.instrument.name if lesson.instrument else "Music"
        student_name = (student.full_name if student else "") or "Student"

        tz_name = teacher_user.preferred_timezone
        if not is_valid_timezone(tz_name):
            tz_name = "UTC"

        start_local = next_weekly_start(timeslot.day_of_week, timeslot.start_time, tz_name, now)
        end_local = start_local + slot_duration(timeslot.start_time, timeslot.end_time)
        is_in_person = lesson.lesson_format == "IN_PERSON"
        stamp = utcnow()

        event = CalendarEvent(
            uid=f"{lesson.id}@{EVENT_UID_DOMAIN}",
            summary=f"{instrument_name} Lesson - {student_name}",
            description=(
                f"Weekly {instrument_name} lesson with {student_name}. "
                f"Format: {'In Person' if is_in_person else 'Online'}."
            ),
            location=None if is_in_person else "Online",
            dt_start=to_utc_naive(start_local),
            dt_end=to_utc_naive(end_local),
            all_day=False,
            timezone=tz_name,
            rrule=build_weekly_rrule(timeslot.day_of_week, start_local),
            exdates=None,
            status="CONFIRMED",
            event_type="LESSON",
            priority=5,
            organizer_id=teacher_user.id,
            lesson_id=lesson.id,
            timeslot_id=timeslot.id,
            sequence=0,
            last_modified=stamp,
            created=stamp,
        )

        attendees = [
            CalendarEventAttendee(
                user_id=teacher_user.id,
                participation_status="ACCEPTED",
                role="ORGANIZER",
                response_requested=False,
            )
        ]
        participant_id = (student.user_id or student.parent_id) if student else None
        if participant_id:
            attendees.append(
                CalendarEventAttendee(
                    user_id=participant_id,
                    participation_status="NEEDS-ACTION",
                    role="REQ-PARTICIPANT",
                    response_requested=True,
                )
            )

        logger.info(f"📅 Creating calendar event for lesson {lesson.id} ({tz_name}, {event.rrule})")
        return self.repo.add_event(self.db, event, attendees)

    # ============================================================================
    # READS
    # ============================================================================

    def get_calendar_events(self, user: User, now: Optional[datetime] = None) -> list[dict]:
        """All events the user organizes or attends, with recurring events expanded"""
        now = now or datetime.now(timezone.utc)
        events: dict[str, CalendarEvent] = {}
        for event in self.repo.get_organizer_events(self.db, user.id) + self.repo.get_attendee_events(
            self.db, user.id
        ):
            events.setdefault(event.id, event)

        results = []
        for event in events.values():
            if not event.rrule:
                results.append(serialize_event(event))
                continue
            try:
                occurrences = expand(
                    event.rrule,
                    event.dt_start,
                    event.dt_end,
                    event.timezone,
                    now,
                    now + EXPANSION_WINDOW,
                    event.exdates,
                )
            except RecurrenceError as e:
                logger.warning(f"⚠️ Could not expand event {event.id}, returning it unexpanded: {e}")
                results.append(serialize_event(event))
                continue

            for start, end in occurrences:
                results.append(
                    serialize_event(
                        event,
                        id=f"{event.id}-{int(start.timestamp() * 1000)}",
                        dtStart=to_iso(start),
                        dtEnd=to_iso(end),
                        isRecurringInstance=True,
                        parentEventId=event.id,
                    )
                )

        results.sort(key=lambda item: item["dtStart"])
        return results

    def get_lesson_event_occurrences(
        self, lesson_id: str, user: User, now: Optional[datetime] = None
    ) -> list[dict]:
        """Up to four most recent occurrences that have started, newest first"""
        lesson = self._get_owned_lesson(lesson_id, user)
        event = self.repo.get_lesson_event(self.db, lesson.id, status="CONFIRMED")
        if not event:
            return []

        now = now or datetime.now(timezone.utc)
        if event.rrule:
            try:
                occurrences = expand(
                    event.rrule,
                    event.dt_start,
                    event.dt_end,
                    event.timezone,
                    now - EXPANSION_WINDOW,
                    now,
                    event.exdates,
                )
            except RecurrenceError as e:
                logger.warning(f"⚠️ Could not expand event {event.id}: {e}")
                return []
        else:
            occurrences = [(as_utc(event.dt_start), as_utc(event.dt_end))]

        started = [(start, end) for start, end in occurrences if start <= now]
        started.sort(key=lambda pair: pair[0], reverse=True)
        return [
            {"date": to_iso(start), "formatted": format_occurrence(start, end, event.timezone)}
            for start, end in started[:MAX_PAST_OCCURRENCES]
        ]

    def check_lesson_calendar_event(self, lesson_id: str, user: User) -> Optional[CalendarEvent]:
        lesson = LessonRepository.get_lesson(self.db, lesson_id)
        if not lesson:
            raise HTTPException(status_code=404, detail="Lesson not found")
        if not can_view_lesson(lesson, user):
            raise HTTPException(status_code=403, detail="Unauthorized: You can only view events for your own lessons")
        return self.repo.get_lesson_event(self.db, lesson.id)

    def create_lesson_calendar_event(self, lesson_id: str, user: User) -> CalendarEvent:
        """Create the recurring event for a lesson that has none yet"""
        lesson = self._get_owned_lesson(lesson_id, user)
        if self.repo.get_lesson_event(self.db, lesson.id):
            raise HTTPException(status_code=409, detail="Calendar event already exists for this lesson")

        try:
            event = self.build_lesson_event(lesson, user)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to create calendar event for lesson {lesson_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to create calendar event") from e

        self.db.refresh(event)
        logger.info(f"✅ Created calendar event {event.id} for lesson {lesson_id}")
        return event

    def _get_owned_lesson(self, lesson_id: str, user: User) -> Lesson:
        lesson = LessonRepository.get_lesson(self.db, lesson_id)
        if not lesson:
            raise HTTPException(status_code=404, detail="Lesson not found")
        if lesson.teacher_id != user.id:
            raise HTTPException(status_code=403, detail="Unauthorized: You can only view events for your own lessons")
        return lesson
