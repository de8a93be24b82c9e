"""Calendar repository - Database operations for calendar events"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import CalendarEvent, CalendarEventAttendee


class CalendarRepository:
    """Repository for calendar event database operations"""

    @staticmethod
    def get_organizer_events(db: Session, user_id: str) -> list[CalendarEvent]:
        return db.query(CalendarEvent).filter(CalendarEvent.organizer_id == user_id).all()

    @staticmethod
    def get_attendee_events(db: Session, user_id: str) -> list[CalendarEvent]:
        return (
            db.query(CalendarEvent)
            .join(CalendarEventAttendee, CalendarEventAttendee.event_id == CalendarEvent.id)
            .filter(CalendarEventAttendee.user_id == user_id)
            .all()
        )

    @staticmethod
    def get_lesson_event(db: Session, lesson_id: str, status: Optional[str] = None) -> Optional[CalendarEvent]:
        query = db.query(CalendarEvent).filter(CalendarEvent.lesson_id == lesson_id)
        if status:
            query = query.filter(CalendarEvent.status == status)
        return query.order_by(CalendarEvent.created_at.desc()).first()

    @staticmethod
    def add_event(db: Session, event: CalendarEvent, attendees: list[CalendarEventAttendee]) -> CalendarEvent:
        """Stage an event and its attendees; the caller commits"""
        db.add(event)
        db.flush()
        for attendee in attendees:
            attendee.event_id = event.id
            db.add(attendee)
        db.flush()
        return event
