"""Calendar domain schemas - Pydantic models for responses"""

from typing import Optional

from pydantic import BaseModel


class CalendarEventResponse(BaseModel):
    """A stored event, or one materialised occurrence of a recurring event"""

    id: str
    uid: str
    summary: str
    description: Optional[str] = None
    location: Optional[str] = None
    dtStart: str
    dtEnd: str
    allDay: bool = False
    timezone: Optional[str] = None
    rrule: Optional[str] = None
    exdates: Optional[list[str]] = None
    status: str
    eventType: str
    priority: int
    organizerId: str
    lessonId: Optional[str] = None
    timeslotId: Optional[str] = None
    sequence: int = 0
    lastModified: Optional[str] = None
    created: Optional[str] = None
    isRecurringInstance: bool = False
    parentEventId: Optional[str] = None


class CalendarEventsResponse(BaseModel):
    events: list[CalendarEventResponse]


class LessonOccurrence(BaseModel):
    date: str
    formatted: str


class LessonOccurrencesResponse(BaseModel):
    occurrences: list[LessonOccurrence]


class LessonEventStatusResponse(BaseModel):
    exists: bool
    event: Optional[CalendarEventResponse] = None


class CreateLessonEventResponse(BaseModel):
    success: bool = True
    eventId: str
