"""Calendar router - FastAPI endpoints for calendar events"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user_with_role, require_role
from ...database import get_db
from ...models import User
from .schemas import (
    CalendarEventResponse,
    CalendarEventsResponse,
    CreateLessonEventResponse,
    LessonEventStatusResponse,
    LessonOccurrence,
    LessonOccurrencesResponse,
)
from .service import CalendarService, serialize_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calendar", tags=["Calendar"])


def get_calendar_service(db: Session = Depends(get_db)) -> CalendarService:
    """Dependency injection for CalendarService"""
    return CalendarService(db)


@router.get("/events", response_model=CalendarEventsResponse)
async def get_calendar_events(
    current_user: User = Depends(get_current_user_with_role),
    service: CalendarService = Depends(get_calendar_service),
):
    """Events the user organizes or attends; recurring events expanded over the next year"""
    events = service.get_calendar_events(current_user)
    return CalendarEventsResponse(events=[CalendarEventResponse(**e) for e in events])


@router.get("/lessons/{lesson_id}/occurrences", response_model=LessonOccurrencesResponse)
async def get_lesson_occurrences(
    lesson_id: str,
    current_user: User = Depends(require_role("TEACHER")),
    service: CalendarService = Depends(get_calendar_service),
):
    """Most recent past occurrences of a lesson, used when writing notes"""
    occurrences = service.get_lesson_event_occurrences(lesson_id, current_user)
    return LessonOccurrencesResponse(occurrences=[LessonOccurrence(**o) for o in occurrences])


@router.get("/lessons/{lesson_id}/event", response_model=LessonEventStatusResponse)
async def check_lesson_event(
    lesson_id: str,
    current_user: User = Depends(get_current_user_with_role),
    service: CalendarService = Depends(get_calendar_service),
):
    event = service.check_lesson_calendar_event(lesson_id, current_user)
    if not event:
        return LessonEventStatusResponse(exists=False)
    return LessonEventStatusResponse(exists=True, event=CalendarEventResponse(**serialize_event(event)))


@router.post("/lessons/{lesson_id}/event", response_model=CreateLessonEventResponse)
async def create_lesson_event(
    lesson_id: str,
    current_user: User = Depends(require_role("TEACHER")),
    service: CalendarService = Depends(get_calendar_service),
):
    event = service.create_lesson_calendar_event(lesson_id, current_user)
    return CreateLessonEventResponse(eventId=event.id)
