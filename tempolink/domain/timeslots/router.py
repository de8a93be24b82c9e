"""Timeslot router - FastAPI endpoints for teacher availability"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_role
from ...database import get_db
from ...models import TeacherTimeslot, User
from ...shared.serializers import format_time
from .schemas import TimeslotCreate, TimeslotResponse, TimeslotUpdate
from .service import TimeslotService

router = APIRouter(tags=["Timeslots"])


def get_timeslot_service(db: Session = Depends(get_db)) -> TimeslotService:
    """Dependency injection for TimeslotService"""
    return TimeslotService(db)


def _to_response(slot: TeacherTimeslot) -> TimeslotResponse:
    return TimeslotResponse(
        id=slot.id,
        teacherId=slot.teacher_id,
        dayOfWeek=slot.day_of_week,
        startTime=format_time(slot.start_time),
        endTime=format_time(slot.end_time),
        isBooked=slot.is_booked,
        studentId=slot.student_id,
        teachingFormat=slot.teaching_format,
    )


@router.get("/timeslots/me", response_model=list[TimeslotResponse])
async def get_my_timeslots(
    current_user: User = Depends(require_role("TEACHER")),
    service: TimeslotService = Depends(get_timeslot_service),
):
    """The current teacher's timeslots, sorted by day then start time"""
    return [_to_response(s) for s in service.get_my_timeslots(current_user)]


@router.post("/timeslots", response_model=TimeslotResponse)
async def create_timeslot(
    data: TimeslotCreate,
    current_user: User = Depends(get_current_user),
    service: TimeslotService = Depends(get_timeslot_service),
):
    return _to_response(service.create_timeslot(data, current_user))


@router.put("/timeslots/{timeslot_id}", response_model=TimeslotResponse)
async def update_timeslot(
    timeslot_id: str,
    data: TimeslotUpdate,
    current_user: User = Depends(get_current_user),
    service: TimeslotService = Depends(get_timeslot_service),
):
    return _to_response(service.update_timeslot(timeslot_id, data, current_user))


@router.delete("/timeslots/{timeslot_id}")
async def delete_timeslot(
    timeslot_id: str,
    current_user: User = Depends(get_current_user),
    service: TimeslotService = Depends(get_timeslot_service),
):
    service.delete_timeslot(timeslot_id, current_user)
    return {"success": True}


@router.get("/teachers/{teacher_id}/timeslots", response_model=list[TimeslotResponse])
async def get_available_timeslots(
    teacher_id: str,
    format: Optional[str] = Query(None, description="ONLINE_ONLY or IN_PERSON_ONLY"),
    service: TimeslotService = Depends(get_timeslot_service),
):
    """Public: a teacher's unbooked slots"""
    return [_to_response(s) for s in service.get_available_timeslots(teacher_id, format)]
