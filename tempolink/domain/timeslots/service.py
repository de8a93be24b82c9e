"""Timeslot service - Business logic for teacher weekly availability"""

import logging
from datetime import time
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import TEACHING_FORMATS, Teacher, TeacherTimeslot, User
from ...shared.validators import parse_time
from .repository import TimeslotRepository
from .schemas import TimeslotCreate, TimeslotUpdate

logger = logging.getLogger(__name__)


def validate_slot_times(day_of_week: int, start_time: str, end_time: str) -> tuple[time, time]:
    if day_of_week is None or not 0 <= day_of_week <= 6:
        raise HTTPException(status_code=400, detail="Invalid day of week")
    try:
        start = parse_time(start_time)
        end = parse_time(end_time)
    except ValueError as e:
        raise HTTPException(status_code=400, detail="Invalid time format") from e
    if end <= start:
        raise HTTPException(status_code=400, detail="End time must be after start time")
    return start, end


def validate_teaching_format(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    if value not in TEACHING_FORMATS:
        raise HTTPException(status_code=400, detail="Invalid teaching format")
    return value


class TimeslotService:
    """Service for timeslot operations"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = TimeslotRepository()

    def get_my_timeslots(self, user: User) -> list[TeacherTimeslot]:
        if not user.teacher:
            raise HTTPException(status_code=404, detail="Teacher profile not found")
        return self.repo.get_teacher_timeslots(self.db, user.id)

    def create_timeslot(self, data: TimeslotCreate, user: User) -> TeacherTimeslot:
        teacher = user.teacher
        if not teacher:
            raise HTTPException(status_code=403, detail="User is not a teacher")

        start, end = validate_slot_times(data.dayOfWeek, data.startTime, data.endTime)
        timeslot = TeacherTimeslot(
            teacher_id=teacher.id,
            day_of_week=data.dayOfWeek,
            start_time=start,
            end_time=end,
            is_booked=False,
            teaching_format=validate_teaching_format(data.teachingFormat) or teacher.teaching_format,
        )
        timeslot = self.repo.create(self.db, timeslot)
        logger.info(f"✅ Created timeslot {timeslot.id} for teacher {teacher.id}")
        return timeslot

    def update_timeslot(self, timeslot_id: str, data: TimeslotUpdate, user: User) -> TeacherTimeslot:
        timeslot = self.repo.get_owned_timeslot(self.db, timeslot_id, user.id)
        if not timeslot:
            raise HTTPException(status_code=404, detail="Timeslot not found or unauthorized")
        if timeslot.is_booked:
            raise HTTPException(status_code=400, detail="Cannot update booked timeslots")

        start, end = validate_slot_times(data.dayOfWeek, data.startTime, data.endTime)
        timeslot.day_of_week = data.dayOfWeek
        timeslot.start_time = start
        timeslot.end_time = end
        if data.teachingFormat is not None:
            timeslot.teaching_format = validate_teaching_format(data.teachingFormat)
        self.db.commit()
        self.db.refresh(timeslot)
        return timeslot

    def delete_timeslot(self, timeslot_id: str, user: User) -> None:
        timeslot = self.repo.get_owned_timeslot(self.db, timeslot_id, user.id)
        if not timeslot:
            raise HTTPException(status_code=404, detail="Timeslot not found or unauthorized")
        if timeslot.is_booked:
            raise HTTPException(status_code=400, detail="Cannot delete booked timeslots")
        self.repo.delete(self.db, timeslot)
        logger.info(f"🗑️ Deleted timeslot {timeslot_id}")

    def get_available_timeslots(self, teacher_id: str, teaching_format: Optional[str] = None) -> list[TeacherTimeslot]:
        """
        Unbooked slots for a teacher. A requested format also matches slots
        offered both in person and online; slots without their own format
        follow the teacher's.
        """
        teacher = self.db.query(Teacher).filter(Teacher.id == teacher_id).first()
        if not teacher:
            raise HTTPException(status_code=404, detail="Teacher not found")

        slots = self.repo.get_teacher_timeslots(self.db, teacher_id, unbooked_only=True)
        if not teaching_format:
            return slots

        validate_teaching_format(teaching_format)
        accepted = {teaching_format, "IN_PERSON_AND_ONLINE"}
        return [s for s in slots if (s.teaching_format or teacher.teaching_format) in accepted]
