"""
Booking service - Business logic for booking requests.

Accepting a request turns it into a lesson, books the timeslot and creates
the lesson's recurring calendar event in a single transaction.
"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models import BookingRequest, CalendarEvent, Lesson, Student, User
from ...shared.serializers import (
    iso,
    serialize_instrument,
    serialize_student,
    serialize_teacher,
    serialize_timeslot,
    serialize_user,
)
from ..calendar.service import CalendarService
from ..catalog.repository import CatalogRepository
from ..students.repository import StudentRepository
from .repository import BookingRepository
from .schemas import BookingRequestCreate

logger = logging.getLogger(__name__)


class BookingService:
    """Service for booking request operations"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BookingRepository()

    # ============================================================================
    # CREATE
    # ============================================================================

    def create_booking_request(self, data: BookingRequestCreate, user: User) -> BookingRequest:
        if user.role not in ("STUDENT", "PARENT"):
            raise HTTPException(status_code=403, detail="Only students and parents can request bookings")

        student = self._resolve_student(user, data.studentId)

        instrument_name = (data.instrument or "").strip()
        if not instrument_name:
            raise HTTPException(status_code=400, detail="Instrument is required for booking")
        instrument = CatalogRepository.get_instrument_by_name(self.db, instrument_name)
        if not instrument:
            raise HTTPException(status_code=400, detail="Invalid instrument specified")

        timeslot = self.repo.get_unbooked_timeslot(self.db, data.timeslotId)
        if not timeslot:
            raise HTTPException(status_code=404, detail="Timeslot not found or already booked")

        if self.repo.get_existing(self.db, student.id, timeslot.id):
            raise HTTPException(status_code=409, detail="A booking request already exists for this timeslot")

        request = BookingRequest(
            timeslot_id=timeslot.id,
            student_id=student.id,
            instrument_id=instrument.id,
            lesson_format=data.lessonFormat,
            booking_status="PENDING",
        )
        try:
            if data.proficiency:
                StudentRepository.upsert_proficiency(self.db, student.id, instrument.id, data.proficiency)
            self.db.add(request)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Duplicate booking request for student {student.id}, timeslot {timeslot.id}")
            raise HTTPException(status_code=409, detail="A booking request already exists for this timeslot") from e

        self.db.refresh(request)
        logger.info(f"✅ Booking request {request.id} created for timeslot {timeslot.id}")
        return request

    def _resolve_student(self, user: User, student_id: Optional[str]) -> Student:
        if user.role == "STUDENT":
            student = StudentRepository.get_by_user(self.db, user.id)
            if not student:
                raise HTTPException(status_code=404, detail="Student profile not found")
            return student

        if student_id:
            student = StudentRepository.get_child(self.db, student_id, user.id)
            if not student:
                raise HTTPException(
                    status_code=404, detail="Student not found or not associated with this parent"
                )
            return student

        children = StudentRepository.get_children(self.db, user.id)
        if not children:
            raise HTTPException(status_code=404, detail="No student profiles found for this parent")
        return children[0]

    # ============================================================================
    # LISTING
    # ============================================================================

    def get_my_requests(self, user: User) -> list[dict]:
        """Requests made by a student or for a parent's children"""
        if user.role == "STUDENT":
            student = StudentRepository.get_by_user(self.db, user.id)
            student_ids = [student.id] if student else []
        elif user.role == "PARENT":
            student_ids = [s.id for s in StudentRepository.get_children(self.db, user.id)]
        else:
            raise HTTPException(status_code=403, detail="Only students and parents can view their booking requests")

        results = []
        for request in self.repo.get_for_students(self.db, student_ids):
            teacher = request.timeslot.teacher if request.timeslot else None
            results.append(
                {
                    **self._base(request),
                    "student": serialize_student(request.student),
                    "timeslot": serialize_timeslot(request.timeslot),
                    "teacher": serialize_teacher(teacher),
                    "teacherUser": serialize_user(teacher.user if teacher else None),
                    "instrument": serialize_instrument(request.instrument),
                }
            )
        return results

    def get_teacher_requests(self, user: User) -> list[dict]:
        if user.role != "TEACHER":
            raise HTTPException(status_code=403, detail="Only teachers can view incoming booking requests")

        results = []
        for request in self.repo.get_for_teacher(self.db, user.id):
            student = request.student
            proficiency = StudentRepository.get_proficiency(self.db, student.id, request.instrument_id)
            results.append(
                {
                    **self._base(request),
                    "student": serialize_student(student),
                    "timeslot": serialize_timeslot(request.timeslot),
                    "instrument": serialize_instrument(request.instrument),
                    "requestingUser": serialize_user(student.user or student.parent),
                    "proficiency": proficiency.proficiency if proficiency else None,
                }
            )
        return results

    @staticmethod
    def _base(request: BookingRequest) -> dict:
        return {
            "id": request.id,
            "timeslotId": request.timeslot_id,
            "studentId": request.student_id,
            "instrumentId": request.instrument_id,
            "lessonFormat": request.lesson_format,
            "bookingStatus": request.booking_status,
            "createdAt": iso(request.created_at),
        }

    # ============================================================================
    # STATUS CHANGES
    # ============================================================================

    def accept_booking_request(self, request_id: str, user: User) -> tuple[Lesson, CalendarEvent]:
        if user.role != "TEACHER":
            raise HTTPException(status_code=403, detail="Only teachers can accept booking requests")

        request = self._get_request(request_id)
        timeslot = request.timeslot
        if timeslot.teacher_id != user.id:
            raise HTTPException(
                status_code=403, detail="Unauthorized: You can only accept requests for your own timeslots"
            )
        if timeslot.is_booked:
            raise HTTPException(status_code=400, detail="This timeslot is already booked")
        if request.booking_status != "PENDING":
            raise HTTPException(status_code=400, detail="This booking request is no longer pending")

        try:
            request.booking_status = "ACCEPTED"
            lesson = Lesson(
                teacher_id=user.id,
                timeslot=timeslot,
                student=request.student,
                instrument=request.instrument,
                lesson_format=request.lesson_format,
            )
            self.db.add(lesson)
            self.db.flush()

            timeslot.is_booked = True
            timeslot.student_id = request.student_id

            event = CalendarService(self.db).build_lesson_event(lesson, user)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to accept booking request {request_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to accept booking request") from e

        logger.info(f"✅ Booking request {request_id} accepted: lesson {lesson.id}, event {event.id}")
        return lesson, event

    def decline_booking_request(self, request_id: str, user: User) -> BookingRequest:
        if user.role != "TEACHER":
            raise HTTPException(status_code=403, detail="Only teachers can decline booking requests")

        request = self._get_request(request_id)
        if request.timeslot.teacher_id != user.id:
            raise HTTPException(
                status_code=403, detail="Unauthorized: You can only decline requests for your own timeslots"
            )
        if request.booking_status != "PENDING":
            raise HTTPException(status_code=400, detail="This booking request is no longer pending")

        request.booking_status = "DENIED"
        self.db.commit()
        self.db.refresh(request)
        logger.info(f"🚫 Booking request {request_id} declined")
        return request

    def cancel_booking_request(self, request_id: str, user: User) -> BookingRequest:
        if user.role not in ("STUDENT", "PARENT"):
            raise HTTPException(status_code=403, detail="Only students and parents can cancel booking requests")

        request = self._get_request(request_id)
        student = request.student
        if user.role == "STUDENT" and student.user_id != user.id:
            raise HTTPException(
                status_code=403, detail="Unauthorized: You can only cancel your own booking requests"
            )
        if user.role == "PARENT" and student.parent_id != user.id:
            raise HTTPException(
                status_code=403, detail="Unauthorized: You can only cancel booking requests for your children"
            )
        if request.booking_status != "PENDING":
            raise HTTPException(status_code=400, detail="This booking request is no longer pending")

        request.booking_status = "CANCELLED"
        self.db.commit()
        self.db.refresh(request)
        logger.info(f"🚫 Booking request {request_id} cancelled")
        return request

    def _get_request(self, request_id: str) -> BookingRequest:
        request = self.repo.get_request(self.db, request_id)
        if not request:
            raise HTTPException(status_code=404, detail="Booking request not found")
        return request
