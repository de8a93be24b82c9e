"""Booking repository - Database operations for booking requests"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import BookingRequest, Student, TeacherTimeslot


class BookingRepository:
    """Repository for booking request database operations"""

    @staticmethod
    def get_request(db: Session, request_id: str) -> Optional[BookingRequest]:
        return (
            db.query(BookingRequest)
            .options(
                joinedload(BookingRequest.timeslot),
                joinedload(BookingRequest.student),
                joinedload(BookingRequest.instrument),
            )
            .filter(BookingRequest.id == request_id)
            .first()
        )

    @staticmethod
    def get_existing(db: Session, student_id: str, timeslot_id: str) -> Optional[BookingRequest]:
        return (
            db.query(BookingRequest)
            .filter(BookingRequest.student_id == student_id, BookingRequest.timeslot_id == timeslot_id)
            .first()
        )

    @staticmethod
    def get_for_students(db: Session, student_ids: list[str]) -> list[BookingRequest]:
        if not student_ids:
            return []
        return (
            db.query(BookingRequest)
            .options(
                joinedload(BookingRequest.timeslot).joinedload(TeacherTimeslot.teacher),
                joinedload(BookingRequest.student),
                joinedload(BookingRequest.instrument),
            )
            .filter(BookingRequest.student_id.in_(student_ids))
            .order_by(BookingRequest.created_at.desc())
            .all()
        )

    @staticmethod
    def get_for_teacher(db: Session, teacher_id: str) -> list[BookingRequest]:
        return (
            db.query(BookingRequest)
            .join(TeacherTimeslot, TeacherTimeslot.id == BookingRequest.timeslot_id)
            .options(
                joinedload(BookingRequest.timeslot),
                joinedload(BookingRequest.student).joinedload(Student.user),
                joinedload(BookingRequest.instrument),
            )
            .filter(TeacherTimeslot.teacher_id == teacher_id)
            .order_by(BookingRequest.created_at.desc())
            .all()
        )

    @staticmethod
    def get_unbooked_timeslot(db: Session, timeslot_id: str) -> Optional[TeacherTimeslot]:
        return (
            db.query(TeacherTimeslot)
            .filter(TeacherTimeslot.id == timeslot_id, TeacherTimeslot.is_booked.is_(False))
            .first()
        )
