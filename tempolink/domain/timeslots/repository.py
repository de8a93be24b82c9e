"""Timeslot repository - Database operations for weekly availability"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import TeacherTimeslot


class TimeslotRepository:
    """Repository for timeslot database operations"""

    @staticmethod
    def get_teacher_timeslots(db: Session, teacher_id: str, unbooked_only: bool = False) -> list[TeacherTimeslot]:
        query = db.query(TeacherTimeslot).filter(TeacherTimeslot.teacher_id == teacher_id)
        if unbooked_only:
            query = query.filter(TeacherTimeslot.is_booked.is_(False))
        return query.order_by(TeacherTimeslot.day_of_week, TeacherTimeslot.start_time).all()

    @staticmethod
    def get_timeslot(db: Session, timeslot_id: str) -> Optional[TeacherTimeslot]:
        return db.query(TeacherTimeslot).filter(TeacherTimeslot.id == timeslot_id).first()

    @staticmethod
    def get_owned_timeslot(db: Session, timeslot_id: str, teacher_id: str) -> Optional[TeacherTimeslot]:
        return (
            db.query(TeacherTimeslot)
            .filter(TeacherTimeslot.id == timeslot_id, TeacherTimeslot.teacher_id == teacher_id)
            .first()
        )

    @staticmethod
    def create(db: Session, timeslot: TeacherTimeslot) -> TeacherTimeslot:
        db.add(timeslot)
        db.commit()
        db.refresh(timeslot)
        return timeslot

    @staticmethod
    def delete(db: Session, timeslot: TeacherTimeslot) -> None:
        db.delete(timeslot)
        db.commit()
