"""Student repository - Database operations for student records"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Student, StudentInstrumentProficiency


class StudentRepository:
    """Repository for student database operations"""

    @staticmethod
    def get_student(db: Session, student_id: str) -> Optional[Student]:
        return (
            db.query(Student)
            .options(joinedload(Student.user))
            .filter(Student.id == student_id)
            .first()
        )

    @staticmethod
    def get_by_user(db: Session, user_id: str) -> Optional[Student]:
        return db.query(Student).filter(Student.user_id == user_id).first()

    @staticmethod
    def get_children(db: Session, parent_id: str) -> list[Student]:
        return db.query(Student).filter(Student.parent_id == parent_id).order_by(Student.created_at).all()

    @staticmethod
    def get_child(db: Session, student_id: str, parent_id: str) -> Optional[Student]:
        return db.query(Student).filter(Student.id == student_id, Student.parent_id == parent_id).first()

    @staticmethod
    def get_proficiencies(db: Session, student_id: str) -> list[StudentInstrumentProficiency]:
        return (
            db.query(StudentInstrumentProficiency)
            .options(joinedload(StudentInstrumentProficiency.instrument))
            .filter(StudentInstrumentProficiency.student_id == student_id)
            .all()
        )

    @staticmethod
    def get_proficiency(db: Session, student_id: str, instrument_id: int) -> Optional[StudentInstrumentProficiency]:
        return (
            db.query(StudentInstrumentProficiency)
            .filter(
                StudentInstrumentProficiency.student_id == student_id,
                StudentInstrumentProficiency.instrument_id == instrument_id,
            )
            .first()
        )

    @staticmethod
    def upsert_proficiency(db: Session, student_id: str, instrument_id: int, level: str) -> StudentInstrumentProficiency:
        """Insert or update; the caller commits"""
        record = StudentRepository.get_proficiency(db, student_id, instrument_id)
        if record:
            record.proficiency = level
        else:
            record = StudentInstrumentProficiency(student_id=student_id, instrument_id=instrument_id, proficiency=level)
            db.add(record)
        db.flush()
        return record
