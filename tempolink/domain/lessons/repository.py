"""Lesson repository - Database operations for lessons and lesson notes"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Lesson, LessonNote, Student


class LessonRepository:
    """Repository for lesson database operations"""

    @staticmethod
    def get_lesson(db: Session, lesson_id: str) -> Optional[Lesson]:
        return (
            db.query(Lesson)
            .options(
                joinedload(Lesson.student).joinedload(Student.user),
                joinedload(Lesson.timeslot),
                joinedload(Lesson.instrument),
            )
            .filter(Lesson.id == lesson_id)
            .first()
        )

    @staticmethod
    def get_teacher_lessons(db: Session, teacher_id: str) -> list[Lesson]:
        return (
            db.query(Lesson)
            .options(joinedload(Lesson.student), joinedload(Lesson.timeslot), joinedload(Lesson.instrument))
            .filter(Lesson.teacher_id == teacher_id)
            .order_by(Lesson.created_at.desc())
            .all()
        )

    @staticmethod
    def get_student_lessons(db: Session, student_ids: list[str]) -> list[Lesson]:
        if not student_ids:
            return []
        return (
            db.query(Lesson)
            .options(joinedload(Lesson.teacher), joinedload(Lesson.timeslot), joinedload(Lesson.instrument))
            .filter(Lesson.student_id.in_(student_ids))
            .order_by(Lesson.created_at.desc())
            .all()
        )

    @staticmethod
    def get_lesson_by_timeslot(db: Session, timeslot_id: str) -> Optional[Lesson]:
        return db.query(Lesson).filter(Lesson.timeslot_id == timeslot_id).first()

    @staticmethod
    def get_latest_note(db: Session, lesson_id: str) -> Optional[LessonNote]:
        return (
            db.query(LessonNote)
            .filter(LessonNote.lesson_id == lesson_id)
            .order_by(LessonNote.created_at.desc())
            .first()
        )

    @staticmethod
    def get_note(db: Session, lesson_id: str, note_id: str) -> Optional[LessonNote]:
        return (
            db.query(LessonNote)
            .filter(LessonNote.id == note_id, LessonNote.lesson_id == lesson_id)
            .first()
        )

    @staticmethod
    def create_note(db: Session, note: LessonNote) -> LessonNote:
        db.add(note)
        db.commit()
        db.refresh(note)
        return note

    @staticmethod
    def delete_lesson(db: Session, lesson: Lesson) -> None:
        db.delete(lesson)
