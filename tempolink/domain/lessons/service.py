"""Lesson service - Business logic for lessons and lesson notes"""

import logging
from datetime import date
from typing import Optional

from dateutil import parser as date_parser
from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Lesson, LessonNote, TeacherTimeslot, User
from ...shared.serializers import (
    serialize_instrument,
    serialize_lesson,
    serialize_note,
    serialize_student,
    serialize_teacher,
    serialize_timeslot,
    serialize_user,
)
from .repository import LessonRepository
from .schemas import LessonNoteCreate, LessonNoteUpdate

logger = logging.getLogger(__name__)


def can_view_lesson(lesson: Lesson, user: User) -> bool:
    """The teacher, the student's own account, or the student's parent"""
    if lesson.teacher_id == user.id:
        return True
    student = lesson.student
    return bool(student and (student.user_id == user.id or student.parent_id == user.id))


def _contact(person: Optional[User], fallback: str) -> Optional[dict]:
    if person is None:
        return None
    return {
        "id": person.id,
        "name": person.full_name or fallback,
        "email": person.email or None,
    }


def _parse_lesson_date(value: Optional[str]) -> Optional[date]:
    if not value or not value.strip():
        return None
    try:
        return date_parser.isoparse(value.strip()).date()
    except (ValueError, OverflowError) as e:
        raise HTTPException(status_code=400, detail="Invalid lesson date") from e


class LessonService:
    """Service for lesson operations"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = LessonRepository()

    # ============================================================================
    # LISTING
    # ============================================================================

    def get_lessons(self, user: User) -> dict:
        """Lessons for the caller, shaped by role"""
        if user.role == "TEACHER":
            lessons = self.repo.get_teacher_lessons(self.db, user.id)
            return {"lessons": [self._teacher_view(lesson) for lesson in lessons]}

        if user.role == "STUDENT":
            student = user.student_profile
            if not student:
                return {"lessons": []}
            lessons = self.repo.get_student_lessons(self.db, [student.id])
            return {"lessons": [self._student_view(lesson) for lesson in lessons]}

        if user.role == "PARENT":
            children = []
            for child in user.children:
                lessons = self.repo.get_student_lessons(self.db, [child.id])
                children.append(
                    {
                        "student": serialize_student(child),
                        "lessons": [self._student_view(lesson) for lesson in lessons],
                    }
                )
            return {"children": children}

        raise HTTPException(status_code=403, detail="User role not set")

    def _teacher_view(self, lesson: Lesson) -> dict:
        data = serialize_lesson(lesson)
        data["student"] = serialize_student(lesson.student)
        data["timeslot"] = serialize_timeslot(lesson.timeslot)
        data["instrument"] = serialize_instrument(lesson.instrument)
        data["latestNote"] = serialize_note(self.repo.get_latest_note(self.db, lesson.id))
        return data

    def _student_view(self, lesson: Lesson) -> dict:
        data = serialize_lesson(lesson)
        data["teacher"] = serialize_teacher(lesson.teacher)
        data["teacherUser"] = serialize_user(lesson.teacher.user if lesson.teacher else None)
        data["timeslot"] = serialize_timeslot(lesson.timeslot)
        data["instrument"] = serialize_instrument(lesson.instrument)
        data["latestNote"] = serialize_note(self.repo.get_latest_note(self.db, lesson.id))
        return data

    # ============================================================================
    # SINGLE LESSON
    # ============================================================================

    def get_lesson_by_timeslot(self, timeslot_id: str, user: User) -> Optional[dict]:
        timeslot = self.db.query(TeacherTimeslot).filter(TeacherTimeslot.id == timeslot_id).first()
        if not timeslot or timeslot.teacher_id != user.id:
            raise HTTPException(status_code=404, detail="Timeslot not found or unauthorized")
        lesson = self.repo.get_lesson_by_timeslot(self.db, timeslot_id)
        if not lesson:
            return None
        return self._teacher_view(lesson)

    def get_lesson_details(self, lesson_id: str, user: User) -> dict:
        lesson = self._get_visible_lesson(lesson_id, user)
        teacher = lesson.teacher
        data = serialize_lesson(lesson)
        data.update(
            {
                "timeslot": serialize_timeslot(lesson.timeslot),
                "instrument": serialize_instrument(lesson.instrument),
                "student": serialize_student(lesson.student, include_user=True),
                "teacher": serialize_teacher(teacher, include_user=True),
                "notes": [serialize_note(note) for note in lesson.notes],
            }
        )
        return data

    def get_lesson_participants(self, lesson_id: str, user: User) -> dict:
        """Contact details for everyone on a lesson, plus who the caller should email"""
        lesson = self._get_visible_lesson(lesson_id, user)
        student = lesson.student
        teacher_user = lesson.teacher.user if lesson.teacher else None

        student_contact = None
        if student:
            student_contact = {
                "id": student.id,
                "name": student.full_name or "Student",
                "email": student.user.email if student.user else None,
            }
        parent_contact = _contact(student.parent if student else None, "Parent")
        teacher_contact = _contact(teacher_user, "Teacher")

        if user.id == lesson.teacher_id:
            if student and student.user:
                recipient = {"name": student_contact["name"], "email": student.user.email}
            else:
                recipient = parent_contact
        else:
            recipient = teacher_contact

        return {
            "student": student_contact,
            "parent": parent_contact,
            "teacher": teacher_contact,
            "emailRecipient": recipient,
        }

    def delete_lesson(self, lesson_id: str, user: User) -> None:
        """Delete a lesson and release its timeslot"""
        lesson = self._get_owned_lesson(lesson_id, user)
        timeslot = lesson.timeslot
        try:
            if timeslot:
                timeslot.is_booked = False
                timeslot.student_id = None
            self.repo.delete_lesson(self.db, lesson)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to delete lesson {lesson_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to delete lesson") from e
        logger.info(f"🗑️ Deleted lesson {lesson_id} and freed timeslot {lesson.timeslot_id}")

    # ============================================================================
    # NOTES
    # ============================================================================

    def create_note(self, lesson_id: str, data: LessonNoteCreate, user: User) -> LessonNote:
        lesson = self._get_owned_lesson(lesson_id, user)
        title, notes = self._require_note_text(data.noteTitle, data.notes)
        note = LessonNote(
            lesson_id=lesson.id,
            note_title=title,
            notes=notes,
            lesson_date=_parse_lesson_date(data.lessonDate),
        )
        return self.repo.create_note(self.db, note)

    def get_note(self, lesson_id: str, note_id: str, user: User) -> LessonNote:
        self._get_owned_lesson(lesson_id, user)
        note = self.repo.get_note(self.db, lesson_id, note_id)
        if not note:
            raise HTTPException(status_code=404, detail="Note not found")
        return note

    def update_note(self, lesson_id: str, note_id: str, data: LessonNoteUpdate, user: User) -> LessonNote:
        note = self.get_note(lesson_id, note_id, user)
        title, notes = self._require_note_text(data.noteTitle, data.notes)
        note.note_title = title
        note.notes = notes
        if data.lessonDate is not None:
            note.lesson_date = _parse_lesson_date(data.lessonDate)
        self.db.commit()
        self.db.refresh(note)
        return note

    def delete_note(self, lesson_id: str, note_id: str, user: User) -> None:
        note = self.get_note(lesson_id, note_id, user)
        self.db.delete(note)
        self.db.commit()

    @staticmethod
    def _require_note_text(title: Optional[str], notes: Optional[str]) -> tuple[str, str]:
        title = (title or "").strip()
        notes = (notes or "").strip()
        if not title or not notes:
            raise HTTPException(status_code=400, detail="Note title and notes are required")
        return title, notes

    # ============================================================================
    # ACCESS
    # ============================================================================

    def _get_visible_lesson(self, lesson_id: str, user: User) -> Lesson:
        lesson = self.repo.get_lesson(self.db, lesson_id)
        if not lesson:
            raise HTTPException(status_code=404, detail="Lesson not found")
        if not can_view_lesson(lesson, user):
            raise HTTPException(status_code=403, detail="Unauthorized: You cannot view this lesson")
        return lesson

    def _get_owned_lesson(self, lesson_id: str, user: User) -> Lesson:
        lesson = self.repo.get_lesson(self.db, lesson_id)
        if not lesson:
            raise HTTPException(status_code=404, detail="Lesson not found")
        if lesson.teacher_id != user.id:
            raise HTTPException(status_code=403, detail="Unauthorized: Only the lesson's teacher can do this")
        return lesson
