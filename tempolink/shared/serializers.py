"""
Camel-case payload builders shared by several domains.

Lessons, bookings and search all embed the same user, student, teacher and
catalog shapes, so they are assembled here once.
"""

from datetime import date, datetime, time
from typing import Optional

from ..models import (
    Instrument,
    Language,
    Lesson,
    LessonNote,
    Student,
    Teacher,
    TeacherTimeslot,
    User,
)


def iso(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (date, time)):
        return value.isoformat()
    return str(value)


def format_time(value: Optional[time]) -> Optional[str]:
    """HH:MM:SS"""
    return value.strftime("%H:%M:%S") if value else None


def serialize_user(user: Optional[User]) -> Optional[dict]:
    if user is None:
        return None
    return {
        "id": user.id,
        "email": user.email,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "role": user.role,
        "imageUrl": user.image_url,
        "preferredTimezone": user.preferred_timezone,
    }


def serialize_instrument(instrument: Optional[Instrument]) -> Optional[dict]:
    if instrument is None:
        return None
    return {"id": instrument.id, "name": instrument.name, "imagePath": instrument.image_path}


def serialize_language(language: Language) -> dict:
    return {"id": language.id, "name": language.name, "code": language.code}


def serialize_student(student: Optional[Student], include_user: bool = False) -> Optional[dict]:
    if student is None:
        return None
    data = {
        "id": student.id,
        "userId": student.user_id,
        "parentId": student.parent_id,
        "firstName": student.first_name,
        "lastName": student.last_name,
        "dateOfBirth": iso(student.date_of_birth),
        "imageUrl": student.image_url,
    }
    if include_user:
        data["user"] = serialize_user(student.user)
    return data


def serialize_timeslot(timeslot: Optional[TeacherTimeslot]) -> Optional[dict]:
    if timeslot is None:
        return None
    return {
        "id": timeslot.id,
        "teacherId": timeslot.teacher_id,
        "dayOfWeek": timeslot.day_of_week,
        "startTime": format_time(timeslot.start_time),
        "endTime": format_time(timeslot.end_time),
        "isBooked": timeslot.is_booked,
        "studentId": timeslot.student_id,
        "teachingFormat": timeslot.teaching_format,
    }


def serialize_teacher(teacher: Optional[Teacher], include_user: bool = False) -> Optional[dict]:
    if teacher is None:
        return None
    data = {
        "id": teacher.id,
        "bio": teacher.bio,
        "acceptingStudents": teacher.accepting_students,
        "teachingFormat": teacher.teaching_format,
        "agePreference": teacher.age_preference,
        "imageUrl": teacher.image_url,
        "profileName": teacher.profile_name,
        "instruments": [serialize_instrument(i) for i in teacher.instruments],
        "languages": [serialize_language(lang) for lang in teacher.languages],
    }
    if include_user:
        data["user"] = serialize_user(teacher.user)
    return data


def serialize_note(note: Optional[LessonNote]) -> Optional[dict]:
    if note is None:
        return None
    return {
        "id": note.id,
        "lessonId": note.lesson_id,
        "noteTitle": note.note_title,
        "notes": note.notes,
        "lessonDate": iso(note.lesson_date),
        "createdAt": iso(note.created_at),
        "updatedAt": iso(note.updated_at),
    }


def serialize_lesson(lesson: Lesson) -> dict:
    return {
        "id": lesson.id,
        "teacherId": lesson.teacher_id,
        "timeslotId": lesson.timeslot_id,
        "studentId": lesson.student_id,
        "instrumentId": lesson.instrument_id,
        "lessonFormat": lesson.lesson_format,
        "createdAt": iso(lesson.created_at),
    }
