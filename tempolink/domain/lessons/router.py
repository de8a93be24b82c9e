"""Lesson router - FastAPI endpoints for lessons and lesson notes"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user_with_role, require_role
from ...database import get_db
from ...models import LessonNote, User
from .schemas import LessonNoteCreate, LessonNoteResponse, LessonNoteUpdate
from .service import LessonService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/lessons", tags=["Lessons"])


def get_lesson_service(db: Session = Depends(get_db)) -> LessonService:
    """Dependency injection for LessonService"""
    return LessonService(db)


def _note_response(note: LessonNote) -> LessonNoteResponse:
    return LessonNoteResponse(
        id=note.id,
        lessonId=note.lesson_id,
        noteTitle=note.note_title,
        notes=note.notes,
        lessonDate=note.lesson_date,
        createdAt=note.created_at,
        updatedAt=note.updated_at,
    )


# ============================================================================
# LESSONS
# ============================================================================


@router.get("")
async def get_lessons(
    current_user: User = Depends(get_current_user_with_role),
    service: LessonService = Depends(get_lesson_service),
):
    """Lessons for the current user; parents get one group per child"""
    return service.get_lessons(current_user)


@router.get("/by-timeslot/{timeslot_id}")
async def get_lesson_by_timeslot(
    timeslot_id: str,
    current_user: User = Depends(require_role("TEACHER")),
    service: LessonService = Depends(get_lesson_service),
):
    return {"lesson": service.get_lesson_by_timeslot(timeslot_id, current_user)}


@router.get("/{lesson_id}")
async def get_lesson(
    lesson_id: str,
    current_user: User = Depends(get_current_user_with_role),
    service: LessonService = Depends(get_lesson_service),
):
    return service.get_lesson_details(lesson_id, current_user)


@router.get("/{lesson_id}/participants")
async def get_lesson_participants(
    lesson_id: str,
    current_user: User = Depends(get_current_user_with_role),
    service: LessonService = Depends(get_lesson_service),
):
    return service.get_lesson_participants(lesson_id, current_user)


@router.delete("/{lesson_id}")
async def delete_lesson(
    lesson_id: str,
    current_user: User = Depends(require_role("TEACHER")),
    service: LessonService = Depends(get_lesson_service),
):
    service.delete_lesson(lesson_id, current_user)
    return {"success": True}


# ============================================================================
# NOTES
# ============================================================================


@router.post("/{lesson_id}/notes", response_model=LessonNoteResponse)
async def create_lesson_note(
    lesson_id: str,
    data: LessonNoteCreate,
    current_user: User = Depends(require_role("TEACHER")),
    service: LessonService = Depends(get_lesson_service),
):
    return _note_response(service.create_note(lesson_id, data, current_user))


@router.get("/{lesson_id}/notes/{note_id}", response_model=LessonNoteResponse)
async def get_lesson_note(
    lesson_id: str,
    note_id: str,
    current_user: User = Depends(require_role("TEACHER")),
    service: LessonService = Depends(get_lesson_service),
):
    return _note_response(service.get_note(lesson_id, note_id, current_user))


@router.put("/{lesson_id}/notes/{note_id}", response_model=LessonNoteResponse)
async def update_lesson_note(
    lesson_id: str,
    note_id: str,
    data: LessonNoteUpdate,
    current_user: User = Depends(require_role("TEACHER")),
    service: LessonService = Depends(get_lesson_service),
):
    return _note_response(service.update_note(lesson_id, note_id, data, current_user))


@router.delete("/{lesson_id}/notes/{note_id}")
async def delete_lesson_note(
    lesson_id: str,
    note_id: str,
    current_user: User = Depends(require_role("TEACHER")),
    service: LessonService = Depends(get_lesson_service),
):
    service.delete_note(lesson_id, note_id, current_user)
    return {"success": True}
