"""Lesson domain schemas - Pydantic models for request/response validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel


class LessonNoteCreate(BaseModel):
    noteTitle: Optional[str] = None
    notes: Optional[str] = None
    lessonDate: Optional[str] = None  # YYYY-MM-DD or a full ISO timestamp


class LessonNoteUpdate(BaseModel):
    noteTitle: Optional[str] = None
    notes: Optional[str] = None
    lessonDate: Optional[str] = None


class LessonNoteResponse(BaseModel):
    id: str
    lessonId: str
    noteTitle: str
    notes: str
    lessonDate: Optional[date] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    class Config:
        from_attributes = True
