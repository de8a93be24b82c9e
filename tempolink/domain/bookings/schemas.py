"""Booking domain schemas - Pydantic models for request/response validation"""

from typing import Optional

from pydantic import BaseModel, field_validator

from ...models import LESSON_FORMATS, PROFICIENCY_LEVELS


class BookingRequestCreate(BaseModel):
    timeslotId: str
    instrument: Optional[str] = None  # instrument name
    lessonFormat: str
    studentId: Optional[str] = None  # parents choose which child
    proficiency: Optional[str] = None

    @field_validator("lessonFormat")
    @classmethod
    def validate_lesson_format(cls, v):
        if v not in LESSON_FORMATS:
            raise ValueError(f"lessonFormat must be one of {', '.join(LESSON_FORMATS)}")
        return v

    @field_validator("proficiency")
    @classmethod
    def validate_proficiency(cls, v):
        if v is not None and v not in PROFICIENCY_LEVELS:
            raise ValueError(f"proficiency must be one of {', '.join(PROFICIENCY_LEVELS)}")
        return v


class BookingRequestCreated(BaseModel):
    success: bool = True
    bookingRequestId: str


class AcceptBookingResponse(BaseModel):
    success: bool = True
    lessonId: str
    eventId: str


class BookingStatusResponse(BaseModel):
    success: bool = True
    bookingRequestId: str
    bookingStatus: str
