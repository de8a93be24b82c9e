"""Timeslot domain schemas - Pydantic models for request/response validation"""

from typing import Optional

from pydantic import BaseModel


class TimeslotCreate(BaseModel):
    dayOfWeek: int
    startTime: str
    endTime: str
    teachingFormat: Optional[str] = None


class TimeslotUpdate(BaseModel):
    dayOfWeek: int
    startTime: str
    endTime: str
    teachingFormat: Optional[str] = None


class TimeslotResponse(BaseModel):
    id: str
    teacherId: str
    dayOfWeek: int
    startTime: str
    endTime: str
    isBooked: bool
    studentId: Optional[str] = None
    teachingFormat: Optional[str] = None

    class Config:
        from_attributes = True
