"""Student domain schemas - Pydantic models for request/response validation"""

from typing import Optional

from pydantic import BaseModel, field_validator

from ...models import PROFICIENCY_LEVELS


def _check_level(v):
    if v is not None and v not in PROFICIENCY_LEVELS:
        raise ValueError(f"proficiency must be one of {', '.join(PROFICIENCY_LEVELS)}")
    return v


class InstrumentProficiencyInput(BaseModel):
    instrumentId: int
    proficiency: str

    @field_validator("proficiency")
    @classmethod
    def validate_proficiency(cls, v):
        return _check_level(v)


class StudentProfileSave(BaseModel):
    firstName: str
    lastName: str
    dob: Optional[str] = None  # YYYY-MM-DD
    instrumentProficiencies: Optional[list[InstrumentProficiencyInput]] = None


class ChildCreate(BaseModel):
    firstName: str
    lastName: str
    dob: Optional[str] = None


class StudentNameUpdate(BaseModel):
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    syncWithUser: bool = False


class DateOfBirthUpdate(BaseModel):
    dob: Optional[str] = None


class ProficiencyUpdate(BaseModel):
    proficiency: str

    @field_validator("proficiency")
    @classmethod
    def validate_proficiency(cls, v):
        return _check_level(v)


class ProficiencyResponse(BaseModel):
    studentId: str
    instrumentId: int
    instrumentName: Optional[str] = None
    proficiency: str
