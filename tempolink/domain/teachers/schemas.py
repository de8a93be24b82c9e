"""Teacher domain schemas - Pydantic models for request/response validation"""

from typing import Optional

from pydantic import BaseModel, field_validator

from ...models import AGE_PREFERENCES, TEACHING_FORMATS


class TeacherProfileSave(BaseModel):
    firstName: str
    lastName: str
    teachingFormat: Optional[str] = None
    agePreference: Optional[str] = None
    bio: Optional[str] = None
    instrumentIds: list[int] = []
    languageIds: list[int] = []

    @field_validator("teachingFormat")
    @classmethod
    def validate_teaching_format(cls, v):
        if v is not None and v not in TEACHING_FORMATS:
            raise ValueError(f"teachingFormat must be one of {', '.join(TEACHING_FORMATS)}")
        return v

    @field_validator("agePreference")
    @classmethod
    def validate_age_preference(cls, v):
        if v is not None and v not in AGE_PREFERENCES:
            raise ValueError(f"agePreference must be one of {', '.join(AGE_PREFERENCES)}")
        return v


class TeacherBioUpdate(BaseModel):
    bio: Optional[str] = None


class TeacherNameUpdate(BaseModel):
    firstName: Optional[str] = None
    lastName: Optional[str] = None


class TeacherPreferencesUpdate(BaseModel):
    acceptingStudents: Optional[bool] = None
    teachingFormat: Optional[str] = None
    agePreference: Optional[str] = None

    @field_validator("teachingFormat")
    @classmethod
    def validate_teaching_format(cls, v):
        if v is not None and v not in TEACHING_FORMATS:
            raise ValueError(f"teachingFormat must be one of {', '.join(TEACHING_FORMATS)}")
        return v

    @field_validator("agePreference")
    @classmethod
    def validate_age_preference(cls, v):
        if v is not None and v not in AGE_PREFERENCES:
            raise ValueError(f"agePreference must be one of {', '.join(AGE_PREFERENCES)}")
        return v


class ImageUpdate(BaseModel):
    imageUrl: Optional[str] = None


class SocialLinkCreate(BaseModel):
    externalUrl: str


class SocialLinkResponse(BaseModel):
    id: str
    teacherId: str
    externalUrl: str

    class Config:
        from_attributes = True


class ToggleResponse(BaseModel):
    added: bool


class TeacherSearchResult(BaseModel):
    teacherId: str
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    profileName: str
    imageUrl: Optional[str] = None
    teachingFormat: Optional[str] = None
    instruments: list[dict] = []
    languages: list[dict] = []
    distance: Optional[float] = None
    timezone: Optional[str] = None
