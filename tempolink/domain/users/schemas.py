"""User domain schemas - Pydantic models for request/response validation"""

from typing import Optional

from pydantic import BaseModel, field_validator

from ...models import ROLES


class RoleUpdate(BaseModel):
    role: str

    @field_validator("role")
    @classmethod
    def validate_role(cls, v):
        v = (v or "").strip().upper()
        if v not in ROLES:
            raise ValueError(f"role must be one of {', '.join(ROLES)}")
        return v


class OnboardedUpdate(BaseModel):
    onboarded: bool = True


class NameUpdate(BaseModel):
    firstName: Optional[str] = None
    lastName: Optional[str] = None


class TimezoneUpdate(BaseModel):
    timezone: str


class SyncResponse(BaseModel):
    userId: str
    existing: bool


class UserResponse(BaseModel):
    id: str
    email: str
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    role: Optional[str] = None
    imageUrl: Optional[str] = None
    preferredTimezone: Optional[str] = None

    class Config:
        from_attributes = True
