"""Invite domain schemas - Pydantic models for request/response validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...models import INVITE_ROLES


class InviteCreate(BaseModel):
    email: str
    fullName: str
    role: str
    timeslotId: Optional[str] = None

    @field_validator("role")
    @classmethod
    def validate_role(cls, v):
        v = (v or "").strip().upper()
        if v not in INVITE_ROLES:
            raise ValueError(f"role must be one of {', '.join(INVITE_ROLES)}")
        return v


class InviteCreated(BaseModel):
    success: bool = True
    inviteId: str
    userExists: bool


class InviteResponse(BaseModel):
    id: str
    email: str
    fullName: str
    role: str
    timeslotId: Optional[str] = None
    userId: Optional[str] = None
    emailSent: bool
    createdAt: Optional[datetime] = None

    class Config:
        from_attributes = True
