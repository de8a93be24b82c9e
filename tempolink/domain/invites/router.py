"""Invite router - FastAPI endpoints for teacher invitations"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user_with_role
from ...database import get_db
from ...models import User
from .schemas import InviteCreate, InviteCreated, InviteResponse
from .service import InviteService

router = APIRouter(prefix="/invites", tags=["Invites"])


def get_invite_service(db: Session = Depends(get_db)) -> InviteService:
    """Dependency injection for InviteService"""
    return InviteService(db)


@router.post("", response_model=InviteCreated)
async def create_invite(
    data: InviteCreate,
    current_user: User = Depends(get_current_user_with_role),
    service: InviteService = Depends(get_invite_service),
):
    """Invite a student or parent by email"""
    invite, user_exists = await service.create_invite(data, current_user)
    return InviteCreated(inviteId=invite.id, userExists=user_exists)


@router.get("", response_model=list[InviteResponse])
async def get_invites(
    current_user: User = Depends(get_current_user_with_role),
    service: InviteService = Depends(get_invite_service),
):
    return [
        InviteResponse(
            id=i.id,
            email=i.email,
            fullName=i.full_name,
            role=i.role,
            timeslotId=i.timeslot_id,
            userId=i.user_id,
            emailSent=i.email_sent,
            createdAt=i.created_at,
        )
        for i in service.get_invites(current_user)
    ]
