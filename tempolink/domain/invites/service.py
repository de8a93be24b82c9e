"""Invite service - Business logic for teacher invitations"""

import logging

from arq import create_pool
from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Invite, User
from ...shared.validators import validate_email
from ...worker import get_redis_settings
from ..timeslots.repository import TimeslotRepository
from ..users.repository import UserRepository
from .repository import InviteRepository
from .schemas import InviteCreate

logger = logging.getLogger(__name__)


class InviteService:
    """Service for invite operations"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = InviteRepository()

    async def create_invite(self, data: InviteCreate, user: User) -> tuple[Invite, bool]:
        """
        Record an invite and queue its email.

        Returns:
            (invite, user_exists). When the address already belongs to an
            account the invite is linked to it and no email is sent.
        """
        if user.role != "TEACHER" or not user.teacher:
            raise HTTPException(status_code=403, detail="Only teachers can send invites")

        try:
            email = validate_email(data.email)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        if not email:
            raise HTTPException(status_code=400, detail="Invalid email format")

        full_name = (data.fullName or "").strip()
        if not full_name:
            raise HTTPException(status_code=400, detail="Full name is required")

        if data.timeslotId and not TimeslotRepository.get_owned_timeslot(self.db, data.timeslotId, user.id):
            raise HTTPException(status_code=404, detail="Timeslot not found or unauthorized")

        existing_user = UserRepository.get_by_email(self.db, email)
        invite = self.repo.create(
            self.db,
            Invite(
                teacher_id=user.id,
                user_id=existing_user.id if existing_user else None,
                email=email,
                full_name=full_name,
                timeslot_id=data.timeslotId,
                role=data.role,
                email_sent=existing_user is not None,
            ),
        )
        logger.info(f"✅ Invite {invite.id} created by teacher {user.id} (existing user: {existing_user is not None})")

        if not existing_user:
            # The pending-invite sweep retries anything that fails to queue here
            try:
                pool = await create_pool(get_redis_settings())
                await pool.enqueue_job("send_invite_email_task", invite.id)
                logger.info(f"📥 Queued invite email for invite {invite.id}")
            except Exception as e:
                logger.warning(f"⚠️ Failed to queue invite email for invite {invite.id}: {e}")

        return invite, existing_user is not None

    def get_invites(self, user: User) -> list[Invite]:
        if user.role != "TEACHER":
            raise HTTPException(status_code=403, detail="Only teachers can view invites")
        return self.repo.get_teacher_invites(self.db, user.id)
