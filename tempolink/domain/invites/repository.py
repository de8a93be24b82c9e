"""Invite repository - Database operations for invites"""

from sqlalchemy.orm import Session

from ...models import Invite


class InviteRepository:
    """Repository for invite database operations"""

    @staticmethod
    def create(db: Session, invite: Invite) -> Invite:
        db.add(invite)
        db.commit()
        db.refresh(invite)
        return invite

    @staticmethod
    def get_teacher_invites(db: Session, teacher_id: str) -> list[Invite]:
        return (
            db.query(Invite)
            .filter(Invite.teacher_id == teacher_id)
            .order_by(Invite.created_at.desc())
            .all()
        )
