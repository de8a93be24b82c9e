"""User service - Business logic for the caller's own account"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Student, User
from ...services import clerk_service
from ...services.clerk_service import ClerkAPIError
from ...shared.timezones import is_valid_timezone
from ...shared.validators import trim_or_none
from ..addresses.repository import AddressRepository
from .repository import UserRepository

logger = logging.getLogger(__name__)


class UserService:
    """Service for account operations"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = UserRepository()

    async def set_role(self, role: str, user: User) -> User:
        """Set the role locally and in Clerk public metadata (other metadata keys are kept)"""
        try:
            await clerk_service.update_public_metadata(user.clerk_id, {"role": role})
        except ClerkAPIError as e:
            logger.error(f"❌ Failed to set Clerk role for {user.id}: {e}")
            raise HTTPException(status_code=502, detail="Failed to update role in authentication system") from e

        user.role = role
        logger.info(f"✅ User {user.id} role set to {role}")
        return self.repo.save(self.db, user)

    async def set_onboarded(self, onboarded: bool, user: User) -> None:
        try:
            await clerk_service.update_public_metadata(user.clerk_id, {"onboarded": onboarded})
        except ClerkAPIError as e:
            logger.error(f"❌ Failed to set onboarded flag for {user.id}: {e}")
            raise HTTPException(
                status_code=502, detail="Failed to update onboarding status in authentication system"
            ) from e

    async def update_name(self, first_name: Optional[str], last_name: Optional[str], user: User) -> User:
        first_name = trim_or_none(first_name)
        last_name = trim_or_none(last_name)
        try:
            await clerk_service.update_user_name(user.clerk_id, first_name, last_name)
        except ClerkAPIError as e:
            logger.error(f"❌ Failed to sync name to Clerk for {user.id}: {e}")
            raise HTTPException(status_code=502, detail="Failed to update name in authentication system") from e

        user.first_name = first_name
        user.last_name = last_name
        return self.repo.save(self.db, user)

    def update_image(self, image_url: Optional[str], user: User) -> User:
        """Account image; teachers also get it on their public profile"""
        image_url = trim_or_none(image_url)
        user.image_url = image_url
        if user.teacher:
            user.teacher.image_url = image_url
        return self.repo.save(self.db, user)

    async def delete_account(self, user: User) -> None:
        user.is_deleted = True
        self.repo.save(self.db, user)
        logger.info(f"🗑️ Soft-deleted user {user.id}")

        try:
            await clerk_service.delete_user(user.clerk_id)
        except ClerkAPIError as e:
            logger.error(f"❌ Failed to delete Clerk user for {user.id}: {e}")
            raise HTTPException(status_code=502, detail="Failed to delete account in authentication system") from e

    def get_preferences(self, user: User) -> dict:
        preferences = {
            "user": {"preferredTimezone": user.preferred_timezone},
            "addresses": [
                {
                    "id": a.id,
                    "address": a.address,
                    "addressFormatted": a.address_formatted,
                    "latitude": a.latitude,
                    "longitude": a.longitude,
                }
                for a in AddressRepository.get_user_addresses(self.db, user.id)
            ],
        }
        teacher = user.teacher
        if user.role == "TEACHER" and teacher:
            preferences["teacher"] = {
                "acceptingStudents": teacher.accepting_students,
                "teachingFormat": teacher.teaching_format,
                "agePreference": teacher.age_preference,
            }
        return preferences

    def update_timezone(self, timezone: str, user: User) -> User:
        timezone = (timezone or "").strip()
        if not is_valid_timezone(timezone):
            raise HTTPException(status_code=400, detail="Invalid timezone")
        user.preferred_timezone = timezone
        return self.repo.save(self.db, user)

    def get_children(self, user: User) -> list[Student]:
        """A student's own record, or a parent's children"""
        if user.role == "STUDENT":
            return [user.student_profile] if user.student_profile else []
        if user.role == "PARENT":
            return list(user.children)
        return []
