"""User router - FastAPI endpoints for the current account"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import find_or_create_user, get_current_user, get_token_claims
from ...database import get_db
from ...models import User
from ...shared.serializers import serialize_student
from ..teachers.schemas import ImageUpdate
from .schemas import NameUpdate, OnboardedUpdate, RoleUpdate, SyncResponse, TimezoneUpdate, UserResponse
from .service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


def get_user_service(db: Session = Depends(get_db)) -> UserService:
    """Dependency injection for UserService"""
    return UserService(db)


def _user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        firstName=user.first_name,
        lastName=user.last_name,
        role=user.role,
        imageUrl=user.image_url,
        preferredTimezone=user.preferred_timezone,
    )


@router.post("/sync", response_model=SyncResponse)
async def sync_user(claims: dict = Depends(get_token_claims), db: Session = Depends(get_db)):
    """Create the local account for a Clerk user if it does not exist yet"""
    user, created = find_or_create_user(db, claims)
    logger.info(f"📥 User sync for {user.id}: {'created' if created else 'existing'}")
    return SyncResponse(userId=user.id, existing=not created)


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    return _user_response(current_user)


@router.put("/me/role", response_model=UserResponse)
async def set_role(
    data: RoleUpdate,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    return _user_response(await service.set_role(data.role, current_user))


@router.put("/me/onboarded")
async def set_onboarded(
    data: OnboardedUpdate,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    await service.set_onboarded(data.onboarded, current_user)
    return {"success": True, "onboarded": data.onboarded}


@router.put("/me/name", response_model=UserResponse)
async def update_name(
    data: NameUpdate,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    return _user_response(await service.update_name(data.firstName, data.lastName, current_user))


@router.put("/me/image", response_model=UserResponse)
async def update_image(
    data: ImageUpdate,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    return _user_response(service.update_image(data.imageUrl, current_user))


@router.delete("/me")
async def delete_me(
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    await service.delete_account(current_user)
    return {"success": True}


@router.get("/me/preferences")
async def get_preferences(
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    return service.get_preferences(current_user)


@router.put("/me/preferences/timezone", response_model=UserResponse)
async def update_timezone(
    data: TimezoneUpdate,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    return _user_response(service.update_timezone(data.timezone, current_user))


@router.get("/me/children")
async def get_children(
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    return [serialize_student(s) for s in service.get_children(current_user)]
