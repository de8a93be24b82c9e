"""Teacher router - FastAPI endpoints for teacher profiles and search"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_role
from ...database import get_db
from ...models import Teacher, TeacherSocialLink, User
from ...rate_limiter import create_rate_limiter
from ...shared.serializers import serialize_teacher
from .schemas import (
    ImageUpdate,
    SocialLinkCreate,
    SocialLinkResponse,
    TeacherBioUpdate,
    TeacherNameUpdate,
    TeacherPreferencesUpdate,
    TeacherProfileSave,
    TeacherSearchResult,
    ToggleResponse,
)
from .service import TeacherService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/teachers", tags=["Teachers"])

# Search may call Nominatim, whose usage policy caps request rates
rate_limit_search = create_rate_limiter(limit=30, window_seconds=60, key_prefix="teacher_search")


def get_teacher_service(db: Session = Depends(get_db)) -> TeacherService:
    """Dependency injection for TeacherService"""
    return TeacherService(db)


def _social_link_response(link: TeacherSocialLink) -> SocialLinkResponse:
    return SocialLinkResponse(id=link.id, teacherId=link.teacher_id, externalUrl=link.external_url)


def _teacher_payload(teacher: Teacher) -> dict:
    return serialize_teacher(teacher, include_user=True)


# ============================================================================
# OWN PROFILE
# ============================================================================


@router.post("/me/profile")
async def save_teacher_profile(
    data: TeacherProfileSave,
    current_user: User = Depends(get_current_user),
    service: TeacherService = Depends(get_teacher_service),
):
    """Create or update the current user's teacher profile"""
    teacher = service.save_teacher_profile(data, current_user)
    return {"success": True, "profileName": teacher.profile_name}


@router.get("/me")
async def get_my_teacher_profile(
    current_user: User = Depends(require_role("TEACHER")),
    service: TeacherService = Depends(get_teacher_service),
):
    return _teacher_payload(service.get_my_profile(current_user))


@router.put("/me/bio")
async def update_bio(
    data: TeacherBioUpdate,
    current_user: User = Depends(require_role("TEACHER")),
    service: TeacherService = Depends(get_teacher_service),
):
    teacher = service.update_bio(data.bio, current_user)
    return {"success": True, "bio": teacher.bio}


@router.post("/me/instruments/{instrument_id}/toggle", response_model=ToggleResponse)
async def toggle_instrument(
    instrument_id: int,
    current_user: User = Depends(require_role("TEACHER")),
    service: TeacherService = Depends(get_teacher_service),
):
    return ToggleResponse(added=service.toggle_instrument(instrument_id, current_user))


@router.post("/me/languages/{language_id}/toggle", response_model=ToggleResponse)
async def toggle_language(
    language_id: int,
    current_user: User = Depends(require_role("TEACHER")),
    service: TeacherService = Depends(get_teacher_service),
):
    return ToggleResponse(added=service.toggle_language(language_id, current_user))


@router.put("/me/name")
async def update_teacher_name(
    data: TeacherNameUpdate,
    current_user: User = Depends(require_role("TEACHER")),
    service: TeacherService = Depends(get_teacher_service),
):
    teacher = await service.update_name(data.firstName, data.lastName, current_user)
    return {"success": True, "profileName": teacher.profile_name}


@router.put("/me/preferences")
async def update_teacher_preferences(
    data: TeacherPreferencesUpdate,
    current_user: User = Depends(require_role("TEACHER")),
    service: TeacherService = Depends(get_teacher_service),
):
    teacher = service.update_preferences(data, current_user)
    return {
        "acceptingStudents": teacher.accepting_students,
        "teachingFormat": teacher.teaching_format,
        "agePreference": teacher.age_preference,
    }


@router.put("/me/image")
async def update_teacher_image(
    data: ImageUpdate,
    current_user: User = Depends(require_role("TEACHER")),
    service: TeacherService = Depends(get_teacher_service),
):
    teacher = service.update_image(data.imageUrl, current_user)
    return {"success": True, "imageUrl": teacher.image_url}


# ============================================================================
# SOCIAL LINKS
# ============================================================================


@router.get("/me/social-links", response_model=list[SocialLinkResponse])
async def get_social_links(
    current_user: User = Depends(require_role("TEACHER")),
    service: TeacherService = Depends(get_teacher_service),
):
    return [_social_link_response(link) for link in service.get_social_links(current_user)]


@router.post("/me/social-links", response_model=SocialLinkResponse)
async def create_social_link(
    data: SocialLinkCreate,
    current_user: User = Depends(require_role("TEACHER")),
    service: TeacherService = Depends(get_teacher_service),
):
    return _social_link_response(service.create_social_link(data.externalUrl, current_user))


@router.put("/me/social-links/{link_id}", response_model=SocialLinkResponse)
async def update_social_link(
    link_id: str,
    data: SocialLinkCreate,
    current_user: User = Depends(require_role("TEACHER")),
    service: TeacherService = Depends(get_teacher_service),
):
    return _social_link_response(service.update_social_link(link_id, data.externalUrl, current_user))


@router.delete("/me/social-links/{link_id}")
async def delete_social_link(
    link_id: str,
    current_user: User = Depends(require_role("TEACHER")),
    service: TeacherService = Depends(get_teacher_service),
):
    service.delete_social_link(link_id, current_user)
    return {"success": True}


# ============================================================================
# PUBLIC
# ============================================================================


@router.get("/search", response_model=list[TeacherSearchResult])
async def search_teachers(
    teachingType: str = Query(..., description="online or in-person"),
    instrumentId: int = Query(...),
    languageId: Optional[int] = Query(None),
    studentAge: Optional[int] = Query(None, ge=0),
    timezone: Optional[str] = Query(None),
    maxTimeDifference: Optional[float] = Query(None, ge=0),
    distance: Optional[float] = Query(None, gt=0, description="Radius in miles"),
    postalCode: Optional[str] = Query(None),
    addressId: Optional[str] = Query(None),
    _: None = Depends(rate_limit_search),
    service: TeacherService = Depends(get_teacher_service),
):
    """Find teachers accepting students for an instrument, online or near a location"""
    results = await service.search_teachers(
        teaching_type=teachingType,
        instrument_id=instrumentId,
        language_id=languageId,
        student_age=studentAge,
        timezone=timezone,
        max_time_difference=maxTimeDifference,
        distance=distance,
        postal_code=postalCode,
        address_id=addressId,
    )
    return [TeacherSearchResult(**r) for r in results]


@router.get("")
async def list_teachers(service: TeacherService = Depends(get_teacher_service)):
    return [_teacher_payload(t) for t in service.list_teachers()]


@router.get("/profile/{profile_name}")
async def get_teacher_by_profile_name(
    profile_name: str,
    service: TeacherService = Depends(get_teacher_service),
):
    teacher = service.get_teacher_by_profile_name(profile_name)
    payload = _teacher_payload(teacher)
    payload["socialLinks"] = [_social_link_response(link).model_dump() for link in teacher.social_links]
    return payload


@router.get("/{teacher_id}")
async def get_teacher(
    teacher_id: str,
    service: TeacherService = Depends(get_teacher_service),
):
    return _teacher_payload(service.get_teacher(teacher_id))
