"""Student router - FastAPI endpoints for students, parents and children"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user, get_current_user_with_role, require_role
from ...database import get_db
from ...models import StudentInstrumentProficiency, User
from ...shared.serializers import serialize_student, serialize_user
from ..teachers.schemas import ImageUpdate
from .schemas import (
    ChildCreate,
    DateOfBirthUpdate,
    ProficiencyResponse,
    ProficiencyUpdate,
    StudentNameUpdate,
    StudentProfileSave,
)
from .service import StudentService

router = APIRouter(prefix="/students", tags=["Students"])


def get_student_service(db: Session = Depends(get_db)) -> StudentService:
    """Dependency injection for StudentService"""
    return StudentService(db)


def _proficiency_response(record: StudentInstrumentProficiency) -> ProficiencyResponse:
    return ProficiencyResponse(
        studentId=record.student_id,
        instrumentId=record.instrument_id,
        instrumentName=record.instrument.name if record.instrument else None,
        proficiency=record.proficiency,
    )


# ============================================================================
# PROFILES
# ============================================================================


@router.post("/me/profile")
async def save_student_profile(
    data: StudentProfileSave,
    current_user: User = Depends(get_current_user),
    service: StudentService = Depends(get_student_service),
):
    student = service.save_student_profile(data, current_user)
    return {"success": True, "studentId": student.id}


@router.post("/parent-profile")
async def save_parent_profile(
    data: StudentProfileSave,
    current_user: User = Depends(get_current_user),
    service: StudentService = Depends(get_student_service),
):
    student = service.save_parent_profile(data, current_user)
    return {"success": True, "studentId": student.id}


@router.get("/me")
async def get_my_student_profile(
    current_user: User = Depends(require_role("STUDENT")),
    service: StudentService = Depends(get_student_service),
):
    return serialize_student(service.get_my_student(current_user), include_user=True)


@router.get("/parent")
async def get_parent_profile(
    current_user: User = Depends(require_role("PARENT")),
    service: StudentService = Depends(get_student_service),
):
    return {
        "user": serialize_user(current_user),
        "students": [serialize_student(s) for s in service.get_children(current_user)],
    }


@router.put("/me/name")
async def update_my_name(
    data: StudentNameUpdate,
    current_user: User = Depends(require_role("STUDENT")),
    service: StudentService = Depends(get_student_service),
):
    return serialize_student(await service.update_my_name(data, current_user))


@router.put("/me/date-of-birth")
async def update_my_date_of_birth(
    data: DateOfBirthUpdate,
    current_user: User = Depends(require_role("STUDENT")),
    service: StudentService = Depends(get_student_service),
):
    return serialize_student(service.update_my_date_of_birth(data.dob, current_user))


# ============================================================================
# CHILDREN
# ============================================================================


@router.post("/children")
async def add_child(
    data: ChildCreate,
    current_user: User = Depends(require_role("PARENT")),
    service: StudentService = Depends(get_student_service),
):
    return serialize_student(service.add_child(data, current_user))


@router.put("/children/{student_id}")
async def update_child(
    student_id: str,
    data: ChildCreate,
    current_user: User = Depends(require_role("PARENT")),
    service: StudentService = Depends(get_student_service),
):
    return serialize_student(service.update_child(student_id, data, current_user))


@router.delete("/children/{student_id}")
async def remove_child(
    student_id: str,
    current_user: User = Depends(require_role("PARENT")),
    service: StudentService = Depends(get_student_service),
):
    service.remove_child(student_id, current_user)
    return {"success": True}


# ============================================================================
# IMAGES
# ============================================================================


@router.put("/parent/image")
async def update_parent_image(
    data: ImageUpdate,
    current_user: User = Depends(require_role("PARENT")),
    service: StudentService = Depends(get_student_service),
):
    user = service.update_parent_image(data.imageUrl, current_user)
    return {"success": True, "imageUrl": user.image_url}


@router.put("/{student_id}/image")
async def update_student_image(
    student_id: str,
    data: ImageUpdate,
    current_user: User = Depends(get_current_user_with_role),
    service: StudentService = Depends(get_student_service),
):
    student = service.update_student_image(student_id, data.imageUrl, current_user)
    return {"success": True, "imageUrl": student.image_url}


# ============================================================================
# READS AND PROFICIENCY
# ============================================================================


@router.get("/{student_id}")
async def get_student(
    student_id: str,
    current_user: User = Depends(get_current_user_with_role),
    service: StudentService = Depends(get_student_service),
):
    return serialize_student(service.get_student(student_id, current_user), include_user=True)


@router.get("/{student_id}/proficiencies", response_model=list[ProficiencyResponse])
async def get_proficiencies(
    student_id: str,
    current_user: User = Depends(get_current_user_with_role),
    service: StudentService = Depends(get_student_service),
):
    return [_proficiency_response(p) for p in service.get_proficiencies(student_id, current_user)]


@router.put("/{student_id}/proficiencies/{instrument_id}", response_model=ProficiencyResponse)
async def set_proficiency(
    student_id: str,
    instrument_id: int,
    data: ProficiencyUpdate,
    current_user: User = Depends(get_current_user_with_role),
    service: StudentService = Depends(get_student_service),
):
    record = service.set_proficiency(student_id, instrument_id, data.proficiency, current_user)
    return _proficiency_response(record)


@router.delete("/{student_id}/proficiencies/{instrument_id}")
async def delete_proficiency(
    student_id: str,
    instrument_id: int,
    current_user: User = Depends(get_current_user_with_role),
    service: StudentService = Depends(get_student_service),
):
    service.delete_proficiency(student_id, instrument_id, current_user)
    return {"success": True}
