"""Student service - Business logic for students, children and proficiencies"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Student, StudentInstrumentProficiency, TeacherTimeslot, User
from ...services import clerk_service
from ...services.clerk_service import ClerkAPIError
from ...shared.validators import parse_date_of_birth, trim_or_none
from ..catalog.repository import CatalogRepository
from .repository import StudentRepository
from .schemas import ChildCreate, InstrumentProficiencyInput, StudentNameUpdate, StudentProfileSave

logger = logging.getLogger(__name__)


def _parse_dob(value: Optional[str]):
    try:
        return parse_date_of_birth(value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


def can_manage_student(student: Student, user: User) -> bool:
    """The student's own account or their parent"""
    return student.user_id == user.id or (student.parent_id is not None and student.parent_id == user.id)


class StudentService:
    """Service for student operations"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = StudentRepository()

    # ============================================================================
    # PROFILES
    # ============================================================================

    def save_student_profile(self, data: StudentProfileSave, user: User) -> Student:
        """Create or update the caller's own student record"""
        first_name = trim_or_none(data.firstName)
        last_name = trim_or_none(data.lastName)
        dob = _parse_dob(data.dob)

        student = self.repo.get_by_user(self.db, user.id)
        if student is None:
            student = Student(user_id=user.id)
            self.db.add(student)
        student.first_name = first_name
        student.last_name = last_name
        if dob is not None:
            student.date_of_birth = dob
        user.first_name = first_name
        user.last_name = last_name
        self.db.flush()

        self._apply_proficiencies(student, data.instrumentProficiencies)
        self.db.commit()
        self.db.refresh(student)
        logger.info(f"✅ Saved student profile {student.id} for user {user.id}")
        return student

    def save_parent_profile(self, data: StudentProfileSave, user: User) -> Student:
        """Create or update the parent's first child"""
        first_name = trim_or_none(data.firstName)
        last_name = trim_or_none(data.lastName)
        dob = _parse_dob(data.dob)

        children = self.repo.get_children(self.db, user.id)
        student = children[0] if children else None
        if student is None:
            student = Student(parent_id=user.id)
            self.db.add(student)
        student.first_name = first_name
        student.last_name = last_name
        if dob is not None:
            student.date_of_birth = dob
        self.db.flush()

        self._apply_proficiencies(student, data.instrumentProficiencies)
        self.db.commit()
        self.db.refresh(student)
        logger.info(f"✅ Saved child {student.id} for parent {user.id}")
        return student

    def _apply_proficiencies(self, student: Student, items: Optional[list[InstrumentProficiencyInput]]) -> None:
        for item in items or []:
            if not CatalogRepository.get_instrument(self.db, item.instrumentId):
                raise HTTPException(status_code=400, detail="Invalid instrument specified")
            self.repo.upsert_proficiency(self.db, student.id, item.instrumentId, item.proficiency)

    def get_my_student(self, user: User) -> Student:
        student = self.repo.get_by_user(self.db, user.id)
        if not student:
            raise HTTPException(status_code=404, detail="Student profile not found")
        return student

    def get_children(self, user: User) -> list[Student]:
        return self.repo.get_children(self.db, user.id)

    async def update_my_name(self, data: StudentNameUpdate, user: User) -> Student:
        student = self.get_my_student(user)
        student.first_name = trim_or_none(data.firstName)
        student.last_name = trim_or_none(data.lastName)
        if data.syncWithUser:
            user.first_name = student.first_name
            user.last_name = student.last_name
        self.db.commit()
        self.db.refresh(student)

        if data.syncWithUser:
            try:
                await clerk_service.update_user_name(user.clerk_id, user.first_name, user.last_name)
            except ClerkAPIError as e:
                logger.warning(f"⚠️ Failed to sync student name to Clerk for {user.id}: {e}")
        return student

    def update_my_date_of_birth(self, dob: Optional[str], user: User) -> Student:
        student = self.get_my_student(user)
        student.date_of_birth = _parse_dob(dob)
        self.db.commit()
        self.db.refresh(student)
        return student

    # ============================================================================
    # CHILDREN
    # ============================================================================

    def add_child(self, data: ChildCreate, user: User) -> Student:
        first_name = trim_or_none(data.firstName)
        if not first_name:
            raise HTTPException(status_code=400, detail="First name is required")
        student = Student(
            parent_id=user.id,
            first_name=first_name,
            last_name=trim_or_none(data.lastName),
            date_of_birth=_parse_dob(data.dob),
        )
        self.db.add(student)
        self.db.commit()
        self.db.refresh(student)
        logger.info(f"✅ Added child {student.id} for parent {user.id}")
        return student

    def update_child(self, student_id: str, data: ChildCreate, user: User) -> Student:
        student = self._get_own_child(student_id, user)
        first_name = trim_or_none(data.firstName)
        if not first_name:
            raise HTTPException(status_code=400, detail="First name is required")
        student.first_name = first_name
        student.last_name = trim_or_none(data.lastName)
        if data.dob is not None:
            student.date_of_birth = _parse_dob(data.dob)
        self.db.commit()
        self.db.refresh(student)
        return student

    def remove_child(self, student_id: str, user: User) -> None:
        """Delete a child; their lessons go with them, so their timeslots are released"""
        student = self._get_own_child(student_id, user)
        try:
            timeslot_ids = [lesson.timeslot_id for lesson in student.lessons]
            if timeslot_ids:
                self.db.query(TeacherTimeslot).filter(TeacherTimeslot.id.in_(timeslot_ids)).update(
                    {TeacherTimeslot.is_booked: False, TeacherTimeslot.student_id: None},
                    synchronize_session=False,
                )
            self.db.delete(student)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to remove child {student_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to remove child") from e
        logger.info(f"🗑️ Removed child {student_id} for parent {user.id}")

    def _get_own_child(self, student_id: str, user: User) -> Student:
        student = self.repo.get_student(self.db, student_id)
        if not student:
            raise HTTPException(status_code=404, detail="Student not found")
        if student.parent_id != user.id:
            raise HTTPException(status_code=403, detail="Unauthorized: This student is not your child")
        return student

    # ============================================================================
    # IMAGES
    # ============================================================================

    def update_student_image(self, student_id: str, image_url: Optional[str], user: User) -> Student:
        student = self.repo.get_student(self.db, student_id)
        if not student:
            raise HTTPException(status_code=404, detail="Student not found")
        if not can_manage_student(student, user):
            raise HTTPException(status_code=403, detail="Unauthorized: You cannot update this student")
        student.image_url = trim_or_none(image_url)
        self.db.commit()
        self.db.refresh(student)
        return student

    def update_parent_image(self, image_url: Optional[str], user: User) -> User:
        user.image_url = trim_or_none(image_url)
        self.db.commit()
        self.db.refresh(user)
        return user

    # ============================================================================
    # READS AND PROFICIENCY
    # ============================================================================

    def get_student(self, student_id: str, user: User) -> Student:
        student = self.repo.get_student(self.db, student_id)
        if not student:
            raise HTTPException(status_code=404, detail="Student not found")
        if not (can_manage_student(student, user) or user.role == "TEACHER"):
            raise HTTPException(status_code=403, detail="Unauthorized: You cannot view this student")
        return student

    def get_proficiencies(self, student_id: str, user: User) -> list[StudentInstrumentProficiency]:
        student = self.get_student(student_id, user)
        return self.repo.get_proficiencies(self.db, student.id)

    def set_proficiency(self, student_id: str, instrument_id: int, level: str, user: User) -> StudentInstrumentProficiency:
        student = self._get_managed_student(student_id, user)
        if not CatalogRepository.get_instrument(self.db, instrument_id):
            raise HTTPException(status_code=404, detail="Instrument not found")
        record = self.repo.upsert_proficiency(self.db, student.id, instrument_id, level)
        self.db.commit()
        self.db.refresh(record)
        return record

    def delete_proficiency(self, student_id: str, instrument_id: int, user: User) -> None:
        student = self._get_managed_student(student_id, user)
        record = self.repo.get_proficiency(self.db, student.id, instrument_id)
        if not record:
            raise HTTPException(status_code=404, detail="Proficiency not found")
        self.db.delete(record)
        self.db.commit()

    def _get_managed_student(self, student_id: str, user: User) -> Student:
        student = self.repo.get_student(self.db, student_id)
        if not student:
            raise HTTPException(status_code=404, detail="Student not found")
        if not can_manage_student(student, user):
            raise HTTPException(status_code=403, detail="Unauthorized: You cannot update this student")
        return student
