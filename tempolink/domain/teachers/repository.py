"""Teacher repository - Database operations for teacher profiles"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload, selectinload

from ...models import (
    Teacher,
    TeacherInstrument,
    TeacherLanguage,
    TeacherSocialLink,
    User,
)


def _with_relations(query):
    return query.options(
        joinedload(Teacher.user),
        selectinload(Teacher.instruments),
        selectinload(Teacher.languages),
    )


class TeacherRepository:
    """Repository for teacher database operations"""

    @staticmethod
    def get_teacher(db: Session, teacher_id: str) -> Optional[Teacher]:
        return _with_relations(db.query(Teacher)).filter(Teacher.id == teacher_id).first()

    @staticmethod
    def get_by_profile_name(db: Session, profile_name: str) -> Optional[Teacher]:
        return (
            _with_relations(db.query(Teacher))
            .options(selectinload(Teacher.social_links))
            .filter(Teacher.profile_name == profile_name)
            .first()
        )

    @staticmethod
    def list_teachers(db: Session) -> list[Teacher]:
        return (
            _with_relations(db.query(Teacher))
            .join(User, User.id == Teacher.id)
            .filter(User.is_deleted.is_(False))
            .order_by(Teacher.created_at)
            .all()
        )

    @staticmethod
    def get_profile_names_like(db: Session, base: str, exclude_teacher_id: Optional[str] = None) -> list[str]:
        query = db.query(Teacher.profile_name).filter(Teacher.profile_name.like(f"{base}%"))
        if exclude_teacher_id:
            query = query.filter(Teacher.id != exclude_teacher_id)
        return [row[0] for row in query.all()]

    @staticmethod
    def search_candidates(
        db: Session,
        instrument_id: int,
        teaching_formats: tuple[str, ...],
        language_id: Optional[int] = None,
        age_preferences: Optional[tuple[str, ...]] = None,
    ) -> list[Teacher]:
        """Teachers passing the column filters; distance/timezone are applied by the caller"""
        query = (
            _with_relations(db.query(Teacher))
            .join(User, User.id == Teacher.id)
            .join(TeacherInstrument, TeacherInstrument.teacher_id == Teacher.id)
            .filter(
                TeacherInstrument.instrument_id == instrument_id,
                Teacher.accepting_students.is_(True),
                Teacher.teaching_format.in_(teaching_formats),
                User.is_deleted.is_(False),
            )
        )
        if language_id is not None:
            query = query.join(TeacherLanguage, TeacherLanguage.teacher_id == Teacher.id).filter(
                TeacherLanguage.language_id == language_id
            )
        if age_preferences:
            query = query.filter(Teacher.age_preference.in_(age_preferences))
        return query.distinct().all()

    @staticmethod
    def get_instrument_link(db: Session, teacher_id: str, instrument_id: int) -> Optional[TeacherInstrument]:
        return (
            db.query(TeacherInstrument)
            .filter(TeacherInstrument.teacher_id == teacher_id, TeacherInstrument.instrument_id == instrument_id)
            .first()
        )

    @staticmethod
    def get_language_link(db: Session, teacher_id: str, language_id: int) -> Optional[TeacherLanguage]:
        return (
            db.query(TeacherLanguage)
            .filter(TeacherLanguage.teacher_id == teacher_id, TeacherLanguage.language_id == language_id)
            .first()
        )

    @staticmethod
    def get_social_links(db: Session, teacher_id: str) -> list[TeacherSocialLink]:
        return (
            db.query(TeacherSocialLink)
            .filter(TeacherSocialLink.teacher_id == teacher_id)
            .order_by(TeacherSocialLink.created_at)
            .all()
        )

    @staticmethod
    def get_owned_social_link(db: Session, link_id: str, teacher_id: str) -> Optional[TeacherSocialLink]:
        return (
            db.query(TeacherSocialLink)
            .filter(TeacherSocialLink.id == link_id, TeacherSocialLink.teacher_id == teacher_id)
            .first()
        )
