"""Teacher service - Business logic for teacher profiles and search"""

import logging
import math
import re
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Teacher, TeacherInstrument, TeacherLanguage, TeacherSocialLink, User
from ...services import clerk_service
from ...services.clerk_service import ClerkAPIError
from ...services.geocoding import geocode_postal_code
from ...shared.serializers import serialize_instrument, serialize_language
from ...shared.timezones import timezone_hour_difference
from ...shared.validators import trim_or_none, validate_url
from ..addresses.repository import AddressRepository
from ..addresses.service import AddressService
from ..catalog.repository import CatalogRepository
from .repository import TeacherRepository
from .schemas import TeacherPreferencesUpdate, TeacherProfileSave

logger = logging.getLogger(__name__)

EARTH_RADIUS_MILES = 3958.8

ONLINE_FORMATS = ("ONLINE_ONLY", "IN_PERSON_AND_ONLINE")
IN_PERSON_FORMATS = ("IN_PERSON_ONLY", "IN_PERSON_AND_ONLINE")


def profile_name_base(first_name: str, last_name: str) -> str:
    """ "Mary Jo", "O'Neil" -> "mary-jo-o-neil" """
    return re.sub(r"[^a-z0-9-]", "-", f"{first_name}-{last_name}".lower())


def haversine_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in miles"""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_MILES * math.asin(math.sqrt(a))


def age_preferences_for(student_age: Optional[int]) -> Optional[tuple[str, ...]]:
    if student_age is None:
        return None
    if student_age < 13:
        return ("ALL_AGES",)
    if student_age < 18:
        return ("13+", "ADULTS_ONLY")
    return None


class TeacherService:
    """Service for teacher profile operations"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = TeacherRepository()

    # ============================================================================
    # PROFILE NAMES
    # ============================================================================

    def generate_profile_name(self, first_name: str, last_name: str, exclude_teacher_id: Optional[str] = None) -> str:
        """
        Unique public profile slug.

        Uses "first-last" when no other profile starts with it; otherwise
        appends one more than the highest numeric suffix in use.
        """
        base = profile_name_base(first_name, last_name)
        existing = self.repo.get_profile_names_like(self.db, base, exclude_teacher_id)
        if not existing:
            return base

        pattern = re.compile(rf"^{re.escape(base)}-(\d+)$")
        suffixes = []
        for name in existing:
            match = pattern.match(name)
            if match:
                suffixes.append(int(match.group(1)))

        if suffixes:
            return f"{base}-{max(suffixes) + 1}"
        return f"{base}-1"

    # ============================================================================
    # OWN PROFILE
    # ============================================================================

    def save_teacher_profile(self, data: TeacherProfileSave, user: User) -> Teacher:
        """Create or update the caller's teacher profile and its instrument/language sets"""
        first_name = data.firstName.strip()
        last_name = data.lastName.strip()
        if not first_name or not last_name:
            raise HTTPException(status_code=400, detail="First and last name are required")

        instrument_ids = sorted(set(data.instrumentIds))
        language_ids = sorted(set(data.languageIds))
        if len(CatalogRepository.get_instruments_by_ids(self.db, instrument_ids)) != len(instrument_ids):
            raise HTTPException(status_code=400, detail="Invalid instrument specified")
        if len(CatalogRepository.get_languages_by_ids(self.db, language_ids)) != len(language_ids):
            raise HTTPException(status_code=400, detail="Invalid language specified")

        try:
            user.first_name = first_name
            user.last_name = last_name

            teacher = user.teacher
            profile_name = self.generate_profile_name(first_name, last_name, teacher.id if teacher else None)
            if teacher is None:
                teacher = Teacher(id=user.id, accepting_students=False, profile_name=profile_name)
                self.db.add(teacher)
            else:
                teacher.profile_name = profile_name

            if data.teachingFormat is not None:
                teacher.teaching_format = data.teachingFormat
            if data.agePreference is not None:
                teacher.age_preference = data.agePreference
            if data.bio is not None:
                teacher.bio = trim_or_none(data.bio)

            # Only touch rows that change; the (teacher, id) pairs are unique
            for link in list(teacher.instrument_links):
                if link.instrument_id not in instrument_ids:
                    teacher.instrument_links.remove(link)
            kept = {link.instrument_id for link in teacher.instrument_links}
            for instrument_id in instrument_ids:
                if instrument_id not in kept:
                    teacher.instrument_links.append(TeacherInstrument(instrument_id=instrument_id))

            for link in list(teacher.language_links):
                if link.language_id not in language_ids:
                    teacher.language_links.remove(link)
            kept = {link.language_id for link in teacher.language_links}
            for language_id in language_ids:
                if language_id not in kept:
                    teacher.language_links.append(TeacherLanguage(language_id=language_id))

            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to save teacher profile for {user.id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to save teacher profile") from e

        self.db.refresh(teacher)
        logger.info(f"✅ Saved teacher profile {teacher.profile_name}")
        return teacher

    def get_my_profile(self, user: User) -> Teacher:
        teacher = self.repo.get_teacher(self.db, user.id)
        if not teacher:
            raise HTTPException(status_code=404, detail="Teacher profile not found")
        return teacher

    def update_bio(self, bio: Optional[str], user: User) -> Teacher:
        teacher = self.get_my_profile(user)
        teacher.bio = trim_or_none(bio)
        self.db.commit()
        self.db.refresh(teacher)
        return teacher

    def toggle_instrument(self, instrument_id: int, user: User) -> bool:
        """Returns True when the instrument was added, False when removed"""
        teacher = self.get_my_profile(user)
        if not CatalogRepository.get_instrument(self.db, instrument_id):
            raise HTTPException(status_code=404, detail="Instrument not found")

        link = self.repo.get_instrument_link(self.db, teacher.id, instrument_id)
        if link:
            self.db.delete(link)
            added = False
        else:
            self.db.add(TeacherInstrument(teacher_id=teacher.id, instrument_id=instrument_id))
            added = True
        self.db.commit()
        return added

    def toggle_language(self, language_id: int, user: User) -> bool:
        teacher = self.get_my_profile(user)
        if not CatalogRepository.get_language(self.db, language_id):
            raise HTTPException(status_code=404, detail="Language not found")

        link = self.repo.get_language_link(self.db, teacher.id, language_id)
        if link:
            self.db.delete(link)
            added = False
        else:
            self.db.add(TeacherLanguage(teacher_id=teacher.id, language_id=language_id))
            added = True
        self.db.commit()
        return added

    async def update_name(self, first_name: Optional[str], last_name: Optional[str], user: User) -> Teacher:
        teacher = self.get_my_profile(user)
        first_name = trim_or_none(first_name)
        last_name = trim_or_none(last_name)

        user.first_name = first_name
        user.last_name = last_name
        if first_name and last_name:
            teacher.profile_name = self.generate_profile_name(first_name, last_name, teacher.id)
        self.db.commit()
        self.db.refresh(teacher)

        try:
            await clerk_service.update_user_name(user.clerk_id, first_name, last_name)
        except ClerkAPIError as e:
            logger.warning(f"⚠️ Failed to sync teacher name to Clerk for {user.id}: {e}")
        return teacher

    def update_preferences(self, data: TeacherPreferencesUpdate, user: User) -> Teacher:
        teacher = self.get_my_profile(user)
        if data.acceptingStudents is not None:
            teacher.accepting_students = data.acceptingStudents
        if data.teachingFormat is not None:
            teacher.teaching_format = data.teachingFormat
        if data.agePreference is not None:
            teacher.age_preference = data.agePreference
        self.db.commit()
        self.db.refresh(teacher)
        return teacher

    def update_image(self, image_url: Optional[str], user: User) -> Teacher:
        teacher = self.get_my_profile(user)
        teacher.image_url = trim_or_none(image_url)
        self.db.commit()
        self.db.refresh(teacher)
        return teacher

    # ============================================================================
    # SOCIAL LINKS
    # ============================================================================

    def get_social_links(self, user: User) -> list[TeacherSocialLink]:
        return self.repo.get_social_links(self.db, user.id)

    def create_social_link(self, external_url: str, user: User) -> TeacherSocialLink:
        if not user.teacher:
            raise HTTPException(status_code=404, detail="Teacher profile not found")
        link = TeacherSocialLink(teacher_id=user.id, external_url=self._clean_url(external_url))
        self.db.add(link)
        self.db.commit()
        self.db.refresh(link)
        return link

    def update_social_link(self, link_id: str, external_url: str, user: User) -> TeacherSocialLink:
        link = self.repo.get_owned_social_link(self.db, link_id, user.id)
        if not link:
            raise HTTPException(status_code=404, detail="Social link not found")
        link.external_url = self._clean_url(external_url)
        self.db.commit()
        self.db.refresh(link)
        return link

    def delete_social_link(self, link_id: str, user: User) -> None:
        link = self.repo.get_owned_social_link(self.db, link_id, user.id)
        if not link:
            raise HTTPException(status_code=404, detail="Social link not found")
        self.db.delete(link)
        self.db.commit()

    @staticmethod
    def _clean_url(url: str) -> str:
        try:
            return validate_url(url)
        except ValueError as e:
            raise HTTPException(status_code=400, detail="Invalid URL") from e

    # ============================================================================
    # PUBLIC READS
    # ============================================================================

    def list_teachers(self) -> list[Teacher]:
        return self.repo.list_teachers(self.db)

    def get_teacher(self, teacher_id: str) -> Teacher:
        teacher = self.repo.get_teacher(self.db, teacher_id)
        if not teacher:
            raise HTTPException(status_code=404, detail="Teacher not found")
        return teacher

    def get_teacher_by_profile_name(self, profile_name: str) -> Teacher:
        teacher = self.repo.get_by_profile_name(self.db, profile_name)
        if not teacher:
            raise HTTPException(status_code=404, detail="Teacher not found")
        return teacher

    # ============================================================================
    # SEARCH
    # ============================================================================

    async def search_teachers(
        self,
        teaching_type: str,
        instrument_id: int,
        language_id: Optional[int] = None,
        student_age: Optional[int] = None,
        timezone: Optional[str] = None,
        max_time_difference: Optional[float] = None,
        distance: Optional[float] = None,
        postal_code: Optional[str] = None,
        address_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> list[dict]:
        postal_code = trim_or_none(postal_code)
        address_id = trim_or_none(address_id)

        if teaching_type not in ("online", "in-person"):
            raise HTTPException(status_code=400, detail="Teaching type must be 'online' or 'in-person'")

        if teaching_type == "online":
            if not timezone or max_time_difference is None:
                raise HTTPException(
                    status_code=400,
                    detail="Timezone and max time difference are required for online searches",
                )
        else:
            if distance is None:
                raise HTTPException(status_code=400, detail="Distance is required for in-person searches")
            if not postal_code and not address_id:
                raise HTTPException(
                    status_code=400,
                    detail="Either postal code or address ID is required for in-person searches",
                )

        candidates = self.repo.search_candidates(
            self.db,
            instrument_id=instrument_id,
            teaching_formats=ONLINE_FORMATS if teaching_type == "online" else IN_PERSON_FORMATS,
            language_id=language_id,
            age_preferences=age_preferences_for(student_age),
        )
        logger.info(f"🔍 Teacher search ({teaching_type}, instrument {instrument_id}): {len(candidates)} candidates")
        if not candidates:
            return []

        if teaching_type == "online":
            return self._filter_by_timezone(candidates, timezone, max_time_difference, now)

        latitude, longitude = await self._resolve_search_location(postal_code, address_id)
        return self._filter_by_distance(candidates, latitude, longitude, distance)

    def _filter_by_timezone(
        self, candidates: list[Teacher], timezone: str, max_difference: float, now: Optional[datetime]
    ) -> list[dict]:
        results = []
        for teacher in candidates:
            teacher_tz = teacher.user.preferred_timezone if teacher.user else None
            if not teacher_tz:
                continue
            if timezone_hour_difference(timezone, teacher_tz, now) <= max_difference:
                results.append(self._search_result(teacher, timezone=teacher_tz))
        return results

    async def _resolve_search_location(self, postal_code: Optional[str], address_id: Optional[str]) -> tuple[float, float]:
        if postal_code:
            address = await AddressService(self.db).get_or_create_postal_address(postal_code)
            return address.latitude, address.longitude

        address = AddressRepository.get_address(self.db, address_id)
        if not address:
            raise HTTPException(status_code=404, detail="Address not found")
        if address.latitude is not None and address.longitude is not None:
            return address.latitude, address.longitude

        parts = address.address or {}
        postal = parts.get("postalCode") or parts.get("postal_code")
        if not postal:
            raise HTTPException(status_code=400, detail="Address is not geocoded and has no postal code")
        coords = await geocode_postal_code(postal)
        if not coords:
            raise HTTPException(status_code=502, detail="Failed to geocode postal code")
        return coords

    def _filter_by_distance(
        self, candidates: list[Teacher], latitude: float, longitude: float, max_distance: float
    ) -> list[dict]:
        nearest: dict[str, float] = {}
        for user_id, address in AddressRepository.get_geocoded_addresses_for_users(
            self.db, [t.id for t in candidates]
        ):
            miles = haversine_miles(latitude, longitude, address.latitude, address.longitude)
            if user_id not in nearest or miles < nearest[user_id]:
                nearest[user_id] = miles

        results = []
        for teacher in candidates:
            miles = nearest.get(teacher.id)
            if miles is not None and miles <= max_distance:
                results.append(self._search_result(teacher, distance=round(miles, 1)))
        results.sort(key=lambda r: r["distance"])
        return results

    @staticmethod
    def _search_result(teacher: Teacher, distance: Optional[float] = None, timezone: Optional[str] = None) -> dict:
        user = teacher.user
        return {
            "teacherId": teacher.id,
            "firstName": user.first_name if user else None,
            "lastName": user.last_name if user else None,
            "profileName": teacher.profile_name,
            "imageUrl": teacher.image_url,
            "teachingFormat": teacher.teaching_format,
            "instruments": [serialize_instrument(i) for i in teacher.instruments],
            "languages": [serialize_language(lang) for lang in teacher.languages],
            "distance": distance,
            "timezone": timezone,
        }
