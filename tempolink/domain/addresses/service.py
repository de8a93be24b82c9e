"""Address service - Business logic for addresses, links and geocoding"""

import logging

from arq import create_pool
from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models import Address, User, UserAddress
from ...services.geocoding import geocode_postal_code
from ...shared.validators import trim_or_none
from ...worker import get_redis_settings
from .repository import AddressRepository
from .schemas import AddressCreate

logger = logging.getLogger(__name__)

ADDRESS_FIELDS = ("street", "aptUnit", "city", "state", "postalCode", "country")


def normalize_address(data: AddressCreate) -> dict:
    """Trimmed address parts, with empty parts dropped"""
    parts = {}
    for field in ADDRESS_FIELDS:
        value = trim_or_none(getattr(data, field))
        if value:
            parts[field] = value
    return parts


def format_address(parts: dict) -> str:
    """
    Canonical lowercase form used for de-duplication:
    "street aptUnit, city, state, postalCode, country"
    """
    street_line = " ".join(p for p in (parts.get("street"), parts.get("aptUnit")) if p)
    segments = [street_line, parts.get("city"), parts.get("state"), parts.get("postalCode"), parts.get("country")]
    return ", ".join(s for s in segments if s).lower()


async def enqueue_geocode(address_id: str) -> None:
    try:
        pool = await create_pool(get_redis_settings())
        await pool.enqueue_job("geocode_address_task", address_id)
        logger.info(f"📥 Queued geocoding for address {address_id}")
    except Exception as e:
        logger.warning(f"⚠️ Failed to queue geocoding for address {address_id}: {e}")


class AddressService:
    """Service for address operations"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = AddressRepository()

    async def create_address(self, data: AddressCreate) -> tuple[Address, bool]:
        """
        Find or insert an address by its formatted form.

        Returns:
            (address, existing) where existing is True when it was already stored
        """
        parts = normalize_address(data)
        formatted = format_address(parts)
        if not formatted:
            raise HTTPException(status_code=400, detail="Address is required")

        existing = self.repo.get_by_formatted(self.db, formatted)
        if existing:
            return existing, True

        try:
            address = self.repo.create(self.db, Address(address=parts, address_formatted=formatted))
        except IntegrityError:
            self.db.rollback()
            existing = self.repo.get_by_formatted(self.db, formatted)
            if existing:
                return existing, True
            raise

        logger.info(f"✅ Created address {address.id}: {formatted}")
        await enqueue_geocode(address.id)
        return address, False

    async def get_or_create_postal_address(self, postal_code: str) -> Address:
        """
        Address row for a bare US postal code, geocoded synchronously.

        Raises:
            HTTPException 502: if the postal code cannot be geocoded
        """
        postal_code = postal_code.strip()
        formatted = f"{postal_code}, united states".lower()
        address = self.repo.get_by_formatted(self.db, formatted)
        if address and address.latitude is not None and address.longitude is not None:
            return address

        coords = await geocode_postal_code(postal_code)
        if not coords:
            raise HTTPException(status_code=502, detail="Failed to geocode postal code")

        if address is None:
            address = Address(
                address={"postalCode": postal_code, "country": "United States"},
                address_formatted=formatted,
            )
            self.db.add(address)
        address.latitude, address.longitude = coords
        self.db.commit()
        self.db.refresh(address)
        return address

    def link_address(self, address_id: str, user: User) -> tuple[UserAddress, bool]:
        if not self.repo.get_address(self.db, address_id):
            raise HTTPException(status_code=404, detail="Address not found")

        link = self.repo.get_link(self.db, user.id, address_id)
        if link:
            return link, True
        return self.repo.create_link(self.db, UserAddress(user_id=user.id, address_id=address_id)), False

    def unlink_address(self, address_id: str, user: User) -> None:
        link = self.repo.get_link(self.db, user.id, address_id)
        if not link:
            raise HTTPException(status_code=404, detail="Address link not found")
        self.db.delete(link)
        self.db.commit()

    def get_user_addresses(self, user: User) -> list[Address]:
        return self.repo.get_user_addresses(self.db, user.id)
