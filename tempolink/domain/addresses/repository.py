"""Address repository - Database operations for addresses and user links"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Address, UserAddress


class AddressRepository:
    """Repository for address database operations"""

    @staticmethod
    def get_address(db: Session, address_id: str) -> Optional[Address]:
        return db.query(Address).filter(Address.id == address_id).first()

    @staticmethod
    def get_by_formatted(db: Session, address_formatted: str) -> Optional[Address]:
        return db.query(Address).filter(Address.address_formatted == address_formatted).first()

    @staticmethod
    def create(db: Session, address: Address) -> Address:
        db.add(address)
        db.commit()
        db.refresh(address)
        return address

    @staticmethod
    def get_link(db: Session, user_id: str, address_id: str) -> Optional[UserAddress]:
        return (
            db.query(UserAddress)
            .filter(UserAddress.user_id == user_id, UserAddress.address_id == address_id)
            .first()
        )

    @staticmethod
    def create_link(db: Session, link: UserAddress) -> UserAddress:
        db.add(link)
        db.commit()
        db.refresh(link)
        return link

    @staticmethod
    def get_user_addresses(db: Session, user_id: str) -> list[Address]:
        links = (
            db.query(UserAddress)
            .options(joinedload(UserAddress.address))
            .filter(UserAddress.user_id == user_id)
            .order_by(UserAddress.created_at)
            .all()
        )
        return [link.address for link in links]

    @staticmethod
    def get_geocoded_addresses_for_users(db: Session, user_ids: list[str]) -> list[tuple[str, Address]]:
        """(user_id, address) pairs for every linked address with coordinates"""
        if not user_ids:
            return []
        return (
            db.query(UserAddress.user_id, Address)
            .join(Address, Address.id == UserAddress.address_id)
            .filter(
                UserAddress.user_id.in_(user_ids),
                Address.latitude.isnot(None),
                Address.longitude.isnot(None),
            )
            .all()
        )
