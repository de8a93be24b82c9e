"""Catalog repository - Reference data lookups for instruments and languages"""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import Instrument, Language


class CatalogRepository:
    """Repository for instrument and language lookups"""

    @staticmethod
    def get_instruments(db: Session) -> list[Instrument]:
        return db.query(Instrument).order_by(Instrument.name).all()

    @staticmethod
    def get_languages(db: Session) -> list[Language]:
        return db.query(Language).order_by(Language.name).all()

    @staticmethod
    def get_instrument(db: Session, instrument_id: int) -> Optional[Instrument]:
        return db.query(Instrument).filter(Instrument.id == instrument_id).first()

    @staticmethod
    def get_instrument_by_name(db: Session, name: str) -> Optional[Instrument]:
        return db.query(Instrument).filter(func.lower(Instrument.name) == name.strip().lower()).first()

    @staticmethod
    def get_language(db: Session, language_id: int) -> Optional[Language]:
        return db.query(Language).filter(Language.id == language_id).first()

    @staticmethod
    def get_instruments_by_ids(db: Session, ids: list[int]) -> list[Instrument]:
        if not ids:
            return []
        return db.query(Instrument).filter(Instrument.id.in_(ids)).all()

    @staticmethod
    def get_languages_by_ids(db: Session, ids: list[int]) -> list[Language]:
        if not ids:
            return []
        return db.query(Language).filter(Language.id.in_(ids)).all()
