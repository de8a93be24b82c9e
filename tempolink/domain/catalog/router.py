"""Catalog router - Public reference data"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...database import get_db
from .repository import CatalogRepository
from .schemas import InstrumentResponse, LanguageResponse

router = APIRouter(tags=["Catalog"])


@router.get("/instruments", response_model=list[InstrumentResponse])
async def list_instruments(db: Session = Depends(get_db)):
    return [
        InstrumentResponse(id=i.id, name=i.name, imagePath=i.image_path)
        for i in CatalogRepository.get_instruments(db)
    ]


@router.get("/languages", response_model=list[LanguageResponse])
async def list_languages(db: Session = Depends(get_db)):
    return [
        LanguageResponse(id=lang.id, name=lang.name, code=lang.code)
        for lang in CatalogRepository.get_languages(db)
    ]
