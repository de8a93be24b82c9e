"""Catalog schemas - Instruments and languages"""

from pydantic import BaseModel


class InstrumentResponse(BaseModel):
    id: int
    name: str
    imagePath: str

    class Config:
        from_attributes = True


class LanguageResponse(BaseModel):
    id: int
    name: str
    code: str

    class Config:
        from_attributes = True
