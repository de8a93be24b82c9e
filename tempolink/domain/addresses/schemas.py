"""Address domain schemas - Pydantic models for request/response validation"""

from typing import Optional

from pydantic import BaseModel


class AddressCreate(BaseModel):
    street: Optional[str] = None
    aptUnit: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postalCode: Optional[str] = None
    country: Optional[str] = None


class AddressResponse(BaseModel):
    id: str
    address: dict
    addressFormatted: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    existing: bool = False

    class Config:
        from_attributes = True


class UserAddressResponse(BaseModel):
    id: str
    userId: str
    addressId: str
    existing: bool = False
