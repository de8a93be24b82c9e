"""Address router - FastAPI endpoints for addresses"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import Address, User
from .schemas import AddressCreate, AddressResponse, UserAddressResponse
from .service import AddressService

router = APIRouter(prefix="/addresses", tags=["Addresses"])


def get_address_service(db: Session = Depends(get_db)) -> AddressService:
    """Dependency injection for AddressService"""
    return AddressService(db)


def to_address_response(address: Address, existing: bool = False) -> AddressResponse:
    return AddressResponse(
        id=address.id,
        address=address.address or {},
        addressFormatted=address.address_formatted,
        latitude=address.latitude,
        longitude=address.longitude,
        existing=existing,
    )


@router.post("", response_model=AddressResponse)
async def create_address(
    data: AddressCreate,
    current_user: User = Depends(get_current_user),
    service: AddressService = Depends(get_address_service),
):
    """Create an address, or return the stored one with the same formatted form"""
    address, existing = await service.create_address(data)
    return to_address_response(address, existing)


@router.get("/mine", response_model=list[AddressResponse])
async def get_my_addresses(
    current_user: User = Depends(get_current_user),
    service: AddressService = Depends(get_address_service),
):
    return [to_address_response(a) for a in service.get_user_addresses(current_user)]


@router.post("/{address_id}/link", response_model=UserAddressResponse)
async def link_address(
    address_id: str,
    current_user: User = Depends(get_current_user),
    service: AddressService = Depends(get_address_service),
):
    link, existing = service.link_address(address_id, current_user)
    return UserAddressResponse(id=link.id, userId=link.user_id, addressId=link.address_id, existing=existing)


@router.delete("/{address_id}/link")
async def unlink_address(
    address_id: str,
    current_user: User = Depends(get_current_user),
    service: AddressService = Depends(get_address_service),
):
    service.unlink_address(address_id, current_user)
    return {"success": True}
