"""Booking router - FastAPI endpoints for booking requests"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user_with_role
from ...database import get_db
from ...models import BookingRequest, User
from .schemas import (
    AcceptBookingResponse,
    BookingRequestCreate,
    BookingRequestCreated,
    BookingStatusResponse,
)
from .service import BookingService

router = APIRouter(prefix="/bookings", tags=["Bookings"])


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db)


def _status_response(request: BookingRequest) -> BookingStatusResponse:
    return BookingStatusResponse(bookingRequestId=request.id, bookingStatus=request.booking_status)


@router.post("", response_model=BookingRequestCreated)
async def create_booking_request(
    data: BookingRequestCreate,
    current_user: User = Depends(get_current_user_with_role),
    service: BookingService = Depends(get_booking_service),
):
    """Request a weekly timeslot for the student (or one of the parent's children)"""
    request = service.create_booking_request(data, current_user)
    return BookingRequestCreated(bookingRequestId=request.id)


@router.get("/mine")
async def get_my_booking_requests(
    current_user: User = Depends(get_current_user_with_role),
    service: BookingService = Depends(get_booking_service),
):
    return service.get_my_requests(current_user)


@router.get("/teacher")
async def get_teacher_booking_requests(
    current_user: User = Depends(get_current_user_with_role),
    service: BookingService = Depends(get_booking_service),
):
    return service.get_teacher_requests(current_user)


@router.post("/{request_id}/accept", response_model=AcceptBookingResponse)
async def accept_booking_request(
    request_id: str,
    current_user: User = Depends(get_current_user_with_role),
    service: BookingService = Depends(get_booking_service),
):
    lesson, event = service.accept_booking_request(request_id, current_user)
    return AcceptBookingResponse(lessonId=lesson.id, eventId=event.id)


@router.post("/{request_id}/decline", response_model=BookingStatusResponse)
async def decline_booking_request(
    request_id: str,
    current_user: User = Depends(get_current_user_with_role),
    service: BookingService = Depends(get_booking_service),
):
    return _status_response(service.decline_booking_request(request_id, current_user))


@router.post("/{request_id}/cancel", response_model=BookingStatusResponse)
async def cancel_booking_request(
    request_id: str,
    current_user: User = Depends(get_current_user_with_role),
    service: BookingService = Depends(get_booking_service),
):
    return _status_response(service.cancel_booking_request(request_id, current_user))
