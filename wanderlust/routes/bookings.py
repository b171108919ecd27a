from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.orm import Session

from .. import booking_manager
from ..database import get_db
from ..middleware import Principal, get_current_principal, is_staff
from ..schemas import (
    ApiResponse, BookingCancel, BookingCreate, BookingData, BookingListData, BookingResponse, BookingStatus,
    BookingStatusUpdate, BookingUpdate, Pagination, PaymentStatus, PaymentStatusUpdate,
)

router = APIRouter()


def booking_data(booking) -> BookingData:
    return BookingData(booking=BookingResponse.model_validate(booking))


@router.get("/my", response_model=ApiResponse[BookingListData])
def get_my_bookings(
    status: Optional[BookingStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    bookings, total = booking_manager.list_bookings(
        db, principal, status=status, user_id=principal.userId, page=page, limit=limit,
    )
    return ApiResponse(
        message="Bookings retrieved successfully",
        data=BookingListData(
            bookings=[BookingResponse.model_validate(booking) for booking in bookings],
            pagination=Pagination.build(page, limit, total),
        ),
    )


@router.get("", response_model=ApiResponse[BookingListData])
def search_bookings(
    status: Optional[BookingStatus] = None,
    paymentStatus: Optional[PaymentStatus] = None,
    hotelId: Optional[int] = Query(None, gt=0),
    userId: Optional[int] = Query(None, gt=0),
    checkInFrom: Optional[date] = None,
    checkInTo: Optional[date] = None,
    city: Optional[str] = None,
    minPrice: Optional[float] = Query(None, ge=0),
    maxPrice: Optional[float] = Query(None, ge=0),
    sortBy: Literal["created", "checkin", "checkout", "total"] = "created",
    sortOrder: Literal["asc", "desc"] = "desc",
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    principal: Principal = Depends(is_staff),
    db: Session = Depends(get_db),
):
    """All bookings for staff, filtered, sorted and paginated"""
    bookings, total = booking_manager.list_bookings(
        db, principal,
        status=status,
        payment_status=paymentStatus,
        hotel_id=hotelId,
        user_id=userId,
        check_in_from=checkInFrom,
        check_in_to=checkInTo,
        city=city,
        min_price=minPrice,
        max_price=maxPrice,
        sort_by=sortBy,
        sort_order=sortOrder,
        page=page,
        limit=limit,
    )
    return ApiResponse(
        message="Bookings retrieved successfully",
        data=BookingListData(
            bookings=[BookingResponse.model_validate(booking) for booking in bookings],
            pagination=Pagination.build(page, limit, total),
            filters={
                "status": status,
                "paymentStatus": paymentStatus,
                "hotelId": hotelId,
                "userId": userId,
                "city": city,
                "checkInRange": {"from": checkInFrom, "to": checkInTo} if checkInFrom or checkInTo else None,
                "priceRange": {"min": minPrice, "max": maxPrice} if minPrice is not None or maxPrice is not None else None,
            },
        ),
    )


@router.post("", response_model=ApiResponse[BookingData], status_code=status.HTTP_201_CREATED)
def create_booking(
    request: BookingCreate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    booking = booking_manager.create_booking(db, principal, request)
    return ApiResponse(message="Booking created successfully", data=booking_data(booking))


@router.get("/{booking_id}", response_model=ApiResponse[BookingData])
def get_booking(booking_id: int, principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    booking = booking_manager.get_booking_for(db, principal, booking_id)
    return ApiResponse(message="Booking retrieved successfully", data=booking_data(booking))


@router.put("/{booking_id}", response_model=ApiResponse[BookingData])
def update_booking(
    booking_id: int,
    request: BookingUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    booking = booking_manager.update_booking(db, principal, booking_id, request)
    return ApiResponse(message="Booking updated successfully", data=booking_data(booking))


@router.delete("/{booking_id}", response_model=ApiResponse[BookingData])
def cancel_booking(
    booking_id: int,
    request: Optional[BookingCancel] = Body(None),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    booking = booking_manager.get_booking_for(db, principal, booking_id)
    reason = request.cancellationReason if request else None
    booking = booking_manager.cancel_booking(db, booking, reason)
    return ApiResponse(message="Booking cancelled successfully", data=booking_data(booking))


@router.patch("/{booking_id}/status", response_model=ApiResponse[BookingData])
def change_booking_status(
    booking_id: int,
    request: BookingStatusUpdate,
    principal: Principal = Depends(is_staff),
    db: Session = Depends(get_db),
):
    booking = booking_manager.get_booking_for(db, principal, booking_id)
    booking = booking_manager.transition_booking(db, booking, request.status)
    return ApiResponse(message=f"Booking status changed to {booking.status}", data=booking_data(booking))


@router.patch("/{booking_id}/payment", response_model=ApiResponse[BookingData])
def change_payment_status(
    booking_id: int,
    request: PaymentStatusUpdate,
    principal: Principal = Depends(is_staff),
    db: Session = Depends(get_db),
):
    booking = booking_manager.get_booking_for(db, principal, booking_id)
    booking = booking_manager.set_payment_status(db, booking, request.paymentStatus, request.paymentMethod)
    return ApiResponse(message="Payment status updated successfully", data=booking_data(booking))
