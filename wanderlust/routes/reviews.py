from datetime import date, datetime

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..errors import ConflictError, NotFoundError, ValidationError
from ..middleware import Principal, get_current_principal, has_role, is_staff
from ..models import Booking, Review
from ..schemas import ApiResponse, ReviewCreate, ReviewData, ReviewHotelResponse, ReviewResponse, ReviewUpdate
from .hotels import get_active_hotel

router = APIRouter()


def get_review_or_404(db: Session, review_id: int) -> Review:
    review = db.query(Review).filter(Review.id == review_id).first()
    if not review:
        raise NotFoundError("Review not found", error="REVIEW_NOT_FOUND")
    return review


def check_stay_reviewable(db: Session, principal: Principal, hotel_id: int, booking_id: int) -> Booking:
    """The booking must be the caller's, for this hotel, and finished."""
    booking = db.query(Booking).filter(
        Booking.id == booking_id,
        Booking.userId == principal.userId,
    ).first()
    if not booking:
        raise NotFoundError("Booking not found", error="BOOKING_NOT_FOUND")
    if booking.hotelId != hotel_id:
        raise ValidationError("Booking does not belong to this hotel", error="BOOKING_HOTEL_MISMATCH")
    if booking.status != "completed" and booking.checkOutDate > date.today():
        raise ValidationError("You can only review a stay after check-out", error="STAY_NOT_COMPLETED")
    return booking


@router.post("", response_model=ApiResponse[ReviewData], status_code=status.HTTP_201_CREATED)
def create_review(request: ReviewCreate, principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    # Step 1: The hotel must exist and be visible
    hotel = get_active_hotel(db, request.hotelId)

    # Step 2: A linked booking makes this a verified stay review
    if request.bookingId is not None:
        check_stay_reviewable(db, principal, hotel.id, request.bookingId)
        duplicate = db.query(Review.id).filter(
            Review.userId == principal.userId,
            Review.hotelId == hotel.id,
            Review.bookingId == request.bookingId,
        ).first()
        if duplicate:
            raise ConflictError("You have already reviewed this stay", error="REVIEW_EXISTS")

    # Step 3: Create the review
    review = Review(
        userId=principal.userId,
        hotelId=hotel.id,
        bookingId=request.bookingId,
        rating=request.rating,
        title=request.title,
        comment=request.comment,
        isVerified=request.bookingId is not None,
        isVisible=True,
        helpfulVotes=0,
    )
    db.add(review)
    db.commit()
    db.refresh(review)
    return ApiResponse(message="Review created successfully", data=ReviewData(review=ReviewResponse.model_validate(review)))


@router.put("/{review_id}", response_model=ApiResponse[ReviewData])
def update_review(
    review_id: int,
    request: ReviewUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    review = get_review_or_404(db, review_id)
    if review.userId != principal.userId:
        raise NotFoundError("Review not found", error="REVIEW_NOT_FOUND")
    if not review.can_be_edited():
        raise ValidationError("Reviews can only be edited within 7 days of posting", error="REVIEW_EDIT_EXPIRED")

    for field, value in request.model_dump(exclude_unset=True).items():
        if field == "rating" and value is None:
            continue
        setattr(review, field, value)
    db.commit()
    db.refresh(review)
    return ApiResponse(message="Review updated successfully", data=ReviewData(review=ReviewResponse.model_validate(review)))


@router.delete("/{review_id}", response_model=ApiResponse[None])
def delete_review(review_id: int, principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    review = get_review_or_404(db, review_id)
    if review.userId != principal.userId and not has_role(principal, ("admin",)):
        raise NotFoundError("Review not found", error="REVIEW_NOT_FOUND")
    db.delete(review)
    db.commit()
    return ApiResponse(message="Review deleted successfully")


@router.post("/{review_id}/response", response_model=ApiResponse[ReviewData])
def respond_to_review(
    review_id: int,
    request: ReviewHotelResponse,
    principal: Principal = Depends(is_staff),
    db: Session = Depends(get_db),
):
    """Staff answer on behalf of the hotel, optionally hiding the review"""
    review = get_review_or_404(db, review_id)
    review.responseFromHotel = request.response
    review.responseDate = datetime.utcnow()
    if request.isVisible is not None:
        review.isVisible = request.isVisible
    db.commit()
    db.refresh(review)
    return ApiResponse(message="Response added successfully", data=ReviewData(review=ReviewResponse.model_validate(review)))
