import logging
import secrets
import string
import time
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Tuple, List

from sqlalchemy import case
from sqlalchemy.orm import Session

from .errors import ValidationError, NotFoundError, InsufficientRoomsError, InvalidTransitionError, InternalError
from .middleware import Principal, is_elevated
from .models import Booking, Hotel
from .schemas import BookingCreate, BookingUpdate

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
ACTIVE_STATUSES = ("pending", "confirmed")
DEFAULT_CANCELLATION_REASON = "Cancelled by user"
REFERENCE_ATTEMPTS = 5

# Allowed explicit status changes; cancellation goes through cancel_booking
STATUS_TRANSITIONS = {
    "pending": ("confirmed", "cancelled"),
    "confirmed": ("completed", "cancelled"),
}

BOOKING_SORT_COLUMNS = {
    "created": Booking.createdAt,
    "checkin": Booking.checkInDate,
    "checkout": Booking.checkOutDate,
    "total": Booking.totalPrice,
}

_BASE36 = string.digits + string.ascii_lowercase


# Pricing

def quote_stay(price_per_night, rooms: int, check_in: date, check_out: date) -> Tuple[int, Decimal]:
    """Return ``(nights, total)`` for a stay; total is rounded to cents."""
    nights = (check_out - check_in).days
    if nights <= 0:
        raise ValidationError("Check-out date must be after check-in date")
    total = (Decimal(str(price_per_night)) * rooms * nights).quantize(CENTS, rounding=ROUND_HALF_UP)
    return nights, total


def validate_stay(check_in: date, check_out: date, today: Optional[date] = None):
    today = today or date.today()
    if check_out <= check_in:
        raise ValidationError("Check-out date must be after check-in date")
    if check_in < today:
        raise ValidationError("Check-in date cannot be in the past")


def _to_base36(number: int) -> str:
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


def generate_booking_reference() -> str:
    timestamp = _to_base36(int(time.time() * 1000))
    suffix = "".join(secrets.choice(_BASE36) for _ in range(8))
    return f"WL{timestamp}{suffix}".upper()


def _unique_booking_reference(db: Session) -> str:
    for _ in range(REFERENCE_ATTEMPTS):
        reference = generate_booking_reference()
        if not db.query(Booking.id).filter(Booking.bookingReference == reference).first():
            return reference
    logger.error("No unique booking reference after %s attempts", REFERENCE_ATTEMPTS)
    raise InternalError("Could not generate a booking reference", error="REFERENCE_GENERATION_FAILED")


# Inventory primitives

def reserve_rooms(db: Session, hotel_id: int, rooms: int, require_active: bool = True):
    """
    Take ``rooms`` out of a hotel's inventory with one conditional UPDATE.

    The row only changes when enough rooms are left, so concurrent callers
    racing for the last rooms cannot overbook even if both read the hotel
    first. Nothing is committed here.

    Raises:
        NotFoundError: hotel missing (or inactive when ``require_active``)
        InsufficientRoomsError: fewer than ``rooms`` available
    """
    query = db.query(Hotel).filter(Hotel.id == hotel_id, Hotel.availableRooms >= rooms)
    if require_active:
        query = query.filter(Hotel.isActive == True)  # noqa: E712
    updated = query.update(
        {Hotel.availableRooms: Hotel.availableRooms - rooms},
        synchronize_session=False,
    )
    if updated == 1:
        return

    current = db.query(Hotel.availableRooms, Hotel.isActive).filter(Hotel.id == hotel_id).first()
    if current is None or (require_active and not current.isActive):
        raise NotFoundError("Hotel not found or inactive", error="HOTEL_NOT_FOUND")
    raise InsufficientRoomsError(
        data={"requestedRooms": rooms, "availableRooms": current.availableRooms},
    )


def release_rooms(db: Session, hotel_id: int, rooms: int):
    """Give ``rooms`` back to a hotel's inventory, never beyond totalRooms."""
    restored = Hotel.availableRooms + rooms
    db.query(Hotel).filter(Hotel.id == hotel_id).update(
        {Hotel.availableRooms: case((restored > Hotel.totalRooms, Hotel.totalRooms), else_=restored)},
        synchronize_session=False,
    )


# Bookings

def get_booking_for(db: Session, principal: Principal, booking_id: int) -> Booking:
    """Load a booking the caller may see; other users' bookings look missing."""
    query = db.query(Booking).filter(Booking.id == booking_id)
    if not is_elevated(principal):
        query = query.filter(Booking.userId == principal.userId)
    booking = query.first()
    if not booking:
        raise NotFoundError("Booking not found", error="BOOKING_NOT_FOUND")
    return booking


def create_booking(db: Session, principal: Principal, request: BookingCreate) -> Booking:
    """
    Create a pending booking and reserve its rooms in one transaction.

    Args:
        db: Database session
        principal: Authenticated caller, owner of the new booking
        request: Validated booking request

    Returns:
        Booking: The persisted booking

    Raises:
        ValidationError: Invalid stay dates or not enough rooms
        NotFoundError: Hotel missing or inactive
    """
    # Step 1: Validate the stay and price it from the hotel's current rate
    validate_stay(request.checkInDate, request.checkOutDate)
    hotel = db.query(Hotel).filter(Hotel.id == request.hotelId, Hotel.isActive == True).first()  # noqa: E712
    if not hotel:
        raise NotFoundError("Hotel not found or inactive", error="HOTEL_NOT_FOUND")
    _, total_price = quote_stay(hotel.pricePerNight, request.numberOfRooms, request.checkInDate, request.checkOutDate)

    try:
        # Step 2: Reserve the rooms atomically
        reserve_rooms(db, hotel.id, request.numberOfRooms)

        # Step 3: Insert the booking and commit both changes together
        booking = Booking(
            userId=principal.userId,
            hotelId=hotel.id,
            checkInDate=request.checkInDate,
            checkOutDate=request.checkOutDate,
            numberOfGuests=request.numberOfGuests,
            numberOfRooms=request.numberOfRooms,
            totalPrice=total_price,
            currency=hotel.currency,
            status="pending",
            paymentStatus="pending",
            specialRequests=request.specialRequests,
            guestNames=request.guestNames,
            contactEmail=request.contactEmail,
            contactPhone=request.contactPhone,
            bookingReference=_unique_booking_reference(db),
        )
        db.add(booking)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(booking)
    logger.info(
        "Booking %s created: user=%s hotel=%s rooms=%s total=%s",
        booking.bookingReference, booking.userId, booking.hotelId, booking.numberOfRooms, booking.totalPrice,
    )
    return booking


def update_booking(db: Session, principal: Principal, booking_id: int, request: BookingUpdate) -> Booking:
    """
    Apply an update to a booking, re-pricing and reconciling inventory.

    A change in room count on an active booking releases the old rooms and
    reserves the new count inside the same transaction; if the reservation
    fails nothing is changed. Status fields are never touched here.
    """
    booking = get_booking_for(db, principal, booking_id)
    if not booking.isActive and principal.role != "admin":
        raise ValidationError(
            "Cannot update a completed or cancelled booking",
            error="BOOKING_NOT_EDITABLE",
            data={"status": booking.status},
        )

    changes = request.model_dump(exclude_unset=True)
    check_in = changes.get("checkInDate") or booking.checkInDate
    check_out = changes.get("checkOutDate") or booking.checkOutDate
    rooms = changes.get("numberOfRooms") or booking.numberOfRooms
    dates_changed = check_in != booking.checkInDate or check_out != booking.checkOutDate
    rooms_changed = rooms != booking.numberOfRooms

    if dates_changed:
        if check_out <= check_in:
            raise ValidationError("Check-out date must be after check-in date")
        if check_in != booking.checkInDate and check_in < date.today():
            raise ValidationError("Check-in date cannot be in the past")

    try:
        if rooms_changed and booking.isActive:
            release_rooms(db, booking.hotelId, booking.numberOfRooms)
            reserve_rooms(db, booking.hotelId, rooms, require_active=False)

        if dates_changed or rooms_changed:
            price_per_night = db.query(Hotel.pricePerNight).filter(Hotel.id == booking.hotelId).scalar()
            _, booking.totalPrice = quote_stay(price_per_night, rooms, check_in, check_out)

        for field, value in changes.items():
            if value is not None:
                setattr(booking, field, value)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(booking)
    return booking


def cancel_booking(db: Session, booking: Booking, reason: Optional[str] = None) -> Booking:
    """Cancel an active booking and return its rooms to the hotel."""
    if not booking.canBeCancelled:
        raise ValidationError(
            "Booking cannot be cancelled",
            error="CANNOT_CANCEL",
            data={"status": booking.status},
        )

    try:
        # The status guard makes a concurrent second cancel a no-op
        updated = db.query(Booking).filter(
            Booking.id == booking.id,
            Booking.status.in_(ACTIVE_STATUSES),
        ).update(
            {
                Booking.status: "cancelled",
                Booking.cancellationReason: reason or DEFAULT_CANCELLATION_REASON,
                Booking.cancellationDate: datetime.utcnow(),
            },
            synchronize_session=False,
        )
        if updated != 1:
            raise ValidationError("Booking cannot be cancelled", error="CANNOT_CANCEL")
        release_rooms(db, booking.hotelId, booking.numberOfRooms)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(booking)
    logger.info("Booking %s cancelled, %s rooms released", booking.bookingReference, booking.numberOfRooms)
    return booking


def transition_booking(db: Session, booking: Booking, new_status: str) -> Booking:
    current_status = booking.status
    if new_status not in STATUS_TRANSITIONS.get(current_status, ()):
        raise InvalidTransitionError(
            f"Cannot change booking status from {current_status} to {new_status}",
            data={"from": current_status, "to": new_status},
        )
    if new_status == "cancelled":
        return cancel_booking(db, booking, reason="Cancelled by staff")

    try:
        updated = db.query(Booking).filter(
            Booking.id == booking.id,
            Booking.status == current_status,
        ).update({Booking.status: new_status}, synchronize_session=False)
        if updated != 1:
            raise InvalidTransitionError(data={"from": current_status, "to": new_status})
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(booking)
    logger.info("Booking %s moved %s -> %s", booking.bookingReference, current_status, new_status)
    return booking


def set_payment_status(db: Session, booking: Booking, payment_status: str, payment_method: Optional[str] = None) -> Booking:
    booking.paymentStatus = payment_status
    if payment_method:
        booking.paymentMethod = payment_method
    db.commit()
    db.refresh(booking)
    return booking


def list_bookings(
    db: Session,
    principal: Principal,
    status: Optional[str] = None,
    payment_status: Optional[str] = None,
    hotel_id: Optional[int] = None,
    user_id: Optional[int] = None,
    check_in_from: Optional[date] = None,
    check_in_to: Optional[date] = None,
    city: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    sort_by: str = "created",
    sort_order: str = "desc",
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[Booking], int]:
    """
    Filtered, sorted page of bookings plus the total match count.

    Customers are always scoped to their own bookings; ``user_id`` only
    applies to staff callers.
    """
    query = db.query(Booking)
    if not is_elevated(principal):
        user_id = principal.userId

    if user_id is not None:
        query = query.filter(Booking.userId == user_id)
    if status:
        query = query.filter(Booking.status == status)
    if payment_status:
        query = query.filter(Booking.paymentStatus == payment_status)
    if hotel_id is not None:
        query = query.filter(Booking.hotelId == hotel_id)
    if check_in_from:
        query = query.filter(Booking.checkInDate >= check_in_from)
    if check_in_to:
        query = query.filter(Booking.checkInDate <= check_in_to)
    if min_price is not None:
        query = query.filter(Booking.totalPrice >= min_price)
    if max_price is not None:
        query = query.filter(Booking.totalPrice <= max_price)
    if city:
        query = query.join(Hotel, Hotel.id == Booking.hotelId).filter(Hotel.city.ilike(f"%{city}%"))

    total = query.count()

    column = BOOKING_SORT_COLUMNS.get(sort_by, Booking.createdAt)
    if sort_order == "asc":
        query = query.order_by(column.asc(), Booking.id.asc())
    else:
        query = query.order_by(column.desc(), Booking.id.desc())

    bookings = query.offset((page - 1) * limit).limit(limit).all()
    return bookings, total
