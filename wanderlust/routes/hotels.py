import logging
from datetime import date
from typing import Dict, List, Literal, Optional, Tuple

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import cast, func, select
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Session, joinedload

from ..booking_manager import quote_stay
from ..database import get_db
from ..errors import ConflictError, NotFoundError, ValidationError
from ..middleware import Principal, get_optional_principal, is_admin, is_staff
from ..models import Favorite, Hotel, Review
from ..schemas import (
    ApiResponse, AvailabilityResponse, HotelCreate, HotelData, HotelDetail, HotelDetailData, HotelListData,
    HotelResponse, HotelUpdate, Pagination, ReviewListData, ReviewResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_PAGE_SIZE = 100

HOTEL_SORT_COLUMNS = {
    "price": Hotel.pricePerNight,
    "rating": Hotel.starRating,
    "name": Hotel.name,
    "created": Hotel.createdAt,
}


# Helpers

def get_active_hotel(db: Session, hotel_id: int) -> Hotel:
    hotel = db.query(Hotel).filter(Hotel.id == hotel_id, Hotel.isActive == True).first()  # noqa: E712
    if not hotel:
        raise NotFoundError("Hotel not found", error="HOTEL_NOT_FOUND")
    return hotel


def rating_stats(db: Session, hotel_ids: List[int]) -> Dict[int, Tuple[Optional[float], int]]:
    """Average rating (1 decimal) and count of visible reviews per hotel."""
    if not hotel_ids:
        return {}
    rows = db.query(
        Review.hotelId,
        func.avg(Review.rating).label("average"),
        func.count(Review.id).label("count"),
    ).filter(
        Review.hotelId.in_(hotel_ids),
        Review.isVisible == True,  # noqa: E712
    ).group_by(Review.hotelId).all()
    return {
        row.hotelId: (round(float(row.average), 1) if row.average is not None else None, row.count)
        for row in rows
    }


def serialize_hotel(hotel: Hotel, stats: Dict[int, Tuple[Optional[float], int]], schema=HotelResponse):
    average, count = stats.get(hotel.id, (None, 0))
    item = schema.model_validate(hotel)
    item.averageRating = average
    item.reviewCount = count
    return item


def rating_distribution(db: Session, hotel_id: int) -> Dict[int, int]:
    # Bucket half-point ratings to the nearest star
    ratings = db.query(Review.rating).filter(Review.hotelId == hotel_id, Review.isVisible == True).all()  # noqa: E712
    distribution = {star: 0 for star in (5, 4, 3, 2, 1)}
    for (rating,) in ratings:
        value = float(rating)
        if value >= 4.5:
            distribution[5] += 1
        elif value >= 3.5:
            distribution[4] += 1
        elif value >= 2.5:
            distribution[3] += 1
        elif value >= 1.5:
            distribution[2] += 1
        else:
            distribution[1] += 1
    return distribution


def check_name_available(db: Session, name: str, city: str, country: str, exclude_id: Optional[int] = None):
    query = db.query(Hotel.id).filter(Hotel.name == name, Hotel.city == city, Hotel.country == country)
    if exclude_id is not None:
        query = query.filter(Hotel.id != exclude_id)
    if query.first():
        raise ConflictError("A hotel with this name already exists in this location", error="HOTEL_EXISTS")


def _split_amenities(amenities: Optional[List[str]]) -> List[str]:
    # Accept both ?amenities=wifi&amenities=pool and ?amenities=wifi,pool
    values = []
    for entry in amenities or []:
        values.extend(part.strip() for part in entry.split(",") if part.strip())
    return values


def amenity_condition(db: Session, amenity: str):
    """Match ``amenity`` as a whole element of the hotel's JSON amenities array."""
    if db.get_bind().dialect.name == "postgresql":
        return cast(Hotel.amenities, JSONB).contains([amenity])
    elements = func.json_each(Hotel.amenities).table_valued("value")
    return select(elements.c.value).where(elements.c.value == amenity).exists()


# Public endpoints

@router.get("", response_model=ApiResponse[HotelListData])
def search_hotels(
    city: Optional[str] = None,
    country: Optional[str] = None,
    minPrice: Optional[float] = Query(None, ge=0),
    maxPrice: Optional[float] = Query(None, ge=0),
    minStarRating: Optional[int] = Query(None, ge=1, le=5),
    maxStarRating: Optional[int] = Query(None, ge=1, le=5),
    amenities: Optional[List[str]] = Query(None),
    rooms: int = Query(1, ge=1),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    sortBy: Literal["price", "rating", "name", "created"] = "name",
    sortOrder: Literal["asc", "desc"] = "asc",
    db: Session = Depends(get_db),
):
    """
    Search active hotels
    Filters combine with AND; every requested amenity must be present
    """
    limit = min(limit, MAX_PAGE_SIZE)
    amenity_list = _split_amenities(amenities)

    query = db.query(Hotel).filter(Hotel.isActive == True, Hotel.availableRooms >= rooms)  # noqa: E712
    if city:
        query = query.filter(Hotel.city.ilike(f"%{city}%"))
    if country:
        query = query.filter(Hotel.country.ilike(f"%{country}%"))
    if minPrice is not None:
        query = query.filter(Hotel.pricePerNight >= minPrice)
    if maxPrice is not None:
        query = query.filter(Hotel.pricePerNight <= maxPrice)
    if minStarRating is not None:
        query = query.filter(Hotel.starRating >= minStarRating)
    if maxStarRating is not None:
        query = query.filter(Hotel.starRating <= maxStarRating)
    for amenity in amenity_list:
        query = query.filter(amenity_condition(db, amenity))

    total = query.count()
    column = HOTEL_SORT_COLUMNS[sortBy]
    order = [column.asc(), Hotel.id.asc()] if sortOrder == "asc" else [column.desc(), Hotel.id.desc()]
    hotels = query.order_by(*order).offset((page - 1) * limit).limit(limit).all()

    stats = rating_stats(db, [hotel.id for hotel in hotels])
    return ApiResponse(
        message="Hotels retrieved successfully",
        data=HotelListData(
            hotels=[serialize_hotel(hotel, stats) for hotel in hotels],
            pagination=Pagination.build(page, limit, total),
            filters={
                "city": city,
                "country": country,
                "priceRange": {"min": minPrice, "max": maxPrice},
                "starRating": {"min": minStarRating, "max": maxStarRating},
                "amenities": amenity_list,
                "rooms": rooms,
                "sortBy": sortBy,
                "sortOrder": sortOrder,
            },
        ),
    )


@router.get("/{hotel_id}", response_model=ApiResponse[HotelDetailData])
def get_hotel(
    hotel_id: int,
    principal: Optional[Principal] = Depends(get_optional_principal),
    db: Session = Depends(get_db),
):
    """Hotel detail; signed-in callers also learn whether it is in their favorites"""
    hotel = get_active_hotel(db, hotel_id)
    stats = rating_stats(db, [hotel.id])

    latest_reviews = db.query(Review).options(joinedload(Review.user)).filter(
        Review.hotelId == hotel.id,
        Review.isVisible == True,  # noqa: E712
    ).order_by(Review.createdAt.desc(), Review.id.desc()).limit(10).all()

    detail = serialize_hotel(hotel, stats, schema=HotelDetail)
    detail.ratingDistribution = rating_distribution(db, hotel.id)
    detail.reviews = [ReviewResponse.model_validate(review) for review in latest_reviews]
    if principal is not None:
        detail.isFavorite = db.query(Favorite.id).filter(
            Favorite.userId == principal.userId, Favorite.hotelId == hotel.id,
        ).first() is not None
    return ApiResponse(message="Hotel retrieved successfully", data=HotelDetailData(hotel=detail))


@router.get("/{hotel_id}/reviews", response_model=ApiResponse[ReviewListData])
def get_hotel_reviews(
    hotel_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    hotel = get_active_hotel(db, hotel_id)
    query = db.query(Review).options(joinedload(Review.user)).filter(
        Review.hotelId == hotel.id,
        Review.isVisible == True,  # noqa: E712
    )
    total = query.count()
    reviews = query.order_by(Review.createdAt.desc(), Review.id.desc()).offset((page - 1) * limit).limit(limit).all()
    return ApiResponse(
        message="Reviews retrieved successfully",
        data=ReviewListData(
            reviews=[ReviewResponse.model_validate(review) for review in reviews],
            pagination=Pagination.build(page, limit, total),
        ),
    )


@router.get("/{hotel_id}/availability", response_model=ApiResponse[AvailabilityResponse])
def check_availability(
    hotel_id: int,
    checkInDate: date,
    checkOutDate: date,
    rooms: int = Query(1, ge=1, le=10),
    db: Session = Depends(get_db),
):
    hotel = get_active_hotel(db, hotel_id)
    nights, total = quote_stay(hotel.pricePerNight, rooms, checkInDate, checkOutDate)
    return ApiResponse(
        message="Availability checked successfully",
        data=AvailabilityResponse(
            hotelId=hotel.id,
            isAvailable=hotel.has_rooms(rooms),
            availableRooms=hotel.availableRooms,
            requestedRooms=rooms,
            pricePerNight=hotel.pricePerNight,
            currency=hotel.currency,
            numberOfNights=nights,
            totalPrice=total,
        ),
    )


# Staff endpoints

@router.post("", response_model=ApiResponse[HotelData], status_code=status.HTTP_201_CREATED)
def create_hotel(hotel_data: HotelCreate, principal: Principal = Depends(is_staff), db: Session = Depends(get_db)):
    check_name_available(db, hotel_data.name, hotel_data.city, hotel_data.country)
    hotel = Hotel(**hotel_data.model_dump())
    db.add(hotel)
    db.commit()
    db.refresh(hotel)
    logger.info("Hotel %s created by user %s", hotel.id, principal.userId)
    return ApiResponse(message="Hotel created successfully", data=HotelData(hotel=serialize_hotel(hotel, {})))


@router.put("/{hotel_id}", response_model=ApiResponse[HotelData])
def update_hotel(
    hotel_id: int,
    hotel_data: HotelUpdate,
    principal: Principal = Depends(is_staff),
    db: Session = Depends(get_db),
):
    hotel = db.query(Hotel).filter(Hotel.id == hotel_id).first()
    if not hotel:
        raise NotFoundError("Hotel not found", error="HOTEL_NOT_FOUND")

    changes = {field: value for field, value in hotel_data.model_dump(exclude_unset=True).items() if value is not None}

    name = changes.get("name", hotel.name)
    city = changes.get("city", hotel.city)
    country = changes.get("country", hotel.country)
    if (name, city, country) != (hotel.name, hotel.city, hotel.country):
        check_name_available(db, name, city, country, exclude_id=hotel.id)

    total_rooms = changes.get("totalRooms", hotel.totalRooms)
    available_rooms = changes.get("availableRooms", hotel.availableRooms)
    if available_rooms > total_rooms:
        raise ValidationError(
            "availableRooms cannot exceed totalRooms",
            data={"totalRooms": total_rooms, "availableRooms": available_rooms},
        )

    for field, value in changes.items():
        setattr(hotel, field, value)
    db.commit()
    db.refresh(hotel)
    return ApiResponse(
        message="Hotel updated successfully",
        data=HotelData(hotel=serialize_hotel(hotel, rating_stats(db, [hotel.id]))),
    )


@router.delete("/{hotel_id}", response_model=ApiResponse[None])
def delete_hotel(hotel_id: int, principal: Principal = Depends(is_admin), db: Session = Depends(get_db)):
    """Soft delete: the hotel is hidden, its bookings stay intact"""
    hotel = db.query(Hotel).filter(Hotel.id == hotel_id).first()
    if not hotel:
        raise NotFoundError("Hotel not found", error="HOTEL_NOT_FOUND")
    hotel.isActive = False
    db.commit()
    logger.info("Hotel %s deactivated by admin %s", hotel_id, principal.userId)
    return ApiResponse(message="Hotel deleted successfully")
