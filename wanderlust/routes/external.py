import asyncio
from datetime import date
from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..errors import NotFoundError, ValidationError
from ..middleware import Principal, is_staff
from ..providers.hotelbeds import HotelbedsClient, sync_hotels
from ..providers.skyscanner import SkyScannerClient
from ..schemas import ApiResponse, SyncHotelsRequest, SyncHotelsResult

router = APIRouter()

CabinClass = Literal["economy", "premium_economy", "business", "first"]


def get_flight_provider() -> SkyScannerClient:
    return SkyScannerClient()


def get_hotel_provider() -> HotelbedsClient:
    return HotelbedsClient()


def check_stay_dates(check_in: date, check_out: date):
    if check_out <= check_in:
        raise ValidationError("Check-out date must be after check-in date")


# Flights

@router.get("/flights/search", response_model=ApiResponse[Dict[str, Any]])
async def search_flights(
    origin: str = Query(..., min_length=3),
    destination: str = Query(..., min_length=3),
    departDate: date = Query(...),
    returnDate: Optional[date] = None,
    adults: int = Query(1, ge=1, le=9),
    children: int = Query(0, ge=0, le=9),
    cabinClass: CabinClass = "economy",
    currency: str = Query("USD", min_length=3, max_length=3),
    flights_api: SkyScannerClient = Depends(get_flight_provider),
):
    flights = await flights_api.search_flights(
        origin, destination, departDate.isoformat(),
        return_date=returnDate.isoformat() if returnDate else None,
        adults=adults, children=children, cabin_class=cabinClass, currency=currency,
    )
    return ApiResponse(
        message=f"Found {len(flights)} flights",
        data={
            "flights": flights,
            "searchParams": {
                "origin": origin,
                "destination": destination,
                "departDate": departDate,
                "returnDate": returnDate,
                "passengers": {"adults": adults, "children": children},
                "cabinClass": cabinClass,
                "currency": currency,
            },
            "resultsCount": len(flights),
        },
    )


@router.get("/flights/oneway", response_model=ApiResponse[Dict[str, Any]])
async def search_oneway_flights(
    origin: str = Query(..., min_length=3),
    destination: str = Query(..., min_length=3),
    departDate: date = Query(...),
    adults: int = Query(1, ge=1, le=9),
    children: int = Query(0, ge=0, le=9),
    cabinClass: CabinClass = "economy",
    currency: str = Query("USD", min_length=3, max_length=3),
    flights_api: SkyScannerClient = Depends(get_flight_provider),
):
    flights = await flights_api.search_oneway_flights(
        origin, destination, departDate.isoformat(),
        adults=adults, children=children, cabin_class=cabinClass, currency=currency,
    )
    return ApiResponse(
        message=f"Found {len(flights)} one-way flights",
        data={"flights": flights, "resultsCount": len(flights)},
    )


@router.get("/airports/search", response_model=ApiResponse[Dict[str, Any]])
async def search_airports(
    query: str = Query(..., min_length=2),
    flights_api: SkyScannerClient = Depends(get_flight_provider),
):
    airports = await flights_api.search_airports(query)
    return ApiResponse(
        message=f"Found {len(airports)} airports",
        data={"airports": airports, "query": query, "resultsCount": len(airports)},
    )


@router.get("/destinations/popular", response_model=ApiResponse[Dict[str, Any]])
async def popular_destinations(
    origin: str = Query(..., alias="from", min_length=2),
    flights_api: SkyScannerClient = Depends(get_flight_provider),
):
    destinations = await flights_api.popular_destinations(origin)
    return ApiResponse(
        message=f"Found {len(destinations)} popular destinations",
        data={"destinations": destinations, "from": origin, "resultsCount": len(destinations)},
    )


@router.get("/price-trends", response_model=ApiResponse[Dict[str, Any]])
async def price_trends(
    origin: str = Query(..., min_length=3),
    destination: str = Query(..., min_length=3),
    month: str = Query(..., pattern=r"^\d{4}-\d{2}$"),
    flights_api: SkyScannerClient = Depends(get_flight_provider),
):
    trends = await flights_api.price_trends(origin, destination, month)
    return ApiResponse(
        message=f"Found price trends for {len(trends)} dates",
        data={
            "trends": trends,
            "params": {"origin": origin, "destination": destination, "month": month},
            "resultsCount": len(trends),
        },
    )


# Hotels

@router.get("/hotels/search", response_model=ApiResponse[Dict[str, Any]])
async def search_external_hotels(
    destination: str = Query(..., min_length=2),
    checkIn: date = Query(...),
    checkOut: date = Query(...),
    adults: int = Query(2, ge=1, le=9),
    children: int = Query(0, ge=0, le=9),
    rooms: int = Query(1, ge=1, le=10),
    hotels_api: HotelbedsClient = Depends(get_hotel_provider),
):
    check_stay_dates(checkIn, checkOut)
    hotels = await hotels_api.search_hotels(
        destination, checkIn.isoformat(), checkOut.isoformat(), adults=adults, children=children, rooms=rooms,
    )
    return ApiResponse(
        message=f"Found {len(hotels)} hotels",
        data={
            "hotels": hotels,
            "searchParams": {
                "destination": destination,
                "checkIn": checkIn,
                "checkOut": checkOut,
                "guests": {"adults": adults, "children": children},
                "rooms": rooms,
            },
            "resultsCount": len(hotels),
        },
    )


@router.get("/hotels/destinations", response_model=ApiResponse[Dict[str, Any]])
async def hotel_destinations(
    search: Optional[str] = None,
    hotels_api: HotelbedsClient = Depends(get_hotel_provider),
):
    destinations = await hotels_api.get_destinations(search)
    return ApiResponse(
        message=f"Found {len(destinations)} destinations",
        data={"destinations": destinations, "search": search, "resultsCount": len(destinations)},
    )


@router.get("/hotels/{code}/availability", response_model=ApiResponse[Dict[str, Any]])
async def external_hotel_availability(
    code: int,
    checkIn: date = Query(...),
    checkOut: date = Query(...),
    adults: int = Query(2, ge=1, le=9),
    children: int = Query(0, ge=0, le=9),
    rooms: int = Query(1, ge=1, le=10),
    hotels_api: HotelbedsClient = Depends(get_hotel_provider),
):
    check_stay_dates(checkIn, checkOut)
    availability = await hotels_api.get_hotel_availability(
        code, checkIn.isoformat(), checkOut.isoformat(), adults=adults, children=children, rooms=rooms,
    )
    if availability is None:
        raise NotFoundError("Hotel availability not found", error="AVAILABILITY_NOT_FOUND")
    return ApiResponse(
        message="Hotel availability retrieved successfully",
        data={
            "availability": availability,
            "searchParams": {
                "hotelCode": code,
                "checkIn": checkIn,
                "checkOut": checkOut,
                "guests": {"adults": adults, "children": children},
                "rooms": rooms,
            },
        },
    )


@router.get("/combined/search", response_model=ApiResponse[Dict[str, Any]])
async def combined_search(
    origin: str = Query(..., min_length=3),
    destination: str = Query(..., min_length=2),
    checkIn: date = Query(...),
    checkOut: date = Query(...),
    adults: int = Query(2, ge=1, le=9),
    children: int = Query(0, ge=0, le=9),
    rooms: int = Query(1, ge=1, le=10),
    flights_api: SkyScannerClient = Depends(get_flight_provider),
    hotels_api: HotelbedsClient = Depends(get_hotel_provider),
):
    """Hotels and round-trip flights for one trip, fetched concurrently"""
    check_stay_dates(checkIn, checkOut)
    hotels, flights = await asyncio.gather(
        hotels_api.search_hotels(
            destination, checkIn.isoformat(), checkOut.isoformat(), adults=adults, children=children, rooms=rooms,
        ),
        flights_api.search_flights(
            origin, destination, checkIn.isoformat(), return_date=checkOut.isoformat(),
            adults=adults, children=children,
        ),
    )
    return ApiResponse(
        message=f"Found {len(hotels)} hotels and {len(flights)} flights",
        data={
            "hotels": hotels,
            "flights": flights,
            "searchParams": {
                "origin": origin,
                "destination": destination,
                "checkIn": checkIn,
                "checkOut": checkOut,
                "adults": adults,
                "children": children,
                "rooms": rooms,
            },
            "summary": {"hotelsFound": len(hotels), "flightsFound": len(flights)},
        },
    )


@router.post("/sync-hotels", response_model=ApiResponse[SyncHotelsResult])
async def sync_external_hotels(
    request: SyncHotelsRequest,
    principal: Principal = Depends(is_staff),
    hotels_api: HotelbedsClient = Depends(get_hotel_provider),
    db: Session = Depends(get_db),
):
    result = await sync_hotels(db, hotels_api, request.destinationCode)
    return ApiResponse(
        message=f"Sync completed: {result.synced} hotels synced, {result.errors} errors",
        data=result,
    )
