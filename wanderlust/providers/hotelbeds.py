import hashlib
import logging
import re
import time
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

import httpx
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import HOTELBEDS_API_KEY, HOTELBEDS_SECRET, HOTELBEDS_BASE_URL, EXTERNAL_API_TIMEOUT
from ..models import Hotel
from ..schemas import Destination, ExternalAvailability, ExternalHotel, SyncHotelsResult

logger = logging.getLogger(__name__)


def generate_signature(api_key: str, secret: str, timestamp: int) -> str:
    """Hotelbeds request signature: hex sha256 of key + secret + unix seconds."""
    return hashlib.sha256(f"{api_key}{secret}{timestamp}".encode()).hexdigest()


def star_rating_from_category(category: Optional[str]) -> int:
    # Category codes look like "4EST" or "3LL"; unknown codes count as 3 stars
    match = re.match(r"\d", category or "")
    if not match:
        return 3
    return min(max(int(match.group()), 1), 5)


def normalize_hotel(raw: Dict[str, Any]) -> ExternalHotel:
    destination = raw.get("destination") or {}
    coordinates = raw.get("coordinates")
    category = raw.get("categoryCode") or (raw.get("category") or {}).get("code")
    return ExternalHotel(
        code=raw.get("code"),
        name=raw.get("name") or "",
        description=(raw.get("description") or {}).get("content") or "",
        city=destination.get("name") or raw.get("destinationName") or "",
        country=destination.get("countryName") or "",
        coordinates={
            "latitude": float(coordinates["latitude"]),
            "longitude": float(coordinates["longitude"]),
        } if coordinates else (
            {"latitude": float(raw["latitude"]), "longitude": float(raw["longitude"])}
            if raw.get("latitude") and raw.get("longitude") else None
        ),
        category=str(category) if category else None,
        images=[image.get("path") for image in raw.get("images") or [] if image.get("path")],
        amenities=[
            facility["description"]["content"]
            for facility in raw.get("facilities") or []
            if (facility.get("description") or {}).get("content")
        ],
        address=(raw.get("address") or {}).get("content") or "",
        minRate=raw.get("minRate"),
        currency=raw.get("currency"),
    )


class HotelbedsClient:
    """Hotel content and availability from the Hotelbeds APItude endpoints."""

    def __init__(self, api_key: str = HOTELBEDS_API_KEY, secret: str = HOTELBEDS_SECRET,
                 base_url: str = HOTELBEDS_BASE_URL, timeout: float = EXTERNAL_API_TIMEOUT,
                 transport: httpx.AsyncBaseTransport = None):
        self.api_key = api_key
        self.secret = secret
        self.base_url = base_url
        self.timeout = timeout
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "Api-key": self.api_key,
            "X-Signature": generate_signature(self.api_key, self.secret, int(time.time())),
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _request(self, method: str, path: str, **kwargs) -> Optional[Dict[str, Any]]:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, headers=self._headers(),
                timeout=self.timeout, transport=self.transport,
            ) as client:
                response = await client.request(method, path, **kwargs)
                response.raise_for_status()
                return response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Hotelbeds request %s %s failed: %s", method, path, e)
            return None

    @staticmethod
    def _availability_body(check_in: str, check_out: str, adults: int, children: int, rooms: int) -> Dict[str, Any]:
        return {
            "stay": {"checkIn": check_in, "checkOut": check_out},
            "occupancies": [{"rooms": rooms, "adults": adults, "children": children}],
        }

    async def search_hotels(self, destination: str, check_in: str, check_out: str, adults: int = 2,
                            children: int = 0, rooms: int = 1) -> List[ExternalHotel]:
        body = self._availability_body(check_in, check_out, adults, children, rooms)
        body["destination"] = {"code": destination}
        payload = await self._request("POST", "/hotel-api/1.0/hotels", json=body)
        if not payload:
            return []
        return [normalize_hotel(raw) for raw in (payload.get("hotels") or {}).get("hotels") or []]

    async def get_hotel_availability(self, hotel_code: int, check_in: str, check_out: str, adults: int = 2,
                                     children: int = 0, rooms: int = 1) -> Optional[ExternalAvailability]:
        body = self._availability_body(check_in, check_out, adults, children, rooms)
        body["hotels"] = {"hotel": [hotel_code]}
        payload = await self._request("POST", "/hotel-api/1.0/hotels", json=body)
        hotels = ((payload or {}).get("hotels") or {}).get("hotels") or []
        if not hotels:
            return None
        hotel = hotels[0]
        rooms_out = []
        for room in hotel.get("rooms") or []:
            rate = (room.get("rates") or [{}])[0]
            rooms_out.append({
                "roomCode": room.get("code") or "",
                "roomName": room.get("name") or "",
                "rateKey": rate.get("rateKey") or "",
                "net": rate.get("net") or 0,
                "adults": rate.get("adults") or adults,
                "children": rate.get("children") or children,
            })
        return ExternalAvailability(
            hotelCode=hotel.get("code"),
            hotelName=hotel.get("name") or "",
            currency=hotel.get("currency"),
            rooms=rooms_out,
        )

    async def get_hotel_details(self, hotel_code: int) -> Optional[ExternalHotel]:
        payload = await self._request("GET", f"/hotel-content-api/1.0/hotels/{hotel_code}/details")
        hotel = (payload or {}).get("hotel")
        return normalize_hotel(hotel) if hotel else None

    async def get_destinations(self, search: str = None) -> List[Destination]:
        payload = await self._request(
            "GET", "/hotel-content-api/1.0/locations/destinations",
            params={"fields": "all", "language": "ENG", "from": 1, "to": 100},
        )
        if not payload:
            return []
        term = (search or "").lower()
        return [
            Destination(code=item.get("code") or "", name=item.get("name") or "", country=item.get("countryName"))
            for item in payload.get("destinations") or []
            if not term
            or term in (item.get("name") or "").lower()
            or term in (item.get("countryName") or "").lower()
        ]


def _apply_external_hotel(hotel: Hotel, data: ExternalHotel):
    hotel.name = data.name
    hotel.description = data.description or hotel.description
    hotel.address = data.address or hotel.address or data.city
    hotel.city = data.city or hotel.city
    hotel.country = data.country or hotel.country
    if data.coordinates:
        hotel.latitude = data.coordinates.latitude
        hotel.longitude = data.coordinates.longitude
    hotel.starRating = star_rating_from_category(data.category)
    if data.minRate:
        hotel.pricePerNight = data.minRate
    if data.currency:
        hotel.currency = data.currency
    if data.images:
        hotel.images = data.images
    if data.amenities:
        hotel.amenities = data.amenities


async def sync_hotels(db: Session, client: HotelbedsClient, destination_code: str) -> SyncHotelsResult:
    """
    Fetch the provider's hotels for a destination and upsert them locally.

    The blocking database work runs in the threadpool so the event loop keeps
    serving other requests during large syncs.
    """
    check_in = date.today() + timedelta(days=30)
    external_hotels = await client.search_hotels(
        destination_code, check_in.isoformat(), (check_in + timedelta(days=2)).isoformat(), adults=2,
    )
    return await run_in_threadpool(upsert_external_hotels, db, external_hotels, destination_code)


def upsert_external_hotels(db: Session, external_hotels: List[ExternalHotel], destination_code: str) -> SyncHotelsResult:
    """
    Upsert provider hotels into the local table, committing each one.

    Hotels are matched on ``hotelbedsId``. New hotels need a rate to be priced;
    rows that fail to save are counted as errors and skipped.
    """
    created = updated = errors = 0
    for data in external_hotels:
        hotelbeds_id = str(data.code)
        hotel = db.query(Hotel).filter(Hotel.hotelbedsId == hotelbeds_id).first()
        if hotel is None:
            if not data.minRate or not data.city or not data.country:
                logger.warning("Skipping Hotelbeds hotel %s: missing rate or location", hotelbeds_id)
                errors += 1
                continue
            hotel = Hotel(hotelbedsId=hotelbeds_id, totalRooms=10, availableRooms=10, isActive=True)
            db.add(hotel)
            is_new = True
        else:
            is_new = False
        _apply_external_hotel(hotel, data)
        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Failed to sync Hotelbeds hotel %s: %s", hotelbeds_id, e)
            errors += 1
            continue
        if is_new:
            created += 1
        else:
            updated += 1

    logger.info("Hotelbeds sync for %s: %s created, %s updated, %s errors", destination_code, created, updated, errors)
    return SyncHotelsResult(synced=created + updated, created=created, updated=updated, errors=errors)
