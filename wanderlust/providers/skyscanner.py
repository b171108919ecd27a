import logging
from typing import Any, Dict, List, Optional

import httpx

from ..config import RAPIDAPI_KEY, RAPIDAPI_HOST, EXTERNAL_API_TIMEOUT
from ..schemas import Airport, Flight, PopularDestination, PricePoint

logger = logging.getLogger(__name__)


def format_duration(minutes: int) -> str:
    hours, mins = divmod(int(minutes or 0), 60)
    if hours == 0:
        return f"{mins}m"
    return f"{hours}h {mins}m"


def _split_timestamp(value: Optional[str]):
    # "2024-03-01T08:45:00" -> ("2024-03-01", "08:45")
    if not value:
        return "", ""
    day, _, clock = value.partition("T")
    return day, clock[:5]


def _endpoint(place: Dict[str, Any], timestamp: Optional[str]) -> Dict[str, str]:
    day, clock = _split_timestamp(timestamp)
    return {"airport": place.get("name") or place.get("id") or "", "time": clock, "date": day}


def normalize_flights(payload: Dict[str, Any]) -> List[Flight]:
    """Map a Sky Scanner itinerary payload to ``Flight`` objects."""
    flights = []
    for item in (payload.get("data") or {}).get("flights") or []:
        leg = (item.get("legs") or [{}])[0]
        origin = leg.get("origin") or {}
        destination = leg.get("destination") or {}
        carrier = ((leg.get("carriers") or {}).get("marketing") or [{}])[0]
        segments = leg.get("segments") or []
        price = item.get("price") or {}
        flights.append(Flight(
            id=str(item.get("id") or f"{origin.get('id', '')}-{destination.get('id', '')}-{leg.get('departure', '')}"),
            airline={
                "name": carrier.get("name") or "Unknown Airline",
                "code": carrier.get("alternateId") or "XX",
                "logo": carrier.get("logoUrl"),
            },
            departure=_endpoint(origin, leg.get("departure")),
            arrival=_endpoint(destination, leg.get("arrival")),
            duration=format_duration(leg.get("durationInMinutes") or 0),
            stops=max(len(segments) - 1, 0),
            price={"amount": price.get("raw") or 0, "currency": price.get("currency") or "USD"},
            cabinClass=(segments[0].get("cabin") if segments else None) or "economy",
            bookingUrl=item.get("deeplink"),
        ))
    return flights


def normalize_airports(payload: Dict[str, Any]) -> List[Airport]:
    airports = []
    for item in payload.get("data") or []:
        navigation = item.get("navigation") or {}
        if navigation.get("entityType") != "AIRPORT":
            continue
        # localizedName looks like "London Heathrow (LHR)"
        localized = navigation.get("localizedName") or ""
        name, _, code = localized.partition("(")
        hierarchy = [part.strip() for part in (item.get("hierarchy") or "").split(",")]
        airports.append(Airport(
            code=code.rstrip(")").strip() or item.get("skyId") or "",
            name=name.strip() or item.get("suggestion") or "",
            city=hierarchy[0] if hierarchy else "",
            country=hierarchy[1] if len(hierarchy) > 1 else "",
        ))
    return airports


class SkyScannerClient:
    """Flight search through the RapidAPI Sky Scanner endpoints."""

    def __init__(self, api_key: str = RAPIDAPI_KEY, host: str = RAPIDAPI_HOST,
                 timeout: float = EXTERNAL_API_TIMEOUT, transport: httpx.AsyncBaseTransport = None):
        self.api_key = api_key
        self.host = host
        self.timeout = timeout
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "X-RapidAPI-Key": self.api_key,
            "X-RapidAPI-Host": self.host,
            "Content-Type": "application/json",
        }

    async def _get(self, path: str, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """GET a provider endpoint; failures are logged and return None."""
        params = {key: value for key, value in params.items() if value is not None}
        try:
            async with httpx.AsyncClient(
                base_url=f"https://{self.host}", headers=self._headers(),
                timeout=self.timeout, transport=self.transport,
            ) as client:
                response = await client.get(path, params=params)
                response.raise_for_status()
                return response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Sky Scanner request %s failed: %s", path, e)
            return None

    async def search_flights(self, origin: str, destination: str, depart_date: str, return_date: str = None,
                             adults: int = 1, children: int = 0, cabin_class: str = "economy",
                             currency: str = "USD") -> List[Flight]:
        payload = await self._get("/flights/search-roundtrip", {
            "fromEntityId": origin,
            "toEntityId": destination,
            "departDate": depart_date,
            "returnDate": return_date,
            "adults": adults,
            "children": children,
            "cabinClass": cabin_class,
            "currency": currency,
        })
        return normalize_flights(payload) if payload else []

    async def search_oneway_flights(self, origin: str, destination: str, depart_date: str, adults: int = 1,
                                    children: int = 0, cabin_class: str = "economy",
                                    currency: str = "USD") -> List[Flight]:
        payload = await self._get("/flights/search-oneway", {
            "fromEntityId": origin,
            "toEntityId": destination,
            "departDate": depart_date,
            "adults": adults,
            "children": children,
            "cabinClass": cabin_class,
            "currency": currency,
        })
        return normalize_flights(payload) if payload else []

    async def search_airports(self, query: str) -> List[Airport]:
        payload = await self._get("/flights/auto-complete", {"query": query})
        return normalize_airports(payload) if payload else []

    async def popular_destinations(self, origin: str) -> List[PopularDestination]:
        payload = await self._get("/flights/popular-destinations", {"fromEntityId": origin})
        if not payload:
            return []
        return [
            PopularDestination(
                destination=item.get("name") or "",
                price=(item.get("price") or {}).get("amount") or 0,
                currency=(item.get("price") or {}).get("currency") or "USD",
            )
            for item in payload.get("destinations") or []
        ]

    async def price_trends(self, origin: str, destination: str, depart_month: str) -> List[PricePoint]:
        payload = await self._get("/flights/price-calendar", {
            "fromEntityId": origin,
            "toEntityId": destination,
            "departMonth": depart_month,
        })
        if not payload:
            return []
        return [
            PricePoint(date=item.get("date") or "", price=item.get("amount") or 0)
            for item in payload.get("prices") or []
        ]
