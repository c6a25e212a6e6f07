"""Flight offer search against the Amadeus self-service API.

The lookup is a two-step flow: a client-credentials token request followed
by a flight-offers search. Both steps share the tool's HTTP client and a 10
second timeout; credentials are checked before anything goes on the wire.
"""

import logging
from typing import Any, List, Optional

import httpx
from pydantic import BaseModel, Field

from ..config import Settings
from ..errors import MissingCredentialsError, ProviderError, ToolArgumentError
from ..models import Conversation
from . import Tool
from .http import decode, send

logger = logging.getLogger(__name__)

FLIGHT_TIMEOUT = 10.0
MAX_OFFERS = 10
OPERATION = "flight search"
NO_FLIGHTS = "No flights found matching your criteria."


class FlightOffer(BaseModel):
    """One search hit, flattened to what the tool reports."""

    origin: str
    destination: str
    departure_at: str
    price: str

    @property
    def departure_time(self) -> str:
        # "2025-10-18T14:30:00" -> "14:30"
        if len(self.departure_at) >= 16:
            return self.departure_at[11:16]
        return self.departure_at


# --- Provider payloads ---
class TokenResponse(BaseModel):
    access_token: str = ""
    expires_in: int = 0
    token_type: str = ""


class _Endpoint(BaseModel):
    iataCode: str = ""
    at: str = ""


class _Segment(BaseModel):
    departure: _Endpoint = Field(default_factory=_Endpoint)
    arrival: _Endpoint = Field(default_factory=_Endpoint)
    carrierCode: str = ""
    number: str = ""


class _Itinerary(BaseModel):
    duration: str = ""
    segments: List[_Segment] = Field(default_factory=list)


class _Price(BaseModel):
    currency: str = ""
    total: str = ""
    base: str = ""


class _Offer(BaseModel):
    id: str = ""
    itineraries: List[_Itinerary] = Field(default_factory=list)
    price: _Price = Field(default_factory=_Price)


class OffersResponse(BaseModel):
    data: List[_Offer] = Field(default_factory=list)

    def offers(self) -> List[FlightOffer]:
        found = []
        for offer in self.data:
            if not offer.itineraries or not offer.itineraries[0].segments:
                continue
            segments = offer.itineraries[0].segments
            found.append(
                FlightOffer(
                    origin=segments[0].departure.iataCode,
                    destination=segments[-1].arrival.iataCode,
                    departure_at=segments[0].departure.at,
                    price=f"{offer.price.total} {offer.price.currency}",
                )
            )
        return found


def _oauth_error(body: Any) -> Optional[str]:
    if not isinstance(body, dict) or not body.get("error"):
        return None
    message = str(body["error"])
    if body.get("error_description"):
        message = f"{message}: {body['error_description']}"
    return f"authentication failed: {message}"


def _offers_error(body: Any) -> Optional[str]:
    if not isinstance(body, dict):
        return None
    errors = body.get("errors")
    if not isinstance(errors, list) or not errors or not isinstance(errors[0], dict):
        return None
    detail = errors[0].get("detail") or errors[0].get("title")
    return f"api error: {detail}" if detail else None


async def fetch_token(
    client: httpx.AsyncClient,
    api_key: str,
    api_secret: str,
    base_url: str,
    timeout: float = FLIGHT_TIMEOUT,
) -> str:
    """Exchanges client credentials for a bearer token."""
    response = await send(
        client,
        OPERATION,
        "POST",
        f"{base_url.rstrip('/')}/v1/security/oauth2/token",
        data={
            "grant_type": "client_credentials",
            "client_id": api_key,
            "client_secret": api_secret,
        },
        timeout=timeout,
        extract_error=_oauth_error,
        error_prefix="authentication failed",
    )
    token = decode(response, TokenResponse, OPERATION)
    if not token.access_token:
        raise ProviderError(OPERATION, "empty access token received")
    return token.access_token


async def fetch_offers(
    client: httpx.AsyncClient,
    token: str,
    origin: str,
    destination: str,
    departure_date: str,
    base_url: str,
    max_price: int = 0,
    timeout: float = FLIGHT_TIMEOUT,
) -> List[FlightOffer]:
    params = {
        "originLocationCode": origin,
        "destinationLocationCode": destination,
        "departureDate": departure_date,
        "adults": "1",
        "max": str(MAX_OFFERS),
    }
    if max_price > 0:
        params["maxPrice"] = str(max_price)

    response = await send(
        client,
        OPERATION,
        "GET",
        f"{base_url.rstrip('/')}/v2/shopping/flight-offers",
        params=params,
        headers={"Authorization": f"Bearer {token}"},
        timeout=timeout,
        extract_error=_offers_error,
    )
    return decode(response, OffersResponse, OPERATION).offers()


def format_offers(
    offers: List[FlightOffer], origin: str, destination: str, departure_date: str
) -> str:
    if not offers:
        return NO_FLIGHTS
    plural = "" if len(offers) == 1 else "s"
    lines = [
        f"Found {len(offers)} flight option{plural} from {origin} "
        f"to {destination} on {departure_date}:"
    ]
    for index, offer in enumerate(offers, start=1):
        lines.append(
            f"{index}. {offer.origin} → {offer.destination} "
            f"at {offer.departure_time}: {offer.price}"
        )
    return "\n".join(lines)


class FlightArgs(BaseModel):
    origin: str = ""
    destination: str = ""
    departureDate: str = ""
    maxPrice: int = 0


class GetFlightPricesTool(Tool):
    name = "get_flight_prices"
    description = (
        "Search for flight offers and prices between two cities on a specific "
        "date. Returns available flights with pricing information."
    )
    parameters = {
        "type": "object",
        "properties": {
            "origin": {
                "type": "string",
                "description": (
                    "IATA code of the origin airport (e.g., 'BCN' for "
                    "Barcelona, 'NYC' for New York)"
                ),
            },
            "destination": {
                "type": "string",
                "description": (
                    "IATA code of the destination airport (e.g., 'MAD' for "
                    "Madrid, 'LON' for London)"
                ),
            },
            "departureDate": {
                "type": "string",
                "description": "Departure date in YYYY-MM-DD format (e.g., '2025-10-18')",
            },
            "maxPrice": {
                "type": "integer",
                "description": (
                    "Maximum price per traveler in the currency of the origin "
                    "country (optional)"
                ),
            },
        },
        "required": ["origin", "destination", "departureDate"],
    }

    def __init__(
        self,
        conversation: Optional[Conversation],
        http_client: httpx.AsyncClient,
        settings: Optional[Settings] = None,
    ):
        self.conversation = conversation
        self.http_client = http_client
        self.settings = settings if settings is not None else Settings()

    async def execute(self, raw_args: str) -> str:
        args = self.parse_args(raw_args, FlightArgs)

        origin = args.origin.strip().upper()
        if not origin:
            raise ToolArgumentError("origin is required")
        destination = args.destination.strip().upper()
        if not destination:
            raise ToolArgumentError("destination is required")
        departure_date = args.departureDate.strip()
        if not departure_date:
            raise ToolArgumentError("departure date is required")

        settings = self.settings
        if not settings.amadeus_api_key or not settings.amadeus_api_secret:
            raise MissingCredentialsError(
                "amadeus API credentials not configured - please set "
                "AMADEUS_API_KEY and AMADEUS_API_SECRET environment variables"
            )

        logger.info(
            "Searching flights",
            extra={
                "origin": origin,
                "destination": destination,
                "departure_date": departure_date,
            },
        )
        token = await fetch_token(
            self.http_client,
            settings.amadeus_api_key,
            settings.amadeus_api_secret,
            settings.amadeus_base_url,
        )
        offers = await fetch_offers(
            self.http_client,
            token,
            origin,
            destination,
            departure_date,
            settings.amadeus_base_url,
            max_price=args.maxPrice,
        )
        return format_offers(offers, origin, destination, departure_date)
