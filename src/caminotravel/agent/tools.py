import json
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Literal, Type

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..services.locations import country_for_city, normalize_text, resolve_city_code
from ..services.travel_api import (
    ApiTimeoutError,
    NetworkError,
    RestApiError,
    TravelApiClient,
    get_travel_api_client,
)

logger = logging.getLogger(__name__)

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

PROPERTY_TYPES: Dict[str, List[str]] = {
    "hotel": ["PROPERTY_TYPE_HOTEL", "PROPERTY_TYPE_UNSPECIFIED"],
    "apartment": ["PROPERTY_TYPE_APARTMENT", "PROPERTY_TYPE_APARTHOTEL"],
    "hostel": ["PROPERTY_TYPE_HOSTEL"],
    "resort": ["PROPERTY_TYPE_RESORT"],
    "villa": ["PROPERTY_TYPE_VILLA"],
    "guesthouse": ["PROPERTY_TYPE_GUESTHOUSE", "PROPERTY_TYPE_BED_AND_BREAKFAST"],
    "bnb": ["PROPERTY_TYPE_BED_AND_BREAKFAST"],
}


class ToolInput(BaseModel):
    """Base for tool inputs: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SearchAccommodationInput(ToolInput):
    destination: str = Field(
        description='Destination city name or city code (e.g. "Madrid", "MAD", "Barcelona", "BCN")'
    )
    check_in: str = Field(description="Check-in date (YYYY-MM-DD)")
    check_out: str = Field(description="Check-out date (YYYY-MM-DD)")
    guests: int = Field(default=2, description="Number of guests")
    rooms: int = Field(default=1, description="Number of rooms")
    currency: str = Field(default="EUR", description="Currency code (EUR, USD, GBP)")


class GetAccommodationListInput(ToolInput):
    location: str | None = Field(
        default=None,
        description='Location filter (city, region, or country), e.g. "Mallorca", "Spain"',
    )
    min_stars: int | None = Field(default=None, ge=1, le=5, description="Minimum star rating (1-5)")
    max_stars: int | None = Field(default=None, ge=1, le=5, description="Maximum star rating (1-5)")
    property_type: Literal[
        "hotel", "apartment", "hostel", "resort", "villa", "guesthouse", "bnb"
    ] | None = Field(default=None, description="Filter by property type")
    refresh: bool = Field(default=False, description="Force refresh from source instead of cache")


class GetAccommodationInfoInput(ToolInput):
    product_code: str = Field(min_length=1, description="The hotel/accommodation code to retrieve")


def text_content(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Wrap a JSON payload in the tool result envelope."""
    return {"content": [{"type": "text", "text": json.dumps(payload, indent=2, default=str)}]}


def _failure(code: str, message: str, details: Any = None) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return {"success": False, "error": error}


def _api_failure(exc: Exception, timeout_message: str) -> Dict[str, Any]:
    if isinstance(exc, RestApiError):
        return _failure(exc.code, exc.message, exc.details)
    if isinstance(exc, ApiTimeoutError):
        return _failure("TIMEOUT", timeout_message)
    return _failure(
        "NETWORK_ERROR", "Failed to connect to the API. Please check network connectivity."
    )


@dataclass(frozen=True)
class ToolSpec:
    """A tool the model may call: name, description, typed input and handler."""

    name: str
    description: str
    input_model: Type[ToolInput]
    handler: Callable[[Any], Awaitable[Dict[str, Any]]]

    def schema(self) -> Dict[str, Any]:
        """Return the tool in OpenAI function format."""
        parameters = self.input_model.model_json_schema(by_alias=True)
        parameters.pop("title", None)
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": parameters,
            },
        }

    async def __call__(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """Validate raw arguments and run the handler.

        Raises:
            pydantic.ValidationError: If arguments do not match input_model.
        """
        params = self.input_model.model_validate(arguments)
        payload = await self.handler(params)
        return text_content(payload)


def _format_hotel(hotel: Dict[str, Any]) -> Dict[str, Any]:
    location = hotel.get("ubicacion") or {}
    contact = hotel.get("contacto") or {}
    coords = hotel.get("coordenadas")
    return {
        "code": hotel.get("codigo"),
        "name": hotel.get("nombre"),
        "chain": hotel.get("cadena"),
        "type": hotel.get("tipo") or "PROPERTY_TYPE_HOTEL",
        "stars": hotel.get("estrellas"),
        "coordinates": (
            {"latitude": coords.get("latitud"), "longitude": coords.get("longitud")}
            if coords
            else None
        ),
        "location": {
            "city": location.get("ciudad"),
            "region": location.get("region"),
            "country": location.get("pais"),
            "address": location.get("direccion"),
            "postalCode": location.get("codigoPostal"),
        },
        "contact": {
            "phone": contact.get("telefono"),
            "email": contact.get("email"),
            "website": contact.get("website"),
        },
        "transportHubs": [
            {
                "locationCode": hub.get("codigo"),
                "locationType": hub.get("tipo"),
                "distanceKm": hub.get("distanciaKm"),
                "timeMinutes": hub.get("tiempoMinutos"),
            }
            for hub in hotel.get("transportHubs") or []
        ],
        "lastModified": hotel.get("lastModified"),
    }


def _format_cancellation(policy: Dict[str, Any] | None) -> Dict[str, Any]:
    if not policy:
        return {"refundable": True, "cancellationDeadline": None}
    if "refundable" in policy:
        return {
            "refundable": bool(policy["refundable"]),
            "cancellationDeadline": policy.get("deadline"),
        }
    penalties = (policy.get("complex_cancel_penalties") or {}).get("cancel_penalties") or []
    formatted = []
    for p in penalties:
        window = p.get("datetime_range") or {}
        value = p.get("value") or {}
        formatted.append(
            {
                "from": _timestamp(window.get("start")),
                "to": _timestamp(window.get("end")),
                "amount": float(value.get("value") or 0),
                "currency": str(
                    (value.get("currency") or {}).get("iso_currency") or "EUR"
                ).replace("ISO_CURRENCY_", ""),
            }
        )
    result: Dict[str, Any] = {"refundable": bool(formatted), "cancellationDeadline": None}
    if formatted:
        result["cancellationPenalties"] = formatted
    return result


def _timestamp(value: Dict[str, Any] | None) -> str:
    if not value or not value.get("seconds"):
        return ""
    return datetime.fromtimestamp(int(value["seconds"]), tz=timezone.utc).isoformat()


def _format_room(room: Dict[str, Any], nights: int) -> Dict[str, Any]:
    price = room.get("price") or {}
    total = float(price.get("total") or 0)
    hotel = room.get("hotel")
    meal_plan = room.get("mealPlan") or {}
    formatted = {
        "resultId": room.get("roomCode"),
        "hotelCode": (hotel or {}).get("code") or room.get("hotelCode"),
        "hotel": (
            {
                "code": hotel.get("code"),
                "name": hotel.get("name"),
                "stars": hotel.get("stars"),
                "chain": hotel.get("chain"),
                "location": {
                    "city": (hotel.get("location") or {}).get("city"),
                    "region": (hotel.get("location") or {}).get("region"),
                    "country": (hotel.get("location") or {}).get("country"),
                    "address": (hotel.get("location") or {}).get("address"),
                },
            }
            if hotel
            else None
        ),
        "roomCode": room.get("roomCode"),
        "roomName": room.get("roomName"),
        "totalPrice": {"amount": total, "currency": price.get("currency")},
        "nights": nights,
        "pricePerNight": round(total / nights, 2) if nights > 0 else total,
        "mealPlan": meal_plan.get("code"),
        "mealPlanDescription": meal_plan.get("description"),
        "beds": room.get("beds") or [],
        "remainingUnits": room.get("remainingUnits"),
    }
    formatted.update(_format_cancellation(room.get("cancellationPolicy")))
    return formatted


class TravelTools:
    """Handlers for the accommodation tools, backed by the travel REST API."""

    def __init__(self, api: TravelApiClient | None = None) -> None:
        self._api = api

    @property
    def api(self) -> TravelApiClient:
        return self._api or get_travel_api_client()

    async def search_accommodation(self, params: SearchAccommodationInput) -> Dict[str, Any]:
        if not _DATE_RE.match(params.check_in):
            return _failure("INVALID_DATE_FORMAT", "Check-in date must be in YYYY-MM-DD format")
        if not _DATE_RE.match(params.check_out):
            return _failure("INVALID_DATE_FORMAT", "Check-out date must be in YYYY-MM-DD format")
        try:
            check_in = date.fromisoformat(params.check_in)
            check_out = date.fromisoformat(params.check_out)
        except ValueError as e:
            return _failure("INVALID_DATE_FORMAT", str(e))
        if check_out <= check_in:
            return _failure("INVALID_DATE_RANGE", "Check-out date must be after check-in date")
        if not 1 <= params.guests <= 20:
            return _failure("INVALID_GUESTS", "Number of guests must be between 1 and 20")

        city_code = resolve_city_code(params.destination)
        if city_code is None:
            return _failure(
                "INVALID_DESTINATION",
                f'Unknown destination: "{params.destination}". Please use a valid city '
                "name (e.g. Madrid, Barcelona, Paris) or city code (e.g. MAD, BCN, PAR).",
            )

        request = {
            "startDate": params.check_in,
            "endDate": params.check_out,
            "adults": params.guests,
            "currency": params.currency,
            "cityCode": city_code,
            "countryCode": country_for_city(city_code),
        }
        logger.info("Searching availability: %s", request)
        try:
            response = await self.api.search_availability(request)
            nights = (check_out - check_in).days
            results = [_format_room(room, nights) for room in response.get("rooms") or []]
        except (RestApiError, ApiTimeoutError, NetworkError) as e:
            logger.warning("search_accommodation failed: %s", e)
            return _api_failure(
                e,
                "The search request timed out. Try reducing the date range or try again later.",
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.error("search_accommodation got a malformed response: %s", e)
            return _failure("EXECUTION_ERROR", str(e))

        return {
            "success": True,
            "searchId": response.get("searchId"),
            "expiresAt": None,
            "resultsCount": len(results),
            "results": results,
            "travellers": [{"id": i, "type": "adult"} for i in range(params.guests)],
        }

    async def get_accommodation_list(self, params: GetAccommodationListInput) -> Dict[str, Any]:
        try:
            response = await self.api.get_hotels(refresh=params.refresh)
        except (RestApiError, ApiTimeoutError, NetworkError) as e:
            logger.warning("get_accommodation_list failed: %s", e)
            return _api_failure(e, "The request timed out. Please try again later.")

        hotels = response.get("hotels") or []
        if params.location:
            term = normalize_text(params.location)
            hotels = [
                h for h in hotels
                if any(
                    term in normalize_text((h.get("ubicacion") or {}).get(key) or "")
                    for key in ("ciudad", "region", "pais")
                )
            ]
        if params.min_stars is not None:
            hotels = [h for h in hotels if (h.get("estrellas") or 0) >= params.min_stars]
        if params.max_stars is not None:
            hotels = [h for h in hotels if (h.get("estrellas") or 0) <= params.max_stars]
        if params.property_type:
            allowed = PROPERTY_TYPES[params.property_type]
            hotels = [h for h in hotels if (h.get("tipo") or "PROPERTY_TYPE_HOTEL") in allowed]

        properties = [_format_hotel(h) for h in hotels]
        return {
            "success": True,
            "count": len(properties),
            "lastUpdated": response.get("lastUpdated"),
            "properties": properties,
        }

    async def get_accommodation_info(self, params: GetAccommodationInfoInput) -> Dict[str, Any]:
        try:
            hotel = await self.api.get_hotel_by_code(params.product_code)
        except RestApiError as e:
            if e.status_code == 404:
                return _failure(
                    "NOT_FOUND", f"Hotel with code '{params.product_code}' was not found"
                )
            return _failure(e.code, e.message)
        except (ApiTimeoutError, NetworkError) as e:
            logger.warning("get_accommodation_info failed: %s", e)
            return _api_failure(e, "The request timed out. Please try again later.")

        return {"success": True, "count": 1, "properties": [_format_hotel(hotel)]}


def build_tool_registry(api: TravelApiClient | None = None) -> Dict[str, ToolSpec]:
    """Return the tools the model may call, keyed by name (in catalog order)."""
    tools = TravelTools(api)
    specs = [
        ToolSpec(
            name="search_accommodation",
            description=(
                "[REAL-TIME SEARCH] Search accommodation AVAILABILITY with current prices. "
                "Use whenever the user mentions availability, prices, explicit or relative "
                "dates, or a number of guests. Requires checkIn and checkOut as YYYY-MM-DD. "
                "Returns a searchId and options with prices."
            ),
            input_model=SearchAccommodationInput,
            handler=tools.search_accommodation,
        ),
        ToolSpec(
            name="get_accommodation_list",
            description=(
                "[STATIC CATALOG] Browse the supplier's hotel list. No availability, no "
                "prices, no dates. Only use for catalog questions such as 'what hotels "
                "are in Barcelona?'. Never use when dates, prices or guests are mentioned."
            ),
            input_model=GetAccommodationListInput,
            handler=tools.get_accommodation_list,
        ),
        ToolSpec(
            name="get_accommodation_info",
            description=(
                "[CATALOG] Get full details of ONE hotel by its code "
                "(productCode from get_accommodation_list)."
            ),
            input_model=GetAccommodationInfoInput,
            handler=tools.get_accommodation_info,
        ),
    ]
    return {spec.name: spec for spec in specs}


def get_tool_catalog(registry: Dict[str, ToolSpec]) -> List[Dict[str, Any]]:
    """Return the model-facing tool schemas for a registry."""
    return [spec.schema() for spec in registry.values()]
