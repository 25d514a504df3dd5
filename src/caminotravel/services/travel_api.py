import logging
from typing import Any, Dict
from urllib.parse import quote

import httpx

from ..settings import get_settings

logger = logging.getLogger(__name__)


class RestApiError(Exception):
    """The travel API answered with a non-2xx status."""

    def __init__(
        self, status_code: int, code: str, message: str, details: Any = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details


class NetworkError(Exception):
    """The travel API could not be reached."""


class ApiTimeoutError(Exception):
    """A travel API request did not complete within the configured timeout."""


def _error_code(status_code: int, body: Dict[str, Any] | None) -> str:
    details = (body or {}).get("details")
    if isinstance(details, list) and details and isinstance(details[0], dict):
        if details[0].get("code"):
            return str(details[0]["code"])
    return {
        400: "VALIDATION_ERROR",
        404: "NOT_FOUND",
        500: "SERVER_ERROR",
        504: "GATEWAY_TIMEOUT",
    }.get(status_code, f"HTTP_{status_code}")


class TravelApiClient:
    """Async client for the travel-data REST API (hotel catalog and availability)."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Return the underlying HTTP client, creating it on first use."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                headers={"Accept": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client. Idempotent."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.debug("Travel API client closed")

    async def _request(
        self,
        method: str,
        path: str,
        json_body: Any = None,
        params: Dict[str, str] | None = None,
    ) -> Any:
        try:
            response = await self.client.request(method, path, json=json_body, params=params)
        except httpx.TimeoutException as e:
            raise ApiTimeoutError(
                f"Request to {path} timed out after {self._timeout}s"
            ) from e
        except httpx.HTTPError as e:
            raise NetworkError(f"Network error: {e}") from e

        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = None
            if not isinstance(body, dict):
                body = None
            message = (
                (body or {}).get("message")
                or (body or {}).get("error")
                or f"HTTP {response.status_code}"
            )
            raise RestApiError(
                response.status_code,
                _error_code(response.status_code, body),
                str(message),
                (body or {}).get("details") or (body or {}).get("errors"),
            )

        return response.json()

    async def get_hotels(self, refresh: bool = False) -> Dict[str, Any]:
        """GET /api/hotels -> {hotels, totalHotels, lastUpdated}."""
        params = {"refresh": "true"} if refresh else None
        return await self._request("GET", "/api/hotels", params=params)

    async def get_hotel_by_code(self, code: str) -> Dict[str, Any]:
        return await self._request("GET", f"/api/hotels/{quote(code, safe='')}")

    async def search_availability(self, request: Dict[str, Any]) -> Dict[str, Any]:
        """POST /api/availability -> {searchId, rooms, totalResults, filters}."""
        return await self._request("POST", "/api/availability", json_body=request)


_travel_api_client: TravelApiClient | None = None


def get_travel_api_client() -> TravelApiClient:
    """Return the shared travel API client configured from settings."""
    global _travel_api_client
    if _travel_api_client is None:
        settings = get_settings()
        _travel_api_client = TravelApiClient(
            base_url=settings.rest_api_base_url,
            timeout=settings.rest_api_timeout_seconds,
        )
    return _travel_api_client


async def close_travel_api_client() -> None:
    """Close the shared travel API client. Idempotent."""
    global _travel_api_client
    if _travel_api_client is not None:
        await _travel_api_client.close()
        _travel_api_client = None
