"""
RouteLog Backend - Google Reverse Geocoding Service
=====================================================

What:  Reverse-geocodes a latitude/longitude pair through the Google
       Geocoding API.
How:   One GET per lookup with `latlng=<lat>,<lng>`; the first result's
       address components are returned as a ReverseGeocodeResult.
Who:   Called by RouteService for the first and last waypoint of a new route.

Provider statuses:
    OK             → first result is parsed
    ZERO_RESULTS   → empty result (caller decides what "no street" means)
    anything else  → GeocodingServiceError (quota, key, invalid request)

No retries: a failed lookup fails the submission.
"""

import logging
import time
import uuid
from typing import Any, Dict, Optional

import httpx

from app.config import settings
from app.exceptions import GeocodingServiceError
from app.services.provider_base import (
    AddressComponent,
    ReverseGeocodeResult,
    ReverseGeocoder,
)

logger = logging.getLogger(__name__)


class GoogleGeocodingService(ReverseGeocoder):
    """
    Google Geocoding API client.

    Args:
        api_key:   Overrides settings.google_maps_api_key
        transport: httpx transport override (tests pass an httpx.MockTransport)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.google_maps_api_key
        self.url = settings.geocoding_url
        self.timeout = settings.geocoding_timeout
        self._transport = transport

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def reverse_geocode(self, lat: float, lng: float) -> ReverseGeocodeResult:
        call_id = str(uuid.uuid4())[:8]
        start_time = time.perf_counter()
        params = {"latlng": f"{lat},{lng}", "key": self.api_key}

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.get(self.url, params=params)
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "[%s] Geocoding HTTP %d for %s,%s",
                call_id, e.response.status_code, lat, lng,
            )
            raise GeocodingServiceError(
                context={"call_id": call_id, "http_status": e.response.status_code},
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error("[%s] Geocoding request failed: %s", call_id, str(e))
            raise GeocodingServiceError(
                context={"call_id": call_id, "error_type": type(e).__name__},
            ) from e

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = payload.get("status")
        logger.info(
            "[%s] Geocoding %s,%s returned %s in %.0fms",
            call_id, lat, lng, status, duration_ms,
        )

        if status == "ZERO_RESULTS":
            return ReverseGeocodeResult()
        if status != "OK":
            # REQUEST_DENIED / OVER_QUERY_LIMIT / INVALID_REQUEST / UNKNOWN_ERROR
            logger.error(
                "[%s] Geocoding provider refused request: %s %s",
                call_id, status, payload.get("error_message", ""),
            )
            raise GeocodingServiceError(
                context={"call_id": call_id, "provider_status": status},
            )

        results = payload.get("results") or []
        if not results:
            return ReverseGeocodeResult()
        return self._parse_result(results[0])

    @staticmethod
    def _parse_result(result: Dict[str, Any]) -> ReverseGeocodeResult:
        components = [
            AddressComponent(
                short_name=component.get("short_name", ""),
                long_name=component.get("long_name", ""),
                types=list(component.get("types") or []),
            )
            for component in result.get("address_components") or []
        ]
        return ReverseGeocodeResult(
            formatted_address=result.get("formatted_address"),
            components=components,
        )


# ── Singleton Instance ────────────────────────────────────────────────────
geocoding_service = GoogleGeocodingService()
