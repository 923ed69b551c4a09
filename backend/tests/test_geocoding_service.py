"""
RouteLog Backend - Geocoding Service Tests (Mocked Transport)
===============================================================

What:  Tests for GoogleGeocodingService with httpx.MockTransport.
How:   No network access; the transport returns canned Google responses.
"""

import httpx
import pytest

from app.exceptions import GeocodingServiceError
from app.services.geocoding_service import GoogleGeocodingService


def google_payload(*components, status="OK"):
    results = []
    if components:
        results.append(
            {
                "formatted_address": "123 Canal St, New Orleans, LA 70130, USA",
                "address_components": list(components),
            }
        )
    return {"status": status, "results": results}


STREET_NUMBER = {"long_name": "123", "short_name": "123", "types": ["street_number"]}
CANAL_ST = {"long_name": "Canal Street", "short_name": "Canal St", "types": ["route"]}
CITY = {"long_name": "New Orleans", "short_name": "New Orleans", "types": ["locality", "political"]}


def service_returning(payload=None, status_code=200, requests=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        return httpx.Response(status_code, json=payload or {})

    return GoogleGeocodingService(api_key="maps-key", transport=httpx.MockTransport(handler))


class TestReverseGeocode:

    @pytest.mark.asyncio
    async def test_street_from_route_component(self):
        requests = []
        service = service_returning(google_payload(STREET_NUMBER, CANAL_ST, CITY), requests=requests)

        result = await service.reverse_geocode(29.95, -90.07)

        assert result.street_name() == "Canal St"
        assert result.formatted_address.startswith("123 Canal St")
        assert requests[0].url.params["latlng"] == "29.95,-90.07"
        assert requests[0].url.params["key"] == "maps-key"

    @pytest.mark.asyncio
    async def test_no_route_component_has_no_street(self):
        service = service_returning(google_payload(STREET_NUMBER, CITY))

        result = await service.reverse_geocode(29.95, -90.07)

        assert result.street_name() is None

    @pytest.mark.asyncio
    async def test_zero_results_is_empty(self):
        service = service_returning(google_payload(status="ZERO_RESULTS"))

        result = await service.reverse_geocode(0.0, 0.0)

        assert result.components == []
        assert result.street_name() is None

    @pytest.mark.asyncio
    async def test_provider_refusal_raises(self):
        service = service_returning({"status": "REQUEST_DENIED", "error_message": "bad key"})

        with pytest.raises(GeocodingServiceError) as exc_info:
            await service.reverse_geocode(0.0, 0.0)

        assert exc_info.value.context["provider_status"] == "REQUEST_DENIED"

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        service = service_returning(status_code=500)

        with pytest.raises(GeocodingServiceError) as exc_info:
            await service.reverse_geocode(0.0, 0.0)

        assert exc_info.value.context["http_status"] == 500

    @pytest.mark.asyncio
    async def test_connection_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        service = GoogleGeocodingService(api_key="maps-key", transport=httpx.MockTransport(handler))

        with pytest.raises(GeocodingServiceError):
            await service.reverse_geocode(0.0, 0.0)


class TestConfiguration:

    def test_configured_with_key(self):
        assert GoogleGeocodingService(api_key="maps-key").is_configured()

    def test_unconfigured_without_key(self):
        assert not GoogleGeocodingService(api_key="").is_configured()
