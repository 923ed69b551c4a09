"""
RouteLog Backend - Abstract Provider Interfaces
=================================================

What:  Contracts for the two third-party services a route submission touches.
How:   Concrete clients inherit from these and implement the single call each
       provider offers. RouteService depends only on these interfaces, so tests
       and alternative providers can be swapped in.

Implementations:
    ReverseGeocoder  → GoogleGeocodingService (geocoding_service.py)
    ImageHost        → CloudinaryImageService (image_service.py)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

# Google address-component type that identifies a street
STREET_COMPONENT_TYPE = "route"


@dataclass
class AddressComponent:
    short_name: str
    long_name: str = ""
    types: List[str] = field(default_factory=list)


@dataclass
class ReverseGeocodeResult:
    """
    First result of a reverse-geocoding lookup.

    An empty `components` list means the provider found nothing at the point.
    """

    formatted_address: Optional[str] = None
    components: List[AddressComponent] = field(default_factory=list)

    def street_name(self) -> Optional[str]:
        """Short name of the first street-typed component, or None if there is none."""
        for component in self.components:
            if STREET_COMPONENT_TYPE in component.types:
                return component.short_name
        return None


class ReverseGeocoder(ABC):
    """
    Turns a coordinate into a structured address.

    Contract:
        - reverse_geocode() never returns None; "nothing found" is an empty result
        - Transport and provider failures raise GeocodingServiceError
    """

    @abstractmethod
    async def reverse_geocode(self, lat: float, lng: float) -> ReverseGeocodeResult:
        ...

    @abstractmethod
    def is_configured(self) -> bool:
        """True when credentials are present (used by the health check)."""
        ...


class ImageHost(ABC):
    """
    Stores an image and returns a public URL.

    Contract:
        - upload_base64() returns the hosted https URL
        - Any failure (bad payload, provider error, network) raises ImageUploadError
    """

    @abstractmethod
    async def upload_base64(self, image_base64: str) -> str:
        ...

    @abstractmethod
    def is_configured(self) -> bool:
        ...
