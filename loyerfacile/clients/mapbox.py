from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import quote

import httpx

from ..config import settings
from ..domain.errors import GeocodingError


@dataclass(frozen=True)
class GeocodeResult:
    latitude: float
    longitude: float
    place_name: Optional[str]
    raw: dict[str, Any]


def build_query(address: Optional[str], ville: Optional[str], quartier: Optional[str], country_label: str) -> str:
    if address and address.strip():
        return address.strip()
    parts = [x.strip() for x in (quartier, ville) if x and x.strip()]
    parts.append(country_label)
    return ", ".join(parts)


class MapboxGeocoder:
    def __init__(self, token: Optional[str] = None, transport: Optional[httpx.BaseTransport] = None) -> None:
        self.base = settings.mapbox_base_url.rstrip("/")
        self.token = token if token is not None else settings.mapbox_token
        self.country = settings.geocode_country
        self.transport = transport

    def enabled(self) -> bool:
        return bool(self.token)

    def geocode(self, address: Optional[str], ville: Optional[str] = None, quartier: Optional[str] = None) -> GeocodeResult:
        if not self.token:
            raise GeocodingError("mapbox_token not set")

        query = build_query(address, ville, quartier, settings.geocode_country_label)
        url = f"{self.base}/{quote(query)}.json"
        params = {"access_token": self.token, "country": self.country, "limit": 1}

        try:
            with httpx.Client(timeout=20.0, transport=self.transport) as client:
                r = client.get(url, params=params)
                r.raise_for_status()
                data = r.json()
        except httpx.HTTPError as e:
            raise GeocodingError(f"geocoding request failed: {e}") from e

        features = data.get("features") if isinstance(data, dict) else None
        if not features:
            raise GeocodingError(f"no result for {query!r}")

        center = features[0].get("center") or []
        if len(center) < 2:
            raise GeocodingError(f"malformed result for {query!r}")

        # Mapbox returns [longitude, latitude]
        lon, lat = float(center[0]), float(center[1])
        return GeocodeResult(latitude=lat, longitude=lon, place_name=features[0].get("place_name"), raw=data)
