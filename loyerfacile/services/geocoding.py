from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Protocol

from sqlalchemy.orm import Session

from ..clients.mapbox import GeocodeResult, MapboxGeocoder
from ..domain.errors import GeocodingError
from ..models import Property
from .realtime import hub

log = logging.getLogger("loyerfacile.geocoding")


class Geocoder(Protocol):
    def geocode(self, address: Optional[str], ville: Optional[str] = None, quartier: Optional[str] = None) -> GeocodeResult: ...


@dataclass
class GeocodeRun:
    updated: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)


def ensure_coordinates(db: Session, properties: Iterable[Property], geocoder: Optional[Geocoder] = None) -> GeocodeRun:
    """
    Geocode properties without coordinates and persist the result.

    A property that cannot be geocoded is logged and left without
    coordinates; the others still proceed.
    """
    gc = geocoder or MapboxGeocoder()
    run = GeocodeRun()
    for prop in properties:
        if prop.latitude is not None and prop.longitude is not None:
            continue
        try:
            res = gc.geocode(prop.adresse, prop.ville, prop.quartier)
        except GeocodingError as e:
            log.warning("geocoding failed: %s", e, extra={"property_id": prop.id})
            run.failed.append(int(prop.id))
            continue
        prop.latitude = res.latitude
        prop.longitude = res.longitude
        db.commit()
        hub.publish("properties", "update", prop.id, space_id=prop.space_id)
        run.updated.append(int(prop.id))
    return run
