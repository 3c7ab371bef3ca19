from __future__ import annotations

import logging
from typing import Callable, List, Optional, Protocol, Tuple

from domain.models import Coordinate
from services.errors import GeoSearchError, LocationUnavailable
from services.locator import Locator, UnsupportedLocator

logger = logging.getLogger(__name__)


class Geocoder(Protocol):
    def geocode(self, postal_code: str) -> Coordinate:
        ...


def _clean_postal_code(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class LocationResolver:
    """
    Produce one reference coordinate for a search.

    Sources are tried strictly one after another and the first success wins:
    the manual postal code, then the device position, then the fallback
    postal code. Only when all of them fail is LocationUnavailable raised.
    """

    def __init__(self, geocoder: Geocoder, fallback_postal_code: Optional[str] = None):
        self.geocoder = geocoder
        self.fallback_postal_code = _clean_postal_code(fallback_postal_code)

    def _attempts(
        self, manual_zip: Optional[str], locator: Locator
    ) -> List[Tuple[str, Callable[[], Coordinate]]]:
        attempts: List[Tuple[str, Callable[[], Coordinate]]] = []
        if manual_zip:
            attempts.append(("postal_code", lambda: self.geocoder.geocode(manual_zip)))
        attempts.append(("device", locator.locate))
        fallback = self.fallback_postal_code
        if fallback and fallback != manual_zip:
            attempts.append(("fallback_postal_code", lambda: self.geocoder.geocode(fallback)))
        return attempts

    def resolve(self, manual_zip: Optional[str] = None, locator: Optional[Locator] = None) -> Coordinate:
        manual_zip = _clean_postal_code(manual_zip)
        failures: List[Tuple[str, GeoSearchError]] = []
        for source, attempt in self._attempts(manual_zip, locator or UnsupportedLocator()):
            try:
                coord = attempt()
            except GeoSearchError as exc:
                logger.warning("Location source %s failed: %s", source, exc.message)
                failures.append((source, exc))
                continue
            logger.info("Location resolved from %s: %.6f,%.6f", source, coord.latitude, coord.longitude)
            return coord
        # Chained to the manual postal code failure when one was given.
        cause = next((exc for source, exc in failures if source == "postal_code"), failures[-1][1])
        raise LocationUnavailable(failures) from cause
