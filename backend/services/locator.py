"""
Device positioning source.

The browser runs the one-shot geolocation request and posts what it got
(a fix or an error code) with the search; the locator turns that report
into a Coordinate or a PositionUnavailable failure.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from domain.models import Coordinate
from services.errors import PositionUnavailable

logger = logging.getLogger(__name__)

PERMISSION_DENIED = "permission_denied"
POSITION_UNAVAILABLE = "position_unavailable"
TIMEOUT = "timeout"
UNSUPPORTED = "unsupported"

# GeolocationPositionError codes as reported by browsers.
_BROWSER_ERROR_CODES = {
    1: PERMISSION_DENIED,
    2: POSITION_UNAVAILABLE,
    3: TIMEOUT,
}


def reason_from_code(code: Optional[int]) -> str:
    return _BROWSER_ERROR_CODES.get(code, POSITION_UNAVAILABLE) if code is not None else UNSUPPORTED


class Locator(Protocol):
    def locate(self) -> Coordinate:
        ...


@dataclass(frozen=True)
class PositionFix:
    latitude: float
    longitude: float
    accuracy_m: Optional[float] = None


class ReportedPositionLocator:
    """Locator backed by the position the page reported for this search."""

    def __init__(self, fix: Optional[PositionFix] = None, error_code: Optional[int] = None):
        self.fix = fix
        self.error_code = error_code

    def locate(self) -> Coordinate:
        if self.fix is None:
            raise PositionUnavailable(reason_from_code(self.error_code))
        try:
            coord = Coordinate(self.fix.latitude, self.fix.longitude)
        except ValueError as exc:
            raise PositionUnavailable(POSITION_UNAVAILABLE, f"Reported position is invalid: {exc}") from exc
        logger.debug(
            "Device position %.6f,%.6f (accuracy %s m)",
            coord.latitude,
            coord.longitude,
            self.fix.accuracy_m,
        )
        return coord


class UnsupportedLocator:
    """Stands for a host without any positioning capability."""

    def locate(self) -> Coordinate:
        raise PositionUnavailable(UNSUPPORTED)
