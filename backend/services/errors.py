"""
Error taxonomy for the geo search coordinator.

Every error is recoverable and user-visible: services raise, the coordinator
restores the search affordance, and the API turns them into HTTP errors.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class ErrorCode(str, Enum):
    LOCATION_UNAVAILABLE = "LOCATION_UNAVAILABLE"
    GEOCODE_NOT_FOUND = "GEOCODE_NOT_FOUND"
    GEOCODE_SERVICE_ERROR = "GEOCODE_SERVICE_ERROR"
    POSITION_UNAVAILABLE = "POSITION_UNAVAILABLE"
    QUERY_SERVICE_ERROR = "QUERY_SERVICE_ERROR"
    NO_RESULTS_FOUND = "NO_RESULTS_FOUND"
    SEARCH_IN_PROGRESS = "SEARCH_IN_PROGRESS"


class GeoSearchError(Exception):
    """Base exception for the geo search coordinator."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.error_code.value,
            "message": self.message,
            "details": self.details,
        }


class GeocodeNotFound(GeoSearchError):
    """The geocoding service returned zero matches for a postal code."""

    def __init__(self, postal_code: str, country: Optional[str] = None):
        super().__init__(
            message=f"No location found for postal code '{postal_code}'",
            error_code=ErrorCode.GEOCODE_NOT_FOUND,
            details={"postal_code": postal_code, "country": country},
            status_code=404,
        )


class GeocodeServiceError(GeoSearchError):
    """Transport failure or non-2xx answer from the geocoding service."""

    def __init__(self, message: str = "Geocoding service failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.GEOCODE_SERVICE_ERROR,
            details=details,
            status_code=502,
        )


class PositionUnavailable(GeoSearchError):
    """The device positioning source failed, timed out, or is missing."""

    def __init__(self, reason: str, message: Optional[str] = None):
        super().__init__(
            message=message or f"Device position unavailable ({reason})",
            error_code=ErrorCode.POSITION_UNAVAILABLE,
            details={"reason": reason},
            status_code=422,
        )
        self.reason = reason


class LocationUnavailable(GeoSearchError):
    """Every coordinate source was tried and none produced a coordinate."""

    def __init__(self, attempts: List[Tuple[str, GeoSearchError]]):
        super().__init__(
            message="Unable to determine a location to search around",
            error_code=ErrorCode.LOCATION_UNAVAILABLE,
            details={
                "attempts": [
                    {"source": source, "code": err.error_code.value, "message": err.message}
                    for source, err in attempts
                ]
            },
            status_code=422,
        )
        self.attempts = attempts


class QueryServiceError(GeoSearchError):
    """Transport failure or non-2xx answer from the place-data service."""

    def __init__(self, message: str = "Place search service failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.QUERY_SERVICE_ERROR,
            details=details,
            status_code=502,
        )


class NoResultsFound(GeoSearchError):
    """The query succeeded but nothing renderable came back."""

    def __init__(self, raw_count: int = 0):
        super().__init__(
            message="No places found in this area",
            error_code=ErrorCode.NO_RESULTS_FOUND,
            details={"raw_count": raw_count},
            status_code=404,
        )


class SearchInProgress(GeoSearchError):
    """The "search this area" control is not enabled right now."""

    def __init__(self, state: str):
        super().__init__(
            message="Search this area is not available right now",
            error_code=ErrorCode.SEARCH_IN_PROGRESS,
            details={"state": state},
            status_code=409,
        )
