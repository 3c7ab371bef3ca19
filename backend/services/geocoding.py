"""Postal code geocoding using OpenStreetMap Nominatim.

One structured search request per postal code, scoped to a single country,
returning the best match only. Requests share a global rate limit and
successful lookups are cached in SQLite.
"""

from __future__ import annotations

import os
import re
import sqlite3
import threading
import time
import logging
from typing import Any, Optional

import requests

from domain.models import Coordinate
from services.errors import GeocodeNotFound, GeocodeServiceError
from settings import settings

NOMINATIM_SEARCH_URL = os.getenv("NOMINATIM_SEARCH_URL", "https://nominatim.openstreetmap.org/search")
logger = logging.getLogger(__name__)
_session = requests.Session()
_last_request_ts: float = 0.0
_lock = threading.Lock()
_MIN_INTERVAL_SEC = float(os.getenv("NOMINATIM_MIN_INTERVAL", "1.1"))
_logged_ua = False
NOMINATIM_USER_AGENT = os.getenv("NOMINATIM_USER_AGENT")
NOMINATIM_REFERER = os.getenv("NOMINATIM_REFERER")
NOMINATIM_TIMEOUT_SEC = float(os.getenv("NOMINATIM_TIMEOUT_SEC", "5.0"))
NOMINATIM_CACHE_PATH = os.getenv("NOMINATIM_CACHE_PATH")
if not NOMINATIM_CACHE_PATH:
    NOMINATIM_CACHE_PATH = os.path.join(os.path.dirname(__file__), "..", "data", "postal_geocode_cache.sqlite")
NOMINATIM_CACHE_TTL_SECONDS = int(os.getenv("NOMINATIM_CACHE_TTL_SECONDS", str(90 * 24 * 3600)))

FALLBACK_UA = "nearby-eats/0.1 (contact: example@example.com)"
if NOMINATIM_USER_AGENT is None:
    logger.warning(
        "NOMINATIM_USER_AGENT not set in environment; using fallback UA. "
        "This may violate Nominatim usage policy."
    )


def _redact_email(ua: str) -> str:
    if "@" not in ua:
        return ua
    return re.sub(r"\S+@\S+", "<redacted>", ua)


_ua_value = NOMINATIM_USER_AGENT or FALLBACK_UA
NOMINATIM_HEADERS = {
    "User-Agent": _ua_value,
}
if NOMINATIM_REFERER:
    NOMINATIM_HEADERS["Referer"] = NOMINATIM_REFERER

_CACHE_DB_LOCK = threading.Lock()
_CACHE_DB: Optional[sqlite3.Connection] = None


def _throttled_get(
    url: str,
    *,
    params: dict[str, Any],
    headers: dict[str, str],
    timeout: float,
) -> requests.Response:
    """Perform a GET request with a simple global rate limit."""
    global _last_request_ts
    with _lock:
        now = time.time()
        delta = now - _last_request_ts
        if delta < _MIN_INTERVAL_SEC:
            time.sleep(_MIN_INTERVAL_SEC - delta)
        _last_request_ts = time.time()
    return _session.get(url, params=params, headers=headers, timeout=timeout)


def _get_geocode_db() -> sqlite3.Connection:
    """Lazily open the geocode cache DB and ensure schema exists."""
    global _CACHE_DB
    with _CACHE_DB_LOCK:
        if _CACHE_DB is None:
            os.makedirs(os.path.dirname(NOMINATIM_CACHE_PATH), exist_ok=True)
            _CACHE_DB = sqlite3.connect(NOMINATIM_CACHE_PATH, check_same_thread=False)
            _CACHE_DB.execute(
                """
                CREATE TABLE IF NOT EXISTS postal_geocodes (
                    postal_code TEXT NOT NULL,
                    country TEXT NOT NULL,
                    lat REAL NOT NULL,
                    lon REAL NOT NULL,
                    fetched_at INTEGER NOT NULL,
                    PRIMARY KEY (postal_code, country)
                )
                """
            )
            _CACHE_DB.commit()
        return _CACHE_DB


def _get_geocode_from_cache(postal_code: str, country: str) -> Optional[Coordinate]:
    """Lookup a postal code in the SQLite cache respecting TTL."""
    try:
        db = _get_geocode_db()
        cur = db.execute(
            "SELECT lat, lon, fetched_at FROM postal_geocodes WHERE postal_code=? AND country=?",
            (postal_code, country),
        )
        row = cur.fetchone()
        if not row:
            logger.debug("[GEOCODE] cache miss %s/%s", postal_code, country)
            return None
        lat, lon, fetched_at = row
        if NOMINATIM_CACHE_TTL_SECONDS > 0:
            age = time.time() - (fetched_at or 0)
            if age > NOMINATIM_CACHE_TTL_SECONDS:
                logger.debug("[GEOCODE] cache expired %s/%s", postal_code, country)
                return None
        logger.debug("[GEOCODE] cache hit %s/%s", postal_code, country)
        return Coordinate(lat, lon)
    except (sqlite3.Error, OSError, ValueError) as exc:
        logger.warning("[GEOCODE] cache read failed for %s/%s: %s", postal_code, country, exc)
        return None


def _store_geocode_in_cache(postal_code: str, country: str, coord: Coordinate) -> None:
    """Upsert a geocode result into the SQLite cache."""
    try:
        db = _get_geocode_db()
        db.execute(
            "INSERT OR REPLACE INTO postal_geocodes (postal_code, country, lat, lon, fetched_at) VALUES (?, ?, ?, ?, ?)",
            (postal_code, country, coord.latitude, coord.longitude, int(time.time())),
        )
        db.commit()
        logger.debug("[GEOCODE] cache store %s/%s", postal_code, country)
    except (sqlite3.Error, OSError) as exc:
        logger.warning("[GEOCODE] cache write failed for %s/%s: %s", postal_code, country, exc)


def geocode_postal_code(postal_code: str, country: Optional[str] = None) -> Coordinate:
    """Resolve a postal code to the best matching coordinate.

    Raises GeocodeNotFound when Nominatim has no match and GeocodeServiceError
    on transport errors, non-2xx answers or unparseable payloads.
    """
    code = (postal_code or "").strip()
    country_code = (country or settings.GEOSEARCH_COUNTRY_CODE).strip().lower()
    if not code:
        raise GeocodeNotFound(code, country_code)

    cached = _get_geocode_from_cache(code, country_code)
    if cached:
        return cached

    global _logged_ua
    if not _logged_ua:
        logger.debug("Nominatim User-Agent: %s", _redact_email(_ua_value))
        _logged_ua = True

    params = {
        "postalcode": code,
        "country": country_code,
        "format": "json",
        "limit": "1",
    }

    try:
        resp = _throttled_get(
            NOMINATIM_SEARCH_URL, params=params, headers=NOMINATIM_HEADERS, timeout=NOMINATIM_TIMEOUT_SEC
        )
        resp.raise_for_status()
    except requests.RequestException as exc:
        logger.warning("Nominatim search error for postalcode=%s country=%s: %s", code, country_code, exc)
        raise GeocodeServiceError(
            f"Geocoding request failed: {exc}", details={"postal_code": code}
        ) from exc

    try:
        data = resp.json()
    except ValueError as exc:
        logger.warning("Nominatim search JSON error for postalcode=%s: %s", code, exc)
        raise GeocodeServiceError("Geocoding service returned invalid JSON", details={"postal_code": code}) from exc

    if not data:
        logger.info("Nominatim has no match for postalcode=%s country=%s", code, country_code)
        raise GeocodeNotFound(code, country_code)

    best = data[0] if isinstance(data, list) else data
    try:
        coord = Coordinate(float(best["lat"]), float(best["lon"]))
    except (KeyError, TypeError, ValueError) as exc:
        raise GeocodeServiceError(
            "Geocoding service returned a malformed match", details={"postal_code": code}
        ) from exc

    _store_geocode_in_cache(code, country_code, coord)
    return coord


class NominatimGeocoder:
    """Geocoder bound to one country context."""

    def __init__(self, country: Optional[str] = None):
        self.country = (country or settings.GEOSEARCH_COUNTRY_CODE).lower()

    def geocode(self, postal_code: str) -> Coordinate:
        return geocode_postal_code(postal_code, self.country)


_default_geocoder: Optional[NominatimGeocoder] = None


def get_default_geocoder() -> NominatimGeocoder:
    global _default_geocoder
    if _default_geocoder is None:
        _default_geocoder = NominatimGeocoder()
    return _default_geocoder
