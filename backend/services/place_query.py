"""
Place search against the Overpass API (OSM) with shared client headers.
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional

import requests

from domain.models import BoundingBox, CategoryFilter, Radius, SearchRegion, normalize_categories
from services.errors import QueryServiceError
from services.geocoding import NOMINATIM_HEADERS
from settings import settings

GEOMETRY_KINDS = ("node", "way", "relation")


def _region_filter(region: SearchRegion) -> str:
    if isinstance(region, Radius):
        c = region.center
        return f"(around:{region.meters},{c.latitude:.6f},{c.longitude:.6f})"
    if isinstance(region, BoundingBox):
        return f"({region.south:.6f},{region.west:.6f},{region.north:.6f},{region.east:.6f})"
    raise TypeError(f"unsupported search region {region!r}")


def build_overpass_query(
    region: SearchRegion,
    categories: Optional[Iterable[CategoryFilter]] = None,
    timeout_sec: int = 25,
) -> str:
    """
    Build one Overpass QL query covering every category.

    Each category is matched on nodes, ways and relations; `out center`
    gives the non-node elements a center point.
    """
    area = _region_filter(region)
    statements = [
        f'  {kind}["amenity"="{category.value}"]{area};'
        for category in normalize_categories(categories)
        for kind in GEOMETRY_KINDS
    ]
    return "\n".join(
        [f"[out:json][timeout:{timeout_sec}];", "("]
        + statements
        + [");", "out center tags;"]
    )


class PlaceQueryService:
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_sec: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url or settings.OVERPASS_URL
        self.timeout_sec = timeout_sec or settings.OVERPASS_TIMEOUT_SEC
        self.session = session or requests.Session()
        self.logger = logging.getLogger(__name__)

    def search(self, region: SearchRegion, categories: Optional[Iterable[CategoryFilter]] = None) -> List[dict]:
        """Run one composite query and return the raw Overpass elements."""
        query = build_overpass_query(region, categories, timeout_sec=self.timeout_sec)
        try:
            resp = self.session.post(
                self.base_url,
                data={"data": query},
                headers=NOMINATIM_HEADERS,
                # Leave the server its own timeout plus a little slack.
                timeout=self.timeout_sec + 5,
            )
            resp.raise_for_status()
        except requests.RequestException as exc:
            self.logger.warning("Overpass query failed: %s", exc)
            raise QueryServiceError(f"Place search request failed: {exc}") from exc

        try:
            data = resp.json()
        except ValueError as exc:
            self.logger.warning("Overpass returned invalid JSON: %s", exc)
            raise QueryServiceError("Place search service returned invalid JSON") from exc

        elements = data.get("elements") if isinstance(data, dict) else None
        results = [e for e in (elements or []) if isinstance(e, dict)]
        self.logger.debug(
            "PlaceQueryService.search: region=%s categories=%s got %d elements",
            region,
            [c.value for c in normalize_categories(categories)],
            len(results),
        )
        return results


_default_place_query_service: Optional[PlaceQueryService] = None


def get_default_place_query_service() -> PlaceQueryService:
    global _default_place_query_service
    if _default_place_query_service is None:
        _default_place_query_service = PlaceQueryService()
    return _default_place_query_service
