from __future__ import annotations

import logging
import math
from typing import Any, Dict, Iterable, List, Optional

from domain.models import (
    CategoryFilter,
    Coordinate,
    DEFAULT_PLACE_NAME,
    GENERIC_CATEGORY,
    PlaceEntity,
    ResultSet,
)
from services.errors import NoResultsFound

logger = logging.getLogger(__name__)

DEFAULT_MAX_RESULTS = 50
DEFAULT_ICON = "location-dot"
CATEGORY_ICONS: Dict[str, str] = {
    CategoryFilter.RESTAURANT.value: "utensils",
    CategoryFilter.CAFE.value: "mug-hot",
    CategoryFilter.FAST_FOOD.value: "burger",
    CategoryFilter.BAR.value: "martini-glass",
    CategoryFilter.PUB.value: "beer-mug-empty",
    CategoryFilter.ICE_CREAM.value: "ice-cream",
}


def _as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None


def _coordinate_from(lat: Any, lon: Any) -> Optional[Coordinate]:
    lat_f = _as_float(lat)
    lon_f = _as_float(lon)
    if lat_f is None or lon_f is None:
        return None
    try:
        return Coordinate(lat_f, lon_f)
    except ValueError:
        return None


def extract_coordinate(record: Dict[str, Any]) -> Optional[Coordinate]:
    """Point fields first, then the aggregate center of a way/relation."""
    coord = _coordinate_from(record.get("lat"), record.get("lon"))
    if coord is not None:
        return coord
    center = record.get("center")
    if isinstance(center, dict):
        return _coordinate_from(center.get("lat"), center.get("lon"))
    return None


def category_for(amenity: Any) -> str:
    if isinstance(amenity, str) and amenity in CATEGORY_ICONS:
        return amenity
    return GENERIC_CATEGORY


def _clean_tag(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def to_place_entity(record: Dict[str, Any]) -> Optional[PlaceEntity]:
    """Convert one raw element, or return None if it has no usable position."""
    coord = extract_coordinate(record)
    if coord is None:
        return None
    tags = record.get("tags")
    if not isinstance(tags, dict):
        tags = {}
    category = category_for(tags.get("amenity"))
    osm_id = record.get("id")
    return PlaceEntity(
        coordinate=coord,
        name=_clean_tag(tags.get("name")) or DEFAULT_PLACE_NAME,
        category=category,
        cuisine=_clean_tag(tags.get("cuisine")),
        icon=CATEGORY_ICONS.get(category, DEFAULT_ICON),
        osm_type=_clean_tag(record.get("type")),
        osm_id=osm_id if isinstance(osm_id, int) and not isinstance(osm_id, bool) else None,
    )


def normalize(
    raw: Iterable[Dict[str, Any]],
    reference: Coordinate,
    cap: int = DEFAULT_MAX_RESULTS,
) -> ResultSet:
    """
    Turn raw place records into a ResultSet of at most `cap` entities.

    Source order is kept; the place service does not sort by distance, so the
    cap only bounds how much is drawn. Raises NoResultsFound when nothing
    renderable remains.
    """
    entities: List[PlaceEntity] = []
    raw_count = 0
    dropped = 0
    for record in raw:
        raw_count += 1
        if len(entities) >= cap:
            continue
        entity = to_place_entity(record) if isinstance(record, dict) else None
        if entity is None:
            dropped += 1
            continue
        entities.append(entity)

    if dropped:
        logger.debug("Dropped %d records without a usable coordinate", dropped)
    if not entities:
        raise NoResultsFound(raw_count=raw_count)
    if raw_count > len(entities) + dropped:
        logger.info("Result cap reached: kept %d of %d records", len(entities), raw_count)
    return ResultSet(entities=tuple(entities), reference=reference)


class ResultNormalizer:
    def __init__(self, cap: int = DEFAULT_MAX_RESULTS):
        self.cap = cap

    def normalize(self, raw: Iterable[Dict[str, Any]], reference: Coordinate) -> ResultSet:
        return normalize(raw, reference, cap=self.cap)
