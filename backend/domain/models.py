"""
Core domain models for the nearby places search.
These are framework-agnostic and can be used across all services.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Tuple, Union
import math


class CategoryFilter(str, Enum):
    """Place categories that can be searched. Values match the OSM amenity tag."""
    RESTAURANT = "restaurant"
    CAFE = "cafe"
    FAST_FOOD = "fast_food"
    BAR = "bar"
    PUB = "pub"
    ICE_CREAM = "ice_cream"


DEFAULT_CATEGORIES = (
    CategoryFilter.RESTAURANT,
    CategoryFilter.CAFE,
    CategoryFilter.FAST_FOOD,
)

GENERIC_CATEGORY = "place"
DEFAULT_PLACE_NAME = "Unnamed place"


def normalize_categories(categories: Optional[Iterable[Union[CategoryFilter, str]]]) -> Tuple[CategoryFilter, ...]:
    """
    Deduplicate a category selection and return it in enum order.

    An empty (or missing) selection means the default set.
    """
    selected = {CategoryFilter(c) for c in (categories or [])}
    if not selected:
        selected = set(DEFAULT_CATEGORIES)
    return tuple(c for c in CategoryFilter if c in selected)


class SearchAffordanceState(str, Enum):
    """Visibility / enabled state of the "search this area" control."""
    HIDDEN = "hidden"
    IDLE = "idle"
    SEARCHING = "searching"


def _check_range(name: str, value: float, low: float, high: float) -> float:
    value = float(value)
    if math.isnan(value) or not (low <= value <= high):
        raise ValueError(f"{name} {value!r} outside [{low}, {high}]")
    return value


@dataclass(frozen=True)
class Coordinate:
    """A WGS84 point. Invalid values are rejected at construction."""
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "latitude", _check_range("latitude", self.latitude, -90.0, 90.0))
        object.__setattr__(self, "longitude", _check_range("longitude", self.longitude, -180.0, 180.0))


@dataclass(frozen=True)
class Radius:
    """Search region: everything within `meters` of `center`."""
    center: Coordinate
    meters: int

    def __post_init__(self) -> None:
        if self.meters <= 0:
            raise ValueError(f"radius must be positive, got {self.meters}")


@dataclass(frozen=True)
class BoundingBox:
    """Search region / viewport expressed as south/west/north/east extents."""
    south: float
    west: float
    north: float
    east: float

    def __post_init__(self) -> None:
        for name, low, high in (("south", -90.0, 90.0), ("north", -90.0, 90.0),
                                ("west", -180.0, 180.0), ("east", -180.0, 180.0)):
            object.__setattr__(self, name, _check_range(name, getattr(self, name), low, high))
        if self.south > self.north:
            raise ValueError(f"south {self.south} is above north {self.north}")

    @property
    def center(self) -> Coordinate:
        return Coordinate((self.south + self.north) / 2, (self.west + self.east) / 2)

    @classmethod
    def covering(cls, points: Iterable[Coordinate]) -> Optional["BoundingBox"]:
        """Minimal box covering all points, or None when there are none."""
        pts = list(points)
        if not pts:
            return None
        lats = [p.latitude for p in pts]
        lons = [p.longitude for p in pts]
        return cls(south=min(lats), west=min(lons), north=max(lats), east=max(lons))


SearchRegion = Union[Radius, BoundingBox]


@dataclass(frozen=True)
class PlaceEntity:
    """A normalized, renderable place."""
    coordinate: Coordinate
    name: str = DEFAULT_PLACE_NAME
    category: str = GENERIC_CATEGORY
    cuisine: Optional[str] = None
    icon: str = "location-dot"
    osm_type: Optional[str] = None
    osm_id: Optional[int] = None


@dataclass(frozen=True)
class ResultSet:
    """
    Places found by one query plus the reference coordinate of the search.

    A new ResultSet always replaces the previous one; they are never merged.
    """
    entities: Tuple[PlaceEntity, ...]
    reference: Coordinate

    def __len__(self) -> int:
        return len(self.entities)

    @property
    def display_bounds(self) -> Optional[BoundingBox]:
        """Box covering the reference and every result; None without results."""
        if not self.entities:
            return None
        return BoundingBox.covering([self.reference] + [e.coordinate for e in self.entities])


@dataclass
class MapViewState:
    """What the map collaborator should currently show for one session."""
    center: Optional[Coordinate] = None
    zoom: Optional[int] = None
    viewport: Optional[BoundingBox] = None
    fit_bounds: Optional[BoundingBox] = None
    result_set: Optional[ResultSet] = None
    affordance: SearchAffordanceState = SearchAffordanceState.HIDDEN
    categories: Tuple[CategoryFilter, ...] = field(default_factory=lambda: DEFAULT_CATEGORIES)
