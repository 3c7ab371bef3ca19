"""
Map session API routes.

Handlers are plain functions so FastAPI runs them in its threadpool; a slow
geocode or place query never blocks other requests.
"""
import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from api.database import sessions_db
from domain.models import (
    BoundingBox,
    CategoryFilter,
    Coordinate,
    MapViewState,
    PlaceEntity,
    ResultSet,
    SearchAffordanceState,
)
from services.errors import GeoSearchError, SearchInProgress
from services.geo_search import GeoSearchCoordinator
from services.locator import PositionFix, ReportedPositionLocator
from settings import settings

router = APIRouter()
logger = logging.getLogger(__name__)


class PositionIn(BaseModel):
    latitude: float
    longitude: float
    accuracy_m: Optional[float] = None


class SearchRequest(BaseModel):
    postal_code: Optional[str] = None
    categories: List[CategoryFilter] = Field(default_factory=list)
    position: Optional[PositionIn] = None
    # GeolocationPositionError.code reported by the browser (1, 2 or 3).
    position_error: Optional[int] = None


class SearchAreaRequest(BaseModel):
    categories: List[CategoryFilter] = Field(default_factory=list)


class BoundsModel(BaseModel):
    south: float
    west: float
    north: float
    east: float


class CoordinateResponse(BaseModel):
    latitude: float
    longitude: float


class PlaceResponse(BaseModel):
    latitude: float
    longitude: float
    name: str
    category: str
    cuisine: Optional[str] = None
    icon: str
    osm_type: Optional[str] = None
    osm_id: Optional[int] = None


class ResultSetResponse(BaseModel):
    reference: CoordinateResponse
    count: int
    places: List[PlaceResponse]


class SessionResponse(BaseModel):
    id: str
    affordance: str
    search_enabled: bool
    center: Optional[CoordinateResponse] = None
    zoom: Optional[int] = None
    viewport: Optional[BoundsModel] = None
    fit_bounds: Optional[BoundsModel] = None
    categories: List[str]
    results: Optional[ResultSetResponse] = None


def new_coordinator() -> GeoSearchCoordinator:
    return GeoSearchCoordinator()


def _coordinate_response(coord: Optional[Coordinate]) -> Optional[CoordinateResponse]:
    if coord is None:
        return None
    return CoordinateResponse(latitude=coord.latitude, longitude=coord.longitude)


def _bounds_response(box: Optional[BoundingBox]) -> Optional[BoundsModel]:
    if box is None:
        return None
    return BoundsModel(south=box.south, west=box.west, north=box.north, east=box.east)


def _place_response(place: PlaceEntity) -> PlaceResponse:
    return PlaceResponse(
        latitude=place.coordinate.latitude,
        longitude=place.coordinate.longitude,
        name=place.name,
        category=place.category,
        cuisine=place.cuisine,
        icon=place.icon,
        osm_type=place.osm_type,
        osm_id=place.osm_id,
    )


def _result_set_response(result_set: Optional[ResultSet]) -> Optional[ResultSetResponse]:
    if result_set is None:
        return None
    return ResultSetResponse(
        reference=_coordinate_response(result_set.reference),
        count=len(result_set),
        places=[_place_response(p) for p in result_set.entities],
    )


def session_to_response(session_id: str, view: MapViewState) -> SessionResponse:
    """Convert a coordinator snapshot to the API response."""
    return SessionResponse(
        id=session_id,
        affordance=view.affordance.value,
        search_enabled=view.affordance == SearchAffordanceState.IDLE,
        center=_coordinate_response(view.center),
        zoom=view.zoom,
        viewport=_bounds_response(view.viewport),
        fit_bounds=_bounds_response(view.fit_bounds),
        categories=[c.value for c in view.categories],
        results=_result_set_response(view.result_set),
    )


def _wrap_longitude(lon: float) -> float:
    if -180.0 <= lon <= 180.0:
        return lon
    return (lon + 180.0) % 360.0 - 180.0


def viewport_from_bounds(data: BoundsModel) -> BoundingBox:
    """
    Build a BoundingBox from map bounds.

    Map clients report longitudes past +/-180 once the user pans across world
    copies. Those are wrapped back; a box that then straddles the antimeridian
    is clipped to the side holding its center.
    """
    west, east = data.west, data.east
    if east - west >= 360.0:
        west, east = -180.0, 180.0
    elif west < -180.0 or east > 180.0:
        center = _wrap_longitude((west + east) / 2)
        west, east = _wrap_longitude(west), _wrap_longitude(east)
        if west > east:
            if center >= 0:
                east = 180.0
            else:
                west = -180.0
    return BoundingBox(south=data.south, west=west, north=data.north, east=east)


def _get_session_or_404(session_id: str) -> GeoSearchCoordinator:
    coordinator = sessions_db.get(session_id)
    if coordinator is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return coordinator


def _raise_http(exc: GeoSearchError) -> None:
    raise HTTPException(status_code=exc.status_code, detail=exc.to_dict()) from exc


@router.post("", response_model=SessionResponse, status_code=201)
def create_session():
    session_id = str(uuid.uuid4())
    coordinator = new_coordinator()
    # Evict the oldest sessions once the store is full.
    while sessions_db and len(sessions_db) >= settings.GEOSEARCH_MAX_SESSIONS:
        expired = next(iter(sessions_db))
        sessions_db.pop(expired)
        logger.info("Evicted map session %s", expired)
    sessions_db[session_id] = coordinator
    logger.info("Created map session %s", session_id)
    return session_to_response(session_id, coordinator.snapshot())


@router.get("/{session_id}", response_model=SessionResponse)
def get_session(session_id: str):
    coordinator = _get_session_or_404(session_id)
    return session_to_response(session_id, coordinator.snapshot())


@router.delete("/{session_id}", status_code=204)
def delete_session(session_id: str):
    _get_session_or_404(session_id)
    sessions_db.pop(session_id, None)


@router.post("/{session_id}/search", response_model=SessionResponse)
def search(session_id: str, data: SearchRequest):
    """Locate (postal code or device position) and search around that point."""
    coordinator = _get_session_or_404(session_id)
    fix = None
    if data.position is not None:
        fix = PositionFix(
            latitude=data.position.latitude,
            longitude=data.position.longitude,
            accuracy_m=data.position.accuracy_m,
        )
    locator = ReportedPositionLocator(fix=fix, error_code=data.position_error)
    try:
        coordinator.search_nearby(data.postal_code, data.categories, locator)
    except GeoSearchError as exc:
        _raise_http(exc)
    return session_to_response(session_id, coordinator.snapshot())


@router.post("/{session_id}/viewport", response_model=SessionResponse)
def viewport_changed(session_id: str, data: BoundsModel):
    """The map finished panning or zooming."""
    coordinator = _get_session_or_404(session_id)
    try:
        viewport = viewport_from_bounds(data)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=f"Invalid viewport: {exc}")
    coordinator.viewport_changed(viewport)
    return session_to_response(session_id, coordinator.snapshot())


@router.post("/{session_id}/search-area", response_model=SessionResponse)
def search_area(session_id: str, data: SearchAreaRequest):
    """The "search this area" control was pressed."""
    coordinator = _get_session_or_404(session_id)
    try:
        result_set = coordinator.search_this_area(data.categories)
        if result_set is None:
            raise SearchInProgress(coordinator.controller.state.value)
    except GeoSearchError as exc:
        _raise_http(exc)
    return session_to_response(session_id, coordinator.snapshot())
