"""
Geo search coordinator: the action handlers behind the map page.

Each public method is one user-facing trigger (form submit / auto-locate,
viewport move end, "search this area"). Failures propagate to the caller
after the search control has been put back into a retryable state; the
map view state is only ever replaced by a successful search.
"""
from __future__ import annotations

import dataclasses
import logging
import threading
from typing import Iterable, Optional, Tuple

from domain.models import (
    BoundingBox,
    CategoryFilter,
    Coordinate,
    MapViewState,
    Radius,
    ResultSet,
    SearchRegion,
    normalize_categories,
)
from services.errors import GeoSearchError, NoResultsFound
from services.geocoding import get_default_geocoder
from services.location_resolver import LocationResolver
from services.locator import Locator, UnsupportedLocator
from services.place_query import PlaceQueryService, get_default_place_query_service
from services.result_normalizer import ResultNormalizer
from services.viewport import viewport_around
from services.viewport_search import ViewportSearchController
from settings import settings

logger = logging.getLogger(__name__)


class GeoSearchCoordinator:
    def __init__(
        self,
        resolver: Optional[LocationResolver] = None,
        query_service: Optional[PlaceQueryService] = None,
        normalizer: Optional[ResultNormalizer] = None,
        controller: Optional[ViewportSearchController] = None,
        initial_region: Optional[str] = None,
        radius_m: Optional[int] = None,
        default_zoom: Optional[int] = None,
        locate_enabled: Optional[bool] = None,
    ):
        self.resolver = resolver or LocationResolver(
            get_default_geocoder(), fallback_postal_code=settings.GEOSEARCH_FALLBACK_POSTAL_CODE
        )
        self.query_service = query_service or get_default_place_query_service()
        self.normalizer = normalizer or ResultNormalizer(cap=settings.GEOSEARCH_MAX_RESULTS)
        self.controller = controller or ViewportSearchController()
        self.initial_region = initial_region or settings.GEOSEARCH_INITIAL_REGION
        self.radius_m = radius_m or settings.GEOSEARCH_RADIUS_M
        self.default_zoom = default_zoom or settings.GEOSEARCH_DEFAULT_ZOOM
        self.locate_enabled = settings.GEOSEARCH_LOCATE_ENABLED if locate_enabled is None else locate_enabled
        self._view = MapViewState()
        self._view_lock = threading.Lock()

    def initial_search_region(self, reference: Coordinate) -> SearchRegion:
        if self.initial_region == "radius":
            return Radius(center=reference, meters=self.radius_m)
        return viewport_around(
            reference,
            self.default_zoom,
            settings.GEOSEARCH_VIEWPORT_WIDTH_PX,
            settings.GEOSEARCH_VIEWPORT_HEIGHT_PX,
        )

    def _apply(
        self,
        result_set: ResultSet,
        categories: Tuple[CategoryFilter, ...],
        center: Optional[Coordinate] = None,
        zoom: Optional[int] = None,
    ) -> None:
        """Swap in a new result set together with its bound, atomically."""
        with self._view_lock:
            self._view.result_set = result_set
            self._view.fit_bounds = result_set.display_bounds
            self._view.categories = categories
            if center is not None:
                self._view.center = center
            if zoom is not None:
                self._view.zoom = zoom

    def search_nearby(
        self,
        manual_zip: Optional[str] = None,
        categories: Optional[Iterable[CategoryFilter]] = None,
        locator: Optional[Locator] = None,
    ) -> ResultSet:
        """Form submit / page load: locate, then search around the location."""
        selected = normalize_categories(categories)
        if not self.locate_enabled:
            locator = UnsupportedLocator()
        reference = self.resolver.resolve(manual_zip, locator)
        region = self.initial_search_region(reference)
        raw = self.query_service.search(region, selected)
        try:
            result_set = self.normalizer.normalize(raw, reference)
        except NoResultsFound:
            # The query completed: show the control, prior map state stays.
            self.controller.mark_ready()
            raise
        self._apply(result_set, selected, center=reference, zoom=self.default_zoom)
        self.controller.mark_ready()
        logger.info(
            "Nearby search around %.5f,%.5f found %d places",
            reference.latitude,
            reference.longitude,
            len(result_set),
        )
        return result_set

    def viewport_changed(self, viewport: BoundingBox) -> None:
        """Map reports that panning / zooming ended."""
        with self._view_lock:
            self._view.viewport = viewport
        self.controller.viewport_moved(viewport)

    def search_this_area(self, categories: Optional[Iterable[CategoryFilter]] = None) -> Optional[ResultSet]:
        """
        Search the current viewport.

        Returns None without querying when the control is not enabled.
        """
        viewport = self.controller.begin_search()
        if viewport is None:
            return None
        selected = normalize_categories(categories)
        succeeded = False
        try:
            raw = self.query_service.search(viewport, selected)
            result_set = self.normalizer.normalize(raw, viewport.center)
            self._apply(result_set, selected)
            succeeded = True
        except GeoSearchError as exc:
            logger.warning("Viewport search failed: %s", exc.message)
            raise
        finally:
            self.controller.finish_search(success=succeeded)
        logger.info("Viewport search found %d places", len(result_set))
        return result_set

    def snapshot(self) -> MapViewState:
        with self._view_lock:
            return dataclasses.replace(self._view, affordance=self.controller.state)
