"""
Tests for the geo search coordinator action handlers.
"""
import pytest

from domain.models import BoundingBox, CategoryFilter, Coordinate, Radius, SearchAffordanceState
from services.errors import LocationUnavailable, NoResultsFound, QueryServiceError
from services.geo_search import GeoSearchCoordinator
from services.location_resolver import LocationResolver
from services.result_normalizer import ResultNormalizer

from fakes import FakeGeocoder, FakeLocator, FakeQueryService, element

MANHATTAN = Coordinate(40.7506, -73.9971)
VIEW = BoundingBox(south=40.74, west=-74.01, north=40.76, east=-73.98)


def _coordinator(query=None, geocoder=None, initial_region="bbox", locate_enabled=True):
    return GeoSearchCoordinator(
        resolver=LocationResolver(geocoder or FakeGeocoder({"10001": MANHATTAN})),
        query_service=query or FakeQueryService([element(40.75, -73.99, name="Joe's", id=1)]),
        normalizer=ResultNormalizer(cap=50),
        initial_region=initial_region,
        radius_m=1200,
        default_zoom=15,
        locate_enabled=locate_enabled,
    )


class TestSearchNearby:
    def test_success_replaces_view_and_shows_control(self):
        coordinator = _coordinator()

        result = coordinator.search_nearby("10001", [CategoryFilter.CAFE])

        view = coordinator.snapshot()
        assert view.result_set is result
        assert view.center == MANHATTAN
        assert view.zoom == 15
        assert view.fit_bounds == result.display_bounds
        assert view.categories == (CategoryFilter.CAFE,)
        assert view.affordance == SearchAffordanceState.IDLE

    def test_default_initial_region_is_viewport_box_around_location(self):
        query = FakeQueryService([element(40.75, -73.99)])
        coordinator = _coordinator(query=query)

        coordinator.search_nearby("10001", [])

        region, categories = query.calls[0]
        assert isinstance(region, BoundingBox)
        assert region.south < MANHATTAN.latitude < region.north
        assert categories == (CategoryFilter.RESTAURANT, CategoryFilter.CAFE, CategoryFilter.FAST_FOOD)

    def test_radius_initial_region(self):
        query = FakeQueryService([element(40.75, -73.99)])
        coordinator = _coordinator(query=query, initial_region="radius")

        coordinator.search_nearby("10001", [])

        assert query.calls[0][0] == Radius(center=MANHATTAN, meters=1200)

    def test_postal_code_beats_device_position(self):
        locator = FakeLocator(Coordinate(37.7749, -122.4194))
        coordinator = _coordinator()

        result = coordinator.search_nearby("10001", [], locator)

        assert result.reference == MANHATTAN
        assert locator.calls == 0

    def test_location_failure_issues_no_query_and_keeps_state(self):
        query = FakeQueryService([element(40.75, -73.99)])
        coordinator = _coordinator(query=query)
        first = coordinator.search_nearby("10001", [])
        calls_before = len(query.calls)

        with pytest.raises(LocationUnavailable):
            coordinator.search_nearby(None, [], FakeLocator(reason="permission_denied"))

        assert len(query.calls) == calls_before
        assert coordinator.snapshot().result_set is first

    def test_positioning_disabled_skips_locator(self):
        locator = FakeLocator(Coordinate(37.7749, -122.4194))
        coordinator = _coordinator(locate_enabled=False)

        with pytest.raises(LocationUnavailable):
            coordinator.search_nearby(None, [], locator)
        assert locator.calls == 0

    def test_no_results_keeps_prior_markers(self):
        query = FakeQueryService([element(40.75, -73.99)])
        coordinator = _coordinator(query=query)
        first = coordinator.search_nearby("10001", [])
        query.elements = []

        with pytest.raises(NoResultsFound):
            coordinator.search_nearby("10001", [CategoryFilter.BAR])

        view = coordinator.snapshot()
        assert view.result_set is first
        assert view.categories != (CategoryFilter.BAR,)

    def test_first_search_without_results_shows_control(self):
        coordinator = _coordinator(query=FakeQueryService([]))

        with pytest.raises(NoResultsFound):
            coordinator.search_nearby("10001", [])

        view = coordinator.snapshot()
        assert view.result_set is None
        assert view.affordance == SearchAffordanceState.IDLE

    def test_hidden_control_stays_hidden_when_first_search_fails(self):
        coordinator = _coordinator(query=FakeQueryService(fail=True))

        with pytest.raises(QueryServiceError):
            coordinator.search_nearby("10001", [])

        view = coordinator.snapshot()
        assert view.result_set is None
        assert view.affordance == SearchAffordanceState.HIDDEN


class TestSearchThisArea:
    def _ready(self, query):
        coordinator = _coordinator(query=query)
        coordinator.search_nearby("10001", [])
        coordinator.viewport_changed(VIEW)
        return coordinator

    def test_queries_current_viewport_not_last_location(self):
        query = FakeQueryService([element(40.75, -73.99)])
        coordinator = self._ready(query)

        result = coordinator.search_this_area([CategoryFilter.CAFE])

        assert query.calls[-1] == (VIEW, (CategoryFilter.CAFE,))
        assert result.reference == VIEW.center
        view = coordinator.snapshot()
        assert view.result_set is result
        assert view.viewport == VIEW
        assert view.affordance == SearchAffordanceState.HIDDEN

    def test_success_then_move_rearms(self):
        coordinator = self._ready(FakeQueryService([element(40.75, -73.99)]))
        coordinator.search_this_area()

        coordinator.viewport_changed(BoundingBox(south=40.0, west=-74.0, north=40.1, east=-73.9))

        assert coordinator.snapshot().affordance == SearchAffordanceState.IDLE

    def test_move_during_search_leaves_control_enabled(self):
        query = FakeQueryService([element(40.75, -73.99)])
        coordinator = self._ready(query)
        moved = BoundingBox(south=40.70, west=-74.05, north=40.72, east=-74.00)

        def pan():
            query.on_search = None
            coordinator.viewport_changed(moved)

        query.on_search = pan
        coordinator.search_this_area()

        view = coordinator.snapshot()
        assert view.viewport == moved
        assert view.affordance == SearchAffordanceState.IDLE

    def test_trigger_during_search_is_ignored(self):
        query = FakeQueryService([element(40.75, -73.99)])
        coordinator = self._ready(query)
        nested = {}

        def press_again():
            query.on_search = None
            nested["result"] = coordinator.search_this_area()

        query.on_search = press_again
        calls_before = len(query.calls)

        coordinator.search_this_area()

        assert nested["result"] is None
        assert len(query.calls) == calls_before + 1

    def test_no_results_keeps_markers_and_returns_to_idle(self):
        query = FakeQueryService([element(40.75, -73.99)])
        coordinator = self._ready(query)
        before = coordinator.snapshot()
        query.elements = []

        with pytest.raises(NoResultsFound):
            coordinator.search_this_area()

        after = coordinator.snapshot()
        assert after.result_set is before.result_set
        assert after.fit_bounds == before.fit_bounds
        assert after.affordance == SearchAffordanceState.IDLE

    def test_query_failure_returns_to_idle_for_retry(self):
        query = FakeQueryService([element(40.75, -73.99)])
        coordinator = self._ready(query)
        query.fail = True

        with pytest.raises(QueryServiceError):
            coordinator.search_this_area()
        assert coordinator.snapshot().affordance == SearchAffordanceState.IDLE

        query.fail = False
        assert coordinator.search_this_area() is not None

    def test_unexpected_error_does_not_leave_control_disabled(self):
        query = FakeQueryService([element(40.75, -73.99)])
        coordinator = self._ready(query)

        def explode():
            raise RuntimeError("bug")

        query.on_search = explode

        with pytest.raises(RuntimeError):
            coordinator.search_this_area()
        assert coordinator.snapshot().affordance == SearchAffordanceState.IDLE

    def test_ignored_before_any_viewport(self):
        query = FakeQueryService([element(40.75, -73.99)])
        coordinator = _coordinator(query=query)

        assert coordinator.search_this_area() is None
        assert query.calls == []
