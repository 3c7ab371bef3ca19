import pytest

from domain.models import BoundingBox, Coordinate
from services.errors import NoResultsFound
from services.result_normalizer import DEFAULT_ICON, ResultNormalizer, extract_coordinate, normalize

from fakes import element

REFERENCE = Coordinate(40.7506, -73.9971)


def test_point_and_center_records_are_both_kept():
    raw = [
        {"lat": 40.75, "lon": -73.99, "tags": {"amenity": "cafe", "name": "Joe's"}},
        {"center": {"lat": 40.76, "lon": -73.98}, "tags": {"amenity": "relation-only"}},
    ]

    result = normalize(raw, REFERENCE, cap=50)

    assert len(result) == 2
    first, second = result.entities
    assert first.name == "Joe's"
    assert first.category == "cafe"
    assert first.icon == "mug-hot"
    assert second.coordinate == Coordinate(40.76, -73.98)
    assert second.category == "place"
    assert second.icon == DEFAULT_ICON
    assert second.name == "Unnamed place"
    assert second.cuisine is None


def test_point_fields_win_over_center():
    coord = extract_coordinate({"lat": 1.0, "lon": 2.0, "center": {"lat": 3.0, "lon": 4.0}})
    assert coord == Coordinate(1.0, 2.0)


def test_numeric_strings_are_accepted():
    assert extract_coordinate({"lat": "40.5", "lon": "-73.5"}) == Coordinate(40.5, -73.5)


@pytest.mark.parametrize(
    "record",
    [
        {"tags": {"amenity": "cafe"}},
        {"type": "relation", "id": 7, "members": []},
        {"lat": None, "lon": -73.9},
        {"lat": "abc", "lon": "def"},
        {"lat": 95.0, "lon": 10.0},
        {"lat": float("nan"), "lon": 10.0},
        {"lat": True, "lon": 10.0},
        {"center": {"lat": 40.0}},
        {"center": "40.0,-73.0"},
    ],
)
def test_records_without_usable_coordinate_are_dropped(record):
    raw = [record, element(40.75, -73.99, name="Kept")]

    result = normalize(raw, REFERENCE)

    assert [e.name for e in result.entities] == ["Kept"]


def test_cuisine_and_osm_identity_are_carried():
    raw = [element(40.75, -73.99, amenity="restaurant", name="Pho 10", id=42)]
    raw[0]["tags"]["cuisine"] = "vietnamese"

    entity = normalize(raw, REFERENCE).entities[0]

    assert entity.cuisine == "vietnamese"
    assert entity.osm_type == "node"
    assert entity.osm_id == 42
    assert entity.icon == "utensils"


def test_cap_plus_one_records_keeps_first_cap_in_order():
    cap = 50
    raw = [element(40.0 + i * 0.001, -73.0, name=f"place-{i}", id=i) for i in range(cap + 1)]

    result = normalize(raw, REFERENCE, cap=cap)

    assert len(result) == cap
    assert [e.name for e in result.entities] == [f"place-{i}" for i in range(cap)]


def test_length_is_bounded_by_valid_records_and_cap():
    raw = [element(40.0, -73.0, id=i) for i in range(5)] + [{"tags": {}}] * 3

    assert len(normalize(raw, REFERENCE, cap=50)) == 5
    assert len(normalize(raw, REFERENCE, cap=2)) == 2


def test_no_proximity_sort_is_applied():
    far = element(41.5, -72.0, name="far", id=1)
    near = element(40.7507, -73.9972, name="near", id=2)

    result = normalize([far, near], REFERENCE)

    assert [e.name for e in result.entities] == ["far", "near"]


def test_normalizing_twice_is_identical():
    raw = [element(40.75, -73.99, name="a", id=1), {"center": {"lat": 40.7, "lon": -73.9}, "tags": {}}]

    assert normalize(raw, REFERENCE) == normalize(raw, REFERENCE)


def test_empty_output_raises_no_results_found():
    with pytest.raises(NoResultsFound) as excinfo:
        normalize([{"tags": {"amenity": "cafe"}}], REFERENCE)
    assert excinfo.value.details["raw_count"] == 1

    with pytest.raises(NoResultsFound):
        normalize([], REFERENCE)


def test_display_bounds_cover_reference_and_results():
    raw = [element(40.70, -74.05, id=1), element(40.80, -73.95, id=2)]

    bounds = normalize(raw, REFERENCE).display_bounds

    assert bounds == BoundingBox(south=40.70, west=-74.05, north=40.80, east=-73.95)


def test_display_bounds_stretch_to_reference():
    raw = [element(40.80, -73.95, id=1)]

    bounds = normalize(raw, REFERENCE).display_bounds

    assert bounds == BoundingBox(south=40.7506, west=-73.9971, north=40.80, east=-73.95)


def test_result_normalizer_uses_its_cap():
    raw = [element(40.0, -73.0, id=i) for i in range(10)]
    assert len(ResultNormalizer(cap=3).normalize(raw, REFERENCE)) == 3
