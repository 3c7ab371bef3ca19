import sys
from pathlib import Path

import pytest

# Ensure the backend package root is on sys.path for direct pytest runs
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from services import geocoding as geo  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_geocode_cache(monkeypatch, tmp_path):
    """Keep the postal code cache and rate limit out of the way of every test."""
    monkeypatch.setattr(geo, "_CACHE_DB", None, raising=False)
    monkeypatch.setattr(geo, "NOMINATIM_CACHE_PATH", str(tmp_path / "geocode.sqlite"))
    monkeypatch.setattr(geo, "_MIN_INTERVAL_SEC", 0.0)
