"""
In-memory session storage.

Each map page gets its own coordinator; sessions live as long as the process.
"""
from typing import Dict

from services.geo_search import GeoSearchCoordinator

# In-memory storage
sessions_db: Dict[str, GeoSearchCoordinator] = {}
