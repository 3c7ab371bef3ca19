"""
Web Mercator helpers for working out what a map viewport covers.
"""
import math
from typing import Tuple

from domain.models import BoundingBox, Coordinate

TILE_SIZE_PX = 256
# Web Mercator is undefined at the poles; maps clamp to this latitude.
MAX_MERCATOR_LAT = 85.05112878


def _latlon_to_tile_xy(lat: float, lon: float, zoom: int) -> Tuple[float, float]:
    """Convert lat/lon to fractional Web Mercator tile coords."""
    lat = max(-MAX_MERCATOR_LAT, min(MAX_MERCATOR_LAT, lat))
    lat_rad = math.radians(lat)
    n = 2.0 ** zoom
    x = (lon + 180.0) / 360.0 * n
    y = (1.0 - math.log(math.tan(lat_rad) + 1.0 / math.cos(lat_rad)) / math.pi) / 2.0 * n
    return x, y


def _tile_xy_to_latlon(x: float, y: float, zoom: int) -> Tuple[float, float]:
    """Inverse of _latlon_to_tile_xy."""
    n = 2.0 ** zoom
    lon = x / n * 360.0 - 180.0
    lat = math.degrees(math.atan(math.sinh(math.pi * (1.0 - 2.0 * y / n))))
    return lat, lon


def viewport_around(center: Coordinate, zoom: int, width_px: int, height_px: int) -> BoundingBox:
    """Bounding box a map of width_px x height_px shows when centered at `center` and `zoom`."""
    cx, cy = _latlon_to_tile_xy(center.latitude, center.longitude, zoom)
    half_w = width_px / TILE_SIZE_PX / 2.0
    half_h = height_px / TILE_SIZE_PX / 2.0
    north, west = _tile_xy_to_latlon(cx - half_w, cy - half_h, zoom)
    south, east = _tile_xy_to_latlon(cx + half_w, cy + half_h, zoom)
    return BoundingBox(
        south=max(south, -90.0),
        west=max(west, -180.0),
        north=min(north, 90.0),
        east=min(east, 180.0),
    )
