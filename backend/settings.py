import os

# Basic settings helper to read environment configuration.


def _as_bool(val: str | None, default: bool = False) -> bool:
    if val is None:
        return default
    return val.lower() in ("1", "true", "yes", "on")


def _as_int(val: str | None, default: int) -> int:
    if val is None or not val.strip():
        return default
    return int(val)


def _as_optional_str(val: str | None) -> str | None:
    if val is None or not val.strip():
        return None
    return val.strip()


class Settings:
    def __init__(self) -> None:
        self.GEOSEARCH_COUNTRY_CODE: str = os.getenv("GEOSEARCH_COUNTRY_CODE", "us")
        self.GEOSEARCH_FALLBACK_POSTAL_CODE: str | None = _as_optional_str(
            os.getenv("GEOSEARCH_FALLBACK_POSTAL_CODE")
        )
        self.GEOSEARCH_RADIUS_M: int = _as_int(os.getenv("GEOSEARCH_RADIUS_M"), 1500)
        self.GEOSEARCH_MAX_RESULTS: int = _as_int(os.getenv("GEOSEARCH_MAX_RESULTS"), 50)
        self.GEOSEARCH_DEFAULT_ZOOM: int = _as_int(os.getenv("GEOSEARCH_DEFAULT_ZOOM"), 14)
        self.GEOSEARCH_VIEWPORT_WIDTH_PX: int = _as_int(os.getenv("GEOSEARCH_VIEWPORT_WIDTH_PX"), 1024)
        self.GEOSEARCH_VIEWPORT_HEIGHT_PX: int = _as_int(os.getenv("GEOSEARCH_VIEWPORT_HEIGHT_PX"), 768)
        # "bbox" searches the default-zoom viewport around the located point, "radius" a circle.
        self.GEOSEARCH_INITIAL_REGION: str = os.getenv("GEOSEARCH_INITIAL_REGION", "bbox").lower()
        self.GEOSEARCH_LOCATE_ENABLED: bool = _as_bool(os.getenv("GEOSEARCH_LOCATE_ENABLED"), True)
        # Oldest map sessions are dropped once this many are held in memory.
        self.GEOSEARCH_MAX_SESSIONS: int = _as_int(os.getenv("GEOSEARCH_MAX_SESSIONS"), 1000)
        self.OVERPASS_URL: str = os.getenv("OVERPASS_URL", "https://overpass-api.de/api/interpreter")
        self.OVERPASS_TIMEOUT_SEC: int = _as_int(os.getenv("OVERPASS_TIMEOUT_SEC"), 25)
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()


settings = Settings()
