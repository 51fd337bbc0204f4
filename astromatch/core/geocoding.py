# astromatch/core/geocoding.py
# -*- coding: utf-8 -*-
"""
City name -> coordinates.

Resolution chain (first hit wins, never raises):
  1. exact match in the built-in city table (case/whitespace-insensitive)
  2. substring match against the table, either direction
  3. OpenStreetMap Nominatim through geopy, throttled and cached per instance
  4. fixed fallback (Montreal)

Timezone offsets are whole-hour estimates (longitude / 15) for looked-up
places; table entries carry their standard offset.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional, Protocol, Tuple
import logging

from geopy.exc import GeopyError
from geopy.extra.rate_limiter import RateLimiter
from geopy.geocoders import Nominatim

from astromatch.core.zodiac import round_half_up
from astromatch.utils.cache import LRUCache

log = logging.getLogger(__name__)

__all__ = [
    "GeoResult",
    "GeocodingSource",
    "CITY_TABLE",
    "FALLBACK",
    "CityGeocoder",
    "estimate_utc_offset",
]

DEFAULT_USER_AGENT = "astromatch-geocoder"

# name -> (lat, lon, utc offset hours)
CITY_TABLE: Dict[str, Tuple[float, float, float]] = {
    "new york": (40.7128, -74.0060, -5),
    "los angeles": (34.0522, -118.2437, -8),
    "chicago": (41.8781, -87.6298, -6),
    "london": (51.5074, -0.1278, 0),
    "paris": (48.8566, 2.3522, 1),
    "tokyo": (35.6762, 139.6503, 9),
    "sydney": (-33.8688, 151.2093, 11),
    "montreal": (45.5017, -73.5673, -5),
    "toronto": (43.6532, -79.3832, -5),
    "vancouver": (49.2827, -123.1207, -8),
    "berlin": (52.5200, 13.4050, 1),
    "madrid": (40.4168, -3.7038, 1),
    "rome": (41.9028, 12.4964, 1),
    "beijing": (39.9042, 116.4074, 8),
    "shanghai": (31.2304, 121.4737, 8),
    "dubai": (25.2048, 55.2708, 4),
    "singapore": (1.3521, 103.8198, 8),
    "mumbai": (19.0760, 72.8777, 5.5),
    "delhi": (28.7041, 77.1025, 5.5),
    "cairo": (30.0444, 31.2357, 2),
    "são paulo": (-23.5505, -46.6333, -3),
    "sao paulo": (-23.5505, -46.6333, -3),
    "mexico city": (19.4326, -99.1332, -6),
    "buenos aires": (-34.6037, -58.3816, -3),
    "moscow": (55.7558, 37.6173, 3),
    "seoul": (37.5665, 126.9780, 9),
    "hong kong": (22.3193, 114.1694, 8),
    "bangkok": (13.7563, 100.5018, 7),
    "istanbul": (41.0082, 28.9784, 3),
    "amsterdam": (52.3676, 4.9041, 1),
    "barcelona": (41.3851, 2.1734, 1),
    "lisbon": (38.7223, -9.1393, 0),
    "riyadh": (24.7136, 46.6753, 3),
    "johannesburg": (-26.2041, 28.0473, 2),
    "casablanca": (33.5731, -7.5898, 1),
    "algiers": (36.7538, 3.0588, 1),
    "tunis": (36.8065, 10.1815, 1),
    "miami": (25.7617, -80.1918, -5),
    "san francisco": (37.7749, -122.4194, -8),
    "houston": (29.7604, -95.3698, -6),
    "phoenix": (33.4484, -112.0740, -7),
    "denver": (39.7392, -104.9903, -7),
    "seattle": (47.6062, -122.3321, -8),
    "ottawa": (45.4215, -75.6972, -5),
}

FALLBACK: Tuple[float, float, float] = CITY_TABLE["montreal"]


@dataclass(frozen=True)
class GeoResult:
    latitude: float
    longitude: float
    timezone_offset_hours: float
    display_name: str
    source: str  # table | table_partial | nominatim | fallback | coordinates

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class GeocodingSource(Protocol):
    def resolve(self, city: Optional[str]) -> GeoResult: ...


def estimate_utc_offset(longitude: float) -> float:
    return round_half_up(float(longitude) / 15.0)


def _from_table(entry: Tuple[float, float, float], display: str, source: str) -> GeoResult:
    lat, lon, tz = entry
    return GeoResult(float(lat), float(lon), float(tz), display, source)


class CityGeocoder:
    """
    GeocodingSource over the city table and Nominatim.

    Throttle and cache state live on the instance; two geocoders never share
    a request budget. `geolocator` may be any geopy-style object with
    .geocode(query, exactly_one=True) (tests pass a fake).
    """

    def __init__(
        self,
        geolocator: Any = None,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 6,
        min_delay_seconds: float = 1.0,
        cache_size: int = 512,
        cache_ttl_seconds: Optional[float] = 7 * 24 * 3600,
        lookups_enabled: bool = True,
    ):
        self.geolocator = geolocator if geolocator is not None else Nominatim(user_agent=user_agent, timeout=timeout)
        self.lookups_enabled = lookups_enabled
        self._geocode = RateLimiter(
            self.geolocator.geocode,
            min_delay_seconds=min_delay_seconds,
            max_retries=0,
            swallow_exceptions=False,
        )
        self._cache = LRUCache(capacity=cache_size, ttl=cache_ttl_seconds)

    @classmethod
    def from_config(cls, cfg: Optional[Dict[str, Any]] = None, geolocator: Any = None) -> "CityGeocoder":
        cfg = cfg or {}
        return cls(
            geolocator,
            user_agent=cfg.get("user_agent", DEFAULT_USER_AGENT),
            timeout=float(cfg.get("timeout_seconds", 6)),
            min_delay_seconds=float(cfg.get("min_delay_seconds", 1.0)),
            cache_size=int(cfg.get("cache_size", 512)),
            cache_ttl_seconds=cfg.get("cache_ttl_seconds", 7 * 24 * 3600),
            lookups_enabled=bool(cfg.get("lookups_enabled", True)),
        )

    # ---- chain -----------------------------------------------------------

    def resolve(self, city: Optional[str]) -> GeoResult:
        display = (city or "").strip()
        key = " ".join(display.lower().split())
        if not key:
            return _from_table(FALLBACK, display, "fallback")

        entry = CITY_TABLE.get(key)
        if entry is not None:
            log.debug("geocode %r: table", key)
            return _from_table(entry, display, "table")

        for name, entry in CITY_TABLE.items():
            if name in key or key in name:
                log.debug("geocode %r: table partial (%s)", key, name)
                return _from_table(entry, display, "table_partial")

        found = self._lookup(key, display)
        if found is not None:
            return found

        log.info("geocode %r: no match, using fallback", key)
        return _from_table(FALLBACK, display, "fallback")

    def _lookup(self, key: str, display: str) -> Optional[GeoResult]:
        if not self.lookups_enabled:
            return None
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        try:
            loc = self._geocode(display, exactly_one=True)
            if loc is None:
                return None
            lat, lon = float(loc.latitude), float(loc.longitude)
        except (GeopyError, ValueError, TypeError) as e:
            log.warning("geocode %r: lookup failed: %s", key, e)
            return None
        except Exception:
            log.exception("geocode %r: unexpected geolocator failure", key)
            return None

        result = GeoResult(
            latitude=lat,
            longitude=lon,
            timezone_offset_hours=estimate_utc_offset(lon),
            display_name=getattr(loc, "address", None) or display,
            source="nominatim",
        )
        self._cache.set(key, result)
        log.debug("geocode %r: nominatim -> %.4f, %.4f", key, lat, lon)
        return result
