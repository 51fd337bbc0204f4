# astromatch/core/chart.py
# -*- coding: utf-8 -*-
"""
Natal chart builder.

Public API
----------
parse_birth_time(text) -> (hour, minute)
build_natal_chart(source, birth_date, birth_time, latitude, longitude, *, include_houses=False) -> NatalChart
NatalChart.from_dict(data) -> NatalChart      (charts echoed back by clients)

Notes
-----
- Birth time is local wall-clock time at the birth place; no zone conversion.
- Sun and Moon come straight from the ephemeris; Mercury … Saturn go through
  its geocentric-vector path. Rising uses the instant's sidereal time.
- Longitudes are rounded to 2 decimals before sign/degree are derived, so a
  stored placement is always self-consistent.
- Retrograde = geocentric longitude decreased over the preceding day.
- Date validity is the caller's job (see validators); this module assumes a
  real calendar date.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple
import logging
import math
import re

from astromatch.core.ephemeris_adapter import EphemerisError, EphemerisSource
from astromatch.core.houses import calculate_ascendant, equal_houses, house_of
from astromatch.core.timescales import Instant, instant_from_local
from astromatch.core.zodiac import (
    ZodiacPosition,
    normalize,
    round_half_up,
    to_longitude,
    to_zodiac_position,
)

log = logging.getLogger(__name__)

__all__ = [
    "LUMINARIES",
    "PLANETS",
    "CHART_KEYS",
    "NatalChart",
    "parse_birth_time",
    "make_position",
    "ephemeris_longitude",
    "build_natal_chart",
]

LUMINARIES: Tuple[str, ...] = ("sun", "moon")
PLANETS: Tuple[str, ...] = ("mercury", "venus", "mars", "jupiter", "saturn")
CHART_KEYS: Tuple[str, ...] = ("sun", "moon", "rising") + PLANETS

DEFAULT_BIRTH_HOUR = 12

_TIME_RE = re.compile(r"(\d{1,2}):(\d{2})")


# ───────────────────────────── time parsing ─────────────────────────────

def parse_birth_time(text: Optional[str]) -> Tuple[int, int]:
    """
    'H:MM' / 'HH:MM' with optional am/pm suffix -> (hour, minute).
    Absent or unparsable input means noon.
    """
    if not text:
        return DEFAULT_BIRTH_HOUR, 0
    m = _TIME_RE.search(text)
    if not m:
        return DEFAULT_BIRTH_HOUR, 0
    hour, minute = int(m.group(1)), int(m.group(2))
    low = text.lower()
    if "pm" in low and hour < 12:
        hour += 12
    elif "am" in low and hour == 12:
        hour = 0
    if hour > 23 or minute > 59:
        return DEFAULT_BIRTH_HOUR, 0
    return hour, minute


def make_position(longitude: float) -> ZodiacPosition:
    return to_zodiac_position(normalize(round_half_up(longitude, 2)))


# ───────────────────────────── chart value ─────────────────────────────

@dataclass(frozen=True)
class NatalChart:
    sun: ZodiacPosition
    moon: ZodiacPosition
    rising: ZodiacPosition
    mercury: ZodiacPosition
    venus: ZodiacPosition
    mars: ZodiacPosition
    jupiter: ZodiacPosition
    saturn: ZodiacPosition
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    birth_datetime: Optional[datetime] = None
    julian_day: Optional[float] = None
    houses: Optional[Tuple[float, ...]] = None
    retrograde: FrozenSet[str] = field(default_factory=frozenset)

    def placement(self, key: str) -> ZodiacPosition:
        if key not in CHART_KEYS:
            raise KeyError(key)
        return getattr(self, key)

    def longitude_of(self, key: str) -> float:
        return self.placement(key).longitude

    def house_placements(self) -> Dict[str, int]:
        if not self.houses:
            return {}
        return {k: house_of(self.longitude_of(k), self.houses) for k in CHART_KEYS}

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {k: self.placement(k).to_dict() for k in ("sun", "moon", "rising")}
        out["planets"] = {
            k: {**self.placement(k).to_dict(), "retrograde": k in self.retrograde}
            for k in PLANETS
        }
        out["coordinates"] = {"latitude": self.latitude, "longitude": self.longitude}
        out["birth_datetime"] = self.birth_datetime.isoformat() if self.birth_datetime else None
        out["julian_day"] = self.julian_day
        if self.houses:
            out["houses"] = list(self.houses)
            out["house_placements"] = self.house_placements()
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "NatalChart":
        """
        Rebuild a chart from its JSON form (ours, or the mobile client's where
        planets may sit at the top level and carry only sign + degree).
        """
        if not isinstance(data, Mapping):
            raise ValueError("chart must be an object")
        nested = data.get("planets") if isinstance(data.get("planets"), Mapping) else {}
        placements: Dict[str, ZodiacPosition] = {}
        retro = set()
        for key in CHART_KEYS:
            raw = data.get(key, nested.get(key))
            if not isinstance(raw, Mapping):
                raise ValueError(f"chart.{key} is missing")
            placements[key] = make_position(_placement_longitude(key, raw))
            if raw.get("retrograde") is True and key in PLANETS:
                retro.add(key)

        coords = data.get("coordinates") if isinstance(data.get("coordinates"), Mapping) else {}
        return cls(
            **placements,
            latitude=_opt_float(coords.get("latitude")),
            longitude=_opt_float(coords.get("longitude")),
            julian_day=_opt_float(data.get("julian_day", data.get("julianDay"))),
            houses=_opt_houses(data.get("houses")),
            retrograde=frozenset(retro),
        )


def _opt_float(v: Any) -> Optional[float]:
    try:
        x = float(v) if v is not None else None
    except (TypeError, ValueError):
        return None
    return x if x is not None and math.isfinite(x) else None


def _opt_houses(v: Any) -> Optional[Tuple[float, ...]]:
    if not isinstance(v, list) or len(v) != 12:
        return None
    cusps = tuple(_finite(h, "chart.houses") for h in v)
    return tuple(normalize(h) for h in cusps)


def _placement_longitude(key: str, raw: Mapping[str, Any]) -> float:
    lon = raw.get("longitude")
    if lon is not None:
        return _finite(lon, f"chart.{key}.longitude")
    degree = _finite(raw.get("degree", 0.0), f"chart.{key}.degree")
    return to_longitude(raw.get("sign"), degree)


def _finite(v: Any, loc: str) -> float:
    try:
        x = float(v)
    except (TypeError, ValueError):
        raise ValueError(f"{loc} must be a number")
    if not math.isfinite(x):
        raise ValueError(f"{loc} must be finite")
    return x


# ───────────────────────────── builder ─────────────────────────────

def ephemeris_longitude(source: EphemerisSource, body: str, instant: Instant) -> float:
    """Adapter call with any non-EphemerisError failure reported as a retryable compute error."""
    try:
        return float(source.geocentric_longitude(body, instant))
    except EphemerisError:
        raise
    except Exception as e:
        raise EphemerisError("compute", f"ephemeris call failed for {body}", error=repr(e))


def _is_retrograde(source: EphemerisSource, body: str, instant: Instant, now_lon: float) -> bool:
    before = ephemeris_longitude(source, body, instant.shifted(-1.0))
    delta = now_lon - before
    if delta > 180.0:
        delta -= 360.0
    elif delta < -180.0:
        delta += 360.0
    return delta < 0.0


def build_natal_chart(
    source: EphemerisSource,
    birth_date: date,
    birth_time: Optional[str],
    latitude: float,
    longitude: float,
    *,
    include_houses: bool = False,
) -> NatalChart:
    hour, minute = parse_birth_time(birth_time)
    instant = instant_from_local(datetime.combine(birth_date, time(hour, minute)))
    if instant.warnings:
        log.debug("instant %s: %s", instant.local.isoformat(), ", ".join(instant.warnings))

    raw: Dict[str, float] = {}
    for key in LUMINARIES + PLANETS:
        raw[key] = ephemeris_longitude(source, key.title(), instant)

    try:
        sidereal = float(source.sidereal_time(instant))
        centuries = float(source.julian_centuries(instant))
    except EphemerisError:
        raise
    except Exception as e:
        raise EphemerisError("compute", "sidereal time unavailable", error=repr(e))
    raw["rising"] = calculate_ascendant(sidereal, centuries, latitude, longitude)

    retro = frozenset(k for k in PLANETS if _is_retrograde(source, k.title(), instant, raw[k]))
    placements = {k: make_position(raw[k]) for k in CHART_KEYS}

    return NatalChart(
        **placements,
        latitude=float(latitude),
        longitude=float(longitude),
        birth_datetime=instant.local,
        julian_day=instant.jd_ut,
        houses=equal_houses(raw["rising"]) if include_houses else None,
        retrograde=retro,
    )
