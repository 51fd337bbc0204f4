# astromatch/core/houses.py
from __future__ import annotations
"""
Angles and equal houses.

  • calculate_ascendant  : Rising longitude from sidereal time + site
  • equal_houses         : 12 cusps, 30° apart, starting at the ascendant
  • house_of             : 1..12 for any longitude (forward-wrap intervals)

Only equal-house division is provided; quadrant systems are not supported.
"""

from typing import Sequence, Tuple
import math

from astromatch.core.zodiac import normalize

__all__ = [
    "J2000_OBLIQUITY_DEG",
    "OBLIQUITY_RATE_DEG_PER_CENTURY",
    "mean_obliquity_deg",
    "calculate_ascendant",
    "equal_houses",
    "house_of",
]

J2000_OBLIQUITY_DEG = 23.439291
OBLIQUITY_RATE_DEG_PER_CENTURY = 0.0130042


def mean_obliquity_deg(julian_centuries: float) -> float:
    return J2000_OBLIQUITY_DEG - OBLIQUITY_RATE_DEG_PER_CENTURY * float(julian_centuries)


def calculate_ascendant(
    sidereal_hours: float,
    julian_centuries: float,
    latitude: float,
    longitude: float,
) -> float:
    """
    Ascendant longitude (deg, [0,360)).

    sidereal_hours: Greenwich sidereal time of the instant, in hours.
    julian_centuries: centuries since J2000 for the same instant.
    latitude/longitude: site in degrees, east positive.

    tan(latitude) is unbounded at the poles; validators keep |lat| < 90.
    """
    lst = math.radians(normalize(float(sidereal_hours) * 15.0 + float(longitude)))
    eps = math.radians(mean_obliquity_deg(julian_centuries))
    phi = math.radians(float(latitude))

    y = -math.cos(lst)
    x = math.sin(eps) * math.tan(phi) + math.cos(eps) * math.sin(lst)
    return normalize(math.degrees(math.atan2(y, x)))


def equal_houses(ascendant: float) -> Tuple[float, ...]:
    return tuple(normalize(float(ascendant) + i * 30.0) for i in range(12))


def house_of(longitude: float, cusps: Sequence[float]) -> int:
    """House 1..12 using [cusp[i], cusp[i+1]) with wrap past 360°; defaults to 1."""
    if len(cusps) != 12:
        raise ValueError(f"expected 12 cusps, got {len(cusps)}")
    lon = normalize(longitude)
    for i in range(12):
        a = cusps[i]
        b = cusps[(i + 1) % 12]
        if a <= b:
            if a <= lon < b:
                return i + 1
        elif lon >= a or lon < b:
            return i + 1
    return 1
