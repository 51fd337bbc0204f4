# astromatch/core/zodiac.py
# -*- coding: utf-8 -*-
"""
Zodiac helpers: longitude <-> sign/degree, elements and modalities.

Conventions
-----------
- Longitudes are ecliptic degrees in [0, 360); 0° is the start of Aries.
- Each sign spans 30°. Signs are ordered Aries … Pisces.
- Materialized values are rounded half-up to 2 decimals (floor(x*100 + 0.5)/100),
  which is what the mobile clients have always shown.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import date
from typing import Any, Dict, Optional, Tuple
import logging
import math

log = logging.getLogger(__name__)

__all__ = [
    "ZODIAC_SIGNS",
    "ZodiacPosition",
    "normalize",
    "round_half_up",
    "to_zodiac_position",
    "to_longitude",
    "canonical_sign",
    "element_of",
    "modality_of",
    "sun_sign_for_date",
]

# ── catalog ──────────────────────────────────────────────────────────────────
ZODIAC_SIGNS: Tuple[str, ...] = (
    "Aries", "Taurus", "Gemini", "Cancer", "Leo", "Virgo",
    "Libra", "Scorpio", "Sagittarius", "Capricorn", "Aquarius", "Pisces",
)
_SIGN_INDEX: Dict[str, int] = {s.lower(): i for i, s in enumerate(ZODIAC_SIGNS)}

_ELEMENTS: Tuple[str, ...] = ("fire", "earth", "air", "water")
_MODALITIES: Tuple[str, ...] = ("cardinal", "fixed", "mutable")

# (month, last day) cut-offs for the date-range sun sign estimate
_SUN_SIGN_CUTOFFS: Tuple[Tuple[int, int, str], ...] = (
    (1, 19, "Capricorn"),
    (2, 18, "Aquarius"),
    (3, 20, "Pisces"),
    (4, 19, "Aries"),
    (5, 20, "Taurus"),
    (6, 20, "Gemini"),
    (7, 22, "Cancer"),
    (8, 22, "Leo"),
    (9, 22, "Virgo"),
    (10, 22, "Libra"),
    (11, 21, "Scorpio"),
    (12, 21, "Sagittarius"),
)


# ── math helpers ─────────────────────────────────────────────────────────────
def normalize(x: float) -> float:
    """
    Wrap any finite angle into [0, 360).

    Same result as ((x % 360) + 360) % 360, but written so that it is exactly
    idempotent: values that round up to 360.0 collapse to 0.0.
    """
    v = float(x) % 360.0
    return 0.0 if v >= 360.0 else v


def round_half_up(x: float, ndigits: int = 0) -> float:
    scale = 10.0 ** ndigits
    return math.floor(float(x) * scale + 0.5) / scale


# ── value type ───────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class ZodiacPosition:
    sign: str
    degree: float
    longitude: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def to_zodiac_position(longitude: float) -> ZodiacPosition:
    """
    Map an ecliptic longitude onto (sign, degree within sign).

    Sign and degree come from the longitude rounded to 0.01°, so 29.999
    reads Taurus 0.0 rather than Aries 30.0; degree always stays in [0, 30).
    """
    n = normalize(longitude)
    r = normalize(round_half_up(n, 2))
    idx = int(r // 30.0)
    return ZodiacPosition(
        sign=ZODIAC_SIGNS[idx],
        degree=round_half_up(r - idx * 30.0, 2),
        longitude=n,
    )


def canonical_sign(sign: Any) -> Optional[str]:
    """'aries', ' ARIES ' -> 'Aries'; None for anything unrecognized."""
    if not isinstance(sign, str):
        return None
    idx = _SIGN_INDEX.get(sign.strip().lower())
    return ZODIAC_SIGNS[idx] if idx is not None else None


def to_longitude(sign: Any, degree: float) -> float:
    """
    Inverse of to_zodiac_position. An unrecognized sign degrades to 0.0;
    callers treat that as a neutral placement.
    """
    name = canonical_sign(sign)
    if name is None:
        log.debug("unrecognized zodiac sign %r; using longitude 0", sign)
        return 0.0
    return _SIGN_INDEX[name.lower()] * 30.0 + float(degree)


# ── classification ───────────────────────────────────────────────────────────
def element_of(sign: Any) -> Optional[str]:
    name = canonical_sign(sign)
    if name is None:
        return None
    return _ELEMENTS[_SIGN_INDEX[name.lower()] % 4]


def modality_of(sign: Any) -> Optional[str]:
    name = canonical_sign(sign)
    if name is None:
        return None
    return _MODALITIES[_SIGN_INDEX[name.lower()] % 3]


def sun_sign_for_date(d: date) -> str:
    """
    Calendar approximation of the sun sign (no ephemeris).
    Good for instant feedback; cusp birthdays can be a day off.
    """
    for month, last_day, sign in _SUN_SIGN_CUTOFFS:
        if d.month == month:
            if d.day <= last_day:
                return sign
            return _SUN_SIGN_CUTOFFS[month % 12][2]
    raise ValueError(f"invalid month: {d.month}")
