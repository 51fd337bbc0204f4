# astromatch/core/aspects.py
from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, Literal, Optional, Tuple

from astromatch.core.zodiac import normalize, round_half_up

__all__ = [
    "AspectCategory",
    "Aspect",
    "DetectedAspect",
    "ASPECTS",
    "separation",
    "detect_aspect",
]

AspectCategory = Literal["harmonious", "challenging", "intense"]


# ─────────────────────────────────────────────────────────────────────────────
# Catalog
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Aspect:
    name: str
    angle: float
    orb: float
    category: AspectCategory


@dataclass(frozen=True)
class DetectedAspect:
    name: str
    angle: float
    actual_orb: float
    category: AspectCategory

    @property
    def tightness(self) -> float:
        """1.0 at exact, 0.2 at an 8° orb; scorers weight by this."""
        return 1.0 - self.actual_orb / 10.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# Table order is the tie-break order. Orb ranges do not overlap.
ASPECTS: Tuple[Aspect, ...] = (
    Aspect("conjunction", 0.0, 8.0, "intense"),
    Aspect("sextile", 60.0, 6.0, "harmonious"),
    Aspect("square", 90.0, 7.0, "challenging"),
    Aspect("trine", 120.0, 8.0, "harmonious"),
    Aspect("opposition", 180.0, 8.0, "challenging"),
)


# ─────────────────────────────────────────────────────────────────────────────
# Geometry
# ─────────────────────────────────────────────────────────────────────────────

def separation(lon1: float, lon2: float) -> float:
    """
    Shortest angular distance in [0, 180].

    Equivalent to |((lon1 - lon2 + 180) mod 360) - 180|; folding |lon1 - lon2|
    keeps the result bit-identical when the arguments are swapped.
    """
    d = normalize(abs(float(lon1) - float(lon2)))
    return 360.0 - d if d > 180.0 else d


def detect_aspect(lon1: float, lon2: float) -> Optional[DetectedAspect]:
    """First catalog aspect whose orb contains the separation, else None."""
    diff = separation(lon1, lon2)
    for asp in ASPECTS:
        dev = abs(diff - asp.angle)
        if dev <= asp.orb:
            return DetectedAspect(
                name=asp.name,
                angle=asp.angle,
                actual_orb=round_half_up(dev, 2),
                category=asp.category,
            )
    return None
