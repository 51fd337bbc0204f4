# astromatch/core/compatibility.py
# -*- coding: utf-8 -*-
"""
Synastry scoring.

Two independent reductions over the same aspect detector:

  overall   weighted delta around 50:
              harmonious +w·t, intense +0.6·w·t, challenging −0.5·w·t
              overall = round(clamp(50 + 40·Σ/Σw, 0, 100))
  category  per-pair score averaged inside each category:
              harmonious 70+25t, intense 60+20t, challenging 35+15t, none 55

where t = 1 − actual_orb/10. The two formulas answer similar questions with
different numbers; both are consumed as-is by existing clients.

quick_compatibility(sign1, sign2) is the chart-free element-matrix fallback.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
import logging

from astromatch.core.aspects import DetectedAspect, detect_aspect
from astromatch.core.chart import CHART_KEYS, NatalChart
from astromatch.core.zodiac import element_of, round_half_up

log = logging.getLogger(__name__)

__all__ = [
    "CATEGORIES",
    "PlanetPair",
    "OVERALL_PAIRS",
    "CATEGORY_PAIRS",
    "SynastryAspect",
    "CompatibilityResult",
    "CompatibilityScorer",
    "describe_aspect",
    "describe_score",
    "quick_compatibility",
]

CATEGORIES: Tuple[str, ...] = ("emotional", "communication", "passion", "long_term", "values", "growth")

NEUTRAL_OVERALL = 50
NEUTRAL_PAIR_SCORE = 55.0
UNKNOWN_SIGN_SCORE = 50


@dataclass(frozen=True)
class PlanetPair:
    key1: str  # placement read from chart A
    key2: str  # placement read from chart B
    weight: float = 1.0


# ─────────────────────────────────────────────────────────────────────────────
# Default tables
# ─────────────────────────────────────────────────────────────────────────────
OVERALL_PAIRS: Tuple[PlanetPair, ...] = (
    PlanetPair("sun", "sun", 1.0),
    PlanetPair("moon", "moon", 1.0),
    PlanetPair("sun", "moon", 0.9),
    PlanetPair("moon", "sun", 0.9),
    PlanetPair("venus", "mars", 0.85),
    PlanetPair("mars", "venus", 0.85),
    PlanetPair("mercury", "mercury", 0.7),
    PlanetPair("rising", "sun", 0.7),
    PlanetPair("sun", "rising", 0.7),
    PlanetPair("jupiter", "jupiter", 0.5),
    PlanetPair("saturn", "saturn", 0.5),
    PlanetPair("venus", "venus", 0.6),
)

CATEGORY_PAIRS: Dict[str, Tuple[PlanetPair, ...]] = {
    "emotional": (PlanetPair("moon", "moon"), PlanetPair("moon", "venus"), PlanetPair("venus", "moon")),
    "communication": (PlanetPair("mercury", "mercury"), PlanetPair("mercury", "sun"), PlanetPair("sun", "mercury")),
    "passion": (PlanetPair("venus", "mars"), PlanetPair("mars", "venus")),
    "long_term": (PlanetPair("saturn", "sun"), PlanetPair("sun", "saturn"), PlanetPair("saturn", "saturn")),
    "values": (PlanetPair("venus", "venus"),),
    "growth": (PlanetPair("jupiter", "jupiter"),),
}

_OVERALL_FACTOR = {"harmonious": 1.0, "intense": 0.6, "challenging": -0.5}
_PAIR_SCORE = {"harmonious": (70.0, 25.0), "intense": (60.0, 20.0), "challenging": (35.0, 15.0)}

_ELEMENT_MATRIX: Dict[Tuple[str, str], int] = {
    ("fire", "fire"): 80,
    ("fire", "earth"): 50,
    ("fire", "air"): 90,
    ("fire", "water"): 40,
    ("earth", "earth"): 85,
    ("earth", "air"): 45,
    ("earth", "water"): 90,
    ("air", "air"): 80,
    ("air", "water"): 55,
    ("water", "water"): 85,
}

_DESCRIPTIONS: Dict[str, Dict[str, str]] = {
    "Sun-Moon": {
        "harmonious": "Natural emotional understanding and support",
        "challenging": "Tension between identity and emotional needs",
        "intense": "Powerful bond of identity and emotion",
    },
    "Venus-Mars": {
        "harmonious": "Beautiful romantic and physical harmony",
        "challenging": "Magnetic tension in love and desire",
        "intense": "Strong romantic and physical attraction",
    },
    "Mercury-Mercury": {
        "harmonious": "Easy, flowing communication",
        "challenging": "Different communication styles to navigate",
        "intense": "Minds deeply linked in conversation",
    },
    "Moon-Moon": {
        "harmonious": "Deep emotional resonance and understanding",
        "challenging": "Different emotional needs and rhythms",
        "intense": "Profound emotional merging",
    },
    "Saturn-Sun": {
        "harmonious": "Stabilizing long-term commitment energy",
        "challenging": "Lessons around authority and freedom",
        "intense": "Karmic bond with growth potential",
    },
}

_SCORE_BANDS: Tuple[Tuple[int, str], ...] = (
    (85, "Cosmic soulmates! Your charts are incredibly aligned."),
    (75, "Strong connection. Great potential for lasting love."),
    (65, "Good compatibility with interesting dynamics."),
    (55, "Some challenges, but growth opportunities abound."),
)
_SCORE_FLOOR_TEXT = "Different energies that require understanding and patience."


# ─────────────────────────────────────────────────────────────────────────────
# Results
# ─────────────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class SynastryAspect:
    planet1: str
    planet2: str
    aspect: str
    orb: float
    category: str
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class CompatibilityResult:
    overall: int
    emotional: int
    communication: int
    passion: int
    long_term: int
    values: int
    growth: int
    aspects: Tuple[SynastryAspect, ...] = ()
    summary: str = ""

    def categories(self) -> Dict[str, int]:
        return {c: getattr(self, c) for c in CATEGORIES}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall": self.overall,
            **self.categories(),
            "aspects": [a.to_dict() for a in self.aspects],
            "summary": self.summary,
        }


# ─────────────────────────────────────────────────────────────────────────────
# Text
# ─────────────────────────────────────────────────────────────────────────────
def describe_aspect(planet1: str, planet2: str, aspect_name: str, category: str) -> str:
    p1, p2 = planet1.title(), planet2.title()
    desc = _DESCRIPTIONS.get(f"{p1}-{p2}") or _DESCRIPTIONS.get(f"{p2}-{p1}")
    if desc and category in desc:
        return desc[category]
    return f"{p1} {aspect_name} {p2}: {category} energy"


def describe_score(score: int) -> str:
    for floor, text in _SCORE_BANDS:
        if score >= floor:
            return text
    return _SCORE_FLOOR_TEXT


def quick_compatibility(sign1: Optional[str], sign2: Optional[str]) -> int:
    e1, e2 = element_of(sign1), element_of(sign2)
    if e1 is None or e2 is None:
        return UNKNOWN_SIGN_SCORE
    return _ELEMENT_MATRIX.get((e1, e2), _ELEMENT_MATRIX.get((e2, e1), UNKNOWN_SIGN_SCORE))


# ─────────────────────────────────────────────────────────────────────────────
# Scorer
# ─────────────────────────────────────────────────────────────────────────────
def _pairs_from_config(rows: Iterable[Any]) -> Tuple[PlanetPair, ...]:
    out: List[PlanetPair] = []
    for row in rows or ():
        if isinstance(row, Mapping):
            pair = PlanetPair(str(row["key1"]).lower(), str(row["key2"]).lower(), float(row.get("weight", 1.0)))
        else:
            k1, k2, *rest = row
            pair = PlanetPair(str(k1).lower(), str(k2).lower(), float(rest[0]) if rest else 1.0)
        for k in (pair.key1, pair.key2):
            if k not in CHART_KEYS:
                raise ValueError(f"unknown chart key in scoring table: {k!r}")
        out.append(pair)
    return tuple(out)


class CompatibilityScorer:
    """Stateless once built; one instance can serve concurrent requests."""

    def __init__(
        self,
        overall_pairs: Sequence[PlanetPair] = OVERALL_PAIRS,
        category_pairs: Optional[Mapping[str, Sequence[PlanetPair]]] = None,
    ):
        self.overall_pairs = tuple(overall_pairs)
        cats = CATEGORY_PAIRS if category_pairs is None else category_pairs
        unknown = set(cats) - set(CATEGORIES)
        if unknown:
            raise ValueError(f"unknown scoring categories: {sorted(unknown)}")
        self.category_pairs = {c: tuple(cats.get(c, ())) for c in CATEGORIES}

    @classmethod
    def from_config(cls, scoring: Optional[Mapping[str, Any]]) -> "CompatibilityScorer":
        """Build from the `scoring` config section; absent tables keep defaults."""
        scoring = scoring or {}
        overall = _pairs_from_config(scoring["overall"]) if scoring.get("overall") else OVERALL_PAIRS
        cats_cfg = scoring.get("categories")
        cats = {c: _pairs_from_config(rows) for c, rows in cats_cfg.items()} if cats_cfg else None
        return cls(overall, cats)

    def overall(self, a: NatalChart, b: NatalChart) -> int:
        total_weight = 0.0
        weighted = 0.0
        for pair in self.overall_pairs:
            total_weight += pair.weight
            hit = detect_aspect(a.longitude_of(pair.key1), b.longitude_of(pair.key2))
            if hit is not None:
                weighted += pair.weight * hit.tightness * _OVERALL_FACTOR[hit.category]
        ratio = weighted / total_weight if total_weight > 0 else 0.0
        return int(round_half_up(max(0.0, min(100.0, NEUTRAL_OVERALL + ratio * 40.0))))

    @staticmethod
    def pair_score(hit: Optional[DetectedAspect]) -> float:
        if hit is None:
            return NEUTRAL_PAIR_SCORE
        base, span = _PAIR_SCORE[hit.category]
        return base + hit.tightness * span

    def score(self, a: NatalChart, b: NatalChart) -> CompatibilityResult:
        overall = self.overall(a, b)
        cats: Dict[str, int] = {}
        aspects: List[SynastryAspect] = []

        for cat in CATEGORIES:
            pairs = self.category_pairs[cat]
            if not pairs:
                cats[cat] = int(NEUTRAL_PAIR_SCORE)
                continue
            acc = 0.0
            weight = 0.0
            for pair in pairs:
                hit = detect_aspect(a.longitude_of(pair.key1), b.longitude_of(pair.key2))
                acc += pair.weight * self.pair_score(hit)
                weight += pair.weight
                if hit is not None:
                    aspects.append(SynastryAspect(
                        planet1=pair.key1.title(),
                        planet2=pair.key2.title(),
                        aspect=hit.name,
                        orb=hit.actual_orb,
                        category=hit.category,
                        description=describe_aspect(pair.key1, pair.key2, hit.name, hit.category),
                    ))
            cats[cat] = int(round_half_up(acc / weight)) if weight > 0 else int(NEUTRAL_PAIR_SCORE)

        log.debug("synastry overall=%d categories=%s aspects=%d", overall, cats, len(aspects))
        return CompatibilityResult(
            overall=overall,
            aspects=tuple(aspects),
            summary=describe_score(overall),
            **cats,
        )
