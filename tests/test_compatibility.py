# tests/test_compatibility.py
from __future__ import annotations

import pytest
from hypothesis import given, strategies as st

from astromatch.core.chart import CHART_KEYS, NatalChart, make_position
from astromatch.core.compatibility import (
    CATEGORIES,
    CATEGORY_PAIRS,
    OVERALL_PAIRS,
    CompatibilityScorer,
    PlanetPair,
    describe_aspect,
    describe_score,
    quick_compatibility,
)
from astromatch.core.zodiac import ZODIAC_SIGNS

longitudes = st.floats(min_value=0.0, max_value=360.0, exclude_max=True, allow_nan=False)


def chart_at(default: float = 0.0, **lons: float) -> NatalChart:
    return NatalChart(**{k: make_position(lons.get(k, default)) for k in CHART_KEYS})


charts = st.builds(
    lambda values: NatalChart(**{k: make_position(v) for k, v in zip(CHART_KEYS, values)}),
    st.lists(longitudes, min_size=len(CHART_KEYS), max_size=len(CHART_KEYS)),
)

scorer = CompatibilityScorer()


# ─────────────────────────────────────────────────────────────────────────────
# Overall / category formulas
# ─────────────────────────────────────────────────────────────────────────────

def test_identical_conjunct_charts() -> None:
    # every pair is an exact conjunction: 50 + 0.6 * 40
    res = scorer.score(chart_at(0.0), chart_at(0.0))
    assert res.overall == 74
    assert res.categories() == {c: 80 for c in CATEGORIES}
    assert len(res.aspects) == sum(len(p) for p in CATEGORY_PAIRS.values())
    assert res.summary == "Good compatibility with interesting dynamics."

def test_no_aspects_is_neutral() -> None:
    res = scorer.score(chart_at(0.0), chart_at(30.0))
    assert res.overall == 50
    assert res.categories() == {c: 55 for c in CATEGORIES}
    assert res.aspects == ()
    assert res.summary == "Different energies that require understanding and patience."

def test_exact_trines() -> None:
    res = scorer.score(chart_at(0.0), chart_at(120.0))
    assert res.overall == 90
    assert res.categories() == {c: 95 for c in CATEGORIES}
    assert res.summary.startswith("Cosmic soulmates")

def test_exact_oppositions() -> None:
    res = scorer.score(chart_at(0.0), chart_at(180.0))
    assert res.overall == 30
    assert res.categories() == {c: 50 for c in CATEGORIES}

def test_category_mean_mixes_aspected_and_neutral_pairs() -> None:
    # only B's moon conjoins A's moon (orb 2): emotional = (76 + 55 + 55) / 3 = 62
    a = chart_at(0.0, venus=100.0)
    b = chart_at(200.0, moon=2.0)
    res = scorer.score(a, b)
    assert res.emotional == 62
    assert [(x.planet1, x.planet2, x.aspect, x.orb) for x in res.aspects] == [("Moon", "Moon", "conjunction", 2.0)]
    assert res.aspects[0].description == "Profound emotional merging"

def test_rising_pairs_only_with_sun() -> None:
    # A's rising trines B's sun; nothing involving rising and moon is scored
    a = chart_at(330.0, rising=0.0)
    b = chart_at(15.0, sun=120.0, moon=0.0)
    res = scorer.score(a, b)
    # (rising, sun, 0.7) harmonious exact: 50 + 40 * 0.7 / 9.2
    assert res.overall == 53

def test_overall_and_categories_use_different_formulas() -> None:
    res = scorer.score(chart_at(0.0), chart_at(90.0))
    assert res.overall == 30
    assert res.communication == 50

@given(charts, charts)
def test_scores_are_bounded(a, b) -> None:
    res = scorer.score(a, b)
    assert 0 <= res.overall <= 100
    assert all(0 <= v <= 100 for v in res.categories().values())

def test_result_to_dict() -> None:
    d = scorer.score(chart_at(0.0), chart_at(0.0)).to_dict()
    assert set(d) == {"overall", *CATEGORIES, "aspects", "summary"}
    assert set(d["aspects"][0]) == {"planet1", "planet2", "aspect", "orb", "category", "description"}


# ─────────────────────────────────────────────────────────────────────────────
# Configuration
# ─────────────────────────────────────────────────────────────────────────────

def test_default_tables() -> None:
    assert len(OVERALL_PAIRS) == 12
    assert sum(p.weight for p in OVERALL_PAIRS) == pytest.approx(9.2)
    assert [(p.key1, p.key2) for p in CATEGORY_PAIRS["long_term"]] == [
        ("saturn", "sun"), ("sun", "saturn"), ("saturn", "saturn"),
    ]

def test_empty_category_scores_neutral() -> None:
    s = CompatibilityScorer(category_pairs={"passion": (PlanetPair("venus", "mars"),)})
    res = s.score(chart_at(0.0), chart_at(0.0))
    assert res.passion == 80
    assert res.emotional == 55 and res.growth == 55

def test_empty_overall_table_is_neutral() -> None:
    assert CompatibilityScorer(overall_pairs=()).overall(chart_at(0.0), chart_at(0.0)) == 50

def test_unknown_category_rejected() -> None:
    with pytest.raises(ValueError):
        CompatibilityScorer(category_pairs={"money": ()})

def test_from_config_lists() -> None:
    s = CompatibilityScorer.from_config({
        "overall": [["Sun", "sun", 1.0], {"key1": "moon", "key2": "moon", "weight": 0.5}],
        "categories": {"values": [["venus", "venus"]]},
    })
    assert s.overall_pairs == (PlanetPair("sun", "sun", 1.0), PlanetPair("moon", "moon", 0.5))
    assert s.category_pairs["values"] == (PlanetPair("venus", "venus", 1.0),)
    assert s.category_pairs["emotional"] == ()

def test_from_config_defaults_when_absent() -> None:
    s = CompatibilityScorer.from_config({"overall": None, "categories": None})
    assert s.overall_pairs == OVERALL_PAIRS
    assert s.category_pairs == {c: CATEGORY_PAIRS[c] for c in CATEGORIES}

def test_from_config_rejects_unknown_keys() -> None:
    with pytest.raises(ValueError):
        CompatibilityScorer.from_config({"overall": [["sun", "pluto", 1.0]]})


# ─────────────────────────────────────────────────────────────────────────────
# Text
# ─────────────────────────────────────────────────────────────────────────────

def test_describe_aspect_either_order() -> None:
    assert describe_aspect("sun", "moon", "trine", "harmonious") == "Natural emotional understanding and support"
    assert describe_aspect("Moon", "Sun", "trine", "harmonious") == "Natural emotional understanding and support"
    assert describe_aspect("sun", "saturn", "square", "challenging") == "Lessons around authority and freedom"

def test_describe_aspect_generic() -> None:
    assert describe_aspect("venus", "venus", "conjunction", "intense") == "Venus conjunction Venus: intense energy"

@pytest.mark.parametrize("score,prefix", [
    (100, "Cosmic"), (85, "Cosmic"), (84, "Strong"), (75, "Strong"),
    (65, "Good"), (55, "Some"), (54, "Different"), (0, "Different"),
])
def test_describe_score_bands(score, prefix) -> None:
    assert describe_score(score).startswith(prefix)


# ─────────────────────────────────────────────────────────────────────────────
# Quick compatibility
# ─────────────────────────────────────────────────────────────────────────────

def test_quick_fire_air() -> None:
    assert quick_compatibility("Aries", "Gemini") == 90

@pytest.mark.parametrize("s1,s2,score", [
    ("Leo", "Sagittarius", 80),
    ("Taurus", "Scorpio", 90),
    ("Aries", "Cancer", 40),
    ("Capricorn", "Libra", 45),
    ("Aquarius", "Pisces", 55),
    ("Virgo", "Taurus", 85),
])
def test_quick_matrix(s1, s2, score) -> None:
    assert quick_compatibility(s1, s2) == score

def test_quick_is_symmetric() -> None:
    for a in ZODIAC_SIGNS:
        for b in ZODIAC_SIGNS:
            assert quick_compatibility(a, b) == quick_compatibility(b, a)

def test_quick_unknown_and_case() -> None:
    assert quick_compatibility("Ophiuchus", "Leo") == 50
    assert quick_compatibility(None, "Leo") == 50
    assert quick_compatibility("aries", "GEMINI") == 90
