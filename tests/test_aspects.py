# tests/test_aspects.py
from __future__ import annotations

import pytest
from hypothesis import given, strategies as st

from astromatch.core.aspects import ASPECTS, detect_aspect, separation

longitudes = st.floats(min_value=0.0, max_value=360.0, exclude_max=True, allow_nan=False)


def test_catalog_is_exact() -> None:
    assert [(a.name, a.angle, a.orb, a.category) for a in ASPECTS] == [
        ("conjunction", 0.0, 8.0, "intense"),
        ("sextile", 60.0, 6.0, "harmonious"),
        ("square", 90.0, 7.0, "challenging"),
        ("trine", 120.0, 8.0, "harmonious"),
        ("opposition", 180.0, 8.0, "challenging"),
    ]

@pytest.mark.parametrize("l1,l2,name,orb", [
    (0, 0, "conjunction", 0.0),
    (358, 3, "conjunction", 5.0),
    (0, 97, "square", 7.0),
    (0, 172, "opposition", 8.0),
    (10, 250, "trine", 0.0),
    (0, 61.234, "sextile", 1.23),
])
def test_detects(l1, l2, name, orb) -> None:
    hit = detect_aspect(l1, l2)
    assert hit is not None
    assert hit.name == name
    assert hit.actual_orb == pytest.approx(orb)

@pytest.mark.parametrize("l1,l2", [(0, 171), (0, 98), (0, 9), (0, 67), (0, 30)])
def test_no_aspect_outside_orbs(l1, l2) -> None:
    assert detect_aspect(l1, l2) is None

@pytest.mark.parametrize("asp", ASPECTS, ids=lambda a: a.name)
def test_orb_edges(asp) -> None:
    assert detect_aspect(0.0, asp.angle + asp.orb).name == asp.name
    assert detect_aspect(0.0, asp.angle + asp.orb + 0.01) is None

def test_tightness() -> None:
    assert detect_aspect(0, 0).tightness == 1.0
    assert detect_aspect(0, 8).tightness == pytest.approx(0.2)

def test_to_dict() -> None:
    assert detect_aspect(0, 120).to_dict() == {
        "name": "trine", "angle": 120.0, "actual_orb": 0.0, "category": "harmonious",
    }

@given(longitudes, longitudes)
def test_separation_range_and_symmetry(a, b) -> None:
    d = separation(a, b)
    assert 0.0 <= d <= 180.0
    assert separation(b, a) == d

@given(longitudes, longitudes)
def test_detection_is_symmetric(a, b) -> None:
    assert detect_aspect(a, b) == detect_aspect(b, a)
