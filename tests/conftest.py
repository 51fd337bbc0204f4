# tests/conftest.py
from __future__ import annotations

"""
Pytest configuration for the AstroMatch suite.

- Registers Hypothesis profiles for local dev and CI.
- Provides in-memory collaborators: a linear-motion fake ephemeris and a fake
  geopy geolocator, so no test touches the network or a JPL kernel.
- Builds Flask test clients around an injected engine.
"""

import os
from dataclasses import dataclass
from typing import Dict, List, Optional

import pytest
from hypothesis import settings, HealthCheck

from astromatch.core.compatibility import CompatibilityScorer
from astromatch.core.engine import AstroEngine
from astromatch.core.geocoding import CityGeocoder
from astromatch.core.timescales import J2000_JD
from astromatch.core.zodiac import normalize


# ──────────────────────────────────────────────────────────────────────────────
# Hypothesis profiles
# ──────────────────────────────────────────────────────────────────────────────
settings.register_profile(
    "dev",
    settings(
        deadline=None,
        max_examples=60,
        suppress_health_check=[HealthCheck.too_slow],
    ),
)
settings.register_profile(
    "ci",
    settings(
        deadline=None,
        max_examples=120,
        suppress_health_check=[HealthCheck.too_slow],
    ),
)

_profile = (
    "ci"
    if (os.getenv("CI") or os.getenv("GITHUB_ACTIONS"))
    else os.getenv("HYPOTHESIS_PROFILE", "dev")
)
settings.load_profile(_profile)


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "slow: mark test as slow")


def pytest_report_header(config: pytest.Config) -> str:
    return f"Hypothesis profile: '{_profile}'"


# ──────────────────────────────────────────────────────────────────────────────
# Fakes
# ──────────────────────────────────────────────────────────────────────────────
class FakeEphemeris:
    """
    Bodies move linearly: lon = base + rate * (jd_ut - J2000), wrapped.
    Defaults put every body at 0° with +1°/day, sidereal time 0h.
    """

    def __init__(self, base: Optional[Dict[str, float]] = None,
                 rates: Optional[Dict[str, float]] = None,
                 sidereal_hours: float = 0.0,
                 fail_with: Optional[Exception] = None):
        self.base = base or {}
        self.rates = rates or {}
        self.sidereal_hours = sidereal_hours
        self.fail_with = fail_with
        self.calls: List[str] = []

    def geocentric_longitude(self, body, instant):
        self.calls.append(body)
        if self.fail_with is not None:
            raise self.fail_with
        days = instant.jd_ut - J2000_JD
        return normalize(self.base.get(body, 0.0) + self.rates.get(body, 1.0) * days)

    def sidereal_time(self, instant):
        return self.sidereal_hours

    def julian_centuries(self, instant):
        return instant.julian_centuries


@dataclass
class FakeLocation:
    latitude: float
    longitude: float
    address: str


class FakeGeolocator:
    """geopy-shaped geolocator with canned answers (or a canned exception)."""

    def __init__(self, answers: Optional[Dict[str, FakeLocation]] = None, raises: Optional[Exception] = None):
        self.answers = {k.lower(): v for k, v in (answers or {}).items()}
        self.raises = raises
        self.queries: List[str] = []

    def geocode(self, query, exactly_one=True):
        self.queries.append(query)
        if self.raises is not None:
            raise self.raises
        return self.answers.get(query.strip().lower())


# ──────────────────────────────────────────────────────────────────────────────
# Fixtures
# ──────────────────────────────────────────────────────────────────────────────
@pytest.fixture
def make_ephemeris():
    return FakeEphemeris


@pytest.fixture
def make_geolocator():
    def _make(answers=None, raises=None):
        return FakeGeolocator({k: FakeLocation(*v) for k, v in (answers or {}).items()}, raises=raises)
    return _make


@pytest.fixture
def fake_ephemeris():
    return FakeEphemeris()


@pytest.fixture
def fake_geolocator():
    return FakeGeolocator({"reykjavik": FakeLocation(64.1466, -21.9426, "Reykjavík, Iceland")})


@pytest.fixture
def geocoder(fake_geolocator):
    return CityGeocoder(fake_geolocator, min_delay_seconds=0.0)


@pytest.fixture
def engine(fake_ephemeris, geocoder):
    return AstroEngine(fake_ephemeris, geocoder, CompatibilityScorer())


@pytest.fixture
def app(engine):
    from astromatch.main import create_app
    app = create_app(config={}, engine=engine, rate_limit=False)
    app.testing = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()
