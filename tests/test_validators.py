# tests/test_validators.py
from __future__ import annotations

from datetime import date

import pytest

from astromatch.core.chart import CHART_KEYS
from astromatch.core.validators import (
    ValidationError,
    parse_birth_payload,
    parse_birth_time,
    parse_date,
    parse_latlon,
    parse_quick_payload,
    parse_synastry_payload,
)


def test_parse_date() -> None:
    assert parse_date("1990-06-15") == date(1990, 6, 15)

@pytest.mark.parametrize("bad", ["2023-02-30", "15/06/1990", "", None, 19900615])
def test_parse_date_rejects(bad) -> None:
    with pytest.raises(ValidationError) as ei:
        parse_date(bad)
    assert ei.value.errors()[0]["loc"] == ["birth_date"]

@pytest.mark.parametrize("text,expected", [
    ("14:30", "14:30"), ("9:05", "09:05"), ("2:30 pm", "14:30"), ("12:00 AM", "00:00"),
    ("12:45 p.m.", "12:45"), (None, None), ("  ", None),
])
def test_parse_birth_time(text, expected) -> None:
    assert parse_birth_time(text) == expected

@pytest.mark.parametrize("bad", ["24:00", "10:60", "13:00 pm", "0:30 am", "noon", 1430])
def test_parse_birth_time_rejects(bad) -> None:
    with pytest.raises(ValidationError):
        parse_birth_time(bad)

def test_parse_latlon() -> None:
    assert parse_latlon("45.5", -73.5) == (45.5, -73.5)
    assert parse_latlon(89.9, 180) == (89.9, 180.0)

@pytest.mark.parametrize("lat,lon", [(90, 0), (-90, 0), (0, 181), ("x", 0), (True, 0), (float("nan"), 0)])
def test_parse_latlon_rejects(lat, lon) -> None:
    with pytest.raises(ValidationError):
        parse_latlon(lat, lon)

def test_birth_payload_snake_case() -> None:
    b = parse_birth_payload({
        "birth_date": "1990-06-15", "birth_time": "2:30 pm", "birth_city": " London ", "houses": "yes",
    })
    assert b.birth_date == date(1990, 6, 15)
    assert b.birth_time == "14:30"
    assert b.city == "London"
    assert b.include_houses is True
    assert not b.has_coordinates

def test_birth_payload_camel_case_coordinates() -> None:
    b = parse_birth_payload({"birthDate": "1985-01-02", "lat": 10, "lng": 20})
    assert (b.latitude, b.longitude) == (10.0, 20.0)
    assert b.birth_time is None
    assert b.has_coordinates

def test_birth_payload_needs_both_coordinates() -> None:
    with pytest.raises(ValidationError):
        parse_birth_payload({"birth_date": "1985-01-02", "latitude": 10})

def test_birth_payload_bad_houses_flag() -> None:
    with pytest.raises(ValidationError) as ei:
        parse_birth_payload({"birth_date": "1985-01-02", "houses": "maybe"})
    assert ei.value.errors()[0]["loc"] == ["houses"]

def test_birth_payload_must_be_object() -> None:
    with pytest.raises(ValidationError):
        parse_birth_payload(["1985-01-02"])

def test_synastry_births() -> None:
    mode, a, b = parse_synastry_payload({
        "person1": {"birth_date": "1990-01-01"},
        "person2": {"birthDate": "1991-02-02", "birthCity": "Paris"},
    })
    assert mode == "births"
    assert a.birth_date.year == 1990 and b.city == "Paris"

def test_synastry_errors_are_located_per_person() -> None:
    with pytest.raises(ValidationError) as ei:
        parse_synastry_payload({"person1": {"birth_date": "1990-01-01"}, "person2": {"birth_date": "nope"}})
    assert ei.value.errors()[0]["loc"] == ["person2", "birth_date"]

def test_synastry_missing_person() -> None:
    with pytest.raises(ValidationError) as ei:
        parse_synastry_payload({"person1": {"birth_date": "1990-01-01"}})
    assert ei.value.errors()[0]["loc"] == ["person2"]

def test_synastry_charts() -> None:
    chart = {k: {"sign": "Leo", "degree": 1} for k in CHART_KEYS}
    mode, a, b = parse_synastry_payload({"chart1": chart, "chart2": chart})
    assert mode == "charts"
    assert a.longitude_of("sun") == 121.0

def test_synastry_bad_chart() -> None:
    with pytest.raises(ValidationError) as ei:
        parse_synastry_payload({"chart1": {"sun": {"longitude": 1}}, "chart2": {}})
    assert ei.value.errors()[0]["loc"] == ["chart1"]

def test_quick_payload() -> None:
    assert parse_quick_payload({"sign1": " Aries", "sign2": "Ophiuchus"}) == ("Aries", "Ophiuchus")
    with pytest.raises(ValidationError) as ei:
        parse_quick_payload({"sign1": 3})
    assert [e["loc"] for e in ei.value.errors()] == [["sign1"], ["sign2"]]
