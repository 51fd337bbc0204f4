# astromatch/core/validators.py
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, date
from typing import Any, Dict, List, Optional, Tuple, Union

from astromatch.core.chart import NatalChart

# ───────────────────────── errors ─────────────────────────

class ValidationError(ValueError):
    """Structured validator error; the HTTP layer renders .errors() as-is."""
    def __init__(self, details: Union[str, Dict[str, Any], List[Dict[str, Any]]]):
        if isinstance(details, str):
            self._details = [{"loc": [], "msg": details, "type": "value_error"}]
            super().__init__(details)
        elif isinstance(details, dict):
            self._details = [details]
            super().__init__(details.get("msg", "validation_error"))
        elif isinstance(details, list):
            self._details = details
            super().__init__(self._details[0]["msg"] if self._details else "validation_error")
        else:
            self._details = [{"loc": [], "msg": "validation_error", "type": "value_error"}]
            super().__init__("validation_error")

    def errors(self) -> List[Dict[str, Any]]:
        return list(self._details)


# ───────────────────────── helpers ─────────────────────────

def _err(loc: List[str] | str, msg: str, typ: str = "value_error") -> Dict[str, Any]:
    return {"loc": [loc] if isinstance(loc, str) else loc, "msg": msg, "type": typ}

def _prefixed(e: ValidationError, prefix: str) -> ValidationError:
    return ValidationError([{**d, "loc": [prefix, *d.get("loc", [])]} for d in e.errors()])

def _as_float(v: Any) -> Optional[float]:
    if isinstance(v, bool):
        return None
    try:
        if v is None:
            return None
        x = float(v)
        if x != x or x in (float("inf"), float("-inf")):
            return None
        return x
    except (TypeError, ValueError):
        return None

def _truthy(val: Any) -> Optional[bool]:
    if isinstance(val, bool):
        return val
    if val is None:
        return None
    s = str(val).strip().lower()
    if s in {"1", "true", "t", "yes", "y", "on"}:
        return True
    if s in {"0", "false", "f", "no", "n", "off"}:
        return False
    return None

def _first(body: Dict[str, Any], *keys: str) -> Any:
    for k in keys:
        if body.get(k) is not None:
            return body[k]
    return None


# ───────────────────────── atomic parsers ─────────────────────────

_TIME_RE = re.compile(r"^\s*(?P<h>\d{1,2}):(?P<m>\d{2})\s*(?P<ampm>[ap]\.?m\.?)?\s*$", re.IGNORECASE)

def parse_date(s: Any, loc: str = "birth_date") -> date:
    if not isinstance(s, str) or not s.strip():
        raise ValidationError(_err(loc, "required string 'YYYY-MM-DD'", "value_error.missing"))
    try:
        return datetime.strptime(s.strip(), "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(_err(loc, "date must be a real calendar date 'YYYY-MM-DD'", "value_error.date"))

def parse_birth_time(s: Any, loc: str = "birth_time") -> Optional[str]:
    """
    Accept 'H:MM' / 'HH:MM' (24h) or 'H:MM am|pm' (12h). Absent -> None (noon).
    Returns the canonical 24h 'HH:MM'.
    """
    if s is None or (isinstance(s, str) and not s.strip()):
        return None
    if not isinstance(s, str):
        raise ValidationError(_err(loc, "time must be a string 'HH:MM'", "type_error.str"))
    m = _TIME_RE.match(s)
    if not m:
        raise ValidationError(_err(loc, "time must be 'HH:MM' or 'H:MM am/pm'", "value_error.time"))
    hh, mm = int(m.group("h")), int(m.group("m"))
    ampm = (m.group("ampm") or "").lower().replace(".", "")
    if mm > 59:
        raise ValidationError(_err(loc, "minutes must be 00-59", "value_error.time"))
    if ampm:
        if not (1 <= hh <= 12):
            raise ValidationError(_err(loc, "12-hour times need an hour between 1 and 12", "value_error.time"))
        if ampm == "pm" and hh < 12:
            hh += 12
        elif ampm == "am" and hh == 12:
            hh = 0
    elif hh > 23:
        raise ValidationError(_err(loc, "hours must be 00-23", "value_error.time"))
    return f"{hh:02d}:{mm:02d}"

def parse_latlon(lat: Any, lon: Any, lat_key="latitude", lon_key="longitude") -> Tuple[float, float]:
    lat_f = _as_float(lat); lon_f = _as_float(lon)
    if lat_f is None or lon_f is None:
        raise ValidationError(_err([lat_key, lon_key], "latitude/longitude must be finite numbers", "type_error.float"))
    # the ascendant is undefined at the poles
    if not (-90.0 < lat_f < 90.0):
        raise ValidationError(_err(lat_key, "latitude must be strictly between -90 and 90"))
    if not (-180.0 <= lon_f <= 180.0):
        raise ValidationError(_err(lon_key, "longitude must be between -180 and 180"))
    return float(lat_f), float(lon_f)


# ───────────────────────── payloads ─────────────────────────

@dataclass(frozen=True)
class BirthInput:
    birth_date: date
    birth_time: Optional[str] = None   # canonical 'HH:MM' or None for noon
    city: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    include_houses: bool = False

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


def parse_birth_payload(body: Any) -> BirthInput:
    """
    Normalize one person's birth data.

    Keys: birth_date|birthDate|date, birth_time|birthTime|time,
    birth_city|birthCity|city, latitude|lat, longitude|lng|lon, houses.
    Coordinates win over the city when both are given; one coordinate
    without the other is an error.
    """
    if not isinstance(body, dict):
        raise ValidationError("payload must be an object")

    d = parse_date(_first(body, "birth_date", "birthDate", "date"))
    t = parse_birth_time(_first(body, "birth_time", "birthTime", "time"))

    city = _first(body, "birth_city", "birthCity", "city")
    if city is not None and not isinstance(city, str):
        raise ValidationError(_err("birth_city", "must be a string", "type_error.str"))

    lat = _first(body, "latitude", "lat")
    lon = _first(body, "longitude", "lng", "lon")
    if lat is None and lon is None:
        lat_f = lon_f = None
    else:
        lat_f, lon_f = parse_latlon(lat, lon)

    houses = _truthy(body.get("houses"))
    if body.get("houses") is not None and houses is None:
        raise ValidationError(_err("houses", "must be a boolean", "type_error.bool"))

    return BirthInput(
        birth_date=d,
        birth_time=t,
        city=city.strip() if city and city.strip() else None,
        latitude=lat_f,
        longitude=lon_f,
        include_houses=bool(houses),
    )


def parse_chart_payload(body: Any, loc: str = "chart") -> NatalChart:
    try:
        return NatalChart.from_dict(body)
    except ValueError as e:
        raise ValidationError(_err(loc, str(e), "value_error.chart"))


def parse_synastry_payload(body: Any) -> Tuple[str, Any, Any]:
    """
    Either {person1, person2} birth inputs -> ("births", BirthInput, BirthInput)
    or {chart1, chart2} charts            -> ("charts", NatalChart, NatalChart).
    """
    if not isinstance(body, dict):
        raise ValidationError("payload must be an object")
    if body.get("chart1") is not None or body.get("chart2") is not None:
        return "charts", parse_chart_payload(body.get("chart1"), "chart1"), parse_chart_payload(body.get("chart2"), "chart2")

    out = []
    for key in ("person1", "person2"):
        if key not in body:
            raise ValidationError(_err(key, "required object", "value_error.missing"))
        try:
            out.append(parse_birth_payload(body[key]))
        except ValidationError as e:
            raise _prefixed(e, key)
    return "births", out[0], out[1]


def parse_quick_payload(body: Any) -> Tuple[str, str]:
    """Both signs must be strings; unrecognized names are scored neutrally, not rejected."""
    if not isinstance(body, dict):
        raise ValidationError("payload must be an object")
    errs = [_err(k, "required string", "type_error.str")
            for k in ("sign1", "sign2") if not isinstance(body.get(k), str)]
    if errs:
        raise ValidationError(errs)
    return body["sign1"].strip(), body["sign2"].strip()
