# astromatch/api/routes.py
"""
AstroMatch API routes
- Natal chart (+ optional equal houses)
- Synastry from birth data or from previously returned charts
- Quick element compatibility, sun sign, geocoding
- Ops: /api/health, /api/config

Notes:
- Validation problems come back as 400 {"ok": false, "error": "validation_error", "details": [...]}
- Ephemeris problems are rendered by helpers.ephemeris_error_response
  (400 out of range, 503 + Retry-After when a retry may help)
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict
from typing import Any, Dict

from flask import Blueprint, current_app, jsonify

from astromatch.api.helpers import (
    body_json,
    ephemeris_error_response,
    get_engine,
    json_error,
    record_location,
)
from astromatch.core.aspects import ASPECTS
from astromatch.core.chart import CHART_KEYS
from astromatch.core.ephemeris_adapter import EphemerisError
from astromatch.core.validators import (
    ValidationError,
    parse_birth_payload,
    parse_date,
    parse_quick_payload,
    parse_synastry_payload,
)
from astromatch.utils.metrics import timed
from astromatch.utils.ratelimit import TokenBucketLimiter
from astromatch.version import VERSION

log = logging.getLogger(__name__)
api = Blueprint("api", __name__)
limiter = TokenBucketLimiter()

# ── per-endpoint rate-limit caps (calls per minute, env-overridable) ───────────
_RL = lambda k, d: int(os.getenv(k, str(d)))
RL_CHART     = _RL("ASTROMATCH_RL_CHART_PER_MIN",     30)
RL_SYNASTRY  = _RL("ASTROMATCH_RL_SYNASTRY_PER_MIN",  20)
RL_QUICK     = _RL("ASTROMATCH_RL_QUICK_PER_MIN",    120)
RL_SUN_SIGN  = _RL("ASTROMATCH_RL_SUN_SIGN_PER_MIN",  60)
RL_GEOCODE   = _RL("ASTROMATCH_RL_GEOCODE_PER_MIN",   30)
RL_CONFIG    = _RL("ASTROMATCH_RL_CONFIG_PER_MIN",     6)


# ───────────────────────── health / ops ─────────────────────────
@api.get("/api/health")
def health():
    return jsonify({"ok": True, "status": "up", "version": VERSION}), 200


@api.get("/api/config")
@limiter.limit(RL_CONFIG)
def config_info():
    engine = get_engine()
    cfg = current_app.config.get("ASTROMATCH") or {}
    geo = dict(cfg.get("geocoding") or {})
    diag = getattr(engine.ephemeris, "diagnostics", None)
    return jsonify({
        "ok": True,
        "version": VERSION,
        "chart_keys": list(CHART_KEYS),
        "aspects": [asdict(a) for a in ASPECTS],
        "scoring": {
            "overall": [asdict(p) for p in engine.scorer.overall_pairs],
            "categories": {c: [asdict(p) for p in pairs] for c, pairs in engine.scorer.category_pairs.items()},
        },
        "geocoding": {k: geo.get(k) for k in ("min_delay_seconds", "cache_size", "cache_ttl_seconds", "lookups_enabled")},
        "ephemeris": diag() if callable(diag) else None,
        "rate_limits_per_min": {
            "chart": RL_CHART, "synastry": RL_SYNASTRY, "quick": RL_QUICK,
            "sun_sign": RL_SUN_SIGN, "geocode": RL_GEOCODE, "config": RL_CONFIG,
        },
    }), 200


# ───────────────────────── endpoints ─────────────────────────
@api.post("/api/chart")
@limiter.limit(RL_CHART)
@timed("chart")
def chart():
    try:
        birth = parse_birth_payload(body_json())
    except ValidationError as e:
        return json_error("validation_error", e.errors(), 400)

    try:
        res = get_engine().natal_chart(birth)
    except EphemerisError as e:
        return ephemeris_error_response(e)

    record_location(res.location)
    return jsonify({"ok": True, **res.to_dict()}), 200


@api.post("/api/synastry")
@limiter.limit(RL_SYNASTRY)
@timed("synastry")
def synastry():
    try:
        mode, a, b = parse_synastry_payload(body_json())
    except ValidationError as e:
        return json_error("validation_error", e.errors(), 400)

    engine = get_engine()
    out: Dict[str, Any] = {"ok": True}
    if mode == "charts":
        result = engine.synastry_from_charts(a, b)
    else:
        try:
            result, r1, r2 = engine.synastry(a, b)
        except EphemerisError as e:
            return ephemeris_error_response(e)
        record_location(r1.location)
        record_location(r2.location)
        out["charts"] = [r1.to_dict(), r2.to_dict()]

    out["compatibility"] = result.to_dict()
    return jsonify(out), 200


@api.post("/api/compatibility/quick")
@limiter.limit(RL_QUICK)
def quick():
    try:
        s1, s2 = parse_quick_payload(body_json())
    except ValidationError as e:
        return json_error("validation_error", e.errors(), 400)
    return jsonify({"ok": True, **get_engine().quick(s1, s2)}), 200


@api.post("/api/sun-sign")
@limiter.limit(RL_SUN_SIGN)
@timed("sun_sign")
def sun_sign():
    try:
        body = body_json()
        d = parse_date(body.get("birth_date", body.get("birthDate")))
    except ValidationError as e:
        return json_error("validation_error", e.errors(), 400)

    try:
        out = get_engine().sun_sign(d)
    except EphemerisError as e:
        return ephemeris_error_response(e)
    return jsonify({"ok": True, **out}), 200


@api.post("/api/geocode")
@limiter.limit(RL_GEOCODE)
@timed("geocode")
def geocode():
    try:
        body = body_json()
        city = body.get("city", body.get("birth_city", body.get("birthCity")))
        if not isinstance(city, str):
            raise ValidationError([{"loc": ["city"], "msg": "required string", "type": "type_error.str"}])
    except ValidationError as e:
        return json_error("validation_error", e.errors(), 400)

    geo = record_location(get_engine().geocoder.resolve(city))
    return jsonify({"ok": True, "location": geo.to_dict()}), 200
