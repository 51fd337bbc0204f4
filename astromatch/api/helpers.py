from __future__ import annotations
from typing import Any, Dict, Optional

from flask import current_app, jsonify, request

from astromatch.core.engine import AstroEngine
from astromatch.core.ephemeris_adapter import EphemerisError
from astromatch.core.geocoding import GeoResult
from astromatch.core.validators import ValidationError
from astromatch.utils.metrics import EPHEMERIS_FAILURES, GEOCODE_RESOLUTIONS

ENGINE_KEY = "astromatch.engine"
RETRY_AFTER_SECONDS = 30


def get_engine() -> AstroEngine:
    engine = current_app.extensions.get(ENGINE_KEY)
    if engine is None:
        raise RuntimeError("AstroEngine not configured on this app")
    return engine


def body_json() -> Dict[str, Any]:
    """Request body as a dict; anything else is a validation error, not a 500."""
    data = request.get_json(force=True, silent=True)
    if not isinstance(data, dict):
        raise ValidationError("JSON body must be an object")
    return data


def json_error(code: str, details: Any = None, http: int = 400, headers: Optional[Dict[str, str]] = None):
    out: Dict[str, Any] = {"ok": False, "error": code}
    if details is not None:
        out["details"] = details
    return jsonify(out), http, (headers or {})


def ephemeris_error_response(e: EphemerisError):
    EPHEMERIS_FAILURES.labels(stage=e.stage).inc()
    details = {"stage": e.stage, "message": e.message}
    if e.stage == "range":
        return json_error("ephemeris_out_of_range", details, 400)
    if not e.retryable:
        return json_error("ephemeris_error", details, 500)
    current_app.logger.warning("ephemeris unavailable (%s): %s", e.stage, e.message)
    return json_error("ephemeris_unavailable", details, 503, {"Retry-After": str(RETRY_AFTER_SECONDS)})


def record_location(geo: GeoResult) -> GeoResult:
    GEOCODE_RESOLUTIONS.labels(source=geo.source).inc()
    return geo
