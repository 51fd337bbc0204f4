# astromatch/main.py
from __future__ import annotations

import logging
import os
import traceback
from time import perf_counter
from typing import Any, Mapping, Optional

from flask import Flask, Response, jsonify, request
from flask_cors import CORS
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

from astromatch.api.helpers import ENGINE_KEY, ephemeris_error_response, json_error
from astromatch.api.routes import api as _routes_bp
from astromatch.api.routes import limiter
from astromatch.core.engine import AstroEngine, engine_from_config
from astromatch.core.ephemeris_adapter import EphemerisError
from astromatch.core.validators import ValidationError
from astromatch.utils.config import load_config
from astromatch.utils.metrics import APP_UP, LATENCY, REGISTRY, REQUESTS
from astromatch.version import VERSION

_TRACKED_PREFIXES = ("/api/",)
_TRACKED_PATHS = ("/", "/health", "/healthz")

# ───────────────────────── helpers: logging & errors ─────────────────────────
def _configure_logging(app: Flask) -> None:
    gerr = logging.getLogger("gunicorn.error")
    if gerr.handlers:
        app.logger.handlers = gerr.handlers
        app.logger.setLevel(gerr.level)
    else:
        logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))

def _register_errors(app: Flask) -> None:
    @app.errorhandler(ValidationError)
    def _validation(e: ValidationError):
        app.logger.warning("validation error at %s %s: %s", request.method, request.path, e)
        return json_error("validation_error", e.errors(), 400)

    @app.errorhandler(EphemerisError)
    def _ephemeris(e: EphemerisError):
        return ephemeris_error_response(e)

    @app.errorhandler(HTTPException)
    def _http(e: HTTPException):
        app.logger.warning("HTTP %s at %s %s: %s", e.code, request.method, request.path, e.description)
        return jsonify(
            ok=False,
            error="http_error",
            code=e.code,
            name=e.name,
            message=e.description,
            path=request.path,
        ), e.code

    @app.errorhandler(Exception)
    def _any(e: Exception):
        tb = traceback.format_exc()
        app.logger.error("UNHANDLED %s at %s %s\n%s", type(e).__name__, request.method, request.path, tb)
        return jsonify(
            ok=False,
            error="internal_error",
            type=type(e).__name__,
            path=request.path,
        ), 500

# ───────────────────────── health & metrics ─────────────────────────
def _register_health(app: Flask) -> None:
    @app.route("/", methods=["GET"])
    def root():
        return jsonify(ok=True, service="astromatch", version=VERSION, health="/health"), 200

    @app.route("/health", methods=["GET"])
    @app.route("/healthz", methods=["GET"])
    def health():
        return jsonify(ok=True, status="ok"), 200

    @app.route("/metrics", methods=["GET"])
    def metrics_endpoint():
        if not _metrics_auth_ok():
            return Response("Unauthorized", 401, {"WWW-Authenticate": 'Basic realm="metrics"'})
        APP_UP.set(1.0)
        return Response(generate_latest(REGISTRY), mimetype=CONTENT_TYPE_LATEST)

def _metrics_auth_ok() -> bool:
    auth = request.authorization
    user = os.getenv("METRICS_USER", "")
    pw = os.getenv("METRICS_PASS", "")
    return bool(
        auth and auth.type == "basic" and auth.username == user and auth.password == pw and user and pw
    )

def _tracked(path: str) -> bool:
    return path.startswith(_TRACKED_PREFIXES) or path in _TRACKED_PATHS

def _register_request_metrics(app: Flask) -> None:
    @app.before_request
    def _before():
        request.environ["astromatch.t0"] = perf_counter()

    @app.after_request
    def _after(resp):
        p = request.path or ""
        t0 = request.environ.get("astromatch.t0")
        if _tracked(p):
            route = request.url_rule.rule if request.url_rule is not None else "unmatched"
            REQUESTS.labels(endpoint=route, status=str(resp.status_code)).inc()
            if t0 is not None:
                LATENCY.labels(endpoint=route).observe(perf_counter() - t0)
        return resp

# ───────────────────────── app factory ─────────────────────────
def create_app(
    config: Optional[Mapping[str, Any]] = None,
    *,
    engine: Optional[AstroEngine] = None,
    rate_limit: Optional[bool] = None,
) -> Flask:
    """
    Build the WSGI app.

    config: already-loaded config mapping (default: load_config()).
    engine: pre-built AstroEngine (tests inject fakes here).
    rate_limit: force limiting on/off (default: ASTROMATCH_RL_DISABLE).
    """
    app = Flask(__name__)
    app.json.sort_keys = False
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)  # type: ignore

    _configure_logging(app)

    cfg = config if config is not None else load_config()
    app.config["ASTROMATCH"] = cfg
    app.extensions[ENGINE_KEY] = engine or engine_from_config(cfg)
    limiter.init_app(app, disabled=None if rate_limit is None else not rate_limit)

    _register_health(app)
    _register_errors(app)
    _register_request_metrics(app)
    app.register_blueprint(_routes_bp)

    allowed_origin = os.environ.get("CORS_ALLOW_ORIGIN") or "*"
    CORS(
        app,
        resources={r"/.*": {"origins": allowed_origin}},
        supports_credentials=False,
        methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=600,
    )

    APP_UP.set(1.0)
    app.logger.info("App initialized; version=%s; blueprints=%s", VERSION, list(app.blueprints))
    return app


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=int(os.environ.get("PORT", 5000)))
