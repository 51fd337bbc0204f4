# astromatch/utils/ratelimit.py
from __future__ import annotations

"""
Token-bucket rate limiting for the Flask views.

- Decorators are declared once at import time; bucket state lives on the app
  (app.extensions["astromatch.ratelimit"]) so separate apps never share budgets
- Buckets keyed by client (first X-Forwarded-For hop, else remote addr) + endpoint
- X-RateLimit-* headers on every limited response, Retry-After on 429
- Env toggles (read by init_app unless overridden):
    ASTROMATCH_RL_DISABLE    -> disable limiting entirely
    ASTROMATCH_RL_ALLOWLIST  -> comma-separated client ids/IPs to skip
"""

import math
import os
import time
from dataclasses import dataclass, field
from functools import wraps
from threading import RLock
from typing import Callable, Dict, Iterable, Optional, Set

from flask import Flask, current_app, request, jsonify, make_response

__all__ = ["TokenBucketLimiter", "endpoint_key"]

EXTENSION_KEY = "astromatch.ratelimit"


def _first_forwarded_for(req) -> str:
    xff = req.headers.get("X-Forwarded-For", "")
    return (xff.split(",")[0].strip() if xff else "") or (req.remote_addr or "anon")


def endpoint_key(req) -> str:
    return f"{_first_forwarded_for(req)}:{(req.endpoint or req.path) or '*'}"


def _env_flag(name: str) -> bool:
    return os.getenv(name, "0").lower() in ("1", "true", "yes", "on")


@dataclass
class Bucket:
    tokens: float
    capacity: float
    rate: float         # tokens per second
    ts: float           # last refill (monotonic)

    def refill(self, now: float) -> None:
        if now > self.ts:
            self.tokens = min(self.capacity, self.tokens + (now - self.ts) * self.rate)
            self.ts = now


@dataclass
class _State:
    disabled: bool
    allowlist: Set[str]
    clock: Callable[[], float]
    buckets: Dict[str, Bucket] = field(default_factory=dict)
    lock: RLock = field(default_factory=RLock)
    last_sweep: float = 0.0


class TokenBucketLimiter:
    IDLE_EVICT_SECONDS = 180.0

    def __init__(self, key_fn: Callable = endpoint_key):
        self.key_fn = key_fn

    def init_app(
        self,
        app: Flask,
        *,
        disabled: Optional[bool] = None,
        allowlist: Optional[Iterable[str]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if disabled is None:
            disabled = _env_flag("ASTROMATCH_RL_DISABLE")
        if allowlist is None:
            allowlist = os.getenv("ASTROMATCH_RL_ALLOWLIST", "").split(",")
        app.extensions[EXTENSION_KEY] = _State(
            disabled=bool(disabled),
            allowlist={s.strip() for s in allowlist if s and s.strip()},
            clock=clock,
        )

    def _sweep(self, st: _State, now: float) -> None:
        if now - st.last_sweep < 30.0:
            return
        st.last_sweep = now
        idle = [k for k, b in st.buckets.items()
                if b.tokens >= b.capacity and (now - b.ts) > self.IDLE_EVICT_SECONDS]
        for k in idle:
            st.buckets.pop(k, None)

    def limit(self, per_minute: int, *, burst: Optional[int] = None):
        """Decorator: allow `per_minute` steady requests per client and endpoint."""
        if per_minute <= 0:
            raise ValueError("per_minute must be > 0")
        capacity = float(burst if burst is not None else per_minute)
        rate = per_minute / 60.0
        policy = f"{per_minute};w=60;burst={int(capacity)}"

        def decorator(f):
            @wraps(f)
            def wrapper(*args, **kwargs):
                st: Optional[_State] = current_app.extensions.get(EXTENSION_KEY)
                if st is None or st.disabled or request.method in ("HEAD", "OPTIONS"):
                    return f(*args, **kwargs)
                key = str(self.key_fn(request))
                if key in st.allowlist or key.split(":", 1)[0] in st.allowlist:
                    return f(*args, **kwargs)

                now = st.clock()
                with st.lock:
                    self._sweep(st, now)
                    b = st.buckets.get(key)
                    if b is None:
                        b = st.buckets[key] = Bucket(capacity, capacity, rate, now)
                    else:
                        b.refill(now)

                    if b.tokens + 1e-12 < 1.0:
                        retry_after = max(1, math.ceil((1.0 - b.tokens) / b.rate - 1e-9))
                        resp = make_response(jsonify({
                            "ok": False,
                            "error": "rate_limited",
                            "details": {"retry_after_seconds": retry_after},
                        }), 429)
                        resp.headers["Retry-After"] = str(retry_after)
                        resp.headers["X-RateLimit-Limit"] = str(per_minute)
                        resp.headers["X-RateLimit-Remaining"] = "0"
                        resp.headers["X-RateLimit-Reset"] = str(retry_after)
                        resp.headers["X-RateLimit-Policy"] = policy
                        return resp

                    b.tokens -= 1.0
                    remaining = max(0, int(b.tokens))
                    reset = 0 if b.tokens >= b.capacity else max(0, math.ceil((1.0 - (b.tokens % 1.0)) / b.rate))

                resp = make_response(f(*args, **kwargs))
                resp.headers.setdefault("X-RateLimit-Limit", str(per_minute))
                resp.headers["X-RateLimit-Remaining"] = str(remaining)
                resp.headers.setdefault("X-RateLimit-Reset", str(reset))
                resp.headers.setdefault("X-RateLimit-Policy", policy)
                return resp

            return wrapper

        return decorator
