from __future__ import annotations
import time
from functools import wraps
from typing import Callable

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

# dedicated registry: the app can be created more than once per process (tests)
REGISTRY = CollectorRegistry(auto_describe=True)

REQUESTS = Counter(
    "astromatch_requests_total", "HTTP requests by endpoint and status",
    ["endpoint", "status"], registry=REGISTRY,
)
LATENCY = Histogram(
    "astromatch_request_latency_seconds", "Endpoint latency",
    ["endpoint"], registry=REGISTRY,
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)
GEOCODE_RESOLUTIONS = Counter(
    "astromatch_geocode_resolutions_total", "City resolutions by source",
    ["source"], registry=REGISTRY,
)
EPHEMERIS_FAILURES = Counter(
    "astromatch_ephemeris_failures_total", "Ephemeris adapter failures by stage",
    ["stage"], registry=REGISTRY,
)
APP_UP = Gauge("astromatch_up", "1 while the app is serving", registry=REGISTRY)


def timed(endpoint_name: str) -> Callable:
    """Observe wall time of a view into LATENCY under `endpoint_name`."""
    def deco(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            t0 = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                LATENCY.labels(endpoint=endpoint_name).observe(time.perf_counter() - t0)
        return wrapper
    return deco
