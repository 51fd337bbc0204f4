# astromatch/core/ephemeris_adapter.py
# -----------------------------------------------------------------------------
# Ephemeris Adapter (Skyfield + JPL DE421)
#
# Contract consumed by the chart builder (see EphemerisSource):
#   geocentric_longitude(body, instant) -> deg [0,360)
#   sidereal_time(instant)              -> hours (apparent, Greenwich)
#   julian_centuries(instant)           -> centuries of UT since J2000
#
# • Sun/Moon: apparent geocentric position read directly in the ecliptic frame
# • Planets: apparent geocentric vector rotated into the ecliptic frame, then
#   atan2 (light-time and aberration corrected by Skyfield's apparent())
# • Kernel bootstrap is lazy and thread-safe; one load per path per process
# • Every failure surfaces as EphemerisError with a stage tag
# -----------------------------------------------------------------------------
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol
import logging
import math
import os
import threading

from astromatch.core.timescales import Instant
from astromatch.core.zodiac import normalize

log = logging.getLogger(__name__)

# ─────────────────────────────────────────────────────────────────────────────
# Constants / environment
# ─────────────────────────────────────────────────────────────────────────────
EPHEMERIS_NAME_DEFAULT = "de421.bsp"

DE421_JD_MIN = float(os.getenv("ASTROMATCH_DE421_JD_MIN", "2414992.5"))  # 1899-12-31
DE421_JD_MAX = float(os.getenv("ASTROMATCH_DE421_JD_MAX", "2469807.5"))  # 2053-10-09

_ALLOW_DOWNLOAD_ENV = os.getenv("ASTROMATCH_EPHEMERIS_DOWNLOAD", "1").lower() in ("1", "true", "yes", "on")

BODIES = ("Sun", "Moon", "Mercury", "Venus", "Mars", "Jupiter", "Saturn")

_KERNEL_KEYS: Dict[str, str] = {
    "Sun": "sun",
    "Moon": "moon",
    "Mercury": "mercury",
    "Venus": "venus",
    "Mars": "mars",
    "Jupiter": "jupiter barycenter",
    "Saturn": "saturn barycenter",
}
_DIRECT_BODIES = frozenset({"Sun", "Moon"})


# ─────────────────────────────────────────────────────────────────────────────
# Exceptions / contract
# ─────────────────────────────────────────────────────────────────────────────
class EphemerisError(RuntimeError):
    """Categorized adapter failure. `retryable` tells the caller whether a later attempt may succeed."""
    def __init__(self, stage: str, message: str, *, retryable: bool = True, **context: Any):
        super().__init__(f"{stage}: {message}")
        self.stage = stage
        self.message = message
        self.retryable = retryable
        self.context = context


class EphemerisSource(Protocol):
    def geocentric_longitude(self, body: str, instant: Instant) -> float: ...
    def sidereal_time(self, instant: Instant) -> float: ...
    def julian_centuries(self, instant: Instant) -> float: ...


@dataclass(frozen=True)
class Config:
    kernel_path: Optional[str] = None
    allow_download: bool = _ALLOW_DOWNLOAD_ENV
    data_dir: str = os.path.join(os.getcwd(), "data")
    enforce_jd_range: bool = True
    jd_min: float = DE421_JD_MIN
    jd_max: float = DE421_JD_MAX


# ─────────────────────────────────────────────────────────────────────────────
# Kernel I/O (process-wide, one object per resolved path)
# ─────────────────────────────────────────────────────────────────────────────
_TS = None
_KERNELS: Dict[str, Any] = {}
_LOCK_KERNEL = threading.Lock()


def _looks_like_lfs_pointer(path: str) -> bool:
    try:
        if os.path.getsize(path) <= 512:
            with open(path, "rb") as f:
                return f.read(128).startswith(b"version https://git-lfs.github.com/spec/v1")
    except OSError:
        pass
    return False


def _resolve_kernel_path(cfg: Config) -> Optional[str]:
    for candidate in (cfg.kernel_path, os.getenv("ASTROMATCH_EPHEMERIS"),
                      os.path.join(cfg.data_dir, EPHEMERIS_NAME_DEFAULT)):
        if candidate and os.path.isfile(candidate):
            return candidate
    return None


def _get_timescale():
    global _TS
    if _TS is not None:
        return _TS
    from skyfield.api import load
    with _LOCK_KERNEL:
        if _TS is None:
            _TS = load.timescale()
    return _TS


def _get_kernel(cfg: Config):
    from skyfield.api import Loader, load_file

    path = _resolve_kernel_path(cfg)
    key = path or os.path.join(cfg.data_dir, EPHEMERIS_NAME_DEFAULT)
    k = _KERNELS.get(key)
    if k is not None:
        return k

    with _LOCK_KERNEL:
        k = _KERNELS.get(key)
        if k is not None:
            return k
        if path:
            if _looks_like_lfs_pointer(path):
                raise EphemerisError("kernel", f"Kernel looks like a Git LFS pointer: {path}", retryable=False)
            try:
                k = load_file(path)
            except Exception as e:
                raise EphemerisError("kernel", f"Skyfield failed to load kernel: {path}", error=str(e))
        elif cfg.allow_download:
            log.info("No local %s; downloading into %s", EPHEMERIS_NAME_DEFAULT, cfg.data_dir)
            try:
                k = Loader(cfg.data_dir)(EPHEMERIS_NAME_DEFAULT)
            except Exception as e:
                raise EphemerisError("kernel", "Kernel download failed", error=str(e))
        else:
            raise EphemerisError(
                "kernel",
                f"No local {EPHEMERIS_NAME_DEFAULT} (set ASTROMATCH_EPHEMERIS or enable download)",
            )
        _KERNELS[key] = k
        log.info("Ephemeris kernel ready: %s", key)
    return k


# ─────────────────────────────────────────────────────────────────────────────
# Adapter
# ─────────────────────────────────────────────────────────────────────────────
class SkyfieldEphemeris:
    """EphemerisSource backed by Skyfield and a JPL kernel."""

    def __init__(self, cfg: Optional[Config] = None):
        self.cfg = cfg or Config()

    def _time(self, instant: Instant):
        if self.cfg.enforce_jd_range and not (self.cfg.jd_min <= instant.jd_tt <= self.cfg.jd_max):
            raise EphemerisError(
                "range",
                f"{instant.local.date().isoformat()} is outside the kernel coverage",
                retryable=False,
                jd_tt=instant.jd_tt,
            )
        return _get_timescale().tt_jd(instant.jd_tt)

    def geocentric_longitude(self, body: str, instant: Instant) -> float:
        name = str(body).strip().title()
        if name not in _KERNEL_KEYS:
            raise EphemerisError("body", f"Unsupported body '{body}'", retryable=False)
        t = self._time(instant)
        kernel = _get_kernel(self.cfg)
        from skyfield import framelib

        try:
            apparent = kernel["earth"].at(t).observe(kernel[_KERNEL_KEYS[name]]).apparent()
            if name in _DIRECT_BODIES:
                _lat, lon, _dist = apparent.frame_latlon(framelib.ecliptic_frame)
                value = float(lon.degrees)
            else:
                x, y, _z = apparent.frame_xyz(framelib.ecliptic_frame).au
                value = math.degrees(math.atan2(float(y), float(x)))
        except EphemerisError:
            raise
        except Exception as e:
            raise EphemerisError("compute", f"Position failed for {name}", error=str(e))

        if not math.isfinite(value):
            raise EphemerisError("compute", f"Non-finite longitude for {name}")
        return normalize(value)

    def sidereal_time(self, instant: Instant) -> float:
        return float(self._time(instant).gast)

    def julian_centuries(self, instant: Instant) -> float:
        return instant.julian_centuries

    def diagnostics(self) -> Dict[str, Any]:
        path = _resolve_kernel_path(self.cfg)
        return {
            "kernel_path": path,
            "kernel_loaded": bool(_KERNELS),
            "allow_download": self.cfg.allow_download,
            "jd_range": [self.cfg.jd_min, self.cfg.jd_max] if self.cfg.enforce_jd_range else None,
            "bodies": list(BODIES),
        }
