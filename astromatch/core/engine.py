# astromatch/core/engine.py
# -----------------------------------------------------------------------------
# AstroEngine: the one place where birth inputs become charts and scores.
#
#   BirthInput ──locate──▶ GeoResult ──build_natal_chart──▶ NatalChart
#   (NatalChart, NatalChart) ──CompatibilityScorer──▶ CompatibilityResult
#
# Collaborators are injected (ephemeris, geocoder, scorer) so the HTTP layer,
# tests and scripts all drive the same code.
# -----------------------------------------------------------------------------
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Dict, Mapping, Optional, Tuple
import logging

from astromatch.core.chart import NatalChart, build_natal_chart, ephemeris_longitude, make_position
from astromatch.core.compatibility import CompatibilityResult, CompatibilityScorer, quick_compatibility
from astromatch.core.ephemeris_adapter import Config as EphemerisConfig
from astromatch.core.ephemeris_adapter import EphemerisSource, SkyfieldEphemeris
from astromatch.core.geocoding import CityGeocoder, GeocodingSource, GeoResult, estimate_utc_offset
from astromatch.core.timescales import instant_from_local
from astromatch.core.validators import BirthInput
from astromatch.core.zodiac import element_of, modality_of, sun_sign_for_date

log = logging.getLogger(__name__)

__all__ = ["ChartResult", "AstroEngine", "engine_from_config"]


@dataclass(frozen=True)
class ChartResult:
    chart: NatalChart
    location: GeoResult

    def to_dict(self) -> Dict[str, Any]:
        return {"chart": self.chart.to_dict(), "location": self.location.to_dict()}


class AstroEngine:
    def __init__(
        self,
        ephemeris: EphemerisSource,
        geocoder: GeocodingSource,
        scorer: Optional[CompatibilityScorer] = None,
    ):
        self.ephemeris = ephemeris
        self.geocoder = geocoder
        self.scorer = scorer or CompatibilityScorer()

    # ---- single person ---------------------------------------------------

    def locate(self, birth: BirthInput) -> GeoResult:
        if birth.has_coordinates:
            lat, lon = float(birth.latitude), float(birth.longitude)
            # whole-hour estimate; birth time is never converted with it
            return GeoResult(lat, lon, estimate_utc_offset(lon), birth.city or "", "coordinates")
        return self.geocoder.resolve(birth.city)

    def natal_chart(self, birth: BirthInput) -> ChartResult:
        geo = self.locate(birth)
        chart = build_natal_chart(
            self.ephemeris,
            birth.birth_date,
            birth.birth_time,
            geo.latitude,
            geo.longitude,
            include_houses=birth.include_houses,
        )
        return ChartResult(chart, geo)

    def sun_sign(self, birth_date: date) -> Dict[str, Any]:
        """Ephemeris Sun at local noon next to the calendar estimate."""
        instant = instant_from_local(datetime.combine(birth_date, time(12, 0)))
        pos = make_position(ephemeris_longitude(self.ephemeris, "Sun", instant))
        estimate = sun_sign_for_date(birth_date)
        return {
            "sun": pos.to_dict(),
            "element": element_of(pos.sign),
            "modality": modality_of(pos.sign),
            "date_estimate": estimate,
            "on_cusp": estimate != pos.sign,
        }

    # ---- pairs ------------------------------------------------------------

    def synastry(self, person1: BirthInput, person2: BirthInput) -> Tuple[CompatibilityResult, ChartResult, ChartResult]:
        """Both charts are built concurrently; scoring waits for both."""
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="chart") as pool:
            f1 = pool.submit(self.natal_chart, person1)
            f2 = pool.submit(self.natal_chart, person2)
            r1, r2 = f1.result(), f2.result()
        return self.scorer.score(r1.chart, r2.chart), r1, r2

    def synastry_from_charts(self, chart1: NatalChart, chart2: NatalChart) -> CompatibilityResult:
        return self.scorer.score(chart1, chart2)

    @staticmethod
    def quick(sign1: str, sign2: str) -> Dict[str, Any]:
        return {
            "score": quick_compatibility(sign1, sign2),
            "elements": [element_of(sign1), element_of(sign2)],
        }


def engine_from_config(cfg: Optional[Mapping[str, Any]] = None, *, geolocator: Any = None) -> AstroEngine:
    cfg = cfg or {}
    eph = cfg.get("ephemeris") or {}
    eph_cfg = EphemerisConfig(
        kernel_path=eph.get("kernel_path"),
        allow_download=EphemerisConfig.allow_download if eph.get("allow_download") is None else bool(eph["allow_download"]),
        data_dir=eph.get("data_dir") or EphemerisConfig.data_dir,
    )
    engine = AstroEngine(
        ephemeris=SkyfieldEphemeris(eph_cfg),
        geocoder=CityGeocoder.from_config(cfg.get("geocoding"), geolocator=geolocator),
        scorer=CompatibilityScorer.from_config(cfg.get("scoring")),
    )
    log.info("engine ready (kernel=%s, download=%s)", eph_cfg.kernel_path or "auto", eph_cfg.allow_download)
    return engine
