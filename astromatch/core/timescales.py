# astromatch/core/timescales.py
# -----------------------------------------------------------------------------
# Birth instants (ERFA aligned)
#
# A birth instant is a zoneless wall-clock datetime: the time a person reports
# is taken as already local to the birth place and no zone conversion happens.
# It is carried to the astronomical timescales with ERFA:
#
#       calendar → JD(UTC)        (erfa.dtf2d)
#       JD(UTC) → TAI → TT        (erfa.utctai → erfa.taitt)
#       UT ≈ UTC                  (DUT1 < 0.9 s, far below chart precision)
#
# ERFA flags years outside its leap-second table (before 1960, or well past the
# table release) as "dubious"; that is recorded on the instant, not an error.
# -----------------------------------------------------------------------------

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Tuple
import math
import warnings

import erfa  # pyERFA

__all__ = ["J2000_JD", "DAYS_PER_CENTURY", "Instant", "instant_from_local"]

J2000_JD = 2451545.0
DAYS_PER_CENTURY = 36525.0


@dataclass(frozen=True)
class Instant:
    local: datetime
    jd_ut: float
    jd_tt: float
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def julian_centuries(self) -> float:
        """Julian centuries of UT since J2000.0."""
        return (self.jd_ut - J2000_JD) / DAYS_PER_CENTURY

    def shifted(self, days: float) -> "Instant":
        return instant_from_local(self.local + timedelta(days=days))


def instant_from_local(dt: datetime) -> Instant:
    """Build an Instant from a naive (or aware, zone ignored) datetime."""
    notes = []
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always", erfa.ErfaWarning)
        utc1, utc2 = erfa.dtf2d(
            "UTC", dt.year, dt.month, dt.day,
            dt.hour, dt.minute, dt.second + dt.microsecond / 1e6,
        )
        tai1, tai2 = erfa.utctai(utc1, utc2)
        tt1, tt2 = erfa.taitt(tai1, tai2)
    if any(issubclass(w.category, erfa.ErfaWarning) for w in caught):
        notes.append("erfa_dubious_year")

    return Instant(
        local=dt.replace(tzinfo=None),
        jd_ut=math.fsum((float(utc1), float(utc2))),
        jd_tt=math.fsum((float(tt1), float(tt2))),
        warnings=tuple(notes),
    )
