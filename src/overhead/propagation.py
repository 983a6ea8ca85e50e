"""Propagation adapter contract and the default SGP4 implementation.

The update cycle only needs one call::

    propagate(record, timestamp) -> PropagationSample | None

``None`` means "this object cannot be placed right now" and is handled per
object; it is never an engine fault. ``Sgp4Propagator`` satisfies the
contract with the ``sgp4`` library; tests and hosts may supply any other
object with the same method.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional, Protocol

from sgp4.api import Satrec, jday

from .tle_parser import ElementRecord

logger = logging.getLogger(__name__)

# WGS84 ellipsoid (km)
WGS84_A = 6378.137
WGS84_F = 1.0 / 298.257223563
WGS84_E2 = WGS84_F * (2.0 - WGS84_F)

TWO_PI = 2.0 * math.pi


@dataclass(frozen=True, slots=True)
class PropagationSample:
    """Geodetic state of one object at one instant.

    Attributes:
        lat: Geodetic latitude (degrees).
        lng: Longitude, [-180, 180) (degrees).
        alt: Height above the ellipsoid (km).
        velocity: Inertial speed (km/s).
    """
    lat: float
    lng: float
    alt: float
    velocity: float


class PropagationAdapter(Protocol):
    def propagate(
        self, record: ElementRecord, timestamp: datetime
    ) -> Optional[PropagationSample]:
        ...


class Sgp4Propagator:
    """SGP4 propagation with TEME→geodetic conversion.

    Parsed ``Satrec`` objects are memoized per record, so repeated ticks over
    the same catalog only pay for the propagation itself.

    Args:
        maxsize: Number of parsed element sets kept.
    """

    def __init__(self, maxsize: int = 32768):
        self._satrec = lru_cache(maxsize=maxsize)(_build_satrec)

    def propagate(
        self, record: ElementRecord, timestamp: datetime
    ) -> Optional[PropagationSample]:
        satrec = self._satrec(record)
        if satrec is None:
            return None

        if timestamp.tzinfo is not None:
            timestamp = timestamp.astimezone(timezone.utc)
        jd, fr = jday(
            timestamp.year, timestamp.month, timestamp.day,
            timestamp.hour, timestamp.minute,
            timestamp.second + timestamp.microsecond / 1e6,
        )

        error, r, v = satrec.sgp4(jd, fr)
        if error != 0:
            return None

        lat, lng, alt = teme_to_geodetic(r, gmst(jd + fr))
        velocity = math.sqrt(v[0] ** 2 + v[1] ** 2 + v[2] ** 2)
        if not all(math.isfinite(x) for x in (lat, lng, alt, velocity)):
            return None

        return PropagationSample(lat=lat, lng=lng, alt=alt, velocity=velocity)


def gmst(jd_ut1: float) -> float:
    """Greenwich mean sidereal time (radians) for a UT1 Julian date.

    IAU 1982 expression, as used by SGP4 reference implementations.
    """
    t = (jd_ut1 - 2451545.0) / 36525.0
    seconds = (
        -6.2e-6 * t**3
        + 0.093104 * t**2
        + (876600.0 * 3600.0 + 8640184.812866) * t
        + 67310.54841
    )
    theta = math.radians(seconds / 240.0) % TWO_PI
    return theta + TWO_PI if theta < 0 else theta


def teme_to_geodetic(
    position: tuple[float, float, float],
    gmst_rad: float,
) -> tuple[float, float, float]:
    """Convert a TEME position (km) to geodetic lat/lng (deg) and height (km).

    Rotates by GMST into an Earth-fixed frame, then solves for latitude
    iteratively on the WGS84 ellipsoid.
    """
    x, y, z = position
    lng = math.atan2(y, x) - gmst_rad
    lng = (lng + math.pi) % TWO_PI - math.pi

    p = math.hypot(x, y)
    lat = math.atan2(z, p)
    c = 1.0
    for _ in range(20):
        c = 1.0 / math.sqrt(1.0 - WGS84_E2 * math.sin(lat) ** 2)
        next_lat = math.atan2(z + WGS84_A * c * WGS84_E2 * math.sin(lat), p)
        if abs(next_lat - lat) < 1e-12:
            lat = next_lat
            break
        lat = next_lat

    if abs(math.cos(lat)) > 1e-9:
        alt = p / math.cos(lat) - WGS84_A * c
    else:
        # Over a pole: height along the polar radius.
        alt = abs(z) - WGS84_A * (1.0 - WGS84_F)
    return math.degrees(lat), math.degrees(lng), alt


def _build_satrec(record: ElementRecord) -> Optional[Satrec]:
    try:
        satrec = Satrec.twoline2rv(record.line1, record.line2)
    except (ValueError, IndexError) as e:
        logger.debug(f"Unusable element set for {record.name}: {e}")
        return None
    if satrec.error != 0:
        return None
    return satrec
