"""Topocentric visibility: azimuth, elevation and range from a ground site.

Both the observer and the target are placed on a spherical Earth of radius
6371 km (plus altitude) in a common Earth-centered frame. The displacement
between them is projected onto the observer's local east / north / up
basis, which is built analytically from the observer's latitude and
longitude.

An object counts as visible above -0.5° elevation rather than 0°, which
roughly allows for atmospheric refraction near the horizon.
"""
from __future__ import annotations

import json
import logging
import math
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional, Protocol

import numpy as np

from .config import EARTH_RADIUS_KM
from .errors import LocationNotFound

logger = logging.getLogger(__name__)

HORIZON_DEG = -0.5
"""Default visibility threshold (degrees of elevation)."""

MIN_RANGE_KM = 1e-9
"""Below this range observer and target are treated as coincident."""

ZENITH_EPS = 1e-9
"""Horizontal offset, as a fraction of range, below which azimuth is pinned to 0°."""


@dataclass(frozen=True, slots=True)
class ObserverLocation:
    """A ground observer.

    Attributes:
        lat: Latitude (degrees, north positive).
        lng: Longitude (degrees, east positive).
        alt: Height above the reference sphere (meters).
        name: Optional display name.
    """
    lat: float
    lng: float
    alt: float = 0.0
    name: Optional[str] = None


@dataclass(frozen=True, slots=True)
class VisibilityResult:
    """Look angles from an observer to a target.

    Attributes:
        is_visible: Elevation above the horizon threshold.
        azimuth: Degrees clockwise from north, in [0, 360).
        elevation: Degrees above the local horizon, in [-90, 90].
        range_km: Straight-line distance (km).
    """
    is_visible: bool
    azimuth: float
    elevation: float
    range_km: float


@dataclass(frozen=True)
class VisibilityArrays:
    """Vectorized counterpart of ``VisibilityResult``."""
    is_visible: np.ndarray
    azimuth: np.ndarray
    elevation: np.ndarray
    range_km: np.ndarray


@dataclass(frozen=True, slots=True)
class PassPrediction:
    """Start of the next complete pass and its peak elevation."""
    start_time: datetime
    max_elevation: float


class _Geodetic(Protocol):
    lat: float
    lng: float
    alt: float


def evaluate(
    observer: ObserverLocation,
    target_lat: float,
    target_lng: float,
    target_alt: float,
    horizon_deg: float = HORIZON_DEG,
) -> VisibilityResult:
    """Compute look angles from an observer to a target.

    Args:
        observer: Ground observer (altitude in meters).
        target_lat: Target latitude (degrees).
        target_lng: Target longitude (degrees).
        target_alt: Target altitude (km).
        horizon_deg: Elevation above which the target is visible.

    Returns:
        Visibility result. When observer and target coincide the elevation
        is taken as +90° and the azimuth as 0°. A target at the zenith also
        reports azimuth 0°.
    """
    lat1 = math.radians(observer.lat)
    lng1 = math.radians(observer.lng)
    sin_lat, cos_lat = math.sin(lat1), math.cos(lat1)
    sin_lng, cos_lng = math.sin(lng1), math.cos(lng1)

    user_r = EARTH_RADIUS_KM + observer.alt / 1000.0
    ux = user_r * cos_lat * cos_lng
    uy = user_r * cos_lat * sin_lng
    uz = user_r * sin_lat

    lat2 = math.radians(target_lat)
    lng2 = math.radians(target_lng)
    sat_r = EARTH_RADIUS_KM + target_alt
    dx = sat_r * math.cos(lat2) * math.cos(lng2) - ux
    dy = sat_r * math.cos(lat2) * math.sin(lng2) - uy
    dz = sat_r * math.sin(lat2) - uz

    range_km = math.sqrt(dx * dx + dy * dy + dz * dz)
    if range_km < MIN_RANGE_KM:
        return VisibilityResult(
            is_visible=90.0 > horizon_deg,
            azimuth=0.0,
            elevation=90.0,
            range_km=range_km,
        )

    # Local basis: up is radial, north and east are its tangent partners.
    up_component = dx * cos_lat * cos_lng + dy * cos_lat * sin_lng + dz * sin_lat
    north_component = -dx * sin_lat * cos_lng - dy * sin_lat * sin_lng + dz * cos_lat
    east_component = -dx * sin_lng + dy * cos_lng

    sin_el = max(-1.0, min(1.0, up_component / range_km))
    elevation = math.degrees(math.asin(sin_el))
    if math.hypot(east_component, north_component) < ZENITH_EPS * range_km:
        azimuth = 0.0
    else:
        azimuth = _normalize_azimuth(
            math.degrees(math.atan2(east_component, north_component))
        )

    return VisibilityResult(
        is_visible=elevation > horizon_deg,
        azimuth=azimuth,
        elevation=elevation,
        range_km=range_km,
    )


def evaluate_many(
    observer: ObserverLocation,
    lats: np.ndarray,
    lngs: np.ndarray,
    alts: np.ndarray,
    horizon_deg: float = HORIZON_DEG,
) -> VisibilityArrays:
    """Vectorized ``evaluate`` over arrays of target positions."""
    lat1 = math.radians(observer.lat)
    lng1 = math.radians(observer.lng)
    sin_lat, cos_lat = math.sin(lat1), math.cos(lat1)
    sin_lng, cos_lng = math.sin(lng1), math.cos(lng1)
    user_r = EARTH_RADIUS_KM + observer.alt / 1000.0
    user = np.array([cos_lat * cos_lng, cos_lat * sin_lng, sin_lat]) * user_r

    lat2 = np.radians(np.asarray(lats, dtype=float))
    lng2 = np.radians(np.asarray(lngs, dtype=float))
    sat_r = EARTH_RADIUS_KM + np.asarray(alts, dtype=float)
    d = np.stack(
        [
            sat_r * np.cos(lat2) * np.cos(lng2) - user[0],
            sat_r * np.cos(lat2) * np.sin(lng2) - user[1],
            sat_r * np.sin(lat2) - user[2],
        ]
    )

    up = np.array([cos_lat * cos_lng, cos_lat * sin_lng, sin_lat])
    north = np.array([-sin_lat * cos_lng, -sin_lat * sin_lng, cos_lat])
    east = np.array([-sin_lng, cos_lng, 0.0])

    range_km = np.linalg.norm(d, axis=0)
    coincident = range_km < MIN_RANGE_KM
    safe_range = np.where(coincident, 1.0, range_km)

    sin_el = np.clip(up @ d / safe_range, -1.0, 1.0)
    elevation = np.where(coincident, 90.0, np.degrees(np.arcsin(sin_el)))
    east_d, north_d = east @ d, north @ d
    at_zenith = np.hypot(east_d, north_d) < ZENITH_EPS * range_km
    azimuth = np.degrees(np.arctan2(east_d, north_d)) % 360.0
    azimuth = np.where(coincident | at_zenith | (azimuth >= 360.0), 0.0, azimuth)

    return VisibilityArrays(
        is_visible=elevation > horizon_deg,
        azimuth=azimuth,
        elevation=elevation,
        range_km=range_km,
    )


def predict_next_pass(
    observer: ObserverLocation,
    propagate_fn: Callable[[datetime], Optional[_Geodetic]],
    start: Optional[datetime] = None,
    max_hours: float = 24.0,
    step_minutes: float = 1.0,
    horizon_deg: float = HORIZON_DEG,
) -> Optional[PassPrediction]:
    """Find the next complete pass by stepping the propagator forward.

    A pass opens on the first visible sample after a non-visible one (or on
    the very first sample if the object is already up) and is reported once
    it closes. Samples the propagator cannot produce are skipped.

    Args:
        observer: Ground observer.
        propagate_fn: Returns an object with ``lat``, ``lng``, ``alt`` (km)
            for a time, or None.
        start: First sample time (default: now, UTC).
        max_hours: Search window.
        step_minutes: Sampling step.

    Returns:
        The pass start and peak elevation, or None if no pass completes in
        the window.
    """
    start = start or datetime.now(timezone.utc)
    step = timedelta(minutes=step_minutes)
    n_steps = int(max_hours * 60 / step_minutes)

    was_visible = False
    pass_start: Optional[datetime] = None
    max_elevation = 0.0

    for i in range(n_steps):
        t = start + i * step
        position = propagate_fn(t)
        if position is None:
            continue

        result = evaluate(observer, position.lat, position.lng, position.alt, horizon_deg)
        if result.is_visible and not was_visible:
            pass_start = t
            max_elevation = result.elevation
        elif result.is_visible:
            max_elevation = max(max_elevation, result.elevation)
        elif was_visible and pass_start is not None:
            return PassPrediction(start_time=pass_start, max_elevation=max_elevation)

        was_visible = result.is_visible

    return None


class ObserverSession:
    """Owns the current observer location.

    The location changes only through ``set_location``,
    ``set_location_by_name`` and ``clear``. When a path is given it is
    persisted there as JSON and restored on construction; an unreadable
    file is ignored.

    Args:
        path: Optional JSON file for the saved location.
    """

    def __init__(self, path: Optional[str | Path] = None):
        self.path = Path(path) if path is not None else None
        self._location: Optional[ObserverLocation] = None
        self._restore()

    @property
    def location(self) -> Optional[ObserverLocation]:
        return self._location

    def set_location(
        self,
        lat: float,
        lng: float,
        alt: float = 0.0,
        name: Optional[str] = None,
    ) -> ObserverLocation:
        """Set the observer.

        Raises:
            ValueError: If latitude or longitude is out of range.
        """
        if not -90.0 <= lat <= 90.0:
            raise ValueError(f"Latitude must be in [-90, 90], got {lat}")
        if not -180.0 <= lng <= 180.0:
            raise ValueError(f"Longitude must be in [-180, 180], got {lng}")

        self._location = ObserverLocation(lat=lat, lng=lng, alt=alt, name=name)
        self._save()
        return self._location

    def set_location_by_name(
        self,
        place: str,
        resolver: Callable[[str], tuple[float, float]],
    ) -> ObserverLocation:
        """Resolve a place name with an external geocoder and use it.

        Args:
            place: Free-text place name.
            resolver: Returns ``(lat, lng)`` or raises ``LocationNotFound``.

        Raises:
            LocationNotFound: The resolver found no match. The current
                location is left unchanged.
        """
        try:
            lat, lng = resolver(place)
        except LocationNotFound:
            logger.info(f'Location "{place}" not found')
            raise
        return self.set_location(lat, lng, 0.0, name=place.split(",")[0].strip())

    def clear(self) -> None:
        self._location = None
        if self.path is not None and self.path.exists():
            self.path.unlink()

    def _save(self) -> None:
        if self.path is None or self._location is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(asdict(self._location)))
        except OSError as e:
            logger.warning(f"Could not save observer location: {e}")

    def _restore(self) -> None:
        if self.path is None or not self.path.exists():
            return
        try:
            d = json.loads(self.path.read_text())
            self._location = ObserverLocation(
                lat=float(d["lat"]),
                lng=float(d["lng"]),
                alt=float(d.get("alt", 0.0)),
                name=d.get("name"),
            )
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring saved observer location: {e}")


def _normalize_azimuth(azimuth: float) -> float:
    azimuth %= 360.0
    # A tiny negative angle rounds up to exactly 360.0.
    return 0.0 if azimuth >= 360.0 else azimuth
