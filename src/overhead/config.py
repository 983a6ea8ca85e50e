"""Runtime configuration.

Defaults match a desktop tracker refreshing CelesTrak groups. Every field
can be overridden through ``OVERHEAD_*`` environment variables, e.g.::

    export OVERHEAD_FETCH_TIMEOUT_S=10
    export OVERHEAD_CACHE_PATH=/tmp/overhead.json
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

CELESTRAK_GP_URL = "https://celestrak.org/NORAD/elements/gp.php"

TLE_SOURCES = {
    "stations": f"{CELESTRAK_GP_URL}?GROUP=stations&FORMAT=tle",
    "active": f"{CELESTRAK_GP_URL}?GROUP=active&FORMAT=tle",
    "starlink": f"{CELESTRAK_GP_URL}?GROUP=starlink&FORMAT=tle",
    "weather": f"{CELESTRAK_GP_URL}?GROUP=weather&FORMAT=tle",
    "gps": f"{CELESTRAK_GP_URL}?GROUP=gps-ops&FORMAT=tle",
    "irnss": f"{CELESTRAK_GP_URL}?GROUP=irnss&FORMAT=tle",
    "science": f"{CELESTRAK_GP_URL}?GROUP=science&FORMAT=tle",
}
"""Named catalog sources (CelesTrak GP groups, 3-line TLE format)."""

EARTH_RADIUS_KM = 6371.0
"""Mean spherical Earth radius used for visibility and scene placement (km)."""


def _default_cache_path() -> Path:
    return Path.home() / ".cache" / "overhead" / "catalog.json"


@dataclass
class TrackerConfig:
    """Tunable limits for the catalog cache and update cycle.

    Attributes:
        cache_ttl_s: Age below which a cached catalog is served without a fetch.
        fetch_timeout_s: Overall deadline for one catalog download.
        refresh_interval_s: Period of the background catalog refresh.
        min_records: Minimum parsed records for a download to be accepted.
        min_altitude_km: Lowest altitude accepted from the propagator.
        max_altitude_km: Highest altitude accepted from the propagator.
        horizon_deg: Elevation above which an object counts as visible.
        base_scale: Render scale of an eligible, unselected object.
        selected_scale: Multiplier applied to the selected object.
        filtered_scale: Multiplier applied to filtered-out objects.
        cache_path: Persisted catalog slot (None disables persistence).
    """
    cache_ttl_s: float = 6 * 3600.0
    fetch_timeout_s: float = 30.0
    refresh_interval_s: float = 30 * 60.0
    min_records: int = 10
    min_altitude_km: float = 100.0
    max_altitude_km: float = 50000.0
    horizon_deg: float = -0.5
    base_scale: float = 0.002
    selected_scale: float = 2.0
    filtered_scale: float = 0.3
    cache_path: Optional[Path] = field(default_factory=_default_cache_path)

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> TrackerConfig:
        """Build a config from ``OVERHEAD_<FIELD>`` environment variables.

        Unset variables keep their defaults. ``OVERHEAD_CACHE_PATH=""``
        disables the persisted cache.
        """
        environ = os.environ if environ is None else environ
        config = cls()
        for f in fields(cls):
            raw = environ.get(f"OVERHEAD_{f.name.upper()}")
            if raw is None:
                continue
            if f.name == "cache_path":
                value = Path(raw).expanduser() if raw else None
            elif f.name == "min_records":
                value = int(raw)
            else:
                value = float(raw)
            setattr(config, f.name, value)
        return config

    @classmethod
    def offline(cls) -> TrackerConfig:
        """Config without a persisted cache, for tests and one-shot runs."""
        return cls(cache_path=None)
