"""Operator, country, mission and orbit-class tagging.

Tags are derived from two things only: keywords in the object name and
the mean-motion column of line 2. Name rules are ordered and the first
match wins. Anything unrecognized falls through to a safe default
(``Unknown`` operator, ``Communication`` mission) rather than failing.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from functools import lru_cache

from .tle_parser import ElementRecord


class OrbitClass(Enum):
    """Orbit regime inferred from mean motion (rev/day)."""
    LEO = "LEO"
    MEO = "MEO"
    GEO = "GEO"
    HEO = "HEO"


UNKNOWN_OPERATOR = "Unknown"
DEFAULT_COUNTRY = "USA"
DEFAULT_MISSION = "Communication"

# Mean-motion thresholds (rev/day)
GEO_MAX_MEAN_MOTION = 2.0
MEO_MAX_MEAN_MOTION = 8.0
LEO_MAX_MEAN_MOTION = 16.0

# (name keywords, operator), first match wins
OPERATOR_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("STARLINK",), "SpaceX"),
    (("ONEWEB",), "OneWeb"),
    (("GPS",), "USSF"),
    (("IRNSS", "NAVIC"), "ISRO"),
    (("GLONASS",), "Roscosmos"),
    (("GALILEO",), "ESA"),
    (("BEIDOU",), "CNSA"),
    (("ISS",), "NASA/Roscosmos"),
    (("TIANGONG",), "CNSA"),
    (("GOES", "NOAA"), "NOAA"),
    (("COSMOS",), "Roscosmos"),
    (("USA",), "USSF"),
    (("INSAT", "GSAT"), "ISRO"),
)

OPERATOR_COUNTRIES = {
    "ISRO": "India",
    "Roscosmos": "Russia",
    "ESA": "EU",
    "CNSA": "China",
}

# (name keywords, country) checked when the operator implies no country
NAME_COUNTRY_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("QZSS",), "Japan"),
)

MISSION_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("GPS", "GLONASS", "GALILEO", "BEIDOU", "IRNSS"), "Navigation"),
    (("ISS", "TIANGONG", "STATION"), "Space Station"),
    (("GOES", "NOAA", "METEO"), "Weather"),
    (("LANDSAT", "SENTINEL", "TERRA", "AQUA"), "Earth Observation"),
    (("STARLINK", "ONEWEB"), "Communication"),
    (("HUBBLE", "JWST", "CHANDRA"), "Science"),
)


@dataclass(frozen=True, slots=True)
class Metadata:
    """Classification tags for one element record."""
    operator: str
    country: str
    mission_type: str
    orbit_class: OrbitClass

    def to_dict(self) -> dict:
        return {
            "operator": self.operator,
            "country": self.country,
            "mission_type": self.mission_type,
            "orbit_class": self.orbit_class.value,
        }


def orbit_class(mean_motion: float) -> OrbitClass:
    """Classify an orbit by mean motion.

    ``n < 2`` is GEO, ``2 <= n < 8`` MEO, ``8 <= n <= 16`` LEO and
    ``n > 16`` HEO. The checks run in that order, so exactly 2 is MEO and
    exactly 8 and 16 are LEO. A non-numeric (NaN) value fails every
    comparison and lands in LEO.
    """
    if mean_motion < GEO_MAX_MEAN_MOTION:
        return OrbitClass.GEO
    if mean_motion < MEO_MAX_MEAN_MOTION:
        return OrbitClass.MEO
    if mean_motion > LEO_MAX_MEAN_MOTION:
        return OrbitClass.HEO
    return OrbitClass.LEO


def classify_record(record: ElementRecord) -> Metadata:
    """Derive metadata tags for a record. Pure; never raises on odd input."""
    name = record.name.upper()

    operator = _first_match(name, OPERATOR_RULES, UNKNOWN_OPERATOR)
    country = OPERATOR_COUNTRIES.get(operator) or _first_match(
        name, NAME_COUNTRY_RULES, DEFAULT_COUNTRY
    )
    mission_type = _first_match(name, MISSION_RULES, DEFAULT_MISSION)

    return Metadata(
        operator=operator,
        country=country,
        mission_type=mission_type,
        orbit_class=orbit_class(record.mean_motion),
    )


class MetadataClassifier:
    """Memoizing front end to ``classify_record``.

    Records are immutable and hash by content, so a bounded LRU keyed on the
    record itself is safe across ticks and catalog refreshes.

    Args:
        maxsize: Number of distinct records remembered.
    """

    def __init__(self, maxsize: int = 32768):
        self._cached = lru_cache(maxsize=maxsize)(classify_record)

    def classify(self, record: ElementRecord) -> Metadata:
        return self._cached(record)

    def cache_info(self):
        return self._cached.cache_info()

    def clear(self) -> None:
        self._cached.cache_clear()


def _first_match(
    name: str,
    rules: tuple[tuple[tuple[str, ...], str], ...],
    default: str,
) -> str:
    for keywords, value in rules:
        if any(k in name for k in keywords):
            return value
    return default
