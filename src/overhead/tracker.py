"""The per-tick update cycle.

``UpdateCycle`` owns one render-directive slot per tracked object. Each
``tick`` propagates every object to the current time, evaluates visibility
and the filter criteria, and overwrites the object's slot in place. The
slot array is only reallocated by ``load``, when the catalog changes.

Object ids are derived from names alone, so an id (and any selection held
by the host) survives catalog refreshes that reorder or merge records.

Example:
    >>> cycle = UpdateCycle()
    >>> cycle.load(catalog.records)
    >>> report = cycle.tick(observer=ObserverLocation(48.2, 16.4),
    ...                     criteria=FilterCriteria(show_only_visible=True))
    >>> for d in cycle.directives:
    ...     if d.is_plotted:
    ...         draw(d.position, d.scale, d.color_class)
"""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Optional

from .classifier import Metadata, MetadataClassifier
from .config import EARTH_RADIUS_KM, TrackerConfig
from .errors import PropagationFailure, TickInProgress
from .filters import FilterCriteria, matches
from .propagation import PropagationAdapter, PropagationSample, Sgp4Propagator
from .tle_parser import ElementRecord
from .visibility import ObserverLocation, VisibilityResult, evaluate

logger = logging.getLogger(__name__)


class ColorClass(Enum):
    """Render color classes, listed in precedence order."""
    SELECTED = "selected"
    FILTERED_OUT = "filtered-out"
    STATION = "station"
    NAVIGATION = "navigation"
    OPERATOR = "operator-specific"
    OBSERVATION = "observation"
    COMMUNICATION = "communication"


COLOR_HEX = {
    ColorClass.SELECTED: "#ff00ff",
    ColorClass.FILTERED_OUT: "#222244",
    ColorClass.STATION: "#ffaa00",
    ColorClass.NAVIGATION: "#00ff66",
    ColorClass.OPERATOR: "#00aaff",
    ColorClass.OBSERVATION: "#ff6600",
    ColorClass.COMMUNICATION: "#00ffff",
}

HIGHLIGHTED_OPERATOR = "SpaceX"

_WHITESPACE = re.compile(r"\s+")


def object_id(name: str) -> str:
    """Stable object key: whitespace runs become ``-``, then lower-case."""
    return _WHITESPACE.sub("-", name).lower()


def lat_lng_to_vector3(
    lat: float,
    lng: float,
    alt: float,
    globe_radius: float = 1.0,
) -> tuple[float, float, float]:
    """Scene coordinates (y-up) for a geodetic position on a unit globe.

    Altitude is compressed to a tenth of its true scale so that orbits sit
    close to the globe.
    """
    phi = math.radians(90.0 - lat)
    theta = math.radians(lng + 180.0)
    radius = globe_radius + (alt / EARTH_RADIUS_KM) * globe_radius * 0.1

    x = -radius * math.sin(phi) * math.cos(theta)
    y = radius * math.cos(phi)
    z = radius * math.sin(phi) * math.sin(theta)
    return x, y, z


def color_class_for(
    metadata: Metadata,
    is_selected: bool,
    is_eligible: bool,
) -> ColorClass:
    """Pick a color class: selected > filtered-out > type-based."""
    if is_selected:
        return ColorClass.SELECTED
    if not is_eligible:
        return ColorClass.FILTERED_OUT
    if metadata.mission_type == "Space Station":
        return ColorClass.STATION
    if metadata.mission_type == "Navigation":
        return ColorClass.NAVIGATION
    if metadata.operator == HIGHLIGHTED_OPERATOR:
        return ColorClass.OPERATOR
    if metadata.mission_type == "Earth Observation":
        return ColorClass.OBSERVATION
    return ColorClass.COMMUNICATION


@dataclass(slots=True)
class ObjectState:
    """Latest placed state of one tracked object.

    Attributes:
        id: Stable key derived from the name.
        name: Object name.
        lat: Latitude (degrees).
        lng: Longitude (degrees).
        alt: Altitude (km).
        speed: Inertial speed (km/s).
        record: The element record the state was propagated from.
    """
    id: str
    name: str
    record: ElementRecord
    lat: float = math.nan
    lng: float = math.nan
    alt: float = math.nan
    speed: float = math.nan


@dataclass(slots=True)
class RenderDirective:
    """What the renderer should draw for one object this tick.

    A directive whose ``is_plotted`` is False is degenerate: the object
    could not be placed this tick and should be hidden.
    """
    id: str
    position: tuple[float, float, float] = (0.0, 0.0, 0.0)
    scale: float = 0.0
    is_plotted: bool = False
    is_eligible: bool = False
    is_selected: bool = False
    color_class: ColorClass = ColorClass.COMMUNICATION
    visibility: Optional[VisibilityResult] = None
    failure: Optional[str] = None

    @property
    def color(self) -> str:
        return COLOR_HEX[self.color_class]

    def mark_degenerate(self, reason: str) -> None:
        self.position = (0.0, 0.0, 0.0)
        self.scale = 0.0
        self.is_plotted = False
        self.is_eligible = False
        self.is_selected = False
        self.visibility = None
        self.failure = reason

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "position": self.position,
            "scale": self.scale,
            "is_plotted": self.is_plotted,
            "is_eligible": self.is_eligible,
            "is_selected": self.is_selected,
            "color_class": self.color_class.value,
        }


@dataclass
class TickReport:
    """Counts and per-object failures from one tick."""
    timestamp: datetime
    total: int = 0
    plotted: int = 0
    eligible: int = 0
    visible: int = 0
    failures: list[PropagationFailure] = field(default_factory=list)

    @property
    def failed_ids(self) -> set[str]:
        return {f.object_id for f in self.failures}

    def summary(self) -> str:
        return (
            f"[{self.timestamp:%Y-%m-%d %H:%M:%S}] "
            f"plotted {self.plotted}/{self.total}, "
            f"eligible {self.eligible}, visible {self.visible}, "
            f"failed {len(self.failures)}"
        )


@dataclass(frozen=True)
class Telemetry:
    """Detail view of one object, for a selection panel."""
    id: str
    name: str
    norad_id: str
    lat: float
    lng: float
    alt: float
    speed: float
    inclination: float
    period_minutes: float
    orbit_label: str
    metadata: Metadata
    visibility: Optional[VisibilityResult] = None


class UpdateCycle:
    """Per-tick state, visibility and filter pipeline.

    Ticks must not overlap; a reentrant call raises ``TickInProgress``.
    ``load`` may be called between ticks from the same thread; each tick
    works on the arrays it captured when it started.

    Args:
        propagator: Propagation adapter (default: ``Sgp4Propagator``).
        classifier: Metadata classifier (default: a fresh memoizing one).
        config: Altitude bounds and render scales.
    """

    def __init__(
        self,
        propagator: Optional[PropagationAdapter] = None,
        classifier: Optional[MetadataClassifier] = None,
        config: Optional[TrackerConfig] = None,
    ) -> None:
        self.propagator = propagator or Sgp4Propagator()
        self.classifier = classifier or MetadataClassifier()
        self.config = config or TrackerConfig()

        self._records: tuple[ElementRecord, ...] = ()
        self._states: list[ObjectState] = []
        self._directives: list[RenderDirective] = []
        self._index: dict[str, int] = {}
        self._ticking = False

    # ── Catalog lifecycle ──

    def load(self, records: Iterable[ElementRecord]) -> None:
        """Track a new record set, sizing the slot arrays to match."""
        records = tuple(records)
        states = [ObjectState(id=object_id(r.name), name=r.name, record=r) for r in records]
        directives = [RenderDirective(id=s.id) for s in states]

        index: dict[str, int] = {}
        for i, state in enumerate(states):
            index.setdefault(state.id, i)

        # Swap as a unit; an in-progress tick keeps its own references.
        self._records, self._states, self._directives, self._index = (
            records, states, directives, index
        )
        logger.info(f"Tracking {len(records)} objects")

    @property
    def records(self) -> tuple[ElementRecord, ...]:
        return self._records

    @property
    def directives(self) -> list[RenderDirective]:
        return self._directives

    def __len__(self) -> int:
        return len(self._records)

    def has_object(self, object_id: str) -> bool:
        return object_id in self._index

    def index_of(self, object_id: str) -> Optional[int]:
        """Slot index for an id (first occurrence), or None."""
        return self._index.get(object_id)

    # ── Tick ──

    def tick(
        self,
        now: Optional[datetime] = None,
        observer: Optional[ObserverLocation] = None,
        criteria: Optional[FilterCriteria] = None,
        selected_id: Optional[str] = None,
        want_telemetry: bool = False,
    ) -> TickReport:
        """Advance every tracked object to ``now`` and rewrite its slot.

        Args:
            now: Propagation time (default: current UTC time).
            observer: Ground observer, if one is set.
            criteria: Active filters (default: match everything).
            selected_id: Id of the selected object, if any.
            want_telemetry: Compute visibility for every object even when the
                visibility-only filter is off.

        Returns:
            Counts and the list of objects that could not be placed.
        """
        if self._ticking:
            raise TickInProgress("UpdateCycle.tick is not reentrant")
        self._ticking = True
        try:
            return self._tick(
                now or datetime.now(timezone.utc),
                observer,
                criteria or FilterCriteria(),
                selected_id,
                want_telemetry,
            )
        finally:
            self._ticking = False

    def _tick(
        self,
        now: datetime,
        observer: Optional[ObserverLocation],
        criteria: FilterCriteria,
        selected_id: Optional[str],
        want_telemetry: bool,
    ) -> TickReport:
        records, states, directives = self._records, self._states, self._directives
        cfg = self.config
        need_visibility = observer is not None and (
            criteria.show_only_visible or want_telemetry
        )
        report = TickReport(timestamp=now, total=len(records))

        for record, state, directive in zip(records, states, directives):
            sample, reason = self._propagate(record, now)
            if sample is None:
                directive.mark_degenerate(reason)
                report.failures.append(PropagationFailure(directive.id, reason))
                continue

            state.lat, state.lng, state.alt = sample.lat, sample.lng, sample.alt
            state.speed = sample.velocity

            visibility = None
            if need_visibility:
                visibility = evaluate(
                    observer, sample.lat, sample.lng, sample.alt, cfg.horizon_deg
                )
                if visibility.is_visible:
                    report.visible += 1

            metadata = self.classifier.classify(record)
            is_eligible = matches(record, metadata, visibility, criteria)
            is_selected = selected_id is not None and directive.id == selected_id

            scale = cfg.base_scale
            if is_selected:
                scale *= cfg.selected_scale
            if not is_eligible:
                scale *= cfg.filtered_scale

            directive.position = lat_lng_to_vector3(sample.lat, sample.lng, sample.alt)
            directive.scale = scale
            directive.is_plotted = True
            directive.is_eligible = is_eligible
            directive.is_selected = is_selected
            directive.color_class = color_class_for(metadata, is_selected, is_eligible)
            directive.visibility = visibility
            directive.failure = None

            report.plotted += 1
            if is_eligible:
                report.eligible += 1

        if report.failures:
            logger.debug(f"{len(report.failures)} objects could not be placed")
        return report

    def _propagate(
        self, record: ElementRecord, now: datetime
    ) -> tuple[Optional[PropagationSample], str]:
        """Propagate one record, returning (sample, "") or (None, reason)."""
        try:
            sample = self.propagator.propagate(record, now)
        except PropagationFailure as e:
            return None, e.reason
        except TickInProgress:
            raise
        except Exception as e:
            logger.debug(f"Adapter raised for {record.name}: {e!r}")
            return None, f"adapter error: {e}"

        if sample is None:
            return None, "propagation failed"
        if not all(math.isfinite(v) for v in (sample.lat, sample.lng, sample.alt)):
            return None, "non-finite position"
        if not self.config.min_altitude_km <= sample.alt <= self.config.max_altitude_km:
            return None, f"altitude {sample.alt:.0f} km out of range"
        return sample, ""

    # ── Read-side helpers ──

    def placed(self) -> list[tuple[ObjectState, RenderDirective]]:
        """(state, directive) pairs for objects placed on the last tick."""
        return [
            (s, d) for s, d in zip(self._states, self._directives) if d.is_plotted
        ]

    def object_states(self) -> list[ObjectState]:
        """States of objects placed on the last tick."""
        return [s for s, _ in self.placed()]

    def telemetry(
        self,
        object_id: str,
        observer: Optional[ObserverLocation] = None,
    ) -> Optional[Telemetry]:
        """Detail view for an object placed on the last tick, else None."""
        i = self._index.get(object_id)
        if i is None or not self._directives[i].is_plotted:
            return None

        state = self._states[i]
        record = state.record
        visibility = None
        if observer is not None:
            visibility = evaluate(
                observer, state.lat, state.lng, state.alt, self.config.horizon_deg
            )

        return Telemetry(
            id=state.id,
            name=state.name,
            norad_id=record.norad_id.strip(),
            lat=state.lat,
            lng=state.lng,
            alt=state.alt,
            speed=state.speed,
            inclination=record.inclination,
            period_minutes=record.period_minutes,
            orbit_label=altitude_orbit_label(state.alt),
            metadata=self.classifier.classify(record),
            visibility=visibility,
        )


def altitude_orbit_label(alt_km: float) -> str:
    """Coarse orbit label from current altitude (for display only)."""
    if alt_km > 35000:
        return "GEO"
    if alt_km > 2000:
        return "MEO"
    return "LEO"
