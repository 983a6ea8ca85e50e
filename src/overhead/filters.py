"""Filter criteria and the render-eligibility predicate.

Each category (operator, mission type, orbit class, country) is an
allow-list: empty means no constraint, otherwise the object's value must be
one of the listed values (OR within the category). Categories, the search
text and the visibility-only flag are then ANDed.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterable, Optional

from .classifier import Metadata, MetadataClassifier, OrbitClass, classify_record
from .tle_parser import ElementRecord
from .visibility import VisibilityResult

CATEGORIES = ("operators", "mission_types", "orbit_classes", "countries")


def _as_text(values: Iterable) -> frozenset[str]:
    return frozenset(v.value if isinstance(v, OrbitClass) else str(v) for v in values)


@dataclass(frozen=True)
class FilterCriteria:
    """What the user asked to see.

    Orbit classes may be given as ``OrbitClass`` members or their text
    values; all category sets are stored as text.

    Attributes:
        operators: Allowed operators (empty = any).
        mission_types: Allowed mission types (empty = any).
        orbit_classes: Allowed orbit classes (empty = any).
        countries: Allowed countries (empty = any).
        search_query: Name or catalog-number substring, case-insensitive.
        show_only_visible: Require the object to be above the observer's
            horizon. Ignored when no visibility is known.
    """
    operators: frozenset[str] = field(default_factory=frozenset)
    mission_types: frozenset[str] = field(default_factory=frozenset)
    orbit_classes: frozenset[str] = field(default_factory=frozenset)
    countries: frozenset[str] = field(default_factory=frozenset)
    search_query: str = ""
    show_only_visible: bool = False

    def __post_init__(self) -> None:
        for name in CATEGORIES:
            object.__setattr__(self, name, _as_text(getattr(self, name)))

    @property
    def is_empty(self) -> bool:
        """True when the criteria match every object."""
        return (
            not any(getattr(self, name) for name in CATEGORIES)
            and not self.search_query
            and not self.show_only_visible
        )

    def toggle(self, category: str, value) -> FilterCriteria:
        """Return a copy with ``value`` added to or removed from a category."""
        if category not in CATEGORIES:
            raise ValueError(f"Unknown filter category: {category}")
        (text,) = _as_text([value])
        current = getattr(self, category)
        updated = current - {text} if text in current else current | {text}
        return replace(self, **{category: updated})


def matches(
    record: ElementRecord,
    metadata: Metadata,
    visibility: Optional[VisibilityResult],
    criteria: FilterCriteria,
) -> bool:
    """Decide whether an object is render-eligible under the criteria."""
    if criteria.search_query:
        query = criteria.search_query.upper()
        if query not in record.name.upper() and query not in record.norad_id.upper():
            return False

    if criteria.operators and metadata.operator not in criteria.operators:
        return False
    if criteria.mission_types and metadata.mission_type not in criteria.mission_types:
        return False
    if criteria.orbit_classes and metadata.orbit_class.value not in criteria.orbit_classes:
        return False
    if criteria.countries and metadata.country not in criteria.countries:
        return False

    if criteria.show_only_visible and visibility is not None:
        return visibility.is_visible
    return True


def count_matching(
    records: Iterable[ElementRecord],
    criteria: FilterCriteria,
    classifier: Optional[MetadataClassifier] = None,
) -> int:
    """Count records passing the text and category filters.

    Visibility is not evaluated here; this is the catalog-level count shown
    next to the filter controls.
    """
    classify = classifier.classify if classifier else classify_record
    return sum(1 for r in records if matches(r, classify(r), None, criteria))


def filter_options(records: Iterable[ElementRecord]) -> dict[str, list[str]]:
    """Distinct values available per category, sorted.

    Orbit classes always list the full set so a filter UI can offer them
    before any such object is loaded.
    """
    operators: set[str] = set()
    mission_types: set[str] = set()
    countries: set[str] = set()
    for record in records:
        meta = classify_record(record)
        operators.add(meta.operator)
        mission_types.add(meta.mission_type)
        countries.add(meta.country)

    return {
        "operators": sorted(operators),
        "mission_types": sorted(mission_types),
        "orbit_classes": [c.value for c in OrbitClass],
        "countries": sorted(countries),
    }
