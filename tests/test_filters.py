"""Tests for filter criteria and the eligibility predicate."""
import pytest

from overhead.classifier import MetadataClassifier, OrbitClass, classify_record
from overhead.filters import FilterCriteria, count_matching, filter_options, matches
from overhead.visibility import VisibilityResult

from factories import make_record

UP = VisibilityResult(is_visible=True, azimuth=10.0, elevation=45.0, range_km=600.0)
DOWN = VisibilityResult(is_visible=False, azimuth=10.0, elevation=-20.0, range_km=6000.0)

ISS = make_record("ISS (ZARYA)", 25544, 15.5)
STARLINK = make_record("STARLINK-1007", 44713, 15.05)
GPS = make_record("GPS BIIR-2  (PRN 13)", 24876, 2.005)
GEO_SAT = make_record("INTELSAT 901", 26824, 1.0027)
IRNSS = make_record("IRNSS-1B", 39635, 1.0027)
CATALOG = [ISS, STARLINK, GPS, GEO_SAT, IRNSS]


def _matches(record, criteria, visibility=None):
    return matches(record, classify_record(record), visibility, criteria)


class TestMatches:
    def test_empty_criteria_match_everything(self):
        criteria = FilterCriteria()
        assert criteria.is_empty
        assert all(_matches(r, criteria) for r in CATALOG)
        assert all(_matches(r, criteria, DOWN) for r in CATALOG)

    def test_orbit_class_filter(self):
        criteria = FilterCriteria(orbit_classes={OrbitClass.GEO})
        assert [r.name for r in CATALOG if _matches(r, criteria)] == ["INTELSAT 901", "IRNSS-1B"]

    def test_orbit_class_accepts_text(self):
        assert FilterCriteria(orbit_classes={"GEO"}) == FilterCriteria(orbit_classes={OrbitClass.GEO})

    def test_or_within_category(self):
        criteria = FilterCriteria(operators={"SpaceX", "USSF"})
        assert [r.name for r in CATALOG if _matches(r, criteria)] == [
            "STARLINK-1007",
            "GPS BIIR-2  (PRN 13)",
        ]

    def test_and_across_categories(self):
        criteria = FilterCriteria(mission_types={"Navigation"}, countries={"India"})
        assert [r.name for r in CATALOG if _matches(r, criteria)] == ["IRNSS-1B"]

        criteria = FilterCriteria(mission_types={"Navigation"}, orbit_classes={"LEO"})
        assert not any(_matches(r, criteria) for r in CATALOG)

    def test_search_by_name_case_insensitive(self):
        criteria = FilterCriteria(search_query="zarya")
        assert [r.name for r in CATALOG if _matches(r, criteria)] == ["ISS (ZARYA)"]

    def test_search_by_catalog_number(self):
        criteria = FilterCriteria(search_query="4471")
        assert [r.name for r in CATALOG if _matches(r, criteria)] == ["STARLINK-1007"]

    def test_visible_only(self):
        criteria = FilterCriteria(show_only_visible=True)
        assert _matches(ISS, criteria, UP)
        assert not _matches(ISS, criteria, DOWN)

    def test_visible_only_ignored_without_observer(self):
        criteria = FilterCriteria(show_only_visible=True)
        assert _matches(ISS, criteria, None)

    def test_visible_only_still_requires_categories(self):
        criteria = FilterCriteria(operators={"SpaceX"}, show_only_visible=True)
        assert not _matches(ISS, criteria, UP)


class TestFilterCriteria:
    def test_toggle_adds_and_removes(self):
        criteria = FilterCriteria().toggle("operators", "SpaceX")
        assert criteria.operators == {"SpaceX"}
        assert not criteria.is_empty
        assert criteria.toggle("operators", "SpaceX").is_empty

    def test_toggle_orbit_class_member(self):
        criteria = FilterCriteria().toggle("orbit_classes", OrbitClass.MEO)
        assert criteria.orbit_classes == {"MEO"}

    def test_toggle_unknown_category(self):
        with pytest.raises(ValueError, match="Unknown filter category"):
            FilterCriteria().toggle("colors", "red")

    def test_immutable(self):
        criteria = FilterCriteria()
        with pytest.raises(AttributeError):
            criteria.search_query = "x"


class TestCountsAndOptions:
    def test_count_matching(self):
        assert count_matching(CATALOG, FilterCriteria()) == 5
        assert count_matching(CATALOG, FilterCriteria(mission_types={"Navigation"})) == 2

    def test_count_matching_uses_classifier(self):
        classifier = MetadataClassifier()
        count_matching(CATALOG, FilterCriteria(), classifier)
        count_matching(CATALOG, FilterCriteria(), classifier)
        assert classifier.cache_info().hits == len(CATALOG)

    def test_filter_options(self):
        options = filter_options(CATALOG)
        assert options["operators"] == ["ISRO", "NASA/Roscosmos", "SpaceX", "USSF", "Unknown"]
        assert options["mission_types"] == ["Communication", "Navigation", "Space Station"]
        assert options["countries"] == ["India", "USA"]
        assert options["orbit_classes"] == ["LEO", "MEO", "GEO", "HEO"]

    def test_filter_options_empty_catalog(self):
        options = filter_options([])
        assert options["operators"] == []
        assert options["orbit_classes"] == ["LEO", "MEO", "GEO", "HEO"]
