"""Tests for metadata tagging and orbit classification."""
import math

import pytest

from overhead.classifier import (
    Metadata,
    MetadataClassifier,
    OrbitClass,
    classify_record,
    orbit_class,
)

from factories import make_record


class TestOrbitClass:
    @pytest.mark.parametrize(
        "mean_motion, expected",
        [
            (1.0027, OrbitClass.GEO),
            (1.99, OrbitClass.GEO),
            (2.0, OrbitClass.MEO),
            (4.0, OrbitClass.MEO),
            (7.99, OrbitClass.MEO),
            (8.0, OrbitClass.LEO),
            (14.0, OrbitClass.LEO),
            (16.0, OrbitClass.LEO),
            (16.01, OrbitClass.HEO),
            (17.0, OrbitClass.HEO),
        ],
    )
    def test_boundaries(self, mean_motion, expected):
        assert orbit_class(mean_motion) is expected

    def test_nan_is_leo(self):
        assert orbit_class(math.nan) is OrbitClass.LEO

    def test_record_mean_motion_used(self):
        assert classify_record(make_record("SES-1", mean_motion=1.0027)).orbit_class is OrbitClass.GEO
        assert classify_record(make_record("GPS BIIR-2", mean_motion=2.005)).orbit_class is OrbitClass.MEO


class TestClassifyRecord:
    @pytest.mark.parametrize(
        "name, operator, country, mission",
        [
            ("STARLINK-1007", "SpaceX", "USA", "Communication"),
            ("ONEWEB-0012", "OneWeb", "USA", "Communication"),
            ("ISS (ZARYA)", "NASA/Roscosmos", "USA", "Space Station"),
            ("CSS (TIANGONG)", "CNSA", "China", "Space Station"),
            ("GPS BIIR-2  (PRN 13)", "USSF", "USA", "Navigation"),
            ("IRNSS-1B", "ISRO", "India", "Navigation"),
            ("GLONASS-M", "Roscosmos", "Russia", "Navigation"),
            ("GALILEO 5 (261)", "ESA", "EU", "Navigation"),
            ("BEIDOU-3 M1", "CNSA", "China", "Navigation"),
            ("NOAA 19", "NOAA", "USA", "Weather"),
            ("GOES 16", "NOAA", "USA", "Weather"),
            ("COSMOS 2545", "Roscosmos", "Russia", "Communication"),
            ("GSAT-30", "ISRO", "India", "Communication"),
            ("LANDSAT 9", "Unknown", "USA", "Earth Observation"),
            ("HUBBLE", "Unknown", "USA", "Science"),
            ("QZS-2 (QZSS/PRN 184)", "Unknown", "Japan", "Communication"),
        ],
    )
    def test_name_rules(self, name, operator, country, mission):
        meta = classify_record(make_record(name))
        assert meta.operator == operator
        assert meta.country == country
        assert meta.mission_type == mission

    def test_case_insensitive(self):
        assert classify_record(make_record("starlink-30001")).operator == "SpaceX"

    def test_unrecognized_defaults(self):
        meta = classify_record(make_record("OBJECT XYZ"))
        assert meta == Metadata("Unknown", "USA", "Communication", OrbitClass.LEO)

    def test_pure(self):
        record = make_record("STARLINK-1007")
        assert classify_record(record) == classify_record(record)

    def test_to_dict(self):
        d = classify_record(make_record("ISS (ZARYA)")).to_dict()
        assert d == {
            "operator": "NASA/Roscosmos",
            "country": "USA",
            "mission_type": "Space Station",
            "orbit_class": "LEO",
        }


class TestMetadataClassifier:
    def test_memoized_per_record(self):
        classifier = MetadataClassifier()
        record = make_record("STARLINK-1007")
        first = classifier.classify(record)
        second = classifier.classify(record)

        assert first is second
        info = classifier.cache_info()
        assert info.hits == 1
        assert info.misses == 1

    def test_equal_records_share_entry(self):
        classifier = MetadataClassifier()
        classifier.classify(make_record("STARLINK-1007", 44713))
        classifier.classify(make_record("STARLINK-1007", 44713))
        assert classifier.cache_info().hits == 1

    def test_clear(self):
        classifier = MetadataClassifier()
        classifier.classify(make_record())
        classifier.clear()
        assert classifier.cache_info().currsize == 0
