"""Tests for look angles, pass prediction and the observer session."""
import json
import math
from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from overhead.errors import LocationNotFound
from overhead.propagation import PropagationSample
from overhead.visibility import (
    ObserverLocation,
    ObserverSession,
    _normalize_azimuth,
    evaluate,
    evaluate_many,
    predict_next_pass,
)

EQUATOR = ObserverLocation(lat=0.0, lng=0.0)


# ═══════════════════════════════════════════════════════════════
# LOOK ANGLE TESTS
# ═══════════════════════════════════════════════════════════════
class TestEvaluate:
    def test_directly_overhead(self):
        result = evaluate(EQUATOR, 0.0, 0.0, 400.0)
        assert result.elevation == pytest.approx(90.0)
        assert result.range_km == pytest.approx(400.0)
        assert result.is_visible

    def test_coincident_point(self):
        result = evaluate(EQUATOR, 0.0, 0.0, 0.0)
        assert result.elevation == 90.0
        assert result.azimuth == 0.0
        assert result.range_km < 1e-9
        assert result.is_visible

    @pytest.mark.parametrize(
        "lat, lng, azimuth",
        [
            (10.0, 0.0, 0.0),
            (0.0, 10.0, 90.0),
            (-10.0, 0.0, 180.0),
            (0.0, -10.0, 270.0),
        ],
    )
    def test_cardinal_directions(self, lat, lng, azimuth):
        result = evaluate(EQUATOR, lat, lng, 400.0)
        assert result.azimuth == pytest.approx(azimuth, abs=1e-6)
        assert 0.0 <= result.azimuth < 360.0

    def test_far_side_not_visible(self):
        result = evaluate(EQUATOR, 0.0, 180.0, 400.0)
        assert result.elevation < 0
        assert not result.is_visible

    def test_horizon_threshold(self):
        # 20° of arc puts a 400 km object right at the horizon
        result = evaluate(EQUATOR, 0.0, 20.0, 400.0)
        assert result.is_visible == (result.elevation > -0.5)
        strict = evaluate(EQUATOR, 0.0, 20.0, 400.0, horizon_deg=result.elevation)
        assert not strict.is_visible

    def test_observer_at_pole(self):
        pole = ObserverLocation(lat=90.0, lng=0.0)
        result = evaluate(pole, 80.0, 0.0, 400.0)
        assert all(math.isfinite(v) for v in (result.azimuth, result.elevation, result.range_km))
        assert result.azimuth == pytest.approx(180.0, abs=1e-6)
        assert 0.0 < result.elevation < 90.0
        assert result.is_visible

    def test_observer_altitude_in_meters(self):
        high = ObserverLocation(lat=0.0, lng=0.0, alt=1000.0)
        assert evaluate(high, 0.0, 0.0, 400.0).range_km == pytest.approx(399.0)

    def test_azimuth_never_360(self):
        assert _normalize_azimuth(-1e-14) == 0.0
        assert _normalize_azimuth(360.0) == 0.0
        assert _normalize_azimuth(-90.0) == pytest.approx(270.0)


class TestEvaluateMany:
    def test_matches_scalar(self):
        observer = ObserverLocation(lat=48.2, lng=16.4, alt=200.0)
        lats = np.array([48.2, 50.0, 0.0, -60.0, 48.2])
        lngs = np.array([16.4, 20.0, 0.0, 100.0, 16.4])
        alts = np.array([400.0, 550.0, 20200.0, 800.0, 0.2])

        arrays = evaluate_many(observer, lats, lngs, alts)
        for i in range(len(lats)):
            single = evaluate(observer, lats[i], lngs[i], alts[i])
            assert arrays.elevation[i] == pytest.approx(single.elevation, abs=1e-9)
            assert arrays.azimuth[i] == pytest.approx(single.azimuth, abs=1e-9)
            assert arrays.range_km[i] == pytest.approx(single.range_km, rel=1e-9, abs=1e-9)
            assert bool(arrays.is_visible[i]) == single.is_visible

    @pytest.mark.parametrize("lat, lng", [(48.2, 16.4), (-33.9, 151.2), (0.0, 0.0), (89.9, -120.0)])
    def test_zenith_azimuth_pinned_to_north(self, lat, lng):
        observer = ObserverLocation(lat=lat, lng=lng, alt=200.0)
        single = evaluate(observer, lat, lng, 400.0)
        arrays = evaluate_many(observer, np.array([lat]), np.array([lng]), np.array([400.0]))

        assert single.azimuth == 0.0
        assert arrays.azimuth[0] == 0.0
        assert single.elevation == pytest.approx(90.0)
        assert arrays.elevation[0] == pytest.approx(90.0)


# ═══════════════════════════════════════════════════════════════
# PASS PREDICTION TESTS
# ═══════════════════════════════════════════════════════════════
START = datetime(2024, 1, 1, tzinfo=timezone.utc)
OVERHEAD = PropagationSample(lat=0.0, lng=0.0, alt=400.0, velocity=7.66)
LOW = PropagationSample(lat=0.0, lng=15.0, alt=400.0, velocity=7.66)
FAR_SIDE = PropagationSample(lat=0.0, lng=180.0, alt=400.0, velocity=7.66)


def _scripted(script):
    """Propagator returning ``script(minutes_since_start)``."""
    def propagate(t):
        return script((t - START) / timedelta(minutes=1))
    return propagate


class TestPredictNextPass:
    def test_finds_first_complete_pass(self):
        def script(m):
            if 10 <= m < 13 or m == 15:
                return LOW
            if 13 <= m < 15:
                return OVERHEAD
            return FAR_SIDE

        prediction = predict_next_pass(EQUATOR, _scripted(script), start=START, max_hours=1)
        assert prediction.start_time == START + timedelta(minutes=10)
        assert prediction.max_elevation == pytest.approx(90.0)

    def test_none_when_never_visible(self):
        prediction = predict_next_pass(
            EQUATOR, lambda t: FAR_SIDE, start=START, max_hours=2
        )
        assert prediction is None

    def test_none_when_pass_does_not_close(self):
        prediction = predict_next_pass(
            EQUATOR, lambda t: OVERHEAD, start=START, max_hours=2
        )
        assert prediction is None

    def test_missing_samples_skipped(self):
        def script(m):
            if m < 5:
                return None
            if 5 <= m < 8:
                return OVERHEAD
            return FAR_SIDE

        prediction = predict_next_pass(EQUATOR, _scripted(script), start=START, max_hours=1)
        assert prediction.start_time == START + timedelta(minutes=5)


# ═══════════════════════════════════════════════════════════════
# OBSERVER SESSION TESTS
# ═══════════════════════════════════════════════════════════════
class TestObserverSession:
    def test_starts_empty(self):
        assert ObserverSession().location is None

    def test_set_and_clear(self):
        session = ObserverSession()
        loc = session.set_location(48.2, 16.4, 180.0, name="Vienna")
        assert session.location == loc
        assert loc.alt == 180.0
        session.clear()
        assert session.location is None

    @pytest.mark.parametrize("lat, lng", [(91.0, 0.0), (-90.5, 0.0), (0.0, 180.5), (0.0, -181.0)])
    def test_out_of_range_rejected(self, lat, lng):
        session = ObserverSession()
        with pytest.raises(ValueError):
            session.set_location(lat, lng)
        assert session.location is None

    def test_set_by_name(self):
        session = ObserverSession()
        loc = session.set_location_by_name("Vienna, Austria", lambda place: (48.2, 16.4))
        assert loc.name == "Vienna"
        assert (loc.lat, loc.lng, loc.alt) == (48.2, 16.4, 0.0)

    def test_lookup_miss_keeps_location(self):
        def resolver(place):
            raise LocationNotFound(place)

        session = ObserverSession()
        session.set_location(1.0, 2.0)
        with pytest.raises(LocationNotFound):
            session.set_location_by_name("Atlantis", resolver)
        assert (session.location.lat, session.location.lng) == (1.0, 2.0)

    def test_persisted_and_restored(self, tmp_path):
        path = tmp_path / "observer.json"
        ObserverSession(path).set_location(-33.9, 18.4, name="Cape Town")

        restored = ObserverSession(path).location
        assert restored == ObserverLocation(-33.9, 18.4, 0.0, "Cape Town")

        ObserverSession(path).clear()
        assert not path.exists()

    def test_unreadable_file_ignored(self, tmp_path):
        path = tmp_path / "observer.json"
        path.write_text(json.dumps({"lng": 3.0}))
        assert ObserverSession(path).location is None
