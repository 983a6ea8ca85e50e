"""
Example: One update tick over an offline catalog.

This example doesn't need network access — it uses the built-in fallback
catalog plus a few synthetic element sets, propagates them to their common
epoch and reports what an observer in Vienna would see.
Useful for understanding how the update cycle, filters and visibility fit
together.
"""

import sys
sys.path.insert(0, "src")

from datetime import datetime, timezone
from pathlib import Path

from overhead.catalog import fallback_catalog
from overhead.filters import FilterCriteria, count_matching, filter_options
from overhead.tle_parser import ElementRecord
from overhead.tracker import UpdateCycle
from overhead.visibility import ObserverLocation
from overhead.viz import plot_sky, tracking_frame

EPOCH = datetime(2024, 1, 1, 12, tzinfo=timezone.utc)


def make_synthetic_record(
    name: str,
    norad_id: int,
    mean_motion: float,
    inclination: float = 53.0,
    raan: float = 0.0,
) -> ElementRecord:
    """Create a circular-orbit element set at the demo epoch."""
    line1 = f"1 {norad_id:05d}U 24001A   24001.50000000  .00000000  00000-0  00000-0 0  9990"
    line2 = (
        f"2 {norad_id:05d} {inclination:8.4f} {raan:8.4f} 0001000  90.0000 270.0000 "
        f"{mean_motion:11.8f}    10"
    )
    return ElementRecord(name=name, line1=line1, line2=line2)


def main():
    print("=" * 65)
    print("  OVERHEAD — Offline Tracking Demo")
    print("=" * 65)

    records = list(fallback_catalog().records)
    records += [
        make_synthetic_record("GPS BIIR-2  (PRN 13)", 24876, 2.00563, inclination=55.0),
        make_synthetic_record("INTELSAT 901", 26824, 1.00270, inclination=0.02, raan=16.0),
        make_synthetic_record("LANDSAT 9", 49260, 14.57, inclination=98.2, raan=70.0),
        make_synthetic_record("NOAA 19", 33591, 14.12, inclination=99.2, raan=200.0),
    ]

    print(f"\nCatalog: {len(records)} objects")
    for category, values in filter_options(records).items():
        print(f"  {category:14s} {', '.join(values)}")

    # ── One tick, visibility for everyone ──
    observer = ObserverLocation(lat=48.2082, lng=16.3738, alt=190.0, name="Vienna")
    cycle = UpdateCycle()
    cycle.load(records)
    report = cycle.tick(now=EPOCH, observer=observer, want_telemetry=True)
    print(f"\n{report.summary()}")
    for failure in report.failures:
        print(f"  not placed: {failure}")

    df = tracking_frame(cycle).sort_values("elevation_deg", ascending=False)

    print(f"\n{'NAME':22s} {'OPERATOR':16s} {'ORBIT':5s} {'AZ':>6} {'EL':>6} {'RANGE (km)':>11}")
    print("-" * 72)
    for _, row in df.iterrows():
        marker = "*" if row["is_visible"] else " "
        print(
            f"{row['name']:22s} "
            f"{row['operator']:16s} "
            f"{row['orbit_class']:5s} "
            f"{row['azimuth_deg']:>6.1f} "
            f"{row['elevation_deg']:>6.1f} "
            f"{row['range_km']:>11.0f} {marker}"
        )

    # ── Filters ──
    print(f"\n{'=' * 65}")
    print("FILTERS")
    print(f"{'=' * 65}")

    for label, criteria in (
        ("navigation only", FilterCriteria(mission_types={"Navigation"})),
        ("GEO only", FilterCriteria(orbit_classes={"GEO"})),
        ("search 'starlink'", FilterCriteria(search_query="starlink")),
    ):
        n = count_matching(records, criteria)
        print(f"  {label:20s} {n} of {len(records)}")

    visible_now = cycle.tick(
        now=EPOCH,
        observer=observer,
        criteria=FilterCriteria(show_only_visible=True),
        selected_id="iss-(zarya)",
    )
    print(f"  {'visible from Vienna':20s} {visible_now.eligible} of {len(records)}")

    telemetry = cycle.telemetry("iss-(zarya)", observer=observer)
    if telemetry is not None:
        print(
            f"\nISS: {telemetry.lat:.2f}°, {telemetry.lng:.2f}°, "
            f"{telemetry.alt:.0f} km, {telemetry.speed:.2f} km/s, "
            f"{telemetry.orbit_label} ({telemetry.metadata.operator})"
        )

    Path("data").mkdir(exist_ok=True)
    plot_sky(
        tracking_frame(cycle),
        title="Sky over Vienna, 2024-01-01 12:00 UTC",
        min_elevation=-0.5,
        save_path="data/demo_sky.png",
    )
    print("\nPlot saved to data/demo_sky.png")


if __name__ == "__main__":
    main()
