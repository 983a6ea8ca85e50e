#!/usr/bin/env python3
"""OVERHEAD command-line interface.

Usage::

    overhead sources
    overhead catalog --source stations --source starlink
    overhead visible --lat 48.21 --lng 16.37 --orbit LEO
    overhead pass "ISS (ZARYA)" --lat 48.21 --lng 16.37 --hours 12
"""
from __future__ import annotations

import sys
import logging
import time
from datetime import datetime, timezone
from typing import Optional

import click
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.markup import escape
from rich import box

from .catalog import CachedCatalog, CatalogStore, load_catalog_file
from .classifier import MetadataClassifier, OrbitClass, classify_record
from .config import TLE_SOURCES, TrackerConfig
from .filters import FilterCriteria, matches
from .propagation import Sgp4Propagator
from .tracker import UpdateCycle
from .visibility import ObserverLocation, predict_next_pass

console = Console()

ORBIT_CHOICES = [c.value for c in OrbitClass]


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose: bool):
    """OVERHEAD — what is in the sky above you right now."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(name)s — %(message)s")


@main.command()
def sources():
    """List the named catalog sources."""
    table = Table(box=box.SIMPLE_HEAVY)
    table.add_column("Name", style="cyan")
    table.add_column("URL")
    for name, url in TLE_SOURCES.items():
        table.add_row(name, url)
    console.print(table)


@main.command()
@click.option("--source", "-s", "source_names", multiple=True,
              type=click.Choice(sorted(TLE_SOURCES)), help="Named source (repeatable)")
@click.option("--file", "-f", "filepath", type=click.Path(exists=True), help="Local TLE file")
@click.option("--output", "-o", type=click.Path(), help="Save records to CSV")
def catalog(source_names: tuple[str, ...], filepath: str | None, output: str | None):
    """Load a catalog and summarize it by orbit class and mission."""
    store = _build_store()
    urls = [] if filepath else _source_urls(source_names)
    cat = _load(store, urls, filepath)
    _display_catalog(store, cat, urls)

    if output:
        df = _catalog_frame(cat)
        df.to_csv(output, index=False)
        console.print(f"\nRecords saved to {output}")


@main.command()
@click.option("--lat", type=float, required=True, help="Observer latitude (deg)")
@click.option("--lng", type=float, required=True, help="Observer longitude (deg)")
@click.option("--alt", type=float, default=0.0, help="Observer altitude (m)")
@click.option("--source", "-s", "source_names", multiple=True,
              type=click.Choice(sorted(TLE_SOURCES)), help="Named source (repeatable)")
@click.option("--file", "-f", "filepath", type=click.Path(exists=True), help="Local TLE file")
@click.option("--operator", "operators", multiple=True, help="Operator filter (repeatable)")
@click.option("--mission", "missions", multiple=True, help="Mission type filter (repeatable)")
@click.option("--orbit", "orbits", multiple=True,
              type=click.Choice(ORBIT_CHOICES), help="Orbit class filter (repeatable)")
@click.option("--country", "countries", multiple=True, help="Country filter (repeatable)")
@click.option("--search", default="", help="Name or NORAD id substring")
@click.option("--limit", default=30, help="Rows to display")
@click.option("--plot", type=click.Path(), help="Save a sky plot PNG")
@click.option("--output", "-o", type=click.Path(), help="Save results to CSV")
def visible(
    lat: float,
    lng: float,
    alt: float,
    source_names: tuple[str, ...],
    filepath: str | None,
    operators: tuple[str, ...],
    missions: tuple[str, ...],
    orbits: tuple[str, ...],
    countries: tuple[str, ...],
    search: str,
    limit: int,
    plot: str | None,
    output: str | None,
):
    """Show objects currently above the horizon."""
    from .viz import plot_sky, tracking_frame

    store = _build_store()
    cat = _load(store, _source_urls(source_names), filepath)

    observer = ObserverLocation(lat=lat, lng=lng, alt=alt)
    criteria = FilterCriteria(
        operators=frozenset(operators),
        mission_types=frozenset(missions),
        orbit_classes=frozenset(orbits),
        countries=frozenset(countries),
        search_query=search,
        show_only_visible=True,
    )

    cycle = UpdateCycle(config=store.config)
    cycle.load(cat.records)
    report = cycle.tick(observer=observer, criteria=criteria)

    df = tracking_frame(cycle)
    shown = df[df["is_eligible"].astype(bool)].sort_values("elevation_deg", ascending=False)

    console.print(
        Panel(
            f"Observer: {lat:.4f}°, {lng:.4f}°, {alt:.0f} m\n"
            f"Tracked: {report.total}  Placed: {report.plotted}  "
            f"Failed: {len(report.failures)}\n"
            f"Above horizon: [bold green]{report.visible}[/bold green]  "
            f"Matching filters: [bold green]{len(shown)}[/bold green]",
            title=f"Sky at {report.timestamp:%Y-%m-%d %H:%M:%S} UTC",
            box=box.ROUNDED,
        )
    )
    if not shown.empty:
        _display_visible_table(shown, limit)

    if plot:
        plot_sky(shown, title=f"Sky over {lat:.2f}°, {lng:.2f}°", save_path=plot)
        console.print(f"\nSky plot saved to {plot}")

    if output:
        shown.to_csv(output, index=False)
        console.print(f"\nResults saved to {output}")


@main.command(name="pass")
@click.argument("query")
@click.option("--lat", type=float, required=True, help="Observer latitude (deg)")
@click.option("--lng", type=float, required=True, help="Observer longitude (deg)")
@click.option("--alt", type=float, default=0.0, help="Observer altitude (m)")
@click.option("--hours", default=24.0, help="Search window (hours)")
@click.option("--source", "-s", "source_names", multiple=True,
              type=click.Choice(sorted(TLE_SOURCES)), help="Named source (repeatable)")
@click.option("--file", "-f", "filepath", type=click.Path(exists=True), help="Local TLE file")
def next_pass(
    query: str,
    lat: float,
    lng: float,
    alt: float,
    hours: float,
    source_names: tuple[str, ...],
    filepath: str | None,
):
    """Predict the next pass of an object (name or NORAD id)."""
    store = _build_store()
    cat = _load(store, _source_urls(source_names, default="stations"), filepath)

    criteria = FilterCriteria(search_query=query)
    classifier = MetadataClassifier()

    record = next(
        (r for r in cat.records if matches(r, classifier.classify(r), None, criteria)),
        None,
    )
    if record is None:
        console.print(f"[red]No object matching '{query}'[/red]")
        sys.exit(1)

    propagator = Sgp4Propagator()
    observer = ObserverLocation(lat=lat, lng=lng, alt=alt)
    prediction = predict_next_pass(
        observer,
        lambda t: propagator.propagate(record, t),
        start=datetime.now(timezone.utc),
        max_hours=hours,
    )

    if prediction is None:
        console.print(
            f"[yellow]No complete pass of {record.name} in the next {hours:g} h.[/yellow]"
        )
        return

    console.print(
        Panel(
            f"[bold]{record.name}[/bold] (NORAD {record.norad_id.strip()})\n"
            f"Pass start: {prediction.start_time:%Y-%m-%d %H:%M} UTC\n"
            f"Max elevation: {prediction.max_elevation:.1f}°",
            title="Next Pass",
            box=box.ROUNDED,
        )
    )


def _build_store() -> CatalogStore:
    return CatalogStore(config=TrackerConfig.from_env())


def _source_urls(source_names: tuple[str, ...], default: str = "active") -> list[str]:
    return [TLE_SOURCES[n] for n in source_names or (default,)]


def _load(
    store: CatalogStore,
    urls: list[str],
    filepath: Optional[str],
) -> CachedCatalog:
    if filepath:
        cat = load_catalog_file(filepath)
        console.print(f"Loaded {len(cat)} records from {filepath}")
        return cat

    if len(urls) == 1:
        return store.get(urls[0])
    return store.get_merged(urls)


def _catalog_frame(cat: CachedCatalog):
    import pandas as pd

    return pd.DataFrame([
        {
            "norad_id": r.norad_id.strip(),
            "name": r.name,
            "inclination_deg": r.inclination,
            "mean_motion_rev_day": r.mean_motion,
            "period_min": round(r.period_minutes, 2),
            **classify_record(r).to_dict(),
        }
        for r in cat.records
    ])


def _display_catalog(store: CatalogStore, cat: CachedCatalog, urls: list[str]):
    """Display a catalog summary with rich formatting."""
    df = _catalog_frame(cat)
    age_h = (time.time() - cat.acquired_at) / 3600.0
    status = "[yellow]built-in fallback[/yellow]" if cat.is_fallback else f"{age_h:.1f} h old"
    error_lines = ""
    for url in urls:
        error = store.last_error(url)
        if error:
            where = f" ({url})" if len(urls) > 1 else ""
            error_lines += f"\n[red]Last error{where}: {escape(error)}[/red]"

    console.print(
        Panel(
            f"[bold]{cat.source_id}[/bold]\n"
            f"Records: [bold green]{len(cat)}[/bold green]\n"
            f"Data: {status}"
            + error_lines,
            title="Catalog",
            box=box.ROUNDED,
        )
    )

    if df.empty:
        return

    for column, title in (("orbit_class", "Orbit Class"), ("mission_type", "Mission"),
                          ("operator", "Operator")):
        table = Table(title=title, box=box.SIMPLE_HEAVY)
        table.add_column(title, style="cyan")
        table.add_column("Count", justify="right")
        for value, count in df[column].value_counts().items():
            table.add_row(str(value), str(count))
        console.print(table)


def _display_visible_table(df, limit: int):
    """Display visible objects as a rich table, highest first."""
    table = Table(box=box.SIMPLE_HEAVY, show_lines=False)
    table.add_column("Name", style="bold")
    table.add_column("NORAD", justify="right")
    table.add_column("Operator")
    table.add_column("Orbit")
    table.add_column("Az (°)", justify="right")
    table.add_column("El (°)", justify="right", style="green")
    table.add_column("Range (km)", justify="right")
    table.add_column("Alt (km)", justify="right")

    for _, row in df.head(limit).iterrows():
        table.add_row(
            str(row["name"]),
            str(row["norad_id"]),
            str(row["operator"]),
            str(row["orbit_class"]),
            f"{row['azimuth_deg']:.1f}",
            f"{row['elevation_deg']:.1f}",
            f"{row['range_km']:.0f}",
            f"{row['alt_km']:.0f}",
        )

    if len(df) > limit:
        console.print(f"(showing {limit} of {len(df)} objects)")
    console.print(table)


if __name__ == "__main__":
    main()
