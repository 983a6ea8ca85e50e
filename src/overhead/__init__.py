"""OVERHEAD — Observer-relative tracking of orbiting objects.

Keeps a continuously refreshed catalog of Two-Line Element (TLE) sets,
works out which objects are above the horizon for a ground observer,
classifies them by operator / mission / orbit class, and produces a
per-tick render directive for every tracked object.

Modules:
    tle_parser:  Element records and catalog text parsing.
    catalog:     Catalog ingestion, tiered cache and multi-source merge.
    classifier:  Operator, country, mission and orbit-class tagging.
    propagation: Propagation adapter contract and the SGP4 default.
    visibility:  Topocentric look angles, pass prediction, observer session.
    filters:     Filter criteria and the render-eligibility predicate.
    tracker:     The per-tick update cycle and render directives.
    viz:         Sky plots and tabular export.
    cli:         Command-line interface.

Example:
    >>> from overhead.catalog import CatalogStore, TLE_SOURCES
    >>> from overhead.tracker import UpdateCycle
    >>> from overhead.visibility import ObserverLocation
    >>>
    >>> store = CatalogStore()
    >>> cycle = UpdateCycle()
    >>> cycle.load(store.get(TLE_SOURCES["stations"]).records)
    >>> report = cycle.tick(observer=ObserverLocation(51.5, -0.1))
    >>> print(report.summary())
"""

__version__ = "0.1.0"
