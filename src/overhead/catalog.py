"""Catalog ingestion and the tiered catalog cache.

``CatalogIngestor`` downloads and validates one catalog source.
``CatalogStore`` sits in front of it and always hands back usable data,
resolving each request through, in order:

    1. a fresh in-memory entry for that source (no network call),
    2. a new download,
    3. the stale entry for that source, whatever its age,
    4. a small built-in fallback set.

Downloads for the same source are single-flight: a caller that arrives
while a download is running waits for it and receives the same result.
The last good download is persisted to a JSON slot on disk and used to
seed the store on the next start.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional

import requests
from apscheduler.schedulers.background import BackgroundScheduler

from .config import TLE_SOURCES, TrackerConfig
from .errors import CacheCorruption, FetchError, ValidationError
from .tle_parser import ElementRecord, merge_records, parse_catalog

logger = logging.getLogger(__name__)

__all__ = [
    "TLE_SOURCES",
    "FALLBACK_RECORDS",
    "CachedCatalog",
    "CacheFile",
    "CatalogIngestor",
    "CatalogStore",
    "fallback_catalog",
    "load_catalog_file",
]

CHUNK_SIZE = 64 * 1024
FALLBACK_SOURCE = "fallback"

# Always-available objects, served when nothing else is.
FALLBACK_RECORDS: tuple[ElementRecord, ...] = (
    ElementRecord(
        name="ISS (ZARYA)",
        line1="1 25544U 98067A   24001.50000000  .00016717  00000-0  10270-3 0  9025",
        line2="2 25544  51.6400 208.9163 0006703  32.0000 328.1000 15.50000000000017",
    ),
    ElementRecord(
        name="STARLINK-1007",
        line1="1 44713U 19074A   24001.50000000  .00000000  00000-0  10000-4 0  9991",
        line2="2 44713  53.0000 200.0000 0001000  90.0000 270.0000 15.05000000000010",
    ),
)


@dataclass(frozen=True)
class CachedCatalog:
    """An accepted set of element records plus where and when it came from.

    Attributes:
        records: Element records in source order.
        acquired_at: Acquisition time, epoch seconds.
        source_id: Source URL (or ``"fallback"``).
    """
    records: tuple[ElementRecord, ...]
    acquired_at: float
    source_id: str

    def age(self, now: float) -> float:
        """Seconds since acquisition."""
        return now - self.acquired_at

    def is_fresh(self, now: float, ttl_s: float) -> bool:
        return self.age(now) < ttl_s

    @property
    def is_fallback(self) -> bool:
        return self.source_id == FALLBACK_SOURCE

    def __len__(self) -> int:
        return len(self.records)


def fallback_catalog() -> CachedCatalog:
    """The built-in catalog. Never fresh, so a download is always attempted."""
    return CachedCatalog(
        records=FALLBACK_RECORDS, acquired_at=0.0, source_id=FALLBACK_SOURCE
    )


class CacheFile:
    """Single persisted catalog slot.

    File layout::

        {"data": [{"name": ..., "line1": ..., "line2": ...}, ...],
         "timestamp": <epoch millis>,
         "source": "<source url>"}
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> Optional[CachedCatalog]:
        """Read the slot.

        Returns:
            The stored catalog, or None if the slot does not exist.

        Raises:
            CacheCorruption: If the slot exists but cannot be decoded.
        """
        if not self.path.exists():
            return None
        try:
            payload = json.loads(self.path.read_text())
            records = tuple(ElementRecord.from_dict(d) for d in payload["data"])
            timestamp_ms = float(payload["timestamp"])
            source = payload["source"]
            if not isinstance(source, str):
                raise TypeError("source must be a string")
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise CacheCorruption(f"Unreadable catalog cache {self.path}: {e}") from e

        return CachedCatalog(
            records=records, acquired_at=timestamp_ms / 1000.0, source_id=source
        )

    def save(self, catalog: CachedCatalog) -> None:
        payload = {
            "data": [r.to_dict() for r in catalog.records],
            "timestamp": int(catalog.acquired_at * 1000),
            "source": catalog.source_id,
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(payload))


class CatalogIngestor:
    """Downloads one catalog source and validates what it yields.

    Args:
        session: HTTP session (a ``requests.Session`` or compatible object).
        clock: Returns the current time in epoch seconds; stamps
            ``acquired_at``.
        timeout_s: Overall download deadline, including the body.
        min_records: Downloads yielding fewer records are rejected.
        timer: Monotonic timer used for the deadline.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.time,
        timeout_s: float = 30.0,
        min_records: int = 10,
        timer: Callable[[], float] = time.monotonic,
    ):
        self.session = session or requests.Session()
        self.clock = clock
        self.timeout_s = timeout_s
        self.min_records = min_records
        self.timer = timer

    def fetch(
        self,
        source_url: str,
        cancel: Optional[threading.Event] = None,
    ) -> CachedCatalog:
        """Download, parse and validate a catalog.

        Args:
            source_url: Catalog URL.
            cancel: Optional event; when set, the download is abandoned at
                the next chunk boundary.

        Returns:
            A new catalog stamped with the current clock time.

        Raises:
            FetchError: Network error, non-2xx status, timeout or cancellation.
            ValidationError: Fewer than ``min_records`` records parsed.
        """
        text = self._download(source_url, cancel)
        records = parse_catalog(text)

        if len(records) < self.min_records:
            raise ValidationError(
                f"Insufficient satellite data: {len(records)} records "
                f"(need {self.min_records})",
                source=source_url,
                count=len(records),
            )

        logger.info(f"Loaded {len(records)} records from {source_url}")
        return CachedCatalog(
            records=tuple(records), acquired_at=self.clock(), source_id=source_url
        )

    def _download(self, source_url: str, cancel: Optional[threading.Event]) -> str:
        deadline = self.timer() + self.timeout_s
        _check_cancel(cancel, source_url)

        logger.info(f"Fetching {source_url}")
        try:
            resp = self.session.get(
                source_url,
                headers={"Accept": "text/plain"},
                timeout=self.timeout_s,
                stream=True,
            )
        except requests.RequestException as e:
            raise FetchError(f"Request failed: {e}", source=source_url) from e

        try:
            if not 200 <= resp.status_code < 300:
                raise FetchError(
                    f"HTTP {resp.status_code}",
                    source=source_url,
                    status=resp.status_code,
                )

            chunks: list[bytes] = []
            for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                _check_cancel(cancel, source_url)
                if self.timer() > deadline:
                    raise FetchError(
                        f"Timed out after {self.timeout_s:.0f}s", source=source_url
                    )
                chunks.append(chunk)
        except requests.RequestException as e:
            raise FetchError(f"Download failed: {e}", source=source_url) from e
        finally:
            resp.close()

        return b"".join(chunks).decode(_body_encoding(resp), errors="replace")


class CatalogStore:
    """Tiered, single-flight catalog cache.

    Args:
        ingestor: Downloader. Defaults to a ``CatalogIngestor`` built from
            ``config`` and ``clock``.
        config: Limits and cache path.
        clock: Epoch-seconds clock used for freshness checks. Inject a fake
            one to make TTL behavior deterministic.
        cache_file: Persisted slot. Defaults to ``config.cache_path``; pass
            ``config.cache_path=None`` to run without persistence.

    Example:
        >>> store = CatalogStore()
        >>> catalog = store.get(TLE_SOURCES["stations"])
        >>> len(catalog.records)
    """

    def __init__(
        self,
        ingestor: Optional[CatalogIngestor] = None,
        config: Optional[TrackerConfig] = None,
        clock: Callable[[], float] = time.time,
        cache_file: Optional[CacheFile] = None,
    ):
        self.config = config or TrackerConfig()
        self.clock = clock
        self.ingestor = ingestor or CatalogIngestor(
            clock=clock,
            timeout_s=self.config.fetch_timeout_s,
            min_records=self.config.min_records,
        )
        if cache_file is None and self.config.cache_path is not None:
            cache_file = CacheFile(self.config.cache_path)
        self.cache_file = cache_file

        self._entries: dict[str, CachedCatalog] = {}
        self._errors: dict[str, str] = {}
        self._inflight: dict[str, Future] = {}
        self._lock = threading.Lock()
        self._closing = threading.Event()
        self._scheduler: Optional[BackgroundScheduler] = None

        self._load_persisted()

    # ── Public API ──

    def get(self, source_url: str) -> CachedCatalog:
        """Return the best available catalog for a source. Never raises
        for ingestion problems."""
        entry = self._entries.get(source_url)
        if entry is not None and entry.is_fresh(self.clock(), self.config.cache_ttl_s):
            logger.debug(f"Using cached data ({len(entry)} records) for {source_url}")
            return entry
        return self._fetch_or_degrade(source_url)

    def refresh(self, source_url: str) -> CachedCatalog:
        """Download a source now, ignoring freshness, with the same fallbacks
        as ``get``."""
        return self._fetch_or_degrade(source_url)

    def get_merged(self, source_urls: Iterable[str]) -> CachedCatalog:
        """Combine several sources, keeping the first record per catalog number.

        The merged catalog is stamped with the oldest component time.
        """
        urls = list(source_urls)
        catalogs = [self.get(url) for url in urls]
        merged = merge_records(c.records for c in catalogs)
        if not merged:
            return fallback_catalog()
        return CachedCatalog(
            records=tuple(merged),
            acquired_at=min(c.acquired_at for c in catalogs),
            source_id=" + ".join(urls),
        )

    def peek(self, source_url: str) -> Optional[CachedCatalog]:
        """Current entry for a source without any fetch, or None."""
        return self._entries.get(source_url)

    def last_error(self, source_url: str) -> Optional[str]:
        """Message of the most recent failed download for a source, cleared on
        success."""
        with self._lock:
            return self._errors.get(source_url)

    def start_auto_refresh(
        self,
        source_url: str,
        scheduler: Optional[BackgroundScheduler] = None,
    ) -> None:
        """Refresh a source every ``config.refresh_interval_s`` in the background.

        Scheduled refreshes share the single-flight guard with ``get`` and
        ``refresh``, so they never overlap a user-triggered download.
        """
        if scheduler is None:
            scheduler = self._scheduler or BackgroundScheduler(daemon=True)
        scheduler.add_job(
            self.refresh,
            "interval",
            seconds=self.config.refresh_interval_s,
            args=[source_url],
            id=f"refresh:{source_url}",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        if not scheduler.running:
            scheduler.start()
        self._scheduler = scheduler
        logger.info(
            f"Auto-refresh every {self.config.refresh_interval_s / 60:.0f} min "
            f"for {source_url}"
        )

    def stop_auto_refresh(self) -> None:
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None

    def close(self) -> None:
        """Stop background refreshes and abandon any running download."""
        self._closing.set()
        self.stop_auto_refresh()

    # ── Internals ──

    def _fetch_or_degrade(self, source_url: str) -> CachedCatalog:
        try:
            return self._fetch_single_flight(source_url)
        except (FetchError, ValidationError) as e:
            with self._lock:
                self._errors[source_url] = str(e)
            logger.warning(f"Fetch failed for {source_url}: {e}")

        stale = self._entries.get(source_url)
        if stale is not None and stale.records:
            logger.info(f"Using stale cache ({len(stale)} records) for {source_url}")
            return stale

        logger.warning("Using fallback dataset")
        return fallback_catalog()

    def _fetch_single_flight(self, source_url: str) -> CachedCatalog:
        with self._lock:
            future = self._inflight.get(source_url)
            owner = future is None
            if owner:
                future = Future()
                self._inflight[source_url] = future

        if not owner:
            logger.debug(f"Joining in-flight fetch for {source_url}")
            return future.result()

        try:
            catalog = self.ingestor.fetch(source_url, cancel=self._closing)
        except Exception as e:
            future.set_exception(e)
            raise
        else:
            self._accept(catalog)
            future.set_result(catalog)
            return catalog
        finally:
            with self._lock:
                self._inflight.pop(source_url, None)

    def _accept(self, catalog: CachedCatalog) -> None:
        with self._lock:
            self._entries[catalog.source_id] = catalog
            self._errors.pop(catalog.source_id, None)
        if self.cache_file is None:
            return
        try:
            self.cache_file.save(catalog)
        except OSError as e:
            logger.warning(f"Could not persist catalog cache: {e}")

    def _load_persisted(self) -> None:
        if self.cache_file is None:
            return
        try:
            catalog = self.cache_file.load()
        except CacheCorruption as e:
            logger.warning(f"Ignoring catalog cache: {e}")
            return
        if catalog is not None and catalog.records:
            self._entries[catalog.source_id] = catalog
            logger.debug(
                f"Seeded {len(catalog)} records for {catalog.source_id} from disk"
            )


def load_catalog_file(filepath: str | Path) -> CachedCatalog:
    """Load a local 3-line catalog file, stamped with its modification time."""
    path = Path(filepath)
    records = parse_catalog(path.read_text())
    return CachedCatalog(
        records=tuple(records), acquired_at=path.stat().st_mtime, source_id=str(path)
    )


def _check_cancel(cancel: Optional[threading.Event], source_url: str) -> None:
    if cancel is not None and cancel.is_set():
        raise FetchError("Fetch cancelled", source=source_url)


def _body_encoding(resp: requests.Response) -> str:
    # requests reports ISO-8859-1 for text/* replies that state no charset
    content_type = resp.headers.get("Content-Type", "")
    if resp.encoding and "charset=" in content_type.lower():
        return resp.encoding
    return "utf-8"
