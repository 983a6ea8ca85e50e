"""Element records and catalog text parsing.

A catalog is plain text in repeating 3-line groups: a name line followed by
the two fixed-width NORAD element lines. Numeric fields are read by column
position, never by splitting on whitespace.

References:
    - Kelso, T.S. "CelesTrak TLE Format Documentation"
      https://celestrak.org/columns/v04n03/
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

LINE1_MARKER = "1 "
LINE2_MARKER = "2 "

MINUTES_PER_DAY = 1440.0


@dataclass(frozen=True, slots=True)
class ElementRecord:
    """One named TLE set, exactly as received.

    Immutable and hashable, so it can key per-record caches. The numeric
    accessors below read fixed columns of ``line1`` / ``line2`` and return
    ``nan`` for fields that do not parse.

    Attributes:
        name: Object name (line 0).
        line1: TLE line 1, starting with ``"1 "``.
        line2: TLE line 2, starting with ``"2 "``.
    """

    name: str
    line1: str
    line2: str

    @property
    def norad_id(self) -> str:
        """Catalog number field, columns 3-7 of line 1 (raw text, untrimmed)."""
        return self.line1[2:7]

    @property
    def inclination(self) -> float:
        """Inclination in degrees (line 2, columns 9-16)."""
        return _column_float(self.line2, 8, 16)

    @property
    def mean_motion(self) -> float:
        """Mean motion in revolutions per day (line 2, columns 53-63)."""
        return _column_float(self.line2, 52, 63)

    @property
    def period_minutes(self) -> float:
        """Orbital period derived from mean motion (minutes)."""
        n = self.mean_motion
        if not n or math.isnan(n):
            return math.nan
        return MINUTES_PER_DAY / n

    @property
    def epoch(self) -> Optional[datetime]:
        """Element epoch as a UTC datetime, or None if the field is malformed."""
        try:
            year_2d = int(self.line1[18:20])
            day_of_year = float(self.line1[20:32])
        except ValueError:
            return None
        year = 1900 + year_2d if year_2d >= 57 else 2000 + year_2d
        return _epoch_to_datetime(year, day_of_year)

    def to_dict(self) -> dict:
        """Serialize to the persisted cache entry shape."""
        return {"name": self.name, "line1": self.line1, "line2": self.line2}

    @staticmethod
    def from_dict(d: dict) -> ElementRecord:
        """Inverse of ``to_dict``.

        Raises:
            KeyError: If a field is missing.
            TypeError: If a field is not a string.
        """
        name, line1, line2 = d["name"], d["line1"], d["line2"]
        if not all(isinstance(v, str) for v in (name, line1, line2)):
            raise TypeError("element record fields must be strings")
        return ElementRecord(name=name, line1=line1, line2=line2)


def parse_catalog(text: str) -> list[ElementRecord]:
    """Parse catalog text into element records.

    Blank lines are dropped, then the remaining lines are consumed in fixed
    groups of three. A group is kept only when the name is non-empty and
    the two element lines start with their ``"1 "`` / ``"2 "`` markers;
    any other group is skipped without error. A trailing partial group is
    ignored.

    Args:
        text: Raw catalog body.

    Returns:
        Accepted records, in source order.
    """
    lines = [line.strip() for line in text.strip().splitlines() if line.strip()]
    records: list[ElementRecord] = []
    skipped = 0

    for i in range(0, len(lines) - 2, 3):
        name, line1, line2 = lines[i], lines[i + 1], lines[i + 2]
        if name and line1.startswith(LINE1_MARKER) and line2.startswith(LINE2_MARKER):
            if not _checksum_ok(line1) or not _checksum_ok(line2):
                logger.debug("Checksum mismatch for %s", name)
            records.append(ElementRecord(name=name, line1=line1, line2=line2))
        else:
            skipped += 1

    if skipped:
        logger.debug("Skipped %d malformed groups", skipped)
    return records


def format_catalog(records: Iterable[ElementRecord]) -> str:
    """Render records back to 3-line catalog text."""
    return "".join(f"{r.name}\n{r.line1}\n{r.line2}\n" for r in records)


def merge_records(
    sources: Iterable[Iterable[ElementRecord]],
) -> list[ElementRecord]:
    """Merge several catalogs, de-duplicating on catalog number.

    The first record seen for a catalog number wins; later duplicates are
    dropped. Source order, then record order, is preserved.
    """
    seen: set[str] = set()
    merged: list[ElementRecord] = []
    for records in sources:
        for record in records:
            key = record.norad_id
            if key in seen:
                continue
            seen.add(key)
            merged.append(record)
    return merged


# ── Private helpers ──


def _column_float(line: str, start: int, end: int) -> float:
    try:
        return float(line[start:end])
    except ValueError:
        return math.nan


def _checksum_ok(line: str) -> bool:
    """Check a TLE line's modulo-10 checksum.

    Lines that are short or lack a checksum digit are treated as valid;
    many real-world sources trim or reformat them.
    """
    if len(line) < 69 or not line[68].isdigit():
        return True

    total = 0
    for ch in line[:68]:
        if ch.isdigit():
            total += int(ch)
        elif ch == "-":
            total += 1
    return total % 10 == int(line[68])


def _epoch_to_datetime(year: int, day_of_year: float) -> datetime:
    """Convert a TLE epoch (year + fractional day-of-year) to a UTC datetime.

    Args:
        year: Full 4-digit year.
        day_of_year: Fractional day of year (1.0 = midnight Jan 1).
    """
    jan1 = datetime(year, 1, 1, tzinfo=timezone.utc)
    return jan1 + timedelta(days=day_of_year - 1.0)
