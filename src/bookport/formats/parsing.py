"""Field-level parsing helpers shared by the tabular codecs.

Each helper degrades to a default instead of raising: a bad cell never
fails a row.
"""

import csv
import re
from datetime import date, datetime
from io import StringIO
from typing import Iterable, Optional

# Date formats seen in tracker exports, tried in order
DATE_FORMATS = [
    "%Y/%m/%d",
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%m/%d/%y",
    "%d/%m/%Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%Y-%m-%dT%H:%M:%S",
]


def parse_int(value: Optional[str], default: Optional[int] = None) -> Optional[int]:
    """Parse integer value, accepting "4.0"-style floats."""
    if value is None or not value.strip():
        return default
    try:
        return int(float(value.strip()))
    except (ValueError, TypeError, OverflowError):
        return default


def parse_date(value: Optional[str]) -> Optional[date]:
    """Parse a date in any of DATE_FORMATS, or None."""
    if not value or not value.strip():
        return None

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value.strip(), fmt).date()
        except ValueError:
            continue

    return None


def clean_isbn(isbn: Optional[str]) -> Optional[str]:
    """Clean ISBN value (Goodreads wraps them as ="1234567890")."""
    if not isbn:
        return None

    isbn = isbn.strip().strip('"').strip("'").lstrip("=").strip('"')
    isbn = re.sub(r"[\s-]", "", isbn)

    if not isbn:
        return None

    if isbn.isdigit() or (isbn[:-1].isdigit() and isbn[-1] in "Xx"):
        return isbn.upper()
    return None


def clean_text(value: Optional[str]) -> Optional[str]:
    """Strip a cell, mapping blank to None."""
    if value is None:
        return None
    value = value.strip()
    return value or None


def read_table(text: str) -> tuple[list[str], list[dict[str, str]]]:
    """Read CSV text into (header, rows) with RFC4180 quoting rules.

    Raises csv.Error on structurally broken input (e.g. unterminated quote).
    """
    reader = csv.DictReader(StringIO(text, newline=""), strict=True)
    header = [name.strip() for name in (reader.fieldnames or [])]
    reader.fieldnames = header
    rows = []
    for row in reader:
        # Blank lines are skipped by DictReader; whitespace-only rows are not
        if not any((v or "").strip() for k, v in row.items() if k is not None):
            continue
        rows.append({k: (v or "") for k, v in row.items() if k is not None})
    return header, rows


def write_table(header: list[str], rows: list[list[str]]) -> str:
    """Write rows as CSV text, quoting only where needed."""
    buffer = StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\r\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()


def read_header(text: str) -> list[str]:
    """First CSV row of text, or [] when there is none."""
    reader = csv.reader(StringIO(text.lstrip("\ufeff"), newline=""))
    try:
        return [name.strip() for name in next(reader)]
    except (StopIteration, csv.Error):
        return []


def match_columns(header: list[str], columns: Iterable[str]) -> dict[str, str]:
    """Map known column names to their spelling in header, ignoring case."""
    by_lower = {name.lower(): name for name in header}
    return {c: by_lower[c.lower()] for c in columns if c.lower() in by_lower}
