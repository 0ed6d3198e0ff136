"""Entry points used by callers (the CLI, an API layer).

These tie the selector, the format converter and the import orchestrator
together. Each accepts an explicit store; without one the configured
SQLite database is used.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Union

from .config import get_config
from .db.schemas import Category
from .db.store import RecordStore
from .export.selector import DateRange, ExportSelector, utcnow
from .formats import ExportFormat, decode, encode, resolve_format
from .formats.goodreads import REQUIRED_COLUMNS as GOODREADS_COLUMNS
from .formats.parsing import match_columns, read_header
from .imports.orchestrator import ImportOrchestrator, ImportSummary
from .snapshot import CanonicalSnapshot

logger = logging.getLogger(__name__)

# Categories a flat format needs to render its rows
FORMAT_CATEGORIES: dict[ExportFormat, set[Category]] = {
    ExportFormat.TABULAR: {Category.BOOKS, Category.OWNED_BOOKS},
    ExportFormat.GOODREADS: {Category.BOOKS, Category.OWNED_BOOKS, Category.READING_SESSIONS},
}


@dataclass
class ExportOptions:
    """What to export and how."""

    format: Union[ExportFormat, str] = ExportFormat.NATIVE
    categories: list[Category] = field(default_factory=list)  # empty means all
    date_range: Optional[DateRange] = None


def _default_store() -> RecordStore:
    from .db.sqlite import get_db

    return get_db()


def prepare_export(
    owner_id: str,
    options: Optional[ExportOptions] = None,
    store: Optional[RecordStore] = None,
    clock: Callable[[], datetime] = utcnow,
) -> str:
    """Export an owner's records and serialize them.

    Raises:
        UnsupportedFormat: unknown format
        OwnerNotFound: owner has no profile
    """
    options = options or ExportOptions()
    fmt = resolve_format(options.format)
    store = store or _default_store()

    selection = set(options.categories)
    if selection and fmt in FORMAT_CATEGORIES:
        selection |= FORMAT_CATEGORIES[fmt]

    snapshot = ExportSelector(store, clock=clock).export(
        owner_id, selection or None, options.date_range
    )
    logger.info("Encoding export for %s as %s", owner_id, fmt.value)
    return encode(snapshot, fmt)


def decode_upload(
    data: Union[str, bytes], declared_format: Union[ExportFormat, str]
) -> CanonicalSnapshot:
    """Decode uploaded text or bytes in the declared format.

    Raises:
        UnsupportedFormat, MalformedInput, SchemaMismatch
    """
    snapshot = decode(data, declared_format)
    logger.info(
        "Decoded %s upload: %d records",
        resolve_format(declared_format).value,
        snapshot.total_records,
    )
    return snapshot


def run_import(
    owner_id: str,
    snapshot: CanonicalSnapshot,
    store: Optional[RecordStore] = None,
    show_progress: bool = False,
) -> ImportSummary:
    """Import a decoded snapshot for an owner."""
    store = store or _default_store()
    orchestrator = ImportOrchestrator(
        store,
        fuzzy_threshold=get_config().fuzzy_threshold,
        show_progress=show_progress,
    )
    return orchestrator.run(owner_id, snapshot)


def infer_format(path: Path, text: Optional[str] = None) -> ExportFormat:
    """Guess a file's format from its suffix and, for CSV, its header."""
    suffix = path.suffix.lower()
    if suffix == ".json":
        return ExportFormat.NATIVE
    if suffix == ".csv" and text is not None:
        columns = match_columns(read_header(text), GOODREADS_COLUMNS)
        if len(columns) == len(GOODREADS_COLUMNS):
            return ExportFormat.GOODREADS
        return ExportFormat.TABULAR
    if suffix == ".csv":
        return ExportFormat.TABULAR
    return resolve_format(get_config().default_format)
