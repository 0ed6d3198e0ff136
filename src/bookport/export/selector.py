"""Export selector.

Reads one owner's records from the store and assembles a canonical
snapshot restricted to the requested categories and an optional date
window for reading sessions.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Callable, Iterable, Optional

from ..db.schemas import Category, ReadingSessionRecord
from ..db.store import RecordStore
from ..errors import OwnerNotFound
from ..snapshot import SCHEMA_VERSION, CanonicalSnapshot, SnapshotMetadata

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DateRange:
    """Inclusive session-date window. Either bound may be open."""

    start: Optional[date] = None
    end: Optional[date] = None

    def __post_init__(self) -> None:
        if self.start and self.end and self.start > self.end:
            raise ValueError(f"Date range start {self.start} is after end {self.end}")

    def contains(self, value: date) -> bool:
        if self.start and value < self.start:
            return False
        if self.end and value > self.end:
            return False
        return True


class ExportSelector:
    """Builds a CanonicalSnapshot for one owner."""

    def __init__(self, store: RecordStore, clock: Callable[[], datetime] = utcnow):
        """Initialize the selector.

        Args:
            store: Record store to read from
            clock: Returns the export timestamp; injectable for tests
        """
        self.store = store
        self.clock = clock

    def export(
        self,
        owner_id: str,
        selection: Optional[Iterable[Category]] = None,
        date_range: Optional[DateRange] = None,
    ) -> CanonicalSnapshot:
        """Export an owner's records.

        Args:
            owner_id: Owner whose records to export
            selection: Categories to populate; all when None or empty
            date_range: Optional inclusive filter on reading session dates

        Returns:
            Snapshot with every category present, unrequested ones empty

        Raises:
            OwnerNotFound: if the owner has no profile
        """
        profile = self.store.get_profile(owner_id)
        if profile is None:
            raise OwnerNotFound(owner_id)

        requested = set(selection or Category)
        exported_at = self.clock()

        owned_books = self.store.list_owned_books(owner_id)
        wishlist = self.store.list_wishlist_entries(owner_id)

        fields: dict = {}
        if Category.BOOKS in requested:
            book_ids = {owned.book_id for owned in owned_books}
            book_ids.update(entry.book_id for entry in wishlist)
            fields["books"] = self.store.list_books(sorted(i for i in book_ids if i))
        if Category.OWNED_BOOKS in requested:
            fields["owned_books"] = owned_books
        if Category.READING_SESSIONS in requested:
            fields["reading_sessions"] = self._sessions(owner_id, date_range)
        if Category.WISHLIST_ENTRIES in requested:
            fields["wishlist_entries"] = wishlist
        if Category.COLLECTIONS in requested:
            fields["collections"] = self.store.list_collections(owner_id)
        if Category.USER_PROFILE in requested:
            fields["user_profile"] = profile

        snapshot = CanonicalSnapshot(**fields)
        metadata = SnapshotMetadata(
            schema_version=SCHEMA_VERSION,
            exported_at=exported_at,
            owner_id=owner_id,
            categories=snapshot.populated_categories(),
            total_records=snapshot.total_records,
        )
        snapshot = snapshot.model_copy(update={"metadata": metadata})

        logger.info(
            "Exported %d records for %s (%s)",
            snapshot.total_records,
            owner_id,
            ", ".join(c.value for c in metadata.categories) or "empty",
        )
        return snapshot

    def _sessions(
        self, owner_id: str, date_range: Optional[DateRange]
    ) -> list[ReadingSessionRecord]:
        sessions = self.store.list_reading_sessions(owner_id)
        if date_range is None:
            return sessions
        return [s for s in sessions if date_range.contains(s.session_date)]
