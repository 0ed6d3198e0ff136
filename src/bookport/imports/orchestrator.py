"""Import orchestrator.

Drives one import through its states:

    VALIDATING -> RECONCILING -> PERSISTING -> COMMITTED | ROLLED_BACK

Validation rejects bad records one by one. Reconciliation matches
incoming records against the store (and against records staged earlier in
the same batch), merges duplicates, and assigns store ids. Everything that
survives is written with a single ``RecordStore.apply_changes`` call, so
the store either reflects every non-skipped record or is left untouched.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from tqdm import tqdm

from ..db.schemas import (
    BookRecord,
    Category,
    CollectionRecord,
    OwnedBookRecord,
    ReadingSessionRecord,
    RecordBase,
    UserProfileRecord,
    WishlistEntryRecord,
)
from ..db.store import RecordStore, StagedWrite, WriteAction
from ..errors import PersistenceFailure, ValidationError
from ..etl.dedupe import MatchKind, find_match
from ..etl.merge import merge
from ..snapshot import CanonicalSnapshot
from .validation import KnownRecords, SnapshotValidator, ValidationReport

logger = logging.getLogger(__name__)

DEFAULT_FUZZY_THRESHOLD = 0.95


class ImportState(str, Enum):
    """Lifecycle state of an import."""

    VALIDATING = "validating"
    RECONCILING = "reconciling"
    PERSISTING = "persisting"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass
class CategoryCounts:
    """Per-category outcome counts."""

    added: int = 0
    updated: int = 0
    skipped: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"added": self.added, "updated": self.updated, "skipped": self.skipped}


@dataclass
class RecordError:
    """A record that was rejected, with enough context to find it."""

    category: Category
    index: int
    field: Optional[str]
    kind: str
    message: str
    record_ref: str

    @classmethod
    def from_validation(cls, error: ValidationError) -> "RecordError":
        if error.record_id:
            record_ref = f"{error.category}:{error.record_id}"
        else:
            record_ref = f"{error.category}[{error.index}]"
        return cls(
            category=Category(error.category),
            index=error.index,
            field=error.field,
            kind=error.code,
            message=error.message,
            record_ref=record_ref,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "recordRef": self.record_ref,
            "errorKind": self.kind,
            "message": self.message,
            "category": self.category.value,
            "index": self.index,
            "field": self.field,
        }


def _empty_counts() -> dict[Category, CategoryCounts]:
    return {category: CategoryCounts() for category in Category}


@dataclass
class ImportSummary:
    """Outcome of one import invocation."""

    success: bool = False
    state: ImportState = ImportState.VALIDATING
    counts: dict[Category, CategoryCounts] = field(default_factory=_empty_counts)
    errors: list[RecordError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    failure: Optional[str] = None

    def count(self, category: Category) -> CategoryCounts:
        return self.counts[category]

    @property
    def books_added(self) -> int:
        """Library entries added (the owner's "books")."""
        return self.counts[Category.OWNED_BOOKS].added

    @property
    def books_updated(self) -> int:
        return self.counts[Category.OWNED_BOOKS].updated

    @property
    def books_skipped(self) -> int:
        return self.counts[Category.OWNED_BOOKS].skipped

    @property
    def sessions_added(self) -> int:
        return self.counts[Category.READING_SESSIONS].added

    @property
    def total_added(self) -> int:
        return sum(c.added for c in self.counts.values())

    @property
    def total_updated(self) -> int:
        return sum(c.updated for c in self.counts.values())

    @property
    def total_skipped(self) -> int:
        return sum(c.skipped for c in self.counts.values())

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the API layer, including the flat legacy counters."""
        counts = self.counts
        return {
            "success": self.success,
            "state": self.state.value,
            "counts": {category.value: c.to_dict() for category, c in counts.items()},
            "summary": {
                "booksAdded": self.books_added,
                "booksUpdated": self.books_updated,
                "booksSkipped": self.books_skipped,
                "sessionsAdded": self.sessions_added,
                "collectionsAdded": counts[Category.COLLECTIONS].added,
                "collectionsUpdated": counts[Category.COLLECTIONS].updated,
                "wishlistItemsAdded": counts[Category.WISHLIST_ENTRIES].added,
            },
            "errors": [e.to_dict() for e in self.errors],
            "warnings": list(self.warnings),
            "failure": self.failure,
        }


def new_id() -> str:
    return str(uuid4())


class _ChangeSet:
    """Ordered staged writes, one per (category, id)."""

    def __init__(self) -> None:
        self._writes: dict[tuple[Category, str], StagedWrite] = {}

    def stage(self, category: Category, action: WriteAction, record: RecordBase) -> None:
        key = (category, record.id)
        previous = self._writes.get(key)
        # Re-staging a create keeps it a create
        if previous is not None and previous.action == WriteAction.CREATE:
            action = WriteAction.CREATE
        self._writes[key] = StagedWrite(category, action, record)

    def is_staged(self, category: Category, record_id: Optional[str]) -> bool:
        return (category, record_id) in self._writes

    def writes(self) -> list[StagedWrite]:
        return list(self._writes.values())

    def __len__(self) -> int:
        return len(self._writes)


class ImportOrchestrator:
    """Validates, reconciles and persists a decoded snapshot for one owner."""

    def __init__(
        self,
        store: RecordStore,
        fuzzy_threshold: float = DEFAULT_FUZZY_THRESHOLD,
        show_progress: bool = False,
    ):
        """Initialize the orchestrator.

        Args:
            store: Record store to read from and write to
            fuzzy_threshold: Similarity at which books without an ISBN-13 merge
            show_progress: Show a tqdm bar while reconciling
        """
        self.store = store
        self.fuzzy_threshold = fuzzy_threshold
        self.show_progress = show_progress

    def run(self, owner_id: str, snapshot: CanonicalSnapshot) -> ImportSummary:
        """Import a snapshot into the owner's records.

        Returns:
            ImportSummary; ``success`` is False and the store is unchanged
            when the transaction failed.
        """
        summary = ImportSummary()
        self._transition(summary, ImportState.VALIDATING, owner_id)

        known_books = self.store.list_books()
        owned = self.store.list_owned_books(owner_id)
        known = KnownRecords(
            books={b.id: b for b in known_books if b.id},
            owned_book_ids={o.id for o in owned if o.id},
        )
        report = SnapshotValidator(known).validate(snapshot)
        self._record_validation(summary, snapshot, report)

        self._transition(summary, ImportState.RECONCILING, owner_id)
        reconciler = _Reconciler(
            owner_id,
            summary,
            books=known_books,
            owned_books=owned,
            sessions=self.store.list_reading_sessions(owner_id),
            wishlist=self.store.list_wishlist_entries(owner_id),
            collections=self.store.list_collections(owner_id),
            profile=self.store.get_profile(owner_id),
            fuzzy_threshold=self.fuzzy_threshold,
        )
        total = sum(len(report.records(c)) for c in Category)
        with tqdm(
            total=total, desc="Reconciling", unit="rec", disable=not self.show_progress
        ) as pbar:
            reconciler.reconcile(report, pbar)

        self._transition(summary, ImportState.PERSISTING, owner_id)
        writes = reconciler.changes.writes()
        try:
            if writes:
                self.store.apply_changes(owner_id, writes)
        except PersistenceFailure as e:
            summary.failure = e.message
            summary.success = False
            self._transition(summary, ImportState.ROLLED_BACK, owner_id)
            logger.error("Import for %s rolled back: %s", owner_id, e.message)
            return summary

        summary.success = True
        self._transition(summary, ImportState.COMMITTED, owner_id)
        logger.info(
            "Import for %s committed: %d added, %d updated, %d skipped, %d errors",
            owner_id,
            summary.total_added,
            summary.total_updated,
            summary.total_skipped,
            len(summary.errors),
        )
        return summary

    def _transition(self, summary: ImportSummary, state: ImportState, owner_id: str) -> None:
        logger.debug("Import for %s: %s -> %s", owner_id, summary.state.value, state.value)
        summary.state = state

    def _record_validation(
        self, summary: ImportSummary, snapshot: CanonicalSnapshot, report: ValidationReport
    ) -> None:
        for error in report.errors:
            summary.errors.append(RecordError.from_validation(error))
            summary.counts[Category(error.category)].skipped += 1

        for skip in report.soft_skips:
            summary.warnings.append(f"{skip.category.value}[{skip.index}] skipped: {skip.reason}")
            summary.counts[skip.category].skipped += 1

        for category, count in snapshot.skipped_on_decode.items():
            summary.warnings.append(f"{count} {category.value} record(s) skipped while decoding")
            summary.counts[category].skipped += count


class _Reconciler:
    """Matches validated records against the store and stages writes."""

    def __init__(
        self,
        owner_id: str,
        summary: ImportSummary,
        books: list[BookRecord],
        owned_books: list[OwnedBookRecord],
        sessions: list[ReadingSessionRecord],
        wishlist: list[WishlistEntryRecord],
        collections: list[CollectionRecord],
        profile: Optional[UserProfileRecord],
        fuzzy_threshold: float,
    ):
        self.owner_id = owner_id
        self.summary = summary
        self.fuzzy_threshold = fuzzy_threshold
        self.changes = _ChangeSet()

        # Current version of every book, stored or staged, for matching
        self.book_pool: list[BookRecord] = list(books)
        self.books_by_id: dict[str, BookRecord] = {b.id: b for b in books if b.id}
        self.owned_by_book: dict[str, OwnedBookRecord] = {o.book_id: o for o in owned_books}
        self.session_keys: set[tuple] = {self._session_key(s) for s in sessions}
        self.wishlist_by_book: dict[str, WishlistEntryRecord] = {w.book_id: w for w in wishlist}
        self.collections_by_name: dict[str, CollectionRecord] = {
            c.name.strip(): c for c in collections
        }
        self.profile = profile

        # Incoming id -> store id
        self.book_ids: dict[str, str] = {}
        self.owned_ids: dict[str, str] = {}
        # Incoming owned-book ids turned away while reconciling
        self.rejected_owned: set[str] = set()

    def reconcile(self, report: ValidationReport, pbar: tqdm) -> None:
        handlers = {
            Category.BOOKS: self._book,
            Category.OWNED_BOOKS: self._owned_book,
            Category.READING_SESSIONS: self._session,
            Category.WISHLIST_ENTRIES: self._wishlist_entry,
            Category.COLLECTIONS: self._collection,
            Category.USER_PROFILE: self._profile,
        }
        for category in Category:
            handler = handlers[category]
            for index, record in report.records(category):
                handler(index, record)
                pbar.update(1)

    # ------------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------------

    def _counts(self, category: Category) -> CategoryCounts:
        return self.summary.counts[category]

    def _stage_merge(self, category: Category, existing: RecordBase, merged: RecordBase):
        """Stage a merge result; return the record now current."""
        if merged == existing:
            self._counts(category).skipped += 1
            return existing

        if self.changes.is_staged(category, existing.id):
            # Folded into a record already staged in this batch
            self._counts(category).skipped += 1
        else:
            self._counts(category).updated += 1
        self.changes.stage(category, WriteAction.UPDATE, merged)
        return merged

    def _create(self, category: Category, record: RecordBase) -> RecordBase:
        record = record.model_copy(update={"id": new_id()})
        self.changes.stage(category, WriteAction.CREATE, record)
        self._counts(category).added += 1
        return record

    def _reject(
        self,
        category: Category,
        index: int,
        record: RecordBase,
        field_name: str,
        reason: str,
        value: Any = None,
    ) -> None:
        error = ValidationError(category.value, index, field_name, reason, value, record.id)
        self.summary.errors.append(RecordError.from_validation(error))
        self._counts(category).skipped += 1
        logger.debug("Rejected during reconcile: %s", error.message)

    @staticmethod
    def _session_key(session: ReadingSessionRecord) -> tuple:
        return (session.owned_book_id, session.session_date, session.start_page, session.end_page)

    # ------------------------------------------------------------------------
    # Per-category handlers
    # ------------------------------------------------------------------------

    def _book(self, index: int, book: BookRecord) -> None:
        verdict, match = find_match(book, self.book_pool, self.fuzzy_threshold)
        if verdict.is_duplicate:
            if verdict.match_kind == MatchKind.FUZZY:
                logger.debug(
                    "Fuzzy book match %.3f: %r -> %r", verdict.similarity, book.title, match.title
                )
            current = self._stage_merge(Category.BOOKS, match, merge(match, book))
            position = next(i for i, b in enumerate(self.book_pool) if b is match)
            self.book_pool[position] = current
        else:
            current = self._create(Category.BOOKS, book)
            self.book_pool.append(current)

        self.books_by_id[current.id] = current
        if book.id:
            self.book_ids[book.id] = current.id

    def _owned_book(self, index: int, owned: OwnedBookRecord) -> None:
        book_id = self.book_ids.get(owned.book_id, owned.book_id)
        incoming = owned.model_copy(update={"book_id": book_id})

        existing = self.owned_by_book.get(book_id)
        candidate = merge(existing, incoming) if existing is not None else incoming

        # The book may have gained a page count from the store or a merge
        book = self.books_by_id.get(book_id)
        if book is not None and book.page_count is not None:
            if candidate.current_page > book.page_count:
                self._reject(
                    Category.OWNED_BOOKS,
                    index,
                    owned,
                    "currentPage",
                    f"current page exceeds page count ({book.page_count})",
                    candidate.current_page,
                )
                if owned.id:
                    self.rejected_owned.add(owned.id)
                return

        if existing is not None:
            result = self._stage_merge(Category.OWNED_BOOKS, existing, candidate)
        else:
            result = self._create(Category.OWNED_BOOKS, incoming)
        self.owned_by_book[book_id] = result

        if owned.id:
            self.owned_ids[owned.id] = result.id

    def _session(self, index: int, session: ReadingSessionRecord) -> None:
        if session.owned_book_id in self.rejected_owned:
            self._reject(
                Category.READING_SESSIONS,
                index,
                session,
                "ownedBookId",
                "references an unknown owned book",
                session.owned_book_id,
            )
            return

        owned_id = self.owned_ids.get(session.owned_book_id, session.owned_book_id)
        incoming = session.model_copy(update={"owned_book_id": owned_id})

        key = self._session_key(incoming)
        if key in self.session_keys:
            self._counts(Category.READING_SESSIONS).skipped += 1
            return
        self.session_keys.add(key)
        self._create(Category.READING_SESSIONS, incoming)

    def _wishlist_entry(self, index: int, entry: WishlistEntryRecord) -> None:
        book_id = self.book_ids.get(entry.book_id, entry.book_id)
        incoming = entry.model_copy(update={"book_id": book_id})

        existing = self.wishlist_by_book.get(book_id)
        if existing is not None:
            result = self._stage_merge(
                Category.WISHLIST_ENTRIES, existing, merge(existing, incoming)
            )
        else:
            result = self._create(Category.WISHLIST_ENTRIES, incoming)
        self.wishlist_by_book[book_id] = result

    def _collection(self, index: int, collection: CollectionRecord) -> None:
        unknown = [i for i in collection.owned_book_ids if i in self.rejected_owned]
        if unknown:
            self._reject(
                Category.COLLECTIONS,
                index,
                collection,
                "ownedBookIds",
                "references unknown owned books",
                unknown,
            )
            return

        name = collection.name.strip()
        incoming = collection.model_copy(
            update={
                "name": name,
                "owned_book_ids": [self.owned_ids.get(i, i) for i in collection.owned_book_ids],
            }
        )

        existing = self.collections_by_name.get(name)
        if existing is not None:
            result = self._stage_merge(Category.COLLECTIONS, existing, merge(existing, incoming))
        else:
            result = self._create(Category.COLLECTIONS, incoming)
        self.collections_by_name[name] = result

    def _profile(self, index: int, profile: UserProfileRecord) -> None:
        if self.profile is not None:
            self.profile = self._stage_merge(
                Category.USER_PROFILE, self.profile, merge(self.profile, profile)
            )
            return

        created = profile.model_copy(update={"id": self.owner_id})
        self.changes.stage(Category.USER_PROFILE, WriteAction.CREATE, created)
        self._counts(Category.USER_PROFILE).added += 1
        self.profile = created
