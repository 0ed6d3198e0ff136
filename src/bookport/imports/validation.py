"""Per-record structural validation for imports.

Each check raises ``ValidationError`` for the first problem it finds. The
``SnapshotValidator`` runs them over a whole snapshot in dependency order,
collects the errors, and hands back only the records that passed, with
free-form values (status, priority) normalized.

References are resolved against records that passed validation in the
same snapshot, then against what the store already holds. A record whose
own check failed is never a valid reference target, so its dependents are
reported as dangling instead of silently dropped.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from ..db.schemas import (
    MAX_REVIEW_LENGTH,
    BookRecord,
    Category,
    CollectionRecord,
    OwnedBookRecord,
    ReadingSessionRecord,
    RecordBase,
    UserProfileRecord,
    WishlistEntryRecord,
    WishlistPriority,
    parse_status,
)
from ..errors import ValidationError
from ..etl.dedupe import normalize_isbn
from ..snapshot import CanonicalSnapshot

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


@dataclass
class SoftSkip:
    """A record left out by rule rather than rejected."""

    category: Category
    index: int
    reason: str


@dataclass
class ValidationReport:
    """Records that passed, per category, with their source index."""

    valid: dict[Category, list[tuple[int, RecordBase]]] = field(default_factory=dict)
    errors: list[ValidationError] = field(default_factory=list)
    soft_skips: list[SoftSkip] = field(default_factory=list)

    def records(self, category: Category) -> list[tuple[int, RecordBase]]:
        return self.valid.get(category, [])


@dataclass
class KnownRecords:
    """What the target store already holds, for reference checks."""

    books: dict[str, BookRecord] = field(default_factory=dict)
    owned_book_ids: set[str] = field(default_factory=set)


# ============================================================================
# Record Checks
# ============================================================================


def _fail(category: Category, index: int, field_name: Optional[str], reason: str, value=None):
    raise ValidationError(category.value, index, field_name, reason, value)


def validate_book(record: BookRecord, index: int) -> BookRecord:
    if not record.title or not record.title.strip():
        _fail(Category.BOOKS, index, "title", "title is required")
    if record.page_count is not None and record.page_count < 0:
        _fail(Category.BOOKS, index, "pageCount", "page count cannot be negative", record.page_count)
    if record.isbn13:
        isbn = normalize_isbn(record.isbn13)
        if len(isbn) != 13 or not isbn.isdigit():
            _fail(Category.BOOKS, index, "isbn13", "ISBN-13 must be 13 digits", record.isbn13)
    return record


def validate_owned_book(
    record: OwnedBookRecord, index: int, book: Optional[BookRecord]
) -> OwnedBookRecord:
    """Check an owned book against the book it references.

    ``book`` is the resolved reference, or None if it dangles.
    """
    category = Category.OWNED_BOOKS
    if not record.book_id:
        _fail(category, index, "bookId", "book reference is required")
    if book is None:
        _fail(category, index, "bookId", "references an unknown book", record.book_id)

    status = parse_status(record.status)
    if status is None:
        _fail(category, index, "status", "unknown reading status", record.status)

    if record.current_page < 0:
        _fail(category, index, "currentPage", "current page cannot be negative", record.current_page)
    if book.page_count is not None and record.current_page > book.page_count:
        _fail(
            category,
            index,
            "currentPage",
            f"current page exceeds page count ({book.page_count})",
            record.current_page,
        )

    if record.rating is not None and not MIN_RATING <= record.rating <= MAX_RATING:
        _fail(category, index, "rating", "rating must be between 1 and 5", record.rating)
    if record.review and len(record.review) > MAX_REVIEW_LENGTH:
        _fail(
            category,
            index,
            "review",
            f"review is longer than {MAX_REVIEW_LENGTH} characters",
            len(record.review),
        )
    if record.start_date and record.finish_date and record.finish_date < record.start_date:
        _fail(category, index, "finishDate", "finish date is before start date", str(record.finish_date))

    if status.value != record.status:
        record = record.model_copy(update={"status": status.value})
    return record


def validate_session(
    record: ReadingSessionRecord, index: int, owned_known: bool
) -> ReadingSessionRecord:
    category = Category.READING_SESSIONS
    if not record.owned_book_id:
        _fail(category, index, "ownedBookId", "owned book reference is required")
    if not owned_known:
        _fail(category, index, "ownedBookId", "references an unknown owned book", record.owned_book_id)
    if record.start_page < 0:
        _fail(category, index, "startPage", "start page cannot be negative", record.start_page)
    if record.duration_minutes is not None and record.duration_minutes < 0:
        _fail(category, index, "durationMinutes", "duration cannot be negative", record.duration_minutes)
    return record


def validate_wishlist_entry(
    record: WishlistEntryRecord, index: int, book_known: bool
) -> WishlistEntryRecord:
    category = Category.WISHLIST_ENTRIES
    if not record.book_id:
        _fail(category, index, "bookId", "book reference is required")
    if not book_known:
        _fail(category, index, "bookId", "references an unknown book", record.book_id)

    priority = (record.priority or "").strip().lower()
    if priority not in {p.value for p in WishlistPriority}:
        _fail(category, index, "priority", "priority must be low, medium or high", record.priority)
    if record.price_alert is not None and record.price_alert < 0:
        _fail(category, index, "priceAlert", "price alert cannot be negative", record.price_alert)

    if priority != record.priority:
        record = record.model_copy(update={"priority": priority})
    return record


def validate_collection(
    record: CollectionRecord, index: int, unknown_ids: list[str]
) -> CollectionRecord:
    category = Category.COLLECTIONS
    if not record.name or not record.name.strip():
        _fail(category, index, "name", "collection name is required")
    if unknown_ids:
        _fail(category, index, "ownedBookIds", "references unknown owned books", unknown_ids)
    return record


def validate_profile(record: UserProfileRecord) -> UserProfileRecord:
    category = Category.USER_PROFILE
    if record.books_per_page is not None and record.books_per_page <= 0:
        _fail(category, 0, "booksPerPage", "books per page must be positive", record.books_per_page)
    if record.reading_goal is not None and record.reading_goal < 0:
        _fail(category, 0, "readingGoal", "reading goal cannot be negative", record.reading_goal)
    return record


# ============================================================================
# Snapshot Validator
# ============================================================================


class SnapshotValidator:
    """Validates every record of a snapshot in dependency order."""

    def __init__(self, known: Optional[KnownRecords] = None):
        self.known = known or KnownRecords()

    def validate(self, snapshot: CanonicalSnapshot) -> ValidationReport:
        report = ValidationReport()

        # Ids of snapshot records that failed; they never resolve, even
        # when the store happens to hold the same id.
        bad_books: set[str] = set()
        bad_owned: set[str] = set()

        for reject in snapshot.decode_rejects:
            report.errors.append(
                ValidationError(
                    reject.category.value,
                    reject.index,
                    reject.field,
                    reject.reason,
                    record_id=reject.record_id,
                )
            )
            if reject.record_id and reject.category == Category.BOOKS:
                bad_books.add(reject.record_id)
            elif reject.record_id and reject.category == Category.OWNED_BOOKS:
                bad_owned.add(reject.record_id)

        books: dict[str, BookRecord] = {}
        for index, book in _indexed(snapshot, Category.BOOKS):
            if self._check(report, Category.BOOKS, index, book, lambda: validate_book(book, index)):
                if book.id:
                    books[book.id] = book
            elif book.id:
                bad_books.add(book.id)

        def resolve_book(book_id: Optional[str]) -> Optional[BookRecord]:
            if not book_id or book_id in bad_books:
                return None
            return books.get(book_id) or self.known.books.get(book_id)

        owned_ids: set[str] = set()
        for index, owned in _indexed(snapshot, Category.OWNED_BOOKS):
            book = resolve_book(owned.book_id)
            if self._check(
                report,
                Category.OWNED_BOOKS,
                index,
                owned,
                lambda: validate_owned_book(owned, index, book),
            ):
                if owned.id:
                    owned_ids.add(owned.id)
            elif owned.id:
                bad_owned.add(owned.id)

        def owned_known(owned_id: Optional[str]) -> bool:
            if not owned_id or owned_id in bad_owned:
                return False
            return owned_id in owned_ids or owned_id in self.known.owned_book_ids

        for index, session in _indexed(snapshot, Category.READING_SESSIONS):
            if not session.is_valid:
                report.soft_skips.append(
                    SoftSkip(
                        Category.READING_SESSIONS,
                        index,
                        f"end page {session.end_page} is before start page {session.start_page}",
                    )
                )
                continue
            self._check(
                report,
                Category.READING_SESSIONS,
                index,
                session,
                lambda: validate_session(session, index, owned_known(session.owned_book_id)),
            )

        for index, entry in _indexed(snapshot, Category.WISHLIST_ENTRIES):
            self._check(
                report,
                Category.WISHLIST_ENTRIES,
                index,
                entry,
                lambda: validate_wishlist_entry(
                    entry, index, resolve_book(entry.book_id) is not None
                ),
            )

        for index, collection in _indexed(snapshot, Category.COLLECTIONS):
            unknown = [i for i in collection.owned_book_ids if not owned_known(i)]
            self._check(
                report,
                Category.COLLECTIONS,
                index,
                collection,
                lambda: validate_collection(collection, index, unknown),
            )

        if snapshot.user_profile is not None:
            profile = snapshot.user_profile
            self._check(
                report, Category.USER_PROFILE, 0, profile, lambda: validate_profile(profile)
            )

        logger.debug(
            "Validated snapshot: %d errors, %d soft skips",
            len(report.errors),
            len(report.soft_skips),
        )
        return report

    def _check(
        self,
        report: ValidationReport,
        category: Category,
        index: int,
        record: RecordBase,
        check,
    ) -> bool:
        try:
            checked = check()
        except ValidationError as e:
            if e.record_id is None:
                e.record_id = e.details["record_id"] = record.id
            report.errors.append(e)
            return False
        report.valid.setdefault(category, []).append((index, checked))
        return True


def _indexed(snapshot: CanonicalSnapshot, category: Category):
    """Records of a category paired with their position in the decoded input."""
    for position, record in enumerate(snapshot.records(category)):
        yield snapshot.source_index(category, position), record
