"""Tests for per-record import validation."""

from datetime import date

import pytest

from bookport.db.schemas import (
    BookRecord,
    Category,
    CollectionRecord,
    OwnedBookRecord,
    ReadingSessionRecord,
    UserProfileRecord,
    WishlistEntryRecord,
)
from bookport.errors import ValidationError
from bookport.imports.validation import (
    KnownRecords,
    SnapshotValidator,
    validate_book,
    validate_owned_book,
)
from bookport.snapshot import CanonicalSnapshot, DecodeReject

DUNE = BookRecord(id="b1", title="Dune", authors=["Frank Herbert"], page_count=412)


class TestRecordChecks:
    """Tests for the single-record checks."""

    def test_blank_title(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_book(BookRecord(id="b1", title="  "), 3)

        error = exc_info.value
        assert (error.category, error.index, error.field) == ("books", 3, "title")

    def test_bad_isbn13(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_book(BookRecord(title="Dune", isbn13="12345"), 0)

        assert exc_info.value.field == "isbn13"

    def test_hyphenated_isbn13_accepted(self):
        book = BookRecord(title="Dune", isbn13="978-0-441-17271-9")

        assert validate_book(book, 0) is book

    @pytest.mark.parametrize(
        "changes,field",
        [
            ({"current_page": -1}, "currentPage"),
            ({"current_page": 413}, "currentPage"),
            ({"rating": 0}, "rating"),
            ({"rating": 6}, "rating"),
            ({"review": "x" * 2001}, "review"),
            ({"status": "lost"}, "status"),
            ({"start_date": date(2024, 2, 1), "finish_date": date(2024, 1, 1)}, "finishDate"),
        ],
    )
    def test_owned_book_field_errors(self, changes, field):
        owned = OwnedBookRecord(id="o1", book_id="b1", **changes)

        with pytest.raises(ValidationError) as exc_info:
            validate_owned_book(owned, 0, DUNE)

        assert exc_info.value.field == field

    def test_owned_book_dangling(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_owned_book(OwnedBookRecord(id="o1", book_id="zzz"), 0, None)

        assert exc_info.value.field == "bookId"

    def test_status_normalized(self):
        owned = OwnedBookRecord(id="o1", book_id="b1", status="Currently Reading")

        assert validate_owned_book(owned, 0, DUNE).status == "reading"

    def test_page_count_unknown_allows_any_progress(self):
        book = BookRecord(id="b1", title="Dune")
        owned = OwnedBookRecord(id="o1", book_id="b1", current_page=9000)

        assert validate_owned_book(owned, 0, book).current_page == 9000


class TestSnapshotValidator:
    """Tests for validating a whole snapshot."""

    def test_valid_snapshot(self, sample_snapshot):
        report = SnapshotValidator().validate(sample_snapshot)

        assert report.errors == []
        assert report.soft_skips == []
        assert len(report.records(Category.BOOKS)) == 2
        assert len(report.records(Category.USER_PROFILE)) == 1

    def test_invalid_book_poisons_dependents(self):
        """Test that records pointing at a rejected book are rejected too."""
        snapshot = CanonicalSnapshot(
            books=[BookRecord(id="b1", title="")],
            owned_books=[OwnedBookRecord(id="o1", book_id="b1")],
            reading_sessions=[
                ReadingSessionRecord(id="s1", owned_book_id="o1", session_date=date(2024, 1, 1))
            ],
            collections=[CollectionRecord(id="c1", name="Shelf", owned_book_ids=["o1"])],
        )

        report = SnapshotValidator().validate(snapshot)

        assert [(e.category, e.field) for e in report.errors] == [
            ("books", "title"),
            ("ownedBooks", "bookId"),
            ("readingSessions", "ownedBookId"),
            ("collections", "ownedBookIds"),
        ]
        assert report.records(Category.OWNED_BOOKS) == []

    def test_invalid_book_not_rescued_by_store(self):
        """Test that a rejected snapshot book is not resolved from the store."""
        known = KnownRecords(books={"b1": DUNE})
        snapshot = CanonicalSnapshot(
            books=[BookRecord(id="b1", title="")],
            owned_books=[OwnedBookRecord(id="o1", book_id="b1")],
        )

        report = SnapshotValidator(known).validate(snapshot)

        assert [e.field for e in report.errors] == ["title", "bookId"]
        assert report.records(Category.OWNED_BOOKS) == []

    def test_references_resolve_against_store(self):
        known = KnownRecords(books={"b1": DUNE}, owned_book_ids={"o9"})
        snapshot = CanonicalSnapshot(
            owned_books=[OwnedBookRecord(id="o1", book_id="b1", current_page=10)],
            reading_sessions=[
                ReadingSessionRecord(id="s1", owned_book_id="o9", session_date=date(2024, 1, 1))
            ],
            wishlist_entries=[WishlistEntryRecord(id="w1", book_id="b1")],
        )

        report = SnapshotValidator(known).validate(snapshot)

        assert report.errors == []

    def test_backwards_session_is_soft_skip(self):
        """Test that endPage before startPage skips without an error."""
        snapshot = CanonicalSnapshot(
            books=[DUNE],
            owned_books=[OwnedBookRecord(id="o1", book_id="b1")],
            reading_sessions=[
                ReadingSessionRecord(
                    id="s1",
                    owned_book_id="o1",
                    start_page=50,
                    end_page=40,
                    session_date=date(2024, 1, 1),
                )
            ],
        )

        report = SnapshotValidator().validate(snapshot)

        assert report.errors == []
        assert len(report.soft_skips) == 1
        assert report.soft_skips[0].category == Category.READING_SESSIONS
        assert report.records(Category.READING_SESSIONS) == []

    def test_wishlist_priority_normalized(self):
        snapshot = CanonicalSnapshot(
            books=[DUNE],
            wishlist_entries=[
                WishlistEntryRecord(id="w1", book_id="b1", priority="HIGH"),
                WishlistEntryRecord(id="w2", book_id="b1", priority="urgent"),
            ],
        )

        report = SnapshotValidator().validate(snapshot)

        (index, entry), = report.records(Category.WISHLIST_ENTRIES)
        assert (index, entry.priority) == (0, "high")
        assert report.errors[0].index == 1

    def test_profile_checks(self):
        snapshot = CanonicalSnapshot(user_profile=UserProfileRecord(books_per_page=0))

        report = SnapshotValidator().validate(snapshot)

        assert report.errors[0].field == "booksPerPage"

    def test_collection_needs_name(self):
        snapshot = CanonicalSnapshot(collections=[CollectionRecord(id="c1", name="")])

        report = SnapshotValidator().validate(snapshot)

        assert report.errors[0].field == "name"

    def test_decode_rejects_reported_and_poison_dependents(self):
        """Test that a misfit decoded book is reported and never resolves."""
        snapshot = CanonicalSnapshot(
            owned_books=[OwnedBookRecord(id="o1", book_id="b1")],
            decode_rejects=[
                DecodeReject(
                    category=Category.BOOKS,
                    index=0,
                    field="pageCount",
                    reason="Input should be a valid integer",
                    record_id="b1",
                )
            ],
        )

        report = SnapshotValidator(KnownRecords(books={"b1": DUNE})).validate(snapshot)

        assert [(e.category, e.index, e.field) for e in report.errors] == [
            ("books", 0, "pageCount"),
            ("ownedBooks", 0, "bookId"),
        ]
        assert report.errors[0].record_id == "b1"
        assert report.errors[1].record_id == "o1"
