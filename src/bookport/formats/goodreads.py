"""Goodreads CSV dialect.

Reads and writes the column set of a Goodreads library export. Only
``Book Id``, ``Title``, ``Author``, ``My Rating`` and ``Date Read`` are
required; other known columns are used when present and unknown columns
are ignored.

Each row becomes a book, an owned book and, when Date Read parses, one
reading session covering the book's known page count on that date.
"""

import csv
from datetime import date
from typing import Optional

from ..db.schemas import (
    BookRecord,
    Category,
    OwnedBookRecord,
    ReadingSessionRecord,
    ReadingStatus,
)
from ..errors import MalformedInput
from ..snapshot import CanonicalSnapshot, SnapshotMetadata
from .parsing import (
    clean_isbn,
    clean_text,
    match_columns,
    parse_date,
    parse_int,
    read_table,
    write_table,
)

SOURCE_NAME = "goodreads"

REQUIRED_COLUMNS = {"Book Id", "Title", "Author", "My Rating", "Date Read"}
EXPORT_COLUMNS = [
    "Book Id",
    "Title",
    "Author",
    "Additional Authors",
    "ISBN",
    "ISBN13",
    "My Rating",
    "Publisher",
    "Number of Pages",
    "Date Read",
    "Date Added",
    "Bookshelves",
    "Exclusive Shelf",
    "My Review",
]

# Mapping from Goodreads exclusive shelf to ReadingStatus
SHELF_TO_STATUS = {
    "read": ReadingStatus.COMPLETED,
    "currently-reading": ReadingStatus.READING,
    "to-read": ReadingStatus.WANT_TO_READ,
    "on-hold": ReadingStatus.PAUSED,
    "did-not-finish": ReadingStatus.ABANDONED,
}
STATUS_TO_SHELF = {status.value: shelf for shelf, status in SHELF_TO_STATUS.items()}

# Shelves that encode status rather than user tags
STANDARD_SHELVES = set(SHELF_TO_STATUS)

DATE_FORMAT = "%Y/%m/%d"


class GoodreadsCodec:
    """Goodreads library export <-> snapshot."""

    format_name = SOURCE_NAME

    def decode(self, text: str) -> CanonicalSnapshot:
        try:
            header, rows = read_table(text)
        except csv.Error as e:
            raise MalformedInput(self.format_name, str(e)) from e

        columns = match_columns(header, EXPORT_COLUMNS)
        missing = REQUIRED_COLUMNS - set(columns)
        if missing:
            raise MalformedInput(
                self.format_name,
                f"unrecognized header, missing columns: {', '.join(sorted(missing))}",
                line=1,
            )
        if not rows:
            raise MalformedInput(self.format_name, "no data rows")

        books = []
        owned_books = []
        sessions = []
        undated = 0

        for index, row in enumerate(rows, start=1):
            row = {name: row.get(actual, "") for name, actual in columns.items()}
            book, owned, session = self._parse_row(row, index)
            books.append(book)
            owned_books.append(owned)
            if session is None:
                undated += 1
            else:
                sessions.append(session)

        return CanonicalSnapshot(
            metadata=SnapshotMetadata(
                format_tag=self.format_name,
                categories=[
                    Category.BOOKS,
                    Category.OWNED_BOOKS,
                    Category.READING_SESSIONS,
                ],
                total_records=len(books) + len(owned_books) + len(sessions),
            ),
            books=books,
            owned_books=owned_books,
            reading_sessions=sessions,
            skipped_on_decode={Category.READING_SESSIONS: undated} if undated else {},
        )

    def _parse_row(
        self, row: dict[str, str], index: int
    ) -> tuple[BookRecord, OwnedBookRecord, Optional[ReadingSessionRecord]]:
        """Parse a single CSV row."""
        authors = []
        author = row.get("Author", "").strip()
        if author:
            authors.append(self._normalize_author(author))
        for extra in row.get("Additional Authors", "").split(","):
            if extra.strip():
                authors.append(extra.strip())

        page_count = parse_int(row.get("Number of Pages"))
        external_id = clean_text(row.get("Book Id"))
        book_id = f"book-{index}"

        book = BookRecord(
            id=book_id,
            title=row.get("Title", "").strip(),
            authors=authors,
            isbn13=clean_isbn(row.get("ISBN13")),
            isbn10=clean_isbn(row.get("ISBN")),
            page_count=page_count,
            publisher=clean_text(row.get("Publisher")),
            external_ids={SOURCE_NAME: external_id} if external_id else {},
        )

        date_read = parse_date(row.get("Date Read"))
        status = self._parse_status(row.get("Exclusive Shelf", ""), date_read)
        current_page = (page_count or 0) if status == ReadingStatus.COMPLETED else 0

        owned_id = f"owned-{index}"
        owned = OwnedBookRecord(
            id=owned_id,
            book_id=book_id,
            status=status.value,
            current_page=current_page,
            rating=self._parse_rating(row.get("My Rating")),
            review=clean_text(row.get("My Review")),
            tags=self._parse_shelves(row.get("Bookshelves", "")),
            finish_date=date_read,
            acquired_date=parse_date(row.get("Date Added")),
        )

        session = None
        if date_read is not None:
            session = ReadingSessionRecord(
                id=f"session-{index}",
                owned_book_id=owned_id,
                start_page=0,
                end_page=page_count or 0,
                session_date=date_read,
            )

        return book, owned, session

    def _normalize_author(self, author: str) -> str:
        """Convert "Last, First" to "First Last"."""
        if "," in author:
            last, first = author.split(",", 1)
            return f"{first.strip()} {last.strip()}"
        return author

    def _parse_rating(self, value: Optional[str]) -> Optional[int]:
        """Parse rating (0 means not rated in Goodreads)."""
        rating = parse_int(value)
        return rating if rating else None

    def _parse_status(self, shelf: str, date_read: Optional[date]) -> ReadingStatus:
        shelf = shelf.lower().strip()
        if shelf in SHELF_TO_STATUS:
            return SHELF_TO_STATUS[shelf]
        return ReadingStatus.COMPLETED if date_read else ReadingStatus.WANT_TO_READ

    def _parse_shelves(self, shelves: str) -> list[str]:
        """Bookshelves become tags, minus the status shelves."""
        tags = []
        for shelf in shelves.split(","):
            shelf = shelf.strip()
            if shelf and shelf.lower() not in STANDARD_SHELVES:
                tags.append(shelf)
        return tags

    def encode(self, snapshot: CanonicalSnapshot) -> str:
        books = {book.id: book for book in snapshot.books}

        # Latest valid session per owned book stands in for Date Read
        last_read: dict[str, date] = {}
        for session in snapshot.reading_sessions:
            if not session.is_valid or session.owned_book_id is None:
                continue
            seen = last_read.get(session.owned_book_id)
            if seen is None or session.session_date > seen:
                last_read[session.owned_book_id] = session.session_date

        rows = []
        for owned in snapshot.owned_books:
            book = books.get(owned.book_id) or BookRecord()
            date_read = owned.finish_date or last_read.get(owned.id or "")
            rows.append(
                [
                    book.external_ids.get(SOURCE_NAME, ""),
                    book.title,
                    book.authors[0] if book.authors else "",
                    ", ".join(book.authors[1:]),
                    book.isbn10 or "",
                    book.isbn13 or "",
                    str(owned.rating or 0),
                    book.publisher or "",
                    "" if book.page_count is None else str(book.page_count),
                    date_read.strftime(DATE_FORMAT) if date_read else "",
                    owned.acquired_date.strftime(DATE_FORMAT) if owned.acquired_date else "",
                    ", ".join(owned.tags),
                    STATUS_TO_SHELF.get(owned.status, "to-read"),
                    owned.review or "",
                ]
            )
        return write_table(EXPORT_COLUMNS, rows)
