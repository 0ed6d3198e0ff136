"""Generic tabular (CSV) codec.

Covers the owned-books category only, one row per owned book:

    Title,Authors,Status,CurrentPage,Rating,Review

Review is optional on decode. Multiple authors share the Authors cell,
joined with ``"; "``. Quoting follows RFC 4180 (the csv module's minimal
quoting with doubled quotes).
"""

import csv
from typing import Optional

from ..db.schemas import (
    BookRecord,
    Category,
    OwnedBookRecord,
    ReadingStatus,
    parse_status,
)
from ..errors import MalformedInput
from ..snapshot import CanonicalSnapshot, SnapshotMetadata
from .parsing import clean_text, match_columns, parse_int, read_table, write_table

REQUIRED_COLUMNS = ["Title", "Authors", "Status", "CurrentPage", "Rating"]
OPTIONAL_COLUMNS = ["Review"]
AUTHOR_SEPARATOR = ";"

# Status used when a row's status cell is blank or unrecognized
DEFAULT_STATUS = ReadingStatus.READING


class TabularCodec:
    """Owned books as a flat CSV table."""

    format_name = "csv"

    def encode(self, snapshot: CanonicalSnapshot) -> str:
        books = {book.id: book for book in snapshot.books}
        rows = []
        for owned in snapshot.owned_books:
            book = books.get(owned.book_id) or BookRecord()
            rows.append(
                [
                    book.title,
                    f"{AUTHOR_SEPARATOR} ".join(book.authors),
                    owned.status,
                    str(owned.current_page),
                    "" if owned.rating is None else str(owned.rating),
                    owned.review or "",
                ]
            )
        return write_table(REQUIRED_COLUMNS + OPTIONAL_COLUMNS, rows)

    def decode(self, text: str) -> CanonicalSnapshot:
        try:
            header, rows = read_table(text)
        except csv.Error as e:
            raise MalformedInput(self.format_name, str(e)) from e

        columns = self._match_header(header)
        if not rows:
            raise MalformedInput(self.format_name, "no data rows")

        books = []
        owned_books = []
        for index, row in enumerate(rows, start=1):
            book, owned = self._parse_row(row, columns, index)
            books.append(book)
            owned_books.append(owned)

        return CanonicalSnapshot(
            metadata=SnapshotMetadata(
                format_tag=self.format_name,
                categories=[Category.BOOKS, Category.OWNED_BOOKS],
                total_records=len(books) + len(owned_books),
            ),
            books=books,
            owned_books=owned_books,
        )

    def _match_header(self, header: list[str]) -> dict[str, str]:
        """Map canonical column names to the header's actual spelling."""
        columns = match_columns(header, REQUIRED_COLUMNS + OPTIONAL_COLUMNS)
        missing = [c for c in REQUIRED_COLUMNS if c not in columns]
        if missing:
            raise MalformedInput(
                self.format_name,
                f"unrecognized header, missing columns: {', '.join(missing)}",
                line=1,
            )
        return columns

    def _parse_row(
        self, row: dict[str, str], columns: dict[str, str], index: int
    ) -> tuple[BookRecord, OwnedBookRecord]:
        def cell(name: str) -> str:
            column = columns.get(name)
            return row.get(column, "") if column else ""

        book_id = f"book-{index}"
        # A blank title is kept so validation can report the row by index
        book = BookRecord(
            id=book_id,
            title=cell("Title").strip(),
            authors=split_authors(cell("Authors")),
        )

        status = parse_status(cell("Status")) or DEFAULT_STATUS
        current_page = parse_int(cell("CurrentPage"), default=0)
        owned = OwnedBookRecord(
            id=f"owned-{index}",
            book_id=book_id,
            status=status.value,
            current_page=current_page,
            rating=parse_int(cell("Rating")),
            review=clean_text(cell("Review")),
        )
        return book, owned


def split_authors(value: Optional[str]) -> list[str]:
    if not value:
        return []
    return [name.strip() for name in value.split(AUTHOR_SEPARATOR) if name.strip()]
