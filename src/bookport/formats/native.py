"""Native JSON codec.

The native form is a lossless dump of the snapshot: ``decode(encode(s))``
returns an equal snapshot. Decoding also understands the legacy layout
(``userBooks`` entries carrying the book inline, old metadata keys).
"""

import json
import logging
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from ..db.schemas import RECORD_TYPES, Category, RecordBase
from ..errors import MalformedInput, SchemaMismatch
from ..snapshot import CATEGORY_FIELDS, CanonicalSnapshot, DecodeReject, SnapshotMetadata

logger = logging.getLogger(__name__)

# Older exports used these names
LEGACY_CATEGORY_KEYS = {
    "userBooks": Category.OWNED_BOOKS.value,
    "wishlistItems": Category.WISHLIST_ENTRIES.value,
    "sessions": Category.READING_SESSIONS.value,
}
LEGACY_METADATA_KEYS = {
    "version": "schemaVersion",
    "exportDate": "exportedAt",
    "userId": "ownerId",
    "format": "formatTag",
}
# Book fields an owned-book entry may carry inline instead of a bookId
INLINE_BOOK_FIELDS = ("title", "authors", "isbn13", "isbn10", "pageCount", "publisher")


class NativeCodec:
    """Encodes snapshots to, and decodes them from, native JSON."""

    format_name = "json"

    def __init__(self, indent: Optional[int] = 2):
        self.indent = indent

    def encode(self, snapshot: CanonicalSnapshot) -> str:
        data = snapshot.model_dump(mode="json", by_alias=True)
        return json.dumps(data, indent=self.indent, ensure_ascii=False)

    def decode(self, text: str) -> CanonicalSnapshot:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise MalformedInput(self.format_name, e.msg, line=e.lineno) from e

        if not isinstance(data, dict):
            raise MalformedInput(self.format_name, "top level must be an object")

        metadata = data.get("metadata")
        if not isinstance(metadata, dict):
            raise SchemaMismatch("missing required 'metadata' block")
        try:
            stamp = SnapshotMetadata.model_validate(self._upgrade_metadata(metadata))
        except PydanticValidationError as e:
            raise self._schema_error(e) from e

        payload: dict[str, Any] = {}
        for key, value in data.items():
            key = LEGACY_CATEGORY_KEYS.get(key, key)
            if key in payload:
                continue
            payload[key] = value

        books, owned = self._lift_inline_books(
            self._records(payload, Category.BOOKS),
            self._records(payload, Category.OWNED_BOOKS),
        )
        entries = {Category.BOOKS: books, Category.OWNED_BOOKS: owned}

        rejects: list[DecodeReject] = []
        records = {}
        for category, attr in CATEGORY_FIELDS.items():
            raw = entries.get(category)
            if raw is None:
                raw = self._records(payload, category)
            records[attr] = []
            for index, entry in enumerate(raw):
                record = self._parse_entry(category, index, entry, rejects)
                if record is not None:
                    records[attr].append(record)

        profile = payload.get(Category.USER_PROFILE.value)
        if profile is not None:
            profile = self._parse_entry(Category.USER_PROFILE, 0, profile, rejects)

        if rejects:
            logger.warning("%d native record(s) did not fit their record shape", len(rejects))
        return CanonicalSnapshot(
            metadata=stamp,
            user_profile=profile,
            decode_rejects=rejects,
            **records,
        )

    def _parse_entry(
        self, category: Category, index: int, entry: Any, rejects: list[DecodeReject]
    ) -> Optional[RecordBase]:
        """Validate one entry; a misfit is recorded and dropped."""
        try:
            return RECORD_TYPES[category].model_validate(entry)
        except PydanticValidationError as e:
            first = e.errors()[0]
            loc = [str(part) for part in first.get("loc", ())]
            record_id = entry.get("id") if isinstance(entry, dict) else None
            rejects.append(
                DecodeReject(
                    category=category,
                    index=index,
                    field=".".join(loc) or None,
                    reason=first.get("msg", "invalid value"),
                    record_id=record_id if isinstance(record_id, str) else None,
                )
            )
            return None

    def _upgrade_metadata(self, metadata: dict) -> dict:
        upgraded = {}
        for key, value in metadata.items():
            upgraded[LEGACY_METADATA_KEYS.get(key, key)] = value
        # Legacy format tags ("hontodana-v1") are kept as-is; only the
        # structure matters for decoding.
        upgraded.pop("dataTypes", None)
        return upgraded

    def _records(self, payload: dict, category: Category) -> list:
        value = payload.get(category.value, [])
        if value is None:
            return []
        if not isinstance(value, list):
            raise SchemaMismatch(f"'{category.value}' must be a list", category.value)
        return value

    def _lift_inline_books(self, books: list, owned: list) -> tuple[list, list]:
        """Turn legacy owned-book entries with an inline book into a reference."""
        books = list(books)
        lifted = []
        known_ids = {b.get("id") for b in books if isinstance(b, dict)}

        for index, entry in enumerate(owned):
            if not isinstance(entry, dict) or entry.get("bookId"):
                lifted.append(entry)
                continue
            if not any(field in entry for field in INLINE_BOOK_FIELDS):
                lifted.append(entry)
                continue

            book_id = f"inline-book-{index + 1}"
            while book_id in known_ids:
                book_id = f"{book_id}-x"
            known_ids.add(book_id)

            book = {field: entry[field] for field in INLINE_BOOK_FIELDS if field in entry}
            book["id"] = book_id
            if isinstance(book.get("authors"), str):
                book["authors"] = [book["authors"]]
            books.append(book)

            entry = {k: v for k, v in entry.items() if k not in INLINE_BOOK_FIELDS}
            entry["bookId"] = book_id
            lifted.append(entry)

        return books, lifted

    def _schema_error(self, error: PydanticValidationError) -> SchemaMismatch:
        first = error.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ()))
        reason = first.get("msg", "invalid value")
        return SchemaMismatch(f"metadata.{field}: {reason}" if field else f"metadata: {reason}")
