"""Record store interface used by the export selector and import orchestrator.

The import pipeline never issues writes one by one. It stages a list of
``StagedWrite`` items and hands them to ``apply_changes`` in a single call,
which must apply all of them or none.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from .schemas import (
    BookRecord,
    Category,
    CollectionRecord,
    OwnedBookRecord,
    ReadingSessionRecord,
    RecordBase,
    UserProfileRecord,
    WishlistEntryRecord,
)


class WriteAction(str, Enum):
    """Kind of staged write."""

    CREATE = "create"
    UPDATE = "update"


@dataclass(frozen=True)
class StagedWrite:
    """One create or update waiting for the transaction."""

    category: Category
    action: WriteAction
    record: RecordBase


class RecordStore(ABC):
    """Read access per entity type plus one atomic write primitive."""

    @abstractmethod
    def get_profile(self, owner_id: str) -> Optional[UserProfileRecord]:
        ...

    @abstractmethod
    def list_books(self, book_ids: Optional[Sequence[str]] = None) -> list[BookRecord]:
        """Catalog books, optionally restricted to the given ids."""
        ...

    @abstractmethod
    def list_owned_books(self, owner_id: str) -> list[OwnedBookRecord]:
        ...

    @abstractmethod
    def list_reading_sessions(self, owner_id: str) -> list[ReadingSessionRecord]:
        ...

    @abstractmethod
    def list_wishlist_entries(self, owner_id: str) -> list[WishlistEntryRecord]:
        ...

    @abstractmethod
    def list_collections(self, owner_id: str) -> list[CollectionRecord]:
        ...

    @abstractmethod
    def apply_changes(self, owner_id: str, writes: Sequence[StagedWrite]) -> None:
        """Apply every write in one transaction.

        Raises:
            PersistenceFailure: if anything fails; nothing is applied
        """
        ...
