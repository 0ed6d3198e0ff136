"""Database module for local SQLite storage."""

from .models import Book, Collection, OwnedBook, Profile, ReadingSession, WishlistEntry
from .schemas import (
    BookRecord,
    Category,
    CollectionRecord,
    OwnedBookRecord,
    ReadingSessionRecord,
    ReadingStatus,
    UserProfileRecord,
    WishlistEntryRecord,
)
from .sqlite import Database, get_db
from .store import RecordStore, StagedWrite, WriteAction

__all__ = [
    "Book",
    "Collection",
    "OwnedBook",
    "Profile",
    "ReadingSession",
    "WishlistEntry",
    "BookRecord",
    "Category",
    "CollectionRecord",
    "OwnedBookRecord",
    "ReadingSessionRecord",
    "ReadingStatus",
    "UserProfileRecord",
    "WishlistEntryRecord",
    "Database",
    "get_db",
    "RecordStore",
    "StagedWrite",
    "WriteAction",
]
