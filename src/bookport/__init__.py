"""bookport: export, convert and import reading data.

Moves an owner's catalogued reading data between the local store and
interchange files (native JSON, generic CSV, Goodreads CSV), reconciling
duplicates on the way back in.
"""

from .errors import (
    ExchangeError,
    MalformedInput,
    OwnerNotFound,
    PersistenceFailure,
    SchemaMismatch,
    UnsupportedFormat,
    ValidationError,
)
from .pipeline import ExportOptions, decode_upload, prepare_export, run_import

__version__ = "0.1.0"

__all__ = [
    "ExchangeError",
    "ExportOptions",
    "MalformedInput",
    "OwnerNotFound",
    "PersistenceFailure",
    "SchemaMismatch",
    "UnsupportedFormat",
    "ValidationError",
    "decode_upload",
    "prepare_export",
    "run_import",
]
