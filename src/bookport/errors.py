"""Error taxonomy for the export/import pipeline.

Every error carries a human-readable message, a stable code, and a details
dict with whatever context applies (category, index, field, line, ...).
The API layer maps codes to transport status codes; nothing here knows
about HTTP.
"""

from typing import Any, Optional


class ExchangeError(Exception):
    """Base class for all export/import errors."""

    code: str = "EXCHANGE_ERROR"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the API layer."""
        return {"code": self.code, "message": self.message, "details": self.details}


class UnsupportedFormat(ExchangeError):
    """Requested format tag is not one of the known formats."""

    code = "UNSUPPORTED_FORMAT"

    def __init__(self, format_name: Any, supported: Optional[list[str]] = None):
        supported = supported or []
        super().__init__(
            f"Unsupported format: {format_name!r}. "
            f"Supported formats: {', '.join(supported)}",
            {"format": str(format_name), "supported_formats": supported},
        )


class MalformedInput(ExchangeError):
    """Input text does not parse as the declared format."""

    code = "MALFORMED_INPUT"

    def __init__(self, format_name: str, reason: str, line: Optional[int] = None):
        location = f" at line {line}" if line else ""
        super().__init__(
            f"Failed to parse {format_name} input{location}: {reason}",
            {"format": format_name, "line": line, "reason": reason},
        )


class SchemaMismatch(ExchangeError):
    """Input parsed but does not have the expected native shape."""

    code = "SCHEMA_MISMATCH"

    def __init__(
        self,
        reason: str,
        category: Optional[str] = None,
        index: Optional[int] = None,
    ):
        where = f" ({category}[{index}])" if category is not None else ""
        super().__init__(
            f"Snapshot does not match the native schema{where}: {reason}",
            {"category": category, "index": index, "reason": reason},
        )


class OwnerNotFound(ExchangeError):
    """Owner id resolves to no profile."""

    code = "OWNER_NOT_FOUND"

    def __init__(self, owner_id: str):
        super().__init__(f"Owner not found: {owner_id}", {"owner_id": owner_id})


class ValidationError(ExchangeError):
    """A single record violates a structural invariant.

    Never aborts an import; the orchestrator records it and skips the record.
    """

    code = "VALIDATION_ERROR"

    def __init__(
        self,
        category: str,
        index: int,
        field: Optional[str],
        reason: str,
        value: Any = None,
        record_id: Optional[str] = None,
    ):
        target = f"{category}[{index}]" + (f".{field}" if field else "")
        super().__init__(
            f"Validation failed for {target}: {reason}",
            {
                "category": category,
                "index": index,
                "field": field,
                "value": value,
                "record_id": record_id,
            },
        )
        self.category = category
        self.index = index
        self.field = field
        self.reason = reason
        self.record_id = record_id


class PersistenceFailure(ExchangeError):
    """The record store could not read or commit; nothing was applied."""

    code = "PERSISTENCE_FAILURE"

    def __init__(self, operation: str, reason: str):
        super().__init__(
            f"Record store failure during {operation}: {reason}",
            {"operation": operation, "reason": reason},
        )
