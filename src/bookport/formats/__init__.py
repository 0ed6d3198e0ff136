"""Format converter: snapshot <-> native JSON, generic CSV, Goodreads CSV.

One codec per format, chosen by ``ExportFormat``. Codecs are stateless and
safe to share across threads.
"""

from enum import Enum
from typing import Protocol, Union

from ..errors import MalformedInput, UnsupportedFormat
from ..snapshot import CanonicalSnapshot
from .goodreads import GoodreadsCodec
from .native import NativeCodec
from .tabular import TabularCodec


class ExportFormat(str, Enum):
    """Serialized forms a snapshot can take."""

    NATIVE = "json"  # Lossless native JSON
    TABULAR = "csv"  # Generic owned-books table
    GOODREADS = "goodreads"  # Goodreads library export dialect


class Codec(Protocol):
    format_name: str

    def encode(self, snapshot: CanonicalSnapshot) -> str: ...

    def decode(self, text: str) -> CanonicalSnapshot: ...


CODECS: dict[ExportFormat, Codec] = {
    ExportFormat.NATIVE: NativeCodec(),
    ExportFormat.TABULAR: TabularCodec(),
    ExportFormat.GOODREADS: GoodreadsCodec(),
}


def resolve_format(format_name: Union[ExportFormat, str]) -> ExportFormat:
    """Coerce a format tag to ExportFormat, raising UnsupportedFormat."""
    if isinstance(format_name, ExportFormat):
        return format_name
    try:
        return ExportFormat(str(format_name).strip().lower())
    except ValueError:
        raise UnsupportedFormat(format_name, [f.value for f in ExportFormat]) from None


def get_codec(format_name: Union[ExportFormat, str]) -> Codec:
    return CODECS[resolve_format(format_name)]


def encode(snapshot: CanonicalSnapshot, format_name: Union[ExportFormat, str]) -> str:
    """Serialize a snapshot in the given format."""
    return get_codec(format_name).encode(snapshot)


def decode(
    data: Union[str, bytes], format_name: Union[ExportFormat, str]
) -> CanonicalSnapshot:
    """Parse text or UTF-8 bytes in the given format into a snapshot.

    Raises:
        UnsupportedFormat: unknown format tag
        MalformedInput: the input does not parse as that format
        SchemaMismatch: native input without a metadata block or with
            records of the wrong shape
    """
    codec = get_codec(format_name)
    if isinstance(data, bytes):
        try:
            data = data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise MalformedInput(codec.format_name, f"not UTF-8 text ({e.reason})") from e
    elif data.startswith("\ufeff"):
        data = data[1:]

    if not data.strip():
        raise MalformedInput(codec.format_name, "input is empty")

    return codec.decode(data)


__all__ = [
    "CODECS",
    "Codec",
    "ExportFormat",
    "GoodreadsCodec",
    "NativeCodec",
    "TabularCodec",
    "decode",
    "encode",
    "get_codec",
    "resolve_format",
]
