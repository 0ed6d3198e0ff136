"""Export of an owner's records into a canonical snapshot."""

from .selector import DateRange, ExportSelector

__all__ = ["DateRange", "ExportSelector"]
