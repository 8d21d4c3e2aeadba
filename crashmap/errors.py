"""Error taxonomy for the dashboard pipeline."""

from __future__ import annotations
from typing import Optional


class CrashmapError(Exception):
    pass


class DataLoadError(CrashmapError):
    """The record source is unavailable or unparsable. Nothing can render."""


class RecordParseError(DataLoadError):
    """A malformed cell in the record source (bad month, severity, ...)."""

    def __init__(self, message: str, *, row: Optional[int] = None, column: Optional[str] = None) -> None:
        self.row = row
        self.column = column
        where = []
        if row is not None:
            where.append(f"row {row}")
        if column is not None:
            where.append(f"column {column!r}")
        super().__init__(f"{message} ({', '.join(where)})" if where else message)


class GeoLoadError(CrashmapError):
    pass


class StateOutlineError(GeoLoadError):
    """The state outline could not be loaded; fatal to the map view only."""


class CountyFragmentError(GeoLoadError):
    """One county boundary fragment could not be loaded; recoverable."""

    def __init__(self, county: str, path: str, reason: str) -> None:
        self.county = county
        self.path = path
        super().__init__(f"{county}: {reason} ({path})")
