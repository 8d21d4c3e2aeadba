"""
Dataset loader (CSV -> AccidentRecord list)
===========================================

This module reads the accidents CSV export and converts each row into an
`AccidentRecord`.

Key ideas:
- We try multiple possible column names because exports may vary
  ("State" vs "state" vs "STATE").
- Malformed month/severity/state/county cells are reported as a
  `RecordParseError` naming the CSV line, never turned into NaN.
- The loader returns a list of immutable records; the CSV is never edited.
"""

from __future__ import annotations
import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import pandas as pd

from .errors import DataLoadError, RecordParseError
from .indices import StateIndex, build_state_index
from .models import AccidentRecord, Month, name_key

logger = logging.getLogger(__name__)

def _to_str(x) -> str:
    if pd.isna(x): return ""
    return str(x).strip()

def _to_severity(x) -> Optional[int]:
    """Convert a cell to a positive int severity, returning None if invalid."""
    s = _to_str(x)
    if not s: return None
    try: v = float(s)
    except ValueError: return None
    if not v.is_integer() or v < 1: return None
    return int(v)

def _norm(s: str) -> str:
    return re.sub(r"[^a-z0-9]+", "", str(s).lower())

def _col(df: pd.DataFrame, *names: str) -> str:
    cols = list(df.columns)
    for n in names:
        if n in cols:
            return n
    norm_map = {_norm(c): c for c in cols}
    for n in names:
        nn = _norm(n)
        if nn in norm_map:
            return norm_map[nn]
    raise DataLoadError(f"Missing required column. Tried={names}. Available={cols}")

def _read_frame(path: str) -> pd.DataFrame:
    try:
        return pd.read_csv(path, dtype=str, keep_default_na=False)
    except FileNotFoundError as e:
        raise DataLoadError(f"Record source not found: {path}") from e
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError, OSError) as e:
        raise DataLoadError(f"Could not parse record source {path}: {e}") from e

def load_records(path: str) -> List[AccidentRecord]:
    """Load the accidents CSV into typed records.

    Only the State, County, Month and Severity columns are used; other
    columns are ignored. Line numbers in errors count the header as line 1.
    """
    df = _read_frame(path)
    df.rename(columns={c: str(c).strip() for c in df.columns}, inplace=True)

    state_col = _col(df, "State", "State Code", "state_code")
    county_col = _col(df, "County", "County Name", "county_name")
    month_col = _col(df, "Month", "Start Month", "month_name")
    severity_col = _col(df, "Severity", "Severity Level")

    records: List[AccidentRecord] = []
    for i, row in enumerate(df[[state_col, county_col, month_col, severity_col]].itertuples(index=False)):
        line = i + 2
        state, county, month_raw, severity_raw = row
        state, county = _to_str(state), _to_str(county)
        if not state:
            raise RecordParseError("empty state code", row=line, column=state_col)
        if not county:
            raise RecordParseError("empty county name", row=line, column=county_col)
        try:
            month = Month.parse(_to_str(month_raw))
        except ValueError as e:
            raise RecordParseError(str(e), row=line, column=month_col) from e
        severity = _to_severity(severity_raw)
        if severity is None:
            raise RecordParseError(f"invalid severity {severity_raw!r}", row=line, column=severity_col)

        records.append(AccidentRecord(
            record_id=i,
            state=state,
            county=county,
            month=month,
            severity=severity,
        ))
    logger.info("Loaded %d accident records from %s", len(records), path)
    return records

async def load_records_async(path: str) -> List[AccidentRecord]:
    """Same as `load_records`, run off the event loop."""
    return await asyncio.to_thread(load_records, path)

def filter_by_state(records: Sequence[AccidentRecord], state_code: str) -> List[AccidentRecord]:
    """Case-insensitive exact match on state code.

    An unknown state yields an empty list, which downstream views render as
    an empty (but valid) dashboard.
    """
    key = name_key(state_code)
    return [r for r in records if name_key(r.state) == key]

@dataclass
class RecordStore:
    """The session's record table plus its state index.

    Records are loaded once; `for_state` reads through the index.
    """
    records: List[AccidentRecord]
    source_path: Optional[str] = None
    idx: StateIndex = field(init=False)

    def __post_init__(self) -> None:
        self.idx = build_state_index(self.records)

    @classmethod
    def load(cls, path: str) -> "RecordStore":
        return cls(records=load_records(path), source_path=path)

    def for_state(self, state_code: str) -> List[AccidentRecord]:
        return [self.records[i] for i in self.idx.ids_for(state_code)]

    def states(self) -> List[str]:
        return self.idx.states()
