"""
Aggregations over the filtered record set
=========================================

Pure, stateless grouping/reduction functions. Every call builds fresh
aggregates; nothing here mutates its input.

- `group_by_county` -> one CountyAggregate per distinct county
- `top_n`           -> ranking for the bar chart (heap-based top-k)
- `group_by_month_severity` -> 12 MonthSeverityAggregate entries, Jan..Dec
"""

from __future__ import annotations
import heapq
from collections import Counter
from typing import Dict, Iterable, List, Sequence, Tuple

from .models import (
    AccidentRecord, CountyAggregate, MONTH_ORDER, Month, MonthSeverityAggregate, name_key,
)

def group_by_county(records: Iterable[AccidentRecord]) -> List[CountyAggregate]:
    """Count records per county.

    Counties are grouped by `name_key`, so "Orange" and "ORANGE" are one
    county. The reported name is the first spelling seen in the data. Output
    order is first-appearance order (no implicit sort).
    """
    counts: Dict[str, int] = {}
    display: Dict[str, str] = {}
    for r in records:
        k = name_key(r.county)
        if k not in counts:
            counts[k] = 0
            display[k] = r.county
        counts[k] += 1
    return [CountyAggregate(county=display[k], count=c) for k, c in counts.items()]

def _rank_key(a: CountyAggregate) -> Tuple[int, str, str]:
    # count desc, then county name asc (case-insensitive, then exact spelling)
    return (-a.count, a.key, a.county)

def top_n(aggregates: Sequence[CountyAggregate], n: int = 10) -> List[CountyAggregate]:
    """Return at most `n` aggregates sorted by count descending.

    Ties are broken by county name ascending, so repeated calls with the
    same input always give the same order.
    """
    if n <= 0:
        return []
    return heapq.nsmallest(n, aggregates, key=_rank_key)

def severity_levels(records: Iterable[AccidentRecord]) -> List[int]:
    """Sorted distinct severities present in the records (numeric ascending)."""
    return sorted({r.severity for r in records})

def group_by_month_severity(records: Sequence[AccidentRecord]) -> List[MonthSeverityAggregate]:
    """Monthly counts split by severity.

    Always 12 entries in calendar order. Every entry has the same severity
    keys (all levels seen anywhere in `records`), defaulting to 0.
    """
    levels = severity_levels(records)
    tally: Counter = Counter((r.month, r.severity) for r in records)
    out: List[MonthSeverityAggregate] = []
    for m in MONTH_ORDER:
        out.append(MonthSeverityAggregate(
            month=m,
            counts=tuple((s, tally.get((m, s), 0)) for s in levels),
        ))
    return out

def month_totals(monthly: Sequence[MonthSeverityAggregate]) -> List[Tuple[Month, int]]:
    """Total accidents per month (the overlay line of the trend chart)."""
    return [(m.month, m.total) for m in monthly]
