"""
Data model (AccidentRecord and derived views)
=============================================

Each row of the accidents CSV is converted into an `AccidentRecord`.
Records are immutable (`frozen=True`) so that:
- they cannot be accidentally modified after loading, and
- every aggregate, joined feature and scene is freshly built from them.

County and state names are compared through `name_key` everywhere
(filtering, aggregation, geometry join) so casing in the source data never
causes a silent mismatch.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Mapping, Optional, Tuple


class Month(IntEnum):
    """Closed calendar-month enumeration (fixed Jan..Dec order)."""
    Jan = 1
    Feb = 2
    Mar = 3
    Apr = 4
    May = 5
    Jun = 6
    Jul = 7
    Aug = 8
    Sep = 9
    Oct = 10
    Nov = 11
    Dec = 12

    @property
    def label(self) -> str:
        return self.name

    @classmethod
    def parse(cls, value: Any) -> "Month":
        """Parse 'Jan', 'jan', 'January' or 1..12 into a Month.

        Raises ValueError for anything else.
        """
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            if float(value).is_integer() and 1 <= int(value) <= 12:
                return cls(int(value))
            raise ValueError(f"month number out of range: {value!r}")
        s = str(value).strip()
        if s.isdigit():
            return cls.parse(int(s))
        for m in cls:
            if s.lower() == m.name.lower() or s.lower() == _FULL_NAMES[m].lower():
                return m
        raise ValueError(f"unknown month label: {value!r}")


_FULL_NAMES = {
    Month.Jan: "January", Month.Feb: "February", Month.Mar: "March",
    Month.Apr: "April", Month.May: "May", Month.Jun: "June",
    Month.Jul: "July", Month.Aug: "August", Month.Sep: "September",
    Month.Oct: "October", Month.Nov: "November", Month.Dec: "December",
}

MONTH_ORDER: Tuple[Month, ...] = tuple(Month)


def name_key(name: str) -> str:
    """Join key used for every county/state name comparison."""
    return str(name).strip().upper()


@dataclass(frozen=True)
class AccidentRecord:
    """Immutable record for one accident row."""
    record_id: int
    state: str
    county: str
    month: Month
    severity: int


@dataclass(frozen=True)
class CountyAggregate:
    county: str
    count: int

    @property
    def key(self) -> str:
        return name_key(self.county)


@dataclass(frozen=True)
class MonthSeverityAggregate:
    """Counts per severity for one month.

    `counts` holds one entry per severity level observed in the filtered
    set, in ascending severity order, zero when the month has none.
    """
    month: Month
    counts: Tuple[Tuple[int, int], ...]

    def as_dict(self) -> Dict[int, int]:
        return dict(self.counts)

    def get(self, severity: int) -> int:
        return self.as_dict().get(severity, 0)

    @property
    def total(self) -> int:
        return sum(c for _, c in self.counts)


@dataclass(frozen=True)
class GeoFeature:
    """One named boundary (Polygon / MultiPolygon) from a GeoJSON document."""
    name: str
    geometry: Mapping[str, Any]
    properties: Mapping[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return name_key(self.name)


@dataclass(frozen=True)
class JoinedFeature:
    """A county boundary plus its resolved accident count (0 if unmatched)."""
    feature: GeoFeature
    count: int

    @property
    def name(self) -> str:
        return self.feature.name


@dataclass(frozen=True)
class FetchOutcome:
    """Tagged success/failure result of one geometry fetch.

    Exactly one of `features` / `error` is set.
    """
    county: str
    path: str
    features: Optional[Tuple[GeoFeature, ...]] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None
