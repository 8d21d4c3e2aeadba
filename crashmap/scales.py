"""
Scales shared by the three views
================================

All scales are derived from aggregates and never mutated:

- `ColorScale`: sequential count -> color for the choropleth. A zero-width
  domain (all counts 0) maps every value to the low end of the colormap.
- `SeverityPalette`: severity level -> color for the stacked trend chart;
  levels past the end of the palette reuse its last color.
- `stack_bands`: lower/upper offsets per month for each severity layer.
"""

from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Tuple

import numpy as np
from matplotlib import colormaps
from matplotlib.colors import to_hex

from .models import JoinedFeature, Month, MonthSeverityAggregate

def build_color_domain(joined: Iterable[JoinedFeature]) -> Tuple[int, int]:
    """Return (0, max count); (0, 0) for empty or all-zero input."""
    return (0, max((j.count for j in joined), default=0))

def count_axis_domain(values: Iterable[float], headroom: float = 1.0) -> Tuple[float, float]:
    """Axis domain [0, max * headroom], widened to [0, 1] when max is 0."""
    hi = max((float(v) for v in values), default=0.0) * headroom
    if not math.isfinite(hi) or hi <= 0:
        hi = 1.0
    return (0.0, hi)

@dataclass(frozen=True)
class ColorScale:
    """Sequential color scale over `domain` using a matplotlib colormap."""
    domain: Tuple[float, float]
    cmap: str = "Reds"

    def normalize(self, value: float) -> float:
        lo, hi = self.domain
        try:
            v = float(value)
        except (TypeError, ValueError):
            return 0.0
        if not math.isfinite(v) or hi <= lo:
            return 0.0
        return float(np.clip((v - lo) / (hi - lo), 0.0, 1.0))

    def __call__(self, value: float) -> str:
        return to_hex(colormaps[self.cmap](self.normalize(value)))

    def stops(self, n: int = 5) -> List[Tuple[float, str]]:
        """Legend stops: (value, color) at evenly spaced points of the domain."""
        lo, hi = self.domain
        return [(float(v), self(v)) for v in np.linspace(lo, hi, n)]

def build_severity_stack_order(levels: Iterable[int]) -> Tuple[int, ...]:
    """Distinct severity levels in ascending order (stack + legend order)."""
    return tuple(sorted(set(int(s) for s in levels)))

@dataclass(frozen=True)
class SeverityPalette:
    order: Tuple[int, ...]
    colors: Tuple[str, ...]

    def color_for(self, severity: int) -> str:
        if not self.colors:
            raise ValueError("severity palette is empty")
        try:
            i = self.order.index(severity)
        except ValueError:
            i = len(self.order)
        return self.colors[min(i, len(self.colors) - 1)]

    def as_dict(self) -> Dict[int, str]:
        return {s: self.color_for(s) for s in self.order}

@dataclass(frozen=True)
class StackBand:
    """One severity layer: (lower, upper) per month, in calendar order."""
    severity: int
    months: Tuple[Month, ...]
    bounds: Tuple[Tuple[int, int], ...]

def stack_bands(monthly: Sequence[MonthSeverityAggregate], order: Sequence[int]) -> List[StackBand]:
    """Stack severities bottom-up in `order`, with a zero baseline."""
    months = tuple(m.month for m in monthly)
    base = [0] * len(monthly)
    bands: List[StackBand] = []
    for s in order:
        bounds = []
        for i, m in enumerate(monthly):
            top = base[i] + m.get(s)
            bounds.append((base[i], top))
            base[i] = top
        bands.append(StackBand(severity=s, months=months, bounds=tuple(bounds)))
    return bands
