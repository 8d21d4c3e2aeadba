"""
Scenes (renderer-agnostic chart descriptions)
=============================================

A scene is an immutable data package describing one chart. The pipeline
returns scenes; a stateless render function (see `report.py`) draws them.

- MapScene:   joined county features + color domain (+ outline, fills, legend)
- BarScene:   top-N counties by accident count
- TrendScene: 12 monthly severity aggregates, stack order, bands, totals
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple, Union
from urllib.parse import urlencode

from .aggregate import group_by_month_severity, month_totals, severity_levels, top_n
from .config import DashboardConfig
from .join import join_counts
from .models import (
    AccidentRecord, CountyAggregate, GeoFeature, JoinedFeature, Month, MonthSeverityAggregate, name_key,
)
from .scales import (
    ColorScale, SeverityPalette, StackBand, build_color_domain, build_severity_stack_order,
    count_axis_domain, stack_bands,
)

def county_link(state_code: str, county: str) -> str:
    """Drill-down target for a clicked county (navigation is the caller's job)."""
    return "county_level.html?" + urlencode({"state": name_key(state_code), "county": county})

@dataclass(frozen=True)
class MapScene:
    state: str
    joined_features: Tuple[JoinedFeature, ...]
    color_domain: Tuple[int, int]
    outline: Tuple[GeoFeature, ...] = ()
    fills: Tuple[str, ...] = ()
    links: Tuple[str, ...] = ()
    legend_stops: Tuple[Tuple[float, str], ...] = ()
    missing_counties: Tuple[str, ...] = ()

    def tooltip(self, i: int) -> str:
        j = self.joined_features[i]
        return f"County: {j.name.upper()}\nAccidents: {j.count}"

@dataclass(frozen=True)
class BarScene:
    state: str
    counties: Tuple[CountyAggregate, ...]
    y_domain: Tuple[float, float] = (0.0, 1.0)
    color: str = "#8B0000"

@dataclass(frozen=True)
class TrendScene:
    state: str
    monthly: Tuple[MonthSeverityAggregate, ...]
    severity_order: Tuple[int, ...]
    stacked_bands: Tuple[StackBand, ...]
    totals_by_month: Tuple[Tuple[Month, int], ...]
    colors: Tuple[Tuple[int, str], ...] = ()
    y_domain: Tuple[float, float] = (0.0, 1.0)

Scene = Union[MapScene, BarScene, TrendScene]

class ViewStatus(str, Enum):
    RENDERED = "rendered"
    FAILED = "failed"

@dataclass(frozen=True)
class ViewResult:
    """What the renderer receives for one view: a scene, or a failure reason."""
    view: str
    state: str
    generation: int
    status: ViewStatus
    scene: Optional[Scene] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is ViewStatus.RENDERED

# ---------------- Builders ----------------
def build_map_scene(
    state: str,
    outline: Sequence[GeoFeature],
    features: Sequence[GeoFeature],
    aggregates: Sequence[CountyAggregate],
    config: Optional[DashboardConfig] = None,
    missing_counties: Sequence[str] = (),
) -> MapScene:
    config = config or DashboardConfig()
    joined = join_counts(features, aggregates)
    domain = build_color_domain(joined)
    scale = ColorScale(domain=domain, cmap=config.color_map)
    fills = tuple(scale(j.count) if j.count > 0 else config.empty_color for j in joined)
    return MapScene(
        state=state,
        joined_features=tuple(joined),
        color_domain=domain,
        outline=tuple(outline),
        fills=fills,
        links=tuple(county_link(state, j.name) for j in joined),
        legend_stops=tuple(scale.stops(5)),
        missing_counties=tuple(missing_counties),
    )

def build_bar_scene(
    state: str,
    aggregates: Sequence[CountyAggregate],
    config: Optional[DashboardConfig] = None,
) -> BarScene:
    config = config or DashboardConfig()
    ranked = top_n(aggregates, config.top_n)
    return BarScene(
        state=state,
        counties=tuple(ranked),
        y_domain=count_axis_domain((a.count for a in ranked), headroom=config.bar_headroom),
        color=config.bar_color,
    )

def build_trend_scene(
    state: str,
    records: Sequence[AccidentRecord],
    config: Optional[DashboardConfig] = None,
) -> TrendScene:
    config = config or DashboardConfig()
    monthly = group_by_month_severity(records)
    order = build_severity_stack_order(severity_levels(records))
    totals = month_totals(monthly)
    palette = SeverityPalette(order=order, colors=tuple(config.severity_palette))
    return TrendScene(
        state=state,
        monthly=tuple(monthly),
        severity_order=order,
        stacked_bands=tuple(stack_bands(monthly, order)),
        totals_by_month=tuple(totals),
        colors=tuple(palette.as_dict().items()),
        y_domain=count_axis_domain(t for _, t in totals),
    )
