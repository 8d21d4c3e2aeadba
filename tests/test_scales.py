import math

from conftest import make_records, square

from crashmap.aggregate import group_by_month_severity
from crashmap.models import GeoFeature, JoinedFeature
from crashmap.scales import (
    ColorScale, SeverityPalette, build_color_domain, build_severity_stack_order, count_axis_domain,
    stack_bands,
)


def _j(count):
    return JoinedFeature(feature=GeoFeature(name="X", geometry=square(0, 0)), count=count)


def test_color_domain():
    assert build_color_domain([_j(3), _j(9), _j(0)]) == (0, 9)
    assert build_color_domain([]) == (0, 0)
    assert build_color_domain([_j(0), _j(0)]) == (0, 0)


def test_degenerate_color_scale_maps_to_single_color():
    scale = ColorScale(domain=(0, 0))
    colors = {scale(v) for v in (0, 1, 100, float("nan"), None)}
    assert len(colors) == 1
    c = colors.pop()
    assert c.startswith("#") and len(c) == 7


def test_color_scale_is_monotonic_and_clamped():
    scale = ColorScale(domain=(0, 10))
    assert scale.normalize(5) == 0.5
    assert scale.normalize(-3) == 0.0
    assert scale.normalize(30) == 1.0
    assert scale(0) != scale(10)
    stops = scale.stops(5)
    assert [v for v, _ in stops] == [0.0, 2.5, 5.0, 7.5, 10.0]


def test_severity_order_and_palette_clamp():
    order = build_severity_stack_order([4, 1, 2, 4, 6, 3, 5])
    assert order == (1, 2, 3, 4, 5, 6)
    palette = SeverityPalette(order=order, colors=("#a", "#b", "#c", "#d"))
    assert [palette.color_for(s) for s in order] == ["#a", "#b", "#c", "#d", "#d", "#d"]


def test_stack_bands_accumulate():
    records = make_records([("S", "A", "Jan", 1), ("S", "A", "Jan", 2), ("S", "A", "Jan", 2), ("S", "A", "Mar", 2)])
    monthly = group_by_month_severity(records)
    bands = stack_bands(monthly, (1, 2))
    assert [b.severity for b in bands] == [1, 2]
    assert bands[0].bounds[0] == (0, 1)
    assert bands[1].bounds[0] == (1, 3)
    assert bands[1].bounds[2] == (0, 1)
    assert all(len(b.bounds) == 12 for b in bands)


def test_count_axis_domain_guard():
    assert count_axis_domain([], 1.1) == (0.0, 1.0)
    lo, hi = count_axis_domain([10], 1.1)
    assert lo == 0.0 and math.isclose(hi, 11.0)
