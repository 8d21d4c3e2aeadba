import asyncio

import pytest
from conftest import FakeFetcher, feature_collection, make_records, square

from crashmap.config import DashboardConfig
from crashmap.coordinator import ViewCoordinator
from crashmap.geo import county_path, outline_path
from crashmap.report import render_view_png


def _results():
    records = make_records([("XX", "A", "Jan", 1), ("XX", "B", "Feb", 2), ("XX", "B", "Feb", 7)])
    docs = {
        outline_path("geo", "XX"): feature_collection(("XX", square(0, 0, 5))),
        county_path("geo", "XX", "A"): {"type": "MultiPolygon", "coordinates": [square(0, 0)["coordinates"]]},
    }

    async def load(path):
        return records

    coord = ViewCoordinator(config=DashboardConfig(states_dir="geo"), load_records=load, fetch=FakeFetcher(docs))
    return asyncio.run(coord.run("XX"))


def test_render_each_view_png(tmp_path):
    results = _results()
    for r in results.values():
        path = render_view_png(r, str(tmp_path))
        assert path is not None
        assert (tmp_path / f"{r.view}_XX.png").stat().st_size > 0


def test_docx_report(tmp_path):
    pytest.importorskip("docx")
    from crashmap.report import generate_dashboard_report

    out = tmp_path / "out" / "dash.docx"
    generate_dashboard_report(_results().values(), str(out))
    assert out.exists()

    import docx
    text = "\n".join(p.text for p in docx.Document(str(out)).paragraphs)
    assert "Counties without boundary data (not shown): B" in text


def test_docx_report_rejects_empty(tmp_path):
    pytest.importorskip("docx")
    from crashmap.report import generate_dashboard_report

    with pytest.raises(ValueError):
        generate_dashboard_report([], str(tmp_path / "x.docx"))
