import asyncio

import pytest

from conftest import FakeFetcher, feature_collection, make_records, square

from crashmap.config import DashboardConfig
from crashmap.coordinator import Phase, ViewCoordinator
from crashmap.errors import DataLoadError
from crashmap.geo import county_path, outline_path

GEO = "geo"

RECORDS = make_records([
    ("XX", "A", "Jan", 1), ("XX", "A", "Feb", 1), ("XX", "C", "Jan", 2),
    ("XX", "C", "Jan", 2), ("XX", "C", "Mar", 3), ("XX", "C", "Mar", 1), ("XX", "C", "Apr", 1),
    ("YY", "Q", "May", 2),
])


def _docs():
    return {
        outline_path(GEO, "XX"): feature_collection(("XX", square(0, 0, 5))),
        county_path(GEO, "XX", "A"): feature_collection(("a", square(0, 0))),
        outline_path(GEO, "YY"): feature_collection(("YY", square(0, 0, 5))),
        county_path(GEO, "YY", "Q"): feature_collection(("Q", square(0, 0))),
    }


def _loader(records=RECORDS):
    async def load(path):
        return list(records)
    return load


def _coordinator(fetcher, loader=None, rendered=None):
    return ViewCoordinator(
        config=DashboardConfig(states_dir=GEO),
        render=(rendered.append if rendered is not None else None),
        load_records=loader or _loader(),
        fetch=fetcher,
    )


def test_full_run_with_failed_county_fragment():
    rendered = []
    coord = _coordinator(FakeFetcher(_docs()), rendered=rendered)
    results = asyncio.run(coord.run("xx"))

    assert set(results) == {"map", "bar", "trend"}
    assert all(r.ok for r in results.values())
    assert coord.phase is Phase.RENDERED

    map_scene = results["map"].scene
    assert [(j.name, j.count) for j in map_scene.joined_features] == [("a", 2)]
    assert map_scene.missing_counties == ("C",)
    bar = results["bar"].scene
    assert [(a.county, a.count) for a in bar.counties] == [("C", 5), ("A", 2)]
    # bar and trend are delivered before the map
    assert [r.view for r in rendered] == ["bar", "trend", "map"]


def test_outline_failure_only_fails_map():
    docs = _docs()
    del docs[outline_path(GEO, "XX")]
    coord = _coordinator(FakeFetcher(docs))
    results = asyncio.run(coord.run("XX"))
    assert not results["map"].ok
    assert "outline" in results["map"].reason
    assert results["bar"].ok and results["trend"].ok


def test_record_failure_fails_every_view():
    async def broken(path):
        raise DataLoadError("boom")

    rendered = []
    coord = _coordinator(FakeFetcher(_docs()), loader=broken, rendered=rendered)
    results = asyncio.run(coord.run("XX"))
    assert coord.phase is Phase.FAILED
    assert coord.failure == "boom"
    assert sorted(r.view for r in rendered) == ["bar", "map", "trend"]
    assert not any(r.ok for r in results.values())


def test_bar_and_trend_do_not_wait_for_geometry():
    docs = _docs()
    fetcher = FakeFetcher(docs, delays={county_path(GEO, "XX", "A"): 0.3})
    seen = []

    async def scenario():
        loop = asyncio.get_running_loop()
        t0 = loop.time()
        coord = _coordinator(fetcher)
        coord.render = lambda r: seen.append((r.view, loop.time() - t0))
        await coord.run("XX")

    asyncio.run(scenario())
    times = dict(seen)
    assert times["bar"] < 0.1 and times["trend"] < 0.1
    assert times["map"] >= 0.25


def test_empty_state_renders_empty_views():
    coord = _coordinator(FakeFetcher(_docs()))
    results = asyncio.run(coord.run("ZZ"))
    assert results["bar"].ok and results["bar"].scene.counties == ()
    assert len(results["trend"].scene.monthly) == 12
    # no outline for ZZ in the fixture
    assert not results["map"].ok


def test_superseded_selection_is_discarded():
    docs = _docs()
    # X's geometry is slow; Y is selected while it is still in flight
    fetcher = FakeFetcher(docs, delays={outline_path(GEO, "XX"): 0.2, county_path(GEO, "XX", "A"): 0.2})
    rendered = []
    coord = _coordinator(fetcher, rendered=rendered)

    async def scenario():
        x = asyncio.ensure_future(coord.run("XX"))
        await asyncio.sleep(0.05)
        y = await coord.run("YY")
        x_results = await x
        return x_results, y

    x_results, y_results = asyncio.run(scenario())
    assert "map" not in x_results
    assert set(y_results) == {"map", "bar", "trend"}
    late = [r for r in rendered if r.state == "XX" and r.view == "map"]
    assert late == []
    assert all(r.state == "YY" for r in coord.results.values())


def test_select_state_cancels_previous():
    docs = _docs()
    fetcher = FakeFetcher(docs, delays={outline_path(GEO, "XX"): 0.5})
    rendered = []
    coord = _coordinator(fetcher, rendered=rendered)

    async def scenario():
        first = coord.select_state("XX")
        second = coord.select_state("YY")
        results = await second
        await asyncio.gather(first, return_exceptions=True)
        return first, results

    first, results = asyncio.run(scenario())
    assert first.cancelled()
    assert {r.state for r in rendered} == {"YY"}
    assert set(results) == {"map", "bar", "trend"}


def test_records_are_loaded_once():
    calls = []

    async def load(path):
        calls.append(path)
        return list(RECORDS)

    coord = _coordinator(FakeFetcher(_docs()), loader=load)

    async def scenario():
        await coord.run("XX")
        await coord.run("YY")

    asyncio.run(scenario())
    assert calls == [DashboardConfig().data_path]


def test_rerun_is_idempotent():
    coord = _coordinator(FakeFetcher(_docs()))
    first = asyncio.run(coord.run("XX"))
    second = asyncio.run(coord.run("XX"))
    for view in ("map", "bar", "trend"):
        assert first[view].scene == second[view].scene


@pytest.mark.parametrize("error", [DataLoadError("disk gone"), OSError("connection reset")])
def test_failed_record_load_is_retried_next_selection(error):
    calls = []

    async def flaky(path):
        calls.append(path)
        if len(calls) == 1:
            raise error
        return list(RECORDS)

    coord = _coordinator(FakeFetcher(_docs()), loader=flaky)
    first = asyncio.run(coord.run("XX"))
    assert coord.phase is Phase.FAILED
    assert sorted(first) == ["bar", "map", "trend"]
    assert not any(r.ok for r in first.values())
    assert str(error) in first["bar"].reason

    second = asyncio.run(coord.run("XX"))
    assert coord.phase is Phase.RENDERED
    assert coord.failure is None
    assert sorted(second) == ["bar", "map", "trend"]
    assert all(r.ok for r in second.values())
    assert len(calls) == 2
