import asyncio
import json

import pytest

from crashmap.models import AccidentRecord, Month


def square(x0, y0, size=1.0):
    return {
        "type": "Polygon",
        "coordinates": [[[x0, y0], [x0 + size, y0], [x0 + size, y0 + size], [x0, y0 + size], [x0, y0]]],
    }


def feature_collection(*named):
    return {
        "type": "FeatureCollection",
        "features": [
            {"type": "Feature", "properties": {"name": name}, "geometry": geom}
            for name, geom in named
        ],
    }


def make_records(rows):
    """rows: (state, county, month_label, severity)"""
    return [
        AccidentRecord(record_id=i, state=s, county=c, month=Month[m], severity=sev)
        for i, (s, c, m, sev) in enumerate(rows)
    ]


class FakeFetcher:
    """Async fetcher over an in-memory {path: document} map.

    Missing paths raise FileNotFoundError; `delays` holds per-path sleeps.
    """

    def __init__(self, docs, delays=None):
        self.docs = docs
        self.delays = delays or {}
        self.calls = []

    async def __call__(self, path):
        self.calls.append(path)
        await asyncio.sleep(self.delays.get(path, 0))
        if path not in self.docs:
            raise FileNotFoundError(path)
        return self.docs[path]


CSV_ROWS = [
    ("State", "County", "Month", "Severity", "City"),
    ("FL", "Orange", "Jan", "2", "Orlando"),
    ("FL", "Orange", "Jan", "3", "Orlando"),
    ("fl", "ORANGE", "Feb", "2", "Orlando"),
    ("FL", "Miami-Dade", "Mar", "4", "Miami"),
    ("FL", "Broward", "Jan", "2", "Fort Lauderdale"),
    ("CA", "Los Angeles", "Dec", "1", "Los Angeles"),
]


@pytest.fixture
def csv_path(tmp_path):
    p = tmp_path / "accidents.csv"
    p.write_text("\n".join(",".join(r) for r in CSV_ROWS) + "\n", encoding="utf-8")
    return str(p)


@pytest.fixture
def states_dir(tmp_path):
    root = tmp_path / "states"
    (root / "FL").mkdir(parents=True)
    (root / "FL.geo.json").write_text(json.dumps(feature_collection(("Florida", square(0, 0, 4)))))
    (root / "FL" / "Orange.geo.json").write_text(json.dumps(feature_collection(("ORANGE", square(0, 0)))))
    (root / "FL" / "Miami-Dade.geo.json").write_text(json.dumps(feature_collection(("Miami-Dade", square(1, 0)))))
    # Broward has no boundary file
    return str(root)
