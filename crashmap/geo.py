"""
Geometry resolution (GeoJSON fragments -> one merged collection)
================================================================

Each state has one outline document and one boundary document per county:

    {states_dir}/{ST}.geo.json
    {states_dir}/{ST}/{County}.geo.json

`GeoResolver` fetches the outline and every county fragment concurrently.
Each county fetch produces a `FetchOutcome` (success or failure), so a
missing fragment only drops that county from the map. The outline is
required: its failure raises `StateOutlineError`.

The fetch primitive is any async callable `path -> parsed JSON document`;
`file_fetcher` reads from the local filesystem.

Two ways in:
- `resolve(state, counties)`: standalone one-shot call that waits for
  everything and returns a merged `GeoResolution`.
- `fetch_outline` + `fetch_counties` + `merge_features`: the same steps
  split apart, used by the coordinator so the outline can be in flight
  while records are still loading.
"""

from __future__ import annotations
import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, List, Mapping, Sequence, Tuple

from .errors import CountyFragmentError, StateOutlineError
from .models import FetchOutcome, GeoFeature, name_key

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], Awaitable[Any]]

_POLYGON_TYPES = ("Polygon", "MultiPolygon")

def outline_path(states_dir: str, state_code: str) -> str:
    return f"{states_dir}/{name_key(state_code)}.geo.json"

def county_path(states_dir: str, state_code: str, county: str) -> str:
    return f"{states_dir}/{name_key(state_code)}/{county}.geo.json"

async def file_fetcher(path: str) -> Any:
    """Read and parse one JSON document from disk, off the event loop."""
    def _read() -> Any:
        with open(Path(path), "r", encoding="utf-8") as f:
            return json.load(f)
    return await asyncio.to_thread(_read)

def parse_features(doc: Any, fallback_name: str) -> Tuple[GeoFeature, ...]:
    """Extract named polygon features from a GeoJSON document.

    Accepts a FeatureCollection, a single Feature or a bare geometry. A
    feature without a `name` property takes `fallback_name`.
    Raises ValueError when the document holds no usable polygon.
    """
    if not isinstance(doc, Mapping):
        raise ValueError("document is not a JSON object")
    kind = doc.get("type")
    if kind == "FeatureCollection":
        raw = doc.get("features") or []
    elif kind == "Feature":
        raw = [doc]
    elif kind in _POLYGON_TYPES:
        raw = [{"type": "Feature", "geometry": doc, "properties": {}}]
    else:
        raise ValueError(f"unsupported GeoJSON type: {kind!r}")

    out: List[GeoFeature] = []
    for f in raw:
        geom = f.get("geometry") if isinstance(f, Mapping) else None
        if not isinstance(geom, Mapping) or geom.get("type") not in _POLYGON_TYPES or "coordinates" not in geom:
            raise ValueError("feature without polygon geometry")
        props = dict(f.get("properties") or {})
        name = str(props.get("name") or props.get("NAME") or fallback_name)
        out.append(GeoFeature(name=name, geometry=geom, properties=props))
    if not out:
        raise ValueError("no features in document")
    return tuple(out)

def merge_features(outcomes: Iterable[FetchOutcome]) -> List[GeoFeature]:
    """Concatenate successful fragments in county order; failures are skipped."""
    merged: List[GeoFeature] = []
    for o in outcomes:
        if o.ok and o.features:
            merged.extend(o.features)
    return merged

def distinct_names(names: Iterable[str]) -> List[str]:
    """Drop case-insensitive duplicates, keeping first spelling and order."""
    seen = set()
    out: List[str] = []
    for n in names:
        k = name_key(n)
        if k not in seen:
            seen.add(k)
            out.append(n)
    return out

@dataclass(frozen=True)
class GeoResolution:
    outline: Tuple[GeoFeature, ...]
    features: Tuple[GeoFeature, ...]
    outcomes: Tuple[FetchOutcome, ...] = field(default_factory=tuple)

    @property
    def failed_counties(self) -> List[str]:
        return [o.county for o in self.outcomes if not o.ok]

@dataclass
class GeoResolver:
    """Concurrent fetcher for one state's outline and county fragments."""
    states_dir: str = "Data/states"
    fetch: Fetcher = file_fetcher

    async def fetch_outline(self, state_code: str) -> Tuple[GeoFeature, ...]:
        path = outline_path(self.states_dir, state_code)
        try:
            doc = await self.fetch(path)
            return parse_features(doc, name_key(state_code))
        except Exception as e:
            logger.error("State outline for %s failed: %s", state_code, e)
            raise StateOutlineError(f"Could not load state outline {path}: {e}") from e

    async def fetch_county(self, state_code: str, county: str) -> FetchOutcome:
        path = county_path(self.states_dir, state_code, county)
        try:
            doc = await self.fetch(path)
            features = parse_features(doc, county)
        except Exception as e:
            err = CountyFragmentError(county, path, str(e) or type(e).__name__)
            logger.warning("Skipping county %s: %s", county, err)
            return FetchOutcome(county=county, path=path, error=err)
        return FetchOutcome(county=county, path=path, features=features)

    async def fetch_counties(self, state_code: str, counties: Sequence[str]) -> List[FetchOutcome]:
        """Fetch one fragment per distinct county, all in flight at once."""
        names = distinct_names(counties)
        return list(await asyncio.gather(*(self.fetch_county(state_code, c) for c in names)))

    async def resolve(self, state_code: str, counties: Sequence[str]) -> GeoResolution:
        """Fetch outline and fragments concurrently and merge them.

        Waits for every fetch to settle. Raises StateOutlineError if the
        outline failed; county failures are reported in `outcomes`.
        """
        outline_res, outcomes = await asyncio.gather(
            self.fetch_outline(state_code),
            self.fetch_counties(state_code, counties),
            return_exceptions=True,
        )
        if isinstance(outcomes, BaseException):
            raise outcomes
        if isinstance(outline_res, BaseException):
            raise outline_res
        return GeoResolution(
            outline=outline_res,
            features=tuple(merge_features(outcomes)),
            outcomes=tuple(outcomes),
        )
