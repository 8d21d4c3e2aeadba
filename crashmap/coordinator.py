"""
View coordinator (pipeline orchestration)
=========================================

This is the heart of the dashboard. Per state selection it:

1) Starts the state-outline fetch and waits for the record table
   (loaded once per session, shared by every selection)
2) Filters records to the state and aggregates them
3) Delivers the bar and trend scenes right away; they never wait on geometry
4) Fetches every county fragment concurrently, joins counts and delivers
   the map scene (or a map failure if the outline could not be loaded)

Phases: IDLE -> LOADING -> AGGREGATES_READY -> PARTIAL_READY -> MAP_READY
-> RENDERED, or FAILED when the record source itself cannot be loaded.

Every selection gets a generation number. Results are only handed to the
renderer if their generation is still current, so a superseded selection
can never leak into the new one.
"""

from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional

from .aggregate import group_by_county
from .config import DashboardConfig
from .errors import DataLoadError, StateOutlineError
from .geo import Fetcher, GeoResolver, file_fetcher, merge_features
from .loader import RecordStore, load_records_async
from .models import AccidentRecord
from .scenes import (
    Scene, ViewResult, ViewStatus, build_bar_scene, build_map_scene, build_trend_scene,
)

logger = logging.getLogger(__name__)

Renderer = Callable[[ViewResult], None]
RecordLoader = Callable[[str], Awaitable[List[AccidentRecord]]]

VIEWS = ("map", "bar", "trend")

class Phase(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    AGGREGATES_READY = "aggregates_ready"
    PARTIAL_READY = "partial_ready"
    MAP_READY = "map_ready"
    RENDERED = "rendered"
    FAILED = "failed"

@dataclass
class ViewCoordinator:
    """Runs the dashboard pipeline for the selected state.

    - config: data locations and shared encodings
    - render: called once per delivered view (map/bar/trend)
    - load_records / fetch: async I/O primitives (file-based by default)
    """
    config: DashboardConfig = field(default_factory=DashboardConfig)
    render: Optional[Renderer] = None
    load_records: RecordLoader = load_records_async
    fetch: Fetcher = file_fetcher
    store: Optional[RecordStore] = None

    generation: int = field(default=0, init=False)
    state: Optional[str] = field(default=None, init=False)
    phase: Phase = field(default=Phase.IDLE, init=False)
    failure: Optional[str] = field(default=None, init=False)
    results: Dict[str, ViewResult] = field(default_factory=dict, init=False)
    _store_task: Optional[asyncio.Task] = field(default=None, init=False, repr=False)
    _current: Optional[asyncio.Task] = field(default=None, init=False, repr=False)

    # ---------------- Selection ----------------
    def _begin(self, state_code: str) -> int:
        self.generation += 1
        self.state = state_code
        self.phase = Phase.LOADING
        self.failure = None
        self.results = {}
        return self.generation

    def is_current(self, gen: int) -> bool:
        return gen == self.generation

    def select_state(self, state_code: str) -> "asyncio.Task[Dict[str, ViewResult]]":
        """Supersede any selection in flight and start a new pipeline.

        Must be called from a running event loop.
        """
        if self._current is not None and not self._current.done():
            self._current.cancel()
        gen = self._begin(state_code)
        self._current = asyncio.get_running_loop().create_task(self._run(state_code, gen))
        return self._current

    async def run(self, state_code: str) -> Dict[str, ViewResult]:
        """Run one selection to completion and return the views it delivered."""
        return await self._run(state_code, self._begin(state_code))

    # ---------------- Records ----------------
    async def _records(self) -> RecordStore:
        if self.store is not None:
            return self.store
        if self._store_task is None:
            self._store_task = asyncio.get_running_loop().create_task(self._load_store())
        try:
            # shared by all selections; a cancelled selection must not cancel the load
            self.store = await asyncio.shield(self._store_task)
        except Exception:
            # a failed load is not cached; the next selection retries
            self._store_task = None
            raise
        return self.store

    async def _load_store(self) -> RecordStore:
        path = self.config.data_path
        try:
            records = await self.load_records(path)
        except DataLoadError:
            raise
        except Exception as e:
            raise DataLoadError(f"Could not load record source {path}: {e}") from e
        return RecordStore(records=records, source_path=path)

    # ---------------- Delivery ----------------
    def _set_phase(self, gen: int, phase: Phase) -> None:
        if self.is_current(gen):
            self.phase = phase

    def _deliver(self, result: ViewResult, delivered: Dict[str, ViewResult]) -> None:
        if not self.is_current(result.generation):
            logger.debug("Discarding stale %s view for %s (generation %d)", result.view, result.state, result.generation)
            return
        self.results[result.view] = result
        delivered[result.view] = result
        if self.render is not None:
            self.render(result)

    def _ok(self, view: str, state: str, gen: int, scene: Scene) -> ViewResult:
        return ViewResult(view=view, state=state, generation=gen, status=ViewStatus.RENDERED, scene=scene)

    def _failed(self, view: str, state: str, gen: int, reason: str) -> ViewResult:
        return ViewResult(view=view, state=state, generation=gen, status=ViewStatus.FAILED, reason=reason)

    def _build(self, view: str, state: str, gen: int, make: Callable[[], Scene]) -> ViewResult:
        """Build one scene; a failure is confined to its own view."""
        try:
            return self._ok(view, state, gen, make())
        except Exception as e:
            logger.exception("Could not build %s view for %s", view, state)
            return self._failed(view, state, gen, f"Could not render {view}: {e}")

    # ---------------- Pipeline ----------------
    async def _run(self, state: str, gen: int) -> Dict[str, ViewResult]:
        delivered: Dict[str, ViewResult] = {}
        resolver = GeoResolver(states_dir=self.config.states_dir, fetch=self.fetch)
        loop = asyncio.get_running_loop()
        outline_task = loop.create_task(resolver.fetch_outline(state))
        counties_task: Optional[asyncio.Task] = None
        try:
            try:
                store = await self._records()
            except DataLoadError as e:
                logger.error("Record source failed: %s", e)
                if self.is_current(gen):
                    self.failure = str(e)
                self._set_phase(gen, Phase.FAILED)
                for view in VIEWS:
                    self._deliver(self._failed(view, state, gen, f"Could not load accident data: {e}"), delivered)
                return delivered

            if not self.is_current(gen):
                logger.debug("Selection %s superseded before aggregation", state)
                return delivered

            records = store.for_state(state)
            aggregates = group_by_county(records)
            counties_task = loop.create_task(resolver.fetch_counties(state, [a.county for a in aggregates]))
            self._set_phase(gen, Phase.AGGREGATES_READY)

            # bar/trend only need aggregates
            self._deliver(self._build("bar", state, gen, lambda: build_bar_scene(state, aggregates, self.config)), delivered)
            self._deliver(self._build("trend", state, gen, lambda: build_trend_scene(state, records, self.config)), delivered)

            try:
                outline = await outline_task
            except StateOutlineError as e:
                self._deliver(self._failed("map", state, gen, str(e)), delivered)
                self._set_phase(gen, Phase.RENDERED)
                return delivered
            self._set_phase(gen, Phase.PARTIAL_READY)

            outcomes = await counties_task
            self._set_phase(gen, Phase.MAP_READY)
            missing = [o.county for o in outcomes if not o.ok]
            self._deliver(self._build(
                "map", state, gen,
                lambda: build_map_scene(state, outline, merge_features(outcomes), aggregates, self.config, missing),
            ), delivered)
            self._set_phase(gen, Phase.RENDERED)
            return delivered
        finally:
            for t in (outline_task, counties_task):
                if t is None:
                    continue
                if not t.done():
                    t.cancel()
                elif not t.cancelled():
                    t.exception()  # mark retrieved; already handled or superseded
