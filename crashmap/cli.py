"""
Dashboard Command Line Interface (CLI)
======================================

Run it like:

    python -m crashmap.cli --csv Data/US_Accidents_small_processed.csv --state CA

The state code plays the role of the page's `?state=` parameter. Inside the
REPL, `state <ST>` re-runs the whole pipeline for another state; results of
the previous selection are discarded.

With `--report out.docx` (and `--state`) the dashboard is written once and
the program exits without starting the REPL.
"""

from __future__ import annotations
import argparse, asyncio, logging, shlex
from dataclasses import replace
from typing import Optional

from .aggregate import group_by_county
from .config import DashboardConfig
from .coordinator import ViewCoordinator
from .scenes import BarScene, MapScene, TrendScene, ViewResult

HELP = """
Commands:
  help
  status
  states
  state <ST>                      (example: state CA)
  show map | show bar | show trend
  counties
  report "<path.docx>"
  quit
"""


def main(argv: Optional[list] = None) -> None:
    """Entry point for the dashboard CLI."""
    ap = argparse.ArgumentParser(description="Per-state traffic accident dashboard")
    ap.add_argument("--csv", help="Path to the accidents CSV")
    ap.add_argument("--states-dir", help="Directory holding <ST>.geo.json and <ST>/<County>.geo.json")
    ap.add_argument("--state", help="State code to show first (e.g. CA)")
    ap.add_argument("--top-n", type=int, help="Number of counties in the ranking")
    ap.add_argument("--report", help="Write a DOCX dashboard for --state and exit")
    ap.add_argument("--log-level", default="WARNING", help="Logging level (default WARNING)")
    args = ap.parse_args(argv)

    level = logging.getLevelName(args.log_level.upper())
    if not isinstance(level, int):
        ap.error(f"invalid --log-level: {args.log_level}")
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    config = DashboardConfig()
    overrides = {}
    if args.csv: overrides["data_path"] = args.csv
    if args.states_dir: overrides["states_dir"] = args.states_dir
    if args.top_n is not None: overrides["top_n"] = args.top_n
    if overrides:
        config = replace(config, **overrides)

    coordinator = ViewCoordinator(config=config, render=_print_result)

    if args.report:
        if not args.state:
            ap.error("--report requires --state")
        asyncio.run(coordinator.run(args.state))
        _write_report(coordinator, args.report)
        return

    if args.state:
        try:
            handle(coordinator, f"state {shlex.quote(args.state)}")
        except Exception as e:
            print(f"Error: {e}")
    print("Type 'help' for commands.")
    while True:
        try:
            line = input("crashmap> ").strip()
        except EOFError:
            break
        if not line:
            continue
        if line.lower() in ("quit", "exit"):
            break
        try:
            handle(coordinator, line)
        except Exception as e:
            print(f"Error: {e}")


def handle(coordinator: ViewCoordinator, line: str) -> None:
    """Handle one CLI command line."""
    parts = shlex.split(line)
    cmd = parts[0].lower()

    if cmd == "help":
        print(HELP)
        return

    if cmd == "status":
        print(f"State: {coordinator.state or '-'} | phase: {coordinator.phase.value} | generation: {coordinator.generation}")
        if coordinator.failure:
            print(f"Failure: {coordinator.failure}")
        return

    if cmd == "states":
        if coordinator.store is None:
            print("No data loaded yet. Select a state first.")
            return
        print(" ".join(coordinator.store.states()))
        return

    if cmd == "state":
        if len(parts) < 2:
            raise ValueError("usage: state <ST>")
        results = asyncio.run(coordinator.run(parts[1]))
        failed = [r.view for r in results.values() if not r.ok]
        print(f"State {parts[1].upper()}: {len(results)} views, {len(failed)} failed.")
        return

    if cmd == "show":
        view = parts[1].lower() if len(parts) >= 2 else ""
        r = coordinator.results.get(view)
        if r is None:
            raise ValueError("show what? map | bar | trend (after selecting a state)")
        _print_result(r, verbose=True)
        return

    if cmd == "counties":
        if coordinator.store is None or coordinator.state is None:
            print("Select a state first.")
            return
        aggs = sorted(group_by_county(coordinator.store.for_state(coordinator.state)), key=lambda a: a.key)
        for a in aggs:
            print(f"{a.county}: {a.count:,}")
        print(f"({len(aggs)} counties)")
        return

    if cmd == "report":
        if len(parts) < 2:
            raise ValueError('usage: report "<path.docx>"')
        _write_report(coordinator, parts[1])
        return

    print("Unknown command. Type 'help'.")


def _write_report(coordinator: ViewCoordinator, path: str) -> None:
    from .report import generate_dashboard_report
    generate_dashboard_report(coordinator.results.values(), path, config=coordinator.config)
    print(f"Report written to {path}")


def _print_result(r: ViewResult, verbose: bool = False) -> None:
    if not r.ok:
        print(f"[{r.view}] could not render: {r.reason}")
        return
    s = r.scene
    if isinstance(s, BarScene):
        print(f"[bar] top {len(s.counties)} counties in {s.state}")
        if verbose:
            for a in s.counties:
                print(f"  {a.county:<24} {a.count:>8,}")
    elif isinstance(s, TrendScene):
        print(f"[trend] severities {list(s.severity_order)} in {s.state}")
        if verbose:
            for m in s.monthly:
                cells = " ".join(f"S{k}={v}" for k, v in m.counts)
                print(f"  {m.month.label} total={m.total:<6} {cells}")
    elif isinstance(s, MapScene):
        print(f"[map] {len(s.joined_features)} counties drawn, color domain {list(s.color_domain)}")
        if s.missing_counties:
            print(f"  missing boundaries: {', '.join(s.missing_counties)}")
        if verbose:
            for i in range(len(s.joined_features)):
                print("  " + s.tooltip(i).replace("\n", " | "))


if __name__ == "__main__":
    main()
