from __future__ import annotations

"""
Dashboard report generator
--------------------------
Stateless rendering of finished scenes: each scene is drawn to a PNG with
matplotlib, and `generate_dashboard_report` assembles the three views into
a DOCX document.

Design goals:
- The pipeline never touches drawing state; this module only reads scenes.
- Keep the dashboard usable without report dependencies (lazy imports).
- A view that failed still gets a section saying it could not be rendered.
"""

from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional, Sequence
import os
import tempfile

from .config import DashboardConfig
from .scenes import BarScene, MapScene, TrendScene, ViewResult

VIEW_TITLES = {
    "map": "Accidents by County",
    "bar": "Top Counties by Accident Count",
    "trend": "Monthly Accidents by Severity",
}


def _pyplot():
    try:
        import matplotlib
        matplotlib.use("Agg")
        import matplotlib.pyplot as plt
    except ImportError as e:
        raise ImportError(
            "Missing dependency: matplotlib.\n"
            "Install it with: python -m pip install matplotlib"
        ) from e
    return plt


# -----------------------------
# Geometry helpers
# -----------------------------

def _exterior_rings(geometry: Mapping[str, Any]) -> List[Sequence[Sequence[float]]]:
    """Outer rings of a Polygon / MultiPolygon (holes are not drawn)."""
    kind = geometry.get("type")
    coords = geometry.get("coordinates") or []
    if kind == "Polygon":
        return [coords[0]] if coords else []
    if kind == "MultiPolygon":
        return [poly[0] for poly in coords if poly]
    return []


# -----------------------------
# One PNG per view
# -----------------------------

def render_map_png(scene: MapScene, out_path: str, config: Optional[DashboardConfig] = None) -> str:
    config = config or DashboardConfig()
    plt = _pyplot()
    from matplotlib.patches import Polygon
    from matplotlib.colors import Normalize
    from matplotlib.cm import ScalarMappable

    fig, ax = plt.subplots(figsize=(8, 6))
    for j, fill in zip(scene.joined_features, scene.fills):
        for ring in _exterior_rings(j.feature.geometry):
            ax.add_patch(Polygon(ring, closed=True, facecolor=fill, edgecolor=config.outline_color, linewidth=0.5))
    for f in scene.outline:
        for ring in _exterior_rings(f.geometry):
            ax.add_patch(Polygon(ring, closed=True, fill=False, edgecolor=config.outline_color, linewidth=1.0))

    ax.autoscale_view()
    ax.set_aspect("equal")
    ax.set_axis_off()
    lo, hi = scene.color_domain
    norm = Normalize(vmin=lo, vmax=hi if hi > lo else lo + 1)
    fig.colorbar(ScalarMappable(norm=norm, cmap=config.color_map), ax=ax, shrink=0.6, label="Accidents")
    ax.set_title(f"{VIEW_TITLES['map']} ({scene.state})")
    fig.tight_layout()
    fig.savefig(out_path, dpi=150)
    plt.close(fig)
    return out_path


def render_bar_png(scene: BarScene, out_path: str) -> str:
    plt = _pyplot()
    fig, ax = plt.subplots(figsize=(6, 4))
    labels = [a.county for a in scene.counties]
    values = [a.count for a in scene.counties]
    bars = ax.bar(labels, values, color=scene.color)
    for b, v in zip(bars, values):
        ax.annotate(f"{v:,}", (b.get_x() + b.get_width() / 2, v), ha="center", va="bottom", fontsize=8)
    ax.set_ylim(*scene.y_domain)
    ax.set_xlabel("Counties")
    ax.set_ylabel("Accidents")
    ax.tick_params(axis="x", labelrotation=45)
    ax.set_title(f"{VIEW_TITLES['bar']} ({scene.state})")
    fig.tight_layout()
    fig.savefig(out_path, dpi=150)
    plt.close(fig)
    return out_path


def render_trend_png(scene: TrendScene, out_path: str, config: Optional[DashboardConfig] = None) -> str:
    config = config or DashboardConfig()
    plt = _pyplot()
    colors = dict(scene.colors)
    x = list(range(len(scene.monthly)))
    fig, ax = plt.subplots(figsize=(6, 4))
    for band in scene.stacked_bands:
        ax.fill_between(
            x,
            [lo for lo, _ in band.bounds],
            [hi for _, hi in band.bounds],
            color=colors.get(band.severity),
            alpha=0.7,
            label=f"Severity {band.severity}",
        )
    totals = [t for _, t in scene.totals_by_month]
    ax.plot(x, totals, color=config.line_color, linewidth=2, marker="o", markersize=4)
    for xi, t in zip(x, totals):
        ax.annotate(f"{t:,}", (xi, t), textcoords="offset points", xytext=(0, 6), ha="center", fontsize=7)
    ax.set_xticks(x)
    ax.set_xticklabels([m.label for m, _ in scene.totals_by_month], rotation=45)
    ax.set_ylim(*scene.y_domain)
    ax.set_xlabel("Month")
    ax.set_ylabel("Accident Count")
    if scene.stacked_bands:
        ax.legend(loc="upper right", fontsize=8)
    ax.set_title(f"{VIEW_TITLES['trend']} ({scene.state})")
    fig.tight_layout()
    fig.savefig(out_path, dpi=150)
    plt.close(fig)
    return out_path


def render_view_png(result: ViewResult, out_dir: str, config: Optional[DashboardConfig] = None) -> Optional[str]:
    """Draw one delivered view; returns None for a failed view."""
    if not result.ok or result.scene is None:
        return None
    path = os.path.join(out_dir, f"{result.view}_{result.state}.png")
    scene = result.scene
    if isinstance(scene, MapScene):
        return render_map_png(scene, path, config)
    if isinstance(scene, BarScene):
        return render_bar_png(scene, path)
    if isinstance(scene, TrendScene):
        return render_trend_png(scene, path, config)
    raise TypeError(f"Unknown scene type: {type(scene).__name__}")


# -----------------------------
# DOCX dashboard
# -----------------------------

def generate_dashboard_report(
    results: Iterable[ViewResult],
    out_path: str,
    *,
    config: Optional[DashboardConfig] = None,
    dataset_name: Optional[str] = None,
) -> str:
    """
    Write a DOCX with one section per view (map, bar, trend).

    Failed views are reported as "could not render" with their reason.
    """
    config = config or DashboardConfig()

    try:
        from docx import Document
        from docx.shared import Pt, Inches
        from docx.enum.text import WD_ALIGN_PARAGRAPH
    except ImportError as e:
        raise ImportError(
            "Missing dependency: python-docx.\n"
            "Install it with: python -m pip install python-docx"
        ) from e

    by_view = {r.view: r for r in results}
    if not by_view:
        raise ValueError("No views to report on (select a state first).")
    state = next(iter(by_view.values())).state

    tmpdir = tempfile.mkdtemp(prefix="crashmap_report_")
    doc = Document()
    doc.styles["Normal"].font.size = Pt(11)

    def _center_title(text: str, size: int, bold: bool = False, italic: bool = False) -> None:
        p = doc.add_paragraph()
        r = p.add_run(text)
        r.bold = bold
        r.italic = italic
        r.font.size = Pt(size)
        p.alignment = WD_ALIGN_PARAGRAPH.CENTER

    _center_title(f"{config.title}: {state}", 22, bold=True)
    _center_title(config.subtitle, 12, italic=True)
    doc.add_paragraph(f"Dataset: {dataset_name or config.data_path}")

    for view in ("map", "bar", "trend"):
        doc.add_heading(VIEW_TITLES[view], level=1)
        r = by_view.get(view)
        if r is None:
            doc.add_paragraph("Could not render: view was not produced.")
            continue
        if not r.ok:
            doc.add_paragraph(f"Could not render: {r.reason}")
            continue
        doc.add_picture(render_view_png(r, tmpdir, config), width=Inches(6.0))

        if isinstance(r.scene, MapScene) and r.scene.missing_counties:
            doc.add_paragraph(
                "Counties without boundary data (not shown): " + ", ".join(r.scene.missing_counties)
            )
        if isinstance(r.scene, BarScene) and r.scene.counties:
            t = doc.add_table(rows=1, cols=2)
            t.rows[0].cells[0].text = "County"
            t.rows[0].cells[1].text = "Accidents"
            for a in r.scene.counties:
                row = t.add_row().cells
                row[0].text = a.county
                row[1].text = f"{a.count:,}"

    from . import __version__
    doc.add_heading("Reproducibility footer", level=1)
    doc.add_paragraph(f"crashmap version: {__version__}")
    doc.add_paragraph(f"Report generated at: {datetime.now().isoformat(timespec='seconds')}")

    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    doc.save(out_path)
    return out_path
