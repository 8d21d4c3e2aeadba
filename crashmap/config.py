"""
Dashboard configuration
=======================

High-level knobs for data locations and visual encodings. Every component
reads from one `DashboardConfig` so the three views share the same palette
and limits.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class DashboardConfig:
    # Input resources
    data_path: str = "Data/US_Accidents_small_processed.csv"
    states_dir: str = "Data/states"

    # How many counties the ranking bar chart shows
    top_n: int = 10

    # Visual encodings shared by all views
    color_map: str = "Reds"
    empty_color: str = "#f0f0f5"
    severity_palette: Tuple[str, ...] = ("#fee5d9", "#fcae91", "#fb6a4a", "#de2d26")
    bar_color: str = "#8B0000"
    line_color: str = "#FF4500"
    outline_color: str = "#333333"

    # Headroom above the tallest bar (original chart used max * 1.1)
    bar_headroom: float = 1.1

    # Report text
    title: str = "State Accident Dashboard"
    subtitle: str = "County map, county ranking and monthly severity trend"
