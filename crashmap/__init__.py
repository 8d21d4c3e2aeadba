"""
crashmap package
================

Per-state traffic accident dashboard: county choropleth, county ranking and
monthly severity trend, built from one accidents CSV plus per-county GeoJSON
boundaries.

- The CLI entry point is in `crashmap/cli.py`.
- The pipeline (aggregation, geometry join, scenes) is in `crashmap/coordinator.py`.
- Dataset loading is in `crashmap/loader.py`.
"""

__version__ = '0.1.0'
