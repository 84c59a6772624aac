"""Core (UI-agnostic) explorer logic for the daily bike-share dataset.

This package contains:
- data loading (CSV -> pandas) and the column catalogue
- selection state and date filtering
- the reactive per-session engine
- summary statistics and chart specs (Altair -> Vega-Lite spec dict)
"""
