#!/usr/bin/env python3
"""Centralized Path Management for the COVID-19 Report.

Directory Structure:
    project_root/
    ├── analysis/       # Tidy/derive pipeline stages
    ├── core/           # Configuration and paths
    ├── models/         # Table value objects and errors
    ├── visualization/  # Chart rendering
    ├── data/           # Local or cached copies of the raw CSV inputs
    ├── output/         # Derived tables and regression summary
    └── figures/        # Rendered charts

Usage:
    >>> from core.paths import OUTPUT_DIR
    >>> table.to_frame().to_csv(OUTPUT_DIR / "us_daily_new.csv", index=False)
"""

from pathlib import Path

# Project root is parent of core/ directory
PROJECT_ROOT = Path(__file__).parent.parent

DATA_DIR = PROJECT_ROOT / "data"
"""Raw input CSVs (read with --source local, written with --cache)."""

OUTPUT_DIR = PROJECT_ROOT / "output"
"""Derived tables and the regression summary."""

FIGURES_DIR = PROJECT_ROOT / "figures"
"""Rendered charts."""


def ensure_directories_exist(*dirs: Path) -> None:
    """Create output directories if they don't exist.

    With no arguments creates the default output and figures directories.
    Does NOT create data/, which holds user-provided input.
    """
    for directory in dirs or (OUTPUT_DIR, FIGURES_DIR):
        Path(directory).mkdir(parents=True, exist_ok=True)
