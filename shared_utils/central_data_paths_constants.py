"""
Central Data Paths - Constants

Centralized path management for the MODIS productivity biomass repository.
All components should import paths from this module instead of defining their own.

Usage:
    from shared_utils.central_data_paths_constants import MODIS_RAW_DIR, BIOMASS_RESULTS_DIR

    gross_dir = MODIS_RAW_DIR / "gross-productivity-8day"

Author: Diego Bengochea
"""

from pathlib import Path

# Root directories
DATA_ROOT = Path("data")

RAW_DIR = DATA_ROOT / "raw"
RESULTS_DIR = DATA_ROOT / "results"

# MODIS productivity rasters, one subdirectory per named series
MODIS_RAW_DIR = RAW_DIR / "modis"

# Biomass outputs
BIOMASS_RESULTS_DIR = RESULTS_DIR / "biomass"
