"""
Executable scripts for the MODIS productivity biomass component.

Scripts:
    run_biomass_pipeline.py: NPP8 derivation, biomass conversion and regional summaries

Author: Diego Bengochea
"""

from .run_biomass_pipeline import main as run_biomass_pipeline

__all__ = [
    "run_biomass_pipeline"
]
