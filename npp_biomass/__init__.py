"""
MODIS Productivity Biomass Component

This component estimates 8-day biomass from MODIS productivity products over
an area of interest, including:

- Annual aggregation of 8-day GPP and annual NPP
- Derivation of 8-day net primary productivity (NPP8)
- Linear conversion of NPP8 to biomass
- Clipped mean biomass composites and regional time series

Components:
    core/: Core processing modules
    scripts/: Executable entry points
    config.yaml: Component configuration

Author: Diego Bengochea
"""

from .core.biomass_pipeline import BiomassEstimationPipeline, PipelineResult
from .core.npp8_derivation import NPP8Deriver
from .core.biomass_conversion import BiomassConverter
from .core.region_reduction import RegionReducer

__version__ = "1.0.0"
__component__ = "npp_biomass"

__all__ = [
    "BiomassEstimationPipeline",
    "PipelineResult",
    "NPP8Deriver",
    "BiomassConverter",
    "RegionReducer"
]
