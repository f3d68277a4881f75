"""
Core processing modules for MODIS productivity biomass estimation.

Author: Diego Bengochea
"""

from .raster import (
    Cardinality, Raster, RasterGrid, RasterSeries, ReductionSpec, Reducer,
    Region, RegionStatistic, TimeWindow
)
from .temporal_index import TemporalIndex, parse_timestamp
from .annual_aggregation import AnnualAggregator
from .npp8_derivation import NPP8Deriver, scale_gpp8
from .biomass_conversion import BiomassConverter
from .region_reduction import RegionReducer
from .biomass_pipeline import BiomassEstimationPipeline, PipelineResult
from .exceptions import (
    BiomassPipelineError, ConfigurationError, DataSourceError, EmptyAggregateWarning,
    EmptySeriesError, GridMismatchError, MissingMetadataError, PipelineStageError,
    SpatialMismatchError
)

__all__ = [
    "Cardinality",
    "Raster",
    "RasterGrid",
    "RasterSeries",
    "ReductionSpec",
    "Reducer",
    "Region",
    "RegionStatistic",
    "TimeWindow",
    "TemporalIndex",
    "parse_timestamp",
    "AnnualAggregator",
    "NPP8Deriver",
    "scale_gpp8",
    "BiomassConverter",
    "RegionReducer",
    "BiomassEstimationPipeline",
    "PipelineResult",
    "BiomassPipelineError",
    "ConfigurationError",
    "DataSourceError",
    "EmptyAggregateWarning",
    "EmptySeriesError",
    "GridMismatchError",
    "MissingMetadataError",
    "PipelineStageError",
    "SpatialMismatchError"
]
