"""
Error types raised by the NPP8 biomass pipeline.

Configuration problems are raised before any computation starts. Numerical
edge cases (zero annual productivity, empty years) are not errors: they
propagate as per-pixel no-data and are reported through warnings.

Author: Diego Bengochea
"""


class BiomassPipelineError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(BiomassPipelineError):
    """Invalid or ambiguous configuration (region filter, coefficient, years)."""


class MissingMetadataError(BiomassPipelineError):
    """A raster lacks a usable ``time_start`` timestamp."""


class GridMismatchError(BiomassPipelineError):
    """Rasters combined pixel-wise do not share the same grid."""


class EmptySeriesError(BiomassPipelineError):
    """A reduction was requested over a series with no rasters."""


class DataSourceError(BiomassPipelineError):
    """A raster data source failed or timed out."""


class SpatialMismatchError(BiomassPipelineError, UserWarning):
    """
    The region geometry does not overlap a raster footprint.

    Emitted with ``warnings.warn``; the affected outputs are all no-data.
    """


class EmptyAggregateWarning(UserWarning):
    """A year has zero contributing rasters for an annual aggregate."""


class PipelineStageError(BiomassPipelineError):
    """Terminal pipeline failure, naming the stage that failed."""

    def __init__(self, stage: str, cause: BaseException):
        self.stage = stage
        self.cause = cause
        super().__init__(f"Pipeline stage '{stage}' failed: {cause}")
