"""
Linear conversion of NPP8 to biomass.

The coefficient is an empirical constant supplied by configuration; it is
applied as-is and never derived or validated against the ecosystem.

Author: Diego Bengochea
"""

import math
from functools import partial
from numbers import Real
from typing import Optional

import numpy as np

from shared_utils import get_logger

from .exceptions import ConfigurationError
from .parallel import map_rasters
from .raster import TIME_START, Raster, RasterSeries

BIOMASS_BAND = 'Biomass'


def validate_coefficient(coefficient) -> float:
    if isinstance(coefficient, bool) or not isinstance(coefficient, Real):
        raise ConfigurationError(f"Biomass coefficient must be a real number, got {coefficient!r}")
    if not math.isfinite(coefficient) or coefficient <= 0:
        raise ConfigurationError(f"Biomass coefficient must be a finite positive number, got {coefficient}")
    return float(coefficient)


def convert_raster(raster: Raster, coefficient: float, carried_property: str = TIME_START) -> Raster:
    values, valid = raster.band_values()
    converted = np.where(valid, values * coefficient, 0.0)
    return raster.with_values(converted, valid, (BIOMASS_BAND,)).copy_properties(raster, [carried_property])


class BiomassConverter:
    """Multiplies every raster of a series by the biomass coefficient."""

    def __init__(self, coefficient: float, scheduler: Optional[str] = None, num_workers: Optional[int] = None,
                 show_progress: bool = False):
        self.coefficient = validate_coefficient(coefficient)
        self.scheduler = scheduler
        self.num_workers = num_workers
        self.show_progress = show_progress
        self.logger = get_logger('biomass_conversion')

    def convert(self, npp8_series: RasterSeries, coefficient: Optional[float] = None) -> RasterSeries:
        """
        Convert each single-band raster to a ``Biomass`` band, 1:1 and in order.

        Args:
            npp8_series: Derived NPP8 series
            coefficient: Overrides the converter's coefficient for this call

        Returns:
            RasterSeries: Biomass series with timestamps preserved
        """
        coefficient = self.coefficient if coefficient is None else validate_coefficient(coefficient)
        if len(npp8_series) and len(npp8_series.band_names) != 1:
            raise ValueError(f"Expected a single-band series, got bands {list(npp8_series.band_names)}")

        converted = map_rasters(
            partial(convert_raster, coefficient=coefficient),
            npp8_series,
            scheduler=self.scheduler,
            num_workers=self.num_workers,
            show_progress=self.show_progress,
        )
        self.logger.info(f"Converted {len(converted)} rasters to biomass with coefficient {coefficient}")
        return RasterSeries(converted)
