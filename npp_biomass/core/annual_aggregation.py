"""
Annual aggregation of productivity raster series.

Reduces the members of a series falling inside one calendar year to a single
raster, pixel by pixel. The two reducers deliberately disagree on empty
years: a sum over no rasters is zero ("no growth"), a mean over no rasters is
undefined ("no data").

Author: Diego Bengochea
"""

import warnings
from typing import Optional

import numpy as np

from shared_utils import get_logger

from .exceptions import EmptyAggregateWarning, GridMismatchError
from .raster import Raster, RasterSeries, Reducer
from .temporal_index import TemporalIndex


class AnnualAggregator:
    """
    Produces per-year aggregate rasters from a raster time series.
    """

    def __init__(self, temporal_index: Optional[TemporalIndex] = None):
        self.temporal_index = temporal_index or TemporalIndex()
        self.logger = get_logger('annual_aggregation')

    def members(self, series: RasterSeries, year: int) -> RasterSeries:
        """Members of ``series`` whose timestamp lies inside calendar year ``year``."""
        return self.temporal_index.filter(series, self.temporal_index.year_bounds(year))

    def count(self, series: RasterSeries, year: int) -> int:
        """Number of rasters contributing to ``year``."""
        return len(self.members(series, year))

    def aggregate(
        self,
        series: RasterSeries,
        year: int,
        reducer: Reducer,
        template: Optional[Raster] = None
    ) -> Raster:
        """
        Pixel-wise reduction of the rasters of ``year``.

        Args:
            series: Input series (any number of years)
            year: Calendar year to aggregate
            reducer: Reducer.SUM or Reducer.MEAN
            template: Raster supplying grid and band names when the series is empty

        Returns:
            Raster: Year aggregate carrying ``year``, ``reducer`` and ``count``
            properties and no ``time_start``. Pixels without any valid
            contribution are no-data; an empty year is all zeros for SUM and
            all no-data for MEAN.

        Raises:
            GridMismatchError: If the year's rasters do not share one grid
            ValueError: If the year is empty and no grid can be inferred
        """
        reducer = Reducer(reducer)
        members = self.members(series, year)
        properties = {'year': year, 'reducer': reducer.value, 'count': len(members)}

        if not members:
            return self._empty_aggregate(series, year, reducer, template, properties)

        grid = members[0].grid
        for raster in members[1:]:
            if not raster.grid.aligned_with(grid):
                raise GridMismatchError(f"Rasters of year {year} are not on a common grid")

        data = np.stack([raster.data for raster in members])
        valid = np.stack([raster.valid for raster in members])

        total = np.where(valid, data, 0.0).sum(axis=0)
        counts = valid.sum(axis=0)
        has_data = counts > 0

        if reducer is Reducer.SUM:
            values = total
        else:
            values = np.divide(total, counts, out=np.zeros_like(total), where=has_data)

        self.logger.debug(f"Aggregated {len(members)} rasters for {year} with {reducer.value}")
        return Raster(values, has_data, members.band_names, grid, properties)

    def _empty_aggregate(self, series, year, reducer, template, properties) -> Raster:
        message = f"No rasters contribute to the {reducer.value} aggregate of year {year}"
        self.logger.warning(message)
        warnings.warn(message, EmptyAggregateWarning, stacklevel=3)

        reference = template if template is not None else (series[0] if len(series) else None)
        if reference is None:
            raise ValueError(f"Cannot build an empty {reducer.value} aggregate for {year} without a template raster")

        band_names = series.band_names or reference.band_names
        if reducer is Reducer.SUM:
            return Raster.full(reference.grid, 0.0, band_names, properties)
        return Raster.nodata(reference.grid, band_names, properties)
