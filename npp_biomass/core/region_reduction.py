"""
Spatial and temporal reduction of raster series over a region.

Two products are derived from the biomass series:
- a mean composite: pixel-wise temporal mean, clipped to the region (pixels
  outside become no-data, the raster shape is unchanged);
- a regional time series: one scalar per raster, reduced over the region at
  a fixed scale, paired with the raster's timestamp.

Regions that miss the raster footprint produce no-data outputs and a
SpatialMismatchError warning rather than an exception.

Author: Diego Bengochea
"""

import warnings
from typing import Iterable, Optional, Tuple, Union

import numpy as np
import pandas as pd
from rasterio.enums import Resampling
from rasterio.features import geometry_mask
from shapely.geometry import box

from shared_utils import get_logger

from .exceptions import EmptySeriesError, GridMismatchError, SpatialMismatchError
from .raster import (
    Cardinality,
    Raster,
    RasterGrid,
    RasterSeries,
    Reducer,
    ReductionSpec,
    Region,
    RegionStatistic,
)
from .reprojection import reproject_raster, resolution_for_scale
from .temporal_index import TemporalIndex


def statistics_to_frame(statistics: Iterable[RegionStatistic], value_name: str = 'Biomass') -> pd.DataFrame:
    """Tabulate regional statistics for charting or CSV; no-data becomes NaN here only."""
    statistics = list(statistics)
    return pd.DataFrame({
        'time_start': [s.timestamp if s.timestamp is not None else pd.NaT for s in statistics],
        value_name: [np.nan if s.value is None else s.value for s in statistics],
    })


class RegionReducer:
    """
    Reduces rasters and raster series to region-level statistics.
    """

    def __init__(self, temporal_index: Optional[TemporalIndex] = None):
        self.temporal_index = temporal_index or TemporalIndex()
        self.logger = get_logger('region_reduction')

    # ------------------------------------------------------------------
    # Region geometry on raster grids
    # ------------------------------------------------------------------

    def region_mask(self, region: Region, grid: RasterGrid) -> np.ndarray:
        """Boolean (rows, cols) array, True for pixels whose centre lies in the region."""
        geometry = region.geometry_in(grid.crs)
        if geometry.is_empty or not box(*grid.bounds).intersects(geometry):
            return np.zeros(grid.shape, dtype=bool)
        return geometry_mask([geometry], out_shape=grid.shape, transform=grid.transform, invert=True)

    def check_overlap(self, region: Region, grid: RasterGrid) -> bool:
        """Warn with SpatialMismatchError when the region misses the grid footprint."""
        if self.region_mask(region, grid).any():
            return True
        message = f"Region {dict(region.attributes)} does not overlap raster footprint {grid.bounds} ({grid.crs})"
        self.logger.warning(message)
        warnings.warn(message, SpatialMismatchError, stacklevel=3)
        return False

    # ------------------------------------------------------------------
    # Temporal reduction
    # ------------------------------------------------------------------

    def temporal_mean(self, series: RasterSeries) -> Raster:
        """Pixel-wise mean over valid contributions; no-data where none."""
        if not len(series):
            raise EmptySeriesError("Cannot compute a temporal mean of an empty series")

        grid = series[0].grid
        for raster in series[1:]:
            if not raster.grid.aligned_with(grid):
                raise GridMismatchError("Series rasters are not on a common grid")

        data = np.stack([raster.data for raster in series])
        valid = np.stack([raster.valid for raster in series])
        total = np.where(valid, data, 0.0).sum(axis=0)
        counts = valid.sum(axis=0)
        has_data = counts > 0
        values = np.divide(total, counts, out=np.zeros_like(total), where=has_data)

        return Raster(values, has_data, series.band_names, grid, {'count': len(series), 'reducer': Reducer.MEAN.value})

    def mean_composite(self, series: RasterSeries, region: Region) -> Raster:
        """
        Temporal mean of ``series`` clipped to ``region``.

        Raises:
            EmptySeriesError: If ``series`` is empty
        """
        composite = self.temporal_mean(series)
        if not self.check_overlap(region, composite.grid):
            return Raster.nodata(composite.grid, composite.band_names, composite.properties)

        inside = self.region_mask(region, composite.grid)
        self.logger.info(f"Mean composite of {len(series)} rasters covers {int(inside.sum())} region pixels")
        return composite.with_values(composite.data, composite.valid & inside, properties=composite.properties)

    # ------------------------------------------------------------------
    # Spatial reduction
    # ------------------------------------------------------------------

    def reduce_raster(
        self,
        raster: Raster,
        region: Region,
        band: str,
        reducer: Reducer = Reducer.MEAN,
        scale: Optional[float] = None
    ) -> Optional[float]:
        """
        Reduce one band of ``raster`` over ``region``.

        When ``scale`` (metres) differs from the raster resolution the band is
        first resampled to that scale by area averaging.

        Returns:
            float or None: None when no valid pixel falls inside the region
        """
        reducer = Reducer(reducer)
        single = raster.select(band)

        if scale is not None:
            resolution = resolution_for_scale(scale, single.grid.crs)
            if not np.allclose(single.grid.resolution, (resolution, resolution)):
                scaled_grid = RasterGrid.from_bounds(single.grid.bounds, single.grid.crs, resolution)
                single = reproject_raster(single, scaled_grid, Resampling.average)

        values, valid = single.band_values()
        selected = valid & self.region_mask(region, single.grid)
        if not selected.any():
            return None

        if reducer is Reducer.SUM:
            return float(values[selected].sum())
        return float(values[selected].mean())

    def series_by_region(
        self,
        series: RasterSeries,
        region: Region,
        band: str,
        reducer: Reducer = Reducer.MEAN,
        scale: Optional[float] = None
    ) -> Tuple[RegionStatistic, ...]:
        """
        One (timestamp, value) pair per raster of ``series``, in input order.

        Rasters without any valid pixel in the region yield ``value=None``;
        entries are never dropped.
        """
        checked = set()
        statistics = []
        for raster in series:
            if raster.grid not in checked:
                self.check_overlap(region, raster.grid)
                checked.add(raster.grid)
            statistics.append(RegionStatistic(
                timestamp=self.temporal_index.timestamp_of(raster),
                value=self.reduce_raster(raster, region, band, reducer, scale),
            ))

        missing = sum(1 for statistic in statistics if statistic.is_nodata)
        if missing:
            self.logger.warning(f"{missing}/{len(statistics)} rasters have no valid {band} pixels in the region")
        return tuple(statistics)

    def reduce_region(
        self,
        target: Union[Raster, RasterSeries],
        spec: ReductionSpec
    ) -> Union[RegionStatistic, Tuple[RegionStatistic, ...]]:
        """
        Reduce a raster or series according to ``spec``.

        ``Cardinality.SINGLE`` returns one statistic (a series is first reduced
        to its temporal mean); ``Cardinality.PER_ELEMENT`` returns one
        statistic per series element.
        """
        if spec.cardinality is Cardinality.PER_ELEMENT:
            series = target if isinstance(target, RasterSeries) else RasterSeries([target])
            return self.series_by_region(series, spec.region, spec.band, spec.reducer, spec.scale)

        if isinstance(target, RasterSeries):
            raster, timestamp = self.temporal_mean(target), None
        else:
            raster = target
            timestamp = self.temporal_index.timestamp_of(raster) if raster.timestamp is not None else None
        self.check_overlap(spec.region, raster.grid)
        return RegionStatistic(timestamp, self.reduce_raster(raster, spec.region, spec.band, spec.reducer, spec.scale))
