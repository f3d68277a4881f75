"""
Reprojection of rasters onto a target grid with rasterio.

The pipeline works on a single target grid defined by a CRS and a ground
scale in metres. For geographic CRSs the scale is converted to degrees with
the nominal length of a degree at the equator.

Author: Diego Bengochea
"""

from functools import partial
from typing import Any, Optional, Union

import numpy as np
from rasterio.crs import CRS
from rasterio.enums import Resampling
from rasterio.warp import reproject, transform_bounds

from shared_utils import get_logger

from .exceptions import ConfigurationError
from .parallel import map_rasters
from .raster import Raster, RasterGrid, RasterSeries

METERS_PER_DEGREE = 111319.49079327357

logger = get_logger('reprojection')


def resolution_for_scale(scale: float, crs: Any) -> float:
    """Pixel size in CRS units for a ground ``scale`` in metres."""
    if scale is None or scale <= 0:
        raise ConfigurationError(f"Scale must be positive, got {scale}")
    if CRS.from_user_input(crs).is_geographic:
        return float(scale) / METERS_PER_DEGREE
    return float(scale)


def resampling_method(method: Union[str, Resampling]) -> Resampling:
    if isinstance(method, Resampling):
        return method
    try:
        return Resampling[method]
    except KeyError:
        raise ConfigurationError(f"Unknown resampling method '{method}'")


def target_grid(reference: RasterGrid, crs: Any, scale: float) -> RasterGrid:
    """
    Grid covering the footprint of ``reference`` in ``crs`` at ``scale`` metres.

    Returns ``reference`` itself when it already has that CRS and resolution,
    so rasters already on the target grid are left untouched.
    """
    resolution = resolution_for_scale(scale, crs)
    target_crs = CRS.from_user_input(crs)

    if reference.rasterio_crs == target_crs and np.allclose(reference.resolution, (resolution, resolution)):
        return reference

    bounds = reference.bounds
    if reference.rasterio_crs != target_crs:
        bounds = transform_bounds(reference.rasterio_crs, target_crs, *bounds, densify_pts=21)
    return RasterGrid.from_bounds(bounds, target_crs, resolution)


def reproject_raster(raster: Raster, grid: RasterGrid,
                     resampling: Union[str, Resampling] = Resampling.nearest) -> Raster:
    """Resample every band of ``raster`` onto ``grid``; invalid pixels stay no-data."""
    if raster.grid.aligned_with(grid):
        return raster

    resampling = resampling_method(resampling)
    destination = np.full((len(raster.band_names),) + grid.shape, np.nan, dtype=np.float64)

    for index, band in enumerate(raster.band_names):
        reproject(
            source=raster.filled(band, np.nan),
            destination=destination[index],
            src_transform=raster.grid.transform,
            src_crs=raster.grid.rasterio_crs,
            src_nodata=np.nan,
            dst_transform=grid.transform,
            dst_crs=grid.rasterio_crs,
            dst_nodata=np.nan,
            resampling=resampling,
        )

    return Raster.from_array(destination, grid, raster.band_names, properties=raster.properties)


def reproject_series(
    series: RasterSeries,
    grid: RasterGrid,
    resampling: Union[str, Resampling] = Resampling.nearest,
    scheduler: Optional[str] = None,
    num_workers: Optional[int] = None,
    show_progress: bool = False
) -> RasterSeries:
    """Reproject each raster of ``series`` onto ``grid``, preserving order and metadata."""
    resampling = resampling_method(resampling)
    reprojected = map_rasters(
        partial(reproject_raster, grid=grid, resampling=resampling),
        series,
        scheduler=scheduler,
        num_workers=num_workers,
        show_progress=show_progress,
    )
    logger.debug(f"Reprojected {len(reprojected)} rasters to {grid.crs} at {grid.resolution}")
    return RasterSeries(reprojected)
