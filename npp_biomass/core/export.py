"""
Export of pipeline outputs: the mean biomass composite as GeoTIFF and the
regional biomass time series as CSV.

Export is fire-and-forget from the pipeline's point of view: failures are
logged and reported through the return value, never retried.

Author: Diego Bengochea
"""

from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

import numpy as np
import rioxarray  # noqa: F401  registers the .rio accessor
import xarray as xr

from shared_utils import ensure_directory, get_logger

from .raster import Raster, RegionStatistic
from .region_reduction import statistics_to_frame

DEFAULT_NODATA = -9999.0

logger = get_logger('export')


def composite_filename(start_year: int, end_year: int, scale: float, prefix: str = 'mean_biomass') -> str:
    """File name derived from the year range and scale, e.g. mean_biomass_2023-2024_500m.tif."""
    scale_label = int(scale) if float(scale).is_integer() else scale
    return f"{prefix}_{start_year}-{end_year}_{scale_label}m.tif"


def raster_to_xarray(raster: Raster, band: Optional[str] = None, nodata: float = DEFAULT_NODATA) -> xr.DataArray:
    """Single band as a georeferenced DataArray, no-data filled with ``nodata``."""
    band = band or raster.band_names[0]
    values = raster.filled(band, nodata).astype(np.float32)

    transform = raster.grid.transform
    height, width = raster.grid.shape
    xs = transform.c + transform.a * (np.arange(width) + 0.5)
    ys = transform.f + transform.e * (np.arange(height) + 0.5)

    data_array = xr.DataArray(values, dims=('y', 'x'), coords={'y': ys, 'x': xs}, name=band)
    data_array = data_array.rio.write_crs(raster.grid.crs)
    data_array = data_array.rio.write_transform(transform)
    return data_array.rio.write_nodata(nodata)


def write_composite(
    raster: Raster,
    savepath: Union[str, Path],
    band: Optional[str] = None,
    nodata: float = DEFAULT_NODATA,
    geotiff_options: Optional[Dict[str, Any]] = None,
    tags: Optional[Dict[str, Any]] = None
) -> Path:
    """
    Write one band of ``raster`` to a GeoTIFF.

    Args:
        raster: Composite raster
        savepath: Output file
        band: Band to write (first band when None)
        nodata: Value written for no-data pixels
        geotiff_options: Creation options (compress, tiled, blockxsize, ...)
        tags: Dataset tags

    Returns:
        Path: Written file
    """
    savepath = Path(savepath)
    ensure_directory(savepath.parent)

    options = dict(geotiff_options or {})
    options.pop('nodata_value', None)
    data_array = raster_to_xarray(raster, band, nodata)
    data_array.rio.to_raster(savepath, driver='GTiff', dtype='float32',
                             tags={k: str(v) for k, v in (tags or {}).items()}, **options)
    logger.info(f"Saved composite to: {savepath}")
    return savepath


def write_time_series(statistics: Iterable[RegionStatistic], savepath: Union[str, Path],
                      value_name: str = 'Biomass') -> Path:
    """Write (time_start, value) rows to CSV; no-data rows have an empty value."""
    savepath = Path(savepath)
    ensure_directory(savepath.parent)
    statistics_to_frame(statistics, value_name).to_csv(savepath, index=False)
    logger.info(f"Saved time series to: {savepath}")
    return savepath


def export_outputs(
    composite: Raster,
    statistics: Iterable[RegionStatistic],
    output_dir: Union[str, Path],
    start_year: int,
    end_year: int,
    scale: float,
    nodata: float = DEFAULT_NODATA,
    geotiff_options: Optional[Dict[str, Any]] = None
) -> bool:
    """
    Export composite and time series, logging instead of raising on failure.

    Returns:
        bool: True if both files were written
    """
    output_dir = Path(output_dir)
    composite_path = output_dir / composite_filename(start_year, end_year, scale)
    series_path = output_dir / composite_filename(start_year, end_year, scale, prefix='biomass_time_series').replace('.tif', '.csv')

    try:
        write_composite(composite, composite_path, nodata=nodata, geotiff_options=geotiff_options,
                        tags={'DATE': f"{start_year}-{end_year}", 'SCALE': scale})
        write_time_series(statistics, series_path)
        return True
    except Exception as e:
        logger.error(f"Export failed: {e}")
        return False
