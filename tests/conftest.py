"""
Re-useable fixtures etc. for tests

See https://docs.pytest.org/en/7.1.x/reference/fixtures.html#conftest-py-sharing-fixtures-across-multiple-files
"""

import numpy as np
import pandas as pd
import pytest
from rasterio.transform import from_origin
from shapely.geometry import box

from npp_biomass.core.raster import TIME_START, Raster, RasterGrid, RasterSeries, Region

# 4x4 grid of 500 m pixels in UTM zone 30N
GRID_CRS = "EPSG:32630"
GRID_WEST = 500_000.0
GRID_NORTH = 4_500_000.0
GRID_RESOLUTION = 500.0


@pytest.fixture
def grid():
    return RasterGrid(
        crs=GRID_CRS,
        transform=from_origin(GRID_WEST, GRID_NORTH, GRID_RESOLUTION, GRID_RESOLUTION),
        width=4,
        height=4,
    )


@pytest.fixture
def make_raster(grid):
    """Factory for single-band rasters on ``grid``"""

    def _make(value, timestamp=None, band="Gpp", valid=True, raster_grid=None):
        raster_grid = raster_grid or grid
        data = np.broadcast_to(np.asarray(value, dtype=float), raster_grid.shape)
        properties = {} if timestamp is None else {TIME_START: pd.Timestamp(timestamp)}
        return Raster(data, np.broadcast_to(valid, raster_grid.shape), (band,), raster_grid, properties)

    return _make


@pytest.fixture
def eight_day_series(make_raster):
    """Factory for 46 rasters per year at 8-day intervals from Jan 1"""

    def _make(years, value=10.0, band="Gpp"):
        rasters = []
        for year in years:
            start = pd.Timestamp(year, 1, 1)
            for i in range(46):
                rasters.append(make_raster(value, start + pd.Timedelta(days=8 * i), band=band))
        return RasterSeries(rasters)

    return _make


@pytest.fixture
def region():
    """Region covering the 2x2 central pixels of ``grid``"""
    geometry = box(GRID_WEST + 400, GRID_NORTH - 1600, GRID_WEST + 1600, GRID_NORTH - 400)
    return Region(geometry=geometry, crs=GRID_CRS, attributes={"OBJECTID": 30})


@pytest.fixture
def distant_region():
    geometry = box(GRID_WEST + 100_000, GRID_NORTH - 100_000, GRID_WEST + 101_000, GRID_NORTH - 99_000)
    return Region(geometry=geometry, crs=GRID_CRS, attributes={"OBJECTID": 99})


@pytest.fixture
def pipeline_config():
    return {
        "aoi": {"attribute": "OBJECTID", "value": 30},
        "period": {"start_year": 2023, "end_year": 2024},
        "data": {
            "gross_productivity": {"series": "gross-productivity-8day", "band": "Gpp"},
            "net_productivity": {"series": "net-productivity-annual", "band": "Npp"},
        },
        "processing": {
            "target_crs": GRID_CRS,
            "target_scale": 500,
            "resampling": "nearest",
            "biomass_coefficient": 2.5,
        },
        "compute": {"scheduler": "synchronous"},
        "output": {"export": False},
    }
