"""
Tests of npp_biomass.core.region_reduction
"""

import numpy as np
import pandas as pd
import pytest

from npp_biomass.core.exceptions import EmptySeriesError, SpatialMismatchError
from npp_biomass.core.raster import (
    Cardinality,
    RasterSeries,
    ReductionSpec,
    Reducer,
    RegionStatistic,
)
from npp_biomass.core.region_reduction import RegionReducer, statistics_to_frame


def test_region_mask_selects_pixel_centres(grid, region):
    mask = RegionReducer().region_mask(region, grid)
    assert mask.sum() == 4
    assert mask[1:3, 1:3].all()


def test_mean_composite_is_clipped(make_raster, grid, region):
    series = RasterSeries([
        make_raster(2.0, "2023-01-01", band="Biomass"),
        make_raster(4.0, "2023-01-09", band="Biomass"),
    ])
    composite = RegionReducer().mean_composite(series, region)

    values, valid = composite.band_values()
    assert composite.grid.shape == grid.shape
    assert valid.sum() == 4
    assert np.all(values[valid] == 3.0)


def test_mean_composite_of_empty_series_raises(region):
    with pytest.raises(EmptySeriesError):
        RegionReducer().mean_composite(RasterSeries(), region)


def test_series_by_region_length_and_order(make_raster, region):
    series = RasterSeries([
        make_raster(float(i), pd.Timestamp("2023-01-01") + pd.Timedelta(days=8 * i), band="Biomass")
        for i in range(5)
    ])
    statistics = RegionReducer().series_by_region(series, region, "Biomass", Reducer.MEAN, 500)

    assert len(statistics) == 5
    assert [s.timestamp for s in statistics] == [r.timestamp for r in series]
    assert [s.value for s in statistics] == pytest.approx([0.0, 1.0, 2.0, 3.0, 4.0])


def test_no_valid_pixels_gives_nodata_entry(make_raster, grid, region):
    series = RasterSeries([
        make_raster(1.0, "2023-01-01", band="Biomass"),
        make_raster(1.0, "2023-01-09", band="Biomass", valid=np.zeros(grid.shape, dtype=bool)),
    ])
    statistics = RegionReducer().series_by_region(series, region, "Biomass")

    assert statistics[0].value == pytest.approx(1.0)
    assert statistics[1].is_nodata


def test_region_outside_footprint_warns(make_raster, distant_region):
    series = RasterSeries([make_raster(1.0, "2023-01-01", band="Biomass")])
    reducer = RegionReducer()

    with pytest.warns(SpatialMismatchError):
        statistics = reducer.series_by_region(series, distant_region, "Biomass")
    with pytest.warns(SpatialMismatchError):
        composite = reducer.mean_composite(series, distant_region)

    assert statistics == (RegionStatistic(pd.Timestamp("2023-01-01"), None),)
    assert not composite.valid.any()


def test_reduce_raster_at_native_and_coarser_scale(make_raster, grid, region):
    values = np.arange(16, dtype=float).reshape(grid.shape)
    raster = make_raster(values, "2023-01-01", band="Biomass")
    reducer = RegionReducer()

    assert reducer.reduce_raster(raster, region, "Biomass", Reducer.MEAN, 500) == pytest.approx(7.5)
    assert reducer.reduce_raster(raster, region, "Biomass", Reducer.SUM, 500) == pytest.approx(30.0)

    # 1000 m pixels average 2x2 blocks and all four block centres fall in the region
    assert reducer.reduce_raster(raster, region, "Biomass", Reducer.MEAN, 1000) == pytest.approx(7.5)
    assert reducer.reduce_raster(raster, region, "Biomass", Reducer.SUM, 1000) == pytest.approx(30.0)


def test_reduce_region_cardinality(make_raster, region):
    series = RasterSeries([
        make_raster(2.0, "2023-01-01", band="Biomass"),
        make_raster(4.0, "2023-01-09", band="Biomass"),
    ])
    reducer = RegionReducer()

    single = reducer.reduce_region(series, ReductionSpec(Reducer.MEAN, "Biomass", region, 500, Cardinality.SINGLE))
    per_element = reducer.reduce_region(series, ReductionSpec(Reducer.MEAN, "Biomass", region, 500))

    assert single.timestamp is None
    assert single.value == pytest.approx(3.0)
    assert len(per_element) == 2


def test_statistics_to_frame():
    frame = statistics_to_frame([
        RegionStatistic(pd.Timestamp("2023-01-01"), 1.5),
        RegionStatistic(pd.Timestamp("2023-01-09"), None),
    ])
    assert list(frame.columns) == ["time_start", "Biomass"]
    assert frame["Biomass"].isna().tolist() == [False, True]
