"""
Tests of npp_biomass.core.data_sources
"""

import threading
import time

import numpy as np
import pandas as pd
import pytest
import rasterio

from npp_biomass.core.data_sources import (
    GROSS_PRODUCTIVITY_8DAY,
    GeoTiffDirectorySource,
    InMemorySeriesSource,
    RasterSeriesSource,
    fetch_series,
    read_raster,
    timestamp_from_filename,
)
from npp_biomass.core.exceptions import DataSourceError, MissingMetadataError
from npp_biomass.core.raster import RasterSeries, TimeWindow


def write_geotiff(path, grid, value, tags=None, nodata=None, description=None):
    data = np.full(grid.shape, value, dtype="float32")
    with rasterio.open(
        path, "w", driver="GTiff", height=grid.height, width=grid.width, count=1,
        dtype="float32", crs=grid.crs, transform=grid.transform, nodata=nodata,
    ) as dst:
        dst.write(data, 1)
        if description:
            dst.set_band_description(1, description)
        if tags:
            dst.update_tags(**tags)


@pytest.mark.parametrize(
    "stem, expected",
    (
        pytest.param("gpp_2023-01-09", pd.Timestamp("2023-01-09"), id="iso"),
        pytest.param("MOD17A2H.A2023009.h17v04", pd.Timestamp("2023-01-09"), id="modis"),
        pytest.param("npp_20240101", pd.Timestamp("2024-01-01"), id="compact"),
        pytest.param("npp_annual", None, id="no-date"),
    ),
)
def test_timestamp_from_filename(stem, expected):
    assert timestamp_from_filename(stem) == expected


def test_read_raster_from_tag(tmp_path, grid):
    path = tmp_path / "gpp.tif"
    write_geotiff(path, grid, 12.0, tags={"TIME_START": "2023-05-01"}, nodata=-9999.0, description="Gpp")

    raster = read_raster(path)

    assert raster.band_names == ("Gpp",)
    assert raster.timestamp == pd.Timestamp("2023-05-01")
    assert raster.grid.shape == grid.shape
    assert np.all(raster.band_values()[0] == 12.0)


def test_read_raster_from_epoch_millis_tag(tmp_path, grid):
    path = tmp_path / "gpp.tif"
    write_geotiff(path, grid, 12.0, tags={"TIME_START": "1672531200000"})

    raster = read_raster(path, "Gpp")

    assert raster.timestamp == pd.Timestamp("2023-01-01")
    assert raster.band_names == ("Gpp",)


def test_read_raster_default_band_and_filename_date(tmp_path, grid):
    path = tmp_path / "npp_2023-01-01.tif"
    write_geotiff(path, grid, 200.0)

    raster = read_raster(path, default_band="Npp")

    assert raster.band_names == ("Npp",)
    assert raster.timestamp == pd.Timestamp("2023-01-01")


def test_read_raster_without_timestamp(tmp_path, grid):
    path = tmp_path / "npp.tif"
    write_geotiff(path, grid, 200.0)
    with pytest.raises(MissingMetadataError):
        read_raster(path)


def test_directory_source_filters_and_sorts(tmp_path, grid):
    series_dir = tmp_path / GROSS_PRODUCTIVITY_8DAY
    series_dir.mkdir()
    for date in ("2023-01-09", "2022-12-27", "2023-01-01"):
        write_geotiff(series_dir / f"gpp_{date}.tif", grid, 10.0)

    source = GeoTiffDirectorySource(tmp_path, band_names={GROSS_PRODUCTIVITY_8DAY: "Gpp"})
    series = source.fetch(GROSS_PRODUCTIVITY_8DAY, TimeWindow.from_years(2023, 2023))

    assert [r.timestamp for r in series] == [pd.Timestamp("2023-01-01"), pd.Timestamp("2023-01-09")]
    assert series.band_names == ("Gpp",)


def test_directory_source_unknown_series(tmp_path):
    with pytest.raises(DataSourceError):
        GeoTiffDirectorySource(tmp_path).fetch("missing", TimeWindow.from_years(2023, 2023))


def test_in_memory_source(make_raster):
    source = InMemorySeriesSource({"s": RasterSeries([make_raster(1.0, "2022-01-01"), make_raster(1.0, "2023-01-01")])})
    assert len(source.fetch("s", TimeWindow.from_years(2023, 2023))) == 1
    with pytest.raises(DataSourceError):
        source.fetch("other", TimeWindow.from_years(2023, 2023))


class SlowSource(RasterSeriesSource):
    def fetch(self, name, window):
        time.sleep(2)
        return RasterSeries()


class BrokenSource(RasterSeriesSource):
    def fetch(self, name, window):
        raise OSError("connection reset")


def test_fetch_timeout():
    with pytest.raises(DataSourceError, match="timed out"):
        fetch_series(SlowSource(), "s", TimeWindow.from_years(2023, 2023), timeout=0.1)


def test_fetch_wraps_source_failure():
    with pytest.raises(DataSourceError, match="connection reset"):
        fetch_series(BrokenSource(), "s", TimeWindow.from_years(2023, 2023))


def test_fetch_timeout_leaves_daemon_thread():
    with pytest.raises(DataSourceError, match="timed out"):
        fetch_series(SlowSource(), "slow", TimeWindow.from_years(2023, 2023), timeout=0.1)

    lingering = [t for t in threading.enumerate() if t.name == "fetch-slow"]
    assert lingering
    assert all(t.daemon for t in lingering)


def test_fetch_returns_series_within_timeout(make_raster):
    source = InMemorySeriesSource({"s": RasterSeries([make_raster(1.0, "2023-01-01")])})
    series = fetch_series(source, "s", TimeWindow.from_years(2023, 2023), timeout=5)
    assert len(series) == 1
