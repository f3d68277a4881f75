"""
End-to-end tests of the NPP8 biomass pipeline on synthetic MODIS-like series
"""

import copy

import geopandas as gpd
import numpy as np
import pytest

from npp_biomass.core.biomass_pipeline import BiomassEstimationPipeline
from npp_biomass.core.data_sources import (
    GROSS_PRODUCTIVITY_8DAY,
    NET_PRODUCTIVITY_ANNUAL,
    InMemorySeriesSource,
)
from npp_biomass.core.exceptions import ConfigurationError, PipelineStageError
from npp_biomass.core.raster import RasterSeries

EXPECTED_NPP8 = 10.0 / 460.0 * 200.0
EXPECTED_BIOMASS = EXPECTED_NPP8 * 2.5


@pytest.fixture
def net_series(make_raster):
    return RasterSeries([
        make_raster(200.0, "2023-01-01", band="Npp"),
        make_raster(200.0, "2024-01-01", band="Npp"),
    ])


@pytest.fixture
def source(eight_day_series, net_series):
    return InMemorySeriesSource({
        GROSS_PRODUCTIVITY_8DAY: eight_day_series([2022, 2023, 2024, 2025]),
        NET_PRODUCTIVITY_ANNUAL: net_series,
    })


@pytest.fixture
def boundaries_file(tmp_path, region):
    path = tmp_path / "boundaries.gpkg"
    gpd.GeoDataFrame(
        {"OBJECTID": [30, 31]},
        geometry=[region.geometry, region.geometry.buffer(10_000)],
        crs=region.crs,
    ).to_file(path, driver="GPKG")
    return path


def test_run_two_years(pipeline_config, eight_day_series, net_series, region):
    pipeline = BiomassEstimationPipeline(config=pipeline_config)

    result = pipeline.run(eight_day_series([2023, 2024]), net_series, region)

    assert len(result.npp8) == 92
    assert len(result.biomass) == 92
    assert len(result.time_series) == 92
    assert [s.value for s in result.time_series] == pytest.approx([EXPECTED_BIOMASS] * 92)
    assert [s.timestamp for s in result.time_series] == [r.timestamp for r in result.biomass]

    values, valid = result.composite.band_values()
    assert valid.sum() == 4
    np.testing.assert_allclose(values[valid], EXPECTED_BIOMASS)

    npp8_values, npp8_valid = result.npp8_composite.band_values()
    assert result.npp8_composite.band_names == ("NPP8",)
    assert npp8_valid.sum() == 4
    np.testing.assert_allclose(npp8_values[npp8_valid], EXPECTED_NPP8)

    frame = result.time_series_frame()
    assert len(frame) == 92
    assert frame["Biomass"].notna().all()


def test_run_full_pipeline(pipeline_config, source, boundaries_file, tmp_path):
    config = copy.deepcopy(pipeline_config)
    config["aoi"]["path"] = str(boundaries_file)
    config["output"] = {"export": True, "output_dir": str(tmp_path / "results")}

    result = BiomassEstimationPipeline(config=config, data_source=source).run_full_pipeline()

    assert len(result.time_series) == 92
    assert result.time_series[0].value == pytest.approx(EXPECTED_BIOMASS)
    assert (tmp_path / "results" / "mean_biomass_2023-2024_500m.tif").exists()
    assert (tmp_path / "results" / "biomass_time_series_2023-2024_500m.csv").exists()


def test_unmatched_region_aborts_before_fetching(pipeline_config, boundaries_file, tmp_path):
    config = copy.deepcopy(pipeline_config)
    config["aoi"].update({"path": str(boundaries_file), "attribute": "OBJECTID", "value": 99})

    with pytest.raises(PipelineStageError) as excinfo:
        BiomassEstimationPipeline(config=config, data_source=InMemorySeriesSource({})).run_full_pipeline()

    assert excinfo.value.stage == "region selection"
    assert isinstance(excinfo.value.cause, ConfigurationError)


def test_empty_period_fails_at_input_validation(pipeline_config, source, boundaries_file):
    config = copy.deepcopy(pipeline_config)
    config["aoi"]["path"] = str(boundaries_file)
    config["period"] = {"start_year": 2030, "end_year": 2031}

    with pytest.raises(PipelineStageError) as excinfo:
        BiomassEstimationPipeline(config=config, data_source=source).run_full_pipeline()

    assert excinfo.value.stage == "input validation"


def test_invalid_coefficient_rejected_up_front(pipeline_config):
    config = copy.deepcopy(pipeline_config)
    config["processing"]["biomass_coefficient"] = 0
    with pytest.raises(ConfigurationError):
        BiomassEstimationPipeline(config=config)


def test_reprojection_to_geographic_target(pipeline_config, eight_day_series, net_series, region):
    config = copy.deepcopy(pipeline_config)
    config["processing"]["target_crs"] = "EPSG:4326"

    result = BiomassEstimationPipeline(config=config).run(eight_day_series([2023]), net_series, region)

    assert result.biomass[0].grid.rasterio_crs.is_geographic
    assert len(result.time_series) == 46
    values = [s.value for s in result.time_series if s.value is not None]
    assert values
    # 46 samples in 2023 against an annual sum of 460
    assert values == pytest.approx([EXPECTED_BIOMASS] * len(values))
