"""
Tests of npp_biomass.core.regions
"""

import geopandas as gpd
import pytest
from shapely.geometry import Polygon, box

from npp_biomass.core.exceptions import ConfigurationError
from npp_biomass.core.regions import load_region, select_region


@pytest.fixture
def boundaries():
    return gpd.GeoDataFrame(
        {
            "OBJECTID": [10, 30, 31, 31],
            "NAME": ["a", "b", "c", "d"],
        },
        geometry=[box(0, 0, 1, 1), box(1, 0, 2, 1), box(2, 0, 3, 1), box(3, 0, 4, 1)],
        crs="EPSG:4326",
    )


def test_select_single_match(boundaries):
    region = select_region(boundaries, "OBJECTID", 30)
    assert region.geometry.equals(box(1, 0, 2, 1))
    assert region.attributes["NAME"] == "b"
    assert region.crs == "EPSG:4326"


@pytest.mark.parametrize(
    "attribute, value",
    (
        pytest.param("OBJECTID", 99, id="no-match"),
        pytest.param("OBJECTID", 31, id="ambiguous"),
        pytest.param("MISSING", 30, id="unknown-attribute"),
        pytest.param("NAME", 30, id="non-numeric-attribute"),
        pytest.param("OBJECTID", "30", id="non-integer-value"),
    ),
)
def test_select_invalid_filter(boundaries, attribute, value):
    with pytest.raises(ConfigurationError):
        select_region(boundaries, attribute, value)


def test_empty_geometry_rejected():
    features = gpd.GeoDataFrame({"OBJECTID": [30]}, geometry=[Polygon()], crs="EPSG:4326")
    with pytest.raises(ConfigurationError):
        select_region(features, "OBJECTID", 30)


def test_load_region_from_file(boundaries, tmp_path):
    path = tmp_path / "boundaries.geojson"
    boundaries.to_file(path, driver="GeoJSON")

    region = load_region(path, "OBJECTID", 10)
    assert region.geometry.equals(box(0, 0, 1, 1))


def test_load_region_missing_file(tmp_path):
    with pytest.raises(ConfigurationError):
        load_region(tmp_path / "missing.shp", "OBJECTID", 30)
