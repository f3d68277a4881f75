"""
Area-of-interest selection from vector boundaries.

The region is chosen by exact equality of one integer attribute. The filter
must match exactly one feature: no match and several matches are both
configuration errors, the first match is never taken silently.

Author: Diego Bengochea
"""

from numbers import Integral
from pathlib import Path
from typing import Optional, Union

import geopandas as gpd
import pandas as pd

from shared_utils import get_logger, validate_file_exists

from .exceptions import ConfigurationError
from .raster import Region

logger = get_logger('regions')


def select_region(features: gpd.GeoDataFrame, attribute: str, value: int) -> Region:
    """
    Resolve the single feature whose ``attribute`` equals ``value``.

    Args:
        features: Candidate boundaries
        attribute: Integer attribute to filter on (e.g. OBJECTID)
        value: Required attribute value

    Returns:
        Region: Geometry, CRS and attributes of the matching feature

    Raises:
        ConfigurationError: Unknown or non-integer attribute, or not exactly one match
    """
    if attribute not in features.columns:
        raise ConfigurationError(f"Attribute '{attribute}' not found in boundaries, available: {list(features.columns)}")
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise ConfigurationError(f"Region filter value must be an integer, got {value!r}")
    if not pd.api.types.is_numeric_dtype(features[attribute]):
        raise ConfigurationError(f"Attribute '{attribute}' is not numeric (dtype {features[attribute].dtype})")

    matches = features[features[attribute] == value]

    if len(matches) == 0:
        raise ConfigurationError(f"No boundary feature matches {attribute} == {value}")
    if len(matches) > 1:
        raise ConfigurationError(f"Ambiguous region filter: {len(matches)} features match {attribute} == {value}")

    feature = matches.iloc[0]
    geometry = feature[features.geometry.name]
    if geometry is None or geometry.is_empty:
        raise ConfigurationError(f"Feature matching {attribute} == {value} has an empty geometry")

    attributes = {key: val for key, val in feature.items() if key != features.geometry.name}
    crs = features.crs.to_string() if features.crs is not None else None

    logger.info(f"Selected region {attribute} == {value} ({geometry.geom_type}, CRS {crs})")
    return Region(geometry=geometry, crs=crs, attributes=attributes)


def load_region(path: Union[str, Path], attribute: str, value: int, layer: Optional[str] = None) -> Region:
    """Read boundaries with geopandas and select the region."""
    try:
        path = validate_file_exists(path, "region boundaries")
    except FileNotFoundError as e:
        raise ConfigurationError(str(e)) from e

    features = gpd.read_file(path, layer=layer) if layer else gpd.read_file(path)
    logger.info(f"Loaded {len(features)} boundary features from {path}")
    return select_region(features, attribute, value)
