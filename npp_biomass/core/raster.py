"""
Value types shared by every stage of the NPP8 biomass pipeline.

Rasters are immutable: pixel values and validity flags are copied on
construction and flagged read-only, and every operation returns a new
instance. No-data is carried by an explicit boolean ``valid`` array next to
the values; NaN or sentinel values are only accepted at the I/O boundary
(``Raster.from_array``) and are converted to invalid pixels there.

Author: Diego Bengochea
"""

import datetime
import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping, NamedTuple, Optional, Tuple, Union

import geopandas as gpd
import numpy as np
import pandas as pd
from rasterio.crs import CRS
from rasterio.transform import Affine, array_bounds, from_origin
from shapely.geometry.base import BaseGeometry

from .exceptions import ConfigurationError

# Property holding the instant (or interval start) a raster represents
TIME_START = 'time_start'


class Reducer(str, Enum):
    """Commutative aggregation applied temporally or spatially."""
    SUM = 'sum'
    MEAN = 'mean'


class Cardinality(str, Enum):
    """Output cardinality of a regional reduction."""
    SINGLE = 'single'
    PER_ELEMENT = 'per_element'


@dataclass(frozen=True)
class RasterGrid:
    """Spatial reference of a raster: CRS, affine transform and pixel dimensions."""

    crs: str
    transform: Affine
    width: int
    height: int

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.height, self.width)

    @property
    def resolution(self) -> Tuple[float, float]:
        return (abs(self.transform.a), abs(self.transform.e))

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """(west, south, east, north) in CRS units."""
        return array_bounds(self.height, self.width, self.transform)

    @property
    def rasterio_crs(self) -> CRS:
        return CRS.from_user_input(self.crs)

    def aligned_with(self, other: 'RasterGrid', precision: float = 1e-9) -> bool:
        """True when both grids address exactly the same pixels."""
        return (
            self.shape == other.shape
            and self.rasterio_crs == other.rasterio_crs
            and self.transform.almost_equals(other.transform, precision=precision)
        )

    @classmethod
    def from_bounds(cls, bounds: Tuple[float, float, float, float], crs: Any, resolution: float) -> 'RasterGrid':
        """Grid anchored at the north-west corner of ``bounds`` with square pixels."""
        if resolution <= 0:
            raise ConfigurationError(f"Grid resolution must be positive, got {resolution}")
        west, south, east, north = bounds
        width = max(1, int(math.ceil((east - west) / resolution - 1e-9)))
        height = max(1, int(math.ceil((north - south) / resolution - 1e-9)))
        return cls(
            crs=CRS.from_user_input(crs).to_string(),
            transform=from_origin(west, north, resolution, resolution),
            width=width,
            height=height,
        )


@dataclass(frozen=True, eq=False)
class Raster:
    """
    Immutable multi-band raster with explicit per-pixel validity.

    Attributes:
        data: float64 array of shape (bands, rows, cols)
        valid: boolean array of the same shape, False marks no-data
        band_names: one name per band
        grid: spatial reference shared by all bands
        properties: read-only scalar/temporal metadata (``time_start`` et al.)
    """

    data: np.ndarray
    valid: np.ndarray
    band_names: Tuple[str, ...]
    grid: RasterGrid
    properties: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        data = np.array(self.data, dtype=np.float64)
        if data.ndim == 2:
            data = data[np.newaxis]
        if data.ndim != 3:
            raise ValueError(f"Raster data must be 2D or 3D, got shape {data.shape}")

        valid = np.array(self.valid, dtype=bool)
        if valid.ndim == 2:
            valid = valid[np.newaxis]
        valid = np.broadcast_to(valid, data.shape).copy()

        if data.shape[1:] != self.grid.shape:
            raise ValueError(f"Raster shape {data.shape[1:]} does not match grid shape {self.grid.shape}")

        band_names = tuple(str(name) for name in self.band_names)
        if len(band_names) != data.shape[0]:
            raise ValueError(f"Expected {data.shape[0]} band names, got {band_names}")
        if len(set(band_names)) != len(band_names) or not all(band_names):
            raise ValueError(f"Band names must be unique and non-empty: {band_names}")

        # Non-finite values can only mean "undefined"
        valid &= np.isfinite(data)
        data[~valid] = 0.0

        data.flags.writeable = False
        valid.flags.writeable = False

        object.__setattr__(self, 'data', data)
        object.__setattr__(self, 'valid', valid)
        object.__setattr__(self, 'band_names', band_names)
        object.__setattr__(self, 'properties', MappingProxyType(dict(self.properties)))

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def full(cls, grid: RasterGrid, value: float, band_names: Iterable[str],
             properties: Optional[Mapping[str, Any]] = None) -> 'Raster':
        band_names = tuple(band_names)
        data = np.full((len(band_names),) + grid.shape, value, dtype=np.float64)
        return cls(data, np.ones_like(data, dtype=bool), band_names, grid, properties or {})

    @classmethod
    def nodata(cls, grid: RasterGrid, band_names: Iterable[str],
               properties: Optional[Mapping[str, Any]] = None) -> 'Raster':
        band_names = tuple(band_names)
        shape = (len(band_names),) + grid.shape
        return cls(np.zeros(shape), np.zeros(shape, dtype=bool), band_names, grid, properties or {})

    @classmethod
    def from_array(cls, array: np.ndarray, grid: RasterGrid, band_names: Iterable[str],
                   nodata: Optional[float] = None,
                   properties: Optional[Mapping[str, Any]] = None) -> 'Raster':
        """Build a raster from I/O data where NaN or ``nodata`` marks missing pixels."""
        array = np.asarray(array, dtype=np.float64)
        valid = np.isfinite(array)
        if nodata is not None and not (isinstance(nodata, float) and math.isnan(nodata)):
            valid &= array != nodata
        return cls(array, valid, tuple(band_names), grid, properties or {})

    # ------------------------------------------------------------------
    # Band access
    # ------------------------------------------------------------------

    @property
    def timestamp(self) -> Any:
        return self.properties.get(TIME_START)

    def band_index(self, band: str) -> int:
        try:
            return self.band_names.index(band)
        except ValueError:
            raise KeyError(f"Band '{band}' not found, available bands: {list(self.band_names)}")

    def band_values(self, band: Optional[str] = None) -> Tuple[np.ndarray, np.ndarray]:
        """(values, valid) 2D arrays for ``band`` (the only band when None)."""
        index = self._resolve_band(band)
        return self.data[index], self.valid[index]

    def select(self, band: str) -> 'Raster':
        index = self.band_index(band)
        return Raster(self.data[index:index + 1], self.valid[index:index + 1], (band,), self.grid, self.properties)

    def rename(self, *band_names: str) -> 'Raster':
        return Raster(self.data, self.valid, band_names, self.grid, self.properties)

    def masked(self, band: Optional[str] = None) -> np.ma.MaskedArray:
        values, valid = self.band_values(band)
        return np.ma.MaskedArray(values, mask=~valid)

    def filled(self, band: Optional[str] = None, fill_value: float = np.nan) -> np.ndarray:
        values, valid = self.band_values(band)
        return np.where(valid, values, fill_value)

    # ------------------------------------------------------------------
    # Derivation
    # ------------------------------------------------------------------

    def with_values(self, data: np.ndarray, valid: np.ndarray,
                    band_names: Optional[Iterable[str]] = None,
                    properties: Optional[Mapping[str, Any]] = None) -> 'Raster':
        """
        New raster on the same grid. Properties are NOT inherited unless
        passed explicitly; use ``copy_properties`` to carry metadata over.
        """
        names = tuple(band_names) if band_names is not None else self.band_names
        return Raster(data, valid, names, self.grid, properties or {})

    def with_properties(self, **properties: Any) -> 'Raster':
        merged = dict(self.properties)
        merged.update(properties)
        return Raster(self.data, self.valid, self.band_names, self.grid, merged)

    def copy_properties(self, source: 'Raster', keys: Optional[Iterable[str]] = None) -> 'Raster':
        """Copy ``keys`` (all when None) from ``source``; absent keys are skipped."""
        if keys is None:
            copied = dict(source.properties)
        else:
            copied = {key: source.properties[key] for key in keys if key in source.properties}
        return self.with_properties(**copied)

    def _resolve_band(self, band: Optional[str]) -> int:
        if band is not None:
            return self.band_index(band)
        if len(self.band_names) != 1:
            raise ValueError(f"Band name required for multi-band raster {list(self.band_names)}")
        return 0

    def __reduce__(self):
        # MappingProxyType does not pickle; rebuild from plain values
        return (Raster, (np.array(self.data), np.array(self.valid), self.band_names, self.grid, dict(self.properties)))

    def __repr__(self) -> str:
        return (f"Raster(bands={list(self.band_names)}, shape={self.grid.shape}, "
                f"crs={self.grid.crs}, {TIME_START}={self.timestamp!r})")


class RasterSeries(Sequence):
    """
    Ordered, finite, immutable sequence of rasters sharing one band schema.
    """

    def __init__(self, rasters: Iterable[Raster] = ()):
        rasters = tuple(rasters)
        for raster in rasters:
            if not isinstance(raster, Raster):
                raise TypeError(f"RasterSeries accepts Raster instances, got {type(raster).__name__}")
        if rasters:
            schema = rasters[0].band_names
            for raster in rasters[1:]:
                if raster.band_names != schema:
                    raise ValueError(f"Band schema mismatch in series: {schema} vs {raster.band_names}")
        self._rasters = rasters

    @property
    def band_names(self) -> Tuple[str, ...]:
        return self._rasters[0].band_names if self._rasters else ()

    def filter(self, predicate: Callable[[Raster], bool]) -> 'RasterSeries':
        return RasterSeries(r for r in self._rasters if predicate(r))

    def select(self, band: str) -> 'RasterSeries':
        return RasterSeries(r.select(band) for r in self._rasters)

    def __getitem__(self, item):
        if isinstance(item, slice):
            return RasterSeries(self._rasters[item])
        return self._rasters[item]

    def __len__(self) -> int:
        return len(self._rasters)

    def __repr__(self) -> str:
        return f"RasterSeries(n={len(self._rasters)}, bands={list(self.band_names)})"


@dataclass(frozen=True)
class TimeWindow:
    """Closed interval [start, end] of calendar dates."""

    start: datetime.date
    end: datetime.date

    def __post_init__(self):
        start, end = _as_date(self.start), _as_date(self.end)
        if start > end:
            raise ConfigurationError(f"Time window start {start} is after end {end}")
        object.__setattr__(self, 'start', start)
        object.__setattr__(self, 'end', end)

    @classmethod
    def from_years(cls, start_year: int, end_year: int) -> 'TimeWindow':
        """Jan 1 of ``start_year`` through Dec 31 of ``end_year``."""
        if start_year > end_year:
            raise ConfigurationError(f"Start year {start_year} is after end year {end_year}")
        return cls(datetime.date(start_year, 1, 1), datetime.date(end_year, 12, 31))

    def contains(self, timestamp: Any) -> bool:
        return self.start <= _as_date(timestamp) <= self.end


def _as_date(value: Any) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    return pd.Timestamp(value).date()


@dataclass(frozen=True)
class Region:
    """A single polygonal area of interest with its attributes."""

    geometry: BaseGeometry
    crs: Optional[str] = None
    attributes: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, 'attributes', MappingProxyType(dict(self.attributes)))

    def geometry_in(self, crs: Any) -> BaseGeometry:
        """Region geometry expressed in ``crs`` (unchanged when CRS is unknown or equal)."""
        if self.crs is None or CRS.from_user_input(self.crs) == CRS.from_user_input(crs):
            return self.geometry
        return gpd.GeoSeries([self.geometry], crs=self.crs).to_crs(crs).iloc[0]


@dataclass(frozen=True)
class ReductionSpec:
    """Parameters of a spatial reduction of one band over a region."""

    reducer: Reducer
    band: str
    region: Region
    scale: float
    cardinality: Cardinality = Cardinality.PER_ELEMENT

    def __post_init__(self):
        object.__setattr__(self, 'reducer', Reducer(self.reducer))
        object.__setattr__(self, 'cardinality', Cardinality(self.cardinality))
        if not self.scale or self.scale <= 0:
            raise ConfigurationError(f"Reduction scale must be positive, got {self.scale}")


class RegionStatistic(NamedTuple):
    """One regional scalar; ``value`` is None for a no-data result."""

    timestamp: Any
    value: Optional[float]

    @property
    def is_nodata(self) -> bool:
        return self.value is None


RasterLike = Union[Raster, RasterSeries]
