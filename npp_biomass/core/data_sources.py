"""
Raster series data sources.

The pipeline never reaches into a catalog directly: named series are fetched
through a ``RasterSeriesSource`` injected into the orchestrator. Two sources
are provided, an in-memory one (tests, notebooks) and a GeoTIFF directory
layout with one subdirectory per named series:

    <root>/gross-productivity-8day/*.tif
    <root>/net-productivity-annual/*.tif

Retrieval is the only potentially slow step, so ``fetch_series`` bounds it
with a timeout.

Author: Diego Bengochea
"""

import datetime
import re
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

import numpy as np
import pandas as pd
import rasterio

from shared_utils import find_files, get_logger

from .exceptions import BiomassPipelineError, DataSourceError, MissingMetadataError
from .raster import TIME_START, Raster, RasterGrid, RasterSeries, TimeWindow
from .temporal_index import TemporalIndex, parse_timestamp

GROSS_PRODUCTIVITY_8DAY = 'gross-productivity-8day'
NET_PRODUCTIVITY_ANNUAL = 'net-productivity-annual'

# Filename date patterns, tried in order
_ISO_DATE = re.compile(r'(\d{4})-(\d{2})-(\d{2})')
_MODIS_DATE = re.compile(r'A(\d{4})(\d{3})')
_COMPACT_DATE = re.compile(r'(?<!\d)(\d{4})(\d{2})(\d{2})(?!\d)')

logger = get_logger('data_sources')


class RasterSeriesSource(ABC):
    """Provider of named raster time series."""

    @abstractmethod
    def fetch(self, name: str, window: TimeWindow) -> RasterSeries:
        """Rasters of series ``name`` whose timestamp lies in ``window``, in time order."""


class InMemorySeriesSource(RasterSeriesSource):
    """Serves already-resident series, filtered by time window."""

    def __init__(self, series: Mapping[str, RasterSeries], temporal_index: Optional[TemporalIndex] = None):
        self.series = dict(series)
        self.temporal_index = temporal_index or TemporalIndex()

    def fetch(self, name: str, window: TimeWindow) -> RasterSeries:
        if name not in self.series:
            raise DataSourceError(f"Unknown series '{name}', available: {sorted(self.series)}")
        return self.temporal_index.filter(self.series[name], window)


def timestamp_from_filename(stem: str) -> Optional[pd.Timestamp]:
    """Date encoded in a file stem (YYYY-MM-DD, MODIS AYYYYDDD or YYYYMMDD)."""
    match = _ISO_DATE.search(stem)
    if match:
        return pd.Timestamp(int(match.group(1)), int(match.group(2)), int(match.group(3)))

    match = _MODIS_DATE.search(stem)
    if match:
        year, day_of_year = int(match.group(1)), int(match.group(2))
        return pd.Timestamp(datetime.date(year, 1, 1) + datetime.timedelta(days=day_of_year - 1))

    match = _COMPACT_DATE.search(stem)
    if match:
        try:
            return pd.Timestamp(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        except ValueError:
            return None
    return None


def read_raster(path: Union[str, Path], default_band: Optional[str] = None) -> Raster:
    """
    Read a GeoTIFF into a Raster.

    The timestamp comes from the TIME_START tag, else the DATE tag, else the
    filename. Band names come from band descriptions, else ``default_band``
    for single-band files, else b1..bn.

    Raises:
        MissingMetadataError: If no timestamp can be determined
        DataSourceError: If the file has no CRS
    """
    path = Path(path)
    with rasterio.open(path) as src:
        if src.crs is None:
            raise DataSourceError(f"Raster has no CRS: {path}")

        data = src.read().astype(np.float64)
        grid = RasterGrid(crs=src.crs.to_string(), transform=src.transform, width=src.width, height=src.height)
        tags = src.tags()
        nodata = src.nodata

        if all(src.descriptions):
            band_names = list(src.descriptions)
        elif src.count == 1 and default_band:
            band_names = [default_band]
        else:
            band_names = [f"b{i + 1}" for i in range(src.count)]

    tag_value = tags.get('TIME_START') or tags.get('DATE')
    timestamp = parse_timestamp(tag_value) if tag_value else timestamp_from_filename(path.stem)
    if timestamp is None:
        raise MissingMetadataError(f"No TIME_START/DATE tag or filename date in {path}")

    return Raster.from_array(data, grid, band_names, nodata=nodata,
                             properties={TIME_START: timestamp, 'source': str(path)})


class GeoTiffDirectorySource(RasterSeriesSource):
    """Reads named series from ``<root>/<name>/*.tif``."""

    def __init__(self, root: Union[str, Path], band_names: Optional[Mapping[str, str]] = None,
                 temporal_index: Optional[TemporalIndex] = None):
        """
        Args:
            root: Directory holding one subdirectory per series
            band_names: Default band name per series for files without band descriptions
            temporal_index: Timestamp resolution
        """
        self.root = Path(root)
        self.band_names: Dict[str, str] = dict(band_names or {})
        self.temporal_index = temporal_index or TemporalIndex()

    def fetch(self, name: str, window: TimeWindow) -> RasterSeries:
        directory = self.root / name
        if not directory.is_dir():
            raise DataSourceError(f"Series directory not found: {directory}")

        files = find_files(directory, "*", recursive=False, file_types=['.tif', '.tiff'])
        rasters = []
        for path in files:
            raster = read_raster(path, self.band_names.get(name))
            if self.temporal_index.in_window(raster, window):
                rasters.append(raster)

        rasters.sort(key=self.temporal_index.timestamp_of)
        logger.info(f"Read {len(rasters)} rasters of '{name}' between {window.start} and {window.end}")
        return RasterSeries(rasters)


def fetch_series(source: RasterSeriesSource, name: str, window: TimeWindow,
                 timeout: Optional[float] = None) -> RasterSeries:
    """
    Fetch a named series, bounded by ``timeout`` seconds.

    The fetch runs in a daemon thread. On timeout the thread is abandoned and
    does not keep the interpreter alive at exit.

    Raises:
        DataSourceError: On timeout or any failure of the source
    """
    outcome: Dict[str, object] = {}

    def worker():
        try:
            outcome['series'] = source.fetch(name, window)
        except Exception as e:
            outcome['error'] = e

    thread = threading.Thread(target=worker, name=f"fetch-{name}", daemon=True)
    thread.start()
    thread.join(timeout)

    if thread.is_alive():
        raise DataSourceError(f"Fetching '{name}' timed out after {timeout} s")

    error = outcome.get('error')
    if isinstance(error, BiomassPipelineError):
        raise error
    if error is not None:
        raise DataSourceError(f"Fetching '{name}' failed: {error}") from error
    return outcome['series']
