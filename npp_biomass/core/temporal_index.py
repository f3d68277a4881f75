"""
Calendar-year indexing of raster timestamps.

Every raster carries the instant it represents in its ``time_start``
property. The year used to align 8-day and annual productivity products is
always the calendar year of that instant (Jan 1 to Dec 31, inclusive).

Author: Diego Bengochea
"""

import datetime
import math
from typing import Any, List

import numpy as np
import pandas as pd

from .exceptions import MissingMetadataError
from .raster import TIME_START, Raster, RasterSeries, TimeWindow


def _is_epoch_millis(text: str) -> bool:
    digits = text.strip().lstrip('-')
    return digits.isdigit() and len(digits) > 8


def parse_timestamp(value: Any) -> pd.Timestamp:
    """
    Normalise a timestamp property to a ``pandas.Timestamp``.

    Integers, floats and all-digit strings longer than a YYYYMMDD date
    (GeoTIFF tags) are epoch milliseconds, the raster catalog convention;
    dates, datetimes, numpy datetimes and date strings are parsed directly.

    Raises:
        MissingMetadataError: If the value is missing or cannot be parsed
    """
    if value is None or isinstance(value, bool):
        raise MissingMetadataError(f"Unusable timestamp value: {value!r}")

    try:
        if isinstance(value, (int, np.integer)):
            timestamp = pd.Timestamp(int(value), unit='ms')
        elif isinstance(value, (float, np.floating)):
            if not math.isfinite(value):
                raise MissingMetadataError(f"Unusable timestamp value: {value!r}")
            timestamp = pd.Timestamp(float(value), unit='ms')
        elif isinstance(value, str) and _is_epoch_millis(value):
            timestamp = pd.Timestamp(int(value.strip()), unit='ms')
        else:
            timestamp = pd.Timestamp(value)
    except (ValueError, TypeError, OverflowError) as e:
        raise MissingMetadataError(f"Cannot parse timestamp {value!r}: {e}") from e

    if pd.isna(timestamp):
        raise MissingMetadataError(f"Unusable timestamp value: {value!r}")
    return timestamp


class TemporalIndex:
    """Resolves the enclosing calendar year of rasters and the bounds of years."""

    def __init__(self, property_name: str = TIME_START):
        self.property_name = property_name

    def timestamp_of(self, raster: Raster) -> pd.Timestamp:
        if self.property_name not in raster.properties:
            raise MissingMetadataError(f"Raster has no '{self.property_name}' property: {raster!r}")
        return parse_timestamp(raster.properties[self.property_name])

    def year_of(self, raster: Raster) -> int:
        return int(self.timestamp_of(raster).year)

    @staticmethod
    def year_bounds(year: int) -> TimeWindow:
        return TimeWindow(datetime.date(year, 1, 1), datetime.date(year, 12, 31))

    def in_window(self, raster: Raster, window: TimeWindow) -> bool:
        return window.contains(self.timestamp_of(raster))

    def filter(self, series: RasterSeries, window: TimeWindow) -> RasterSeries:
        """Members of ``series`` whose timestamp lies inside ``window`` (inclusive)."""
        return series.filter(lambda raster: self.in_window(raster, window))

    def years(self, series: RasterSeries) -> List[int]:
        return sorted({self.year_of(raster) for raster in series})
