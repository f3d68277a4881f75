"""
Derivation of 8-day net primary productivity (NPP8).

Annual NPP is only available as a yearly product while GPP is sampled every
8 days. NPP8 redistributes the annual NPP over the year in proportion to each
8-day GPP sample:

    NPP8 = (GPP8 / sum(GPP of year)) * mean(NPP of year)

Pixels with zero or undefined annual GPP (water, barren land) have no
defined ratio and come out as no-data, never as inf or NaN.

Author: Diego Bengochea
"""

from functools import partial
from typing import Dict, Optional, Tuple

import numpy as np

from shared_utils import get_logger

from .annual_aggregation import AnnualAggregator
from .exceptions import GridMismatchError
from .parallel import map_rasters
from .raster import Raster, RasterSeries, Reducer
from .temporal_index import TemporalIndex

NPP8_BAND = 'NPP8'


def _require_single_band(series: RasterSeries, label: str) -> RasterSeries:
    if len(series) and len(series.band_names) != 1:
        raise ValueError(f"{label} series must be single-band, got bands {list(series.band_names)}")
    return series


def scale_gpp8(g: Raster, gpp_year: Raster, npp_year: Raster, carried_property: str) -> Raster:
    """
    Scale one 8-day GPP raster by its year's NPP/GPP ratio.

    Args:
        g: 8-day GPP raster
        gpp_year: Annual GPP sum on the same grid
        npp_year: Annual NPP mean on the same grid
        carried_property: Timestamp property copied from ``g``

    Returns:
        Raster: single ``NPP8`` band, timestamp copied from ``g``
    """
    for annual in (gpp_year, npp_year):
        if not g.grid.aligned_with(annual.grid):
            raise GridMismatchError(
                f"Annual aggregate grid {annual.grid} does not match 8-day raster grid {g.grid}"
            )

    g_values, g_valid = g.band_values()
    gpp_values, gpp_valid = gpp_year.band_values()
    npp_values, npp_valid = npp_year.band_values()

    valid = g_valid & gpp_valid & npp_valid & (gpp_values != 0)
    ratio = np.divide(g_values, gpp_values, out=np.zeros_like(g_values), where=valid)
    values = np.where(valid, ratio * npp_values, 0.0)

    return g.with_values(values, valid, (NPP8_BAND,)).copy_properties(g, [carried_property])


def _scale_with_aggregates(g: Raster, annual: Dict[int, Tuple[Raster, Raster]], temporal_index: TemporalIndex) -> Raster:
    gpp_year, npp_year = annual[temporal_index.year_of(g)]
    return scale_gpp8(g, gpp_year, npp_year, temporal_index.property_name)


class NPP8Deriver:
    """
    Derives the NPP8 series from 8-day GPP using annual GPP and NPP series.

    Both annual inputs are explicit dependencies of the deriver so that the
    derivation of any year can be reproduced from the constructor arguments
    alone.
    """

    def __init__(
        self,
        gpp_series: RasterSeries,
        npp_series: RasterSeries,
        temporal_index: Optional[TemporalIndex] = None,
        aggregator: Optional[AnnualAggregator] = None,
        scheduler: Optional[str] = None,
        num_workers: Optional[int] = None,
        show_progress: bool = False
    ):
        """
        Args:
            gpp_series: GPP series summed per year (single band)
            npp_series: Annual NPP series averaged per year (single band)
            temporal_index: Year resolution of timestamps
            aggregator: Annual aggregator (built on ``temporal_index`` when omitted)
            scheduler: dask scheduler for the per-raster map
            num_workers: dask worker count
            show_progress: Display a dask progress bar
        """
        self.gpp_series = _require_single_band(gpp_series, 'GPP')
        self.npp_series = _require_single_band(npp_series, 'NPP')
        self.temporal_index = temporal_index or TemporalIndex()
        self.aggregator = aggregator or AnnualAggregator(self.temporal_index)
        self.scheduler = scheduler
        self.num_workers = num_workers
        self.show_progress = show_progress
        self.logger = get_logger('npp8_derivation')

    def annual_aggregates(self, year: int, template: Optional[Raster] = None) -> Tuple[Raster, Raster]:
        """(GPP sum, NPP mean) of ``year``."""
        gpp_year = self.aggregator.aggregate(self.gpp_series, year, Reducer.SUM, template)
        npp_year = self.aggregator.aggregate(self.npp_series, year, Reducer.MEAN, template)
        return gpp_year, npp_year

    def derive(self, gpp8_series: RasterSeries) -> RasterSeries:
        """
        Derive one NPP8 raster per 8-day GPP raster, preserving order.

        Raises:
            MissingMetadataError: If any raster lacks a timestamp
            GridMismatchError: If annual aggregates are not on the 8-day grid
        """
        _require_single_band(gpp8_series, 'GPP8')
        if not len(gpp8_series):
            return RasterSeries()

        # First raster of each year serves as grid template for empty years
        templates: Dict[int, Raster] = {}
        for g in gpp8_series:
            templates.setdefault(self.temporal_index.year_of(g), g)

        annual = {}
        for year, template in sorted(templates.items()):
            annual[year] = self.annual_aggregates(year, template)
            self.logger.info(
                f"Year {year}: {annual[year][0].properties['count']} GPP rasters summed, "
                f"{annual[year][1].properties['count']} NPP rasters averaged"
            )

        derived = map_rasters(
            partial(_scale_with_aggregates, annual=annual, temporal_index=self.temporal_index),
            gpp8_series,
            scheduler=self.scheduler,
            num_workers=self.num_workers,
            show_progress=self.show_progress,
        )
        self.logger.info(f"Derived {len(derived)} NPP8 rasters for years {sorted(annual)}")
        return RasterSeries(derived)

    def derive_year(self, gpp8_series: RasterSeries, year: int) -> RasterSeries:
        """Derive NPP8 for the members of ``gpp8_series`` in ``year`` only."""
        return self.derive(self.aggregator.members(gpp8_series, year))


def derive(gpp8_series: RasterSeries, gpp_series: RasterSeries, npp_series: RasterSeries) -> RasterSeries:
    """Derive the NPP8 series with default settings."""
    return NPP8Deriver(gpp_series, npp_series).derive(gpp8_series)
