"""
Main execution pipeline for biomass estimation from MODIS productivity.

This module orchestrates the complete workflow:
- Selecting the area of interest and fetching the GPP/NPP series
- Reprojecting both series onto the target grid
- Deriving the 8-day NPP series (NPP8) from 8-day GPP and annual NPP
- Converting NPP8 to biomass with the empirical coefficient
- Producing the clipped mean biomass composite and the regional time series

Stages run strictly forward and each returns new immutable values. Any stage
failure aborts the run with a PipelineStageError naming the stage; there are
no retries and no partial outputs.

Author: Diego Bengochea
"""

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple, Union

import numpy as np
import pandas as pd

from shared_utils import get_logger, load_config, log_pipeline_end, log_pipeline_start, log_section

from npp_biomass.core.biomass_conversion import BIOMASS_BAND, BiomassConverter
from npp_biomass.core.data_sources import GeoTiffDirectorySource, RasterSeriesSource, fetch_series
from npp_biomass.core.exceptions import ConfigurationError, EmptySeriesError, PipelineStageError
from npp_biomass.core.export import export_outputs
from npp_biomass.core.npp8_derivation import NPP8Deriver
from npp_biomass.core.raster import Raster, RasterSeries, Reducer, Region, RegionStatistic
from npp_biomass.core.region_reduction import RegionReducer, statistics_to_frame
from npp_biomass.core.regions import load_region
from npp_biomass.core.reprojection import reproject_series, target_grid
from npp_biomass.core.settings import PipelineSettings, classify_value
from npp_biomass.core.temporal_index import TemporalIndex


@dataclass(frozen=True)
class PipelineResult:
    """Outputs of one pipeline invocation."""

    npp8: RasterSeries
    biomass: RasterSeries
    composite: Raster
    npp8_composite: Raster
    time_series: Tuple[RegionStatistic, ...]

    def time_series_frame(self) -> pd.DataFrame:
        return statistics_to_frame(self.time_series, BIOMASS_BAND)


class BiomassEstimationPipeline:
    """
    Orchestrates NPP8 derivation, biomass conversion and regional summaries.
    """

    def __init__(
        self,
        config_path: Optional[Union[str, Path]] = None,
        config: Optional[Dict[str, Any]] = None,
        data_source: Optional[RasterSeriesSource] = None
    ):
        """
        Initialize the pipeline and validate its configuration.

        Args:
            config_path: Path to a YAML configuration file
            config: Configuration dictionary (takes precedence over config_path)
            data_source: Source of the productivity series (GeoTIFF directory
                from ``data.source_dir`` when omitted)

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        self.config = config if config is not None else load_config(config_path, component_name='npp_biomass')
        self.logger = get_logger('biomass_pipeline')

        self.settings = PipelineSettings.from_config(self.config)
        self.data_source = data_source
        self.temporal_index = TemporalIndex()
        self.region_reducer = RegionReducer(self.temporal_index)

        self.logger.info("Initialized BiomassEstimationPipeline")

    # ------------------------------------------------------------------
    # Stage plumbing
    # ------------------------------------------------------------------

    def _stage(self, stage: str, func: Callable, *args, **kwargs):
        try:
            return func(*args, **kwargs)
        except PipelineStageError:
            raise
        except Exception as e:
            self.logger.error(f"Stage '{stage}' failed: {e}")
            raise PipelineStageError(stage, e) from e

    def _select_band(self, series: RasterSeries, band: str) -> RasterSeries:
        if not len(series):
            return series
        if band in series.band_names:
            return series.select(band)
        if len(series.band_names) == 1:
            self.logger.warning(f"Band '{band}' not found, using single band '{series.band_names[0]}'")
            return series
        raise KeyError(f"Band '{band}' not found in series bands {list(series.band_names)}")

    def _default_source(self) -> RasterSeriesSource:
        settings = self.settings
        if settings.source_dir is None:
            raise ConfigurationError("No data source given and data.source_dir is not configured")
        return GeoTiffDirectorySource(
            settings.source_dir,
            band_names={settings.gross_series: settings.gross_band, settings.net_series: settings.net_band},
            temporal_index=self.temporal_index,
        )

    # ------------------------------------------------------------------
    # Core computation
    # ------------------------------------------------------------------

    def run(self, gross_series: RasterSeries, net_series: RasterSeries, region: Region) -> PipelineResult:
        """
        Run the computation stages on already-fetched series.

        Args:
            gross_series: 8-day GPP series (also summed per year)
            net_series: Annual NPP series
            region: Area of interest

        Returns:
            PipelineResult: NPP8 and biomass series, composites and time series

        Raises:
            PipelineStageError: If any stage fails
        """
        settings = self.settings
        compute = {'scheduler': settings.scheduler, 'num_workers': settings.num_workers,
                   'show_progress': settings.show_progress}

        log_section(self.logger, 'reprojection')
        gross = self._stage('band selection', self._select_band, gross_series, settings.gross_band)
        net = self._stage('band selection', self._select_band, net_series, settings.net_band)
        if not len(gross):
            raise PipelineStageError('input validation', EmptySeriesError(
                f"No gross productivity rasters between {settings.start_year} and {settings.end_year}"))

        grid = self._stage('reprojection', target_grid, gross[0].grid, settings.target_crs, settings.target_scale)
        self.logger.info(f"Target grid: {grid.width}x{grid.height} pixels, {grid.crs}, resolution {grid.resolution}")
        gross = self._stage('reprojection', reproject_series, gross, grid, settings.resampling, **compute)
        net = self._stage('reprojection', reproject_series, net, grid, settings.resampling, **compute)

        log_section(self.logger, 'npp8 derivation')
        deriver = NPP8Deriver(gross, net, temporal_index=self.temporal_index, **compute)
        npp8 = self._stage('npp8 derivation', deriver.derive, gross)

        log_section(self.logger, 'biomass conversion')
        converter = BiomassConverter(settings.biomass_coefficient, **compute)
        biomass = self._stage('biomass conversion', converter.convert, npp8)

        log_section(self.logger, 'regional summaries')
        composite = self._stage('mean composite', self.region_reducer.mean_composite, biomass, region)
        npp8_composite = self._stage('mean composite', self.region_reducer.mean_composite, npp8, region)
        time_series = self._stage(
            'regional time series', self.region_reducer.series_by_region,
            biomass, region, BIOMASS_BAND, Reducer.MEAN, settings.target_scale,
        )

        result = PipelineResult(npp8, biomass, composite, npp8_composite, time_series)
        self._log_summary(result)
        return result

    def _log_summary(self, result: PipelineResult) -> None:
        values = [s.value for s in result.time_series if s.value is not None]
        self.logger.info(f"Time series: {len(result.time_series)} entries, {len(values)} with data")
        if values:
            overall = float(np.mean(values))
            biomass_class = classify_value(overall, list(self.settings.biomass_classes))
            self.logger.info(f"Mean regional biomass: {overall:.3f} (class: {biomass_class or 'unclassified'})")

    # ------------------------------------------------------------------
    # Full run
    # ------------------------------------------------------------------

    def run_full_pipeline(self) -> PipelineResult:
        """
        Select the region, fetch both series, compute and optionally export.

        Returns:
            PipelineResult: Outputs of the run

        Raises:
            PipelineStageError: If any stage fails
        """
        settings = self.settings
        start_time = time.time()
        log_pipeline_start(self.logger, 'npp8 biomass estimation', self.config)

        try:
            if settings.aoi_path is None:
                raise PipelineStageError('region selection', ConfigurationError("aoi.path is not configured"))
            region = self._stage('region selection', load_region, settings.aoi_path,
                                 settings.aoi_attribute, settings.aoi_value, settings.aoi_layer)

            source = self._stage('data retrieval', lambda: self.data_source or self._default_source())
            window = settings.window
            gross = self._stage('data retrieval', fetch_series, source, settings.gross_series, window, settings.fetch_timeout)
            net = self._stage('data retrieval', fetch_series, source, settings.net_series, window, settings.fetch_timeout)
            self.logger.info(f"Fetched {len(gross)} gross and {len(net)} net productivity rasters")

            result = self.run(gross, net, region)
        except PipelineStageError as e:
            log_pipeline_end(self.logger, 'npp8 biomass estimation', success=False, elapsed_time=time.time() - start_time)
            self.logger.error(str(e))
            raise

        if settings.export_enabled:
            log_section(self.logger, 'export')
            export_outputs(
                result.composite, result.time_series, settings.output_dir,
                settings.start_year, settings.end_year, settings.target_scale,
                nodata=settings.nodata_value, geotiff_options=dict(settings.geotiff_options),
            )

        log_pipeline_end(self.logger, 'npp8 biomass estimation', success=True, elapsed_time=time.time() - start_time)
        return result
