"""
Typed, validated view of the pipeline configuration.

The YAML configuration is loaded as a plain dictionary by
``shared_utils.load_config``; ``PipelineSettings.from_config`` checks it and
freezes it before any computation starts, so configuration problems abort
the run up front.

Author: Diego Bengochea
"""

from dataclasses import dataclass, field
from numbers import Integral
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from rasterio.crs import CRS
from rasterio.errors import CRSError

from shared_utils import get_config_value, validate_config
from shared_utils.central_data_paths_constants import BIOMASS_RESULTS_DIR, MODIS_RAW_DIR

from .biomass_conversion import validate_coefficient
from .data_sources import GROSS_PRODUCTIVITY_8DAY, NET_PRODUCTIVITY_ANNUAL
from .exceptions import ConfigurationError
from .parallel import validate_scheduler
from .raster import TimeWindow
from .reprojection import resampling_method

REQUIRED_SECTIONS = ['aoi', 'period', 'data', 'processing']


@dataclass(frozen=True)
class BiomassClass:
    """Presentation-only classification band of the composite (e.g. Low 100-300)."""
    name: str
    minimum: float
    maximum: float


@dataclass(frozen=True)
class PipelineSettings:
    """Validated pipeline configuration."""

    start_year: int
    end_year: int
    aoi_attribute: str
    aoi_value: int
    target_crs: str
    target_scale: float
    biomass_coefficient: float
    aoi_path: Optional[Path] = None
    aoi_layer: Optional[str] = None
    source_dir: Optional[Path] = None
    gross_series: str = GROSS_PRODUCTIVITY_8DAY
    gross_band: str = 'Gpp'
    net_series: str = NET_PRODUCTIVITY_ANNUAL
    net_band: str = 'Npp'
    fetch_timeout: Optional[float] = None
    resampling: str = 'nearest'
    scheduler: str = 'synchronous'
    num_workers: Optional[int] = None
    show_progress: bool = False
    biomass_classes: Tuple[BiomassClass, ...] = ()
    export_enabled: bool = False
    output_dir: Path = BIOMASS_RESULTS_DIR
    nodata_value: float = -9999.0
    geotiff_options: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        for name in ('start_year', 'end_year', 'aoi_value'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, Integral):
                raise ConfigurationError(f"{name} must be an integer, got {value!r}")
        if self.start_year > self.end_year:
            raise ConfigurationError(f"Start year {self.start_year} is after end year {self.end_year}")
        if not self.target_scale or self.target_scale <= 0:
            raise ConfigurationError(f"Target scale must be positive, got {self.target_scale}")
        try:
            CRS.from_user_input(self.target_crs)
        except CRSError as e:
            raise ConfigurationError(f"Invalid target CRS '{self.target_crs}': {e}") from e
        if self.fetch_timeout is not None and self.fetch_timeout <= 0:
            raise ConfigurationError(f"Fetch timeout must be positive, got {self.fetch_timeout}")

        object.__setattr__(self, 'biomass_coefficient', validate_coefficient(self.biomass_coefficient))
        object.__setattr__(self, 'scheduler', validate_scheduler(self.scheduler))
        resampling_method(self.resampling)
        _validate_classes(self.biomass_classes)

    @property
    def window(self) -> TimeWindow:
        return TimeWindow.from_years(self.start_year, self.end_year)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'PipelineSettings':
        """
        Build settings from a configuration dictionary.

        Raises:
            ConfigurationError: On missing sections or invalid values
        """
        try:
            validate_config(config, REQUIRED_SECTIONS)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

        def value(key_path, default=None, required=False):
            result = get_config_value(config, key_path, default)
            if required and result is None:
                raise ConfigurationError(f"Missing required configuration value: {key_path}")
            return result

        aoi_path = value('aoi.path')
        source_dir = value('data.source_dir', MODIS_RAW_DIR)
        classes = tuple(
            BiomassClass(name=str(c['name']), minimum=float(c['min']), maximum=float(c['max']))
            for c in value('visualization.biomass_classes', []) or []
        )

        return cls(
            start_year=value('period.start_year', required=True),
            end_year=value('period.end_year', required=True),
            aoi_path=Path(aoi_path) if aoi_path else None,
            aoi_layer=value('aoi.layer'),
            aoi_attribute=value('aoi.attribute', 'OBJECTID'),
            aoi_value=value('aoi.value', required=True),
            source_dir=Path(source_dir) if source_dir else None,
            gross_series=value('data.gross_productivity.series', GROSS_PRODUCTIVITY_8DAY),
            gross_band=value('data.gross_productivity.band', 'Gpp'),
            net_series=value('data.net_productivity.series', NET_PRODUCTIVITY_ANNUAL),
            net_band=value('data.net_productivity.band', 'Npp'),
            fetch_timeout=value('data.fetch_timeout_seconds'),
            target_crs=value('processing.target_crs', required=True),
            target_scale=value('processing.target_scale', required=True),
            resampling=value('processing.resampling', 'nearest'),
            biomass_coefficient=value('processing.biomass_coefficient', required=True),
            scheduler=value('compute.scheduler', 'synchronous'),
            num_workers=value('compute.num_workers'),
            show_progress=bool(value('compute.show_progress', False)),
            biomass_classes=classes,
            export_enabled=bool(value('output.export', False)),
            output_dir=Path(value('output.output_dir', BIOMASS_RESULTS_DIR)),
            nodata_value=float(value('output.geotiff.nodata_value', -9999.0)),
            geotiff_options={k: v for k, v in (value('output.geotiff', {}) or {}).items() if k != 'nodata_value'},
        )


def _validate_classes(classes: Tuple[BiomassClass, ...]) -> None:
    previous_max: Optional[float] = None
    for biomass_class in classes:
        if biomass_class.minimum > biomass_class.maximum:
            raise ConfigurationError(f"Biomass class '{biomass_class.name}' has min > max")
        if previous_max is not None and biomass_class.minimum < previous_max:
            raise ConfigurationError(f"Biomass classes overlap or are not ascending at '{biomass_class.name}'")
        previous_max = biomass_class.maximum


def classify_value(value: Optional[float], classes: List[BiomassClass]) -> Optional[str]:
    """Name of the class containing ``value`` (None for no-data or out of range)."""
    if value is None:
        return None
    for biomass_class in classes:
        if biomass_class.minimum <= value <= biomass_class.maximum:
            return biomass_class.name
    return None
