#!/usr/bin/env python3
"""
MODIS Productivity Biomass Pipeline Script

Main entry point for deriving 8-day NPP and biomass from MODIS GPP/NPP over
an area of interest, producing the mean biomass composite and the regional
biomass time series.

Usage:
    python run_biomass_pipeline.py [OPTIONS]

Examples:
    # Run with default config
    python run_biomass_pipeline.py

    # Different period and coefficient
    python run_biomass_pipeline.py --start-year 2021 --end-year 2022 --coefficient 2.3

    # Export composite and time series
    python run_biomass_pipeline.py --export --output-dir ./results

Author: Diego Bengochea
"""

import sys
import argparse
import time
from pathlib import Path
from typing import List, Optional

# Add repo root to path for absolute imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from npp_biomass.core.biomass_pipeline import BiomassEstimationPipeline
from npp_biomass.core.exceptions import BiomassPipelineError
from shared_utils import get_config_value, load_config, set_config_value, setup_logging


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="MODIS Productivity Biomass Pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                                   # Run with default settings
  %(prog)s --config custom.yaml              # Custom configuration
  %(prog)s --start-year 2021 --end-year 2022 # Different period
  %(prog)s --export --output-dir ./results   # Write GeoTIFF and CSV outputs
        """
    )

    # Core configuration
    parser.add_argument(
        '--config',
        type=str,
        help='Path to configuration file'
    )

    # Processing parameters
    parser.add_argument(
        '--start-year',
        type=int,
        help='First year of the period (overrides config)'
    )

    parser.add_argument(
        '--end-year',
        type=int,
        help='Last year of the period, inclusive (overrides config)'
    )

    parser.add_argument(
        '--coefficient',
        type=float,
        help='NPP8 to biomass coefficient (overrides config)'
    )

    parser.add_argument(
        '--scale',
        type=float,
        help='Target scale in meters (overrides config)'
    )

    parser.add_argument(
        '--crs',
        type=str,
        help='Target CRS, e.g. EPSG:4326 (overrides config)'
    )

    # Inputs and outputs
    parser.add_argument(
        '--source-dir',
        type=str,
        help='Directory holding one subdirectory per productivity series (overrides config)'
    )

    parser.add_argument(
        '--aoi-path',
        type=str,
        help='Boundaries file for the area of interest (overrides config)'
    )

    parser.add_argument(
        '--export',
        action='store_true',
        help='Export the mean composite and time series'
    )

    parser.add_argument(
        '--output-dir',
        type=str,
        help='Output directory for exported files (overrides config)'
    )

    # Logging
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default=None,
        help='Logging level (defaults to config logging.level)'
    )

    parser.add_argument(
        '--log-file',
        type=str,
        help='Optional log file'
    )

    parser.add_argument(
        '--quiet',
        action='store_true',
        help='Suppress non-error output'
    )

    return parser.parse_args(argv)


def validate_arguments(args: argparse.Namespace) -> bool:
    """Validate command line arguments."""
    if args.config and not Path(args.config).exists():
        print(f"Error: Config file not found: {args.config}")
        return False

    if args.start_year is not None and args.end_year is not None and args.start_year > args.end_year:
        print(f"Error: --start-year {args.start_year} is after --end-year {args.end_year}")
        return False

    if args.source_dir and not Path(args.source_dir).is_dir():
        print(f"Error: Source directory not found: {args.source_dir}")
        return False

    return True


class BiomassPipelineRunner:
    """
    Pipeline runner applying command line overrides to the configuration.
    """

    def __init__(self, args: argparse.Namespace):
        """Initialize pipeline runner."""
        self.args = args
        self.config = self.create_pipeline_config()

        log_level = 'ERROR' if args.quiet else (args.log_level or get_config_value(self.config, 'logging.level', 'INFO'))
        self.logger = setup_logging(
            level=log_level,
            component_name='biomass_pipeline_runner',
            log_file=args.log_file or get_config_value(self.config, 'logging.log_file')
        )

        self.logger.info("BiomassPipelineRunner initialized")

    def create_pipeline_config(self) -> dict:
        """Create pipeline configuration with argument overrides."""
        config = load_config(self.args.config, component_name="npp_biomass")

        overrides = {
            'period.start_year': self.args.start_year,
            'period.end_year': self.args.end_year,
            'processing.biomass_coefficient': self.args.coefficient,
            'processing.target_scale': self.args.scale,
            'processing.target_crs': self.args.crs,
            'data.source_dir': self.args.source_dir,
            'aoi.path': self.args.aoi_path,
            'output.output_dir': self.args.output_dir,
        }
        for key_path, value in overrides.items():
            if value is not None:
                set_config_value(config, key_path, value)

        if self.args.export:
            set_config_value(config, 'output.export', True)

        return config

    def run_pipeline(self) -> bool:
        """
        Execute the biomass pipeline.

        Returns:
            bool: True if pipeline completed successfully
        """
        try:
            start_time = time.time()
            pipeline = BiomassEstimationPipeline(config=self.config)
            result = pipeline.run_full_pipeline()

            duration = time.time() - start_time
            self.logger.info(
                f"Biomass pipeline completed in {duration:.2f} seconds: "
                f"{len(result.biomass)} biomass rasters, {len(result.time_series)} time series entries"
            )
            return True

        except BiomassPipelineError as e:
            self.logger.error(f"Pipeline execution failed: {e}")
            return False


def main(argv: Optional[List[str]] = None) -> bool:
    """Main entry point."""
    args = parse_arguments(argv)

    if not validate_arguments(args):
        return False

    try:
        runner = BiomassPipelineRunner(args)
        success = runner.run_pipeline()

        if success:
            print("\n✅ Biomass pipeline completed successfully")
        else:
            print("\n❌ Biomass pipeline failed")
        return success

    except KeyboardInterrupt:
        print("\n⚠️ Pipeline interrupted by user")
        return False
    except Exception as e:
        print(f"\n💥 Pipeline failed with error: {str(e)}")
        return False


if __name__ == "__main__":
    success = main()
    sys.exit(0 if success else 1)
