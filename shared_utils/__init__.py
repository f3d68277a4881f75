"""
Shared utilities for the MODIS productivity biomass pipeline.

This package provides common functionality used across all components:
- Standardized logging configuration
- Configuration file loading utilities
- Path handling utilities

Author: Diego Bengochea
"""

from .logging_utils import setup_logging, get_logger, log_pipeline_start, log_pipeline_end, log_section
from .config_utils import load_config, validate_config, get_config_value, set_config_value
from .path_utils import ensure_directory, find_files, validate_file_exists

__version__ = "1.0.0"

__all__ = [
    "setup_logging",
    "get_logger",
    "log_pipeline_start",
    "log_pipeline_end",
    "log_section",
    "load_config",
    "validate_config",
    "get_config_value",
    "set_config_value",
    "ensure_directory",
    "find_files",
    "validate_file_exists"
]
