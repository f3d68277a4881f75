"""
Configuration utilities for the MODIS productivity biomass pipeline.

This module provides standardized configuration loading and validation
across all pipeline components.

Author: Diego Bengochea
"""

import yaml
import os
from pathlib import Path
from typing import Dict, Any, List, Optional, Union
import logging

CONFIG_ENV_VAR = 'MODIS_BIOMASS_CONFIG'


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    component_name: Optional[str] = None,
    default_config_name: str = "config.yaml"
) -> Dict[str, Any]:
    """
    Load configuration from YAML file with standardized search patterns.

    Search order:
    1. Explicit config_path if provided
    2. Component package directory + default_config_name
    3. Current directory + default_config_name
    4. Environment variable MODIS_BIOMASS_CONFIG

    Args:
        config_path: Explicit path to configuration file
        component_name: Name of component package (for automatic config discovery)
        default_config_name: Default config filename to search for

    Returns:
        Dict[str, Any]: Configuration dictionary

    Raises:
        FileNotFoundError: If no configuration file is found
        yaml.YAMLError: If configuration file is invalid YAML

    Examples:
        >>> config = load_config()  # Search for config.yaml
        >>> config = load_config("custom_config.yaml")
        >>> config = load_config(component_name="npp_biomass")
    """
    logger = logging.getLogger(__name__)

    search_paths = []

    if config_path:
        search_paths.append(Path(config_path))

    if component_name:
        # Installed package directory first, then a checkout-relative directory
        repo_root = Path(__file__).resolve().parent.parent
        search_paths.extend([
            repo_root / component_name / default_config_name,
            Path(component_name) / default_config_name,
        ])

    search_paths.append(Path(default_config_name))

    env_config = os.environ.get(CONFIG_ENV_VAR)
    if env_config:
        search_paths.append(Path(env_config))

    config_file = None
    for path in search_paths:
        if path.exists():
            config_file = path
            logger.debug(f"Found configuration file: {config_file}")
            break

    if not config_file:
        searched_paths = [str(p) for p in search_paths]
        raise FileNotFoundError(
            f"Configuration file not found. Searched paths: {searched_paths}"
        )

    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Invalid YAML in {config_file}: {e}")

    if not isinstance(config, dict):
        raise ValueError(f"Expected a YAML mapping in {config_file}")

    config['_meta'] = {
        'config_file': str(config_file.absolute()),
        'component_name': component_name,
    }

    logger.info(f"Loaded configuration from: {config_file}")
    return config


def validate_config(config: Dict[str, Any], required_sections: Optional[List[str]] = None) -> bool:
    """
    Validate configuration dictionary structure.

    Args:
        config: Configuration dictionary to validate
        required_sections: List of required top-level sections

    Returns:
        bool: True if configuration is valid

    Raises:
        ValueError: If configuration is invalid

    Examples:
        >>> validate_config(config, ['period', 'processing', 'output'])
    """
    logger = logging.getLogger(__name__)

    if not isinstance(config, dict):
        raise ValueError("Configuration must be a dictionary")

    if required_sections:
        missing_sections = [section for section in required_sections if section not in config]
        if missing_sections:
            raise ValueError(f"Missing required configuration sections: {missing_sections}")

    logger.debug("Configuration validation passed")
    return True


def get_config_value(config: Dict[str, Any], key_path: str, default: Any = None) -> Any:
    """
    Get nested configuration value using dot notation.

    Args:
        config: Configuration dictionary
        key_path: Dot-separated path to the value (e.g., 'processing.target_scale')
        default: Default value if key is not found

    Returns:
        Any: Configuration value or default

    Examples:
        >>> scale = get_config_value(config, 'processing.target_scale', 500)
        >>> level = get_config_value(config, 'logging.level', 'INFO')
    """
    keys = key_path.split('.')
    value = config

    try:
        for key in keys:
            value = value[key]
        return value
    except (KeyError, TypeError):
        return default


def set_config_value(config: Dict[str, Any], key_path: str, value: Any) -> None:
    """
    Set nested configuration value using dot notation, creating sections as needed.

    Examples:
        >>> set_config_value(config, 'period.start_year', 2021)
    """
    keys = key_path.split('.')
    section = config
    for key in keys[:-1]:
        section = section.setdefault(key, {})
    section[keys[-1]] = value
