"""
Path utilities for the MODIS productivity biomass pipeline.

This module provides consistent path handling and file discovery across
pipeline components.

Author: Diego Bengochea
"""

import logging
from pathlib import Path
from typing import List, Optional, Union


def ensure_directory(path: Union[str, Path], parents: bool = True) -> Path:
    """
    Ensure directory exists, creating it if necessary.

    Args:
        path: Directory path to create
        parents: Whether to create parent directories

    Returns:
        Path: Created directory path

    Examples:
        >>> output_dir = ensure_directory("data/results/biomass")
    """
    path = Path(path)
    path.mkdir(parents=parents, exist_ok=True)
    return path


def find_files(
    directory: Union[str, Path],
    pattern: str = "*",
    recursive: bool = True,
    file_types: Optional[List[str]] = None
) -> List[Path]:
    """
    Find files matching pattern in directory.

    Args:
        directory: Directory to search in
        pattern: Glob pattern to match
        recursive: Whether to search recursively
        file_types: List of file extensions to filter by (e.g., ['.tif', '.tiff'])

    Returns:
        List[Path]: Sorted list of matching file paths

    Examples:
        >>> tif_files = find_files("data/raw/modis/gross-productivity-8day", "*.tif")
        >>> raster_files = find_files("rasters", "*", file_types=['.tif', '.tiff'])
    """
    directory = Path(directory)

    if not directory.exists():
        logging.warning(f"Directory does not exist: {directory}")
        return []

    if recursive:
        files = list(directory.rglob(pattern))
    else:
        files = list(directory.glob(pattern))

    if file_types:
        file_types = [ext.lower() for ext in file_types]
        files = [f for f in files if f.suffix.lower() in file_types]

    files = [f for f in files if f.is_file()]

    return sorted(files)


def validate_file_exists(path: Union[str, Path], description: str = "") -> Path:
    """
    Validate that file exists and return Path object.

    Args:
        path: File path to validate
        description: Description for error messages

    Returns:
        Path: Validated file path

    Raises:
        FileNotFoundError: If file doesn't exist
    """
    path = Path(path)
    if not path.is_file():
        desc = f" ({description})" if description else ""
        raise FileNotFoundError(f"File not found{desc}: {path}")
    return path
