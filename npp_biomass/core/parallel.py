"""
Per-raster parallel map built on dask.

Every per-raster stage of the pipeline is embarrassingly parallel: each output
depends on one input raster plus read-only annual aggregates. Stages hand
their per-raster function to ``map_rasters`` and get results back in input
order, whichever local dask scheduler runs them.

Author: Diego Bengochea
"""

from typing import Any, Callable, Iterable, List, Optional

import dask
from dask.diagnostics import ProgressBar

from .exceptions import ConfigurationError

SCHEDULERS = ('synchronous', 'threads', 'processes')


def validate_scheduler(scheduler: Optional[str]) -> str:
    scheduler = scheduler or 'synchronous'
    if scheduler not in SCHEDULERS:
        raise ConfigurationError(f"Unknown dask scheduler '{scheduler}', expected one of {SCHEDULERS}")
    return scheduler


def map_rasters(
    func: Callable[[Any], Any],
    items: Iterable[Any],
    scheduler: Optional[str] = None,
    num_workers: Optional[int] = None,
    show_progress: bool = False
) -> List[Any]:
    """
    Apply ``func`` to every item, preserving order.

    Args:
        func: Pure per-item function
        items: Inputs (typically rasters)
        scheduler: 'synchronous', 'threads' or 'processes'
        num_workers: Worker count for threaded/process schedulers
        show_progress: Display a dask progress bar

    Returns:
        list: ``[func(item) for item in items]``
    """
    scheduler = validate_scheduler(scheduler)
    items = list(items)
    if not items:
        return []

    if scheduler == 'synchronous' and not show_progress:
        return [func(item) for item in items]

    # traverse=False keeps dask from unpacking dataclass arguments
    tasks = [dask.delayed(func)(dask.delayed(item, traverse=False)) for item in items]
    compute_kwargs = {'scheduler': scheduler}
    if num_workers and scheduler != 'synchronous':
        compute_kwargs['num_workers'] = num_workers

    if show_progress:
        with ProgressBar():
            results = dask.compute(*tasks, **compute_kwargs)
    else:
        results = dask.compute(*tasks, **compute_kwargs)
    return list(results)
