"""
discovery.py

Finding simulation directories and the work that is still to be done.

A directory is a simulation if and only if it contains the input file
(input.in). The eligible set is recomputed from scratch on every call.
"""

import os
from pathlib import Path

from .status import check_simulation_status


def find_simulation_dirs(root: Path, input_file: str = 'input.in') -> list:
    """
    Find every directory under root that contains the input file.

    Args:
        root: Parent directory of the batch
        input_file: Marker file name

    Returns:
        Sorted list of simulation directories
    """
    root = Path(root)
    if not root.is_dir():
        raise FileNotFoundError(f"Root directory not found: {root}")

    sim_dirs = []
    for dirpath, _, filenames in os.walk(root):
        if input_file in filenames:
            sim_dirs.append(Path(dirpath))

    return sorted(sim_dirs)


def eligible_dirs(root: Path, client, config) -> set:
    """
    Simulations whose current status is not in config.exclude.

    Args:
        root: Parent directory of the batch
        client: SchedulerClient
        config: ManagerConfig

    Returns:
        Set of simulation directories
    """
    eligible = set()

    for sim_dir in find_simulation_dirs(root, config.input_file):
        status = check_simulation_status(sim_dir, client, config)
        if status not in config.exclude:
            eligible.add(sim_dir)

    return eligible
