"""
partition_config.py

Partition definitions for the SLURM submission manager.

Each partition the manager may place a job on has a fixed resource profile:
  1. cores: value written to '#SBATCH --ntasks-per-node='
  2. time: wall-time cap written to '#SBATCH --time='
  3. cluster: SLURM cluster for '-M' (None = default cluster)

Concurrency limits are supplied per run as an ordered "name:limit" list.
The order is the placement priority; a limit of 0 disables a partition.
"""

from dataclasses import dataclass
from typing import Optional


# Resource profile per partition (Pinnacle partitions + Merced 'compute')
PARTITION_CONFIG = {
    'short': {
        'cores': 48,
        'time': '6:00:00',
        'cluster': None,
    },
    'long': {
        'cores': 48,
        'time': '72:00:00',
        'cluster': None,
    },
    'medium': {
        'cores': 48,
        'time': '24:00:00',
        'cluster': None,
    },
    'compute': {
        'cores': 32,
        'time': '120:00:00',
        'cluster': 'merced',
    },
    'pi.amartini': {
        'cores': 48,
        'time': '72:00:00',
        'cluster': None,
    },
}

# Priority order and per-user job limits
DEFAULT_LIMITS = 'short:12 long:3 medium:6 compute:0 pi.amartini:0'


@dataclass(frozen=True)
class QueueDescriptor:
    """A partition with its concurrency limit and resource profile."""

    name: str
    limit: int
    cores: int
    time: str
    cluster: Optional[str] = None


def get_partition_config(partition: str, profiles: Optional[dict] = None) -> dict:
    """Get the resource profile for a partition."""
    profiles = PARTITION_CONFIG if profiles is None else profiles
    if partition not in profiles:
        valid = ', '.join(profiles.keys())
        raise ValueError(f"Unknown partition: {partition}. Valid partitions: {valid}")
    return profiles[partition]


def list_partitions(profiles: Optional[dict] = None) -> list:
    """List all partitions with a known resource profile."""
    profiles = PARTITION_CONFIG if profiles is None else profiles
    return list(profiles.keys())


def parse_limits(limits: str) -> list:
    """
    Parse a space-separated "partition:limit" string.

    Args:
        limits: e.g. "short:12 long:3 compute:0"

    Returns:
        List of (partition, limit) tuples in priority order
    """
    pairs = []
    for item in limits.split():
        name, sep, limit = item.rpartition(':')
        if not sep or not name:
            raise ValueError(f"Malformed partition limit '{item}' (expected name:limit)")
        try:
            value = int(limit)
        except ValueError:
            raise ValueError(f"Partition limit for '{name}' is not an integer: {limit}") from None
        if value < 0:
            raise ValueError(f"Partition limit for '{name}' must be >= 0, got {value}")
        pairs.append((name, value))
    return pairs


def build_queues(limits, profiles: Optional[dict] = None) -> list:
    """
    Combine priority/limit pairs with partition resource profiles.

    Args:
        limits: "name:limit" string or list of (name, limit) pairs
        profiles: Partition profiles (defaults to PARTITION_CONFIG)

    Returns:
        List of QueueDescriptor in priority order
    """
    if isinstance(limits, str):
        limits = parse_limits(limits)
    elif not isinstance(limits, (list, tuple)):
        raise ValueError(f"Partitions must be a string, mapping or list, got {type(limits).__name__}")

    queues = []
    seen = set()
    for item in limits:
        if not isinstance(item, (list, tuple)) or len(item) != 2:
            raise ValueError(f"Malformed partition limit {item!r} (expected name, limit)")
        name, limit = item
        if name in seen:
            raise ValueError(f"Partition listed twice: {name}")
        seen.add(name)

        try:
            limit = int(limit)
        except (TypeError, ValueError):
            raise ValueError(f"Partition limit for '{name}' is not an integer: {limit}") from None
        if limit < 0:
            raise ValueError(f"Partition limit for '{name}' must be >= 0, got {limit}")

        profile = get_partition_config(name, profiles)
        missing = {'cores', 'time'} - set(profile)
        if missing:
            raise ValueError(f"Partition '{name}' profile is missing: {', '.join(sorted(missing))}")
        try:
            cores = int(profile['cores'])
        except (TypeError, ValueError):
            raise ValueError(f"Partition '{name}' cores is not an integer: {profile['cores']}") from None

        queues.append(QueueDescriptor(
            name=name,
            limit=limit,
            cores=cores,
            time=str(profile['time']),
            cluster=profile.get('cluster'),
        ))

    return queues
