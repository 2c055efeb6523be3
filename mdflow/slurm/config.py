"""
config.py

Manager configuration.

Settings come from a YAML file (see config/manager.yaml). Every key is
optional; anything left out falls back to DEFAULT_CONFIG, which matches
the Pinnacle/Merced setup the manager was written for.
"""

import getpass
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from .partition_config import DEFAULT_LIMITS, PARTITION_CONFIG, build_queues
from .status import Status, parse_status


DEFAULT_CONFIG = {
    'user': None,  # defaults to $USER
    'files': {
        'input': 'input.in',
        'log': 'output.out',
        'submit': 'submit.sh',
        'report': 'simulation_job_report.csv',
        'submission_pattern': r'slurm-(\d+)\.out',
    },
    'markers': {
        'success': 'Total wall time',
        'error': 'error',
    },
    'max_submission_attempts': 5,
    'exclude': 'Except:COMPLETED RUNNING PENDING',
    'submit_pause': 2,
    'pass_interval': 0,
    'secondary_cluster': 'merced',
    'partitions': DEFAULT_LIMITS,
    'partition_profiles': {},
    'dependency': {
        'command': None,
        'timeout': 10,
    },
    'inputs': {
        'command': None,
        'prefix': 'Batch',
    },
    'progress': True,
}


@dataclass
class ManagerConfig:
    """Resolved settings for one manager run."""

    user: str
    queues: list
    input_file: str = 'input.in'
    log_file: str = 'output.out'
    submit_file: str = 'submit.sh'
    report_file: str = 'simulation_job_report.csv'
    submission_pattern: str = r'slurm-(\d+)\.out'
    success_marker: str = 'Total wall time'
    error_marker: str = 'error'
    max_submission_attempts: int = 5
    exclude: frozenset = frozenset({Status.COMPLETED, Status.RUNNING, Status.PENDING})
    submit_pause: float = 2.0
    pass_interval: float = 0.0
    secondary_cluster: Optional[str] = 'merced'
    dependency_command: Optional[list] = None
    dependency_timeout: float = 10.0
    inputs_command: Optional[list] = None
    batch_prefix: str = 'Batch'
    progress: bool = True
    profiles: dict = field(default_factory=lambda: dict(PARTITION_CONFIG))

    @property
    def clusters(self) -> list:
        """Clusters to search for accounting records, default cluster first."""
        clusters = [None]
        if self.secondary_cluster:
            clusters.append(self.secondary_cluster)
        return clusters


def parse_exclusion(value) -> frozenset:
    """
    Parse an exclusion set.

    Accepts a list of status names or a space-separated string with an
    optional 'Except:' prefix, e.g. "Except:COMPLETED RUNNING PENDING".
    """
    if isinstance(value, str):
        text = value.strip()
        if text.startswith('Except:'):
            text = text[len('Except:'):]
        value = text.split()
    elif not isinstance(value, (list, tuple, set, frozenset)):
        raise ValueError(f"Exclusion must be a string or list of statuses, got {type(value).__name__}")
    return frozenset(parse_status(v) for v in value)


def _merge(defaults: dict, overrides: dict) -> dict:
    """Merge one level of nested dicts."""
    merged = dict(defaults)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def _command(value) -> Optional[list]:
    if value is None:
        return None
    if isinstance(value, str):
        return value.split()
    if isinstance(value, list):
        return [str(v) for v in value]
    raise ValueError(f"Command must be a string or list, got {type(value).__name__}")


def _mapping(config: dict, key: str) -> dict:
    value = config[key]
    if value is None and not DEFAULT_CONFIG[key]:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"'{key}' must be a mapping, got {type(value).__name__}")
    return value


def _number(value, key: str, kind=float):
    try:
        return kind(value)
    except (TypeError, ValueError):
        raise ValueError(f"'{key}' must be a number, got {value!r}") from None


def _profiles(overrides: dict) -> dict:
    """Partition profiles with each override merged over the built-in profile."""
    profiles = dict(PARTITION_CONFIG)
    for name, override in overrides.items():
        if not isinstance(override, dict):
            raise ValueError(f"Profile for partition '{name}' must be a mapping")
        profiles[name] = {**PARTITION_CONFIG.get(name, {}), **override}
    return profiles


def config_from_dict(data: Optional[dict] = None) -> ManagerConfig:
    """
    Build a ManagerConfig from a (partial) config dict.

    Raises:
        ValueError: on unknown keys, partitions or statuses, or bad values
    """
    data = data or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config must be a mapping, got {type(data).__name__}")

    unknown = set(data) - set(DEFAULT_CONFIG)
    if unknown:
        raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")

    config = _merge(DEFAULT_CONFIG, data)

    profiles = _profiles(_mapping(config, 'partition_profiles'))
    limits = config['partitions']
    if isinstance(limits, dict):
        # YAML mappings keep their order, which is the priority
        limits = list(limits.items())
    queues = build_queues(limits, profiles)
    if not queues:
        raise ValueError("No partitions configured")

    max_attempts = _number(config['max_submission_attempts'], 'max_submission_attempts', int)
    if max_attempts < 1:
        raise ValueError(f"max_submission_attempts must be >= 1, got {max_attempts}")

    user = config['user'] or os.environ.get('USER') or getpass.getuser()

    files = _mapping(config, 'files')
    markers = _mapping(config, 'markers')
    dependency = _mapping(config, 'dependency')
    inputs = _mapping(config, 'inputs')

    return ManagerConfig(
        user=user,
        queues=queues,
        input_file=files['input'],
        log_file=files['log'],
        submit_file=files['submit'],
        report_file=files['report'],
        submission_pattern=files['submission_pattern'],
        success_marker=markers['success'],
        error_marker=markers['error'],
        max_submission_attempts=max_attempts,
        exclude=parse_exclusion(config['exclude']),
        submit_pause=_number(config['submit_pause'], 'submit_pause'),
        pass_interval=_number(config['pass_interval'], 'pass_interval'),
        secondary_cluster=config['secondary_cluster'] or None,
        dependency_command=_command(dependency['command']),
        dependency_timeout=_number(dependency['timeout'], 'dependency.timeout'),
        inputs_command=_command(inputs['command']),
        batch_prefix=inputs['prefix'],
        progress=bool(config['progress']),
        profiles=profiles,
    )


def load_config(config_path: Optional[Path] = None) -> ManagerConfig:
    """Load manager configuration from YAML (defaults only if no path)."""
    if config_path is None:
        return config_from_dict({})

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(config_path) as f:
        data = yaml.safe_load(f)

    return config_from_dict(data or {})
