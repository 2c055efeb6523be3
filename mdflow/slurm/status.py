"""
status.py

Simulation status classification.

The status of a simulation directory is never stored. It is re-derived on
every call from:
  - the LAMMPS log (output.out): missing / incomplete / complete
  - the SLURM accounting record of the latest slurm-<jobid>.out

SLURM's own COMPLETED only means the batch script exited cleanly. LAMMPS
can stop early without failing the script, so COMPLETED is split into
COMPLETED (log has the success marker) and SOFT_FAIL (it does not).
"""

import re
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from .scheduler import AccountingRecord, lookup_accounting


class Status(str, Enum):
    """Lifecycle state of one simulation directory."""

    NOT_SUBMITTED = 'NOT_SUBMITTED'
    COMPLETED = 'COMPLETED'
    SOFT_FAIL = 'SOFT_FAIL'
    HARD_FAIL = 'HARD_FAIL'

    # SLURM states passed through as-is
    PENDING = 'PENDING'
    RUNNING = 'RUNNING'
    CONFIGURING = 'CONFIGURING'
    COMPLETING = 'COMPLETING'
    SUSPENDED = 'SUSPENDED'
    REQUEUED = 'REQUEUED'
    RESIZING = 'RESIZING'
    PREEMPTED = 'PREEMPTED'
    CANCELLED = 'CANCELLED'
    TIMEOUT = 'TIMEOUT'
    DEADLINE = 'DEADLINE'

    # Unrecognised SLURM state, or no accounting record on any cluster
    UNKNOWN = 'UNKNOWN'

    def __str__(self) -> str:
        return self.value


# SLURM states that mean the job itself failed
FAILURE_STATES = frozenset({'FAILED', 'NODE_FAIL', 'OUT_OF_MEMORY', 'BOOT_FAIL'})

# SLURM state that means the batch script exited 0
SUCCESS_STATE = 'COMPLETED'

# Statuses SLURM may report that map directly onto Status
PASSTHROUGH_STATES = frozenset({
    'PENDING', 'RUNNING', 'CONFIGURING', 'COMPLETING', 'SUSPENDED',
    'REQUEUED', 'RESIZING', 'PREEMPTED', 'CANCELLED', 'TIMEOUT', 'DEADLINE',
})

# Completion signals from the LAMMPS log
MISSING = 'missing'
INCOMPLETE = 'incomplete'
COMPLETE = 'complete'


@dataclass
class SimulationState:
    """Everything the classifier learned about one directory."""

    status: Status
    completion: str
    job_id: Optional[str] = None
    record: Optional[AccountingRecord] = None


def parse_status(value) -> Status:
    """
    Parse a status name (as used in config files and exclusion lists).

    Raises:
        ValueError: if the name is not a Status
    """
    if isinstance(value, Status):
        return value
    name = str(value).strip().upper()
    try:
        return Status(name)
    except ValueError:
        valid = ', '.join(s.value for s in Status)
        raise ValueError(f"Unknown status: {value}. Valid statuses: {valid}") from None


def normalize_state(raw: Optional[str]) -> str:
    """
    Normalise a SLURM state string.

    sacct reports e.g. 'CANCELLED by 1234' or 'COMPLETED+'; only the
    first word without the '+' suffix is meaningful.
    """
    if not raw:
        return ''
    parts = raw.split()
    if not parts:
        return ''
    return parts[0].replace('+', '').upper()


def list_submissions(sim_dir: Path, pattern: str = r'slurm-(\d+)\.out') -> list:
    """
    List submission records (one slurm-<jobid>.out per sbatch call).

    Args:
        sim_dir: Simulation directory
        pattern: Regex with one group capturing the job id

    Returns:
        List of (job_id, path) tuples, oldest first (mtime, then job id)
    """
    regex = re.compile(pattern)
    records = []
    for path in Path(sim_dir).iterdir():
        match = regex.fullmatch(path.name)
        if match and path.is_file():
            records.append((match.group(1), path))

    def sort_key(item):
        job_id, path = item
        numeric = int(job_id) if job_id.isdigit() else -1
        return (path.stat().st_mtime, numeric, job_id)

    return sorted(records, key=sort_key)


def latest_submission(sim_dir: Path, pattern: str = r'slurm-(\d+)\.out') -> Optional[tuple]:
    """Return (job_id, path) of the most recent submission record, or None."""
    records = list_submissions(sim_dir, pattern)
    return records[-1] if records else None


def count_submissions(sim_dir: Path, pattern: str = r'slurm-(\d+)\.out') -> int:
    """Number of submission attempts made for a simulation directory."""
    return len(list_submissions(sim_dir, pattern))


def check_completion(sim_dir: Path, log_file: str = 'output.out',
                     success_marker: str = 'Total wall time') -> str:
    """
    Check the LAMMPS log of a simulation directory.

    Returns:
        'missing' if there is no log, 'complete' if the log contains the
        success marker, otherwise 'incomplete'
    """
    log_path = Path(sim_dir) / log_file
    if not log_path.is_file():
        return MISSING

    with open(log_path, errors='replace') as f:
        for line in f:
            if success_marker in line:
                return COMPLETE

    return INCOMPLETE


def resolve_status(state: str, completion: str) -> Status:
    """
    Combine the SLURM state with the LAMMPS completion signal.

    First match wins:
      failure state                     -> HARD_FAIL
      COMPLETED + complete log          -> COMPLETED
      COMPLETED + incomplete/no log     -> SOFT_FAIL
      anything else                     -> the SLURM state itself
    """
    state = normalize_state(state) if state else ''

    if state in FAILURE_STATES:
        return Status.HARD_FAIL
    if state == SUCCESS_STATE:
        if completion == COMPLETE:
            return Status.COMPLETED
        return Status.SOFT_FAIL
    if state == Status.NOT_SUBMITTED.value:
        return Status.NOT_SUBMITTED
    if state in PASSTHROUGH_STATES:
        return Status(state)

    return Status.UNKNOWN


def classify(sim_dir: Path, client, config) -> SimulationState:
    """
    Classify a simulation directory.

    A submission record takes precedence over a missing log: a job that is
    queued or died before LAMMPS opened its log still has to be looked up
    in accounting rather than reported as NOT_SUBMITTED.

    Args:
        sim_dir: Simulation directory
        client: SchedulerClient used for the accounting lookup
        config: ManagerConfig

    Returns:
        SimulationState with status, completion signal, job id and record
    """
    sim_dir = Path(sim_dir)
    completion = check_completion(sim_dir, config.log_file, config.success_marker)

    latest = latest_submission(sim_dir, config.submission_pattern)
    if latest is None:
        return SimulationState(status=Status.NOT_SUBMITTED, completion=completion)

    job_id, _ = latest
    record = lookup_accounting(client, job_id, config.clusters)

    if record is None or not normalize_state(record.state):
        return SimulationState(
            status=Status.UNKNOWN,
            completion=completion,
            job_id=job_id,
            record=record,
        )

    status = resolve_status(record.state, completion)
    if status is Status.UNKNOWN:
        print(f"WARNING: Unrecognised SLURM state '{record.state}' for job {job_id} ({sim_dir})",
              file=sys.stderr)

    return SimulationState(
        status=status,
        completion=completion,
        job_id=job_id,
        record=record,
    )


def check_simulation_status(sim_dir: Path, client, config) -> Status:
    """Return only the Status of a simulation directory."""
    return classify(sim_dir, client, config).status
