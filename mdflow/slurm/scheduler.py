"""
scheduler.py

SLURM client: submission, queue occupancy and accounting lookups.

This module handles:
  - Submitting a job script with sbatch (optionally on another cluster)
  - Counting the user's jobs in a partition with squeue
  - Looking up a job's accounting record with sacct

Every scheduler interaction goes through a SchedulerClient, so the manager
and the classifier can be driven by a fake client in tests.
"""

import re
import subprocess
import sys
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Iterable, Optional


# sacct columns, in the order requested with --format
ACCOUNTING_FIELDS = [
    'JobID', 'JobName', 'State', 'Start', 'End', 'Elapsed', 'Submit',
    'AllocCPUs', 'NodeList', 'MaxRSS', 'ReqMem', 'Partition',
]

SUBMIT_PATTERN = re.compile(r'Submitted batch job (\d+)')


@dataclass
class AccountingRecord:
    """One sacct allocation line. Empty strings mean SLURM reported nothing."""

    job_id: str
    name: str = ''
    state: str = ''
    start: str = ''
    end: str = ''
    elapsed: str = ''
    submit: str = ''
    alloc_cpus: str = ''
    node_list: str = ''
    max_rss: str = ''
    req_mem: str = ''
    partition: str = ''
    cluster: Optional[str] = None

    @classmethod
    def from_fields(cls, values: list, cluster: Optional[str] = None) -> 'AccountingRecord':
        """Build a record from a list of values ordered like ACCOUNTING_FIELDS."""
        names = [f.name for f in fields(cls) if f.name != 'cluster']
        padded = list(values) + [''] * (len(names) - len(values))
        return cls(**dict(zip(names, padded[:len(names)])), cluster=cluster)


class SchedulerClient:
    """Interface of the batch scheduler used by the manager."""

    def submit(self, submit_file: Path, cluster: Optional[str] = None) -> str:
        """Submit a job script and return the job ID."""
        raise NotImplementedError

    def query_occupancy(self, user: str, partition: str, cluster: Optional[str] = None) -> int:
        """Count the user's queued/running jobs in a partition."""
        raise NotImplementedError

    def query_accounting(self, job_id: str, cluster: Optional[str] = None) -> Optional[AccountingRecord]:
        """Return the accounting record of a job, or None if the cluster does not know it."""
        raise NotImplementedError


def parse_job_id(output: str) -> str:
    """
    Parse job ID from sbatch output.

    Handles both "Submitted batch job 12345" and
    "Submitted batch job 12345 on cluster merced".
    """
    match = SUBMIT_PATTERN.search(output)
    if match:
        return match.group(1)

    raise RuntimeError(f"Failed to parse job ID from: {output}")


def count_partition(squeue_output: str, partition: str) -> int:
    """
    Count squeue lines whose partition column equals the partition.

    squeue -M prints a 'CLUSTER: name' banner even with -h, so lines are
    matched exactly rather than grepped.
    """
    count = 0
    for line in squeue_output.split('\n'):
        if line.strip() == partition:
            count += 1
    return count


def parse_accounting(sacct_output: str, job_id: str, cluster: Optional[str] = None) -> Optional[AccountingRecord]:
    """
    Parse 'sacct --parsable2' output for one job.

    The allocation line (JobID == job_id) carries the job-level fields.
    MaxRSS is only reported on steps (.batch, .extern, .0), so when the
    allocation line has none the largest step value is used.

    Returns:
        AccountingRecord, or None if the allocation line is absent
    """
    record = None
    step_rss = []

    for line in sacct_output.strip().split('\n'):
        if not line:
            continue

        parts = line.split('|')
        job_part = parts[0]

        if job_part == job_id:
            record = AccountingRecord.from_fields(parts, cluster=cluster)
        elif job_part.startswith(f'{job_id}.') and len(parts) > 9 and parts[9]:
            step_rss.append(parts[9])

    if record is not None and not record.max_rss and step_rss:
        record.max_rss = max(step_rss, key=memory_to_bytes)

    return record


def memory_to_bytes(value: str) -> float:
    """Convert a SLURM memory string ('1234K', '2.5G', '800') to bytes."""
    units = {'K': 1024, 'M': 1024 ** 2, 'G': 1024 ** 3, 'T': 1024 ** 4}
    value = value.strip()
    if not value:
        return 0.0

    multiplier = units.get(value[-1].upper())
    number = value[:-1] if multiplier else value
    try:
        return float(number) * (multiplier or 1)
    except ValueError:
        return 0.0


class SlurmClient(SchedulerClient):
    """SchedulerClient backed by the sbatch/squeue/sacct command line tools."""

    def __init__(self, timeout: Optional[int] = 60):
        self.timeout = timeout

    def _cluster_args(self, cluster: Optional[str]) -> list:
        return ['-M', cluster] if cluster else []

    def submit(self, submit_file: Path, cluster: Optional[str] = None) -> str:
        """
        Submit a job script with sbatch.

        The script is submitted from its own directory so SLURM writes
        slurm-<jobid>.out next to it.

        Raises:
            subprocess.CalledProcessError: if sbatch fails
            RuntimeError: if the job ID cannot be parsed
        """
        submit_file = Path(submit_file).resolve()

        cmd = ['sbatch'] + self._cluster_args(cluster) + [submit_file.name]

        result = subprocess.run(
            cmd,
            cwd=str(submit_file.parent),
            capture_output=True,
            text=True,
            check=True,
            timeout=self.timeout,
        )

        return parse_job_id(result.stdout)

    def query_occupancy(self, user: str, partition: str, cluster: Optional[str] = None) -> int:
        """
        Count the user's jobs in a partition (any state squeue shows).

        Raises:
            subprocess.CalledProcessError: if squeue fails
        """
        cmd = ['squeue'] + self._cluster_args(cluster) + ['-u', user, '-h', '-o', '%P']

        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            check=True,
            timeout=self.timeout,
        )

        return count_partition(result.stdout, partition)

    def query_accounting(self, job_id: str, cluster: Optional[str] = None) -> Optional[AccountingRecord]:
        """Look up a job with sacct. Returns None if the cluster has no record."""
        cmd = ['sacct'] + self._cluster_args(cluster) + [
            '-j', str(job_id),
            f"--format={','.join(ACCOUNTING_FIELDS)}",
            '--noheader', '--parsable2',
        ]

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            print(f"WARNING: sacct failed for job {job_id}: {e}", file=sys.stderr)
            return None

        if result.returncode != 0:
            return None

        return parse_accounting(result.stdout, str(job_id), cluster=cluster)


def lookup_accounting(
    client: SchedulerClient,
    job_id: str,
    clusters: Iterable[Optional[str]] = (None,),
) -> Optional[AccountingRecord]:
    """
    Look up a job on each cluster in turn.

    Returns the first record that carries a state, else the last record
    found (possibly None).
    """
    found = None
    for cluster in clusters:
        record = client.query_accounting(job_id, cluster=cluster)
        if record is None:
            continue
        if record.state:
            return record
        found = record
    return found
