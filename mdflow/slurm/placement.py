"""
placement.py

First-fit placement of a simulation onto a SLURM partition.

Partitions are tried in priority order. The first one where the user has
fewer jobs than the partition limit gets the job: submit.sh is rewritten
for that partition (name, cores, wall time) and submitted to the
partition's cluster. Nothing is written when no partition has room.
"""

import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .partition_config import QueueDescriptor
from .submit_script import update_submit_script


@dataclass
class PlacementResult:
    """Outcome of one placement attempt."""

    submitted: bool
    queue: Optional[QueueDescriptor] = None
    job_id: Optional[str] = None

    def __bool__(self) -> bool:
        return self.submitted


def find_queue(queues: list, client, user: str) -> Optional[QueueDescriptor]:
    """
    Return the first queue with spare capacity, or None.

    Queues with limit 0 are never picked and are not queried. A queue whose
    occupancy cannot be read is skipped for this round.
    """
    for queue in queues:
        if queue.limit <= 0:
            continue

        try:
            count = client.query_occupancy(user, queue.name, cluster=queue.cluster)
        except (OSError, subprocess.SubprocessError) as e:
            print(f"WARNING: Could not read occupancy of {queue.name}: {e}", file=sys.stderr)
            continue

        if count < queue.limit:
            return queue

    return None


def place_job(job_dir: Path, queues: list, client, config) -> PlacementResult:
    """
    Place one simulation on the first partition with spare capacity.

    Args:
        job_dir: Simulation directory containing the submit script
        queues: QueueDescriptor list in priority order
        client: SchedulerClient
        config: ManagerConfig (user, submit script name)

    Returns:
        PlacementResult (truthy if the job was submitted)
    """
    submit_file = Path(job_dir) / config.submit_file
    if not submit_file.is_file():
        print(f"ERROR: Submit script not found: {submit_file}", file=sys.stderr)
        return PlacementResult(submitted=False)

    queue = find_queue(queues, client, config.user)
    if queue is None:
        return PlacementResult(submitted=False)

    update_submit_script(submit_file, queue)

    try:
        job_id = client.submit(submit_file, cluster=queue.cluster)
    except (OSError, RuntimeError, subprocess.SubprocessError) as e:
        print(f"ERROR: Submission to {queue.name} failed for {job_dir}: {e}", file=sys.stderr)
        return PlacementResult(submitted=False, queue=queue)

    cluster_label = queue.cluster or 'default'
    print(f"Submitted {job_dir} -> {queue.name} (cluster={cluster_label}, job {job_id})")

    return PlacementResult(submitted=True, queue=queue, job_id=job_id)
