"""
manager.py

Submission manager: the loop that keeps a batch of simulations moving.

Each pass:
  1. Rescan the batch for simulations that are not COMPLETED/RUNNING/PENDING
  2. For each one whose dependency is ready, place it on a partition
  3. Retire simulations that were submitted or have no attempts left
  4. Rewrite the status report
The loop ends when a pass leaves nothing to retry. Nothing is cached
between passes; every pass re-reads the directories and SLURM.
"""

import sys
import time
from pathlib import Path

from .dependencies import check_dependencies
from .discovery import eligible_dirs
from .placement import place_job
from .report import generate_job_report
from .status import count_submissions


def refresh_candidates(root: Path, client, config) -> tuple:
    """
    Rebuild the candidate set.

    Returns:
        (candidates, exhausted): eligible simulations with attempts left,
        and eligible simulations that used all their attempts
    """
    candidates = set()
    exhausted = set()

    for sim_dir in eligible_dirs(root, client, config):
        attempts = count_submissions(sim_dir, config.submission_pattern)
        if attempts >= config.max_submission_attempts:
            exhausted.add(sim_dir)
        else:
            candidates.add(sim_dir)

    return candidates, exhausted


def run_pass(candidates: set, client, config) -> dict:
    """
    Try to submit every candidate once.

    Args:
        candidates: Simulation directories to work on
        client: SchedulerClient
        config: ManagerConfig

    Returns:
        Dict with 'remaining', 'submitted', 'abandoned' sets
    """
    remaining = set(candidates)
    submitted = set()
    abandoned = set()

    for job_dir in sorted(candidates):
        dependency = check_dependencies(
            job_dir,
            command=config.dependency_command,
            timeout=config.dependency_timeout,
        )
        if dependency is None:
            continue

        attempts = count_submissions(job_dir, config.submission_pattern)
        if attempts >= config.max_submission_attempts:
            remaining.discard(job_dir)
            abandoned.add(job_dir)
            continue

        result = place_job(job_dir, config.queues, client, config)
        if result:
            remaining.discard(job_dir)
            submitted.add(job_dir)
            time.sleep(config.submit_pause)

    return {
        'remaining': remaining,
        'submitted': submitted,
        'abandoned': abandoned,
    }


def job_submission_manager(root: Path, client, config, max_passes: int = None) -> dict:
    """
    Submit every pending simulation under root until none is left.

    Args:
        root: Parent directory of the batch
        client: SchedulerClient
        config: ManagerConfig
        max_passes: Stop after this many passes (None = until done)

    Returns:
        Dict with 'passes', 'submitted', 'abandoned', 'remaining' counts
    """
    root = Path(root)
    report_path = root / config.report_file

    passes = 0
    submitted = set()
    abandoned = set()
    remaining = set()

    print(f"\n{'='*60}")
    print(f"Submission manager: {root}")
    print(f"Partitions: {' > '.join(f'{q.name}:{q.limit}' for q in config.queues)}")
    print(f"Excluding: {' '.join(sorted(s.value for s in config.exclude))}")
    print(f"{'='*60}")

    while True:
        candidates, exhausted = refresh_candidates(root, client, config)

        for job_dir in sorted(exhausted - abandoned):
            print(f"WARNING: Giving up on {job_dir} after "
                  f"{config.max_submission_attempts} submissions", file=sys.stderr)
        abandoned |= exhausted

        passes += 1
        print(f"\nPass {passes}: {len(candidates)} simulations to process")

        result = run_pass(candidates, client, config)
        submitted |= result['submitted']
        abandoned |= result['abandoned']
        remaining = result['remaining']

        generate_job_report(root, client, config)
        print(f"Submitted: {len(result['submitted'])}, waiting: {len(remaining)}")
        print(f"Report: {report_path}")

        if not remaining:
            break

        if max_passes is not None and passes >= max_passes:
            print(f"WARNING: Stopping after {passes} passes with {len(remaining)} "
                  f"simulations still waiting", file=sys.stderr)
            break

        time.sleep(config.pass_interval)

    print(f"\n{'='*60}")
    print(f"All simulations processed ({passes} passes)")
    print(f"  Submitted: {len(submitted)}")
    print(f"  Abandoned: {len(abandoned)}")
    print(f"{'='*60}\n")

    return {
        'passes': passes,
        'submitted': len(submitted),
        'abandoned': len(abandoned),
        'remaining': len(remaining),
    }
