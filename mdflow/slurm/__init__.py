"""
SLURM Submission Manager

This module keeps a batch of simulation directories moving through SLURM:
it submits pending simulations to the first partition with spare capacity,
classifies finished ones from sacct plus the LAMMPS log, resubmits failures
up to a limit and keeps simulation_job_report.csv up to date.

Usage:
    # Manage a batch until every simulation is submitted or abandoned:
    python -m mdflow.slurm.run --root /path/to/Batch001

    # Rewrite the status report only:
    python -m mdflow.slurm.run --root /path/to/Batch001 --report-only
"""

from .status import Status, check_simulation_status, classify
from .scheduler import SchedulerClient, SlurmClient, AccountingRecord
from .placement import place_job
from .discovery import find_simulation_dirs, eligible_dirs
from .manager import job_submission_manager
from .report import generate_job_report

__all__ = [
    'Status',
    'check_simulation_status',
    'classify',
    'SchedulerClient',
    'SlurmClient',
    'AccountingRecord',
    'place_job',
    'find_simulation_dirs',
    'eligible_dirs',
    'job_submission_manager',
    'generate_job_report',
]
