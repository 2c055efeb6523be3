import os
import subprocess
from pathlib import Path

import pytest

from mdflow.slurm.config import ManagerConfig
from mdflow.slurm.partition_config import build_queues
from mdflow.slurm.scheduler import AccountingRecord, SchedulerClient


SUBMIT_SCRIPT = """#!/bin/bash
#SBATCH --job-name=Eq-S1-BHT
#SBATCH --partition=pi.amartini
#SBATCH --nodes=1
#SBATCH --ntasks-per-node=48
#SBATCH --time=10-00:00:00
#SBATCH --output=slurm-%j.out

mpirun lmp -in input.in > output.out
"""

COMPLETE_LOG = """LAMMPS (2 Aug 2023)
Loop time of 1234.5 on 48 procs for 100000 steps
Total wall time: 0:20:34
"""

INCOMPLETE_LOG = """LAMMPS (2 Aug 2023)
Step Temp E_pair
0 300 -1234.5
"""


class FakeScheduler(SchedulerClient):
    """In-memory SLURM: records submissions and serves accounting records."""

    def __init__(self, occupancy=None):
        self.occupancy = dict(occupancy or {})
        self.records = {}
        self.submissions = []
        self.occupancy_queries = []
        self.accounting_queries = []
        self.next_id = 1000
        self.fail_submit = False

    def submit(self, submit_file, cluster=None):
        if self.fail_submit:
            raise subprocess.CalledProcessError(1, ['sbatch', str(submit_file)])

        self.next_id += 1
        job_id = str(self.next_id)

        partition = None
        for line in Path(submit_file).read_text().split('\n'):
            if line.startswith('#SBATCH --partition='):
                partition = line.split('=', 1)[1]

        # SLURM creates the output file next to the script
        record_file = Path(submit_file).parent / f'slurm-{job_id}.out'
        record_file.write_text('')

        self.records[(cluster, job_id)] = AccountingRecord(
            job_id=job_id, name=Path(submit_file).parent.name, state='PENDING',
            partition=partition or '', cluster=cluster,
        )
        self.occupancy[partition] = self.occupancy.get(partition, 0) + 1
        self.submissions.append((Path(submit_file), cluster, partition, job_id))
        return job_id

    def query_occupancy(self, user, partition, cluster=None):
        self.occupancy_queries.append((partition, cluster))
        return self.occupancy.get(partition, 0)

    def query_accounting(self, job_id, cluster=None):
        self.accounting_queries.append((job_id, cluster))
        return self.records.get((cluster, job_id))

    def set_record(self, job_id, state, cluster=None, **fields):
        self.records[(cluster, str(job_id))] = AccountingRecord(
            job_id=str(job_id), state=state, cluster=cluster, **fields
        )

    def finish_jobs(self, state):
        """Move every queued job to a final state and free the partitions."""
        for record in self.records.values():
            if record.state in ('PENDING', 'RUNNING'):
                record.state = state
        self.occupancy = {}


def make_sim(root, name, log=None, submissions=(), submit_script=SUBMIT_SCRIPT, input_file=True):
    """
    Create a simulation directory.

    submissions: job IDs; each gets a slurm-<id>.out with increasing mtime.
    """
    sim_dir = Path(root) / name
    sim_dir.mkdir(parents=True, exist_ok=True)

    if input_file:
        (sim_dir / 'input.in').write_text('units real\n')
    if submit_script is not None:
        (sim_dir / 'submit.sh').write_text(submit_script)
    if log is not None:
        (sim_dir / 'output.out').write_text(log)

    base = 1_700_000_000
    for i, job_id in enumerate(submissions):
        record = sim_dir / f'slurm-{job_id}.out'
        record.write_text('')
        os.utime(record, (base + i * 60, base + i * 60))

    return sim_dir


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def config():
    return ManagerConfig(
        user='tester',
        queues=build_queues('short:12 long:3 medium:6 compute:0 pi.amartini:0'),
        submit_pause=0,
        pass_interval=0,
        progress=False,
    )


@pytest.fixture
def batch(tmp_path):
    root = tmp_path / 'Batch001'
    root.mkdir()
    return root
