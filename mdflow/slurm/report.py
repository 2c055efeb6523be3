"""
report.py

CSV status report for a batch of simulations.

One row per simulation directory (no filtering by status), joining the
derived status with the SLURM accounting record of the latest submission
and any error lines from the LAMMPS log. The file is rewritten from scratch
each time; it is a snapshot, not a log.
"""

import csv
from pathlib import Path
from typing import Optional

import pandas as pd
from tqdm import tqdm

from .discovery import find_simulation_dirs
from .status import classify


REPORT_COLUMNS = [
    'JobID',
    'JobName',
    'Status',
    'Partition',
    'Submit',
    'Start',
    'End',
    'Elapsed',
    'AllocCPUs',
    'NodeList',
    'MaxRSS',
    'ReqMem',
    'SimDir',
    'Error',
]

# Report column -> AccountingRecord attribute
ACCOUNTING_COLUMNS = {
    'JobID': 'job_id',
    'JobName': 'name',
    'Partition': 'partition',
    'Submit': 'submit',
    'Start': 'start',
    'End': 'end',
    'Elapsed': 'elapsed',
    'AllocCPUs': 'alloc_cpus',
    'NodeList': 'node_list',
    'MaxRSS': 'max_rss',
    'ReqMem': 'req_mem',
}

NOT_AVAILABLE = 'N/A'
NO_ERROR = 'None'


def find_errors(log_path: Path, marker: str = 'error') -> Optional[str]:
    """
    Collect log lines containing the error marker (case-insensitive).

    Returns:
        Matching lines joined with ' | ', or None if there are none
    """
    if not log_path.is_file():
        return None

    marker = marker.lower()
    errors = []
    with open(log_path, errors='replace') as f:
        for line in f:
            if marker in line.lower():
                errors.append(line.strip())

    return ' | '.join(errors) if errors else None


def build_row(sim_dir: Path, client, config) -> dict:
    """Build the report row for one simulation directory."""
    state = classify(sim_dir, client, config)

    row = {column: NOT_AVAILABLE for column in REPORT_COLUMNS}
    row['Status'] = state.status.value
    row['SimDir'] = str(sim_dir)
    row['Error'] = find_errors(Path(sim_dir) / config.log_file, config.error_marker) or NO_ERROR

    if state.record is not None:
        for column, attr in ACCOUNTING_COLUMNS.items():
            value = getattr(state.record, attr)
            if value:
                row[column] = value

    return row


def build_report(root: Path, client, config) -> pd.DataFrame:
    """
    Build the status table for every simulation under root.

    Args:
        root: Parent directory of the batch
        client: SchedulerClient
        config: ManagerConfig

    Returns:
        DataFrame with REPORT_COLUMNS, one row per simulation (path order)
    """
    sim_dirs = find_simulation_dirs(root, config.input_file)

    rows = []
    for sim_dir in tqdm(sim_dirs, desc="Checking simulations", unit="sim", disable=not config.progress):
        rows.append(build_row(sim_dir, client, config))

    return pd.DataFrame(rows, columns=REPORT_COLUMNS)


def generate_job_report(root: Path, client, config) -> Path:
    """
    Write the status report to <root>/<report_file>, replacing any old one.

    Returns:
        Path to the report
    """
    root = Path(root)
    df = build_report(root, client, config)
    return write_report(df, root / config.report_file)


def write_report(df: pd.DataFrame, report_path: Path) -> Path:
    """Write a report table with every field quoted."""
    # Write to a temporary file first, then rename
    temp_path = report_path.with_suffix('.tmp')
    df.to_csv(temp_path, index=False, quoting=csv.QUOTE_ALL)
    temp_path.replace(report_path)

    return report_path


def summarize_report(df: pd.DataFrame) -> dict:
    """Count simulations per status."""
    if df.empty:
        return {}
    return {status: int(count) for status, count in df['Status'].value_counts().sort_index().items()}
