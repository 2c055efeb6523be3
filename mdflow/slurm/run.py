#!/usr/bin/env python3
"""
run.py

Entry point for the SLURM submission manager.

Three modes of operation:
  1. Manage (default): submit pending simulations under --root until done
  2. Report: rewrite the status report once and print a summary
  3. Inputs: create the next Batch### folder under --root, generate inputs
     from a name,smiles CSV, then manage the new batch

Usage:
    python -m mdflow.slurm.run --root /path/to/Batch001
    python -m mdflow.slurm.run --root /path/to/Batch001 --report-only
    python -m mdflow.slurm.run --root /path/to/REACTER --inputs molecules.csv
"""

import argparse
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

from .config import load_config
from .inputs import create_next_folder, generate_inputs
from .manager import job_submission_manager
from .partition_config import build_queues, list_partitions
from .report import build_report, summarize_report, write_report
from .scheduler import SlurmClient


def run_report(root: Path, config, client) -> bool:
    """Rewrite the report once and print a per-status summary."""
    df = build_report(root, client, config)
    report_path = write_report(df, root / config.report_file)

    print(f"\nReport written: {report_path}")
    print(f"Simulations: {len(df)}")
    for status, count in summarize_report(df).items():
        print(f"  {status}: {count}")

    return True


def run_inputs(root: Path, csv_file: Path, config, client, max_passes: Optional[int] = None) -> bool:
    """Create a new batch from a molecule CSV and manage it."""
    if not csv_file.exists():
        print(f"ERROR: Molecule CSV not found: {csv_file}", file=sys.stderr)
        return False

    if not config.inputs_command:
        print("ERROR: No input generator command configured (inputs.command)", file=sys.stderr)
        return False

    working_dir = create_next_folder(root, config.batch_prefix)
    print(f"Created batch: {working_dir}")

    results = generate_inputs(csv_file, working_dir, config.inputs_command)
    failed = [r for r in results if not r['success']]
    print(f"Generated inputs for {len(results) - len(failed)}/{len(results)} molecules")

    if failed:
        print(f"WARNING: {len(failed)} molecules failed input generation", file=sys.stderr)

    job_submission_manager(working_dir, client, config, max_passes=max_passes)
    return True


def main():
    parser = argparse.ArgumentParser(
        description="SLURM submission manager for simulation batches",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Submit everything under a batch and keep going until done
  python -m mdflow.slurm.run --root data/REACTER/Batch001

  # Only use the short and medium partitions
  python -m mdflow.slurm.run --root data/REACTER/Batch001 --partitions "short:12 medium:6"

  # Rewrite simulation_job_report.csv and print a summary
  python -m mdflow.slurm.run --root data/REACTER/Batch001 --report-only

  # New batch from a molecule list, then submit it
  python -m mdflow.slurm.run --root data/REACTER --inputs molecules.csv
""",
    )

    parser.add_argument(
        '--root',
        type=Path,
        required=True,
        help='Batch directory (parent directory in --inputs mode)',
    )
    parser.add_argument(
        '--config',
        type=Path,
        default=None,
        help='Path to manager YAML config (default: built-in settings)',
    )
    parser.add_argument(
        '--partitions',
        type=str,
        help=f'Priority-ordered "name:limit" list (known: {", ".join(list_partitions())})',
    )
    parser.add_argument(
        '--max-attempts',
        type=int,
        help='Maximum submissions per simulation',
    )
    parser.add_argument(
        '--max-passes',
        type=int,
        help='Stop after this many passes',
    )
    parser.add_argument(
        '--report-only',
        action='store_true',
        help='Rewrite the status report and exit',
    )
    parser.add_argument(
        '--inputs',
        type=Path,
        help='name,smiles CSV: create a new batch under --root and manage it',
    )
    parser.add_argument(
        '--no-progress',
        action='store_true',
        help='Disable progress bars',
    )

    args = parser.parse_args()

    if args.report_only and args.inputs:
        parser.error("--report-only and --inputs cannot be combined")

    if not args.root.is_dir():
        print(f"ERROR: Directory not found: {args.root}", file=sys.stderr)
        sys.exit(1)

    try:
        config = load_config(args.config)
        if args.partitions:
            config = replace(config, queues=build_queues(args.partitions, config.profiles))
        if args.max_attempts is not None:
            if args.max_attempts < 1:
                raise ValueError(f"--max-attempts must be >= 1, got {args.max_attempts}")
            config = replace(config, max_submission_attempts=args.max_attempts)
        if args.no_progress:
            config = replace(config, progress=False)
    except (FileNotFoundError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)

    client = SlurmClient()
    root = args.root.resolve()

    if args.report_only:
        success = run_report(root, config, client)
    elif args.inputs:
        success = run_inputs(root, args.inputs, config, client, max_passes=args.max_passes)
    else:
        job_submission_manager(root, client, config, max_passes=args.max_passes)
        success = True

    sys.exit(0 if success else 1)


if __name__ == '__main__':
    main()
