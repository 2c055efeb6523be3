"""
inputs.py

Creating a new batch of simulations from a molecule list.

The structure/force-field/template pipeline is an external program. This
module only decides where each molecule's inputs go and runs that program
once per molecule:

    <command> with {name}, {smiles}, {output_dir} substituted

The program is expected to create <output_dir>/<name>/... with one
input.in per simulation directory.
"""

import re
import shutil
import subprocess
import sys
from pathlib import Path

import pandas as pd
from tqdm import tqdm


def create_next_folder(parent_dir: Path, prefix: str = 'Batch') -> Path:
    """
    Create the next numbered folder: Batch001, Batch002, ...

    Args:
        parent_dir: Existing directory that holds the numbered folders
        prefix: Folder name prefix

    Returns:
        Path to the new folder
    """
    parent_dir = Path(parent_dir)
    if not parent_dir.is_dir():
        raise FileNotFoundError(f"Parent directory does not exist: {parent_dir}")

    pattern = re.compile(rf'{re.escape(prefix)}(\d+)')
    numbers = []
    for path in parent_dir.iterdir():
        match = pattern.fullmatch(path.name)
        if match and path.is_dir():
            numbers.append(int(match.group(1)))

    next_number = max(numbers) + 1 if numbers else 1
    next_folder = parent_dir / f"{prefix}{next_number:03d}"
    next_folder.mkdir()

    return next_folder


def read_molecules(csv_file: Path) -> pd.DataFrame:
    """
    Read a name,smiles CSV, dropping rows with an empty name or SMILES.

    Raises:
        ValueError: if the CSV has no 'name' or 'smiles' column
    """
    df = pd.read_csv(csv_file, dtype=str, keep_default_na=False)
    df.columns = [c.strip().lower() for c in df.columns]

    missing = {'name', 'smiles'} - set(df.columns)
    if missing:
        raise ValueError(f"{csv_file} is missing columns: {', '.join(sorted(missing))}")

    df['name'] = df['name'].str.strip()
    df['smiles'] = df['smiles'].str.strip()

    invalid = (df['name'] == '') | (df['smiles'] == '')
    for _, row in df[invalid].iterrows():
        print(f"Skipping invalid line: {row['name']}, {row['smiles']}")

    return df[~invalid].reset_index(drop=True)


def build_generator_command(command: list, name: str, smiles: str, output_dir: Path) -> list:
    """Substitute {name}, {smiles} and {output_dir} in the generator command."""
    values = {'name': name, 'smiles': smiles, 'output_dir': str(output_dir)}
    return [arg.format(**values) for arg in command]


def generate_inputs(csv_file: Path, working_dir: Path, command: list) -> list:
    """
    Run the input generator for every molecule in the CSV.

    The CSV is copied into working_dir. Molecules whose directory already
    exists are skipped.

    Args:
        csv_file: CSV with 'name' and 'smiles' columns
        working_dir: Batch directory
        command: Generator command template

    Returns:
        List of dicts with 'name', 'success', 'skipped', 'error'
    """
    if not command:
        raise ValueError("No input generator command configured (inputs.command)")

    csv_file = Path(csv_file)
    working_dir = Path(working_dir)
    shutil.copy2(csv_file, working_dir / csv_file.name)

    molecules = read_molecules(csv_file)
    results = []

    for _, row in tqdm(molecules.iterrows(), total=len(molecules), desc="Generating inputs", unit="mol"):
        name = row['name']
        mol_dir = working_dir / name

        if mol_dir.exists():
            print(f"Directory '{mol_dir}' already exists. Skipping...")
            results.append({'name': name, 'success': True, 'skipped': True, 'error': ''})
            continue

        cmd = build_generator_command(command, name, row['smiles'], working_dir)

        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except OSError as e:
            print(f"ERROR: Could not run input generator for {name}: {e}", file=sys.stderr)
            results.append({'name': name, 'success': False, 'skipped': False, 'error': str(e)})
            continue

        if result.returncode != 0:
            error = result.stderr.strip() or f"exit code {result.returncode}"
            print(f"ERROR: Input generation failed for {name}: {error}", file=sys.stderr)
            results.append({'name': name, 'success': False, 'skipped': False, 'error': error})
        else:
            results.append({'name': name, 'success': True, 'skipped': False, 'error': ''})

    return results
