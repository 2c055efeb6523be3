"""
dependencies.py

Readiness check for a simulation directory.

The actual logic lives outside this package (dependency_checker.py next to
the simulations, or any command given in the config). The checker prints
the path of the file the simulation needs when it is available and prints
nothing (or None) otherwise. A checker that does not answer within the
timeout counts as "not ready".
"""

import subprocess
import sys
from pathlib import Path
from typing import Optional


DEFAULT_TIMEOUT = 10  # seconds

DEFAULT_CHECKER = (
    "import sys, dependency_checker; "
    "print(dependency_checker.check_dependencies(sys.argv[1]))"
)


def build_command(job_dir: Path, command: Optional[list] = None) -> list:
    """
    Build the checker command for a directory.

    '{job_dir}' in any argument is replaced with the directory; if no
    argument contains it, the directory is appended.
    """
    if command is None:
        return [sys.executable, '-c', DEFAULT_CHECKER, str(job_dir)]

    placeholder = '{job_dir}'
    if any(placeholder in arg for arg in command):
        return [arg.replace(placeholder, str(job_dir)) for arg in command]
    return list(command) + [str(job_dir)]


def check_dependencies(
    job_dir: Path,
    command: Optional[list] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> Optional[Path]:
    """
    Ask the dependency checker whether a simulation can start.

    Args:
        job_dir: Simulation directory
        command: Checker command (None = dependency_checker module)
        timeout: Seconds before the check counts as not ready

    Returns:
        Path of the satisfied dependency, or None if not ready
    """
    cmd = build_command(job_dir, command)

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        print(f"WARNING: Dependency check timed out after {timeout}s: {job_dir}", file=sys.stderr)
        return None
    except OSError as e:
        print(f"WARNING: Dependency check could not run for {job_dir}: {e}", file=sys.stderr)
        return None

    lines = [line.strip() for line in result.stdout.strip().split('\n') if line.strip()]
    if not lines:
        return None

    output = lines[-1]
    if output == 'None':
        return None

    path = Path(output)
    if not path.is_absolute():
        path = Path(job_dir) / path

    return path if path.is_file() else None
