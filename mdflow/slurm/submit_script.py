"""
submit_script.py

Rewriting the resource directives of a simulation's submit.sh.

Only three directives depend on the partition a job lands on:

    #SBATCH --partition=<name>
    #SBATCH --ntasks-per-node=<cores>
    #SBATCH --time=<wall time>

rewrite_directives() is pure (text in, text out); write_submit_script()
persists the result.
"""

from pathlib import Path

from .partition_config import QueueDescriptor


# Directive prefix -> QueueDescriptor attribute
DIRECTIVES = [
    ('#SBATCH --partition=', 'name'),
    ('#SBATCH --ntasks-per-node=', 'cores'),
    ('#SBATCH --time=', 'time'),
]


def read_submit_script(submit_file: Path) -> str:
    """Read a submit script, converting Windows line endings."""
    with open(submit_file, newline='') as f:
        text = f.read()
    return text.replace('\r\n', '\n').replace('\r', '\n')


def rewrite_directives(text: str, queue: QueueDescriptor) -> str:
    """
    Point a submit script at a partition.

    Each directive line is replaced in place. A directive the script does
    not have is inserted after the last '#SBATCH' line, or after the
    shebang when there is none.

    Args:
        text: Submit script contents
        queue: Target partition

    Returns:
        New script contents
    """
    lines = text.replace('\r\n', '\n').split('\n')
    missing = []

    for prefix, attr in DIRECTIVES:
        directive = f"{prefix}{getattr(queue, attr)}"
        found = False
        for i, line in enumerate(lines):
            if line.startswith(prefix):
                lines[i] = directive
                found = True
        if not found:
            missing.append(directive)

    if missing:
        anchor = -1
        for i, line in enumerate(lines):
            if line.startswith('#SBATCH'):
                anchor = i
        if anchor < 0 and lines and lines[0].startswith('#!'):
            anchor = 0
        lines[anchor + 1:anchor + 1] = missing

    return '\n'.join(lines)


def write_submit_script(submit_file: Path, text: str) -> None:
    """Write a submit script with Unix line endings."""
    with open(submit_file, 'w', newline='\n') as f:
        f.write(text)


def update_submit_script(submit_file: Path, queue: QueueDescriptor) -> str:
    """Rewrite the directives of a submit script on disk. Returns the new text."""
    text = rewrite_directives(read_submit_script(submit_file), queue)
    write_submit_script(submit_file, text)
    return text
