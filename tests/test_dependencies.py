import sys

from mdflow.slurm.dependencies import build_command, check_dependencies


def python(code):
    return [sys.executable, '-c', code]


def test_ready_returns_path(tmp_path):
    data = tmp_path / 'eq.restart'
    data.write_text('')
    cmd = python(f"print({str(data)!r})")

    assert check_dependencies(tmp_path, command=cmd) == data


def test_relative_path_resolved_against_job_dir(tmp_path):
    (tmp_path / 'eq.restart').write_text('')
    cmd = python("print('eq.restart')")

    assert check_dependencies(tmp_path, command=cmd) == tmp_path / 'eq.restart'


def test_empty_output_not_ready(tmp_path):
    assert check_dependencies(tmp_path, command=python("pass")) is None


def test_none_output_not_ready(tmp_path):
    assert check_dependencies(tmp_path, command=python("print(None)")) is None


def test_nonexistent_path_not_ready(tmp_path):
    cmd = python(f"print({str(tmp_path / 'missing.data')!r})")
    assert check_dependencies(tmp_path, command=cmd) is None


def test_timeout_not_ready(tmp_path, capsys):
    cmd = python("import time; time.sleep(5)")

    assert check_dependencies(tmp_path, command=cmd, timeout=0.5) is None
    assert 'timed out' in capsys.readouterr().err


def test_missing_checker_not_ready(tmp_path, capsys):
    assert check_dependencies(tmp_path, command=[str(tmp_path / 'no-such-checker')]) is None
    assert 'could not run' in capsys.readouterr().err


def test_job_dir_passed_to_checker(tmp_path):
    (tmp_path / 'ready.flag').write_text('')
    cmd = python("import sys; print(sys.argv[1] + '/ready.flag')")

    assert check_dependencies(tmp_path, command=cmd) == tmp_path / 'ready.flag'


def test_build_command_placeholder(tmp_path):
    cmd = build_command(tmp_path, ['checker', '--dir={job_dir}', '-v'])
    assert cmd == ['checker', f'--dir={tmp_path}', '-v']


def test_build_command_default_uses_dependency_checker(tmp_path):
    cmd = build_command(tmp_path)
    assert cmd[0] == sys.executable
    assert 'dependency_checker.check_dependencies' in cmd[2]
    assert cmd[-1] == str(tmp_path)
