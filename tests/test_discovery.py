import pytest

from mdflow.slurm.discovery import eligible_dirs, find_simulation_dirs

from conftest import COMPLETE_LOG, INCOMPLETE_LOG, make_sim


@pytest.fixture
def tree(batch):
    """Batch layout as produced by the input generator."""
    sims = {
        'eq1': make_sim(batch, 'BHT/Eq/Sim-1'),
        'eq2': make_sim(batch, 'BHT/Eq/Sim-2'),
        'rxn1': make_sim(batch, 'BHT/Reaction/Rmax=2.10_Rprob=0.25/Sim-1'),
    }
    # DataFile has no input.in
    (batch / 'BHT' / 'DataFile').mkdir(parents=True)
    (batch / 'BHT' / 'DataFile' / 'BHT.mol').write_text('')
    return sims


def test_finds_every_directory_with_input_file(batch, tree):
    found = find_simulation_dirs(batch)
    assert found == sorted(tree.values())


def test_directory_without_input_file_is_excluded(batch, tree, scheduler, config):
    make_sim(batch, 'BHT/Eq/Sim-X', input_file=False)

    assert batch / 'BHT/Eq/Sim-X' not in find_simulation_dirs(batch)
    assert batch / 'BHT/Eq/Sim-X' not in eligible_dirs(batch, scheduler, config)


def test_missing_root(tmp_path):
    with pytest.raises(FileNotFoundError):
        find_simulation_dirs(tmp_path / 'nope')


def test_custom_input_file(batch):
    sim = make_sim(batch, 'sim', input_file=False)
    (sim / 'in.lammps').write_text('')
    assert find_simulation_dirs(batch, 'in.lammps') == [sim]


def test_eligible_excludes_completed_running_pending(batch, scheduler, config):
    done = make_sim(batch, 'done', log=COMPLETE_LOG, submissions=['1'])
    running = make_sim(batch, 'running', log=INCOMPLETE_LOG, submissions=['2'])
    pending = make_sim(batch, 'pending', submissions=['3'])
    soft = make_sim(batch, 'soft', log=INCOMPLETE_LOG, submissions=['4'])
    hard = make_sim(batch, 'hard', log=INCOMPLETE_LOG, submissions=['5'])
    new = make_sim(batch, 'new')

    scheduler.set_record('1', 'COMPLETED')
    scheduler.set_record('2', 'RUNNING')
    scheduler.set_record('3', 'PENDING')
    scheduler.set_record('4', 'COMPLETED')
    scheduler.set_record('5', 'FAILED')

    eligible = eligible_dirs(batch, scheduler, config)

    assert eligible == {soft, hard, new}
    assert not eligible & {done, running, pending}


def test_pending_excluded_regardless_of_attempts(batch, scheduler, config):
    sim = make_sim(batch, 'Z', log=INCOMPLETE_LOG, submissions=['1', '2', '3', '4', '5'])
    scheduler.set_record('5', 'PENDING')

    assert eligible_dirs(batch, scheduler, config) == set()
