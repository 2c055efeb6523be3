import sys

import pytest

from mdflow.slurm.inputs import (
    build_generator_command,
    create_next_folder,
    generate_inputs,
    read_molecules,
)


# Stand-in generator: creates <output_dir>/<name>/Eq/Sim-1/input.in
GENERATOR = [
    sys.executable, '-c',
    "import sys, pathlib; "
    "d = pathlib.Path(sys.argv[3]) / sys.argv[1] / 'Eq' / 'Sim-1'; "
    "d.mkdir(parents=True); "
    "(d / 'input.in').write_text(sys.argv[2])",
    '{name}', '{smiles}', '{output_dir}',
]


@pytest.fixture
def molecules(tmp_path):
    csv_file = tmp_path / 'molecules.csv'
    csv_file.write_text(
        "name,smiles\n"
        "BHT,CC1=CC(=C(C(=C1)C(C)(C)C)O)C(C)(C)C\n"
        "Phenol,Oc1ccccc1\n"
        ",CCO\n"
        "Empty,\n"
    )
    return csv_file


def test_first_folder(tmp_path):
    assert create_next_folder(tmp_path).name == 'Batch001'


def test_next_folder(tmp_path):
    (tmp_path / 'Batch001').mkdir()
    (tmp_path / 'Batch009').mkdir()
    (tmp_path / 'BatchX').mkdir()
    (tmp_path / 'Batch100.txt').write_text('')

    folder = create_next_folder(tmp_path)

    assert folder.name == 'Batch010'
    assert folder.is_dir()


def test_next_folder_prefix(tmp_path):
    (tmp_path / 'solubility004').mkdir()
    assert create_next_folder(tmp_path, 'solubility').name == 'solubility005'


def test_next_folder_missing_parent(tmp_path):
    with pytest.raises(FileNotFoundError):
        create_next_folder(tmp_path / 'nope')


def test_read_molecules_skips_invalid(molecules, capsys):
    df = read_molecules(molecules)

    assert list(df['name']) == ['BHT', 'Phenol']
    assert 'Skipping invalid line' in capsys.readouterr().out


def test_read_molecules_requires_columns(tmp_path):
    bad = tmp_path / 'bad.csv'
    bad.write_text("id,structure\n1,CCO\n")

    with pytest.raises(ValueError, match='missing columns'):
        read_molecules(bad)


def test_build_generator_command(tmp_path):
    cmd = build_generator_command(['gen', '{name}', '--smiles={smiles}', '{output_dir}'], 'BHT', 'CCO', tmp_path)
    assert cmd == ['gen', 'BHT', '--smiles=CCO', str(tmp_path)]


def test_generate_inputs(tmp_path, molecules):
    batch = create_next_folder(tmp_path)

    results = generate_inputs(molecules, batch, GENERATOR)

    assert [r['name'] for r in results] == ['BHT', 'Phenol']
    assert all(r['success'] for r in results)
    assert (batch / 'molecules.csv').exists()
    assert (batch / 'Phenol' / 'Eq' / 'Sim-1' / 'input.in').read_text() == 'Oc1ccccc1'


def test_generate_inputs_skips_existing(tmp_path, molecules):
    batch = create_next_folder(tmp_path)
    (batch / 'BHT').mkdir()

    results = generate_inputs(molecules, batch, GENERATOR)

    assert results[0] == {'name': 'BHT', 'success': True, 'skipped': True, 'error': ''}
    assert not (batch / 'BHT' / 'Eq').exists()


def test_generate_inputs_reports_failure(tmp_path, molecules, capsys):
    batch = create_next_folder(tmp_path)
    failing = [sys.executable, '-c', "import sys; sys.exit('boom')"]

    results = generate_inputs(molecules, batch, failing)

    assert not any(r['success'] for r in results)
    assert results[0]['error'] == 'boom'
    assert 'Input generation failed' in capsys.readouterr().err


def test_generate_inputs_requires_command(tmp_path, molecules):
    with pytest.raises(ValueError, match='No input generator command'):
        generate_inputs(molecules, tmp_path, None)
