import importlib.util
from pathlib import Path

import pytest

from conftest import SAMPLES_IDL

SCRIPT = Path(__file__).resolve().parent.parent / "bin" / "generate_bindings.py"


@pytest.fixture(scope="module")
def cli():
    spec = importlib.util.spec_from_file_location("generate_bindings", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_generates_paired_files(cli, tmp_path, capsys):
    base = tmp_path / "samples"
    assert cli.main([str(SAMPLES_IDL), str(base)]) == 0

    out = capsys.readouterr().out
    assert f"Generated: {base}.js" in out
    assert f"Generated: {base}.cpp" in out
    assert "Generation completed in" in out
    assert "Module['Canvas'] = Canvas;" in (tmp_path / "samples.js").read_text()


def test_option_flags(cli, tmp_path):
    base = tmp_path / "geo"
    assert cli.main(["--idl", str(SAMPLES_IDL), "-o", str(base), "--module", "Geo", "--prefix", "geo_"]) == 0
    assert "Geo['Point'] = Point;" in (tmp_path / "geo.js").read_text()
    assert "geo_Calculator_add_2" in (tmp_path / "geo.cpp").read_text()


def test_error_exit_writes_nothing(cli, tmp_path, capsys):
    idl = tmp_path / "bad.idl"
    idl.write_text("interface ClassB { };\ninterface Bad { attribute ClassB[] items; };\n")

    assert cli.main([str(idl), str(tmp_path / "bad")]) == 1
    err = capsys.readouterr().err
    assert err.startswith("error: Bad.items:")
    assert sorted(p.name for p in tmp_path.iterdir()) == ["bad.idl"]


def test_unreadable_idl_reports_an_error(cli, tmp_path, capsys):
    missing = tmp_path / "missing.idl"
    assert cli.main([str(missing), str(tmp_path / "out")]) == 1
    err = capsys.readouterr().err
    assert err.startswith("error: ")
    assert "missing.idl" in err
    assert list(tmp_path.iterdir()) == []


def test_missing_idl_is_a_usage_error(cli):
    with pytest.raises(SystemExit):
        cli.main([])
