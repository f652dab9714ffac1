import json

import pytest

from conftest import FakeLoader

from bnm_structgen import driver as driver_module
from bnm_structgen.cli import build_config, create_parser, main
from bnm_structgen.codegen.core.config import DEFAULT_INPUT, GeneratorConfig
from bnm_structgen.metadata.model import TypeRef


@pytest.fixture
def fake_backend(monkeypatch, make_type, make_field, mono_behaviour):
    """Replace the real metadata backends with a canned one."""
    types = [
        make_type("Player", base=mono_behaviour, fields=[make_field("health"), make_field("target", TypeRef("X", "Other"))]),
        make_type("Helper", namespace=None),
    ]
    loader = FakeLoader("dnfile", types)
    monkeypatch.setattr(driver_module, "default_loaders", lambda config: [loader])
    return loader


def test_parser_defaults():
    args = create_parser().parse_args([])

    assert args.input == DEFAULT_INPUT
    assert args.single_file is None
    assert args.reflection is None
    assert args.output is None
    assert args.no_validate is False
    assert build_config(args) == GeneratorConfig()


def test_flags_become_config():
    args = create_parser().parse_args(
        ["-s", "-r", "-o", "Generated", "--image-name", "Game.dll", "--no-validate", "game.dll"]
    )
    config = build_config(args)

    assert args.input == "game.dll"
    assert config.single_file is True
    assert config.use_reflection is True
    assert config.output_dir == "Generated"
    assert config.image_name == "Game.dll"
    assert config.validate_output is False


def test_flags_override_config_file(tmp_path):
    config_file = tmp_path / "structgen.json"
    config_file.write_text(json.dumps({"single_file": True, "output_dir": "FromFile"}), encoding="utf-8")

    config = build_config(create_parser().parse_args(["--config", str(config_file), "-o", "FromCli"]))

    assert config.single_file is True
    assert config.output_dir == "FromCli"


def test_successful_run(fake_backend, assembly_file, tmp_path, capsys):
    output = tmp_path / "Output"

    assert main([str(assembly_file), "-o", str(output), "-s"]) == 0

    header = output / "BNMResolves.hpp"
    assert header.exists()
    assert "struct Player : MonoBehaviour {" in header.read_text(encoding="utf-8")
    assert (output / "GenerationWarnings.txt").exists()
    assert not (output / "GeneratorError.txt").exists()

    out = capsys.readouterr().out
    assert "single file mode" in out
    assert "Validation passed" in out
    assert fake_backend.calls == [assembly_file]


def test_split_run(fake_backend, assembly_file, tmp_path):
    output = tmp_path / "Output"

    assert main([str(assembly_file), "-o", str(output)]) == 0

    assert (output / "Game" / "Player.hpp").exists()
    assert (output / "Global" / "Helper.hpp").exists()


def test_missing_assembly_writes_error_report(fake_backend, tmp_path, capsys):
    output = tmp_path / "Output"

    assert main([str(tmp_path / "missing.dll"), "-o", str(output)]) == 1

    report = (output / "GeneratorError.txt").read_text(encoding="utf-8")
    assert report.startswith("Error processing assembly:")
    assert "missing.dll" in report
    assert "Error" in capsys.readouterr().out
    assert fake_backend.calls == []


def test_backend_failure_exit_code(monkeypatch, assembly_file, tmp_path):
    failing = FakeLoader("dnfile", error="not a .NET image")
    monkeypatch.setattr(driver_module, "default_loaders", lambda config: [failing])
    output = tmp_path / "Output"

    assert main([str(assembly_file), "-o", str(output)]) == 1
    assert "not a .NET image" in (output / "GeneratorError.txt").read_text(encoding="utf-8")


def test_bad_config_file(tmp_path, capsys):
    assert main(["--config", str(tmp_path / "missing.json")]) == 1
    assert "Configuration error" in capsys.readouterr().out
