import json

import pytest

from bnm_structgen.codegen.core.config import (
    COMBINED_FILE_NAME,
    ConfigError,
    ConfigManager,
    GeneratorConfig,
    load_config,
)


@pytest.fixture
def manager():
    return ConfigManager()


@pytest.fixture
def write_config(tmp_path):
    def _write_config(content, name="structgen.json"):
        path = tmp_path / name
        path.write_text(content if isinstance(content, str) else json.dumps(content), encoding="utf-8")
        return path

    return _write_config


def test_defaults(manager):
    config = manager.get_config()
    assert config == GeneratorConfig()
    assert config.output_dir == "Output"
    assert config.combined_file_name == COMBINED_FILE_NAME
    assert config.single_file is False
    assert config.use_reflection is False
    assert config.image_name is None
    assert config.allowed_namespaces == ["System", "UnityEngine"]
    assert config.indent == "    "


def test_config_file_and_overrides(manager, write_config):
    path = write_config({"single_file": True, "output_dir": "FromFile", "indent_size": 2})

    config = manager.get_config({"output_dir": "FromCli", "single_file": None}, path)

    assert config.output_dir == "FromCli"
    assert config.single_file is True
    assert config.indent == "  "


def test_unknown_keys_go_to_custom(manager, write_config):
    config = manager.get_config(config_file=write_config({"team": "tools", "custom": {"a": 1}}))
    assert config.custom == {"a": 1, "team": "tools"}


@pytest.mark.parametrize(
    ("content", "message"),
    [
        ("{not json", "Invalid JSON"),
        ("[1, 2]", "must contain a JSON object"),
        ({"indent_size": -1}, "Invalid indent_size"),
        ({"allowed_namespaces": []}, "allowed_namespaces"),
        ({"obfuscate_macro": "1bad"}, "Invalid obfuscate_macro"),
        ({"placeholder_base": ""}, "Invalid placeholder_base"),
    ],
)
def test_invalid_config_files(manager, write_config, content, message):
    with pytest.raises(ConfigError, match=message):
        manager.get_config(config_file=write_config(content))


def test_missing_config_file(manager, tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        manager.get_config(config_file=tmp_path / "missing.json")


def test_config_file_must_be_json(manager, write_config):
    with pytest.raises(ConfigError, match="must be JSON"):
        manager.get_config(config_file=write_config("{}", name="structgen.yaml"))


def test_load_config_helper(write_config):
    config = load_config({"image_name": "Game.dll"}, write_config({"single_file": True}))
    assert config.image_name == "Game.dll"
    assert config.single_file is True
