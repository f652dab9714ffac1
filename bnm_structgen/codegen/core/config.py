"""
Configuration management for header generation.

Handles loading and merging configuration from JSON files,
providing defaults and validation for generator settings.
"""

import json
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

DEFAULT_INPUT = "./Files/Assembly-CSharp.dll"
COMBINED_FILE_NAME = "BNMResolves.hpp"
RESOLVE_HEADER = "BNMResolve.hpp"


class ConfigError(Exception):
    """Exception raised for configuration-related errors."""

    pass


@dataclass
class GeneratorConfig:
    """Settings for one generation run."""

    # Output settings
    output_dir: str = "Output"
    combined_file_name: str = COMBINED_FILE_NAME
    single_file: bool = False

    # Metadata backends
    use_reflection: bool = False

    # Header boilerplate
    image_name: Optional[str] = None  # defaults to the input file name
    resolve_header: str = RESOLVE_HEADER
    using_namespaces: List[str] = field(
        default_factory=lambda: [
            "BNM",
            "BNM::IL2CPP",
            "BNM::Structures",
            "BNM::Structures::Unity",
            "BNM::UnityEngine",
        ]
    )
    obfuscate_macro: str = "O"

    # Type handling
    allowed_namespaces: List[str] = field(default_factory=lambda: ["System", "UnityEngine"])
    placeholder_base: str = "Behaviour"

    # Code style settings
    indent_size: int = 4

    # Diagnostics
    validate_output: bool = True
    warnings_file: str = "GenerationWarnings.txt"
    validation_report_file: str = "ValidationReport.txt"
    error_file: str = "GeneratorError.txt"

    # Custom settings
    custom: Dict[str, Any] = field(default_factory=dict)

    @property
    def indent(self) -> str:
        return " " * self.indent_size


class ConfigManager:
    """Manages configuration loading and merging."""

    def __init__(self):
        """Initialize configuration manager."""
        self._defaults: Dict[str, Any] = asdict(GeneratorConfig())

    def get_config(
        self,
        custom_config: Optional[Dict[str, Any]] = None,
        config_file: Optional[Union[str, Path]] = None,
    ) -> GeneratorConfig:
        """
        Get complete configuration.

        Args:
            custom_config: Custom configuration overrides (CLI flags)
            config_file: Path to JSON configuration file

        Returns:
            Merged configuration
        """
        # Start with defaults
        base_config = dict(self._defaults)

        # Load from file if provided
        if config_file:
            base_config.update(self._load_config_file(config_file))

        # Apply custom overrides
        if custom_config:
            base_config.update({k: v for k, v in custom_config.items() if v is not None})

        config = self._dict_to_config(base_config)
        problems = self.validate_config(config)
        if problems:
            raise ConfigError("; ".join(problems))
        return config

    def _load_config_file(self, config_path: Union[str, Path]) -> Dict[str, Any]:
        """Load configuration from JSON file."""
        path = Path(config_path)

        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        if not path.suffix.lower() == ".json":
            raise ConfigError(f"Configuration file must be JSON: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                config = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in configuration file {path}: {str(e)}")
        except OSError as e:
            raise ConfigError(f"Failed to load configuration file {path}: {str(e)}")

        if not isinstance(config, dict):
            raise ConfigError(f"Configuration file must contain a JSON object: {path}")

        return config

    def _dict_to_config(self, config_dict: Dict[str, Any]) -> GeneratorConfig:
        """Convert dictionary to GeneratorConfig instance."""
        known_fields = {f.name for f in fields(GeneratorConfig)}

        config_args = {}
        custom_args = {}

        for key, value in config_dict.items():
            if key in known_fields:
                config_args[key] = value
            else:
                custom_args[key] = value

        # Unknown keys are kept in the custom dict
        if custom_args:
            existing_custom = dict(config_args.get("custom") or {})
            existing_custom.update(custom_args)
            config_args["custom"] = existing_custom

        return GeneratorConfig(**config_args)

    def validate_config(self, config: GeneratorConfig) -> List[str]:
        """
        Validate configuration values.

        Returns:
            List of problems (empty if the configuration is usable)
        """
        problems = []

        if not isinstance(config.indent_size, int) or config.indent_size < 0:
            problems.append(f"Invalid indent_size: {config.indent_size}")

        if not config.allowed_namespaces:
            problems.append("allowed_namespaces must not be empty")

        if not config.placeholder_base or not config.placeholder_base.isidentifier():
            problems.append(f"Invalid placeholder_base: {config.placeholder_base!r}")

        if not config.obfuscate_macro or not config.obfuscate_macro.isidentifier():
            problems.append(f"Invalid obfuscate_macro: {config.obfuscate_macro!r}")

        if not config.combined_file_name:
            problems.append("combined_file_name must not be empty")

        return problems


# Global configuration manager instance
_config_manager = None


def get_config_manager() -> ConfigManager:
    """Get the global configuration manager instance."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def load_config(
    custom_config: Optional[Dict[str, Any]] = None,
    config_file: Optional[Union[str, Path]] = None,
) -> GeneratorConfig:
    """
    Convenience function to load configuration.

    Args:
        custom_config: Custom configuration overrides
        config_file: Path to JSON configuration file

    Returns:
        Merged configuration
    """
    return get_config_manager().get_config(custom_config, config_file)

