"""
Header code generation.

Generates BNM proxy headers from assembly type descriptors.
"""

from .core.config import ConfigError, ConfigManager, GeneratorConfig, load_config
from .core.generator import GenerationResult, GeneratorError, HeaderGenerator, generate_code
from .cpp.generator import BNMHeaderGenerator


def get_generator(config=None) -> BNMHeaderGenerator:
    """
    Create a header generator.

    Args:
        config: GeneratorConfig, dict of overrides, path to a JSON config file or None

    Returns:
        Configured BNMHeaderGenerator
    """
    if isinstance(config, GeneratorConfig):
        final_config = config
    elif isinstance(config, dict):
        final_config = load_config(custom_config=config)
    elif config is None:
        final_config = load_config()
    else:
        final_config = load_config(config_file=config)
    return BNMHeaderGenerator(final_config)


def generate_headers(types, config=None) -> GenerationResult:
    """Generate headers for a list of TypeDescriptor objects."""
    return generate_code(get_generator(config), types)


__all__ = [
    "BNMHeaderGenerator",
    "ConfigError",
    "ConfigManager",
    "GenerationResult",
    "GeneratorConfig",
    "GeneratorError",
    "HeaderGenerator",
    "generate_code",
    "generate_headers",
    "get_generator",
    "load_config",
]
