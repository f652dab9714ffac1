"""
Core code generation components.

Provides base classes and utilities used by the header generator.
"""

from .generator import (
    CodeBuffer,
    Diagnostics,
    GenerationResult,
    GeneratorError,
    HeaderGenerator,
    OutputUnit,
    generate_code,
)
from .naming import (
    GeneratedNameRegistry,
    NameSanitizer,
    NamingCase,
    to_camel_case,
    to_pascal_case,
    unique_names,
)
from .config import ConfigError, ConfigManager, GeneratorConfig, load_config
from .templates import TemplateEngine, TemplateError, create_template_engine

__all__ = [
    # Base generator interface
    "HeaderGenerator",
    "GeneratorError",
    "GenerationResult",
    "OutputUnit",
    "Diagnostics",
    "CodeBuffer",
    "generate_code",
    # Naming utilities
    "NameSanitizer",
    "NamingCase",
    "GeneratedNameRegistry",
    "to_pascal_case",
    "to_camel_case",
    "unique_names",
    # Configuration system
    "GeneratorConfig",
    "ConfigManager",
    "ConfigError",
    "load_config",
    # Template system
    "TemplateEngine",
    "TemplateError",
    "create_template_engine",
]
