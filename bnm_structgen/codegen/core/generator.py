"""
Base generator interface for header generation targets.

Defines the contract that the header generator implements, plus the
small value types that flow out of a generation run.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence

from ...logging_config import get_logger
from ...metadata.model import TypeDescriptor
from .config import GeneratorConfig
from .templates import TemplateEngine, create_template_engine

logger = get_logger(__name__)


class GeneratorError(Exception):
    """Base exception for code generation errors."""

    pass


@dataclass
class OutputUnit:
    """One file to be written, relative to the output root."""

    relative_path: str
    content: str


class Diagnostics:
    """Append-only warning and error list for one run."""

    def __init__(self):
        self.warnings: List[str] = []
        self.errors: List[str] = []

    def warn(self, message: str):
        self.warnings.append(message)
        logger.debug("warning: %s", message)

    def error(self, message: str):
        self.errors.append(message)
        logger.debug("error: %s", message)

    def extend(self, other: "Diagnostics"):
        self.warnings.extend(other.warnings)
        self.errors.extend(other.errors)

    def as_lines(self) -> List[str]:
        """Errors first, then warnings, each on its own line."""
        return [f"ERROR: {e}" for e in self.errors] + list(self.warnings)

    def __len__(self) -> int:
        return len(self.warnings) + len(self.errors)

    def __bool__(self) -> bool:
        return len(self) > 0


class CodeBuffer:
    """Line-oriented text buffer that tracks an indentation level."""

    def __init__(self, indent_unit: str = "    ", level: int = 0):
        self.indent_unit = indent_unit
        self.level = level
        self._lines: List[str] = []

    @property
    def prefix(self) -> str:
        return self.indent_unit * self.level

    def line(self, text: str = ""):
        self._lines.append(f"{self.prefix}{text}" if text else "")

    def lines(self, text: str):
        """Append multi-line text (a rendered template), indenting each non-blank line."""
        for line in text.rstrip("\n").split("\n"):
            self.line(line.rstrip())

    def comment(self, text: str):
        self.line(f"// {text}")

    @contextmanager
    def indented(self, levels: int = 1) -> Iterator["CodeBuffer"]:
        self.level += levels
        try:
            yield self
        finally:
            self.level -= levels

    def getvalue(self) -> str:
        return "\n".join(self._lines) + "\n" if self._lines else ""

    def __len__(self) -> int:
        return len(self._lines)


class HeaderGenerator(ABC):
    """Abstract base class for header generators."""

    def __init__(self, config: Optional[GeneratorConfig] = None):
        """Initialize generator with optional configuration."""
        self.config = config or GeneratorConfig()
        self._template_engine = None
        self._setup_templates()

    def _setup_templates(self):
        """Setup template engine for this generator."""
        self._template_engine = create_template_engine(self.get_template_directory())

    @property
    @abstractmethod
    def language_name(self) -> str:
        """Return the name of the target language."""
        pass

    @property
    @abstractmethod
    def file_extension(self) -> str:
        """Return the file extension for generated files (e.g., '.hpp')."""
        pass

    def get_template_directory(self) -> Optional[Path]:
        """
        Return the directory containing templates for this generator.

        Returns:
            Path to template directory or None
        """
        return None

    @property
    def template_engine(self) -> TemplateEngine:
        """Get the template engine for this generator."""
        if self._template_engine is None:
            self._setup_templates()
        return self._template_engine

    @abstractmethod
    def generate(self, types: Sequence[TypeDescriptor]) -> "GenerationResult":
        """
        Generate output units for all types.

        Args:
            types: Filtered, deduplicated type descriptors

        Returns:
            GenerationResult carrying output units and warnings
        """
        pass

    def format_code(self, code: str) -> str:
        """
        Strip trailing whitespace and collapse runs of blank lines.

        Args:
            code: Raw generated code

        Returns:
            Formatted code
        """
        lines = code.split("\n")
        formatted_lines = []
        blank_count = 0

        for line in lines:
            stripped = line.rstrip()
            if not stripped:
                blank_count += 1
                if blank_count <= 1:
                    formatted_lines.append("")
            else:
                blank_count = 0
                formatted_lines.append(stripped)

        return "\n".join(formatted_lines).strip("\n") + "\n"

    # Template helper methods

    def render_template(self, template_name: str, context: Dict[str, Any]) -> str:
        """
        Render a template with context.

        Args:
            template_name: Template file name
            context: Template variables

        Returns:
            Rendered content
        """
        return self.template_engine.render_template(template_name, context)


class GenerationResult:
    """Container for generation results and metadata."""

    def __init__(
        self,
        units: List[OutputUnit],
        warnings: List[str] = None,
        metadata: Dict[str, Any] = None,
    ):
        """
        Initialize generation result.

        Args:
            units: Generated files
            warnings: Any warnings from generation
            metadata: Additional metadata about generation
        """
        self.units = units
        self.warnings = warnings or []
        self.metadata = metadata or {}
        self.success = True
        self.error_message: Optional[str] = None
        self.exception: Optional[BaseException] = None

    @classmethod
    def error(cls, message: str, exception: BaseException = None) -> "GenerationResult":
        """Create a failed generation result."""
        result = cls(units=[])
        result.success = False
        result.error_message = message
        result.exception = exception
        return result


def generate_code(generator: HeaderGenerator, types: Sequence[TypeDescriptor]) -> GenerationResult:
    """
    Generate headers with the given generator, turning failures into a result.

    Args:
        generator: Header generator instance
        types: Type descriptors to generate

    Returns:
        GenerationResult with units, warnings, and metadata
    """
    try:
        return generator.generate(types)
    except Exception as e:
        logger.exception("Header generation failed")
        return GenerationResult.error(f"Header generation failed: {str(e)}", exception=e)
