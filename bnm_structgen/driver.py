"""
Run driver.

Loads the assembly through the configured metadata backends, filters and
deduplicates the types, generates headers and writes every run artifact.
"""

import dataclasses
import traceback
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from .codegen.core.config import GeneratorConfig
from .codegen.core.generator import GenerationResult, GeneratorError, generate_code
from .codegen.cpp.generator import BNMHeaderGenerator
from .logging_config import get_logger
from .metadata import REFLECTION_BACKEND, STANDALONE_BACKEND, get_loader
from .metadata.loader import MetadataLoader, MetadataLoadError, deduplicate_types
from .metadata.model import TypeDescriptor
from .utils import prepare_output_dir, resolve_assembly_path, write_lines, write_units
from .validation import ValidationReport, validate_sources

logger = get_logger(__name__)

# Framework collection plumbing that never makes a useful proxy
EXCLUDED_NAMESPACE_FRAGMENT = "System.Collections"
EXCLUDED_NAME_FRAGMENTS = ("IEnumerator", "IEnumerable", "ICollection", "IList", "IDictionary")


class NoTypesFoundError(GeneratorError):
    """Raised when the assembly yields nothing to generate."""

    pass


@dataclass
class RunSummary:
    """What a finished run produced."""

    assembly: Path
    output_dir: Path
    backends: List[str] = field(default_factory=list)
    loaded_count: int = 0
    type_count: int = 0
    emitted_count: int = 0
    written: List[Path] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    warnings_path: Optional[Path] = None
    validation: Optional[ValidationReport] = None
    validation_path: Optional[Path] = None


def is_generatable(type_desc: TypeDescriptor) -> bool:
    """Whether a type gets a struct or enum in the output."""
    if not (type_desc.is_class or type_desc.is_enum):
        return False
    if type_desc.is_nested or "<" in type_desc.name:
        return False
    if EXCLUDED_NAMESPACE_FRAGMENT in type_desc.full_name:
        return False
    return not any(fragment in type_desc.name for fragment in EXCLUDED_NAME_FRAGMENTS)


def filter_types(types: Sequence[TypeDescriptor]) -> List[TypeDescriptor]:
    """Keep generatable types, first descriptor per qualified name."""
    return deduplicate_types(t for t in types if t is not None and is_generatable(t))


def default_loaders(config: GeneratorConfig) -> List[MetadataLoader]:
    """
    Backends for a run, in priority order.

    The reflection backend runs first when enabled, so its descriptors win
    the deduplication; the standalone backend always runs.
    """
    names = [STANDALONE_BACKEND]
    if config.use_reflection:
        names.insert(0, REFLECTION_BACKEND)
    return [get_loader(name) for name in names]


class GenerationDriver:
    """Runs one generation from an assembly path to files on disk."""

    def __init__(
        self,
        config: GeneratorConfig,
        loaders: Optional[Sequence[MetadataLoader]] = None,
    ):
        self.config = config
        self.loaders = list(loaders) if loaders is not None else default_loaders(config)

    @property
    def output_dir(self) -> Path:
        return Path(self.config.output_dir)

    @property
    def artifact_names(self) -> List[str]:
        return [self.config.warnings_file, self.config.validation_report_file, self.config.error_file]

    def load_types(self, assembly_path: Path, used: Optional[List[str]] = None) -> List[TypeDescriptor]:
        """
        Union the types from every backend.

        Raises:
            MetadataLoadError: If no backend could read the assembly
        """
        loaded: List[TypeDescriptor] = []
        failures = []

        for loader in self.loaders:
            if not loader.is_available():
                logger.warning("Metadata backend %s is not available", loader.name)
                failures.append(f"{loader.name}: not available")
                continue
            try:
                types = loader.load(assembly_path)
            except MetadataLoadError as e:
                logger.warning("Could not load types using %s: %s", loader.name, e)
                failures.append(f"{loader.name}: {e}")
                continue
            logger.info("Loaded %d types using %s", len(types), loader.name)
            loaded.extend(types)
            if used is not None:
                used.append(loader.name)

        if failures and len(failures) == len(self.loaders):
            raise MetadataLoadError("No metadata backend could read the assembly (" + "; ".join(failures) + ")")
        return loaded

    def create_generator(self, assembly_path: Path) -> BNMHeaderGenerator:
        config = self.config
        if not config.image_name:
            config = dataclasses.replace(config, image_name=assembly_path.name)
        return BNMHeaderGenerator(config)

    def run(self, input_path) -> RunSummary:
        """
        Generate headers for one assembly.

        Args:
            input_path: Path to the assembly

        Returns:
            RunSummary describing what was written

        Raises:
            AssemblyNotFoundError: If the assembly does not exist
            MetadataLoadError: If no backend could read it
            NoTypesFoundError: If nothing generatable was found
            GeneratorError: If header generation failed as a whole
        """
        assembly_path = resolve_assembly_path(input_path)
        summary = RunSummary(assembly=assembly_path, output_dir=self.output_dir)

        loaded = self.load_types(assembly_path, summary.backends)
        summary.loaded_count = len(loaded)
        types = filter_types(loaded)
        summary.type_count = len(types)
        logger.info("Total unique types to process: %d", len(types))
        if not types:
            raise NoTypesFoundError(f"No valid types found to process in {assembly_path}")

        result = self.generate(self.create_generator(assembly_path), types)
        summary.emitted_count = result.metadata.get("emitted_count", 0)
        summary.warnings = result.warnings

        # Split output replaces the previous run; combined output only replaces its file
        prepare_output_dir(
            self.output_dir,
            clean=not self.config.single_file,
            protected=[assembly_path],
            artifact_names=self.artifact_names,
        )
        summary.written = write_units(self.output_dir, result.units)

        if result.warnings:
            summary.warnings_path = write_lines(self.output_dir / self.config.warnings_file, result.warnings)
            logger.info("All warnings saved to: %s", summary.warnings_path)

        if self.config.validate_output:
            sources = {unit.relative_path: unit.content for unit in result.units}
            summary.validation = validate_sources(sources, self.config.resolve_header)
            summary.validation_path = write_lines(
                self.output_dir / self.config.validation_report_file, summary.validation.as_lines()
            )
        return summary

    @staticmethod
    def generate(generator: BNMHeaderGenerator, types: Sequence[TypeDescriptor]) -> GenerationResult:
        result = generate_code(generator, types)
        if not result.success:
            raise GeneratorError(result.error_message) from result.exception
        return result

    def write_error_report(self, error: BaseException) -> Optional[Path]:
        """
        Persist a run-fatal error with its traceback.

        Returns:
            Path of the report, or None if it could not be written
        """
        text = f"Error processing assembly: {error}\n\nFull Exception:\n"
        text += "".join(traceback.format_exception(type(error), error, error.__traceback__))
        path = self.output_dir / self.config.error_file
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        except OSError as e:
            logger.error("Could not write error report %s: %s", path, e)
            return None
        return path


def run_generation(input_path, config: GeneratorConfig, loaders: Optional[Sequence[MetadataLoader]] = None) -> RunSummary:
    """Convenience wrapper around GenerationDriver.run."""
    return GenerationDriver(config, loaders).run(input_path)
