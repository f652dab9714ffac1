"""
BNM header generator.

Turns type descriptors into C++ structs whose members proxy the managed
fields, properties and methods through BNM's Class/Field/Method handles.
"""

from pathlib import Path
from typing import Iterable, Optional, Sequence

from ...logging_config import get_logger
from ...metadata.model import TypeDescriptor
from ..core.config import GeneratorConfig
from ..core.generator import (
    CodeBuffer,
    Diagnostics,
    GenerationResult,
    HeaderGenerator,
    OutputUnit,
)
from ..core.naming import GeneratedNameRegistry
from .emitters import EmitContext, emit_enum, emit_members, enum_underlying_spelling
from .layout import LayoutOrganizer
from .naming import create_cpp_sanitizer
from .types import BaseKind, TypeMapper

logger = get_logger(__name__)

DEFAULT_IMAGE_NAME = "Assembly-CSharp.dll"


class BNMHeaderGenerator(HeaderGenerator):
    """Header generator for BNM (ByNameModding) proxy structs."""

    def __init__(self, config: Optional[GeneratorConfig] = None):
        """Initialize generator with configuration."""
        super().__init__(config)

        self.sanitizer = create_cpp_sanitizer()
        self.image_name = self.config.image_name or DEFAULT_IMAGE_NAME
        self.indent = self.config.indent

        # Replaced at the start of every generate() call
        self.mapper = self.create_mapper(())

    def get_template_directory(self) -> Optional[Path]:
        """Return the C++ templates directory."""
        template_dir = Path(__file__).parent / "templates"
        return template_dir if template_dir.exists() else None

    @property
    def language_name(self) -> str:
        return "cpp"

    @property
    def file_extension(self) -> str:
        return ".hpp"

    def create_mapper(self, types: Iterable[TypeDescriptor]) -> TypeMapper:
        """Fresh mapper knowing every type that will be emitted in this run."""
        return TypeMapper(
            allowed_namespaces=self.config.allowed_namespaces,
            defined_types=types,
            sanitizer=self.sanitizer,
        )

    def generate(self, types: Sequence[TypeDescriptor]) -> GenerationResult:
        """Generate every output unit for the given types."""
        diagnostics = Diagnostics()
        self.mapper = self.create_mapper(types)
        organizer = LayoutOrganizer(self, diagnostics)

        if self.config.single_file:
            units = organizer.combined(types)
        else:
            units = organizer.split(types)

        units = [OutputUnit(u.relative_path, self.format_code(u.content)) for u in units]
        metadata = {
            "language": self.language_name,
            "layout": "combined" if self.config.single_file else "split",
            "type_count": len(types),
            "emitted_count": organizer.emitted_count,
            "unit_count": len(units),
            "image_name": self.image_name,
        }
        return GenerationResult(units, diagnostics.as_lines(), metadata)

    # Building blocks used by the layout organizer

    def render_preamble(self, includes: Iterable[str] = ()) -> str:
        return self.render_template(
            "preamble.hpp.j2",
            {
                "using_namespaces": self.config.using_namespaces,
                "macro": self.config.obfuscate_macro,
                "resolve_header": self.config.resolve_header,
                "includes": list(includes),
            },
        )

    def type_name(self, type_desc: TypeDescriptor) -> str:
        """Unqualified C++ name of the struct or enum generated for a type."""
        return self.mapper.struct_name(type_desc.name)

    def forward_declaration(self, type_desc: TypeDescriptor) -> str:
        name = self.type_name(type_desc)
        if type_desc.is_enum:
            return f"enum class {name} : {enum_underlying_spelling(type_desc.enum_underlying_type)};"
        return f"struct {name};"

    def emit_type(self, buffer: CodeBuffer, type_desc: TypeDescriptor, diagnostics: Diagnostics) -> bool:
        """
        Emit one type into ``buffer``.

        The type is written to a scratch buffer first, so an unexpected
        failure part-way through leaves only a comment behind.

        Returns:
            True if a struct or enum body was written
        """
        scratch = CodeBuffer(self.indent)
        local = Diagnostics()
        kind = "enum" if type_desc.is_enum else "class"
        try:
            if type_desc.is_enum:
                emitted = self._emit_enum(scratch, type_desc, local)
            else:
                emitted = self._emit_class(scratch, type_desc, local)
        except Exception as e:
            logger.warning("Error generating %s %s: %s", kind, type_desc.full_name, e)
            message = f"Error generating {kind} {type_desc.name}: {e}"
            buffer.comment(message)
            buffer.line()
            diagnostics.warn(f"{type_desc.full_name}: {message}")
            return False

        buffer.lines(scratch.getvalue())
        diagnostics.extend(local)
        logger.info("Generated %s %s", kind, type_desc.full_name)
        return emitted

    def _emit_enum(self, buffer: CodeBuffer, type_desc: TypeDescriptor, diagnostics: Diagnostics) -> bool:
        emit_enum(
            buffer,
            type_desc,
            self.type_name(type_desc),
            self.sanitizer,
            diagnostics,
            self.render_template,
            indent=self.indent,
        )
        return True

    def _emit_class(self, buffer: CodeBuffer, type_desc: TypeDescriptor, diagnostics: Diagnostics) -> bool:
        struct_name = self.type_name(type_desc)
        base = self.mapper.resolve_base(type_desc, self.config.placeholder_base)

        if base.kind == BaseKind.REMOVED:
            message = f"REMOVED: Class '{struct_name}' inherits from removed base class '{base.source_name}'"
            buffer.comment(message)
            buffer.line()
            diagnostics.warn(f"{type_desc.full_name}: {message}")
            return False

        if base.kind == BaseKind.SELF:
            message = f"WARNING: Class '{struct_name}' inherits from its own class type"
            buffer.comment(message)
            diagnostics.warn(f"{type_desc.full_name}: {message}")
        elif base.kind == BaseKind.FOREIGN:
            message = f"NOTE: Class '{struct_name}' inherits from other class type '{base.source_name}'"
            buffer.comment(message)
            diagnostics.warn(f"{type_desc.full_name}: {message}")

        buffer.line(f"struct {struct_name} : {base.cpp_name} {{")
        buffer.line("public:")

        with buffer.indented():
            ctx = EmitContext(
                type_desc=type_desc,
                struct_name=struct_name,
                buffer=buffer,
                registry=GeneratedNameRegistry(struct_name),
                diagnostics=diagnostics,
                mapper=self.mapper,
                render=self.render_template,
                macro=self.config.obfuscate_macro,
                indent=self.indent,
            )
            emit_members(ctx, self.image_name)

        buffer.line("};")
        buffer.line()
        return True
