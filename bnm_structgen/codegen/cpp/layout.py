"""
Namespace/layout organizer.

Groups types by namespace and lays generated code out either as one
combined header or as one header per type in a namespace directory tree.
"""

import posixpath
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Set

from ...logging_config import get_logger
from ...metadata.model import GLOBAL_NAMESPACE, TypeDescriptor
from ..core.generator import CodeBuffer, Diagnostics, OutputUnit
from .types import BaseKind, cpp_scope

if TYPE_CHECKING:
    from .generator import BNMHeaderGenerator

logger = get_logger(__name__)


@dataclass
class NamespaceGroup:
    """Types sharing one namespace, in emission order."""

    key: str
    namespace: Optional[str]
    types: List[TypeDescriptor] = field(default_factory=list)

    @property
    def is_global(self) -> bool:
        return self.namespace is None

    @property
    def directory(self) -> str:
        if self.is_global:
            return GLOBAL_NAMESPACE
        return "/".join(self.namespace.split("."))


class LayoutOrganizer:
    """Builds output units from type descriptors using a BNMHeaderGenerator."""

    def __init__(self, generator: "BNMHeaderGenerator", diagnostics: Diagnostics):
        self.generator = generator
        self.diagnostics = diagnostics
        self.forward_declared: Set[str] = set()
        self.emitted: Set[str] = set()
        self.emitted_count = 0

    # Grouping

    def group_types(self, types: Sequence[TypeDescriptor]) -> List[NamespaceGroup]:
        """
        Group types by namespace.

        Within a group the first type seen for each C++ name wins and types
        with reserved names are dropped; survivors are sorted by name with
        same-group bases moved ahead of the types deriving from them.
        Groups are sorted by key.
        """
        groups: Dict[str, NamespaceGroup] = {}
        seen: Dict[str, Set[str]] = {}

        for type_desc in types:
            key = type_desc.group_name
            name = self.generator.type_name(type_desc)
            if self.generator.mapper.is_reserved_type_name(type_desc.clean_name):
                logger.debug("Skipping %s: reserved type name", type_desc.full_name)
                continue
            names = seen.setdefault(key, set())
            if name in names:
                logger.debug("Skipping %s: duplicate name %s in %s", type_desc.full_name, name, key)
                continue
            names.add(name)
            groups.setdefault(key, NamespaceGroup(key, type_desc.namespace)).types.append(type_desc)

        ordered = []
        for key in sorted(groups):
            group = groups[key]
            group.types = self._bases_first(sorted(group.types, key=lambda t: t.name))
            ordered.append(group)
        return ordered

    def _bases_first(self, types: List[TypeDescriptor]) -> List[TypeDescriptor]:
        by_name = {t.full_name: t for t in types}
        result: List[TypeDescriptor] = []
        placed: Set[str] = set()

        def place(type_desc: TypeDescriptor, chain: Set[str]):
            if type_desc.full_name in placed or type_desc.full_name in chain:
                return
            base = type_desc.base_type
            if base is not None and base.full_name in by_name:
                place(by_name[base.full_name], chain | {type_desc.full_name})
            placed.add(type_desc.full_name)
            result.append(type_desc)

        for type_desc in types:
            place(type_desc, set())
        return result

    # Paths

    def unit_path(self, type_desc: TypeDescriptor) -> str:
        group = NamespaceGroup(type_desc.group_name, type_desc.namespace)
        return f"{group.directory}/{self.generator.type_name(type_desc)}{self.generator.file_extension}"

    def _base_include(self, type_desc: TypeDescriptor) -> Optional[str]:
        """Relative include of a foreign base generated into another unit."""
        if type_desc.is_enum:
            return None
        base = self.generator.mapper.resolve_base(type_desc, self.generator.config.placeholder_base)
        if base.kind != BaseKind.FOREIGN:
            return None
        target = self.generator.mapper.defined_type(base.target)
        source_dir = posixpath.dirname(self.unit_path(type_desc))
        return posixpath.relpath(self.unit_path(target), source_dir)

    # Emission helpers

    def _declare(self, buffer: CodeBuffer, type_desc: TypeDescriptor):
        if type_desc.full_name in self.forward_declared:
            return
        self.forward_declared.add(type_desc.full_name)
        buffer.line(self.generator.forward_declaration(type_desc))

    def _define(self, buffer: CodeBuffer, type_desc: TypeDescriptor):
        if type_desc.full_name in self.emitted:
            return
        self.emitted.add(type_desc.full_name)
        if self.generator.emit_type(buffer, type_desc, self.diagnostics):
            self.emitted_count += 1

    # Layouts

    def combined(self, types: Sequence[TypeDescriptor]) -> List[OutputUnit]:
        """Everything in one header: forward declarations first, then definitions."""
        groups = self.group_types(types)
        buffer = CodeBuffer(self.generator.indent)
        buffer.lines(self.generator.render_preamble())
        buffer.line()

        buffer.comment("Forward declarations")
        for group in groups:
            if group.is_global:
                buffer.comment("Global namespace types")
                for type_desc in group.types:
                    self._declare(buffer, type_desc)
            else:
                buffer.line(f"namespace {cpp_scope(group.namespace)} {{")
                with buffer.indented():
                    for type_desc in group.types:
                        self._declare(buffer, type_desc)
                buffer.line("}")
            buffer.line()

        for group in groups:
            if group.is_global:
                for type_desc in group.types:
                    self._define(buffer, type_desc)
            else:
                buffer.line(f"namespace {cpp_scope(group.namespace)} {{")
                with buffer.indented():
                    for type_desc in group.types:
                        self._define(buffer, type_desc)
                buffer.line("}")
            buffer.line()

        return [OutputUnit(self.generator.config.combined_file_name, buffer.getvalue())]

    def split(self, types: Sequence[TypeDescriptor]) -> List[OutputUnit]:
        """One header per type under a directory mirroring its namespace."""
        units = []
        for group in self.group_types(types):
            for type_desc in group.types:
                units.append(self._split_unit(group, type_desc))
        return units

    def _split_unit(self, group: NamespaceGroup, type_desc: TypeDescriptor) -> OutputUnit:
        include = self._base_include(type_desc)
        buffer = CodeBuffer(self.generator.indent)
        buffer.lines(self.generator.render_preamble([include] if include else []))
        buffer.line()

        # Forward declarations are per unit here
        self.forward_declared = set()
        others = [t for t in group.types if t.full_name != type_desc.full_name]

        if group.is_global:
            if others:
                buffer.comment("Forward declarations for other types in this namespace")
                for other in others:
                    self._declare(buffer, other)
                buffer.line()
            self._define(buffer, type_desc)
        else:
            buffer.line(f"namespace {cpp_scope(group.namespace)} {{")
            buffer.line()
            with buffer.indented():
                if others:
                    buffer.comment("Forward declarations for other types in this namespace")
                    for other in others:
                        self._declare(buffer, other)
                    buffer.line()
                self._define(buffer, type_desc)
            buffer.line("}")

        return OutputUnit(self.unit_path(type_desc), buffer.getvalue())
