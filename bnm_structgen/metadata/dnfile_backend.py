"""
Standalone metadata backend built on dnfile.

Reads the ECMA-335 metadata tables straight from the PE file, no .NET
runtime required. Signatures are decoded by ``signatures.py``.
"""

from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Optional, Set

from ..logging_config import get_logger
from .loader import MetadataLoader, MetadataLoadError
from .model import (
    EnumValue,
    FieldDescriptor,
    MethodDescriptor,
    ParameterDescriptor,
    PropertyDescriptor,
    TypeCategory,
    TypeDescriptor,
    TypeRef,
    qualified_name,
)
from .signatures import (
    TYPEDEF_TAG,
    TYPEREF_TAG,
    TYPESPEC_TAG,
    SignatureError,
    decode_constant,
    parse_field_signature,
    parse_method_signature,
    parse_property_signature,
    parse_type_spec,
)

logger = get_logger(__name__)

ENUM_VALUE_FIELD = "value__"
MODULE_TYPE_NAME = "<Module>"
ENUM_BASE_NAME = "System.Enum"
ASSEMBLY_FILE_SUFFIX = ".dll"

# Framework enums that may be referenced without their defining assembly at hand
FRAMEWORK_ENUMS = frozenset(
    {
        "System.DateTimeKind",
        "System.DayOfWeek",
        "System.StringComparison",
        "System.TypeCode",
        "System.Globalization.NumberStyles",
        "System.IO.FileAccess",
        "System.IO.FileMode",
        "System.Reflection.BindingFlags",
        "UnityEngine.AnimatorCullingMode",
        "UnityEngine.CollisionDetectionMode",
        "UnityEngine.CursorLockMode",
        "UnityEngine.FilterMode",
        "UnityEngine.FontStyle",
        "UnityEngine.ForceMode",
        "UnityEngine.ForceMode2D",
        "UnityEngine.HideFlags",
        "UnityEngine.KeyCode",
        "UnityEngine.LogType",
        "UnityEngine.RigidbodyConstraints",
        "UnityEngine.RigidbodyInterpolation",
        "UnityEngine.RigidbodyType2D",
        "UnityEngine.RuntimePlatform",
        "UnityEngine.SendMessageOptions",
        "UnityEngine.Space",
        "UnityEngine.TextAnchor",
        "UnityEngine.TextureFormat",
        "UnityEngine.TextureWrapMode",
        "UnityEngine.TouchPhase",
        "UnityEngine.Rendering.ShadowCastingMode",
    }
)


def _text(value) -> str:
    """Heap strings are plain str in old dnfile releases and HeapItemString in new ones."""
    if value is None:
        return ""
    value = getattr(value, "value", value)
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def _blob(value) -> bytes:
    if value is None:
        return b""
    value = getattr(value, "value", value)
    return bytes(value)


def _rows(table) -> list:
    if table is None:
        return []
    return list(getattr(table, "rows", None) or [])


def _row_index(ref) -> int:
    return getattr(ref, "row_index", 0) or 0


def _flag(flags, name: str) -> bool:
    return bool(getattr(flags, name, False))


class ReferencedAssemblies:
    """
    Enum lookup over the assemblies stored next to the input.

    A Unity build keeps every managed assembly in one folder, so a TypeRef
    scoped to ``UnityEngine.CoreModule`` is resolved by reading
    ``UnityEngine.CoreModule.dll`` from the same directory. Each assembly is
    read at most once.
    """

    def __init__(self, directory: Optional[Path] = None):
        self.directory = directory
        self._enums: Dict[str, Set[str]] = {}

    def is_enum(self, assembly_name: Optional[str], full_name: str) -> bool:
        if not assembly_name or self.directory is None:
            return False
        if assembly_name not in self._enums:
            self._enums[assembly_name] = self.read_enum_names(
                self.directory / f"{assembly_name}{ASSEMBLY_FILE_SUFFIX}"
            )
        return full_name in self._enums[assembly_name]

    @staticmethod
    def read_enum_names(path: Path) -> Set[str]:
        """Qualified names of the enums an assembly defines; empty when it cannot be read."""
        if not path.is_file():
            return set()

        import dnfile

        try:
            pe = dnfile.dnPE(str(path))
        except Exception as e:
            logger.debug("Could not read referenced assembly %s: %s", path, e)
            return set()

        try:
            if pe.net is None or pe.net.mdtables is None:
                return set()
            names = MetadataTableReader(pe.net.mdtables).enum_names()
        finally:
            pe.close()

        logger.debug("Found %d enums in %s", len(names), path)
        return names


class DnfileLoader(MetadataLoader):
    """Metadata backend that parses the assembly with dnfile."""

    @property
    def name(self) -> str:
        return "dnfile"

    def is_available(self) -> bool:
        try:
            import dnfile  # noqa: F401
        except ImportError:
            return False
        return True

    def load(self, assembly_path: Path) -> List[TypeDescriptor]:
        try:
            import dnfile
        except ImportError as e:
            raise MetadataLoadError("dnfile is not installed") from e

        try:
            pe = dnfile.dnPE(str(assembly_path))
        except Exception as e:
            raise MetadataLoadError(f"dnfile could not parse {assembly_path}: {e}") from e

        try:
            if pe.net is None or pe.net.mdtables is None:
                raise MetadataLoadError(f"{assembly_path} has no .NET metadata")
            types = MetadataTableReader(
                pe.net.mdtables,
                source=self.name,
                referenced=ReferencedAssemblies(assembly_path.parent),
            ).read_types()
        finally:
            pe.close()

        logger.info("dnfile read %d type definitions from %s", len(types), assembly_path)
        return types


class MetadataTableReader:
    """Builds TypeDescriptors from dnfile's parsed metadata tables."""

    def __init__(self, tables, source: str = "dnfile", referenced: Optional[ReferencedAssemblies] = None):
        self.source = source
        self.referenced = referenced or ReferencedAssemblies()
        self.typedefs = _rows(getattr(tables, "TypeDef", None))
        self.typerefs = _rows(getattr(tables, "TypeRef", None))
        self.typespecs = _rows(getattr(tables, "TypeSpec", None))
        self.fields = _rows(getattr(tables, "Field", None))
        self.methods = _rows(getattr(tables, "MethodDef", None))
        self.params = _rows(getattr(tables, "Param", None))
        self.properties = _rows(getattr(tables, "Property", None))
        self.property_maps = _rows(getattr(tables, "PropertyMap", None))
        self.method_semantics = _rows(getattr(tables, "MethodSemantics", None))
        self.constants = _rows(getattr(tables, "Constant", None))
        self.nested_classes = _rows(getattr(tables, "NestedClass", None))

        self._typedef_ids = {id(row) for row in self.typedefs}
        self._typespec_ids = {id(row) for row in self.typespecs}
        self._field_ids = {id(row) for row in self.fields}
        self._property_ids = {id(row) for row in self.properties}

        self._categories: Dict[int, TypeCategory] = {}
        self._enclosing: Dict[int, int] = {
            _row_index(row.NestedClass): _row_index(row.EnclosingClass)
            for row in self.nested_classes
        }

    # Token resolution

    def resolve_token(self, tag: int, index: int, hint: TypeCategory) -> TypeRef:
        """Resolve a TypeDefOrRefOrSpec token found inside a signature."""
        if tag == TYPEDEF_TAG:
            row = self._row(self.typedefs, index, "TypeDef")
            return TypeRef(
                name=_text(row.TypeName),
                namespace=self._typedef_namespace(index) or None,
                category=self._typedef_category(index),
            )
        if tag == TYPEREF_TAG:
            row = self._row(self.typerefs, index, "TypeRef")
            return TypeRef(
                name=_text(row.TypeName),
                namespace=_text(row.TypeNamespace) or None,
                category=self._typeref_category(row, hint),
            )
        if tag == TYPESPEC_TAG:
            row = self._row(self.typespecs, index, "TypeSpec")
            return parse_type_spec(_blob(row.Signature), self.resolve_token)
        raise SignatureError(f"Unknown type token tag {tag}")

    @staticmethod
    def _row(rows: list, index: int, table_name: str):
        if index < 1 or index > len(rows):
            raise SignatureError(f"{table_name} row {index} out of range")
        return rows[index - 1]

    def _typeref_category(self, row, hint: TypeCategory) -> TypeCategory:
        """Value types from other assemblies may be enums; signatures only say VALUETYPE."""
        if hint != TypeCategory.STRUCT:
            return hint
        full_name = qualified_name(_text(row.TypeNamespace), _text(row.TypeName))
        if full_name in FRAMEWORK_ENUMS:
            return TypeCategory.ENUM
        if self.referenced.is_enum(self._scope_assembly(row), full_name):
            return TypeCategory.ENUM
        return hint

    @staticmethod
    def _scope_assembly(row) -> Optional[str]:
        """Name of the assembly a TypeRef resolves to; nested TypeRefs defer to their outer type."""
        scope = getattr(getattr(row, "ResolutionScope", None), "row", None)
        seen = set()
        while scope is not None and hasattr(scope, "TypeName") and id(scope) not in seen:
            seen.add(id(scope))
            scope = getattr(getattr(scope, "ResolutionScope", None), "row", None)
        if scope is None:
            return None
        return _text(getattr(scope, "Name", None)) or None

    def _typedef_namespace(self, index: int) -> str:
        """Nested types carry no namespace of their own; use the outermost type's."""
        seen = set()
        while index in self._enclosing and index not in seen:
            seen.add(index)
            index = self._enclosing[index]
        return _text(self._row(self.typedefs, index, "TypeDef").TypeNamespace)

    def _typedef_category(self, index: int) -> TypeCategory:
        if index in self._categories:
            return self._categories[index]

        row = self._row(self.typedefs, index, "TypeDef")
        own_name = qualified_name(_text(row.TypeNamespace), _text(row.TypeName))
        base_name = self._extends_name(row)

        if _flag(row.Flags, "tdInterface"):
            category = TypeCategory.INTERFACE
        elif base_name == ENUM_BASE_NAME:
            category = TypeCategory.ENUM
        elif base_name == "System.ValueType" and own_name != "System.Enum":
            category = TypeCategory.STRUCT
        else:
            category = TypeCategory.CLASS

        self._categories[index] = category
        return category

    def _extends_name(self, row) -> Optional[str]:
        target = getattr(getattr(row, "Extends", None), "row", None)
        if target is None:
            return None
        if hasattr(target, "TypeName"):
            return qualified_name(_text(target.TypeNamespace), _text(target.TypeName))
        return None

    def _base_type(self, row) -> Optional[TypeRef]:
        extends = getattr(row, "Extends", None)
        target = getattr(extends, "row", None)
        if target is None:
            return None
        index = _row_index(extends)
        if id(target) in self._typedef_ids:
            return self.resolve_token(TYPEDEF_TAG, index, TypeCategory.CLASS)
        if id(target) in self._typespec_ids:
            return self.resolve_token(TYPESPEC_TAG, index, TypeCategory.CLASS)
        return TypeRef(
            name=_text(target.TypeName),
            namespace=_text(target.TypeNamespace) or None,
            category=TypeCategory.CLASS,
        )

    # Table indexes

    def _constant_values(self) -> Dict[int, int]:
        values = {}
        for row in self.constants:
            parent = getattr(row, "Parent", None)
            if id(getattr(parent, "row", None)) not in self._field_ids:
                continue
            value = decode_constant(row.Type, _blob(row.Value))
            if value is not None:
                values[_row_index(parent)] = value
        return values

    def _properties_by_type(self) -> Dict[int, List[int]]:
        mapping = defaultdict(list)
        for row in self.property_maps:
            for ref in row.PropertyList or []:
                mapping[_row_index(row.Parent)].append(_row_index(ref))
        return mapping

    def _accessors_by_property(self) -> Dict[int, Dict[str, int]]:
        accessors = defaultdict(dict)
        for row in self.method_semantics:
            association = getattr(row, "Association", None)
            if id(getattr(association, "row", None)) not in self._property_ids:
                continue
            prop_index = _row_index(association)
            if _flag(row.Semantics, "msGetter"):
                accessors[prop_index]["getter"] = _row_index(row.Method)
            if _flag(row.Semantics, "msSetter"):
                accessors[prop_index]["setter"] = _row_index(row.Method)
        return accessors

    # Type reading

    def enum_names(self) -> Set[str]:
        """Qualified names of every enum defined in these tables."""
        return {
            qualified_name(self._typedef_namespace(index), _text(row.TypeName))
            for index, row in enumerate(self.typedefs, start=1)
            if self._extends_name(row) == ENUM_BASE_NAME
        }

    def read_types(self) -> List[TypeDescriptor]:
        constants = self._constant_values()
        properties = self._properties_by_type()
        accessors = self._accessors_by_property()

        types = []
        for index, row in enumerate(self.typedefs, start=1):
            name = _text(row.TypeName)
            if name == MODULE_TYPE_NAME:
                continue
            try:
                types.append(
                    self._read_type(index, row, constants, properties.get(index, []), accessors)
                )
            except (SignatureError, IndexError, AttributeError, ValueError) as e:
                logger.warning("Skipping type %s: %s", name, e)
        return types

    def _read_type(self, index, row, constants, property_indices, accessors) -> TypeDescriptor:
        type_desc = TypeDescriptor(
            name=_text(row.TypeName),
            namespace=self._typedef_namespace(index),
            category=self._typedef_category(index),
            base_type=self._base_type(row),
            is_nested=index in self._enclosing,
            source=self.source,
        )
        owner = type_desc.full_name

        for ref in row.FieldList or []:
            field_index = _row_index(ref)
            field_row = self._row(self.fields, field_index, "Field")
            field_desc = FieldDescriptor(
                name=_text(field_row.Name),
                type=parse_field_signature(_blob(field_row.Signature), self.resolve_token),
                is_static=_flag(field_row.Flags, "fdStatic"),
                is_readonly=_flag(field_row.Flags, "fdInitOnly"),
                is_literal=_flag(field_row.Flags, "fdLiteral"),
                declaring_type=owner,
            )

            if type_desc.is_enum:
                if field_desc.name == ENUM_VALUE_FIELD and not field_desc.is_static:
                    type_desc.enum_underlying_type = field_desc.type.name
                elif field_desc.is_literal:
                    type_desc.enum_values.append(
                        EnumValue(field_desc.name, constants.get(field_index, 0))
                    )
                continue
            type_desc.fields.append(field_desc)

        for ref in row.MethodList or []:
            type_desc.methods.append(self._read_method(_row_index(ref), owner))

        for prop_index in property_indices:
            type_desc.properties.append(
                self._read_property(prop_index, accessors.get(prop_index, {}), owner)
            )

        return type_desc

    def _read_method(self, method_index: int, owner: str) -> MethodDescriptor:
        row = self._row(self.methods, method_index, "MethodDef")
        name = _text(row.Name)
        signature = parse_method_signature(_blob(row.Signature), self.resolve_token)

        param_names = {}
        for ref in row.ParamList or []:
            param_row = self._row(self.params, _row_index(ref), "Param")
            if param_row.Sequence:
                param_names[param_row.Sequence] = _text(param_row.Name) or None

        return MethodDescriptor(
            name=name,
            return_type=signature.return_type,
            parameters=[
                ParameterDescriptor(param_names.get(position), param_type)
                for position, param_type in enumerate(signature.parameter_types, start=1)
            ],
            is_static=_flag(row.Flags, "mdStatic"),
            is_special_name=_flag(row.Flags, "mdSpecialName")
            or _flag(row.Flags, "mdRTSpecialName"),
            is_constructor=name in (".ctor", ".cctor"),
            generic_arity=signature.generic_parameter_count,
            declaring_type=owner,
        )

    def _read_property(self, prop_index: int, accessors: Dict[str, int], owner: str) -> PropertyDescriptor:
        row = self._row(self.properties, prop_index, "Property")
        signature = parse_property_signature(_blob(row.Type), self.resolve_token)
        return PropertyDescriptor(
            name=_text(row.Name),
            type=signature.type,
            is_static=not signature.has_this,
            has_getter="getter" in accessors,
            has_setter="setter" in accessors,
            index_parameter_count=len(signature.parameter_types),
            declaring_type=owner,
        )
