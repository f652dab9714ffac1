"""
Backend-agnostic type model.

Both metadata backends (the dnfile metadata parser and the pythonnet
reflection loader) normalize what they read into these classes right after
loading, so nothing downstream needs to know which backend produced a type.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

GENERIC_ARITY_MARKER = "`"
GLOBAL_NAMESPACE = "Global"


class TypeCategory(Enum):
    """Kind of a type or type reference."""

    CLASS = "class"
    STRUCT = "struct"
    ENUM = "enum"
    INTERFACE = "interface"
    GENERIC_PARAMETER = "generic_parameter"
    POINTER = "pointer"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class TypeRef:
    """
    A type as it appears in a field, property or method signature.

    Arrays and byrefs wrap their element in ``element_type``; generic
    instances keep the generic definition's name (``List`1``) and list their
    arguments in ``generic_arguments``.
    """

    name: str
    namespace: Optional[str] = None
    category: TypeCategory = TypeCategory.CLASS
    element_type: Optional["TypeRef"] = None
    is_array: bool = False
    is_byref: bool = False
    generic_arguments: Tuple["TypeRef", ...] = ()

    @property
    def effective_namespace(self) -> Optional[str]:
        """Namespace used for allow-listing; arrays and byrefs report their element's."""
        if (self.is_array or self.is_byref) and self.element_type is not None:
            return self.element_type.effective_namespace
        return self.namespace or None

    @property
    def clean_name(self) -> str:
        return clean_type_name(self.name)

    @property
    def full_name(self) -> str:
        if self.is_array and self.element_type is not None:
            return f"{self.element_type.full_name}[]"
        if self.is_byref and self.element_type is not None:
            return f"{self.element_type.full_name}&"
        return qualified_name(self.namespace, self.name)

    @property
    def is_generic(self) -> bool:
        return bool(self.generic_arguments)

    @property
    def is_nullable(self) -> bool:
        return (
            self.namespace == "System"
            and self.clean_name == "Nullable"
            and len(self.generic_arguments) == 1
        )

    @property
    def is_string(self) -> bool:
        return self.namespace == "System" and self.name == "String"

    @property
    def is_enum(self) -> bool:
        return self.category == TypeCategory.ENUM

    @property
    def is_reference_class(self) -> bool:
        """True for classes and interfaces (reference semantics), arrays excluded."""
        if self.is_array or self.is_byref:
            return False
        return self.category in (TypeCategory.CLASS, TypeCategory.INTERFACE)

    def unwrap_nullable(self) -> "TypeRef":
        """Return the underlying value type of ``Nullable<T>``, or self."""
        if self.is_nullable:
            return self.generic_arguments[0]
        return self

    def __str__(self) -> str:
        if self.generic_arguments:
            args = ", ".join(str(arg) for arg in self.generic_arguments)
            return f"{qualified_name(self.namespace, self.clean_name)}<{args}>"
        return self.full_name


@dataclass
class FieldDescriptor:
    """A field declared on a type."""

    name: str
    type: TypeRef
    is_static: bool = False
    is_readonly: bool = False
    is_literal: bool = False
    declaring_type: Optional[str] = None


@dataclass
class PropertyDescriptor:
    """A property declared on a type."""

    name: str
    type: TypeRef
    is_static: bool = False
    has_getter: bool = True
    has_setter: bool = False
    index_parameter_count: int = 0
    declaring_type: Optional[str] = None


@dataclass
class ParameterDescriptor:
    """One method parameter; ``name`` is None when metadata has no name for it."""

    name: Optional[str]
    type: TypeRef


@dataclass
class MethodDescriptor:
    """A method declared on a type."""

    name: str
    return_type: TypeRef
    parameters: List[ParameterDescriptor] = field(default_factory=list)
    is_static: bool = False
    is_special_name: bool = False
    is_constructor: bool = False
    generic_arity: int = 0
    declaring_type: Optional[str] = None


@dataclass
class EnumValue:
    """Name/value pair of an enum member."""

    name: str
    value: int


@dataclass
class TypeDescriptor:
    """
    Normalized, read-only view of one class or enum from the assembly.

    Identity is the qualified name (``full_name``); the driver keeps only the
    first descriptor seen for each qualified name.
    """

    name: str
    namespace: Optional[str] = None
    category: TypeCategory = TypeCategory.CLASS
    base_type: Optional[TypeRef] = None
    fields: List[FieldDescriptor] = field(default_factory=list)
    properties: List[PropertyDescriptor] = field(default_factory=list)
    methods: List[MethodDescriptor] = field(default_factory=list)
    enum_underlying_type: Optional[str] = None
    enum_values: List[EnumValue] = field(default_factory=list)
    generic_arity: int = 0
    is_nested: bool = False
    source: str = ""

    def __post_init__(self):
        """Normalize an empty namespace to None and derive generic arity."""
        if not self.namespace:
            self.namespace = None
        if not self.generic_arity and GENERIC_ARITY_MARKER in self.name:
            suffix = self.name.split(GENERIC_ARITY_MARKER, 1)[1]
            if suffix.isdigit():
                self.generic_arity = int(suffix)

    @property
    def full_name(self) -> str:
        return qualified_name(self.namespace, self.name)

    @property
    def clean_name(self) -> str:
        return clean_type_name(self.name)

    @property
    def group_name(self) -> str:
        """Namespace group this type is organized under."""
        return self.namespace or GLOBAL_NAMESPACE

    @property
    def is_enum(self) -> bool:
        return self.category == TypeCategory.ENUM

    @property
    def is_class(self) -> bool:
        return self.category == TypeCategory.CLASS

    @property
    def is_generic(self) -> bool:
        return self.generic_arity > 0

    def as_ref(self) -> TypeRef:
        """Return a TypeRef pointing at this type."""
        return TypeRef(name=self.name, namespace=self.namespace, category=self.category)


def qualified_name(namespace: Optional[str], name: str) -> str:
    """Join namespace and name the way metadata spells full names."""
    return f"{namespace}.{name}" if namespace else name


def clean_type_name(name: str) -> str:
    """Strip the generic-arity marker segment (``List`1`` -> ``List``)."""
    if not name:
        return ""
    return name.split(GENERIC_ARITY_MARKER, 1)[0]
