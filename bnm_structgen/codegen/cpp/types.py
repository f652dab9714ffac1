"""
C++ type system for BNM header generation.

Maps .NET type references to the C++ spellings BNM understands, and resolves
which base class a generated struct may inherit.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional, Sequence, Set

from ...logging_config import get_logger
from ...metadata.model import TypeDescriptor, TypeRef, clean_type_name, qualified_name
from ..core.naming import NameSanitizer
from .naming import RESERVED_TYPE_NAMES, create_cpp_sanitizer

logger = get_logger(__name__)

DEFAULT_ALLOWED_NAMESPACES = ("System", "UnityEngine")
LIST_TYPE_NAME = "System.Collections.Generic.List"
OPAQUE_POINTER = "void*"
SCOPE_SEPARATOR = "::"

# Primitive and well-known framework types, keyed by qualified clean name
KNOWN_TYPES: Dict[str, str] = {
    "System.Void": "void",
    "System.Boolean": "bool",
    "System.Byte": "uint8_t",
    "System.SByte": "int8_t",
    "System.Int16": "int16_t",
    "System.UInt16": "uint16_t",
    "System.Int32": "int",
    "System.UInt32": "uint32_t",
    "System.Int64": "int64_t",
    "System.UInt64": "uint64_t",
    "System.Single": "float",
    "System.Double": "double",
    "System.Char": "char16_t",
    "System.String": "Mono::String*",
    "System.Object": "IL2CPP::Il2CppObject*",
    "System.IntPtr": "void*",
    "System.UIntPtr": "void*",
    "System.StringComparison": "int",
    # Unity value types (BNM::Structures::Unity)
    "UnityEngine.Vector2": "Vector2",
    "UnityEngine.Vector3": "Vector3",
    "UnityEngine.Vector4": "Vector4",
    "UnityEngine.Vector2Int": "Vector2Int",
    "UnityEngine.Vector3Int": "Vector3Int",
    "UnityEngine.Quaternion": "Quaternion",
    "UnityEngine.Color": "Color",
    "UnityEngine.Color32": "Color32",
    "UnityEngine.Rect": "Rect",
    "UnityEngine.Ray": "Ray",
    "UnityEngine.RaycastHit": "RaycastHit",
    "UnityEngine.Matrix4x4": "Matrix4x4",
    # Unity reference types (BNMResolve.hpp)
    "UnityEngine.Object": "Object*",
    "UnityEngine.GameObject": "GameObject*",
    "UnityEngine.Transform": "Transform*",
    "UnityEngine.Component": "Component*",
    "UnityEngine.Behaviour": "Behaviour*",
    "UnityEngine.MonoBehaviour": "MonoBehaviour*",
    "UnityEngine.Rigidbody": "Rigidbody*",
    "UnityEngine.Collider": "Collider*",
    "UnityEngine.BoxCollider": "BoxCollider*",
    "UnityEngine.SphereCollider": "SphereCollider*",
    "UnityEngine.Camera": "Camera*",
    "UnityEngine.Renderer": "Renderer*",
    "UnityEngine.MeshRenderer": "MeshRenderer*",
    "UnityEngine.Material": "Material*",
    "UnityEngine.Shader": "Shader*",
    "UnityEngine.Texture": "Texture*",
    "UnityEngine.Texture2D": "Texture2D*",
    "UnityEngine.Sprite": "Sprite*",
    "UnityEngine.AudioSource": "AudioSource*",
    "UnityEngine.AudioClip": "AudioClip*",
    "UnityEngine.Animator": "Animator*",
    "UnityEngine.LineRenderer": "LineRenderer*",
}

# Bases a generated struct may inherit directly
BASE_CLASS_TABLE: Dict[str, str] = {
    "UnityEngine.MonoBehaviour": "MonoBehaviour",
    "UnityEngine.Behaviour": "Behaviour",
    "UnityEngine.Component": "Component",
    "UnityEngine.Object": "Object",
    "UnityEngine.ScriptableObject": "ScriptableObject",
}

# Bases that carry nothing worth inheriting
TRIVIAL_BASES = {"System.Object", "System.ValueType"}


class MappingStatus(Enum):
    """Outcome of mapping one type reference."""

    MAPPED = "mapped"
    REMOVED = "removed"
    SELF_REFERENTIAL = "self_referential"


class TypeMappingError(Exception):
    """Raised when the representation of a failed mapping is requested."""

    pass


@dataclass(frozen=True)
class TypeMappingResult:
    """
    Tagged result of mapping a type reference to C++.

    A mapped result carries a representation and no reason; a removed or
    self-referential result carries a reason and no representation.
    """

    status: MappingStatus
    representation: Optional[str] = None
    reason: Optional[str] = None
    lossy: bool = False  # degraded to an opaque pointer

    def __post_init__(self):
        if self.status == MappingStatus.MAPPED:
            if self.representation is None or self.reason is not None:
                raise ValueError("A mapped result needs a representation and no reason")
        elif self.representation is not None or not self.reason:
            raise ValueError("A failed mapping needs a reason and no representation")

    @classmethod
    def mapped(cls, representation: str, lossy: bool = False) -> "TypeMappingResult":
        return cls(MappingStatus.MAPPED, representation=representation, lossy=lossy)

    @classmethod
    def removed(cls, reason: str) -> "TypeMappingResult":
        return cls(MappingStatus.REMOVED, reason=reason)

    @classmethod
    def self_referential(cls, reason: str) -> "TypeMappingResult":
        return cls(MappingStatus.SELF_REFERENTIAL, reason=reason)

    @property
    def ok(self) -> bool:
        return self.status == MappingStatus.MAPPED

    def unwrap(self) -> str:
        """Return the representation, raising TypeMappingError for failed results."""
        if not self.ok:
            raise TypeMappingError(self.reason)
        return self.representation

    def as_pointer(self) -> "TypeMappingResult":
        """Pointer form of a mapped result; failed results pass through."""
        if not self.ok:
            return self
        return TypeMappingResult.mapped(f"{self.representation}*", lossy=self.lossy)

    def __str__(self) -> str:
        if self.ok:
            return self.representation
        return f"<{self.status.value}: {self.reason}>"


class BaseKind(Enum):
    """How a generated struct relates to its .NET base class."""

    PLACEHOLDER = "placeholder"  # no meaningful base
    ALLOWED = "allowed"  # inheritable framework base
    SELF = "self"  # base is the type itself
    FOREIGN = "foreign"  # another type generated in this run
    REMOVED = "removed"  # anything else; the type is not emitted


@dataclass(frozen=True)
class BaseResolution:
    """Resolved base class of one type."""

    kind: BaseKind
    cpp_name: Optional[str] = None
    source_name: Optional[str] = None
    target: Optional[str] = None  # full name of a FOREIGN base


def cpp_scope(namespace: Optional[str]) -> str:
    """``A.B`` -> ``A::B``."""
    return SCOPE_SEPARATOR.join(namespace.split(".")) if namespace else ""


class TypeMapper:
    """
    Maps .NET type references to C++ type spellings.

    The set of types defined in the current run is explicit state owned by
    the mapper instance; create one mapper per run.
    """

    def __init__(
        self,
        allowed_namespaces: Sequence[str] = DEFAULT_ALLOWED_NAMESPACES,
        defined_types: Optional[Iterable[TypeDescriptor]] = None,
        sanitizer: Optional[NameSanitizer] = None,
        reserved_type_names: Optional[Set[str]] = None,
    ):
        self.allowed_namespaces = tuple(allowed_namespaces)
        self.sanitizer = sanitizer or create_cpp_sanitizer()
        self.reserved_type_names = (
            RESERVED_TYPE_NAMES if reserved_type_names is None else reserved_type_names
        )
        self._defined: Dict[str, TypeDescriptor] = {}
        for type_desc in defined_types or ():
            self.register(type_desc)

    # Defined-type registry

    def register(self, type_desc: TypeDescriptor):
        """Record a type that will be emitted in this run."""
        self._defined.setdefault(type_desc.full_name, type_desc)

    def is_defined(self, full_name: str) -> bool:
        return full_name in self._defined

    def defined_type(self, full_name: str) -> Optional[TypeDescriptor]:
        return self._defined.get(full_name)

    @property
    def defined_names(self) -> Set[str]:
        return set(self._defined)

    # Naming helpers

    def is_allowed_namespace(self, namespace: Optional[str]) -> bool:
        if not namespace:
            return False
        return any(
            namespace == prefix or namespace.startswith(prefix + ".") for prefix in self.allowed_namespaces
        )

    def is_reserved_type_name(self, name: str) -> bool:
        return name in self.reserved_type_names

    def struct_name(self, name: str) -> str:
        """C++ identifier used for a generated struct or enum."""
        return self.sanitizer.sanitize_name(clean_type_name(name))

    def qualified_struct_name(self, namespace: Optional[str], name: str) -> str:
        scope = cpp_scope(namespace)
        local = self.struct_name(name)
        return f"{scope}{SCOPE_SEPARATOR}{local}" if scope else local

    # Mapping

    def map_type(self, type_ref: TypeRef, owner: Optional[str] = None) -> TypeMappingResult:
        """
        Map a type reference, first matching rule wins.

        Args:
            type_ref: Type as it appears in the member signature
            owner: Qualified name of the type being emitted

        Returns:
            TypeMappingResult
        """
        # Byref: element type plus an explicit pointer
        if type_ref.is_byref and type_ref.element_type is not None:
            return self.map_type(type_ref.element_type, owner).as_pointer()

        namespace = type_ref.effective_namespace
        full_name = qualified_name(type_ref.namespace, type_ref.clean_name)

        if namespace and not self.is_allowed_namespace(namespace):
            return TypeMappingResult.removed(f"unsupported external type {type_ref.full_name}")

        if type_ref.is_nullable:
            return self.map_type(type_ref.unwrap_nullable(), owner)

        if owner and not type_ref.is_array and type_ref.full_name == owner:
            return TypeMappingResult.self_referential(
                f"self-referential type {type_ref.clean_name}"
            )

        if (
            type_ref.is_reference_class
            and not type_ref.is_string
            and not self.is_allowed_namespace(namespace)
        ):
            return TypeMappingResult.removed(f"cross-type reference {type_ref.full_name}")

        if type_ref.is_array:
            if type_ref.element_type is None:
                return TypeMappingResult.removed(f"array without element type {type_ref.name}")
            element = self.map_type(type_ref.element_type, owner)
            if not element.ok:
                return element
            return TypeMappingResult.mapped(f"Mono::Array<{element.representation}>*")

        if type_ref.is_generic:
            return self._map_generic(type_ref, full_name, owner)

        if self._is_enum(type_ref):
            return self._map_enum(type_ref)

        if full_name in KNOWN_TYPES:
            return TypeMappingResult.mapped(KNOWN_TYPES[full_name])

        return TypeMappingResult.removed(f"unsupported type {type_ref.clean_name or type_ref.name}")

    def _map_generic(self, type_ref: TypeRef, full_name: str, owner: Optional[str]) -> TypeMappingResult:
        if full_name == LIST_TYPE_NAME and len(type_ref.generic_arguments) == 1:
            argument = self.map_type(type_ref.generic_arguments[0], owner)
            if argument.ok:
                return TypeMappingResult.mapped(f"Mono::List<{argument.representation}>*")
            logger.debug("List argument of %s not mappable: %s", type_ref, argument.reason)
        return TypeMappingResult.mapped(OPAQUE_POINTER, lossy=True)

    def _is_enum(self, type_ref: TypeRef) -> bool:
        if type_ref.is_enum:
            return True
        defined = self._defined.get(type_ref.full_name)
        return defined is not None and defined.is_enum

    def _map_enum(self, type_ref: TypeRef) -> TypeMappingResult:
        defined = self.is_defined(type_ref.full_name)
        if not type_ref.namespace and not defined:
            return TypeMappingResult.removed(f"undefined enum {type_ref.clean_name}")
        if defined:
            return TypeMappingResult.mapped(
                self.qualified_struct_name(type_ref.namespace, type_ref.name)
            )
        return TypeMappingResult.mapped("int")

    def map_member_type(self, type_ref: TypeRef, owner: Optional[str] = None) -> TypeMappingResult:
        """map_type plus the reserved type name check applied to member signatures."""
        candidate = type_ref.element_type if type_ref.is_byref and type_ref.element_type else type_ref
        candidate = candidate.unwrap_nullable()
        if self.is_reserved_type_name(candidate.clean_name):
            return TypeMappingResult.removed(f"reserved type {candidate.clean_name}")
        return self.map_type(type_ref, owner)

    # Base classes

    def resolve_base(self, type_desc: TypeDescriptor, placeholder: str = "Behaviour") -> BaseResolution:
        """Decide what the generated struct for ``type_desc`` inherits."""
        base = type_desc.base_type
        if base is None:
            return BaseResolution(BaseKind.PLACEHOLDER, cpp_name=placeholder)

        base_name = qualified_name(base.namespace, base.clean_name)
        if base.full_name in TRIVIAL_BASES or base_name in TRIVIAL_BASES:
            return BaseResolution(BaseKind.PLACEHOLDER, cpp_name=placeholder, source_name=base_name)

        if base.full_name == type_desc.full_name:
            return BaseResolution(BaseKind.SELF, cpp_name=placeholder, source_name=base.clean_name)

        if base_name in BASE_CLASS_TABLE:
            return BaseResolution(
                BaseKind.ALLOWED, cpp_name=BASE_CLASS_TABLE[base_name], source_name=base_name
            )

        defined = self.defined_type(base.full_name)
        if defined is not None and defined.is_class:
            return BaseResolution(
                BaseKind.FOREIGN,
                cpp_name=self.qualified_struct_name(defined.namespace, defined.name),
                source_name=base.clean_name,
                target=defined.full_name,
            )

        return BaseResolution(BaseKind.REMOVED, source_name=base.full_name)
