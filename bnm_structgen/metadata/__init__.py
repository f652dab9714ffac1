"""
Assembly metadata loading.

Backends read a .NET assembly into TypeDescriptor objects; the rest of the
package only ever sees the normalized model.
"""

from .dnfile_backend import DnfileLoader
from .loader import MetadataLoader, MetadataLoadError, deduplicate_types
from .model import (
    GLOBAL_NAMESPACE,
    EnumValue,
    FieldDescriptor,
    MethodDescriptor,
    ParameterDescriptor,
    PropertyDescriptor,
    TypeCategory,
    TypeDescriptor,
    TypeRef,
    clean_type_name,
    qualified_name,
)
from .reflection_backend import ReflectionLoader
from .registry import LoaderRegistry, RegistryError

STANDALONE_BACKEND = "dnfile"
REFLECTION_BACKEND = "reflection"

registry = LoaderRegistry()
registry.register(STANDALONE_BACKEND, DnfileLoader)
registry.register(REFLECTION_BACKEND, ReflectionLoader)


def get_loader(name: str) -> MetadataLoader:
    """Create a loader instance for a registered backend name."""
    return registry.create_loader(name)


def list_backends():
    return registry.list_backends()


__all__ = [
    "DnfileLoader",
    "EnumValue",
    "FieldDescriptor",
    "GLOBAL_NAMESPACE",
    "LoaderRegistry",
    "MetadataLoadError",
    "MetadataLoader",
    "MethodDescriptor",
    "ParameterDescriptor",
    "PropertyDescriptor",
    "REFLECTION_BACKEND",
    "ReflectionLoader",
    "RegistryError",
    "STANDALONE_BACKEND",
    "TypeCategory",
    "TypeDescriptor",
    "TypeRef",
    "clean_type_name",
    "deduplicate_types",
    "get_loader",
    "list_backends",
    "qualified_name",
    "registry",
]
