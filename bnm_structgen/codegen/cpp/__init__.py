"""
C++ (BNM) header generator.
"""

from .generator import BNMHeaderGenerator
from .layout import LayoutOrganizer, NamespaceGroup
from .naming import create_cpp_sanitizer
from .types import (
    BaseKind,
    BaseResolution,
    MappingStatus,
    TypeMapper,
    TypeMappingError,
    TypeMappingResult,
)

__all__ = [
    "BNMHeaderGenerator",
    "BaseKind",
    "BaseResolution",
    "LayoutOrganizer",
    "MappingStatus",
    "NamespaceGroup",
    "TypeMapper",
    "TypeMappingError",
    "TypeMappingResult",
    "create_cpp_sanitizer",
]
