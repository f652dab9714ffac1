"""
Metadata backend interface.

A backend turns an assembly file into a list of TypeDescriptor objects. The
driver may run several backends over the same file and union the results.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, List

from ..logging_config import get_logger
from .model import TypeDescriptor

logger = get_logger(__name__)


class MetadataLoadError(Exception):
    """Raised when a backend cannot read types from an assembly."""

    pass


class MetadataLoader(ABC):
    """Abstract base class for metadata backends."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Short backend name used in logs and on TypeDescriptor.source."""
        pass

    @abstractmethod
    def load(self, assembly_path: Path) -> List[TypeDescriptor]:
        """
        Read every type definition from the assembly.

        Args:
            assembly_path: Path to the assembly file

        Returns:
            Type descriptors in metadata order

        Raises:
            MetadataLoadError: If the assembly cannot be read by this backend
        """
        pass

    def is_available(self) -> bool:
        """Return False when the backend's runtime dependency is missing."""
        return True


def deduplicate_types(types: Iterable[TypeDescriptor]) -> List[TypeDescriptor]:
    """
    Collapse descriptors sharing a qualified name; the first one seen wins.

    Order of the survivors follows their first appearance, so a fixed backend
    order always yields the same list.
    """
    seen = set()
    unique = []
    duplicates = 0

    for type_desc in types:
        if type_desc is None:
            continue
        key = type_desc.full_name
        if key in seen:
            duplicates += 1
            continue
        seen.add(key)
        unique.append(type_desc)

    if duplicates:
        logger.debug("Dropped %d duplicate type definitions", duplicates)
    return unique
