"""
Backend registry for metadata loaders.

Maps backend names to MetadataLoader classes so the driver can pick
backends from configuration.
"""

from typing import Dict, List, Type

from .loader import MetadataLoader


class RegistryError(Exception):
    """Exception raised for registry-related errors."""

    pass


class LoaderRegistry:
    """Registry for managing available metadata backends."""

    def __init__(self):
        """Initialize empty registry."""
        self._loaders: Dict[str, Type[MetadataLoader]] = {}

    def register(self, name: str, loader_class: Type[MetadataLoader], replace: bool = False):
        """
        Register a backend under a name.

        Args:
            name: Backend name (e.g., 'dnfile', 'reflection')
            loader_class: Class implementing MetadataLoader
            replace: If True, replace existing registration. If False, skip if exists.

        Raises:
            RegistryError: If loader class is invalid
        """
        if not isinstance(loader_class, type) or not issubclass(loader_class, MetadataLoader):
            raise RegistryError("Loader class must inherit from MetadataLoader")

        key = name.lower()
        if key in self._loaders and not replace:
            return
        self._loaders[key] = loader_class

    def get_loader_class(self, name: str) -> Type[MetadataLoader]:
        """
        Get loader class for a backend name.

        Raises:
            RegistryError: If backend not found
        """
        key = name.lower()
        if key not in self._loaders:
            raise RegistryError(
                f"No metadata backend registered as: {name}. "
                f"Available: {', '.join(self.list_backends())}"
            )
        return self._loaders[key]

    def create_loader(self, name: str) -> MetadataLoader:
        return self.get_loader_class(name)()

    def list_backends(self) -> List[str]:
        """Get sorted list of registered backend names."""
        return sorted(self._loaders)
