"""
Naming utilities for safe code generation.

Handles identifier sanitization, case conversions, keyword conflicts
and per-type name bookkeeping for the generated headers.
"""

import re
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Set

from ...metadata.model import clean_type_name

ESCAPE_CHAR = "$"

# '$' is accepted as an identifier character by the compilers BNM targets
_INVALID_CHARS = re.compile(r"[^A-Za-z0-9_$]")

# Members every managed object already has; never emitted as accessors
IMPLICIT_MEMBER_NAMES = (
    "GetClass",
    "GetType",
    "ToString",
    "Equals",
    "GetHashCode",
    "MemberwiseClone",
    "Finalize",
)


class NamingCase(Enum):
    """Different naming case styles."""

    ORIGINAL = "original"  # m_Health
    PASCAL_CASE = "pascal"  # MHealth
    CAMEL_CASE = "camel"  # mHealth


class NameSanitizer:
    """Handles name sanitization and case conversion."""

    def __init__(
        self,
        reserved_words: Set[str] = None,
        macro_names: Set[str] = None,
        escape_char: str = ESCAPE_CHAR,
    ):
        """
        Initialize name sanitizer.

        Args:
            reserved_words: Keywords of the target and source languages
            macro_names: Preprocessor names that would be expanded if emitted
            escape_char: Character substituted for invalid characters and
                prefixed to reserved names
        """
        self.reserved_words = reserved_words or set()
        self.macro_names = macro_names or set()
        self.escape_char = escape_char
        self._name_cache: Dict[str, str] = {}

    def sanitize_name(self, name: Optional[str], target_case: NamingCase = NamingCase.ORIGINAL) -> str:
        """
        Sanitize a name for safe use as an identifier.

        Args:
            name: Original name to sanitize
            target_case: Desired case style

        Returns:
            Sanitized name safe for use
        """
        cache_key = f"{name}_{target_case.value}"
        if cache_key in self._name_cache:
            return self._name_cache[cache_key]

        # Step 1: Basic cleanup
        cleaned = self._clean_basic(name or "")

        # Step 2: Convert to target case
        converted = self._ensure_valid_start(self._convert_case(cleaned, target_case))

        # Step 3: Handle conflicts
        final_name = self._resolve_conflicts(converted)

        self._name_cache[cache_key] = final_name
        return final_name

    def is_reserved(self, name: str) -> bool:
        return name in self.reserved_words or name in self.macro_names

    def _clean_basic(self, name: str) -> str:
        """Replace every non-identifier character with the escape character."""
        return _INVALID_CHARS.sub(self.escape_char, name)

    @staticmethod
    def _ensure_valid_start(name: str) -> str:
        if not name:
            return "_"
        if name[0].isdigit():
            return f"_{name}"
        return name

    def _convert_case(self, name: str, target_case: NamingCase) -> str:
        """Convert name to target case style."""
        if target_case == NamingCase.PASCAL_CASE:
            return to_pascal_case(name)
        elif target_case == NamingCase.CAMEL_CASE:
            return to_camel_case(name)
        else:
            return name

    def _resolve_conflicts(self, name: str) -> str:
        """Escape names that collide with keywords or macros."""
        if self.is_reserved(name):
            return f"{self.escape_char}{name}"
        return name

    def accessor_name(self, prefix: str, name: str) -> str:
        """Build ``Get<Pascal>`` / ``Set<Pascal>`` style accessor names."""
        # The prefix already makes the identifier valid; no keyword escaping needed
        return f"{prefix}{to_pascal_case(self._clean_basic(name)) or '_'}"

    def make_unique_parameters(
        self, names: Sequence[Optional[str]], taken: Iterable[str] = ()
    ) -> List[str]:
        """
        Produce sanitized, unique parameter names in declaration order.

        Args:
            names: Parameter names as found in metadata; blanks allowed
            taken: Names that must not be produced (locals of the generated body)

        Returns:
            One identifier per input name
        """
        used = set(taken)
        result = []
        for index, name in enumerate(names):
            base = self.sanitize_name(name) if name and name.strip() else f"param{index}"
            unique = base
            counter = 1
            while unique in used:
                unique = f"{base}_{counter}"
                counter += 1
            used.add(unique)
            result.append(unique)
        return result

    def clear_cache(self):
        """Drop memoized results."""
        self._name_cache.clear()


def to_pascal_case(name: str) -> str:
    """Split on underscores and capitalize the first letter of every segment."""
    return "".join(part[:1].upper() + part[1:] for part in name.split("_") if part)


def to_camel_case(name: str) -> str:
    """PascalCase with the first letter lowered."""
    pascal = to_pascal_case(name)
    return pascal[:1].lower() + pascal[1:]


def unique_names(names: Iterable[str]) -> List[str]:
    """Suffix repeats with ``_1``, ``_2``... keeping the first occurrence unchanged."""
    used: Set[str] = set()
    result = []
    for name in names:
        unique = name
        counter = 1
        while unique in used:
            unique = f"{name}_{counter}"
            counter += 1
        used.add(unique)
        result.append(unique)
    return result


class GeneratedNameRegistry:
    """
    Names already emitted inside one generated struct.

    Seeded with the implicit object members and the struct's own name (a
    member may not share its enclosing struct's name). One registry per type;
    it is thrown away when the type has been emitted.
    """

    def __init__(self, type_name: Optional[str] = None, seed: Iterable[str] = IMPLICIT_MEMBER_NAMES):
        self._names: Set[str] = set(seed)
        if type_name:
            self._names.add(type_name)

    def __contains__(self, name: str) -> bool:
        return name in self._names

    def __len__(self) -> int:
        return len(self._names)

    def claim(self, name: str) -> bool:
        """Record ``name``; False if it was already taken."""
        if name in self._names:
            return False
        self._names.add(name)
        return True


__all__ = [
    "ESCAPE_CHAR",
    "IMPLICIT_MEMBER_NAMES",
    "NamingCase",
    "NameSanitizer",
    "GeneratedNameRegistry",
    "to_pascal_case",
    "to_camel_case",
    "unique_names",
    "clean_type_name",
]
