"""
C++-specific naming utilities and sanitization.

Handles C++ and C# reserved words, BNM macro names and the type names the
BNM runtime already binds in the generated headers.
"""

from ..core.naming import NameSanitizer

# C++ reserved words (C++20) and alternative operator spellings
CPP_RESERVED_WORDS = {
    "alignas",
    "alignof",
    "and",
    "and_eq",
    "asm",
    "auto",
    "bitand",
    "bitor",
    "bool",
    "break",
    "case",
    "catch",
    "char",
    "char8_t",
    "char16_t",
    "char32_t",
    "class",
    "compl",
    "concept",
    "const",
    "consteval",
    "constexpr",
    "constinit",
    "const_cast",
    "continue",
    "co_await",
    "co_return",
    "co_yield",
    "decltype",
    "default",
    "delete",
    "do",
    "double",
    "dynamic_cast",
    "else",
    "enum",
    "explicit",
    "export",
    "extern",
    "false",
    "float",
    "for",
    "friend",
    "goto",
    "if",
    "inline",
    "int",
    "long",
    "mutable",
    "namespace",
    "new",
    "noexcept",
    "not",
    "not_eq",
    "nullptr",
    "operator",
    "or",
    "or_eq",
    "private",
    "protected",
    "public",
    "register",
    "reinterpret_cast",
    "requires",
    "return",
    "short",
    "signed",
    "sizeof",
    "static",
    "static_assert",
    "static_cast",
    "struct",
    "switch",
    "template",
    "this",
    "thread_local",
    "throw",
    "true",
    "try",
    "typedef",
    "typeid",
    "typename",
    "union",
    "unsigned",
    "using",
    "virtual",
    "void",
    "volatile",
    "wchar_t",
    "while",
    "xor",
    "xor_eq",
}

# C# keywords that survive into identifiers through decompiled or escaped names
CSHARP_RESERVED_WORDS = {
    "abstract",
    "base",
    "byte",
    "checked",
    "decimal",
    "event",
    "finally",
    "fixed",
    "foreach",
    "implicit",
    "in",
    "interface",
    "internal",
    "is",
    "lock",
    "null",
    "object",
    "out",
    "override",
    "params",
    "readonly",
    "ref",
    "sbyte",
    "sealed",
    "stackalloc",
    "string",
    "uint",
    "ulong",
    "unchecked",
    "unsafe",
    "ushort",
}

# Preprocessor names defined or used by the generated headers
MACRO_NAMES = {
    "O",
    "BNM_OBFUSCATE",
    "NULL",
    "EOF",
    "TRUE",
    "FALSE",
    "assert",
    "offsetof",
}

# Names BNM (and the generated bootstrap) already binds; a member or type
# spelled like one of these would shadow the runtime's own declaration
RESERVED_TYPE_NAMES = {
    "Class",
    "Method",
    "Field",
    "Property",
    "Image",
    "Event",
    "MonoType",
    "MonoClass",
    "MonoObject",
    "MonoArray",
    "MonoString",
    "Type",
    "Delegate",
    "MulticastDelegate",
    "MethodBase",
    "MethodInfo",
    "FieldInfo",
    "PropertyInfo",
    "Assembly",
    "Defaults",
}


def create_cpp_sanitizer() -> NameSanitizer:
    """Create a name sanitizer configured for C++ headers."""
    return NameSanitizer(CPP_RESERVED_WORDS | CSHARP_RESERVED_WORDS, MACRO_NAMES)


def is_reserved_type_name(name: str) -> bool:
    return name in RESERVED_TYPE_NAMES
