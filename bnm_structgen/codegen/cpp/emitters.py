"""
Member emitters for generated BNM structs.

Each emitter turns one field, property, method or enum into text appended to
the struct's CodeBuffer. Failures never escape an emitter: the member is
replaced by a one-line comment and a warning is recorded.
"""

import functools
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Set

from ...logging_config import get_logger
from ...metadata.model import (
    FieldDescriptor,
    MethodDescriptor,
    PropertyDescriptor,
    TypeDescriptor,
    clean_type_name,
)
from ..core.generator import CodeBuffer, Diagnostics
from ..core.naming import IMPLICIT_MEMBER_NAMES, GeneratedNameRegistry, NameSanitizer, unique_names
from .types import KNOWN_TYPES, TypeMapper, TypeMappingResult

logger = get_logger(__name__)

SINGLETON_PROPERTY = "Instance"
SINGLETON_FIELD = "_instance"

# Locals declared inside generated bodies
BODY_LOCALS = {"bound", "value", "method", "field", "klass", "this"}

_IDENTIFIER = re.compile(r"[A-Za-z_$][A-Za-z0-9_$]*")

# (bits, signed) per enum underlying type
ENUM_WIDTHS = {
    "SByte": (8, True),
    "Byte": (8, False),
    "Int16": (16, True),
    "UInt16": (16, False),
    "Int32": (32, True),
    "UInt32": (32, False),
    "Int64": (64, True),
    "UInt64": (64, False),
    "Char": (16, False),
    "Boolean": (8, False),
}


@dataclass
class EmitContext:
    """Everything the emitters need while one struct is being written."""

    type_desc: TypeDescriptor
    struct_name: str
    buffer: CodeBuffer
    registry: GeneratedNameRegistry
    diagnostics: Diagnostics
    mapper: TypeMapper
    render: Callable[[str, Dict[str, Any]], str]
    macro: str = "O"
    indent: str = "    "

    @property
    def owner(self) -> str:
        return self.type_desc.full_name

    @property
    def sanitizer(self) -> NameSanitizer:
        return self.mapper.sanitizer

    def emit(self, template_name: str, **context):
        context.setdefault("macro", self.macro)
        context.setdefault("indent", self.indent)
        self.buffer.lines(self.render(template_name, context))
        self.buffer.line()

    def reject(self, message: str):
        """Comment out a member and record why."""
        self.buffer.comment(message)
        self.buffer.line()
        self.diagnostics.warn(f"{self.owner}: {message}")
        logger.debug("%s: %s", self.owner, message)


def type_identifiers(*spellings: str) -> Set[str]:
    """Identifiers appearing in C++ type spellings (``Mono::Array<Foo>*`` -> Mono, Array, Foo)."""
    names = set()
    for spelling in spellings:
        names.update(_IDENTIFIER.findall(spelling or ""))
    return names


def handle_name(ctx: EmitContext, member_name: str, type_spelling: str) -> str:
    """Name of the function-local static handle; must not shadow anything the body uses."""
    taken = (
        BODY_LOCALS
        | set(IMPLICIT_MEMBER_NAMES)
        | ctx.mapper.reserved_type_names
        | type_identifiers(type_spelling)
    )
    candidate = ctx.sanitizer.sanitize_name(member_name)
    while candidate in taken:
        candidate = f"{candidate}_"
    return candidate


def _removal_message(kind: str, name: str, result: TypeMappingResult) -> str:
    return f"REMOVED: {kind} '{name}' uses {result.reason}"


def _guarded(what: str):
    """Catch anything an emitter raises and turn it into a comment plus warning."""

    def decorator(func):
        @functools.wraps(func)
        def wrapper(ctx: EmitContext, member, *args, **kwargs):
            try:
                return func(ctx, member, *args, **kwargs)
            except Exception as e:
                ctx.reject(f"Error generating {what} for {member.name}: {e}")
                return False

        return wrapper

    return decorator


# Bootstrap and singletons


def emit_bootstrap(ctx: EmitContext, image_name: str):
    """GetClass() / GetType() accessors every struct starts with."""
    ctx.emit(
        "bootstrap.hpp.j2",
        namespace=ctx.type_desc.namespace or "",
        name=ctx.type_desc.name,
        image=image_name,
    )


def emit_singletons(ctx: EmitContext):
    """
    Static instance accessors for the usual singleton conventions.

    A static ``Instance`` property yields ``get_Instance()`` and a static
    ``_instance`` field yields ``GetInstance()``. Claiming the names here
    keeps the regular property and field emitters from producing them again.
    """
    self_pointer = f"{ctx.struct_name}*"

    instance_property = next(
        (
            p
            for p in ctx.type_desc.properties
            if p.name == SINGLETON_PROPERTY and p.is_static and p.has_getter
        ),
        None,
    )
    if instance_property is not None and ctx.registry.claim(f"get_{SINGLETON_PROPERTY}"):
        ctx.emit(
            "singleton.hpp.j2",
            type=self_pointer,
            name=f"get_{SINGLETON_PROPERTY}",
            original=f"get_{SINGLETON_PROPERTY}",
            via_field=False,
        )

    instance_field = next(
        (f for f in ctx.type_desc.fields if f.name == SINGLETON_FIELD and f.is_static),
        None,
    )
    if instance_field is not None and ctx.registry.claim("GetInstance"):
        ctx.emit(
            "singleton.hpp.j2",
            type=self_pointer,
            name="GetInstance",
            original=SINGLETON_FIELD,
            via_field=True,
        )


# Fields


def emittable_fields(type_desc: TypeDescriptor) -> List[FieldDescriptor]:
    """Non-constant, non-compiler-generated fields in name order."""
    fields = [f for f in type_desc.fields if not f.is_literal and "<" not in f.name]
    return sorted(fields, key=lambda f: f.name)


@_guarded("getter")
def emit_field_getter(ctx: EmitContext, field: FieldDescriptor) -> bool:
    """
    Emit ``Get<Name>()`` for one field.

    Mapping failures are reported here, once per field; the setter pass
    skips the same field silently.
    """
    name = ctx.sanitizer.accessor_name("Get", field.name)
    if name in ctx.registry:
        return False

    result = ctx.mapper.map_member_type(field.type, ctx.owner)
    if not result.ok:
        ctx.reject(_removal_message("Field", field.name, result))
        return False

    ctx.registry.claim(name)
    ctx.emit(
        "field_getter.hpp.j2",
        type=result.representation,
        name=name,
        handle=handle_name(ctx, field.name, result.representation),
        original=field.name,
        is_static=field.is_static,
    )
    return True


@_guarded("setter")
def emit_field_setter(ctx: EmitContext, field: FieldDescriptor) -> bool:
    """Emit ``Set<Name>(value)`` for one writable field."""
    if field.is_readonly:
        return False

    name = ctx.sanitizer.accessor_name("Set", field.name)
    if name in ctx.registry:
        return False

    result = ctx.mapper.map_member_type(field.type, ctx.owner)
    if not result.ok:
        return False

    ctx.registry.claim(name)
    ctx.emit(
        "field_setter.hpp.j2",
        type=result.representation,
        name=name,
        handle=handle_name(ctx, field.name, result.representation),
        original=field.name,
        is_static=field.is_static,
    )
    return True


# Properties


def emittable_properties(ctx: EmitContext) -> List[PropertyDescriptor]:
    """Properties that can be proxied, in name order."""
    properties = []
    for prop in ctx.type_desc.properties:
        if "<" in prop.name or "." in prop.name:
            continue
        if prop.index_parameter_count:
            logger.debug("Skipping indexer %s.%s", ctx.owner, prop.name)
            continue
        if ctx.mapper.is_reserved_type_name(ctx.sanitizer.sanitize_name(prop.name)):
            continue
        properties.append(prop)
    return sorted(properties, key=lambda p: p.name)


@_guarded("property accessors")
def emit_property(ctx: EmitContext, prop: PropertyDescriptor) -> int:
    """Emit ``get_<Name>()`` / ``set_<Name>(value)`` through cached method handles."""
    local_name = ctx.sanitizer.sanitize_name(prop.name).lstrip(ctx.sanitizer.escape_char)
    getter = f"get_{local_name}"
    setter = f"set_{local_name}"

    wanted = []
    if prop.has_getter and getter not in ctx.registry:
        wanted.append("get")
    if prop.has_setter and setter not in ctx.registry:
        wanted.append("set")
    if not wanted:
        return 0

    result = ctx.mapper.map_member_type(prop.type, ctx.owner)
    if not result.ok:
        ctx.reject(_removal_message("Property", prop.name, result))
        return 0

    emitted = 0
    if "get" in wanted:
        ctx.registry.claim(getter)
        ctx.emit(
            "method.hpp.j2",
            return_type=result.representation,
            name=getter,
            original=f"get_{prop.name}",
            parameters=[],
            arguments=[],
            is_static=prop.is_static,
        )
        emitted += 1
    if "set" in wanted:
        ctx.registry.claim(setter)
        ctx.emit(
            "method.hpp.j2",
            return_type="void",
            name=setter,
            original=f"set_{prop.name}",
            parameters=[f"{result.representation} value"],
            arguments=["value"],
            is_static=prop.is_static,
        )
        emitted += 1
    return emitted


# Methods


def emittable_methods(ctx: EmitContext) -> List[MethodDescriptor]:
    """Ordinary named methods in name order; the stable sort keeps overload order."""
    methods = []
    for method in ctx.type_desc.methods:
        if method.is_special_name or method.is_constructor:
            continue
        if "." in method.name or "<" in method.name:
            continue
        if ctx.mapper.is_reserved_type_name(clean_type_name(method.name)):
            continue
        methods.append(method)
    return sorted(methods, key=lambda m: m.name)


@_guarded("method")
def emit_method(ctx: EmitContext, method: MethodDescriptor) -> bool:
    """
    Emit a forwarding wrapper for one method.

    The first overload (in metadata order) whose signature maps wins the
    name; a method is dropped entirely if its return type or any parameter
    cannot be mapped.
    """
    name = ctx.sanitizer.sanitize_name(method.name)
    if name in ctx.registry:
        return False

    return_result = ctx.mapper.map_member_type(method.return_type, ctx.owner)
    if not return_result.ok:
        ctx.reject(_removal_message("Method", method.name, return_result))
        return False

    parameter_types = []
    for parameter in method.parameters:
        result = ctx.mapper.map_member_type(parameter.type, ctx.owner)
        if not result.ok:
            label = parameter.name or f"#{len(parameter_types)}"
            ctx.reject(f"REMOVED: Method '{method.name}' parameter '{label}' uses {result.reason}")
            return False
        parameter_types.append(result.representation)

    taken = BODY_LOCALS | type_identifiers(return_result.representation, *parameter_types)
    parameter_names = ctx.sanitizer.make_unique_parameters(
        [p.name for p in method.parameters], taken=taken
    )

    ctx.registry.claim(name)
    ctx.emit(
        "method.hpp.j2",
        return_type=return_result.representation,
        name=name,
        original=method.name,
        parameters=[f"{t} {n}" for t, n in zip(parameter_types, parameter_names)],
        arguments=parameter_names,
        is_static=method.is_static,
    )
    return True


# Enums


def enum_underlying_spelling(underlying: Optional[str]) -> str:
    return KNOWN_TYPES.get(f"System.{underlying or 'Int32'}", "int")


def format_enum_literal(value: int, underlying: Optional[str]) -> str:
    """
    Spell an enum value as a C++ literal matching the underlying type.

    Values are first wrapped to the underlying width, so a sign-extended
    constant read from metadata comes out with the right magnitude.
    """
    bits, signed = ENUM_WIDTHS.get(underlying or "Int32", (32, True))
    value = int(value) & ((1 << bits) - 1)
    if signed and value >= 1 << (bits - 1):
        value -= 1 << bits

    if not signed:
        return f"{value}ull" if bits == 64 else f"{value}u"
    if bits == 64:
        if value == -(1 << 63):
            return "(-9223372036854775807ll - 1)"
        return f"{value}ll"
    if bits == 32 and value == -(1 << 31):
        return "(-2147483647 - 1)"
    return str(value)


def enum_entries(
    type_desc: TypeDescriptor, sanitizer: NameSanitizer, diagnostics: Diagnostics
) -> List[Dict[str, str]]:
    """Sanitized, deduplicated names paired with their literals, in metadata order."""
    sanitized = []
    for value in type_desc.enum_values:
        name = sanitizer.sanitize_name(value.name)
        if sanitizer.is_reserved(value.name):
            diagnostics.warn(
                f"{type_desc.full_name}: enum value '{value.name}' escaped as '{name}'"
            )
        sanitized.append(name)

    return [
        {"name": name, "literal": format_enum_literal(value.value, type_desc.enum_underlying_type)}
        for name, value in zip(unique_names(sanitized), type_desc.enum_values)
    ]


def emit_enum(
    buffer: CodeBuffer,
    type_desc: TypeDescriptor,
    enum_name: str,
    sanitizer: NameSanitizer,
    diagnostics: Diagnostics,
    render: Callable[[str, Dict[str, Any]], str],
    indent: str = "    ",
):
    """Emit ``enum class Name : underlying { ... };``."""
    buffer.lines(
        render(
            "enum.hpp.j2",
            {
                "name": enum_name,
                "underlying": enum_underlying_spelling(type_desc.enum_underlying_type),
                "entries": enum_entries(type_desc, sanitizer, diagnostics),
                "indent": indent,
            },
        )
    )
    buffer.line()


def emit_members(ctx: EmitContext, image_name: str):
    """Full member emission in the fixed order used for every struct."""
    emit_bootstrap(ctx, image_name)
    emit_singletons(ctx)

    fields = emittable_fields(ctx.type_desc)
    for field in fields:
        emit_field_getter(ctx, field)
    for field in fields:
        emit_field_setter(ctx, field)

    for prop in emittable_properties(ctx):
        emit_property(ctx, prop)

    for method in emittable_methods(ctx):
        emit_method(ctx, method)
