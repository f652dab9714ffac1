"""
Decoder for ECMA-335 signature blobs (partition II, section 23.2).

dnfile exposes field, method and property signatures as raw blobs; this
module turns them into TypeRef values. Type tokens embedded in a signature
are handed to a resolver callback so the decoder stays independent of the
metadata tables.
"""

import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Callable, List, Optional, Tuple

from .model import TypeCategory, TypeRef


class SignatureError(ValueError):
    """Raised for truncated or malformed signature blobs."""

    pass


class ElementType(IntEnum):
    """ELEMENT_TYPE_* constants."""

    END = 0x00
    VOID = 0x01
    BOOLEAN = 0x02
    CHAR = 0x03
    I1 = 0x04
    U1 = 0x05
    I2 = 0x06
    U2 = 0x07
    I4 = 0x08
    U4 = 0x09
    I8 = 0x0A
    U8 = 0x0B
    R4 = 0x0C
    R8 = 0x0D
    STRING = 0x0E
    PTR = 0x0F
    BYREF = 0x10
    VALUETYPE = 0x11
    CLASS = 0x12
    VAR = 0x13
    ARRAY = 0x14
    GENERICINST = 0x15
    TYPEDBYREF = 0x16
    I = 0x18
    U = 0x19
    FNPTR = 0x1B
    OBJECT = 0x1C
    SZARRAY = 0x1D
    MVAR = 0x1E
    CMOD_REQD = 0x1F
    CMOD_OPT = 0x20
    INTERNAL = 0x21
    SENTINEL = 0x41
    PINNED = 0x45


# Calling-convention byte
HASTHIS = 0x20
EXPLICITTHIS = 0x40
GENERIC = 0x10
CALLCONV_MASK = 0x0F
FIELD_SIGNATURE = 0x06
PROPERTY_SIGNATURE = 0x08

# TypeDefOrRefOrSpecEncoded tags
TYPEDEF_TAG = 0
TYPEREF_TAG = 1
TYPESPEC_TAG = 2

PRIMITIVE_TYPES = {
    ElementType.VOID: ("Void", TypeCategory.STRUCT),
    ElementType.BOOLEAN: ("Boolean", TypeCategory.STRUCT),
    ElementType.CHAR: ("Char", TypeCategory.STRUCT),
    ElementType.I1: ("SByte", TypeCategory.STRUCT),
    ElementType.U1: ("Byte", TypeCategory.STRUCT),
    ElementType.I2: ("Int16", TypeCategory.STRUCT),
    ElementType.U2: ("UInt16", TypeCategory.STRUCT),
    ElementType.I4: ("Int32", TypeCategory.STRUCT),
    ElementType.U4: ("UInt32", TypeCategory.STRUCT),
    ElementType.I8: ("Int64", TypeCategory.STRUCT),
    ElementType.U8: ("UInt64", TypeCategory.STRUCT),
    ElementType.R4: ("Single", TypeCategory.STRUCT),
    ElementType.R8: ("Double", TypeCategory.STRUCT),
    ElementType.STRING: ("String", TypeCategory.CLASS),
    ElementType.TYPEDBYREF: ("TypedReference", TypeCategory.STRUCT),
    ElementType.I: ("IntPtr", TypeCategory.STRUCT),
    ElementType.U: ("UIntPtr", TypeCategory.STRUCT),
    ElementType.OBJECT: ("Object", TypeCategory.CLASS),
}

# Little-endian layouts of Constant table blobs, keyed by element type
CONSTANT_FORMATS = {
    ElementType.BOOLEAN: "<?",
    ElementType.CHAR: "<H",
    ElementType.I1: "<b",
    ElementType.U1: "<B",
    ElementType.I2: "<h",
    ElementType.U2: "<H",
    ElementType.I4: "<i",
    ElementType.U4: "<I",
    ElementType.I8: "<q",
    ElementType.U8: "<Q",
}

# (table tag, 1-based row index, category hint) -> TypeRef
TypeTokenResolver = Callable[[int, int, TypeCategory], TypeRef]


@dataclass
class MethodSignature:
    """Decoded MethodDefSig."""

    has_this: bool
    return_type: TypeRef
    parameter_types: List[TypeRef] = field(default_factory=list)
    generic_parameter_count: int = 0


@dataclass
class PropertySignature:
    """Decoded PropertySig."""

    has_this: bool
    type: TypeRef
    parameter_types: List[TypeRef] = field(default_factory=list)


def primitive_ref(element_type: int) -> TypeRef:
    """TypeRef for a primitive ELEMENT_TYPE (System namespace)."""
    name, category = PRIMITIVE_TYPES[ElementType(element_type)]
    return TypeRef(name=name, namespace="System", category=category)


class SignatureReader:
    """Cursor over one signature blob."""

    def __init__(self, data: bytes, resolve_token: TypeTokenResolver):
        self.data = bytes(data)
        self.offset = 0
        self._resolve_token = resolve_token

    @property
    def at_end(self) -> bool:
        return self.offset >= len(self.data)

    def read_byte(self) -> int:
        if self.offset >= len(self.data):
            raise SignatureError(f"Signature truncated at offset {self.offset}")
        value = self.data[self.offset]
        self.offset += 1
        return value

    def peek_byte(self) -> int:
        if self.offset >= len(self.data):
            raise SignatureError(f"Signature truncated at offset {self.offset}")
        return self.data[self.offset]

    def read_compressed_uint(self) -> int:
        value, _ = self._read_compressed()
        return value

    def read_compressed_int(self) -> int:
        """Read a signed compressed integer (used by array lower bounds)."""
        raw, size = self._read_compressed()
        negative = raw & 1
        value = raw >> 1
        if negative:
            # Sign bit width depends on encoded size: 6, 13 or 28 bits
            width = {1: 6, 2: 13, 4: 28}[size]
            value -= 1 << width
        return value

    def _read_compressed(self) -> Tuple[int, int]:
        first = self.read_byte()
        if first & 0x80 == 0:
            return first, 1
        if first & 0xC0 == 0x80:
            return ((first & 0x3F) << 8) | self.read_byte(), 2
        if first & 0xE0 == 0xC0:
            value = (first & 0x1F) << 24
            value |= self.read_byte() << 16
            value |= self.read_byte() << 8
            value |= self.read_byte()
            return value, 4
        raise SignatureError(f"Invalid compressed integer lead byte 0x{first:02x}")

    def read_type_def_or_ref(self, hint: TypeCategory) -> TypeRef:
        encoded = self.read_compressed_uint()
        tag = encoded & 0x03
        index = encoded >> 2
        if tag not in (TYPEDEF_TAG, TYPEREF_TAG, TYPESPEC_TAG):
            raise SignatureError(f"Invalid TypeDefOrRef tag {tag}")
        return self._resolve_token(tag, index, hint)

    def _skip_modifiers(self) -> int:
        """Skip custom modifiers and PINNED markers, returning the next element byte."""
        element = self.read_byte()
        while element in (ElementType.CMOD_REQD, ElementType.CMOD_OPT, ElementType.PINNED):
            if element != ElementType.PINNED:
                self.read_type_def_or_ref(TypeCategory.CLASS)
            element = self.read_byte()
        return element

    def read_type(self) -> TypeRef:
        element = self._skip_modifiers()

        if element in PRIMITIVE_TYPES:
            return primitive_ref(element)

        if element == ElementType.BYREF:
            inner = self.read_type()
            return TypeRef(
                name=f"{inner.name}&",
                namespace=inner.namespace,
                category=inner.category,
                element_type=inner,
                is_byref=True,
            )

        if element == ElementType.PTR:
            inner = self.read_type()
            return TypeRef(
                name=f"{inner.name}*",
                namespace=inner.namespace,
                category=TypeCategory.POINTER,
                element_type=inner,
            )

        if element == ElementType.VALUETYPE:
            return self.read_type_def_or_ref(TypeCategory.STRUCT)

        if element == ElementType.CLASS:
            return self.read_type_def_or_ref(TypeCategory.CLASS)

        if element in (ElementType.VAR, ElementType.MVAR):
            number = self.read_compressed_uint()
            prefix = "!" if element == ElementType.VAR else "!!"
            return TypeRef(name=f"{prefix}{number}", category=TypeCategory.GENERIC_PARAMETER)

        if element == ElementType.SZARRAY:
            return _array_of(self.read_type())

        if element == ElementType.ARRAY:
            inner = self.read_type()
            rank = self.read_compressed_uint()
            for _ in range(self.read_compressed_uint()):
                self.read_compressed_uint()
            for _ in range(self.read_compressed_uint()):
                self.read_compressed_int()
            return _array_of(inner, rank)

        if element == ElementType.GENERICINST:
            kind = self.read_byte()
            hint = TypeCategory.STRUCT if kind == ElementType.VALUETYPE else TypeCategory.CLASS
            definition = self.read_type_def_or_ref(hint)
            count = self.read_compressed_uint()
            arguments = tuple(self.read_type() for _ in range(count))
            return TypeRef(
                name=definition.name,
                namespace=definition.namespace,
                category=definition.category,
                generic_arguments=arguments,
            )

        if element == ElementType.FNPTR:
            self.read_method_signature()
            return TypeRef(name="IntPtr", namespace="System", category=TypeCategory.STRUCT)

        raise SignatureError(f"Unsupported element type 0x{element:02x}")

    def read_method_signature(self) -> MethodSignature:
        head = self.read_byte()
        generic_count = 0
        if head & GENERIC:
            generic_count = self.read_compressed_uint()
        param_count = self.read_compressed_uint()
        return_type = self.read_type()

        parameters = []
        while len(parameters) < param_count:
            if self.peek_byte() == ElementType.SENTINEL:
                self.read_byte()
                continue
            parameters.append(self.read_type())

        return MethodSignature(
            has_this=bool(head & HASTHIS),
            return_type=return_type,
            parameter_types=parameters,
            generic_parameter_count=generic_count,
        )


def _array_of(element: TypeRef, rank: int = 1) -> TypeRef:
    suffix = "[" + "," * (rank - 1) + "]"
    return TypeRef(
        name=f"{element.name}{suffix}",
        namespace=element.namespace,
        category=TypeCategory.CLASS,
        element_type=element,
        is_array=True,
    )


def parse_field_signature(data: bytes, resolve_token: TypeTokenResolver) -> TypeRef:
    """Decode a FieldSig blob into the field's type."""
    reader = SignatureReader(data, resolve_token)
    head = reader.read_byte()
    if head & CALLCONV_MASK != FIELD_SIGNATURE:
        raise SignatureError(f"Not a field signature (0x{head:02x})")
    return reader.read_type()


def parse_method_signature(data: bytes, resolve_token: TypeTokenResolver) -> MethodSignature:
    """Decode a MethodDefSig blob."""
    return SignatureReader(data, resolve_token).read_method_signature()


def parse_property_signature(data: bytes, resolve_token: TypeTokenResolver) -> PropertySignature:
    """Decode a PropertySig blob."""
    reader = SignatureReader(data, resolve_token)
    head = reader.read_byte()
    if head & CALLCONV_MASK != PROPERTY_SIGNATURE:
        raise SignatureError(f"Not a property signature (0x{head:02x})")
    param_count = reader.read_compressed_uint()
    prop_type = reader.read_type()
    parameters = [reader.read_type() for _ in range(param_count)]
    return PropertySignature(
        has_this=bool(head & HASTHIS),
        type=prop_type,
        parameter_types=parameters,
    )


def parse_type_spec(data: bytes, resolve_token: TypeTokenResolver) -> TypeRef:
    """Decode a TypeSpec blob (a bare Type)."""
    return SignatureReader(data, resolve_token).read_type()


def decode_constant(element_type: int, blob: bytes) -> Optional[int]:
    """Decode an integral Constant table value; None for non-integral constants."""
    try:
        fmt = CONSTANT_FORMATS[ElementType(element_type)]
    except (ValueError, KeyError):
        return None
    if len(blob) < struct.calcsize(fmt):
        raise SignatureError(
            f"Constant blob too short for element type 0x{element_type:02x}"
        )
    return int(struct.unpack_from(fmt, bytes(blob))[0])
