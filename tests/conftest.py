from collections.abc import Callable
from pathlib import Path

import pytest

from bnm_structgen.codegen.core.config import GeneratorConfig
from bnm_structgen.codegen.cpp.generator import BNMHeaderGenerator
from bnm_structgen.metadata.loader import MetadataLoader, MetadataLoadError
from bnm_structgen.metadata.model import (
    EnumValue,
    FieldDescriptor,
    MethodDescriptor,
    ParameterDescriptor,
    PropertyDescriptor,
    TypeCategory,
    TypeDescriptor,
    TypeRef,
)

PRIMITIVE_CATEGORIES = {
    "String": TypeCategory.CLASS,
    "Object": TypeCategory.CLASS,
}


def system_ref(name: str) -> TypeRef:
    return TypeRef(name, "System", PRIMITIVE_CATEGORIES.get(name, TypeCategory.STRUCT))


def array_of(element: TypeRef) -> TypeRef:
    return TypeRef(
        f"{element.name}[]",
        element.namespace,
        TypeCategory.CLASS,
        element_type=element,
        is_array=True,
    )


def byref_of(element: TypeRef) -> TypeRef:
    return TypeRef(f"{element.name}&", element.namespace, element.category, element_type=element, is_byref=True)


def generic_of(name: str, namespace: str, *arguments: TypeRef) -> TypeRef:
    return TypeRef(name, namespace, TypeCategory.CLASS, generic_arguments=tuple(arguments))


class FakeLoader(MetadataLoader):
    """Loader returning canned descriptors, or failing on demand."""

    def __init__(self, name: str, types=None, error: str | None = None, available: bool = True):
        self._name = name
        self._types = list(types or [])
        self._error = error
        self._available = available
        self.calls: list[Path] = []

    @property
    def name(self) -> str:
        return self._name

    def is_available(self) -> bool:
        return self._available

    def load(self, assembly_path: Path) -> list[TypeDescriptor]:
        self.calls.append(assembly_path)
        if self._error:
            raise MetadataLoadError(self._error)
        return list(self._types)


@pytest.fixture
def int_ref() -> TypeRef:
    return system_ref("Int32")


@pytest.fixture
def make_field() -> Callable[..., FieldDescriptor]:
    def _make_field(
        name: str,
        type_ref: TypeRef | None = None,
        *,
        is_static: bool = False,
        is_readonly: bool = False,
        is_literal: bool = False,
    ) -> FieldDescriptor:
        return FieldDescriptor(
            name=name,
            type=type_ref or system_ref("Int32"),
            is_static=is_static,
            is_readonly=is_readonly,
            is_literal=is_literal,
        )

    return _make_field


@pytest.fixture
def make_property() -> Callable[..., PropertyDescriptor]:
    def _make_property(
        name: str,
        type_ref: TypeRef | None = None,
        *,
        is_static: bool = False,
        has_getter: bool = True,
        has_setter: bool = False,
        index_parameter_count: int = 0,
    ) -> PropertyDescriptor:
        return PropertyDescriptor(
            name=name,
            type=type_ref or system_ref("Int32"),
            is_static=is_static,
            has_getter=has_getter,
            has_setter=has_setter,
            index_parameter_count=index_parameter_count,
        )

    return _make_property


@pytest.fixture
def make_method() -> Callable[..., MethodDescriptor]:
    def _make_method(
        name: str,
        return_type: TypeRef | None = None,
        parameters: list[tuple[str | None, TypeRef]] | None = None,
        *,
        is_static: bool = False,
        is_special_name: bool = False,
        is_constructor: bool = False,
    ) -> MethodDescriptor:
        return MethodDescriptor(
            name=name,
            return_type=return_type or system_ref("Void"),
            parameters=[ParameterDescriptor(n, t) for n, t in parameters or []],
            is_static=is_static,
            is_special_name=is_special_name,
            is_constructor=is_constructor,
        )

    return _make_method


@pytest.fixture
def make_type() -> Callable[..., TypeDescriptor]:
    def _make_type(
        name: str,
        namespace: str | None = "Game",
        *,
        base: TypeRef | None = None,
        fields=None,
        properties=None,
        methods=None,
        category: TypeCategory = TypeCategory.CLASS,
        is_nested: bool = False,
    ) -> TypeDescriptor:
        return TypeDescriptor(
            name=name,
            namespace=namespace,
            category=category,
            base_type=base,
            fields=list(fields or []),
            properties=list(properties or []),
            methods=list(methods or []),
            is_nested=is_nested,
            source="test",
        )

    return _make_type


@pytest.fixture
def make_enum() -> Callable[..., TypeDescriptor]:
    def _make_enum(
        name: str,
        values: list[tuple[str, int]],
        namespace: str | None = "Game",
        underlying: str = "Int32",
    ) -> TypeDescriptor:
        return TypeDescriptor(
            name=name,
            namespace=namespace,
            category=TypeCategory.ENUM,
            base_type=TypeRef("Enum", "System"),
            enum_underlying_type=underlying,
            enum_values=[EnumValue(n, v) for n, v in values],
            source="test",
        )

    return _make_enum


@pytest.fixture
def mono_behaviour() -> TypeRef:
    return TypeRef("MonoBehaviour", "UnityEngine")


@pytest.fixture
def make_generator() -> Callable[..., BNMHeaderGenerator]:
    def _make_generator(**overrides) -> BNMHeaderGenerator:
        overrides.setdefault("image_name", "Assembly-CSharp.dll")
        return BNMHeaderGenerator(GeneratorConfig(**overrides))

    return _make_generator


@pytest.fixture
def generate_combined(make_generator) -> Callable[..., tuple[str, list[str]]]:
    """Run the combined layout and return (header text, warnings)."""

    def _generate(types, **overrides) -> tuple[str, list[str]]:
        result = make_generator(single_file=True, **overrides).generate(types)
        assert result.success
        assert len(result.units) == 1
        return result.units[0].content, result.warnings

    return _generate


@pytest.fixture
def assembly_file(tmp_path: Path) -> Path:
    path = tmp_path / "Files" / "Assembly-CSharp.dll"
    path.parent.mkdir(parents=True)
    path.write_bytes(b"MZ")
    return path
