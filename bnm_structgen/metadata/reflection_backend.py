"""
Reflection metadata backend built on pythonnet.

Loads the assembly into a CLR hosted by pythonnet and walks System.Type
objects. Only used when the CLI asks for it, since it needs a working .NET
(or Mono) runtime on the machine.
"""

from pathlib import Path
from typing import List, Optional

from ..logging_config import get_logger
from .loader import MetadataLoader, MetadataLoadError
from .model import (
    EnumValue,
    FieldDescriptor,
    MethodDescriptor,
    ParameterDescriptor,
    PropertyDescriptor,
    TypeCategory,
    TypeDescriptor,
    TypeRef,
)

logger = get_logger(__name__)


def _import_clr():
    """Import pythonnet's ``clr`` module, raising MetadataLoadError when unusable."""
    try:
        import clr  # noqa: F401
    except ImportError as e:
        raise MetadataLoadError(
            "pythonnet is required for the reflection backend. "
            "Install with: pip install pythonnet"
        ) from e
    except Exception as e:
        # pythonnet raises RuntimeError when no CLR runtime can be started
        raise MetadataLoadError(f"Could not start a .NET runtime: {e}") from e
    return clr


class ReflectionLoader(MetadataLoader):
    """Metadata backend that loads the assembly through System.Reflection."""

    @property
    def name(self) -> str:
        return "reflection"

    def is_available(self) -> bool:
        try:
            _import_clr()
        except MetadataLoadError:
            return False
        return True

    def load(self, assembly_path: Path) -> List[TypeDescriptor]:
        _import_clr()
        from System import Convert, Enum
        from System.Reflection import Assembly, BindingFlags, ReflectionTypeLoadException

        try:
            assembly = Assembly.LoadFrom(str(Path(assembly_path).resolve()))
        except Exception as e:
            raise MetadataLoadError(f"Reflection could not load {assembly_path}: {e}") from e

        try:
            clr_types = list(assembly.GetTypes())
        except ReflectionTypeLoadException as e:
            # Partial load: keep whatever types did resolve
            clr_types = [t for t in (e.Types or []) if t is not None]
            logger.warning(
                "Reflection loaded %d types with %d loader exceptions",
                len(clr_types),
                len(e.LoaderExceptions or []),
            )

        flags = (
            BindingFlags.Public
            | BindingFlags.NonPublic
            | BindingFlags.Instance
            | BindingFlags.Static
            | BindingFlags.DeclaredOnly
        )
        converter = _ReflectionConverter(flags, Convert, Enum, source=self.name)

        types = []
        for clr_type in clr_types:
            try:
                types.append(converter.convert_type(clr_type))
            except Exception as e:
                # Members referencing unloadable assemblies throw on access
                logger.warning("Skipping type %s: %s", clr_type.FullName, e)

        logger.info("Reflection read %d types from %s", len(types), assembly_path)
        return types


class _ReflectionConverter:
    """Turns System.Type objects into TypeDescriptor / TypeRef values."""

    def __init__(self, binding_flags, convert, enum, source: str):
        self.binding_flags = binding_flags
        self.convert = convert
        self.enum = enum
        self.source = source

    def convert_ref(self, clr_type) -> TypeRef:
        if clr_type.IsByRef:
            inner = self.convert_ref(clr_type.GetElementType())
            return TypeRef(
                name=f"{inner.name}&",
                namespace=inner.namespace,
                category=inner.category,
                element_type=inner,
                is_byref=True,
            )

        if clr_type.IsArray:
            inner = self.convert_ref(clr_type.GetElementType())
            return TypeRef(
                name=str(clr_type.Name),
                namespace=inner.namespace,
                category=TypeCategory.CLASS,
                element_type=inner,
                is_array=True,
            )

        if clr_type.IsPointer:
            inner = self.convert_ref(clr_type.GetElementType())
            return TypeRef(
                name=f"{inner.name}*",
                namespace=inner.namespace,
                category=TypeCategory.POINTER,
                element_type=inner,
            )

        if clr_type.IsGenericParameter:
            return TypeRef(name=str(clr_type.Name), category=TypeCategory.GENERIC_PARAMETER)

        arguments = ()
        if clr_type.IsGenericType and not clr_type.IsGenericTypeDefinition:
            arguments = tuple(self.convert_ref(arg) for arg in clr_type.GetGenericArguments())

        return TypeRef(
            name=str(clr_type.Name),
            namespace=_namespace(clr_type),
            category=self._category(clr_type),
            generic_arguments=arguments,
        )

    @staticmethod
    def _category(clr_type) -> TypeCategory:
        if clr_type.IsEnum:
            return TypeCategory.ENUM
        if clr_type.IsInterface:
            return TypeCategory.INTERFACE
        if clr_type.IsValueType:
            return TypeCategory.STRUCT
        return TypeCategory.CLASS

    def convert_type(self, clr_type) -> TypeDescriptor:
        type_desc = TypeDescriptor(
            name=str(clr_type.Name),
            namespace=_namespace(clr_type),
            category=self._category(clr_type),
            base_type=self.convert_ref(clr_type.BaseType) if clr_type.BaseType is not None else None,
            is_nested=bool(clr_type.IsNested),
            source=self.source,
        )
        owner = type_desc.full_name

        if type_desc.is_enum:
            underlying = self.enum.GetUnderlyingType(clr_type)
            type_desc.enum_underlying_type = str(underlying.Name)
            names = list(clr_type.GetEnumNames())
            values = list(clr_type.GetEnumValues())
            for name, value in zip(names, values):
                type_desc.enum_values.append(
                    EnumValue(str(name), int(self.convert.ChangeType(value, underlying)))
                )
            return type_desc

        for clr_field in clr_type.GetFields(self.binding_flags):
            type_desc.fields.append(
                FieldDescriptor(
                    name=str(clr_field.Name),
                    type=self.convert_ref(clr_field.FieldType),
                    is_static=bool(clr_field.IsStatic),
                    is_readonly=bool(clr_field.IsInitOnly),
                    is_literal=bool(clr_field.IsLiteral),
                    declaring_type=owner,
                )
            )

        for clr_prop in clr_type.GetProperties(self.binding_flags):
            accessor = clr_prop.GetGetMethod(True) or clr_prop.GetSetMethod(True)
            type_desc.properties.append(
                PropertyDescriptor(
                    name=str(clr_prop.Name),
                    type=self.convert_ref(clr_prop.PropertyType),
                    is_static=bool(accessor.IsStatic) if accessor is not None else False,
                    has_getter=bool(clr_prop.CanRead),
                    has_setter=bool(clr_prop.CanWrite),
                    index_parameter_count=len(clr_prop.GetIndexParameters()),
                    declaring_type=owner,
                )
            )

        for clr_method in clr_type.GetMethods(self.binding_flags):
            type_desc.methods.append(
                MethodDescriptor(
                    name=str(clr_method.Name),
                    return_type=self.convert_ref(clr_method.ReturnType),
                    parameters=[
                        ParameterDescriptor(
                            str(param.Name) if param.Name else None,
                            self.convert_ref(param.ParameterType),
                        )
                        for param in clr_method.GetParameters()
                    ],
                    is_static=bool(clr_method.IsStatic),
                    is_special_name=bool(clr_method.IsSpecialName),
                    generic_arity=len(clr_method.GetGenericArguments())
                    if clr_method.IsGenericMethodDefinition
                    else 0,
                    declaring_type=owner,
                )
            )

        return type_desc


def _namespace(clr_type) -> Optional[str]:
    namespace = clr_type.Namespace
    return str(namespace) if namespace else None
