from types import SimpleNamespace

import pytest

from bnm_structgen.codegen.cpp.types import MappingStatus, TypeMapper
from bnm_structgen.metadata.dnfile_backend import MetadataTableReader, ReferencedAssemblies
from bnm_structgen.metadata.model import TypeCategory
from bnm_structgen.metadata.signatures import TYPEREF_TAG, parse_field_signature


def ref(row_index, row=None):
    return SimpleNamespace(row_index=row_index, row=row)


def flags(*names):
    return SimpleNamespace(**{name: True for name in names})


def table(*rows):
    return SimpleNamespace(rows=list(rows))


def type_ref_row(name, namespace, scope=None):
    return SimpleNamespace(TypeName=name, TypeNamespace=namespace, ResolutionScope=ref(1, scope))


def assembly_ref(name):
    return SimpleNamespace(Name=name)


class StubReferences:
    """Referenced-assembly index that knows a fixed set of enums."""

    def __init__(self, enums):
        self.enums = set(enums)
        self.calls = []

    def is_enum(self, assembly_name, full_name):
        self.calls.append((assembly_name, full_name))
        return full_name in self.enums


@pytest.fixture
def game_tables():
    """
    Tables for a small assembly:

    Game.Player : MonoBehaviour with fields, methods and two properties,
    the enum Game.Mode, Inner nested in Player and Game.Broken whose only
    field has a truncated signature.
    """
    object_ref = type_ref_row("Object", "System")
    enum_ref = type_ref_row("Enum", "System")
    behaviour_ref = type_ref_row("MonoBehaviour", "UnityEngine")
    key_code_ref = type_ref_row("KeyCode", "UnityEngine", assembly_ref("UnityEngine.InputLegacyModule"))

    fields = [
        SimpleNamespace(Name="health", Signature=bytes([0x06, 0x08]), Flags=flags()),
        SimpleNamespace(Name="key", Signature=bytes([0x06, 0x11, 0x11]), Flags=flags()),
        SimpleNamespace(Name="value__", Signature=bytes([0x06, 0x08]), Flags=flags()),
        SimpleNamespace(Name="A", Signature=bytes([0x06, 0x11, 0x0C]), Flags=flags("fdStatic", "fdLiteral")),
        SimpleNamespace(Name="B", Signature=bytes([0x06, 0x11, 0x0C]), Flags=flags("fdStatic", "fdLiteral")),
        SimpleNamespace(Name="cut", Signature=bytes([0x06]), Flags=flags()),
    ]
    params = [
        SimpleNamespace(Sequence=0, Name=""),
        SimpleNamespace(Sequence=1, Name="speed"),
    ]
    methods = [
        SimpleNamespace(
            Name="Move",
            Signature=bytes([0x20, 0x02, 0x01, 0x08, 0x0C]),
            Flags=flags(),
            ParamList=[ref(1), ref(2)],
        ),
        SimpleNamespace(Name="get_Speed", Signature=bytes([0x20, 0x00, 0x0C]), Flags=flags("mdSpecialName"), ParamList=[]),
        SimpleNamespace(Name="set_Speed", Signature=bytes([0x20, 0x01, 0x01, 0x0C]), Flags=flags("mdSpecialName"), ParamList=[]),
        SimpleNamespace(Name="get_Count", Signature=bytes([0x00, 0x00, 0x08]), Flags=flags("mdStatic", "mdSpecialName"), ParamList=[]),
    ]
    properties = [
        SimpleNamespace(Name="Speed", Type=bytes([0x28, 0x00, 0x0C])),
        SimpleNamespace(Name="Count", Type=bytes([0x08, 0x00, 0x08])),
    ]
    typedefs = [
        SimpleNamespace(TypeName="<Module>", TypeNamespace="", Flags=flags(), Extends=None, FieldList=[], MethodList=[]),
        SimpleNamespace(
            TypeName="Player",
            TypeNamespace="Game",
            Flags=flags(),
            Extends=ref(3, behaviour_ref),
            FieldList=[ref(1), ref(2)],
            MethodList=[ref(1), ref(2), ref(3), ref(4)],
        ),
        SimpleNamespace(
            TypeName="Mode",
            TypeNamespace="Game",
            Flags=flags(),
            Extends=ref(2, enum_ref),
            FieldList=[ref(3), ref(4), ref(5)],
            MethodList=[],
        ),
        SimpleNamespace(TypeName="Inner", TypeNamespace="", Flags=flags(), Extends=ref(1, object_ref), FieldList=[], MethodList=[]),
        SimpleNamespace(
            TypeName="Broken",
            TypeNamespace="Game",
            Flags=flags(),
            Extends=ref(1, object_ref),
            FieldList=[ref(6)],
            MethodList=[],
        ),
    ]

    return SimpleNamespace(
        TypeDef=table(*typedefs),
        TypeRef=table(object_ref, enum_ref, behaviour_ref, key_code_ref),
        TypeSpec=table(),
        Field=table(*fields),
        MethodDef=table(*methods),
        Param=table(*params),
        Property=table(*properties),
        PropertyMap=table(SimpleNamespace(Parent=ref(2), PropertyList=[ref(1), ref(2)])),
        MethodSemantics=table(
            SimpleNamespace(Association=ref(1, properties[0]), Semantics=flags("msGetter"), Method=ref(2)),
            SimpleNamespace(Association=ref(1, properties[0]), Semantics=flags("msSetter"), Method=ref(3)),
            SimpleNamespace(Association=ref(2, properties[1]), Semantics=flags("msGetter"), Method=ref(4)),
        ),
        Constant=table(
            SimpleNamespace(Parent=ref(4, fields[3]), Type=0x08, Value=bytes(4)),
            SimpleNamespace(Parent=ref(5, fields[4]), Type=0x08, Value=b"\x07\x00\x00\x00"),
        ),
        NestedClass=table(SimpleNamespace(NestedClass=ref(4), EnclosingClass=ref(2))),
    )


@pytest.fixture
def read(game_tables):
    types = MetadataTableReader(game_tables, source="dnfile").read_types()
    return {type_desc.name: type_desc for type_desc in types}


class TestReadTypes:
    def test_module_and_broken_types_are_skipped(self, read):
        assert list(read) == ["Player", "Mode", "Inner"]

    def test_class_members(self, read):
        player = read["Player"]

        assert player.full_name == "Game.Player"
        assert player.category == TypeCategory.CLASS
        assert player.base_type.full_name == "UnityEngine.MonoBehaviour"
        assert player.source == "dnfile"
        assert [f.name for f in player.fields] == ["health", "key"]
        assert player.fields[0].type.full_name == "System.Int32"

    def test_method_parameters_and_flags(self, read):
        methods = {m.name: m for m in read["Player"].methods}
        move = methods["Move"]

        assert move.return_type.name == "Void"
        assert [p.name for p in move.parameters] == ["speed", None]
        assert [p.type.name for p in move.parameters] == ["Int32", "Single"]
        assert not move.is_static
        assert methods["get_Speed"].is_special_name
        assert methods["get_Count"].is_static

    def test_property_accessors(self, read):
        speed, count = read["Player"].properties

        assert (speed.name, speed.has_getter, speed.has_setter, speed.is_static) == ("Speed", True, True, False)
        assert (count.name, count.has_getter, count.has_setter, count.is_static) == ("Count", True, False, True)
        assert speed.type.name == "Single"

    def test_enum_values_and_underlying_type(self, read):
        mode = read["Mode"]

        assert mode.is_enum
        assert mode.enum_underlying_type == "Int32"
        assert [(v.name, v.value) for v in mode.enum_values] == [("A", 0), ("B", 7)]
        assert mode.fields == []

    def test_nested_type_uses_outer_namespace(self, read):
        inner = read["Inner"]
        assert inner.namespace == "Game"
        assert inner.is_nested

    def test_enum_names(self, game_tables):
        assert MetadataTableReader(game_tables).enum_names() == {"Game.Mode"}


class TestExternalEnums:
    def test_framework_enum_field_maps_to_int(self, read):
        key = read["Player"].fields[1]

        assert key.type.full_name == "UnityEngine.KeyCode"
        assert key.type.category == TypeCategory.ENUM
        assert TypeMapper().map_member_type(key.type).representation == "int"

    def test_framework_enum_from_field_signature(self):
        tables = SimpleNamespace(TypeRef=table(type_ref_row("KeyCode", "UnityEngine")))
        reader = MetadataTableReader(tables)

        # VALUETYPE followed by TypeRef row 1, encoded as (1 << 2) | 1
        field_type = parse_field_signature(bytes([0x06, 0x11, 0x05]), reader.resolve_token)
        result = TypeMapper().map_member_type(field_type)

        assert result.status == MappingStatus.MAPPED
        assert result.representation == "int"

    def test_other_value_types_stay_structs(self):
        tables = SimpleNamespace(TypeRef=table(type_ref_row("Vector3", "UnityEngine", assembly_ref("UnityEngine.CoreModule"))))
        reader = MetadataTableReader(tables, referenced=StubReferences([]))

        resolved = reader.resolve_token(TYPEREF_TAG, 1, TypeCategory.STRUCT)
        assert resolved.category == TypeCategory.STRUCT

    def test_enum_from_referenced_assembly(self):
        tables = SimpleNamespace(
            TypeRef=table(type_ref_row("WrapMode", "UnityEngine", assembly_ref("UnityEngine.AnimationModule")))
        )
        references = StubReferences(["UnityEngine.WrapMode"])
        reader = MetadataTableReader(tables, referenced=references)

        resolved = reader.resolve_token(TYPEREF_TAG, 1, TypeCategory.STRUCT)

        assert resolved.category == TypeCategory.ENUM
        assert references.calls == [("UnityEngine.AnimationModule", "UnityEngine.WrapMode")]

    def test_nested_type_ref_uses_outer_assembly(self):
        outer = type_ref_row("Physics", "UnityEngine", assembly_ref("UnityEngine.PhysicsModule"))
        inner = type_ref_row("QueryMode", "", outer)
        references = StubReferences(["QueryMode"])
        reader = MetadataTableReader(SimpleNamespace(TypeRef=table(outer, inner)), referenced=references)

        reader.resolve_token(TYPEREF_TAG, 2, TypeCategory.STRUCT)
        assert references.calls == [("UnityEngine.PhysicsModule", "QueryMode")]

    def test_class_references_skip_enum_lookup(self):
        references = StubReferences(["UnityEngine.GameObject"])
        tables = SimpleNamespace(TypeRef=table(type_ref_row("GameObject", "UnityEngine", assembly_ref("UnityEngine.CoreModule"))))

        resolved = MetadataTableReader(tables, referenced=references).resolve_token(TYPEREF_TAG, 1, TypeCategory.CLASS)

        assert resolved.category == TypeCategory.CLASS
        assert references.calls == []


class TestReferencedAssemblies:
    def test_missing_assembly_is_not_an_enum(self, tmp_path):
        assert not ReferencedAssemblies(tmp_path).is_enum("Missing", "Missing.Mode")

    def test_unreadable_assembly_is_not_an_enum(self, tmp_path):
        (tmp_path / "Broken.dll").write_bytes(b"MZ")
        assert not ReferencedAssemblies(tmp_path).is_enum("Broken", "Broken.Mode")

    def test_lookup_without_directory(self):
        assert not ReferencedAssemblies().is_enum("UnityEngine.CoreModule", "UnityEngine.Space")
