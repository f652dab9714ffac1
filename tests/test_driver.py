import pytest

from conftest import FakeLoader

from bnm_structgen import driver as driver_module
from bnm_structgen.codegen.core.config import GeneratorConfig
from bnm_structgen.driver import (
    GenerationDriver,
    NoTypesFoundError,
    filter_types,
    is_generatable,
    run_generation,
)
from bnm_structgen.metadata import (
    REFLECTION_BACKEND,
    STANDALONE_BACKEND,
    DnfileLoader,
    LoaderRegistry,
    RegistryError,
    ReflectionLoader,
    get_loader,
    list_backends,
)
from bnm_structgen.metadata.loader import MetadataLoadError
from bnm_structgen.metadata.model import TypeCategory, TypeRef
from bnm_structgen.utils import AssemblyNotFoundError


@pytest.fixture
def make_driver(tmp_path):
    def _make_driver(loaders, **overrides):
        overrides.setdefault("output_dir", str(tmp_path / "Output"))
        return GenerationDriver(GeneratorConfig(**overrides), loaders)

    return _make_driver


@pytest.fixture
def sample_types(make_type, make_field, make_enum, mono_behaviour):
    return [
        make_type("Player", base=mono_behaviour, fields=[make_field("health"), make_field("target", TypeRef("X", "Other"))]),
        make_type("Helper", namespace=None),
        make_enum("Mode", [("A", 0)]),
    ]


class TestFilter:
    def test_plain_class_and_enum(self, make_type, make_enum):
        assert is_generatable(make_type("Player"))
        assert is_generatable(make_enum("Mode", [("A", 0)]))

    @pytest.mark.parametrize(
        "name, namespace",
        [
            ("<PrivateImplementationDetails>", None),
            ("List`1", "System.Collections.Generic"),
            ("PlayerIEnumerator", "Game"),
            ("IEnumerableHelper", "Game"),
            ("IListView", "Game"),
        ],
    )
    def test_excluded_names(self, make_type, name, namespace):
        assert not is_generatable(make_type(name, namespace=namespace))

    def test_nested_and_non_class_types(self, make_type):
        assert not is_generatable(make_type("Inner", is_nested=True))
        assert not is_generatable(make_type("IThing", category=TypeCategory.INTERFACE))
        assert not is_generatable(make_type("Point", category=TypeCategory.STRUCT))

    def test_filter_dedupes_first_wins(self, make_type, make_field):
        first = make_type("Player", fields=[make_field("a")])
        second = make_type("Player", fields=[make_field("b")])
        assert filter_types([first, None, make_type("Inner", is_nested=True), second]) == [first]


class TestLoadTypes:
    def test_union_of_backends(self, make_driver, make_type, assembly_file):
        reflection = FakeLoader("reflection", [make_type("Player", fields=[])])
        standalone = FakeLoader("dnfile", [make_type("Player"), make_type("Helper")])
        used = []

        loaded = make_driver([reflection, standalone]).load_types(assembly_file, used)

        assert [t.name for t in loaded] == ["Player", "Player", "Helper"]
        assert used == ["reflection", "dnfile"]
        assert reflection.calls == standalone.calls == [assembly_file]

    def test_partial_failure_is_tolerated(self, make_driver, make_type, assembly_file):
        loaders = [FakeLoader("reflection", error="bad image"), FakeLoader("dnfile", [make_type("Player")])]
        assert len(make_driver(loaders).load_types(assembly_file)) == 1

    def test_unavailable_backend_is_skipped(self, make_driver, make_type, assembly_file):
        unavailable = FakeLoader("reflection", available=False)
        loaders = [unavailable, FakeLoader("dnfile", [make_type("Player")])]

        assert len(make_driver(loaders).load_types(assembly_file)) == 1
        assert unavailable.calls == []

    def test_all_backends_failing(self, make_driver, assembly_file):
        loaders = [FakeLoader("reflection", available=False), FakeLoader("dnfile", error="not a PE file")]
        with pytest.raises(MetadataLoadError, match="not a PE file"):
            make_driver(loaders).load_types(assembly_file)


class TestRun:
    def test_split_run_writes_headers_and_artifacts(self, make_driver, sample_types, assembly_file, tmp_path):
        summary = make_driver([FakeLoader("dnfile", sample_types)]).run(assembly_file)
        output = tmp_path / "Output"

        assert sorted(p.relative_to(output).as_posix() for p in summary.written) == [
            "Game/Mode.hpp",
            "Game/Player.hpp",
            "Global/Helper.hpp",
        ]
        assert summary.backends == ["dnfile"]
        assert summary.type_count == 3
        assert summary.emitted_count == 3

        warnings = (output / "GenerationWarnings.txt").read_text(encoding="utf-8").splitlines()
        assert warnings == summary.warnings
        assert len([w for w in warnings if "'target'" in w]) == 1

        report = (output / "ValidationReport.txt").read_text(encoding="utf-8")
        assert report.startswith("Files checked: 3\nIssues: 0\n")
        assert summary.validation.ok

    def test_image_name_defaults_to_file_name(self, make_driver, sample_types, assembly_file, tmp_path):
        make_driver([FakeLoader("dnfile", sample_types)], single_file=True).run(assembly_file)
        text = (tmp_path / "Output" / "BNMResolves.hpp").read_text(encoding="utf-8")
        assert 'Image(O("Assembly-CSharp.dll"))' in text

    def test_configured_image_name_wins(self, make_driver, sample_types, assembly_file, tmp_path):
        make_driver([FakeLoader("dnfile", sample_types)], single_file=True, image_name="Game.dll").run(assembly_file)
        assert 'Image(O("Game.dll"))' in (tmp_path / "Output" / "BNMResolves.hpp").read_text(encoding="utf-8")

    def test_split_run_replaces_previous_output(self, make_driver, sample_types, assembly_file, tmp_path):
        stale = tmp_path / "Output" / "Old" / "Stale.hpp"
        stale.parent.mkdir(parents=True)
        stale.write_text("old", encoding="utf-8")

        make_driver([FakeLoader("dnfile", sample_types)]).run(assembly_file)

        assert not stale.exists()

    def test_split_run_keeps_files_it_did_not_generate(self, make_driver, make_type, assembly_file, tmp_path):
        output = tmp_path / "Output"
        notes = output / "notes.txt"
        old_warnings = output / "GenerationWarnings.txt"
        output.mkdir()
        notes.write_text("keep", encoding="utf-8")
        old_warnings.write_text("stale", encoding="utf-8")

        make_driver([FakeLoader("dnfile", [make_type("Helper", namespace=None)])]).run(assembly_file)

        assert notes.read_text(encoding="utf-8") == "keep"
        assert not old_warnings.exists()

    def test_split_run_into_assembly_directory_keeps_input(self, make_driver, sample_types, assembly_file):
        own_header = assembly_file.parent / "Handwritten.hpp"
        own_header.write_text("// mine", encoding="utf-8")

        summary = make_driver([FakeLoader("dnfile", sample_types)], output_dir=str(assembly_file.parent)).run(
            assembly_file
        )

        assert assembly_file.read_bytes() == b"MZ"
        assert own_header.exists()
        assert assembly_file.parent / "Game" / "Player.hpp" in summary.written

    def test_combined_run_keeps_other_files(self, make_driver, sample_types, assembly_file, tmp_path):
        keep = tmp_path / "Output" / "notes.txt"
        keep.parent.mkdir(parents=True)
        keep.write_text("keep", encoding="utf-8")

        summary = make_driver([FakeLoader("dnfile", sample_types)], single_file=True).run(assembly_file)

        assert keep.exists()
        assert [p.name for p in summary.written] == ["BNMResolves.hpp"]

    def test_run_is_idempotent(self, make_driver, sample_types, assembly_file):
        driver = make_driver([FakeLoader("dnfile", sample_types)])

        first = {p: p.read_bytes() for p in driver.run(assembly_file).written}
        second = {p: p.read_bytes() for p in driver.run(assembly_file).written}

        assert first == second

    def test_no_warnings_file_without_warnings(self, make_driver, make_type, assembly_file, tmp_path):
        summary = make_driver([FakeLoader("dnfile", [make_type("Helper", namespace=None)])]).run(assembly_file)
        assert summary.warnings == []
        assert summary.warnings_path is None
        assert not (tmp_path / "Output" / "GenerationWarnings.txt").exists()

    def test_validation_can_be_disabled(self, make_driver, sample_types, assembly_file, tmp_path):
        summary = make_driver([FakeLoader("dnfile", sample_types)], validate_output=False).run(assembly_file)
        assert summary.validation is None
        assert not (tmp_path / "Output" / "ValidationReport.txt").exists()

    def test_missing_assembly(self, make_driver, tmp_path):
        loader = FakeLoader("dnfile")
        with pytest.raises(AssemblyNotFoundError):
            make_driver([loader]).run(tmp_path / "missing.dll")
        assert loader.calls == []

    def test_no_generatable_types(self, make_driver, make_type, assembly_file, tmp_path):
        loader = FakeLoader("dnfile", [make_type("Inner", is_nested=True)])
        with pytest.raises(NoTypesFoundError, match="No valid types found"):
            make_driver([loader]).run(assembly_file)
        assert not (tmp_path / "Output").exists()

    def test_run_generation_helper(self, sample_types, assembly_file, tmp_path):
        config = GeneratorConfig(output_dir=str(tmp_path / "Out"), single_file=True)
        summary = run_generation(assembly_file, config, [FakeLoader("dnfile", sample_types)])
        assert summary.written == [tmp_path / "Out" / "BNMResolves.hpp"]


def test_write_error_report(make_driver, tmp_path):
    driver = make_driver([])
    try:
        raise MetadataLoadError("cannot read image")
    except MetadataLoadError as e:
        path = driver.write_error_report(e)

    assert path == tmp_path / "Output" / "GeneratorError.txt"
    text = path.read_text(encoding="utf-8")
    assert text.startswith("Error processing assembly: cannot read image\n\nFull Exception:\n")
    assert "Traceback" in text
    assert "MetadataLoadError: cannot read image" in text


def test_default_loaders_order():
    assert [loader.name for loader in driver_module.default_loaders(GeneratorConfig())] == [STANDALONE_BACKEND]
    reflection_first = driver_module.default_loaders(GeneratorConfig(use_reflection=True))
    assert [loader.name for loader in reflection_first] == [REFLECTION_BACKEND, STANDALONE_BACKEND]


class TestRegistry:
    def test_builtin_backends(self):
        assert list_backends() == ["dnfile", "reflection"]
        assert isinstance(get_loader("dnfile"), DnfileLoader)
        assert isinstance(get_loader("Reflection"), ReflectionLoader)

    def test_unknown_backend(self):
        with pytest.raises(RegistryError, match="Available: dnfile, reflection"):
            get_loader("cecil")

    def test_register_and_replace(self):
        registry = LoaderRegistry()
        registry.register("fake", DnfileLoader)
        registry.register("fake", ReflectionLoader)
        assert registry.get_loader_class("fake") is DnfileLoader

        registry.register("fake", ReflectionLoader, replace=True)
        assert registry.get_loader_class("fake") is ReflectionLoader

    def test_register_rejects_non_loaders(self):
        with pytest.raises(RegistryError):
            LoaderRegistry().register("bad", dict)
