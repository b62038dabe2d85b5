"""Tests for the Dependency Analyzer."""

import pytest

from bueno.analyzer import (
    COMPONENT,
    DIRECTORY,
    EXACT,
    EXTENSION,
    EXTERNAL,
    INDEX,
    SHARED,
    DependencyAnalyzer,
    DependencySet,
    resolve_import,
)
from bueno.discovery import ComponentRecord, discover_components

from conftest import write


@pytest.fixture
def analyzer(fake_repo):
    return DependencyAnalyzer(
        fake_repo.src_root, discover_components(fake_repo.components_root)
    )


class TestDependencySet:
    def test_ordered_and_unique(self):
        deps = DependencySet()
        deps.add_component("B")
        deps.add_component("A")
        deps.add_component("B")
        assert deps.components == ["B", "A"]

    def test_merge(self):
        a = DependencySet(["X"], ["common/a.ts"])
        b = DependencySet(["Y", "X"], ["common/b.ts"])
        a.merge(b)
        assert a.components == ["X", "Y"]
        assert a.shared_files == ["common/a.ts", "common/b.ts"]

    def test_is_empty(self):
        assert DependencySet().is_empty()
        assert not DependencySet(["X"]).is_empty()


class TestResolveImport:
    def test_exact_file(self, tmp_path):
        write(tmp_path, "a/style.css")
        res = resolve_import(tmp_path / "a", "./style.css")
        assert res.mode == EXACT
        assert res.path == tmp_path / "a" / "style.css"

    def test_extension_order(self, tmp_path):
        write(tmp_path, "x.ts")
        write(tmp_path, "x.tsx")
        res = resolve_import(tmp_path, "./x")
        assert res.mode == EXTENSION
        assert res.extension == ".tsx"

    def test_declaration_file(self, tmp_path):
        write(tmp_path, "theme.d.ts")
        res = resolve_import(tmp_path, "./theme")
        assert res.path.name == "theme.d.ts"
        assert res.extension == ".d.ts"

    def test_index_file(self, tmp_path):
        write(tmp_path, "Utils/index.ts")
        res = resolve_import(tmp_path, "./Utils")
        assert res.mode == INDEX
        assert res.path == tmp_path / "Utils" / "index.ts"

    def test_directory_without_index(self, tmp_path):
        write(tmp_path, "Assets/logo.svg")
        assert resolve_import(tmp_path, "./Assets").mode == DIRECTORY

    def test_missing(self, tmp_path):
        assert resolve_import(tmp_path, "./nothing") is None


class TestClassify:
    def test_component_import(self, analyzer, fake_repo):
        source = fake_repo.components_root / "Buttons/Submit/Submit.tsx"
        result = analyzer.classify(source, "../Button/Button")
        assert result.kind == COMPONENT
        assert result.component.name == "Buttons/Button"

    def test_shared_import(self, analyzer, fake_repo):
        source = fake_repo.components_root / "Form/Mform/MForm.tsx"
        result = analyzer.classify(source, "../../../common/Utils")
        assert result.kind == SHARED
        assert result.shared_path == "common/Utils/index.ts"

    def test_types_recorded_as_directory(self, analyzer, fake_repo):
        source = fake_repo.components_root / "Form/Inputs/Select/Select.tsx"
        result = analyzer.classify(source, "../../../../@types/theme")
        assert result.kind == SHARED
        assert result.shared_path == "@types"

    def test_own_component_is_not_a_dependency(self, analyzer, fake_repo):
        current = analyzer.index["Buttons/Button"]
        source = current.path / "Button.test.tsx"
        assert analyzer.classify(source, "./Button", current).kind == EXTERNAL

    def test_outside_source_root_is_external(self, analyzer, fake_repo):
        source = fake_repo.components_root / "Alerts/Alert.tsx"
        assert analyzer.classify(source, "../../../package.json").kind == EXTERNAL

    def test_unresolved_path_inside_component_dir(self, analyzer, fake_repo):
        source = fake_repo.components_root / "Form/Mform/MForm.tsx"
        result = analyzer.classify(source, "../../Buttons/Button/missing")
        assert result.kind == COMPONENT
        assert result.component.name == "Buttons/Button"

    def test_deepest_component_wins(self, tmp_path):
        write(tmp_path, "src/components/Form/Form.tsx")
        write(tmp_path, "src/components/Form/Inputs/Select/Select.tsx")
        write(tmp_path, "src/components/Other/Other.tsx")
        analyzer = DependencyAnalyzer(
            tmp_path / "src", discover_components(tmp_path / "src/components")
        )
        source = tmp_path / "src/components/Other/Other.tsx"
        result = analyzer.classify(source, "../Form/Inputs/Select/Select")
        assert result.component.name == "Form/Inputs/Select"


class TestAnalyze:
    def test_direct_dependencies(self, analyzer):
        deps = analyzer.analyze(analyzer.index["Form/Mform"])
        assert deps.components == ["Buttons/Submit", "Form/Inputs/TextField"]
        assert deps.shared_files == ["common/Utils/index.ts"]

    def test_no_self_dependency(self, analyzer):
        for record in analyzer.components:
            assert record.name not in analyzer.analyze(record).components

    def test_same_directory_imports_ignored(self, analyzer):
        deps = analyzer.analyze(analyzer.index["Buttons/Button"])
        assert deps.components == []
        assert deps.shared_files == ["common/helpers.ts"]

    def test_stories_not_analyzed(self, tmp_path):
        write(tmp_path, "src/components/A/A.tsx")
        write(tmp_path, "src/components/A/A.stories.tsx", "import { B } from '../B/B';\n")
        write(tmp_path, "src/components/B/B.tsx")
        analyzer = DependencyAnalyzer(
            tmp_path / "src", discover_components(tmp_path / "src/components")
        )
        assert analyzer.analyze(analyzer.index["A"]).is_empty()

    def test_unreadable_component_dir_is_empty(self, analyzer, tmp_path):
        ghost = ComponentRecord("Ghost", tmp_path / "ghost")
        assert analyzer.analyze(ghost).is_empty()

    def test_shared_file_siblings(self, analyzer, fake_repo):
        deps = analyzer.analyze_file(
            fake_repo.src_root / "common/Utils/index.ts", include_same_dir=True
        )
        assert deps.shared_files == ["common/Utils/format.ts"]

    def test_shared_file_component_reference(self, analyzer, fake_repo):
        deps = analyzer.analyze_file(
            fake_repo.src_root / "common/notify.ts", include_same_dir=True
        )
        assert deps.components == ["Form/Error"]
