"""
Tests for idempotent scaffolding of user-owned tests.
"""

import pytest

from freezeray.errors import ScaffoldWriteError
from freezeray.models import ScaffoldKind
from freezeray.scaffold import CUSTOMIZE_MARKER, ScaffoldingEngine
from freezeray.store import FixtureStore


@pytest.fixture
def engine(tmp_path):
    return ScaffoldingEngine(tmp_path / "Tests", "MyApp")


class TestDriftScaffold:

    def test_created_once(self, engine):
        first = engine.scaffold_drift("1.0.0", "AppSchemaV1")
        content = first.path.read_bytes()

        second = engine.scaffold_drift("1.0.0", "AppSchemaV1")

        assert first.created is True
        assert second.created is False
        assert first.file_name == second.file_name == "AppSchemaV1_DriftTests.swift"
        assert second.path.read_bytes() == content

    def test_user_edits_survive(self, engine):
        result = engine.scaffold_drift("1.0.0", "AppSchemaV1")
        result.path.write_text("// my own test\n")
        mtime = result.path.stat().st_mtime_ns

        again = engine.scaffold_drift("1.0.0", "AppSchemaV1")

        assert again.created is False
        assert result.path.read_text() == "// my own test\n"
        assert result.path.stat().st_mtime_ns == mtime

    def test_content(self, engine):
        text = engine.scaffold_drift("1.0.0", "AppSchemaV1").path.read_text()
        assert "import Testing" in text
        assert "@testable import MyApp" in text
        assert "struct AppSchemaV1_DriftTests" in text
        assert "try AppSchemaV1.__freezeray_check_1_0_0()" in text
        assert CUSTOMIZE_MARKER in text


class TestMigrationScaffold:

    def test_file_name_and_content(self, engine):
        result = engine.scaffold_migration_pair("1.0.0", "2.0.0", "AppMigrations")
        assert result.kind == ScaffoldKind.MIGRATION_PAIR
        assert result.file_name == "MigrateV1_0_0toV2_0_0_Tests.swift"
        text = result.path.read_text()
        assert "try AppMigrations.__freezeray_test_migrate_1_0_0_to_2_0_0()" in text
        assert CUSTOMIZE_MARKER in text

    def test_created_once(self, engine):
        assert engine.scaffold_migration_pair("1.0.0", "2.0.0", "AppMigrations").created
        assert not engine.scaffold_migration_pair("1.0.0", "2.0.0", "OtherPlan").created


class TestPrecedingVersion:

    def test_uses_store_ordering(self, tmp_path):
        store = FixtureStore(tmp_path / "Fixtures")
        for name in ["1.0.0", "1.9.0", "1.10.0", "1.11.0", "2.0.0"]:
            (store.root / name).mkdir(parents=True)
        assert ScaffoldingEngine.find_preceding_version("2.0.0", store) == "1.11.0"
        assert ScaffoldingEngine.find_preceding_version("1.0.0", store) is None


class TestWriteErrors:

    def test_unwritable_directory(self, tmp_path):
        blocker = tmp_path / "Tests"
        blocker.write_text("not a directory")
        engine = ScaffoldingEngine(blocker, "MyApp")
        with pytest.raises(ScaffoldWriteError) as excinfo:
            engine.scaffold_drift("1.0.0", "AppSchemaV1")
        assert excinfo.value.exit_code == 10
