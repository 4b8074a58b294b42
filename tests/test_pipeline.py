"""
End-to-end tests for the freeze pipeline against a fake toolchain.
"""

import logging

import pytest

from freezeray.errors import (
    ExtractionIncomplete,
    FixturesAlreadyExist,
    FixturesNotFound,
    InvalidFixture,
    InvalidVersionString,
    NoVersionDeclarationFound,
)
from freezeray.models import ScaffoldKind
from freezeray.pipeline import FreezePipeline

from conftest import FakeRunner, sha256_hex


@pytest.fixture
def pipeline(config, fake_runner):
    return FreezePipeline(config, runner=fake_runner)


def xcodebuild_test_runs(runner):
    return runner.commands(["xcodebuild", "test"])


class TestFirstFreeze:

    def test_commits_fixtures(self, pipeline, ios_project):
        outcome = pipeline.freeze("1.0.0")

        directory = ios_project / "FreezeRay" / "Fixtures" / "1.0.0"
        assert outcome.fixtures.directory == directory
        assert sorted(p.name for p in directory.iterdir()) == [
            "export_metadata-1_0_0.txt",
            "fingerprint-1_0_0.sha256",
            "manifest-1_0_0.json",
            "schema-1_0_0.sql",
            "snapshot-1_0_0.sqlite",
        ]
        assert outcome.declaration.type_name == "AppSchemaV1"

    def test_scaffolds_drift_test_only(self, pipeline, ios_project):
        outcome = pipeline.freeze("1.0.0")

        tests_dir = ios_project / "FreezeRay" / "Tests"
        assert sorted(p.name for p in tests_dir.iterdir()) == ["AppSchemaV1_DriftTests.swift"]
        assert [s.kind for s in outcome.scaffolds] == [ScaffoldKind.DRIFT]
        assert outcome.preceding_version is None

    def test_unknown_version(self, pipeline, fake_runner):
        with pytest.raises(NoVersionDeclarationFound) as excinfo:
            pipeline.freeze("3.0.0")
        assert excinfo.value.exit_code == 3
        assert fake_runner.calls == []

    def test_malformed_version_rejected_before_building(self, pipeline, fake_runner, ios_project):
        (ios_project / "MyApp" / "Odd.swift").write_text('@Freeze(version: "3.0")\nenum AppSchemaV3 {}\n')

        with pytest.raises(InvalidVersionString) as excinfo:
            pipeline.freeze("3.0")

        assert excinfo.value.exit_code == 3
        assert "X.Y.Z" in excinfo.value.format_message()
        assert xcodebuild_test_runs(fake_runner) == []
        assert not pipeline.store.exists("3.0")


class TestSecondFreeze:

    def test_scaffolds_migration_pair(self, pipeline, ios_project):
        pipeline.freeze("1.0.0")
        outcome = pipeline.freeze("2.0.0")

        assert outcome.preceding_version == "1.0.0"
        assert outcome.migration_plan.type_name == "AppMigrations"
        migration = ios_project / "FreezeRay" / "Tests" / "MigrateV1_0_0toV2_0_0_Tests.swift"
        assert migration.exists()
        assert "AppMigrations.__freezeray_test_migrate_1_0_0_to_2_0_0()" in migration.read_text()
        assert (ios_project / "FreezeRay" / "Tests" / "AppSchemaV2_DriftTests.swift").exists()

    def test_no_plan_skips_migration(self, config, fake_runner, ios_project, caplog):
        (ios_project / "MyApp" / "Migrations.swift").unlink()
        pipeline = FreezePipeline(config, runner=fake_runner)
        pipeline.freeze("1.0.0")

        with caplog.at_level(logging.WARNING, logger="freezeray"):
            outcome = pipeline.freeze("2.0.0")

        assert outcome.preceding_version == "1.0.0"
        assert outcome.migration_plan is None
        assert [s.kind for s in outcome.scaffolds] == [ScaffoldKind.DRIFT]
        assert "No @AutoTests migration plan" in caplog.text


class TestRefreeze:

    def test_refuses_without_force(self, pipeline, fake_runner, ios_project):
        pipeline.freeze("1.0.0")
        builds_before = len(xcodebuild_test_runs(fake_runner))

        with pytest.raises(FixturesAlreadyExist):
            pipeline.freeze("1.0.0")

        assert len(xcodebuild_test_runs(fake_runner)) == builds_before

    def test_force_replaces(self, config, ios_project, dead_drop):
        runner = FakeRunner(extraction_root=dead_drop)
        FreezePipeline(config, runner=runner).freeze("1.0.0")

        new_sql = "CREATE TABLE ZUSER (Z_PK INTEGER PRIMARY KEY, ZNICK VARCHAR);\n"
        runner.schema_sql["1.0.0"] = new_sql
        outcome = FreezePipeline(config, runner=runner).freeze("1.0.0", force=True)

        assert outcome.forced
        assert outcome.fixtures.fingerprint == sha256_hex(new_sql)

    def test_force_keeps_user_scaffolds(self, pipeline, ios_project):
        pipeline.freeze("1.0.0")
        drift_test = ios_project / "FreezeRay" / "Tests" / "AppSchemaV1_DriftTests.swift"
        drift_test.write_text("// customized\n")

        outcome = pipeline.freeze("1.0.0", force=True)

        assert drift_test.read_text() == "// customized\n"
        assert [s.created for s in outcome.scaffolds] == [False]


class TestNothingCommittedOnFailure:

    def test_incomplete_extraction(self, config, ios_project, dead_drop):
        runner = FakeRunner(extraction_root=dead_drop, omit=["manifest-1_0_0.json"])
        pipeline = FreezePipeline(config, runner=runner)

        with pytest.raises(ExtractionIncomplete):
            pipeline.freeze("1.0.0")

        assert not pipeline.store.exists("1.0.0")
        assert not (ios_project / "FreezeRay" / "Tests").exists()

    def test_fingerprint_does_not_match_export(self, config, ios_project, dead_drop, monkeypatch):
        runner = FakeRunner(extraction_root=dead_drop)
        pipeline = FreezePipeline(config, runner=runner)
        original = runner._test

        def corrupt_fingerprint(cmd):
            result = original(cmd)
            (dead_drop / "1.0.0" / "fingerprint-1_0_0.sha256").write_text("0" * 64 + "\n")
            return result

        monkeypatch.setattr(runner, "_test", corrupt_fingerprint)

        with pytest.raises(InvalidFixture):
            pipeline.freeze("1.0.0")
        assert not pipeline.store.exists("1.0.0")


class TestScaffoldCommand:

    def test_requires_frozen_version(self, pipeline):
        with pytest.raises(FixturesNotFound):
            pipeline.scaffold("1.0.0")

    def test_recreates_deleted_scaffold(self, pipeline, ios_project, fake_runner):
        pipeline.freeze("1.0.0")
        drift_test = ios_project / "FreezeRay" / "Tests" / "AppSchemaV1_DriftTests.swift"
        drift_test.unlink()
        builds_before = len(xcodebuild_test_runs(fake_runner))

        [result] = pipeline.scaffold("1.0.0")

        assert result.created
        assert drift_test.exists()
        assert "@testable import MyApp" in drift_test.read_text()
        assert len(xcodebuild_test_runs(fake_runner)) == builds_before


class TestCheck:

    def test_offline_intact(self, pipeline):
        pipeline.freeze("1.0.0")
        assert not pipeline.check("1.0.0", offline=True).has_drift

    def test_offline_tampered(self, pipeline):
        fixtures = pipeline.freeze("1.0.0").fixtures
        fixtures.schema_export_path.write_text("CREATE TABLE OTHER (X);\n")
        assert pipeline.check("1.0.0", offline=True).has_drift

    def test_online_unchanged(self, pipeline):
        pipeline.freeze("1.0.0")
        assert not pipeline.check("1.0.0").has_drift

    def test_online_detects_drift(self, pipeline, fake_runner):
        pipeline.freeze("1.0.0")
        fake_runner.schema_sql["1.0.0"] = "CREATE TABLE ZUSER (Z_PK INTEGER PRIMARY KEY);\n"

        result = pipeline.check("1.0.0")

        assert result.has_drift
        assert result.expected == sha256_hex("CREATE TABLE ZUSER (Z_PK INTEGER PRIMARY KEY, ZNAME VARCHAR);\n")

    def test_unfrozen(self, pipeline):
        with pytest.raises(FixturesNotFound):
            pipeline.check("1.0.0", offline=True)

