"""
Pytest configuration and fixtures for FreezeRay tests.

The Apple toolchain is never invoked: ``FakeRunner`` answers xcodebuild and
simctl calls from canned output and, on ``xcodebuild test``, plays the part
of the in-simulator freeze hook by writing artifacts to the dead-drop.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
from pathlib import Path
from typing import Dict, Generator, Iterable, List, Optional

import pytest

from freezeray.config import FreezeRayConfig, reset_config
from freezeray.layout import FixtureLayout
from freezeray.toolchain import CommandResult


# ============================================================================
# Swift sources
# ============================================================================

SCHEMAS_SWIFT = '''\
import SwiftData
import FreezeRay

@Freeze(version: "1.0.0")
enum AppSchemaV1: VersionedSchema {
    static let versionIdentifier = Schema.Version(1, 0, 0)
    static var models: [any PersistentModel.Type] { [User.self] }

    @Model
    final class User {
        var name: String
        init(name: String) { self.name = name }
    }
}

@FreezeRay.Freeze(version: "2.0.0")
enum AppSchemaV2: VersionedSchema {
    static let versionIdentifier = Schema.Version(2, 0, 0)
    static var models: [any PersistentModel.Type] { [User.self] }

    @Model
    final class User {
        var name: String
        var email: String?
        init(name: String) { self.name = name }
    }
}
'''

MIGRATIONS_SWIFT = '''\
import SwiftData
import FreezeRay

@AutoTests
enum AppMigrations: SchemaMigrationPlan {
    static var schemas: [any VersionedSchema.Type] {
        [AppSchemaV1.self, AppSchemaV2.self]
    }

    static var stages: [MigrationStage] {
        [.lightweight(fromVersion: AppSchemaV1.self, toVersion: AppSchemaV2.self)]
    }
}
'''

DEFAULT_SCHEMA_SQL = {
    "1.0.0": "CREATE TABLE ZUSER (Z_PK INTEGER PRIMARY KEY, ZNAME VARCHAR);\n",
    "2.0.0": "CREATE TABLE ZUSER (Z_PK INTEGER PRIMARY KEY, ZNAME VARCHAR, ZEMAIL VARCHAR);\n",
}


def sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def write_dead_drop(
    root: Path,
    version: str,
    schema_sql: Optional[str] = None,
    omit: Iterable[str] = (),
    metadata_version: Optional[str] = None,
    fingerprint: Optional[str] = None,
    entities: Iterable[str] = ("User",),
) -> Path:
    """Write what the freeze hook leaves in the dead-drop for ``version``."""
    schema_sql = schema_sql if schema_sql is not None else DEFAULT_SCHEMA_SQL.get(version, "CREATE TABLE T (X);\n")
    entities = list(entities)
    location = root / version
    location.mkdir(parents=True, exist_ok=True)
    layout = FixtureLayout(version)
    contents = {
        layout.snapshot: b"SQLite format 3\x00" + version.encode("utf-8"),
        layout.manifest: json.dumps({
            "timestamp": "2026-01-01T00:00:00Z",
            "entityCount": len(entities),
            "entities": [{"name": name} for name in entities],
        }).encode("utf-8"),
        layout.schema_export: schema_sql.encode("utf-8"),
        layout.fingerprint: ((fingerprint or sha256_hex(schema_sql)) + "\n").encode("utf-8"),
        "export_metadata.txt": (
            f"origin: /Users/dev/Library/Developer/CoreSimulator/Documents/FreezeRay/Fixtures/{version}\n"
            f"exported_at: 2026-01-01T00:00:00Z\n"
            f"version: {metadata_version or version}\n"
        ).encode("utf-8"),
    }
    omit = set(omit)
    for name, data in contents.items():
        if name not in omit:
            (location / name).write_bytes(data)
    return location


# ============================================================================
# Fake toolchain
# ============================================================================

SIMULATOR_LIST = {
    "devices": {
        "com.apple.CoreSimulator.SimRuntime.iOS-17-5": [
            {"name": "iPhone 16", "udid": "OLD-UDID", "state": "Shutdown", "isAvailable": True},
        ],
        "com.apple.CoreSimulator.SimRuntime.iOS-18-2": [
            {"name": "iPhone 16", "udid": "NEW-UDID", "state": "Shutdown", "isAvailable": True},
            {"name": "iPhone 16 Pro", "udid": "PRO-UDID", "state": "Booted", "isAvailable": True},
        ],
    }
}


class FakeRunner:
    """Scripted stand-in for ``ToolchainRunner``."""

    def __init__(
        self,
        extraction_root: Optional[Path] = None,
        schemes: Iterable[str] = ("MyApp",),
        devices: Optional[dict] = None,
        test_output: str = "Test Suite 'All tests' passed.\n** TEST SUCCEEDED **\n",
        test_returncode: int = 0,
        boot_output: str = "",
        boot_returncode: int = 0,
        write_artifacts: bool = True,
        omit: Iterable[str] = (),
        schema_sql: Optional[Dict[str, str]] = None,
        test_target_dir: Optional[Path] = None,
    ):
        self.extraction_root = extraction_root
        self.schemes = list(schemes)
        self.devices = devices if devices is not None else SIMULATOR_LIST
        self.test_output = test_output
        self.test_returncode = test_returncode
        self.boot_output = boot_output
        self.boot_returncode = boot_returncode
        self.write_artifacts = write_artifacts
        self.omit = list(omit)
        self.schema_sql = dict(DEFAULT_SCHEMA_SQL)
        self.schema_sql.update(schema_sql or {})
        self.test_target_dir = test_target_dir
        self.calls: List[List[str]] = []
        self.envs: List[Optional[Dict[str, str]]] = []
        self.drivers_during_test: List[List[str]] = []

    def commands(self, prefix: List[str]) -> List[List[str]]:
        return [c for c in self.calls if c[: len(prefix)] == prefix]

    def run(self, args, cwd=None, timeout=None, merge_stderr=True, context="", env=None) -> CommandResult:
        cmd = list(args)
        self.calls.append(cmd)
        self.envs.append(env)

        if cmd[:3] == ["xcodebuild", "-list", "-json"]:
            data = {"project": {"name": "MyApp", "schemes": self.schemes, "targets": ["MyApp", "MyAppTests"]}}
            return CommandResult(cmd, 0, "Command line invocation:\n" + json.dumps(data))
        if cmd[:4] == ["xcrun", "simctl", "list", "devices"]:
            return CommandResult(cmd, 0, json.dumps(self.devices))
        if cmd[:3] == ["xcrun", "simctl", "boot"]:
            return CommandResult(cmd, self.boot_returncode, self.boot_output)
        if cmd[:3] == ["xcrun", "simctl", "bootstatus"]:
            return CommandResult(cmd, 0, "Device already booted, nothing to do.\n")
        if cmd[:2] == ["xcodebuild", "test"]:
            return self._test(cmd)
        raise AssertionError(f"Unexpected command: {cmd}")

    def _test(self, cmd: List[str]) -> CommandResult:
        if self.test_target_dir is not None:
            self.drivers_during_test.append(
                sorted(p.name for p in self.test_target_dir.glob("FreezeRayDriver_*.swift"))
            )
        only = next(a for a in cmd if a.startswith("-only-testing:"))
        class_name = only.split("/")[1]
        # FreezeRayDriver_<major>_<minor>_<patch>_<hex>
        version = ".".join(class_name.split("_")[1:-1])
        if self.write_artifacts and self.test_returncode == 0 and self.extraction_root is not None:
            write_dead_drop(
                self.extraction_root,
                version,
                schema_sql=self.schema_sql.get(version),
                omit=self.omit,
            )
        return CommandResult(cmd, self.test_returncode, self.test_output)


# ============================================================================
# Environment
# ============================================================================


@pytest.fixture(autouse=True)
def clean_env(monkeypatch) -> Generator[None, None, None]:
    """Isolate tests from FREEZERAY_* variables and the config singleton."""
    for key in list(os.environ):
        if key.startswith("FREEZERAY_"):
            monkeypatch.delenv(key, raising=False)
    reset_config()
    yield
    reset_config()
    # configure_logging may have bound a handler to a CliRunner stream
    root = logging.getLogger("freezeray")
    for handler in list(root.handlers):
        if getattr(handler, "_freezeray_handler", False):
            root.removeHandler(handler)
    root.setLevel(logging.NOTSET)


# ============================================================================
# Project fixtures
# ============================================================================


@pytest.fixture
def ios_project(tmp_path: Path) -> Path:
    """A minimal Xcode project layout with two frozen-able schemas."""
    root = tmp_path / "MyApp"
    (root / "MyApp.xcodeproj").mkdir(parents=True)
    (root / "MyAppTests").mkdir()
    sources = root / "MyApp"
    sources.mkdir()
    (sources / "Schemas.swift").write_text(SCHEMAS_SWIFT, encoding="utf-8")
    (sources / "Migrations.swift").write_text(MIGRATIONS_SWIFT, encoding="utf-8")
    return root


@pytest.fixture
def dead_drop(tmp_path: Path) -> Path:
    return tmp_path / "dead-drop"


@pytest.fixture
def config(ios_project: Path, dead_drop: Path) -> FreezeRayConfig:
    return FreezeRayConfig(project_root=str(ios_project), extraction_root=str(dead_drop))


@pytest.fixture
def fake_runner(ios_project: Path, dead_drop: Path) -> FakeRunner:
    return FakeRunner(extraction_root=dead_drop, test_target_dir=ios_project / "MyAppTests")
