"""
Scaffolding of user-owned verification tests.

Two kinds of Swift Testing files are generated:

- ``<SchemaType>_DriftTests.swift``: calls the schema's
  ``__freezeray_check_<vs>()`` hook
- ``MigrateV<from>toV<to>_Tests.swift``: calls the migration plan's
  ``__freezeray_test_migrate_<from>_to_<to>()`` hook

Once written, a scaffold belongs to the developer. An existing file is
never rewritten, whatever its content; the call reports it as skipped and
makes no filesystem writes.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from freezeray.errors import ScaffoldWriteError
from freezeray.models import ScaffoldKind, ScaffoldResult
from freezeray.versioning import version_safe

logger = logging.getLogger(__name__)

# Marker downstream checks use to tell scaffolds from finished tests
CUSTOMIZE_MARKER = "// TODO: Customize here"

DRIFT_TEMPLATE = """\
// Drift test for {type_name} (schema v{version}).
// Generated once by freezeray; this file is yours to edit.
import Testing
import Foundation
@testable import {app_module}

@Suite("{type_name} drift")
struct {type_name}_DriftTests {{

    @Test("v{version} matches its frozen fixture")
    func schemaMatchesFrozenFixture() throws {{
        // Fails if the frozen schema's structure changed after it was frozen
        try {type_name}.__freezeray_check_{version_safe}()
    }}

    @Test("v{version} data expectations")
    func dataExpectations() throws {{
        {marker}: assert on the data shape this version must keep.
        // Frozen fixtures live in FreezeRay/Fixtures/{version}/
    }}
}}
"""

MIGRATION_TEMPLATE = """\
// Migration test v{from_version} -> v{to_version} for {plan_type}.
// Generated once by freezeray; this file is yours to edit.
import Testing
import Foundation
@testable import {app_module}

@Suite("Migrate v{from_version} to v{to_version}")
struct MigrateV{from_safe}toV{to_safe}_Tests {{

    @Test("Migration runs from the frozen v{from_version} fixture")
    func migrationSucceeds() throws {{
        // Opens the frozen v{from_version} snapshot and migrates it to v{to_version}
        try {plan_type}.__freezeray_test_migrate_{from_safe}_to_{to_safe}()
    }}

    @Test("Data survives migration")
    func dataSurvivesMigration() throws {{
        {marker}: check that records present in v{from_version} are intact
        // after migrating to v{to_version}.
    }}
}}
"""


def drift_file_name(type_name: str) -> str:
    return f"{type_name}_DriftTests.swift"


def migration_file_name(from_version: str, to_version: str) -> str:
    return f"MigrateV{version_safe(from_version)}toV{version_safe(to_version)}_Tests.swift"


class ScaffoldingEngine:
    """Creates missing scaffolds in the tests directory, exactly once."""

    def __init__(self, tests_dir: Union[str, Path], app_module: str):
        self.tests_dir = Path(tests_dir)
        self.app_module = app_module

    def scaffold_drift(self, version: str, type_name: str) -> ScaffoldResult:
        """Create the drift test for a frozen schema type if it is missing."""
        content = DRIFT_TEMPLATE.format(
            type_name=type_name,
            version=version,
            version_safe=version_safe(version),
            app_module=self.app_module,
            marker=CUSTOMIZE_MARKER,
        )
        return self._write(ScaffoldKind.DRIFT, type_name, drift_file_name(type_name), content)

    def scaffold_migration_pair(self, from_version: str, to_version: str, plan_type: str) -> ScaffoldResult:
        """Create the migration test for one upgrade step if it is missing."""
        content = MIGRATION_TEMPLATE.format(
            from_version=from_version,
            to_version=to_version,
            from_safe=version_safe(from_version),
            to_safe=version_safe(to_version),
            plan_type=plan_type,
            app_module=self.app_module,
            marker=CUSTOMIZE_MARKER,
        )
        subject = f"{from_version}->{to_version}"
        return self._write(
            ScaffoldKind.MIGRATION_PAIR,
            subject,
            migration_file_name(from_version, to_version),
            content,
        )

    @staticmethod
    def find_preceding_version(current: str, store) -> Optional[str]:
        """Greatest frozen version in ``store`` strictly below ``current``."""
        return store.preceding_version(current)

    def _write(self, kind: ScaffoldKind, subject: str, file_name: str, content: str) -> ScaffoldResult:
        path = self.tests_dir / file_name
        if path.exists():
            logger.info("Scaffold %s already exists, leaving it untouched", path)
            return ScaffoldResult(kind=kind, subject=subject, file_name=file_name, path=path, created=False)

        try:
            self.tests_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ScaffoldWriteError(path, e)

        try:
            # "x" also guards against a file appearing after the check
            with open(path, "x", encoding="utf-8") as f:
                f.write(content)
        except FileExistsError:
            return ScaffoldResult(kind=kind, subject=subject, file_name=file_name, path=path, created=False)
        except OSError as e:
            raise ScaffoldWriteError(path, e)

        logger.info("Created scaffold %s", path)
        return ScaffoldResult(kind=kind, subject=subject, file_name=file_name, path=path, created=True)
