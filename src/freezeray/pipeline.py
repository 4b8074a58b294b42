"""
The freeze pipeline.

Ties the components together in the order the safety guarantees need:
discovery, conventions, orchestration, extraction, commit and only then
scaffolding. A failure at any step stops the run before the next one, so a
partial artifact set is never committed and scaffolds never reference a
version that was not frozen.

Usage:
    from freezeray.config import get_config
    from freezeray.pipeline import FreezePipeline

    pipeline = FreezePipeline(get_config())
    outcome = pipeline.freeze("1.0.0")
    print(outcome.fixtures.directory)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Tuple, Union

from freezeray.config import FreezeRayConfig
from freezeray.conventions import discover_build_descriptor, resolve_conventions
from freezeray.discovery import DiscoveryResult, discover
from freezeray.drift import DriftEngine, read_fingerprint_file
from freezeray.errors import FixturesAlreadyExist, InvalidFixture, InvalidVersionString
from freezeray.extraction import ExtractionChannel
from freezeray.logger import FreezeEventLogger
from freezeray.models import (
    DriftResult,
    ExtractedArtifacts,
    FreezeOutcome,
    MigrationPlanDeclaration,
    ProjectConventions,
    ScaffoldResult,
    VersionDeclaration,
)
from freezeray.orchestrator import FreezeOrchestrator
from freezeray.scaffold import ScaffoldingEngine
from freezeray.store import FixtureStore
from freezeray.toolchain import ToolchainRunner
from freezeray.versioning import is_version

logger = logging.getLogger(__name__)


class FreezePipeline:
    """Freeze, check and scaffold schema versions of one project."""

    def __init__(
        self,
        config: FreezeRayConfig,
        runner: Optional[ToolchainRunner] = None,
        events: Optional[FreezeEventLogger] = None,
        fixtures_root: Optional[Union[str, Path]] = None,
    ):
        self.config = config
        self.runner = runner or ToolchainRunner()
        self.events = events or FreezeEventLogger(project=config.root_path.resolve().name)
        self.store = FixtureStore(fixtures_root or config.get_fixtures_path())
        self.channel = ExtractionChannel(config.get_extraction_path())
        self.drift = DriftEngine()
        self.orchestrator = FreezeOrchestrator(self.runner, self.channel, events=self.events)

    # ------------------------------------------------------------------
    # Building blocks
    # ------------------------------------------------------------------

    def discover(self) -> DiscoveryResult:
        return discover(self.config.get_source_paths())

    def resolve_conventions(self) -> ProjectConventions:
        cfg = self.config
        return resolve_conventions(
            cfg.root_path,
            self.runner,
            project=cfg.project,
            scheme=cfg.scheme,
            test_target=cfg.test_target,
            app_target=cfg.app_target,
            test_target_dir=cfg.test_target_dir,
        )

    def app_module(self) -> str:
        """Module for ``@testable import`` without asking xcodebuild.

        Raises:
            NoBuildDescriptorFound: If nothing is configured and no
                descriptor exists to take the name from
        """
        if self.config.app_target:
            return self.config.app_target
        if self.config.scheme:
            return self.config.scheme
        descriptor, _ = discover_build_descriptor(self.config.root_path)
        return descriptor.stem

    def validate_extracted(self, artifacts: ExtractedArtifacts) -> None:
        """
        Check the extracted fingerprint against the extracted export.

        Raises:
            InvalidFixture: If they disagree or the fingerprint is empty
        """
        stored = read_fingerprint_file(artifacts.fingerprint)
        actual = self.drift.fingerprint_file(artifacts.schema_export)
        if not stored:
            raise InvalidFixture(artifacts.version, f"empty fingerprint file {artifacts.fingerprint.name}")
        if stored != actual:
            raise InvalidFixture(
                artifacts.version,
                f"fingerprint {stored} does not match schema export ({actual})",
            )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def freeze(self, version: str, force: bool = False, simulator: Optional[str] = None) -> FreezeOutcome:
        """
        Freeze ``version``: materialize, commit and scaffold.

        Raises:
            InvalidVersionString: If ``version`` is not X.Y.Z
            NoVersionDeclarationFound: If no schema declares ``version``
            FixturesAlreadyExist: If it is frozen and ``force`` is False
            FreezeRayError: Any classified orchestration failure
        """
        if not is_version(version):
            raise InvalidVersionString(version)

        discovery = self.discover()
        declaration = discovery.find_version(version)
        logger.info("Found %s for v%s at %s", declaration.type_name, version, declaration.location)

        # Checked again by commit; failing here skips a pointless build
        if self.store.exists(version) and not force:
            raise FixturesAlreadyExist(version, self.store.version_dir(version))

        conventions = self.resolve_conventions()
        artifacts = self.orchestrator.materialize(
            declaration, conventions, simulator or self.config.simulator
        )
        self.validate_extracted(artifacts)

        fixtures = self.store.commit(version, artifacts, force=force)
        self.events.log_committed(version, str(fixtures.directory), forced=force)

        scaffolds, preceding, plan = self._scaffold(
            version, declaration, discovery, conventions.app_target
        )
        return FreezeOutcome(
            version=version,
            declaration=declaration,
            fixtures=fixtures,
            forced=force,
            preceding_version=preceding,
            migration_plan=plan,
            scaffolds=scaffolds,
        )

    def scaffold(self, version: str) -> List[ScaffoldResult]:
        """
        Create any missing scaffolds for an already frozen version.

        Raises:
            FixturesNotFound: If ``version`` is not frozen
            NoVersionDeclarationFound: If no schema declares ``version``
        """
        self.store.require(version)
        discovery = self.discover()
        declaration = discovery.find_version(version)
        scaffolds, _, _ = self._scaffold(version, declaration, discovery, self.app_module())
        return scaffolds

    def check(self, version: str, offline: bool = False, simulator: Optional[str] = None) -> DriftResult:
        """
        Compare the current schema of ``version`` with its frozen fingerprint.

        With ``offline`` the stored export is re-hashed instead, which only
        proves the fixture itself is intact.

        Raises:
            FixturesNotFound: If ``version`` is not frozen
        """
        fixture = self.store.require(version)
        if offline:
            result = self.drift.verify(fixture)
        else:
            declaration = self.discover().find_version(version)
            conventions = self.resolve_conventions()
            artifacts = self.orchestrator.materialize(
                declaration, conventions, simulator or self.config.simulator
            )
            result = self.drift.check(self.store, version, artifacts.schema_export)
        self.events.log_drift_checked(version, result.status.value, result.expected, result.actual)
        return result

    # ------------------------------------------------------------------

    def _scaffold(
        self,
        version: str,
        declaration: VersionDeclaration,
        discovery: DiscoveryResult,
        app_module: str,
    ) -> Tuple[List[ScaffoldResult], Optional[str], Optional[MigrationPlanDeclaration]]:
        engine = ScaffoldingEngine(self.config.get_tests_path(), app_module)
        results = [engine.scaffold_drift(version, declaration.type_name)]

        preceding = engine.find_preceding_version(version, self.store)
        plan = None
        if preceding is None:
            logger.info("v%s is the first frozen version; no migration test needed", version)
        else:
            plan = discovery.select_migration_plan()
            if plan is None:
                logger.warning(
                    "No @AutoTests migration plan found; skipping migration test v%s -> v%s",
                    preceding, version,
                )
            else:
                results.append(engine.scaffold_migration_pair(preceding, version, plan.type_name))

        for result in results:
            self.events.log_scaffold(version, result.kind.value, str(result.path), result.created)
        return results, preceding, plan
