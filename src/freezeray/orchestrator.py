"""
Execution orchestrator.

Runs one schema's freeze hook inside an iOS Simulator and reads the result
back from the extraction channel:

    resolve simulator -> generate driver -> boot -> xcodebuild test
    -> extract -> remove driver

Build and execution happen in a single ``xcodebuild test`` call so the
driver written moments earlier is always compiled; a separate
``build-for-testing`` followed by ``test-without-building`` could run a
stale test bundle. Failures are classified from the combined output.
Nothing is retried.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import List, Optional, Type

from freezeray.driver import FreezeDriver, generated_driver
from freezeray.errors import BuildFailed, ExecutionFailed, FreezeRayError, ToolchainError
from freezeray.extraction import ExtractionChannel
from freezeray.logger import FreezeEventLogger
from freezeray.models import ExtractedArtifacts, ProjectConventions, SimulatorDevice, VersionDeclaration
from freezeray.simulator import SimulatorManager
from freezeray.timeouts import XCODEBUILD_TEST_TIMEOUT_S
from freezeray.toolchain import CommandResult, ToolchainRunner

logger = logging.getLogger(__name__)

BUILD_FAILURE_MARKERS = ("** BUILD FAILED **", "** TEST BUILD FAILED **")
EXECUTION_FAILURE_MARKERS = ("** TEST FAILED **", "** TEST EXECUTE FAILED **")

# xcodebuild forwards TEST_RUNNER_<NAME> to the test process as <NAME>
EXTRACTION_ROOT_ENV = "TEST_RUNNER_FREEZERAY_EXTRACTION_ROOT"


class FreezeStage(str, Enum):
    IDLE = "idle"
    DRIVER_GENERATED = "driver_generated"
    BUILT = "built"
    SANDBOX_BOOTED = "sandbox_booted"
    EXECUTED = "executed"
    EXTRACTED = "extracted"
    CLEANED = "cleaned"


def classify_test_result(result: CommandResult) -> Optional[Type[ToolchainError]]:
    """Error class for a finished ``xcodebuild test`` run, or None on success."""
    if any(marker in result.output for marker in BUILD_FAILURE_MARKERS):
        return BuildFailed
    if result.returncode != 0 or any(marker in result.output for marker in EXECUTION_FAILURE_MARKERS):
        return ExecutionFailed
    return None


def build_test_command(
    conventions: ProjectConventions,
    device: SimulatorDevice,
    driver: FreezeDriver,
) -> List[str]:
    return [
        "xcodebuild",
        "test",
        conventions.descriptor_flag,
        str(conventions.descriptor_path),
        "-scheme",
        conventions.scheme,
        "-destination",
        device.destination,
        f"-only-testing:{driver.test_identifier}",
    ]


class FreezeOrchestrator:
    """Drives one freeze run through the simulator."""

    def __init__(
        self,
        runner: ToolchainRunner,
        channel: ExtractionChannel,
        events: Optional[FreezeEventLogger] = None,
        simulators: Optional[SimulatorManager] = None,
    ):
        self.runner = runner
        self.channel = channel
        self.events = events or FreezeEventLogger()
        self.simulators = simulators or SimulatorManager(runner)
        self.stage = FreezeStage.IDLE
        self.history: List[FreezeStage] = [FreezeStage.IDLE]

    def _advance(self, version: str, stage: FreezeStage, **fields) -> None:
        self.stage = stage
        self.history.append(stage)
        self.events.log_stage(version, stage.value, **fields)

    def materialize(
        self,
        declaration: VersionDeclaration,
        conventions: ProjectConventions,
        simulator: str,
    ) -> ExtractedArtifacts:
        """
        Run the freeze hook of ``declaration`` and collect its artifacts.

        Args:
            declaration: Schema version to materialize
            conventions: Resolved build parameters
            simulator: Simulator name or UDID

        Returns:
            The complete artifact set from the extraction channel

        Raises:
            SandboxNotFound: If the simulator does not exist
            SandboxBootFailed: If it cannot be booted
            BuildFailed: If compiling the app or tests failed
            ExecutionFailed: If the freeze hook threw or crashed
            ExtractionIncomplete: If artifacts are missing afterwards
        """
        version = declaration.version
        self.stage = FreezeStage.IDLE
        self.history = [FreezeStage.IDLE]
        try:
            device = self.simulators.resolve(simulator)
            self.channel.prepare(version)
            # The driver file is removed when this block exits, on any path
            with generated_driver(declaration, conventions) as driver:
                self._advance(version, FreezeStage.DRIVER_GENERATED, driver=driver.class_name)

                self.simulators.boot(device)
                self._advance(version, FreezeStage.SANDBOX_BOOTED, udid=device.udid)

                self._build_and_test(conventions, device, driver)
                self._advance(version, FreezeStage.BUILT)
                self._advance(version, FreezeStage.EXECUTED)

                artifacts = self.channel.collect(version)
                self._advance(version, FreezeStage.EXTRACTED, location=str(artifacts.location))
            self._advance(version, FreezeStage.CLEANED)
        except FreezeRayError as e:
            self.events.log_failed(version, e.kind, stage=self.stage.value)
            raise
        return artifacts

    def _build_and_test(
        self,
        conventions: ProjectConventions,
        device: SimulatorDevice,
        driver: FreezeDriver,
    ) -> None:
        cmd = build_test_command(conventions, device, driver)
        logger.info("Building and running %s on %s", driver.test_identifier, device.udid)
        result = self.runner.run(
            cmd,
            cwd=conventions.descriptor_path.parent,
            timeout=XCODEBUILD_TEST_TIMEOUT_S,
            context=f"Running freeze driver {driver.class_name}",
            env={EXTRACTION_ROOT_ENV: str(self.channel.root)},
        )
        error = classify_test_result(result)
        if error is BuildFailed:
            raise BuildFailed(
                result.cmd, result.returncode, result.output,
                context="Build failed. Fix the compiler errors below and re-run.",
            )
        if error is ExecutionFailed:
            raise ExecutionFailed(
                result.cmd, result.returncode, result.output,
                context="The freeze hook failed inside the simulator.",
            )
