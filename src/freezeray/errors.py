"""
Classified errors for the freeze pipeline.

Every failure the pipeline can surface is a ``FreezeRayError`` subclass with
a stable ``kind`` and a distinct process exit code, so callers (CI, the CLI)
can tell a build failure from a missing sandbox without parsing messages.
Errors raised by external processes keep the command and its verbatim
combined output.

Recoverable conditions (scaffold already exists, no preceding version) are
not errors; they are reported as normal results.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence

import click

from freezeray.versioning import next_patch_version, version_safe

# Exit codes by error family. 1 is reserved for drift detected by `check`,
# 2 is click's usage error, also used for an unreadable config file.
EXIT_USAGE = 2
EXIT_DISCOVERY = 3
EXIT_RESOLUTION = 4
EXIT_SANDBOX = 5
EXIT_BUILD = 6
EXIT_EXECUTION = 7
EXIT_EXTRACTION = 8
EXIT_STORE = 9
EXIT_SCAFFOLD = 10
EXIT_TOOLCHAIN = 11
EXIT_INVALID_FIXTURE = 12


class FreezeRayError(click.ClickException):
    """Base class for classified pipeline failures."""

    kind = "freezeray"
    exit_code = 1


class InvalidConfiguration(FreezeRayError):
    """The config file could not be parsed or holds an invalid value."""

    kind = "invalid_configuration"
    exit_code = EXIT_USAGE

    def __init__(self, path: Path, reason: str):
        self.path = path
        super().__init__(f"Invalid configuration in {path}: {reason}")


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


class SourcePathNotFound(FreezeRayError):
    kind = "source_path_not_found"
    exit_code = EXIT_DISCOVERY

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Source path not found: {path}")


class NoVersionDeclarationFound(FreezeRayError):
    """The requested version has no ``@Freeze`` declaration in any source root."""

    kind = "no_version_declaration"
    exit_code = EXIT_DISCOVERY

    def __init__(self, version: str):
        self.version = version
        super().__init__(
            f'No @Freeze(version: "{version}") annotation found in source files\n'
            f"\n"
            f'Please add @Freeze(version: "{version}") to your schema:\n'
            f"\n"
            f'@Freeze(version: "{version}")\n'
            f"enum SchemaV{version_safe(version)}: VersionedSchema {{\n"
            f"    // ...\n"
            f"}}"
        )


class InvalidVersionString(FreezeRayError):
    """A requested version is not a strict ``X.Y.Z`` string."""

    kind = "invalid_version"
    exit_code = EXIT_DISCOVERY

    def __init__(self, version: str):
        self.version = version
        super().__init__(
            f"Invalid version '{version}': frozen versions must look like X.Y.Z (e.g. 1.0.0)"
        )


class DuplicateVersionDeclaration(FreezeRayError):
    kind = "duplicate_version_declaration"
    exit_code = EXIT_DISCOVERY

    def __init__(self, version: str, locations: Sequence[str]):
        self.version = version
        self.locations = list(locations)
        listed = "\n".join(f"  - {loc}" for loc in self.locations)
        super().__init__(
            f'Schema version "{version}" is declared more than once:\n{listed}\n'
            f"Each frozen version must be declared by exactly one schema type."
        )


# ---------------------------------------------------------------------------
# Project conventions
# ---------------------------------------------------------------------------


class NoBuildDescriptorFound(FreezeRayError):
    kind = "no_build_descriptor"
    exit_code = EXIT_RESOLUTION

    def __init__(self, directory: str):
        self.directory = directory
        super().__init__(
            f"No .xcodeproj or .xcworkspace found in {directory}\n"
            f"Run freezeray from your project root or pass --project."
        )


class SchemeNotFound(FreezeRayError):
    kind = "scheme_not_found"
    exit_code = EXIT_RESOLUTION

    def __init__(self, project_path: str, scheme: Optional[str], available: Sequence[str]):
        self.project_path = project_path
        self.scheme = scheme
        self.available = list(available)
        if scheme:
            message = f"Scheme '{scheme}' not found in {project_path}"
        else:
            message = f"No schemes found in {project_path}"
        if self.available:
            message += "\nAvailable schemes: " + ", ".join(self.available)
        super().__init__(message)


class TargetDirectoryNotFound(FreezeRayError):
    kind = "test_target_directory_not_found"
    exit_code = EXIT_RESOLUTION

    def __init__(self, test_target: str, directory: str):
        self.test_target = test_target
        self.directory = directory
        super().__init__(
            f"Source directory for test target '{test_target}' not found: {directory}\n"
            f"Pass --test-target or set test_target_dir in .freezeray.yml."
        )


# ---------------------------------------------------------------------------
# Toolchain / orchestration
# ---------------------------------------------------------------------------


class ToolchainError(FreezeRayError):
    """An external command failed outside of a classified stage."""

    kind = "toolchain"
    exit_code = EXIT_TOOLCHAIN

    def __init__(self, cmd: Sequence[str], returncode: Optional[int], output: str, context: str = ""):
        self.cmd = list(cmd)
        self.returncode = returncode
        self.output = output
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = []
        if self.context:
            parts.append(self.context)
        parts.append(f"Command: {' '.join(self.cmd)}")
        if self.returncode is not None:
            parts.append(f"Exit code: {self.returncode}")
        if self.output:
            parts.append(f"Output:\n{self.output.rstrip()}")
        return "\n".join(parts)


class ToolNotFound(ToolchainError):
    kind = "tool_not_found"

    def __init__(self, cmd: Sequence[str]):
        super().__init__(
            cmd,
            None,
            "",
            context=f"{cmd[0]} not found in PATH. Install Xcode and its command line tools.",
        )


class ToolchainTimeout(ToolchainError):
    kind = "toolchain_timeout"

    def __init__(self, cmd: Sequence[str], timeout: float, output: str = "", context: str = ""):
        self.timeout = timeout
        super().__init__(
            cmd,
            None,
            output,
            context=f"Command timed out after {timeout:g} seconds" + (f" ({context})" if context else ""),
        )


class SandboxNotFound(FreezeRayError):
    kind = "sandbox_not_found"
    exit_code = EXIT_SANDBOX

    def __init__(self, name: str, available: Sequence[str] = ()):
        self.name = name
        self.available = list(available)
        message = (
            f"Simulator '{name}' not found. "
            f"Use 'xcrun simctl list devices available' to see available simulators."
        )
        if self.available:
            message += "\nAvailable: " + ", ".join(self.available)
        super().__init__(message)


class SandboxBootFailed(ToolchainError):
    kind = "sandbox_boot_failed"
    exit_code = EXIT_SANDBOX


class BuildFailed(ToolchainError):
    kind = "build_failed"
    exit_code = EXIT_BUILD


class ExecutionFailed(ToolchainError):
    kind = "execution_failed"
    exit_code = EXIT_EXECUTION


class ExtractionIncomplete(FreezeRayError):
    """The dead-drop does not hold the full artifact set after execution."""

    kind = "extraction_incomplete"
    exit_code = EXIT_EXTRACTION

    def __init__(self, version: str, location: Path, missing: List[str]):
        self.version = version
        self.location = Path(location)
        self.missing = sorted(missing)
        listed = "\n".join(f"  - {name}" for name in self.missing)
        super().__init__(
            f"Extraction incomplete for v{version}: missing from {self.location}:\n{listed}\n"
            f"The freeze hook must copy every artifact to the extraction directory "
            f"before the simulator run ends."
        )


class ExtractionMismatch(FreezeRayError):
    kind = "extraction_mismatch"
    exit_code = EXIT_EXTRACTION

    def __init__(self, version: str, found: str, location: Path):
        self.version = version
        self.found = found
        self.location = Path(location)
        super().__init__(
            f"Extracted artifacts at {self.location} are for v{found}, expected v{version}"
        )


# ---------------------------------------------------------------------------
# Fixture store
# ---------------------------------------------------------------------------


class FixturesAlreadyExist(FreezeRayError):
    kind = "fixtures_already_exist"
    exit_code = EXIT_STORE

    def __init__(self, version: str, path: Path):
        self.version = version
        self.path = Path(path)
        nxt = next_patch_version(version)
        super().__init__(
            f"Fixtures for v{version} already exist at {self.path}\n"
            f"\n"
            f"Frozen schemas are immutable. If you need to update the schema:\n"
            f"  1. Create a new schema version (e.g., v{nxt})\n"
            f"  2. Add a migration from v{version} -> v{nxt}\n"
            f"  3. Freeze the new version: freezeray freeze {nxt}\n"
            f"\n"
            f"To overwrite existing fixtures (DANGEROUS):\n"
            f"  freezeray freeze {version} --force"
        )


class InvalidFixture(FreezeRayError):
    kind = "invalid_fixture"
    exit_code = EXIT_INVALID_FIXTURE

    def __init__(self, version: str, reason: str):
        self.version = version
        self.reason = reason
        super().__init__(f"Invalid fixture for v{version}: {reason}")


class FixturesNotFound(FreezeRayError):
    kind = "fixtures_not_found"
    exit_code = EXIT_STORE

    def __init__(self, version: str, path: Path):
        self.version = version
        self.path = Path(path)
        super().__init__(
            f"No frozen fixtures for v{version} at {self.path}\n"
            f"Freeze it first: freezeray freeze {version}"
        )


# ---------------------------------------------------------------------------
# Scaffolding
# ---------------------------------------------------------------------------


class ScaffoldWriteError(FreezeRayError):
    """A new scaffold could not be written; the version is frozen but unverifiable."""

    kind = "scaffold_write_failed"
    exit_code = EXIT_SCAFFOLD

    def __init__(self, path: Path, cause: OSError):
        self.path = Path(path)
        self.cause = cause
        super().__init__(
            f"Could not write scaffold {self.path}: {cause}\n"
            f"Fixtures were committed; re-run `freezeray scaffold <version>` once fixed."
        )
