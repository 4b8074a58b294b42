"""
Data model for the freeze pipeline.

Pydantic v2 models shared by discovery, the fixture store, the drift engine
and the scaffolding engine. Field names are snake_case; the on-disk manifest
keeps its camelCase keys through aliases.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from freezeray.versioning import version_safe


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


class VersionDeclaration(BaseModel):
    """A schema type annotated with ``@Freeze(version: "X.Y.Z")``."""

    model_config = ConfigDict(frozen=True)

    version: str
    type_name: str
    file_path: str
    offset: int = Field(..., description="Character offset of the declaration's first attribute")
    line: int = 0

    @property
    def version_safe(self) -> str:
        return version_safe(self.version)

    @property
    def location(self) -> str:
        return f"{self.file_path}:{self.line}"


class MigrationPlanDeclaration(BaseModel):
    """A migration plan type annotated with ``@AutoTests``."""

    model_config = ConfigDict(frozen=True)

    type_name: str
    file_path: str
    offset: int = 0
    line: int = 0
    schema_types: List[str] = Field(
        default_factory=list,
        description="Schema type identifiers in upgrade order, from the plan's `schemas` member",
    )

    @property
    def location(self) -> str:
        return f"{self.file_path}:{self.line}"


# ---------------------------------------------------------------------------
# Project conventions
# ---------------------------------------------------------------------------


class DescriptorKind(str, Enum):
    WORKSPACE = "workspace"
    PROJECT = "project"


class ProjectConventions(BaseModel):
    """Build and execution parameters resolved from the surrounding project."""

    descriptor_path: Path
    descriptor_kind: DescriptorKind
    scheme: str
    test_target: str
    app_target: str
    test_target_dir: Path

    @property
    def descriptor_flag(self) -> str:
        """``-workspace`` or ``-project`` for xcodebuild."""
        return f"-{self.descriptor_kind.value}"


class SimulatorDevice(BaseModel):
    """A simulator addressed by its stable UDID."""

    model_config = ConfigDict(frozen=True)

    name: str
    udid: str
    state: str = "Shutdown"
    runtime: str = ""

    @property
    def is_booted(self) -> bool:
        return self.state == "Booted"

    @property
    def destination(self) -> str:
        return f"platform=iOS Simulator,id={self.udid}"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


class ManifestEntity(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str


class SchemaManifest(BaseModel):
    """Structural metadata written next to the snapshot. No data values."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    timestamp: datetime
    entity_count: int = Field(..., alias="entityCount", ge=0)
    entities: List[ManifestEntity] = Field(default_factory=list)

    @model_validator(mode="after")
    def _count_matches_entities(self) -> "SchemaManifest":
        if self.entity_count != len(self.entities):
            raise ValueError(
                f"entityCount is {self.entity_count} but {len(self.entities)} entities are listed"
            )
        return self

    @property
    def entity_names(self) -> List[str]:
        return [e.name for e in self.entities]


class ExportMetadata(BaseModel):
    """Origin record the freeze hook writes next to its dead-drop copy."""

    origin: str = ""
    exported_at: Optional[datetime] = None
    version: str = ""

    @classmethod
    def parse_text(cls, text: str) -> "ExportMetadata":
        """Parse ``key: value`` lines, ignoring blanks and unknown keys."""
        values = {}
        for raw in text.splitlines():
            if ":" not in raw:
                continue
            key, value = raw.split(":", 1)
            key = key.strip().lower().replace(" ", "_").replace("-", "_")
            if key in ("origin", "exported_at", "version") and value.strip():
                values[key] = value.strip()
        return cls(**values)

    def to_text(self) -> str:
        exported = self.exported_at.isoformat() if self.exported_at else ""
        return f"origin: {self.origin}\nexported_at: {exported}\nversion: {self.version}\n"


class ExtractedArtifacts(BaseModel):
    """A complete artifact set read back from the dead-drop."""

    version: str
    location: Path
    snapshot: Path
    manifest: Path
    schema_export: Path
    fingerprint: Path
    metadata: Path
    export_metadata: ExportMetadata


class FixtureArtifactSet(BaseModel):
    """The committed, immutable fixture for one frozen version."""

    version: str
    directory: Path
    snapshot_path: Path
    manifest_path: Path
    schema_export_path: Path
    fingerprint_path: Path
    metadata_path: Optional[Path] = None
    manifest: SchemaManifest
    fingerprint: str
    export_metadata: Optional[ExportMetadata] = None

    @property
    def files(self) -> List[Path]:
        paths = [self.snapshot_path, self.manifest_path, self.schema_export_path, self.fingerprint_path]
        if self.metadata_path is not None:
            paths.append(self.metadata_path)
        return paths


# ---------------------------------------------------------------------------
# Drift
# ---------------------------------------------------------------------------


class DriftStatus(str, Enum):
    MATCH = "match"
    DRIFT = "drift"


class DriftResult(BaseModel):
    """Outcome of comparing a stored fingerprint with the current one."""

    status: DriftStatus
    version: str = ""
    expected: str
    actual: str

    @property
    def has_drift(self) -> bool:
        return self.status == DriftStatus.DRIFT

    def describe(self) -> str:
        if not self.has_drift:
            return f"Schema v{self.version} matches its frozen fingerprint"
        return (
            f"Schema drift detected in frozen version {self.version}\n"
            f"\n"
            f"The frozen schema has changed since it was frozen.\n"
            f"Frozen schemas are immutable - create a new schema version instead.\n"
            f"\n"
            f"Expected checksum: {self.expected}\n"
            f"Actual checksum:   {self.actual}"
        )


# ---------------------------------------------------------------------------
# Scaffolding
# ---------------------------------------------------------------------------


class ScaffoldKind(str, Enum):
    DRIFT = "drift"
    MIGRATION_PAIR = "migration_pair"


class ScaffoldResult(BaseModel):
    kind: ScaffoldKind
    subject: str
    file_name: str
    path: Path
    created: bool


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class FreezeOutcome(BaseModel):
    """Everything a successful freeze produced."""

    version: str
    declaration: VersionDeclaration
    fixtures: FixtureArtifactSet
    forced: bool = False
    preceding_version: Optional[str] = None
    migration_plan: Optional[MigrationPlanDeclaration] = None
    scaffolds: List[ScaffoldResult] = Field(default_factory=list)
