"""
File naming for fixture artifacts.

Every file name embeds the version with dots replaced by underscores. The
fixture directories of all versions are added to the same Xcode test bundle,
whose resources must have globally unique basenames, so two versions'
artifacts must never share a name.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from freezeray.versioning import version_safe

# Fixed name of the origin record inside the dead-drop
EXPORT_METADATA_NAME = "export_metadata.txt"


@dataclass(frozen=True)
class FixtureLayout:
    """Artifact file names for one version."""

    version: str

    @property
    def safe(self) -> str:
        return version_safe(self.version)

    @property
    def snapshot(self) -> str:
        return f"snapshot-{self.safe}.sqlite"

    @property
    def manifest(self) -> str:
        return f"manifest-{self.safe}.json"

    @property
    def schema_export(self) -> str:
        return f"schema-{self.safe}.sql"

    @property
    def fingerprint(self) -> str:
        return f"fingerprint-{self.safe}.sha256"

    @property
    def committed_metadata(self) -> str:
        return f"export_metadata-{self.safe}.txt"

    def dead_drop_files(self) -> Dict[str, str]:
        """Files the freeze hook must leave in the dead-drop, by role."""
        return {
            "snapshot": self.snapshot,
            "manifest": self.manifest,
            "schema_export": self.schema_export,
            "fingerprint": self.fingerprint,
            "metadata": EXPORT_METADATA_NAME,
        }

    def committed_files(self) -> Dict[str, str]:
        """Files a committed fixture directory holds, by role."""
        return {
            "snapshot": self.snapshot,
            "manifest": self.manifest,
            "schema_export": self.schema_export,
            "fingerprint": self.fingerprint,
            "metadata": self.committed_metadata,
        }
