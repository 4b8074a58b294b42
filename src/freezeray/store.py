"""
Fixture store.

Layout::

    <root>/<version>/
        snapshot-<vs>.sqlite
        manifest-<vs>.json
        schema-<vs>.sql
        fingerprint-<vs>.sha256
        export_metadata-<vs>.txt

A committed version directory is immutable. ``commit`` refuses to touch an
existing version unless forced; a forced commit builds the new set in a
hidden staging directory, moves the old directory aside, renames the
staged one into place and only then deletes the old one. Old and new
files are never mixed, and a failed swap restores the old fixture.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import uuid
from pathlib import Path
from typing import List, Optional, Set, Union

from pydantic import ValidationError

from freezeray.drift import read_fingerprint_file
from freezeray.errors import FixturesAlreadyExist, FixturesNotFound, InvalidFixture
from freezeray.layout import FixtureLayout
from freezeray.models import (
    ExportMetadata,
    ExtractedArtifacts,
    FixtureArtifactSet,
    SchemaManifest,
)
from freezeray.versioning import is_version, preceding_version, sort_versions

logger = logging.getLogger(__name__)


def load_manifest(path: Path, version: str) -> SchemaManifest:
    """
    Parse a ``manifest-<vs>.json`` file.

    Raises:
        InvalidFixture: If the file is not a valid manifest
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return SchemaManifest.model_validate(data)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        raise InvalidFixture(version, f"unreadable manifest {path.name}: {e}")


class FixtureStore:
    """Versioned, tool-owned fixture directories."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def version_dir(self, version: str) -> Path:
        return self.root / version

    def exists(self, version: str) -> bool:
        return self.version_dir(version).exists()

    def list_versions(self) -> Set[str]:
        """Frozen versions; entries not named ``X.Y.Z`` are ignored."""
        if not self.root.is_dir():
            return set()
        return {p.name for p in self.root.iterdir() if p.is_dir() and is_version(p.name)}

    def sorted_versions(self) -> List[str]:
        return sort_versions(self.list_versions())

    def preceding_version(self, current: str) -> Optional[str]:
        """Greatest frozen version strictly below ``current``, if any."""
        return preceding_version(current, self.list_versions())

    def load(self, version: str) -> Optional[FixtureArtifactSet]:
        """
        Load a committed fixture, or None if ``version`` is not frozen.

        Raises:
            InvalidFixture: If the directory lacks a required file or its
                manifest cannot be parsed
        """
        directory = self.version_dir(version)
        if not directory.is_dir():
            return None

        layout = FixtureLayout(version)
        files = {role: directory / name for role, name in layout.committed_files().items()}
        required = ("snapshot", "manifest", "schema_export", "fingerprint")
        missing = sorted(files[role].name for role in required if not files[role].is_file())
        if missing:
            raise InvalidFixture(version, f"missing {', '.join(missing)} in {directory}")

        fingerprint = read_fingerprint_file(files["fingerprint"])
        if not fingerprint:
            raise InvalidFixture(version, f"empty fingerprint file {files['fingerprint'].name}")

        metadata_path: Optional[Path] = files["metadata"]
        export_metadata = None
        if metadata_path.is_file():
            try:
                export_metadata = ExportMetadata.parse_text(metadata_path.read_text(encoding="utf-8"))
            except ValidationError as e:
                raise InvalidFixture(version, f"unreadable {metadata_path.name}: {e}")
        else:
            metadata_path = None

        return FixtureArtifactSet(
            version=version,
            directory=directory,
            snapshot_path=files["snapshot"],
            manifest_path=files["manifest"],
            schema_export_path=files["schema_export"],
            fingerprint_path=files["fingerprint"],
            metadata_path=metadata_path,
            manifest=load_manifest(files["manifest"], version),
            fingerprint=fingerprint,
            export_metadata=export_metadata,
        )

    def require(self, version: str) -> FixtureArtifactSet:
        """Like ``load`` but raises ``FixturesNotFound`` for unfrozen versions."""
        fixture = self.load(version)
        if fixture is None:
            raise FixturesNotFound(version, self.version_dir(version))
        return fixture

    def commit(self, version: str, artifacts: ExtractedArtifacts, force: bool = False) -> FixtureArtifactSet:
        """
        Persist an extracted artifact set as the fixture for ``version``.

        Args:
            version: Version being frozen
            artifacts: Complete set read from the extraction channel
            force: Replace an existing fixture (operator-acknowledged)

        Raises:
            FixturesAlreadyExist: If ``version`` is frozen and not forced
            InvalidFixture: If the manifest does not parse
        """
        if not is_version(version):
            raise InvalidFixture(version, "version must look like X.Y.Z")
        target = self.version_dir(version)
        if target.exists() and not force:
            raise FixturesAlreadyExist(version, target)

        load_manifest(artifacts.manifest, version)

        layout = FixtureLayout(version)
        self.root.mkdir(parents=True, exist_ok=True)
        token = uuid.uuid4().hex[:8]
        staging = self.root / f".staging-{version}-{token}"
        backup = self.root / f".replaced-{version}-{token}"
        staging.mkdir()
        try:
            sources = {
                "snapshot": artifacts.snapshot,
                "manifest": artifacts.manifest,
                "schema_export": artifacts.schema_export,
                "fingerprint": artifacts.fingerprint,
                "metadata": artifacts.metadata,
            }
            for role, name in layout.committed_files().items():
                shutil.copy2(sources[role], staging / name)

            if target.exists():
                logger.warning("Replacing existing fixtures for v%s at %s", version, target)
                target.rename(backup)
            try:
                staging.rename(target)
            except BaseException:
                if backup.exists():
                    backup.rename(target)
                raise
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        if backup.exists():
            shutil.rmtree(backup)
        # copy2 keeps the dead-drop mtimes; the directory itself is new
        os.utime(target, None)

        logger.info("Committed fixtures for v%s to %s", version, target)
        return self.require(version)
