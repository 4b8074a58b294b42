"""
Extraction channel (the dead-drop).

The simulator deletes a test run's storage as soon as the run ends, so the
freeze hook copies its artifacts to a fixed host-visible directory,
``<extraction_root>/<version>/``, before returning. This module prepares
that directory before the run and reads it back afterwards. It never looks
inside the simulator's own storage.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Union

from pydantic import ValidationError

from freezeray.errors import ExtractionIncomplete, ExtractionMismatch, InvalidFixture
from freezeray.layout import FixtureLayout
from freezeray.models import ExportMetadata, ExtractedArtifacts

logger = logging.getLogger(__name__)

DEFAULT_EXTRACTION_ROOT = "/tmp/FreezeRay/Fixtures"


class ExtractionChannel:
    """Host side of the dead-drop for all versions."""

    def __init__(self, root: Union[str, Path] = DEFAULT_EXTRACTION_ROOT):
        self.root = Path(root)

    def location(self, version: str) -> Path:
        return self.root / version

    def prepare(self, version: str) -> Path:
        """Clear any artifacts left by an earlier run of ``version``."""
        location = self.location(version)
        if location.exists():
            logger.debug("Clearing stale extraction directory %s", location)
            shutil.rmtree(location)
        location.parent.mkdir(parents=True, exist_ok=True)
        return location

    def collect(self, version: str) -> ExtractedArtifacts:
        """
        Read back the artifact set the freeze hook dropped for ``version``.

        Raises:
            ExtractionIncomplete: If any expected file is missing
            ExtractionMismatch: If the metadata names another version
            InvalidFixture: If the metadata cannot be parsed
        """
        location = self.location(version)
        expected = FixtureLayout(version).dead_drop_files()
        missing = [name for name in expected.values() if not (location / name).is_file()]
        if missing:
            raise ExtractionIncomplete(version, location, missing)

        paths = {role: location / name for role, name in expected.items()}
        try:
            export_metadata = ExportMetadata.parse_text(
                paths["metadata"].read_text(encoding="utf-8")
            )
        except ValidationError as e:
            raise InvalidFixture(version, f"unreadable {paths['metadata'].name} in {location}: {e}")
        if export_metadata.version and export_metadata.version != version:
            raise ExtractionMismatch(version, export_metadata.version, location)

        logger.info("Extracted v%s artifacts from %s", version, location)
        return ExtractedArtifacts(
            version=version,
            location=location,
            export_metadata=export_metadata,
            **paths,
        )
