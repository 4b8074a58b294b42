"""
Drift detection.

A fingerprint is the SHA-256 of a schema's structural SQL export, never of
the binary snapshot (SQLite files carry timestamps and free-page noise).
Comparison is byte-for-byte: any change counts as drift. No semantic
diffing is attempted.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Union

from freezeray.models import DriftResult, DriftStatus, FixtureArtifactSet

if TYPE_CHECKING:
    from freezeray.store import FixtureStore

logger = logging.getLogger(__name__)


def read_fingerprint_file(path: Union[str, Path]) -> str:
    """Digest stored in a ``.sha256`` file (``sha256sum`` format accepted)."""
    text = Path(path).read_text(encoding="utf-8").strip()
    return text.split()[0].lower() if text else ""


class DriftEngine:
    """Fingerprints structural exports and compares them."""

    def fingerprint(self, schema_export: Union[str, bytes]) -> str:
        """SHA-256 hex digest of a structural export."""
        if isinstance(schema_export, str):
            schema_export = schema_export.encode("utf-8")
        return hashlib.sha256(schema_export).hexdigest()

    def fingerprint_file(self, path: Union[str, Path]) -> str:
        h = hashlib.sha256()
        with open(path, "rb") as f:
            while chunk := f.read(8192):
                h.update(chunk)
        return h.hexdigest()

    def compare(self, stored: str, current: str, version: str = "") -> DriftResult:
        """Compare a stored fingerprint with a freshly computed one."""
        stored = stored.strip().lower()
        current = current.strip().lower()
        status = DriftStatus.MATCH if stored == current else DriftStatus.DRIFT
        result = DriftResult(status=status, version=version, expected=stored, actual=current)
        if result.has_drift:
            logger.warning(
                "Schema drift in v%s: expected %s, got %s", version, stored, current
            )
        return result

    def check(self, store: "FixtureStore", version: str, current_export: Union[str, bytes, Path]) -> DriftResult:
        """
        Compare the current structural export of ``version`` with its fixture.

        Raises:
            FixturesNotFound: If ``version`` has not been frozen
            InvalidFixture: If the fixture is damaged
        """
        fixture = store.require(version)
        if isinstance(current_export, Path):
            current = self.fingerprint_file(current_export)
        else:
            current = self.fingerprint(current_export)
        return self.compare(fixture.fingerprint, current, version=version)

    def verify(self, fixture: FixtureArtifactSet) -> DriftResult:
        """Check a committed fixture's fingerprint against its own export."""
        actual = self.fingerprint_file(fixture.schema_export_path)
        return self.compare(fixture.fingerprint, actual, version=fixture.version)
