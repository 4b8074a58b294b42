"""
Annotation discovery for FreezeRay.

Scans Swift source roots for schema version declarations
(``@Freeze(version: "X.Y.Z")``) and migration plan declarations
(``@AutoTests``) by structural parsing, not text search.

Usage:
    from freezeray.discovery import discover

    result = discover(["Sources"])
    declaration = result.find_version("1.0.0")
    plan = result.select_migration_plan()
"""

from __future__ import annotations

import logging
import os
from collections import defaultdict
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Union

from lark.exceptions import LarkError
from pydantic import BaseModel, Field

from freezeray.errors import (
    DuplicateVersionDeclaration,
    NoVersionDeclarationFound,
    SourcePathNotFound,
)
from freezeray.models import MigrationPlanDeclaration, VersionDeclaration
from freezeray.discovery.scanner import scan_source

logger = logging.getLogger(__name__)

SOURCE_SUFFIX = ".swift"

# Build products and dependency checkouts never hold project schemas
SKIPPED_DIRECTORIES = frozenset({".build", "DerivedData", "Pods", "Carthage", ".git", ".swiftpm"})


class DiscoveryResult(BaseModel):
    """Flat result of scanning every source root."""

    version_declarations: List[VersionDeclaration] = Field(default_factory=list)
    migration_plans: List[MigrationPlanDeclaration] = Field(default_factory=list)
    skipped_files: List[str] = Field(
        default_factory=list,
        description="Files that could not be read, decoded or parsed",
    )

    def versions(self) -> Dict[str, VersionDeclaration]:
        return {d.version: d for d in self.version_declarations}

    def find_version(self, version: str) -> VersionDeclaration:
        """Declaration for ``version``.

        Raises:
            NoVersionDeclarationFound: If no scanned file declares it.
        """
        for declaration in self.version_declarations:
            if declaration.version == version:
                return declaration
        raise NoVersionDeclarationFound(version)

    def find_type(self, type_name: str) -> Optional[VersionDeclaration]:
        for declaration in self.version_declarations:
            if declaration.type_name == type_name:
                return declaration
        return None

    def select_migration_plan(self) -> Optional[MigrationPlanDeclaration]:
        """The migration plan in use: the first discovered.

        Logs a warning naming the ignored plans when several exist.
        """
        if not self.migration_plans:
            return None
        chosen = self.migration_plans[0]
        if len(self.migration_plans) > 1:
            ignored = ", ".join(
                f"{p.type_name} ({p.location})" for p in self.migration_plans[1:]
            )
            logger.warning(
                "Multiple @AutoTests migration plans found; using %s (%s), ignoring %s",
                chosen.type_name, chosen.location, ignored,
            )
        return chosen

    def plan_versions(self, plan: MigrationPlanDeclaration) -> List[str]:
        """Declared version strings of the plan's schemas, in plan order."""
        versions = []
        for type_name in plan.schema_types:
            declaration = self.find_type(type_name)
            if declaration is not None:
                versions.append(declaration.version)
        return versions


def iter_source_files(root: Path) -> Iterator[Path]:
    """Swift files under ``root`` in sorted order, skipping build output."""
    if root.is_file():
        if root.suffix == SOURCE_SUFFIX:
            yield root
        return
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(
            d for d in dirnames if d not in SKIPPED_DIRECTORIES and not d.startswith(".")
        )
        for name in sorted(filenames):
            if name.endswith(SOURCE_SUFFIX):
                yield Path(dirpath) / name


def discover(source_roots: Iterable[Union[str, Path]]) -> DiscoveryResult:
    """
    Scan source roots for version and migration plan declarations.

    Files that cannot be read, decoded or parsed are skipped with a warning.

    Raises:
        SourcePathNotFound: If a root does not exist
        DuplicateVersionDeclaration: If one version is declared twice
    """
    result = DiscoveryResult()
    seen = set()
    for root in source_roots:
        root = Path(root)
        if not root.exists():
            raise SourcePathNotFound(str(root))
        for path in iter_source_files(root):
            resolved = path.resolve()
            if resolved in seen:
                continue
            seen.add(resolved)
            try:
                text = path.read_text(encoding="utf-8")
                found = scan_source(text, str(path))
            except (OSError, UnicodeDecodeError, LarkError) as e:
                reason = str(e).strip().splitlines()
                logger.warning("Skipping %s: %s", path, reason[0] if reason else type(e).__name__)
                result.skipped_files.append(str(path))
                continue
            result.version_declarations.extend(found.versions)
            result.migration_plans.extend(found.plans)

    by_version: Dict[str, List[VersionDeclaration]] = defaultdict(list)
    for declaration in result.version_declarations:
        by_version[declaration.version].append(declaration)
    for version, declarations in by_version.items():
        if len(declarations) > 1:
            raise DuplicateVersionDeclaration(version, [d.location for d in declarations])

    logger.debug(
        "Discovered %d version declaration(s), %d migration plan(s)",
        len(result.version_declarations), len(result.migration_plans),
    )
    return result


__all__ = [
    "DiscoveryResult",
    "discover",
    "iter_source_files",
    "scan_source",
]
