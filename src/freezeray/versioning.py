"""
Version strings and their ordering.

Frozen versions are plain ``MAJOR.MINOR.PATCH`` strings. Ordering compares
each dot-separated segment numerically, so ``1.9.0 < 1.10.0 < 1.11.0``.
Anything that does not match the strict pattern (``v1.5.0``, ``.git``,
``README.md``) is not a version and is ignored by every listing.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional, Tuple

VERSION_PATTERN = re.compile(r"^\d+\.\d+\.\d+$")


def is_version(value: str) -> bool:
    """Return True if ``value`` is a strict ``X.Y.Z`` version string."""
    return bool(VERSION_PATTERN.match(value))


def version_key(version: str) -> Tuple[int, ...]:
    """Numeric sort key for a version string.

    Raises:
        ValueError: If ``version`` is not a strict version string.
    """
    if not is_version(version):
        raise ValueError(f"Not a version string: {version!r}")
    return tuple(int(part) for part in version.split("."))


def version_safe(version: str) -> str:
    """Filename/identifier-safe form of a version (``1.0.0`` -> ``1_0_0``)."""
    return version.replace(".", "_")


def sort_versions(versions: Iterable[str]) -> List[str]:
    """Sort version strings ascending, dropping non-conforming entries."""
    return sorted((v for v in versions if is_version(v)), key=version_key)


def preceding_version(current: str, versions: Iterable[str]) -> Optional[str]:
    """Greatest version strictly less than ``current``.

    Returns None when there is none (``current`` is the first frozen
    version), which is a normal outcome.
    """
    current_key = version_key(current)
    earlier = [v for v in sort_versions(versions) if version_key(v) < current_key]
    return earlier[-1] if earlier else None


def next_patch_version(version: str) -> str:
    """Suggest the next patch version (``1.0.0`` -> ``1.0.1``)."""
    if not is_version(version):
        return version
    major, minor, patch = version_key(version)
    return f"{major}.{minor}.{patch + 1}"
