"""
Project conventions resolver.

Works out how to build and run the freeze driver from the surrounding
Xcode project with no configuration:

- build descriptor: ``*.xcworkspace`` in the project root, else ``*.xcodeproj``
- scheme: from ``xcodebuild -list -json``; the one named like the
  descriptor wins, else the first listed
- test target: always ``<scheme>Tests``
- app module for ``@testable import``: the scheme name

Every value can be overridden explicitly.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional, Tuple, Union

from freezeray.errors import (
    NoBuildDescriptorFound,
    SchemeNotFound,
    TargetDirectoryNotFound,
    ToolchainError,
)
from freezeray.models import DescriptorKind, ProjectConventions
from freezeray.timeouts import XCODEBUILD_LIST_TIMEOUT_S
from freezeray.toolchain import ToolchainRunner

logger = logging.getLogger(__name__)

TEST_TARGET_SUFFIX = "Tests"


def descriptor_kind(path: Path) -> DescriptorKind:
    if path.suffix == ".xcworkspace":
        return DescriptorKind.WORKSPACE
    if path.suffix == ".xcodeproj":
        return DescriptorKind.PROJECT
    raise ValueError(f"Not an Xcode build descriptor: {path}")


def discover_build_descriptor(project_root: Union[str, Path]) -> Tuple[Path, DescriptorKind]:
    """
    Locate the build descriptor in ``project_root``.

    A workspace is preferred over a project when both exist. Several of
    the same kind resolve to the first in sorted order.

    Raises:
        NoBuildDescriptorFound: If neither exists
    """
    root = Path(project_root)
    if root.is_dir():
        for suffix in (".xcworkspace", ".xcodeproj"):
            candidates = sorted(p for p in root.glob(f"*{suffix}") if p.is_dir())
            if candidates:
                if len(candidates) > 1:
                    logger.info(
                        "Several %s found, using %s", suffix, candidates[0].name
                    )
                return candidates[0], descriptor_kind(candidates[0])
    raise NoBuildDescriptorFound(str(root))


def parse_scheme_list(output: str) -> List[str]:
    """Schemes from ``xcodebuild -list -json`` output.

    xcodebuild may print warnings before the JSON document, so decoding
    starts at the first ``{``.
    """
    start = output.find("{")
    if start < 0:
        return []
    try:
        data, _ = json.JSONDecoder().raw_decode(output[start:])
    except json.JSONDecodeError:
        return []
    for key in ("workspace", "project"):
        section = data.get(key)
        if isinstance(section, dict):
            return [str(s) for s in section.get("schemes", [])]
    return []


def list_schemes(
    descriptor_path: Path,
    kind: DescriptorKind,
    runner: ToolchainRunner,
) -> List[str]:
    """
    Enumerate build schemes with ``xcodebuild -list -json``.

    Raises:
        ToolchainError: If xcodebuild fails
    """
    cmd = ["xcodebuild", "-list", "-json", f"-{kind.value}", str(descriptor_path)]
    result = runner.run(
        cmd,
        timeout=XCODEBUILD_LIST_TIMEOUT_S,
        merge_stderr=False,
        context=f"Listing schemes of {descriptor_path.name}",
    )
    if not result.ok:
        raise ToolchainError(
            result.cmd,
            result.returncode,
            result.output + result.stderr,
            context=f"Could not list schemes of {descriptor_path}",
        )
    return parse_scheme_list(result.output)


def choose_scheme(
    schemes: List[str],
    descriptor_path: Path,
    requested: Optional[str] = None,
) -> str:
    """
    Pick the scheme to build.

    Raises:
        SchemeNotFound: If ``requested`` is not listed, or no scheme exists
    """
    if requested:
        if requested not in schemes:
            raise SchemeNotFound(str(descriptor_path), requested, schemes)
        return requested
    if not schemes:
        raise SchemeNotFound(str(descriptor_path), None, schemes)
    stem = descriptor_path.stem
    if stem in schemes:
        return stem
    return schemes[0]


def infer_test_target(scheme: str) -> str:
    """Execution target for a scheme: ``<scheme>Tests``."""
    return f"{scheme}{TEST_TARGET_SUFFIX}"


def resolve_conventions(
    project_root: Union[str, Path],
    runner: ToolchainRunner,
    project: Optional[Union[str, Path]] = None,
    scheme: Optional[str] = None,
    test_target: Optional[str] = None,
    app_target: Optional[str] = None,
    test_target_dir: Optional[Union[str, Path]] = None,
) -> ProjectConventions:
    """
    Resolve build and execution parameters for the freeze driver.

    Explicit arguments win over detection. xcodebuild is only consulted
    when the scheme is not given.

    Raises:
        NoBuildDescriptorFound: If no descriptor is given or found
        SchemeNotFound: If the scheme cannot be determined
        TargetDirectoryNotFound: If the test target has no source directory
    """
    root = Path(project_root)
    if project:
        descriptor = Path(project)
        if not descriptor.is_absolute():
            descriptor = root / descriptor
        if not descriptor.exists():
            raise NoBuildDescriptorFound(str(descriptor))
        kind = descriptor_kind(descriptor)
    else:
        descriptor, kind = discover_build_descriptor(root)

    if not scheme:
        schemes = list_schemes(descriptor, kind, runner)
        scheme = choose_scheme(schemes, descriptor)
    test_target = test_target or infer_test_target(scheme)
    app_target = app_target or scheme

    target_dir = Path(test_target_dir or test_target)
    if not target_dir.is_absolute():
        target_dir = root / target_dir
    if not target_dir.is_dir():
        raise TargetDirectoryNotFound(test_target, str(target_dir))

    conventions = ProjectConventions(
        descriptor_path=descriptor,
        descriptor_kind=kind,
        scheme=scheme,
        test_target=test_target,
        app_target=app_target,
        test_target_dir=target_dir,
    )
    logger.info(
        "Using %s %s, scheme %s, test target %s",
        kind.value, descriptor.name, scheme, test_target,
    )
    return conventions
