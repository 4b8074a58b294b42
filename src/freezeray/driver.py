"""
Temporary freeze driver.

The driver is a one-test XCTest class written into the test target's
source directory. Its only job is to call the macro-generated
``__freezeray_freeze_<version>()`` hook of the schema being frozen. The
file exists only for the duration of one build-and-test run and is removed
on every exit path, including errors and interrupts.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from freezeray.models import ProjectConventions, VersionDeclaration

logger = logging.getLogger(__name__)

DRIVER_TEST_METHOD = "testFreeze"

DRIVER_TEMPLATE = """\
// Generated by freezeray for one freeze run. Deleted automatically.
import XCTest
@testable import {app_module}

final class {class_name}: XCTestCase {{
    func {test_method}() throws {{
        try {type_name}.__freezeray_freeze_{version_safe}()
    }}
}}
"""


@dataclass(frozen=True)
class FreezeDriver:
    """A generated driver file and the test it declares."""

    class_name: str
    path: Path
    test_target: str

    @property
    def test_identifier(self) -> str:
        """``-only-testing`` identifier: ``<target>/<class>/<method>``."""
        return f"{self.test_target}/{self.class_name}/{DRIVER_TEST_METHOD}"


def driver_class_name(declaration: VersionDeclaration) -> str:
    """Unique per run, so a stale build product can never match it."""
    return f"FreezeRayDriver_{declaration.version_safe}_{uuid.uuid4().hex[:8]}"


def render_driver(declaration: VersionDeclaration, app_module: str, class_name: str) -> str:
    return DRIVER_TEMPLATE.format(
        app_module=app_module,
        class_name=class_name,
        test_method=DRIVER_TEST_METHOD,
        type_name=declaration.type_name,
        version_safe=declaration.version_safe,
    )


@contextmanager
def generated_driver(
    declaration: VersionDeclaration,
    conventions: ProjectConventions,
) -> Iterator[FreezeDriver]:
    """
    Write the driver into the test target and remove it afterwards.

    Usage:
        with generated_driver(declaration, conventions) as driver:
            run_tests(only_testing=driver.test_identifier)
    """
    class_name = driver_class_name(declaration)
    path = Path(conventions.test_target_dir) / f"{class_name}.swift"
    path.write_text(
        render_driver(declaration, conventions.app_target, class_name),
        encoding="utf-8",
    )
    logger.debug("Wrote freeze driver %s", path)
    try:
        yield FreezeDriver(class_name=class_name, path=path, test_target=conventions.test_target)
    finally:
        try:
            path.unlink()
            logger.debug("Removed freeze driver %s", path)
        except FileNotFoundError:
            pass
