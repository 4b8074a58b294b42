"""
FreezeRay CLI - Initialize a project.

Creates the FreezeRay directory layout and a starter ``.freezeray.yml``.
Safe to run repeatedly: nothing that already exists is overwritten.

Usage::

    freezeray init
    freezeray init --skip-dependency
"""

from __future__ import annotations

from pathlib import Path

import click

from freezeray.cli.common import load_config, project_root_option
from freezeray.config import CONFIG_FILE_NAME
from freezeray.conventions import discover_build_descriptor
from freezeray.errors import NoBuildDescriptorFound

STARTER_CONFIG = """\
# FreezeRay configuration. Every key is optional; CLI options win.
# Environment variables FREEZERAY_<KEY> apply when a key is absent here.

fixtures_dir: FreezeRay/Fixtures
tests_dir: FreezeRay/Tests
simulator: iPhone 16

# source_paths:
#   - Sources
# scheme: MyApp
# test_target: MyAppTests
"""

DEPENDENCY_SNIPPET = """\
Add the FreezeRay Swift package to your project:

  Xcode:   File > Add Package Dependencies..., then link the FreezeRay
           library to your app target and your test target.

  SwiftPM: .package(url: "<FreezeRay package URL>", from: "{version}")
           and add "FreezeRay" to the app and test target dependencies.

Then annotate the schema you ship:

  @Freeze(version: "1.0.0")
  enum SchemaV1: VersionedSchema {{ ... }}
"""


def _ensure_dir(path: Path) -> bool:
    if path.is_dir():
        return False
    path.mkdir(parents=True)
    (path / ".gitkeep").touch()
    return True


@click.command("init")
@click.option("--skip-dependency", is_flag=True, help="Do not print package dependency instructions")
@project_root_option
@click.pass_context
def init(ctx, skip_dependency, project_root):
    """Create FreezeRay/Fixtures, FreezeRay/Tests and .freezeray.yml."""
    from freezeray import __version__

    config = load_config(ctx, project_root=project_root)
    root = config.root_path

    for directory in (config.get_fixtures_path(), config.get_tests_path()):
        if _ensure_dir(directory):
            click.echo(f"Created {directory}")
        else:
            click.echo(f"Exists  {directory}")

    config_path = root / CONFIG_FILE_NAME
    if config_path.exists():
        click.echo(f"Exists  {config_path}")
    else:
        config_path.write_text(STARTER_CONFIG, encoding="utf-8")
        click.echo(f"Created {config_path}")

    try:
        descriptor, kind = discover_build_descriptor(root)
        click.echo(f"Found {kind.value} {descriptor.name}")
    except NoBuildDescriptorFound:
        # Not fatal here: the project may be created after init
        click.echo(f"Note: no .xcodeproj or .xcworkspace in {root} yet; `freezeray freeze` will need one.")

    if not skip_dependency:
        click.echo()
        click.echo(DEPENDENCY_SNIPPET.format(version=__version__))

    click.echo("FreezeRay initialized.")
