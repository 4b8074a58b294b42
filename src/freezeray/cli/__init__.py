"""
FreezeRay CLI - Freeze SwiftData schemas into immutable fixtures.

Commands:
    freezeray freeze     Freeze a schema version (simulator run + commit)
    freezeray check      Compare a frozen version with the current schema
    freezeray list       Show declared and frozen schema versions
    freezeray scaffold   Recreate missing drift/migration test scaffolds
    freezeray init       Create the FreezeRay directory layout
"""

import click

from .freeze import freeze
from .check import check
from .listing import list_versions
from .scaffold import scaffold
from .bootstrap import init


@click.group()
@click.version_option(package_name="freezeray")
@click.option("--config", "config_file", type=click.Path(dir_okay=False), help="YAML config file (default: .freezeray.yml)")
@click.option("--verbose", "-v", count=True, help="More logging (-vv for debug)")
@click.pass_context
def main(ctx, config_file, verbose):
    """FreezeRay - Freeze SwiftData schemas for safe production releases."""
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file
    ctx.obj["verbose"] = verbose


main.add_command(freeze)
main.add_command(check)
main.add_command(list_versions, name="list")
main.add_command(scaffold)
main.add_command(init)


if __name__ == "__main__":
    main()
