"""
FreezeRay CLI - Recreate missing test scaffolds.

Usage::

    freezeray scaffold 2.0.0

Existing files are never touched.
"""

from __future__ import annotations

import click

from freezeray.cli.common import load_config, make_pipeline, project_root_option, source_option


@click.command()
@click.argument("version")
@click.option("--output", type=click.Path(file_okay=False), help="Fixture root (default: FreezeRay/Fixtures)")
@click.option("--tests-dir", type=click.Path(file_okay=False), help="Scaffold directory (default: FreezeRay/Tests)")
@click.option("--app-target", help="Module for @testable import (default: scheme name)")
@source_option
@project_root_option
@click.pass_context
def scaffold(ctx, version, output, tests_dir, app_target, source_paths, project_root):
    """Create missing drift and migration tests for frozen VERSION."""
    config = load_config(
        ctx,
        project_root=project_root,
        tests_dir=tests_dir,
        app_target=app_target,
        source_paths=list(source_paths) or None,
    )
    pipeline = make_pipeline(ctx, config, output=output)

    results = pipeline.scaffold(version)
    for result in results:
        if result.created:
            click.echo(f"Created {result.path}")
        else:
            click.echo(f"Skipped {result.path} (already exists)")
