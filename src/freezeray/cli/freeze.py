"""
FreezeRay CLI - Freeze a schema version.

Usage::

    freezeray freeze 1.0.0
    freezeray freeze 1.0.0 --simulator "iPhone 16 Pro"
    freezeray freeze 1.0.0 --force   # overwrite existing fixtures (dangerous)
"""

from __future__ import annotations

import logging

import click

from freezeray.cli.common import load_config, make_pipeline, project_root_option, source_option

logger = logging.getLogger(__name__)


@click.command()
@click.argument("version")
@click.option("--force", is_flag=True, help="Overwrite existing fixtures for this version")
@click.option("--sandbox", "--simulator", "simulator", help="Simulator name or UDID (default: iPhone 16)")
@click.option("--output", type=click.Path(file_okay=False), help="Fixture root (default: FreezeRay/Fixtures)")
@click.option("--project", type=click.Path(), help="Path to .xcworkspace or .xcodeproj")
@click.option("--scheme", help="Xcode scheme (default: auto-detected)")
@click.option("--test-target", help="Test target running the driver (default: <scheme>Tests)")
@source_option
@project_root_option
@click.pass_context
def freeze(ctx, version, force, simulator, output, project, scheme, test_target, source_paths, project_root):
    """Freeze schema VERSION into immutable fixtures.

    Runs the schema's freeze hook in an iOS Simulator, commits the
    snapshot, manifest and fingerprint under FreezeRay/Fixtures/VERSION,
    and scaffolds drift and migration tests that do not exist yet.
    """
    config = load_config(
        ctx,
        project_root=project_root,
        simulator=simulator,
        project=project,
        scheme=scheme,
        test_target=test_target,
        source_paths=list(source_paths) or None,
    )
    pipeline = make_pipeline(ctx, config, output=output)

    click.echo(f"Freezing schema v{version}...")
    if force:
        click.echo(f"WARNING: --force will replace any existing fixtures for v{version}")
    outcome = pipeline.freeze(version, force=force)

    fixtures = outcome.fixtures
    click.echo(f"Found {outcome.declaration.type_name} in {outcome.declaration.location}")
    click.echo(f"Fixtures written to {fixtures.directory}:")
    for path in fixtures.files:
        click.echo(f"  {path.name}")
    click.echo(f"Fingerprint: {fixtures.fingerprint}")

    for scaffold in outcome.scaffolds:
        if scaffold.created:
            click.echo(f"Created {scaffold.path}")
        else:
            click.echo(f"Skipped {scaffold.path} (already exists)")
    if outcome.preceding_version is None:
        click.echo("No previous frozen version; no migration test scaffolded.")
    elif outcome.migration_plan is None:
        click.echo("No @AutoTests migration plan found; no migration test scaffolded.")

    click.echo(f"\nSchema v{version} frozen. Commit {fixtures.directory} to source control.")
