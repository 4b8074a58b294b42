"""
FreezeRay CLI - Check a frozen version for drift.

Usage::

    freezeray check 1.0.0            # rebuild and compare (needs a simulator)
    freezeray check 1.0.0 --offline  # verify the stored fixture only

Exits 1 when drift is detected.
"""

from __future__ import annotations

import click

from freezeray.cli.common import load_config, make_pipeline, project_root_option, source_option


@click.command()
@click.argument("version")
@click.option("--offline", is_flag=True, help="Verify the stored fingerprint without building")
@click.option("--sandbox", "--simulator", "simulator", help="Simulator name or UDID")
@click.option("--project", type=click.Path(), help="Path to .xcworkspace or .xcodeproj")
@click.option("--scheme", help="Xcode scheme (default: auto-detected)")
@click.option("--test-target", help="Test target running the driver (default: <scheme>Tests)")
@click.option("--output", type=click.Path(file_okay=False), help="Fixture root (default: FreezeRay/Fixtures)")
@source_option
@project_root_option
@click.pass_context
def check(ctx, version, offline, simulator, project, scheme, test_target, output, source_paths, project_root):
    """Compare schema VERSION with its frozen fingerprint."""
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

    result = pipeline.check(version, offline=offline)
    click.echo(result.describe())
    if result.has_drift:
        raise SystemExit(1)
