"""
FreezeRay CLI - List schema versions.

Shows every @Freeze declaration found in source, whether it has been
frozen, and frozen fixtures whose declaration has disappeared.

Usage::

    freezeray list
    freezeray list --verbose
    freezeray list --format json
"""

from __future__ import annotations

import json
from typing import Any, Dict, List

import click

from freezeray.cli.common import load_config, make_pipeline, project_root_option, source_option
from freezeray.errors import InvalidFixture
from freezeray.pipeline import FreezePipeline
from freezeray.versioning import is_version, sort_versions, version_key


def _declaration_order(declaration) -> tuple:
    """Semantic order; anything not X.Y.Z sorts last, by text."""
    if is_version(declaration.version):
        return (0, version_key(declaration.version), "")
    return (1, (), declaration.version)


def collect_listing(pipeline: FreezePipeline) -> Dict[str, Any]:
    """Discovered declarations joined with the fixture store."""
    discovery = pipeline.discover()
    frozen = pipeline.store.list_versions()

    versions: List[Dict[str, Any]] = []
    declarations = sorted(discovery.version_declarations, key=_declaration_order)
    for declaration in declarations:
        entry: Dict[str, Any] = {
            "version": declaration.version,
            "type": declaration.type_name,
            "location": declaration.location,
            "frozen": declaration.version in frozen,
            "fingerprint": None,
        }
        if entry["frozen"]:
            try:
                fixture = pipeline.store.load(declaration.version)
                entry["fingerprint"] = fixture.fingerprint if fixture else None
                entry["entity_count"] = fixture.manifest.entity_count if fixture else None
            except InvalidFixture as e:
                entry["error"] = e.reason
        versions.append(entry)

    declared = {d.version for d in discovery.version_declarations}
    plans = [
        {
            "type": plan.type_name,
            "location": plan.location,
            "versions": discovery.plan_versions(plan),
        }
        for plan in discovery.migration_plans
    ]
    return {
        "versions": versions,
        "migration_plans": plans,
        "orphaned": sort_versions(frozen - declared),
        "skipped_files": discovery.skipped_files,
    }


def _render_text(listing: Dict[str, Any], verbose: bool) -> None:
    if not listing["versions"]:
        click.echo("No @Freeze declarations found.")
    else:
        click.echo("Schema versions:")
    for entry in listing["versions"]:
        status = "frozen" if entry["frozen"] else "not frozen"
        if entry.get("error"):
            status = f"invalid fixture ({entry['error']})"
        click.echo(f"  {entry['version']:<10} {entry['type']:<24} {status}")
        if verbose:
            click.echo(f"      declared at {entry['location']}")
            if entry["fingerprint"]:
                click.echo(f"      fingerprint {entry['fingerprint']}")
                click.echo(f"      entities    {entry.get('entity_count')}")

    if listing["orphaned"]:
        click.echo("\nFrozen without a declaration in source:")
        for version in listing["orphaned"]:
            click.echo(f"  {version}")

    if verbose and listing["migration_plans"]:
        click.echo("\nMigration plans:")
        for plan in listing["migration_plans"]:
            path = " -> ".join(plan["versions"]) or "(no frozen schemas)"
            click.echo(f"  {plan['type']}: {path}")
            click.echo(f"      declared at {plan['location']}")

    if listing["skipped_files"]:
        click.echo(f"\n{len(listing['skipped_files'])} file(s) could not be parsed and were skipped.")
        if verbose:
            for path in listing["skipped_files"]:
                click.echo(f"  {path}")


@click.command("list")
@click.option("--verbose", "-v", "verbose", is_flag=True, help="Show locations, fingerprints and plans")
@click.option("--format", "-f", "output_format", type=click.Choice(["text", "json"]), default="text")
@click.option("--output", type=click.Path(file_okay=False), help="Fixture root (default: FreezeRay/Fixtures)")
@source_option
@project_root_option
@click.pass_context
def list_versions(ctx, verbose, output_format, output, source_paths, project_root):
    """List schema versions and their freeze status."""
    config = load_config(ctx, project_root=project_root, source_paths=list(source_paths) or None)
    pipeline = make_pipeline(ctx, config, output=output)
    listing = collect_listing(pipeline)

    if output_format == "json":
        click.echo(json.dumps(listing, indent=2))
    else:
        _render_text(listing, verbose)
