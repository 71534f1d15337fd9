"""
CLI mirror commands — inspect, create, sync, and clean up library mirrors.

Usage:
    polyglot libraries [--json]
    polyglot mirrors [--json]
    polyglot add-alternative NAME --language-code pt-BR
    polyglot validate SOURCE_ID TARGET_PATH
    polyglot create-mirror --alternative ID --source ID --target PATH
    polyglot sync [--mirror ID | --alternative ID]
    polyglot post-scan
    polyglot cleanup [--json]
    polyglot delete-mirror ID [--delete-files]
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import click

from ..config.loader import Settings
from ..mirror.libraries import list_libraries
from ..mirror.lifecycle import SyncAllStatus
from ..models.config import LanguageAlternative, LibraryMirror
from ..services import Services, build_services
from ..tasks.post_scan import run_post_scan_sync
from ..validation import MirrorBusyError, MirrorOperationError, PolyglotError, SyncCancelled

STATUS_ICONS = {"Synced": "✅", "Syncing": "🔄", "Pending": "⏳", "Error": "❌"}


def get_services(ctx: click.Context) -> Services:
    """Services injected by the caller, or built from the environment once."""
    if "services" not in ctx.obj:
        ctx.obj["services"] = build_services(Settings.from_env(ctx.obj["root"]))
    return ctx.obj["services"]


def _fail(message: str) -> None:
    click.secho(f"❌ {message}", fg="red", err=True)
    raise SystemExit(1)


@click.command("libraries")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def libraries_cmd(ctx: click.Context, as_json: bool) -> None:
    """List host libraries and mark mirror targets."""
    services = get_services(ctx)
    libraries = list_libraries(services.host, services.store)

    if as_json:
        click.echo(json.dumps([lib.model_dump(mode="json") for lib in libraries], indent=2))
        return

    if not libraries:
        click.echo("No libraries found.")
        return

    for lib in libraries:
        tag = " [mirror]" if lib.is_mirror else ""
        language = lib.preferred_metadata_language or "-"
        click.echo(f"  {lib.id}  {lib.name}{tag}  ({lib.collection_type or 'mixed'}, {language})")
        for location in lib.locations:
            click.echo(f"      {location}")


@click.command("mirrors")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def mirrors_cmd(ctx: click.Context, as_json: bool) -> None:
    """Show every mirror with its sync status and health."""
    report = get_services(ctx).mirrors.mirror_health()

    if as_json:
        click.echo(json.dumps([entry.to_dict() for entry in report], indent=2))
        return

    if not report:
        click.echo("No mirrors configured.")
        return

    for entry in report:
        icon = STATUS_ICONS.get(entry.status.value, "❓")
        click.echo(f"{icon} {entry.target_library_name or entry.mirror_id} [{entry.alternative_name}]")
        click.echo(f"    id:       {entry.mirror_id}")
        click.echo(f"    source:   {entry.source_library_name} ({'ok' if entry.source_exists else 'missing'})")
        click.echo(f"    target:   {entry.target_path} ({'ok' if entry.target_path_exists else 'missing'})")
        click.echo(f"    status:   {entry.status.value}")
        if entry.last_synced_at:
            click.echo(f"    synced:   {entry.last_synced_at.isoformat()[:19]} ({entry.file_count} files)")
        if entry.last_error:
            click.secho(f"    error:    {entry.last_error}", fg="red")


@click.command("add-alternative")
@click.argument("name")
@click.option("--language-code", required=True, help="Locale code, e.g. pt-BR")
@click.option("--metadata-language", default=None, help="Override metadata language")
@click.option("--metadata-country", default=None, help="Override metadata country")
@click.option("--base-path", default=None, help="Default root for this alternative's mirrors")
@click.pass_context
def add_alternative(
    ctx: click.Context,
    name: str,
    language_code: str,
    metadata_language: Optional[str],
    metadata_country: Optional[str],
    base_path: Optional[str],
) -> None:
    """Add a language alternative."""
    alternative = LanguageAlternative(
        name=name,
        language_code=language_code,
        metadata_language=metadata_language,
        metadata_country=metadata_country,
        destination_base_path=base_path,
    )

    def _add(config):
        if any(a.name == name for a in config.language_alternatives):
            raise MirrorOperationError(f"A language alternative named '{name}' already exists")
        config.language_alternatives.append(alternative)

    try:
        get_services(ctx).store.update(_add)
    except MirrorOperationError as e:
        _fail(str(e))

    click.secho(f"✓ Added '{name}' ({alternative.id})", fg="green")


@click.command("validate")
@click.argument("source_id")
@click.argument("target_path")
@click.pass_context
def validate_cmd(ctx: click.Context, source_id: str, target_path: str) -> None:
    """Check a prospective mirror configuration."""
    valid, message = get_services(ctx).mirrors.validate_mirror_configuration(source_id, target_path)
    if not valid:
        _fail(message)
    click.secho(f"✓ {message}", fg="green")


@click.command("create-mirror")
@click.option("--alternative", "alternative_id", required=True, help="Language alternative id")
@click.option("--source", "source_id", required=True, help="Source library id")
@click.option("--target", "target_path", default=None, help="Target directory for the mirror")
@click.option("--name", "library_name", default="", help="Name of the new library")
@click.pass_context
def create_mirror_cmd(
    ctx: click.Context,
    alternative_id: str,
    source_id: str,
    target_path: Optional[str],
    library_name: str,
) -> None:
    """Create a mirror, register its library, and populate it."""
    services = get_services(ctx)

    if target_path is None:
        alternative = services.store.get_alternative(alternative_id)
        source = services.host.get_library(source_id)
        if alternative is None or not alternative.destination_base_path or source is None:
            _fail("--target is required unless the alternative has a base path")
        target_path = str(Path(alternative.destination_base_path) / source.name)

    mirror = LibraryMirror(
        source_library_id=source_id,
        target_path=target_path,
        target_library_name=library_name,
    )
    try:
        created = services.mirrors.create_mirror(alternative_id, mirror)
    except (MirrorOperationError, MirrorBusyError) as e:
        _fail(str(e))

    if created.last_error:
        click.secho(f"⚠️  Created '{created.target_library_name}' with errors: {created.last_error}", fg="yellow")
        raise SystemExit(1)
    click.secho(
        f"✓ Created '{created.target_library_name}' ({created.last_sync_file_count} files)",
        fg="green",
    )


@click.command("sync")
@click.option("--mirror", "mirror_id", default=None, help="Sync a single mirror")
@click.option("--alternative", "alternative_id", default=None, help="Sync every mirror of one alternative")
@click.pass_context
def sync_cmd(ctx: click.Context, mirror_id: Optional[str], alternative_id: Optional[str]) -> None:
    """Re-synchronize mirrors (all of them by default)."""
    if mirror_id and alternative_id:
        _fail("Use either --mirror or --alternative, not both")

    service = get_services(ctx).mirrors

    if mirror_id:
        try:
            outcome = service.sync_mirror(mirror_id)
        except (MirrorOperationError, MirrorBusyError, SyncCancelled) as e:
            _fail(str(e))
        if not outcome.ok:
            _fail(outcome.error)
        click.secho(f"✓ {outcome.summary()}", fg="green")
        return

    if alternative_id:
        alternative_ids = [alternative_id]
    else:
        alternative_ids = service.store.read(lambda c: [a.id for a in c.language_alternatives])

    failed = 0
    for alt_id in alternative_ids:
        result = service.sync_all_mirrors(alt_id)
        if result.status == SyncAllStatus.ALTERNATIVE_NOT_FOUND:
            _fail(f"Language alternative {alt_id} not found")
        click.echo(f"  {alt_id}: {result.mirrors_synced}/{result.total_mirrors} synced")
        failed += result.mirrors_failed

    if failed:
        click.secho(f"⚠️  {failed} mirror(s) failed", fg="yellow")
        raise SystemExit(1)
    click.secho("✓ Sync complete", fg="green")


@click.command("post-scan")
@click.pass_context
def post_scan_cmd(ctx: click.Context) -> None:
    """Run the after-library-scan mirror sync."""
    result = run_post_scan_sync(get_services(ctx).mirrors)
    if result.skipped:
        click.echo("Sync after library scan is disabled.")
        return
    click.echo(f"  Mirrors synced: {result.mirrors_synced}")
    click.echo(f"  Mirrors failed: {result.mirrors_failed}")
    if result.mirrors_failed or result.failed_alternatives:
        raise SystemExit(1)


@click.command("cleanup")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def cleanup_cmd(ctx: click.Context, as_json: bool) -> None:
    """Remove mirrors whose source or target library was deleted."""
    result = get_services(ctx).orphans.cleanup_orphaned_mirrors()

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        click.echo(f"  Cleaned: {result.total_cleaned}")
        for reason in result.cleaned_up_mirrors:
            click.echo(f"    - {reason}")
        if result.sources_without_mirrors:
            click.echo(f"  Sources without mirrors: {', '.join(result.sources_without_mirrors)}")
        for error in result.errors:
            click.secho(f"    ❌ {error}", fg="red")

    if result.errors:
        raise SystemExit(1)


@click.command("delete-mirror")
@click.argument("mirror_id")
@click.option("--delete-files", is_flag=True, help="Also delete the mirror's target directory")
@click.pass_context
def delete_mirror_cmd(ctx: click.Context, mirror_id: str, delete_files: bool) -> None:
    """Remove a mirror record."""
    try:
        mirror = get_services(ctx).mirrors.delete_mirror(mirror_id, delete_files=delete_files)
    except PolyglotError as e:
        _fail(str(e))
    click.secho(f"✓ Removed '{mirror.display_name}'", fg="green")
