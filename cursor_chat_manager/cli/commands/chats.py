"""
Chat discovery CLI commands (scan, show).

Run the discovery pipeline over Cursor's workspace databases and browse
the last saved snapshot.
"""
import json

import click

from cursor_chat_manager.cli.common import fail, storage_path_option
from cursor_chat_manager.core.models import ProcessingResult


def _print_projects(result: ProcessingResult) -> None:
    if not result.projects:
        click.echo("No chats found.")
        return
    for project in sorted(result.projects, key=lambda p: p.name.lower()):
        click.echo(f"  {project.name} ({project.id}): {len(project.chats)} chats")


@click.command()
@storage_path_option
@click.option(
    '--save/--no-save',
    default=True,
    help='Save the result to the snapshot database (default: save)'
)
@click.option(
    '--force',
    is_flag=True,
    help='Clear saved snapshots and cached queries before scanning'
)
@click.option('--json', 'as_json', is_flag=True, help='Print the full result as JSON')
@click.pass_context
def scan(ctx, storage_path, save, force, as_json):
    """Scan Cursor workspace databases for chats."""
    aggregator = ctx.obj.create_aggregator(storage_path)

    try:
        if force:
            aggregator.clear_all_cached_data()
        result = aggregator.process_chats()
        if save and not aggregator.save_processed_data(result.projects, result.chats):
            click.secho("Warning: could not save snapshot", fg='yellow', err=True)
    except Exception as e:
        fail(ctx, "Error during scan", e)
    finally:
        aggregator.reader.close_all()

    if as_json:
        payload = {
            "projects": [p.serialize() for p in result.projects],
            "stats": result.stats.model_dump(),
        }
        click.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        return

    stats = result.stats
    click.echo(f"Scanned {stats.databases_scanned} databases ({stats.databases_failed} failed)")
    click.echo(f"Records: {stats.total_records} total, {stats.valid_records} with chats, "
               f"{stats.invalid_records} skipped")
    click.secho(f"Found {stats.chats} chats in {stats.projects} projects", fg='green')
    _print_projects(result)


@click.command()
@click.option('--json', 'as_json', is_flag=True, help='Print the snapshot as JSON')
@click.pass_context
def show(ctx, as_json):
    """Show the last saved scan result."""
    aggregator = ctx.obj.create_aggregator()
    result = aggregator.load_processed_data()

    if as_json:
        click.echo(json.dumps([p.serialize() for p in result.projects], indent=2, ensure_ascii=False))
        return

    if not result.projects and not result.chats:
        click.secho("No saved snapshot. Run 'scan' first.", fg='yellow')
        return

    click.echo(f"Saved snapshot: {len(result.chats)} chats in {len(result.projects)} projects")
    _print_projects(result)
