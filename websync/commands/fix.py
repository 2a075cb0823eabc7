"""
Fix command for websync.
"""

import click

from .common import build_service, run_workflow, sync_options


@click.command('fix')
@sync_options
@click.pass_context
def fix_handler(ctx, output_json: bool, pretty: bool, debug: bool, root):
    """Check and fix detached HEAD states in all repositories.

    A detached checkout is switched back to main (or master) and the
    detached commit is merged in when the branch does not contain it.
    """
    service = build_service(ctx, root, debug)
    run_workflow(ctx, service.fix_heads, "Fix heads", output_json, pretty)
