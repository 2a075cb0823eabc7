"""
Update command for websync.

Pulls and merges the root repository, its submodules and the trade
repos from origin and their upstream parents.
"""

import click

from .common import build_service, run_workflow, sync_options


@click.command('update')
@sync_options
@click.pass_context
def update_handler(ctx, output_json: bool, pretty: bool, debug: bool, root):
    """Pull and merge every repository from origin and upstream.

    Adds an upstream remote where one is missing, merges upstream/main
    (falling back to master, and dev for useeio.js), refreshes submodule
    references and repairs detached HEADs.

    \b
    Examples:
        websync update
        websync update --pretty
        websync update --json | jq 'select(.status == "failed")'
    """
    service = build_service(ctx, root, debug)
    run_workflow(ctx, service.update, "Update", output_json, pretty)
