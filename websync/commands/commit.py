"""
Commit command for websync.

Commits and pushes local changes, falling back to a fork and pull
request when the user cannot push to a repository directly.
"""

from typing import Optional

import click

from ..services.sync_service import SUBMODULES_SELECTOR
from .common import build_service, run_workflow, sync_options

NOPR = "nopr"


@click.command('commit')
@click.argument('target', required=False)
@click.argument('nopr', required=False, type=click.Choice([NOPR]))
@click.option('--no-pr', 'no_pr', is_flag=True, help='Never open pull requests')
@sync_options
@click.pass_context
def commit_handler(ctx, target: Optional[str], nopr: Optional[str], no_pr: bool,
                   output_json: bool, pretty: bool, debug: bool, root):
    """Commit and push the root repository, submodules and trade repos.

    TARGET is the name of one repository, or "submodules" for all
    submodules only. Pass "nopr" (or --no-pr) to skip pull requests.

    \b
    Examples:
        websync commit                    # root, submodules and trade repos
        websync commit localsite          # one submodule, then its reference
        websync commit submodules nopr    # all submodules, no pull requests
        websync commit nopr               # everything, no pull requests
    """
    skip_pr = no_pr or nopr == NOPR
    if target == NOPR and nopr is None:
        target = None
        skip_pr = True

    service = build_service(ctx, root, debug)
    if target == SUBMODULES_SELECTOR:
        title = "Commit submodules"
    elif target:
        title = f"Commit {target}"
    else:
        title = "Commit"
    run_workflow(ctx, lambda: service.commit(target, skip_pr=skip_pr), title, output_json, pretty)
