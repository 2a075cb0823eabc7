"""
Shared plumbing for the sync commands.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Callable, Iterator, Optional

import click

from ..config import SyncConfig, load_config
from ..exit_codes import CommandError, PARTIAL_SUCCESS, get_exit_code_for_exception
from ..infra.git_client import GitClient
from ..infra.github_client import GitHubClient
from ..render import output_json, output_pretty, output_simple
from ..services.sync_service import SyncService, find_root

logger = logging.getLogger(__name__)


def sync_options(f):
    """Decorator to add the output and location flags shared by sync commands."""
    f = click.option('--root', 'root', type=click.Path(exists=True, file_okay=False),
                     default=None, help='Directory inside the root repository (default: cwd)')(f)
    f = click.option('--debug', is_flag=True, help='Enable debug logging')(f)
    f = click.option('--pretty', is_flag=True, help='Display with rich formatting')(f)
    f = click.option('--json', 'output_json', is_flag=True, help='Output as JSONL')(f)
    return f


def build_service(ctx: click.Context, root: Optional[str], debug: bool) -> SyncService:
    """
    Load config and create the SyncService for the repository containing root.

    Registers a close callback that leaves the process in the root
    repository's top level, whichever way the command ends.
    """
    config = load_config()
    level = 'DEBUG' if debug else str(config.get('logging', {}).get('level', 'INFO')).upper()
    logging.getLogger().setLevel(level)

    try:
        sync_config = SyncConfig.from_dict(config)
        git = GitClient(timeout=sync_config.git_timeout)
        top = find_root(Path(root or os.getcwd()), git)
    except CommandError as e:
        click.echo(str(e), err=True)
        ctx.exit(e.exit_code)

    ctx.call_on_close(lambda: os.chdir(top))

    github = GitHubClient(
        token=config['github'].get('token') or None,
        host=sync_config.host,
        api_url=config['github'].get('api_url', 'https://api.github.com'),
        timeout=sync_config.gh_timeout,
    )
    return SyncService(root=top, sync_config=sync_config, git_client=git, github_client=github)


def run_workflow(
    ctx: click.Context,
    make_iter: Callable[[], Iterator[str]],
    title: str,
    output_json_flag: bool,
    pretty: bool,
) -> None:
    """Render a service workflow and exit with a code reflecting its result."""
    progress_iter = make_iter()
    try:
        if pretty:
            result = output_pretty(progress_iter, title)
        elif output_json_flag:
            result = output_json(progress_iter)
        else:
            result = output_simple(progress_iter, f"{title} complete")
    except CommandError as e:
        click.echo(str(e), err=True)
        ctx.exit(e.exit_code)
    except KeyboardInterrupt as e:
        click.echo("\nInterrupted; re-run to finish the remaining repositories", err=True)
        ctx.exit(get_exit_code_for_exception(e))

    if result is not None and not result.success:
        sys.stderr.flush()
        ctx.exit(PARTIAL_SUCCESS)
