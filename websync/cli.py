#!/usr/bin/env python3

import copy

import click

from websync.exit_codes import USAGE_ERROR
from websync.commands.update import update_handler
from websync.commands.commit import commit_handler
from websync.commands.fix import fix_handler
from websync.commands.config import config_cmd


@click.group(invoke_without_command=True)
@click.version_option(package_name="websync")
@click.pass_context
def cli(ctx):
    """websync - Keep a webroot, its submodules and trade repos in sync.

    Merges upstream changes into every repository and pushes local work
    back, forking and opening pull requests where you lack push access.

    \b
    Usage:
        websync update                     - Run comprehensive update workflow
        websync commit                     - Commit webroot, all submodules, and trade repos
        websync commit [name]              - Commit specific submodule
        websync commit submodules          - Commit all submodules only
        websync fix                        - Check and fix detached HEAD states in all repos

    \b
    Options:
        nopr                               - Skip PR creation on push failures
    """
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help(), err=True)
        ctx.exit(USAGE_ERROR)


cli.add_command(update_handler, name='update')
cli.add_command(commit_handler, name='commit')
cli.add_command(fix_handler, name='fix')
cli.add_command(config_cmd)


def create_alias(original_cmd, alias):
    """Register original_cmd under another name, hidden from help."""
    alias_cmd = copy.copy(original_cmd)
    alias_cmd.name = alias
    alias_cmd.hidden = True
    return alias_cmd


cli.add_command(create_alias(fix_handler, 'fix-heads'))


def main():
    cli()

if __name__ == "__main__":
    main()
