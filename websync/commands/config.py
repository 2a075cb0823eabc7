import json

import click
import yaml

from websync.config import get_config_path, get_default_config, load_config, save_config


@click.group("config")
def config_cmd():
    """Configuration management commands."""
    pass


@config_cmd.command("show")
@click.option("--pretty", is_flag=True, help="Display as formatted JSON instead of single-line JSONL")
@click.option("--yaml", "as_yaml", is_flag=True, help="Display as YAML")
@click.option("--path", is_flag=True, help="Show the config file path being used")
def show_config(pretty, as_yaml, path):
    """Show the current configuration with all merges applied.

    By default, outputs single-line JSON (JSONL format).
    Use --pretty for human-readable formatted output.
    Use --path to see which config file is being used.
    """
    if path:
        print(json.dumps({"config_path": str(get_config_path())}))
        return

    config = load_config()

    if as_yaml:
        print(yaml.safe_dump(config, default_flow_style=False, sort_keys=False), end="")
    elif pretty:
        print(json.dumps(config, indent=2, ensure_ascii=False))
    else:
        print(json.dumps(config, ensure_ascii=False))


@config_cmd.command("init")
@click.option("--format", "fmt", type=click.Choice(["json", "yaml", "toml"]), default="json",
              help="File format to write")
@click.option("--force", is_flag=True, help="Overwrite an existing configuration file")
def init_config(fmt, force):
    """Write the default configuration to ~/.websync/config.<format>."""
    config_path = get_config_path().parent / f"config.{fmt}"
    if config_path.exists() and not force:
        click.echo(f"Configuration already exists at {config_path} (use --force to overwrite)", err=True)
        raise click.exceptions.Exit(1)
    written = save_config(get_default_config(), config_path)
    click.echo(f"Default configuration written to {written}")
