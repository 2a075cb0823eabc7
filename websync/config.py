#!/usr/bin/env python3

import os
import json
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Tuple, FrozenSet

import logging
import sys

import toml
import yaml

from .domain.repository import RepoDescriptor, RepoGroup
from .exit_codes import ConfigError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s: %(message)s",
    handlers=[
        logging.StreamHandler(sys.stderr) # Default to stderr
    ]
)
logger = logging.getLogger("websync")

CONFIG_FILENAMES = ['config.json', 'config.toml', 'config.yaml', 'config.yml']


def get_config_path():
    """Get the path to the configuration file.

    Checks in order:
    1. WEBSYNC_CONFIG environment variable
    2. ~/.websync/ directory
    """
    if 'WEBSYNC_CONFIG' in os.environ:
        path = Path(os.environ['WEBSYNC_CONFIG'])
        if path.exists():
            return path

    websync_dir = Path.home() / '.websync'
    for filename in CONFIG_FILENAMES:
        path = websync_dir / filename
        if path.exists() and path.stat().st_size > 10:  # Not empty/trivial
            return path

    # If no file exists, return default path for saving
    return websync_dir / 'config.json'


def load_config():
    """Load configuration from file."""
    config_path = get_config_path()

    # Start with default config
    config = get_default_config()

    # Load from file if it exists
    if config_path.exists():
        try:
            if config_path.suffix.lower() in ['.toml']:
                with open(config_path, 'rb') as f:
                    file_config = tomllib.load(f)
            elif config_path.suffix.lower() in ['.yaml', '.yml']:
                with open(config_path, 'r') as f:
                    file_config = yaml.safe_load(f) or {}
            else:
                # Default to JSON format
                with open(config_path, 'r') as f:
                    file_config = json.load(f)

            # Merge file config with defaults
            config = merge_configs(config, file_config)
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.error(f"Error loading config from {config_path}: {e}")

    # Apply environment variable overrides
    config = apply_env_overrides(config)

    return config


def save_config(config, config_path=None):
    """Save configuration to file."""
    config_path = Path(config_path) if config_path else get_config_path()

    # Create directory if it doesn't exist
    config_path.parent.mkdir(parents=True, exist_ok=True)

    if config_path.suffix.lower() in ['.toml']:
        with open(config_path, 'w') as f:
            toml.dump(config, f)
    elif config_path.suffix.lower() in ['.yaml', '.yml']:
        with open(config_path, 'w') as f:
            yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False)
    else:
        # Default to JSON format
        with open(config_path, 'w') as f:
            json.dump(config, f, indent=2)

    logger.info(f"Configuration saved to {config_path}")
    return config_path


def get_default_config():
    """Get default configuration."""
    return {
        "root": {
            "name": "webroot",
            "expected_origin": "webroot",
            "branch": "main",
        },
        "repos": {
            "submodules": [
                "cloud", "comparison", "feed", "home", "localsite",
                "products", "projects", "realitystream", "swiper", "team",
            ],
            "trade_repos": ["exiobase", "profile", "useeio.js", "io"],
            "non_submodules": ["webroot", "exiobase", "profile", "useeio.js", "io"],
            "branch_overrides": {"useeio.js": "dev"},
            "dev_fallback": ["useeio.js"],
        },
        "parents": {
            "known": ["modelearth", "partnertools"],
            "capital": "ModelEarth",
            "default": "modelearth",
            "capital_repos": ["localsite", "home", "webroot"],
            "skip_marker": "partnertools",
        },
        "github": {
            "host": "https://github.com",
            "api_url": "https://api.github.com",
            "token": "",
        },
        "commands": {
            "git_timeout": 120,
            "gh_timeout": 60,
        },
        "logging": {
            "level": "INFO",
        },
    }


def merge_configs(base_config, override_config):
    """
    Recursively merge two configuration dictionaries.

    Args:
        base_config (dict): Base configuration
        override_config (dict): Configuration to merge/override with

    Returns:
        dict: Merged configuration
    """
    merged = base_config.copy()

    for key, value in override_config.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            # Recursively merge nested dictionaries
            merged[key] = merge_configs(merged[key], value)
        else:
            # Override or add new key
            merged[key] = value

    return merged


def apply_env_overrides(config):
    """
    Apply environment variable overrides to configuration.
    Environment variables follow the pattern: WEBSYNC_SECTION_KEY
    For example: WEBSYNC_ROOT_EXPECTED_ORIGIN=mysite
    """
    env_prefix = "WEBSYNC_"

    for env_key, value in os.environ.items():
        if not env_key.startswith(env_prefix) or env_key == "WEBSYNC_CONFIG":
            continue

        key_parts = env_key[len(env_prefix):].lower().split('_')

        # Convert value
        if value.lower() in ('true', 'yes', 'on'):
            typed_value = True
        elif value.lower() in ('false', 'no', 'off'):
            typed_value = False
        elif value.isdigit():
            typed_value = int(value)
        else:
            typed_value = value

        current_level = config
        i = 0
        while i < len(key_parts):
            # Find the longest key in current_level that is a prefix of the remaining key_parts
            best_match_len = 0
            matched_key = None

            for config_key in current_level.keys():
                config_key_parts_from_key = config_key.split('_')
                if key_parts[i : i + len(config_key_parts_from_key)] == config_key_parts_from_key:
                    if len(config_key_parts_from_key) > best_match_len:
                        best_match_len = len(config_key_parts_from_key)
                        matched_key = config_key

            if matched_key:
                # If we are at the end of the env var, we have found the key to set
                if i + best_match_len == len(key_parts):
                    # Lists are given comma separated
                    if isinstance(current_level[matched_key], list) and isinstance(typed_value, str):
                        typed_value = [v.strip() for v in typed_value.split(',') if v.strip()]
                    current_level[matched_key] = typed_value
                    break

                # Otherwise, we descend into the dictionary
                if isinstance(current_level[matched_key], dict):
                    current_level = current_level[matched_key]
                    i += best_match_len
                else:
                    # Path conflict, e.g., env var is longer but we found a non-dict value
                    break
            else:
                # No match found
                break

    return config


@dataclass(frozen=True)
class SyncConfig:
    """
    Immutable view of the configuration consumed by the sync workflow.

    Built once from the merged config dict and passed to SyncService,
    so the repository lists are explicit values rather than module globals.
    """
    root_name: str = "webroot"
    expected_origin: str = "webroot"
    root_branch: str = "main"
    submodules: Tuple[str, ...] = ()
    trade_repos: Tuple[str, ...] = ()
    non_submodules: FrozenSet[str] = frozenset()
    branch_overrides: Dict[str, str] = field(default_factory=dict)
    dev_fallback: FrozenSet[str] = frozenset()
    known_parents: Tuple[str, ...] = ("modelearth", "partnertools")
    capital_parent: str = "ModelEarth"
    default_parent: str = "modelearth"
    capital_repos: FrozenSet[str] = frozenset()
    skip_marker: str = "partnertools"
    host: str = "https://github.com"
    git_timeout: int = 120
    gh_timeout: int = 60

    @classmethod
    def from_dict(cls, config: dict) -> 'SyncConfig':
        """
        Build from a (possibly partial) config dict, filling gaps with defaults.

        Raises:
            ConfigError: if a section or value has the wrong shape
        """
        merged = merge_configs(get_default_config(), config or {})
        try:
            root = merged['root']
            repos = merged['repos']
            parents = merged['parents']
            return cls(
                root_name=root['name'],
                expected_origin=root['expected_origin'],
                root_branch=root['branch'],
                submodules=tuple(repos['submodules']),
                trade_repos=tuple(repos['trade_repos']),
                non_submodules=frozenset(repos['non_submodules']),
                branch_overrides=dict(repos['branch_overrides']),
                dev_fallback=frozenset(repos['dev_fallback']),
                known_parents=tuple(parents['known']),
                capital_parent=parents['capital'],
                default_parent=parents['default'],
                capital_repos=frozenset(parents['capital_repos']),
                skip_marker=parents['skip_marker'],
                host=merged['github']['host'].rstrip('/'),
                git_timeout=int(merged['commands']['git_timeout']),
                gh_timeout=int(merged['commands']['gh_timeout']),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    def target_branch(self, name: str) -> str:
        """Branch that receives pushes for the named repository."""
        return self.branch_overrides.get(name, self.root_branch)

    def fallback_parent(self, name: str) -> str:
        """Owner casing used when no upstream remote identifies the parent."""
        if name in self.capital_repos:
            return self.capital_parent
        return self.default_parent

    def merge_candidates(self, name: str) -> List[str]:
        """Upstream branches to try merging, in order."""
        candidates = ["main", "master"]
        if name in self.dev_fallback:
            candidates.append("dev")
        return candidates

    def repo_url(self, account: str, name: str) -> str:
        return f"{self.host}/{account}/{name}.git"

    def descriptor(self, name: str, group: RepoGroup, root: Path) -> RepoDescriptor:
        """Build the descriptor for one configured repository."""
        path = root if group == RepoGroup.ROOT else root / name
        return RepoDescriptor(
            name=name,
            path=path,
            parent_account=self.fallback_parent(name),
            group=group,
            target_branch=self.target_branch(name),
            is_submodule=name not in self.non_submodules,
        )

    def root_repo(self, root: Path) -> RepoDescriptor:
        return self.descriptor(self.root_name, RepoGroup.ROOT, root)

    def submodule_repos(self, root: Path) -> List[RepoDescriptor]:
        return [self.descriptor(n, RepoGroup.SUBMODULE, root) for n in self.submodules]

    def trade_repo_list(self, root: Path) -> List[RepoDescriptor]:
        return [self.descriptor(n, RepoGroup.TRADE, root) for n in self.trade_repos]

    def all_repos(self, root: Path) -> List[RepoDescriptor]:
        """Root, then submodules, then trade repos."""
        return [self.root_repo(root)] + self.submodule_repos(root) + self.trade_repo_list(root)

    def find(self, name: str, root: Path):
        """Return the descriptor for a configured name, or None."""
        for repo in self.all_repos(root):
            if repo.name == name:
                return repo
        return None
