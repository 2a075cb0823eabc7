"""
Repository descriptor domain object for websync.

A descriptor is pure configuration: it names a repository, where it lives
on disk, which account it was forked from and which branch receives pushes.
Descriptors are built once per run and never mutated.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Any


class RepoGroup(Enum):
    """Which list a repository was configured in."""
    ROOT = "root"
    SUBMODULE = "submodule"
    TRADE = "trade"


@dataclass(frozen=True)
class RepoDescriptor:
    """
    A repository managed by the sync workflow.

    Attributes:
        name: Directory and GitHub repository name (e.g. "localsite")
        path: Absolute path of the working tree
        parent_account: Fallback owner of the canonical parent repository
        group: Root, submodule or trade repo
        target_branch: Branch that receives pushes and pull requests
        is_submodule: Whether the root records a submodule pointer for it
    """
    name: str
    path: Path
    parent_account: str
    group: RepoGroup = RepoGroup.SUBMODULE
    target_branch: str = "main"
    is_submodule: bool = True

    @property
    def exists(self) -> bool:
        """True when the working tree is present on disk."""
        return self.path.is_dir()

    @property
    def is_root(self) -> bool:
        return self.group == RepoGroup.ROOT

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'name': self.name,
            'path': str(self.path),
            'parent_account': self.parent_account,
            'group': self.group.value,
            'target_branch': self.target_branch,
            'is_submodule': self.is_submodule,
        }
