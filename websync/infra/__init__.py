"""
Infrastructure layer for websync.

Contains abstractions for external systems:
- GitClient: Git command execution
- GitHubClient: Forks, login lookup and pull requests (gh CLI or REST)

These provide clean interfaces that can be mocked for testing.
"""

from .git_client import GitClient
from .github_client import GitHubClient

__all__ = [
    'GitClient',
    'GitHubClient',
]
