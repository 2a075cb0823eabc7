"""
Shared fixtures: throwaway git repositories with a fixed identity.
"""

import shutil
import subprocess

import pytest

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


def git(cwd, *args):
    """Run git in cwd and return stripped stdout; raise on failure."""
    result = subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


def commit_file(repo, name, content, message=None):
    """Write a file, commit it and return the new commit id."""
    (repo / name).write_text(content)
    git(repo, "add", name)
    git(repo, "commit", "-q", "-m", message or f"Write {name}")
    return git(repo, "rev-parse", "HEAD")


@pytest.fixture
def git_env(monkeypatch, tmp_path):
    """Isolate git from the user's configuration."""
    global_config = tmp_path / "gitconfig"
    global_config.write_text("")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(global_config))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test User")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test User")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")
    return tmp_path


@pytest.fixture
def make_repo(git_env):
    """Factory creating a repository on branch main with one commit."""
    def _make(name="repo"):
        repo = git_env / name
        repo.mkdir()
        git(repo, "init", "-q")
        git(repo, "symbolic-ref", "HEAD", "refs/heads/main")
        commit_file(repo, "README.md", "hello\n", "Initial commit")
        return repo
    return _make
