"""
Git client infrastructure for websync.

Provides a clean abstraction over git command execution.
All git operations go through this client, making them:
- Easy to mock for testing
- Consistent in error handling
- Isolated from business logic

This is the only module that reads git's human-readable output;
callers receive booleans, values or outcome enums.
"""

import re
import subprocess
from typing import Optional, List, Sequence, Tuple
import logging

from ..domain.outcome import MergeResult, PushResult

logger = logging.getLogger(__name__)

# Substrings of `git push` output that mean the user may not write to the remote
PERMISSION_MARKERS = ("Permission denied", "403")

# Trailing owner/name of https://host/owner/name(.git) or git@host:owner/name(.git)
SLUG_PATTERN = re.compile(r'[:/]([^/:]+)/([^/:]+?)(?:\.git)?/?$')


class GitClient:
    """
    Abstraction over git commands.

    Provides methods for the git operations the sync workflow needs,
    with consistent error handling and return types.

    Example:
        client = GitClient()
        if client.is_detached("/path/to/repo"):
            client.checkout("/path/to/repo", "main")
    """

    def __init__(self, timeout: int = 120):
        """
        Initialize GitClient.

        Args:
            timeout: Command timeout in seconds (default: 120)
        """
        self.timeout = timeout

    def _run(
        self,
        args: Sequence[str],
        cwd: str,
        capture_stderr: bool = False,
        strip: bool = True
    ) -> Tuple[Optional[str], int]:
        """
        Run a git command.

        Args:
            args: Arguments after ``git``
            cwd: Working directory
            capture_stderr: Include stderr in output
            strip: Strip surrounding whitespace (porcelain formats need leading spaces)

        Returns:
            Tuple of (stdout, returncode)
        """
        cmd = ['git', *args]
        try:
            result = subprocess.run(
                cmd,
                cwd=str(cwd),
                capture_output=True,
                text=True,
                timeout=self.timeout
            )

            output = result.stdout
            if capture_stderr and result.stderr:
                output += result.stderr

            if result.returncode != 0:
                logger.debug(f"git {' '.join(args)} exited {result.returncode} in {cwd}: "
                             f"{result.stderr.strip()}")

            if output:
                output = output.strip() if strip else output.rstrip("\n")
            return output or None, result.returncode

        except subprocess.TimeoutExpired:
            logger.warning(f"Git command timed out: {' '.join(cmd)}")
            return None, -1
        except OSError as e:
            logger.error(f"Git command failed: {' '.join(cmd)} - {e}")
            return None, -1

    def _ok(self, args: Sequence[str], cwd: str) -> bool:
        _, code = self._run(args, cwd=cwd)
        return code == 0

    # ------------------------------------------------------------------
    # Repository and remote inspection
    # ------------------------------------------------------------------

    def toplevel(self, path: str) -> Optional[str]:
        """Top-level directory of the working tree containing path."""
        output, code = self._run(['rev-parse', '--show-toplevel'], cwd=path)
        if code == 0 and output:
            return output
        return None

    def remote_url(self, path: str, remote: str = "origin") -> Optional[str]:
        """
        Get remote URL.

        Args:
            path: Path to git repository
            remote: Remote name (default: "origin")

        Returns:
            Remote URL or None if not found
        """
        output, code = self._run(['remote', 'get-url', remote], cwd=path)
        if code == 0 and output:
            return output
        return None

    def remotes(self, path: str) -> List[str]:
        """Names of configured remotes."""
        output, code = self._run(['remote'], cwd=path)
        if code != 0 or not output:
            return []
        return [line.strip() for line in output.splitlines() if line.strip()]

    def remote_slug(self, path: str, remote: str = "origin") -> Optional[str]:
        """``owner/name`` of a GitHub-style remote URL (https or ssh form)."""
        url = self.remote_url(path, remote)
        if not url:
            return None
        match = SLUG_PATTERN.search(url)
        if not match:
            return None
        return f"{match.group(1)}/{match.group(2)}"

    def has_remote(self, path: str, remote: str) -> bool:
        return remote in self.remotes(path)

    def add_remote(self, path: str, remote: str, url: str) -> bool:
        return self._ok(['remote', 'add', remote, url], cwd=path)

    def set_remote_url(self, path: str, remote: str, url: str) -> bool:
        return self._ok(['remote', 'set-url', remote, url], cwd=path)

    # ------------------------------------------------------------------
    # HEAD state
    # ------------------------------------------------------------------

    def symbolic_ref(self, path: str) -> Optional[str]:
        """Full ref HEAD points at (e.g. refs/heads/main), None when detached."""
        output, code = self._run(['symbolic-ref', '-q', 'HEAD'], cwd=path)
        if code == 0 and output:
            return output
        return None

    def is_detached(self, path: str) -> bool:
        return self.symbolic_ref(path) is None

    def head_commit(self, path: str) -> Optional[str]:
        """Commit id HEAD resolves to."""
        output, code = self._run(['rev-parse', 'HEAD'], cwd=path)
        if code == 0 and output:
            return output
        return None

    def checkout(self, path: str, ref: str) -> bool:
        return self._ok(['checkout', ref], cwd=path)

    def is_ancestor(self, path: str, commit: str, ref: str = "HEAD") -> bool:
        """True if commit is already reachable from ref."""
        return self._ok(['merge-base', '--is-ancestor', commit, ref], cwd=path)

    def commits_ahead(self, path: str, base: str) -> int:
        """Number of commits in HEAD that are not in base (0 if base is unknown)."""
        output, code = self._run(['rev-list', '--count', f'{base}..HEAD'], cwd=path)
        if code == 0 and output:
            try:
                return int(output)
            except ValueError:
                return 0
        return 0

    # ------------------------------------------------------------------
    # Working tree
    # ------------------------------------------------------------------

    def status_porcelain(self, path: str) -> List[str]:
        """Lines of ``git status --porcelain``."""
        output, code = self._run(['status', '--porcelain'], cwd=path, strip=False)
        if code != 0 or not output:
            return []
        return output.splitlines()

    def changed_paths(self, path: str) -> List[str]:
        """Paths reported by ``git status --porcelain`` (rename targets for renames)."""
        paths = []
        for line in self.status_porcelain(path):
            entry = line[3:]
            if ' -> ' in entry:
                entry = entry.split(' -> ', 1)[1]
            paths.append(entry.strip().strip('"').rstrip('/'))
        return paths

    def has_uncommitted_changes(self, path: str) -> bool:
        """Check if repo has uncommitted changes."""
        return bool(self.status_porcelain(path))

    def add(self, path: str, paths: Optional[Sequence[str]] = None) -> bool:
        """Stage the given paths, or everything when paths is None."""
        if paths:
            return self._ok(['add', '--', *paths], cwd=path)
        return self._ok(['add', '-A'], cwd=path)

    def commit(self, path: str, message: str) -> Optional[str]:
        """
        Commit staged changes.

        Returns:
            The new commit id, or None if the commit failed
        """
        if not self._ok(['commit', '-m', message], cwd=path):
            return None
        return self.head_commit(path)

    # ------------------------------------------------------------------
    # Remote synchronisation
    # ------------------------------------------------------------------

    def fetch(self, path: str, remote: str = "origin") -> bool:
        """
        Fetch from remote.

        Returns:
            True if successful
        """
        return self._ok(['fetch', remote], cwd=path)

    def pull(self, path: str, remote: str = "origin", branch: Optional[str] = None) -> bool:
        """
        Pull from remote.

        Returns:
            True if successful
        """
        args = ['pull', remote]
        if branch:
            args.append(branch)
        return self._ok(args, cwd=path)

    def is_merging(self, path: str) -> bool:
        """True while a conflicted merge is waiting for resolution."""
        return self._ok(['rev-parse', '-q', '--verify', 'MERGE_HEAD'], cwd=path)

    def merge(self, path: str, ref: str) -> MergeResult:
        """
        Merge ref into the current branch.

        A merge that leaves conflicts in the tree is final: the next
        candidate cannot be merged on top of it. A merge git refused
        outright (unknown ref, unrelated histories) leaves the tree
        untouched, so the caller may try another ref.
        """
        _, code = self._run(['merge', ref, '--no-edit'], cwd=path)
        if code == 0:
            return MergeResult.SUCCESS
        if self.is_merging(path):
            return MergeResult.CONFLICT_FINAL
        return MergeResult.CONFLICT_FALLBACK

    def push(self, path: str, remote: str, refspec: str) -> Tuple[PushResult, str]:
        """
        Push a refspec.

        Returns:
            Tuple of (PushResult, combined output)
        """
        output, code = self._run(['push', remote, refspec], cwd=path, capture_stderr=True)
        output = output or ""
        if code == 0:
            return PushResult.SUCCESS, output
        if any(marker in output for marker in PERMISSION_MARKERS):
            return PushResult.PERMISSION_DENIED, output
        return PushResult.OTHER_FAILURE, output

    # ------------------------------------------------------------------
    # Submodules
    # ------------------------------------------------------------------

    def submodule_update(
        self,
        path: str,
        names: Optional[Sequence[str]] = None,
        remote: bool = True,
        recursive: bool = False
    ) -> bool:
        """Run ``git submodule update`` for all or the named submodules."""
        args = ['submodule', 'update']
        if remote:
            args.append('--remote')
        if recursive:
            args.append('--recursive')
        if names:
            args.extend(['--', *names])
        return self._ok(args, cwd=path)

    def submodule_sync(self, path: str, name: str) -> bool:
        return self._ok(['submodule', 'sync', '--', name], cwd=path)

    def set_submodule_url(self, path: str, name: str, url: str) -> bool:
        """Rewrite the URL recorded for a submodule in .gitmodules."""
        return self._ok(['config', '-f', '.gitmodules', f'submodule.{name}.url', url], cwd=path)
