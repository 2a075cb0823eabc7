"""
Detached-HEAD repair for websync.

`git submodule update` leaves submodules checked out at a bare commit.
Committing there would produce commits no branch points at, so every
commit and update pass first moves the checkout back onto main (or
master) and merges the stray commit in when the branch lacks it.
"""

import logging
from typing import Generator, Optional

from ..domain.outcome import HeadState, MergeResult
from ..domain.repository import RepoDescriptor
from ..infra.git_client import GitClient

logger = logging.getLogger(__name__)

FALLBACK_BRANCHES = ("main", "master")


class HeadRepairService:
    """
    Moves detached checkouts back onto a branch.

    Example:
        service = HeadRepairService()
        state = yield from service.repair(repo)
        if state.repaired:
            ...
    """

    def __init__(self, git_client: Optional[GitClient] = None):
        self.git = git_client or GitClient()

    def repair(self, repo: RepoDescriptor) -> Generator[str, None, HeadState]:
        """
        Repair a detached HEAD in one repository.

        Yields:
            Progress messages

        Returns:
            HeadState describing what was done
        """
        path = str(repo.path)
        if not self.git.is_detached(path):
            return HeadState.ATTACHED

        yield f"⚠️ {repo.name} is in detached HEAD state - fixing..."
        detached_commit = self.git.head_commit(path)

        branch = None
        for candidate in FALLBACK_BRANCHES:
            if self.git.checkout(path, candidate):
                branch = candidate
                break
        if branch is None:
            yield f"⚠️ No main/master branch found in {repo.name}"
            return HeadState.NO_BRANCH

        if not detached_commit or self.git.is_ancestor(path, detached_commit):
            yield f"✅ Detached commit already in {repo.name} {branch} branch"
            return HeadState.SWITCHED

        yield f"🔄 Merging detached commit {detached_commit} into {branch} branch"
        if self.git.merge(path, detached_commit) == MergeResult.SUCCESS:
            yield f"✅ Successfully merged detached HEAD in {repo.name}"
            return HeadState.MERGED

        yield f"⚠️ Merge conflicts in {repo.name} - manual resolution needed"
        return HeadState.CONFLICT
