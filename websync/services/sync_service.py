"""
Sync orchestration service for websync.

Runs the update, commit and fix workflows across the root repository,
its submodules and the trade repos. Every step talks to git and GitHub
through the infra clients and branches only on their outcome enums.

Per-repository failures are recorded and reported; only a wrong root
repository aborts a run.
"""

import logging
from pathlib import Path
from typing import Generator, Iterable, Iterator, Optional

from ..config import SyncConfig, load_config
from ..domain.outcome import (
    MergeResult,
    OperationDetail,
    OperationSummary,
    PushResult,
    RunOutcome,
)
from ..domain.repository import RepoDescriptor, RepoGroup
from ..exit_codes import CommandError, WrongRepositoryError
from ..infra.git_client import GitClient
from ..infra.github_client import GitHubClient
from .head_repair_service import HeadRepairService

logger = logging.getLogger(__name__)

SUBMODULES_SELECTOR = "submodules"
PR_BODY = "Automated update from websync commit workflow"
ROOT_PR_BODY = ("Automated update from websync commit workflow - includes submodule "
                "reference updates and configuration changes")


def find_root(start: Path, git_client: Optional[GitClient] = None) -> Path:
    """
    Resolve the top level of the working tree containing start.

    Raises:
        CommandError: if start is not inside a git working tree
    """
    git = git_client or GitClient()
    toplevel = git.toplevel(str(start))
    if not toplevel:
        raise CommandError(f"Not a git repository: {start}")
    return Path(toplevel)


class SyncService:
    """
    Orchestrates the sync workflows for one root repository.

    Each workflow is a generator: it yields progress messages and returns
    an OperationSummary, which is also kept in ``last_result``.

    Example:
        service = SyncService(root=Path("/srv/webroot"))
        for message in service.update():
            print(message)
        print(service.last_result.failed)
    """

    def __init__(
        self,
        root: Path,
        sync_config: Optional[SyncConfig] = None,
        git_client: Optional[GitClient] = None,
        github_client: Optional[GitHubClient] = None,
        head_repair: Optional[HeadRepairService] = None,
    ):
        """
        Initialize SyncService.

        Args:
            root: Top level of the root repository
            sync_config: Repository lists and naming rules (loads default if None)
            git_client: GitClient instance (creates new if None)
            github_client: GitHubClient instance (creates new if None)
            head_repair: HeadRepairService instance (creates new if None)
        """
        self.root = Path(root)
        self.config = sync_config or SyncConfig.from_dict(load_config())
        self.git = git_client or GitClient(timeout=self.config.git_timeout)
        self.github = github_client or GitHubClient(host=self.config.host, timeout=self.config.gh_timeout)
        self.heads = head_repair or HeadRepairService(self.git)
        self.last_result: Optional[OperationSummary] = None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def root_repo(self) -> RepoDescriptor:
        return self.config.root_repo(self.root)

    def check_root(self) -> None:
        """
        Abort unless origin identifies the expected root repository.

        Raises:
            WrongRepositoryError: origin is missing or does not match
        """
        origin = self.git.remote_url(str(self.root), "origin") or ""
        if self.config.expected_origin not in origin:
            raise WrongRepositoryError(f"⚠️ ERROR: Not in {self.config.root_name} repository.")

    @staticmethod
    def _present(repos: Iterable[RepoDescriptor]) -> Iterator[RepoDescriptor]:
        for repo in repos:
            if repo.exists:
                yield repo
            else:
                logger.debug(f"Skipping {repo.name} (not checked out at {repo.path})")

    @staticmethod
    def _detail(repo: RepoDescriptor, outcome: RunOutcome, message: Optional[str] = None,
                error: Optional[str] = None, **metadata) -> OperationDetail:
        return OperationDetail(
            repo_path=str(repo.path),
            repo_name=repo.name,
            outcome=outcome,
            message=message,
            error=error,
            metadata=metadata,
        )

    def _owner(self, repo: RepoDescriptor, remote: str) -> Optional[str]:
        slug = self.git.remote_slug(str(repo.path), remote)
        return slug.split('/', 1)[0] if slug else None

    def parent_account(self, repo: RepoDescriptor) -> str:
        """
        Account that owns the canonical parent of repo.

        An upstream remote naming one of the known parents wins; otherwise
        the fixed casing table from the configuration decides.
        """
        slug = self.git.remote_slug(str(repo.path), "upstream")
        if slug:
            owner, _, name = slug.partition('/')
            if name == repo.name and owner in self.config.known_parents:
                return owner
        return repo.parent_account

    # ------------------------------------------------------------------
    # update
    # ------------------------------------------------------------------

    def ensure_upstream(self, repo: RepoDescriptor) -> Generator[str, None, bool]:
        """Add the upstream remote if it is missing. Never rewrites an existing one."""
        path = str(repo.path)
        if self.git.has_remote(path, "upstream"):
            return True
        url = self.config.repo_url(repo.parent_account, repo.name)
        if not self.git.add_remote(path, "upstream", url):
            yield f"⚠️ Could not add upstream remote to {repo.name}"
            return False
        yield f"➕ Added upstream {url} to {repo.name}"
        return True

    def merge_upstream(self, repo: RepoDescriptor) -> Generator[str, None, MergeResult]:
        """
        Fetch upstream and merge the first branch that merges cleanly.

        Candidates are main, then master, then dev for the designated
        repositories. A merge that leaves conflicts stops the search.
        """
        path = str(repo.path)
        if not self.git.fetch(path, "upstream"):
            yield f"⚠️ Could not fetch upstream for {repo.name}"

        for branch in self.config.merge_candidates(repo.name):
            result = self.git.merge(path, f"upstream/{branch}")
            if result == MergeResult.SUCCESS:
                yield f"✅ Merged upstream/{branch} into {repo.name}"
                return MergeResult.SUCCESS
            if result == MergeResult.CONFLICT_FINAL:
                break

        yield f"⚠️ Merge conflicts in {repo.name} - manual resolution needed"
        return MergeResult.CONFLICT_FINAL

    def _update_repo(self, repo: RepoDescriptor, pull_origin: bool) -> Generator[str, None, OperationDetail]:
        """
        Pull (optionally) and merge upstream into one repository.

        Repositories whose origin is owned by the skip marker account are
        only pulled. The marker is compared with the owner parsed from the
        origin URL, not searched for anywhere in the URL, so a repository
        merely named after it is still merged.
        """
        path = str(repo.path)
        pull_failed = False
        if pull_origin and not self.git.pull(path, "origin", self.config.root_branch):
            yield f"⚠️ Pull conflicts in {repo.name}"
            pull_failed = True

        if self._owner(repo, "origin") == self.config.skip_marker:
            yield f"⏭️ {repo.name} tracks {self.config.skip_marker}, skipping upstream merge"
            if pull_failed:
                return self._detail(repo, RunOutcome.MERGE_CONFLICT, error="Pull from origin failed")
            return self._detail(repo, RunOutcome.UPDATED, message="pulled from origin")

        yield from self.ensure_upstream(repo)
        merge = yield from self.merge_upstream(repo)
        if merge != MergeResult.SUCCESS:
            return self._detail(repo, RunOutcome.MERGE_CONFLICT,
                                error="Merge conflicts - manual resolution needed")
        if pull_failed:
            return self._detail(repo, RunOutcome.MERGE_CONFLICT, error="Pull from origin failed")
        return self._detail(repo, RunOutcome.UPDATED, message="merged from upstream")

    def update(self) -> Generator[str, None, OperationSummary]:
        """
        Pull and merge every repository from origin and upstream.

        Order: root, submodules, submodule pointer refresh, detached-HEAD
        repair, trade repos.

        Yields:
            Progress messages

        Returns:
            OperationSummary with one detail per repository
        """
        result = OperationSummary(operation="update")
        self.last_result = result
        self.check_root()

        yield "🔄 Starting update workflow..."
        root = self.root_repo
        yield f"📥 Updating {root.name}..."
        result.add_detail((yield from self._update_repo(root, pull_origin=True)))

        yield "📥 Updating submodules..."
        for repo in self._present(self.config.submodule_repos(self.root)):
            result.add_detail((yield from self._update_repo(repo, pull_origin=False)))

        yield "🔄 Updating submodule references..."
        if not self.git.submodule_update(str(self.root), remote=True, recursive=True):
            yield "⚠️ Submodule reference update failed"

        yield "🔍 Checking for detached HEAD states after update..."
        yield from self._repair_all(result)

        yield "📥 Updating trade repos..."
        for repo in self._present(self.config.trade_repo_list(self.root)):
            result.add_detail((yield from self._update_repo(repo, pull_origin=True)))

        yield "✅ Update completed! Use: websync commit"
        return result

    # ------------------------------------------------------------------
    # fix
    # ------------------------------------------------------------------

    def _repair_all(self, result: OperationSummary) -> Generator[str, None, int]:
        fixed = 0
        for repo in self._present(self.config.all_repos(self.root)):
            yield f"📁 Checking {repo.name}..."
            state = yield from self.heads.repair(repo)
            if state.repaired:
                fixed += 1
                result.add_detail(self._detail(repo, RunOutcome.DETACHED_HEAD_FIXED,
                                               message=state.value))
            elif not state.ok:
                result.add_detail(self._detail(repo, RunOutcome.FAILED,
                                               error=f"Detached HEAD not repaired ({state.value})"))
        return fixed

    def fix_heads(self) -> Generator[str, None, OperationSummary]:
        """
        Scan every repository for a detached HEAD and repair it.

        Returns:
            OperationSummary whose successful count is the number of repairs
        """
        result = OperationSummary(operation="fix")
        self.last_result = result
        self.check_root()

        yield "🔍 Checking for detached HEAD states in all repositories..."
        fixed = yield from self._repair_all(result)

        if fixed > 0:
            yield f"✅ Fixed detached HEAD states in {fixed} repositories"
            yield "💡 You may want to run 'websync commit' to update submodule references"
        else:
            yield "✅ No detached HEAD states found"
        return result

    # ------------------------------------------------------------------
    # commit
    # ------------------------------------------------------------------

    def commit_push(self, repo: RepoDescriptor, skip_pr: bool = False) -> Generator[str, None, OperationDetail]:
        """
        Commit local changes in repo and get them to GitHub.

        Direct push first; a permission failure switches to the fork
        workflow, any other failure to a feature-branch pull request.
        A repository left mid-merge (by head repair or an earlier update)
        is reported and never staged.
        """
        path = str(repo.path)
        state = yield from self.heads.repair(repo)
        if not state.ok or self.git.is_merging(path):
            yield f"⚠️ {repo.name} has an unresolved merge - manual resolution needed before committing"
            return self._detail(repo, RunOutcome.FAILED, error="Unresolved merge - manual resolution needed")

        if not self.git.has_uncommitted_changes(path):
            return self._detail(repo, RunOutcome.NO_OP, message="No changes")

        if not self.git.add(path):
            yield f"⚠️ Could not stage changes in {repo.name}"
            return self._detail(repo, RunOutcome.FAILED, error="git add failed")
        commit = self.git.commit(path, f"Update {repo.name}")
        if not commit:
            yield f"⚠️ Commit failed in {repo.name}"
            return self._detail(repo, RunOutcome.FAILED, error="Commit failed")

        target = repo.target_branch
        push, output = self.git.push(path, "origin", f"HEAD:{target}")
        if push == PushResult.SUCCESS:
            yield f"✅ Successfully pushed {repo.name} to {target} branch"
            return self._detail(repo, RunOutcome.PUSHED, commit=commit, branch=target)

        if push == PushResult.PERMISSION_DENIED:
            return (yield from self._fork_workflow(repo, commit, skip_pr))

        logger.debug(f"Push of {repo.name} failed: {output}")
        if skip_pr:
            yield f"⚠️ Push failed for {repo.name}"
            return self._detail(repo, RunOutcome.FAILED, error="Push failed", commit=commit)
        return (yield from self._feature_branch_pr(repo, commit))

    def _setup_fork(self, repo: RepoDescriptor, parent: str, login: str) -> Generator[str, None, bool]:
        path = str(repo.path)
        origin_slug = self.git.remote_slug(path, "origin")
        if origin_slug and origin_slug.lower() == f"{login}/{repo.name}".lower():
            yield f"🍴 origin already points at your fork {origin_slug}"
            return True

        yield f"🍴 Creating fork of {parent}/{repo.name}..."
        fork_url = self.github.fork(parent, repo.name)
        if not fork_url:
            yield "⚠️ Failed to create/find fork"
            return False
        yield f"✅ Fork created/found: {fork_url}"

        clone_url = fork_url if fork_url.endswith(".git") else f"{fork_url}.git"
        if not self.git.set_remote_url(path, "origin", clone_url):
            if not self.git.set_remote_url(path, "origin", self.config.repo_url(login, repo.name)):
                yield f"⚠️ Could not point origin of {repo.name} at the fork"
                return False
        yield "🔧 Updated origin remote to point to your fork"
        return True

    def _fork_workflow(self, repo: RepoDescriptor, commit: str, skip_pr: bool) -> Generator[str, None, OperationDetail]:
        yield "🔒 Permission denied - setting up fork workflow..."
        parent = self.parent_account(repo)
        yield f"📍 Detected parent: {parent}/{repo.name}"
        login = self.github.current_login()
        if not login:
            yield "⚠️ Could not determine GitHub username"
            return self._detail(repo, RunOutcome.FAILED, error="Could not determine GitHub username", commit=commit)

        if not (yield from self._setup_fork(repo, parent, login)):
            return self._detail(repo, RunOutcome.FAILED, error="Failed to create/find fork", commit=commit)

        target = repo.target_branch
        push, _ = self.git.push(str(repo.path), "origin", f"HEAD:{target}")
        if push != PushResult.SUCCESS:
            yield "⚠️ Failed to push to fork"
            return self._detail(repo, RunOutcome.FAILED, error="Failed to push to fork", commit=commit)
        yield f"✅ Successfully pushed {repo.name} to your fork"

        metadata = {'commit': commit, 'parent': f"{parent}/{repo.name}"}
        if not skip_pr:
            yield "📝 Creating pull request..."
            pr_url = self.github.create_pull_request(
                title=f"Update {repo.name}",
                body=PR_BODY,
                base=target,
                head=f"{login}:{target}",
                repo=f"{parent}/{repo.name}",
                cwd=str(repo.path),
            )
            if pr_url:
                yield f"🔄 Created PR: {pr_url}"
                metadata['pr_url'] = pr_url
            else:
                yield f"⚠️ PR creation failed for {repo.name}"

        if repo.is_submodule:
            metadata['root_reference'] = yield from self.update_root_reference(repo, commit, skip_pr)

        return self._detail(repo, RunOutcome.PUSHED_VIA_FORK, **metadata)

    def _feature_branch_pr(self, repo: RepoDescriptor, commit: str) -> Generator[str, None, OperationDetail]:
        path = str(repo.path)
        branch = f"feature-{repo.name}-updates"
        push, _ = self.git.push(path, "origin", f"HEAD:{branch}")
        pr_url = None
        if push == PushResult.SUCCESS:
            pr_url = self.github.create_pull_request(
                title=f"Update {repo.name}",
                body="Automated update",
                base=repo.target_branch,
                head=branch,
                cwd=path,
            )
        if not pr_url:
            yield f"🔄 PR creation failed for {repo.name}"
            return self._detail(repo, RunOutcome.FAILED, error="Push and feature-branch PR failed",
                                commit=commit)
        yield f"🔄 Created PR: {pr_url}"
        return self._detail(repo, RunOutcome.PR_OPENED, commit=commit, branch=branch, pr_url=pr_url)

    def update_root_reference(self, repo: RepoDescriptor, commit: str, skip_pr: bool) -> Generator[str, None, bool]:
        """
        Point the root's record of submodule repo at the user's fork and commit.

        Rewrites the .gitmodules URL, syncs it, checks the submodule out at
        commit and pushes the resulting root commit. A failed push falls
        back to a root pull request.
        """
        login = self.github.current_login()
        if not login:
            yield "⚠️ Could not determine GitHub username"
            return False

        root = self.root_repo
        root_path = str(self.root)
        yield f"🔄 Updating {root.name} submodule reference..."
        if not self.git.set_submodule_url(root_path, repo.name, self.config.repo_url(login, repo.name)):
            yield f"⚠️ Could not rewrite the .gitmodules URL of {repo.name}"
            return False
        if not self.git.submodule_sync(root_path, repo.name):
            yield f"⚠️ Could not sync submodule {repo.name}"
            return False
        if not self.git.checkout(str(repo.path), commit):
            yield f"⚠️ Could not check out {commit} in {repo.name}"
            return False

        changed = self.git.changed_paths(root_path)
        if repo.name not in changed and ".gitmodules" not in changed:
            return True

        message = f"Update {repo.name} submodule to point to {login} fork (commit {commit})"
        if not self.git.add(root_path, [repo.name, ".gitmodules"]) or not self.git.commit(root_path, message):
            yield f"⚠️ Could not commit {root.name} submodule reference update"
            return False
        push, _ = self.git.push(root_path, "origin", f"HEAD:{self.config.root_branch}")
        if push == PushResult.SUCCESS:
            yield f"✅ Updated {root.name} submodule reference to your fork"
            return True

        yield f"⚠️ Failed to push {root.name} submodule reference update"
        yield from self.create_root_pr(skip_pr)
        return False

    def create_root_pr(self, skip_pr: bool) -> Generator[str, None, Optional[str]]:
        """
        Open a pull request from the user's root repository to its parent.

        No PR is opened when suppressed, or when origin already is the parent.
        """
        if skip_pr:
            return None

        root = self.root_repo
        root_path = str(self.root)
        branch = self.config.root_branch
        capital_slug = f"{root.parent_account}/{root.name}"
        marker_slug = f"{self.config.skip_marker}/{root.name}"
        upstream_slug = self.git.remote_slug(root_path, "upstream")
        origin_slug = self.git.remote_slug(root_path, "origin")

        if upstream_slug == capital_slug:
            parent = root.parent_account
        elif upstream_slug == marker_slug:
            parent = self.config.skip_marker
        elif origin_slug not in (capital_slug, marker_slug):
            parent = root.parent_account
        else:
            return None

        yield f"📝 Creating {root.name} PR to {parent}/{root.name}..."
        login = self.github.current_login()
        pr_url = self.github.create_pull_request(
            title=f"Update {root.name} with submodule changes",
            body=ROOT_PR_BODY,
            base=branch,
            head=f"{login}:{branch}" if login else branch,
            repo=f"{parent}/{root.name}",
            cwd=root_path,
        )
        if pr_url:
            yield f"🔄 Created {root.name} PR: {pr_url}"
        else:
            yield f"⚠️ {root.name} PR creation failed or not needed"
        return pr_url

    def _root_pr_if_ahead(self, skip_pr: bool) -> Generator[str, None, None]:
        if skip_pr:
            return
        if self.git.commits_ahead(str(self.root), f"upstream/{self.config.root_branch}") > 0:
            yield from self.create_root_pr(skip_pr)

    def _commit_root_references(self) -> Generator[str, None, None]:
        root_path = str(self.root)
        self.git.submodule_update(root_path, remote=True)
        if not self.git.has_uncommitted_changes(root_path):
            return
        if not self.git.add(root_path) or not self.git.commit(root_path, "Update submodule references"):
            yield f"⚠️ Could not commit submodule references in {self.root_repo.name}"
            return
        push, _ = self.git.push(root_path, "origin", f"HEAD:{self.config.root_branch}")
        if push == PushResult.SUCCESS:
            yield "✅ Updated submodule references"
        else:
            yield f"🔄 {self.root_repo.name} push failed"

    def _commit_submodules(self, result: OperationSummary, skip_pr: bool) -> Generator[str, None, None]:
        for repo in self._present(self.config.submodule_repos(self.root)):
            yield f"📁 Committing {repo.name}..."
            result.add_detail((yield from self.commit_push(repo, skip_pr)))
        yield from self._commit_root_references()

    def _commit_one(self, result: OperationSummary, name: str, skip_pr: bool) -> Generator[str, None, None]:
        repo = self.config.find(name, self.root) or self.config.descriptor(name, RepoGroup.SUBMODULE, self.root)
        if not repo.exists:
            yield f"⚠️ Repository not found: {name}"
            result.add_detail(self._detail(repo, RunOutcome.FAILED, error="Repository not found"))
            return

        result.add_detail((yield from self.commit_push(repo, skip_pr)))
        if repo.is_root or not repo.is_submodule:
            yield from self._root_pr_if_ahead(skip_pr)
            return

        root_path = str(self.root)
        self.git.submodule_update(root_path, names=[name], remote=True)
        if name in self.git.changed_paths(root_path):
            if not self.git.add(root_path, [name]) or not self.git.commit(root_path, f"Update {name} submodule reference"):
                yield f"⚠️ Could not commit {name} submodule reference in {self.root_repo.name}"
                return
            push, _ = self.git.push(root_path, "origin", f"HEAD:{self.config.root_branch}")
            if push == PushResult.SUCCESS:
                yield f"✅ Updated {name} submodule reference"
            else:
                yield f"🔄 {self.root_repo.name} push failed for {name} - attempting PR workflow"
                yield from self.create_root_pr(skip_pr)
                return

        yield from self._root_pr_if_ahead(skip_pr)

    def commit(self, target: Optional[str] = None, skip_pr: bool = False) -> Generator[str, None, OperationSummary]:
        """
        Commit and push changes.

        Args:
            target: None for everything, "submodules" for all submodules,
                or the name of one repository
            skip_pr: Suppress every pull request creation

        Yields:
            Progress messages

        Returns:
            OperationSummary with one detail per repository
        """
        result = OperationSummary(operation="commit")
        self.last_result = result
        self.check_root()

        if target is None:
            root = self.root_repo
            yield f"📁 Committing {root.name}..."
            result.add_detail((yield from self.commit_push(root, skip_pr)))
            yield from self._root_pr_if_ahead(skip_pr)

            yield from self._commit_submodules(result, skip_pr)

            for repo in self._present(self.config.trade_repo_list(self.root)):
                yield f"📁 Committing {repo.name}..."
                result.add_detail((yield from self.commit_push(repo, skip_pr)))
            yield "✅ Complete commit finished!"
        elif target == SUBMODULES_SELECTOR:
            yield from self._commit_submodules(result, skip_pr)
        else:
            yield from self._commit_one(result, target, skip_pr)

        return result
