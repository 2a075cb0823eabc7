"""Tests for the domain layer."""

from pathlib import Path

import pytest

from websync.domain import (
    HeadState,
    OperationDetail,
    OperationStatus,
    OperationSummary,
    RepoDescriptor,
    RepoGroup,
    RunOutcome,
)


class TestRepoDescriptor:
    """Tests for RepoDescriptor domain object."""

    def test_defaults(self):
        """A bare descriptor is a submodule pushing to main."""
        repo = RepoDescriptor(name="cloud", path=Path("/w/cloud"), parent_account="modelearth")
        assert repo.group == RepoGroup.SUBMODULE
        assert repo.target_branch == "main"
        assert repo.is_submodule
        assert not repo.is_root

    def test_exists(self, tmp_path):
        """exists reflects the working tree on disk."""
        present = RepoDescriptor(name="a", path=tmp_path, parent_account="modelearth")
        missing = RepoDescriptor(name="b", path=tmp_path / "b", parent_account="modelearth")
        assert present.exists
        assert not missing.exists

    def test_is_frozen(self):
        """Descriptors cannot be mutated."""
        repo = RepoDescriptor(name="cloud", path=Path("/w/cloud"), parent_account="modelearth")
        with pytest.raises(AttributeError):
            repo.name = "other"

    def test_to_dict(self):
        """Test serialization."""
        repo = RepoDescriptor(name="webroot", path=Path("/w"), parent_account="ModelEarth",
                              group=RepoGroup.ROOT, is_submodule=False)
        assert repo.to_dict() == {
            'name': 'webroot',
            'path': '/w',
            'parent_account': 'ModelEarth',
            'group': 'root',
            'target_branch': 'main',
            'is_submodule': False,
        }


class TestOutcomes:
    """Tests for outcome enumerations."""

    @pytest.mark.parametrize("outcome,status", [
        (RunOutcome.PUSHED, OperationStatus.SUCCESS),
        (RunOutcome.PUSHED_VIA_FORK, OperationStatus.SUCCESS),
        (RunOutcome.PR_OPENED, OperationStatus.SUCCESS),
        (RunOutcome.UPDATED, OperationStatus.SUCCESS),
        (RunOutcome.DETACHED_HEAD_FIXED, OperationStatus.SUCCESS),
        (RunOutcome.NO_OP, OperationStatus.SKIPPED),
        (RunOutcome.MERGE_CONFLICT, OperationStatus.FAILED),
        (RunOutcome.FAILED, OperationStatus.FAILED),
    ])
    def test_run_outcome_status(self, outcome, status):
        assert outcome.status == status

    def test_head_state_flags(self):
        assert HeadState.SWITCHED.repaired and HeadState.MERGED.repaired
        assert not HeadState.ATTACHED.repaired
        assert HeadState.ATTACHED.ok
        assert not HeadState.CONFLICT.ok
        assert not HeadState.NO_BRANCH.ok


class TestOperationSummary:
    """Tests for OperationSummary."""

    def detail(self, name, outcome, error=None, **metadata):
        return OperationDetail(repo_path=f"/w/{name}", repo_name=name, outcome=outcome,
                               error=error, metadata=metadata)

    def test_counts(self):
        summary = OperationSummary(operation="commit")
        summary.add_detail(self.detail("webroot", RunOutcome.PUSHED))
        summary.add_detail(self.detail("cloud", RunOutcome.NO_OP))
        summary.add_detail(self.detail("home", RunOutcome.FAILED, error="Push failed"))

        assert summary.total == 3
        assert summary.successful == 1
        assert summary.skipped == 1
        assert summary.failed == 1
        assert summary.errors == ["home: Push failed"]
        assert not summary.success
        assert summary.count(RunOutcome.NO_OP) == 1

    def test_empty_summary_is_success(self):
        assert OperationSummary(operation="fix").success

    def test_detail_to_dict_includes_metadata(self):
        detail = self.detail("cloud", RunOutcome.PR_OPENED, pr_url="https://github.com/x/cloud/pull/1")
        assert detail.to_dict() == {
            'path': '/w/cloud',
            'name': 'cloud',
            'status': 'success',
            'outcome': 'pr_opened',
            'pr_url': 'https://github.com/x/cloud/pull/1',
        }

    def test_summary_to_dict(self):
        summary = OperationSummary(operation="update")
        summary.add_detail(self.detail("cloud", RunOutcome.MERGE_CONFLICT, error="Merge conflicts"))
        data = summary.to_dict()
        assert data['type'] == 'summary'
        assert data['operation'] == 'update'
        assert data['failed'] == 1
        assert data['errors'] == ["cloud: Merge conflicts"]
