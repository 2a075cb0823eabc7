"""
Outcome domain objects for websync.

The infra layer translates raw git/gh output into the small enumerations
defined here, so the orchestration in the service layer only ever branches
on enum members, never on command text.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional


class MergeResult(Enum):
    """Result of merging one upstream ref."""
    SUCCESS = "success"
    # Merge refused without touching the tree (missing ref etc.); try the next candidate
    CONFLICT_FALLBACK = "conflict_fallback"
    # Conflicts left in the working tree, or no candidate left
    CONFLICT_FINAL = "conflict_final"


class PushResult(Enum):
    """Result of a git push."""
    SUCCESS = "success"
    PERMISSION_DENIED = "permission_denied"
    OTHER_FAILURE = "other_failure"


class HeadState(Enum):
    """Result of a detached-HEAD repair attempt."""
    ATTACHED = "attached"      # already on a branch, nothing done
    SWITCHED = "switched"      # detached commit already contained in the branch
    MERGED = "merged"          # detached commit merged into the branch
    CONFLICT = "conflict"      # merge of the detached commit conflicted
    NO_BRANCH = "no_branch"    # neither main nor master exists

    @property
    def repaired(self) -> bool:
        return self in (HeadState.SWITCHED, HeadState.MERGED)

    @property
    def ok(self) -> bool:
        return self in (HeadState.ATTACHED, HeadState.SWITCHED, HeadState.MERGED)


class OperationStatus(Enum):
    """Status of an individual operation."""
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


class RunOutcome(Enum):
    """What happened to one repository during a command."""
    PUSHED = "pushed"
    PUSHED_VIA_FORK = "pushed_via_fork"
    PR_OPENED = "pr_opened"
    UPDATED = "updated"
    DETACHED_HEAD_FIXED = "detached_head_fixed"
    MERGE_CONFLICT = "merge_conflict"
    NO_OP = "no_op"
    FAILED = "failed"

    @property
    def status(self) -> OperationStatus:
        if self in (RunOutcome.MERGE_CONFLICT, RunOutcome.FAILED):
            return OperationStatus.FAILED
        if self == RunOutcome.NO_OP:
            return OperationStatus.SKIPPED
        return OperationStatus.SUCCESS


@dataclass
class OperationDetail:
    """
    Details of a single operation on one repository.

    Used to track what happened to each repo during a sync command.
    """
    repo_path: str
    repo_name: str
    outcome: RunOutcome
    message: Optional[str] = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def status(self) -> OperationStatus:
        return self.outcome.status

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            'path': self.repo_path,
            'name': self.repo_name,
            'status': self.status.value,
            'outcome': self.outcome.value,
        }
        if self.message:
            result['message'] = self.message
        if self.error:
            result['error'] = self.error
        if self.metadata:
            result.update(self.metadata)
        return result


@dataclass
class OperationSummary:
    """
    Summary of a sync command across multiple repositories.

    Collects statistics and details from every repository touched
    by update, commit or fix.
    """
    operation: str  # "update", "commit", "fix"
    total: int = 0
    successful: int = 0
    skipped: int = 0
    failed: int = 0
    details: List[OperationDetail] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """True if no failures occurred."""
        return self.failed == 0

    def count(self, outcome: RunOutcome) -> int:
        """Number of details with the given outcome."""
        return sum(1 for d in self.details if d.outcome == outcome)

    def add_detail(self, detail: OperationDetail) -> None:
        """Add an operation detail and update counts."""
        self.details.append(detail)
        self.total += 1

        if detail.status == OperationStatus.SUCCESS:
            self.successful += 1
        elif detail.status == OperationStatus.SKIPPED:
            self.skipped += 1
        elif detail.status == OperationStatus.FAILED:
            self.failed += 1
            if detail.error:
                self.errors.append(f"{detail.repo_name}: {detail.error}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'type': 'summary',
            'operation': self.operation,
            'total': self.total,
            'successful': self.successful,
            'skipped': self.skipped,
            'failed': self.failed,
            'errors': self.errors,
        }
