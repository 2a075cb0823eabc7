"""
Domain layer for websync.

Contains pure domain objects with no I/O or side effects:
- RepoDescriptor: A repository managed by the sync workflow
- MergeResult / PushResult / HeadState: Outcomes of single git steps
- OperationDetail / OperationSummary: Per-repository and per-run results
"""

from .repository import RepoDescriptor, RepoGroup
from .outcome import (
    MergeResult,
    PushResult,
    HeadState,
    OperationStatus,
    RunOutcome,
    OperationDetail,
    OperationSummary,
)

__all__ = [
    'RepoDescriptor',
    'RepoGroup',
    'MergeResult',
    'PushResult',
    'HeadState',
    'OperationStatus',
    'RunOutcome',
    'OperationDetail',
    'OperationSummary',
]
