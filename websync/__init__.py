"""
websync - Keep a webroot repository and its submodules in sync.

websync merges upstream changes into a root repository, its git
submodules and a set of companion "trade" repositories, and pushes
local work back. When a push is refused for lack of permission it
forks the parent repository, repoints origin, pushes to the fork and
opens a pull request.

Quick Start:
    from pathlib import Path
    from websync import SyncService

    service = SyncService(root=Path("~/webroot").expanduser())
    for message in service.update():
        print(message)

    for message in service.commit("localsite", skip_pr=True):
        print(message)
    print(service.last_result.to_dict())

Domain Objects:
    RepoDescriptor - A configured repository
    OperationDetail / OperationSummary - What happened during a run

Services:
    SyncService - update, commit, fix_heads
    HeadRepairService - Detached-HEAD repair
"""

__version__ = "0.1.0"

from .domain import (
    RepoDescriptor,
    RepoGroup,
    MergeResult,
    PushResult,
    HeadState,
    RunOutcome,
    OperationDetail,
    OperationSummary,
)

from .services import SyncService, HeadRepairService

from .config import SyncConfig, load_config, save_config

__all__ = [
    "__version__",
    "RepoDescriptor",
    "RepoGroup",
    "MergeResult",
    "PushResult",
    "HeadState",
    "RunOutcome",
    "OperationDetail",
    "OperationSummary",
    "SyncService",
    "HeadRepairService",
    "SyncConfig",
    "load_config",
    "save_config",
]
