"""
Service layer for websync.

Contains the workflows that orchestrate domain objects and infrastructure:
- SyncService: update, commit and fix across all repositories
- HeadRepairService: Detached-HEAD repair for one repository

Services are the primary API for commands to use.
"""

from .head_repair_service import HeadRepairService
from .sync_service import SyncService, find_root, SUBMODULES_SELECTOR

__all__ = [
    'HeadRepairService',
    'SyncService',
    'find_root',
    'SUBMODULES_SELECTOR',
]
