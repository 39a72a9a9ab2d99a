"""Synchronization of provider connections into the local store."""

from .orchestrator import SyncOrchestrator
from .report import BranchFailure, SyncReport

__all__ = ["BranchFailure", "SyncOrchestrator", "SyncReport"]
