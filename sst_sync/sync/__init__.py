"""
Synchronization between local routes and the remote adherence table.
"""

from .mapper import COLUMNS, REQUIRED_FIELDS, DataMapper
from .orchestrator import SyncOrchestrator
from .publisher import AdherencePublisher
from .snapshot import AdherenceStatistics, SnapshotCache, SyncStatus, compute_statistics
from .sync_log import InMemorySyncLog, SyncLogSink

__all__ = [
    "COLUMNS",
    "REQUIRED_FIELDS",
    "DataMapper",
    "SyncOrchestrator",
    "AdherencePublisher",
    "AdherenceStatistics",
    "SnapshotCache",
    "SyncStatus",
    "compute_statistics",
    "InMemorySyncLog",
    "SyncLogSink",
]
