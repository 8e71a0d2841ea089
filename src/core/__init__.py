from .config_manager import ConfigManager, BackupSettings
from .db_connector import MySQLConnector
from .errors import (
    BackupError, TopologyError, PartitionError, SyncError,
    DispatchError, ReleaseError, LockError, BackupRunActiveError
)
from .models import Replica, ReplicationPosition, ChunkAssignment
from .replication_client import ReplicationClient, MySQLReplicationClient
from .topology import discover_replicas
from .partitioner import plan_chunks, compute_chunk_size, resolve_chunk_tables
from .plan_store import ChunkPlanStore, InMemoryChunkPlanStore, MySQLChunkPlanStore
from .backup_run import BackupRun, RunLock
from .consistent_cut import (
    freeze_primary, elect_furthest_replica, force_sync_replicas, establish_consistent_cut
)
from .release import release_fleet, abort_cleanup
from .backup_coordinator import DistributedBackup, BackupReport
from .alerting import Alerter

__all__ = [
    'ConfigManager', 'BackupSettings', 'MySQLConnector',
    'BackupError', 'TopologyError', 'PartitionError', 'SyncError',
    'DispatchError', 'ReleaseError', 'LockError', 'BackupRunActiveError',
    'Replica', 'ReplicationPosition', 'ChunkAssignment',
    'ReplicationClient', 'MySQLReplicationClient',
    'discover_replicas',
    'plan_chunks', 'compute_chunk_size', 'resolve_chunk_tables',
    'ChunkPlanStore', 'InMemoryChunkPlanStore', 'MySQLChunkPlanStore',
    'BackupRun', 'RunLock',
    'freeze_primary', 'elect_furthest_replica', 'force_sync_replicas', 'establish_consistent_cut',
    'release_fleet', 'abort_cleanup',
    'DistributedBackup', 'BackupReport',
    'Alerter',
]
