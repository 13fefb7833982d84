"""Source synchronization pipeline: select, format, lock, write, activate."""

from abappretty.sync.loader import ObjectListLoader, load_from_manifest, parse_manifest
from abappretty.sync.lock_guard import LockAndTransportGuard
from abappretty.sync.orchestrator import SourceSyncOrchestrator
from abappretty.sync.pipeline import WriteActivatePipeline
from abappretty.sync.progress import ConsoleSyncReporter, NullProgress, SyncProgress

__all__ = [
    "ConsoleSyncReporter",
    "LockAndTransportGuard",
    "NullProgress",
    "ObjectListLoader",
    "SourceSyncOrchestrator",
    "SyncProgress",
    "WriteActivatePipeline",
    "load_from_manifest",
    "parse_manifest",
]
