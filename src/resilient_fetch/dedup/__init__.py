"""
In-flight request de-duplication for opted-in reads.
"""
from .cache import DedupCache, create_dedup_cache
from .stores import MemoryPendingStore, PendingRequestStore, create_memory_pending_store


__all__ = [
    "DedupCache",
    "create_dedup_cache",
    "MemoryPendingStore",
    "PendingRequestStore",
    "create_memory_pending_store",
]
