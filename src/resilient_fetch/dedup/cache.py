"""
In-flight request de-duplication.

Concurrent identical opted-in reads share one underlying call: the first
caller starts it, later callers join the same future until it settles or
its entry outlives the TTL.
"""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from ..config import DedupConfig
from ..events import EventEmitter
from ..fingerprint import generate_fingerprint
from ..types import PendingRequestEntry, RequestDescriptor, TransportEventType
from .stores import MemoryPendingStore, PendingRequestStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DedupCache(EventEmitter):
    """
    DedupCache - request coalescing for concurrent identical reads.

    Example:
        cache = DedupCache(DedupConfig(ttl_seconds=5))

        # Three callers, one network call
        results = await asyncio.gather(*[
            cache.do(descriptor, lambda: send(descriptor)) for _ in range(3)
        ])

    ``acquire()`` never awaits between looking up a fingerprint and storing a
    new entry, so two callers in the same tick can not both become leaders.
    """

    def __init__(
        self,
        config: Optional[DedupConfig] = None,
        store: Optional[PendingRequestStore] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__()
        self._config = config or DedupConfig()
        self._store = store or MemoryPendingStore()
        self._clock = clock
        self._methods = {m.upper() for m in self._config.methods}

    def supports(self, descriptor: RequestDescriptor) -> bool:
        """Only opted-in requests with a dedup-able method are shared."""
        return descriptor.dedupe and descriptor.method.upper() in self._methods

    def acquire(
        self,
        fingerprint: str,
        factory: Callable[[], Awaitable[T]],
    ) -> "asyncio.Future[T]":
        """
        Return the live future for ``fingerprint``, or start ``factory()``.

        The started task releases its own entry when it settles.
        """
        self.sweep()

        existing = self._store.get(fingerprint)
        if existing is not None:
            existing.subscribers += 1
            logger.debug(
                f"DedupCache.acquire: joined {fingerprint[:12]} "
                f"(subscribers={existing.subscribers})"
            )
            self._emit(
                TransportEventType.DEDUP_JOIN,
                fingerprint,
                {"subscribers": existing.subscribers},
            )
            return existing.future

        task = asyncio.ensure_future(factory())
        self._store.set(
            fingerprint,
            PendingRequestEntry(
                fingerprint=fingerprint,
                future=task,
                inserted_at=self._clock(),
            ),
        )
        task.add_done_callback(lambda done: self._settled(fingerprint, done))
        logger.debug(f"DedupCache.acquire: leading {fingerprint[:12]}")
        self._emit(TransportEventType.DEDUP_LEAD, fingerprint)
        return task

    def release(self, fingerprint: str, future: Optional[asyncio.Future] = None) -> bool:
        """
        Remove the entry for ``fingerprint``.

        When ``future`` is given, only an entry holding that future is removed,
        so a settling call never evicts a newer entry that replaced it.
        """
        entry = self._store.get(fingerprint)
        if entry is None:
            return False
        if future is not None and entry.future is not future:
            return False
        self._store.delete(fingerprint)
        self._emit(
            TransportEventType.DEDUP_RELEASE,
            fingerprint,
            {"subscribers": entry.subscribers},
        )
        return True

    def sweep(self) -> int:
        """Drop entries older than the TTL. Returns the number removed."""
        now = self._clock()
        removed = 0
        for fingerprint, entry in self._store.items():
            if now - entry.inserted_at > self._config.ttl_seconds:
                self._store.delete(fingerprint)
                removed += 1
                logger.debug(f"DedupCache.sweep: expired {fingerprint[:12]}")
                self._emit(TransportEventType.DEDUP_EXPIRE, fingerprint)
        return removed

    async def do(
        self,
        descriptor: RequestDescriptor,
        factory: Callable[[], Awaitable[T]],
    ) -> T:
        """
        Run ``factory`` with de-duplication keyed by the request fingerprint.

        Each caller awaits the shared call through ``asyncio.shield``:
        cancelling one caller abandons only that caller's wait.
        """
        future = self.acquire(generate_fingerprint(descriptor), factory)
        return await asyncio.shield(future)

    def _settled(self, fingerprint: str, future: asyncio.Future) -> None:
        self.release(fingerprint, future)
        if not future.cancelled() and future.exception() is not None:
            logger.debug(
                f"DedupCache._settled: {fingerprint[:12]} failed with "
                f"{type(future.exception()).__name__}"
            )

    def is_in_flight(self, descriptor: RequestDescriptor) -> bool:
        """Check if a request is currently in-flight."""
        return self._store.has(generate_fingerprint(descriptor))

    def get_subscribers(self, descriptor: RequestDescriptor) -> int:
        """Get the number of callers sharing an in-flight request."""
        entry = self._store.get(generate_fingerprint(descriptor))
        return entry.subscribers if entry else 0

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics about in-flight requests."""
        return {"in_flight": self._store.size()}

    def get_config(self) -> DedupConfig:
        return self._config

    def clear(self) -> None:
        """Forget all in-flight entries. Running calls are not cancelled."""
        self._store.clear()

    def close(self) -> None:
        """Close and release resources."""
        self._store.clear()
        self._listeners.clear()


def create_dedup_cache(
    config: Optional[DedupConfig] = None,
    store: Optional[PendingRequestStore] = None,
    clock: Callable[[], float] = time.monotonic,
) -> DedupCache:
    """Create a dedup cache."""
    return DedupCache(config, store, clock)
