"""
Store implementations for the dedup cache.
"""
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from ..types import PendingRequestEntry


class PendingRequestStore(ABC):
    """Store interface for tracking in-flight requests by fingerprint."""

    @abstractmethod
    def get(self, fingerprint: str) -> Optional[PendingRequestEntry]:
        """Get an in-flight request by fingerprint."""
        pass

    @abstractmethod
    def set(self, fingerprint: str, entry: PendingRequestEntry) -> None:
        """Register an in-flight request."""
        pass

    @abstractmethod
    def delete(self, fingerprint: str) -> bool:
        """Remove an in-flight request."""
        pass

    @abstractmethod
    def has(self, fingerprint: str) -> bool:
        """Check if a request is in-flight."""
        pass

    @abstractmethod
    def items(self) -> List[Tuple[str, PendingRequestEntry]]:
        """Snapshot of all entries."""
        pass

    @abstractmethod
    def size(self) -> int:
        """Get current number of in-flight requests."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Clear all in-flight requests."""
        pass


class MemoryPendingStore(PendingRequestStore):
    """
    In-memory store for tracking in-flight requests.
    """

    def __init__(self) -> None:
        self._in_flight: Dict[str, PendingRequestEntry] = {}

    def get(self, fingerprint: str) -> Optional[PendingRequestEntry]:
        return self._in_flight.get(fingerprint)

    def set(self, fingerprint: str, entry: PendingRequestEntry) -> None:
        self._in_flight[fingerprint] = entry

    def delete(self, fingerprint: str) -> bool:
        if fingerprint in self._in_flight:
            del self._in_flight[fingerprint]
            return True
        return False

    def has(self, fingerprint: str) -> bool:
        return fingerprint in self._in_flight

    def items(self) -> List[Tuple[str, PendingRequestEntry]]:
        return list(self._in_flight.items())

    def size(self) -> int:
        return len(self._in_flight)

    def clear(self) -> None:
        self._in_flight.clear()


def create_memory_pending_store() -> MemoryPendingStore:
    """Create a memory pending-request store."""
    return MemoryPendingStore()
