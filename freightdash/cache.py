import threading

from freightdash.schemas import DashboardSnapshot


class SnapshotCache:
    def __init__(self) -> None:
        self._entries: dict[str, DashboardSnapshot] = {}
        self._lock = threading.Lock()

    def get(self, cache_key: str) -> DashboardSnapshot | None:
        with self._lock:
            return self._entries.get(cache_key)

    def offer(self, snapshot: DashboardSnapshot) -> bool:
        """Store ``snapshot`` unless a newer one is already held."""
        with self._lock:
            current = self._entries.get(snapshot.cache_key)
            if current is not None and current.computed_at > snapshot.computed_at:
                return False
            self._entries[snapshot.cache_key] = snapshot
            return True

    def invalidate(self, cache_key: str) -> None:
        with self._lock:
            self._entries.pop(cache_key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._entries)
