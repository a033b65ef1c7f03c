"""
Key-value storage seam.

The game engine persists its local leaderboard and haunt session data
through this interface rather than a global. The server keeps one
process-local store; tests hand each case a fresh InMemoryKeyValueStore.
"""
from typing import Dict, List, Optional, Protocol


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self) -> List[str]: ...


class InMemoryKeyValueStore:
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)

    def __len__(self) -> int:
        return len(self._data)


_local_store: Optional[InMemoryKeyValueStore] = None


def get_local_store() -> KeyValueStore:
    """Process-wide fallback store. Use as a FastAPI dependency."""
    global _local_store
    if _local_store is None:
        _local_store = InMemoryKeyValueStore()
    return _local_store
