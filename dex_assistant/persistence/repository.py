"""Keyed repositories for in-process service state."""

from abc import ABC, abstractmethod
from typing import Generic, Iterator, Optional, TypeVar

K = TypeVar("K")
V = TypeVar("V")


class Repository(ABC, Generic[K, V]):
    """Keyed collection owned by a single service."""

    @abstractmethod
    def get(self, key: K) -> Optional[V]:
        """Return the value for ``key`` or None."""

    @abstractmethod
    def put(self, key: K, value: V) -> None:
        """Insert or replace the value for ``key``."""

    @abstractmethod
    def delete(self, key: K) -> bool:
        """Remove ``key``; return whether it existed."""

    @abstractmethod
    def items(self) -> list[tuple[K, V]]:
        """Snapshot of all entries in insertion order."""

    def values(self) -> list[V]:
        return [value for _, value in self.items()]

    def keys(self) -> list[K]:
        return [key for key, _ in self.items()]

    def clear(self) -> None:
        for key in self.keys():
            self.delete(key)

    def __contains__(self, key: object) -> bool:
        return self.get(key) is not None  # type: ignore[arg-type]

    def __len__(self) -> int:
        return len(self.items())

    def __iter__(self) -> Iterator[K]:
        return iter(self.keys())


class InMemoryRepository(Repository[K, V]):
    """Dictionary-backed repository."""

    def __init__(self) -> None:
        self._data: dict[K, V] = {}

    def get(self, key: K) -> Optional[V]:
        return self._data.get(key)

    def put(self, key: K, value: V) -> None:
        self._data[key] = value

    def delete(self, key: K) -> bool:
        return self._data.pop(key, None) is not None

    def items(self) -> list[tuple[K, V]]:
        return list(self._data.items())

    def clear(self) -> None:
        self._data.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)
