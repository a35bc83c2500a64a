"""
Domain: local record cache patched by realtime change events.

Records are kept in an ordered map keyed by primary key. Events are applied
by key, independent of the transport's own ordering:
- INSERT: new ids are placed first; a known id is replaced in place.
- UPDATE: replaces the record with the same id, or inserts it first.
- DELETE: removes the id when present.

No conflict resolution beyond last writer wins.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, Iterable, Iterator, List, Optional, TypeVar

T = TypeVar("T")


class ChangeType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class ChangeEvent(Generic[T]):
    type: ChangeType
    record: Optional[T] = None
    old_key: Optional[str] = None


class KeyedCache(Generic[T]):
    def __init__(self, records: Iterable[T], key: Callable[[T], str]) -> None:
        self._key = key
        self._records: "OrderedDict[str, T]" = OrderedDict()
        for record in records:
            self._records[key(record)] = record

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[T]:
        return iter(self._records.values())

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def get(self, key: str) -> Optional[T]:
        return self._records.get(key)

    def values(self) -> List[T]:
        return list(self._records.values())

    def reset(self, records: Iterable[T]) -> None:
        self._records.clear()
        for record in records:
            self._records[self._key(record)] = record

    def upsert(self, record: T, *, prepend: bool = True) -> None:
        key = self._key(record)
        exists = key in self._records
        self._records[key] = record
        if not exists and prepend:
            self._records.move_to_end(key, last=False)

    def remove(self, key: str) -> Optional[T]:
        return self._records.pop(key, None)

    def apply(self, event: ChangeEvent[T]) -> None:
        if event.type == ChangeType.DELETE:
            key = event.old_key
            if key is None and event.record is not None:
                key = self._key(event.record)
            if key is not None:
                self.remove(key)
            return
        if event.record is None:
            raise ValueError(f"{event.type.value} event without a record")
        self.upsert(event.record)


__all__ = ["ChangeEvent", "ChangeType", "KeyedCache"]
