"""
This submodule contains the default feature store.

The feature store is the component that holds the last known state of all flags and segments, as
received by the polling synchronizer.
"""

from typing import Any, Callable, Mapping

from flagsync.impl.rwlock import ReadWriteLock
from flagsync.impl.util import log
from flagsync.interfaces import FeatureStore
from flagsync.versioned_data_kind import VersionedDataKind


class InMemoryFeatureStore(FeatureStore):
    """The default feature store implementation, which holds all data in a thread-safe data structure in memory.

    :func:`init()` builds the new data set before taking the write lock and then swaps a single
    reference, so readers only ever see a complete data set.
    """

    def __init__(self):
        """Constructs an instance of InMemoryFeatureStore.
        """
        self._lock = ReadWriteLock()
        self._initialized = False
        self._items: Mapping[VersionedDataKind, Mapping[str, dict]] = {}

    def get(self, kind: VersionedDataKind, key: str, callback: Callable[[Any], Any] = lambda x: x) -> Any:
        with self._lock.read():
            item = self._items.get(kind, {}).get(key)
        if item is None:
            log.debug("Attempted to get missing key %s in '%s', returning None", key, kind.namespace)
        return callback(item)

    def all(self, kind: VersionedDataKind, callback: Callable[[Any], Any] = lambda x: x) -> Any:
        with self._lock.read():
            items_of_kind = self._items.get(kind, {})
        return callback(dict(items_of_kind))

    def init(self, all_data: Mapping[VersionedDataKind, Mapping[str, dict]]):
        new_items = {kind: dict(items) for kind, items in all_data.items()}
        with self._lock.write():
            self._items = new_items
            self._initialized = True
        for kind, items in new_items.items():
            log.debug("Initialized '%s' store with %d items", kind.namespace, len(items))

    @property
    def initialized(self) -> bool:
        with self._lock.read():
            return self._initialized
