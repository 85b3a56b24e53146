import logging
from typing import List, Optional, Set, Tuple

from nodecache.model.entity_key import EntityKey
from nodecache.signal_constants import ID_GLOBAL_CACHE, Signal
from nodecache.util.has_lifecycle import HasLifecycle

logger = logging.getLogger(__name__)


class CacheWatcher(HasLifecycle):
    """
    ▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼
    CLASS CacheWatcher

    Observes the signals of one ObjectStore, optionally limited to a set of entity keys, and records them.
    Stands in for the UI queries which would re-render on each notification.
    ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼
    """
    def __init__(self, store_id: str = ID_GLOBAL_CACHE, watched_keys: Optional[Set[EntityKey]] = None):
        HasLifecycle.__init__(self)
        self.store_id: str = store_id
        self.watched_keys: Optional[Set[EntityKey]] = watched_keys
        self.update_list: List[Set[EntityKey]] = []
        self.eviction_list: List[Tuple[EntityKey, Optional[str]]] = []
        self.gc_list: List[List[EntityKey]] = []

    def start(self):
        HasLifecycle.start(self)
        self.connect_dispatch_listener(signal=Signal.CACHE_UPDATED, receiver=self._on_cache_updated, sender=self.store_id)
        self.connect_dispatch_listener(signal=Signal.CACHE_EVICTED, receiver=self._on_cache_evicted, sender=self.store_id)
        self.connect_dispatch_listener(signal=Signal.CACHE_GC_DONE, receiver=self._on_gc_done, sender=self.store_id)

    def _is_watched(self, key: EntityKey) -> bool:
        return self.watched_keys is None or key in self.watched_keys

    def _on_cache_updated(self, changed_keys: Set[EntityKey]):
        relevant_keys = {key for key in changed_keys if self._is_watched(key)}
        if relevant_keys:
            logger.debug(f'[{self.store_id}] Watcher notified of update: {relevant_keys}')
            self.update_list.append(relevant_keys)

    def _on_cache_evicted(self, key: EntityKey, field_name: Optional[str]):
        if self._is_watched(key):
            self.eviction_list.append((key, field_name))

    def _on_gc_done(self, removed_keys: List[EntityKey]):
        self.gc_list.append(list(removed_keys))

    @property
    def update_count(self) -> int:
        return len(self.update_list)

    def clear(self):
        self.update_list = []
        self.eviction_list = []
        self.gc_list = []
