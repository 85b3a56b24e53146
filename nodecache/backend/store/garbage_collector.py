import logging
import time
from collections import deque
from typing import Any, Deque, Dict, Iterable, Iterator, List, Mapping, Set

import humanfriendly

from nodecache.constants import SUPER_DEBUG_ENABLED
from nodecache.model.entity_key import EntityKey, Reference
from nodecache.model.partition import NodesPage, NodesPageCachedObject, NodesPartition, SharesCachedObject

logger = logging.getLogger(__name__)


def iter_references(value: Any) -> Iterator[Reference]:
    """Yields every Reference found anywhere inside the given field value"""
    stack: List[Any] = [value]
    while stack:
        current = stack.pop()
        if current is None:
            continue
        if isinstance(current, Reference):
            yield current
        elif isinstance(current, NodesPartition):
            stack.extend(current.ordered)
            stack.extend(current.unordered)
        elif isinstance(current, NodesPageCachedObject):
            stack.append(current.nodes)
        elif isinstance(current, NodesPage):
            stack.extend(current.nodes)
        elif isinstance(current, SharesCachedObject):
            stack.extend(current.shares)
        elif isinstance(current, Mapping):
            stack.extend(current.values())
        elif isinstance(current, (list, tuple, set)):
            stack.extend(current)


class GarbageCollector:
    """
    ▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼
    CLASS GarbageCollector

    Mark & sweep over the normalized entity dict. Marking starts from the root keys and follows every reference found in
    the field values of marked entities. Everything left unmarked is deleted. Runs synchronously, only when asked to.
    ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼
    """
    def __init__(self):
        self.total_swept: int = 0
        self.sweep_count: int = 0

    @staticmethod
    def mark(entity_dict: Dict[EntityKey, Dict[str, Any]], root_keys: Iterable[EntityKey]) -> Set[EntityKey]:
        reachable: Set[EntityKey] = set()
        key_queue: Deque[EntityKey] = deque()

        for root_key in root_keys:
            if root_key in entity_dict and root_key not in reachable:
                reachable.add(root_key)
                key_queue.append(root_key)

        while key_queue:
            key = key_queue.popleft()
            for field_value in entity_dict[key].values():
                for ref in iter_references(field_value):
                    # dangling references are fine: the entity may have been evicted
                    if ref.key in entity_dict and ref.key not in reachable:
                        reachable.add(ref.key)
                        key_queue.append(ref.key)

        return reachable

    def collect(self, entity_dict: Dict[EntityKey, Dict[str, Any]], root_keys: Iterable[EntityKey]) -> List[EntityKey]:
        """Deletes unreachable entities from entity_dict (in place), and returns their keys"""
        start_time = time.perf_counter()

        reachable = self.mark(entity_dict, root_keys)
        removed_keys: List[EntityKey] = [key for key in entity_dict.keys() if key not in reachable]
        for key in removed_keys:
            del entity_dict[key]

        self.sweep_count += 1
        self.total_swept += len(removed_keys)

        elapsed_sec = time.perf_counter() - start_time
        if removed_keys:
            logger.debug(f'GC swept {len(removed_keys)} of {len(removed_keys) + len(reachable)} entities '
                         f'in {humanfriendly.format_timespan(elapsed_sec, detailed=True)}')
            if SUPER_DEBUG_ENABLED:
                logger.debug(f'GC removed: {removed_keys}')

        return removed_keys

    def get_summary(self) -> str:
        return f'{self.sweep_count} sweeps, {self.total_swept} entities removed'
