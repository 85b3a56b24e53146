import logging
from typing import Any, Callable, Dict, Generic, Iterator, List, Optional, TypeVar

logger = logging.getLogger(__name__)

ItemT = TypeVar('ItemT')


class OrderedIdIndex(Generic[ItemT]):
    """
    ▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼
    CLASS OrderedIdIndex

    A sequence of items which can also be looked up by ID. Relative order is held in an explicit list of IDs, and never
    depends on the iteration order of the lookup dict.

    Items for which the key func returns a falsy ID cannot be indexed: they are kept in order but can never be matched.
    ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼
    """
    def __init__(self, key_func: Callable[[ItemT], Optional[str]], items: Optional[List[ItemT]] = None):
        self._key_func = key_func
        self._slots: List[Any] = []
        """Each slot holds either an ID (str) or, for unidentifiable items, a one-element list wrapping the item"""
        self._dict: Dict[str, ItemT] = {}

        if items:
            for item in items:
                self.append(item)

    def append(self, item: ItemT):
        item_id = self._key_func(item)
        if not item_id:
            self._slots.append([item])
            return

        if item_id in self._dict:
            # Last write wins, but the ID keeps its first position
            logger.warning(f'Duplicate ID "{item_id}" found while indexing list: keeping first position')
        else:
            self._slots.append(item_id)
        self._dict[item_id] = item

    def get(self, item_id: Optional[str]) -> Optional[ItemT]:
        if not item_id:
            return None
        return self._dict.get(item_id, None)

    def put(self, item_id: str, item: ItemT):
        """Replaces the item with the given ID, keeping its position"""
        assert item_id in self._dict, f'Cannot replace item: ID not present: {item_id}'
        self._dict[item_id] = item

    def remove(self, item_id: Optional[str]) -> Optional[ItemT]:
        if not item_id or item_id not in self._dict:
            return None
        self._slots.remove(item_id)
        return self._dict.pop(item_id)

    def __contains__(self, item_id) -> bool:
        return bool(item_id) and item_id in self._dict

    def __len__(self) -> int:
        return len(self._slots)

    def __iter__(self) -> Iterator[ItemT]:
        for slot in self._slots:
            if isinstance(slot, list):
                yield slot[0]
            else:
                yield self._dict[slot]

    def to_list(self) -> List[ItemT]:
        return list(iter(self))
