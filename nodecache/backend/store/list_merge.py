import collections
import logging
from typing import Any, Callable, Iterable, List, Optional, Set, Tuple

from nodecache.constants import SUPER_DEBUG_ENABLED, TRACE_ENABLED
from nodecache.model.partition import NodesPartition
from nodecache.util.ordered_index import OrderedIdIndex

logger = logging.getLogger(__name__)

# TYPEDEF InsertResult
# ▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼
InsertResult = collections.namedtuple('InsertResult', 'final_index is_last')
"""final_index: position of the item in the visible list (ordered + unordered), or -1 if it was left out"""

ReadIdFunc = Callable[[Any], Optional[str]]
MergeObjectsFunc = Callable[[Any, Any], Any]


def _keep_incoming(existing: Any, incoming: Any) -> Any:
    return incoming


def merge_nodes_list(existing: Optional[NodesPartition], incoming: Iterable[Any], read_id: ReadIdFunc,
                     merge_objects: MergeObjectsFunc = _keep_incoming) -> NodesPartition:
    """Merges an incoming page of items into the cached partition of a list. Never modifies its args.

    - An incoming item which is already in "ordered" is merged into it, and keeps its position.
    - Any other incoming item is appended to "ordered" after the existing ones, in arrival order. If it was in
      "unordered", it is taken out of there.
    - Items of "unordered" which were not in the page stay where they are.
    - An item without a readable ID can never be matched, so it is always appended.

    Merging the same page twice gives the same result as merging it once.
    """
    if existing is None:
        existing = NodesPartition.empty()

    ordered_index: OrderedIdIndex = OrderedIdIndex(read_id, existing.ordered)
    unordered_index: OrderedIdIndex = OrderedIdIndex(read_id, existing.unordered)
    newly_placed: List[Any] = []
    newly_placed_ids: Set[str] = set()

    for item in incoming:
        if item is None:
            continue
        item_id = read_id(item)
        if not item_id:
            if SUPER_DEBUG_ENABLED:
                logger.debug(f'Incoming item has no ID; appending without dedup: {item}')
            newly_placed.append(item)
            continue

        cached_ordered = ordered_index.get(item_id)
        if cached_ordered is not None:
            ordered_index.put(item_id, merge_objects(cached_ordered, item))
        elif item_id in newly_placed_ids:
            # Same ID twice in one page: keep the first position
            logger.warning(f'Item "{item_id}" found more than once in incoming page: ignoring the duplicate')
        else:
            newly_placed.append(item)
            newly_placed_ids.add(item_id)

        # was unordered, now it is ordered
        unordered_index.remove(item_id)

    merged = NodesPartition(ordered_index.to_list() + newly_placed, unordered_index.to_list())
    if TRACE_ENABLED:
        logger.debug(f'merge_nodes_list(): existing={existing} incoming={incoming} result={merged}')
    return merged


def read_nodes_list(partition: Optional[NodesPartition]) -> List[Any]:
    if partition is None:
        return []
    return list(partition.ordered) + list(partition.unordered)


def insert_into_partition(partition: Optional[NodesPartition], item: Any, index: int, add_if_unordered: bool,
                          read_id: ReadIdFunc) -> Tuple[NodesPartition, InsertResult]:
    """Puts the given item at the given position of the visible list, removing any previous occurrence of it first.

    If the index falls inside "ordered", the item goes there. If it falls inside "unordered" (or right at its end), or is
    not a valid position at all (e.g. the page which covers it is not loaded yet, signalled by -1), the item goes to
    "unordered" (at the index, or at the tail if the index is invalid), but only if it was already in the list or
    add_if_unordered is True. Otherwise the item is left out of this list.
    """
    if partition is None:
        partition = NodesPartition.empty()
    new_ordered = list(partition.ordered)
    new_unordered = list(partition.unordered)

    item_id = read_id(item)
    new_index = index

    current_index_ordered = _find_index(new_ordered, item_id, read_id)
    current_index_unordered = -1
    if current_index_ordered < 0:
        current_index_unordered = _find_index(new_unordered, item_id, read_id)

    # If the item was already loaded, take it out before putting it back in, and keep the index pointing at the same slot
    if current_index_ordered > -1:
        new_ordered.pop(current_index_ordered)
        if current_index_ordered < new_index:
            new_index -= 1
    elif current_index_unordered > -1:
        new_unordered.pop(current_index_unordered)
        if current_index_unordered + len(new_ordered) < new_index:
            new_index -= 1

    already_loaded = current_index_ordered > -1 or current_index_unordered > -1
    may_add_unordered = already_loaded or add_if_unordered
    final_index = -1

    if new_index < 0 or new_index > len(new_ordered) + len(new_unordered):
        if may_add_unordered:
            # no valid position: goes last
            new_unordered.append(item)
            final_index = len(new_ordered) + len(new_unordered) - 1
    elif new_index < len(new_ordered):
        new_ordered.insert(new_index, item)
        final_index = new_index
    elif may_add_unordered:
        new_unordered.insert(new_index - len(new_ordered), item)
        final_index = new_index

    result_partition = NodesPartition(new_ordered, new_unordered)
    total = len(result_partition)
    insert_result = InsertResult(final_index, final_index > -1 and final_index == total - 1)
    if SUPER_DEBUG_ENABLED:
        logger.debug(f'insert_into_partition(): item={item_id} requested_index={index} already_loaded={already_loaded} '
                     f'result={insert_result}')
    return result_partition, insert_result


def remove_nodes_from_partition(partition: Optional[NodesPartition], ids_to_remove: Iterable[str], read_id: ReadIdFunc) -> NodesPartition:
    """Drops the given IDs from both halves of the partition. Items whose ID can no longer be read (dangling
    references to evicted entities) are dropped too."""
    if partition is None:
        return NodesPartition.empty()
    id_set = set(ids_to_remove)

    def _keep(item) -> bool:
        item_id = read_id(item)
        return bool(item_id) and item_id not in id_set

    return NodesPartition([i for i in partition.ordered if _keep(i)], [i for i in partition.unordered if _keep(i)])


def _find_index(item_list: List[Any], item_id: Optional[str], read_id: ReadIdFunc) -> int:
    if not item_id:
        return -1
    for index, item in enumerate(item_list):
        if read_id(item) == item_id:
            return index
    return -1
