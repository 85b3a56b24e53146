import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from nodecache.backend.store.hierarchy import build_cached_subtree
from nodecache.backend.store.list_merge import InsertResult, insert_into_partition, read_nodes_list, remove_nodes_from_partition
from nodecache.backend.store.object_store import ModifierDetails, ObjectStore
from nodecache.constants import ARG_NODE_ID, ARG_SORT, FIELD_CHILDREN, FIELD_FIND_NODES, FIELD_GET_PATH, FIELD_PARENT, FIELD_SHARES, \
    SUPER_DEBUG_ENABLED, TYPENAME_FOLDER
from nodecache.model.cache_context import CacheContext
from nodecache.model.entity_key import EntityKey, make_key, Reference
from nodecache.model.field_result import FieldResult, Keep, Remove
from nodecache.model.node_sort import find_index_in_sorted_list
from nodecache.model.partition import FindNodesCachedObject, NodesPage, NodesPageCachedObject
from nodecache.util.ensure import ensure_id_set

logger = logging.getLogger(__name__)

FilterMatchCondition = Callable[[FindNodesCachedObject], bool]


def _write_node_with_parent(store: ObjectStore, node: Any, folder_key: EntityKey) -> Reference:
    parent_ref = Reference(folder_key)
    if isinstance(node, Reference):
        return store.write_fragment(node.key, [FIELD_PARENT], {FIELD_PARENT: parent_ref})
    node_data = dict(node)
    node_data[FIELD_PARENT] = parent_ref
    return store.write_entity(node_data)


# Insert
# ⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟

def add_node_in_cached_children(store: ObjectStore, node: Any, folder_id: str, index: int, context: Optional[CacheContext] = None,
                                add_if_unordered: bool = True) -> Optional[InsertResult]:
    """Puts the node at the given index of every cached children list of the folder (see insert_into_partition()).
    A children list cached for a sort order other than the current one is dropped instead, since the index would
    not be meaningful for it. The node itself is written into the cache, with its parent set to the folder.

    Nothing is written if the folder has no cached children.

    Returns the InsertResult for the list of the current sort order (or for a list cached without a sort), or None
    if no list was kept."""
    if context is None:
        context = store.context
    folder_key = make_key(TYPENAME_FOLDER, folder_id)
    if not store.get_store_field_names(folder_key, FIELD_CHILDREN):
        logger.debug(f'add_node_in_cached_children(): children of {folder_key} are not cached')
        return None
    node_ref = _write_node_with_parent(store, node, folder_key)

    insert_result_list: List[InsertResult] = []

    def _update_children(existing: NodesPageCachedObject, details: ModifierDetails) -> FieldResult:
        stored_sort = details.args.get(ARG_SORT, None)
        if stored_sort is not None and stored_sort != context.node_sort:
            logger.debug(f'Dropping {folder_key}.{details.store_field_name}: sort differs from current ({context.node_sort.value})')
            return Remove

        new_partition, insert_result = insert_into_partition(existing.nodes, node_ref, index, add_if_unordered, details.read_id)
        if stored_sort == context.node_sort:
            insert_result_list.insert(0, insert_result)
        else:
            insert_result_list.append(insert_result)
        return Keep(existing.with_nodes(new_partition))

    store.modify(folder_key, {FIELD_CHILDREN: _update_children})

    if insert_result_list:
        return insert_result_list[0]
    return None


class FolderContentUpdater:
    """
    ◤━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━◥
    CLASS FolderContentUpdater

    Keeps the cached content of folders in step with nodes which were created, renamed or moved locally.
    ◣━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━◢
    """
    def __init__(self, store: ObjectStore, context: Optional[CacheContext] = None):
        self.store: ObjectStore = store
        self._context: Optional[CacheContext] = context

    @property
    def context(self) -> CacheContext:
        if self._context:
            return self._context
        return self.store.context

    def add_node_to_folder(self, folder_id: str, node: Mapping[str, Any]) -> InsertResult:
        """Inserts the node at the position where the server would list it, given what is loaded of the folder.
        Returns InsertResult(new_position, is_last)."""
        context = self.context
        folder_key = make_key(TYPENAME_FOLDER, folder_id)
        cached_page: Optional[NodesPage] = self.store.read_field(folder_key, FIELD_CHILDREN, {ARG_SORT: context.node_sort},
                                                                 context=context)
        if cached_page is None:
            logger.debug(f'add_node_to_folder(): children of {folder_key} are not cached')
            return InsertResult(0, True)

        node_list = [self._resolve(n) for n in cached_page.nodes]
        node_list = [n for n in node_list if n is not None]
        if not node_list:
            add_node_in_cached_children(self.store, node, folder_id, 0, context)
            return InsertResult(0, True)

        new_index = find_index_in_sorted_list(node_list, node, context.node_sort)
        add_node_in_cached_children(self.store, node, folder_id, new_index, context)
        result = InsertResult(new_index if new_index > -1 else len(node_list), new_index == -1 or new_index == len(node_list))
        if SUPER_DEBUG_ENABLED:
            logger.debug(f'add_node_to_folder({folder_id}): {result}')
        return result

    def _resolve(self, item: Any) -> Optional[Mapping[str, Any]]:
        """Fields of a listed node, for the comparator"""
        if isinstance(item, Reference):
            entity_key = item.key
            if not self.store.can_read(entity_key):
                return None
            return {field: self.store.read_field_value(entity_key, field) for field in ('id', 'name', 'type', 'size', 'updated_at')}
        return item

    def remove_nodes_from_folder(self, folder_id: str, node_ids: Iterable[str]) -> bool:
        return remove_nodes_from_folder(self.store, folder_id, node_ids)


# Remove
# ⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟

def _remove_ids_from_cached_list(existing: NodesPageCachedObject, id_set, details: ModifierDetails) -> FieldResult:
    new_partition = remove_nodes_from_partition(existing.nodes, id_set, details.read_id)
    if existing.page_token and new_partition.is_empty():
        # Nothing left to show, but the server has more: fetch again from scratch
        return Remove
    return Keep(existing.with_nodes(new_partition))


def remove_nodes_from_folder(store: ObjectStore, folder_id: str, node_ids: Iterable[str]) -> bool:
    id_set = ensure_id_set(node_ids)

    def _update_children(existing: NodesPageCachedObject, details: ModifierDetails) -> FieldResult:
        return _remove_ids_from_cached_list(existing, id_set, details)

    return store.modify(make_key(TYPENAME_FOLDER, folder_id), {FIELD_CHILDREN: _update_children})


def remove_nodes_from_filter(store: ObjectStore, node_ids: Iterable[str], match_condition: FilterMatchCondition) -> bool:
    """Removes the given nodes from every cached filtered list for which match_condition is True"""
    id_set = ensure_id_set(node_ids)

    def _update_find_nodes(existing: FindNodesCachedObject, details: ModifierDetails) -> FieldResult:
        if existing is None or not match_condition(existing):
            return Keep(existing)
        return _remove_ids_from_cached_list(existing, id_set, details)

    return store.modify(None, {FIELD_FIND_NODES: _update_find_nodes})


def evict_children(store: ObjectStore, folder_ids: Iterable[str], context: Optional[CacheContext] = None) -> List[EntityKey]:
    """Drops the cached children of the given folders, so that they are fetched again the next time they are opened.
    The folder which is currently open is left alone. Returns the keys removed by the GC which follows."""
    if context is None:
        context = store.context

    evicted_count = 0
    for folder_id in ensure_id_set(folder_ids):
        if folder_id == context.current_folder_id:
            logger.debug(f'evict_children(): skipping current folder {folder_id}')
            continue
        if store.evict(make_key(TYPENAME_FOLDER, folder_id), FIELD_CHILDREN):
            evicted_count += 1

    if evicted_count:
        return store.gc_if_enabled()
    return []


def recursive_share_evict(store: ObjectStore, node: Any) -> int:
    """Evicts the cached shares of the node and of all of its cached descendants, together with the children lists
    which lead to them. Runs the GC once at the end. Returns the number of nodes visited."""
    root_key = store.identify(node) if not isinstance(node, str) else node
    if not root_key or not store.can_read(root_key):
        return 0

    subtree = build_cached_subtree(store, root_key)
    for node_key in subtree.expand_tree(root_key):
        store.evict(node_key, FIELD_SHARES)
        store.evict(node_key, FIELD_CHILDREN)

    store.gc_if_enabled()
    logger.debug(f'recursive_share_evict({root_key}): visited {subtree.size()} nodes')
    return subtree.size()


# Mutation results
# ⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟

def _evict_path(store: ObjectStore, node_id: str):
    store.evict(None, FIELD_GET_PATH, args={ARG_NODE_ID: node_id})


def update_cache_after_move(store: ObjectStore, moved_nodes: Iterable[Tuple[str, Optional[str]]], destination_folder_id: str,
                            context: Optional[CacheContext] = None) -> List[EntityKey]:
    """moved_nodes: (node_id, previous_parent_id) for each node which the server reports as moved.
    Takes the nodes out of their previous folders, and drops the cached content of the destination."""
    nodes_by_parent: Dict[str, List[str]] = {}
    for node_id, from_parent_id in moved_nodes:
        if from_parent_id and from_parent_id != destination_folder_id:
            nodes_by_parent.setdefault(from_parent_id, []).append(node_id)
        _evict_path(store, node_id)

    for parent_id, node_id_list in nodes_by_parent.items():
        remove_nodes_from_folder(store, parent_id, node_id_list)

    return evict_children(store, [destination_folder_id], context)


def update_cache_after_copy(store: ObjectStore, destination_folder_id: str, context: Optional[CacheContext] = None) -> List[EntityKey]:
    return evict_children(store, [destination_folder_id], context)


def update_cache_after_restore(store: ObjectStore, restored_nodes: Iterable[Tuple[str, Optional[str]]],
                               match_condition: FilterMatchCondition, context: Optional[CacheContext] = None) -> List[EntityKey]:
    """restored_nodes: (node_id, parent_id) for each node which is out of the trash. The nodes are taken out of the
    filtered lists which match_condition selects (e.g. the trash view); their parents' content is dropped."""
    restored_nodes = list(restored_nodes)
    remove_nodes_from_filter(store, [node_id for node_id, _ in restored_nodes], match_condition)

    for node_id, _ in restored_nodes:
        _evict_path(store, node_id)

    parent_id_list = [parent_id for _, parent_id in restored_nodes if parent_id]
    return evict_children(store, parent_id_list, context)


def get_visible_children(store: ObjectStore, folder_id: str, context: Optional[CacheContext] = None) -> List[Any]:
    """The nodes a user would see for the folder, in the current sort order. Empty if nothing is cached."""
    if context is None:
        context = store.context
    folder_key = make_key(TYPENAME_FOLDER, folder_id)
    cached = store.read_field_value(folder_key, store.get_store_field_name(folder_key, FIELD_CHILDREN, {ARG_SORT: context.node_sort}))
    if not isinstance(cached, NodesPageCachedObject):
        return []
    return read_nodes_list(cached.nodes)
