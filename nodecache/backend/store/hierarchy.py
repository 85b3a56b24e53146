import logging
from collections import deque
from typing import Deque, List

import treelib
from treelib.exceptions import DuplicatedNodeIdError

from nodecache.backend.store.list_merge import read_nodes_list
from nodecache.constants import FIELD_CHILDREN, SUPER_DEBUG_ENABLED
from nodecache.model.entity_key import EntityKey
from nodecache.model.partition import NodesPageCachedObject

logger = logging.getLogger(__name__)


def get_cached_child_keys(store, folder_key: EntityKey) -> List[EntityKey]:
    """Keys of the readable nodes listed in any cached variant of the folder's children, in first-seen order"""
    child_key_list: List[EntityKey] = []
    seen = set()
    for store_field_name in store.get_store_field_names(folder_key, FIELD_CHILDREN):
        cached = store.read_field_value(folder_key, store_field_name)
        if not isinstance(cached, NodesPageCachedObject):
            continue
        for item in read_nodes_list(cached.nodes):
            child_key = store.identify(item)
            if child_key and child_key not in seen and store.can_read(child_key):
                seen.add(child_key)
                child_key_list.append(child_key)
    return child_key_list


def build_cached_subtree(store, root_key: EntityKey) -> treelib.Tree:
    """Builds a tree of the given node and all of its descendants which can be reached through cached children lists.
    Node identifiers are entity keys. A node reached twice (e.g. listed under two folders) appears only once."""
    tree: treelib.Tree = treelib.Tree()
    tree.create_node(tag=root_key, identifier=root_key)

    key_queue: Deque[EntityKey] = deque([root_key])
    while key_queue:
        parent_key = key_queue.popleft()
        for child_key in get_cached_child_keys(store, parent_key):
            try:
                tree.create_node(tag=child_key, identifier=child_key, parent=parent_key)
            except DuplicatedNodeIdError:
                continue
            key_queue.append(child_key)

    if SUPER_DEBUG_ENABLED:
        logger.debug(f'Cached subtree of "{root_key}" ({tree.size()} nodes): \n' + tree.show(stdout=False))
    return tree
