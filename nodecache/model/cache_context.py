import logging
from typing import Optional

from nodecache.model.node_sort import DEFAULT_NODE_SORT, NodeSort

logger = logging.getLogger(__name__)


class CacheContext:
    """
    ▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼
    CLASS CacheContext

    UI state which merge/read policies and mutation updaters need to know about: the sort order currently applied to
    lists, the folder currently open in the main list, and the logged user. Callers own it and pass it in explicitly.
    ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼
    """
    def __init__(self, node_sort: NodeSort = DEFAULT_NODE_SORT, current_folder_id: Optional[str] = None,
                 logged_user_id: Optional[str] = None):
        self.node_sort: NodeSort = node_sort
        self.current_folder_id: Optional[str] = current_folder_id
        self.logged_user_id: Optional[str] = logged_user_id

    def with_sort(self, node_sort: NodeSort) -> 'CacheContext':
        return CacheContext(node_sort, self.current_folder_id, self.logged_user_id)

    def with_current_folder(self, folder_id: Optional[str]) -> 'CacheContext':
        return CacheContext(self.node_sort, folder_id, self.logged_user_id)

    def __repr__(self):
        return f'CacheContext(sort={self.node_sort.value} current_folder={self.current_folder_id} user={self.logged_user_id})'
