import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class NodesPartition:
    """
    ▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼
    CLASS NodesPartition

    Cached shape of a paginated list of nodes.

    "ordered" holds the items whose relative position was confirmed by the server's sort order.
    "unordered" holds items which are known to belong to the list, but whose position relative to the ordered items
    is not known yet (e.g. items created or moved by a mutation, before the page which contains them is loaded).
    An ID appears in at most one of the two. The visible list is ordered + unordered.
    ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼
    """
    def __init__(self, ordered: Optional[List[Any]] = None, unordered: Optional[List[Any]] = None):
        self.ordered: List[Any] = ordered if ordered is not None else []
        self.unordered: List[Any] = unordered if unordered is not None else []

    @staticmethod
    def empty() -> 'NodesPartition':
        return NodesPartition([], [])

    def is_empty(self) -> bool:
        return not self.ordered and not self.unordered

    def __len__(self):
        return len(self.ordered) + len(self.unordered)

    def __eq__(self, other):
        return isinstance(other, NodesPartition) and other.ordered == self.ordered and other.unordered == self.unordered

    def __repr__(self):
        return f'NodesPartition(ordered={self.ordered} unordered={self.unordered})'


class NodesPage:
    """What readers see for a paginated list: the visible nodes plus the continuation token (None = fully loaded)."""
    def __init__(self, nodes: List[Any], page_token: Optional[str] = None):
        self.nodes: List[Any] = nodes
        self.page_token: Optional[str] = page_token

    def __eq__(self, other):
        return isinstance(other, NodesPage) and other.nodes == self.nodes and other.page_token == self.page_token

    def __repr__(self):
        return f'NodesPage(page_token={self.page_token!r} nodes={self.nodes})'


class NodesPageCachedObject:
    def __init__(self, page_token: Optional[str], nodes: Optional[NodesPartition]):
        self.page_token: Optional[str] = page_token
        self.nodes: Optional[NodesPartition] = nodes

    def with_nodes(self, nodes: NodesPartition) -> 'NodesPageCachedObject':
        return NodesPageCachedObject(self.page_token, nodes)

    def __eq__(self, other):
        return type(other) == type(self) and other.page_token == self.page_token and other.nodes == self.nodes

    def __repr__(self):
        return f'{type(self).__name__}(page_token={self.page_token!r} nodes={self.nodes})'


class FindNodesCachedObject(NodesPageCachedObject):
    """Same as NodesPageCachedObject, but also remembers the filter args which produced it"""
    def __init__(self, page_token: Optional[str], nodes: Optional[NodesPartition], args: Optional[Dict[str, Any]]):
        super().__init__(page_token, nodes)
        self.args: Optional[Dict[str, Any]] = args

    def with_nodes(self, nodes: NodesPartition) -> 'FindNodesCachedObject':
        return FindNodesCachedObject(self.page_token, nodes, self.args)

    def __eq__(self, other):
        return super().__eq__(other) and other.args == self.args

    def __repr__(self):
        return f'FindNodesCachedObject(args={self.args} page_token={self.page_token!r} nodes={self.nodes})'


class SharesCachedObject:
    """Shares of a node, plus the (cursor, limit) args of the request which produced them"""
    def __init__(self, args: Optional[Dict[str, Any]], shares: List[Any]):
        self.args: Optional[Dict[str, Any]] = args
        self.shares: List[Any] = shares

    @property
    def limit(self) -> Optional[int]:
        if self.args:
            return self.args.get('limit', None)
        return None

    def __eq__(self, other):
        return isinstance(other, SharesCachedObject) and other.args == self.args and other.shares == self.shares

    def __repr__(self):
        return f'SharesCachedObject(args={self.args} shares={len(self.shares)})'
