import logging
from enum import Enum
from typing import Any, Callable, List, Mapping, Optional, Sequence

from nodecache.constants import NodeType

logger = logging.getLogger(__name__)


class NodeSort(str, Enum):
    NAME_ASC = 'NAME_ASC'
    NAME_DESC = 'NAME_DESC'
    TYPE_ASC = 'TYPE_ASC'
    TYPE_DESC = 'TYPE_DESC'
    UPDATED_AT_ASC = 'UPDATED_AT_ASC'
    UPDATED_AT_DESC = 'UPDATED_AT_DESC'
    SIZE_ASC = 'SIZE_ASC'
    SIZE_DESC = 'SIZE_DESC'


DEFAULT_NODE_SORT = NodeSort.NAME_ASC


def _get_prop(node: Any, prop: str) -> Any:
    if node is None:
        return None
    if isinstance(node, Mapping):
        return node.get(prop, None)
    return getattr(node, prop, None)


def property_comparator(node_a: Any, node_b: Any, prop: str, default_if_null: Any = None,
                        prop_modifier: Optional[Callable[[Any], Any]] = None) -> int:
    """Null sorts first. Returns -1, 0 or 1."""
    prop_a = _get_prop(node_a, prop)
    if prop_a is None:
        prop_a = default_if_null
    prop_b = _get_prop(node_b, prop)
    if prop_b is None:
        prop_b = default_if_null

    if prop_a == prop_b:
        return 0
    if prop_a is None:
        return -1
    if prop_b is None:
        return 1

    if prop_modifier:
        prop_a = prop_modifier(prop_a)
        prop_b = prop_modifier(prop_b)
        # check again after modifier
        if prop_a == prop_b:
            return 0

    return -1 if prop_a < prop_b else 1


def _is_folder(node: Any) -> bool:
    return _get_prop(node, 'type') == NodeType.FOLDER


def _type_comparator(node_a: Any, node_b: Any) -> int:
    """Folders first. Nodes with no type sort before everything."""
    type_a = _get_prop(node_a, 'type')
    type_b = _get_prop(node_b, 'type')
    if not type_a and not type_b:
        return 0
    if not type_a:
        return -1
    if not type_b:
        return 1
    if _is_folder(node_a) and not _is_folder(node_b):
        return -1
    if not _is_folder(node_a) and _is_folder(node_b):
        return 1
    return 0


def _lower(val: str) -> str:
    return val.lower()


def node_sort_comparator(node_a: Any, node_b: Any, sort_list: Sequence[NodeSort]) -> int:
    """Applies each sort of sort_list in turn until one of them tells the two nodes apart.
    Reproduces the server's sort so that an optimistically inserted node lands where the server will put it."""
    result = 0
    for sort in sort_list:
        if sort == NodeSort.NAME_DESC:
            result = property_comparator(node_b, node_a, 'name', prop_modifier=_lower)
        elif sort == NodeSort.TYPE_ASC:
            result = _type_comparator(node_a, node_b)
        elif sort == NodeSort.TYPE_DESC:
            result = -_type_comparator(node_a, node_b)
        elif sort == NodeSort.UPDATED_AT_ASC:
            result = property_comparator(node_a, node_b, 'updated_at')
        elif sort == NodeSort.UPDATED_AT_DESC:
            result = property_comparator(node_b, node_a, 'updated_at')
        elif sort == NodeSort.SIZE_ASC:
            result = property_comparator(node_a, node_b, 'size', default_if_null=0)
        elif sort == NodeSort.SIZE_DESC:
            result = property_comparator(node_b, node_a, 'size', default_if_null=0)
        else:
            # NAME_ASC, and fallback for anything unexpected
            result = property_comparator(node_a, node_b, 'name', prop_modifier=_lower)

        if result != 0:
            return result
    return result


def get_sort_list(sort: NodeSort) -> List[NodeSort]:
    """Folders are always listed before files, except when sorting by size"""
    if sort == NodeSort.SIZE_ASC or sort == NodeSort.SIZE_DESC:
        return [sort]
    return [NodeSort.TYPE_ASC, sort]


def find_index_in_sorted_list(node_list: Sequence[Any], node: Any, sort: NodeSort) -> int:
    """Returns the index of the first node in node_list which should come after the given node, or -1 if the given node
    sorts after all of them."""
    sort_list = get_sort_list(sort)
    for index, list_node in enumerate(node_list):
        if node_sort_comparator(node, list_node, sort_list) < 0:
            return index
    return -1
