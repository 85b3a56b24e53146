import logging
from abc import ABC
from typing import Any, Dict, List, Mapping, Optional, Tuple

from nodecache.backend.store.list_merge import merge_nodes_list, read_nodes_list
from nodecache.constants import ARG_CURSOR, ARG_LIMIT, ARG_NODE_ID, ARG_PAGE_TOKEN, ARG_SORT, DEFAULT_POSSIBLE_TYPES, FIELD_CHILDREN, \
    FIELD_FIND_NODES, FIELD_GET_COLLABORATION_LINKS, FIELD_GET_LINKS, FIELD_GET_NODE, FIELD_GET_VERSIONS, FIELD_OWNER, FIELD_PARENT, \
    FIELD_SHARES, FIND_NODES_KEY_ARGS, SUPER_DEBUG_ENABLED, TYPENAME_FOLDER, TYPENAME_NODE, TYPENAME_QUERY, TYPENAME_USER
from nodecache.error import PolicyConflictError
from nodecache.model.cache_context import CacheContext
from nodecache.model.entity_key import EntityKey, Reference, make_key
from nodecache.model.partition import FindNodesCachedObject, NodesPage, NodesPageCachedObject, NodesPartition, SharesCachedObject

logger = logging.getLogger(__name__)


class FieldFunctionOptions:
    """
    ◤━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━◥
    CLASS FieldFunctionOptions

    Everything a merge or read function may need to know about the field it is working on.
    ◣━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━◢
    """
    def __init__(self, store, entity_key: EntityKey, field_name: str, store_field_name: str, args: Optional[Dict[str, Any]],
                 variables: Optional[Dict[str, Any]], context: CacheContext):
        self.store = store
        self.entity_key: EntityKey = entity_key
        self.field_name: str = field_name
        self.store_field_name: str = store_field_name
        self.args: Dict[str, Any] = args or {}
        self.variables: Dict[str, Any] = variables or {}
        self.context: CacheContext = context

    def read_field(self, field_name: str, from_ref: Any = None) -> Any:
        """Reads a field of the given entity, or of the entity which owns the current field if none is given"""
        if from_ref is None:
            from_ref = Reference(self.entity_key)
        return self.store.read_field_value(from_ref, field_name)

    def to_reference(self, entity: Any) -> Optional[Reference]:
        return self.store.to_reference(entity)

    def can_read(self, ref: Optional[Reference]) -> bool:
        return self.store.can_read(ref)

    def merge_objects(self, existing: Any, incoming: Any) -> Any:
        return self.store.merge_objects(existing, incoming)

    def is_first_page(self) -> bool:
        """True if the request did not carry a continuation token"""
        return not (self.args.get(ARG_PAGE_TOKEN, None) or self.variables.get(ARG_PAGE_TOKEN, None))


class FieldPolicy(ABC):
    """
    ◤━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━◥
    ABSTRACT CLASS FieldPolicy

    Merge and/or read strategy for one field. key_args lists the args which distinguish cached variants of the field:
    None means "all args", an empty list means "none".
    ◣━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━◢
    """
    def __init__(self, key_args: Optional[List[str]] = None):
        self.key_args: Optional[List[str]] = key_args

    @staticmethod
    def has_merge() -> bool:
        return False

    @staticmethod
    def has_read() -> bool:
        return False

    def select_key_args(self, args: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        if not args:
            return {}
        if self.key_args is None:
            return dict(args)
        return {name: args[name] for name in self.key_args if name in args and args[name] is not None}

    def merge(self, existing: Any, incoming: Any, options: FieldFunctionOptions) -> Any:
        return incoming

    def read(self, existing: Any, options: FieldFunctionOptions) -> Any:
        return existing

    def __repr__(self):
        return f'{type(self).__name__}(key_args={self.key_args})'


def _as_nodes_page(incoming: Any) -> NodesPage:
    if isinstance(incoming, NodesPage):
        return incoming
    if isinstance(incoming, Mapping):
        return NodesPage(list(incoming.get('nodes', None) or []), incoming.get(ARG_PAGE_TOKEN, None))
    if incoming is None:
        return NodesPage([], None)
    # a bare list of nodes: fully loaded
    return NodesPage(list(incoming), None)


class NodesListPolicy(FieldPolicy):
    """
    ▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼
    CLASS NodesListPolicy

    Paginated list of nodes, cached as a NodesPartition plus the page token.

    reset_on_first_page: a page requested without a continuation token replaces whatever was cached under the same key,
        so that results of a previous, unrelated request with the same key args are never mixed in.
    keep_args: also store the request args in the cached object (so that updaters can tell filters apart).
    backfill_parent: on read, write a "parent" reference into each listed node which has none, without broadcasting.
    ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼
    """
    def __init__(self, key_args: Optional[List[str]], reset_on_first_page: bool = True, keep_args: bool = False,
                 backfill_parent: bool = False):
        super().__init__(key_args)
        self.reset_on_first_page: bool = reset_on_first_page
        self.keep_args: bool = keep_args
        self.backfill_parent: bool = backfill_parent

    @staticmethod
    def has_merge() -> bool:
        return True

    @staticmethod
    def has_read() -> bool:
        return True

    def merge(self, existing: Optional[NodesPageCachedObject], incoming: Any, options: FieldFunctionOptions) -> NodesPageCachedObject:
        incoming_page: NodesPage = _as_nodes_page(incoming)

        if existing is None or (self.reset_on_first_page and options.is_first_page()):
            if existing is not None and SUPER_DEBUG_ENABLED:
                logger.debug(f'First page requested for {options.entity_key}.{options.store_field_name}: discarding cached list')
            existing_nodes = NodesPartition.empty()
        else:
            existing_nodes = existing.nodes

        merged = merge_nodes_list(existing_nodes, incoming_page.nodes, read_id=options.store.read_id,
                                  merge_objects=options.merge_objects)

        if self.keep_args:
            return FindNodesCachedObject(incoming_page.page_token, merged, dict(options.args))
        return NodesPageCachedObject(incoming_page.page_token, merged)

    def read(self, existing: Optional[NodesPageCachedObject], options: FieldFunctionOptions) -> Optional[NodesPage]:
        if existing is None:
            # nothing cached: go to the network
            return None

        node_list = read_nodes_list(existing.nodes)
        if self.backfill_parent:
            self._backfill_parent(node_list, options)
        return NodesPage(node_list, existing.page_token)

    @staticmethod
    def _backfill_parent(node_list: List[Any], options: FieldFunctionOptions):
        parent_ref = Reference(options.entity_key)
        for node in node_list:
            if not isinstance(node, Reference) or not options.can_read(node):
                continue
            if options.read_field(FIELD_PARENT, node) is None:
                options.store.write_fragment(node.key, [FIELD_PARENT], {FIELD_PARENT: parent_ref}, broadcast=False)


class BoundedSharesPolicy(FieldPolicy):
    """
    ▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼
    CLASS BoundedSharesPolicy

    Collaborators of a node, fetched with a (cursor, limit). The cached shares "dominate" a new request when:
      - the request has no limit, or
      - a previous request already asked for at least as many shares, or
      - fewer shares came back than the previous limit (so the server has no more to give).
    In those cases the cache answers without going to the network.
    ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼
    """
    def __init__(self):
        super().__init__(key_args=[])

    @staticmethod
    def has_merge() -> bool:
        return True

    @staticmethod
    def has_read() -> bool:
        return True

    @staticmethod
    def _dominates(existing: SharesCachedObject, args: Dict[str, Any]) -> bool:
        requested_limit = args.get(ARG_LIMIT, None)
        return requested_limit is None or existing.limit >= requested_limit or len(existing.shares) < existing.limit

    def merge(self, existing: Optional[SharesCachedObject], incoming: Any, options: FieldFunctionOptions) -> SharesCachedObject:
        incoming_shares = list(incoming or [])
        args = dict(options.args)

        if args.get(ARG_CURSOR, None):
            existing_shares = existing.shares if existing else []
            return SharesCachedObject(args, existing_shares + incoming_shares)

        if existing is not None and existing.limit is not None and self._dominates(existing, args):
            return existing

        return SharesCachedObject(args, incoming_shares)

    def read(self, existing: Optional[SharesCachedObject], options: FieldFunctionOptions) -> Optional[List[Any]]:
        if existing is None:
            return None

        if existing.limit is None or self._dominates(existing, options.args):
            node_ref = Reference(options.entity_key)
            share_list = []
            for share in existing.shares:
                if isinstance(share, Mapping):
                    share = dict(share)
                    share['node'] = node_ref
                share_list.append(share)
            return share_list

        # asking for more than what is cached
        return None


class OverwritePolicy(FieldPolicy):
    """Incoming data always replaces what is cached"""
    @staticmethod
    def has_merge() -> bool:
        return True

    def merge(self, existing: Any, incoming: Any, options: FieldFunctionOptions) -> Any:
        return incoming


class OwnerPolicy(FieldPolicy):
    """Only roots come back with a null owner: their owner is the logged user"""
    def __init__(self):
        super().__init__(key_args=[])

    @staticmethod
    def has_merge() -> bool:
        return True

    def merge(self, existing: Any, incoming: Any, options: FieldFunctionOptions) -> Any:
        if incoming is None:
            logged_user_id = options.context.logged_user_id
            if not logged_user_id:
                return None
            logged_user_ref = Reference(make_key(TYPENAME_USER, logged_user_id))
            return logged_user_ref if options.can_read(logged_user_ref) else None
        return incoming


class NodeLookupPolicy(FieldPolicy):
    """Answers a lookup by node_id from any node already in the cache, whatever query loaded it"""
    def __init__(self, abstract_typename: str = TYPENAME_NODE):
        super().__init__(key_args=None)
        self.abstract_typename: str = abstract_typename

    @staticmethod
    def has_read() -> bool:
        return True

    def read(self, existing: Any, options: FieldFunctionOptions) -> Optional[Reference]:
        node_id = options.args.get(ARG_NODE_ID, None)
        if not node_id:
            return None
        for typename in options.store.get_possible_types(self.abstract_typename):
            ref = Reference(make_key(typename, node_id))
            if options.can_read(ref):
                return ref
        return existing


class PolicyRegistry:
    """
    ▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼
    CLASS PolicyRegistry

    Maps (typename, field_name) to a FieldPolicy. A policy registered for an abstract type (e.g. "Node") applies to
    each of its possible types, unless that type has its own policy for the same field.
    ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼
    """
    def __init__(self, possible_types: Optional[Dict[str, List[str]]] = None):
        if possible_types is None:
            possible_types = DEFAULT_POSSIBLE_TYPES
        self.possible_types: Dict[str, List[str]] = {abstract: list(concrete) for abstract, concrete in possible_types.items()}
        self._policy_dict: Dict[Tuple[str, str], FieldPolicy] = {}

    def register(self, typename: str, field_name: str, policy: FieldPolicy):
        key = (typename, field_name)
        if key in self._policy_dict:
            raise PolicyConflictError(typename, field_name)
        self._policy_dict[key] = policy

    def register_type_policies(self, typename: str, field_policies: Dict[str, FieldPolicy]):
        for field_name, policy in field_policies.items():
            self.register(typename, field_name, policy)

    def get_supertypes(self, typename: str) -> List[str]:
        return [abstract for abstract, concrete_list in self.possible_types.items() if typename in concrete_list]

    def build_lookup_table(self) -> Dict[Tuple[str, str], FieldPolicy]:
        """Flattens abstract-type policies into their concrete types. Done once, when the store is constructed."""
        table: Dict[Tuple[str, str], FieldPolicy] = dict(self._policy_dict)
        for (typename, field_name), policy in self._policy_dict.items():
            for concrete_typename in self.possible_types.get(typename, []):
                if (concrete_typename, field_name) not in table:
                    table[(concrete_typename, field_name)] = policy

        if SUPER_DEBUG_ENABLED:
            logger.debug(f'Built field policy table with {len(table)} entries: {sorted(table.keys())}')
        return table

    def __len__(self):
        return len(self._policy_dict)


def build_default_type_policies(possible_types: Optional[Dict[str, List[str]]] = None) -> PolicyRegistry:
    registry = PolicyRegistry(possible_types)

    registry.register_type_policies(TYPENAME_NODE, {
        FIELD_SHARES: BoundedSharesPolicy(),
        FIELD_OWNER: OwnerPolicy(),
    })

    registry.register_type_policies(TYPENAME_FOLDER, {
        FIELD_CHILDREN: NodesListPolicy(key_args=[ARG_SORT], reset_on_first_page=True, backfill_parent=True),
    })

    registry.register_type_policies(TYPENAME_QUERY, {
        FIELD_FIND_NODES: NodesListPolicy(key_args=list(FIND_NODES_KEY_ARGS), reset_on_first_page=True, keep_args=True),
        FIELD_GET_NODE: NodeLookupPolicy(),
        FIELD_GET_VERSIONS: OverwritePolicy(),
        FIELD_GET_LINKS: OverwritePolicy(),
        FIELD_GET_COLLABORATION_LINKS: OverwritePolicy(),
    })

    return registry

