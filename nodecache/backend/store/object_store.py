import copy
import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from pydispatch import dispatcher

from nodecache.app_config import AppConfig
from nodecache.backend.store.fetch_sequencer import FetchSequencer
from nodecache.backend.store.field_policy import build_default_type_policies, FieldFunctionOptions, FieldPolicy, PolicyRegistry
from nodecache.backend.store.garbage_collector import GarbageCollector
from nodecache.constants import CFG_ENABLE_FETCH_SEQUENCING, CFG_GC_AFTER_EVICT, ID_KEY, REF_KEY, ROOT_QUERY, SUPER_DEBUG_ENABLED, \
    TRACE_ENABLED, TYPENAME_KEY, TYPENAME_QUERY
from nodecache.error import InvalidOperationError
from nodecache.model.cache_context import CacheContext
from nodecache.model.entity_key import build_store_field_name, EntityKey, extract_typename_and_id, make_key, parse_key, \
    parse_store_field_name, Reference
from nodecache.model.field_result import FieldResult
from nodecache.model.partition import NodesPage
from nodecache.signal_constants import ID_GLOBAL_CACHE, Signal
from nodecache.util.ensure import ensure_bool
from nodecache.util.has_lifecycle import HasLifecycle

logger = logging.getLogger(__name__)

EntityDict = Dict[EntityKey, Dict[str, Any]]


class ModifierDetails:
    """
    ◤━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━◥
    CLASS ModifierDetails

    Passed to each updater given to ObjectStore.modify(). Tells apart the stored variants of a field
    (store_field_name, args), and gives read access to the rest of the store.
    ◣━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━◢
    """
    def __init__(self, store: 'ObjectStore', entity_key: EntityKey, field_name: str, store_field_name: str, args: Dict[str, Any]):
        self.store: ObjectStore = store
        self.entity_key: EntityKey = entity_key
        self.field_name: str = field_name
        self.store_field_name: str = store_field_name
        self.args: Dict[str, Any] = args

    def read_field(self, field_name: str, from_ref: Any = None) -> Any:
        if from_ref is None:
            from_ref = Reference(self.entity_key)
        return self.store.read_field_value(from_ref, field_name)

    def read_id(self, item: Any) -> Optional[str]:
        return self.store.read_id(item)

    def to_reference(self, entity: Any) -> Optional[Reference]:
        return self.store.to_reference(entity)

    def can_read(self, ref: Any) -> bool:
        return self.store.can_read(ref)

    def __repr__(self):
        return f'ModifierDetails({self.entity_key}.{self.store_field_name})'


# Updater given to modify(): (existing_value, details) -> Keep(new_value) | Remove
Modifier = Callable[[Any, ModifierDetails], FieldResult]


class ObjectStore(HasLifecycle):
    """
    ▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼
    CLASS ObjectStore

    Normalized cache of entities. Each entity is a dict of field values, keyed by "<typename>:<id>"; the fields of
    top-level queries live in the ROOT_QUERY entity. Nested identifiable entities are never stored inline: a write
    splits them out into their own entries and leaves a Reference in their place.

    A field written with args is stored under a "store field name" built from the args which its policy designates
    as key args, so that e.g. each sort order of a folder's children is cached separately.

    Every broadcasting write sends Signal.CACHE_UPDATED with sender=store_id. Single-threaded: each operation runs
    to completion before the next one starts.
    ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼
    """
    def __init__(self, app_config: Optional[AppConfig] = None, registry: Optional[PolicyRegistry] = None,
                 context: Optional[CacheContext] = None, store_id: str = ID_GLOBAL_CACHE):
        HasLifecycle.__init__(self)
        self.store_id: str = store_id
        self.context: CacheContext = context if context else CacheContext()

        if app_config:
            self.gc_after_evict: bool = ensure_bool(app_config.get_config(CFG_GC_AFTER_EVICT, True, is_required=False))
            enable_fetch_sequencing = ensure_bool(app_config.get_config(CFG_ENABLE_FETCH_SEQUENCING, True, is_required=False))
        else:
            self.gc_after_evict = True
            enable_fetch_sequencing = True

        if registry is None:
            registry = build_default_type_policies()
        self._possible_types: Dict[str, List[str]] = registry.possible_types
        self._policy_table: Dict[Tuple[str, str], FieldPolicy] = registry.build_lookup_table()

        self._data: EntityDict = {}
        self._retained: Dict[EntityKey, int] = {}
        self._gc: GarbageCollector = GarbageCollector()
        self._sequencer: Optional[FetchSequencer] = FetchSequencer() if enable_fetch_sequencing else None

    def shutdown(self):
        if self.was_shutdown:
            return
        logger.debug(f'[{self.store_id}] Shutting down store ({len(self._data)} entities; GC: {self._gc.get_summary()})')
        HasLifecycle.shutdown(self)

    # Identity
    # ⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟

    @staticmethod
    def identify(entity: Any) -> Optional[EntityKey]:
        typename, entity_id = extract_typename_and_id(entity)
        if typename == ROOT_QUERY:
            return ROOT_QUERY
        if not typename or not entity_id:
            return None
        return make_key(typename, entity_id)

    def to_reference(self, entity_or_key: Any) -> Optional[Reference]:
        if isinstance(entity_or_key, Reference):
            return entity_or_key
        if isinstance(entity_or_key, str):
            parse_key(entity_or_key)  # validates
            return Reference(entity_or_key)
        key = self.identify(entity_or_key)
        if key:
            return Reference(key)
        return None

    def can_read(self, ref: Any) -> bool:
        if ref is None:
            return False
        if isinstance(ref, str):
            return ref in self._data
        key = self.identify(ref)
        return key is not None and key in self._data

    def read_id(self, item: Any) -> Optional[str]:
        """ID of a list item. For a reference, only if the entity it points to is still in the cache."""
        if isinstance(item, Reference) or (isinstance(item, Mapping) and REF_KEY in item):
            key = self.identify(item)
            if key in self._data:
                return parse_key(key)[1]
            return None
        if isinstance(item, Mapping):
            entity_id = item.get(ID_KEY, None)
            return str(entity_id) if entity_id is not None else None
        return None

    def read_field_value(self, ref_or_key: Any, field_name: str) -> Any:
        key = ref_or_key if isinstance(ref_or_key, str) else self.identify(ref_or_key)
        if not key:
            return None
        entity = self._data.get(key, None)
        if entity is None:
            return None
        return entity.get(field_name, None)

    def get_possible_types(self, typename: str) -> List[str]:
        return self._possible_types.get(typename, [typename])

    def get_policy(self, typename: str, field_name: str) -> Optional[FieldPolicy]:
        return self._policy_table.get((typename, field_name), None)

    @staticmethod
    def get_typename(key: EntityKey) -> str:
        if key == ROOT_QUERY:
            return TYPENAME_QUERY
        return parse_key(key)[0]

    def get_store_field_name(self, key: EntityKey, field_name: str, args: Optional[Mapping[str, Any]] = None) -> str:
        policy = self.get_policy(self.get_typename(key), field_name)
        if policy:
            return build_store_field_name(field_name, policy.select_key_args(args))
        return build_store_field_name(field_name, args)

    def get_store_field_names(self, key: EntityKey, field_name: str) -> List[str]:
        """All the stored variants of the given field of the given entity"""
        entity = self._data.get(key, None)
        if not entity:
            return []
        return [sfn for sfn in entity.keys() if parse_store_field_name(sfn)[0] == field_name]

    def merge_objects(self, existing: Any, incoming: Any) -> Any:
        if isinstance(incoming, Reference):
            # fields of the referenced entity were already written during normalization
            return incoming
        if isinstance(existing, Mapping) and isinstance(incoming, Mapping):
            merged = dict(existing)
            merged.update(incoming)
            return merged
        return incoming

    # Writes
    # ⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟

    def _get_or_create_entity(self, key: EntityKey) -> Dict[str, Any]:
        entity = self._data.get(key, None)
        if entity is None:
            entity = {}
            if key != ROOT_QUERY:
                typename, entity_id = parse_key(key)
                entity[TYPENAME_KEY] = typename
                entity[ID_KEY] = entity_id
            self._data[key] = entity
        return entity

    def _normalize(self, value: Any, touched_keys: Set[EntityKey]) -> Any:
        if isinstance(value, Reference):
            return value
        if isinstance(value, NodesPage):
            return NodesPage([self._normalize(node, touched_keys) for node in value.nodes], value.page_token)
        if isinstance(value, (list, tuple)):
            return [self._normalize(item, touched_keys) for item in value]
        if isinstance(value, Mapping):
            if REF_KEY in value:
                return Reference(value[REF_KEY])
            key = self.identify(value)
            if key and key != ROOT_QUERY:
                self._write_entity_fields(key, value, None, touched_keys)
                return Reference(key)
            return {field_name: self._normalize(field_value, touched_keys) for field_name, field_value in value.items()}
        return value

    def _write_entity_fields(self, key: EntityKey, data: Mapping[str, Any], shape: Optional[Iterable[str]],
                             touched_keys: Set[EntityKey]):
        self._get_or_create_entity(key)
        field_names = data.keys() if shape is None else [f for f in shape if f in data]
        for field_name in field_names:
            if field_name == TYPENAME_KEY or field_name == ID_KEY:
                continue
            normalized_value = self._normalize(data[field_name], touched_keys)
            self._merge_field(key, field_name, normalized_value, None, None, None)
        touched_keys.add(key)

    def _merge_field(self, key: EntityKey, field_name: str, incoming: Any, args: Optional[Dict[str, Any]],
                     variables: Optional[Dict[str, Any]], context: Optional[CacheContext]) -> str:
        policy = self.get_policy(self.get_typename(key), field_name)
        store_field_name = self.get_store_field_name(key, field_name, args)
        existing = self._get_or_create_entity(key).get(store_field_name, None)

        if policy and policy.has_merge():
            options = FieldFunctionOptions(self, key, field_name, store_field_name, args, variables, context or self.context)
            new_value = policy.merge(existing, incoming, options)
        else:
            new_value = incoming

        if TRACE_ENABLED:
            logger.debug(f'[{self.store_id}] Merged {key}.{store_field_name}: {existing} + {incoming} -> {new_value}')

        # the policy may have evicted things along the way, so look the entity up again
        self._get_or_create_entity(key)[store_field_name] = new_value
        return store_field_name

    def write_fragment(self, key: Optional[EntityKey], shape: Optional[Iterable[str]], value: Mapping[str, Any],
                       broadcast: bool = True) -> Reference:
        """Writes the fields of value listed in shape (or all of them, if shape is None) into the entity with the given
        key (or the key identified from value, if key is None)."""
        if key is None:
            key = self.identify(value)
            if key is None:
                raise InvalidOperationError(f'write_fragment: value is not identifiable: {value}')
        elif key != ROOT_QUERY:
            parse_key(key)

        touched_keys: Set[EntityKey] = set()
        self._write_entity_fields(key, value, shape, touched_keys)

        if SUPER_DEBUG_ENABLED:
            logger.debug(f'[{self.store_id}] write_fragment({key}, broadcast={broadcast}): touched {touched_keys}')
        if broadcast:
            self._send_updated(touched_keys)
        return Reference(key)

    def write_entity(self, data: Mapping[str, Any], broadcast: bool = True) -> Reference:
        return self.write_fragment(None, None, data, broadcast=broadcast)

    def begin_fetch(self, key: Optional[EntityKey], field_name: str, args: Optional[Dict[str, Any]] = None) -> Optional[int]:
        """Call before sending a request for a page of the given list. Returns a ticket to pass to write_field()
        with the result, or None if fetch sequencing is disabled."""
        if self._sequencer is None:
            return None
        key = key or ROOT_QUERY
        return self._sequencer.begin_fetch(self._build_list_key(key, self.get_store_field_name(key, field_name, args)))

    @staticmethod
    def _build_list_key(key: EntityKey, store_field_name: str) -> str:
        return f'{key}.{store_field_name}'

    def write_field(self, key: Optional[EntityKey], field_name: str, incoming: Any, args: Optional[Dict[str, Any]] = None,
                    variables: Optional[Dict[str, Any]] = None, ticket: Optional[int] = None, broadcast: bool = True,
                    context: Optional[CacheContext] = None) -> bool:
        """Merges a query result into the field, using its registered merge policy if any.
        Returns False if the result was dropped because a newer fetch of the same list was started after it."""
        key = key or ROOT_QUERY

        if ticket is not None and self._sequencer is not None:
            list_key = self._build_list_key(key, self.get_store_field_name(key, field_name, args))
            if not self._sequencer.is_current(list_key, ticket):
                logger.info(f'[{self.store_id}] Dropping stale page for "{list_key}" (ticket {ticket})')
                dispatcher.send(signal=Signal.PAGE_DISCARDED, sender=self.store_id, list_key=list_key, ticket=ticket)
                return False

        touched_keys: Set[EntityKey] = set()
        normalized = self._normalize(incoming, touched_keys)
        store_field_name = self._merge_field(key, field_name, normalized, args, variables, context)
        touched_keys.add(key)

        if SUPER_DEBUG_ENABLED:
            logger.debug(f'[{self.store_id}] write_field({key}.{store_field_name}): touched {len(touched_keys)} entities')
        if broadcast:
            self._send_updated(touched_keys)
        return True

    # Reads
    # ⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟

    def read_fragment(self, key: EntityKey, shape: Iterable[str]) -> Optional[Dict[str, Any]]:
        entity = self._data.get(key, None)
        if entity is None:
            return None

        fragment: Dict[str, Any] = {}
        for field_name in shape:
            if field_name not in entity:
                if SUPER_DEBUG_ENABLED:
                    logger.debug(f'[{self.store_id}] read_fragment({key}): missing field "{field_name}"')
                return None
            fragment[field_name] = entity[field_name]
        return fragment

    def read_field(self, key: Optional[EntityKey], field_name: str, args: Optional[Dict[str, Any]] = None,
                   variables: Optional[Dict[str, Any]] = None, context: Optional[CacheContext] = None) -> Any:
        """Returns None if the field needs to be fetched from the network"""
        key = key or ROOT_QUERY
        policy = self.get_policy(self.get_typename(key), field_name)
        store_field_name = self.get_store_field_name(key, field_name, args)
        entity = self._data.get(key, None)
        existing = entity.get(store_field_name, None) if entity else None

        if policy and policy.has_read():
            options = FieldFunctionOptions(self, key, field_name, store_field_name, args, variables, context or self.context)
            return policy.read(existing, options)
        return existing

    # Modify & evict
    # ⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟

    def modify(self, key: Optional[EntityKey], modifiers: Dict[str, Modifier], broadcast: bool = True) -> bool:
        """Applies each modifier to every stored variant of its field. Returns True if anything changed."""
        key = key or ROOT_QUERY
        entity = self._data.get(key, None)
        if entity is None:
            logger.debug(f'[{self.store_id}] modify(): entity not in cache: {key}')
            return False

        changed = False
        for store_field_name in list(entity.keys()):
            field_name, args = parse_store_field_name(store_field_name)
            modifier = modifiers.get(field_name, None)
            if not modifier:
                continue

            # a previous modifier may have evicted the entity or the field
            entity = self._data.get(key, None)
            if entity is None:
                break
            if store_field_name not in entity:
                continue

            existing = entity[store_field_name]
            result = modifier(existing, ModifierDetails(self, key, field_name, store_field_name, args))
            if not isinstance(result, FieldResult):
                raise InvalidOperationError(f'modify({key}.{store_field_name}): modifier must return Keep or Remove, got {result!r}')

            entity = self._data.get(key, None)
            if entity is None:
                break
            if result.is_remove():
                if store_field_name in entity:
                    del entity[store_field_name]
                    self._forget_list(key, store_field_name)
                    changed = True
                    if SUPER_DEBUG_ENABLED:
                        logger.debug(f'[{self.store_id}] modify(): removed {key}.{store_field_name}')
            elif result.value != existing:
                entity[store_field_name] = result.value
                changed = True

        if changed and broadcast:
            self._send_updated({key})
        return changed

    def evict(self, key: Optional[EntityKey] = None, field_name: Optional[str] = None, args: Optional[Dict[str, Any]] = None,
              broadcast: bool = True) -> bool:
        """Without field_name, removes the whole entity. With it, removes every stored variant of the field, or only
        the one matching args if given. Returns False if there was nothing to evict."""
        key = key or ROOT_QUERY
        entity = self._data.get(key, None)
        if entity is None:
            return False

        if field_name is None:
            del self._data[key]
            self._forget_list(key, '')
        else:
            if args is not None:
                store_field_name_list = [self.get_store_field_name(key, field_name, args)]
            else:
                store_field_name_list = self.get_store_field_names(key, field_name)

            removed_count = 0
            for store_field_name in store_field_name_list:
                if store_field_name in entity:
                    del entity[store_field_name]
                    self._forget_list(key, store_field_name)
                    removed_count += 1
            if not removed_count:
                return False

        logger.debug(f'[{self.store_id}] Evicted {key}' + (f'.{field_name}' if field_name else ''))
        if broadcast:
            dispatcher.send(signal=Signal.CACHE_EVICTED, sender=self.store_id, key=key, field_name=field_name)
        return True

    def _forget_list(self, key: EntityKey, store_field_name: str):
        if self._sequencer is not None:
            self._sequencer.forget(self._build_list_key(key, store_field_name))

    # GC
    # ⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟

    def retain(self, key: EntityKey) -> int:
        """Makes the entity a GC root until released. Returns the new retain count."""
        count = self._retained.get(key, 0) + 1
        self._retained[key] = count
        return count

    def release(self, key: EntityKey) -> int:
        count = self._retained.get(key, 0) - 1
        if count <= 0:
            self._retained.pop(key, None)
            return 0
        self._retained[key] = count
        return count

    def gc(self) -> List[EntityKey]:
        root_keys = [ROOT_QUERY] + list(self._retained.keys())
        removed_keys = self._gc.collect(self._data, root_keys)
        if removed_keys:
            for key in removed_keys:
                self._forget_list(key, '')
            dispatcher.send(signal=Signal.CACHE_GC_DONE, sender=self.store_id, removed_keys=removed_keys)
        return removed_keys

    def gc_if_enabled(self) -> List[EntityKey]:
        if self.gc_after_evict:
            return self.gc()
        return []

    # Snapshots
    # ⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟⮟

    def extract(self) -> EntityDict:
        return copy.deepcopy(self._data)

    def restore(self, snapshot: EntityDict, broadcast: bool = True):
        changed_keys = set(self._data.keys()) | set(snapshot.keys())
        self._data = copy.deepcopy(snapshot)
        logger.debug(f'[{self.store_id}] Restored snapshot of {len(self._data)} entities')
        if broadcast:
            self._send_updated(changed_keys)

    def _send_updated(self, changed_keys: Set[EntityKey]):
        if changed_keys:
            dispatcher.send(signal=Signal.CACHE_UPDATED, sender=self.store_id, changed_keys=set(changed_keys))

    def __contains__(self, key) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self):
        return f'ObjectStore(id={self.store_id} entities={len(self._data)} retained={len(self._retained)})'
