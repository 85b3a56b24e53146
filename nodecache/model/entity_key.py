import json
import logging
from typing import Any, Dict, Mapping, Optional, Tuple

from nodecache.constants import ID_KEY, REF_KEY, ROOT_QUERY, TYPENAME_KEY
from nodecache.error import InvalidEntityKeyError

logger = logging.getLogger(__name__)

# Explicit type alias. Always of the form "<typename>:<id>", except for ROOT_QUERY
EntityKey = str

KEY_SEPARATOR = ':'


def make_key(typename: str, entity_id: str) -> EntityKey:
    assert typename, f'make_key(): typename is empty (id={entity_id})'
    assert entity_id is not None and entity_id != '', f'make_key(): id is empty (typename={typename})'
    return f'{typename}{KEY_SEPARATOR}{entity_id}'


def parse_key(key: EntityKey) -> Tuple[str, Optional[str]]:
    """Returns (typename, id). ROOT_QUERY is the only key without an ID."""
    if key == ROOT_QUERY:
        return ROOT_QUERY, None
    if not key or KEY_SEPARATOR not in key:
        raise InvalidEntityKeyError(key)
    typename, entity_id = key.split(KEY_SEPARATOR, 1)
    if not typename or not entity_id:
        raise InvalidEntityKeyError(key)
    return typename, entity_id


class Reference:
    """
    ◤━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━◥
    CLASS Reference

    Pointer from a field value to another normalized entity. Two references are equal if they point to the same key.
    ◣━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━◢
    """
    __slots__ = ('key',)

    def __init__(self, key: EntityKey):
        assert key, 'Reference(): key is empty!'
        self.key: EntityKey = key

    @property
    def typename(self) -> str:
        return parse_key(self.key)[0]

    @property
    def id(self) -> Optional[str]:
        return parse_key(self.key)[1]

    def to_dict(self) -> Dict[str, str]:
        return {REF_KEY: self.key}

    def __eq__(self, other):
        return isinstance(other, Reference) and other.key == self.key

    def __hash__(self):
        return hash(self.key)

    def __repr__(self):
        return f'Ref({self.key})'


def extract_typename_and_id(entity: Any) -> Tuple[Optional[str], Optional[str]]:
    if isinstance(entity, Reference):
        return parse_key(entity.key)
    if isinstance(entity, Mapping):
        if REF_KEY in entity:
            return parse_key(entity[REF_KEY])
        entity_id = entity.get(ID_KEY, None)
        return entity.get(TYPENAME_KEY, None), (str(entity_id) if entity_id is not None else None)
    return None, None


def build_store_field_name(field_name: str, key_args: Optional[Mapping[str, Any]]) -> str:
    """E.g. children + {"sort": "NAME_ASC"} -> 'children:{"sort":"NAME_ASC"}'. A field with no key args is stored under its name."""
    if not key_args:
        return field_name
    return f'{field_name}{KEY_SEPARATOR}{json.dumps(dict(key_args), sort_keys=True, separators=(",", ":"), default=str)}'


def parse_store_field_name(store_field_name: str) -> Tuple[str, Dict[str, Any]]:
    """Inverse of build_store_field_name(). Returns (field_name, key_args)."""
    if KEY_SEPARATOR not in store_field_name:
        return store_field_name, {}
    field_name, args_json = store_field_name.split(KEY_SEPARATOR, 1)
    try:
        return field_name, json.loads(args_json)
    except ValueError:
        logger.warning(f'Could not parse key args of store field "{store_field_name}"')
        return field_name, {}
