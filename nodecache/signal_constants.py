from enum import IntEnum

# Note: this file cannot be named "signal.py" because it will result in a namespace conflict with an imported library

ID_GLOBAL_CACHE = 'global_cache'


class Signal(IntEnum):
    CACHE_UPDATED = 1
    """Sent by an ObjectStore after a broadcasting write or modify. Args: changed_keys (Set[str])"""

    CACHE_EVICTED = 2
    """Sent by an ObjectStore after an entity or one of its fields was evicted. Args: key (str), field_name (Optional[str])"""

    CACHE_GC_DONE = 3
    """Sent by an ObjectStore after a sweep. Args: removed_keys (List[str])"""

    PAGE_DISCARDED = 4
    """Sent when a page arrived for a fetch which was superseded by a newer fetch of the same list.
    Args: list_key (str), ticket (int)"""

    SHUTDOWN_CACHE = 10
