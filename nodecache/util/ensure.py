import logging
from typing import Iterable

logger = logging.getLogger(__name__)


def ensure_bool(val) -> bool:
    if isinstance(val, str):
        # may come from an env var or a quoted config entry
        return val.strip().lower() in ('true', 'yes', '1')
    return bool(val)


def ensure_id_set(id_list: Iterable[str]) -> set:
    """Accepts a single ID or any iterable of IDs"""
    if isinstance(id_list, str):
        return {id_list}
    return set(id_list or [])
