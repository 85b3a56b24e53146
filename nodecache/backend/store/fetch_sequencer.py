import logging
from typing import Dict

logger = logging.getLogger(__name__)


class FetchSequencer:
    """
    ▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼
    CLASS FetchSequencer

    Hands out an increasing ticket for each page fetch of a list. Only a page carrying the newest ticket for its list
    may be merged: a page from a fetch which was superseded while in flight is stale and must be dropped, since the
    merge itself has no way to tell which of two racing pages is the more recent.
    ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼
    """
    def __init__(self):
        self._latest_ticket_dict: Dict[str, int] = {}
        self._ticket_counter: int = 0

    def begin_fetch(self, list_key: str) -> int:
        self._ticket_counter += 1
        self._latest_ticket_dict[list_key] = self._ticket_counter
        logger.debug(f'Issued fetch ticket {self._ticket_counter} for list "{list_key}"')
        return self._ticket_counter

    def is_current(self, list_key: str, ticket: int) -> bool:
        latest = self._latest_ticket_dict.get(list_key, None)
        # A ticket for a list which was forgotten (e.g. evicted since) is still accepted
        return latest is None or latest == ticket

    def forget(self, list_key_prefix: str):
        """Drops the tickets of every list whose key starts with the given prefix"""
        for list_key in [k for k in self._latest_ticket_dict.keys() if k.startswith(list_key_prefix)]:
            del self._latest_ticket_dict[list_key]
