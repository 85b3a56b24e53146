import logging
from abc import ABC
from typing import Callable, List, Optional

from pydispatch import dispatcher
from pydispatch.dispatcher import Any
from pydispatch.errors import DispatcherKeyError

from nodecache.signal_constants import Signal

logger = logging.getLogger(__name__)


class ListenerInfo:
    """
    ▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼
    CLASS ListenerInfo
    ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼
    """
    def __init__(self, signal: Signal, receiver: Callable, sender: Optional[str] = None):
        self.signal: Signal = signal
        self.receiver: Callable = receiver
        self.sender: Optional[str] = sender


class HasLifecycle(ABC):
    """
    ▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼
    CLASS HasLifecycle

    Keeps track of every dispatcher listener connected through it, so that they can all be disconnected on shutdown.
    ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼
    """
    def __init__(self):
        self._connected_listeners: List[ListenerInfo] = []
        self.was_shutdown = False

    def connect_dispatch_listener(self, signal: Signal, receiver: Callable, sender: Optional[str] = None, weak=True):
        if not sender:
            sender = Any
        self._connected_listeners.append(ListenerInfo(signal, receiver, sender))
        logger.debug(f'CONNECTING: signal={signal.name} sender={sender} weak={weak}')
        dispatcher.connect(signal=signal, receiver=receiver, sender=sender, weak=weak)

    @staticmethod
    def disconnect_dispatch_listener(listener_info: ListenerInfo):
        try:
            logger.debug(f'DISCONNECTING: signal={listener_info.signal.name} sender={listener_info.sender}')
            dispatcher.disconnect(signal=listener_info.signal, receiver=listener_info.receiver, sender=listener_info.sender)
        except DispatcherKeyError:
            pass

    def disconnect_all_listeners(self):
        connected_listeners = self._connected_listeners
        self._connected_listeners = []

        for listener_info in connected_listeners:
            self.disconnect_dispatch_listener(listener_info)

    def start(self):
        self.connect_dispatch_listener(signal=Signal.SHUTDOWN_CACHE, receiver=self.shutdown)

    def shutdown(self):
        if self.was_shutdown:
            return
        self.disconnect_all_listeners()
        self.was_shutdown = True
