from threading import Lock
from typing import Callable, Generic, Tuple, TypeVar

from flagsync.impl.util import log

T = TypeVar('T')


class Listeners(Generic[T]):
    """
    Callbacks registered for one kind of notification.

    The registered set is an immutable tuple replaced on every change, so :func:`notify()` never
    holds the lock while calling out. A listener that raises is logged and the rest still run.
    """

    def __init__(self, description: str):
        self.__description = description
        self.__lock = Lock()
        self.__listeners: Tuple[Callable[[T], None], ...] = ()

    def add(self, listener: Callable[[T], None]):
        with self.__lock:
            self.__listeners = self.__listeners + (listener,)

    def remove(self, listener: Callable[[T], None]):
        """
        Unregisters the first registration of ``listener``; unknown listeners are ignored.
        """
        with self.__lock:
            listeners = list(self.__listeners)
            if listener in listeners:
                listeners.remove(listener)
                self.__listeners = tuple(listeners)

    def notify(self, value: T):
        for listener in self.__listeners:
            try:
                listener(value)
            except Exception as e:
                log.exception("Unexpected error in %s listener: %s" % (self.__description, e))
