import time
from threading import Event, Thread
from typing import Callable

from flagsync.impl.util import log


class RepeatingTask:
    """
    Runs an action over and over on a daemon thread.

    Runs are spaced from start to start: after a run that began at ``t``, the next one begins at
    ``t + interval``, or as soon as the previous one returns if it overran that moment. Two runs
    never overlap. An exception from the action is logged and the schedule carries on.
    """

    def __init__(self, name: str, interval: float, action: Callable[[], None], initial_delay: float = 0):
        self.__interval = interval
        self.__initial_delay = initial_delay
        self.__action = action
        self.__stop = Event()
        self.__thread = Thread(target=self.__run, name=name, daemon=True)

    def start(self):
        self.__thread.start()

    def stop(self):
        """
        Stops scheduling runs. A run in progress is allowed to finish. Safe to call more than once,
        and from inside the action.
        """
        self.__stop.set()

    @property
    def stopped(self) -> bool:
        return self.__stop.is_set()

    def __run(self):
        next_run = time.monotonic() + self.__initial_delay
        while not self.__stop.wait(max(0.0, next_run - time.monotonic())):
            next_run = time.monotonic() + self.__interval
            try:
                self.__action()
            except Exception as e:
                log.exception("Unexpected error in %s: %s" % (self.__thread.name, e))
