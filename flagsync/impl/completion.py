from threading import Event, Lock
from typing import Callable, List, Optional

from flagsync.impl.util import Result, log
from flagsync.interfaces import DataSourceErrorInfo

_PENDING = 'pending'
_SUCCEEDED = 'succeeded'
_FAILED = 'failed'


class InitializationFailedException(Exception):
    """
    Carried by the failed :class:`flagsync.impl.util.Result` of a :class:`CompletionHandle`.
    """

    def __init__(self, error: DataSourceErrorInfo):
        super().__init__(error.message or error.kind.value)
        self._error = error

    @property
    def error(self) -> DataSourceErrorInfo:
        return self._error


class CompletionHandle:
    """
    A single-assignment signal reporting whether a synchronizer initialized.

    The handle resolves at most once, either as succeeded or as failed with a
    :class:`flagsync.interfaces.DataSourceErrorInfo`. Any number of threads may wait on it; a wait
    that times out has no effect on the handle or on the synchronizer that owns it.
    """

    def __init__(self):
        self.__lock = Lock()
        self.__event = Event()
        self.__state = _PENDING
        self.__error: Optional[DataSourceErrorInfo] = None
        self.__callbacks: List[Callable[['CompletionHandle'], None]] = []

    def done(self) -> bool:
        return self.__event.is_set()

    def succeeded(self) -> bool:
        with self.__lock:
            return self.__state == _SUCCEEDED

    @property
    def error(self) -> Optional[DataSourceErrorInfo]:
        """
        The reason the handle failed, or None if it is pending or succeeded.
        """
        return self.__error

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Blocks until the handle resolves or the timeout (in seconds) elapses.

        :return: True if the handle has resolved, False if the wait timed out
        """
        return self.__event.wait(timeout)

    def result(self, timeout: Optional[float] = None) -> Result:
        """
        Waits for the handle to resolve and returns the outcome.

        :param timeout: the maximum number of seconds to wait, or None to wait indefinitely
        :return: a successful result, or a failed result whose exception is an
            :class:`InitializationFailedException`
        :raises TimeoutError: if the handle did not resolve within the timeout
        """
        if not self.__event.wait(timeout):
            raise TimeoutError("initialization did not complete within %s seconds" % timeout)
        if self.__state == _SUCCEEDED:
            return Result.success(None)
        error = self.__error
        return Result.fail(error.message or error.kind.value, InitializationFailedException(error))

    def add_done_callback(self, fn: Callable[['CompletionHandle'], None]):
        """
        Registers a function to be called with this handle once it resolves. If the handle has
        already resolved, the function is called immediately on the caller's thread; otherwise it
        is called on the thread that resolves the handle.
        """
        with self.__lock:
            if self.__state == _PENDING:
                self.__callbacks.append(fn)
                return
        self.__invoke(fn)

    def _succeed(self):
        self.__resolve(_SUCCEEDED, None)

    def _fail(self, error: DataSourceErrorInfo):
        self.__resolve(_FAILED, error)

    def __resolve(self, state: str, error: Optional[DataSourceErrorInfo]):
        with self.__lock:
            if self.__state != _PENDING:
                raise RuntimeError("completion handle was already resolved as %s" % self.__state)
            self.__state = state
            self.__error = error
            callbacks = self.__callbacks
            self.__callbacks = []
            self.__event.set()
        for fn in callbacks:
            self.__invoke(fn)

    def __invoke(self, fn: Callable[['CompletionHandle'], None]):
        try:
            fn(self)
        except Exception as e:
            log.exception("Unexpected error in completion callback: %s" % e)

    def __repr__(self):
        return "CompletionHandle(%s)" % self.__state
