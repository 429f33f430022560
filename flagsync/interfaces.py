"""
This submodule contains interfaces for the components that the polling synchronizer works with,
and the types it uses to describe its state.

They may be useful in writing new implementations of these components, or for testing.
"""

from abc import ABCMeta, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from flagsync.snapshot import Snapshot
from flagsync.versioned_data_kind import VersionedDataKind


class FeatureStore(metaclass=ABCMeta):
    """
    Holds the last known flags and segments. Items are dicts that have at least a ``key`` and a
    ``version``. Reads may happen on any thread while the synchronizer writes.
    """

    @abstractmethod
    def get(self, kind: VersionedDataKind, key: str, callback: Callable[[Any], Any] = lambda x: x) -> Any:
        """
        Looks up one item and passes it, or None if there is no such key, through ``callback``.

        :param kind: whether to look among flags or segments
        :param key: the item's key
        :param callback: transforms the item before it is returned
        """

    @abstractmethod
    def all(self, kind: VersionedDataKind, callback: Callable[[Any], Any] = lambda x: x) -> Any:
        """
        Passes a dict of every item of ``kind``, keyed by item key, through ``callback``. The dict
        belongs to the caller.
        """

    @abstractmethod
    def init(self, all_data: Mapping[VersionedDataKind, Mapping[str, dict]]):
        """
        Replaces the whole contents of the store. A concurrent reader must see either the previous
        contents or the new ones, never a mixture, and applying the same data twice must leave the
        store as it was after the first time.

        :param all_data: every item, grouped by kind
        """

    @property
    @abstractmethod
    def initialized(self) -> bool:
        """
        Whether :func:`init()` has completed at least once.
        """


class FeatureRequester(metaclass=ABCMeta):
    """
    Fetches the full data set from the flag service. Each call makes one attempt; scheduling and
    retries belong to the synchronizer.
    """

    @abstractmethod
    def get_all_data(self) -> Snapshot:
        """
        :raises flagsync.impl.util.UnsuccessfulResponseException: on an HTTP error status
        :raises flagsync.impl.util.InvalidPayloadException: if the response cannot be read
        :raises Exception: anything else is treated as an I/O failure
        """

    def close(self):
        """
        Releases pooled connections or other resources. Does nothing by default.
        """


class SynchronizerState(Enum):
    """
    The lifecycle of a :class:`flagsync.impl.datasource.polling.PollingSynchronizer`.
    """

    NOT_STARTED = 'not_started'
    """
    Created, :func:`start()` not called yet.
    """

    POLLING = 'polling'
    """
    Polling, with no snapshot applied yet. Recoverable errors keep it here.
    """

    INITIALIZED = 'initialized'
    """
    At least one snapshot has been applied. Recoverable errors keep it here.
    """

    PERMANENTLY_FAILED = 'permanently_failed'
    """
    Polling stopped after an unrecoverable error, such as a rejected SDK key.
    """

    CLOSED = 'closed'
    """
    :func:`close()` was called.
    """


class DataSourceErrorKind(Enum):
    UNKNOWN = 'unknown'

    NETWORK_ERROR = 'network_error'
    """
    The request did not complete: refused connection, reset, timeout and so on.
    """

    ERROR_RESPONSE = 'error_response'
    """
    The service answered with an HTTP error status.
    """

    INVALID_DATA = 'invalid_data'
    """
    The service answered, but the body could not be read as a snapshot.
    """


@dataclass(frozen=True)
class DataSourceErrorInfo:
    """
    One failed poll.

    ``status_code`` is the HTTP status for :attr:`DataSourceErrorKind.ERROR_RESPONSE` and zero
    otherwise; ``time`` is a Unix timestamp.
    """

    kind: DataSourceErrorKind
    status_code: int
    time: float
    message: Optional[str] = None


@dataclass(frozen=True)
class DataSourceStatus:
    """
    The synchronizer's state, when it entered that state, and the most recent poll error if any.
    """

    state: SynchronizerState
    since: float
    error: Optional[DataSourceErrorInfo] = None
