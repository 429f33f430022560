"""
Default implementation of the polling synchronizer.
"""

import time
from threading import RLock
from typing import Callable, Optional

from flagsync.impl.completion import CompletionHandle
from flagsync.impl.datasource.outcome import (PollOutcome, RecoverableFailure,
                                              Success, UnrecoverableFailure,
                                              classify_failure)
from flagsync.impl.listeners import Listeners
from flagsync.impl.repeating_task import RepeatingTask
from flagsync.impl.util import http_error_message, log
from flagsync.interfaces import (DataSourceErrorInfo, DataSourceErrorKind,
                                 DataSourceStatus, FeatureRequester,
                                 FeatureStore, SynchronizerState)

_ACTIVE_STATES = (SynchronizerState.POLLING, SynchronizerState.INITIALIZED)


class PollingSynchronizer:
    """
    Keeps a :class:`flagsync.interfaces.FeatureStore` in sync with the flag service by fetching
    the full data set on a fixed interval.

    :func:`start()` returns a :class:`flagsync.impl.completion.CompletionHandle` that succeeds on the
    first snapshot applied to the store, or fails on the first unrecoverable error. Recoverable
    errors are logged and polling carries on at the same interval with no retry limit.

    Once :func:`close()` has been called no new fetch begins, and the result of a fetch that was
    already in flight is discarded. The requester is closed right away, or as soon as that
    in-flight fetch returns.
    """

    def __init__(self, requester: FeatureRequester, store: FeatureStore, poll_interval: float):
        """
        :param requester: fetches the full data set; owned by the synchronizer and closed with it
        :param store: the store to keep in sync; the synchronizer is its only writer
        :param poll_interval: seconds between the starts of consecutive polls; must be positive
        """
        if poll_interval is None or poll_interval <= 0:
            raise ValueError("poll_interval must be greater than zero, got %r" % (poll_interval,))
        self._requester = requester
        self._store = store
        self._poll_interval = poll_interval
        self._lock = RLock()
        self._state = SynchronizerState.NOT_STARTED
        self._state_since = time.time()
        self._last_error: Optional[DataSourceErrorInfo] = None
        self._fetching = False
        self._status_seq = 0
        self._ready = CompletionHandle()
        self._status_listeners: Listeners[DataSourceStatus] = Listeners("data source status")
        self._notify_lock = RLock()
        self._notified_seq = 0
        self._task = RepeatingTask("flagsync.polling", poll_interval, self._poll)

    def start(self) -> CompletionHandle:
        """
        Starts polling on a background thread and returns immediately.

        :raises RuntimeError: if the synchronizer was already started or closed
        """
        with self._lock:
            if self._state != SynchronizerState.NOT_STARTED:
                raise RuntimeError("PollingSynchronizer cannot be started from state %s" % self._state.value)
            change = self._set_state(SynchronizerState.POLLING)
        log.info("Starting PollingSynchronizer with request interval: " + str(self._poll_interval))
        self._notify(*change)
        self._task.start()
        return self._ready

    def initialized(self) -> bool:
        """
        Returns True once the first snapshot has been applied. This stays True after later failures
        and after :func:`close()`.
        """
        return self._ready.succeeded()

    def close(self):
        """
        Stops polling and releases the requester. Safe to call from any thread and any number of
        times. A pending completion handle is left unresolved.
        """
        with self._lock:
            if self._state == SynchronizerState.CLOSED:
                return
            self._task.stop()
            change = self._set_state(SynchronizerState.CLOSED)
            # an in-flight fetch closes the requester when it returns
            close_requester = not self._fetching
        log.info("Stopping PollingSynchronizer")
        if close_requester:
            self._close_requester()
        self._notify(*change)

    @property
    def state(self) -> SynchronizerState:
        with self._lock:
            return self._state

    @property
    def status(self) -> DataSourceStatus:
        with self._lock:
            return DataSourceStatus(self._state, self._state_since, self._last_error)

    def add_status_listener(self, listener: Callable[[DataSourceStatus], None]):
        """
        Registers a function to be called with the new :class:`flagsync.interfaces.DataSourceStatus`
        whenever the state changes or a poll fails. Listeners are called on the thread that caused
        the change, which is usually the polling thread, and never see an older status after a
        newer one.
        """
        self._status_listeners.add(listener)

    def remove_status_listener(self, listener: Callable[[DataSourceStatus], None]):
        self._status_listeners.remove(listener)

    def __enter__(self):
        return self

    def __exit__(self, type, value, traceback):
        self.close()

    def _set_state(self, new_state: SynchronizerState):
        # caller holds self._lock
        if new_state != self._state:
            self._state = new_state
            self._state_since = time.time()
        return self._status_changed()

    def _status_changed(self):
        # caller holds self._lock; the sequence number orders notifications made outside it
        self._status_seq += 1
        return self._status_seq, DataSourceStatus(self._state, self._state_since, self._last_error)

    def _notify(self, seq: int, status: DataSourceStatus):
        with self._notify_lock:
            if seq <= self._notified_seq:
                log.debug("Dropping superseded status notification: %s", status.state.value)
                return
            self._notified_seq = seq
            self._status_listeners.notify(status)

    def _close_requester(self):
        try:
            self._requester.close()
        except Exception as e:
            log.exception("Error closing feature requester: %s" % e)

    def _poll(self):
        with self._lock:
            if self._state not in _ACTIVE_STATES:
                return
            self._fetching = True

        outcome: PollOutcome
        try:
            outcome = Success(self._requester.get_all_data())
        except Exception as e:
            outcome = classify_failure(e)
        finally:
            with self._lock:
                self._fetching = False
                closed_during_fetch = self._state == SynchronizerState.CLOSED
        if closed_during_fetch:
            log.debug("Discarding polling result received after close")
            self._close_requester()
            return

        if isinstance(outcome, Success):
            self._on_success(outcome)
        elif isinstance(outcome, UnrecoverableFailure):
            self._on_unrecoverable_failure(outcome)
        else:
            self._on_recoverable_failure(outcome)

    def _on_success(self, outcome: Success):
        with self._lock:
            if self._state not in _ACTIVE_STATES:
                log.debug("Discarding polling result received in state %s", self._state.value)
                return
            self._store.init(outcome.snapshot.all_data())
            if self._state != SynchronizerState.POLLING:
                return
            change = self._set_state(SynchronizerState.INITIALIZED)
        log.info("PollingSynchronizer initialized ok")
        self._ready._succeed()
        self._notify(*change)

    def _on_recoverable_failure(self, outcome: RecoverableFailure):
        with self._lock:
            if self._state not in _ACTIVE_STATES:
                return
            self._last_error = outcome.reason
            change = self._status_changed()
        if outcome.reason.kind == DataSourceErrorKind.ERROR_RESPONSE:
            log.warning(http_error_message(outcome.reason.status_code, "polling request"))
        else:
            log.warning("Error: Exception encountered when polling for flag data, will retry. %s" % outcome.exception, exc_info=outcome.exception)
        self._notify(*change)

    def _on_unrecoverable_failure(self, outcome: UnrecoverableFailure):
        with self._lock:
            if self._state not in _ACTIVE_STATES:
                return
            was_initialized = self._state == SynchronizerState.INITIALIZED
            self._last_error = outcome.reason
            self._task.stop()
            change = self._set_state(SynchronizerState.PERMANENTLY_FAILED)
        log.error(http_error_message(outcome.reason.status_code, "polling request"))
        if not was_initialized:
            self._ready._fail(outcome.reason)
        self._notify(*change)
