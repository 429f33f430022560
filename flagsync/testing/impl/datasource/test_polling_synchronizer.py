import threading
import time

import pytest

from flagsync.feature_store import InMemoryFeatureStore
from flagsync.impl.completion import (CompletionHandle,
                                      InitializationFailedException)
from flagsync.impl.datasource.polling import PollingSynchronizer
from flagsync.impl.util import UnsuccessfulResponseException
from flagsync.interfaces import DataSourceErrorKind, SynchronizerState
from flagsync.testing.stub_util import (FailingCloseFeatureRequester,
                                        MockFeatureRequester, make_flag,
                                        make_segment, make_snapshot)
from flagsync.testing.test_util import SpyListener, wait_until
from flagsync.versioned_data_kind import FEATURES, SEGMENTS

LENGTHY_INTERVAL = 60
SHORT_INTERVAL = 0.05

pp = None
mock_requester = None
store = None


def setup_function():
    global pp, mock_requester, store
    pp = None
    mock_requester = MockFeatureRequester()
    store = InMemoryFeatureStore()


def teardown_function():
    if pp is not None:
        pp.close()
    if mock_requester is not None and mock_requester.gate is not None:
        mock_requester.gate.set()


def setup_processor(interval=LENGTHY_INTERVAL, requester=None):
    global pp
    pp = PollingSynchronizer(requester or mock_requester, store, interval)
    return pp


def test_successful_request_puts_feature_data_in_store():
    flag = make_flag('flagkey')
    segment = make_segment('segkey')
    mock_requester.all_data = make_snapshot([flag], [segment])

    ready = setup_processor().start()

    assert ready.wait(1)
    assert ready.succeeded()
    assert ready.result(0).is_success()
    assert store.get(FEATURES, 'flagkey') == flag
    assert store.get(SEGMENTS, 'segkey') == segment
    assert store.initialized
    assert pp.initialized()
    assert pp.state == SynchronizerState.INITIALIZED


def test_empty_snapshot_initializes_store():
    ready = setup_processor().start()

    assert ready.wait(1)
    assert pp.initialized()
    assert store.initialized


def test_connection_problem_does_not_resolve_handle():
    mock_requester.exception = IOError("This exception is part of a test and yes you should be seeing it.")

    ready = setup_processor().start()

    assert ready.wait(0.2) is False
    assert not ready.done()
    assert not pp.initialized()
    assert not store.initialized

    pp.close()
    assert not ready.done()
    assert ready.wait(0.1) is False


def test_connection_problem_is_retried_on_schedule():
    mock_requester.exception = IOError("bad")

    ready = setup_processor(SHORT_INTERVAL).start()

    assert wait_until(lambda: mock_requester.request_count >= 3)
    assert not ready.done()
    assert pp.state == SynchronizerState.POLLING
    assert pp.status.error.kind == DataSourceErrorKind.NETWORK_ERROR


@pytest.mark.parametrize('status', [400, 408, 429, 500, 503])
def test_recoverable_http_error_does_not_resolve_handle(status):
    mock_requester.exception = UnsuccessfulResponseException(status)

    ready = setup_processor().start()

    assert ready.wait(0.2) is False
    assert not ready.done()
    assert not pp.initialized()
    assert pp.state == SynchronizerState.POLLING


@pytest.mark.parametrize('status', [400, 408, 429, 500, 503])
def test_recoverable_http_error_keeps_polling(status):
    mock_requester.exception = UnsuccessfulResponseException(status)

    setup_processor(SHORT_INTERVAL).start()

    assert wait_until(lambda: mock_requester.request_count >= 2)
    assert pp.status.error.kind == DataSourceErrorKind.ERROR_RESPONSE
    assert pp.status.error.status_code == status


@pytest.mark.parametrize('status', [401, 403, 404])
def test_unrecoverable_http_error_fails_handle(status):
    mock_requester.exception = UnsuccessfulResponseException(status)

    start_time = time.time()
    ready = setup_processor(SHORT_INTERVAL).start()

    result = ready.result(10)
    assert time.time() - start_time < 9
    assert ready.done()
    assert not ready.succeeded()
    assert not result.is_success()
    assert isinstance(result.exception, InitializationFailedException)
    assert result.exception.error.status_code == status
    assert ready.error.kind == DataSourceErrorKind.ERROR_RESPONSE
    assert ready.error.status_code == status
    assert not pp.initialized()
    assert pp.state == SynchronizerState.PERMANENTLY_FAILED

    time.sleep(SHORT_INTERVAL * 4)
    assert mock_requester.request_count == 1


def test_recoverable_failures_then_success_resolves_handle_once():
    flag = make_flag('flagkey')
    mock_requester.outcomes = [IOError("bad"), UnsuccessfulResponseException(500), make_snapshot([flag])]
    resolutions = []

    ready = setup_processor(SHORT_INTERVAL).start()
    ready.add_done_callback(lambda h: resolutions.append(h.succeeded()))

    assert ready.wait(2)
    assert pp.initialized()
    assert mock_requester.request_count >= 3
    assert store.get(FEATURES, 'flagkey') == flag

    assert wait_until(lambda: mock_requester.request_count >= 5)
    assert resolutions == [True]


def test_initialized_is_sticky_after_recoverable_failure():
    flag = make_flag('flagkey')
    mock_requester.outcomes = [make_snapshot([flag]), IOError("bad")]

    ready = setup_processor(SHORT_INTERVAL).start()

    assert ready.wait(1)
    assert wait_until(lambda: mock_requester.request_count >= 3)
    assert pp.initialized()
    assert pp.state == SynchronizerState.INITIALIZED
    assert store.get(FEATURES, 'flagkey') == flag


def test_unrecoverable_failure_after_initialization_stops_polling():
    flag = make_flag('flagkey')
    mock_requester.outcomes = [make_snapshot([flag]), UnsuccessfulResponseException(401)]

    ready = setup_processor(SHORT_INTERVAL).start()

    assert ready.wait(1)
    assert wait_until(lambda: pp.state == SynchronizerState.PERMANENTLY_FAILED)
    assert ready.succeeded()
    assert pp.initialized()
    assert store.get(FEATURES, 'flagkey') == flag

    time.sleep(SHORT_INTERVAL * 4)
    assert mock_requester.request_count == 2


def test_later_successes_replace_store_contents():
    mock_requester.outcomes = [make_snapshot([make_flag('flag1')]), make_snapshot([make_flag('flag2', 2)])]

    ready = setup_processor(SHORT_INTERVAL).start()

    assert ready.wait(1)
    assert wait_until(lambda: store.get(FEATURES, 'flag2') is not None)
    assert store.get(FEATURES, 'flag1') is None


def test_polls_are_spaced_by_interval():
    mock_requester.exception = IOError("bad")

    setup_processor(0.1).start()
    time.sleep(0.35)

    assert 2 <= mock_requester.request_count <= 5


def test_close_before_resolution_leaves_handle_pending():
    mock_requester.exception = UnsuccessfulResponseException(500)

    ready = setup_processor().start()
    pp.close()

    assert pp.state == SynchronizerState.CLOSED
    with pytest.raises(TimeoutError):
        ready.result(0.1)
    assert not ready.done()


def test_close_is_idempotent():
    setup_processor().start()

    pp.close()
    pp.close()

    assert pp.state == SynchronizerState.CLOSED
    assert wait_until(lambda: mock_requester.close_count == 1)
    time.sleep(0.1)
    assert mock_requester.close_count == 1


def test_close_completes_when_requester_close_fails():
    requester = FailingCloseFeatureRequester()

    setup_processor(requester=requester).start()
    pp.close()

    assert pp.state == SynchronizerState.CLOSED
    assert wait_until(lambda: requester.close_count == 1)


def test_close_before_start():
    setup_processor()
    pp.close()

    assert pp.state == SynchronizerState.CLOSED
    with pytest.raises(RuntimeError):
        pp.start()
    assert mock_requester.request_count == 0


def test_start_twice_is_rejected():
    setup_processor().start()

    with pytest.raises(RuntimeError):
        pp.start()


@pytest.mark.parametrize('interval', [0, -1, None])
def test_poll_interval_must_be_positive(interval):
    with pytest.raises(ValueError):
        PollingSynchronizer(mock_requester, store, interval)


def test_result_of_in_flight_poll_is_discarded_after_close():
    mock_requester.all_data = make_snapshot([make_flag('flagkey')])
    mock_requester.gate = threading.Event()

    ready = setup_processor().start()
    assert mock_requester.started.wait(1)
    pp.close()
    assert mock_requester.close_count == 0
    mock_requester.gate.set()

    time.sleep(0.1)
    assert not store.initialized
    assert not ready.done()
    assert not pp.initialized()
    assert mock_requester.close_count == 1
    assert mock_requester.request_count == 1


def test_status_listener_sees_transitions_on_success():
    spy = SpyListener()
    setup_processor()
    pp.add_status_listener(spy)

    ready = pp.start()
    assert ready.wait(1)
    assert wait_until(lambda: len(spy.statuses) == 2)

    assert [s.state for s in spy.statuses] == [SynchronizerState.POLLING, SynchronizerState.INITIALIZED]
    assert spy.statuses[-1].error is None


def test_status_listener_sees_unrecoverable_error():
    spy = SpyListener()
    mock_requester.exception = UnsuccessfulResponseException(401)
    setup_processor()
    pp.add_status_listener(spy)

    ready = pp.start()
    assert ready.wait(1)
    assert wait_until(lambda: len(spy.statuses) == 2)

    assert spy.statuses[-1].state == SynchronizerState.PERMANENTLY_FAILED
    assert spy.statuses[-1].error.status_code == 401


def test_removed_status_listener_is_not_called():
    spy = SpyListener()
    setup_processor()
    pp.add_status_listener(spy)
    pp.remove_status_listener(spy)

    assert pp.start().wait(1)
    assert spy.statuses == []


def test_context_manager_closes_synchronizer():
    with PollingSynchronizer(mock_requester, store, LENGTHY_INTERVAL) as sync:
        assert sync.start().wait(1)
    assert sync.state == SynchronizerState.CLOSED
    assert mock_requester.close_count == 1


def test_no_fetch_starts_after_close():
    setup_processor()
    assert pp.start().wait(1)
    pp.close()
    requests_before = mock_requester.request_count

    # the worker may already be past the task's stop check when close() runs
    pp._poll()

    assert mock_requester.request_count == requests_before
    assert mock_requester.close_count == 1
    assert pp.state == SynchronizerState.CLOSED


class SlowToSucceedHandle(CompletionHandle):
    def __init__(self):
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def _succeed(self):
        self.entered.set()
        self.release.wait(5)
        super()._succeed()


def test_listener_does_not_see_initialized_after_closed():
    spy = SpyListener()
    handle = SlowToSucceedHandle()
    setup_processor()
    pp._ready = handle
    pp.add_status_listener(spy)

    pp.start()
    assert handle.entered.wait(1)
    pp.close()
    handle.release.set()
    assert handle.wait(1)
    time.sleep(0.1)

    assert [s.state for s in spy.statuses] == [SynchronizerState.POLLING, SynchronizerState.CLOSED]
    assert spy.statuses[-1].state == pp.state
