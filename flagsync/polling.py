"""
This submodule wires the default components into a ready-to-start polling synchronizer.
"""

from typing import Optional

from flagsync.config import Config
from flagsync.feature_store import InMemoryFeatureStore
from flagsync.impl.datasource.feature_requester import FeatureRequesterImpl
from flagsync.impl.datasource.polling import PollingSynchronizer
from flagsync.impl.util import log
from flagsync.interfaces import FeatureRequester, FeatureStore


def new_polling_synchronizer(config: Config, store: Optional[FeatureStore] = None) -> PollingSynchronizer:
    """Creates a :class:`flagsync.impl.datasource.polling.PollingSynchronizer` from a :class:`Config`.

    The synchronizer is not started; call ``start()`` on it and wait on the returned handle:
    ::

        synchronizer = new_polling_synchronizer(Config("my-sdk-key"))
        ready = synchronizer.start()
        if not ready.wait(5):
            log.warning("flag data not yet available")

    :param config: the configuration; ``poll_interval`` and the HTTP settings are taken from it
    :param store: the store to keep in sync; an :class:`InMemoryFeatureStore` if omitted
    """
    if config.feature_requester_class:
        log.info("Using user-specified feature requester: " + str(config.feature_requester_class))
        requester = config.feature_requester_class(config)  # type: FeatureRequester
    else:
        requester = FeatureRequesterImpl(config)
    return PollingSynchronizer(requester, store if store is not None else InMemoryFeatureStore(), config.poll_interval)


__all__ = ['new_polling_synchronizer']
