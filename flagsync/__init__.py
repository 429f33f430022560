"""
The flagsync module contains the most common top-level entry points for the polling synchronizer.
"""

from flagsync.config import Config, HTTPConfig
from flagsync.feature_store import InMemoryFeatureStore
from flagsync.impl.completion import (CompletionHandle,
                                      InitializationFailedException)
from flagsync.impl.datasource.polling import PollingSynchronizer
from flagsync.impl.util import Result, log
from flagsync.interfaces import (DataSourceErrorInfo, DataSourceErrorKind,
                                 DataSourceStatus, FeatureRequester,
                                 FeatureStore, SynchronizerState)
from flagsync.polling import new_polling_synchronizer
from flagsync.snapshot import Snapshot
from flagsync.version import VERSION

__version__ = VERSION

__all__ = [
    'CompletionHandle',
    'Config',
    'DataSourceErrorInfo',
    'DataSourceErrorKind',
    'DataSourceStatus',
    'FeatureRequester',
    'FeatureStore',
    'HTTPConfig',
    'InMemoryFeatureStore',
    'InitializationFailedException',
    'PollingSynchronizer',
    'Result',
    'Snapshot',
    'SynchronizerState',
    'new_polling_synchronizer',
    'log',
]
