"""
Outcomes of a single poll, and the table deciding which failures are worth retrying.
"""

import time
from dataclasses import dataclass
from typing import Union

from flagsync.impl.util import (InvalidPayloadException,
                                UnsuccessfulResponseException,
                                is_http_error_recoverable)
from flagsync.interfaces import DataSourceErrorInfo, DataSourceErrorKind
from flagsync.snapshot import Snapshot


@dataclass(frozen=True)
class Success:
    snapshot: Snapshot


@dataclass(frozen=True)
class RecoverableFailure:
    reason: DataSourceErrorInfo
    exception: Exception


@dataclass(frozen=True)
class UnrecoverableFailure:
    reason: DataSourceErrorInfo
    exception: Exception


PollOutcome = Union[Success, RecoverableFailure, UnrecoverableFailure]


def classify_failure(e: Exception) -> Union[RecoverableFailure, UnrecoverableFailure]:
    """
    Maps an exception raised by a :class:`flagsync.interfaces.FeatureRequester` to a poll outcome.

    HTTP errors are unrecoverable for any 4xx status other than 400, 408 and 429. Everything else,
    including I/O errors and malformed payloads, is recoverable.
    """
    if isinstance(e, UnsuccessfulResponseException):
        reason = DataSourceErrorInfo(DataSourceErrorKind.ERROR_RESPONSE, e.status, time.time(), str(e))
        if is_http_error_recoverable(e.status):
            return RecoverableFailure(reason, e)
        return UnrecoverableFailure(reason, e)
    if isinstance(e, InvalidPayloadException):
        return RecoverableFailure(DataSourceErrorInfo(DataSourceErrorKind.INVALID_DATA, 0, time.time(), str(e)), e)
    return RecoverableFailure(DataSourceErrorInfo(DataSourceErrorKind.NETWORK_ERROR, 0, time.time(), str(e)), e)
