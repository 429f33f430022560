import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

log = logging.getLogger('flagsync.util')

# 4xx statuses that are worth retrying; every other 4xx means the request will never succeed
_RECOVERABLE_CLIENT_ERRORS = frozenset([400, 408, 429])

_APPLICATION_VALUE_MAX_LENGTH = 64
_APPLICATION_VALUE_INVALID = re.compile(r"[^a-zA-Z0-9._-]")


def validate_application_info(application: dict, logger: logging.Logger) -> dict:
    """
    Returns a copy of the ``id`` and ``version`` application tags, with any value that cannot be
    sent in a header replaced by an empty string.
    """
    return {name: _application_value(application.get(name, ""), name, logger) for name in ("id", "version")}


def _application_value(value: Any, name: str, logger: logging.Logger) -> str:
    if not isinstance(value, str):
        return ""
    if len(value) > _APPLICATION_VALUE_MAX_LENGTH:
        logger.warning('application[%s] is longer than %d characters; ignoring it', name, _APPLICATION_VALUE_MAX_LENGTH)
        return ""
    if _APPLICATION_VALUE_INVALID.search(value):
        logger.warning('application[%s] contains characters other than letters, digits, ".", "_" and "-"; ignoring it', name)
        return ""
    return value


class UnsuccessfulResponseException(Exception):
    """
    Raised by a :class:`flagsync.interfaces.FeatureRequester` when the flag service answers with an
    error status.
    """

    def __init__(self, status: int):
        super().__init__("HTTP error %d" % status)
        self._status = status

    @property
    def status(self) -> int:
        return self._status


class InvalidPayloadException(Exception):
    """
    Raised when a polling response cannot be turned into a snapshot.
    """


def throw_if_unsuccessful_response(resp):
    if resp.status >= 400:
        raise UnsuccessfulResponseException(resp.status)


def is_http_error_recoverable(status: int) -> bool:
    if 400 <= status < 500:
        return status in _RECOVERABLE_CLIENT_ERRORS
    return True


def http_error_message(status: int, context: str) -> str:
    description = "HTTP error %d" % status
    if status in (401, 403):
        description += " (invalid SDK key)"
    outcome = "will retry" if is_http_error_recoverable(status) else "giving up permanently"
    return "Received %s for %s - %s" % (description, context, outcome)


@dataclass(frozen=True)
class Result:
    """
    The outcome of an operation that can fail without raising.

    Build one with :func:`success()` or :func:`fail()`. A failed result always has an ``error``
    description and may also carry the ``exception`` behind it.
    """

    value: Optional[Any] = None
    error: Optional[str] = None
    exception: Optional[Exception] = None

    @staticmethod
    def success(value: Any = None) -> 'Result':
        return Result(value=value)

    @staticmethod
    def fail(error: str, exception: Optional[Exception] = None) -> 'Result':
        return Result(error=error, exception=exception)

    def is_success(self) -> bool:
        return self.error is None
