"""
This submodule contains the :class:`Config` class for configuring the default polling synchronizer.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from flagsync.impl.util import log, validate_application_info
from flagsync.interfaces import FeatureRequester

DEFAULT_BASE_URI = 'https://sdk.flagsync.dev'
DEFAULT_POLL_INTERVAL = 30.0


@dataclass(frozen=True)
class HTTPConfig:
    """Connection settings for the polling requests. The defaults suit almost everyone.

    :param connect_timeout: seconds allowed for establishing a connection
    :param read_timeout: seconds allowed between bytes of a response
    :param http_proxy: full URI of a proxy, such as ``http://my-proxy.com:1234``, used for every
      request whatever the target's scheme. When set, the ``http_proxy``, ``https_proxy`` and
      ``no_proxy`` environment variables are not consulted.
    :param ca_certs: path of a CA bundle to trust instead of certifi's
    :param cert_file: path of a client certificate to present
    :param disable_ssl_verification: skip certificate verification entirely. Only for local testing;
      prefer ``ca_certs`` with a self-signed certificate.
    """

    connect_timeout: float = 10
    read_timeout: float = 15
    http_proxy: Optional[str] = None
    ca_certs: Optional[str] = None
    cert_file: Optional[str] = None
    disable_ssl_verification: bool = False


class Config:
    """Settings for :func:`flagsync.polling.new_polling_synchronizer()`.

    Only ``sdk_key`` is required.
    """

    def __init__(
        self,
        sdk_key: str,
        base_uri: str = DEFAULT_BASE_URI,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        http: HTTPConfig = HTTPConfig(),
        feature_requester_class: Optional[Callable[['Config'], FeatureRequester]] = None,
        wrapper_name: Optional[str] = None,
        wrapper_version: Optional[str] = None,
        application: Optional[dict] = None,
        payload_filter_key: Optional[str] = None,
    ):
        """
        :param sdk_key: sent as the ``Authorization`` header of every poll
        :param base_uri: root URL of the flag service; trailing slashes are dropped
        :param poll_interval: seconds between the starts of consecutive polls. Anything below 30 is
          raised to 30.
        :param http: see :class:`HTTPConfig`
        :param feature_requester_class: called with this ``Config`` to build the
          :class:`flagsync.interfaces.FeatureRequester`; the HTTP requester is used if omitted
        :param wrapper_name: name of a library wrapping this one, reported in the
          ``X-FlagSync-Wrapper`` header
        :param wrapper_version: version of that wrapper; ignored without ``wrapper_name``
        :param application: ``id`` and ``version`` of the application, reported in the
          ``X-FlagSync-Tags`` header. See :py:attr:`~application`.
        :param payload_filter_key: name of a server-side filter limiting which flags and segments
          are returned
        """
        self.__sdk_key = sdk_key
        self.__base_uri = base_uri.rstrip('/')
        self.__poll_interval = max(poll_interval, DEFAULT_POLL_INTERVAL)
        self.__http = http
        self.__feature_requester_class = feature_requester_class
        self.__wrapper_name = wrapper_name
        self.__wrapper_version = wrapper_version
        self.__application = validate_application_info(application or {}, log)
        self.__payload_filter_key = payload_filter_key
        if not sdk_key:
            log.warning("Missing or blank sdk_key; the flag service will reject every poll.")

    def copy_with_new_sdk_key(self, new_sdk_key: str) -> 'Config':
        """Returns a copy of this configuration with a different SDK key."""
        return Config(
            sdk_key=new_sdk_key,
            base_uri=self.__base_uri,
            poll_interval=self.__poll_interval,
            http=self.__http,
            feature_requester_class=self.__feature_requester_class,
            wrapper_name=self.__wrapper_name,
            wrapper_version=self.__wrapper_version,
            application=self.__application,
            payload_filter_key=self.__payload_filter_key,
        )

    @property
    def sdk_key(self) -> Optional[str]:
        return self.__sdk_key

    @property
    def base_uri(self) -> str:
        return self.__base_uri

    @property
    def poll_interval(self) -> float:
        return self.__poll_interval

    @property
    def http(self) -> HTTPConfig:
        return self.__http

    @property
    def feature_requester_class(self) -> Optional[Callable[['Config'], FeatureRequester]]:
        return self.__feature_requester_class

    @property
    def wrapper_name(self) -> Optional[str]:
        return self.__wrapper_name

    @property
    def wrapper_version(self) -> Optional[str]:
        return self.__wrapper_version

    @property
    def application(self) -> dict:
        """
        The validated ``id`` and ``version`` tags. A value longer than 64 characters, or containing
        anything but letters, digits, ``.``, ``_`` and ``-``, is logged and replaced with an empty
        string.
        """
        return self.__application

    @property
    def payload_filter_key(self) -> Optional[str]:
        return self.__payload_filter_key


__all__ = ['Config', 'HTTPConfig']
