"""
HTTP plumbing shared by the polling requester: request headers and the urllib3 pool manager.
"""

from typing import Optional, Tuple
from urllib.parse import urlparse
from urllib.request import getproxies_environment, proxy_bypass_environment

import certifi
import urllib3

from flagsync.version import VERSION


def base_headers(config) -> dict:
    """
    Returns the headers sent with every request: credentials, client identification, and the
    optional wrapper and application tags.
    """
    headers = {'Authorization': config.sdk_key or '', 'User-Agent': 'FlagSyncPython/' + VERSION}

    tags = _tags_header_value(config.application)
    if tags:
        headers['X-FlagSync-Tags'] = tags

    wrapper = _wrapper_header_value(config.wrapper_name, config.wrapper_version)
    if wrapper:
        headers['X-FlagSync-Wrapper'] = wrapper

    return headers


def _tags_header_value(application: dict) -> str:
    tags = [("application-id", application.get('id')), ("application-version", application.get('version'))]
    return " ".join("%s/%s" % (name, value) for name, value in tags if value)


def _wrapper_header_value(name: Optional[str], version: Optional[str]) -> Optional[str]:
    if not isinstance(name, str) or name == "":
        return None
    if isinstance(version, str) and version != "":
        return "%s/%s" % (name, version)
    return name


def request_timeout(http_config) -> urllib3.Timeout:
    return urllib3.Timeout(connect=http_config.connect_timeout, read=http_config.read_timeout)


def create_pool_manager(http_config, target_base_uri: str, num_pools: int = 1) -> urllib3.PoolManager:
    """
    Builds the pool manager for requests to ``target_base_uri``. An explicitly configured proxy
    wins over the environment; with neither, connections are made directly.
    """
    tls = {'cert_file': http_config.cert_file}
    if http_config.disable_ssl_verification:
        tls.update(cert_reqs='CERT_NONE', ca_certs=None)
    else:
        tls.update(cert_reqs='CERT_REQUIRED', ca_certs=http_config.ca_certs or certifi.where())

    proxy_url = http_config.http_proxy or proxy_url_from_environment(target_base_uri)
    if proxy_url is None:
        return urllib3.PoolManager(num_pools=num_pools, **tls)

    auth = urllib3.util.parse_url(proxy_url).auth
    proxy_headers = urllib3.util.make_headers(proxy_basic_auth=auth) if auth is not None else None
    return urllib3.ProxyManager(proxy_url, num_pools=num_pools, proxy_headers=proxy_headers, **tls)


def proxy_url_from_environment(target_base_uri: Optional[str]) -> Optional[str]:
    """
    Returns the proxy named by ``https_proxy`` (for https targets) or ``http_proxy`` (for
    everything else), or None if there is none or ``no_proxy`` excludes the target. A ``no_proxy``
    entry matches the target's host or any subdomain of it; an entry with a port only matches
    that port.
    """
    if target_base_uri is None:
        return None

    host, port, is_https = _target_host_and_port(target_base_uri)
    proxies = getproxies_environment()
    proxy_url = proxies.get('https' if is_https else 'http')
    if proxy_url is None:
        return None
    if proxy_bypass_environment("%s:%d" % (host, port), proxies):
        return None
    return proxy_url


def _target_host_and_port(uri: str) -> Tuple[str, int, bool]:
    # "host" or "host:port" without a scheme is treated as plain http
    if '//' not in uri:
        uri = 'http://' + uri

    parsed = urlparse(uri)
    is_https = parsed.scheme == 'https'
    port = parsed.port or (443 if is_https else 80)
    return parsed.hostname or "", port, is_https
