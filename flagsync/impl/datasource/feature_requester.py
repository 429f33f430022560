"""
Default implementation of the polling request.
"""

import json
from typing import NamedTuple, Optional
from urllib import parse

from flagsync.impl.http import base_headers, create_pool_manager, request_timeout
from flagsync.impl.util import (InvalidPayloadException, log,
                                throw_if_unsuccessful_response)
from flagsync.interfaces import FeatureRequester
from flagsync.snapshot import Snapshot

LATEST_ALL_URI = '/sdk/latest-all'


class CacheEntry(NamedTuple):
    snapshot: Snapshot
    etag: str


class FeatureRequesterImpl(FeatureRequester):
    """
    Fetches the full flag and segment data set with one GET request. The last response that carried
    an ETag is remembered, so an unchanged data set costs the service a 304 and no body.
    """

    def __init__(self, config):
        self._uri = config.base_uri + LATEST_ALL_URI
        if config.payload_filter_key is not None:
            self._uri += '?' + parse.urlencode({'filter': config.payload_filter_key})
        self._headers = base_headers(config)
        self._headers['Accept-Encoding'] = 'gzip'
        self._timeout = request_timeout(config.http)
        self._http = create_pool_manager(config.http, config.base_uri)
        self._cached: Optional[CacheEntry] = None

    def get_all_data(self) -> Snapshot:
        headers = dict(self._headers)
        cached = self._cached
        if cached is not None:
            headers['If-None-Match'] = cached.etag

        r = self._http.request('GET', self._uri, headers=headers, timeout=self._timeout, retries=1)
        throw_if_unsuccessful_response(r)

        if r.status == 304 and cached is not None:
            log.debug("%s response status:[304] using cached data, ETag:[%s]", self._uri, cached.etag)
            return cached.snapshot

        snapshot = _parse_snapshot(r.data)
        etag = r.headers.get('ETag')
        if etag is not None:
            self._cached = CacheEntry(snapshot, etag)
        log.debug("%s response status:[%d] %d items, ETag:[%s]", self._uri, r.status, len(snapshot), etag)
        return snapshot

    def close(self):
        self._http.clear()


def _parse_snapshot(body: bytes) -> Snapshot:
    try:
        decoded = json.loads(body.decode('UTF-8'))
    except ValueError as e:
        raise InvalidPayloadException("polling response was not valid JSON: %s" % e) from e
    return Snapshot.from_json_dict(decoded)
