"""
This submodule contains the :class:`Snapshot` type, the complete set of flag and segment
definitions produced by one successful poll.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from flagsync.impl.util import InvalidPayloadException
from flagsync.versioned_data_kind import FEATURES, SEGMENTS, VersionedDataKind


def _freeze(items: Mapping[str, dict]) -> Mapping[str, dict]:
    return MappingProxyType(dict(items))


@dataclass(frozen=True)
class Snapshot:
    """
    An immutable pair of mappings, flag key to flag definition and segment key to segment
    definition, representing the remote state as of one fetch.

    The definitions themselves are opaque: the only properties this package relies on are
    ``key`` and ``version``.
    """

    flags: Mapping[str, dict] = field(default_factory=dict)
    segments: Mapping[str, dict] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, 'flags', _freeze(self.flags))
        object.__setattr__(self, 'segments', _freeze(self.segments))

    @staticmethod
    def empty() -> 'Snapshot':
        return Snapshot({}, {})

    @staticmethod
    def from_json_dict(data: Any) -> 'Snapshot':
        """
        Builds a snapshot from a decoded polling response of the form
        ``{"flags": {...}, "segments": {...}}``.

        :raises InvalidPayloadException: if the payload is not shaped as expected or an item
            lacks a string ``key`` or an integer ``version``
        """
        if not isinstance(data, dict):
            raise InvalidPayloadException("polling response was not a JSON object")
        return Snapshot(
            flags=_parse_items(data, FEATURES),
            segments=_parse_items(data, SEGMENTS),
        )

    def all_data(self) -> Mapping[VersionedDataKind, Mapping[str, dict]]:
        """
        Returns the snapshot in the shape accepted by :func:`flagsync.interfaces.FeatureStore.init()`.
        """
        return {FEATURES: self.flags, SEGMENTS: self.segments}

    def __len__(self):
        return len(self.flags) + len(self.segments)


def _parse_items(data: dict, kind: VersionedDataKind) -> Mapping[str, dict]:
    items = data.get(kind.payload_key, {})
    if not isinstance(items, dict):
        raise InvalidPayloadException("'%s' in polling response was not a JSON object" % kind.payload_key)
    for key, item in items.items():
        if not isinstance(item, dict):
            raise InvalidPayloadException("%s item '%s' was not a JSON object" % (kind.namespace, key))
        if not isinstance(item.get('key'), str):
            raise InvalidPayloadException("%s item '%s' has no key" % (kind.namespace, key))
        version = item.get('version')
        if not isinstance(version, int) or isinstance(version, bool):
            raise InvalidPayloadException("%s item '%s' has no valid version" % (kind.namespace, key))
    return items
