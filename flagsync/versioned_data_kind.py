"""
This submodule names the collections of objects held by a :class:`flagsync.interfaces.FeatureStore`.

A full data set is a mapping whose keys are :class:`VersionedDataKind` instances and whose values
are dicts of item key to item. The store treats items as generic JSON dictionaries that carry at
least a ``key`` and a ``version``; it has no special logic for flags or segments.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class VersionedDataKind:
    namespace: str
    payload_key: str
    """
    The property of the polling response that holds items of this kind.
    """


FEATURES = VersionedDataKind(namespace="features", payload_key="flags")

SEGMENTS = VersionedDataKind(namespace="segments", payload_key="segments")
