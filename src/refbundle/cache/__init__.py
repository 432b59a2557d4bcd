"""Disk caching of documents fetched over HTTP.

This package provides :class:`DocumentCache`, which stores raw response
bodies in an ordered list of :mod:`diskcache` directories keyed by a hash of
the URL.  It is consumed by :class:`~refbundle.store.DocumentStore` and
controlled by :class:`~refbundle.models.StoreConfig`.
"""

from refbundle.cache.cache import DocumentCache

__all__ = ["DocumentCache"]
