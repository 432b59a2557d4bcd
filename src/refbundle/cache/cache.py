"""Disk cache for documents fetched over HTTP.

Uses :mod:`diskcache` to persist raw response bodies.  A
:class:`DocumentCache` spans an ordered list of candidate directories, each
holding its own :class:`diskcache.Cache`.  Lookups try every directory in
order; writes go to the first directory that exists and is writable.

Cache keys are SHA-256 hashes of the fragment-less URL so that the same
document always maps to the same entry.

See Also:
    :class:`~refbundle.models.StoreConfig` -- ``cache_paths``,
    ``cache_enabled`` and ``cache_always``.
"""

from __future__ import annotations

import hashlib
import logging
import os
import sqlite3
from pathlib import Path
from typing import Optional

import diskcache

logger = logging.getLogger(__name__)


class DocumentCache:
    """Ordered, multi-directory cache of fetched document bodies.

    Args:
        paths: Candidate cache directories, searched in order.
        enabled: When ``False`` nothing is ever written (lookups still work).
        bundled_dir: The read-mostly directory shipped with the package.
            It is skipped for writes unless ``write_bundled`` is set.
        write_bundled: Allow writes to ``bundled_dir``.

    Example::

        cache = DocumentCache([Path("/tmp/schemas")])
        cache.set("https://example.com/s.json", b'{"type": "object"}')
        body = cache.get("https://example.com/s.json")
    """

    def __init__(
        self,
        paths: list[Path],
        enabled: bool = True,
        bundled_dir: Optional[Path] = None,
        write_bundled: bool = False,
    ) -> None:
        self._paths = [Path(p) for p in paths]
        self._enabled = enabled
        self._bundled_dir = Path(bundled_dir) if bundled_dir is not None else None
        self._write_bundled = write_bundled
        self._caches: dict[Path, diskcache.Cache] = {}

    @property
    def paths(self) -> list[Path]:
        return list(self._paths)

    def get(self, url: str) -> Optional[bytes]:
        """Return the cached body for *url*, or ``None`` on a miss."""
        key = self._make_key(url)
        for path in self._paths:
            cache = self._open(path, create=False)
            if cache is None:
                continue
            logger.debug("Looking for cached document %s in %s", url, path)
            body = cache.get(key)
            if body is not None:
                return body
        return None

    def set(self, url: str, body: bytes) -> Optional[Path]:
        """Store *body* for *url* in the first writable directory.

        Returns:
            The directory written to, or ``None`` when caching is disabled
            or no candidate directory is writable.
        """
        target = self.writable_dir()
        if target is None:
            return None
        cache = self._open(target, create=True)
        if cache is None:
            return None
        cache.set(self._make_key(url), body)
        logger.info("Caching %s to %s", url, target)
        return target

    def writable_dir(self) -> Optional[Path]:
        """Return the directory :meth:`set` would write to, if any."""
        if not self._enabled:
            return None
        for path in self._paths:
            if self._is_bundled(path) and not self._write_bundled:
                continue
            if path.is_dir() and os.access(path, os.W_OK):
                return path
        return None

    def close(self) -> None:
        """Close every opened :class:`diskcache.Cache`."""
        for cache in self._caches.values():
            cache.close()
        self._caches.clear()

    def _is_bundled(self, path: Path) -> bool:
        if self._bundled_dir is None:
            return False
        return path.resolve() == self._bundled_dir.resolve()

    def _open(self, path: Path, create: bool) -> Optional[diskcache.Cache]:
        cache = self._caches.get(path)
        if cache is not None:
            return cache
        # Only open directories that already hold a cache when reading.
        if not create and not (path / diskcache.core.DBNAME).is_file():
            return None
        try:
            cache = diskcache.Cache(str(path))
        except (OSError, sqlite3.Error) as exc:
            logger.debug("Cannot open cache directory %s: %s", path, exc)
            return None
        self._caches[path] = cache
        return cache

    @staticmethod
    def _make_key(url: str) -> str:
        return hashlib.sha256(url.encode()).hexdigest()
