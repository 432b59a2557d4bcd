"""Deterministic, collision-free names for bundled fragments.

Names are derived from the last meaningful pointer token of a target (or
the file stem of its document) and restricted to ``[A-Za-z0-9_-]``, so no
path fragments leak into the output.  When two sources want the same name
the later one gets a short hash of its source identity appended.  Hashes
instead of counters keep names identical across repeated runs, regardless
of how many other targets were named first.
"""

from __future__ import annotations

import hashlib
import re
from pathlib import PurePosixPath
from typing import Hashable, Mapping, Optional
from urllib.parse import urlsplit

from refbundle.parser.pointer import Pointer

_INVALID_CHARS = re.compile(r"[^A-Za-z0-9_-]+")
_HASH_LENGTH = 8
DEFAULT_NAME = "schema"


def sanitize_name(value: str) -> str:
    """Replace every run of characters outside ``[A-Za-z0-9_-]`` with ``_``."""
    return _INVALID_CHARS.sub("_", value).strip("_")


def short_hash(value: str) -> str:
    """First 8 hex digits of the SHA-256 of *value*."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:_HASH_LENGTH]


def _stem(source_id: str) -> str:
    path = urlsplit(source_id).path if "://" in source_id else source_id
    name = PurePosixPath(path.replace("\\", "/")).name
    for suffix in (".json", ".yaml", ".yml"):
        if name.lower().endswith(suffix):
            return name[: -len(suffix)]
    return name


def base_name_for(pointer: Pointer, source_id: str) -> str:
    """Derive the preferred name for the target at *pointer* in *source_id*.

    Uses the last token that is not a bare array index, falling back to the
    document's file stem and finally to ``"schema"``.
    """
    for token in reversed(pointer.tokens):
        if token.isdigit():
            continue
        name = sanitize_name(token)
        if name:
            return name
    return sanitize_name(_stem(source_id)) or DEFAULT_NAME


class NameAllocator:
    """Hands out unique names within one destination container.

    Each name is owned by exactly one target key.  A fresh allocator is
    created for every bundle call.

    Args:
        reserved: Names already taken, mapped to their owners.

    Example::

        names = NameAllocator()
        names.allocate("Pet", "/schemas/a.json", "/definitions/Pet")  # "Pet"
        names.allocate("Pet", "/schemas/b.json", "/definitions/Pet")  # "Pet_" + short_hash("/schemas/b.json")
    """

    def __init__(self, reserved: Optional[Mapping[str, Hashable]] = None) -> None:
        self._owners: dict[str, Hashable] = dict(reserved or {})

    def __contains__(self, name: str) -> bool:
        return name in self._owners

    def owner(self, name: str) -> Optional[Hashable]:
        return self._owners.get(name)

    def reserve(self, name: str, owner: Hashable) -> bool:
        """Pin *name* to *owner*.

        Returns:
            ``True`` if the name is now held by *owner*, ``False`` if a
            different owner already holds it.
        """
        current = self._owners.setdefault(name, owner)
        return current == owner

    def allocate(self, base_name: str, source_id: str, pointer: str = "") -> str:
        """Return a unique name for the target ``(source_id, pointer)``.

        The first target asking for *base_name* receives it unchanged.
        Other sources receive ``<base>_<hash(source_id)>``; a second
        target from the same source receives
        ``<base>_<hash(source_id#pointer)>``.
        """
        owner = (source_id, pointer)
        base = sanitize_name(base_name) or DEFAULT_NAME
        candidates = (
            base,
            f"{base}_{short_hash(source_id)}",
            f"{base}_{short_hash(source_id + '#' + pointer)}",
        )
        for name in candidates:
            if self.reserve(name, owner):
                return name
        # Only reachable when someone reserved the hashed names explicitly.
        salt = source_id + "#" + pointer
        while True:
            salt = short_hash(salt)
            name = f"{base}_{salt}"
            if self.reserve(name, owner):
                return name
