"""Resolve ``$ref`` values against the document they occur in.

A ``$ref`` has a document-locator part and a pointer part, separated by
``#``.  An empty locator addresses the containing document; anything else
is made absolute against the containing document's base (its ``$id`` when
it declares one, otherwise its source identity) and loaded through the
:class:`~refbundle.store.DocumentStore`.  The pointer part is then navigated
with :class:`~refbundle.parser.pointer.Pointer`.

References always resolve relative to their *containing* document, never
the root of a bundle.
"""

from __future__ import annotations

import logging
import os
import posixpath
from typing import TYPE_CHECKING, Any, NamedTuple
from urllib.parse import urljoin, urlsplit

from refbundle.exceptions import LoadError, UnresolvedRefError
from refbundle.models import SchemaDocument
from refbundle.parser.loader import is_url, split_data_locator
from refbundle.parser.pointer import Pointer

if TYPE_CHECKING:
    from refbundle.store import DocumentStore

logger = logging.getLogger(__name__)


class ResolvedRef(NamedTuple):
    """The target of a ``$ref``: its document, pointer and live subtree."""

    document: SchemaDocument
    pointer: Pointer
    node: Any


def split_ref(ref: str) -> tuple[str, str]:
    """Split a ``$ref`` into ``(locator, fragment)``.

    Example::

        split_ref("common.json#/definitions/id")  # ("common.json", "/definitions/id")
        split_ref("#/definitions/id")             # ("", "/definitions/id")
        split_ref("common.json")                  # ("common.json", "")
    """
    locator, _, fragment = ref.partition("#")
    return locator, fragment


def has_scheme(locator: str) -> bool:
    # Single letters are Windows drive letters, not schemes.
    return len(urlsplit(locator).scheme) > 1


def join_locator(base: str, locator: str) -> str:
    """Make *locator* absolute against the identity *base*.

    Locators with a scheme (``https:``, ``data:``, ``urn:`` ...) are
    returned unchanged.  A URL base is joined with
    :func:`urllib.parse.urljoin`; a ``data://`` base is joined against the
    resource's directory inside its namespace; a file-path base is joined
    against its directory; an empty base leaves relative paths relative to
    the working directory.

    Example::

        join_locator("data://pkg.schemas/v1/a.json", "b.json")  # "data://pkg.schemas/v1/b.json"
    """
    if has_scheme(locator):
        return locator
    if not base:
        return locator
    if is_url(base):
        return urljoin(base, locator)
    if base.startswith("data://"):
        parts = split_data_locator(base)
        if parts is None:
            return locator
        namespace, name = parts
        joined = posixpath.normpath(posixpath.join(posixpath.dirname(name), locator))
        return f"data://{namespace}/{joined.lstrip('/')}"
    if base.startswith("file://"):
        base = base[len("file://"):]
    if os.path.isabs(locator):
        return locator
    return os.path.normpath(os.path.join(os.path.dirname(base), locator))


class ReferenceResolver:
    """Resolve ``$ref`` strings through a :class:`DocumentStore`.

    Args:
        store: The store used to load (and cache) external documents.

    Example::

        resolver = ReferenceResolver(store)
        target = resolver.resolve("pet.json#/definitions/Pet", document)
        target.node  # {"type": "object", ...}
    """

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def resolve(self, ref: str, document: SchemaDocument) -> ResolvedRef:
        """Resolve *ref* as it occurs in *document*.

        Raises:
            UnresolvedRefError: If the target document cannot be loaded or
                the pointer cannot be navigated inside it.
        """
        locator, fragment = split_ref(ref)
        target = self.document_for(ref, locator, document)

        try:
            pointer = Pointer.parse(fragment)
        except ValueError as exc:
            raise UnresolvedRefError(
                f"Cannot resolve $ref '{ref}': unsupported fragment '#{fragment}'",
                ref=ref,
                document=document.id,
            ) from exc

        try:
            node = pointer.resolve(target.tree)
        except (KeyError, IndexError, TypeError) as exc:
            raise UnresolvedRefError(
                f"Cannot resolve $ref '{ref}' in {target.id or '<root>'}: {exc.args[0]}",
                ref=ref,
                document=document.id,
            ) from exc

        return ResolvedRef(target, pointer, node)

    def document_for(self, ref: str, locator: str, document: SchemaDocument) -> SchemaDocument:
        """Return the document *locator* addresses from inside *document*."""
        if not locator:
            return document

        absolute = join_locator(document.base, locator)
        if absolute in (document.id, document.explicit_id):
            return document

        registered = self._store.get_document(absolute)
        if registered is not None:
            return registered

        logger.debug("Resolving %s from %s via %s", ref, document.id or "<root>", absolute)
        try:
            return self._store.load(absolute)
        except LoadError as exc:
            raise UnresolvedRefError(
                f"Cannot resolve $ref '{ref}': {exc}",
                ref=ref,
                document=document.id,
            ) from exc
