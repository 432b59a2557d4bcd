"""Load, decode and cache schema documents.

:class:`DocumentStore` turns locators (URLs, file paths, ``data://``
resource locators and inline JSON/YAML text) into immutable
:class:`~refbundle.models.SchemaDocument` instances and keeps them for the
lifetime of the store.  URL bodies are additionally kept in an on-disk
:class:`~refbundle.cache.DocumentCache` so later processes can skip the
network.

Typical usage::

    with DocumentStore() as store:
        doc = store.load("https://json-schema.org/draft-07/schema")
        doc.id          # "https://json-schema.org/draft-07/schema"
        doc.tree["type"]
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from refbundle.cache import DocumentCache
from refbundle.config import get_bundled_cache_dir, load_store_config
from refbundle.exceptions import LoadError
from refbundle.models import SchemaDocument, StoreConfig
from refbundle.parser.loader import (
    fetch_url,
    file_identity,
    is_inline_text,
    is_url,
    parse_content,
    read_file,
    read_resource,
    split_data_locator,
    strip_fragment,
)
from refbundle.parser.resolver import join_locator

logger = logging.getLogger(__name__)


def explicit_id_of(tree: Any) -> Optional[str]:
    """Return the document's own ``$id`` (or draft-4 ``id``), without a trailing ``#``."""
    if not isinstance(tree, dict):
        return None
    for key in ("$id", "id"):
        value = tree.get(key)
        if isinstance(value, str) and value.rstrip("#"):
            return value.rstrip("#")
    return None


def _absolute_id(tree: Any, identity: str) -> Optional[str]:
    """The document's own id, made absolute against where it was loaded from."""
    explicit_id = explicit_id_of(tree)
    if explicit_id is None or not identity:
        return explicit_id
    return join_locator(identity, explicit_id)


class DocumentStore:
    """Loads schema documents and caches them by locator and identity.

    Args:
        config: Store settings.  Defaults to
            :func:`~refbundle.config.load_store_config`, i.e. the
            ``REFBUNDLE_*`` environment on top of the model defaults.
        client: HTTP client used for URL locators.  When omitted one is
            created lazily with the configured redirect and timeout limits.

    The store is safe to share between independent bundle operations in a
    single thread.  Its caches are append-only until :meth:`reset`.
    """

    def __init__(
        self,
        config: Optional[StoreConfig] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.config = config if config is not None else load_store_config()
        self._client = client
        self._owns_client = client is None
        self._documents: dict[str, SchemaDocument] = {}
        self._by_locator: dict[str, SchemaDocument] = {}
        self.cache = DocumentCache(
            self.config.cache_paths,
            enabled=self.config.cache_enabled,
            bundled_dir=get_bundled_cache_dir(),
            write_bundled=self.config.cache_always,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def load(self, locator: str) -> SchemaDocument:
        """Load the document *locator* addresses.

        Args:
            locator: An ``http(s)`` URL, a ``data://<namespace>/<name>``
                resource, inline JSON or YAML text, or a file path
                (optionally ``file://``-prefixed).

        Returns:
            The loaded document.  Repeated loads of the same locator return
            the cached instance.

        Raises:
            LoadError: If the source is unreachable, unreadable, or cannot
                be decoded.
        """
        if not isinstance(locator, str) or not locator.strip():
            raise LoadError(f"Unable to load schema from empty locator {locator!r}")

        if is_inline_text(locator):
            logger.debug("Loading schema from string")
            return self._make_document(parse_content(locator), "")

        if not is_url(locator) and not locator.startswith("data://"):
            # Relative paths depend on the working directory, so files are
            # looked up by their resolved identity instead.
            return self._load_file(locator)

        cached = self._by_locator.get(locator)
        if cached is not None:
            return cached

        if is_url(locator):
            document = self._load_url(strip_fragment(locator))
        else:
            document = self._load_resource(strip_fragment(locator))

        self._by_locator[locator] = document
        return document

    def load_text(self, text: str, hint: str = "") -> SchemaDocument:
        """Decode *text* as an anonymous document (identity ``""``)."""
        return self._make_document(parse_content(text, hint=hint), "")

    def add_document(self, id: str, tree: Any) -> SchemaDocument:
        """Register an in-memory *tree* under *id*.

        A trailing ``#`` on *id* is ignored.  A later registration under
        the same id replaces the earlier one.
        """
        if id.endswith("#") and len(id) > 1:
            id = id[:-1]
        document = SchemaDocument(tree=tree, id=id, explicit_id=_absolute_id(tree, id))
        self._register(document)
        return document

    def get_document(self, id: str) -> Optional[SchemaDocument]:
        """Return the document registered under *id* (identity or ``$id``)."""
        if id.endswith("#") and len(id) > 1:
            id = id[:-1]
        return self._documents.get(id)

    def reset(self) -> None:
        """Forget every loaded document.  The on-disk cache is kept."""
        self._documents.clear()
        self._by_locator.clear()

    def close(self) -> None:
        """Release the HTTP client (when owned) and the disk cache handles."""
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None
        self.cache.close()

    def __enter__(self) -> DocumentStore:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @property
    def documents(self) -> dict[str, SchemaDocument]:
        """Snapshot of the registered documents keyed by identity."""
        return dict(self._documents)

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    def _load_url(self, url: str) -> SchemaDocument:
        existing = self._documents.get(url)
        if existing is not None:
            return existing

        body = self.cache.get(url)
        fetched = body is None
        hint = ""
        if fetched:
            logger.debug("Loading schema from URL %s", url)
            body, hint = fetch_url(self._get_client(), url)
        else:
            logger.debug("Loaded schema %s from cache", url)

        try:
            text = body.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise LoadError(f"Schema at {url} is not valid UTF-8: {exc}") from exc
        tree = parse_content(text, hint=hint)

        # Only documents that decode are kept on disk.
        if fetched:
            self.cache.set(url, body)
        return self._make_document(tree, url)

    def _load_resource(self, locator: str) -> SchemaDocument:
        existing = self._documents.get(locator)
        if existing is not None:
            return existing

        parts = split_data_locator(locator)
        if parts is None:
            raise LoadError(f"Invalid resource locator {locator!r}")
        namespace, name = parts
        logger.debug("Loading schema from resource %s in %s", name, namespace)
        text = read_resource(namespace, name)
        return self._make_document(parse_content(text), locator)

    def _load_file(self, locator: str) -> SchemaDocument:
        existing = self._documents.get(file_identity(locator))
        if existing is not None:
            return existing

        content, identity, hint = read_file(locator)

        logger.debug("Loading schema from file %s", identity)
        return self._make_document(parse_content(content, hint=hint), identity)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _make_document(self, tree: Any, identity: str) -> SchemaDocument:
        document = SchemaDocument(tree=tree, id=identity, explicit_id=_absolute_id(tree, identity))
        if identity or document.explicit_id:
            self._register(document)
        return document

    def _register(self, document: SchemaDocument) -> None:
        if document.id:
            self._documents[document.id] = document
        if document.explicit_id and document.explicit_id not in self._documents:
            self._documents[document.explicit_id] = document

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                follow_redirects=True,
                max_redirects=self.config.max_redirects,
                timeout=self.config.timeout,
            )
        return self._client
