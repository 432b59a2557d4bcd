"""refbundle -- load JSON Schema documents and bundle their ``$ref`` graphs.

Schema documents often spread their definitions over several files or URLs
linked with ``$ref``.  refbundle loads such documents from URLs, files,
embedded package resources or inline text, resolves every reference, and
produces a single self-contained document with the referenced fragments
copied into one container.

Typical usage::

    from refbundle import DocumentStore, Bundler

    with DocumentStore() as store:
        bundled = Bundler(store).bundle("schemas/order.yaml")

Modules:
    store: :class:`DocumentStore`, loading and caching documents.
    parser: pointers, decoding and ``$ref`` resolution.
    bundler: :class:`Bundler` and :class:`NameAllocator`.
    models: Pydantic models for configuration, options and documents.
    config: Environment-driven store configuration.
    exceptions: Exception hierarchy.
"""

from refbundle.bundler import Bundler, NameAllocator, Reference, bundle
from refbundle.config import load_store_config
from refbundle.exceptions import (
    BundleError,
    ConfigError,
    LoadError,
    RecursionLimitError,
    RefbundleError,
    UnresolvedRefError,
)
from refbundle.models import BundleOptions, SchemaDocument, StoreConfig
from refbundle.parser import Pointer, ReferenceResolver
from refbundle.store import DocumentStore

__version__ = "0.1.0"

__all__ = [
    "Bundler",
    "BundleOptions",
    "BundleError",
    "ConfigError",
    "DocumentStore",
    "LoadError",
    "NameAllocator",
    "Pointer",
    "RecursionLimitError",
    "Reference",
    "ReferenceResolver",
    "RefbundleError",
    "SchemaDocument",
    "StoreConfig",
    "UnresolvedRefError",
    "bundle",
    "load_store_config",
]
