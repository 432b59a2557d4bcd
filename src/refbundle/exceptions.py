"""Exception hierarchy for refbundle.

All exceptions inherit from :class:`RefbundleError`.  Store failures surface
directly from :meth:`~refbundle.store.DocumentStore.load`, resolution
failures from :meth:`~refbundle.parser.resolver.ReferenceResolver.resolve`,
and anything that goes wrong while walking a schema during
:meth:`~refbundle.bundler.Bundler.bundle` is re-raised as a
:class:`BundleError` chained to the original cause.

Subclass hierarchy::

    RefbundleError
    +-- ConfigError
    +-- LoadError
    +-- UnresolvedRefError
    +-- RecursionLimitError
    +-- BundleError
"""

from __future__ import annotations


class RefbundleError(Exception):
    """Base exception for all refbundle errors.

    Args:
        message: Human-readable error description.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigError(RefbundleError):
    """Raised for invalid store configuration (bad environment values)."""


class LoadError(RefbundleError):
    """Raised when a document is unreachable, unreadable, or neither JSON nor YAML."""


class UnresolvedRefError(RefbundleError):
    """Raised when a ``$ref`` cannot be resolved.

    Either the target document failed to load or the pointer does not
    exist inside it.

    Args:
        message: Human-readable error description.
        ref: The ``$ref`` string that failed.
        document: Identity of the document the ``$ref`` occurred in.
    """

    def __init__(self, message: str, ref: str = "", document: str = ""):
        super().__init__(message)
        self.ref = ref
        self.document = document


class RecursionLimitError(RefbundleError):
    """Raised when a reference chain is nested deeper than the configured limit."""

    def __init__(self, message: str, limit: int = 0):
        super().__init__(message)
        self.limit = limit


class BundleError(RefbundleError):
    """Raised when a :meth:`~refbundle.bundler.Bundler.bundle` call aborts.

    Args:
        message: Human-readable error description.
        ref: The offending ``$ref`` string.
        location: Where the ``$ref`` was found, as
            ``"<document id>#<json pointer>"``.
    """

    def __init__(self, message: str, ref: str = "", location: str = ""):
        super().__init__(message)
        self.ref = ref
        self.location = location
