"""Pydantic models shared across refbundle.

**Configuration models**:
    :class:`StoreConfig` -- consumed by :class:`~refbundle.store.DocumentStore`
    and built from the environment by :func:`~refbundle.config.load_store_config`.

    :class:`BundleOptions` -- per-call options for
    :meth:`~refbundle.bundler.Bundler.bundle`.

**Document model**:
    :class:`SchemaDocument` -- a parsed schema tree plus its source identity.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

# A scheme followed by something other than "//", e.g. "urn:" or "tag:".
_OPAQUE_ID = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]+:(?!//)")


# --- Store config ---


class StoreConfig(BaseModel):
    """Settings for loading and caching schema documents.

    ``cache_paths`` is searched in order when a URL is loaded.  Fetched
    documents are written to the first existing, writable directory in the
    list unless ``cache_enabled`` is off.  The cache directory bundled with
    the package is only written to when ``cache_always`` is set.
    """

    cache_paths: list[Path] = Field(default_factory=list)
    cache_enabled: bool = Field(default=True, description="Write fetched URLs to the cache")
    cache_always: bool = Field(
        default=False, description="Also write to the bundled cache directory"
    )
    recursion_limit: int = Field(default=100, ge=1, description="Max nested $ref hops")
    max_redirects: int = Field(default=3, ge=0)
    timeout: float = Field(default=30.0, gt=0, description="HTTP timeout in seconds")


# --- Bundle options ---


class BundleOptions(BaseModel):
    """Options for a single :meth:`~refbundle.bundler.Bundler.bundle` call.

    Example::

        BundleOptions(
            replace=False,
            destination="components.schemas",
            redirect=lambda ref: not ref.ref.startswith("https://"),
        )

    ``destinationKey`` and ``destination_key`` are accepted for
    ``destination``.  Unknown options raise a validation error.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, populate_by_name=True, extra="forbid")

    replace: bool = Field(default=False, description="Inline targets instead of linking them")
    schema_: Any = Field(
        default=None,
        alias="schema",
        description="Sub-object or pointer into the root to bundle instead of the whole root",
    )
    destination: str = Field(
        default="definitions",
        validation_alias=AliasChoices("destination", "destinationKey", "destination_key"),
        description="Container for copied targets",
    )
    redirect: Optional[Callable[[Any], Any]] = None

    @field_validator("destination")
    @classmethod
    def _destination_not_empty(cls, value: str) -> str:
        if not value.strip(" ./#"):
            raise ValueError("destination must name a container")
        return value


# --- Documents ---


class SchemaDocument(BaseModel):
    """A loaded schema document.

    Attributes:
        tree: The parsed JSON-compatible value.
        id: Source identity -- normalised URL, resolved file path,
            ``data://`` locator, or ``""`` for inline text and in-memory
            roots.
        explicit_id: The document's own top-level ``$id`` (or draft-4
            ``id``) when it declares one.
    """

    model_config = ConfigDict(frozen=True)

    tree: Any
    id: str = ""
    explicit_id: Optional[str] = None

    @property
    def base(self) -> str:
        """Identity that relative references in this document resolve against.

        The ``$id`` wins unless it is an opaque identifier such as
        ``urn:example:pet``, which relative locators cannot be joined to.
        """
        if self.explicit_id and not _OPAQUE_ID.match(self.explicit_id):
            return self.explicit_id
        return self.id or self.explicit_id or ""
