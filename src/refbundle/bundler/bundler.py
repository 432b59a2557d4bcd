"""Bundle a schema and everything it references into one document.

The :class:`Bundler` walks a schema depth-first (mapping order, then list
order) over a deep copy of the root.  Every ``{"$ref": ...}`` it meets is
resolved with :class:`~refbundle.parser.resolver.ReferenceResolver`
relative to the document whose content is being walked, and then either

* **linked** (``replace=False``): the target is copied once into the
  destination container (``definitions`` by default) under a name from
  :class:`~refbundle.bundler.naming.NameAllocator`, and the ``$ref`` is
  rewritten to ``#/<destination>/<name>``; or
* **inlined** (``replace=True``): the ``$ref`` object is replaced by a copy
  of its target.  Only targets reached again while they are still being
  copied (cycles) are given a name and linked.

Copied targets are walked in turn, so nested references are bundled too.
All per-call state lives in a :class:`BundleContext` created fresh for every
call; repeated calls with identical inputs produce identical output.

Typical usage::

    with DocumentStore() as store:
        bundled = Bundler(store).bundle("api/schema.yaml")
        # bundled["definitions"] now holds every external fragment.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from refbundle.bundler.naming import NameAllocator, base_name_for
from refbundle.exceptions import (
    BundleError,
    LoadError,
    RecursionLimitError,
    UnresolvedRefError,
)
from refbundle.models import BundleOptions, SchemaDocument
from refbundle.parser.pointer import Pointer
from refbundle.parser.resolver import ReferenceResolver, ResolvedRef
from refbundle.store import DocumentStore, explicit_id_of

logger = logging.getLogger(__name__)

# (document identity, pointer string) of a bundled target.
TargetKey = tuple[str, str]


def _document_key(document: SchemaDocument) -> str:
    return document.id or document.explicit_id or ""


@dataclass(frozen=True)
class Reference:
    """A resolved ``$ref``, as handed to the ``redirect`` hook.

    Attributes:
        ref: The original ``$ref`` string.
        origin: The document the ``$ref`` occurred in.
        document: The document the ``$ref`` resolved into.
        pointer: Location of the target inside ``document``.
        target: The live target subtree.  Treat as read-only.
    """

    ref: str
    origin: SchemaDocument
    document: SchemaDocument
    pointer: Pointer
    target: Any

    @property
    def fqn(self) -> str:
        """Fully qualified target, ``"<document id>#<pointer>"``."""
        return f"{self.document.id}#{self.pointer}"


@dataclass
class BundleContext:
    """Scratch state for a single :meth:`Bundler.bundle` call."""

    root: SchemaDocument
    options: BundleOptions
    destination: Pointer
    whole_root: bool
    recursion_limit: int
    output: Any = None
    allocator: NameAllocator = field(default_factory=NameAllocator)
    in_progress: set[TargetKey] = field(default_factory=set)
    # Rewritten "$ref" value for every linked target.
    names: dict[TargetKey, str] = field(default_factory=dict)
    # Finished copies of inlined targets (replace mode).
    inlined: dict[TargetKey, Any] = field(default_factory=dict)
    # Destinations chosen by the redirect hook (replace mode).
    redirected: dict[TargetKey, Pointer] = field(default_factory=dict)
    # New container entries and other placements, in first-encounter order.
    entries: dict[str, Any] = field(default_factory=dict)
    placements: dict[Pointer, Any] = field(default_factory=dict)
    claims: dict[Pointer, TargetKey] = field(default_factory=dict)

    @property
    def root_key(self) -> TargetKey:
        return (_document_key(self.root), "")


class Bundler:
    """Collapse a schema and its references into one self-contained document.

    Args:
        store: The store used to load the root (when given as a locator)
            and every external document.  When omitted a default store is
            created, owned by the bundler and released by :meth:`close`.
    """

    def __init__(self, store: Optional[DocumentStore] = None) -> None:
        self.store = store if store is not None else DocumentStore()
        self._owns_store = store is None
        self.resolver = ReferenceResolver(self.store)

    def close(self) -> None:
        """Close the store if the bundler created it."""
        if self._owns_store:
            self.store.close()

    def __enter__(self) -> Bundler:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def bundle(
        self,
        root: Union[SchemaDocument, str, dict, list, bool],
        options: Optional[BundleOptions] = None,
        **kwargs: Any,
    ) -> Any:
        """Bundle *root*.

        Args:
            root: A loaded document, a locator for
                :meth:`~refbundle.store.DocumentStore.load`, or an in-memory
                schema (never mutated).
            options: Bundle options.  Alternatively pass the option fields
                (``replace``, ``schema``, ``destination``, ``redirect``) as
                keyword arguments.

        Returns:
            The bundled document, a new JSON-compatible value.

        Raises:
            BundleError: If the root cannot be loaded, a reference cannot be
                resolved, or the reference chain or the schema nesting is
                too deep.  No partial output is returned.
            pydantic.ValidationError: If an option is unknown or invalid.
        """
        if options is None:
            options = BundleOptions(**kwargs)
        elif kwargs:
            raise TypeError("pass either options or keyword options, not both")

        document = self._root_document(root)
        subset, base = self._select(document, options.schema_)
        ctx = BundleContext(
            root=document,
            options=options,
            destination=Pointer.from_path(options.destination),
            whole_root=subset is document.tree,
            recursion_limit=self.store.config.recursion_limit,
        )

        try:
            ctx.output = copy.deepcopy(subset)
            self._reserve_existing(ctx)
            if ctx.whole_root:
                ctx.names[ctx.root_key] = "#"
                ctx.in_progress.add(ctx.root_key)

            ctx.output = self._walk(ctx.output, document, base, ctx, depth=0)
        except RecursionError as exc:
            raise BundleError(
                "Schema is nested too deeply to bundle",
                location=f"{document.id or '<root>'}#{base}",
            ) from exc
        return self._finish(ctx)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def _root_document(self, root: Any) -> SchemaDocument:
        if isinstance(root, SchemaDocument):
            return root
        if isinstance(root, str):
            try:
                return self.store.load(root)
            except LoadError as exc:
                raise BundleError(
                    f"Unable to load root schema: {exc}", location=root
                ) from exc
        explicit_id = explicit_id_of(root)
        if explicit_id:
            return self.store.add_document(explicit_id, root)
        return SchemaDocument(tree=root)

    def _select(self, document: SchemaDocument, schema: Any) -> tuple[Any, Pointer]:
        """Return the subtree to bundle and its pointer inside *document*."""
        if schema is None:
            return document.tree, Pointer()
        if isinstance(schema, str):
            try:
                pointer = Pointer.parse(schema)
                node = pointer.resolve(document.tree)
            except (ValueError, KeyError, IndexError, TypeError) as exc:
                raise BundleError(
                    f"Schema {schema!r} does not resolve inside the root: {exc}",
                    location=f"{document.id or '<root>'}#",
                ) from exc
            return node, pointer
        return schema, Pointer()

    def _reserve_existing(self, ctx: BundleContext) -> None:
        """Pin the names already present in the output's destination container."""
        try:
            container = ctx.destination.resolve(ctx.output)
        except (KeyError, IndexError, TypeError):
            return
        if not isinstance(container, dict):
            return
        root_id = ctx.root_key[0]
        for name in container:
            ctx.allocator.reserve(name, (root_id, str(ctx.destination.child(name))))

    # ------------------------------------------------------------------
    # Walk
    # ------------------------------------------------------------------

    def _walk(
        self,
        node: Any,
        document: SchemaDocument,
        path: Pointer,
        ctx: BundleContext,
        depth: int,
    ) -> Any:
        if isinstance(node, dict):
            ref = node.get("$ref")
            if isinstance(ref, str):
                replaced = self._visit_ref(node, ref, document, path, ctx, depth)
                if replaced is not node:
                    return replaced
            for key, value in list(node.items()):
                if key == "$ref" and isinstance(value, str):
                    continue
                node[key] = self._walk(value, document, path.child(key), ctx, depth)
            return node

        if isinstance(node, list):
            for index, item in enumerate(node):
                node[index] = self._walk(item, document, path.child(index), ctx, depth)
            return node

        return node

    def _visit_ref(
        self,
        node: dict,
        ref: str,
        document: SchemaDocument,
        path: Pointer,
        ctx: BundleContext,
        depth: int,
    ) -> Any:
        location = f"{document.id or '<root>'}#{path}"
        try:
            if depth >= ctx.recursion_limit:
                raise RecursionLimitError(
                    f"Reference chain deeper than {ctx.recursion_limit}",
                    limit=ctx.recursion_limit,
                )
            target = self.resolver.resolve(ref, document)
        except (LoadError, UnresolvedRefError, RecursionLimitError) as exc:
            raise BundleError(
                f"Unable to bundle $ref '{ref}' at {location}: {exc}",
                ref=ref,
                location=location,
            ) from exc

        key = (_document_key(target.document), str(target.pointer))
        reference = Reference(ref, document, target.document, target.pointer, target.node)
        if ctx.options.replace:
            return self._inline(node, reference, target, key, ctx, depth, location)
        return self._link(node, reference, target, key, ctx, depth, location)

    def _link(
        self,
        node: dict,
        reference: Reference,
        target: ResolvedRef,
        key: TargetKey,
        ctx: BundleContext,
        depth: int,
        location: str,
    ) -> dict:
        # The whole root is part of the output, so its own nodes stay in place.
        if ctx.whole_root and key[0] == ctx.root_key[0]:
            node["$ref"] = target.pointer.fragment
            return node

        if key in ctx.names:
            node["$ref"] = ctx.names[key]
            return node

        destination = self._redirect(reference, ctx, location)
        if destination is False:
            logger.debug("Leaving %s at %s unbundled", reference.ref, location)
            return node
        if destination is None:
            destination = self._allocate(target, key, ctx)
        else:
            self._claim(destination, key, ctx, reference, location)

        logger.debug("Bundling %s as %s", reference.fqn, destination.fragment)
        ctx.names[key] = destination.fragment
        ctx.in_progress.add(key)
        fragment = self._walk(
            copy.deepcopy(target.node), target.document, target.pointer, ctx, depth + 1
        )
        ctx.in_progress.discard(key)
        self._store(destination, fragment, ctx)

        node["$ref"] = ctx.names[key]
        return node

    def _inline(
        self,
        node: dict,
        reference: Reference,
        target: ResolvedRef,
        key: TargetKey,
        ctx: BundleContext,
        depth: int,
        location: str,
    ) -> Any:
        if key in ctx.inlined:
            return copy.deepcopy(ctx.inlined[key])

        if key in ctx.in_progress:
            # A cycle: the target needs a name so it can be linked.
            if key not in ctx.names:
                destination = ctx.redirected.get(key)
                if destination is None:
                    destination = self._allocate(target, key, ctx)
                else:
                    self._claim(destination, key, ctx, reference, location)
                ctx.names[key] = destination.fragment
            node["$ref"] = ctx.names[key]
            return node

        destination = self._redirect(reference, ctx, location)
        if destination is False:
            logger.debug("Leaving %s at %s unbundled", reference.ref, location)
            return node
        if destination is not None:
            ctx.redirected[key] = destination

        logger.debug("Inlining %s at %s", reference.fqn, location)
        ctx.in_progress.add(key)
        fragment = self._walk(
            copy.deepcopy(target.node), target.document, target.pointer, ctx, depth + 1
        )
        ctx.in_progress.discard(key)
        ctx.inlined[key] = fragment

        if key in ctx.names:
            self._store(Pointer.parse(ctx.names[key]), copy.deepcopy(fragment), ctx)
        return fragment

    # ------------------------------------------------------------------
    # Destinations
    # ------------------------------------------------------------------

    def _redirect(
        self, reference: Reference, ctx: BundleContext, location: str
    ) -> Union[Pointer, None, bool]:
        """Ask the ``redirect`` hook where *reference* goes.

        Returns:
            ``False`` to leave the reference alone, ``None`` for default
            naming, or the pointer the hook chose.
        """
        redirect = ctx.options.redirect
        if redirect is None:
            return None
        result = redirect(reference)
        if not result:
            return False
        if result is True:
            return None

        value = str(result)
        if value.startswith(("#", "/")):
            pointer = Pointer.parse(value)
        else:
            pointer = ctx.destination.child(value)
        if not pointer:
            raise BundleError(
                f"redirect for $ref '{reference.ref}' returned the document root",
                ref=reference.ref,
                location=location,
            )
        return pointer

    def _allocate(self, target: ResolvedRef, key: TargetKey, ctx: BundleContext) -> Pointer:
        base_name = base_name_for(target.pointer, target.document.id)
        name = ctx.allocator.allocate(base_name, key[0], key[1])
        destination = ctx.destination.child(name)
        ctx.claims[destination] = key
        ctx.entries[name] = None
        return destination

    def _claim(
        self,
        destination: Pointer,
        key: TargetKey,
        ctx: BundleContext,
        reference: Reference,
        location: str,
    ) -> None:
        """Reserve a redirected *destination* for *key*.

        Two targets redirected to the same place, or a redirect onto an
        allocated name or an existing node of the output, is an error.
        """
        holder = ctx.claims.get(destination)
        in_container = destination.parent == ctx.destination
        taken = holder is not None and holder != key
        if not taken and in_container:
            taken = not ctx.allocator.reserve(destination.tokens[-1], key)
        elif not taken and holder is None:
            taken = destination.exists(ctx.output)
        if taken:
            raise BundleError(
                f"redirect for $ref '{reference.ref}' targets {destination.fragment}, "
                "which is already taken by another schema",
                ref=reference.ref,
                location=location,
            )

        ctx.claims[destination] = key
        if in_container:
            ctx.entries[destination.tokens[-1]] = None
        else:
            ctx.placements[destination] = None

    def _store(self, destination: Pointer, fragment: Any, ctx: BundleContext) -> None:
        if destination.parent == ctx.destination:
            ctx.entries[destination.tokens[-1]] = fragment
        else:
            ctx.placements[destination] = fragment

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def _finish(self, ctx: BundleContext) -> Any:
        output = ctx.output
        try:
            if ctx.entries:
                container = self._container(output, ctx.destination)
                container.update(ctx.entries)
            for pointer, fragment in ctx.placements.items():
                pointer.set(output, fragment)
        except (TypeError, ValueError) as exc:
            raise BundleError(
                f"Cannot store bundled schemas under {ctx.destination.fragment}: {exc}",
                location=f"{ctx.root.id or '<root>'}#{ctx.destination}",
            ) from exc
        return output

    @staticmethod
    def _container(output: Any, destination: Pointer) -> dict:
        current = output
        for token in destination.tokens:
            if not isinstance(current, dict):
                raise TypeError(f"cannot create {token!r} inside {type(current).__name__}")
            current = current.setdefault(token, {})
        if not isinstance(current, dict):
            raise TypeError(f"{destination.fragment} is a {type(current).__name__}, not an object")
        return current


def bundle(
    root: Union[SchemaDocument, str, dict, list, bool],
    store: Optional[DocumentStore] = None,
    **options: Any,
) -> Any:
    """Bundle *root* with a one-off :class:`Bundler`.

    Keyword options are the :class:`~refbundle.models.BundleOptions` fields.
    When no *store* is given a temporary one is created and closed again.

    Example::

        bundled = bundle({"properties": {"id": {"$ref": "common.json#/id"}}})
    """
    with Bundler(store) as bundler:
        return bundler.bundle(root, **options)
