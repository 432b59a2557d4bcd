"""JSON Pointer (RFC 6901) parsing, rendering and navigation.

A :class:`Pointer` is an immutable sequence of unescaped tokens.  It can be
parsed from a ``$ref`` fragment (``"#/definitions/Pet"``), a plain pointer
(``"/definitions/Pet"``) or a destination path (``"components.schemas"``),
and rendered back to its escaped ``/a/b`` form.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

_ARRAY_INDEX = re.compile(r"0|[1-9][0-9]*")


def escape_token(token: str) -> str:
    """Escape a single token (``~`` to ``~0``, ``/`` to ``~1``)."""
    return token.replace("~", "~0").replace("/", "~1")


def unescape_token(token: str) -> str:
    """Unescape a single token (``~1`` to ``/``, ``~0`` to ``~``)."""
    return token.replace("~1", "/").replace("~0", "~")


@dataclass(frozen=True)
class Pointer:
    """An RFC 6901 JSON Pointer.

    Example::

        ptr = Pointer.parse("#/definitions/a~1b")
        ptr.tokens        # ("definitions", "a/b")
        str(ptr)          # "/definitions/a~1b"
        ptr.resolve({"definitions": {"a/b": 1}})  # 1
    """

    tokens: tuple[str, ...] = ()

    @classmethod
    def parse(cls, value: str) -> Pointer:
        """Parse ``""``, ``"#"``, ``"/a/b"`` or ``"#/a/b"``.

        Raises:
            ValueError: If a non-empty pointer does not start with ``/``.
        """
        if value.startswith("#"):
            value = value[1:]
        if not value:
            return cls()
        if not value.startswith("/"):
            raise ValueError(f"Invalid JSON pointer: {value!r}")
        return cls(tuple(unescape_token(token) for token in value[1:].split("/")))

    @classmethod
    def from_path(cls, value: str) -> Pointer:
        """Parse a destination path.

        Accepts pointer syntax (``"#/a/b"``, ``"/a/b"``), slash paths
        (``"a/b"``) and dotted paths (``"a.b"``).
        """
        if value.startswith(("#", "/")):
            return cls.parse(value)
        separator = "/" if "/" in value else "."
        return cls(tuple(unescape_token(token) for token in value.split(separator) if token))

    def __str__(self) -> str:
        return "".join("/" + escape_token(token) for token in self.tokens)

    def __bool__(self) -> bool:
        return bool(self.tokens)

    def __len__(self) -> int:
        return len(self.tokens)

    def child(self, *tokens: Any) -> Pointer:
        """Return a new pointer with *tokens* appended."""
        return Pointer(self.tokens + tuple(str(token) for token in tokens))

    def startswith(self, other: Pointer) -> bool:
        return self.tokens[: len(other.tokens)] == other.tokens

    @property
    def parent(self) -> Pointer:
        return Pointer(self.tokens[:-1])

    @property
    def fragment(self) -> str:
        """The pointer as a same-document ``$ref`` value (``"#/a/b"``)."""
        return "#" + str(self)

    def resolve(self, tree: Any) -> Any:
        """Navigate *tree* and return the value this pointer addresses.

        Raises:
            KeyError: If an object key does not exist.
            IndexError: If an array token is not a non-negative integer in
                bounds.
            TypeError: If a scalar would have to be entered.
        """
        current = tree
        for token in self.tokens:
            if isinstance(current, dict):
                if token not in current:
                    raise KeyError(f"key {token!r} not found")
                current = current[token]
            elif isinstance(current, list):
                if not _ARRAY_INDEX.fullmatch(token):
                    raise IndexError(f"invalid array index {token!r}")
                index = int(token)
                if index >= len(current):
                    raise IndexError(f"array index {index} out of range")
                current = current[index]
            else:
                raise TypeError(f"cannot navigate into {type(current).__name__}")
        return current

    def set(self, tree: Any, value: Any) -> None:
        """Store *value* at this pointer, creating intermediate objects.

        Raises:
            ValueError: For the empty pointer.
            TypeError: If an intermediate value is not an object.
        """
        if not self.tokens:
            raise ValueError("cannot replace the document root")
        current = tree
        for token in self.tokens[:-1]:
            if not isinstance(current, dict):
                raise TypeError(f"cannot create {token!r} inside {type(current).__name__}")
            current = current.setdefault(token, {})
        if not isinstance(current, dict):
            raise TypeError(f"cannot set {self.tokens[-1]!r} inside {type(current).__name__}")
        current[self.tokens[-1]] = value

    def exists(self, tree: Any) -> bool:
        try:
            self.resolve(tree)
        except (KeyError, IndexError, TypeError):
            return False
        return True

