"""Read and decode schema documents from their raw sources.

This module handles the I/O and decoding half of loading: classifying a
locator, reading a local file or an embedded package resource, fetching a
URL body, and turning text into a JSON-compatible value.  Caching and
identity bookkeeping live in :class:`~refbundle.store.DocumentStore`.

Locator kinds, checked in this order by the store:

* ``http://`` / ``https://`` URLs -- :func:`fetch_url`.
* ``data://<namespace>/<name>`` embedded resources -- :func:`read_resource`.
* Inline text -- :func:`is_inline_text`, decoded with :func:`parse_content`.
* Everything else is a file path -- :func:`read_file`.
"""

from __future__ import annotations

import json
import os
import re
from importlib import resources
from pathlib import Path
from typing import Any

import httpx
import yaml

from refbundle.exceptions import LoadError

_DATA_LOCATOR = re.compile(r"^data://([^/]*)/(.+)$")


def is_url(locator: str) -> bool:
    return locator.startswith(("http://", "https://"))


def is_inline_text(locator: str) -> bool:
    """Return True if *locator* is document text rather than a location.

    JSON text starts with ``{`` or ``[``; YAML text is recognised by
    spanning more than one line, since a single-line value is always taken
    as a path.
    """
    stripped = locator.lstrip()
    return stripped[:1] in ("{", "[") or "\n" in stripped.rstrip()


def split_data_locator(locator: str) -> tuple[str, str] | None:
    """Split ``data://<namespace>/<name>`` into ``(namespace, name)``."""
    match = _DATA_LOCATOR.match(locator)
    if match is None:
        return None
    return match.group(1), match.group(2)


def strip_fragment(url: str) -> str:
    """Remove a ``#fragment`` (including a bare trailing ``#``) from *url*."""
    return url.split("#", 1)[0]


def fetch_url(client: httpx.Client, url: str) -> tuple[bytes, str]:
    """Fetch *url* and return its body and a format hint.

    Args:
        client: The HTTP client (redirect and timeout limits are configured
            on it).
        url: The fragment-less HTTP(S) URL.

    Returns:
        ``(body, hint)`` where *hint* is ``"json"``, ``"yaml"`` or ``""``
        depending on the response content type.

    Raises:
        LoadError: On HTTP error status, too many redirects, or transport
            failure.
    """
    try:
        response = client.get(url)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise LoadError(
            f"HTTP {exc.response.status_code} fetching schema from {url}"
        ) from exc
    except httpx.TooManyRedirects as exc:
        raise LoadError(f"Too many redirects fetching schema from {url}") from exc
    except httpx.RequestError as exc:
        raise LoadError(f"Failed to fetch schema from {url}: {exc}") from exc

    content_type = response.headers.get("content-type", "")
    hint = ""
    if "json" in content_type:
        hint = "json"
    elif "yaml" in content_type or "yml" in content_type:
        hint = "yaml"
    return response.content, hint


def _file_path(locator: str) -> Path:
    path_str = locator
    if path_str.startswith("file://"):
        path_str = path_str[len("file://"):]
    return Path(path_str.rstrip("#")).expanduser()


def file_identity(locator: str) -> str:
    """Identity of the file *locator* names: resolved, case-normalised path.

    The file does not have to exist.
    """
    return os.path.normcase(str(_file_path(locator).resolve()))


def read_file(locator: str) -> tuple[str, str, str]:
    """Read a schema file.

    An optional ``file://`` prefix and a trailing ``#`` are ignored.
    Symlinks are resolved and the identity is case-normalised on
    case-insensitive platforms.

    Returns:
        ``(content, identity, hint)``.

    Raises:
        LoadError: If the file does not exist, cannot be read, or is empty.
    """
    file_path = _file_path(locator)
    if not file_path.is_file():
        raise LoadError(f"Unable to load schema {locator!r}: file not found")

    real_path = file_path.resolve()
    try:
        content = real_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise LoadError(f"Failed to read schema file {locator}: {exc}") from exc

    if not content.strip():
        raise LoadError(f"Schema file is empty: {locator}")

    suffix = real_path.suffix.lower()
    hint = ""
    if suffix == ".json":
        hint = "json"
    elif suffix in (".yaml", ".yml"):
        hint = "yaml"

    return content, os.path.normcase(str(real_path)), hint


def read_resource(namespace: str, name: str) -> str:
    """Read an embedded resource shipped inside an importable package.

    Raises:
        LoadError: If the package cannot be imported or has no such resource.
    """
    try:
        resource = resources.files(namespace).joinpath(name)
        return resource.read_text(encoding="utf-8")
    except (ImportError, TypeError) as exc:
        raise LoadError(f"Unknown resource namespace {namespace!r}: {exc}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise LoadError(f"Unable to read resource {name!r} from {namespace!r}: {exc}") from exc


def parse_content(content: str, hint: str = "") -> Any:
    """Parse content as JSON or YAML.

    Text whose first non-whitespace character is ``{`` or ``[`` (or any text
    hinted as JSON) is parsed as JSON first; everything else goes straight
    to YAML.  JSON that fails to parse is retried as YAML unless the hint
    was explicitly ``"json"``.

    Args:
        content: The raw string content.
        hint: Optional format hint (``"json"`` or ``"yaml"``).

    Returns:
        The decoded object, array or boolean.

    Raises:
        LoadError: If the content cannot be parsed, or decodes to something
            other than an object, array or boolean.
    """
    json_error: Exception | None = None
    yaml_error: Exception | None = None

    looks_like_json = content.lstrip()[:1] in ("{", "[")
    if hint == "json" or (hint != "yaml" and looks_like_json):
        try:
            return _check_document(json.loads(content))
        except json.JSONDecodeError as exc:
            json_error = exc
            if hint == "json":
                raise LoadError(f"Invalid JSON: {exc}") from exc

    try:
        result = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        yaml_error = exc
    else:
        return _check_document(result)

    msg = "Failed to parse schema as JSON or YAML"
    if json_error:
        msg += f"\n  JSON error: {json_error}"
    if yaml_error:
        msg += f"\n  YAML error: {yaml_error}"
    raise LoadError(msg)


def _check_document(result: Any) -> Any:
    if isinstance(result, (dict, list, bool)):
        return result
    got = type(result).__name__ if result is not None else "empty document"
    raise LoadError(f"Schema must be a JSON/YAML object, array or boolean (got {got})")
