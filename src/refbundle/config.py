"""Environment-driven configuration for the document store.

:func:`load_store_config` merges explicit keyword overrides, environment
variables and :class:`~refbundle.models.StoreConfig` defaults into the
effective configuration.  Precedence (high to low):

    1. Keyword overrides passed by the caller
    2. Environment variables (``REFBUNDLE_*``)
    3. Defaults

Recognised environment variables:

* ``REFBUNDLE_CACHE_PATH`` -- ``os.pathsep``-separated list of cache
  directories, searched before the bundled cache directory.
* ``REFBUNDLE_CACHE_ALWAYS`` -- also write fetched URLs to the bundled
  cache directory.
* ``REFBUNDLE_NO_CACHE`` -- never write fetched URLs to disk.
* ``REFBUNDLE_RECURSION_LIMIT``, ``REFBUNDLE_MAX_REDIRECTS``,
  ``REFBUNDLE_TIMEOUT`` -- numeric limits.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Callable

from pydantic import ValidationError

from refbundle.exceptions import ConfigError
from refbundle.models import StoreConfig

_ENV_PREFIX = "REFBUNDLE_"
_TRUTHY = frozenset({"1", "true", "yes", "on"})


def get_bundled_cache_dir() -> Path:
    """Return the cache directory shipped inside the package."""
    return Path(__file__).parent / "cache" / "bundled"


def _env(name: str) -> str:
    return os.environ.get(_ENV_PREFIX + name, "").strip()


def _env_flag(name: str) -> bool | None:
    value = _env(name)
    if not value:
        return None
    return value.lower() in _TRUTHY


def _env_number(name: str, convert: Callable[[str], Any]) -> Any:
    value = _env(name)
    if not value:
        return None
    try:
        return convert(value)
    except ValueError as exc:
        raise ConfigError(f"Invalid value for {_ENV_PREFIX}{name}: {value!r}") from exc


def _env_cache_paths() -> list[Path]:
    raw = _env("CACHE_PATH")
    return [Path(p).expanduser() for p in raw.split(os.pathsep) if p]


def load_store_config(**overrides: Any) -> StoreConfig:
    """Resolve the effective :class:`StoreConfig`.

    Args:
        **overrides: Field values that win over the environment.  Values of
            ``None`` are ignored.

    Returns:
        The merged configuration.  When ``cache_paths`` is not overridden it
        is the environment list followed by :func:`get_bundled_cache_dir`.

    Raises:
        ConfigError: If an environment value or override is invalid.
    """
    values: dict[str, Any] = {
        "cache_paths": [*_env_cache_paths(), get_bundled_cache_dir()],
        "cache_always": _env_flag("CACHE_ALWAYS"),
        "recursion_limit": _env_number("RECURSION_LIMIT", int),
        "max_redirects": _env_number("MAX_REDIRECTS", int),
        "timeout": _env_number("TIMEOUT", float),
    }
    no_cache = _env_flag("NO_CACHE")
    if no_cache is not None:
        values["cache_enabled"] = not no_cache

    values.update(overrides)
    values = {key: value for key, value in values.items() if value is not None}

    try:
        return StoreConfig(**values)
    except ValidationError as exc:
        raise ConfigError(f"Invalid store configuration: {exc}") from exc
