"""Shared test fixtures for refbundle.

Provides the fixture directory, an isolated environment, a store whose disk
cache lives in ``tmp_path``, and a fake HTTP layer built on
:class:`httpx.MockTransport` so no test touches the network.
"""

from __future__ import annotations

import importlib
import json
import os
import uuid
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

from refbundle.models import StoreConfig
from refbundle.store import DocumentStore

FIXTURES_DIR = Path(__file__).parent / "fixtures"


# ---------------------------------------------------------------------------
# Environment isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Clear every REFBUNDLE_* variable so the host environment cannot leak in."""
    for var in list(os.environ):
        if var.startswith("REFBUNDLE_"):
            monkeypatch.delenv(var, raising=False)


@pytest.fixture
def in_fixtures(monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run the test from the fixtures directory (relative refs of in-memory roots)."""
    monkeypatch.chdir(FIXTURES_DIR)
    return FIXTURES_DIR


# ---------------------------------------------------------------------------
# Fake HTTP
# ---------------------------------------------------------------------------


class FakeHTTP:
    """Serves registered URLs through :class:`httpx.MockTransport`.

    Registered values may be JSON-compatible objects (served as JSON), text
    (served as YAML), or ready-made :class:`httpx.Response` objects.  Every
    requested URL is appended to :attr:`calls`.
    """

    def __init__(self) -> None:
        self.routes: dict[str, Any] = {}
        self.calls: list[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.calls.append(url)
        body = self.routes.get(url)
        if body is None:
            return httpx.Response(404)
        if isinstance(body, httpx.Response):
            return body
        if isinstance(body, str):
            return httpx.Response(
                200, text=body, headers={"content-type": "application/yaml"}
            )
        return httpx.Response(200, json=body)

    def client(self, max_redirects: int = 3) -> httpx.Client:
        return httpx.Client(
            transport=httpx.MockTransport(self.handler),
            follow_redirects=True,
            max_redirects=max_redirects,
        )


@pytest.fixture
def fake_http() -> FakeHTTP:
    return FakeHTTP()


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    path = tmp_path / "cache"
    path.mkdir()
    return path


@pytest.fixture
def make_store(cache_dir: Path, fake_http: FakeHTTP) -> Callable[..., DocumentStore]:
    """Factory for stores writing to ``cache_dir`` and fetching from ``fake_http``.

    Stores created through the factory are closed after the test.
    """
    stores: list[DocumentStore] = []

    def factory(**config: Any) -> DocumentStore:
        config.setdefault("cache_paths", [cache_dir])
        store = DocumentStore(StoreConfig(**config), client=fake_http.client())
        stores.append(store)
        return store

    yield factory
    for store in stores:
        store.close()


@pytest.fixture
def store(make_store: Callable[..., DocumentStore]) -> DocumentStore:
    return make_store()


# ---------------------------------------------------------------------------
# Embedded resources
# ---------------------------------------------------------------------------


@pytest.fixture
def resource_package(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Callable[[dict[str, Any]], str]:
    """Factory for importable packages holding JSON schema resources.

    Takes ``{relative name: document}`` and returns the new package name,
    ready for ``data://<package>/<name>`` locators.
    """
    root = tmp_path / "resources"
    root.mkdir()
    monkeypatch.syspath_prepend(str(root))

    def factory(files: dict[str, Any]) -> str:
        name = f"refbundle_res_{uuid.uuid4().hex}"
        package = root / name
        package.mkdir(parents=True)
        (package / "__init__.py").write_text("", encoding="utf-8")
        for relative, document in files.items():
            path = package / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(document), encoding="utf-8")
        importlib.invalidate_caches()
        return name

    return factory
