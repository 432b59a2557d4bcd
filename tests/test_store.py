"""Tests for refbundle.store."""

from __future__ import annotations

import os
import textwrap
from pathlib import Path
from typing import Callable

import httpx
import pytest

from refbundle.cache import DocumentCache
from refbundle.exceptions import LoadError
from refbundle.store import DocumentStore, explicit_id_of

FIXTURES_DIR = Path(__file__).parent / "fixtures"
URL = "https://example.com/schemas/pet.json"


# ---------------------------------------------------------------------------
# Files, text and resources
# ---------------------------------------------------------------------------


class TestLoadLocal:
    def test_loads_json_file(self, store: DocumentStore) -> None:
        doc = store.load(str(FIXTURES_DIR / "pet.json"))
        assert doc.tree["definitions"]["Tag"] == {"type": "string", "maxLength": 32}
        assert doc.id == os.path.normcase(str((FIXTURES_DIR / "pet.json").resolve()))

    def test_loads_yaml_file(self, store: DocumentStore) -> None:
        doc = store.load(str(FIXTURES_DIR / "person.yaml"))
        items = doc.tree["definitions"]["Person"]["properties"]["pets"]["items"]
        assert items == {"$ref": "pet.json#/definitions/Pet"}

    def test_repeated_load_is_cached(self, store: DocumentStore) -> None:
        path = str(FIXTURES_DIR / "pet.json")
        assert store.load(path) is store.load(path)

    def test_different_spellings_share_a_document(self, store: DocumentStore, in_fixtures: Path) -> None:
        assert store.load("pet.json") is store.load("./pet.json")
        assert store.load("pet.json") is store.load(str(FIXTURES_DIR / "pet.json"))

    def test_relative_path_follows_working_directory(
        self, store: DocumentStore, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        for name, kind in (("one", "string"), ("two", "integer")):
            (tmp_path / name).mkdir()
            (tmp_path / name / "s.json").write_text(f'{{"type": "{kind}"}}', encoding="utf-8")

        monkeypatch.chdir(tmp_path / "one")
        first = store.load("s.json")
        monkeypatch.chdir(tmp_path / "two")
        second = store.load("s.json")
        assert first.tree == {"type": "string"}
        assert second.tree == {"type": "integer"}
        monkeypatch.chdir(tmp_path / "one")
        assert store.load("s.json") is first

    def test_symlink_shares_identity(self, store: DocumentStore, tmp_path: Path) -> None:
        target = tmp_path / "real.json"
        target.write_text('{"type": "string"}', encoding="utf-8")
        link = tmp_path / "link.json"
        link.symlink_to(target)
        assert store.load(str(link)) is store.load(str(target))

    def test_inline_json(self, store: DocumentStore) -> None:
        doc = store.load('{"type": "integer"}')
        assert doc.tree == {"type": "integer"}
        assert doc.id == ""

    def test_inline_yaml(self, store: DocumentStore) -> None:
        text = textwrap.dedent("""\
            type: object
            required: [id]
        """)
        assert store.load(text).tree == {"type": "object", "required": ["id"]}

    def test_load_text_with_hint(self, store: DocumentStore) -> None:
        assert store.load_text("{type: string}", hint="yaml").tree == {"type": "string"}

    def test_embedded_resource(self, store: DocumentStore) -> None:
        doc = store.load("data://refbundle.schemas/draft-07.json")
        assert doc.id == "data://refbundle.schemas/draft-07.json"
        assert doc.explicit_id == "http://json-schema.org/draft-07/schema"
        assert store.get_document("http://json-schema.org/draft-07/schema#") is doc

    def test_missing_resource(self, store: DocumentStore) -> None:
        with pytest.raises(LoadError):
            store.load("data://refbundle.schemas/draft-99.json")

    def test_missing_file(self, store: DocumentStore) -> None:
        with pytest.raises(LoadError, match="Unable to load schema"):
            store.load("/nonexistent/schema.json")

    def test_undecodable_file(self, store: DocumentStore, tmp_path: Path) -> None:
        bad = tmp_path / "bad.json"
        bad.write_text("{invalid json", encoding="utf-8")
        with pytest.raises(LoadError, match="Invalid JSON"):
            store.load(str(bad))

    @pytest.mark.parametrize("locator", ["", "   "])
    def test_empty_locator(self, store: DocumentStore, locator: str) -> None:
        with pytest.raises(LoadError, match="empty locator"):
            store.load(locator)


# ---------------------------------------------------------------------------
# URLs and the disk cache
# ---------------------------------------------------------------------------


class TestLoadUrl:
    def test_fetches_and_caches_to_disk(self, make_store: Callable[..., DocumentStore], fake_http, cache_dir: Path) -> None:
        fake_http.routes[URL] = {"definitions": {"Pet": {"type": "object"}}}
        doc = make_store().load(URL)
        assert doc.id == URL
        assert doc.tree["definitions"]["Pet"] == {"type": "object"}

        cache = DocumentCache([cache_dir])
        assert cache.get(URL) is not None
        cache.close()

    def test_second_store_reads_disk_cache(self, make_store: Callable[..., DocumentStore], fake_http) -> None:
        fake_http.routes[URL] = {"type": "string"}
        make_store().load(URL)
        del fake_http.routes[URL]

        assert make_store().load(URL).tree == {"type": "string"}
        assert fake_http.calls == [URL]

    def test_fragment_is_not_part_of_identity(self, store: DocumentStore, fake_http) -> None:
        fake_http.routes[URL] = {"definitions": {}}
        doc = store.load(URL + "#/definitions")
        assert doc.id == URL
        assert store.load(URL) is doc
        assert fake_http.calls == [URL]

    def test_yaml_response(self, store: DocumentStore, fake_http) -> None:
        fake_http.routes[URL] = "type: object\n"
        assert store.load(URL).tree == {"type": "object"}

    def test_http_error(self, store: DocumentStore) -> None:
        with pytest.raises(LoadError, match="HTTP 404"):
            store.load("https://example.com/missing.json")

    def test_caching_disabled(self, make_store: Callable[..., DocumentStore], fake_http, cache_dir: Path) -> None:
        fake_http.routes[URL] = {"type": "string"}
        make_store(cache_enabled=False).load(URL)
        assert list(cache_dir.iterdir()) == []

    def test_non_utf8_body(self, store: DocumentStore, fake_http) -> None:
        fake_http.routes[URL] = httpx.Response(200, content=b"\xff\xfe\x00")
        with pytest.raises(LoadError, match="not valid UTF-8"):
            store.load(URL)


# ---------------------------------------------------------------------------
# Registration and lifecycle
# ---------------------------------------------------------------------------


class TestRegistry:
    def test_add_and_get_document(self, store: DocumentStore) -> None:
        doc = store.add_document("urn:example:common#", {"type": "string"})
        assert doc.id == "urn:example:common"
        assert store.get_document("urn:example:common") is doc
        assert store.get_document("urn:example:common#") is doc

    def test_get_unknown_document(self, store: DocumentStore) -> None:
        assert store.get_document("urn:nothing") is None

    def test_explicit_id_registered_on_load(self, store: DocumentStore) -> None:
        doc = store.load('{"$id": "https://example.com/root.json#", "type": "object"}')
        assert doc.explicit_id == "https://example.com/root.json"
        assert store.get_document("https://example.com/root.json") is doc

    def test_registered_url_is_not_fetched(self, store: DocumentStore, fake_http) -> None:
        store.add_document(URL, {"type": "null"})
        assert store.load(URL).tree == {"type": "null"}
        assert fake_http.calls == []

    def test_reset_forgets_documents(self, store: DocumentStore) -> None:
        path = str(FIXTURES_DIR / "pet.json")
        first = store.load(path)
        store.reset()
        assert store.documents == {}
        second = store.load(path)
        assert second is not first
        assert second.tree == first.tree

    def test_context_manager_closes(self, cache_dir: Path) -> None:
        from refbundle.models import StoreConfig

        with DocumentStore(StoreConfig(cache_paths=[cache_dir])) as store:
            store.load('{"type": "string"}')
        assert store._client is None


class TestExplicitId:
    def test_dollar_id(self) -> None:
        assert explicit_id_of({"$id": "https://x.org/a.json#"}) == "https://x.org/a.json"

    def test_draft4_id(self) -> None:
        assert explicit_id_of({"id": "https://x.org/a.json"}) == "https://x.org/a.json"

    def test_non_string_id_ignored(self) -> None:
        assert explicit_id_of({"id": {"type": "integer"}}) is None

    def test_non_object_document(self) -> None:
        assert explicit_id_of([1, 2]) is None
