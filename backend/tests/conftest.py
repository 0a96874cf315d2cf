from __future__ import annotations

import json
import sys
import urllib.parse
import urllib.request
from pathlib import Path
from collections import defaultdict
from types import SimpleNamespace
from typing import Any, Optional

import pytest
from fastapi.testclient import TestClient
from pymongo.errors import DuplicateKeyError, PyMongoError

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from config import Settings
from favorites_store import FavoritesStore
import main


class DummyResp:
    def __init__(self, payload: Any):
        self._raw = json.dumps(payload).encode("utf-8")

    def read(self) -> bytes:  # urllib response API
        return self._raw

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


class FakeUpstream:
    """
    Stand-in for urllib.request.urlopen. Routes are matched by URL substring;
    a route value is either a JSON payload or an exception instance to raise.
    """

    def __init__(self):
        self.routes: list[tuple[str, Any]] = []
        self.calls: list[str] = []

    def route(self, fragment: str, result: Any) -> None:
        self.routes.append((fragment, result))

    def urls_containing(self, fragment: str) -> list[str]:
        return [u for u in self.calls if fragment in u]

    def query_of(self, fragment: str) -> dict[str, str]:
        url = self.urls_containing(fragment)[-1]
        return dict(urllib.parse.parse_qsl(urllib.parse.urlsplit(url).query, keep_blank_values=True))

    def __call__(self, req: urllib.request.Request, timeout: int = 10):
        url = getattr(req, "full_url", None) or req.get_full_url()
        self.calls.append(url)
        for fragment, result in self.routes:
            if fragment in url:
                if isinstance(result, BaseException):
                    raise result
                return DummyResp(result)
        raise RuntimeError(f"Unexpected urlopen URL: {url}")


class FakeCollection:
    """The subset of pymongo.collection.Collection used by FavoritesStore."""

    def __init__(self):
        self.docs: list[dict[str, Any]] = []
        self.indexes: dict[str, dict[str, Any]] = {"_id_": {"key": [("_id", 1)]}}
        self._next_id = 1

    @staticmethod
    def _matches(doc: dict[str, Any], flt: Optional[dict[str, Any]]) -> bool:
        return all(doc.get(k) == v for k, v in (flt or {}).items())

    @staticmethod
    def _project(doc: dict[str, Any], projection: Optional[dict[str, Any]]) -> dict[str, Any]:
        out = dict(doc)
        if projection and projection.get("_id") == 0:
            out.pop("_id", None)
        return out

    def index_information(self) -> dict[str, dict[str, Any]]:
        return dict(self.indexes)

    def create_index(self, keys, name: str, unique: bool = False, **kwargs) -> str:
        self.indexes[name] = {"key": list(keys), "unique": unique}
        return name

    def _unique_fields(self) -> list[str]:
        return [meta["key"][0][0] for meta in self.indexes.values() if meta.get("unique")]

    def find(self, flt=None, projection=None):
        return [self._project(d, projection) for d in self.docs if self._matches(d, flt)]

    def find_one(self, flt=None, projection=None):
        found = self.find(flt, projection)
        return found[0] if found else None

    def insert_one(self, doc: dict[str, Any]):
        for field in self._unique_fields():
            if any(d.get(field) == doc.get(field) for d in self.docs):
                raise DuplicateKeyError(f"E11000 duplicate key error: {field}", code=11000)
        doc.setdefault("_id", self._next_id)
        self._next_id += 1
        self.docs.append(dict(doc))
        return SimpleNamespace(inserted_id=doc["_id"])

    def find_one_and_delete(self, flt):
        for i, d in enumerate(self.docs):
            if self._matches(d, flt):
                return self.docs.pop(i)
        return None


class FakeMongoClient:
    """Stands in for pymongo.MongoClient in the app lifespan."""

    ping_error: Optional[PyMongoError] = None

    def __init__(self, uri: str, **kwargs):
        self.uri = uri
        self.kwargs = kwargs
        self.closed = False
        self.commands: list[str] = []
        self.databases: dict[str, dict[str, FakeCollection]] = defaultdict(lambda: defaultdict(FakeCollection))
        self.admin = SimpleNamespace(command=self._command)

    def _command(self, name: str):
        self.commands.append(name)
        if self.ping_error is not None:
            raise self.ping_error
        return {"ok": 1}

    def __getitem__(self, name: str) -> dict[str, FakeCollection]:
        return self.databases[name]

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def upstream(monkeypatch: pytest.MonkeyPatch) -> FakeUpstream:
    fake = FakeUpstream()
    monkeypatch.setattr(urllib.request, "urlopen", fake)
    return fake


@pytest.fixture
def mongo_clients(monkeypatch: pytest.MonkeyPatch) -> list[FakeMongoClient]:
    created: list[FakeMongoClient] = []

    def factory(uri: str, **kwargs) -> FakeMongoClient:
        c = FakeMongoClient(uri, **kwargs)
        created.append(c)
        return c

    monkeypatch.setattr(main, "MongoClient", factory)
    return created


@pytest.fixture
def settings() -> Settings:
    return Settings(mongodb_uri="mongodb://localhost:27017", ticketmaster_api_key="tm_key", ipinfo_token="ip_token")


@pytest.fixture
def collection() -> FakeCollection:
    return FakeCollection()


@pytest.fixture
def store(collection: FakeCollection) -> FavoritesStore:
    s = FavoritesStore(collection)
    s.ensure_indexes()
    return s


@pytest.fixture
def client(settings: Settings, store: FavoritesStore) -> TestClient:
    return TestClient(main.create_app(settings, favorites=store))
