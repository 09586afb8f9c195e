"""
Shared pytest fixtures for the Icon Catalog Pipeline tests.
"""

import json
from typing import Any, Dict, List
from unittest.mock import MagicMock

import pytest

from icon_catalog.core.dataset_store import IconDatasetStore, IconRecord

SIMPLE_SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="24" height="24" viewBox="0 0 24 24">'
    '<rect x="2" y="2" width="20" height="20" fill="#000"/></svg>'
)

WIDE_SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="48" height="24" viewBox="0 0 48 24">'
    '<rect x="0" y="0" width="48" height="24" fill="#ff0000"/></svg>'
)


def make_record(name: str, embedding: Any = "default", **overrides) -> IconRecord:
    if embedding == "default":
        embedding = [0.1, 0.2, 0.3]
    data: Dict[str, Any] = {
        "name": name,
        "commonnames": [f"{name} icon"],
        "description": f"Shows {name}",
        "tags": ["ui"],
        "categories": ["general"],
        "library": "test-lib",
        "embedding": embedding,
    }
    data.update(overrides)
    return IconRecord.from_dict(data)


@pytest.fixture
def dataset_path(tmp_path):
    return str(tmp_path / "dataset.json")


@pytest.fixture
def store(dataset_path):
    return IconDatasetStore(dataset_path)


@pytest.fixture
def sample_records() -> List[IconRecord]:
    return [make_record("home"), make_record("search"), make_record("settings")]


@pytest.fixture
def icon_dir(tmp_path):
    """Folder with a.svg + a.json (complete) and b.svg (no sidecar)."""
    directory = tmp_path / "icons" / "test-lib"
    directory.mkdir(parents=True)
    (directory / "a.svg").write_text(SIMPLE_SVG, encoding="utf-8")
    (directory / "a.json").write_text(
        json.dumps({"tags": ["arrow", "up"], "categories": ["navigation"]}),
        encoding="utf-8"
    )
    (directory / "b.svg").write_text(SIMPLE_SVG, encoding="utf-8")
    (directory / "notes.txt").write_text("ignored", encoding="utf-8")
    return directory


class FakeCursor:
    def __init__(self, connection):
        self.connection = connection

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, query, params=None):
        self.connection.db.execute(query, params)

    def fetchone(self):
        return ("2024-01-01 00:00:00",)


class FakeConnection:
    def __init__(self, db):
        self.db = db

    def cursor(self):
        return FakeCursor(self)

    def commit(self):
        self.db.commits += 1

    def rollback(self):
        self.db.rollbacks += 1

    def close(self):
        pass


class FakeDatabase:
    """
    In-memory stand-in for psycopg connections.

    fail_connect: raise on every connect
    fail_names: icon names whose INSERT raises
    """

    def __init__(self, fail_connect: bool = False, fail_names=None):
        self.fail_connect = fail_connect
        self.fail_names = set(fail_names or [])
        self.connects = 0
        self.commits = 0
        self.rollbacks = 0
        self.pings = 0
        self.inserts: List[tuple] = []
        self.insert_attempts: List[str] = []

    def connect(self):
        self.connects += 1
        if self.fail_connect:
            raise ConnectionError("connection refused")
        return FakeConnection(self)

    def execute(self, query, params):
        if params is None:
            self.pings += 1
            return
        name = params[0]
        self.insert_attempts.append(name)
        if name in self.fail_names:
            raise RuntimeError(f"duplicate key value violates unique constraint for {name}")
        self.inserts.append(params)


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def no_wait_throttle():
    throttle = MagicMock()
    throttle.wait.return_value = None

    async def _wait_async():
        return None

    throttle.wait_async.side_effect = _wait_async
    return throttle
