"""
Pytest configuration and fixtures for adapter tests.

MongoDB is replaced by mongomock for behavioral tests and by MagicMock
clients for failure paths. Both are patched in where the session module
looks up MongoClient.
"""

import tempfile
from pathlib import Path
from typing import Callable, Generator
from unittest.mock import MagicMock

import mongomock
import pytest
from casbin.model import Model

from casbin_mongo_adapter import MongoAdapter

SESSION_CLIENT = "casbin_mongo_adapter.store.session.MongoClient"

TEST_URL = "mongodb://localhost:27017/casbin_test"

RBAC_MODEL_TEXT = """
[request_definition]
r = sub, obj, act

[policy_definition]
p = sub, obj, act

[role_definition]
g = _, _
g2 = _, _

[policy_effect]
e = some(where (p.eft == allow))

[matchers]
m = g(r.sub, p.sub) && r.obj == p.obj && r.act == p.act
"""


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def mongo_client() -> mongomock.MongoClient:
    """An in-memory MongoDB client shared by every session in a test."""
    return mongomock.MongoClient()


@pytest.fixture
def patched_mongo(
    monkeypatch: pytest.MonkeyPatch,
    mongo_client: mongomock.MongoClient,
) -> mongomock.MongoClient:
    """Route session connections to the in-memory client."""
    monkeypatch.setattr(SESSION_CLIENT, lambda *args, **kwargs: mongo_client)
    return mongo_client


@pytest.fixture
def rule_collection(patched_mongo: mongomock.MongoClient) -> mongomock.Collection:
    """The collection the default test adapter writes to."""
    return patched_mongo["casbin_test"]["casbin_rule"]


@pytest.fixture
def adapter(patched_mongo: mongomock.MongoClient) -> Generator[MongoAdapter, None, None]:
    """An adapter over the in-memory client."""
    mongo_adapter = MongoAdapter(TEST_URL)
    yield mongo_adapter
    mongo_adapter.close()


@pytest.fixture
def mock_client(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    """A MagicMock client; every database/collection lookup yields mock_collection."""
    client = MagicMock(name="MongoClient")
    monkeypatch.setattr(SESSION_CLIENT, lambda *args, **kwargs: client)
    return client


@pytest.fixture
def mock_collection(mock_client: MagicMock) -> MagicMock:
    """The collection returned by mock_client."""
    collection = MagicMock(name="Collection")
    mock_client.__getitem__.return_value.__getitem__.return_value = collection
    return collection


def _new_model() -> Model:
    model = Model()
    model.load_model_from_text(RBAC_MODEL_TEXT)
    return model


@pytest.fixture
def model() -> Model:
    """An empty RBAC model with p, g and g2 policy types."""
    return _new_model()


@pytest.fixture
def model_factory() -> Callable[[], Model]:
    """Builds further empty RBAC models, e.g. to load into after a save."""
    return _new_model


@pytest.fixture
def model_path(temp_dir: Path) -> Path:
    """The RBAC model written to a .conf file."""
    path = temp_dir / "rbac_model.conf"
    path.write_text(RBAC_MODEL_TEXT)
    return path
