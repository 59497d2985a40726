import pytest
from fastapi.testclient import TestClient

from config import get_settings
from storage import MemoryStore


@pytest.fixture
def memory_store():
    store = MemoryStore()
    store.initialize()
    return store


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    path = tmp_path / "data"
    monkeypatch.setenv("DATA_DIR", str(path))
    monkeypatch.setenv("STATIC_DIR", str(tmp_path / "public"))
    monkeypatch.setenv("ENVIRONMENT", "test")
    get_settings.cache_clear()
    yield path
    get_settings.cache_clear()


@pytest.fixture
def client(data_dir):
    from app import app

    with TestClient(app) as c:
        yield c
