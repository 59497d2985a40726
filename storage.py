"""
Flat-file JSON storage.

Each collection (products, orders, contacts, newsletter) is one JSON array
document. Writers hold the collection lock for the whole read-append-write.
"""

import copy
import json
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional

import structlog

logger = structlog.get_logger()

COLLECTIONS = ("products", "orders", "contacts", "newsletter")

SEED_PRODUCTS = [
    {
        "id": 1,
        "name": "Ethiopian Yirgacheffe",
        "price": 18.99,
        "image": "https://images.unsplash.com/photo-1587734195503-904fca47e0e9?ixlib=rb-4.0.3&auto=format&fit=crop&w=774&q=80",
        "description": "Bright, floral notes with a citrusy finish. A classic Ethiopian coffee.",
        "category": "single-origin",
        "stock": 50,
    },
    {
        "id": 2,
        "name": "Colombian Supremo",
        "price": 16.99,
        "image": "https://images.unsplash.com/photo-1511537190424-bbbab87ac5eb?ixlib=rb-4.0.3&auto=format&fit=crop&w=1170&q=80",
        "description": "Well-balanced with notes of caramel and nuts. A crowd-pleaser.",
        "category": "single-origin",
        "stock": 45,
    },
    {
        "id": 3,
        "name": "Sumatra Mandheling",
        "price": 19.99,
        "image": "https://images.unsplash.com/photo-1578662996442-48f60103fc96?ixlib=rb-4.0.3&auto=format&fit=crop&w=1170&q=80",
        "description": "Full-bodied with earthy tones and low acidity. A bold choice.",
        "category": "single-origin",
        "stock": 30,
    },
    {
        "id": 4,
        "name": "Guatemalan Antigua",
        "price": 17.99,
        "image": "https://images.unsplash.com/photo-1568649929103-28ffbefaca1e?ixlib=rb-4.0.3&auto=format&fit=crop&w=1170&q=80",
        "description": "Chocolatey with a spicy finish. A complex and satisfying brew.",
        "category": "single-origin",
        "stock": 40,
    },
]

DEFAULT_SEEDS = {"products": SEED_PRODUCTS}


class StorageError(Exception):
    """A collection could not be read or written."""


class StorageCorruptError(StorageError):
    """A collection document exists but is not a JSON array."""


class BaseStore:
    """Interface shared by the file-backed and in-memory stores."""

    def __init__(self):
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def load(self, name: str, strict: bool = False) -> List[dict]:
        raise NotImplementedError

    def save(self, name: str, records: List[dict]) -> bool:
        raise NotImplementedError

    def initialize(self, seeds: Optional[Dict[str, List[dict]]] = None) -> None:
        raise NotImplementedError

    @contextmanager
    def locked(self, name: str) -> Iterator[None]:
        with self._locks_guard:
            lock = self._locks.setdefault(name, threading.Lock())
        with lock:
            yield


class JsonFileStore(BaseStore):
    def __init__(self, data_dir):
        super().__init__()
        self.data_dir = Path(data_dir)

    def path_for(self, name: str) -> Path:
        return self.data_dir / f"{name}.json"

    def initialize(self, seeds=None):
        seeds = DEFAULT_SEEDS if seeds is None else seeds
        try:
            if not self.data_dir.exists():
                self.data_dir.mkdir(parents=True, exist_ok=True)
                logger.info("data_dir_created", path=str(self.data_dir))
        except OSError as e:
            logger.error("data_dir_create_failed", path=str(self.data_dir), error=str(e))
            return

        for name in COLLECTIONS:
            path = self.path_for(name)
            if path.exists():
                continue
            if self.save(name, copy.deepcopy(seeds.get(name, []))):
                logger.info("collection_initialized", collection=name)

    def load(self, name, strict=False):
        path = self.path_for(name)
        if not path.exists():
            logger.warning("collection_missing", collection=name, path=str(path))
            return []
        try:
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error("storage_read_failed", collection=name, path=str(path), error=str(e))
            if strict:
                raise StorageCorruptError(f"Could not read {path.name}: {e}") from e
            return []
        if not isinstance(data, list):
            logger.error("storage_not_a_list", collection=name, path=str(path), kind=type(data).__name__)
            if strict:
                raise StorageCorruptError(f"{path.name} does not contain a JSON array")
            return []
        return data

    def save(self, name, records):
        path = self.path_for(name)
        tmp = None
        try:
            fd, tmp = tempfile.mkstemp(dir=str(self.data_dir), prefix=f".{name}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(records, f, indent=2, ensure_ascii=False, allow_nan=False)
            os.replace(tmp, path)
            tmp = None
        except (OSError, TypeError, ValueError) as e:
            logger.error("storage_write_failed", collection=name, path=str(path), error=str(e))
            return False
        finally:
            if tmp and os.path.exists(tmp):
                os.remove(tmp)
        logger.debug("storage_written", collection=name, records=len(records))
        return True


class MemoryStore(BaseStore):
    """Dictionary-backed store, used by tests and one-off scripts."""

    def __init__(self, collections=None):
        super().__init__()
        self._data: Dict[str, str] = {}
        for name, records in (collections or {}).items():
            self._data[name] = json.dumps(records)

    def initialize(self, seeds=None):
        seeds = DEFAULT_SEEDS if seeds is None else seeds
        for name in COLLECTIONS:
            if name not in self._data:
                self._data[name] = json.dumps(seeds.get(name, []))

    def put_raw(self, name: str, text: str) -> None:
        self._data[name] = text

    def load(self, name, strict=False):
        if name not in self._data:
            logger.warning("collection_missing", collection=name)
            return []
        try:
            data = json.loads(self._data[name])
        except ValueError as e:
            logger.error("storage_read_failed", collection=name, error=str(e))
            if strict:
                raise StorageCorruptError(f"Could not read {name}: {e}") from e
            return []
        if not isinstance(data, list):
            logger.error("storage_not_a_list", collection=name, kind=type(data).__name__)
            if strict:
                raise StorageCorruptError(f"{name} does not contain a JSON array")
            return []
        return data

    def save(self, name, records):
        try:
            self._data[name] = json.dumps(records, allow_nan=False)
        except (TypeError, ValueError) as e:
            logger.error("storage_write_failed", collection=name, error=str(e))
            return False
        return True
