"""
Namespaced string key-value stores backing the persistent key cache tier.

Two backends share one small interface (get / put / delete / keys / clear):

- ``SqlKeyValueStore`` persists records in the ``kv_records`` table.
- ``MemoryKeyValueStore`` keeps them in a dict for the life of the process.
"""

import logging
import threading
from datetime import datetime
from typing import Optional, Protocol

from sqlalchemy.orm import sessionmaker

from .models import KeyValueRecord

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    namespace: str

    def get(self, key: str) -> Optional[str]: ...

    def put(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self) -> list[str]: ...

    def clear(self) -> None: ...


class SqlKeyValueStore:
    """Key-value records in one namespace of the ``kv_records`` table."""

    def __init__(self, session_factory: sessionmaker, namespace: str):
        self._session_factory = session_factory
        self.namespace = namespace

    def get(self, key: str) -> Optional[str]:
        with self._session_factory() as db:
            record = db.get(KeyValueRecord, (self.namespace, key))
            return record.value if record else None

    def put(self, key: str, value: str) -> None:
        with self._session_factory() as db:
            record = db.get(KeyValueRecord, (self.namespace, key))
            if record is None:
                db.add(KeyValueRecord(namespace=self.namespace, key=key, value=value))
            else:
                record.value = value
                record.updated_at = datetime.utcnow()
            db.commit()

    def delete(self, key: str) -> None:
        with self._session_factory() as db:
            db.query(KeyValueRecord).filter(
                KeyValueRecord.namespace == self.namespace,
                KeyValueRecord.key == key,
            ).delete()
            db.commit()

    def keys(self) -> list[str]:
        with self._session_factory() as db:
            rows = db.query(KeyValueRecord.key).filter(
                KeyValueRecord.namespace == self.namespace
            ).all()
            return [row[0] for row in rows]

    def clear(self) -> None:
        with self._session_factory() as db:
            deleted = db.query(KeyValueRecord).filter(
                KeyValueRecord.namespace == self.namespace
            ).delete()
            db.commit()
        logger.info(f"Cleared {deleted} records from namespace '{self.namespace}'")


class MemoryKeyValueStore:
    """Process-local store, useful when no database is configured."""

    def __init__(self, namespace: str = "default"):
        self.namespace = namespace
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def put(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
