"""
Local storage adapters: key/value cache and invitation asset files
"""

from __future__ import annotations

import os
import uuid
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError

from app.core.db import Base
from app.core.errors import PersistenceFailure
from app.models import CacheEntry


class KeyValueStore(Protocol):
    def init(self) -> None: ...
    def get(self, key: str) -> Optional[str]: ...
    def set(self, key: str, value: str) -> None: ...
    def remove(self, key: str) -> None: ...


class MemoryKeyValueStore:
    """Dict-backed store. ``init`` binds a fresh map unless one was given."""

    def __init__(self, backing: Optional[Dict[str, str]] = None):
        self._backing = backing
        self._data: Optional[Dict[str, str]] = None

    def init(self) -> None:
        self._data = self._backing if self._backing is not None else {}

    def _map(self) -> Dict[str, str]:
        if self._data is None:
            raise RuntimeError("Store used before init()")
        return self._data

    def get(self, key: str) -> Optional[str]:
        return self._map().get(key)

    def set(self, key: str, value: str) -> None:
        self._map()[key] = value

    def remove(self, key: str) -> None:
        self._map().pop(key, None)


class SqlKeyValueStore:
    """Key/value store kept in the ``cache_entries`` table"""

    def __init__(self, engine, session_factory):
        self.engine = engine
        self.session_factory = session_factory

    def init(self) -> None:
        Base.metadata.create_all(bind=self.engine, tables=[CacheEntry.__table__])

    def get(self, key: str) -> Optional[str]:
        db = self.session_factory()
        try:
            entry = db.query(CacheEntry).filter(CacheEntry.key == key).first()
            return entry.value if entry else None
        finally:
            db.close()

    def set(self, key: str, value: str) -> None:
        db = self.session_factory()
        try:
            entry = db.query(CacheEntry).filter(CacheEntry.key == key).first()
            if entry:
                entry.value = value
                entry.updated_at = datetime.utcnow()
            else:
                db.add(CacheEntry(key=key, value=value))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceFailure(f"Could not write cache key {key}: {e}") from e
        finally:
            db.close()

    def remove(self, key: str) -> None:
        db = self.session_factory()
        try:
            db.query(CacheEntry).filter(CacheEntry.key == key).delete()
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceFailure(f"Could not remove cache key {key}: {e}") from e
        finally:
            db.close()


class LocalAssetStorage:
    """Stores invitation payloads on disk and hands back relative references"""

    def __init__(self, root: str):
        self.root = Path(root)

    def save(self, payload: bytes, mime_type: Optional[str], file_name: str) -> str:
        suffix = Path(file_name).suffix.lower()
        reference = f"invitations/{uuid.uuid4().hex}{suffix}"
        path = self.root / reference
        try:
            os.makedirs(path.parent, exist_ok=True)
            with open(path, 'wb') as f:
                f.write(payload)
        except OSError as e:
            raise PersistenceFailure(f"Could not store invitation {file_name}: {e}") from e
        return reference

    def _resolve(self, reference: str) -> Path:
        # References restored from the cache or remote must stay under root.
        path = (self.root / reference).resolve()
        if self.root.resolve() not in path.parents:
            raise FileNotFoundError(reference)
        return path

    def read(self, reference: str) -> bytes:
        with open(self._resolve(reference), 'rb') as f:
            return f.read()

    def exists(self, reference: str) -> bool:
        try:
            return self._resolve(reference).is_file()
        except FileNotFoundError:
            return False

    def delete(self, reference: str) -> None:
        path = self._resolve(reference)
        if path.exists():
            path.unlink()
