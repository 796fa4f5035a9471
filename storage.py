# Local persistent key-value storage.
# Same contract as the browser's localStorage: string keys, string values.

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Callable, Optional

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db import SessionLocal
from models import KeyValueEntry

logger = logging.getLogger("castle-exercise.storage")


class StorageError(RuntimeError):
    """Raised when the backing store cannot be read or written."""


class KeyValueStorage:
    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self._session_factory = session_factory

    def get_item(self, key: str) -> Optional[str]:
        try:
            with self._session_factory() as db:
                entry = db.get(KeyValueEntry, key)
                return entry.value if entry is not None else None
        except SQLAlchemyError as e:
            raise StorageError(f"failed to read {key!r}: {e}") from e

    def set_item(self, key: str, value: str) -> None:
        try:
            with self._session_factory() as db:
                db.merge(KeyValueEntry(key=key, value=value, updated_at=datetime.now(UTC)))
                db.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"failed to write {key!r}: {e}") from e
        logger.debug("Stored %s (%d chars)", key, len(value))

    def remove_item(self, key: str) -> None:
        try:
            with self._session_factory() as db:
                db.execute(delete(KeyValueEntry).where(KeyValueEntry.key == key))
                db.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"failed to remove {key!r}: {e}") from e
