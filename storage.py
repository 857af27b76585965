import json
import logging
from datetime import date, datetime, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from models import StoredBlob

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    pass


def _json_default(value: object) -> str:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class BlobStore:
    """Key-value store of JSON documents, one row per key."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def _row(self, key: str) -> Optional[StoredBlob]:
        return self.session.scalar(select(StoredBlob).where(StoredBlob.key == key))

    def save(self, key: str, data: Any) -> None:
        try:
            serialized = json.dumps(data, default=_json_default)
        except (TypeError, ValueError) as exc:
            raise StorageError(f'Failed to save data to key "{key}"') from exc

        row = self._row(key)
        if row is None:
            self.session.add(StoredBlob(key=key, value=serialized, revision=1))
        else:
            row.value = serialized
            row.revision = row.revision + 1
        self.session.commit()

    def load(self, key: str, default: Any = None) -> Any:
        row = self._row(key)
        if row is None:
            return default
        try:
            return json.loads(row.value)
        except json.JSONDecodeError as exc:
            raise StorageError(f'Failed to parse data from key "{key}"') from exc

    def remove(self, key: str) -> None:
        row = self._row(key)
        if row is not None:
            self.session.delete(row)
            self.session.commit()

    def exists(self, key: str) -> bool:
        return self._row(key) is not None

    def revision(self, key: str) -> int:
        row = self._row(key)
        return row.revision if row else 0

    def size(self, key: str) -> int:
        """Rough byte size of the stored document (UTF-16, two bytes per char)."""
        row = self._row(key)
        if row is None:
            return 0
        return len(row.value) * 2

    def backup(self, key: str, *, now: Optional[datetime] = None) -> str:
        data = self.load(key)
        if data is None:
            raise StorageError(f'Cannot backup non-existent key "{key}"')
        now = now or datetime.now(timezone.utc)
        backup_key = f"{key}-backup-{int(now.timestamp() * 1000)}"
        self.save(backup_key, data)
        logger.info(f"storage_backup: key={key} backup_key={backup_key}")
        return backup_key
