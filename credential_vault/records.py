"""Credential records and the stores that persist them.

A record's ``password`` always holds the encrypted payload when it is
stored; decryption is the job of ``VaultService``.
"""
import uuid
import logging
import threading
from pathlib import Path
from typing import Union
from collections.abc import Iterator

import orjson
from pydantic import BaseModel, Field, ValidationError

from .exceptions import RecordNotFoundError
from .utils import atomic_write

logger = logging.getLogger("credential_vault.records")


def new_record_id() -> str:
    return uuid.uuid4().hex


class CredentialRecord(BaseModel):
    """One stored credential."""

    id: str = Field(default_factory=new_record_id)
    account: str
    username: str = ""
    password: str

    model_config = {"frozen": True}

    def __repr__(self) -> str:
        # never show the password field
        return (
            f"<CredentialRecord id={self.id} account={self.account!r} "
            f"username={self.username!r}>"
        )

    __str__ = __repr__


class RecordStore:
    """Keyed append/update/delete table of credential records.

    The table lives in ``_records`` and is guarded by a lock. Every change
    is built on a copy and passed to ``_save``; the copy replaces the table
    only once ``_save`` returns, so a failed write leaves it untouched.
    """

    def __init__(self) -> None:
        self._records: dict[str, CredentialRecord] = {}
        self._lock = threading.RLock()

    def _save(self, records: dict[str, CredentialRecord]) -> None:
        """Persist ``records``. No-op for in-memory stores."""

    def _commit(self, records: dict[str, CredentialRecord]) -> None:
        self._save(records)
        self._records = records

    def add(self, record: CredentialRecord) -> CredentialRecord:
        with self._lock:
            if record.id in self._records:
                raise ValueError(f"Record {record.id} already exists")
            records = dict(self._records)
            records[record.id] = record
            self._commit(records)
        logger.debug("Record added: id=%s account=%s", record.id, record.account)
        return record

    def update(self, record: CredentialRecord) -> CredentialRecord:
        with self._lock:
            if record.id not in self._records:
                raise RecordNotFoundError(f"Record {record.id} not found")
            records = dict(self._records)
            records[record.id] = record
            self._commit(records)
        logger.debug("Record updated: id=%s", record.id)
        return record

    def delete(self, record_id: str) -> None:
        with self._lock:
            if record_id not in self._records:
                raise RecordNotFoundError(f"Record {record_id} not found")
            records = dict(self._records)
            del records[record_id]
            self._commit(records)
        logger.debug("Record deleted: id=%s", record_id)

    def get(self, record_id: str) -> CredentialRecord:
        with self._lock:
            try:
                return self._records[record_id]
            except KeyError:
                raise RecordNotFoundError(f"Record {record_id} not found") from None

    def all(self) -> list[CredentialRecord]:
        """Return every record in insertion order."""
        with self._lock:
            return list(self._records.values())

    # --- Magic Methods ---

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[str]:
        with self._lock:
            return iter(list(self._records))

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records


class MemoryRecordStore(RecordStore):
    """Records kept in process memory only."""


class JsonRecordStore(RecordStore):
    """Records persisted as a JSON array in a single file.

    Args:
        path: Location of the records file; created on first write.
    """

    def __init__(self, path: Union[str, Path]):
        super().__init__()
        self.path = Path(path)
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            rows = orjson.loads(self.path.read_bytes())
            records = [CredentialRecord.model_validate(row) for row in rows]
        except (orjson.JSONDecodeError, ValidationError, TypeError) as err:
            raise ValueError(f"Records file {self.path} is corrupted: {err}") from err
        self._records = {record.id: record for record in records}
        logger.info("Loaded %d record(s) from %s", len(self._records), self.path)

    def _save(self, records: dict[str, CredentialRecord]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        rows = [record.model_dump() for record in records.values()]
        atomic_write(self.path, orjson.dumps(rows, option=orjson.OPT_INDENT_2))
