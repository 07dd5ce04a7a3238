"""SQLite-backed document store with a pluggable write/read transform.

This is the collaborator the encryption layer plugs into. It knows nothing
about cryptography: ``register_transform`` installs one function applied to
every document on its way to storage and one applied to every record on its
way back. Records whose id starts with ``_local/`` live in a separate table,
are never transformed and carry no revision; they are meant for per-database
bookkeeping that replication must ignore.

Revisions follow the ``<n>-<hex>`` shape. Updating an existing document
requires its current revision.
"""

from __future__ import annotations

import asyncio
import json
import sqlite3
import uuid
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

from .connection import DatabaseConnection
from ..core.exceptions import DocumentConflictError, StorageError
from ..core.models import ID_FIELD, REV_FIELD, Found, GetResult, NotFound, is_local_id

Transform = Callable[[Any], Any]


def _new_rev(seq: int) -> str:
    return f"{seq}-{uuid.uuid4().hex}"


def _split_body(record: Mapping[str, Any]) -> str:
    body = {k: v for k, v in record.items() if k not in (ID_FIELD, REV_FIELD)}
    try:
        return json.dumps(body)
    except (TypeError, ValueError) as e:
        raise StorageError(f"document is not JSON serializable: {e}") from e


class DocumentStore:
    """Async document store over a DatabaseConnection."""

    def __init__(self, db: DatabaseConnection):
        self.db = db
        self.db.initialize()
        self._on_write: Optional[Transform] = None
        self._on_read: Optional[Transform] = None

    @classmethod
    def open(cls, db_path: str | Path) -> "DocumentStore":
        return cls(DatabaseConnection(db_path))

    def register_transform(self, on_write: Transform, on_read: Transform) -> None:
        """Install the write/read pair, replacing any previous one."""
        self._on_write = on_write
        self._on_read = on_read

    # ------------------------------------------------------------------
    # Application documents
    # ------------------------------------------------------------------

    async def get(self, doc_id: str) -> GetResult:
        if is_local_id(doc_id):
            return await self.get_local(doc_id)

        row = await asyncio.to_thread(
            self.db.fetch_one,
            "SELECT rev, body FROM documents WHERE doc_id = ?",
            (doc_id,),
        )
        if row is None:
            return NotFound(doc_id)

        record = json.loads(row["body"])
        record[ID_FIELD] = doc_id
        record[REV_FIELD] = row["rev"]
        if self._on_read is not None:
            record = self._on_read(record)
        return Found(record)

    async def put(self, doc: Mapping[str, Any]) -> Dict[str, str]:
        """Write a document and return its id and new revision."""
        if is_local_id(doc.get(ID_FIELD)):
            return await self.put_local(doc)

        # never hand the caller's own mapping to the transform
        record = dict(doc)
        if self._on_write is not None:
            record = self._on_write(record)

        doc_id = record.get(ID_FIELD) or str(uuid.uuid4())
        rev = record.get(REV_FIELD)
        body = _split_body(record)

        new_rev = await asyncio.to_thread(self._write, doc_id, rev, body)
        return {"id": doc_id, "rev": new_rev}

    def _write(self, doc_id: str, rev: Optional[str], body: str) -> str:
        try:
            with self.db.transaction() as cur:
                cur.execute("SELECT rev, seq FROM documents WHERE doc_id = ?", (doc_id,))
                row = cur.fetchone()
                if row is None:
                    if rev is not None:
                        raise DocumentConflictError(f"document {doc_id!r} does not exist at rev {rev!r}")
                    new_rev = _new_rev(1)
                    cur.execute(
                        "INSERT INTO documents (doc_id, rev, seq, body) VALUES (?, ?, ?, ?)",
                        (doc_id, new_rev, 1, body),
                    )
                else:
                    if rev != row["rev"]:
                        raise DocumentConflictError(f"document {doc_id!r} update conflict")
                    seq = row["seq"] + 1
                    new_rev = _new_rev(seq)
                    cur.execute(
                        "UPDATE documents SET rev = ?, seq = ?, body = ? WHERE doc_id = ?",
                        (new_rev, seq, body, doc_id),
                    )
            return new_rev
        except sqlite3.Error as e:
            raise StorageError(f"Failed to write document {doc_id!r}: {e}") from e

    # ------------------------------------------------------------------
    # Local (non-replicated) records
    # ------------------------------------------------------------------

    async def get_local(self, doc_id: str) -> GetResult:
        row = await asyncio.to_thread(
            self.db.fetch_one,
            "SELECT body FROM local_documents WHERE doc_id = ?",
            (doc_id,),
        )
        if row is None:
            return NotFound(doc_id)
        record = json.loads(row["body"])
        record[ID_FIELD] = doc_id
        return Found(record)

    async def put_local(self, doc: Mapping[str, Any]) -> Dict[str, str]:
        doc_id = doc.get(ID_FIELD)
        if not is_local_id(doc_id):
            raise StorageError(f"local record ids must start with '_local/', got {doc_id!r}")
        await asyncio.to_thread(
            self.db.execute,
            "INSERT OR REPLACE INTO local_documents (doc_id, body) VALUES (?, ?)",
            (doc_id, _split_body(doc)),
        )
        return {"id": doc_id}

    def close(self) -> None:
        self.db.close()
