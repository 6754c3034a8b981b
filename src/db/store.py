# document store abstraction handed to every manager, plus the two backends
from __future__ import annotations

import asyncio
import copy
import json
import secrets
import sqlite3
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from core.errors import StoreError, StoreTimeoutError
from db.database import check_name, connect, create_collection
from utils.logger import get_logger

_logger = get_logger(__name__)


class DuplicateKeyError(StoreError):
    """A create-only save hit an existing `_id`."""

    status = 409
    message = "Duplicate key"


def new_id() -> str:
    """24 hex characters, the shape of a Mongo ObjectId."""
    return secrets.token_hex(12)


def _matches(doc: dict, query: Optional[dict]) -> bool:
    if not query:
        return True
    return all(doc.get(k) == v for k, v in query.items())


class DocumentStore(ABC):
    """
    Minimal document store: find_one, save, delete_by_id, find_all.

    Documents are JSON-compatible dicts keyed by `_id`. Every call is bounded by
    `timeout` seconds and surfaces as StoreTimeoutError when it runs over; any other
    backend failure surfaces as StoreError.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    async def _call(self, op: str, collection: str, coro):
        try:
            return await asyncio.wait_for(coro, self.timeout)
        except asyncio.TimeoutError as exc:
            _logger.error(f"{op} on '{collection}' timed out after {self.timeout}s")
            raise StoreTimeoutError() from exc
        except StoreError:
            raise
        except Exception as exc:
            _logger.exception(f"{op} on '{collection}' failed")
            raise StoreError() from exc

    async def find_one(self, collection: str, query: dict) -> Optional[dict]:
        """First document whose fields equal every item of `query`, or None."""
        return await self._call("find_one", collection, self._find_one(collection, query))

    async def save(self, collection: str, doc: dict, *, create: bool = False) -> dict:
        """Insert or replace `doc` as a single write and return it with its `_id`.

        With create=True an existing `_id` raises DuplicateKeyError instead of replacing.
        """
        doc = dict(doc)
        if not doc.get("_id"):
            doc["_id"] = new_id()
        await self._call("save", collection, self._save(collection, doc, create))
        return doc

    async def delete_by_id(self, collection: str, doc_id: str) -> None:
        """Delete by `_id`; a missing id is not an error."""
        await self._call("delete_by_id", collection, self._delete_by_id(collection, doc_id))

    async def find_all(self, collection: str, query: Optional[dict] = None) -> List[dict]:
        """All matching documents in insertion order."""
        return await self._call("find_all", collection, self._find_all(collection, query))

    @abstractmethod
    async def _find_one(self, collection: str, query: dict) -> Optional[dict]: ...

    @abstractmethod
    async def _save(self, collection: str, doc: dict, create: bool) -> None: ...

    @abstractmethod
    async def _delete_by_id(self, collection: str, doc_id: str) -> None: ...

    @abstractmethod
    async def _find_all(self, collection: str, query: Optional[dict]) -> List[dict]: ...


class MemoryStore(DocumentStore):
    """Dict-backed store. Hands out copies so callers never alias stored state."""

    def __init__(self, timeout: Optional[float] = None):
        super().__init__(timeout)
        self._collections: Dict[str, Dict[str, dict]] = {}

    async def _find_one(self, collection, query):
        for doc in self._collections.get(collection, {}).values():
            if _matches(doc, query):
                return copy.deepcopy(doc)
        return None

    async def _save(self, collection, doc, create):
        docs = self._collections.setdefault(collection, {})
        if create and doc["_id"] in docs:
            raise DuplicateKeyError()
        docs[doc["_id"]] = copy.deepcopy(doc)

    async def _delete_by_id(self, collection, doc_id):
        self._collections.get(collection, {}).pop(doc_id, None)

    async def _find_all(self, collection, query):
        return [
            copy.deepcopy(doc)
            for doc in self._collections.get(collection, {}).values()
            if _matches(doc, query)
        ]


class SqliteStore(DocumentStore):
    """aiosqlite-backed store, one JSON table per collection created on first use."""

    def __init__(self, db_path: str, timeout: Optional[float] = None):
        super().__init__(timeout)
        self.db_path = db_path
        self._ready: set[str] = set()
        self._init_lock = asyncio.Lock()

    async def _ensure(self, conn, collection: str) -> None:
        if collection in self._ready:
            return
        async with self._init_lock:
            if collection not in self._ready:
                await create_collection(conn, collection)
                self._ready.add(collection)

    @staticmethod
    def _where(query: Optional[dict]):
        if not query:
            return "", ()
        clauses = []
        params = []
        for key, value in query.items():
            clauses.append("json_extract(body, ?) = ?")
            params.extend((f"$.{check_name(key)}", value))
        return "WHERE " + " AND ".join(clauses), tuple(params)

    async def _find_one(self, collection, query):
        where, params = self._where(query)
        async with connect(self.db_path) as conn:
            await self._ensure(conn, collection)
            cur = await conn.execute(
                f'SELECT body FROM "{collection}" {where} ORDER BY rowid LIMIT 1;',
                params,
            )
            row = await cur.fetchone()
            await cur.close()
        return json.loads(row[0]) if row else None

    async def _save(self, collection, doc, create):
        body = json.dumps(doc)
        async with connect(self.db_path) as conn:
            await self._ensure(conn, collection)
            if create:
                try:
                    await conn.execute(
                        f'INSERT INTO "{collection}"(id, body) VALUES (?, ?);',
                        (doc["_id"], body),
                    )
                except sqlite3.IntegrityError as exc:
                    raise DuplicateKeyError() from exc
            else:
                # upsert keeps the original rowid, so insertion order survives updates
                await conn.execute(
                    f"""
                    INSERT INTO "{collection}"(id, body) VALUES (?, ?)
                    ON CONFLICT(id) DO UPDATE SET body = excluded.body;
                    """,
                    (doc["_id"], body),
                )
            await conn.commit()

    async def _delete_by_id(self, collection, doc_id):
        async with connect(self.db_path) as conn:
            await self._ensure(conn, collection)
            await conn.execute(f'DELETE FROM "{collection}" WHERE id = ?;', (doc_id,))
            await conn.commit()

    async def _find_all(self, collection, query):
        where, params = self._where(query)
        async with connect(self.db_path) as conn:
            await self._ensure(conn, collection)
            cur = await conn.execute(
                f'SELECT body FROM "{collection}" {where} ORDER BY rowid;',
                params,
            )
            rows = await cur.fetchall()
            await cur.close()
        return [json.loads(row[0]) for row in rows]
