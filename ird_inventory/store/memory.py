"""
IRD Inventory - In-Memory Store

Process-local DocumentStore used for development runs and the test suite.
Enforces the same unique indexes as the PostgreSQL schema and yields to the
event loop on every call, so interleavings between concurrent requests behave
like real I/O.

Transactions run one at a time and keep an undo log of their own writes; an
abort replays it in reverse, leaving other requests' writes alone. Build the
store with ``supports_transactions=False`` to model a standalone deployment.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
from uuid import uuid4

from .base import (
    UNIQUE_INDEXES,
    Collection,
    Document,
    DocumentStore,
    DuplicateKeyError,
    Filter,
    StoreSession,
    TransactionNotSupportedError,
    UniqueIndex,
)

logger = logging.getLogger(__name__)


def _matches(doc: Mapping[str, Any], filter: Filter) -> bool:
    return all(doc.get(key) == value for key, value in filter.items())


def _sort_key(fields: Sequence[str]):
    def key(doc: Mapping[str, Any]):
        return tuple("" if doc.get(f) is None else str(doc.get(f)) for f in fields)

    return key


class MemoryStore(DocumentStore):
    backend = "memory"

    def __init__(
        self,
        *,
        supports_transactions: bool = True,
        extra_indexes: Optional[Mapping[Collection, Iterable[UniqueIndex]]] = None,
    ):
        self.supports_transactions = supports_transactions
        self._data: Dict[Collection, Dict[str, Document]] = {c: {} for c in Collection}
        self._indexes: Dict[Collection, List[UniqueIndex]] = {
            c: list(UNIQUE_INDEXES.get(c, ())) for c in Collection
        }
        for collection, indexes in (extra_indexes or {}).items():
            self._indexes[collection].extend(indexes)
        self._tx_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[StoreSession]:
        await asyncio.sleep(0)
        if not self.supports_transactions:
            raise TransactionNotSupportedError()

        async with self._tx_lock:
            undo: List[Tuple[Collection, str, Optional[Document]]] = []
            session = StoreSession(store=self, handle=undo)
            try:
                yield session
            except BaseException:
                for collection, doc_id, previous in reversed(undo):
                    if previous is None:
                        self._data[collection].pop(doc_id, None)
                    else:
                        self._data[collection][doc_id] = previous
                logger.debug(f"Memory transaction aborted, {len(undo)} writes undone")
                raise

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _put(
        self,
        collection: Collection,
        doc_id: str,
        doc: Optional[Document],
        session: Optional[StoreSession],
    ) -> None:
        """Write (or, with None, remove) a document, logging the undo step."""
        if session is not None and session.store is self:
            session.handle.append((collection, doc_id, self._data[collection].get(doc_id)))
        if doc is None:
            self._data[collection].pop(doc_id, None)
        else:
            self._data[collection][doc_id] = doc

    def _check_unique(self, collection: Collection, candidate: Document) -> None:
        for index in self._indexes[collection]:
            key = index.key_for(candidate)
            if key is None:
                continue
            for other in self._data[collection].values():
                if other["id"] == candidate["id"]:
                    continue
                if index.key_for(other) == key:
                    raise DuplicateKeyError(
                        collection,
                        index.name,
                        {f: candidate.get(f) for f in index.fields},
                    )

    def _select(self, collection: Collection, filter: Optional[Filter]) -> List[Document]:
        return [d for d in self._data[collection].values() if _matches(d, filter or {})]

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def insert_one(
        self, collection: Collection, doc: Mapping[str, Any], *, session: Optional[StoreSession] = None
    ) -> Document:
        await asyncio.sleep(0)
        now = datetime.now(timezone.utc)
        stored = {**doc, "id": doc.get("id") or str(uuid4()), "created_at": now, "updated_at": now}
        self._check_unique(collection, stored)
        self._put(collection, stored["id"], stored, session)
        return dict(stored)

    async def find_one(
        self, collection: Collection, filter: Filter, *, session: Optional[StoreSession] = None
    ) -> Optional[Document]:
        await asyncio.sleep(0)
        found = self._select(collection, filter)
        return dict(found[0]) if found else None

    async def find_many(
        self,
        collection: Collection,
        filter: Optional[Filter] = None,
        *,
        sort: Optional[Sequence[str]] = None,
        session: Optional[StoreSession] = None,
    ) -> List[Document]:
        await asyncio.sleep(0)
        docs = [dict(d) for d in self._select(collection, filter)]
        if sort:
            docs.sort(key=_sort_key(sort))
        return docs

    async def find_one_and_update(
        self,
        collection: Collection,
        filter: Filter,
        patch: Mapping[str, Any],
        *,
        return_updated: bool = True,
        upsert: bool = False,
        session: Optional[StoreSession] = None,
    ) -> Optional[Document]:
        await asyncio.sleep(0)
        found = self._select(collection, filter)
        if not found:
            if not upsert:
                return None
            created = await self.insert_one(collection, {**filter, **patch}, session=session)
            return created if return_updated else None

        current = found[0]
        updated = {**current, **patch, "id": current["id"], "updated_at": datetime.now(timezone.utc)}
        self._check_unique(collection, updated)
        self._put(collection, current["id"], updated, session)
        return dict(updated) if return_updated else dict(current)

    async def delete_one(
        self, collection: Collection, id: str, *, session: Optional[StoreSession] = None
    ) -> Optional[Document]:
        await asyncio.sleep(0)
        existing = self._data[collection].get(id)
        if existing is not None:
            self._put(collection, id, None, session)
        return existing

    async def delete_many(
        self, collection: Collection, filter: Filter, *, session: Optional[StoreSession] = None
    ) -> int:
        await asyncio.sleep(0)
        doomed = [d["id"] for d in self._select(collection, filter)]
        for doc_id in doomed:
            self._put(collection, doc_id, None, session)
        return len(doomed)

    async def update_many(
        self,
        collection: Collection,
        filter: Filter,
        patch: Mapping[str, Any],
        *,
        session: Optional[StoreSession] = None,
    ) -> int:
        await asyncio.sleep(0)
        targets = self._select(collection, filter)
        now = datetime.now(timezone.utc)
        for current in targets:
            updated = {**current, **patch, "id": current["id"], "updated_at": now}
            self._check_unique(collection, updated)
            self._put(collection, current["id"], updated, session)
        return len(targets)

    async def count(
        self, collection: Collection, filter: Filter, *, session: Optional[StoreSession] = None
    ) -> int:
        await asyncio.sleep(0)
        return len(self._select(collection, filter))

    async def ping(self) -> bool:
        return True
