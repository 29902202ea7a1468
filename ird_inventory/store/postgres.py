"""
IRD Inventory - PostgreSQL Store

DocumentStore backed by psycopg3 + psycopg_pool. One table per collection,
unique indexes named after the UniqueIndex specs so a UniqueViolation can be
mapped back to the offending fields.

Inside a session every statement runs under its own savepoint: a duplicate-key
error that the caller catches and recovers from leaves the surrounding
transaction usable.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncIterator, Dict, List, Mapping, Optional, Sequence, Tuple
from uuid import UUID

import psycopg
from psycopg import sql
from psycopg.rows import dict_row

from ..core.models import (
    CONTACT_FIELDS,
    EQUIPMENT_FIELDS,
    EQUIPMENT_TYPE_FIELDS,
    IRD_FIELDS,
    IRD_IMPORT_BATCH_FIELD,
)
from .base import (
    Collection,
    Document,
    DocumentStore,
    DuplicateKeyError,
    Filter,
    StoreError,
    StoreSession,
    find_index,
)

if TYPE_CHECKING:
    from psycopg_pool import AsyncConnectionPool

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

COLUMNS: Dict[Collection, Tuple[str, ...]] = {
    Collection.EQUIPMENT_TYPE: EQUIPMENT_TYPE_FIELDS,
    Collection.IRD: IRD_FIELDS + (IRD_IMPORT_BATCH_FIELD,),
    Collection.EQUIPMENT: EQUIPMENT_FIELDS,
    Collection.CONTACT: CONTACT_FIELDS,
}

SYSTEM_COLUMNS = ("id", "created_at", "updated_at")

UUID_COLUMNS = frozenset({"id", "equipment_type_ref", "satellite_ref", "ird_ref"})

_IRD_TEXT_COLUMNS = ",\n".join(f"    {c} text NOT NULL DEFAULT ''" for c in IRD_FIELDS[2:])

SCHEMA_STATEMENTS: Tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS equipment_types (
        id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
        name text NOT NULL,
        name_lower text NOT NULL,
        created_at timestamptz NOT NULL DEFAULT now(),
        updated_at timestamptz NOT NULL DEFAULT now()
    )
    """,
    "CREATE UNIQUE INDEX IF NOT EXISTS equipment_types_name_lower_key "
    "ON equipment_types (name_lower)",
    f"""
    CREATE TABLE IF NOT EXISTS irds (
        id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
        name text NOT NULL,
        admin_ip text NOT NULL,
    {_IRD_TEXT_COLUMNS},
        import_batch text,
        created_at timestamptz NOT NULL DEFAULT now(),
        updated_at timestamptz NOT NULL DEFAULT now()
    )
    """,
    "CREATE UNIQUE INDEX IF NOT EXISTS irds_name_admin_ip_key "
    "ON irds (lower(name), lower(admin_ip)) WHERE import_batch IS NULL",
    """
    CREATE TABLE IF NOT EXISTS equipment (
        id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
        name text NOT NULL,
        brand text NOT NULL,
        model text NOT NULL,
        equipment_type_ref uuid NOT NULL,
        management_ip text,
        satellite_ref uuid,
        ird_ref uuid,
        created_at timestamptz NOT NULL DEFAULT now(),
        updated_at timestamptz NOT NULL DEFAULT now()
    )
    """,
    "CREATE UNIQUE INDEX IF NOT EXISTS equipment_ird_ref_key "
    "ON equipment (ird_ref) WHERE ird_ref IS NOT NULL",
    """
    CREATE TABLE IF NOT EXISTS contacts (
        id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
        name text NOT NULL,
        email text,
        phone text,
        created_at timestamptz NOT NULL DEFAULT now(),
        updated_at timestamptz NOT NULL DEFAULT now()
    )
    """,
    "CREATE UNIQUE INDEX IF NOT EXISTS contacts_name_key ON contacts (name)",
    "CREATE UNIQUE INDEX IF NOT EXISTS contacts_email_key ON contacts (email)",
    "CREATE UNIQUE INDEX IF NOT EXISTS contacts_phone_key ON contacts (phone)",
)


class _NoMatch(Exception):
    """Filter value can never match (e.g. malformed uuid)."""


def duplicate_key_error(
    collection: Collection,
    constraint_name: Optional[str],
    values: Mapping[str, Any],
) -> DuplicateKeyError:
    """Build a DuplicateKeyError from a Postgres unique constraint name."""
    index = find_index(collection, constraint_name or "")
    if index is None:
        return DuplicateKeyError(collection, constraint_name or "unknown", {})
    return DuplicateKeyError(collection, index.name, {f: values.get(f) for f in index.fields})


def _to_doc(row: Mapping[str, Any]) -> Document:
    return {k: (str(v) if isinstance(v, UUID) else v) for k, v in row.items()}


class PostgresStore(DocumentStore):
    backend = "postgres"

    def __init__(self, pool: "AsyncConnectionPool"):
        self.pool = pool

    # ------------------------------------------------------------------
    # Schema / lifecycle
    # ------------------------------------------------------------------

    async def ensure_schema(self) -> None:
        async with self.pool.connection() as conn:
            for statement in SCHEMA_STATEMENTS:
                await conn.execute(statement)
        logger.info("Inventory schema ensured", extra={"count": len(SCHEMA_STATEMENTS)})

    async def ping(self) -> bool:
        async with self.pool.connection() as conn:
            await conn.execute("SELECT 1")
        return True

    async def close(self) -> None:
        await self.pool.close()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[StoreSession]:
        async with self.pool.connection() as conn:
            async with conn.transaction():
                yield StoreSession(store=self, handle=conn)

    # ------------------------------------------------------------------
    # SQL helpers
    # ------------------------------------------------------------------

    def _column(self, collection: Collection, name: str) -> sql.Identifier:
        if name not in COLUMNS[collection] and name not in SYSTEM_COLUMNS:
            raise StoreError(f"Unknown field {name!r} for {collection.value}")
        return sql.Identifier(name)

    @staticmethod
    def _param(name: str, value: Any) -> Any:
        if value is None or name not in UUID_COLUMNS or isinstance(value, UUID):
            return value
        try:
            return UUID(str(value))
        except ValueError:
            raise _NoMatch(name)

    def _where(self, collection: Collection, filter: Optional[Filter]) -> Tuple[sql.Composable, List[Any]]:
        if not filter:
            return sql.SQL("TRUE"), []
        parts: List[sql.Composable] = []
        params: List[Any] = []
        for name, value in filter.items():
            column = self._column(collection, name)
            if value is None:
                parts.append(sql.SQL("{} IS NULL").format(column))
            else:
                parts.append(sql.SQL("{} = %s").format(column))
                params.append(self._param(name, value))
        return sql.SQL(" AND ").join(parts), params

    def _assignments(
        self, collection: Collection, patch: Mapping[str, Any]
    ) -> Tuple[sql.Composable, List[Any]]:
        parts: List[sql.Composable] = []
        params: List[Any] = []
        for name, value in patch.items():
            if name in SYSTEM_COLUMNS:
                continue
            parts.append(sql.SQL("{} = %s").format(self._column(collection, name)))
            try:
                params.append(self._param(name, value))
            except _NoMatch:
                raise StoreError(f"Invalid reference for {name}: {value!r}")
        parts.append(sql.SQL("updated_at = now()"))
        return sql.SQL(", ").join(parts), params

    @asynccontextmanager
    async def _cursor(self, session: Optional[StoreSession]) -> AsyncIterator[psycopg.AsyncCursor]:
        if session is not None:
            conn = session.handle
            async with conn.transaction():
                async with conn.cursor(row_factory=dict_row) as cur:
                    yield cur
        else:
            async with self.pool.connection() as conn:
                async with conn.cursor(row_factory=dict_row) as cur:
                    yield cur

    async def _execute(
        self,
        collection: Collection,
        query: sql.Composable,
        params: Sequence[Any],
        *,
        session: Optional[StoreSession],
        values: Optional[Mapping[str, Any]] = None,
    ) -> Tuple[List[Document], int]:
        try:
            async with self._cursor(session) as cur:
                await cur.execute(query, params)
                rows = await cur.fetchall() if cur.description else []
                return [_to_doc(r) for r in rows], cur.rowcount
        except psycopg.errors.UniqueViolation as exc:
            raise duplicate_key_error(collection, exc.diag.constraint_name, values or {}) from exc
        except psycopg.Error as exc:
            raise StoreError(f"{collection.value}: {exc}") from exc

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def insert_one(
        self, collection: Collection, doc: Mapping[str, Any], *, session: Optional[StoreSession] = None
    ) -> Document:
        names = [n for n in doc if n in COLUMNS[collection] or (n == "id" and doc.get("id"))]
        try:
            params = [self._param(n, doc[n]) for n in names]
        except _NoMatch as exc:
            raise StoreError(f"Invalid reference for {exc}: {doc.get(str(exc))!r}")
        query = sql.SQL("INSERT INTO {table} ({cols}) VALUES ({vals}) RETURNING *").format(
            table=sql.Identifier(collection.value),
            cols=sql.SQL(", ").join(self._column(collection, n) for n in names),
            vals=sql.SQL(", ").join(sql.Placeholder() * len(names)),
        )
        rows, _ = await self._execute(collection, query, params, session=session, values=doc)
        if not rows:
            raise StoreError(f"{collection.value}: insert returned no row")
        return rows[0]

    async def find_one(
        self, collection: Collection, filter: Filter, *, session: Optional[StoreSession] = None
    ) -> Optional[Document]:
        try:
            where, params = self._where(collection, filter)
        except _NoMatch:
            return None
        query = sql.SQL("SELECT * FROM {table} WHERE {where} LIMIT 1").format(
            table=sql.Identifier(collection.value), where=where
        )
        rows, _ = await self._execute(collection, query, params, session=session)
        return rows[0] if rows else None

    async def find_many(
        self,
        collection: Collection,
        filter: Optional[Filter] = None,
        *,
        sort: Optional[Sequence[str]] = None,
        session: Optional[StoreSession] = None,
    ) -> List[Document]:
        try:
            where, params = self._where(collection, filter)
        except _NoMatch:
            return []
        order = sql.SQL(", ").join(self._column(collection, f) for f in (sort or ("created_at",)))
        query = sql.SQL("SELECT * FROM {table} WHERE {where} ORDER BY {order}").format(
            table=sql.Identifier(collection.value), where=where, order=order
        )
        rows, _ = await self._execute(collection, query, params, session=session)
        return rows

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
        current = await self.find_one(collection, filter, session=session)
        if current is None:
            if not upsert:
                return None
            created = await self.insert_one(collection, {**filter, **patch}, session=session)
            return created if return_updated else None

        assignments, params = self._assignments(collection, patch)
        query = sql.SQL("UPDATE {table} SET {assignments} WHERE id = %s RETURNING *").format(
            table=sql.Identifier(collection.value), assignments=assignments
        )
        rows, _ = await self._execute(
            collection,
            query,
            [*params, UUID(current["id"])],
            session=session,
            values={**current, **patch},
        )
        if not rows:
            return None
        return rows[0] if return_updated else current

    async def delete_one(
        self, collection: Collection, id: str, *, session: Optional[StoreSession] = None
    ) -> Optional[Document]:
        try:
            key = self._param("id", id)
        except _NoMatch:
            return None
        query = sql.SQL("DELETE FROM {table} WHERE id = %s RETURNING *").format(
            table=sql.Identifier(collection.value)
        )
        rows, _ = await self._execute(collection, query, [key], session=session)
        return rows[0] if rows else None

    async def delete_many(
        self, collection: Collection, filter: Filter, *, session: Optional[StoreSession] = None
    ) -> int:
        try:
            where, params = self._where(collection, filter)
        except _NoMatch:
            return 0
        query = sql.SQL("DELETE FROM {table} WHERE {where}").format(
            table=sql.Identifier(collection.value), where=where
        )
        _, count = await self._execute(collection, query, params, session=session)
        return count

    async def update_many(
        self,
        collection: Collection,
        filter: Filter,
        patch: Mapping[str, Any],
        *,
        session: Optional[StoreSession] = None,
    ) -> int:
        try:
            where, where_params = self._where(collection, filter)
        except _NoMatch:
            return 0
        assignments, set_params = self._assignments(collection, patch)
        query = sql.SQL("UPDATE {table} SET {assignments} WHERE {where}").format(
            table=sql.Identifier(collection.value), assignments=assignments, where=where
        )
        _, count = await self._execute(
            collection, query, [*set_params, *where_params], session=session, values=patch
        )
        return count

    async def count(
        self, collection: Collection, filter: Filter, *, session: Optional[StoreSession] = None
    ) -> int:
        try:
            where, params = self._where(collection, filter)
        except _NoMatch:
            return 0
        query = sql.SQL("SELECT count(*) AS n FROM {table} WHERE {where}").format(
            table=sql.Identifier(collection.value), where=where
        )
        rows, _ = await self._execute(collection, query, params, session=session)
        return int(rows[0]["n"]) if rows else 0
