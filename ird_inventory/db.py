# ird_inventory/db.py
"""
IRD Inventory - Store Lifecycle

Builds the configured DocumentStore at startup and hands it to request
handlers. The postgres backend opens a psycopg_pool with:
- Exponential backoff retry (5 attempts, max 30s total)
- Structured logging (DSN host/port/dbname/user, no password)
- Schema bootstrap (CREATE TABLE / UNIQUE INDEX IF NOT EXISTS)
- Health state tracking for readiness probes

A failed init never crashes the process: /readyz reports 503 and store-backed
endpoints answer 503 until a restart succeeds.
"""

from __future__ import annotations

import asyncio
import random
import time
from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qs, urlparse

from loguru import logger
from psycopg_pool import AsyncConnectionPool

from . import __version__
from .core.config import Settings, get_settings
from .core.errors import StoreUnavailableError
from .store import DocumentStore, MemoryStore, PostgresStore

# ---------------------------------------------------------------------------
# Store Health State
# ---------------------------------------------------------------------------


@dataclass
class StoreHealthState:
    """Tracks store initialization state for readiness probes."""

    backend: str = "none"
    initialized: bool = False
    healthy: bool = False
    last_error: str | None = None
    init_attempts: int = 0
    init_duration_ms: float | None = None


_store_health = StoreHealthState()
_store: Optional[DocumentStore] = None

MAX_RETRY_ATTEMPTS = 5
MAX_TOTAL_WAIT_SECONDS = 30.0
BASE_DELAY_SECONDS = 1.0
READINESS_CHECK_TIMEOUT = 2.0


def get_store_health() -> StoreHealthState:
    return _store_health


def _parse_dsn_for_logging(dsn: str) -> dict[str, str | None]:
    """Loggable DSN components (no password)."""
    try:
        parsed = urlparse(dsn)
        query_params = parse_qs(parsed.query)
        return {
            "host": parsed.hostname,
            "port": str(parsed.port) if parsed.port else "5432",
            "dbname": parsed.path.lstrip("/") if parsed.path else None,
            "user": parsed.username,
            "sslmode": query_params.get("sslmode", ["not_set"])[0],
        }
    except ValueError as e:
        return {"error": str(e)}


async def _open_postgres(settings: Settings) -> Optional[DocumentStore]:
    dsn = settings.database_url
    if not dsn:
        logger.warning("DATABASE_URL is not set; skipping store init")
        _store_health.last_error = "DATABASE_URL not configured"
        return None

    dsn_info = _parse_dsn_for_logging(dsn)
    logger.info(
        "Database connection parameters",
        host=dsn_info.get("host"),
        port=dsn_info.get("port"),
        dbname=dsn_info.get("dbname"),
        user=dsn_info.get("user"),
        sslmode=dsn_info.get("sslmode"),
    )
    app_name = "ird_inventory_v" + __version__.replace(".", "_").replace("-", "_")

    start_time = time.monotonic()
    last_error: Exception | None = None

    for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
        _store_health.init_attempts = attempt
        elapsed = time.monotonic() - start_time
        if elapsed >= MAX_TOTAL_WAIT_SECONDS:
            logger.error(f"Store init: time budget exhausted ({elapsed:.1f}s)")
            break

        pool: Optional[AsyncConnectionPool] = None
        try:
            logger.info(f"Store init: attempt {attempt}/{MAX_RETRY_ATTEMPTS}")
            pool = AsyncConnectionPool(
                dsn,
                min_size=settings.DB_POOL_MIN_SIZE,
                max_size=settings.DB_POOL_MAX_SIZE,
                timeout=settings.DB_CONNECT_TIMEOUT,
                kwargs={"application_name": app_name},
                open=False,
            )
            await pool.open(wait=True, timeout=settings.DB_CONNECT_TIMEOUT)

            store = PostgresStore(pool)
            await store.ensure_schema()
            await store.ping()

            _store_health.init_duration_ms = (time.monotonic() - start_time) * 1000
            logger.info(
                f"Postgres store ready (attempt {attempt}, {_store_health.init_duration_ms:.0f}ms total)"
            )
            return store

        except Exception as e:
            last_error = e
            _store_health.last_error = f"{type(e).__name__}: {str(e)[:200]}"
            logger.warning(f"Store init attempt {attempt} failed: {type(e).__name__}: {e}")
            if pool is not None:
                await pool.close()

            if attempt < MAX_RETRY_ATTEMPTS:
                delay = BASE_DELAY_SECONDS * (2 ** (attempt - 1))
                jitter = random.uniform(0, delay * 0.3)
                actual_delay = min(delay + jitter, MAX_TOTAL_WAIT_SECONDS - elapsed)
                if actual_delay > 0:
                    logger.info(f"Store init: waiting {actual_delay:.1f}s before retry")
                    await asyncio.sleep(actual_delay)

    logger.error(
        f"Failed to initialize postgres store after {_store_health.init_attempts} attempts: "
        f"{last_error} - app will start but /readyz will return 503"
    )
    return None


async def init_store(settings: Settings | None = None) -> Optional[DocumentStore]:
    """
    Build the configured store. Called from the FastAPI lifespan.

    Never raises on connection failure; the health state records the error.
    """
    global _store

    if _store is not None:
        return _store

    settings = settings or get_settings()
    _store_health.backend = settings.STORE_BACKEND

    if settings.STORE_BACKEND == "memory":
        _store = MemoryStore(supports_transactions=settings.MEMORY_STORE_TRANSACTIONS)
        logger.info(
            f"Using in-memory store (transactions: {settings.MEMORY_STORE_TRANSACTIONS})"
        )
    else:
        _store = await _open_postgres(settings)

    _store_health.initialized = _store is not None
    _store_health.healthy = _store is not None
    if _store is not None:
        _store_health.last_error = None
    return _store


async def check_store_ready(timeout: float = READINESS_CHECK_TIMEOUT) -> tuple[bool, str]:
    """Ping the store with a timeout. Returns (is_ready, status_message)."""
    store = _store
    if store is None:
        return False, _store_health.last_error or "Store not initialized"

    start = time.monotonic()
    try:
        await asyncio.wait_for(store.ping(), timeout=timeout)
    except asyncio.TimeoutError:
        _store_health.healthy = False
        _store_health.last_error = f"Ping timeout ({timeout}s)"
        return False, f"timeout ({timeout}s)"
    except Exception as e:
        _store_health.healthy = False
        _store_health.last_error = f"{type(e).__name__}: {str(e)[:100]}"
        return False, f"error: {type(e).__name__}"

    _store_health.healthy = True
    _store_health.last_error = None
    return True, f"ok ({(time.monotonic() - start) * 1000:.0f}ms)"


async def close_store() -> None:
    """Called from FastAPI shutdown."""
    global _store
    if _store is not None:
        logger.info(f"Closing {_store.backend} store")
        await _store.close()
        _store = None
        _store_health.initialized = False
        _store_health.healthy = False


def get_store() -> DocumentStore:
    """FastAPI dependency: the process-wide store, or 503 when unavailable."""
    if _store is None:
        raise StoreUnavailableError(_store_health.last_error or "Storage backend unavailable")
    return _store
