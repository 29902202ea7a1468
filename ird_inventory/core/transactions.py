"""
IRD Inventory - Optional Transactions

Runs a unit of work inside a multi-document transaction when the deployment
supports one, and re-runs the same work as plain sequential writes when it
does not (standalone, non-replicated deployments).

The work receives an ExecutionContext; every store call inside it passes
``ctx.session`` so the writes join the transaction when there is one.

Usage:
    from ird_inventory.core.transactions import ExecutionContext, OptionalTransactionRunner

    runner = OptionalTransactionRunner(store)

    async def work(ctx: ExecutionContext) -> dict:
        ird = await store.insert_one(Collection.IRD, doc, session=ctx.session)
        ...
        return ird

    ird = await runner.run(work, operation="ird.create")
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from ..store.base import DocumentStore, StoreSession, TransactionNotSupportedError
from .logging import LogContext, get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# Lowercased fragments of the errors raised by deployments without
# multi-document transaction support.
TRANSACTION_UNSUPPORTED_MARKERS = (
    "transaction numbers are only allowed on a replica set member or mongos",
    "transactions are not supported",
    "does not support transactions",
    "illegaloperation: transaction",
)


def is_transaction_unsupported(exc: BaseException) -> bool:
    """True when ``exc`` says the deployment cannot run transactions."""
    if isinstance(exc, TransactionNotSupportedError):
        return True
    message = str(exc).lower()
    return any(marker in message for marker in TRANSACTION_UNSUPPORTED_MARKERS)


@dataclass(frozen=True)
class ExecutionContext:
    """Transaction handle (or none) threaded through every write."""

    session: Optional[StoreSession] = None

    @property
    def in_transaction(self) -> bool:
        return self.session is not None


NO_TRANSACTION = ExecutionContext()


class OptionalTransactionRunner:
    def __init__(self, store: DocumentStore):
        self.store = store

    async def run(
        self,
        work: Callable[[ExecutionContext], Awaitable[T]],
        *,
        operation: str,
    ) -> T:
        """
        Run ``work`` in a transaction, falling back to no transaction.

        Only an "unsupported transaction" failure triggers the fallback; any
        other exception propagates unchanged (after the transaction aborted).
        """
        with LogContext(operation=operation):
            try:
                async with self.store.transaction() as session:
                    return await work(ExecutionContext(session=session))
            except Exception as exc:
                if not is_transaction_unsupported(exc):
                    raise
                logger.warning(
                    f"{operation}: transactions unavailable ({exc}); "
                    f"retrying as sequential writes"
                )

            return await work(NO_TRANSACTION)
