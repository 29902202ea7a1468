"""
IRD Inventory - Bulk IRD Import

Creates one IRD + Equipment pair per spreadsheet row, in input order, with
per-row error isolation: a failing row is recorded and the batch moves on.

Bulk rows skip the duplicate checks of the single-record path. Every imported
IRD is tagged with the batch id (``import_batch``), which exempts it from the
(name, admin_ip) uniqueness rule, and every row gets a fresh Equipment.

Usage:
    importer = BulkIrdImporter(store)
    result = await importer.import_rows(frame_to_rows(read_spreadsheet(data, "irds.xlsx")))
    result.summary.errors
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Sequence
from uuid import uuid4

from ..core.errors import InventoryError
from ..core.logging import LogContext, Timer
from ..core.models import IRD_IMPORT_BATCH_FIELD, ImportFailure, ImportResult, ImportSuccess
from ..core.transactions import ExecutionContext, OptionalTransactionRunner
from ..store.base import Collection, Document, DocumentStore, StoreError
from .equipment_type_service import IRD_EQUIPMENT_TYPE, EquipmentTypeResolver
from .normalization import build_equipment_payload, clean_ird_input, normalize_str, store_failure
from .spreadsheet import canonicalize_row

logger = logging.getLogger(__name__)

# Display row number of the first data row (row 1 holds the headers).
FIRST_DATA_ROW = 2


def _error_message(exc: Exception) -> str:
    if isinstance(exc, InventoryError):
        return exc.message
    return str(exc) or type(exc).__name__


def _row_data(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {str(k): normalize_str(v) for k, v in row.items()}


class BulkIrdImporter:
    def __init__(self, store: DocumentStore):
        self.store = store
        self.resolver = EquipmentTypeResolver(store)
        self.runner = OptionalTransactionRunner(store)

    async def _import_row(
        self, fields: Dict[str, Any], type_id: str, batch_id: str
    ) -> tuple[Document, Document]:
        ird_doc = {**clean_ird_input(fields), IRD_IMPORT_BATCH_FIELD: batch_id}

        async def work(ctx: ExecutionContext) -> tuple[Document, Document]:
            ird = await self.store.insert_one(Collection.IRD, ird_doc, session=ctx.session)
            try:
                equipment = await self.store.insert_one(
                    Collection.EQUIPMENT,
                    build_equipment_payload(ird, type_id),
                    session=ctx.session,
                )
            except Exception:
                if not ctx.in_transaction:
                    await self._discard_ird(ird["id"])
                raise
            return ird, equipment

        return await self.runner.run(work, operation="ird.bulk_row")

    async def _discard_ird(self, ird_id: str) -> None:
        try:
            await self.store.delete_one(Collection.IRD, ird_id)
        except Exception as cleanup_exc:
            logger.error(f"Could not remove IRD {ird_id} of failed row: {cleanup_exc}", exc_info=True)

    async def import_rows(
        self, rows: Sequence[Mapping[str, Any]], batch_id: Optional[str] = None
    ) -> ImportResult:
        """
        Import ``rows`` (keyed by source headers) one at a time.

        Only failures outside any single row (resolving the shared "ird"
        equipment type) abort the batch.
        """
        batch_id = batch_id or uuid4().hex
        result = ImportResult(batch_id=batch_id)

        with LogContext(operation="ird.bulk_import", import_batch=batch_id), Timer() as timer:
            try:
                type_id = await self.resolver.resolve(IRD_EQUIPMENT_TYPE)
            except StoreError as exc:
                raise store_failure(exc) from exc

            for index, row in enumerate(rows):
                row_number = index + FIRST_DATA_ROW
                result.summary.total_processed += 1

                with LogContext(row=row_number):
                    try:
                        ird, equipment = await self._import_row(canonicalize_row(row), type_id, batch_id)
                    except Exception as exc:
                        result.summary.errors += 1
                        result.failures.append(
                            ImportFailure(row=row_number, data=_row_data(row), error=_error_message(exc))
                        )
                        logger.warning(f"Row {row_number} rejected: {_error_message(exc)}")
                        continue

                result.summary.irds_created += 1
                result.summary.equipment_created += 1
                result.successes.append(
                    ImportSuccess(
                        row=row_number,
                        ird_id=ird["id"],
                        equipment_id=equipment["id"],
                        name=ird["name"],
                        ip=ird["admin_ip"],
                    )
                )

        logger.info(
            f"Bulk import finished: {len(result.successes)} ok, {len(result.failures)} failed",
            extra={"count": result.summary.total_processed, "duration_ms": timer.elapsed_ms},
        )
        return result
