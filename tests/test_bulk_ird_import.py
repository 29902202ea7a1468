"""
tests/test_bulk_ird_import.py

BulkIrdImporter per-row isolation and summary, plus spreadsheet parsing and
header validation.
"""

from __future__ import annotations

import io

import pandas as pd
import pytest

from ird_inventory.core.errors import InvalidArgumentError, PersistenceError
from ird_inventory.core.transactions import NO_TRANSACTION
from ird_inventory.services.bulk_ird_service import BulkIrdImporter
from ird_inventory.services.ird_service import IrdEquipmentLinker
from ird_inventory.services.spreadsheet import (
    canonicalize_row,
    format_report,
    frame_to_rows,
    missing_headers,
    read_spreadsheet,
)
from ird_inventory.store import Collection, StoreError

ROWS = [
    {"name": "IRD-A", "adminIp": "10.1.0.1", "brand": "Motorola", "model": "DSR-4410"},
    {"name": "IRD-B", "adminIp": "not-an-ip", "brand": "Cisco", "model": "D9800"},
    {"name": "IRD-C", "adminIp": "10.1.0.3", "brand": "", "model": ""},
]


def _fail_equipment_for(target, bad_name: str, error: Exception) -> None:
    """Make equipment inserts for ``bad_name`` raise ``error``."""
    original = target.insert_one

    async def flaky(collection, doc, *, session=None):
        if collection is Collection.EQUIPMENT and doc.get("name") == bad_name:
            raise error
        return await original(collection, doc, session=session)

    target.insert_one = flaky


# =============================================================================
# Importer
# =============================================================================


class TestImportRows:
    @pytest.mark.asyncio
    async def test_partial_failure(self, store):
        result = await BulkIrdImporter(store).import_rows(ROWS)

        assert result.summary.total_processed == 3
        assert result.summary.errors == 1
        assert result.summary.irds_created == 2
        assert result.summary.equipment_created == 2
        assert [s.row for s in result.successes] == [2, 4]
        assert result.failures[0].row == 3
        assert "not-an-ip" in result.failures[0].error
        assert result.failures[0].data == ROWS[1]

    @pytest.mark.asyncio
    async def test_each_row_gets_linked_equipment(self, standalone_store):
        result = await BulkIrdImporter(standalone_store).import_rows(ROWS)

        for success in result.successes:
            equipment = await standalone_store.find_by_id(Collection.EQUIPMENT, success.equipment_id)
            assert equipment["ird_ref"] == success.ird_id
        row_c = await standalone_store.find_one(Collection.EQUIPMENT, {"name": "IRD-C"})
        assert (row_c["brand"], row_c["model"]) == ("N/A", "N/A")

    @pytest.mark.asyncio
    async def test_duplicate_rows_are_allowed(self, store):
        rows = [ROWS[0], dict(ROWS[0])]

        result = await BulkIrdImporter(store).import_rows(rows)

        assert result.summary.errors == 0
        assert await store.count(Collection.IRD, {"name": "IRD-A"}) == 2
        assert await store.count(Collection.EQUIPMENT, {"name": "IRD-A"}) == 2

    @pytest.mark.asyncio
    async def test_single_create_still_unique_among_its_own(self, store):
        await BulkIrdImporter(store).import_rows([ROWS[0]])
        linker = IrdEquipmentLinker(store)

        await linker.create({"name": "IRD-A", "admin_ip": "10.1.0.1"})

        assert await store.count(Collection.IRD, {"name": "IRD-A"}) == 2

    @pytest.mark.asyncio
    async def test_rows_are_tagged_with_batch(self, store):
        result = await BulkIrdImporter(store).import_rows(ROWS[:1], batch_id="batch-1")

        ird = await store.find_by_id(Collection.IRD, result.successes[0].ird_id)
        assert ird["import_batch"] == "batch-1"
        assert result.batch_id == "batch-1"

    @pytest.mark.asyncio
    async def test_type_resolved_once(self, store):
        importer = BulkIrdImporter(store)
        calls: list[str] = []
        original = importer.resolver.resolve

        async def counting(name, ctx=NO_TRANSACTION):
            calls.append(name)
            return await original(name, ctx)

        importer.resolver.resolve = counting

        await importer.import_rows(ROWS)

        assert calls == ["ird"]
        assert await store.count(Collection.EQUIPMENT_TYPE, {}) == 1

    @pytest.mark.asyncio
    async def test_legacy_headers(self, store):
        rows = [{"nombreIrd": "IRD-L", "ipAdminIrd": "10.2.0.1", "marcaIrd": "Harmonic", "modelIrd": "X"}]

        result = await BulkIrdImporter(store).import_rows(rows)

        assert result.successes[0].name == "IRD-L"
        assert result.successes[0].ip == "10.2.0.1"

    @pytest.mark.asyncio
    async def test_missing_required_field_fails_row_only(self, store):
        rows = [{"name": "", "adminIp": "10.0.0.1"}, ROWS[0]]

        result = await BulkIrdImporter(store).import_rows(rows)

        assert [f.row for f in result.failures] == [2]
        assert [s.row for s in result.successes] == [3]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("fixture", ["store", "standalone_store"])
    async def test_equipment_failure_leaves_no_orphan_ird(self, fixture, request):
        target = request.getfixturevalue(fixture)
        _fail_equipment_for(target, "IRD-A", StoreError("write conflict"))

        result = await BulkIrdImporter(target).import_rows([ROWS[0], ROWS[2]])

        assert result.failures[0].row == 2
        assert result.failures[0].error == "write conflict"
        assert [s.name for s in result.successes] == ["IRD-C"]
        assert await target.count(Collection.IRD, {"name": "IRD-A"}) == 0

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_isolated(self, standalone_store):
        _fail_equipment_for(standalone_store, "IRD-A", RuntimeError("boom"))

        result = await BulkIrdImporter(standalone_store).import_rows([ROWS[0], ROWS[2]])

        assert result.summary.errors == 1
        assert result.summary.irds_created == 1

    @pytest.mark.asyncio
    async def test_type_resolution_failure_aborts_batch(self, store):
        async def broken(*args, **kwargs):
            raise StoreError("connection refused")

        store.find_one = broken

        with pytest.raises(PersistenceError):
            await BulkIrdImporter(store).import_rows(ROWS)

    @pytest.mark.asyncio
    async def test_serialized_shape(self, store):
        result = await BulkIrdImporter(store).import_rows(ROWS)
        body = result.model_dump(by_alias=True)

        assert set(body) >= {"successful", "errors", "summary"}
        assert body["summary"] == {
            "totalProcessed": 3,
            "irdsCreated": 2,
            "equipmentCreated": 2,
            "errors": 1,
        }
        assert set(body["successful"][0]) == {"row", "irdId", "equipmentId", "name", "ip"}


# =============================================================================
# Spreadsheet parsing
# =============================================================================


def _xlsx_bytes(df: pd.DataFrame) -> bytes:
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(writer, index=False)
    return buffer.getvalue()


class TestReadSpreadsheet:
    def test_xlsx_cells_are_text(self):
        content = _xlsx_bytes(
            pd.DataFrame(
                [
                    {"nombreIrd": "IRD-1", "ipAdminIrd": "10.0.0.1", "marcaIrd": None, "modelIrd": 4410},
                    {"nombreIrd": "IRD-2", "ipAdminIrd": "10.0.0.2", "marcaIrd": "Cisco", "modelIrd": "D9"},
                ]
            )
        )

        rows = frame_to_rows(read_spreadsheet(content, "irds.xlsx"))

        assert len(rows) == 2
        assert rows[0]["marcaIrd"] == ""
        assert rows[0]["modelIrd"] == "4410"
        assert rows[1]["nombreIrd"] == "IRD-2"

    def test_csv(self):
        content = b"name,adminIp,brand,model\nIRD-1,10.0.0.1,,DSR\n,,,\nIRD-2,10.0.0.2,Cisco,\n"

        rows = frame_to_rows(read_spreadsheet(content, "irds.CSV"))

        assert [r["name"] for r in rows] == ["IRD-1", "IRD-2"]
        assert rows[0]["brand"] == ""

    def test_empty_upload(self):
        with pytest.raises(InvalidArgumentError, match="empty"):
            read_spreadsheet(b"", "irds.xlsx")

    def test_header_only(self):
        with pytest.raises(InvalidArgumentError, match="no data rows"):
            read_spreadsheet(b"name,adminIp\n", "irds.csv")

    def test_unsupported_type(self):
        with pytest.raises(InvalidArgumentError, match="Unsupported"):
            read_spreadsheet(b"data", "irds.pdf")

    def test_corrupt_workbook(self):
        with pytest.raises(InvalidArgumentError, match="Unreadable"):
            read_spreadsheet(b"definitely not a zip archive", "irds.xlsx")


class TestHeaders:
    def test_canonicalize_accepts_all_spellings(self):
        row = {"Name": "a", "admin_ip": "1.1.1.1", "marcaIrd": "m", "Symbol Rate": "27500", "extra": "z"}

        assert canonicalize_row(row) == {
            "name": "a",
            "admin_ip": "1.1.1.1",
            "brand": "m",
            "symbol_rate": "27500",
        }

    def test_missing_headers_reported_camel_case(self):
        assert missing_headers(["nombreIrd", "brand"]) == ["adminIp", "model"]
        assert missing_headers(["name", "adminIp", "brand", "model"]) == []

    def test_format_report_preview(self):
        df = pd.DataFrame(
            [{"nombreIrd": f"IRD-{i}", "ipAdminIrd": f"10.0.0.{i}", "marcaIrd": "", "modelIrd": ""} for i in range(8)]
        )

        report = format_report(df, preview_rows=5)

        assert report.success is True
        assert report.total_rows == 8
        assert len(report.preview) == 5
        assert report.headers == ["nombreIrd", "ipAdminIrd", "marcaIrd", "modelIrd"]

    def test_format_report_missing(self):
        report = format_report(pd.DataFrame([{"name": "x"}]))

        assert report.success is False
        assert report.missing_headers == ["adminIp", "brand", "model"]
        assert report.preview == []
