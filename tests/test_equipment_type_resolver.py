"""
tests/test_equipment_type_resolver.py

Find-or-create of equipment types: case-insensitive, idempotent, and safe
under concurrent first creation. Also covers the equipment type CRUD helpers.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from ird_inventory.core.errors import ConflictError, InvalidArgumentError, NotFoundError
from ird_inventory.core.transactions import ExecutionContext
from ird_inventory.services import equipment_type_service as service
from ird_inventory.services.equipment_type_service import EquipmentTypeResolver
from ird_inventory.store import Collection, DuplicateKeyError


class TestResolve:
    @pytest.mark.asyncio
    async def test_creates_on_first_use(self, store):
        type_id = await EquipmentTypeResolver(store).resolve("IRD")

        created = await store.find_by_id(Collection.EQUIPMENT_TYPE, type_id)
        assert created["name"] == "IRD"
        assert created["name_lower"] == "ird"

    @pytest.mark.asyncio
    async def test_sequential_spellings_share_one_row(self, store):
        resolver = EquipmentTypeResolver(store)

        ids = [await resolver.resolve(name) for name in ("IRD", "ird", " Ird ")]

        assert len(set(ids)) == 1
        assert await store.count(Collection.EQUIPMENT_TYPE, {"name_lower": "ird"}) == 1

    @pytest.mark.asyncio
    async def test_concurrent_spellings_share_one_row(self, store):
        resolver = EquipmentTypeResolver(store)

        ids = await asyncio.gather(
            resolver.resolve("IRD"), resolver.resolve("ird"), resolver.resolve(" Ird ")
        )

        assert len(set(ids)) == 1
        assert await store.count(Collection.EQUIPMENT_TYPE, {}) == 1

    @pytest.mark.asyncio
    async def test_blank_name_rejected(self, store):
        with pytest.raises(InvalidArgumentError):
            await EquipmentTypeResolver(store).resolve("   ")
        assert await store.count(Collection.EQUIPMENT_TYPE, {}) == 0

    @pytest.mark.asyncio
    async def test_joins_open_transaction(self, store):
        resolver = EquipmentTypeResolver(store)

        with pytest.raises(RuntimeError):
            async with store.transaction() as session:
                await resolver.resolve("ird", ExecutionContext(session=session))
                raise RuntimeError("abort")

        assert await store.count(Collection.EQUIPMENT_TYPE, {}) == 0


class TestResolveRace:
    """Insert loses to a concurrent writer: the winner's row is re-read."""

    @pytest.mark.asyncio
    async def test_duplicate_on_insert_rereads(self):
        mock_store = MagicMock()
        mock_store.find_one = AsyncMock(side_effect=[None, {"id": "winner", "name_lower": "ird"}])
        mock_store.insert_one = AsyncMock(
            side_effect=DuplicateKeyError(
                Collection.EQUIPMENT_TYPE, "equipment_types_name_lower_key", {"name_lower": "ird"}
            )
        )

        type_id = await EquipmentTypeResolver(mock_store).resolve("IRD")

        assert type_id == "winner"
        assert mock_store.find_one.await_count == 2

    @pytest.mark.asyncio
    async def test_duplicate_without_winner_propagates(self):
        mock_store = MagicMock()
        mock_store.find_one = AsyncMock(return_value=None)
        mock_store.insert_one = AsyncMock(
            side_effect=DuplicateKeyError(Collection.EQUIPMENT_TYPE, "idx", {"name_lower": "ird"})
        )

        with pytest.raises(DuplicateKeyError):
            await EquipmentTypeResolver(mock_store).resolve("ird")


class TestEquipmentTypeCrud:
    @pytest.mark.asyncio
    async def test_create_duplicate_name_any_case(self, store):
        await service.create_equipment_type(store, {"name": "Modulator"})

        with pytest.raises(ConflictError) as exc_info:
            await service.create_equipment_type(store, {"name": "MODULATOR "})
        assert exc_info.value.fields == ["nameLower"]

    @pytest.mark.asyncio
    async def test_get_by_name_is_case_insensitive(self, store):
        created = await service.create_equipment_type(store, {"name": "Switch"})

        found = await service.get_equipment_type_by_name(store, "sWiTcH")
        assert found["id"] == created["id"]

    @pytest.mark.asyncio
    async def test_update_recomputes_name_lower(self, store):
        created = await service.create_equipment_type(store, {"name": "Encoder"})

        updated = await service.update_equipment_type(store, created["id"], {"name": " Transcoder "})

        assert updated["name"] == "Transcoder"
        assert updated["name_lower"] == "transcoder"

    @pytest.mark.asyncio
    async def test_list_sorted_by_name_lower(self, store):
        for name in ("zeta", "Alpha", "mid"):
            await service.create_equipment_type(store, {"name": name})

        names = [t["name"] for t in await service.list_equipment_types(store)]
        assert names == ["Alpha", "mid", "zeta"]

    @pytest.mark.asyncio
    async def test_missing_ids(self, store):
        with pytest.raises(NotFoundError):
            await service.get_equipment_type(store, "nope")
        with pytest.raises(NotFoundError):
            await service.update_equipment_type(store, "nope", {"name": "x"})
        with pytest.raises(NotFoundError):
            await service.delete_equipment_type(store, "nope")
