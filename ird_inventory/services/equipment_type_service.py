"""
IRD Inventory - Equipment Type Service

Find-or-create resolution of equipment types by case-insensitive name, plus
plain CRUD for the equipment type catalog.

The unique index on ``name_lower`` is the only source of truth for "one type
per name": a resolver that loses a creation race re-reads the winner's row.
"""

import logging
from typing import Any, Dict, List, Optional

from ..core.errors import InvalidArgumentError, NotFoundError
from ..core.transactions import NO_TRANSACTION, ExecutionContext
from ..store.base import Collection, Document, DocumentStore, DuplicateKeyError, StoreError
from .normalization import normalize_lower, normalize_str, store_failure

logger = logging.getLogger(__name__)

IRD_EQUIPMENT_TYPE = "ird"


def type_key(name: Any) -> str:
    """Lowercased, trimmed lookup key; raises InvalidArgumentError when blank."""
    key = normalize_lower(name)
    if not key:
        raise InvalidArgumentError("Equipment type name is required", field="name")
    return key


class EquipmentTypeResolver:
    """Idempotent find-or-create of EquipmentType ids by name."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def resolve(self, name: str, ctx: ExecutionContext = NO_TRANSACTION) -> str:
        """
        Return the id of the equipment type called ``name``.

        Safe inside or outside a transaction: every call passes ``ctx.session``.
        Concurrent first-creators of the same name all get the same id.
        """
        key = type_key(name)
        session = ctx.session

        existing = await self.store.find_one(
            Collection.EQUIPMENT_TYPE, {"name_lower": key}, session=session
        )
        if existing:
            return existing["id"]

        try:
            created = await self.store.insert_one(
                Collection.EQUIPMENT_TYPE,
                {"name": normalize_str(name), "name_lower": key},
                session=session,
            )
        except DuplicateKeyError:
            # Lost the race: another writer inserted the same key first
            winner = await self.store.find_one(
                Collection.EQUIPMENT_TYPE, {"name_lower": key}, session=session
            )
            if winner is None:
                raise
            logger.debug(f"Equipment type {key!r} created concurrently, reusing {winner['id']}")
            return winner["id"]

        logger.info(
            f"Created equipment type {key!r}",
            extra={"equipment_type_id": created["id"]},
        )
        return created["id"]


# =============================================================================
# CRUD
# =============================================================================


async def list_equipment_types(store: DocumentStore) -> List[Document]:
    try:
        return await store.find_many(Collection.EQUIPMENT_TYPE, sort=["name_lower"])
    except StoreError as exc:
        raise store_failure(exc) from exc


async def get_equipment_type(store: DocumentStore, type_id: str) -> Document:
    try:
        found = await store.find_by_id(Collection.EQUIPMENT_TYPE, type_id)
    except StoreError as exc:
        raise store_failure(exc) from exc
    if found is None:
        raise NotFoundError(f"Equipment type {type_id} not found")
    return found


async def get_equipment_type_by_name(store: DocumentStore, name: str) -> Document:
    key = type_key(name)
    try:
        found = await store.find_one(Collection.EQUIPMENT_TYPE, {"name_lower": key})
    except StoreError as exc:
        raise store_failure(exc) from exc
    if found is None:
        raise NotFoundError(f"Equipment type {name!r} not found")
    return found


async def create_equipment_type(store: DocumentStore, data: Dict[str, Any]) -> Document:
    """Insert a new type; an existing name (any case) is a 409."""
    key = type_key(data.get("name"))
    try:
        return await store.insert_one(
            Collection.EQUIPMENT_TYPE,
            {"name": normalize_str(data.get("name")), "name_lower": key},
        )
    except StoreError as exc:
        raise store_failure(exc) from exc


async def update_equipment_type(
    store: DocumentStore, type_id: str, data: Dict[str, Any]
) -> Document:
    """Rename a type; ``name_lower`` is always recomputed."""
    patch: Dict[str, Optional[str]] = {}
    if data.get("name") is not None:
        patch = {"name": normalize_str(data["name"]), "name_lower": type_key(data["name"])}

    try:
        if not patch:
            updated = await store.find_by_id(Collection.EQUIPMENT_TYPE, type_id)
        else:
            updated = await store.find_one_and_update(
                Collection.EQUIPMENT_TYPE, {"id": type_id}, patch
            )
    except StoreError as exc:
        raise store_failure(exc) from exc
    if updated is None:
        raise NotFoundError(f"Equipment type {type_id} not found")
    return updated


async def delete_equipment_type(store: DocumentStore, type_id: str) -> Document:
    try:
        deleted = await store.delete_one(Collection.EQUIPMENT_TYPE, type_id)
    except StoreError as exc:
        raise store_failure(exc) from exc
    if deleted is None:
        raise NotFoundError(f"Equipment type {type_id} not found")
    logger.info(f"Deleted equipment type {deleted['name_lower']!r}", extra={"equipment_type_id": type_id})
    return deleted
