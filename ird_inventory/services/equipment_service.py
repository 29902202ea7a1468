"""IRD Inventory - Equipment reads (populated with type and IRD)."""

from typing import List

from ..core.errors import NotFoundError
from ..store.base import Collection, Document, DocumentStore, StoreError
from .ird_service import EQUIPMENT_REFS
from .normalization import store_failure


async def list_equipment(store: DocumentStore) -> List[Document]:
    try:
        docs = await store.find_many(Collection.EQUIPMENT, sort=["name"])
        return [await store.populate(doc, EQUIPMENT_REFS) for doc in docs]
    except StoreError as exc:
        raise store_failure(exc) from exc


async def get_equipment(store: DocumentStore, equipment_id: str) -> Document:
    try:
        doc = await store.find_by_id(Collection.EQUIPMENT, equipment_id)
        populated = await store.populate(doc, EQUIPMENT_REFS)
    except StoreError as exc:
        raise store_failure(exc) from exc
    if populated is None:
        raise NotFoundError(f"Equipment {equipment_id} not found")
    return populated
