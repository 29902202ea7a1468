"""IRD Inventory - Contact CRUD. Blank strings are stored as null."""

import logging
from typing import Any, Dict, List, Mapping

from ..core.errors import InvalidArgumentError, NotFoundError
from ..core.models import CONTACT_FIELDS
from ..store.base import Collection, Document, DocumentStore, StoreError
from .normalization import blank_to_none, store_failure

logger = logging.getLogger(__name__)


def _clean(data: Mapping[str, Any], partial: bool) -> Dict[str, Any]:
    cleaned = {f: blank_to_none(data[f]) for f in CONTACT_FIELDS if f in data}
    if not partial and not cleaned.get("name"):
        raise InvalidArgumentError("Contact name is required", field="name")
    if partial and "name" in cleaned and cleaned["name"] is None:
        raise InvalidArgumentError("Contact name cannot be blank", field="name")
    return cleaned


async def create_contact(store: DocumentStore, data: Mapping[str, Any]) -> Document:
    cleaned = _clean(data, partial=False)
    try:
        contact = await store.insert_one(Collection.CONTACT, cleaned)
    except StoreError as exc:
        raise store_failure(exc) from exc
    logger.info(f"Created contact {contact['id']}")
    return contact


async def list_contacts(store: DocumentStore) -> List[Document]:
    try:
        return await store.find_many(Collection.CONTACT, sort=["name"])
    except StoreError as exc:
        raise store_failure(exc) from exc


async def get_contact(store: DocumentStore, contact_id: str) -> Document:
    try:
        contact = await store.find_by_id(Collection.CONTACT, contact_id)
    except StoreError as exc:
        raise store_failure(exc) from exc
    if contact is None:
        raise NotFoundError(f"Contact {contact_id} not found")
    return contact


async def update_contact(store: DocumentStore, contact_id: str, data: Mapping[str, Any]) -> Document:
    """Partial update; fields sent as "" are cleared."""
    cleaned = _clean(data, partial=True)
    try:
        if cleaned:
            contact = await store.find_one_and_update(Collection.CONTACT, {"id": contact_id}, cleaned)
        else:
            contact = await store.find_by_id(Collection.CONTACT, contact_id)
    except StoreError as exc:
        raise store_failure(exc) from exc
    if contact is None:
        raise NotFoundError(f"Contact {contact_id} not found")
    return contact


async def delete_contact(store: DocumentStore, contact_id: str) -> Document:
    try:
        contact = await store.delete_one(Collection.CONTACT, contact_id)
    except StoreError as exc:
        raise store_failure(exc) from exc
    if contact is None:
        raise NotFoundError(f"Contact {contact_id} not found")
    logger.info(f"Deleted contact {contact_id}")
    return contact
