"""IRD Inventory - Contact Router (CRUD)."""

from typing import List

from fastapi import APIRouter, Depends, status

from ..core.errors import ErrorResponse
from ..core.models import ContactOut, ContactPayload, MessageResponse
from ..db import get_store
from ..services import contact_service as service
from ..store import DocumentStore

router = APIRouter(prefix="/contacts", tags=["Contacts"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Missing name"},
    404: {"model": ErrorResponse, "description": "Contact not found"},
    409: {"model": ErrorResponse, "description": "Name, email or phone already used"},
}


@router.get("", response_model=List[ContactOut])
async def list_all(store: DocumentStore = Depends(get_store)):
    return await service.list_contacts(store)


@router.get("/{contact_id}", response_model=ContactOut, responses=ERROR_RESPONSES)
async def get_one(contact_id: str, store: DocumentStore = Depends(get_store)):
    return await service.get_contact(store, contact_id)


@router.post(
    "",
    response_model=ContactOut,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def create(payload: ContactPayload, store: DocumentStore = Depends(get_store)):
    return await service.create_contact(store, payload.model_dump(exclude_unset=True))


@router.put("/{contact_id}", response_model=ContactOut, responses=ERROR_RESPONSES)
async def update(contact_id: str, payload: ContactPayload, store: DocumentStore = Depends(get_store)):
    return await service.update_contact(store, contact_id, payload.model_dump(exclude_unset=True))


@router.delete("/{contact_id}", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def delete(contact_id: str, store: DocumentStore = Depends(get_store)):
    await service.delete_contact(store, contact_id)
    return MessageResponse(message="Contact deleted")
