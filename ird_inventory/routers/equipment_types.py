"""
IRD Inventory - Equipment Type Router

Endpoints:
    GET    /api/v1/equipment-types               - List, sorted by name
    GET    /api/v1/equipment-types/by-name/{n}   - Case-insensitive lookup
    GET    /api/v1/equipment-types/{id}
    POST   /api/v1/equipment-types               - 409 if the name exists (any case)
    PUT    /api/v1/equipment-types/{id}
    DELETE /api/v1/equipment-types/{id}
"""

from typing import List

from fastapi import APIRouter, Depends, status

from ..core.errors import ErrorResponse
from ..core.models import EquipmentTypeOut, EquipmentTypePayload, MessageResponse
from ..db import get_store
from ..services import equipment_type_service as service
from ..store import DocumentStore

router = APIRouter(prefix="/equipment-types", tags=["Equipment Types"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Blank name"},
    404: {"model": ErrorResponse, "description": "Equipment type not found"},
    409: {"model": ErrorResponse, "description": "Name already exists"},
}


@router.get("", response_model=List[EquipmentTypeOut])
async def list_all(store: DocumentStore = Depends(get_store)):
    return await service.list_equipment_types(store)


@router.get("/by-name/{name}", response_model=EquipmentTypeOut, responses=ERROR_RESPONSES)
async def get_by_name(name: str, store: DocumentStore = Depends(get_store)):
    return await service.get_equipment_type_by_name(store, name)


@router.get("/{type_id}", response_model=EquipmentTypeOut, responses=ERROR_RESPONSES)
async def get_one(type_id: str, store: DocumentStore = Depends(get_store)):
    return await service.get_equipment_type(store, type_id)


@router.post(
    "",
    response_model=EquipmentTypeOut,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def create(payload: EquipmentTypePayload, store: DocumentStore = Depends(get_store)):
    return await service.create_equipment_type(store, payload.model_dump())


@router.put("/{type_id}", response_model=EquipmentTypeOut, responses=ERROR_RESPONSES)
async def update(
    type_id: str, payload: EquipmentTypePayload, store: DocumentStore = Depends(get_store)
):
    return await service.update_equipment_type(store, type_id, payload.model_dump(exclude_unset=True))


@router.delete("/{type_id}", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def delete(type_id: str, store: DocumentStore = Depends(get_store)):
    deleted = await service.delete_equipment_type(store, type_id)
    return MessageResponse(message=f"Equipment type {deleted['name']} deleted")
