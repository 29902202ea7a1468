"""IRD Inventory - Equipment Router (read-only, populated references)."""

from typing import List

from fastapi import APIRouter, Depends

from ..core.errors import ErrorResponse
from ..core.models import EquipmentOut
from ..db import get_store
from ..services.equipment_service import get_equipment, list_equipment
from ..store import DocumentStore

router = APIRouter(prefix="/equipment", tags=["Equipment"])


@router.get("", response_model=List[EquipmentOut])
async def list_all(store: DocumentStore = Depends(get_store)):
    return await list_equipment(store)


@router.get(
    "/{equipment_id}",
    response_model=EquipmentOut,
    responses={404: {"model": ErrorResponse, "description": "Equipment not found"}},
)
async def get_one(equipment_id: str, store: DocumentStore = Depends(get_store)):
    return await get_equipment(store, equipment_id)
