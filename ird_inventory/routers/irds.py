"""
IRD Inventory - IRD Router

Endpoints:
    GET    /api/v1/irds              - List IRDs sorted by admin IP
    GET    /api/v1/irds/{id}         - Get one IRD
    POST   /api/v1/irds              - Create IRD + linked equipment
    PUT    /api/v1/irds/{id}         - Update IRD and re-sync its equipment
    DELETE /api/v1/irds/{id}         - Delete IRD, detach/delete its equipment
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from ..core.config import get_settings
from ..core.errors import ErrorResponse
from ..core.models import IrdOut, IrdPayload, LinkedIrdResponse, MessageResponse
from ..db import get_store
from ..services.ird_service import IrdEquipmentLinker, get_ird, list_irds
from ..store import DocumentStore

router = APIRouter(prefix="/irds", tags=["IRDs"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid field"},
    404: {"model": ErrorResponse, "description": "IRD or equipment not found"},
    409: {"model": ErrorResponse, "description": "Duplicate name/adminIp or equipment claimed"},
}


def get_linker(store: DocumentStore = Depends(get_store)) -> IrdEquipmentLinker:
    return IrdEquipmentLinker(store, delete_policy=get_settings().IRD_DELETE_POLICY)


@router.get("", response_model=List[IrdOut])
async def list_all(store: DocumentStore = Depends(get_store)):
    return await list_irds(store)


@router.get("/{ird_id}", response_model=IrdOut, responses=ERROR_RESPONSES)
async def get_one(ird_id: str, store: DocumentStore = Depends(get_store)):
    return await get_ird(store, ird_id)


@router.post(
    "",
    response_model=LinkedIrdResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def create(payload: IrdPayload, linker: IrdEquipmentLinker = Depends(get_linker)):
    linked = await linker.create(payload.model_dump(exclude_none=True))
    return linked.as_response()


@router.put("/{ird_id}", response_model=LinkedIrdResponse, responses=ERROR_RESPONSES)
async def update(
    ird_id: str,
    payload: IrdPayload,
    equipment_id: Optional[str] = Query(None, alias="equipmentId"),
    linker: IrdEquipmentLinker = Depends(get_linker),
):
    linked = await linker.update(
        ird_id, payload.model_dump(exclude_unset=True), equipment_id=equipment_id
    )
    return linked.as_response()


@router.delete("/{ird_id}", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def delete(ird_id: str, linker: IrdEquipmentLinker = Depends(get_linker)):
    outcome = await linker.delete(ird_id)
    return MessageResponse(message=outcome.message)
