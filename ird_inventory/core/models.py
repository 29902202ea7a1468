"""
IRD Inventory - Core Data Models

Field catalogs shared by the store schema and the services, plus the pydantic
models used at the HTTP boundary.

Storage and Python code use snake_case (``admin_ip``); JSON payloads use
camelCase aliases (``adminIp``). Request models accept either spelling.

Usage:
    from ird_inventory.core.models import IrdPayload, IRD_OPTIONAL_FIELDS

    payload = IrdPayload.model_validate(request_json)
    data = payload.model_dump(exclude_unset=True)
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# =============================================================================
# Field Catalogs
# =============================================================================

IRD_REQUIRED_FIELDS = ("name", "admin_ip")

IRD_OPTIONAL_FIELDS = (
    "url",
    "brand",
    "model",
    "version",
    "ua",
    "tid_receptor",
    "type_receptor",
    "feq_receptor",
    "symbol_rate",
    "fec_receptor",
    "modulation_receptor",
    "roll_off_receptor",
    "nid_receptor",
    "cvirtual_receptor",
    "vct_receptor",
    "output_receptor",
    "multicast_receptor",
    "ip_video_multicast",
    "location_row",
    "location_col",
    "sw_admin",
    "port_sw",
)

IRD_FIELDS = IRD_REQUIRED_FIELDS + IRD_OPTIONAL_FIELDS

# Set on rows created by a bulk import; such rows are exempt from the
# (name, admin_ip) uniqueness rule.
IRD_IMPORT_BATCH_FIELD = "import_batch"

EQUIPMENT_FIELDS = (
    "name",
    "brand",
    "model",
    "equipment_type_ref",
    "management_ip",
    "satellite_ref",
    "ird_ref",
)

EQUIPMENT_TYPE_FIELDS = ("name", "name_lower")

CONTACT_FIELDS = ("name", "email", "phone")

DEFAULT_IRD_IMAGE_URL = "https://i.ibb.co/pvW06r6K/ird-motorola.png"


# =============================================================================
# Base Configuration
# =============================================================================


class CamelModel(BaseModel):
    """Serializes with camelCase aliases, accepts both spellings on input.

    Numbers sent for text fields (``symbolRate: 27500``) are kept as text.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )


# =============================================================================
# Request Models
# =============================================================================


class IrdPayload(CamelModel):
    """
    IRD create/update body.

    Every field is optional here; required fields and IPv4 syntax are checked
    by the linker so that the failure surfaces as a 400 before any write.
    """

    name: Optional[str] = None
    admin_ip: Optional[str] = None
    url: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    version: Optional[str] = None
    ua: Optional[str] = None
    tid_receptor: Optional[str] = None
    type_receptor: Optional[str] = None
    feq_receptor: Optional[str] = None
    symbol_rate: Optional[str] = None
    fec_receptor: Optional[str] = None
    modulation_receptor: Optional[str] = None
    roll_off_receptor: Optional[str] = None
    nid_receptor: Optional[str] = None
    cvirtual_receptor: Optional[str] = None
    vct_receptor: Optional[str] = None
    output_receptor: Optional[str] = None
    multicast_receptor: Optional[str] = None
    ip_video_multicast: Optional[str] = None
    location_row: Optional[str] = None
    location_col: Optional[str] = None
    sw_admin: Optional[str] = None
    port_sw: Optional[str] = None


class EquipmentTypePayload(CamelModel):
    name: Optional[str] = None


class ContactPayload(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


# =============================================================================
# Response Models
# =============================================================================


class EquipmentTypeOut(CamelModel):
    id: str
    name: str
    name_lower: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class IrdOut(IrdPayload):
    id: str
    name: str
    admin_ip: str
    import_batch: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class EquipmentOut(CamelModel):
    """Equipment with references either as ids or populated documents."""

    id: str
    name: str
    brand: str
    model: str
    equipment_type_ref: Union[EquipmentTypeOut, str, None] = None
    management_ip: Optional[str] = None
    satellite_ref: Optional[str] = None
    ird_ref: Union[IrdOut, str, None] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class EquipmentInfo(CamelModel):
    created: bool
    adopted: bool = False
    reason: str = ""
    equipment_type: str = "ird"


class LinkedIrdResponse(CamelModel):
    ird: IrdOut
    equipment: Optional[EquipmentOut] = None
    equipment_info: Optional[EquipmentInfo] = None


class ContactOut(CamelModel):
    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MessageResponse(BaseModel):
    message: str


# =============================================================================
# Bulk Import Models
# =============================================================================


class ImportSuccess(CamelModel):
    row: int
    ird_id: str
    equipment_id: str
    name: str
    ip: str


class ImportFailure(CamelModel):
    row: int
    data: Dict[str, Any]
    error: str


class ImportSummary(CamelModel):
    total_processed: int = 0
    irds_created: int = 0
    equipment_created: int = 0
    errors: int = 0


class ImportResult(CamelModel):
    """Per-row outcome of a bulk import. Serialized as successful/errors/summary."""

    successes: List[ImportSuccess] = Field(default_factory=list, alias="successful")
    failures: List[ImportFailure] = Field(default_factory=list, alias="errors")
    summary: ImportSummary = Field(default_factory=ImportSummary)
    batch_id: Optional[str] = None


class BulkImportResponse(CamelModel):
    success: bool
    message: str
    data: ImportResult


class FormatReport(CamelModel):
    success: bool
    message: str
    headers: List[str]
    missing_headers: List[str] = Field(default_factory=list)
    preview: List[Dict[str, Any]] = Field(default_factory=list)
    total_rows: int = 0
