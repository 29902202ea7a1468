"""
IRD Inventory - Normalization Helpers

Field cleaning, IPv4 syntax checks and duplicate-key error shaping shared by
the linker, the bulk importer and the catalog services.
"""

from __future__ import annotations

import math
import re
from typing import Any, Dict, Mapping, Optional

from pydantic.alias_generators import to_camel

from ..core.errors import ConflictError, InvalidArgumentError, InventoryError, PersistenceError
from ..core.models import DEFAULT_IRD_IMAGE_URL, IRD_OPTIONAL_FIELDS, IRD_REQUIRED_FIELDS
from ..store.base import Collection, DuplicateKeyError, StoreError

IPV4_PATTERN = re.compile(r"^(\d{1,3})\.(\d{1,3})\.(\d{1,3})\.(\d{1,3})$")

ENTITY_LABELS = {
    Collection.IRD: "IRD",
    Collection.EQUIPMENT: "equipment",
    Collection.EQUIPMENT_TYPE: "equipment type",
    Collection.CONTACT: "contact",
}


def normalize_str(value: Any) -> str:
    """Trimmed string; None and NaN cells become ""."""
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    return str(value).strip()


def normalize_lower(value: Any) -> str:
    return normalize_str(value).lower()


def blank_to_none(value: Any) -> Optional[str]:
    cleaned = normalize_str(value)
    return cleaned or None


def is_valid_ipv4(value: str) -> bool:
    """Dotted-quad IPv4: four decimal octets, each 0-255."""
    match = IPV4_PATTERN.match(value or "")
    if not match:
        return False
    return all(int(octet) <= 255 for octet in match.groups())


def require_ipv4(value: str, field: str = "admin_ip") -> str:
    if not is_valid_ipv4(value):
        raise InvalidArgumentError(f"Invalid IPv4 address for {to_camel(field)}: {value!r}", field=to_camel(field))
    return value


# =============================================================================
# IRD Fields
# =============================================================================


def clean_ird_input(data: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Validate and normalize a full IRD document for insertion.

    Required fields must be non-blank and ``admin_ip`` must be IPv4. Optional
    descriptive fields default to "" (``url`` defaults to the stock image).
    """
    cleaned: Dict[str, Any] = {}
    for field in IRD_REQUIRED_FIELDS:
        value = normalize_str(data.get(field))
        if not value:
            raise InvalidArgumentError(f"Missing required field: {to_camel(field)}", field=to_camel(field))
        cleaned[field] = value

    require_ipv4(cleaned["admin_ip"])

    for field in IRD_OPTIONAL_FIELDS:
        cleaned[field] = normalize_str(data.get(field))
    if not cleaned["url"]:
        cleaned["url"] = DEFAULT_IRD_IMAGE_URL
    return cleaned


def clean_ird_patch(patch: Mapping[str, Any]) -> Dict[str, Any]:
    """Normalize a partial IRD update; only known fields that were supplied survive."""
    cleaned: Dict[str, Any] = {}
    for field in IRD_REQUIRED_FIELDS:
        if field in patch and patch[field] is not None:
            value = normalize_str(patch[field])
            if not value:
                raise InvalidArgumentError(f"{to_camel(field)} cannot be blank", field=to_camel(field))
            cleaned[field] = value

    if "admin_ip" in cleaned:
        require_ipv4(cleaned["admin_ip"])

    for field in IRD_OPTIONAL_FIELDS:
        if field in patch and patch[field] is not None:
            cleaned[field] = normalize_str(patch[field])
    return cleaned


def build_equipment_payload(ird: Mapping[str, Any], equipment_type_id: str) -> Dict[str, Any]:
    """Equipment document derived from an IRD record."""
    return {
        "name": normalize_str(ird.get("name")),
        "brand": normalize_str(ird.get("brand")) or "N/A",
        "model": normalize_str(ird.get("model")) or "N/A",
        "equipment_type_ref": equipment_type_id,
        "management_ip": blank_to_none(ird.get("admin_ip")),
        "ird_ref": ird["id"],
    }


# =============================================================================
# Duplicate Keys
# =============================================================================


def conflict_from_duplicate(exc: DuplicateKeyError) -> ConflictError:
    """
    Translate a unique-index violation into a field-naming ConflictError.

    Compound indexes name every field together, e.g. the (name, adminIp)
    pair reports ``fields == ["name", "adminIp"]``.
    """
    entity = ENTITY_LABELS.get(exc.collection, exc.collection.value)
    detail = {to_camel(field): value for field, value in exc.key_value.items()}
    fields = list(detail)

    if not fields:
        return ConflictError(f"Duplicate {entity} ({exc.index})", fields=[], detail={})

    described = " and ".join(f'{field} "{value}"' for field, value in detail.items())
    return ConflictError(
        f"A {entity} with {described} already exists",
        fields=fields,
        detail=detail,
    )


def store_failure(exc: StoreError) -> InventoryError:
    """Map a storage error to the API taxonomy (409 for duplicates, else 500)."""
    if isinstance(exc, DuplicateKeyError):
        return conflict_from_duplicate(exc)
    return PersistenceError(f"Storage operation failed: {exc}")
