"""
tests/test_normalization.py

Unit tests for field cleaning, IPv4 checks and duplicate-key shaping.
"""

import math

import pytest

from ird_inventory.core.errors import ConflictError, InvalidArgumentError, PersistenceError
from ird_inventory.core.models import DEFAULT_IRD_IMAGE_URL, IRD_OPTIONAL_FIELDS
from ird_inventory.services.normalization import (
    build_equipment_payload,
    clean_ird_input,
    clean_ird_patch,
    conflict_from_duplicate,
    is_valid_ipv4,
    normalize_lower,
    normalize_str,
    store_failure,
)
from ird_inventory.store import Collection, DuplicateKeyError, StoreError


class TestNormalizeStr:
    def test_trims(self):
        assert normalize_str("  IRD-1 ") == "IRD-1"

    def test_none_and_nan_are_blank(self):
        assert normalize_str(None) == ""
        assert normalize_str(math.nan) == ""

    def test_numbers_become_text(self):
        assert normalize_str(42) == "42"

    def test_lower(self):
        assert normalize_lower("  IrD ") == "ird"


class TestIsValidIpv4:
    @pytest.mark.parametrize("ip", ["10.0.0.5", "0.0.0.0", "255.255.255.255", "192.168.1.10"])
    def test_valid(self, ip):
        assert is_valid_ipv4(ip)

    @pytest.mark.parametrize(
        "ip",
        ["999.1.1.1", "1.2.3", "not-an-ip", "", "1.2.3.4.5", "10.0.0.256", " 10.0.0.1", "a.b.c.d"],
    )
    def test_invalid(self, ip):
        assert not is_valid_ipv4(ip)


class TestCleanIrdInput:
    def test_trims_required_fields(self):
        cleaned = clean_ird_input({"name": "  IRD-1 ", "admin_ip": " 10.0.0.5 "})
        assert cleaned["name"] == "IRD-1"
        assert cleaned["admin_ip"] == "10.0.0.5"

    def test_optional_fields_default_to_blank(self):
        cleaned = clean_ird_input({"name": "IRD-1", "admin_ip": "10.0.0.5"})
        assert set(IRD_OPTIONAL_FIELDS) <= set(cleaned)
        assert cleaned["brand"] == ""
        assert cleaned["url"] == DEFAULT_IRD_IMAGE_URL

    def test_unknown_fields_are_dropped(self):
        cleaned = clean_ird_input({"name": "IRD-1", "admin_ip": "10.0.0.5", "colour": "red"})
        assert "colour" not in cleaned

    def test_missing_name(self):
        with pytest.raises(InvalidArgumentError) as exc_info:
            clean_ird_input({"admin_ip": "10.0.0.5"})
        assert exc_info.value.field == "name"

    def test_blank_admin_ip(self):
        with pytest.raises(InvalidArgumentError) as exc_info:
            clean_ird_input({"name": "IRD-1", "admin_ip": "   "})
        assert exc_info.value.field == "adminIp"

    @pytest.mark.parametrize("ip", ["999.1.1.1", "1.2.3"])
    def test_bad_ip(self, ip):
        with pytest.raises(InvalidArgumentError, match="Invalid IPv4"):
            clean_ird_input({"name": "X", "admin_ip": ip})


class TestCleanIrdPatch:
    def test_only_supplied_fields_survive(self):
        assert clean_ird_patch({"brand": " Cisco "}) == {"brand": "Cisco"}

    def test_none_values_are_ignored(self):
        assert clean_ird_patch({"name": None, "model": None}) == {}

    def test_blank_required_field_rejected(self):
        with pytest.raises(InvalidArgumentError):
            clean_ird_patch({"name": " "})

    def test_ip_checked(self):
        with pytest.raises(InvalidArgumentError):
            clean_ird_patch({"admin_ip": "300.0.0.1"})


class TestBuildEquipmentPayload:
    def test_defaults_brand_and_model(self):
        payload = build_equipment_payload(
            {"id": "ird-1", "name": "IRD-1", "admin_ip": "10.0.0.5", "brand": "", "model": ""},
            "type-1",
        )
        assert payload == {
            "name": "IRD-1",
            "brand": "N/A",
            "model": "N/A",
            "equipment_type_ref": "type-1",
            "management_ip": "10.0.0.5",
            "ird_ref": "ird-1",
        }

    def test_copies_brand_and_model(self):
        payload = build_equipment_payload(
            {"id": "x", "name": "n", "admin_ip": "", "brand": "Motorola", "model": "DSR-4410"},
            "t",
        )
        assert payload["brand"] == "Motorola"
        assert payload["model"] == "DSR-4410"
        assert payload["management_ip"] is None


class TestConflictFromDuplicate:
    def test_compound_index_names_both_fields(self):
        exc = DuplicateKeyError(
            Collection.IRD, "irds_name_admin_ip_key", {"name": "IRD-1", "admin_ip": "10.0.0.5"}
        )
        conflict = conflict_from_duplicate(exc)

        assert isinstance(conflict, ConflictError)
        assert conflict.status_code == 409
        assert conflict.fields == ["name", "adminIp"]
        assert conflict.detail == {"name": "IRD-1", "adminIp": "10.0.0.5"}
        assert 'name "IRD-1" and adminIp "10.0.0.5"' in conflict.message

    def test_single_field(self):
        exc = DuplicateKeyError(Collection.CONTACT, "contacts_email_key", {"email": "a@b.c"})
        conflict = conflict_from_duplicate(exc)
        assert conflict.fields == ["email"]
        assert "contact" in conflict.message

    def test_unknown_index(self):
        conflict = conflict_from_duplicate(DuplicateKeyError(Collection.EQUIPMENT, "mystery", {}))
        assert conflict.fields == []
        assert "mystery" in conflict.message


def test_store_failure_maps_generic_errors_to_persistence():
    assert isinstance(store_failure(StoreError("connection reset")), PersistenceError)
    assert isinstance(
        store_failure(DuplicateKeyError(Collection.IRD, "i", {"name": "a"})), ConflictError
    )
