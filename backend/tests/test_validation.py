"""
Input validation for application forms and inspection payloads.
"""

from datetime import datetime

import pytest

from conftest import application_payload, store_payload
from halalcert.errors import ValidationError
from halalcert.validation import (
    validate_application_fields,
    validate_employee_count,
    validate_evidence_refs,
    validate_geolocation,
    validate_payment_reference,
    validate_store_fields,
)


class TestStoreFields:

    def test_normalizes_owner_email(self):
        fields = validate_store_fields(store_payload(owner_email="  Amina@AlNoor.Example "))
        assert fields["owner_email"] == "amina@alnoor.example"

    def test_business_type_is_case_insensitive(self):
        assert validate_store_fields(store_payload(business_type="Butcher"))["business_type"] == "butcher"

    @pytest.mark.parametrize("overrides,message", [
        ({"abn": "1234567890A"}, "ABN"),
        ({"business_type": "casino"}, "business type"),
        ({"established": "2999"}, "Established"),
        ({"owner_email": "amina.example"}, "Owner email"),
        ({"owner_phone": "call me"}, "Owner phone"),
        ({"city": "M3lbourne"}, "City"),
        ({"address": "short"}, "Address"),
        ({"name": ""}, "Business name"),
    ])
    def test_rejects(self, overrides, message):
        with pytest.raises(ValidationError, match=message):
            validate_store_fields(store_payload(**overrides))

    def test_established_is_optional(self):
        data = store_payload()
        del data["established"]
        assert validate_store_fields(data)["established"] is None


class TestApplicationFields:

    def test_keeps_declared_order(self):
        fields = validate_application_fields(application_payload(products=[" Tea ", "Dates", "Honey"]))
        assert fields["products"] == ["Tea", "Dates", "Honey"]

    def test_too_many_products(self):
        with pytest.raises(ValidationError, match="Maximum 50"):
            validate_application_fields(application_payload(products=[f"Item {i}" for i in range(51)]))

    def test_supplier_certified_must_be_boolean(self):
        suppliers = [{"name": "Farm Fresh", "material": "Chicken", "certified": "yes"}]
        with pytest.raises(ValidationError, match="certified"):
            validate_application_fields(application_payload(suppliers=suppliers))

    @pytest.mark.parametrize("value,expected", [("1-5", "1-5"), ("50+", "50+"), (12, "12"), ("30", "30")])
    def test_employee_count_accepts_bands_and_numbers(self, value, expected):
        assert validate_employee_count(value) == expected

    @pytest.mark.parametrize("value", [0, -3, "many", True, None])
    def test_employee_count_rejects(self, value):
        with pytest.raises(ValidationError):
            validate_employee_count(value)


class TestEvidenceAndPayment:

    def test_maps_slots_to_columns_and_skips_blanks(self):
        columns = validate_evidence_refs({"business_license": "12", "floor_plan": ""})
        assert columns == {"business_license_ref": "12"}

    @pytest.mark.parametrize("value", ["pi_3Nx", "demo_pi_123", None, ""])
    def test_payment_reference_accepted(self, value):
        validate_payment_reference(value)

    def test_payment_reference_rejected(self):
        with pytest.raises(ValidationError):
            validate_payment_reference("ch_123")


class TestGeolocation:

    def test_no_fix(self):
        assert validate_geolocation({}) is None
        assert validate_geolocation({"accuracy": 5}) is None

    def test_parses_point(self):
        point = validate_geolocation({"latitude": "-37.81", "longitude": 144.96, "timestamp": "2026-11-02T10:00:00Z"})
        assert point.latitude == -37.81
        assert point.captured_at.hour == 10

    def test_epoch_millisecond_timestamp(self):
        point = validate_geolocation({"latitude": -37.81, "longitude": 144.96, "timestamp": 1760000000000})
        assert point.captured_at == datetime(2025, 10, 9, 8, 53, 20)

    @pytest.mark.parametrize("data", [
        {"latitude": 91, "longitude": 0},
        {"latitude": 0, "longitude": 181},
        {"latitude": "north", "longitude": 0},
        {"latitude": 0, "longitude": 0, "accuracy": 5000},
        {"latitude": 0, "longitude": 0, "timestamp": "yesterday"},
        {"latitude": 0, "longitude": 0, "timestamp": True},
        {"latitude": 0, "longitude": 0, "timestamp": ["2026-11-02"]},
    ])
    def test_rejects(self, data):
        with pytest.raises(ValidationError):
            validate_geolocation(data)
