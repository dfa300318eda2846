from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from .errors import ValidationError
from .time_utils import parse_iso_datetime, utcnow


ABN_RE = re.compile(r"^\d{11}$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_RE = re.compile(r"^\+?[\d\s\-()]+$")
POSTCODE_RE = re.compile(r"^[A-Z0-9\s-]{3,10}$", re.IGNORECASE)
STORE_NAME_RE = re.compile(r"^[a-zA-Z0-9\s\-'&.()]+$")
PLACE_NAME_RE = re.compile(r"^[a-zA-Z\s\-']+$")
YEAR_RE = re.compile(r"^\d{4}$")
SIGNATURE_RE = re.compile(r"^data:image/[a-zA-Z]+;base64,")
PAYMENT_REFERENCE_RE = re.compile(r"^(demo_)?pi_[a-zA-Z0-9_]+$")

BUSINESS_TYPES = {
    "restaurant", "grocery", "butcher", "bakery", "cafe",
    "food_truck", "catering", "supermarket", "other",
}
EMPLOYEE_COUNT_BANDS = {"1-5", "6-10", "11-25", "26-50", "50+"}
PHOTO_TYPES = {"exterior", "interior", "kitchen", "storage", "signage", "documentation", "other"}

# Evidence slots on an application (key -> Application column)
EVIDENCE_SLOTS = {
    "business_license": "business_license_ref",
    "floor_plan": "floor_plan_ref",
    "supplier_certificates": "supplier_certificates_ref",
    "additional_documents": "additional_documents_ref",
}

MAX_PRODUCTS = 50
MAX_SUPPLIERS = 20
MAX_NOTES_LENGTH = 2000


@dataclass(frozen=True)
class GeoPoint:
    """Geolocation snapshot captured by an inspector's device. Metadata only."""
    latitude: float
    longitude: float
    accuracy: float | None = None
    captured_at: datetime | None = None


def require_text(data: dict, key: str, *, min_len: int = 1, max_len: int = 500,
                 pattern: re.Pattern | None = None, label: str | None = None) -> str:
    label = label or key
    value = data.get(key)
    if value is None or not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{label} is required")
    value = value.strip()
    if len(value) < min_len:
        raise ValidationError(f"{label} must be at least {min_len} characters")
    if len(value) > max_len:
        raise ValidationError(f"{label} must be less than {max_len} characters")
    if pattern is not None and not pattern.match(value):
        raise ValidationError(f"{label} has an invalid format")
    return value


def optional_text(data: dict, key: str, *, max_len: int = 1000, label: str | None = None) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{label or key} must be a string")
    value = value.strip()
    if not value:
        return None
    if len(value) > max_len:
        raise ValidationError(f"{label or key} must be less than {max_len} characters")
    return value


def normalize_email(value: str) -> str:
    return value.strip().lower()


def validate_store_fields(data: dict) -> dict[str, Any]:
    """Validate the business/owner part of an application form. Returns column values."""
    if not isinstance(data, dict):
        raise ValidationError("store details must be an object")

    business_type = require_text(data, "business_type", label="Business type").lower()
    if business_type not in BUSINESS_TYPES:
        raise ValidationError(f"Invalid business type '{business_type}'")

    established = optional_text(data, "established", max_len=4, label="Established year")
    if established is not None:
        if not YEAR_RE.match(established) or not 1800 <= int(established) <= utcnow().year:
            raise ValidationError("Established year must be a 4-digit year not in the future")

    email = require_text(data, "owner_email", max_len=255, pattern=EMAIL_RE, label="Owner email")

    return {
        "name": require_text(data, "name", min_len=2, max_len=200, pattern=STORE_NAME_RE, label="Business name"),
        "address": require_text(data, "address", min_len=10, max_len=500, label="Address"),
        "city": require_text(data, "city", min_len=2, max_len=100, pattern=PLACE_NAME_RE, label="City"),
        "state": require_text(data, "state", min_len=2, max_len=50, pattern=PLACE_NAME_RE, label="State"),
        "postcode": require_text(data, "postcode", min_len=3, max_len=10, pattern=POSTCODE_RE, label="Postcode"),
        "business_type": business_type,
        "abn": validate_abn(data.get("abn")),
        "established": established,
        "owner_name": require_text(data, "owner_name", min_len=2, max_len=100, label="Owner name"),
        "owner_email": normalize_email(email),
        "owner_phone": require_text(data, "owner_phone", min_len=10, max_len=20, pattern=PHONE_RE, label="Owner phone"),
    }


def validate_abn(value: Any) -> str:
    if not isinstance(value, str) or not ABN_RE.match(value.strip()):
        raise ValidationError("ABN must be exactly 11 digits")
    return value.strip()


def validate_products(value: Any) -> list[str]:
    if not isinstance(value, list) or not value:
        raise ValidationError("At least one product must be specified")
    if len(value) > MAX_PRODUCTS:
        raise ValidationError(f"Maximum {MAX_PRODUCTS} products allowed")
    products = []
    for item in value:
        if not isinstance(item, str) or not item.strip():
            raise ValidationError("Product name cannot be empty")
        if len(item.strip()) > 100:
            raise ValidationError("Product name must be less than 100 characters")
        products.append(item.strip())
    return products


def validate_suppliers(value: Any) -> list[dict]:
    if not isinstance(value, list) or not value:
        raise ValidationError("At least one supplier must be specified")
    if len(value) > MAX_SUPPLIERS:
        raise ValidationError(f"Maximum {MAX_SUPPLIERS} suppliers allowed")
    suppliers = []
    for item in value:
        if not isinstance(item, dict):
            raise ValidationError("Each supplier must be an object")
        certified = item.get("certified")
        if not isinstance(certified, bool):
            raise ValidationError("Supplier 'certified' must be true or false")
        suppliers.append({
            "name": require_text(item, "name", min_len=2, max_len=200, label="Supplier name"),
            "material": require_text(item, "material", min_len=2, max_len=100, label="Supplier material"),
            "certified": certified,
        })
    return suppliers


def validate_employee_count(value: Any) -> str:
    if isinstance(value, int) and not isinstance(value, bool) and value > 0:
        return str(value)
    if isinstance(value, str):
        stripped = value.strip()
        if stripped in EMPLOYEE_COUNT_BANDS or (stripped.isdigit() and int(stripped) > 0):
            return stripped
    raise ValidationError(
        f"Invalid employee count. Must be one of: {', '.join(sorted(EMPLOYEE_COUNT_BANDS))} or a positive number"
    )


def validate_application_fields(data: dict) -> dict[str, Any]:
    """Validate the operations part of an application form. Returns column values."""
    if not isinstance(data, dict):
        raise ValidationError("application details must be an object")
    return {
        "products": validate_products(data.get("products")),
        "suppliers": validate_suppliers(data.get("suppliers")),
        "employee_count": validate_employee_count(data.get("employee_count")),
        "operating_hours": require_text(data, "operating_hours", min_len=5, max_len=200, label="Operating hours"),
        "notes": optional_text(data, "notes", max_len=1000, label="Notes"),
    }


def validate_evidence_refs(refs: dict | None) -> dict[str, str]:
    """Map evidence slot names to Application columns. Unknown slots are rejected."""
    if not refs:
        return {}
    if not isinstance(refs, dict):
        raise ValidationError("evidence must be an object keyed by document slot")
    columns = {}
    for slot, ref in refs.items():
        if slot not in EVIDENCE_SLOTS:
            raise ValidationError(
                f"Unknown evidence slot '{slot}'. Must be one of: {', '.join(sorted(EVIDENCE_SLOTS))}"
            )
        if ref is None or ref == "":
            continue
        columns[EVIDENCE_SLOTS[slot]] = str(ref)
    return columns


def validate_payment_reference(value: Any) -> str | None:
    if value is None or value == "":
        return None
    if not isinstance(value, str) or not PAYMENT_REFERENCE_RE.match(value):
        raise ValidationError("Invalid payment reference")
    return value


def _geolocation_timestamp(value: Any) -> datetime | None:
    """Browsers report position timestamps as epoch milliseconds."""
    if isinstance(value, bool):
        raise ValidationError("Location timestamp must be ISO-8601 or epoch milliseconds")
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc).replace(tzinfo=None)
        except (OverflowError, OSError, ValueError):
            raise ValidationError("Location timestamp is out of range")
    return parse_optional_datetime(value, "Location timestamp")


def validate_geolocation(data: dict | None) -> GeoPoint | None:
    """
    Accepts {"latitude", "longitude", "accuracy"?, "timestamp"?}.
    Missing latitude/longitude means no fix was captured.
    """
    if not data:
        return None
    lat = data.get("latitude")
    lng = data.get("longitude")
    if lat is None and lng is None:
        return None
    try:
        lat = float(lat)
        lng = float(lng)
    except (TypeError, ValueError):
        raise ValidationError("latitude and longitude must be numbers")
    if not -90 <= lat <= 90:
        raise ValidationError("Latitude must be between -90 and 90")
    if not -180 <= lng <= 180:
        raise ValidationError("Longitude must be between -180 and 180")

    accuracy = data.get("accuracy", data.get("location_accuracy"))
    if accuracy is not None:
        try:
            accuracy = float(accuracy)
        except (TypeError, ValueError):
            raise ValidationError("Location accuracy must be a number")
        if not 0 <= accuracy <= 1000:
            raise ValidationError("Location accuracy must be between 0 and 1000 metres")

    captured_at = _geolocation_timestamp(data.get("timestamp")) or utcnow()

    return GeoPoint(latitude=lat, longitude=lng, accuracy=accuracy, captured_at=captured_at)


def validate_signature(value: Any) -> str | None:
    if value is None or value == "":
        return None
    if not isinstance(value, str) or not SIGNATURE_RE.match(value):
        raise ValidationError("Invalid digital signature format")
    return value


def validate_photo_type(value: Any) -> str:
    photo_type = (value or "other")
    if not isinstance(photo_type, str) or photo_type not in PHOTO_TYPES:
        raise ValidationError(f"Invalid photo type. Must be one of: {', '.join(sorted(PHOTO_TYPES))}")
    return photo_type


def validate_decision(value: Any) -> str:
    if value not in ("approved", "rejected"):
        raise ValidationError("decision must be 'approved' or 'rejected'")
    return value


def validate_notes(value: Any, *, required: bool = False, max_len: int = MAX_NOTES_LENGTH) -> str | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError("notes are required")
        return None
    if not isinstance(value, str):
        raise ValidationError("notes must be a string")
    if len(value.strip()) > max_len:
        raise ValidationError(f"notes must be less than {max_len} characters")
    return value.strip()


def parse_optional_datetime(value: Any, label: str) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{label} must be an ISO-8601 string")
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{label} must be an ISO-8601 string")
