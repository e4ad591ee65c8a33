"""
Request data → intake dataclasses.

Views call these and hand the results to the services. Everything here raises
the project's ValidationError (400) with a per-field error list.
"""

from ..contact import split_contact
from ..exceptions import ValidationError
from .types import GeoFilter, LineItemData, RegionFilter


def _fail(errors):
    raise ValidationError(
        message="Request validation failed.",
        code="VALIDATION_ERROR",
        detail={"errors": errors},
    )


def _require_object(data):
    if not isinstance(data, dict):
        _fail([{"field": "body", "message": "Request body must be a JSON object."}])
    return data


def parse_int(value, field, minimum=None, required=True):
    if value is None or value == "":
        if required:
            _fail([{"field": field, "message": "This field is required."}])
        return None
    if isinstance(value, bool):
        _fail([{"field": field, "message": "Must be an integer."}])
    try:
        number = int(value)
    except (TypeError, ValueError):
        _fail([{"field": field, "message": "Must be an integer."}])
    if minimum is not None and number < minimum:
        _fail([{"field": field, "message": f"Must be at least {minimum}."}])
    return number


def parse_upload(data, headers=None) -> dict:
    """
    Accepts either a single "contact" (email or phone, guessed) or explicit
    "phone" / "email" keys. The patient id may also come in the X-Guest-Id
    header.
    """
    data = _require_object(data)
    headers = headers or {}
    errors = []

    patient_identifier = str(data.get("patient_identifier") or headers.get("X-Guest-Id") or "").strip()
    if not patient_identifier:
        errors.append({"field": "patient_identifier", "message": "This field is required."})

    file_reference = str(data.get("file_url") or "").strip()
    if not file_reference:
        errors.append({"field": "file_url", "message": "This field is required."})

    if errors:
        _fail(errors)

    contact = split_contact(data.get("contact"))
    order_id = data.get("order_id")

    return {
        "patient_identifier": patient_identifier,
        "file_reference": file_reference,
        "phone": data.get("phone") or contact.phone,
        "email": data.get("email") or contact.email,
        "order_id": parse_int(order_id, "order_id", minimum=1, required=False),
    }


def parse_line_items(data) -> list[LineItemData]:
    raw_items = _require_object(data).get("items")
    if not isinstance(raw_items, list) or not raw_items:
        _fail([{"field": "items", "message": "A non-empty list of items is required."}])

    items = []
    errors = []
    for i, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            errors.append({"field": f"items[{i}]", "message": "Must be an object."})
            continue
        try:
            catalog_item_id = int(raw.get("catalog_item_id"))
        except (TypeError, ValueError):
            errors.append({"field": f"items[{i}].catalog_item_id", "message": "Must be an integer."})
            continue
        quantity = raw.get("quantity", 1)
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            errors.append({"field": f"items[{i}].quantity", "message": "Must be an integer ≥ 1."})
            continue
        items.append(LineItemData(
            catalog_item_id=catalog_item_id,
            quantity=quantity,
            instructions=(raw.get("instructions") or "").strip() or None,
        ))

    if errors:
        _fail(errors)
    return items


def parse_decision(data) -> tuple[str, str]:
    data = _require_object(data)
    status = str(data.get("status") or "").strip()
    if not status:
        _fail([{"field": "status", "message": "This field is required."}])
    return status, str(data.get("rejection_reason") or "").strip()


def parse_id_list(raw) -> list:
    """"1,2,abc" or ["1", "2"] → list of raw ids (validity is the projection's business)."""
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        return list(raw)
    return [part.strip() for part in str(raw).split(",") if part.strip()]


def parse_geo(params):
    return GeoFilter.from_params(
        latitude=params.get("lat"),
        longitude=params.get("lng"),
        radius_km=params.get("radius"),
    )


def parse_region(params) -> RegionFilter:
    return RegionFilter(
        state=params.get("state") or None,
        lga=params.get("lga") or None,
        ward=params.get("ward") or None,
    )


def parse_order_link(data) -> int:
    return parse_int(_require_object(data).get("order_id"), "order_id", minimum=1)
