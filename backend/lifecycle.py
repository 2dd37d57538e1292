"""
Equipment lifecycle rules.

The transition table, the field side effects of entering a status, and the
per-status validation all live here. Nothing in this module touches the
database: callers pass the current column values and the requested overrides
and get back the exact set of column changes to persist.
"""

import re
from typing import Any, Dict, Mapping, Optional

from pydantic.alias_generators import to_camel

from errors import ValidationFailed
from models import ASSIGNEE_FIELDS, AssetStatus


ALLOWED_TRANSITIONS = {
    AssetStatus.IN_STOCK: {AssetStatus.IN_USE, AssetStatus.DAMAGED},
    AssetStatus.IN_USE: {
        AssetStatus.IN_STOCK,
        AssetStatus.DAMAGED,
        AssetStatus.E_WASTE,
        AssetStatus.REMOVED,
    },
    AssetStatus.DAMAGED: {
        AssetStatus.IN_STOCK,
        AssetStatus.E_WASTE,
        AssetStatus.REMOVED,
    },
    AssetStatus.E_WASTE: {AssetStatus.REMOVED},
    AssetStatus.REMOVED: set(),
}

# Statuses a new record may start in
INITIAL_STATUSES = {AssetStatus.IN_STOCK, AssetStatus.IN_USE}

# Columns a caller may write through create/edit/transition
EDITABLE_FIELDS = (
    "asset_id",
    "serial_number",
    "category",
    "model",
    "location",
    "comment",
    "purchase_price",
    "warranty_expiry_date",
    "purchase_date",
    "assignee_name",
    "position",
    "employee_email",
    "phone_number",
    "department",
    "damage_description",
)

TEXT_FIELDS = (
    "asset_id",
    "serial_number",
    "category",
    "model",
    "location",
    "comment",
    "assignee_name",
    "position",
    "employee_email",
    "phone_number",
    "department",
    "damage_description",
)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
NAME_PATTERN = re.compile(r"^[A-Za-z ]+$")
PHONE_PATTERN = re.compile(r"^\d{8,15}$")


def can_transition(source: AssetStatus, target: AssetStatus) -> bool:
    """True when target is reachable from source (same status is always allowed)."""
    return source == target or target in ALLOWED_TRANSITIONS[source]


def normalize_fields(fields: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Clean caller-supplied values: strip text, turn blanks into None.

    The literal "null" in comment is treated as empty, matching what older
    clients send.
    """
    cleaned = {}
    for key, value in fields.items():
        if key in TEXT_FIELDS and isinstance(value, str):
            value = value.strip()
            if value == "" or (key == "comment" and value == "null"):
                value = None
        if key == "employee_email" and value:
            value = value.lower()
        cleaned[key] = value
    return cleaned


def apply_status_side_effects(values: Dict[str, Any], status: AssetStatus) -> Dict[str, Any]:
    """
    Null the fields that have no meaning in the resulting status.

    Assignee fields survive only in In Use, damage_description only in Damaged.
    This runs for transitions and same-status edits alike.
    """
    result = dict(values)
    if status != AssetStatus.IN_USE:
        for name in ASSIGNEE_FIELDS:
            result[name] = None
    if status != AssetStatus.DAMAGED:
        result["damage_description"] = None
    return result


def validate_record(values: Mapping[str, Any], status: AssetStatus) -> None:
    """Raise ValidationFailed for the first field that breaks the rules of status."""
    if not values.get("asset_id"):
        raise ValidationFailed("assetId", "is required")
    if not values.get("category"):
        raise ValidationFailed("category", "is required")

    price = values.get("purchase_price")
    if price is not None and price < 0:
        raise ValidationFailed("purchasePrice", "must not be negative")

    if status == AssetStatus.IN_USE:
        email = values.get("employee_email")
        if not email:
            raise ValidationFailed("employeeEmail", "is required for an asset in use")
        if not EMAIL_PATTERN.match(email):
            raise ValidationFailed("employeeEmail", "invalid email format")

        name = values.get("assignee_name")
        if not name:
            raise ValidationFailed("assigneeName", "is required for an asset in use")
        if len(name) < 2 or not NAME_PATTERN.match(name):
            raise ValidationFailed(
                "assigneeName", "must be at least 2 characters, letters and spaces only"
            )

        phone = values.get("phone_number")
        if phone and not PHONE_PATTERN.match(phone):
            raise ValidationFailed("phoneNumber", "must be 8 to 15 digits")


def plan_new_record(fields: Mapping[str, Any], status: AssetStatus) -> Dict[str, Any]:
    """Column values for a record about to be created in status."""
    if status not in INITIAL_STATUSES:
        raise ValidationFailed(
            "status", f"a new asset must start as '{AssetStatus.IN_STOCK.value}' "
                      f"or '{AssetStatus.IN_USE.value}'"
        )
    values = {name: None for name in EDITABLE_FIELDS}
    values.update(normalize_fields(
        {k: v for k, v in fields.items() if k in EDITABLE_FIELDS}
    ))
    if values.get("purchase_price") is None:
        values["purchase_price"] = 0.0

    values = apply_status_side_effects(values, status)
    validate_record(values, status)
    values["status"] = status.value
    return values


def plan_update(
    current: Mapping[str, Any],
    overrides: Mapping[str, Any],
    target: Optional[AssetStatus] = None,
) -> Dict[str, Any]:
    """
    Work out the stored state after a transition or a field-only edit.

    Args:
        current: Column values of the stored record
        overrides: Caller-supplied values for EDITABLE_FIELDS
        target: Requested status; None (or the current status) means field edit

    Returns:
        The complete resulting state: every EDITABLE_FIELDS column plus
        status. Writing all of it replaces whatever a concurrent writer left
        in the row, so the stored record always matches one plan.

    Raises:
        ValidationFailed: Transition not in the table, or the resulting record
            is invalid for its status
    """
    source = AssetStatus(current["status"])
    target = target or source

    if not can_transition(source, target):
        raise ValidationFailed(
            "status", f"cannot move an asset from '{source.value}' to '{target.value}'"
        )

    unknown = set(overrides) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationFailed(to_camel(sorted(unknown)[0]), "is not an editable field")

    merged = {name: current.get(name) for name in EDITABLE_FIELDS}
    merged.update(normalize_fields(overrides))
    if merged.get("purchase_price") is None:
        merged["purchase_price"] = 0.0

    merged = apply_status_side_effects(merged, target)
    validate_record(merged, target)

    merged["status"] = target.value
    return merged
