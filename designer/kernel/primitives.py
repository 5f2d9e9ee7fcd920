"""
Region Designer Kernel — Operation Validation

Validates operation payloads before they reach the tree.
Every layout edit the console submits goes through one of 9 operation types.
Validation is structural (well-formed?) not semantic (will it apply?).
The dispatcher and the tree handle semantic checks (does the region exist?
is it a leaf? may the page touch it?).
"""

from __future__ import annotations

import math
from typing import Any

from designer.kernel.types import DIRECTIONS, OPERATION_TYPES

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def validate_operation(type: str, payload: dict[str, Any]) -> list[str]:
    """
    Validate an operation's type and payload structure.
    Returns a list of error strings. Empty list = valid.

    This checks structural validity only:
    - Is the type recognized?
    - Is the payload a dict?
    - Are required fields present and of the right kind?

    It does NOT check whether referenced regions/widgets exist.
    """
    errors: list[str] = []

    if type not in OPERATION_TYPES:
        errors.append(f"Unknown operation type: {type}")
        return errors

    if not isinstance(payload, dict):
        errors.append("Payload must be a non-null object")
        return errors

    validator = _VALIDATORS.get(type)
    if validator:
        errors.extend(validator(type, payload))

    return errors


# ---------------------------------------------------------------------------
# Field checks
# ---------------------------------------------------------------------------


def _require_id(op: str, p: dict, key: str) -> list[str]:
    if key not in p:
        return [f"{op} requires '{key}'"]
    if not isinstance(p[key], str) or not p[key]:
        return [f"'{key}' must be a non-empty string"]
    return []


def _optional_id(p: dict, key: str) -> list[str]:
    if key in p and p[key] is not None and (not isinstance(p[key], str) or not p[key]):
        return [f"'{key}' must be a non-empty string"]
    return []


def _optional_bool(p: dict, key: str) -> list[str]:
    if key in p and not isinstance(p[key], bool):
        return [f"'{key}' must be a boolean"]
    return []


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_finite_size(size: int | float | str) -> bool:
    """Strings that are not numbers at all ("50%", "auto") pass through as CSS."""
    if isinstance(size, str):
        text = size.strip()
        number = text[:-2] if text.endswith("px") else text
        try:
            size = float(number)
        except ValueError:
            return True
    return math.isfinite(size)


# ---------------------------------------------------------------------------
# Per-operation validators
# ---------------------------------------------------------------------------


def _validate_region_only(op: str, p: dict) -> list[str]:
    return _require_id(op, p, "region_id")


def _validate_region_remove(op: str, p: dict) -> list[str]:
    errors = _require_id(op, p, "region_id")
    errors.extend(_optional_bool(p, "delete_content"))
    return errors


def _validate_region_add(op: str, p: dict) -> list[str]:
    errors = _require_id(op, p, "region_id")
    if "direction" not in p:
        errors.append(f"{op} requires 'direction'")
    elif p["direction"] not in DIRECTIONS:
        errors.append(f"Invalid direction: {p['direction']}. Must be one of {sorted(DIRECTIONS)}")
    return errors


def _validate_region_move(op: str, p: dict) -> list[str]:
    errors = _require_id(op, p, "region_id")
    has_target = "target_id" in p
    has_index = "index" in p
    if not has_target and not has_index:
        errors.append(f"{op} requires 'target_id' or 'index'")
    elif has_target and has_index:
        errors.append(f"{op}: provide only one of 'target_id' or 'index'")
    elif has_target:
        errors.extend(_require_id(op, p, "target_id"))
        errors.extend(_optional_bool(p, "insert_before"))
    elif not _is_int(p["index"]) or p["index"] < 0:
        errors.append("'index' must be a non-negative integer")
    return errors


def _validate_region_resize(op: str, p: dict) -> list[str]:
    errors = _require_id(op, p, "region_id")
    if "size" not in p:
        errors.append(f"{op} requires 'size'")
    else:
        size = p["size"]
        if isinstance(size, bool) or not isinstance(size, (int, float, str)):
            errors.append("'size' must be a number or a CSS length string")
        elif isinstance(size, str) and not size.strip():
            errors.append("'size' must not be empty")
        elif not _is_finite_size(size):
            errors.append("'size' must be finite")
    return errors


def _validate_widget_add(op: str, p: dict) -> list[str]:
    errors = _require_id(op, p, "region_id")
    errors.extend(_require_id(op, p, "definition_id"))
    errors.extend(_optional_id(p, "before_widget_id"))
    errors.extend(_optional_bool(p, "append"))
    for key in ("name", "description"):
        if key in p and p[key] is not None and not isinstance(p[key], str):
            errors.append(f"'{key}' must be a string")
    if "properties" in p and not isinstance(p["properties"], dict):
        errors.append("'properties' must be an object")
    return errors


def _validate_widget_remove(op: str, p: dict) -> list[str]:
    return _require_id(op, p, "widget_id")


def _validate_widget_order(op: str, p: dict) -> list[str]:
    errors = _require_id(op, p, "widget_id")
    errors.extend(_require_id(op, p, "from_region_id"))
    errors.extend(_require_id(op, p, "to_region_id"))
    if "position" not in p:
        errors.append(f"{op} requires 'position'")
    elif not _is_int(p["position"]) or p["position"] < 0:
        errors.append("'position' must be a non-negative integer")
    return errors


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

_VALIDATORS: dict[str, Any] = {
    "region.add": _validate_region_add,
    "region.remove": _validate_region_remove,
    "region.move": _validate_region_move,
    "region.wrap": _validate_region_only,
    "region.unwrap": _validate_region_only,
    "region.resize": _validate_region_resize,
    "widget.add": _validate_widget_add,
    "widget.remove": _validate_widget_remove,
    "widget.order": _validate_widget_order,
}
