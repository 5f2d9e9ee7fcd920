"""
Region Designer Kernel — Operation Dispatch

(tree, type, payload) → MutationResult

The console's event handlers submit edits as {type, payload} operations. This
module validates them, routes them to the LayoutTree, and turns every outcome
into a MutationResult. It never raises for bad input: stale ids come back as
*_NOT_FOUND, shape violations as INVALID_STRUCTURE / OVERRIDE_NOT_ALLOWED.

Error codes: UNKNOWN_OPERATION, INVALID_PAYLOAD, REGION_NOT_FOUND,
WIDGET_NOT_FOUND, INVALID_POSITION, INVALID_STRUCTURE, OVERRIDE_NOT_ALLOWED.
"""

from __future__ import annotations

import logging
from typing import Any

from designer.kernel.errors import InvalidStructure, OverrideNotAllowed, RegionNotFound
from designer.kernel.primitives import validate_operation
from designer.kernel.tree import LayoutTree
from designer.kernel.types import MutationResult, Region, Widget

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def apply_operation(tree: LayoutTree, type: str, payload: dict[str, Any]) -> MutationResult:
    """
    Apply one operation to the tree in place.
    On rejection the tree is left exactly as it was.
    """
    handler = _HANDLERS.get(type)
    if handler is None:
        return _reject("UNKNOWN_OPERATION", type)

    errors = validate_operation(type, payload)
    if errors:
        return _reject("INVALID_PAYLOAD", "; ".join(errors))

    try:
        return handler(tree, payload)
    except RegionNotFound as e:
        return _reject("REGION_NOT_FOUND", str(e))
    except OverrideNotAllowed as e:
        return _reject("OVERRIDE_NOT_ALLOWED", str(e))
    except InvalidStructure as e:
        return _reject("INVALID_STRUCTURE", str(e))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _reject(code: str, msg: str) -> MutationResult:
    logger.debug("Operation rejected: %s: %s", code, msg)
    return MutationResult(applied=False, error=f"{code}: {msg}")


def _ok(node: Region | Widget) -> MutationResult:
    return MutationResult(applied=True, node=node)


def _region_result(node: Region | None, region_id: str) -> MutationResult:
    if node is None:
        return _reject("REGION_NOT_FOUND", f"Region '{region_id}' not found")
    return _ok(node)


# ---------------------------------------------------------------------------
# Region handlers
# ---------------------------------------------------------------------------


def _handle_region_add(tree: LayoutTree, p: dict) -> MutationResult:
    return _region_result(tree.add_region(p["region_id"], p["direction"]), p["region_id"])


def _handle_region_remove(tree: LayoutTree, p: dict) -> MutationResult:
    return _region_result(tree.remove_region(p["region_id"], p.get("delete_content", True)), p["region_id"])


def _handle_region_move(tree: LayoutTree, p: dict) -> MutationResult:
    if "target_id" in p:
        moved = tree.move_region(p["region_id"], p["target_id"], p.get("insert_before", True))
    else:
        moved = tree.order_sub_region(p["region_id"], p["index"])
    return _region_result(moved, p["region_id"])


def _handle_region_wrap(tree: LayoutTree, p: dict) -> MutationResult:
    return _region_result(tree.wrap_region(p["region_id"]), p["region_id"])


def _handle_region_unwrap(tree: LayoutTree, p: dict) -> MutationResult:
    return _region_result(tree.unwrap_region(p["region_id"]), p["region_id"])


def _handle_region_resize(tree: LayoutTree, p: dict) -> MutationResult:
    return _region_result(tree.resize_region(p["region_id"], p["size"]), p["region_id"])


# ---------------------------------------------------------------------------
# Widget handlers
# ---------------------------------------------------------------------------


def _handle_widget_add(tree: LayoutTree, p: dict) -> MutationResult:
    region_id = p["region_id"]
    region = tree.find_region(region_id)
    if region is None:
        return _reject("REGION_NOT_FOUND", f"Region '{region_id}' not found")
    # Checked before create_widget so a rejection does not use up a placeholder id
    if not region.is_widget_allowed():
        raise InvalidStructure(f"Cannot add widget to region '{region_id}': it has sub-regions")
    if tree.overlay is not None:
        tree.overlay.authorize(region)

    widget = tree.create_widget(
        p["definition_id"],
        name=p.get("name"),
        description=p.get("description"),
        properties=p.get("properties"),
    )
    tree.add_widget(
        widget,
        region_id,
        append=p.get("append", True),
        before_widget_id=p.get("before_widget_id"),
    )
    return _ok(widget)


def _handle_widget_remove(tree: LayoutTree, p: dict) -> MutationResult:
    widget = tree.remove_widget(p["widget_id"])
    if widget is None:
        return _reject("WIDGET_NOT_FOUND", f"Widget '{p['widget_id']}' not found")
    return _ok(widget)


def _handle_widget_order(tree: LayoutTree, p: dict) -> MutationResult:
    widget = tree.order_widget(p["widget_id"], p["from_region_id"], p["to_region_id"], p["position"])
    if widget is not None:
        return _ok(widget)

    # Work out which part of the request was stale
    for key in ("from_region_id", "to_region_id"):
        if tree.find_region(p[key]) is None:
            return _reject("REGION_NOT_FOUND", f"Region '{p[key]}' not found")
    source = tree.find_region(p["from_region_id"])
    if source.index_of_widget(p["widget_id"]) < 0:
        return _reject("WIDGET_NOT_FOUND", f"Widget '{p['widget_id']}' not in region '{p['from_region_id']}'")
    return _reject("INVALID_POSITION", f"Position {p['position']} out of range for region '{p['to_region_id']}'")


# ---------------------------------------------------------------------------
# Handler dispatch table
# ---------------------------------------------------------------------------

_HANDLERS: dict[str, Any] = {
    "region.add": _handle_region_add,
    "region.remove": _handle_region_remove,
    "region.move": _handle_region_move,
    "region.wrap": _handle_region_wrap,
    "region.unwrap": _handle_region_unwrap,
    "region.resize": _handle_region_resize,
    "widget.add": _handle_widget_add,
    "widget.remove": _handle_widget_remove,
    "widget.order": _handle_widget_order,
}
