"""
Region Designer Kernel — Shared Types

Data classes used across the tree, codec, overlay, and assembly.
These are the contracts that bind the kernel together.

Layout model:
- A Region holds either child Regions (container) or Widgets (leaf), never both.
- A Region with nothing in it is a valid empty leaf.
- `style` is an opaque bag of CSS-like properties, copied around but not
  interpreted except when a region is resized.
- `overridable` / `is_page_level_addition` only matter when a page is edited
  on top of its template.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

VERTICAL = "vertical"
HORIZONTAL = "horizontal"
ORIENTATIONS: set[str] = {VERTICAL, HORIZONTAL}

NORTH = "north"
SOUTH = "south"
EAST = "east"
WEST = "west"
CENTER = "center"
DIRECTIONS: set[str] = {NORTH, SOUTH, EAST, WEST, CENTER}

TEMPLATE_MODE = "template"
PAGE_MODE = "page"
MODES: set[str] = {TEMPLATE_MODE, PAGE_MODE}

# Id namespaces for locally generated nodes
TEMPLATE_REGION_PREFIX = "temp-region-"
PAGE_REGION_PREFIX = "page-region-"
PLACEHOLDER_WIDGET_PREFIX = "pseudo-widget-id-"

REGION_PREFIXES: dict[str, str] = {
    TEMPLATE_MODE: TEMPLATE_REGION_PREFIX,
    PAGE_MODE: PAGE_REGION_PREFIX,
}

PLACEHOLDER_WIDGET_PATTERN = re.compile(r"^" + re.escape(PLACEHOLDER_WIDGET_PREFIX) + r"(\d+)$")

# ---------------------------------------------------------------------------
# Operation type registry
# ---------------------------------------------------------------------------

OPERATION_TYPES: set[str] = {
    # Region
    "region.add",
    "region.remove",
    "region.move",
    "region.wrap",
    "region.unwrap",
    "region.resize",
    # Widget
    "widget.add",
    "widget.remove",
    "widget.order",
}

# Style properties with a known meaning. Anything else in the bag is carried as-is.
KNOWN_STYLE_PROPERTIES: tuple[str, ...] = ("width", "height", "padding", "margin")

# Flags parsed out of the start tag, stored in the style bag next to the CSS values
STYLE_FLAG_FIXED = "fixed"
STYLE_FLAG_NO_AUTO_RESIZE = "noAutoResize"


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class Widget:
    """
    A content placeholder inside a leaf region.

    `id` is server-assigned once persisted; widgets created in the editor
    carry a `pseudo-widget-id-N` placeholder until the next save.
    """

    id: str
    definition_id: str
    owner_region_id: str | None = None
    name: str | None = None
    description: str | None = None
    properties: dict[str, Any] = field(default_factory=dict)
    css_properties: dict[str, Any] = field(default_factory=dict)

    @property
    def is_placeholder(self) -> bool:
        return is_placeholder_widget_id(self.id)


@dataclass
class Region:
    """
    A node of the layout tree.

    `children` and `widgets` are mutually exclusive. `parent` is None only for
    the root and is kept out of equality/repr so comparisons stay structural.
    """

    id: str
    orientation: str = VERTICAL
    children: list[Region] = field(default_factory=list)
    widgets: list[Widget] = field(default_factory=list)
    style: dict[str, str] = field(default_factory=dict)
    overridable: bool = False
    is_page_level_addition: bool = False
    css_class: str | None = None
    attributes: list[tuple[str, str]] = field(default_factory=list)
    parent: Region | None = field(default=None, repr=False, compare=False)

    @property
    def vertical(self) -> bool:
        return self.orientation == VERTICAL

    @property
    def is_container(self) -> bool:
        return len(self.children) > 0

    @property
    def is_leaf(self) -> bool:
        return not self.children

    @property
    def is_root(self) -> bool:
        return self.parent is None

    def is_widget_allowed(self) -> bool:
        """A region can only take widgets while it has no sub-regions."""
        return not self.children

    def attach_region(self, child: Region, index: int | None = None) -> None:
        if index is None:
            self.children.append(child)
        else:
            self.children.insert(index, child)
        child.parent = self

    def attach_widget(self, widget: Widget, index: int | None = None) -> None:
        if index is None:
            self.widgets.append(widget)
        else:
            self.widgets.insert(index, widget)
        widget.owner_region_id = self.id

    def index_of_child(self, region_id: str) -> int:
        for i, child in enumerate(self.children):
            if child.id == region_id:
                return i
        return -1

    def index_of_widget(self, widget_id: str) -> int:
        for i, widget in enumerate(self.widgets):
            if widget.id == widget_id:
                return i
        return -1


@dataclass
class MutationResult:
    """
    Result of applying one layout operation through the dispatcher.
    The dispatcher never throws — it always returns one of these.
    """

    applied: bool
    node: Region | Widget | None = None
    error: str | None = None


@dataclass
class Operation:
    """One layout edit as submitted by the console."""

    type: str
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "payload": self.payload}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Operation:
        return cls(type=d["type"], payload=d.get("payload", {}))


@dataclass
class ApplyResult:
    """Result of applying a batch of operations to a session."""

    applied: list[Operation] = field(default_factory=list)
    rejected: list[tuple[Operation, str]] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def is_placeholder_widget_id(widget_id: str | None) -> bool:
    """Check if a widget id was invented locally and never persisted."""
    return bool(widget_id) and widget_id.startswith(PLACEHOLDER_WIDGET_PREFIX)


def counter_suffix(node_id: str, prefix: str) -> int | None:
    """
    Numeric suffix of a generated id, or None if the id is not in the namespace.

    Examples:
      counter_suffix("temp-region-12", "temp-region-")  → 12
      counter_suffix("header", "temp-region-")          → None
    """
    if not node_id.startswith(prefix):
        return None
    tail = node_id[len(prefix):]
    if not tail.isdigit():
        return None
    return int(tail)


def orientation_for(direction: str) -> str:
    """north/south stack top-to-bottom; east/west sit side by side."""
    return VERTICAL if direction in (NORTH, SOUTH) else HORIZONTAL
