"""
Region Designer Kernel — Layout Tree

The aggregate that owns the root region of one editing session.
Provides lookup, id generation, and every structural edit the editor can make:
split, wrap/unwrap, remove (with collapse), reorder, resize, and widget
placement.

Conventions:
- A stale id (region or widget no longer in the tree) is a silent no-op that
  returns None. The UI can race the model during drag interactions.
- A request that would break the tree's shape raises InvalidStructure.
- Every method leaves the tree valid when it returns or raises. Checks happen
  before the first write.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

from designer.kernel.errors import InvalidStructure, RegionNotFound
from designer.kernel.types import (
    CENTER,
    DIRECTIONS,
    EAST,
    HORIZONTAL,
    PAGE_MODE,
    PLACEHOLDER_WIDGET_PREFIX,
    REGION_PREFIXES,
    SOUTH,
    TEMPLATE_MODE,
    VERTICAL,
    Region,
    Widget,
    counter_suffix,
    orientation_for,
)

if TYPE_CHECKING:
    from lxml import etree

    from designer.kernel.overlay import PageOverlay

logger = logging.getLogger(__name__)


class LayoutTree:
    """
    One template's (or page's) region tree plus the counters used to name
    new nodes. Counters belong to the instance and restart on every load.
    """

    def __init__(self, root: Region | None = None, mode: str = TEMPLATE_MODE):
        if mode not in REGION_PREFIXES:
            raise ValueError(f"Unknown tree mode: {mode}")
        self.root = root
        self.mode = mode
        self.region_id_counter = 1
        self.widget_id_counter = 1
        self.overlay: PageOverlay | None = None

    @property
    def region_prefix(self) -> str:
        return REGION_PREFIXES[self.mode]

    @property
    def is_page(self) -> bool:
        return self.mode == PAGE_MODE

    # -- traversal --

    def iter_regions(self) -> Iterator[Region]:
        """Depth-first, pre-order, children in stored order."""
        if self.root is not None:
            yield from _walk(self.root)

    def find_region(self, region_id: str) -> Region | None:
        for region in self.iter_regions():
            if region.id == region_id:
                return region
        return None

    def find_region_owning_widget(self, widget_id: str) -> Region | None:
        for region in self.iter_regions():
            for widget in region.widgets:
                if widget.id == widget_id:
                    return region
        return None

    def find_widget(self, widget_id: str) -> Widget | None:
        region = self.find_region_owning_widget(widget_id)
        if region is None:
            return None
        return region.widgets[region.index_of_widget(widget_id)]

    def get_widget_by_name(self, name: str) -> Widget | None:
        """Case-insensitive lookup by widget name. Last match wins."""
        found = None
        for region in self.iter_regions():
            for widget in region.widgets:
                if isinstance(widget.name, str) and widget.name.upper() == name.upper():
                    found = widget
        return found

    def contains_region_id(self, region_id: str) -> bool:
        return self.find_region(region_id) is not None

    def region_position(self, region_id: str) -> int:
        """Index of a region among its siblings, -1 if unknown or root."""
        region = self.find_region(region_id)
        if region is None or region.parent is None:
            return -1
        return region.parent.index_of_child(region_id)

    def all_region_ids(self) -> list[str]:
        return [r.id for r in self.iter_regions()]

    def all_widget_ids(self) -> list[str]:
        return [w.id for r in self.iter_regions() for w in r.widgets]

    # -- id generation --

    def note_region_id(self, region_id: str) -> None:
        """Keep the region counter ahead of an id that came from the server."""
        suffix = counter_suffix(region_id, self.region_prefix)
        if suffix is not None and suffix >= self.region_id_counter:
            self.region_id_counter = suffix + 1

    def note_widget_id(self, widget_id: str) -> None:
        suffix = counter_suffix(widget_id, PLACEHOLDER_WIDGET_PREFIX)
        if suffix is not None and suffix >= self.widget_id_counter:
            self.widget_id_counter = suffix + 1

    def new_region_id(self) -> str:
        taken = set(self.all_region_ids())
        while True:
            region_id = f"{self.region_prefix}{self.region_id_counter}"
            self.region_id_counter += 1
            if region_id not in taken:
                return region_id

    def new_widget_id(self) -> str:
        taken = set(self.all_widget_ids())
        while True:
            widget_id = f"{PLACEHOLDER_WIDGET_PREFIX}{self.widget_id_counter}"
            self.widget_id_counter += 1
            if widget_id not in taken:
                return widget_id

    def new_region(self, orientation: str = VERTICAL, style: dict[str, str] | None = None) -> Region:
        """A detached empty region. Regions made while editing a page belong to the page."""
        return Region(
            id=self.new_region_id(),
            orientation=orientation,
            style=dict(style or {}),
            is_page_level_addition=self.is_page,
        )

    def create_widget(
        self,
        definition_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
        properties: dict[str, Any] | None = None,
    ) -> Widget:
        """A detached widget with a placeholder id, ready for add_widget()."""
        return Widget(
            id=self.new_widget_id(),
            definition_id=definition_id,
            name=name,
            description=description,
            properties=dict(properties or {}),
        )

    # -- region edits --

    def add_region(self, region_id: str, direction: str) -> Region | None:
        """
        Split a region to make room for a new empty one on one side.

        north/south stack the new region above/below, east/west put it
        left/right. Returns the target region, now a container; the new empty
        region is one of its children.
        """
        if direction not in DIRECTIONS:
            raise ValueError(f"Unknown direction: {direction}")

        target = self.find_region(region_id)
        if target is None:
            logger.debug("add_region: region %s not found", region_id)
            return None

        if direction == CENTER:
            self.wrap_region(region_id)
            return target

        self._authorize(target)

        orientation = orientation_for(direction)
        append = direction in (SOUTH, EAST)
        added = self.new_region()

        if target.children:
            if orientation != target.orientation:
                # Keep the grandchildren laid out as before inside an intermediate region
                wrapper = self.new_region(orientation=target.orientation)
                moved, target.children = target.children, []
                for child in moved:
                    wrapper.attach_region(child)
                target.attach_region(wrapper)
                target.orientation = orientation
            target.attach_region(added, None if append else 0)
        else:
            carrier = self.new_region(orientation=target.orientation, style=target.style)
            carrier.overridable = target.overridable
            moved_widgets, target.widgets = target.widgets, []
            for widget in moved_widgets:
                carrier.attach_widget(widget)
            target.orientation = orientation
            for child in ((carrier, added) if append else (added, carrier)):
                target.attach_region(child)

        target.overridable = True
        self._record(target)
        logger.debug("add_region: %s split %s, new region %s", region_id, direction, added.id)
        return target

    def wrap_region(self, region_id: str) -> Region | None:
        """
        Move all of a region's content into a single new child region.
        Returns the new child.
        """
        target = self.find_region(region_id)
        if target is None:
            logger.debug("wrap_region: region %s not found", region_id)
            return None
        self._authorize(target)

        inner = self.new_region(orientation=target.orientation, style=target.style)
        inner.overridable = target.overridable
        children, target.children = target.children, []
        widgets, target.widgets = target.widgets, []
        for child in children:
            inner.attach_region(child)
        for widget in widgets:
            inner.attach_widget(widget)
        target.attach_region(inner)

        self._record(target)
        return inner

    def unwrap_region(self, region_id: str) -> Region | None:
        """Inverse of wrap_region: a single-child container absorbs its child."""
        target = self.find_region(region_id)
        if target is None:
            logger.debug("unwrap_region: region %s not found", region_id)
            return None
        if len(target.children) != 1:
            raise InvalidStructure(
                f"Region '{region_id}' has {len(target.children)} sub-regions, unwrap needs exactly one"
            )
        self._authorize(target)

        only = target.children[0]
        target.children = []
        _absorb(target, only, only.orientation)

        self._record(target)
        return target

    def remove_region(self, region_id: str, delete_content: bool = True) -> Region | None:
        """
        Delete a region. Returns the removed region.

        With delete_content its sub-regions and widgets go with it. Without,
        the content moves up: sub-regions are spliced into the parent where
        the region was, widgets go to the parent once it is a leaf again.
        Keeping widgets while the parent keeps other sub-regions (a sibling
        that is a container, or more than one sibling) raises InvalidStructure.

        A parent left with a single child is collapsed: it takes over the
        surviving sibling's sub-regions or widgets, becomes vertical, and
        merges the sibling's style over its own (last write wins). A parent
        losing its only child takes that child's orientation.
        """
        region = self.find_region(region_id)
        if region is None:
            logger.debug("remove_region: region %s not found", region_id)
            return None

        keep_children = not delete_content and bool(region.children)
        keep_widgets = not delete_content and bool(region.widgets)

        parent = region.parent
        if parent is None:
            if keep_children or keep_widgets:
                raise InvalidStructure(f"Cannot keep the content of root region '{region_id}': it has no parent")
            self._authorize(region)
            self.root = None
            logger.debug("remove_region: removed root %s, tree is empty", region_id)
            return region

        index = parent.index_of_child(region_id)
        siblings = len(parent.children) - 1
        if keep_widgets and siblings > 0:
            survivor = parent.children[1 - index] if siblings == 1 else None
            if survivor is None or not survivor.is_leaf:
                raise InvalidStructure(
                    f"Cannot keep the widgets of region '{region_id}': its parent keeps other sub-regions"
                )
        self._authorize(parent)

        del parent.children[index]
        if keep_children:
            moved_children, region.children = region.children, []
            for offset, child in enumerate(moved_children):
                parent.attach_region(child, index + offset)
            if siblings == 0:
                parent.orientation = region.orientation
        elif siblings == 1:
            sibling = parent.children[0]
            parent.children = []
            _absorb(parent, sibling, VERTICAL)
        elif siblings == 0:
            parent.orientation = region.orientation

        if keep_widgets:
            moved_widgets, region.widgets = region.widgets, []
            for offset, widget in enumerate(moved_widgets):
                parent.attach_widget(widget, offset if index == 0 else None)

        region.parent = None
        self._record(parent)
        return region

    def order_sub_region(self, moved_id: str, index: int) -> Region | None:
        """Move a region to `index` among its own siblings."""
        moved = self.find_region(moved_id)
        if moved is None:
            logger.debug("order_sub_region: region %s not found", moved_id)
            return None
        parent = moved.parent
        if parent is None:
            raise InvalidStructure("The root region has no siblings to reorder against")
        self._authorize(parent)

        del parent.children[parent.index_of_child(moved_id)]
        index = max(0, min(index, len(parent.children)))
        parent.children.insert(index, moved)

        self._record(parent)
        return moved

    def move_region(self, moved_id: str, target_id: str, insert_before: bool = True) -> Region | None:
        """
        Reorder a region next to one of its siblings.

        The target is always a rendered region, so failing to resolve it is a
        caller bug and raises RegionNotFound.
        """
        target = self.find_region(target_id)
        if target is None:
            raise RegionNotFound(f"Target region '{target_id}' not found")
        moved = self.find_region(moved_id)
        if moved is None:
            logger.debug("move_region: region %s not found", moved_id)
            return None
        if moved is target:
            return moved
        parent = target.parent
        if parent is None or moved.parent is not parent:
            raise InvalidStructure(
                f"Region '{moved_id}' and '{target_id}' are not siblings; only sibling order can change"
            )

        index = parent.index_of_child(target_id) + (0 if insert_before else 1)
        if parent.index_of_child(moved_id) < index:
            index -= 1
        return self.order_sub_region(moved_id, index)

    def resize_region(self, region_id: str, size: int | float | str) -> Region | None:
        """
        Set the spatial size of a region along its parent's axis:
        width inside a horizontal parent, height otherwise.
        """
        region = self.find_region(region_id)
        if region is None:
            logger.debug("resize_region: region %s not found", region_id)
            return None
        self._authorize(region)

        horizontal = region.parent is not None and region.parent.orientation == HORIZONTAL
        region.style["width" if horizontal else "height"] = clamp_size(size)

        self._record(region)
        return region

    # -- widget edits --

    def add_widget(
        self,
        widget: Widget,
        region_id: str,
        append: bool = True,
        before_widget_id: str | None = None,
    ) -> Region | None:
        """
        Place a widget in a leaf region. Returns the region.

        Raises InvalidStructure if the region holds sub-regions or the widget
        id is already in the tree.
        """
        region = self.find_region(region_id)
        if region is None:
            logger.debug("add_widget: region %s not found", region_id)
            return None
        if not region.is_widget_allowed():
            raise InvalidStructure(f"Cannot add widget to region '{region_id}': it has sub-regions")
        if self.find_region_owning_widget(widget.id) is not None:
            raise InvalidStructure(f"Widget '{widget.id}' is already placed")
        self._authorize(region)

        region.overridable = True
        index: int | None = None
        if before_widget_id is not None:
            found = region.index_of_widget(before_widget_id)
            index = found if found >= 0 else None
        elif not append:
            index = 0
        region.attach_widget(widget, index)

        self._record(region, widget)
        return region

    def remove_widget(self, widget_id: str) -> Widget | None:
        """Take a widget out of its region. The region stays, possibly empty."""
        region = self.find_region_owning_widget(widget_id)
        if region is None:
            logger.debug("remove_widget: widget %s not found", widget_id)
            return None
        self._authorize(region)

        widget = region.widgets.pop(region.index_of_widget(widget_id))
        widget.owner_region_id = None

        self._record(region)
        return widget

    def order_widget(
        self,
        widget_id: str,
        from_region_id: str,
        to_region_id: str,
        position: int,
    ) -> Widget | None:
        """
        Move a widget to `position` in another (or the same) region's list.
        The same Widget object moves; nothing is copied.
        """
        source = self.find_region(from_region_id)
        target = self.find_region(to_region_id)
        if source is None or target is None:
            logger.debug("order_widget: region %s or %s not found", from_region_id, to_region_id)
            return None
        index = source.index_of_widget(widget_id)
        if index < 0:
            logger.debug("order_widget: widget %s not in region %s", widget_id, from_region_id)
            return None
        if not target.is_widget_allowed():
            raise InvalidStructure(f"Cannot move widget into region '{to_region_id}': it has sub-regions")

        limit = len(target.widgets) - (1 if source is target else 0)
        if position < 0 or position > limit:
            logger.debug("order_widget: position %s out of range for region %s", position, to_region_id)
            return None
        self._authorize(source)
        self._authorize(target)

        widget = source.widgets.pop(index)
        target.attach_widget(widget, position)

        self._record(source)
        self._record(target, widget)
        return widget

    def remove_widget_parent_region(self, widget_id: str, delete_content: bool = True) -> Region | None:
        region = self.find_region_owning_widget(widget_id)
        if region is None:
            logger.debug("remove_widget_parent_region: widget %s not found", widget_id)
            return None
        return self.remove_region(region.id, delete_content)

    # -- integrity --

    def check_invariants(self) -> list[str]:
        """Return a description of every structural violation. Empty list = valid."""
        problems: list[str] = []
        seen_regions: set[str] = set()
        seen_widgets: set[str] = set()

        if self.root is not None and self.root.parent is not None:
            problems.append(f"Root '{self.root.id}' has a parent")

        for region in self.iter_regions():
            if region.id in seen_regions:
                problems.append(f"Duplicate region id '{region.id}'")
            seen_regions.add(region.id)

            if region.children and region.widgets:
                problems.append(f"Region '{region.id}' has both sub-regions and widgets")

            for child in region.children:
                if child.parent is not region:
                    problems.append(f"Region '{child.id}' has a stale parent link")

            for widget in region.widgets:
                if widget.id in seen_widgets:
                    problems.append(f"Duplicate widget id '{widget.id}'")
                seen_widgets.add(widget.id)
                if widget.owner_region_id != region.id:
                    problems.append(f"Widget '{widget.id}' names owner '{widget.owner_region_id}', held by '{region.id}'")

        return problems

    # -- XML projection --

    def to_xml(self, document: etree._Element | None = None, *, strip_placeholders: bool = False) -> str:
        from designer.kernel.codec import serialize_template

        return serialize_template(self, document, strip_placeholders=strip_placeholders)

    # -- page overlay hooks --

    def _authorize(self, region: Region) -> None:
        if self.overlay is not None:
            self.overlay.authorize(region)

    def _record(self, region: Region, widget: Widget | None = None) -> None:
        if self.overlay is not None:
            self.overlay.record(region, widget)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _walk(region: Region) -> Iterator[Region]:
    yield region
    for child in region.children:
        yield from _walk(child)


def _absorb(parent: Region, child: Region, orientation: str) -> None:
    """Reparent a detached child's sub-regions or widgets onto `parent`."""
    for grandchild in child.children:
        parent.attach_region(grandchild)
    for widget in child.widgets:
        parent.attach_widget(widget)
    child.children = []
    child.widgets = []
    child.parent = None
    parent.orientation = orientation
    parent.style.update(child.style)


def clamp_size(size: int | float | str) -> str:
    """
    Normalize a size for the style bag.

    Examples:
      clamp_size(120)      → "120px"
      clamp_size("-4px")   → "0px"
      clamp_size("50%")    → "50%"
    """
    if isinstance(size, (int, float)):
        if not math.isfinite(size):
            raise ValueError(f"Size must be finite: {size}")
        return f"{max(0, int(size))}px"
    text = size.strip()
    number = text[:-2] if text.endswith("px") else text
    try:
        return f"{max(0, int(float(number)))}px"
    except (ValueError, OverflowError):
        return text
