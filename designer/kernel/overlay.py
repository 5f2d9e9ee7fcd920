"""
Region Designer Kernel — Page Overlay

Editing a page means editing its template's tree with the page's changes laid
on top. The overlay:
  - merges the page's saved region branches onto the template tree
  - decides which regions a page may touch (overridable in the template, or
    added by the page itself)
  - records what the page changed, so save emits only those branches

A branch is always anchored on a region that was overridable in the template,
because that is the only id the server can match a page override against.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

from designer.kernel.codec import (
    apply_node_attributes,
    associations_for,
    node_from_region,
    region_from_node,
    widget_from_item,
)
from designer.kernel.errors import LoadFailed, OverrideNotAllowed
from designer.kernel.schema import RegionBranchesDoc
from designer.kernel.tree import LayoutTree
from designer.kernel.types import PAGE_MODE, Region, Widget

logger = logging.getLogger(__name__)


class PageOverlay:
    def __init__(self, tree: LayoutTree):
        if tree.mode != PAGE_MODE:
            raise ValueError("PageOverlay needs a tree loaded in page mode")
        self.tree = tree
        # Anchors: regions the template itself lets pages replace
        self.template_overridable_ids: set[str] = {r.id for r in tree.iter_regions() if r.overridable}
        self.overridden_region_ids: set[str] = set()
        self.page_widget_ids: set[str] = set()
        self.skipped_region_ids: list[str] = []
        tree.overlay = self

    # -- authorization --

    def can_override(self, region: Region) -> bool:
        """True if the region, or any ancestor, is open to the page."""
        node: Region | None = region
        while node is not None:
            if node.is_page_level_addition or node.id in self.template_overridable_ids:
                return True
            node = node.parent
        return False

    def authorize(self, region: Region) -> None:
        if not self.can_override(region):
            raise OverrideNotAllowed(f"Region '{region.id}' is not overridable on this page")

    # -- tracking --

    def record(self, region: Region, widget: Widget | None = None) -> None:
        """Called by the tree after every accepted mutation."""
        anchor = self._anchor_for(region)
        self.overridden_region_ids.add(anchor.id)
        if widget is not None:
            self.page_widget_ids.add(widget.id)

    def is_override(self, region_id: str) -> bool:
        """True if the region sits inside (or is) a region the page replaced."""
        node = self.tree.find_region(region_id)
        while node is not None:
            if node.id in self.overridden_region_ids:
                return True
            node = node.parent
        return False

    def override_roots(self) -> list[Region]:
        """Topmost overridden regions still in the tree, in tree order."""
        return list(self._override_roots(self.tree.root)) if self.tree.root is not None else []

    def _override_roots(self, region: Region) -> Iterator[Region]:
        if region.id in self.overridden_region_ids:
            yield region
            return
        for child in region.children:
            yield from self._override_roots(child)

    def _anchor_for(self, region: Region) -> Region:
        node: Region | None = region
        while node is not None:
            if node.id in self.template_overridable_ids:
                return node
            node = node.parent
        return region

    # -- load --

    def merge(self, branches: RegionBranchesDoc) -> None:
        """
        Lay a page's saved branches over the template tree.

        Pass 1 replaces the content of each overridable region named by a
        branch. Pass 2 attaches the page's widgets. Branches and widgets that
        no longer fit the template are skipped with a warning: templates
        change under pages, and a stale override must not block the page.
        """
        tree = self.tree

        # Pass 1: regions
        for node in branches.regions:
            region = tree.find_region(node.region_id)
            if region is None:
                logger.warning("Skipping page branch for unknown region %s", node.region_id)
                self.skipped_region_ids.append(node.region_id)
                continue
            if not self.can_override(region):
                logger.warning("Skipping page branch for non-overridable region %s", node.region_id)
                self.skipped_region_ids.append(node.region_id)
                continue

            was_overridable = region.overridable
            for child in region.children:
                child.parent = None
            region.children = []
            region.widgets = []
            apply_node_attributes(region, node)
            region.overridable = region.overridable or was_overridable
            for child in node.children:
                region_from_node(child, tree, region)
            self.overridden_region_ids.add(region.id)

        ids = tree.all_region_ids()
        if len(ids) != len(set(ids)):
            raise LoadFailed("Page branches reuse region ids already present in the template")

        # Pass 2: widgets
        unnamed: list[Widget] = []
        for assoc in branches.associations:
            region = tree.find_region(assoc.region_id)
            if region is None or not self.is_override(region.id):
                logger.warning("Skipping page widgets for region %s outside any override", assoc.region_id)
                continue
            if not region.is_widget_allowed():
                logger.warning("Skipping page widgets for region %s, which has sub-regions", assoc.region_id)
                continue
            for item in assoc.widget_items:
                widget = widget_from_item(item)
                if not widget.id:
                    unnamed.append(widget)
                elif tree.find_region_owning_widget(widget.id) is not None:
                    logger.warning("Skipping duplicate page widget %s", widget.id)
                    continue
                else:
                    tree.note_widget_id(widget.id)
                    self.page_widget_ids.add(widget.id)
                region.attach_widget(widget)

        for widget in unnamed:
            widget.id = tree.new_widget_id()
            self.page_widget_ids.add(widget.id)

        logger.debug(
            "Merged %d page branches (%d skipped)",
            len(branches.regions) - len(self.skipped_region_ids),
            len(self.skipped_region_ids),
        )

    # -- save --

    def branches(self, *, strip_placeholders: bool = False) -> RegionBranchesDoc:
        """What a page save writes: each override root with its full content."""
        roots = self.override_roots()
        associations = []
        for region in roots:
            associations.extend(associations_for(region, strip_placeholders=strip_placeholders))
        return RegionBranchesDoc(
            regions=[node_from_region(region) for region in roots],
            associations=associations,
        )
