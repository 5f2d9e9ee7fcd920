"""
Region Designer Overlay — Merge & Authorization Tests

A page is its template's tree with the page's saved branches laid over the
regions the template lets it override. Everything else is read-only.
"""

import pytest

from designer.kernel.codec import parse_page_xml, parse_template_xml
from designer.kernel.errors import LoadFailed, OverrideNotAllowed
from designer.kernel.overlay import PageOverlay
from designer.kernel.schema import RegionBranchesDoc, RegionNode, RegionWidgets, WidgetItem
from designer.kernel.tree import LayoutTree
from designer.kernel.types import PAGE_MODE, Region


@pytest.fixture
def page_tree(template_xml):
    return parse_template_xml(template_xml, mode=PAGE_MODE).tree


@pytest.fixture
def overlay(page_tree):
    return PageOverlay(page_tree)


@pytest.fixture
def merged(overlay, page_xml):
    overlay.merge(parse_page_xml(page_xml).branches)
    return overlay


class TestConstruction:
    def test_requires_page_mode(self, template_xml):
        with pytest.raises(ValueError):
            PageOverlay(parse_template_xml(template_xml).tree)

    def test_attaches_to_tree(self, overlay, page_tree):
        assert page_tree.overlay is overlay
        assert overlay.template_overridable_ids == {"temp-region-3"}


class TestMerge:
    def test_branch_replaces_region_content(self, merged):
        tree = merged.tree
        region = tree.find_region("temp-region-3")
        assert [c.id for c in region.children] == ["page-region-1", "page-region-2"]
        assert region.widgets == []
        assert tree.find_widget("1002") is None
        assert tree.check_invariants() == []

    def test_page_widgets_attached(self, merged):
        assert merged.tree.find_region_owning_widget("2001").id == "page-region-2"
        assert merged.page_widget_ids == {"2001"}

    def test_template_content_outside_branches_kept(self, merged):
        assert merged.tree.find_widget("1001").owner_region_id == "header"
        assert merged.tree.find_region("temp-region-7") is not None

    def test_page_regions_flagged(self, merged):
        assert merged.tree.find_region("page-region-1").is_page_level_addition
        assert not merged.tree.find_region("temp-region-3").is_page_level_addition
        assert merged.tree.find_region("temp-region-3").overridable

    def test_counter_passes_page_ids(self, merged):
        assert merged.tree.new_region_id() == "page-region-3"

    def test_overrides_recorded(self, merged):
        assert merged.overridden_region_ids == {"temp-region-3"}
        assert merged.is_override("page-region-2")
        assert not merged.is_override("header")
        assert merged.skipped_region_ids == []

    def test_unknown_branch_skipped(self, overlay):
        overlay.merge(RegionBranchesDoc(regions=[RegionNode(region_id="gone")]))
        assert overlay.skipped_region_ids == ["gone"]
        assert overlay.overridden_region_ids == set()

    def test_non_overridable_branch_skipped(self, overlay):
        overlay.merge(RegionBranchesDoc(regions=[RegionNode(region_id="header")]))
        assert overlay.skipped_region_ids == ["header"]
        assert [w.id for w in overlay.tree.find_region("header").widgets] == ["1001"]

    def test_widgets_outside_overrides_skipped(self, overlay):
        overlay.merge(
            RegionBranchesDoc(
                associations=[
                    RegionWidgets(region_id="temp-region-7", widget_items=[WidgetItem(id="9", definition_id="d")])
                ]
            )
        )
        assert overlay.tree.find_widget("9") is None

    def test_branch_reusing_template_id_fails(self, overlay):
        branch = RegionNode(region_id="temp-region-3", children=[RegionNode(region_id="header")])
        with pytest.raises(LoadFailed):
            overlay.merge(RegionBranchesDoc(regions=[branch]))


class TestAuthorization:
    def test_can_override(self, merged):
        tree = merged.tree
        assert merged.can_override(tree.find_region("temp-region-3"))
        assert merged.can_override(tree.find_region("page-region-1"))
        assert not merged.can_override(tree.find_region("header"))
        assert not merged.can_override(tree.root)

    def test_edit_in_overridable_region(self, merged):
        tree = merged.tree
        tree.add_region("page-region-1", "east")
        assert tree.find_region("page-region-1").children[1].id.startswith("page-region-")
        assert merged.overridden_region_ids == {"temp-region-3"}

    def test_widget_in_overridable_region(self, merged):
        tree = merged.tree
        widget = tree.create_widget("percText")
        tree.add_widget(widget, "page-region-1")
        assert widget.id in merged.page_widget_ids

    def test_edit_outside_raises(self, merged):
        tree = merged.tree
        with pytest.raises(OverrideNotAllowed):
            tree.add_region("header", "south")
        with pytest.raises(OverrideNotAllowed):
            tree.remove_widget("1001")
        with pytest.raises(OverrideNotAllowed):
            tree.remove_region("temp-region-7")
        assert [c.id for c in tree.find_region("body").children] == ["temp-region-3", "temp-region-7"]

    def test_rejected_edit_leaves_region_untouched(self, merged):
        tree = merged.tree
        with pytest.raises(OverrideNotAllowed):
            tree.add_widget(tree.create_widget("percText"), "header")
        header = tree.find_region("header")
        assert not header.overridable
        assert [w.id for w in header.widgets] == ["1001"]

    def test_move_widget_out_of_override_raises(self, merged):
        with pytest.raises(OverrideNotAllowed):
            merged.tree.order_widget("2001", "page-region-2", "header", 0)
        assert merged.tree.find_widget("2001").owner_region_id == "page-region-2"


class TestRecordingWithoutBranches:
    def test_first_edit_anchors_on_template_region(self, overlay):
        tree = overlay.tree
        tree.add_region("temp-region-3", "south")
        new_leaf = tree.find_region("temp-region-3").children[1]
        tree.add_widget(tree.create_widget("percText"), new_leaf.id)

        assert overlay.overridden_region_ids == {"temp-region-3"}
        assert [r.id for r in overlay.override_roots()] == ["temp-region-3"]

    def test_branches_cover_override_roots(self, overlay):
        tree = overlay.tree
        tree.remove_widget("1003")
        branches = overlay.branches()
        assert [n.region_id for n in branches.regions] == ["temp-region-3"]
        assert [a.region_id for a in branches.associations] == ["temp-region-3"]
        assert [i.id for i in branches.associations[0].widget_items] == ["1002"]

    def test_no_edits_no_branches(self, overlay):
        assert overlay.branches() == RegionBranchesDoc()

    def test_empty_tree(self):
        overlay = PageOverlay(LayoutTree(mode=PAGE_MODE))
        assert overlay.override_roots() == []

    def test_page_level_region_without_anchor(self):
        root = Region(id="root")
        tree = LayoutTree(root, mode=PAGE_MODE)
        overlay = PageOverlay(tree)
        root.is_page_level_addition = True
        tree.add_region("root", "east")
        assert overlay.overridden_region_ids == {"root"}
