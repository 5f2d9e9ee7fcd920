"""
Region Designer Assembly — Round-Trip Tests

Load -> apply operations -> save -> load -> verify the tree matches.
Covers templates, pages on top of templates, and the failure paths: a failed
load never touches an existing session, a failed save leaves the session as
it was.
"""

import pytest
from lxml import etree

from designer.kernel.assembly import LayoutAssembly, MemoryStorage
from designer.kernel.errors import LayoutNotFound, LoadFailed, SaveFailed
from designer.kernel.types import Operation

TEMPLATE_ID = "16777215-101-731"
PAGE_ID = "16777215-101-900"


def shape(region):
    return (
        region.id,
        region.orientation,
        [w.id for w in region.widgets],
        [shape(child) for child in region.children],
    )


class RejectingStorage(MemoryStorage):
    """Reads like MemoryStorage, refuses every write."""

    async def put_template(self, template_id, xml):
        raise SaveFailed(f"Server rejected template {template_id}")

    async def put_page(self, page_id, xml):
        raise SaveFailed(f"Server rejected page {page_id}")


@pytest.fixture
def storage(template_xml, page_xml):
    storage = MemoryStorage()
    storage.templates[TEMPLATE_ID] = template_xml
    storage.pages[PAGE_ID] = page_xml
    return storage


@pytest.fixture
def assembly(storage):
    return LayoutAssembly(storage)


# ============================================================================
# Templates
# ============================================================================


class TestTemplateRoundTrip:
    @pytest.mark.asyncio
    async def test_load(self, assembly):
        session = await assembly.load_template(TEMPLATE_ID)
        assert session.kind == "template"
        assert session.document_id == TEMPLATE_ID
        assert session.overlay is None
        assert session.tree.find_region("body") is not None

    @pytest.mark.asyncio
    async def test_edit_save_load(self, assembly, storage):
        session = await assembly.load_template(TEMPLATE_ID)
        result = assembly.apply(
            session,
            [
                Operation("region.add", {"region_id": "header", "direction": "east"}),
                Operation("region.move", {"region_id": "temp-region-7", "target_id": "temp-region-3"}),
                Operation("widget.order", {
                    "widget_id": "1003", "from_region_id": "temp-region-3",
                    "to_region_id": "temp-region-7", "position": 0,
                }),
                Operation("region.resize", {"region_id": "temp-region-3", "size": 320}),
            ],
        )
        assert len(result.applied) == 4
        assert result.rejected == []
        expected = shape(session.tree.root)

        await assembly.save(session)
        reloaded = await assembly.load_template(TEMPLATE_ID)

        assert shape(reloaded.tree.root) == expected
        assert reloaded.tree.find_region("temp-region-3").style == {"width": "320px"}
        assert reloaded.tree.check_invariants() == []

    @pytest.mark.asyncio
    async def test_partial_application(self, assembly):
        session = await assembly.load_template(TEMPLATE_ID)
        ops = [
            Operation("widget.add", {"region_id": "body", "definition_id": "percImage"}),
            Operation("widget.remove", {"widget_id": "1002"}),
            Operation("region.remove", {"region_id": "ghost"}),
        ]
        result = assembly.apply(session, ops)

        assert result.applied == [ops[1]]
        assert [(op.type, err.split(":")[0]) for op, err in result.rejected] == [
            ("widget.add", "INVALID_STRUCTURE"),
            ("region.remove", "REGION_NOT_FOUND"),
        ]
        assert session.tree.find_widget("1002") is None

    @pytest.mark.asyncio
    async def test_save_strips_placeholder_ids(self, assembly, storage):
        session = await assembly.load_template(TEMPLATE_ID)
        assembly.apply(session, [Operation("widget.add", {"region_id": "temp-region-7", "definition_id": "percImage"})])
        assert session.tree.find_widget("pseudo-widget-id-1") is not None

        await assembly.save(session)

        assert "pseudo-widget-id-1" not in storage.templates[TEMPLATE_ID]
        reloaded = await assembly.load_template(TEMPLATE_ID)
        widgets = reloaded.tree.find_region("temp-region-7").widgets
        assert [w.definition_id for w in widgets] == ["percImage"]
        # Session keeps its placeholder until the next load
        assert session.tree.find_widget("pseudo-widget-id-1") is not None

    @pytest.mark.asyncio
    async def test_unowned_markup_survives_save(self, assembly, storage):
        session = await assembly.load_template(TEMPLATE_ID)
        assembly.apply(session, [Operation("region.remove", {"region_id": "header"})])
        await assembly.save(session)

        saved = etree.fromstring(storage.templates[TEMPLATE_ID].encode("utf-8"))
        assert saved.findtext("cssOverride") == ".banner { color: red; }"
        assert saved.findtext("theme") == "percussion"

    @pytest.mark.asyncio
    async def test_new_template(self, assembly, storage):
        session = assembly.new_template("t-new", name="Landing")
        assembly.apply(session, [Operation("region.add", {"region_id": session.tree.root.id, "direction": "south"})])
        await assembly.save(session)

        reloaded = await assembly.load_template("t-new")
        assert len(reloaded.tree.root.children) == 2
        assert etree.fromstring(storage.templates["t-new"].encode("utf-8")).findtext("name") == "Landing"

    def test_render_xml_does_not_save(self, assembly, storage):
        session = assembly.new_template("t-draft")
        xml = assembly.render_xml(session)
        assert xml.lstrip().startswith("<Template>")
        assert "t-draft" not in storage.templates


class TestTemplateFailures:
    @pytest.mark.asyncio
    async def test_missing_template(self, assembly):
        with pytest.raises(LayoutNotFound):
            await assembly.load_template("nope")

    @pytest.mark.asyncio
    async def test_malformed_template(self, assembly, storage):
        storage.templates["broken"] = "<Template><regionTree>"
        with pytest.raises(LoadFailed):
            await assembly.load_template("broken")

    @pytest.mark.asyncio
    async def test_failed_load_keeps_previous_session(self, assembly, storage):
        session = await assembly.load_template(TEMPLATE_ID)
        before = shape(session.tree.root)
        storage.templates[TEMPLATE_ID] = "<Template/>"

        with pytest.raises(LoadFailed):
            await assembly.load_template(TEMPLATE_ID)
        assert shape(session.tree.root) == before

    @pytest.mark.asyncio
    async def test_failed_save_leaves_session(self, template_xml):
        storage = RejectingStorage()
        storage.templates[TEMPLATE_ID] = template_xml
        assembly = LayoutAssembly(storage)
        session = await assembly.load_template(TEMPLATE_ID)
        assembly.apply(session, [Operation("region.add", {"region_id": "header", "direction": "south"})])
        before = shape(session.tree.root)
        document_before = etree.tostring(session.document)

        with pytest.raises(SaveFailed):
            await assembly.save(session)

        assert shape(session.tree.root) == before
        assert etree.tostring(session.document) == document_before
        assert storage.templates[TEMPLATE_ID] == template_xml


# ============================================================================
# Pages
# ============================================================================


class TestPageRoundTrip:
    @pytest.mark.asyncio
    async def test_load_merges_page_over_template(self, assembly):
        session = await assembly.load_page(PAGE_ID)
        assert session.kind == "page"
        assert session.template_id == TEMPLATE_ID
        assert session.overlay is not None
        assert session.tree.find_region_owning_widget("2001").id == "page-region-2"
        assert session.tree.find_widget("1001") is not None
        assert session.template_document.findtext("name") == "Home"

    @pytest.mark.asyncio
    async def test_edit_save_load(self, assembly, storage, template_xml):
        session = await assembly.load_page(PAGE_ID)
        result = assembly.apply(
            session,
            [
                Operation("widget.add", {"region_id": "page-region-1", "definition_id": "percText"}),
                Operation("region.add", {"region_id": "page-region-2", "direction": "south"}),
                Operation("region.add", {"region_id": "header", "direction": "south"}),
            ],
        )
        assert len(result.applied) == 2
        assert result.rejected[0][1].startswith("OVERRIDE_NOT_ALLOWED")
        expected = shape(session.tree.root)

        await assembly.save(session)

        # Page saves never touch the template
        assert storage.templates[TEMPLATE_ID] == template_xml
        saved = etree.fromstring(storage.pages[PAGE_ID].encode("utf-8"))
        assert saved.findtext("metadata/keywords") == "about us"
        assert [el.findtext("regionId") for el in saved.find("regionBranches/regions")] == ["temp-region-3"]

        reloaded = await assembly.load_page(PAGE_ID)
        # The new widget came back without its placeholder id
        new_widget = reloaded.tree.find_region("page-region-1").widgets[0]
        assert new_widget.definition_id == "percText"
        assert shape(reloaded.tree.find_region("body")) == _replace_placeholders(
            _find_shape(expected, "body"), new_widget.id
        )

    @pytest.mark.asyncio
    async def test_missing_page(self, assembly):
        with pytest.raises(LayoutNotFound):
            await assembly.load_page("nope")

    @pytest.mark.asyncio
    async def test_missing_template_of_page(self, assembly, storage):
        del storage.templates[TEMPLATE_ID]
        with pytest.raises(LayoutNotFound):
            await assembly.load_page(PAGE_ID)

    @pytest.mark.asyncio
    async def test_failed_page_save(self, template_xml, page_xml):
        storage = RejectingStorage()
        storage.templates[TEMPLATE_ID] = template_xml
        storage.pages[PAGE_ID] = page_xml
        assembly = LayoutAssembly(storage)
        session = await assembly.load_page(PAGE_ID)

        with pytest.raises(SaveFailed):
            await assembly.save(session)
        assert storage.pages[PAGE_ID] == page_xml


def _find_shape(node, region_id):
    if node[0] == region_id:
        return node
    for child in node[3]:
        found = _find_shape(child, region_id)
        if found is not None:
            return found
    return None


def _replace_placeholders(node, widget_id):
    region_id, orientation, widgets, children = node
    widgets = [widget_id if w.startswith("pseudo-widget-id-") else w for w in widgets]
    return (region_id, orientation, widgets, [_replace_placeholders(c, widget_id) for c in children])
