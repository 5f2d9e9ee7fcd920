"""
Region Designer Kernel — XML Codec

Converts between the server's template/page XML and the LayoutTree.

Parse is two-pass because the XML keeps the region tree and widget placement
in separate sections:
  1. walk <rootRegion> top-down and build every Region (ids become addressable)
  2. walk the flat <regionWidgetAssociations> list and attach widgets by region id

Serialize never regenerates a whole document. It rebuilds only the sections the
kernel owns (<rootRegion> + <regionWidgetAssociations>, or a page's
<regionBranches> children) and splices them into a copy of the last-loaded
document, so markup and metadata the kernel does not model survive a save.
"""

from __future__ import annotations

import copy
import json
import logging
import re
from dataclasses import dataclass
from html import escape, unescape
from typing import Any

from lxml import etree
from pydantic import ValidationError

from designer.kernel.errors import LoadFailed
from designer.kernel.schema import (
    RegionAttribute,
    RegionBranchesDoc,
    RegionNode,
    RegionTreeDoc,
    RegionWidgets,
    WidgetItem,
    WidgetProperty,
)
from designer.kernel.tree import LayoutTree
from designer.kernel.types import (
    HORIZONTAL,
    PAGE_REGION_PREFIX,
    STYLE_FLAG_FIXED,
    STYLE_FLAG_NO_AUTO_RESIZE,
    TEMPLATE_MODE,
    VERTICAL,
    Region,
    Widget,
    counter_suffix,
    is_placeholder_widget_id,
)

logger = logging.getLogger(__name__)

TEMPLATE_TAG = "Template"
PAGE_TAG = "Page"

HEADER_CODE = "#perc_templateHeader()"
FOOTER_CODE = "#perc_templateFooter()"
END_TAG = "</div></div>"

HORIZONTAL_CLASS = "perc-horizontal"
OVERRIDABLE_CLASS = "perc-overridable"
FIXED_CLASS = "perc-fixed"

_CLASS_RE = re.compile(r'\bclass\s*=\s*"([^"]*)"')
_STYLE_RE = re.compile(r'\bstyle\s*=\s*"([^"]*)"')
_NO_AUTO_RESIZE_RE = re.compile(r'\b(?:data-noautoresize|noAutoResize)\s*=\s*"([^"]*)"', re.IGNORECASE)

_STYLE_FLAGS = (STYLE_FLAG_FIXED, STYLE_FLAG_NO_AUTO_RESIZE)

_PARSER = etree.XMLParser(resolve_entities=False, no_network=True, remove_blank_text=True)


# ---------------------------------------------------------------------------
# Parse results
# ---------------------------------------------------------------------------


@dataclass
class ParsedTemplate:
    """A template document and the tree built from it."""

    tree: LayoutTree
    document: etree._Element
    template_id: str | None
    name: str | None


@dataclass
class ParsedPage:
    """A page document. Its branches only mean something on top of the template tree."""

    document: etree._Element
    page_id: str | None
    template_id: str
    branches: RegionBranchesDoc


# ---------------------------------------------------------------------------
# Public API — parse
# ---------------------------------------------------------------------------


def parse_document(xml: str | bytes, expected: str) -> etree._Element:
    """Parse XML text, checking the root element. Raises LoadFailed."""
    data = xml.encode("utf-8") if isinstance(xml, str) else xml
    if not data.strip():
        raise LoadFailed("Empty document")
    try:
        document = etree.fromstring(data, _PARSER)
    except etree.XMLSyntaxError as e:
        raise LoadFailed(f"Malformed XML: {e}") from e
    root_tag = etree.QName(document).localname
    if root_tag != expected:
        raise LoadFailed(f"Expected <{expected}> document, got <{root_tag}>")
    return document


def parse_template_xml(xml: str | bytes, mode: str = TEMPLATE_MODE) -> ParsedTemplate:
    """
    Build a fresh LayoutTree from template XML.
    `mode` picks the id namespace for regions created afterwards.
    """
    document = parse_document(xml, TEMPLATE_TAG)
    tree = build_tree(read_region_tree(document), mode=mode)
    logger.debug("Parsed template with %d regions", len(tree.all_region_ids()))
    return ParsedTemplate(
        tree=tree,
        document=document,
        template_id=_child_text(document, "id"),
        name=_child_text(document, "name"),
    )


def parse_page_xml(xml: str | bytes) -> ParsedPage:
    document = parse_document(xml, PAGE_TAG)
    template_id = _child_text(document, "templateId")
    if not template_id:
        raise LoadFailed("Page document has no templateId")
    return ParsedPage(
        document=document,
        page_id=_child_text(document, "id"),
        template_id=template_id,
        branches=read_region_branches(document),
    )


def read_region_tree(document: etree._Element) -> RegionTreeDoc:
    region_tree = document.find("regionTree")
    if region_tree is None:
        raise LoadFailed("Document has no regionTree")
    root_el = region_tree.find("rootRegion")
    if root_el is None:
        raise LoadFailed("regionTree has no rootRegion")

    try:
        root = None if _is_empty_root(root_el) else _read_region_node(root_el)
        associations = _read_associations(region_tree.find("regionWidgetAssociations"))
        return RegionTreeDoc(root=root, associations=associations)
    except ValidationError as e:
        raise LoadFailed(f"Invalid regionTree: {e}") from e


def read_region_branches(document: etree._Element) -> RegionBranchesDoc:
    """A page without <regionBranches> simply overrides nothing."""
    container = document.find("regionBranches")
    if container is None:
        return RegionBranchesDoc()
    try:
        return RegionBranchesDoc(
            regions=[_read_region_node(el) for el in container.iterfind("regions/region")],
            associations=_read_associations(container.find("regionWidgetAssociations")),
        )
    except ValidationError as e:
        raise LoadFailed(f"Invalid regionBranches: {e}") from e


def build_tree(doc: RegionTreeDoc, mode: str = TEMPLATE_MODE) -> LayoutTree:
    """Map the schema onto a new tree: regions first, then widget placement."""
    tree = LayoutTree(mode=mode)
    if doc.root is None:
        if doc.associations:
            raise LoadFailed("Widget associations found for an empty region tree")
        return tree

    # Pass 1: regions
    tree.root = region_from_node(doc.root, tree)
    seen: set[str] = set()
    for region_id in tree.all_region_ids():
        if region_id in seen:
            raise LoadFailed(f"Duplicate region id '{region_id}'")
        seen.add(region_id)

    # Pass 2: widgets
    attach_associations(tree, doc.associations)
    return tree


def region_from_node(node: RegionNode, tree: LayoutTree, parent: Region | None = None) -> Region:
    """Build a Region subtree from its schema node and hang it under `parent`."""
    region = Region(id=node.region_id)
    apply_node_attributes(region, node)
    tree.note_region_id(region.id)
    if parent is not None:
        parent.attach_region(region)
    for child in node.children:
        region_from_node(child, tree, region)
    return region


def apply_node_attributes(region: Region, node: RegionNode) -> None:
    """Copy orientation, style, flags, class, and attributes from a schema node."""
    orientation, style, overridable = parse_start_tag(node.start_tag)
    region.orientation = orientation
    region.style = style
    region.overridable = overridable
    region.is_page_level_addition = counter_suffix(node.region_id, PAGE_REGION_PREFIX) is not None
    region.css_class = node.css_class
    region.attributes = [(a.name, a.value) for a in node.attributes]


def attach_associations(tree: LayoutTree, associations: list[RegionWidgets]) -> None:
    """
    Attach widgets to already-built regions. Every region must exist and be a
    leaf. Widgets that arrive without an id get a placeholder once all loaded
    ids are known, so the counter is already past them.
    """
    unnamed: list[Widget] = []
    for assoc in associations:
        region = tree.find_region(assoc.region_id)
        if region is None:
            raise LoadFailed(f"Widget association names unknown region '{assoc.region_id}'")
        if not region.is_widget_allowed():
            raise LoadFailed(f"Widget association targets region '{assoc.region_id}', which has sub-regions")
        for item in assoc.widget_items:
            widget = widget_from_item(item)
            if widget.id:
                if tree.find_region_owning_widget(widget.id) is not None:
                    raise LoadFailed(f"Duplicate widget id '{widget.id}'")
                tree.note_widget_id(widget.id)
            else:
                unnamed.append(widget)
            region.attach_widget(widget)

    for widget in unnamed:
        widget.id = tree.new_widget_id()


def widget_from_item(item: WidgetItem) -> Widget:
    return Widget(
        id=item.id or "",
        definition_id=item.definition_id,
        name=item.name,
        description=item.description,
        properties={p.name: _decode_value(p.value) for p in item.properties},
        css_properties={p.name: _decode_value(p.value) for p in item.css_properties},
    )


def parse_start_tag(start_tag: str | None) -> tuple[str, dict[str, str], bool]:
    """
    Read orientation, style bag, and the overridable flag out of a region's
    HTML start tag. The first class/style attribute is the outer wrapper's.

    Returns (orientation, style, overridable).
    """
    if not start_tag:
        return VERTICAL, {}, False

    class_match = _CLASS_RE.search(start_tag)
    classes = unescape(class_match.group(1)).split() if class_match else []

    style: dict[str, str] = {}
    style_match = _STYLE_RE.search(start_tag)
    if style_match:
        for declaration in split_declarations(unescape(style_match.group(1))):
            key, sep, value = declaration.partition(":")
            if sep and key.strip() and value.strip():
                style[key.strip()] = value.strip()

    if FIXED_CLASS in classes:
        style[STYLE_FLAG_FIXED] = "true"
    no_auto_resize = _NO_AUTO_RESIZE_RE.search(start_tag)
    if no_auto_resize:
        value = unescape(no_auto_resize.group(1)).strip()
        if flag_set(value):
            style[STYLE_FLAG_NO_AUTO_RESIZE] = value

    orientation = HORIZONTAL if HORIZONTAL_CLASS in classes else VERTICAL
    return orientation, style, OVERRIDABLE_CLASS in classes


def split_declarations(style: str) -> list[str]:
    """
    Split an inline style at top-level semicolons.

    Examples:
      split_declarations("width:10px;height:5px")        → ["width:10px", "height:5px"]
      split_declarations("background:url(a;b.png);x:1")  → ["background:url(a;b.png)", "x:1"]
    """
    declarations: list[str] = []
    current: list[str] = []
    depth = 0
    quote: str | None = None
    for ch in style:
        if quote is not None:
            if ch == quote:
                quote = None
        elif ch in "\"'":
            quote = ch
        elif ch == "(":
            depth += 1
        elif ch == ")" and depth > 0:
            depth -= 1
        elif ch == ";" and depth == 0:
            declarations.append("".join(current))
            current = []
            continue
        current.append(ch)
    declarations.append("".join(current))
    return declarations


def flag_set(value: str | None) -> bool:
    """A style flag counts when it has a value other than "false"."""
    return bool(value) and value.strip().lower() != "false"


# ---------------------------------------------------------------------------
# Public API — serialize
# ---------------------------------------------------------------------------


def serialize_template(
    tree: LayoutTree,
    document: etree._Element | None = None,
    *,
    strip_placeholders: bool = False,
) -> str:
    """
    Splice the tree into a copy of `document` (or a fresh skeleton).
    With strip_placeholders, widgets with locally invented ids go out without
    an <id> so the server assigns one.
    """
    doc = copy.deepcopy(document) if document is not None else new_template_document()
    region_tree = doc.find("regionTree")
    if region_tree is None:
        region_tree = etree.SubElement(doc, "regionTree")

    tree_doc = region_tree_doc(tree, strip_placeholders=strip_placeholders)
    root_el = (
        _write_region_node(tree_doc.root, "rootRegion")
        if tree_doc.root is not None
        else etree.Element("rootRegion")
    )
    _splice(region_tree, "rootRegion", root_el)
    _splice(region_tree, "regionWidgetAssociations", _write_associations(tree_doc.associations))
    return to_string(doc)


def serialize_page(branches: RegionBranchesDoc, document: etree._Element) -> str:
    """Splice a page's region branches into a copy of its last-loaded document."""
    doc = copy.deepcopy(document)
    container = doc.find("regionBranches")
    if container is None:
        container = etree.SubElement(doc, "regionBranches")

    regions_el = etree.Element("regions")
    for node in branches.regions:
        regions_el.append(_write_region_node(node, "region"))
    _splice(container, "regions", regions_el)
    _splice(container, "regionWidgetAssociations", _write_associations(branches.associations))
    return to_string(doc)


def region_tree_doc(tree: LayoutTree, *, strip_placeholders: bool = False) -> RegionTreeDoc:
    if tree.root is None:
        return RegionTreeDoc(root=None)
    return RegionTreeDoc(
        root=node_from_region(tree.root, top=True),
        associations=associations_for(tree.root, strip_placeholders=strip_placeholders),
    )


def node_from_region(region: Region, *, top: bool = False) -> RegionNode:
    if region.children:
        children = [node_from_region(child) for child in region.children]
        codes = [HEADER_CODE, FOOTER_CODE] if top else []
    else:
        children = []
        codes = [f'#region("{region.id}","","","","")']

    return RegionNode(
        region_id=region.id,
        start_tag=build_start_tag(region),
        end_tag=END_TAG,
        css_class=region.css_class,
        attributes=[RegionAttribute(name=name, value=value) for name, value in region.attributes],
        children=children,
        template_codes=codes,
    )


def associations_for(region: Region, *, strip_placeholders: bool = False) -> list[RegionWidgets]:
    """Flatten a subtree's widget placement, leaves in tree order. Empty leaves emit nothing."""
    if region.widgets:
        return [
            RegionWidgets(
                region_id=region.id,
                widget_items=[item_from_widget(w, strip_placeholders=strip_placeholders) for w in region.widgets],
            )
        ]
    result: list[RegionWidgets] = []
    for child in region.children:
        result.extend(associations_for(child, strip_placeholders=strip_placeholders))
    return result


def item_from_widget(widget: Widget, *, strip_placeholders: bool = False) -> WidgetItem:
    strip = strip_placeholders and is_placeholder_widget_id(widget.id)
    return WidgetItem(
        id=None if strip else widget.id,
        definition_id=widget.definition_id,
        name=widget.name,
        description=widget.description,
        properties=[WidgetProperty(name=k, value=_encode_value(v)) for k, v in widget.properties.items()],
        css_properties=[WidgetProperty(name=k, value=_encode_value(v)) for k, v in widget.css_properties.items()],
    )


def build_start_tag(region: Region) -> str:
    """The region's HTML wrapper: outer div carries identity and style, inner div the direction."""
    direction = "perc-vertical" if region.vertical else "perc-horizontal ui-helper-clearfix"
    classes = ["perc-region"]
    if not region.children:
        classes.append("perc-region-leaf")
    no_auto_resize = region.style.get(STYLE_FLAG_NO_AUTO_RESIZE)
    if flag_set(no_auto_resize):
        classes.append("perc-noAutoResize")
    if flag_set(region.style.get(STYLE_FLAG_FIXED)):
        classes.append(FIXED_CLASS)
    classes.append(direction)
    if region.overridable:
        classes.append(OVERRIDABLE_CLASS)
    if region.css_class:
        classes.append(region.css_class)

    declarations = "".join(
        f"{key}:{value};" for key, value in region.style.items() if key not in _STYLE_FLAGS and value
    )
    tag = "<div"
    if declarations:
        tag += f' style="{escape(declarations)}"'
    tag += f' class="{escape(" ".join(classes))}"'
    tag += f' data-noautoresize="{escape(no_auto_resize if flag_set(no_auto_resize) else "false")}"'
    tag += f' id="{escape(region.id)}">'

    inner = f' <div class="{escape(direction)}"'
    for name, value in region.attributes:
        inner += f' {escape(name)}="{escape(value)}"'
    return tag + inner + ">"


def new_template_document(template_id: str | None = None, name: str | None = None) -> etree._Element:
    """Skeleton <Template> for a layout that was never loaded from the server."""
    doc = etree.Element(TEMPLATE_TAG)
    if template_id:
        _sub(doc, "id", template_id)
    if name:
        _sub(doc, "name", name)
    etree.SubElement(doc, "regionTree")
    return doc


def to_string(document: etree._Element) -> str:
    return etree.tostring(document, encoding="unicode", pretty_print=True)


# ---------------------------------------------------------------------------
# Element readers
# ---------------------------------------------------------------------------


def _child_text(el: etree._Element, tag: str) -> str | None:
    child = el.find(tag)
    if child is None:
        return None
    return child.text or ""


def _optional_text(el: etree._Element, tag: str) -> str | None:
    return _child_text(el, tag) or None


def _is_empty_root(el: etree._Element) -> bool:
    return el.find("regionId") is None and len(el) == 0


def _read_region_node(el: etree._Element) -> RegionNode:
    children: list[RegionNode] = []
    codes: list[str] = []
    container = el.find("children")
    if container is not None:
        for child in container:
            if child.tag == "region":
                children.append(_read_region_node(child))
            elif child.tag == "code":
                codes.append(_child_text(child, "templateCode") or "")

    return RegionNode(
        region_id=_child_text(el, "regionId"),
        start_tag=_optional_text(el, "startTag"),
        end_tag=_optional_text(el, "endTag"),
        css_class=_optional_text(el, "cssClass"),
        attributes=[
            RegionAttribute(name=_child_text(a, "name"), value=_child_text(a, "value") or "")
            for a in el.iterfind("attributes/attribute")
        ],
        children=children,
        template_codes=codes,
    )


def _read_associations(el: etree._Element | None) -> list[RegionWidgets]:
    if el is None:
        return []
    return [
        RegionWidgets(
            region_id=_child_text(rw, "regionId"),
            widget_items=[_read_widget_item(w) for w in rw.iterfind("widgetItems/widgetItem")],
        )
        for rw in el.iterfind("regionWidget")
    ]


def _read_widget_item(el: etree._Element) -> WidgetItem:
    return WidgetItem(
        id=_optional_text(el, "id"),
        definition_id=_child_text(el, "definitionId"),
        name=_optional_text(el, "name"),
        description=_optional_text(el, "description"),
        properties=_read_properties(el.find("properties")),
        css_properties=_read_properties(el.find("cssProperties")),
    )


def _read_properties(el: etree._Element | None) -> list[WidgetProperty]:
    if el is None:
        return []
    return [
        WidgetProperty(name=_child_text(p, "name"), value=_child_text(p, "value") or "")
        for p in el.iterfind("property")
    ]


# ---------------------------------------------------------------------------
# Element writers
# ---------------------------------------------------------------------------


def _sub(parent: etree._Element, tag: str, text: str | None = None) -> etree._Element:
    el = etree.SubElement(parent, tag)
    if text is not None:
        el.text = text
    return el


def _splice(container: etree._Element, tag: str, replacement: etree._Element) -> None:
    """Replace the first `tag` child in place, or append if there is none."""
    existing = container.find(tag)
    if existing is None:
        container.append(replacement)
    else:
        container.replace(existing, replacement)


def _write_code(parent: etree._Element, code: str) -> None:
    _sub(_sub(parent, "code"), "templateCode", code)


def _write_region_node(node: RegionNode, tag: str) -> etree._Element:
    el = etree.Element(tag)
    _sub(el, "regionId", node.region_id)
    if node.start_tag is not None:
        _sub(el, "startTag", node.start_tag)
    if node.end_tag is not None:
        _sub(el, "endTag", node.end_tag)
    if node.css_class:
        _sub(el, "cssClass", node.css_class)
    if node.attributes:
        attributes_el = _sub(el, "attributes")
        for attribute in node.attributes:
            attribute_el = _sub(attributes_el, "attribute")
            _sub(attribute_el, "name", attribute.name)
            _sub(attribute_el, "value", attribute.value)

    children_el = _sub(el, "children")
    codes = list(node.template_codes)
    if node.children:
        # Header marker before the sub-regions, everything else after
        if codes:
            _write_code(children_el, codes.pop(0))
        for child in node.children:
            children_el.append(_write_region_node(child, "region"))
    for code in codes:
        _write_code(children_el, code)
    return el


def _write_associations(associations: list[RegionWidgets]) -> etree._Element:
    el = etree.Element("regionWidgetAssociations")
    for assoc in associations:
        rw = _sub(el, "regionWidget")
        _sub(rw, "regionId", assoc.region_id)
        items_el = _sub(rw, "widgetItems")
        for item in assoc.widget_items:
            _write_widget_item(items_el, item)
    return el


def _write_widget_item(parent: etree._Element, item: WidgetItem) -> None:
    el = _sub(parent, "widgetItem")
    if item.id is not None:
        _sub(el, "id", item.id)
    _sub(el, "definitionId", item.definition_id)
    if item.name is not None:
        _sub(el, "name", item.name)
    if item.description is not None:
        _sub(el, "description", item.description)
    for tag, properties in (("properties", item.properties), ("cssProperties", item.css_properties)):
        props_el = _sub(el, tag)
        for prop in properties:
            prop_el = _sub(props_el, "property")
            _sub(prop_el, "name", prop.name)
            _sub(prop_el, "value", prop.value)


def _decode_value(raw: str) -> Any:
    """Property values are JSON text. Empty means null; anything unparseable stays raw."""
    if raw == "":
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def _encode_value(value: Any) -> str:
    if value is None:
        return ""
    return json.dumps(value)
