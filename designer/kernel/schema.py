"""
Region Designer Kernel — XML Schema Models

Typed mirror of the server's template/page XML. The codec reads lxml elements
into these models, then maps them onto Region/Widget in one explicit pass (and
the reverse on save). Field names follow Python style; the XML tag for each
field is noted where it differs.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class WidgetProperty(BaseModel):
    """<property><name/><value/></property> — value is JSON text."""

    name: str = Field(min_length=1)
    value: str = ""


class WidgetItem(BaseModel):
    """<widgetItem> inside a region's widget association."""

    id: str | None = None
    definition_id: str = Field(min_length=1)  # <definitionId>
    name: str | None = None
    description: str | None = None
    properties: list[WidgetProperty] = Field(default_factory=list)
    css_properties: list[WidgetProperty] = Field(default_factory=list)  # <cssProperties>


class RegionWidgets(BaseModel):
    """<regionWidget> — the widgets placed in one region, in order."""

    region_id: str = Field(min_length=1)  # <regionId>
    widget_items: list[WidgetItem] = Field(default_factory=list)  # <widgetItems>


class RegionAttribute(BaseModel):
    name: str = Field(min_length=1)
    value: str = ""


class RegionNode(BaseModel):
    """
    <region> (or <rootRegion>) with its nested sub-regions.

    `start_tag`/`end_tag` hold the region's HTML wrapper as text; orientation,
    style, and flags are encoded in it. `template_codes` are the <code>
    children (velocity markers) in document order.
    """

    region_id: str = Field(min_length=1)  # <regionId>
    start_tag: str | None = None  # <startTag>
    end_tag: str | None = None  # <endTag>
    css_class: str | None = None  # <cssClass>
    attributes: list[RegionAttribute] = Field(default_factory=list)
    children: list[RegionNode] = Field(default_factory=list)
    template_codes: list[str] = Field(default_factory=list)


class RegionTreeDoc(BaseModel):
    """
    <regionTree> of a template: one root plus the flat widget placement list.
    An empty <rootRegion/> (every region removed) reads as root=None.
    """

    root: RegionNode | None = None  # <rootRegion>
    associations: list[RegionWidgets] = Field(default_factory=list)  # <regionWidgetAssociations>


class RegionBranchesDoc(BaseModel):
    """<regionBranches> of a page: overridden template regions plus their widgets."""

    regions: list[RegionNode] = Field(default_factory=list)
    associations: list[RegionWidgets] = Field(default_factory=list)


RegionNode.model_rebuild()
