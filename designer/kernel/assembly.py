"""
Region Designer Kernel — Assembly Layer

Sits between the in-memory model (tree, codec, overlay) and the outside world
(the content server, or memory in tests). Coordinates the lifecycle of one
template or page editing session.

Operations: load_template, load_page, apply, save, render_xml, new_template

This is where IO happens. The tree and codec never touch storage.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from lxml import etree

from designer.kernel.codec import new_template_document, parse_page_xml, parse_template_xml, serialize_page
from designer.kernel.errors import LayoutNotFound
from designer.kernel.operations import apply_operation
from designer.kernel.overlay import PageOverlay
from designer.kernel.tree import LayoutTree
from designer.kernel.types import PAGE_MODE, TEMPLATE_MODE, ApplyResult, Operation

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Storage protocol
# ---------------------------------------------------------------------------


class LayoutStorage:
    """
    Abstract storage interface.
    Implement over HTTP for production, or in-memory for tests.

    get_* return None when the document does not exist. Transport failures are
    raised as LoadFailed / SaveFailed by the implementation.
    """

    async def get_template(self, template_id: str) -> str | None:
        """Fetch a template's XML. Returns None if not found."""
        raise NotImplementedError

    async def put_template(self, template_id: str, xml: str) -> None:
        raise NotImplementedError

    async def get_page(self, page_id: str) -> str | None:
        """Fetch a page's XML. Returns None if not found."""
        raise NotImplementedError

    async def put_page(self, page_id: str, xml: str) -> None:
        raise NotImplementedError


class MemoryStorage(LayoutStorage):
    """In-memory storage for testing."""

    def __init__(self) -> None:
        self.templates: dict[str, str] = {}
        self.pages: dict[str, str] = {}

    async def get_template(self, template_id: str) -> str | None:
        return self.templates.get(template_id)

    async def put_template(self, template_id: str, xml: str) -> None:
        self.templates[template_id] = xml

    async def get_page(self, page_id: str) -> str | None:
        return self.pages.get(page_id)

    async def put_page(self, page_id: str, xml: str) -> None:
        self.pages[page_id] = xml


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


@dataclass
class LayoutSession:
    """
    One open template or page.

    `document` is the last-loaded XML document; saves splice the tree into a
    copy of it. For pages, `tree` is the template's tree with the page's
    branches merged in, and `template_document` is the template it came from.
    """

    kind: str
    document_id: str
    tree: LayoutTree
    document: etree._Element
    overlay: PageOverlay | None = None
    template_id: str | None = None
    template_document: etree._Element | None = None

    @property
    def is_page(self) -> bool:
        return self.kind == PAGE_MODE


# ---------------------------------------------------------------------------
# Assembly class
# ---------------------------------------------------------------------------


class LayoutAssembly:
    """
    Manages the lifecycle of a layout editing session.
    Coordinates codec + overlay + storage.
    """

    def __init__(self, storage: LayoutStorage):
        self._storage = storage
        self._locks: dict[str, asyncio.Lock] = {}

    def _get_lock(self, key: str) -> asyncio.Lock:
        """Per-document asyncio lock so two saves of one document never interleave."""
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    # -- load --

    async def load_template(self, template_id: str) -> LayoutSession:
        """
        Fetch and parse a template. Raises LayoutNotFound or LoadFailed;
        either way no existing session is touched.
        """
        xml = await self._storage.get_template(template_id)
        if xml is None:
            raise LayoutNotFound(f"Template {template_id}")

        parsed = parse_template_xml(xml)
        logger.info("Loaded template %s (%d regions)", template_id, len(parsed.tree.all_region_ids()))
        return LayoutSession(
            kind=TEMPLATE_MODE,
            document_id=template_id,
            tree=parsed.tree,
            document=parsed.document,
        )

    async def load_page(self, page_id: str) -> LayoutSession:
        """
        Page XML first (it names the template), then the template in page mode,
        then the page's branches merged on top.
        """
        page_xml = await self._storage.get_page(page_id)
        if page_xml is None:
            raise LayoutNotFound(f"Page {page_id}")
        page = parse_page_xml(page_xml)

        template_xml = await self._storage.get_template(page.template_id)
        if template_xml is None:
            raise LayoutNotFound(f"Template {page.template_id} of page {page_id}")
        template = parse_template_xml(template_xml, mode=PAGE_MODE)

        overlay = PageOverlay(template.tree)
        overlay.merge(page.branches)
        logger.info(
            "Loaded page %s on template %s (%d overrides)",
            page_id,
            page.template_id,
            len(overlay.overridden_region_ids),
        )
        return LayoutSession(
            kind=PAGE_MODE,
            document_id=page_id,
            tree=template.tree,
            document=page.document,
            overlay=overlay,
            template_id=page.template_id,
            template_document=template.document,
        )

    # -- create --

    def new_template(self, template_id: str, name: str | None = None) -> LayoutSession:
        """
        A template with a single empty root region.
        Does NOT save — caller persists once there is something to keep.
        """
        tree = LayoutTree()
        tree.root = tree.new_region()
        return LayoutSession(
            kind=TEMPLATE_MODE,
            document_id=template_id,
            tree=tree,
            document=new_template_document(template_id, name),
        )

    # -- apply --

    def apply(self, session: LayoutSession, operations: list[Operation]) -> ApplyResult:
        """
        Apply a batch of edits to the session's tree. Call save() to persist.

        Partial application: rejected operations are skipped, the rest still apply.
        """
        result = ApplyResult()
        for op in operations:
            mutation = apply_operation(session.tree, op.type, op.payload)
            if mutation.applied:
                result.applied.append(op)
            else:
                result.rejected.append((op, mutation.error or "Unknown error"))
        return result

    # -- save --

    def render_xml(self, session: LayoutSession, *, strip_placeholders: bool = False) -> str:
        """The document a save would send, without sending it."""
        if session.is_page:
            branches = session.overlay.branches(strip_placeholders=strip_placeholders)
            return serialize_page(branches, session.document)
        return session.tree.to_xml(session.document, strip_placeholders=strip_placeholders)

    async def save(self, session: LayoutSession) -> None:
        """
        Serialize and write back. Placeholder widget ids are left off so the
        server assigns real ones; reload to pick them up.
        Raises SaveFailed; the session is unchanged either way.
        """
        xml = self.render_xml(session, strip_placeholders=True)
        async with self._get_lock(f"{session.kind}:{session.document_id}"):
            if session.is_page:
                await self._storage.put_page(session.document_id, xml)
            else:
                await self._storage.put_template(session.document_id, xml)
        logger.info("Saved %s %s", session.kind, session.document_id)
