"""
Region Designer Kernel — the page/template layout model.

Components:
  tree        — LayoutTree: lookup, id generation, every structural edit
  codec       — template/page XML ⇄ LayoutTree (two-pass parse, splice on save)
  overlay     — PageOverlay: page overrides on top of a template
  primitives  — validation layer for the 9 layout operations
  operations  — (tree, type, payload) → MutationResult
  assembly    — coordinates codec + overlay + IO (HTTP, memory)
"""

from designer.kernel.assembly import LayoutAssembly, LayoutSession, MemoryStorage
from designer.kernel.codec import parse_page_xml, parse_template_xml, serialize_page, serialize_template
from designer.kernel.operations import apply_operation
from designer.kernel.overlay import PageOverlay
from designer.kernel.primitives import validate_operation
from designer.kernel.tree import LayoutTree

__all__ = [
    "LayoutTree",
    "PageOverlay",
    "parse_template_xml",
    "parse_page_xml",
    "serialize_template",
    "serialize_page",
    "validate_operation",
    "apply_operation",
    "LayoutAssembly",
    "LayoutSession",
    "MemoryStorage",
]
