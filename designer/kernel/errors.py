"""
Region Designer Kernel — Exceptions

Not-found is not an error here: lookups and most mutations return None when an
id has gone stale. The classes below cover the cases a caller must not
silently ignore.
"""

from __future__ import annotations


class LayoutError(Exception):
    """Base class for kernel errors."""
    pass


class InvalidStructure(LayoutError):
    """The requested edit would break the tree's shape (UI bug, not a race)."""
    pass


class RegionNotFound(InvalidStructure):
    """A region that must exist for the operation could not be resolved."""
    pass


class OverrideNotAllowed(InvalidStructure):
    """A page tried to change a region its template does not let it override."""
    pass


class LoadFailed(LayoutError):
    """The template/page document could not be turned into a tree."""
    pass


class SaveFailed(LayoutError):
    """The document could not be persisted. The in-memory tree is unchanged."""
    pass


class LayoutNotFound(LayoutError):
    """Storage has no document for the requested id."""
    pass
