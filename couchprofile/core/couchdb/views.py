"""Translation of attribute lookups into CouchDB view queries.

Secondary lookups rely on views provisioned outside this package: for an
attribute ``email`` the design document is expected to hold a ``by_email``
view emitting ``(doc.email, doc)``.
"""
from __future__ import annotations
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .client import CouchClient, ViewRow
from .exceptions import InvalidArgumentError

DEFAULT_DESIGN_DOC = "_design/pac4j"
VIEW_PREFIX = "by_"


def view_name_for(key: str) -> str:
    """Return the conventional view name for an attribute."""
    if not key:
        raise InvalidArgumentError("Attribute name is required to build a view name")
    return f"{VIEW_PREFIX}{key}"


def normalize_design_doc(design_doc: str) -> str:
    """Ensure a design document id carries the ``_design/`` prefix."""
    name = (design_doc or "").strip().strip("/")
    if not name:
        return DEFAULT_DESIGN_DOC
    if not name.startswith("_design/"):
        name = f"_design/{name}"
    return name


class ViewNaming:
    """Maps attribute names to (design document, view) pairs.
    
    Attributes without an override follow the ``by_<key>`` convention.
    
    Usage:
        naming = ViewNaming(overrides={"mail": "by_email"})
        naming.resolve("username")  # ("_design/pac4j", "by_username")
        naming.resolve("mail")      # ("_design/pac4j", "by_email")
    """
    
    def __init__(self, design_doc: str = DEFAULT_DESIGN_DOC, overrides: Optional[Mapping[str, str]] = None):
        self.design_doc = normalize_design_doc(design_doc)
        self.overrides: Dict[str, str] = dict(overrides or {})
    
    def __repr__(self) -> str:
        return f"ViewNaming(design_doc={self.design_doc!r}, overrides={self.overrides!r})"
    
    def resolve(self, key: str) -> Tuple[str, str]:
        """Return the design document and view serving lookups on key."""
        if key in self.overrides:
            return self.design_doc, self.overrides[key]
        return self.design_doc, view_name_for(key)


def query_by_attribute(client: CouchClient, naming: ViewNaming, key: str, value: Any) -> List[ViewRow]:
    """Query the view serving `key` for rows matching `value` exactly."""
    design_doc, view = naming.resolve(key)
    return client.query_view(design_doc, view, value)
