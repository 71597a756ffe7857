"""CouchDB document store library.

This package provides a small, testable interface to the CouchDB document API.

Architecture:
- client.py: HTTP client with error translation (404/409/5xx)
- codec.py: Raw payload decoding, revision extraction, projection
- views.py: Attribute → view naming convention and view queries
- exceptions.py: Typed exceptions for error handling

Usage:
    from couchprofile.core.couchdb import CouchClient, DocumentCodec, ViewNaming

    client = CouchClient("http://couchdb:5984", "profiles", "admin", "secret")
    doc = DocumentCodec().decode(client.get_raw("p1"))
    rows = client.query_view(*ViewNaming().resolve("username"), "alice")
"""
from .client import (
    CouchClient,
    ViewRow,
    create_client_from_settings,
    REQUEST_TIMEOUT,
)
from .codec import (
    DocumentCodec,
    decode_document,
    extract_revision,
    project,
    DOC_ID,
    DOC_REV,
)
from .exceptions import (
    CouchError,
    CouchAPIError,
    DocumentNotFoundError,
    DocumentConflictError,
    StoreUnavailableError,
    MalformedDocumentError,
    InvalidArgumentError,
    ConfigurationError,
)
from .views import (
    ViewNaming,
    view_name_for,
    normalize_design_doc,
    query_by_attribute,
    DEFAULT_DESIGN_DOC,
)

__all__ = [
    # Client
    "CouchClient",
    "ViewRow",
    "create_client_from_settings",
    "REQUEST_TIMEOUT",

    # Codec
    "DocumentCodec",
    "decode_document",
    "extract_revision",
    "project",
    "DOC_ID",
    "DOC_REV",

    # Exceptions
    "CouchError",
    "CouchAPIError",
    "DocumentNotFoundError",
    "DocumentConflictError",
    "StoreUnavailableError",
    "MalformedDocumentError",
    "InvalidArgumentError",
    "ConfigurationError",

    # Views
    "ViewNaming",
    "view_name_for",
    "normalize_design_doc",
    "query_by_attribute",
    "DEFAULT_DESIGN_DOC",
]
