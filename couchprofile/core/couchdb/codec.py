"""Decoding of raw CouchDB payloads into field maps."""
from __future__ import annotations
import json
from collections.abc import Iterable, Mapping
from typing import Any, Optional

from .exceptions import MalformedDocumentError

DOC_ID = "_id"
DOC_REV = "_rev"


def decode_document(payload: Any) -> dict[str, Any]:
    """Decode a raw document payload into a field map.

    Accepts bytes, str, a binary/text stream, or an already parsed mapping
    (view rows often carry the emitted object as is). Every field present
    in the payload is kept, store-internal ones included.

    Raises:
        MalformedDocumentError: If the payload is not a JSON object
    """
    if isinstance(payload, Mapping):
        return dict(payload)
    if hasattr(payload, "read"):
        payload = payload.read()
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedDocumentError(f"Payload is not valid UTF-8: {e}") from e
    if not isinstance(payload, str):
        raise MalformedDocumentError(f"Unsupported payload type: {type(payload).__name__}")
    try:
        document = json.loads(payload)
    except json.JSONDecodeError as e:
        raise MalformedDocumentError(f"Payload is not valid JSON: {e}") from e
    if not isinstance(document, dict):
        raise MalformedDocumentError(f"Expected a JSON object, got {type(document).__name__}")
    return document


def extract_revision(document: Mapping[str, Any], rev_field: str = DOC_REV) -> str:
    """Return the revision token of a decoded document.

    Raises:
        MalformedDocumentError: If the field is absent or not a string-like scalar
    """
    if rev_field not in document:
        raise MalformedDocumentError(f"Document has no '{rev_field}' field")
    rev = document[rev_field]
    # bool is an int subclass; a revision is never a boolean
    if isinstance(rev, bool) or not isinstance(rev, (str, int, float)):
        raise MalformedDocumentError(f"Field '{rev_field}' is not a revision token: {rev!r}")
    rev = str(rev)
    if not rev:
        raise MalformedDocumentError(f"Field '{rev_field}' is empty")
    return rev


def project(
    document: Mapping[str, Any],
    names: Optional[Iterable[str]] = None,
    hidden: Iterable[str] = (DOC_REV,),
) -> dict[str, Any]:
    """Restrict a document to the requested field names.

    None or an empty list selects every field. Hidden fields are dropped
    either way.
    """
    hidden = set(hidden)
    wanted = set(names) if names else None
    return {
        name: value
        for name, value in document.items()
        if name not in hidden and (wanted is None or name in wanted)
    }


class DocumentCodec:
    """Codec bound to the caller-facing revision field name.

    The store always keeps the current revision under ``_rev``; rev_field is
    only the name hidden from projections and stripped from outgoing records.

    The profile service holds one instance; callers may substitute their own
    (e.g. to decode with a custom JSON hook) through the service constructor.
    """

    def __init__(self, rev_field: str = DOC_REV):
        self.rev_field = rev_field

    def __repr__(self) -> str:
        return f"DocumentCodec(rev_field={self.rev_field!r})"

    def decode(self, payload: Any) -> dict[str, Any]:
        return decode_document(payload)

    def revision(self, document: Mapping[str, Any]) -> str:
        return extract_revision(document, DOC_REV)

    def project(self, document: Mapping[str, Any], names: Optional[Iterable[str]] = None) -> dict[str, Any]:
        return project(document, names, hidden={self.rev_field, DOC_REV})
