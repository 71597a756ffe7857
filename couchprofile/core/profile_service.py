"""
CouchDB Profile Service: revision-safe persistence of profile records

Profile records are untyped attribute maps stored one per CouchDB document.
Every write goes through the document's current revision:

    update:  GET raw doc ──> extract _rev ──> merge into record ──> PUT ?rev=
    delete:  GET raw doc ──> extract _rev ──> DELETE ?rev=

Features:
    - Identity lookup by document id, secondary lookup through by_<key> views
    - Field projection on read; the revision field is never returned
    - update() falls back to insert() when the document does not exist
    - delete_by_id() is idempotent
    - "best-effort" (legacy) or "strict" handling of failed writes
    - Optional bounded retry of the fetch-merge-write sequence on conflict
"""

from __future__ import annotations
import logging
from typing import Any, Callable, Iterable, Optional

from couchprofile.core.couchdb import (
    CouchClient,
    ConfigurationError,
    DocumentCodec,
    DocumentConflictError,
    DocumentNotFoundError,
    InvalidArgumentError,
    MalformedDocumentError,
    StoreUnavailableError,
    ViewNaming,
    create_client_from_settings,
    query_by_attribute,
    DOC_ID,
    DOC_REV,
)

logger = logging.getLogger(__name__)

WRITE_MODE_BEST_EFFORT = "best-effort"
WRITE_MODE_STRICT = "strict"
WRITE_MODES = (WRITE_MODE_BEST_EFFORT, WRITE_MODE_STRICT)


class CouchProfileService:
    """Persistence adapter storing profile attribute maps in CouchDB.

    In best-effort mode (default) a write whose revision fetch fails for a
    transport or decoding reason is logged and dropped; callers needing
    confirmation must read the record back. Strict mode raises instead.
    Conflicts always propagate once retries are exhausted.

    Usage:
        service = CouchProfileService(CouchClient("http://couchdb:5984", "profiles"))
        service.insert({"_id": "p1", "username": "alice"})
        service.read(["username"], "_id", "p1")  # [{"username": "alice"}]
    """

    def __init__(
        self,
        client: Optional[CouchClient] = None,
        id_attribute: str = DOC_ID,
        rev_attribute: str = DOC_REV,
        write_mode: str = WRITE_MODE_BEST_EFFORT,
        conflict_retries: int = 0,
        view_naming: Optional[ViewNaming] = None,
        codec: Optional[DocumentCodec] = None,
    ):
        """Initialize the profile service.

        Args:
            client: CouchDB client bound to the profile database
            id_attribute: Record field holding the document id
            rev_attribute: Record field stripped from writes and hidden from reads
            write_mode: "best-effort" or "strict"
            conflict_retries: Extra fetch-merge-write rounds after a conflict
            view_naming: Attribute → view mapping for secondary lookups
            codec: Payload decoder (defaults to DocumentCodec(rev_attribute))
        """
        self.client = client
        self.id_attribute = id_attribute
        self.rev_attribute = rev_attribute
        self.write_mode = write_mode
        self.conflict_retries = conflict_retries
        self.view_naming = view_naming or ViewNaming()
        self.codec = codec or DocumentCodec(rev_attribute)
        self._initialized = False

    @classmethod
    def from_settings(cls, config, client: Optional[CouchClient] = None) -> CouchProfileService:
        """Build a service (and its client, unless given) from a StoreConfig."""
        return cls(
            client or create_client_from_settings(config),
            id_attribute=config.id_attribute,
            rev_attribute=config.rev_attribute,
            write_mode=config.write_mode,
            conflict_retries=config.conflict_retries,
            view_naming=ViewNaming(config.design_doc, config.view_overrides),
        )

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(client={self.client!r}, id_attribute={self.id_attribute!r}, "
            f"rev_attribute={self.rev_attribute!r}, write_mode={self.write_mode!r}, "
            f"conflict_retries={self.conflict_retries!r}, view_naming={self.view_naming!r})"
        )

    @property
    def strict(self) -> bool:
        return self.write_mode == WRITE_MODE_STRICT

    def init(self) -> None:
        """Validate collaborators and options; called lazily by every operation.

        Raises:
            ConfigurationError: If the client is missing or an option is invalid
        """
        if self._initialized:
            return
        if self.client is None:
            raise ConfigurationError("client cannot be null")
        if self.write_mode not in WRITE_MODES:
            raise ConfigurationError(f"write_mode must be one of {', '.join(WRITE_MODES)}, got '{self.write_mode}'")
        if not isinstance(self.conflict_retries, int) or self.conflict_retries < 0:
            raise ConfigurationError(f"conflict_retries must be a non-negative integer, got {self.conflict_retries!r}")
        if not self.id_attribute or not self.rev_attribute:
            raise ConfigurationError("id_attribute and rev_attribute cannot be blank")
        if self.id_attribute == self.rev_attribute:
            raise ConfigurationError(f"id_attribute and rev_attribute must differ (both '{self.id_attribute}')")
        self._initialized = True

    # ─────────────────────────────────────────────────────────────────────
    # Writes
    # ─────────────────────────────────────────────────────────────────────
    def insert(self, record: dict[str, Any]) -> None:
        """Create a new document from the record; the store assigns a revision.

        Raises:
            DocumentConflictError: If a document with the same id exists
            StoreUnavailableError: On transport failure
        """
        self.init()
        fields = self._outgoing(record)
        logger.debug(f"Insert doc: {fields}")
        self.client.create(fields, doc_id=self._id_of(fields, required=False))

    def update(self, record: dict[str, Any]) -> None:
        """Replace the stored document with the record, or create it if absent.

        Raises:
            InvalidArgumentError: If the record has no id
            DocumentConflictError: If the revision went stale and retries ran out
            StoreUnavailableError, MalformedDocumentError: Strict mode only
        """
        self.init()
        fields = self._outgoing(record)
        doc_id = self._id_of(fields)

        def write(rev: str) -> None:
            self.client.update(doc_id, {**fields, DOC_REV: rev}, rev)
            logger.debug(f"Updated id: {doc_id} with attributes: {fields}")

        def missing() -> None:
            logger.debug(f"id {doc_id} is not in the database, creating it")
            self.insert(fields)

        self._revised_write("update", doc_id, write, missing)

    def delete_by_id(self, doc_id: str) -> None:
        """Delete the document; deleting an absent document is a no-op.

        Raises:
            InvalidArgumentError: If doc_id is empty
            DocumentConflictError: If the revision went stale and retries ran out
            StoreUnavailableError, MalformedDocumentError: Strict mode only
        """
        self.init()
        if doc_id is None or str(doc_id) == "":
            raise InvalidArgumentError("Document id is required for delete")
        doc_id = str(doc_id)
        logger.debug(f"Delete id: {doc_id}")

        def write(rev: str) -> None:
            self.client.delete_document(doc_id, rev)

        def missing() -> None:
            logger.debug(f"id {doc_id} is not in the database")

        self._revised_write("delete", doc_id, write, missing)

    def _revised_write(
        self,
        action: str,
        doc_id: str,
        write: Callable[[str], None],
        missing: Callable[[], None],
    ) -> None:
        """Run fetch-revision-then-write, applying the not-found and failure policy."""
        attempts = self.conflict_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                write(self._current_revision(doc_id))
                return
            except DocumentNotFoundError:
                missing()
                return
            except DocumentConflictError:
                if attempt == attempts:
                    raise
                logger.warning(f"Revision conflict on {action} of id {doc_id} (attempt {attempt}/{attempts}), retrying")
            except (StoreUnavailableError, MalformedDocumentError):
                if self.strict:
                    raise
                logger.error(f"{action.capitalize()} of id {doc_id} was not persisted", exc_info=True)
                return

    def _current_revision(self, doc_id: str) -> str:
        raw = self.client.get_raw(doc_id)
        return self.codec.revision(self.codec.decode(raw))

    def _outgoing(self, record: dict[str, Any]) -> dict[str, Any]:
        """Copy a caller record, dropping any stale revision it carries."""
        if record is None:
            raise InvalidArgumentError("Record is required")
        fields = dict(record)
        fields.pop(self.rev_attribute, None)
        fields.pop(DOC_REV, None)
        return fields

    def _id_of(self, fields: dict[str, Any], required: bool = True) -> Optional[str]:
        value = fields.get(self.id_attribute)
        if value is None or str(value) == "":
            if required:
                raise InvalidArgumentError(f"Record has no '{self.id_attribute}' value")
            return None
        return str(value)

    # ─────────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────────
    def read(self, names: Optional[Iterable[str]], key: str, value: Any) -> list[dict[str, Any]]:
        """Return the records whose `key` attribute equals `value`.

        Args:
            names: Fields to return (None or empty for all)
            key: Attribute to match; the id attribute triggers a direct fetch
            value: Exact value to match

        Returns:
            Projected records; empty when nothing matches

        Raises:
            InvalidArgumentError: If key is empty or names is not a list of names
            StoreUnavailableError: On transport failure
        """
        self.init()
        if not key:
            raise InvalidArgumentError("Lookup key is required")
        if isinstance(names, str):
            raise InvalidArgumentError("names must be a list of field names, not a string")
        names = list(names) if names else None
        logger.debug(f"Reading key / value: {key} / {value}")

        if key == self.id_attribute:
            results = self._read_by_id(names, value)
        else:
            results = self._read_by_view(names, key, value)

        logger.debug(f"Found: {results}")
        return results

    def _read_by_id(self, names: Optional[list[str]], doc_id: Any) -> list[dict[str, Any]]:
        if doc_id is None or str(doc_id) == "":
            return []
        try:
            raw = self.client.get_raw(str(doc_id))
        except DocumentNotFoundError:
            return []
        try:
            document = self.codec.decode(raw)
        except MalformedDocumentError:
            if self.strict:
                raise
            logger.error(f"Document {doc_id} could not be decoded", exc_info=True)
            return []
        return [self.codec.project(document, names)]

    def _read_by_view(self, names: Optional[list[str]], key: str, value: Any) -> list[dict[str, Any]]:
        results = []
        for row in query_by_attribute(self.client, self.view_naming, key, value):
            try:
                document = self.codec.decode(row.value)
            except MalformedDocumentError:
                logger.warning(f"Skipping undecodable row (id={row.id}) for {key}={value!r}", exc_info=True)
                continue
            results.append(self.codec.project(document, names))
        return results
