"""Low-level HTTP client for the CouchDB document API.

Handles authentication, URL building, and translation of HTTP failures
into the typed exceptions of this package.
"""
from __future__ import annotations
import json
import os
from typing import Any, Dict, List, NamedTuple, Optional, Tuple
from urllib.parse import quote

import requests

from .exceptions import (
    CouchAPIError,
    DocumentConflictError,
    DocumentNotFoundError,
    StoreUnavailableError,
)

REQUEST_TIMEOUT = 5


class ViewRow(NamedTuple):
    """One row of a view query result."""
    id: Optional[str]
    key: Any
    value: Any


class CouchClient:
    """HTTP client bound to a single CouchDB database.
    
    Features:
    - Centralized error handling (404/409/5xx mapped to typed exceptions)
    - Raw payload access for revision reads
    - View queries with exact-match keys
    
    Usage:
        client = CouchClient("http://couchdb:5984", "profiles", "admin", "secret")
        client.create({"username": "alice"}, doc_id="p1")
        raw = client.get_raw("p1")
    """
    
    def __init__(
        self,
        base_url: Optional[str] = None,
        database: str = "profiles",
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: float = REQUEST_TIMEOUT,
    ):
        """Initialize CouchDB client.
        
        Args:
            base_url: CouchDB base URL (defaults to COUCHDB_URL env var)
            database: Database holding the profile documents
            username: Basic auth user (anonymous access when empty)
            password: Basic auth password
            timeout: Per-request timeout in seconds
        """
        self.base_url = (base_url or os.environ.get("COUCHDB_URL", "http://127.0.0.1:5984")).rstrip("/")
        self.database = database
        self.timeout = timeout
        self._auth: Optional[Tuple[str, str]] = (username, password or "") if username else None
    
    def __repr__(self) -> str:
        user = self._auth[0] if self._auth else None
        return f"CouchClient(base_url={self.base_url!r}, database={self.database!r}, user={user!r})"
    
    # ─────────────────────────────────────────────────────────────────────
    # Document operations
    # ─────────────────────────────────────────────────────────────────────
    def create(self, fields: Dict[str, Any], doc_id: Optional[str] = None) -> Dict[str, Any]:
        """Create a new document.
        
        Args:
            fields: Document body (must not carry a revision)
            doc_id: Document id; the server assigns one when omitted
            
        Returns:
            Server acknowledgement with "id" and "rev"
            
        Raises:
            DocumentConflictError: If a document with this id already exists
            StoreUnavailableError: On transport failure
        """
        if doc_id is not None:
            resp = self.put(self._doc_path(doc_id), json=fields)
        else:
            resp = self.post(f"/{self._db()}", json=fields)
        return resp.json()
    
    def get_raw(self, doc_id: str) -> bytes:
        """Fetch the raw JSON payload of a document.
        
        Raises:
            DocumentNotFoundError: If the document does not exist
            StoreUnavailableError: On transport failure
        """
        resp = self.get(self._doc_path(doc_id))
        return resp.content
    
    def update(self, doc_id: str, fields: Dict[str, Any], rev: str) -> Dict[str, Any]:
        """Replace a document, guarded by its current revision.
        
        Raises:
            DocumentConflictError: If rev is not the current revision
            DocumentNotFoundError: If the document does not exist
            StoreUnavailableError: On transport failure
        """
        resp = self.put(self._doc_path(doc_id), json=fields, params={"rev": rev})
        return resp.json()
    
    def delete_document(self, doc_id: str, rev: str) -> Dict[str, Any]:
        """Delete a document, guarded by its current revision."""
        resp = self.delete(self._doc_path(doc_id), params={"rev": rev})
        return resp.json()
    
    def query_view(self, design_doc: str, view: str, key: Any) -> List[ViewRow]:
        """Run an exact-match query against a view.
        
        Args:
            design_doc: Design document id (e.g. "_design/pac4j")
            view: View name inside the design document
            key: Exact key to match (JSON encoded on the wire)
            
        Returns:
            Rows in the order returned by the server
        """
        path = f"/{self._db()}/{design_doc}/_view/{quote(view, safe='')}"
        resp = self.get(path, params={"key": json.dumps(key)})
        rows = resp.json().get("rows") or []
        return [ViewRow(row.get("id"), row.get("key"), row.get("value")) for row in rows]
    
    def ping(self) -> Dict[str, Any]:
        """Return the server welcome banner (version, vendor)."""
        return self.get("/").json()
    
    # ─────────────────────────────────────────────────────────────────────
    # HTTP verbs
    # ─────────────────────────────────────────────────────────────────────
    def get(self, path: str, params: Optional[Dict] = None, **kwargs) -> requests.Response:
        """Execute GET request.
        
        Raises:
            CouchError: On HTTP or transport error
        """
        url = f"{self.base_url}{path}"
        try:
            resp = requests.get(url, params=params, auth=self._auth, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise StoreUnavailableError(f"GET {url} failed: {e}") from e
        self._handle_error(resp)
        return resp
    
    def post(self, path: str, json: Optional[Dict] = None, **kwargs) -> requests.Response:
        """Execute POST request.
        
        Raises:
            CouchError: On HTTP or transport error
        """
        url = f"{self.base_url}{path}"
        try:
            resp = requests.post(url, json=json, auth=self._auth, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise StoreUnavailableError(f"POST {url} failed: {e}") from e
        self._handle_error(resp)
        return resp
    
    def put(self, path: str, json: Optional[Dict] = None, params: Optional[Dict] = None, **kwargs) -> requests.Response:
        """Execute PUT request.
        
        Raises:
            CouchError: On HTTP or transport error
        """
        url = f"{self.base_url}{path}"
        try:
            resp = requests.put(url, json=json, params=params, auth=self._auth, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise StoreUnavailableError(f"PUT {url} failed: {e}") from e
        self._handle_error(resp)
        return resp
    
    def delete(self, path: str, params: Optional[Dict] = None, **kwargs) -> requests.Response:
        """Execute DELETE request.
        
        Raises:
            CouchError: On HTTP or transport error
        """
        url = f"{self.base_url}{path}"
        try:
            resp = requests.delete(url, params=params, auth=self._auth, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise StoreUnavailableError(f"DELETE {url} failed: {e}") from e
        self._handle_error(resp)
        return resp
    
    def _db(self) -> str:
        return quote(self.database, safe="")
    
    def _doc_path(self, doc_id: str) -> str:
        return f"/{self._db()}/{quote(str(doc_id), safe='')}"
    
    def _handle_error(self, resp: requests.Response) -> None:
        """Centralized error handling for HTTP responses.
        
        Args:
            resp: Response object to check
            
        Raises:
            DocumentNotFoundError: 404
            DocumentConflictError: 409 (stale revision) or 412 (already exists)
            StoreUnavailableError: 5xx
            CouchAPIError: Any other status >= 400
        """
        if resp.status_code < 400:
            return
        message = _error_message(resp)
        if resp.status_code == 404:
            raise DocumentNotFoundError(f"{resp.url}: {message}")
        if resp.status_code in (409, 412):
            raise DocumentConflictError(f"{resp.url}: {message}")
        if resp.status_code >= 500:
            raise StoreUnavailableError(f"[{resp.status_code}] {resp.url}: {message}")
        raise CouchAPIError(resp.status_code, message, resp.url)


def _error_message(resp: requests.Response) -> str:
    """Extract CouchDB's "error: reason" pair, falling back to the raw body."""
    try:
        body = resp.json()
    except ValueError:
        return resp.text
    if isinstance(body, dict) and "error" in body:
        reason = body.get("reason")
        return f"{body['error']}: {reason}" if reason else str(body["error"])
    return resp.text


def create_client_from_settings(config) -> CouchClient:
    """Build a CouchClient from a StoreConfig instance."""
    return CouchClient(
        config.couchdb_url,
        config.couchdb_database,
        config.couchdb_user or None,
        config.couchdb_password or None,
        timeout=config.request_timeout,
    )
