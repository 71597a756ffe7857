"""Pytest shared fixtures for the profile store tests."""
import json
import pathlib
import sys
import uuid
from collections import defaultdict

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
import requests

from couchprofile.core.couchdb import (
    DocumentConflictError,
    DocumentNotFoundError,
    ViewRow,
)
from couchprofile.core.profile_service import CouchProfileService


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _block_couchdb_network(monkeypatch, request):
    """
    Prevent unit tests from hitting a live CouchDB.

    Integration tests are explicitly marked with @pytest.mark.integration and
    are allowed to perform real HTTP calls by skipping this fixture.
    """
    if request.node.get_closest_marker("integration"):
        return

    def _forbidden(method):
        def _call(url, *args, **kwargs):
            raise RuntimeError(f"Unexpected HTTP {method} in unit test: {url}")
        return _call

    for method in ("get", "post", "put", "delete"):
        monkeypatch.setattr(requests, method, _forbidden(method.upper()))


# ─────────────────────────────────────────────────────────────────────────────
# HTTP stubs
# ─────────────────────────────────────────────────────────────────────────────
class StubResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, payload=None, status_code: int = 200, url: str = "http://couch/", text: str | None = None):
        self._payload = payload
        self.status_code = status_code
        self.url = url
        self.text = text if text is not None else json.dumps(payload)
        self.content = self.text.encode("utf-8")

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload


@pytest.fixture
def stub_response():
    return StubResponse


# ─────────────────────────────────────────────────────────────────────────────
# In-memory CouchDB
# ─────────────────────────────────────────────────────────────────────────────
class FakeCouchClient:
    """In-memory double of CouchClient honouring revisions.

    Views named ``by_<field>`` return every document whose field equals the
    key, with the whole document as row value. ``extra_rows`` lets a test
    append raw rows (e.g. undecodable payloads) to a view, and ``failures``
    queues exceptions raised by the next call of an operation.
    """

    def __init__(self):
        self.docs: dict[str, dict] = {}
        self.calls: list[tuple] = []
        self.extra_rows: dict[str, list[ViewRow]] = defaultdict(list)
        self.failures: dict[str, list[Exception]] = defaultdict(list)
        self.raw_overrides: dict[str, bytes] = {}

    def fail_next(self, operation: str, *errors: Exception) -> None:
        self.failures[operation].extend(errors)

    def _maybe_fail(self, operation: str) -> None:
        if self.failures[operation]:
            raise self.failures[operation].pop(0)

    @staticmethod
    def _next_rev(current: str | None = None) -> str:
        generation = int(current.split("-", 1)[0]) + 1 if current else 1
        return f"{generation}-{uuid.uuid4().hex}"

    def create(self, fields, doc_id=None):
        self.calls.append(("create", doc_id, dict(fields)))
        self._maybe_fail("create")
        doc_id = doc_id or uuid.uuid4().hex
        if doc_id in self.docs:
            raise DocumentConflictError(f"Document update conflict: {doc_id}")
        rev = self._next_rev()
        self.docs[doc_id] = {**fields, "_id": doc_id, "_rev": rev}
        return {"ok": True, "id": doc_id, "rev": rev}

    def get_raw(self, doc_id):
        self.calls.append(("get_raw", doc_id))
        self._maybe_fail("get_raw")
        if doc_id in self.raw_overrides:
            return self.raw_overrides[doc_id]
        if doc_id not in self.docs:
            raise DocumentNotFoundError(f"not_found: {doc_id}")
        return json.dumps(self.docs[doc_id]).encode("utf-8")

    def update(self, doc_id, fields, rev):
        self.calls.append(("update", doc_id, dict(fields), rev))
        self._maybe_fail("update")
        if doc_id not in self.docs:
            raise DocumentNotFoundError(f"not_found: {doc_id}")
        current = self.docs[doc_id]["_rev"]
        if current != rev:
            raise DocumentConflictError(f"Document update conflict: {doc_id}")
        new_rev = self._next_rev(current)
        self.docs[doc_id] = {**fields, "_id": doc_id, "_rev": new_rev}
        return {"ok": True, "id": doc_id, "rev": new_rev}

    def delete_document(self, doc_id, rev):
        self.calls.append(("delete_document", doc_id, rev))
        self._maybe_fail("delete_document")
        if doc_id not in self.docs:
            raise DocumentNotFoundError(f"not_found: {doc_id}")
        if self.docs[doc_id]["_rev"] != rev:
            raise DocumentConflictError(f"Document update conflict: {doc_id}")
        del self.docs[doc_id]
        return {"ok": True, "id": doc_id, "rev": self._next_rev(rev)}

    def query_view(self, design_doc, view, key):
        self.calls.append(("query_view", design_doc, view, key))
        self._maybe_fail("query_view")
        rows = []
        if view.startswith("by_"):
            field = view[len("by_"):]
            for doc_id, doc in self.docs.items():
                if doc.get(field) == key:
                    rows.append(ViewRow(doc_id, key, dict(doc)))
        rows.extend(self.extra_rows[view])
        return rows

    def operations(self) -> list[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def fake_couch():
    return FakeCouchClient()


@pytest.fixture
def service(fake_couch):
    """Profile service in legacy best-effort mode over the in-memory store."""
    return CouchProfileService(fake_couch)


@pytest.fixture
def strict_service(fake_couch):
    return CouchProfileService(fake_couch, write_mode="strict")
