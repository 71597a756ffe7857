"""CouchDB-specific exceptions for error handling."""


class CouchError(Exception):
    """Base exception for all CouchDB operations."""
    pass


class CouchAPIError(CouchError):
    """Unexpected HTTP error from the CouchDB API.
    
    Attributes:
        status_code: HTTP status code
        message: Error message from response
        endpoint: API endpoint that failed
    """
    
    def __init__(self, status_code: int, message: str, endpoint: str):
        self.status_code = status_code
        self.message = message
        self.endpoint = endpoint
        super().__init__(f"[{status_code}] {endpoint}: {message}")


class DocumentNotFoundError(CouchError):
    """Document lookup failed - id does not exist (or was deleted)."""
    pass


class DocumentConflictError(CouchError):
    """Write rejected - stale revision or duplicate document id."""
    pass


class StoreUnavailableError(CouchError):
    """Transport-level failure: connection refused, timeout, 5xx."""
    pass


class MalformedDocumentError(CouchError):
    """Payload could not be decoded or lacks a usable revision."""
    pass


class InvalidArgumentError(CouchError, ValueError):
    """Caller passed an unusable key, id or projection."""
    pass


class ConfigurationError(CouchError):
    """Service or settings are missing a collaborator or hold invalid values."""
    pass
