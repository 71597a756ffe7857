"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

from couchprofile.core.couchdb.exceptions import ConfigurationError
from couchprofile.core.couchdb.views import DEFAULT_DESIGN_DOC
from couchprofile.core.profile_service import WRITE_MODE_BEST_EFFORT, WRITE_MODES


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback

    Returns:
        Secret value or None if not found
    """
    secret_file = Path("/run/secrets") / secret_name

    # Priority 1: Read from /run/secrets
    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                print(f"[settings] ✓ Loaded {secret_name} from /run/secrets", file=sys.stderr)
                return secret_value
        except OSError as e:
            print(f"[settings] ✗ Failed to read /run/secrets/{secret_name}: {e}", file=sys.stderr)

    # Priority 2: Fallback to environment variable
    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            return secret_value

    return None


@dataclass
class StoreConfig:
    """Profile store configuration container."""
    # CouchDB
    couchdb_url: str = "http://127.0.0.1:5984"
    couchdb_database: str = "profiles"
    couchdb_user: str = ""
    couchdb_password: str = ""
    request_timeout: float = 5.0

    # Views
    design_doc: str = DEFAULT_DESIGN_DOC
    view_overrides: dict[str, str] = field(default_factory=dict)

    # Record shape
    id_attribute: str = "_id"
    rev_attribute: str = "_rev"

    # Write policy
    write_mode: str = WRITE_MODE_BEST_EFFORT
    conflict_retries: int = 0


def _parse_view_overrides(raw: str) -> dict[str, str]:
    """Parse "field=view,field2=view2" into a mapping."""
    overrides: dict[str, str] = {}
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        name, sep, view = item.partition("=")
        if not sep or not name.strip() or not view.strip():
            raise ConfigurationError(f"COUCHDB_VIEW_OVERRIDES entry '{item}' must look like field=view")
        overrides[name.strip()] = view.strip()
    return overrides


def _parse_int(var_name: str, default: int) -> int:
    raw = os.environ.get(var_name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{var_name} must be an integer, got '{raw}'") from None
    if value < 0:
        raise ConfigurationError(f"{var_name} must not be negative, got {value}")
    return value


def _parse_timeout(var_name: str, default: float) -> float:
    raw = os.environ.get(var_name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{var_name} must be a number of seconds, got '{raw}'") from None
    if value <= 0:
        raise ConfigurationError(f"{var_name} must be positive, got {value}")
    return value


def load_settings() -> StoreConfig:
    """Load profile store settings from environment and /run/secrets."""
    couchdb_url = os.environ.get("COUCHDB_URL", "http://127.0.0.1:5984").strip().rstrip("/")
    couchdb_database = os.environ.get("COUCHDB_DATABASE", "profiles").strip()
    if not couchdb_database:
        raise ConfigurationError("COUCHDB_DATABASE cannot be blank")
    couchdb_user = os.environ.get("COUCHDB_USER", "").strip()
    couchdb_password = _load_secret_from_file("couchdb_password", "COUCHDB_PASSWORD") or ""
    if couchdb_user and not couchdb_password:
        print(f"[settings] WARNING: COUCHDB_USER={couchdb_user} set without a password", file=sys.stderr)

    request_timeout = _parse_timeout("COUCHDB_REQUEST_TIMEOUT", 5.0)

    design_doc = os.environ.get("COUCHDB_DESIGN_DOC", DEFAULT_DESIGN_DOC).strip() or DEFAULT_DESIGN_DOC
    view_overrides = _parse_view_overrides(os.environ.get("COUCHDB_VIEW_OVERRIDES", ""))

    id_attribute = os.environ.get("PROFILE_ID_ATTRIBUTE", "_id").strip() or "_id"
    rev_attribute = os.environ.get("PROFILE_REV_ATTRIBUTE", "_rev").strip() or "_rev"
    if id_attribute == rev_attribute:
        raise ConfigurationError("PROFILE_ID_ATTRIBUTE and PROFILE_REV_ATTRIBUTE must differ")

    write_mode = os.environ.get("PROFILE_WRITE_MODE", WRITE_MODE_BEST_EFFORT).strip().lower()
    if write_mode not in WRITE_MODES:
        raise ConfigurationError(f"PROFILE_WRITE_MODE must be one of {', '.join(WRITE_MODES)}, got '{write_mode}'")
    conflict_retries = _parse_int("PROFILE_CONFLICT_RETRIES", 0)

    print(f"[settings] CouchDB={couchdb_url}; database={couchdb_database}; write_mode={write_mode}", file=sys.stderr)
    if write_mode == WRITE_MODE_BEST_EFFORT:
        print("[settings] WARNING: best-effort mode drops update/delete failures after logging them.", file=sys.stderr)

    return StoreConfig(
        couchdb_url=couchdb_url,
        couchdb_database=couchdb_database,
        couchdb_user=couchdb_user,
        couchdb_password=couchdb_password,
        request_timeout=request_timeout,
        design_doc=design_doc,
        view_overrides=view_overrides,
        id_attribute=id_attribute,
        rev_attribute=rev_attribute,
        write_mode=write_mode,
        conflict_retries=conflict_retries,
    )
