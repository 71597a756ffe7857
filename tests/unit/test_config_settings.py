import pytest

from couchprofile.config import settings
from couchprofile.core.couchdb import ConfigurationError

ENV_VARS = [
    "COUCHDB_URL",
    "COUCHDB_DATABASE",
    "COUCHDB_USER",
    "COUCHDB_PASSWORD",
    "COUCHDB_REQUEST_TIMEOUT",
    "COUCHDB_DESIGN_DOC",
    "COUCHDB_VIEW_OVERRIDES",
    "PROFILE_ID_ATTRIBUTE",
    "PROFILE_REV_ATTRIBUTE",
    "PROFILE_WRITE_MODE",
    "PROFILE_CONFLICT_RETRIES",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Start every test from an empty environment and an empty /run/secrets."""
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)

    real_path = settings.Path

    def fake_path(target):
        if str(target) == "/run/secrets":
            return tmp_path
        return real_path(target)

    monkeypatch.setattr(settings, "Path", fake_path)
    return tmp_path


def test_defaults():
    cfg = settings.load_settings()

    assert cfg.couchdb_url == "http://127.0.0.1:5984"
    assert cfg.couchdb_database == "profiles"
    assert cfg.couchdb_user == ""
    assert cfg.couchdb_password == ""
    assert cfg.request_timeout == 5.0
    assert cfg.design_doc == "_design/pac4j"
    assert cfg.view_overrides == {}
    assert cfg.id_attribute == "_id"
    assert cfg.rev_attribute == "_rev"
    assert cfg.write_mode == "best-effort"
    assert cfg.conflict_retries == 0


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("COUCHDB_URL", "https://couch.internal:6984/")
    monkeypatch.setenv("COUCHDB_DATABASE", "people")
    monkeypatch.setenv("COUCHDB_USER", "svc")
    monkeypatch.setenv("COUCHDB_PASSWORD", "env-secret")
    monkeypatch.setenv("COUCHDB_REQUEST_TIMEOUT", "2.5")
    monkeypatch.setenv("COUCHDB_DESIGN_DOC", "_design/pac")
    monkeypatch.setenv("COUCHDB_VIEW_OVERRIDES", "mail=by_email, login = by_username")
    monkeypatch.setenv("PROFILE_WRITE_MODE", "STRICT")
    monkeypatch.setenv("PROFILE_CONFLICT_RETRIES", "3")

    cfg = settings.load_settings()

    assert cfg.couchdb_url == "https://couch.internal:6984"
    assert cfg.couchdb_database == "people"
    assert cfg.couchdb_user == "svc"
    assert cfg.couchdb_password == "env-secret"
    assert cfg.request_timeout == 2.5
    assert cfg.design_doc == "_design/pac"
    assert cfg.view_overrides == {"mail": "by_email", "login": "by_username"}
    assert cfg.write_mode == "strict"
    assert cfg.conflict_retries == 3


def test_password_prefers_run_secrets(monkeypatch, clean_env):
    (clean_env / "couchdb_password").write_text("file-secret\n")
    monkeypatch.setenv("COUCHDB_PASSWORD", "env-secret")

    assert settings.load_settings().couchdb_password == "file-secret"


def test_empty_secret_file_falls_back_to_env(monkeypatch, clean_env):
    (clean_env / "couchdb_password").write_text("   ")
    monkeypatch.setenv("COUCHDB_PASSWORD", "env-secret")

    assert settings.load_settings().couchdb_password == "env-secret"


@pytest.mark.parametrize(
    "var, value, message",
    [
        ("PROFILE_WRITE_MODE", "sometimes", "PROFILE_WRITE_MODE must be one of"),
        ("PROFILE_CONFLICT_RETRIES", "many", "must be an integer"),
        ("PROFILE_CONFLICT_RETRIES", "-1", "must not be negative"),
        ("COUCHDB_REQUEST_TIMEOUT", "soon", "must be a number of seconds"),
        ("COUCHDB_REQUEST_TIMEOUT", "0", "must be positive"),
        ("COUCHDB_VIEW_OVERRIDES", "mail", "must look like field=view"),
        ("COUCHDB_DATABASE", "   ", "cannot be blank"),
        ("PROFILE_ID_ATTRIBUTE", "_rev", "must differ"),
    ],
)
def test_invalid_values(monkeypatch, var, value, message):
    monkeypatch.setenv(var, value)
    with pytest.raises(ConfigurationError, match=message):
        settings.load_settings()


def test_write_modes_shared_with_profile_service():
    from couchprofile.core import profile_service

    assert settings.WRITE_MODES is profile_service.WRITE_MODES
    assert settings.StoreConfig().write_mode == profile_service.WRITE_MODE_BEST_EFFORT
    assert not hasattr(settings.StoreConfig, "strict")
