"""
Unit tests for settings and application context.
"""

import pytest
from pathlib import Path

from config import AppContext, Settings, create_app_context, get_settings, reset_settings
from config.paths import tenant_dir_name, get_tenant_media_path
from data import create_database
from domain.exceptions import ValidationError


@pytest.fixture
def db():
    database = create_database("sqlite", ":memory:")
    yield database
    database.close()


@pytest.fixture
def settings(tmp_path):
    return Settings(database_path=tmp_path / "kb.db", media_root=tmp_path / "media")


# ==================== Settings ====================


def test_settings_defaults(settings):
    assert settings.required_approvers == 1
    assert settings.max_comment_depth == 3
    assert settings.forecast_periods == 12
    assert settings.to_dict()["media_root"] == str(settings.media_root)


def test_settings_validation(tmp_path):
    with pytest.raises(ValueError):
        Settings(database_path=tmp_path / "kb.db", media_root=tmp_path, required_approvers=0)


def test_settings_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("KB_DATABASE_PATH", str(tmp_path / "env.db"))
    monkeypatch.setenv("KB_MEDIA_ROOT", str(tmp_path / "env-media"))
    monkeypatch.setenv("KB_DEFAULT_TENANT", "acme")
    monkeypatch.setenv("KB_REQUIRED_APPROVERS", "2")
    monkeypatch.setenv("KB_LOOKBACK_MONTHS", "6")
    monkeypatch.setenv("KB_DEBUG", "TRUE")

    settings = Settings.from_env()

    assert settings.database_path == Path(tmp_path / "env.db")
    assert settings.media_root == Path(tmp_path / "env-media")
    assert settings.default_tenant_id == "acme"
    assert settings.required_approvers == 2
    assert settings.lookback_months == 6
    assert settings.debug_mode is True


def test_get_settings_cached(monkeypatch, tmp_path):
    monkeypatch.setenv("KB_DATABASE_PATH", str(tmp_path / "env.db"))
    monkeypatch.setenv("KB_MEDIA_ROOT", str(tmp_path / "env-media"))
    reset_settings()
    try:
        assert get_settings() is get_settings()
    finally:
        reset_settings()


# ==================== Paths ====================


def test_tenant_dir_name():
    assert tenant_dir_name("acme-eu.1") == "acme-eu.1"

    for unsafe in ("..", "acme/eu", "a\\b", "Acme", ""):
        with pytest.raises(ValidationError):
            tenant_dir_name(unsafe)


def test_tenant_media_path_created(tmp_path):
    path = get_tenant_media_path(tmp_path, "acme")
    assert path == tmp_path / "acme"
    assert path.is_dir()


# ==================== AppContext ====================


def test_context_tenant_and_user(db, settings):
    ctx = AppContext(database=db, settings=settings)

    assert not ctx.has_tenant()
    with pytest.raises(ValueError):
        ctx.require_tenant()

    scoped = ctx.with_tenant("acme").with_user("u1")
    assert (scoped.require_tenant(), scoped.require_user()) == ("acme", "u1")
    assert ctx.tenant_id is None

    switched = scoped.with_tenant("other")
    assert switched.user_id is None
    with pytest.raises(ValueError):
        switched.require_user()


def test_create_app_context_defaults_tenant(db, settings):
    ctx = create_app_context(db, settings=settings)
    assert ctx.tenant_id == "default"
    assert ctx.media_root == settings.media_root
