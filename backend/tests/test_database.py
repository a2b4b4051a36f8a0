import pytest
from sqlalchemy.pool import StaticPool

from blogauth.config import settings
from blogauth.core import database
from blogauth.core.database import engine_options, init_db, migration_heads


def test_in_memory_sqlite_shares_one_connection():
    options = engine_options("sqlite://")
    assert options["poolclass"] is StaticPool
    assert options["connect_args"] == {"check_same_thread": False}


def test_file_sqlite_uses_default_pool():
    options = engine_options("sqlite:///./blog.db")
    assert "poolclass" not in options
    assert "pool_size" not in options


def test_server_databases_get_pool_settings():
    options = engine_options("postgresql://blog:secret@db/blog")
    assert options["pool_size"] == settings.DATABASE_POOL_SIZE
    assert options["pool_pre_ping"] is True


def test_migration_head_is_initial_revision():
    assert migration_heads() == {"202610190001"}


def test_migrate_mode_requires_head(monkeypatch):
    monkeypatch.setattr(settings, "DB_INIT_MODE", "migrate")
    monkeypatch.setattr(settings, "DB_REQUIRE_HEAD", True)
    monkeypatch.setattr(database, "applied_revisions", lambda: set())
    with pytest.raises(RuntimeError, match="alembic upgrade head"):
        init_db()


def test_migrate_mode_only_warns_when_head_not_required(monkeypatch, caplog):
    monkeypatch.setattr(settings, "DB_INIT_MODE", "migrate")
    monkeypatch.setattr(settings, "DB_REQUIRE_HEAD", False)
    monkeypatch.setattr(database, "applied_revisions", lambda: {"000000000000"})
    init_db()
    assert "expected 202610190001" in caplog.text


def test_migrate_mode_accepts_current_schema(monkeypatch):
    monkeypatch.setattr(settings, "DB_INIT_MODE", "migrate")
    monkeypatch.setattr(database, "applied_revisions", lambda: {"202610190001"})
    init_db()


def test_unknown_mode_is_rejected(monkeypatch):
    monkeypatch.setattr(settings, "DB_INIT_MODE", "sometimes")
    with pytest.raises(RuntimeError, match="Unknown DB_INIT_MODE"):
        init_db()
