"""registry_db connection settings and the shared transaction helper."""

from unittest.mock import AsyncMock

import pytest

from registry_db.config import DatabaseSettings, load_database_settings
from registry_db.engine import session_scope

_PG_VARS = (
    "DATABASE_URL", "PG_HOST", "PG_PORT", "PG_USER", "PG_PASSWORD", "PG_DATABASE",
    "PG_POOL_SIZE", "PG_MAX_OVERFLOW", "PG_STATEMENT_TIMEOUT_MS",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in _PG_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class _Factory:
    """Stands in for ``async_sessionmaker``: calling it opens one session."""

    def __init__(self):
        self.session = AsyncMock()

    def __call__(self):
        return self

    async def __aenter__(self):
        return self.session

    async def __aexit__(self, *exc_info):
        return False


class TestDatabaseSettings:
    def test_built_from_parts(self, clean_env):
        clean_env.setenv("PG_HOST", "db")
        clean_env.setenv("PG_DATABASE", "forms")
        settings = load_database_settings()
        assert settings.sync_url == "postgresql://registry:registry@db:5432/forms"
        assert settings.async_url == "postgresql+asyncpg://registry:registry@db:5432/forms"

    def test_database_url_wins(self, clean_env):
        clean_env.setenv("DATABASE_URL", "postgresql+asyncpg://u:p@h/d")
        clean_env.setenv("PG_HOST", "ignored")
        settings = load_database_settings()
        assert settings.sync_url == "postgresql://u:p@h/d"
        assert settings.async_url == "postgresql+asyncpg://u:p@h/d"

    def test_pool_settings(self, clean_env):
        clean_env.setenv("PG_POOL_SIZE", "2")
        clean_env.setenv("PG_MAX_OVERFLOW", "0")
        clean_env.setenv("PG_STATEMENT_TIMEOUT_MS", "500")
        settings = load_database_settings()
        assert (settings.pool_size, settings.max_overflow) == (2, 0)
        assert settings.statement_timeout_ms == 500

    def test_malformed_url(self):
        with pytest.raises(ValueError):
            DatabaseSettings(url="not a url").async_url


class TestSessionScope:
    @pytest.mark.asyncio
    async def test_commits_on_success(self):
        factory = _Factory()
        async with session_scope(factory) as session:
            assert session is factory.session
        factory.session.commit.assert_awaited_once()
        factory.session.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rolls_back_and_reraises(self):
        factory = _Factory()
        with pytest.raises(RuntimeError):
            async with session_scope(factory):
                raise RuntimeError("boom")
        factory.session.rollback.assert_awaited_once()
        factory.session.commit.assert_not_awaited()
