"""Connection settings for the registry database.

``load_database_settings()`` reads the environment once; the engine and
the Alembic runner both derive their URLs from the resulting
``DatabaseSettings`` so they always point at the same database.

Environment:
  DATABASE_URL            full URL; wins over the PG_* parts
  PG_HOST / PG_PORT / PG_USER / PG_PASSWORD / PG_DATABASE
  PG_POOL_SIZE / PG_MAX_OVERFLOW
  PG_STATEMENT_TIMEOUT_MS server-side timeout applied to every connection
"""

import os
from dataclasses import dataclass

_ASYNC_DRIVER = "postgresql+asyncpg"
_SYNC_DRIVER = "postgresql"


def _with_driver(url: str, driver: str) -> str:
    scheme, sep, rest = url.partition("://")
    if not sep:
        raise ValueError(f"Malformed database URL: {url!r}")
    if not scheme.startswith("postgresql"):
        return url
    return f"{driver}://{rest}"


@dataclass(frozen=True)
class DatabaseSettings:
    """Where the registry tables live and how the pool is sized."""

    url: str
    pool_size: int = 5
    max_overflow: int = 10
    statement_timeout_ms: int = 30000

    @property
    def async_url(self) -> str:
        """asyncpg URL used by the application engine."""
        return _with_driver(self.url, _ASYNC_DRIVER)

    @property
    def sync_url(self) -> str:
        """psycopg2 URL used by Alembic."""
        return _with_driver(self.url, _SYNC_DRIVER)


def load_database_settings() -> DatabaseSettings:
    url = os.getenv("DATABASE_URL")
    if not url:
        url = "postgresql://{user}:{password}@{host}:{port}/{database}".format(
            user=os.getenv("PG_USER", "registry"),
            password=os.getenv("PG_PASSWORD", "registry"),
            host=os.getenv("PG_HOST", "localhost"),
            port=os.getenv("PG_PORT", "5432"),
            database=os.getenv("PG_DATABASE", "registry"),
        )
    return DatabaseSettings(
        url=url,
        pool_size=int(os.getenv("PG_POOL_SIZE", "5")),
        max_overflow=int(os.getenv("PG_MAX_OVERFLOW", "10")),
        statement_timeout_ms=int(os.getenv("PG_STATEMENT_TIMEOUT_MS", "30000")),
    )
