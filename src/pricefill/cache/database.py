"""SQLite file backing the optional persistent price cache.

Several CLI runs (or API workers) may point at the same file, so the
connection runs in WAL mode with a busy timeout. Cached prices are
disposable: when the on-disk layout is older than SCHEMA_VERSION the table
is dropped and rebuilt instead of migrated.
"""

import os
from typing import Self

import aiosqlite

from pricefill.logging import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION = 1
BUSY_TIMEOUT_MS = 5_000

_PRICE_CACHE_DDL = """
CREATE TABLE IF NOT EXISTS price_cache (
    cache_key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    expires_at REAL NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_price_cache_expires ON price_cache(expires_at);
"""


class CacheDatabase:
    """Owns one aiosqlite connection to the cache file.

    Usage:
        async with CacheDatabase("data/price_cache.db") as database:
            store = SqliteCacheStore(database)
    """

    def __init__(self, db_path: str = "data/price_cache.db") -> None:
        self._path = db_path
        self._conn: aiosqlite.Connection | None = None

    @property
    def path(self) -> str:
        return self._path

    @property
    def db(self) -> aiosqlite.Connection:
        """The open connection. Raises RuntimeError before connect()."""
        if self._conn is None:
            raise RuntimeError(f"Cache database {self._path} is not open")
        return self._conn

    async def connect(self) -> None:
        parent = os.path.dirname(self._path)
        if parent:
            os.makedirs(parent, exist_ok=True)

        conn = await aiosqlite.connect(self._path)
        for pragma in (
            "PRAGMA journal_mode=WAL",
            "PRAGMA synchronous=NORMAL",
            f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}",
        ):
            await conn.execute(pragma)
        self._conn = conn

        await self._prepare_schema()
        logger.info("cache_db_opened", db_path=self._path, schema_version=SCHEMA_VERSION)

    async def schema_version(self) -> int:
        cursor = await self.db.execute("PRAGMA user_version")
        row = await cursor.fetchone()
        return int(row[0]) if row else 0

    async def _prepare_schema(self) -> None:
        found = await self.schema_version()
        if 0 < found < SCHEMA_VERSION:
            logger.warning("cache_db_schema_reset", found=found, expected=SCHEMA_VERSION)
            await self.db.execute("DROP TABLE IF EXISTS price_cache")
        await self.db.executescript(_PRICE_CACHE_DDL)
        await self.db.execute(f"PRAGMA user_version={SCHEMA_VERSION}")
        await self.db.commit()

    async def close(self) -> None:
        if self._conn is None:
            return
        await self._conn.close()
        self._conn = None
        logger.info("cache_db_closed", db_path=self._path)

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        await self.close()
