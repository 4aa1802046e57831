"""Raw key/value backends for the price cache.

A store only persists (value text, expiry) pairs. Encoding, TTL policy and
corruption handling belong to PriceCache.
"""

from __future__ import annotations

from typing import Protocol

from pricefill.cache.database import CacheDatabase


class CacheStore(Protocol):
    """Minimal async key/value interface backing PriceCache."""

    async def get(self, key: str) -> tuple[str, float] | None:
        """Return (value, expires_at) or None if absent."""
        ...

    async def set(self, key: str, value: str, expires_at: float) -> None:
        """Insert or overwrite an entry."""
        ...

    async def delete(self, key: str) -> None:
        """Remove an entry if present."""
        ...

    async def purge_expired(self, now: float) -> int:
        """Delete entries with expires_at <= now. Returns how many went."""
        ...


class MemoryCacheStore:
    """Process-lifetime dict store. Default backend."""

    def __init__(self) -> None:
        self._entries: dict[str, tuple[str, float]] = {}

    async def get(self, key: str) -> tuple[str, float] | None:
        return self._entries.get(key)

    async def set(self, key: str, value: str, expires_at: float) -> None:
        self._entries[key] = (value, expires_at)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def purge_expired(self, now: float) -> int:
        expired = [k for k, (_, expires_at) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)


class SqliteCacheStore:
    """Cache entries in a SQLite file, shared across invocations/processes."""

    def __init__(self, database: CacheDatabase) -> None:
        self._database = database

    async def get(self, key: str) -> tuple[str, float] | None:
        cursor = await self._database.db.execute(
            "SELECT value, expires_at FROM price_cache WHERE cache_key = ?",
            (key,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return str(row[0]), float(row[1])

    async def set(self, key: str, value: str, expires_at: float) -> None:
        await self._database.db.execute(
            "INSERT OR REPLACE INTO price_cache (cache_key, value, expires_at) "
            "VALUES (?, ?, ?)",
            (key, value, expires_at),
        )
        await self._database.db.commit()

    async def delete(self, key: str) -> None:
        await self._database.db.execute(
            "DELETE FROM price_cache WHERE cache_key = ?", (key,)
        )
        await self._database.db.commit()

    async def purge_expired(self, now: float) -> int:
        """Delete all entries whose expiry has passed. Returns rows removed."""
        cursor = await self._database.db.execute(
            "DELETE FROM price_cache WHERE expires_at <= ?", (now,)
        )
        await self._database.db.commit()
        return cursor.rowcount
