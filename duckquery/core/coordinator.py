"""
COORDINATOR - Cache + single-flight in front of the transport

For each SQL text (used as-is, no normalization) a request ends in one of:
    1. cache hit     → fresh CacheEntry, no round trip
    2. join          → same SQL already in flight, await its task
    3. new request   → fetch → decode → (cache) → unregister

All bookkeeping happens between awaits on the event loop, so no locks.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import httpx

from duckquery.core.decoder import decode_result
from duckquery.core.schemas import ConnectionOptions, TableData
from duckquery.core.transport import TransportClient

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """Decoded table plus the clock reading taken when its request started"""
    timestamp: float
    table: TableData


class QueryCoordinator:
    """Owns the result cache and the in-flight registry of one connection."""

    def __init__(
        self,
        options: ConnectionOptions,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.client = TransportClient(options, transport=transport)
        self.cache_ttl = options.cache_ttl / 1000  # ms → seconds
        self.clock = clock or time.monotonic

        self._cache: Dict[str, CacheEntry] = {}
        self._in_flight: Dict[str, "asyncio.Task[TableData]"] = {}

    @property
    def caching_enabled(self) -> bool:
        return self.cache_ttl > 0

    def _fresh_entry(self, sql: str, now: float) -> Optional[CacheEntry]:
        entry = self._cache.get(sql)
        if entry and self.caching_enabled and now - entry.timestamp < self.cache_ttl:
            return entry
        return None

    async def get(self, sql: str) -> TableData:
        """Return the decoded table for `sql`, sharing work with identical requests."""
        now = self.clock()

        entry = self._fresh_entry(sql, now)
        if entry is not None:
            logger.debug(f"Cache hit: {sql!r}")
            return entry.table

        task = self._in_flight.get(sql)
        if task is not None:
            logger.debug(f"Joining in-flight query: {sql!r}")
        else:
            task = asyncio.ensure_future(self._compute(sql, now))
            # Retrieve the outcome even if every caller was cancelled meanwhile
            task.add_done_callback(lambda t: t.cancelled() or t.exception())
            self._in_flight[sql] = task

        # A caller giving up must not cancel the round trip for everyone else
        return await asyncio.shield(task)

    async def _compute(self, sql: str, started_at: float) -> TableData:
        logger.debug(f"Running query: {sql!r}")
        try:
            result = await self.client.fetch(sql)
            table = decode_result(result)

            if self.caching_enabled:
                self._cache[sql] = CacheEntry(timestamp=started_at, table=table)

            return table
        except Exception as e:
            logger.warning(f"Query failed: {sql!r}: {e}")
            raise
        finally:
            # Settled either way, the next caller starts over
            self._in_flight.pop(sql, None)

    def clear_cache(self) -> None:
        """Drop every cached table. In-flight requests are not affected."""
        self._cache.clear()

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)
