import logging
from typing import Any, Callable, Optional

import httpx

from duckquery.core.coordinator import QueryCoordinator
from duckquery.core.schemas import ConnectionOptions, RowData, TableData

logger = logging.getLogger(__name__)

# Sent once at connect time to prove the endpoint answers
PROBE_QUERY = "SELECT 1"


class Database:
    """
    Handle to one DuckDB HTTP endpoint.

    Example:
        db = await Database.connect(ConnectionOptions(baseUrl="http://localhost:9999"))
        rows = await db.all("SELECT 42 AS answer")
        # [{"answer": 42}]
    """

    def __init__(
        self,
        options: ConnectionOptions,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.options = options
        self._coordinator = QueryCoordinator(options, transport=transport, clock=clock)

    @classmethod
    async def connect(
        cls,
        options: Optional[ConnectionOptions] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> "Database":
        """
        Create a handle and run the probe query.

        Without options, DUCKDB_* settings are used. If the probe fails the
        error propagates and no handle is returned.
        """
        if options is None:
            options = ConnectionOptions.from_settings()

        db = cls(options, transport=transport, clock=clock)
        try:
            await db.all(PROBE_QUERY)
        except Exception as e:
            logger.error(f"Could not connect to {options.base_url}: {e}")
            raise

        logger.info(f"Connected to {options.base_url}")
        return db

    async def all(self, sql: str) -> TableData:
        return await self._coordinator.get(sql)

    async def each(self, sql: str, callback: Callable[[RowData], Any]) -> None:
        """Call `callback` once per row, in row order, after the whole result arrived."""
        rows = await self._coordinator.get(sql)
        for row in rows:
            callback(row)

    async def exec(self, sql: str) -> None:
        await self._coordinator.get(sql)

    async def run(self, sql: str) -> None:
        await self._coordinator.get(sql)

    def clear_cache(self) -> None:
        self._coordinator.clear_cache()


async def connect(
    options: Optional[ConnectionOptions] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    clock: Optional[Callable[[], float]] = None,
) -> Database:
    return await Database.connect(options, transport=transport, clock=clock)
