import asyncio
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest
import pytest_asyncio

from duckquery.core.database import Database
from duckquery.core.schemas import ConnectionOptions

BASE_URL = "http://duckdb.test/query/"


class FakeDuckDB:
    """
    In-process stand-in for the DuckDB HTTP endpoint.

    Records every request, answers from canned responses keyed by SQL text
    and can hold responses back until released (to pile up concurrent calls).
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.responses: Dict[str, Tuple[int, Dict[str, Any]]] = {}
        self._gate: Optional[asyncio.Event] = None

    def respond(self, sql: str, meta: List[Dict[str, str]], data: List[List[Any]]):
        body = {
            "meta": meta,
            "data": data,
            "rows": len(data),
            "statistics": {"elapsed": 0.001, "rows_read": len(data), "bytes_read": 0},
        }
        self.responses[sql] = (200, {"json": body})

    def fail(self, sql: str, status_code: int, text: str):
        self.responses[sql] = (status_code, {"text": text})

    def hold(self):
        self._gate = asyncio.Event()

    def release(self):
        self._gate.set()

    def count(self, sql: str) -> int:
        return sum(1 for r in self.requests if r.url.params.get("query") == sql)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self._gate is not None:
            await self._gate.wait()

        sql = request.url.params.get("query")
        canned = self.responses.get(sql)
        if canned is None:
            return httpx.Response(
                200,
                json={
                    "meta": [{"name": "1", "type": "INTEGER"}],
                    "data": [[1]],
                    "rows": 1,
                    "statistics": {"elapsed": 0.0, "rows_read": 1, "bytes_read": 1},
                },
            )
        status_code, body = canned
        return httpx.Response(status_code, **body)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def fake_duckdb():
    return FakeDuckDB()


@pytest.fixture
def transport(fake_duckdb):
    return httpx.MockTransport(fake_duckdb.handler)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def options():
    return ConnectionOptions(baseUrl=BASE_URL)


# Connected handle, caching disabled
@pytest_asyncio.fixture(scope="function")
async def db(options, transport, clock):
    return await Database.connect(options, transport=transport, clock=clock)


# Connected handle with a 1 second cache
@pytest_asyncio.fixture(scope="function")
async def cached_db(transport, clock):
    cached_options = ConnectionOptions(baseUrl=BASE_URL, cacheTTL=1000)
    return await Database.connect(cached_options, transport=transport, clock=clock)
