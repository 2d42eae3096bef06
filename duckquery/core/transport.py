"""
TRANSPORT - One HTTP round trip to the DuckDB HTTP endpoint

Request:
    GET {base_url}?query=<percent-encoded SQL>&default_format=JSONCompact
    X-API-Key: <api_key>        (only when configured)

No retries and no timeout of our own: whatever httpx is configured with
(options.timeout) is what applies.
"""

import logging
from typing import Dict, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from duckquery.core.exceptions import DecodeError, TransportError
from duckquery.core.schemas import ConnectionOptions, QueryResult

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"
RESULT_FORMAT = "JSONCompact"

# Same unreserved set as JavaScript's encodeURIComponent
_URI_COMPONENT_SAFE = "-_.!~*'()"


class TransportClient:
    def __init__(
        self,
        options: ConnectionOptions,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            options: Validated connection options
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        self.base_url = options.base_url
        self.timeout = options.timeout
        self.transport = transport
        self.headers: Dict[str, str] = {}
        if options.api_key:
            self.headers[API_KEY_HEADER] = options.api_key

    def build_url(self, sql: str) -> str:
        query = quote(sql, safe=_URI_COMPONENT_SAFE)
        return f"{self.base_url}?query={query}&default_format={RESULT_FORMAT}"

    async def fetch(self, sql: str) -> QueryResult:
        """
        Run `sql` on the server and return the parsed JSONCompact body.

        Raises:
            TransportError: non-2xx response (after redirects), network
                failure or an unusable base_url
            DecodeError: 2xx response that is not a JSONCompact result
        """
        url = self.build_url(sql)

        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self.transport, follow_redirects=True
        ) as client:
            try:
                response = await client.get(url, headers=self.headers)
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                logger.warning(f"Request to {self.base_url} failed: {e}")
                raise TransportError(None, str(e)) from e

            try:
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise TransportError(response.status_code, response.text) from e

            try:
                payload = response.json()
            except ValueError as e:
                raise DecodeError(f"Response body is not JSON: {e}") from e

        try:
            return QueryResult.model_validate(payload)
        except ValidationError as e:
            raise DecodeError(f"Unexpected response shape: {e}") from e
