from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from duckquery.core.config import Settings, settings


# Decoded rows: column name -> typed value
RowData = Dict[str, Any]
TableData = List[RowData]


# =========================
# CONNECTION
# =========================
class ConnectionOptions(BaseModel):
    base_url: str = Field(alias="baseUrl", min_length=1)
    api_key: Optional[str] = Field(default=None, alias="apiKey")
    # Milliseconds. 0 disables the result cache
    cache_ttl: int = Field(default=0, alias="cacheTTL", ge=0)
    timeout: Optional[float] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        if value.endswith("/"):
            value = value[:-1]
        if not value:
            raise ValueError("base_url must not be empty")
        return value

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "ConnectionOptions":
        """Build options from DUCKDB_* environment variables (or .env)."""
        config = config or settings
        if not config.DUCKDB_URL:
            raise ValueError("DUCKDB_URL is not set")

        return cls(
            base_url=config.DUCKDB_URL,
            api_key=config.DUCKDB_API_KEY,
            cache_ttl=config.DUCKDB_CACHE_TTL,
            timeout=config.DUCKDB_TIMEOUT,
        )


# =========================
# WIRE RESULT (JSONCompact)
# =========================
class ColumnMeta(BaseModel):
    name: str
    type: str


class QueryStatistics(BaseModel):
    elapsed: float = 0.0
    rows_read: int = 0
    bytes_read: int = 0


class QueryResult(BaseModel):
    """
    Body of one JSONCompact response.

    Example:
        {
            "meta": [{"name": "id", "type": "BIGINT"}],
            "data": [["1"], ["2"]],
            "rows": 2,
            "statistics": {"elapsed": 0.001, "rows_read": 2, "bytes_read": 16}
        }
    """

    meta: List[ColumnMeta]
    data: List[List[Any]]
    rows: int = 0
    statistics: QueryStatistics = Field(default_factory=QueryStatistics)
