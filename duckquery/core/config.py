from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DUCKDB_URL: Optional[str] = None
    DUCKDB_API_KEY: Optional[str] = None
    DUCKDB_CACHE_TTL: int = 0  # milliseconds, 0 disables caching
    DUCKDB_TIMEOUT: Optional[float] = None

    # This tells Pydantic to read from the .env file
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Create a single instance of the settings to use everywhere
settings = Settings()
