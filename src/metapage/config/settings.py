from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="METAPAGE_",
        env_file=".env",
        extra="ignore",
    )

    # Runtime
    ENVIRONMENT: str = Field(default="dev", description="Environment name")
    HOST: str = Field(default="0.0.0.0", description="Bind host")
    PORT: int = Field(default=7920, description="Bind port")

    # Remote data service (metadata, getData, execProc)
    DATA_SERVICE_BASE_URL: str = Field(
        default="http://localhost:3000/api",
        description="Base URL of the server that owns page metadata and runs SQL",
    )
    DATA_SERVICE_TOKEN: str = Field(
        default="", description="Optional bearer token for the data service"
    )
    DATA_SERVICE_TIMEOUT_SECONDS: float = Field(
        default=30.0, description="Transport timeout for data service calls"
    )
    DEFAULT_CONN_CODE: str = Field(
        default="",
        description="Connection code sent with data calls when none is set on the request",
    )
    LANGUAGE_ID: int = Field(default=1, description="Language used for page metadata")

    # Engine
    DEBUG_ACTIONS: bool = Field(
        default=False, description="Start sessions with action debug stepping enabled"
    )
    DATE_FORMAT: str = Field(
        default="%d/%m/%Y", description="strftime format for Date/DateTime parameters"
    )
    DB_LOG_MAX_ENTRIES: int = Field(
        default=1000, description="Max in-memory db log entries kept per session"
    )
    PREFETCH_DROPDOWNS: bool = Field(
        default=True, description="Load DropDownBox rows when a page is first loaded"
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
