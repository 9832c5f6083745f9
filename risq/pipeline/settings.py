from __future__ import annotations

from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PipelineSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Service identity
    service_name: str = Field("risq-pipeline", validation_alias=AliasChoices("SERVICE_NAME"))
    service_version: str = Field("0.1.0", validation_alias=AliasChoices("SERVICE_VERSION"))
    node_name: str = Field("unknown", validation_alias=AliasChoices("NODE_NAME", "HOSTNAME"))
    port: int = Field(8080, validation_alias=AliasChoices("PORT"))
    log_level: str = Field("INFO", validation_alias=AliasChoices("LOG_LEVEL"))

    # Bus
    bus_url: str = Field("redis://localhost:6379/0", validation_alias=AliasChoices("RISQ_BUS_URL", "BUS_URL"))
    bus_enabled: bool = Field(True, validation_alias=AliasChoices("RISQ_BUS_ENABLED"))
    bus_max_reconnects: int = Field(10, validation_alias=AliasChoices("BUS_MAX_RECONNECTS"))
    bus_reconnect_wait_sec: float = Field(2.0, validation_alias=AliasChoices("BUS_RECONNECT_WAIT_SEC"))
    bus_connect_timeout_sec: float = Field(5.0, validation_alias=AliasChoices("BUS_CONNECT_TIMEOUT_SEC"))
    bus_drain_timeout_sec: float = Field(5.0, validation_alias=AliasChoices("BUS_DRAIN_TIMEOUT_SEC"))

    # Context store
    redis_url: str = Field("redis://localhost:6379/1", validation_alias=AliasChoices("REDIS_URL"))
    context_ttl_sec: int = Field(7 * 24 * 3600, validation_alias=AliasChoices("CONTEXT_TTL_SEC"))

    # Per-call timeouts
    lookup_timeout_sec: float = Field(10.0, validation_alias=AliasChoices("LOOKUP_TIMEOUT_SEC"))
    llm_timeout_sec: float = Field(60.0, validation_alias=AliasChoices("LLM_TIMEOUT_SEC"))
    store_timeout_sec: float = Field(10.0, validation_alias=AliasChoices("STORE_TIMEOUT_SEC"))

    # LLM
    openai_api_key: str = Field("", validation_alias=AliasChoices("OPENAI_API_KEY"))
    openai_base_url: str = Field("https://api.openai.com/v1", validation_alias=AliasChoices("OPENAI_BASE_URL"))
    openai_model: str = Field("gpt-4", validation_alias=AliasChoices("OPENAI_MODEL"))
    openai_temperature: float = Field(0.3, validation_alias=AliasChoices("OPENAI_TEMPERATURE"))
    openai_max_tokens: int = Field(1000, validation_alias=AliasChoices("OPENAI_MAX_TOKENS"))

    # Market data
    news_api_key: str = Field("", validation_alias=AliasChoices("NEWS_API_KEY"))
    news_api_url: str = Field("https://newsapi.org/v2", validation_alias=AliasChoices("NEWS_API_URL"))


@lru_cache(maxsize=1)
def get_settings() -> PipelineSettings:
    return PipelineSettings()
