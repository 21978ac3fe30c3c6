from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_CONFIG = SettingsConfigDict(
    env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True
)


class AppSettings(BaseSettings):
    """General application settings."""

    model_config = ENV_CONFIG

    name: str = Field("Governor Indexer", validation_alias="APP_NAME")
    debug: bool = Field(False, validation_alias="DEBUG")
    log_level: str = Field("INFO", validation_alias="LOG_LEVEL")
    log_file: Optional[str] = Field(None, validation_alias="LOG_FILE")


class RpcSettings(BaseSettings):
    """Settings related to the chain node connection."""

    model_config = ENV_CONFIG

    provider_uri: str = Field(
        default="https://public-node.testnet.rsk.co",
        validation_alias="PROVIDER_URI",
        description="JSON-RPC URL of the node hosting the Governor contract",
    )
    rpc_timeout: int = Field(default=60, gt=0, validation_alias="RPC_TIMEOUT")
    max_retries: int = Field(default=5, gt=0, validation_alias="RPC_MAX_RETRIES")
    # Minimum spacing (seconds) between raw JSON-RPC requests
    min_interval: float = Field(default=0.15, ge=0, validation_alias="RPC_MIN_INTERVAL")


class QuorumEffectSettings(BaseSettings):
    """Settings for the cached, rate limited quorum lookup."""

    model_config = ENV_CONFIG

    rate_limit_calls: int = Field(default=10, gt=0, validation_alias="QUORUM_RATE_LIMIT_CALLS")
    rate_limit_period_seconds: float = Field(default=1.0, gt=0, validation_alias="QUORUM_RATE_LIMIT_PERIOD_SECONDS")
    cache_enabled: bool = Field(default=True, validation_alias="QUORUM_CACHE_ENABLED")
    cache_file: Optional[str] = Field(
        default=None,
        validation_alias="QUORUM_CACHE_FILE",
        description="JSON file used to keep quorum lookups across restarts",
    )
    max_concurrent_lookups: int = Field(default=10, gt=0, validation_alias="QUORUM_MAX_CONCURRENT_LOOKUPS")


class StreamerSettings(BaseSettings):
    """Settings specifically for the streaming indexer."""

    model_config = ENV_CONFIG

    period_seconds: int = Field(default=10, gt=0, validation_alias="STREAMER_PERIOD_SECONDS")
    block_batch_size: int = Field(default=1000, gt=0, validation_alias="STREAMER_BLOCK_BATCH_SIZE")
    retry_errors: bool = Field(default=True, validation_alias="STREAMER_RETRY_ERRORS")
    last_synced_block_file: str = Field(
        default="last_synced_block.txt", validation_alias="STREAMER_LAST_SYNCED_BLOCK_FILE"
    )
    snapshot_file: str = Field(default="governance_snapshot.json", validation_alias="STREAMER_SNAPSHOT_FILE")


class Settings(BaseSettings):
    """
    Main Settings class that composes all sub-settings.
    Each group reads its own flat env vars, so nesting is only for grouping.
    """

    app: AppSettings = Field(default_factory=AppSettings)
    rpc: RpcSettings = Field(default_factory=RpcSettings)
    quorum: QuorumEffectSettings = Field(default_factory=QuorumEffectSettings)
    streamer: StreamerSettings = Field(default_factory=StreamerSettings)

    model_config = ENV_CONFIG


# Singleton instance
settings = Settings()
