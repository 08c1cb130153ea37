import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

load_dotenv()


class Settings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # API Configuration
    api_url: str = Field(default="http://localhost:5000/api", alias="API_URL")
    request_timeout: float = Field(default=30.0, alias="REQUEST_TIMEOUT")

    # Cache Configuration (seconds)
    cache_enabled: bool = Field(default=True, alias="CACHE_ENABLED")
    cache_ttl: float = Field(default=300.0, alias="CACHE_TTL")
    cache_stale_ttl: float = Field(default=30.0, alias="CACHE_STALE_TTL")

    # Retry Configuration
    retry_max_attempts: int = Field(default=3, alias="RETRY_MAX_ATTEMPTS")
    retry_initial_delay: float = Field(default=1.0, alias="RETRY_INITIAL_DELAY")
    retry_max_delay: float = Field(default=30.0, alias="RETRY_MAX_DELAY")
    retry_backoff_multiplier: float = Field(
        default=2.0, alias="RETRY_BACKOFF_MULTIPLIER"
    )

    # Feature Flags
    feature_stats: bool = Field(default=True, alias="FEATURE_STATS")
    feature_bulk_delete: bool = Field(default=True, alias="FEATURE_BULK_DELETE")

    # Guest Mode Configuration
    guest_storage_key: str = Field(
        default="finora_local_transactions", alias="GUEST_STORAGE_KEY"
    )
    guest_notice_delay: float = Field(default=2.0, alias="GUEST_NOTICE_DELAY")

    # Diagnostics
    client_debug: bool = Field(default=False, alias="CLIENT_DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @classmethod
    def from_env(cls) -> "Settings":
        return cls.model_validate(dict(os.environ))


global_settings = Settings.from_env()
