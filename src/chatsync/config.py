"""Configuration management."""

from typing import Literal

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Key-path store backend
    store_backend: Literal["memory", "postgres"] = "memory"

    # Database (PostgreSQL) - constructed from parts
    db_host: str = "localhost"
    db_port: str = "5432"
    db_name: str = "chatsync"
    db_user: str = "chatsync"
    db_password: str = ""
    db_pool_min_size: int = 2
    db_pool_max_size: int = 10

    @computed_field
    @property
    def database_url(self) -> str:
        """Construct database URL from parts."""
        return f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    # Attachment storage service
    storage_url: str = "http://localhost:9199"
    upload_timeout: float = 60.0

    # Placeholder size for photo/video messages rebuilt from the log
    media_placeholder_width: int = 300
    media_placeholder_height: int = 300

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    sse_heartbeat_interval: int = 30

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


# Global settings instance
settings = Settings()
