"""Application configuration management using Pydantic Settings."""

from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application Settings
    app_name: str = Field(default="keyhouse", alias="APP_NAME")
    app_version: str = Field(default="1.0.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="", alias="LOG_FORMAT")

    # CORS Settings
    cors_origins: str = Field(default="http://localhost:3000", alias="CORS_ORIGINS")

    # Database
    database_url: str = Field(default="sqlite:///./keyhouse.db", alias="DATABASE_URL")

    # Key migration
    max_migration_batch_size: int = Field(default=100, ge=1, alias="MAX_MIGRATION_BATCH_SIZE")

    # Vault: base64-encoded 32-byte master key used to encrypt stored plaintext keys
    vault_master_key: str = Field(default="", alias="VAULT_MASTER_KEY")
    vault_key_id: str = Field(default="v1", alias="VAULT_KEY_ID")

    # Server Settings
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def resolved_log_format(self) -> str:
        """LOG_FORMAT if set, else json in production and text when DEBUG is on."""
        if self.log_format:
            return self.log_format.lower()
        return "text" if self.debug else "json"


# Global settings instance
settings = Settings()
