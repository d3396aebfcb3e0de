"""
Application configuration using 12-factor environment variables.
"""
from functools import lru_cache
from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )
    
    # Application
    app_name: str = Field(default="Corp.OS Channel")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)
    
    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=5000)
    cors_origins: str = Field(default="*", description="Comma-separated list of allowed origins")
    
    # Storage
    storage_backend: Literal["memory", "file", "database"] = Field(default="file")
    data_dir: str = Field(default="./data", description="Directory holding messages.json and users.json")
    database_url: str = Field(default="sqlite:///./data/channel.db")
    
    # Uploads
    upload_dir: str = Field(default="./uploads")
    uploads_url_path: str = Field(default="/uploads")
    
    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")  # json or text
    
    @property
    def cors_origins_list(self) -> List[str]:
        """Split the configured origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
