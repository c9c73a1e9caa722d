"""
Application configuration loaded from environment variables.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import Dict, List


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(
        env_file = ".env",
        env_file_encoding = "utf-8",
        populate_by_name = True
    )

    # Database
    database_url: str = Field(default="sqlite+aiosqlite:///./family_ledger.db", alias="DATABASE_URL")

    # Application
    app_name: str = Field(default="Family Ledger", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    port: int = Field(default=8000, alias="PORT")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="json", alias="LOG_FORMAT")

    # Authorization
    privileged_roles: List[str] = Field(default=["SUPER_ADMIN", "ADMIN"], alias="PRIVILEGED_ROLES")
    actor_tokens: Dict[str, Dict[str, str]] = Field(
        default_factory=dict,
        alias="ACTOR_TOKENS",
        description="Bearer token -> {id, name, role}"
    )

    # Rollback candidates
    candidate_default_limit: int = Field(default=50, alias="CANDIDATE_DEFAULT_LIMIT")
    candidate_max_limit: int = Field(default=500, alias="CANDIDATE_MAX_LIMIT")
    candidates_require_snapshot: bool = Field(default=True, alias="CANDIDATES_REQUIRE_SNAPSHOT")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
