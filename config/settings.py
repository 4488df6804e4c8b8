"""
Configuration management for the course dependency engine
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional
from functools import lru_cache

from config.rules import AnalysisRules


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # Store
    store_backend: str = Field(default="sql", description="sql or memory")
    database_url: str = Field(default="sqlite+aiosqlite:///./coursegraph.db")
    database_echo: bool = Field(default=False)

    # Cache
    cache_backend: str = Field(default="memory", description="memory, redis or none")
    redis_url: Optional[str] = Field(default="redis://localhost:6379/0")
    cache_ttl_seconds: int = Field(default=600)
    cache_prefix: str = Field(default="dependency_analysis")

    # Traversal
    max_depth: int = Field(default=10, ge=1)

    # Logging
    log_level: str = Field(default="INFO")

    # Data Paths
    workbook_path: str = Field(default="data/course_graph.xlsx")

    # Scoring / propagation rule tables
    rules: AnalysisRules = Field(default_factory=AnalysisRules)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Course states that never show up in traversal results
TERMINAL_STATUSES = {"deleted", "cancelled"}

# Soft-deleted courses cannot take part in new dependencies
DELETED_STATUS = "deleted"

PRIORITY_ORDER = {
    "low": 0,
    "medium": 1,
    "high": 2,
    "critical": 3,
}
