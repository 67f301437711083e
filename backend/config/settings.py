from pydantic_settings import BaseSettings
from pydantic import field_validator
from functools import lru_cache
import logging


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables can come from:
    - .env file
    - System environment

    Variable names (case-insensitive):
    - VENN_MAX_NAMED_SETS: ceiling on named sets per diagram (partition size is 2^M)
    - VENN_DUPLICATE_POLICY: "error" or "ignore" for duplicate element inserts
    - VENN_LOG_LEVEL: root log level for scripts and services
    """

    # Engine limits
    venn_max_named_sets: int = 16
    venn_duplicate_policy: str = "error"

    # Logging
    venn_log_level: str = "INFO"
    venn_log_format: str = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"  # Ignore extra env vars

    @field_validator('venn_max_named_sets')
    @classmethod
    def check_max_named_sets(cls, v):
        """Keep the partition size (2^M regions) within the engine's hard ceiling"""
        if not 1 <= v <= 20:
            raise ValueError("venn_max_named_sets must be between 1 and 20")
        return v

    @field_validator('venn_duplicate_policy', mode='before')
    @classmethod
    def normalize_duplicate_policy(cls, v):
        v = str(v).strip().lower()
        if v not in ("error", "ignore"):
            raise ValueError("venn_duplicate_policy must be 'error' or 'ignore'")
        return v

    @field_validator('venn_log_level', mode='before')
    @classmethod
    def normalize_log_level(cls, v):
        v = str(v).strip().upper()
        if not isinstance(logging.getLevelName(v), int):
            raise ValueError(f"Unknown log level: {v}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


def configure_logging(settings: Settings = None) -> None:
    """Configure root logging the way the entry scripts expect"""
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.venn_log_level),
        format=settings.venn_log_format,
    )
