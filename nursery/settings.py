"""
Centralized settings for the nursery tooling.

All environment variables should be defined here
to avoid duplication across modules.
"""
import os
from functools import lru_cache
from pathlib import Path


class Settings:
    """Settings loaded from environment variables."""

    # Logging level used by the command-line entry points
    LOG_LEVEL: str = os.environ.get("NURSERY_LOG_LEVEL", "WARNING").upper()

    # Matcher thresholds / supplier aliases (JSON)
    MATCH_CONFIG_PATH: str = os.environ.get(
        "NURSERY_MATCH_CONFIG",
        str(Path(__file__).parent / "order_match" / "match_config.json"),
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
