"""
Centralized configuration for the inventory sync backend.

All environment variables and settings should be defined here
to avoid duplication across modules.
"""
import os
from functools import lru_cache
from pathlib import Path


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self):
        # CORS - comma-separated list of allowed origins, "*" for any
        self.ALLOWED_ORIGINS: list = [
            o.strip() for o in os.environ.get("ALLOWED_ORIGINS", "*").split(",") if o.strip()
        ]

        # Watched data source
        self.DATA_DIR: str = os.environ.get("SYNC_DATA_DIR", "data")
        self.INVENTORY_FILE: str = os.environ.get(
            "SYNC_INVENTORY_FILE",
            os.path.join(self.DATA_DIR, "inventory.xlsx")
        )
        self.SEED_SAMPLE: bool = _env_bool("SYNC_SEED_SAMPLE", True)

        # Polling period for the change watcher, in milliseconds
        self.POLL_INTERVAL_MS: int = int(os.environ.get("SYNC_POLL_INTERVAL_MS", "100"))

        # Server
        self.HOST: str = os.environ.get("HOST", "0.0.0.0")
        self.PORT: int = int(os.environ.get("PORT", "3000"))
        self.LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO").upper()

    @property
    def inventory_path(self) -> Path:
        return Path(self.INVENTORY_FILE).resolve()

    @property
    def poll_interval(self) -> float:
        """Polling period in seconds."""
        return max(self.POLL_INTERVAL_MS, 1) / 1000.0


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Singleton instance for easy import
settings = get_settings()
