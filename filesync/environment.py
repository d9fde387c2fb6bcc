"""Environment configuration management."""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from filesync.utils.logging import configure_logging

load_dotenv()


class EnvironmentConfig(BaseModel):
    """Process-level settings read from the environment or a .env file."""

    FILESYNC_CONFIG: str = Field("config.yml", description="Path of the YAML configuration file")
    FILESYNC_BASE_DIR: str = Field("", description="Node base directory (defaults to the working directory)")
    FILESYNC_DEBUG: bool = Field(False, description="Enable debug logging")
    FILESYNC_LOG_LEVEL: str = Field(
        "INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    FILESYNC_LOG_FILE: Optional[str] = Field(None, description="Optional rotating log file")

    @property
    def base_dir(self) -> Path:
        """Directory every local location and the shared root are resolved against."""
        return Path(self.FILESYNC_BASE_DIR).expanduser() if self.FILESYNC_BASE_DIR else Path.cwd()

    @property
    def config_path(self) -> Path:
        """Configuration file path, relative paths resolved against the base directory."""
        path = Path(self.FILESYNC_CONFIG).expanduser()
        return path if path.is_absolute() else self.base_dir / path

    @property
    def log_level(self) -> str:
        return "DEBUG" if self.FILESYNC_DEBUG else self.FILESYNC_LOG_LEVEL

    @classmethod
    def load(cls) -> "EnvironmentConfig":
        """Load environment configuration from environment variables."""
        env_vars = {
            "FILESYNC_CONFIG": os.getenv("FILESYNC_CONFIG", "config.yml"),
            "FILESYNC_BASE_DIR": os.getenv("FILESYNC_BASE_DIR", ""),
            "FILESYNC_DEBUG": os.getenv("FILESYNC_DEBUG", "false").lower() in ("true", "1", "yes"),
            "FILESYNC_LOG_LEVEL": os.getenv("FILESYNC_LOG_LEVEL", "INFO").upper(),
            "FILESYNC_LOG_FILE": os.getenv("FILESYNC_LOG_FILE") or None,
        }
        config = cls(**env_vars)
        configure_logging(config.log_level, config.FILESYNC_LOG_FILE)
        return config


# Global environment configuration instance
_env_config: Optional[EnvironmentConfig] = None


def get_env_config() -> EnvironmentConfig:
    """Get the environment configuration singleton."""
    global _env_config
    if _env_config is None:
        _env_config = EnvironmentConfig.load()
    return _env_config

