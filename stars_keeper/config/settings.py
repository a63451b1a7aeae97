"""Application settings and configuration"""

import os
import sys
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings


class ConfigurationError(Exception):
    """Raised when required configuration is missing or unusable."""


def user_config_dir() -> Path:
    """Per-user configuration directory for the current platform."""
    if sys.platform == "win32":
        app_data = os.getenv("APPDATA")
        if not app_data:
            raise ConfigurationError("APPDATA environment variable not set")
        return Path(app_data)

    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support"

    xdg_config_home = os.getenv("XDG_CONFIG_HOME")
    if xdg_config_home:
        return Path(xdg_config_home)
    return Path.home() / ".config"


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    LOG_LEVEL: str = "INFO"

    # GitHub API
    GITHUB_TOKEN: Optional[str] = None
    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_TIMEOUT_SECONDS: float = 30.0
    USER_AGENT: str = "stars-keeper/0.1.0"

    # Sync behaviour
    STARS_PAGE_SIZE: int = 50
    STARS_FETCH_README: bool = True
    STARS_LEGACY_IDENTITY: bool = False  # hex(input + digest), matches databases written by older builds

    # Storage
    STARS_CONFIG_DIR: Optional[Path] = None
    DATABASE_FILENAME: str = "main.db"
    SQLITE_BUSY_TIMEOUT_MS: int = 5000

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env

    @property
    def config_dir(self) -> Path:
        if self.STARS_CONFIG_DIR is not None:
            return Path(self.STARS_CONFIG_DIR)
        return user_config_dir() / "stars-keeper"

    @property
    def database_path(self) -> Path:
        return self.config_dir / self.DATABASE_FILENAME

    @property
    def page_size(self) -> int:
        return max(1, min(int(self.STARS_PAGE_SIZE), 100))

    def require_github_token(self) -> str:
        token = (self.GITHUB_TOKEN or "").strip()
        if not token:
            raise ConfigurationError("GITHUB_TOKEN environment variable not set")
        return token


settings = Settings()
