"""
Application configuration.

All settings are read from environment variables (or an optional ``.env``
file) and exposed through the module-level ``settings`` instance.
"""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runner settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Server
    APP_HOST: str = "0.0.0.0"
    PORT: int = 5003
    APP_DEBUG: bool = False
    CORS_ORIGINS: list[str] = Field(default_factory=lambda: ["*"])

    # Logging
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_FILE: Optional[str] = None

    # Browser sessions
    BROWSER_TYPE: Literal["chromium", "firefox", "webkit"] = "chromium"
    # The dashboard workflow watches the browser drive the page.
    BROWSER_HEADLESS: bool = False

    # Test execution
    SCRATCH_DIR: Optional[Path] = None
    EXECUTION_TIMEOUT_SECONDS: float = 60.0
    MAX_CODE_BYTES: int = 256 * 1024
    MAX_PENDING_REQUESTS: int = 32
    SEND_GREETING: bool = True

    # Client
    CLIENT_RECONNECT_DELAY_SECONDS: float = 2.0
    CLIENT_RESULT_TIMEOUT_SECONDS: Optional[float] = 120.0

    @property
    def scratch_dir(self) -> Path:
        """Directory holding scratch modules for submitted test code."""
        if self.SCRATCH_DIR is not None:
            return self.SCRATCH_DIR
        return Path(tempfile.gettempdir()) / "richest"


settings = Settings()
