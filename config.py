"""Application configuration handled via environment variables."""

# pylint: disable=invalid-name, arguments-differ

from pathlib import Path
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# === Load .env and .env.local (if exists) ===
load_dotenv(dotenv_path=".env")
if Path(".env.local").exists():
    load_dotenv(dotenv_path=".env.local", override=True)

# === Dynamically detect project root ===
PROJECT_ROOT = Path(__file__).resolve().parent
FALLBACK_CACHE = PROJECT_ROOT / ".cache"


class Config(BaseSettings):  # pylint: disable=too-few-public-methods
    """Centralized application settings."""

    # === General ===
    ENVIRONMENT: str = Field("development")
    DEBUG: bool = Field(True)
    PORT: int = Field(8000)

    # === Paths ===
    LOG_DIR: Path = Field(PROJECT_ROOT / "data/logs")

    # === Remote services ===
    OFDB_API_URL: str = Field("https://api.ofdb.io/v0")
    NOMINATIM_URL: str = Field("https://nominatim.openstreetmap.org")
    REQUEST_TIMEOUT: float = Field(10.0, gt=0)

    # === Entry form ===
    OPENING_HOURS_URL: str = Field("https://openingh.openstreetmap.de/evaluation_tool/")
    CC_LICENSE_URL: str = Field(
        "https://creativecommons.org/publicdomain/zero/1.0/deed.de"
    )
    DEFAULT_LICENSE: str = Field("CC0-1.0")
    # unset: telephone numbers must be entered in international format
    PHONE_REGION: Optional[str] = Field(None)

    # === Form sessions ===
    FORM_SESSION_TTL: float = Field(3600.0, gt=0)
    MAX_FORM_SESSIONS: int = Field(1000, gt=0)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def model_post_init(self, __context):  # type: ignore[override]
        """Expand the log directory and fall back to the cache when read-only."""
        self.LOG_DIR = self.LOG_DIR.expanduser()
        use_fallback = False
        try:
            self.LOG_DIR.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            use_fallback = True
        else:
            if not os.access(self.LOG_DIR, os.W_OK):
                use_fallback = True
        if use_fallback:
            self.LOG_DIR = FALLBACK_CACHE / "logs"
            self.LOG_DIR.mkdir(parents=True, exist_ok=True)


config = Config()
