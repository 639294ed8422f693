from pathlib import Path
import os
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]  # repo root

ENV_FILE = os.getenv("ENV_FILE", str(BASE_DIR / ".env"))

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=ENV_FILE, extra="ignore")

    APP_ENV: str = "local"
    DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'practicum.db'}"
    CORS_ORIGINS: str = "*"  # Comma-separated list of allowed origins, or "*" for all
    LOG_LEVEL: str = "INFO"

    # "End of today" for archive eligibility is evaluated in this zone
    LOCAL_TIMEZONE: str = "UTC"

    # Optional JSON file replacing the built-in evaluation form
    EVALUATION_FORM_PATH: str | None = None

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list, handling '*' for development"""
        if self.CORS_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def local_tz(self) -> ZoneInfo:
        return ZoneInfo(self.LOCAL_TIMEZONE)

settings = Settings()
