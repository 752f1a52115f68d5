"""Application settings, loaded from environment variables / .env file."""

from __future__ import annotations

from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Telegram
    BOT_TOKEN: str

    # Corporate booking service
    BOOKING_API_URL: str = "http://localhost:5000"
    BOOKING_API_TOKEN: str = ""
    API_TIMEOUT_SECONDS: int = 20

    # Postgres (empty = no booking journal)
    DATABASE_URL: str = ""

    # Comma-separated Telegram user IDs that get booking notifications
    ADMIN_CHAT_ID: str = ""

    # Logging / hosting
    LOG_LEVEL: str = "INFO"
    HEALTH_PORT: int = 10000

    # Workflow
    REDIRECT_COUNTDOWN_SECONDS: int = 4
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024

    @property
    def admin_ids(self) -> List[int]:
        """Parse comma-separated admin IDs into a list of ints."""
        return [int(x.strip()) for x in self.ADMIN_CHAT_ID.split(",") if x.strip()]

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
