# tarotapp/core/config.py
import logging
import os
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    SECRET_KEY: str = "dev-secret-change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7

    DATABASE_URL: str = "sqlite+aiosqlite:///./tarot.db"
    REDIS_URL: str = "redis://redis:6379"

    GEMINI_API_KEY: Optional[str] = None
    LLM_MODEL: str = "gemini-2.0-flash-lite"
    LLM_TEMPERATURE: float = 0.7
    DEFAULT_LANGUAGE: str = "en"

    USERS_COLLECTION: str = "users"
    REMOTE_TIMEOUT_SECONDS: float = 10.0
    COMPLETION_TIMEOUT_SECONDS: float = 60.0

    TAROT_DATA_PATH: str = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "data", "tarot-images.json")
    CORS_ORIGINS: List[str] = [
        "http://localhost",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]
    DEBUG: bool = False

    model_config = SettingsConfigDict(env_file=".env", extra="allow")


settings = Settings()


def load_gemini_api_key() -> Optional[str]:
    """
    Returns the Gemini API key from settings, falling back to the secrets file.
    """
    if settings.GEMINI_API_KEY:
        return settings.GEMINI_API_KEY

    base_dir = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    secrets_path = os.path.join(base_dir, "secrets", "Google-ai-studio-gemini-key.txt")
    try:
        with open(secrets_path, "r") as file:
            return file.read().strip()
    except FileNotFoundError:
        logger.warning(f"Gemini API key not configured and no key file at {secrets_path}.")
        return None
