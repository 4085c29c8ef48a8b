import logging
import sys

from pydantic_settings import BaseSettings
from typing import Optional


def setup_logging():
    """Configure application logging."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # Set third-party loggers to WARNING to reduce noise
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# Initialize logging on import
setup_logging()

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    # Server configuration
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # Credential storage (flat key-value table)
    # Defaults to data/fanaan.db next to the package when unset
    database_url: Optional[str] = None

    # Provider endpoints
    openai_base_url: str = "https://api.openai.com/v1"
    groq_base_url: str = "https://api.groq.com/openai/v1"
    deepseek_base_url: str = "https://api.deepseek.com"
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    anthropic_base_url: str = "https://api.anthropic.com/v1"
    huggingface_base_url: str = "https://api-inference.huggingface.co/models"
    google_base_url: str = "https://generativelanguage.googleapis.com/v1beta"

    anthropic_version: str = "2023-06-01"
    anthropic_max_tokens: int = 4096

    # Timeout settings (seconds)
    provider_timeout: int = 60
    webhook_timeout: int = 10

    # Video job long-poll. None keeps polling until the provider reports done.
    video_poll_interval: float = 10.0
    video_poll_max_attempts: Optional[int] = None

    # Generated media kept in memory for preview/download
    blob_cache_size: int = 50

    # Browser sessions holding a Google key selection, least recently used evicted
    session_cache_size: int = 1000

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
