from __future__ import annotations

from dataclasses import dataclass
import logging
import os

from dotenv import load_dotenv

load_dotenv()

DEFAULT_BASE_URL = "https://ai.gateway.example/v1"
DEFAULT_MODEL = "google/gemini-2.5-flash"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, resolved once and passed to whatever needs it."""

    api_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    log_level: str = "INFO"


def load_settings() -> Settings:
    return Settings(
        api_key=os.getenv("AI_GATEWAY_API_KEY", "").strip(),
        base_url=os.getenv("AI_GATEWAY_BASE_URL", DEFAULT_BASE_URL),
        model=os.getenv("AI_GATEWAY_MODEL", DEFAULT_MODEL),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
