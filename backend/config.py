"""
Configuration Module
Runtime settings for PharmaGuard, read from the environment (and .env).
"""

import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field


class Settings(BaseModel):
    """Process-wide settings. Built once, read everywhere."""

    groq_api_key: Optional[str] = Field(
        default=None,
        description="Groq API key; when unset the explanation call is skipped"
    )
    groq_model: str = Field(default="llama-3.3-70b-versatile")
    groq_base_url: str = Field(default="https://api.groq.com/openai/v1")

    explanation_timeout_seconds: float = Field(
        default=15.0,
        gt=0.0,
        description="Upper bound on a single explanation call"
    )
    max_upload_mb: float = Field(default=5.0, gt=0.0)

    knowledge_base_path: Optional[str] = Field(
        default=None,
        description="JSON file replacing the built-in knowledge tables"
    )
    log_level: str = Field(default="INFO")

    @property
    def max_upload_bytes(self) -> int:
        return int(self.max_upload_mb * 1024 * 1024)


def _env(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def load_settings() -> Settings:
    """Build settings from environment variables, loading .env first."""
    load_dotenv()

    values = {
        "groq_api_key": _env("GROQ_API_KEY"),
        "groq_model": _env("GROQ_MODEL"),
        "groq_base_url": _env("GROQ_BASE_URL"),
        "explanation_timeout_seconds": _env("EXPLANATION_TIMEOUT_SECONDS"),
        "max_upload_mb": _env("MAX_UPLOAD_MB"),
        "knowledge_base_path": _env("KNOWLEDGE_BASE_PATH"),
        "log_level": _env("LOG_LEVEL"),
    }
    # Unset variables fall back to the field defaults
    return Settings(**{k: v for k, v in values.items() if v is not None})


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
