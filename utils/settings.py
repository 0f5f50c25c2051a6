"""Environment-driven configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

CREDENTIAL_ENV = "GEMINI_API_KEY"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"

# Values a misconfigured frontend or shell may leave behind in place of a key.
_PLACEHOLDER_CREDENTIALS = {"undefined", "null", "none"}


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables."""

    database_dir: Path
    database_file: str
    provider_base_url: str
    log_level: str
    transcript_api_url: str

    @property
    def database_path(self) -> Path:
        return self.database_dir / self.database_file


def load_settings() -> Settings:
    """Build `Settings` from the current environment.

    Call after `load_dotenv()` so values from a `.env` file are visible.
    """
    return Settings(
        database_dir=Path(os.getenv("DATABASE_DIR") or "database").expanduser(),
        database_file=os.getenv("DATABASE_FILE") or "nexus.db",
        provider_base_url=os.getenv("GEMINI_BASE_URL") or DEFAULT_BASE_URL,
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
        transcript_api_url=os.getenv("TRANSCRIPT_API_URL") or "http://localhost:3000",
    )


def read_provider_credential() -> Optional[str]:
    """Return the provider API key from the environment, or None when absent.

    Read on every call; the key is never cached.
    """
    key = (os.getenv(CREDENTIAL_ENV) or "").strip()
    if not key or key.lower() in _PLACEHOLDER_CREDENTIALS:
        return None
    return key
