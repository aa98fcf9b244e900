"""Environment driven settings.

Every value is optional: without a store URL the app runs with an empty
participant list, and without an API key the insight panel stays hidden.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_GEMINI_MODEL = "gemini-3-flash-preview"


@dataclass(frozen=True)
class Settings:
    """Runtime configuration read from the environment.

    Attributes
    ----------
    db_url : Optional[str]
        SQLAlchemy URL of the participant store (``DB_URL``).
    db_password : Optional[str]
        Password injected into ``db_url`` when set (``DB_PASSWORD``).
    gemini_api_key : Optional[str]
        Credential for the insight generator (``GEMINI_API_KEY``).
    gemini_model : str
        Model used by the insight generator (``GEMINI_MODEL``).
    log_level : str
        Root log level applied by the application entry point (``LOG_LEVEL``).
    """

    db_url: Optional[str] = None
    db_password: Optional[str] = None
    gemini_api_key: Optional[str] = None
    gemini_model: str = DEFAULT_GEMINI_MODEL
    log_level: str = "INFO"

    @property
    def store_configured(self) -> bool:
        return bool(self.db_url)

    @property
    def insights_enabled(self) -> bool:
        return bool(self.gemini_api_key)


def _env(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def load_settings() -> Settings:
    """Load ``.env`` (without overriding the real environment) and build :class:`Settings`."""
    load_dotenv(override=False)

    settings = Settings(
        db_url=_env("DB_URL"),
        db_password=_env("DB_PASSWORD"),
        gemini_api_key=_env("GEMINI_API_KEY"),
        gemini_model=_env("GEMINI_MODEL") or DEFAULT_GEMINI_MODEL,
        log_level=(_env("LOG_LEVEL") or "INFO").upper(),
    )
    if not settings.store_configured:
        logger.warning(
            "Environment variable 'DB_URL' is not set; running with an empty participant list"
        )
    if not settings.insights_enabled:
        logger.info("Environment variable 'GEMINI_API_KEY' is not set; insights disabled")
    return settings


__all__ = ["DEFAULT_GEMINI_MODEL", "Settings", "load_settings"]
