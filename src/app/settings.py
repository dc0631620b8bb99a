"""Configuration helpers for the review engine runtime."""

from __future__ import annotations

import os
from dataclasses import dataclass

from src.engine.ranking import DEFAULT_LIMIT, MAX_LIMIT


DEFAULT_APP_NAME = "Vocab Review Engine"


def _read_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer.") from exc


@dataclass(frozen=True)
class AppSettings:
    """Strongly typed application settings loaded from environment variables."""

    app_name: str
    app_env: str
    log_level: str
    review_default_limit: int
    review_max_limit: int

    @classmethod
    def from_env(cls) -> AppSettings:
        """Construct settings directly from environment variables."""
        app_name = os.getenv("APP_NAME", DEFAULT_APP_NAME)
        app_env = os.getenv("APP_ENV", "development")
        log_level = os.getenv("LOG_LEVEL", "INFO")

        review_max_limit = _read_int("REVIEW_MAX_LIMIT", MAX_LIMIT)
        if review_max_limit < 1:
            raise RuntimeError("REVIEW_MAX_LIMIT must be a positive integer.")

        review_default_limit = _read_int("REVIEW_DEFAULT_LIMIT", DEFAULT_LIMIT)
        if review_default_limit < 1 or review_default_limit > review_max_limit:
            raise RuntimeError("REVIEW_DEFAULT_LIMIT must be between 1 and REVIEW_MAX_LIMIT.")

        return cls(
            app_name=app_name,
            app_env=app_env,
            log_level=log_level,
            review_default_limit=review_default_limit,
            review_max_limit=review_max_limit,
        )
