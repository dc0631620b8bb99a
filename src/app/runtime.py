"""Bootstrap logic for wiring the review service."""

from __future__ import annotations

import logging

from src.app.settings import AppSettings
from src.db import get_session_factory, run_migrations_if_needed
from src.engine.review_workflow import ReviewService


LOGGER = logging.getLogger(__name__)


def _configure_logging(log_level: str) -> None:
    """Set up project-wide logging configuration."""
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        level=log_level,
    )


def bootstrap(settings: AppSettings) -> ReviewService:
    """Prepare the database and return a review service built from ``settings``."""
    _configure_logging(settings.log_level)

    try:
        run_migrations_if_needed()
    except Exception:
        LOGGER.exception("Database migrations failed. Aborting startup.")
        raise

    service = ReviewService(
        get_session_factory(),
        default_limit=settings.review_default_limit,
        max_limit=settings.review_max_limit,
    )
    LOGGER.info("%s is ready in %s mode.", settings.app_name, settings.app_env)
    return service
