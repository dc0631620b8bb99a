from src.app import AppSettings, bootstrap
from src.engine.review_workflow import ReviewService

__all__ = ["main", "ReviewService"]


def main() -> ReviewService:
    """Entry point for the application."""
    settings = AppSettings.from_env()
    return bootstrap(settings)


if __name__ == "__main__":
    main()
