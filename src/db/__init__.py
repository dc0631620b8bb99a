import logging
import os
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config
from sqlalchemy import (
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from src.engine.models import DEFAULT_DIFFICULTY


LOGGER = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for SQLAlchemy models."""


class Learner(Base):
    """A person building a vocabulary collection."""

    __tablename__ = "learners"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
        server_onupdate=func.now(),
    )
    words: Mapped[list["LearnerWord"]] = relationship(
        "LearnerWord",
        back_populates="learner",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Word(Base):
    """Shared vocabulary unit that can be collected by many learners."""

    __tablename__ = "words"
    __table_args__ = (UniqueConstraint("text", "language", name="uq_words_text_language"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    language: Mapped[str] = mapped_column(String(32), nullable=False)
    phonetic: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    definition: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    learner_links: Mapped[list["LearnerWord"]] = relationship(
        "LearnerWord",
        back_populates="word",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class LearnerWord(Base):
    """Scheduling state of a word in one learner's collection."""

    __tablename__ = "learner_words"
    __table_args__ = (
        UniqueConstraint("learner_id", "word_id", name="uq_learner_words_learner_word"),
        Index("ix_learner_words_learner_id_next_review_at", "learner_id", "next_review_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    learner_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("learners.id", ondelete="CASCADE"), nullable=False
    )
    word_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("words.id", ondelete="CASCADE"), nullable=False
    )
    difficulty: Mapped[float] = mapped_column(Float, nullable=False, default=DEFAULT_DIFFICULTY)
    interval_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    repetitions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    next_review_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    context_sentence: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        server_default=text("1"),
    )
    collected_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
        server_onupdate=func.now(),
    )
    learner: Mapped["Learner"] = relationship("Learner", back_populates="words")
    word: Mapped["Word"] = relationship("Word", back_populates="learner_links")
    reviews: Mapped[list["ReviewLog"]] = relationship(
        "ReviewLog",
        back_populates="learner_word",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    # Concurrent writers of the same row fail with StaleDataError instead of overwriting each other.
    __mapper_args__ = {"version_id_col": version}


class ReviewLog(Base):
    """Append-only history of review submissions for a learner's word."""

    __tablename__ = "review_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    learner_word_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("learner_words.id", ondelete="CASCADE"), nullable=False
    )
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    difficulty: Mapped[float] = mapped_column(Float, nullable=False)
    interval_days: Mapped[int] = mapped_column(Integer, nullable=False)
    repetitions: Mapped[int] = mapped_column(Integer, nullable=False)
    next_review_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    reviewed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    learner_word: Mapped["LearnerWord"] = relationship("LearnerWord", back_populates="reviews")


_TRUTHY = {"1", "true", "yes", "on"}

# Plain PostgreSQL URLs (as exported by most hosting providers) are served through asyncpg.
_ASYNC_DRIVERS = {
    "postgres": "postgresql+asyncpg",
    "postgresql": "postgresql+asyncpg",
    "sqlite": "sqlite+aiosqlite",
}


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in _TRUTHY


def normalize_database_url(raw_url: str) -> str:
    """Expand environment variables and select an async driver for the URL."""
    url = make_url(os.path.expandvars(raw_url))
    async_driver = _ASYNC_DRIVERS.get(url.drivername)
    if async_driver is not None:
        url = url.set(drivername=async_driver)
    return url.render_as_string(hide_password=False)


def get_database_url() -> str:
    """Return the configured async database URL or raise if missing."""
    raw_url = os.getenv("DATABASE_URL")
    if not raw_url:
        raise RuntimeError("DATABASE_URL environment variable is required to connect to the database.")
    return normalize_database_url(raw_url)


@lru_cache(maxsize=1)
def get_engine() -> AsyncEngine:
    """Create (and cache) the async engine holding learners' review state."""
    return create_async_engine(
        get_database_url(),
        echo=_env_flag("SQLALCHEMY_ECHO", "false"),
        pool_pre_ping=True,
    )


@lru_cache(maxsize=1)
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return a cached async session factory bound to the engine."""
    return async_sessionmaker(get_engine(), expire_on_commit=False)


def should_run_migrations() -> bool:
    """Whether the schema should be upgraded while bootstrapping."""
    return _env_flag("RUN_MIGRATIONS_ON_STARTUP", "true")


def build_alembic_config() -> Config:
    """Point Alembic at the bundled migrations and the configured database."""
    project_root = Path(__file__).resolve().parents[2]
    alembic_cfg = Config(str(project_root / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(project_root / "migrations"))
    # Alembic interpolates option values, so literal percent signs in credentials must be doubled.
    alembic_cfg.set_main_option("sqlalchemy.url", get_database_url().replace("%", "%%"))
    return alembic_cfg


def run_migrations_if_needed(target: str = "head") -> None:
    """Upgrade the review schema to ``target`` unless startup migrations are disabled."""
    if not should_run_migrations():
        LOGGER.info("Skipping migrations because RUN_MIGRATIONS_ON_STARTUP is disabled.")
        return

    LOGGER.info("Upgrading review schema to revision %s.", target)
    command.upgrade(build_alembic_config(), target)
    LOGGER.info("Review schema is at revision %s.", target)
