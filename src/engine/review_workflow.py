"""Workflow for serving due reviews and recording learners' ratings."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.db.learners import (
    DailyActivity,
    ReviewStats,
    get_review_stats,
    get_review_streak,
    get_weekly_activity,
)
from src.db.words import (
    apply_review,
    get_learner_word,
    list_eligible_words,
    to_reviewable_item,
)
from src.engine.models import ReviewableItem, ReviewEvent, ensure_utc
from src.engine.ranking import DEFAULT_LIMIT, MAX_LIMIT, rank_due_items
from src.engine.srs import build_review_event, schedule


LOGGER = logging.getLogger(__name__)


class ItemNotFoundError(LookupError):
    """Raised when a review targets an item the learner cannot review now."""

    def __init__(self, learner_id: int, item_id: int) -> None:
        super().__init__(f"Item {item_id} not found or not due for review for learner {learner_id}.")
        self.learner_id = learner_id
        self.item_id = item_id


@dataclass(slots=True)
class DueReview:
    """A ranked item together with the word it schedules."""

    item: ReviewableItem
    text: str
    language: str
    phonetic: Optional[str] = None
    definition: Optional[str] = None
    context_sentence: Optional[str] = None


@dataclass(slots=True)
class ReviewOutcome:
    """New state and audit record produced by one review submission."""

    item: ReviewableItem
    event: ReviewEvent


class ReviewService:
    """Coordinates ranking, scheduling and persistence for review sessions."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        default_limit: int = DEFAULT_LIMIT,
        max_limit: int = MAX_LIMIT,
    ) -> None:
        self._session_factory = session_factory
        self._default_limit = default_limit
        self._max_limit = max_limit

    async def get_due_reviews(
        self,
        learner_id: int,
        limit: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> List[DueReview]:
        """Return the learner's most urgent reviews, most urgent first."""
        if now is None:
            now = datetime.now(timezone.utc)

        async with self._session_factory() as session:
            rows = await list_eligible_words(session, learner_id, now=now)

        rows_by_id = {row.id: row for row in rows}
        ranked = rank_due_items(
            [to_reviewable_item(row) for row in rows],
            limit,
            now,
            default_limit=self._default_limit,
            max_limit=self._max_limit,
        )

        reviews: List[DueReview] = []
        for item in ranked:
            row = rows_by_id[item.id]
            reviews.append(
                DueReview(
                    item=item,
                    text=row.word.text,
                    language=row.word.language,
                    phonetic=row.word.phonetic,
                    definition=row.word.definition,
                    context_sentence=row.context_sentence,
                )
            )
        return reviews

    async def submit_review(
        self,
        learner_id: int,
        item_id: int,
        rating: int,
        now: Optional[datetime] = None,
    ) -> ReviewOutcome:
        """Schedule an item after a rating and persist it with its audit record."""
        if now is None:
            now = datetime.now(timezone.utc)
        now = ensure_utc(now)

        async with self._session_factory() as session:
            async with session.begin():
                row = await get_learner_word(session, learner_id, item_id, lock=True)
                if row is None:
                    LOGGER.warning("Review for unknown item %s from learner %s.", item_id, learner_id)
                    raise ItemNotFoundError(learner_id, item_id)

                current = to_reviewable_item(row)
                if not current.is_due(now):
                    LOGGER.warning(
                        "Review for item %s from learner %s arrived before %s.",
                        item_id,
                        learner_id,
                        current.next_review_at,
                    )
                    raise ItemNotFoundError(learner_id, item_id)

                updated = schedule(rating, current, now)
                event = build_review_event(rating, updated)
                await apply_review(session, row, updated, event)

        LOGGER.debug(
            "Scheduled item %s for learner %s: interval=%s repetitions=%s difficulty=%.2f.",
            item_id,
            learner_id,
            updated.interval_days,
            updated.repetitions,
            updated.difficulty,
        )
        return ReviewOutcome(item=updated, event=event)

    async def get_review_stats(
        self,
        learner_id: int,
        now: Optional[datetime] = None,
    ) -> ReviewStats:
        """Return today's review counters for a learner."""
        async with self._session_factory() as session:
            return await get_review_stats(session, learner_id, now=now)

    async def get_weekly_activity(
        self,
        learner_id: int,
        now: Optional[datetime] = None,
    ) -> List[DailyActivity]:
        async with self._session_factory() as session:
            return await get_weekly_activity(session, learner_id, now=now)

    async def get_review_streak(
        self,
        learner_id: int,
        now: Optional[datetime] = None,
    ) -> int:
        """Return how many consecutive days ended with the learner's latest review day."""
        async with self._session_factory() as session:
            return await get_review_streak(session, learner_id, now=now)
