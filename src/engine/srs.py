"""Spaced-repetition scheduling based on the SM-2 memory model."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Optional

from src.engine.models import (
    MAX_RATING,
    MIN_DIFFICULTY,
    MIN_RATING,
    PASSING_RATING,
    ReviewableItem,
    ReviewEvent,
    ensure_utc,
)


FIRST_INTERVAL_DAYS = 1
SECOND_INTERVAL_DAYS = 6
RELEARN_INTERVAL_DAYS = 1


@dataclass(slots=True)
class ReviewSchedule:
    """Calculated review data for an item after receiving a rating."""

    next_review_at: datetime
    difficulty: float
    interval_days: int
    repetitions: int


def clamp_rating(rating: int) -> int:
    """Pull an out-of-range rating back into ``[0, 5]``."""
    return max(MIN_RATING, min(MAX_RATING, rating))


def _round_half_up(value: float) -> int:
    # Intervals are never negative, so flooring after +0.5 rounds halves away from zero.
    return int(math.floor(value + 0.5))


def next_difficulty(current_difficulty: float, rating: int) -> float:
    """Apply the quadratic shortfall penalty and the 1.3 floor."""
    shortfall = MAX_RATING - clamp_rating(rating)
    difficulty = current_difficulty + (0.1 - shortfall * (0.08 + shortfall * 0.02))
    return max(MIN_DIFFICULTY, difficulty)


def calculate_next_schedule(
    *,
    rating: int,
    current_difficulty: float,
    current_interval: int,
    current_repetitions: int,
    now: Optional[datetime] = None,
) -> ReviewSchedule:
    """Return the next review schedule for the given rating and prior state."""
    if now is None:
        now = datetime.now(timezone.utc)

    quality = clamp_rating(rating)
    difficulty = next_difficulty(current_difficulty, quality)

    if quality < PASSING_RATING:
        repetitions = 0
        interval = RELEARN_INTERVAL_DAYS
    else:
        repetitions = current_repetitions + 1
        if repetitions == 1:
            interval = FIRST_INTERVAL_DAYS
        elif repetitions == 2:
            interval = SECOND_INTERVAL_DAYS
        else:
            interval = _round_half_up(current_interval * difficulty)

    return ReviewSchedule(
        next_review_at=ensure_utc(now) + timedelta(days=interval),
        difficulty=difficulty,
        interval_days=interval,
        repetitions=repetitions,
    )


def schedule(
    rating: int,
    state: ReviewableItem,
    now: Optional[datetime] = None,
) -> ReviewableItem:
    """Return the item's state after a review with ``rating`` at ``now``."""
    if now is None:
        now = datetime.now(timezone.utc)
    now = ensure_utc(now)

    result = calculate_next_schedule(
        rating=rating,
        current_difficulty=state.difficulty,
        current_interval=state.interval_days,
        current_repetitions=state.repetitions,
        now=now,
    )
    return replace(
        state,
        difficulty=result.difficulty,
        interval_days=result.interval_days,
        repetitions=result.repetitions,
        last_reviewed_at=now,
        next_review_at=result.next_review_at,
    )


def build_review_event(rating: int, state: ReviewableItem) -> ReviewEvent:
    """Describe a completed review using the state ``schedule`` produced."""
    if state.last_reviewed_at is None or state.next_review_at is None:
        raise ValueError("Review events can only be built from a scheduled state.")
    return ReviewEvent(
        item_id=state.id,
        rating=clamp_rating(rating),
        difficulty=state.difficulty,
        interval_days=state.interval_days,
        repetitions=state.repetitions,
        next_review_at=state.next_review_at,
        reviewed_at=state.last_reviewed_at,
    )
