"""Value types shared by the scheduler, the ranker and their callers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Hashable, Optional


DEFAULT_DIFFICULTY = 2.5
MIN_DIFFICULTY = 1.3
MIN_RATING = 0
MAX_RATING = 5
PASSING_RATING = 3


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return ``value`` in UTC, reading naive timestamps as UTC already."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True, slots=True)
class ReviewableItem:
    """Memory-strength state of one learned unit for one learner."""

    id: Hashable
    difficulty: float = DEFAULT_DIFFICULTY
    interval_days: int = 0
    repetitions: int = 0
    last_reviewed_at: Optional[datetime] = None
    next_review_at: Optional[datetime] = None

    @classmethod
    def new(cls, item_id: Hashable) -> ReviewableItem:
        """Return the initial state of a freshly collected unit."""
        return cls(id=item_id)

    def is_due(self, now: datetime) -> bool:
        """Whether the item is eligible for review at ``now``."""
        due_at = ensure_utc(self.next_review_at)
        return due_at is None or due_at <= ensure_utc(now)


@dataclass(frozen=True, slots=True)
class ReviewEvent:
    """Immutable audit record of a single review submission."""

    item_id: Hashable
    rating: int
    difficulty: float
    interval_days: int
    repetitions: int
    next_review_at: datetime
    reviewed_at: datetime
