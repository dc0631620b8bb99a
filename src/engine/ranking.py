"""Ordering of a learner's due items by estimated forgetting risk."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple, TypeVar

from src.engine.models import ReviewableItem, ensure_utc


DEFAULT_LIMIT = 20
MAX_LIMIT = 100
SECONDS_PER_DAY = 86400.0
NEVER_REVIEWED_RATIO = math.inf

ItemT = TypeVar("ItemT", bound=ReviewableItem)


def normalize_limit(
    limit: Optional[int],
    *,
    default: int = DEFAULT_LIMIT,
    maximum: int = MAX_LIMIT,
) -> int:
    """Map a requested page size onto ``[1, maximum]``, using ``default`` for non-positive values."""
    if limit is None or limit <= 0:
        limit = default
    return min(limit, maximum)


def forgetting_ratio(item: ReviewableItem, now: datetime) -> float:
    """Elapsed time since the last review divided by the scheduled interval."""
    last_reviewed_at = ensure_utc(item.last_reviewed_at)
    if last_reviewed_at is None or item.interval_days <= 0:
        return NEVER_REVIEWED_RATIO
    elapsed = (ensure_utc(now) - last_reviewed_at).total_seconds()
    return elapsed / (item.interval_days * SECONDS_PER_DAY)


def _urgency_key(item: ReviewableItem, now: datetime) -> Tuple[float, float, int]:
    return (-forgetting_ratio(item, now), item.difficulty, item.repetitions)


def rank_due_items(
    items: Iterable[ItemT],
    limit: Optional[int] = DEFAULT_LIMIT,
    now: Optional[datetime] = None,
    *,
    default_limit: int = DEFAULT_LIMIT,
    max_limit: int = MAX_LIMIT,
) -> List[ItemT]:
    """Return eligible items ordered from most to least urgent.

    Never-reviewed items come first, then items by descending forgetting
    ratio, with harder and then less-practised items breaking ties. Items
    that tie on all three keys keep their input order. Eligibility filtering
    is left to the caller.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    decorated = [(_urgency_key(item, now), index, item) for index, item in enumerate(items)]
    decorated.sort(key=lambda entry: (entry[0], entry[1]))
    size = normalize_limit(limit, default=default_limit, maximum=max_limit)
    return [item for _, _, item in decorated[:size]]
