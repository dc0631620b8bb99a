from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional, Union

from sqlalchemy import distinct, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.engine.models import ensure_utc

from . import Learner, LearnerWord, ReviewLog


@dataclass(slots=True)
class ReviewStats:
    """Daily review counters for a learner."""

    total_due: int
    reviewed_today: int
    new_today: int


@dataclass(slots=True)
class DailyActivity:
    """Number of reviews a learner submitted on one UTC calendar day."""

    day: date
    reviews: int


async def upsert_learner(
    session: AsyncSession,
    learner_id: int,
    display_name: Optional[str],
) -> Learner:
    """Create a learner record or refresh its display name."""
    learner = await session.get(Learner, learner_id)

    if learner is None:
        now = datetime.now(timezone.utc)
        learner = Learner(
            id=learner_id,
            display_name=display_name,
            created_at=now,
            updated_at=now,
        )
        session.add(learner)
        return learner

    if learner.display_name != display_name:
        learner.display_name = display_name
        learner.updated_at = datetime.now(timezone.utc)
        await session.flush()

    return learner


def _start_of_day(now: datetime) -> datetime:
    return ensure_utc(now).replace(hour=0, minute=0, second=0, microsecond=0)


async def get_review_stats(
    session: AsyncSession,
    learner_id: int,
    now: Optional[datetime] = None,
) -> ReviewStats:
    """Count due words and today's activity for a learner."""
    if now is None:
        now = datetime.now(timezone.utc)
    now = ensure_utc(now)
    day_start = _start_of_day(now)

    due_stmt = select(func.count(LearnerWord.id)).where(
        LearnerWord.learner_id == learner_id,
        or_(LearnerWord.next_review_at.is_(None), LearnerWord.next_review_at <= now),
    )
    reviewed_stmt = (
        select(func.count(distinct(ReviewLog.learner_word_id)))
        .join(LearnerWord, ReviewLog.learner_word_id == LearnerWord.id)
        .where(LearnerWord.learner_id == learner_id, ReviewLog.reviewed_at >= day_start)
    )
    new_stmt = select(func.count(LearnerWord.id)).where(
        LearnerWord.learner_id == learner_id,
        LearnerWord.collected_at >= day_start,
    )

    total_due = (await session.execute(due_stmt)).scalar_one()
    reviewed_today = (await session.execute(reviewed_stmt)).scalar_one()
    new_today = (await session.execute(new_stmt)).scalar_one()

    return ReviewStats(
        total_due=total_due,
        reviewed_today=reviewed_today,
        new_today=new_today,
    )


WEEK_DAYS = 7


def _as_date(value: Union[str, date]) -> date:
    # SQLite hands DATE() results back as ISO strings.
    if isinstance(value, str):
        return date.fromisoformat(value)
    return value


def _review_day():
    return func.date(ReviewLog.reviewed_at).label("review_day")


async def get_weekly_activity(
    session: AsyncSession,
    learner_id: int,
    now: Optional[datetime] = None,
) -> List[DailyActivity]:
    """Reviews per day over the last seven days, oldest first, today included."""
    if now is None:
        now = datetime.now(timezone.utc)
    window_end = _start_of_day(now) + timedelta(days=1)
    window_start = window_end - timedelta(days=WEEK_DAYS)

    review_day = _review_day()
    stmt = (
        select(review_day, func.count(ReviewLog.id))
        .join(LearnerWord, ReviewLog.learner_word_id == LearnerWord.id)
        .where(
            LearnerWord.learner_id == learner_id,
            ReviewLog.reviewed_at >= window_start,
            ReviewLog.reviewed_at < window_end,
        )
        .group_by(review_day)
    )
    result = await session.execute(stmt)
    counts = {_as_date(day): total for day, total in result.all()}

    first_day = window_start.date()
    days = [first_day + timedelta(days=offset) for offset in range(WEEK_DAYS)]
    return [DailyActivity(day=day, reviews=counts.get(day, 0)) for day in days]


async def get_review_streak(
    session: AsyncSession,
    learner_id: int,
    now: Optional[datetime] = None,
) -> int:
    """Length of the most recent run of consecutive days with at least one review."""
    if now is None:
        now = datetime.now(timezone.utc)
    window_end = _start_of_day(now) + timedelta(days=1)

    review_day = _review_day()
    stmt = (
        select(review_day)
        .distinct()
        .join(LearnerWord, ReviewLog.learner_word_id == LearnerWord.id)
        .where(LearnerWord.learner_id == learner_id, ReviewLog.reviewed_at < window_end)
        .order_by(review_day.desc())
    )
    result = await session.execute(stmt)

    streak = 0
    expected: Optional[date] = None
    for value in result.scalars():
        day = _as_date(value)
        if expected is not None and day != expected:
            break
        streak += 1
        expected = day - timedelta(days=1)
    return streak
