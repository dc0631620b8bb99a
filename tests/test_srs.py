from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from src.engine.models import MIN_DIFFICULTY, ReviewableItem, ensure_utc
from src.engine.srs import (
    build_review_event,
    calculate_next_schedule,
    clamp_rating,
    next_difficulty,
    schedule,
)


def test_successful_review_increases_interval() -> None:
    now = datetime.now(timezone.utc)
    result = calculate_next_schedule(
        rating=5,
        current_difficulty=2.5,
        current_interval=6,
        current_repetitions=2,
        now=now,
    )

    assert result.repetitions == 3
    assert result.difficulty == pytest.approx(2.6)
    assert result.interval_days == 16  # round(6 * 2.6)
    assert result.next_review_at == now + timedelta(days=16)


def test_failed_review_resets_progress() -> None:
    now = datetime.now(timezone.utc)
    result = calculate_next_schedule(
        rating=1,
        current_difficulty=2.2,
        current_interval=10,
        current_repetitions=4,
        now=now,
    )

    assert result.repetitions == 0
    assert result.interval_days == 1
    assert result.next_review_at == now + timedelta(days=1)
    assert result.difficulty == pytest.approx(2.2 - 0.54)


@pytest.mark.parametrize("rating", range(0, 6))
@pytest.mark.parametrize("difficulty", [1.3, 1.31, 1.7, 2.5, 3.4])
def test_difficulty_never_drops_below_floor(rating: int, difficulty: float) -> None:
    assert next_difficulty(difficulty, rating) >= MIN_DIFFICULTY


@pytest.mark.parametrize("rating", [0, 1, 2])
@pytest.mark.parametrize("repetitions, interval", [(0, 0), (1, 1), (2, 6), (7, 120)])
def test_failing_ratings_always_restart_learning(rating: int, repetitions: int, interval: int) -> None:
    item = ReviewableItem(id=1, difficulty=2.1, interval_days=interval, repetitions=repetitions)

    updated = schedule(rating, item, datetime(2026, 1, 1, tzinfo=timezone.utc))

    assert updated.repetitions == 0
    assert updated.interval_days == 1


@pytest.mark.parametrize("difficulty", [1.3, 2.5, 3.0])
def test_first_two_successes_use_fixed_intervals(difficulty: float) -> None:
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    first = schedule(3, ReviewableItem(id=1, difficulty=difficulty), now)
    second = schedule(3, first, now + timedelta(days=1))

    assert (first.repetitions, first.interval_days) == (1, 1)
    assert (second.repetitions, second.interval_days) == (2, 6)


def test_third_success_multiplies_previous_interval_by_new_difficulty() -> None:
    item = ReviewableItem(id=1, difficulty=1.9, interval_days=11, repetitions=4)

    updated = schedule(4, item, datetime(2026, 1, 1, tzinfo=timezone.utc))

    assert updated.interval_days == 21  # 11 * 1.9 = 20.9
    assert updated.repetitions == 5


def test_interval_rounds_half_away_from_zero() -> None:
    # 5 * 2.5 == 12.5 exactly; a rating of 4 leaves difficulty at 2.5.
    result = calculate_next_schedule(
        rating=4,
        current_difficulty=2.5,
        current_interval=5,
        current_repetitions=2,
    )

    assert result.difficulty == pytest.approx(2.5)
    assert result.interval_days == 13


@pytest.mark.parametrize("rating, expected", [(-3, 0), (0, 0), (4, 4), (5, 5), (9, 5)])
def test_ratings_are_clamped_into_range(rating: int, expected: int) -> None:
    assert clamp_rating(rating) == expected


def test_out_of_range_ratings_behave_like_their_bounds() -> None:
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    item = ReviewableItem(id=1, difficulty=2.0, interval_days=6, repetitions=2)

    assert schedule(12, item, now) == schedule(5, item, now)
    assert schedule(-4, item, now) == schedule(0, item, now)


def test_new_item_rated_three() -> None:
    now = datetime(2026, 2, 1, 8, tzinfo=timezone.utc)

    updated = schedule(3, ReviewableItem.new("w1"), now)

    assert updated.difficulty == pytest.approx(2.36)
    assert updated.interval_days == 1
    assert updated.repetitions == 1


def test_new_item_rated_four_keeps_difficulty() -> None:
    updated = schedule(4, ReviewableItem.new("w1"), datetime(2026, 2, 1, tzinfo=timezone.utc))

    assert updated.difficulty == pytest.approx(2.5)
    assert updated.interval_days == 1
    assert updated.repetitions == 1


def test_second_success_scenario() -> None:
    item = ReviewableItem(id="w1", difficulty=2.36, interval_days=1, repetitions=1)

    updated = schedule(4, item, datetime(2026, 2, 2, tzinfo=timezone.utc))

    assert updated.interval_days == 6
    assert updated.repetitions == 2


def test_third_success_scenario() -> None:
    item = ReviewableItem(id="w1", difficulty=2.36, interval_days=6, repetitions=2)

    updated = schedule(5, item, datetime(2026, 2, 8, tzinfo=timezone.utc))

    assert updated.difficulty == pytest.approx(2.46)
    assert updated.repetitions == 3
    assert updated.interval_days == 15


def test_failure_after_streak_scenario() -> None:
    item = ReviewableItem(id="w1", difficulty=2.46, interval_days=15, repetitions=3)

    updated = schedule(1, item, datetime(2026, 2, 23, tzinfo=timezone.utc))

    assert updated.repetitions == 0
    assert updated.interval_days == 1
    assert MIN_DIFFICULTY <= updated.difficulty < 2.46


def test_schedule_stamps_review_and_due_times() -> None:
    now = datetime(2026, 5, 4, 18, 45, tzinfo=timezone.utc)
    item = ReviewableItem(id=9, difficulty=2.5, interval_days=6, repetitions=2)

    updated = schedule(5, item, now)

    assert updated.id == 9
    assert updated.last_reviewed_at == now
    assert updated.next_review_at == now + timedelta(days=updated.interval_days)
    assert item.repetitions == 2  # input state is untouched


def test_schedule_treats_naive_now_as_utc() -> None:
    updated = schedule(4, ReviewableItem.new(1), datetime(2026, 5, 4, 12, 0))

    assert updated.last_reviewed_at == datetime(2026, 5, 4, 12, 0, tzinfo=timezone.utc)


def test_schedule_converts_offset_now_to_utc() -> None:
    athens = timezone(timedelta(hours=2))

    updated = schedule(4, ReviewableItem.new(1), datetime(2026, 5, 4, 14, 0, tzinfo=athens))

    assert updated.last_reviewed_at.utcoffset() == timedelta(0)
    assert updated.last_reviewed_at == datetime(2026, 5, 4, 12, 0, tzinfo=timezone.utc)
    assert updated.next_review_at.hour == 12


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, None),
        (datetime(2026, 1, 1, 8, 0), datetime(2026, 1, 1, 8, 0, tzinfo=timezone.utc)),
        (
            datetime(2026, 1, 1, 8, 0, tzinfo=timezone(timedelta(hours=-5))),
            datetime(2026, 1, 1, 13, 0, tzinfo=timezone.utc),
        ),
    ],
)
def test_ensure_utc(value, expected) -> None:
    result = ensure_utc(value)

    assert result == expected
    if result is not None:
        assert result.tzinfo is timezone.utc


def test_build_review_event_copies_scheduled_state() -> None:
    now = datetime(2026, 5, 4, tzinfo=timezone.utc)
    updated = schedule(7, ReviewableItem.new(42), now)

    event = build_review_event(7, updated)

    assert event.item_id == 42
    assert event.rating == 5
    assert event.difficulty == updated.difficulty
    assert event.interval_days == 1
    assert event.repetitions == 1
    assert event.reviewed_at == now
    assert event.next_review_at == now + timedelta(days=1)


def test_build_review_event_requires_scheduled_state() -> None:
    with pytest.raises(ValueError):
        build_review_event(4, ReviewableItem.new(1))
