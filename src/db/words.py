"""Helpers for persisting learners' vocabulary and its review history."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.engine.models import DEFAULT_DIFFICULTY, ReviewableItem, ReviewEvent, ensure_utc

from . import LearnerWord, ReviewLog, Word


@dataclass(slots=True)
class WordPayload:
    """Definition of a vocabulary unit that may be persisted or re-used."""

    text: str
    language: str
    phonetic: Optional[str] = None
    definition: Optional[str] = None

    def normalized(self) -> "WordPayload":
        """Return a payload with leading/trailing whitespace stripped."""
        return WordPayload(
            text=self.text.strip(),
            language=self.language.strip().lower(),
            phonetic=self.phonetic.strip() if isinstance(self.phonetic, str) else self.phonetic,
            definition=self.definition.strip() if isinstance(self.definition, str) else self.definition,
        )


async def get_or_create_word(session: AsyncSession, payload: WordPayload) -> tuple[Word, bool]:
    """Fetch a shared word or create it when missing."""
    normalized = payload.normalized()

    stmt = select(Word).where(Word.text == normalized.text, Word.language == normalized.language)
    result = await session.execute(stmt)
    word = result.scalars().first()

    if word is not None:
        # Fill in details the first submission did not have.
        has_changes = False
        if normalized.phonetic and not word.phonetic:
            word.phonetic = normalized.phonetic
            has_changes = True
        if normalized.definition and not word.definition:
            word.definition = normalized.definition
            has_changes = True
        if has_changes:
            await session.flush()
        return word, False

    word = Word(
        text=normalized.text,
        language=normalized.language,
        phonetic=normalized.phonetic,
        definition=normalized.definition,
    )
    session.add(word)
    await session.flush()
    return word, True


async def add_word_for_learner(
    session: AsyncSession,
    learner_id: int,
    word: Word,
    context_sentence: Optional[str] = None,
    now: Optional[datetime] = None,
) -> tuple[LearnerWord, bool]:
    """Attach a shared word to a learner's collection in its initial review state."""
    if now is None:
        now = datetime.now(timezone.utc)

    stmt = select(LearnerWord).where(
        LearnerWord.learner_id == learner_id,
        LearnerWord.word_id == word.id,
    )
    result = await session.execute(stmt)
    learner_word = result.scalars().first()

    if learner_word is not None:
        if context_sentence and not learner_word.context_sentence:
            learner_word.context_sentence = context_sentence.strip()
            await session.flush()
        return learner_word, False

    learner_word = LearnerWord(
        learner_id=learner_id,
        word_id=word.id,
        difficulty=DEFAULT_DIFFICULTY,
        interval_days=0,
        repetitions=0,
        last_reviewed_at=None,
        next_review_at=None,
        context_sentence=context_sentence.strip() if context_sentence else None,
        collected_at=now,
    )
    session.add(learner_word)
    await session.flush()
    return learner_word, True


async def get_learner_word(
    session: AsyncSession,
    learner_id: int,
    learner_word_id: int,
    *,
    lock: bool = False,
) -> Optional[LearnerWord]:
    """Look up one of a learner's words by id."""
    stmt = (
        select(LearnerWord)
        .options(selectinload(LearnerWord.word))
        .where(LearnerWord.id == learner_word_id, LearnerWord.learner_id == learner_id)
    )
    if lock:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt)
    return result.scalars().first()


def _eligible_clause(now: datetime):
    return or_(LearnerWord.next_review_at.is_(None), LearnerWord.next_review_at <= now)


async def list_eligible_words(
    session: AsyncSession,
    learner_id: int,
    now: Optional[datetime] = None,
) -> List[LearnerWord]:
    """Return a learner's words that are due now or were never scheduled."""
    if now is None:
        now = datetime.now(timezone.utc)
    now = ensure_utc(now)

    stmt = (
        select(LearnerWord)
        .options(selectinload(LearnerWord.word))
        .where(LearnerWord.learner_id == learner_id, _eligible_clause(now))
        .order_by(LearnerWord.id)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


def to_reviewable_item(learner_word: LearnerWord) -> ReviewableItem:
    """Convert a stored row into the scheduler's value type."""
    return ReviewableItem(
        id=learner_word.id,
        difficulty=learner_word.difficulty if learner_word.difficulty is not None else DEFAULT_DIFFICULTY,
        interval_days=learner_word.interval_days or 0,
        repetitions=learner_word.repetitions or 0,
        last_reviewed_at=ensure_utc(learner_word.last_reviewed_at),
        next_review_at=ensure_utc(learner_word.next_review_at),
    )


async def apply_review(
    session: AsyncSession,
    learner_word: LearnerWord,
    state: ReviewableItem,
    event: ReviewEvent,
) -> ReviewLog:
    """Store a scheduling outcome and its audit record in the current transaction."""
    learner_word.difficulty = state.difficulty
    learner_word.interval_days = state.interval_days
    learner_word.repetitions = state.repetitions
    learner_word.last_reviewed_at = state.last_reviewed_at
    learner_word.next_review_at = state.next_review_at
    learner_word.updated_at = event.reviewed_at

    review_log = ReviewLog(
        learner_word_id=learner_word.id,
        rating=event.rating,
        difficulty=event.difficulty,
        interval_days=event.interval_days,
        repetitions=event.repetitions,
        next_review_at=event.next_review_at,
        reviewed_at=event.reviewed_at,
    )
    session.add(review_log)
    await session.flush()
    return review_log
