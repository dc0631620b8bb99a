"""Spaced-repetition scheduling and due-set ranking."""

from .models import ReviewableItem, ReviewEvent
from .ranking import rank_due_items
from .srs import build_review_event, schedule

__all__ = ["ReviewableItem", "ReviewEvent", "build_review_event", "rank_due_items", "schedule"]
