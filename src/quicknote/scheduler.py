"""
SM-2 spaced repetition for QuickNote review cards.

A card is New while repetitions == 0 and in Review once it has been
recalled at least once. Only a rating moves it.
"""

import logging
from datetime import datetime, timedelta

from quicknote.db import Database
from quicknote.errors import InvalidInput
from quicknote.models import EASINESS_FLOOR, Note, Rating, ReviewCard, to_utc, utcnow

logger = logging.getLogger(__name__)

# Fixed contract: changing a value reschedules every future review.
QUALITY: dict[Rating, int] = {
    Rating.AGAIN: 0,
    Rating.HARD: 3,
    Rating.GOOD: 4,
    Rating.EASY: 5,
}

PASSING_QUALITY = 3
FIRST_INTERVAL_DAYS = 1
SECOND_INTERVAL_DAYS = 6


def parse_rating(value: Rating | str) -> Rating:
    """Accept a Rating or its name (any case)."""
    if isinstance(value, Rating):
        return value
    try:
        return Rating(str(value).strip().lower())
    except ValueError:
        choices = ", ".join(r.value for r in Rating)
        raise InvalidInput(f"Invalid rating: {value!r} (expected one of: {choices})") from None


def next_easiness(easiness_factor: float, quality: int) -> float:
    """SM-2 easiness update, floored at 1.3."""
    miss = 5 - quality
    return max(EASINESS_FLOOR, easiness_factor + (0.1 - miss * (0.08 + miss * 0.02)))


def schedule(card: ReviewCard, rating: Rating, now: datetime) -> ReviewCard:
    """
    Apply one review to a card and return the updated card.

    Args:
        card: Current card state
        rating: User's answer
        now: Review time; becomes last_reviewed_at

    Returns:
        New ReviewCard; the input is left untouched.
    """
    quality = QUALITY[rating]
    now = to_utc(now)

    if quality < PASSING_QUALITY:
        # Failed recall - back to the start
        repetitions = 0
        interval_days = float(FIRST_INTERVAL_DAYS)
    else:
        repetitions = card.repetitions + 1
        if repetitions == 1:
            interval_days = float(FIRST_INTERVAL_DAYS)
        elif repetitions == 2:
            interval_days = float(SECOND_INTERVAL_DAYS)
        else:
            interval_days = float(max(1, round(card.interval_days * card.easiness_factor)))

    return card.model_copy(update={
        "repetitions": repetitions,
        "interval_days": interval_days,
        "easiness_factor": next_easiness(card.easiness_factor, quality),
        "due_at": now + timedelta(days=interval_days),
        "last_reviewed_at": now,
    })


class ReviewScheduler:
    """Applies ratings to stored cards and lists what is due."""

    def __init__(self, db: Database):
        self.db = db

    def rate(self, card_id: int, rating: Rating | str, now: datetime | None = None) -> ReviewCard:
        """Rate a card; load, reschedule and save in one write transaction."""
        rating = parse_rating(rating)
        now = now or utcnow()

        with self.db.transaction(write=True) as conn:
            card = self.db.fetch_card(conn, card_id)
            updated = schedule(card, rating, now)
            self.db.store_card(conn, updated)

        logger.info(
            f"Card {card_id} rated {rating.value}: "
            f"reps={updated.repetitions} interval={updated.interval_days:g}d "
            f"ef={updated.easiness_factor:.2f}"
        )
        return updated

    def due(self, as_of: datetime | None = None) -> list[tuple[Note, ReviewCard]]:
        """Due cards paired with their notes, read from one snapshot."""
        return self.db.due_cards(as_of or utcnow())

    def list_due(self, as_of: datetime | None = None) -> list[ReviewCard]:
        """Cards with due_at <= as_of, ordered by due_at then note id."""
        return [card for _, card in self.due(as_of)]
