from collections import Counter
from typing import Dict, List, Mapping, NamedTuple, Optional

from .categories import (
    ALL_CATEGORIES,
    FULL_HOUSE_SCORE,
    LARGE_STRAIGHT_SCORE,
    LOWER_CATEGORIES,
    SMALL_STRAIGHT_SCORE,
    UPPER_BONUS_THRESHOLD,
    UPPER_BONUS_VALUE,
    UPPER_CATEGORIES,
    UPPER_FACE,
    YAHTZEE_SCORE,
    Category,
)

_SMALL_STRAIGHTS = ({1, 2, 3, 4}, {2, 3, 4, 5}, {3, 4, 5, 6})
_LARGE_STRAIGHTS = ({1, 2, 3, 4, 5}, {2, 3, 4, 5, 6})


class Totals(NamedTuple):
    upper_total: int
    bonus: int
    lower_total: int
    grand_total: int

    def to_dict(self) -> Dict[str, int]:
        return self._asdict()


def _face_counts(hand: List[int]) -> Counter:
    # Unrolled dice (0) never form a pattern.
    return Counter(d for d in hand if d)


def score(hand: List[int], category: Category) -> int:
    """Score a five-die hand in one category.

    Five of a kind is not a full house: the full house needs two distinct
    faces, one showing three times and one twice.
    """
    category = Category(category)
    counts = _face_counts(hand)
    total = sum(hand)

    if category in UPPER_FACE:
        face = UPPER_FACE[category]
        return counts[face] * face
    if category is Category.CHANCE:
        return total
    # Patterns need all five dice rolled.
    if not all(hand):
        return 0

    if category is Category.THREE_OF_A_KIND:
        return total if any(c >= 3 for c in counts.values()) else 0
    if category is Category.FOUR_OF_A_KIND:
        return total if any(c >= 4 for c in counts.values()) else 0
    if category is Category.FULL_HOUSE:
        return FULL_HOUSE_SCORE if sorted(counts.values()) == [2, 3] else 0
    if category is Category.SMALL_STRAIGHT:
        faces = set(counts)
        return SMALL_STRAIGHT_SCORE if any(s <= faces for s in _SMALL_STRAIGHTS) else 0
    if category is Category.LARGE_STRAIGHT:
        return LARGE_STRAIGHT_SCORE if set(counts) in _LARGE_STRAIGHTS else 0
    return YAHTZEE_SCORE if 5 in counts.values() else 0


def available_scores(hand: List[int], scorecard: Mapping[Category, Optional[int]]) -> Dict[Category, int]:
    """Scores the hand would earn in every category still unfilled."""
    return {
        category: score(hand, category)
        for category in ALL_CATEGORIES
        if scorecard.get(category) is None
    }


def totals(scorecard: Mapping[Category, Optional[int]]) -> Totals:
    upper_total = sum(scorecard.get(c) or 0 for c in UPPER_CATEGORIES)
    bonus = UPPER_BONUS_VALUE if upper_total >= UPPER_BONUS_THRESHOLD else 0
    lower_total = sum(scorecard.get(c) or 0 for c in LOWER_CATEGORIES)
    return Totals(upper_total, bonus, lower_total, upper_total + bonus + lower_total)


def is_complete(scorecard: Mapping[Category, Optional[int]]) -> bool:
    return all(scorecard.get(c) is not None for c in ALL_CATEGORIES)
