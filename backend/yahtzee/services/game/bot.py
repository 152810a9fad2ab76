"""Automated player.

Three pure decisions over ``(hand, scorecard, roll_count)`` plus
``play_turn``, which drives one whole bot turn on an in-memory
TurnMachine. These are heuristics, not an optimal Yahtzee strategy.
"""
from collections import Counter
from typing import List, Mapping, Optional

from yahtzee.errors import NoCategoriesLeft
from .categories import MAX_ROLLS, Category
from .scoring import available_scores, score

# Ascending maximum category value; used only when nothing scores.
# Full house (25) goes before sixes (30), so this is not pure upper-first order.
SACRIFICE_ORDER = (
    Category.ONES,
    Category.TWOS,
    Category.THREES,
    Category.FOURS,
    Category.FIVES,
    Category.FULL_HOUSE,
    Category.SIXES,
    Category.THREE_OF_A_KIND,
    Category.FOUR_OF_A_KIND,
    Category.SMALL_STRAIGHT,
    Category.CHANCE,
    Category.LARGE_STRAIGHT,
    Category.YAHTZEE,
)

STRONG_GROUP = 3


def choose_category(hand: List[int], scorecard: Mapping[Category, Optional[int]]) -> Category:
    available = available_scores(hand, scorecard)
    if not available:
        raise NoCategoriesLeft()

    for category in (Category.YAHTZEE, Category.LARGE_STRAIGHT):
        if available.get(category):
            return category

    best = max(available.values())
    if best > 0:
        # max() keeps the first of equal scores, i.e. declared order.
        return max(available, key=available.get)
    return next(c for c in SACRIFICE_ORDER if c in available)


def choose_hold(hand: List[int]) -> List[bool]:
    """Hold the largest group of equal faces; higher face wins a tie."""
    counts = Counter(d for d in hand if d)
    if not counts:
        return [False] * len(hand)
    face = max(counts, key=lambda f: (counts[f], f))
    return [d == face for d in hand]


def should_reroll(hand: List[int], scorecard: Mapping[Category, Optional[int]], roll_count: int) -> bool:
    if roll_count >= MAX_ROLLS:
        return False
    if not available_scores(hand, scorecard):
        return False
    if score(hand, Category.YAHTZEE) or score(hand, Category.LARGE_STRAIGHT):
        return False
    kept = sum(choose_hold(hand))
    return kept < STRONG_GROUP


def play_turn(machine, rng=None):
    """Play the current player's whole turn and return (rolls, result).

    Nothing here is persisted; the caller commits the machine afterwards,
    so a failure part way through leaves the stored room untouched.
    """
    rolls = [machine.roll(rng=rng)]
    while should_reroll(machine.dice, machine.current_scorecard, machine.roll_count):
        rolls.append(machine.roll(held=choose_hold(machine.dice), rng=rng))
    category = choose_category(machine.dice, machine.current_scorecard)
    return rolls, machine.score(category)
