import itertools
import random

import pytest

from yahtzee.services.game.categories import ALL_CATEGORIES, Category
from yahtzee.services.game.scorecard import Scorecard
from yahtzee.services.game.scoring import available_scores, is_complete, score, totals


@pytest.mark.parametrize('face', range(1, 7))
def test_five_of_a_kind(face):
    hand = [face] * 5
    assert score(hand, Category.YAHTZEE) == 50
    assert score(hand, Category.THREE_OF_A_KIND) == 5 * face
    assert score(hand, Category.FOUR_OF_A_KIND) == 5 * face
    assert score(hand, Category.CHANCE) == 5 * face
    upper = [Category.ONES, Category.TWOS, Category.THREES, Category.FOURS, Category.FIVES, Category.SIXES]
    assert score(hand, upper[face - 1]) == 5 * face


def test_five_of_a_kind_is_not_a_full_house():
    assert score([4, 4, 4, 4, 4], Category.FULL_HOUSE) == 0


def test_full_house():
    assert score([2, 2, 3, 3, 3], Category.FULL_HOUSE) == 25
    assert score([6, 1, 6, 1, 6], Category.FULL_HOUSE) == 25
    assert score([2, 2, 3, 3, 4], Category.FULL_HOUSE) == 0
    assert score([2, 2, 2, 2, 3], Category.FULL_HOUSE) == 0


def test_upper_counts_only_matching_faces():
    hand = [3, 3, 1, 3, 6]
    assert score(hand, Category.THREES) == 9
    assert score(hand, Category.ONES) == 1
    assert score(hand, Category.SIXES) == 6
    assert score(hand, Category.FIVES) == 0


def test_of_a_kind_sums_whole_hand():
    assert score([2, 2, 2, 5, 6], Category.THREE_OF_A_KIND) == 17
    assert score([2, 2, 2, 5, 6], Category.FOUR_OF_A_KIND) == 0
    assert score([5, 5, 5, 5, 1], Category.FOUR_OF_A_KIND) == 21


@pytest.mark.parametrize('hand', [
    [1, 2, 3, 4, 6],
    [3, 4, 5, 6, 1],
    [2, 3, 4, 5, 5],
    [4, 3, 2, 1, 1],
])
def test_small_straight(hand):
    assert score(hand, Category.SMALL_STRAIGHT) == 30


def test_small_straight_needs_four_in_a_row():
    assert score([1, 2, 3, 5, 6], Category.SMALL_STRAIGHT) == 0


def test_large_straight():
    assert score([1, 2, 3, 4, 5], Category.LARGE_STRAIGHT) == 40
    assert score([6, 5, 4, 3, 2], Category.LARGE_STRAIGHT) == 40
    assert score([1, 2, 3, 4, 6], Category.LARGE_STRAIGHT) == 0
    # A large straight also counts as a small one
    assert score([2, 3, 4, 5, 6], Category.SMALL_STRAIGHT) == 30


def test_unrolled_dice_score_nothing():
    hand = [0, 0, 0, 0, 0]
    assert all(score(hand, c) == 0 for c in ALL_CATEGORIES)


def test_partly_rolled_hand_only_scores_sums():
    hand = [3, 3, 3, 0, 0]
    assert score(hand, Category.THREES) == 9
    assert score(hand, Category.CHANCE) == 9
    assert score(hand, Category.THREE_OF_A_KIND) == 0
    assert score(hand, Category.SMALL_STRAIGHT) == 0


def test_scores_are_never_negative():
    rng = random.Random(7)
    for _ in range(200):
        hand = [rng.randint(1, 6) for _ in range(5)]
        assert all(score(hand, c) >= 0 for c in ALL_CATEGORIES)


def test_wire_values_score_like_categories():
    hand = [1, 1, 1, 1, 1]
    for category in ALL_CATEGORIES:
        assert score(hand, category.value) == score(hand, category)
    assert score(hand, 'yahtzee') == 50
    assert score(hand, 'ones') == 5


def test_unknown_category_raises():
    with pytest.raises(ValueError):
        score([1, 2, 3, 4, 5], 'bogus')


def test_available_scores_skips_filled():
    card = Scorecard({Category.CHANCE: 12, Category.ONES: 0})
    available = available_scores([1, 1, 2, 3, 4], card)
    assert Category.CHANCE not in available
    assert Category.ONES not in available
    assert available[Category.SMALL_STRAIGHT] == 30
    assert len(available) == 11


def test_totals_empty_card():
    assert totals(Scorecard()) == (0, 0, 0, 0)


def test_upper_bonus_threshold():
    just_under = Scorecard({
        Category.ONES: 3, Category.TWOS: 6, Category.THREES: 9,
        Category.FOURS: 12, Category.FIVES: 15, Category.SIXES: 17,
    })
    assert totals(just_under).bonus == 0

    at_threshold = Scorecard({
        Category.ONES: 3, Category.TWOS: 6, Category.THREES: 9,
        Category.FOURS: 12, Category.FIVES: 15, Category.SIXES: 18,
        Category.CHANCE: 20,
    })
    result = totals(at_threshold)
    assert result.upper_total == 63
    assert result.bonus == 35
    assert result.lower_total == 20
    assert result.grand_total == 118


def test_totals_does_not_change_the_card():
    card = Scorecard({Category.YAHTZEE: 50, Category.SIXES: 24})
    before = card.to_dict()
    first = totals(card)
    assert totals(card) == first
    assert card.to_dict() == before


def test_is_complete_for_any_fill_order():
    orders = itertools.islice(itertools.permutations(ALL_CATEGORIES), 0, None, 997)
    for order in itertools.islice(orders, 25):
        card = Scorecard()
        for i, category in enumerate(order):
            assert not is_complete(card)
            card.fill(category, i)
        assert is_complete(card)


def test_zero_counts_as_filled():
    card = Scorecard({c: 0 for c in ALL_CATEGORIES})
    assert is_complete(card)
    assert totals(card).grand_total == 0
