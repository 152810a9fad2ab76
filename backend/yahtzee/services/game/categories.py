from enum import Enum


class Category(str, Enum):
    ONES = 'ones'
    TWOS = 'twos'
    THREES = 'threes'
    FOURS = 'fours'
    FIVES = 'fives'
    SIXES = 'sixes'
    THREE_OF_A_KIND = 'three_of_a_kind'
    FOUR_OF_A_KIND = 'four_of_a_kind'
    FULL_HOUSE = 'full_house'
    SMALL_STRAIGHT = 'small_straight'
    LARGE_STRAIGHT = 'large_straight'
    YAHTZEE = 'yahtzee'
    CHANCE = 'chance'

    @classmethod
    def parse(cls, value):
        """Return the Category for a wire value, or None if it is not one."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


UPPER_CATEGORIES = (
    Category.ONES,
    Category.TWOS,
    Category.THREES,
    Category.FOURS,
    Category.FIVES,
    Category.SIXES,
)

LOWER_CATEGORIES = (
    Category.THREE_OF_A_KIND,
    Category.FOUR_OF_A_KIND,
    Category.FULL_HOUSE,
    Category.SMALL_STRAIGHT,
    Category.LARGE_STRAIGHT,
    Category.YAHTZEE,
    Category.CHANCE,
)

# Declared order; skip and tie-breaks follow it.
ALL_CATEGORIES = UPPER_CATEGORIES + LOWER_CATEGORIES

UPPER_FACE = {category: face for face, category in enumerate(UPPER_CATEGORIES, start=1)}

UPPER_BONUS_THRESHOLD = 63
UPPER_BONUS_VALUE = 35
FULL_HOUSE_SCORE = 25
SMALL_STRAIGHT_SCORE = 30
LARGE_STRAIGHT_SCORE = 40
YAHTZEE_SCORE = 50

DICE_COUNT = 5
MAX_ROLLS = 3
TOTAL_ROUNDS = len(ALL_CATEGORIES)
