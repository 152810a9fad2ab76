"""Per-room turn state machine.

Holds everything a turn can change: dice, held mask, roll count, the
current player, the round and every player's scorecard. It is built from
a persisted snapshot, mutated in memory and written back by the
authority, so it never touches the database or the network itself.
"""
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from yahtzee.errors import (
    GameNotInProgress,
    InvalidDieIndex,
    MaxRollsReached,
    MustRollFirst,
    NoCategoriesLeft,
)
from .categories import DICE_COUNT, MAX_ROLLS, Category
from .scorecard import Scorecard
from .scoring import available_scores, is_complete, totals
from .scoring import score as score_hand

# Server-side source of every non-zero die value.
_rng = random.SystemRandom()


class TurnPhase(str, Enum):
    AWAITING_ROLL = 'awaiting_roll'
    MID_TURN = 'mid_turn'
    AWAITING_CATEGORY = 'awaiting_category'
    GAME_FINISHED = 'game_finished'


@dataclass
class RollResult:
    player_index: int
    hand: List[int]
    held: List[bool]
    roll_count: int
    available: Dict[Category, int]

    def to_dict(self):
        return {
            'player_index': self.player_index,
            'hand': list(self.hand),
            'held': list(self.held),
            'roll_count': self.roll_count,
            'available_categories': {c.value: s for c, s in self.available.items()},
        }


@dataclass
class ScoreResult:
    player_index: int
    category: Category
    score: int
    next_player_index: int
    round: int
    finished: bool
    final_ranking: Optional[List[dict]] = None
    skipped: bool = False

    def to_dict(self):
        data = {
            'player_index': self.player_index,
            'category': self.category.value,
            'score': self.score,
            'next_player_index': self.next_player_index,
            'round': self.round,
            'finished': self.finished,
        }
        if self.skipped:
            data['skipped'] = True
        if self.final_ranking is not None:
            data['final_ranking'] = self.final_ranking
        return data


def roll_dice(current: List[int], held: List[bool], rng=None) -> List[int]:
    """Reroll every position that is not held; held dice keep their value."""
    rng = rng or _rng
    return [value if held[i] else rng.randint(1, 6) for i, value in enumerate(current)]


def rank_players(scorecards: List[Scorecard]) -> List[dict]:
    """Rank by grand total, descending.

    Equal totals keep player-list order, so the lower index is ranked first
    and wins a tie. That rule is arbitrary, not a game guarantee.
    """
    entries = []
    for index, card in enumerate(scorecards):
        entry = {'player_index': index}
        entry.update(totals(card).to_dict())
        entries.append(entry)
    ranking = sorted(entries, key=lambda e: -e['grand_total'])
    for position, entry in enumerate(ranking, start=1):
        entry['rank'] = position
        entry['is_winner'] = position == 1
    return ranking


@dataclass
class TurnMachine:
    scorecards: List[Scorecard]
    current_player: int = 0
    round: int = 1
    dice: List[int] = field(default_factory=lambda: [0] * DICE_COUNT)
    held: List[bool] = field(default_factory=lambda: [False] * DICE_COUNT)
    roll_count: int = 0
    finished: bool = False
    final_ranking: Optional[List[dict]] = None

    @classmethod
    def new_game(cls, player_count: int) -> 'TurnMachine':
        return cls(scorecards=[Scorecard() for _ in range(player_count)])

    @classmethod
    def from_snapshot(cls, snapshot: dict, current_player: int, round_no: int, finished: bool = False) -> 'TurnMachine':
        return cls(
            scorecards=[Scorecard.from_dict(sc) for sc in snapshot['scorecards']],
            current_player=current_player,
            round=round_no,
            dice=list(snapshot.get('dice') or [0] * DICE_COUNT),
            held=[bool(h) for h in (snapshot.get('held') or [False] * DICE_COUNT)],
            roll_count=int(snapshot.get('roll_count') or 0),
            finished=finished,
            final_ranking=snapshot.get('final_ranking'),
        )

    def to_snapshot(self) -> dict:
        snapshot = {
            'dice': list(self.dice),
            'held': list(self.held),
            'roll_count': self.roll_count,
            'scorecards': [sc.to_dict() for sc in self.scorecards],
        }
        if self.final_ranking is not None:
            snapshot['final_ranking'] = self.final_ranking
        return snapshot

    @property
    def player_count(self) -> int:
        return len(self.scorecards)

    @property
    def current_scorecard(self) -> Scorecard:
        return self.scorecards[self.current_player]

    @property
    def phase(self) -> TurnPhase:
        if self.finished:
            return TurnPhase.GAME_FINISHED
        if self.roll_count == 0:
            return TurnPhase.AWAITING_ROLL
        if self.roll_count >= MAX_ROLLS:
            return TurnPhase.AWAITING_CATEGORY
        return TurnPhase.MID_TURN

    def available(self) -> Dict[Category, int]:
        return available_scores(self.dice, self.current_scorecard)

    def _require_playing(self):
        if self.finished:
            raise GameNotInProgress()

    def roll(self, held: Optional[List[bool]] = None, rng=None) -> RollResult:
        self._require_playing()
        if self.roll_count >= MAX_ROLLS:
            raise MaxRollsReached()
        if self.roll_count == 0:
            self.held = [False] * DICE_COUNT
        elif held is not None:
            self.set_held(held)
        self.dice = roll_dice(self.dice, self.held, rng)
        self.roll_count += 1
        return RollResult(self.current_player, list(self.dice), list(self.held), self.roll_count, self.available())

    def set_held(self, held: List[bool]) -> None:
        if not isinstance(held, (list, tuple)) or len(held) != DICE_COUNT:
            raise InvalidDieIndex(f"Held mask must have {DICE_COUNT} entries")
        self.held = [bool(h) for h in held]

    def toggle_hold(self, die_index: int) -> List[bool]:
        self._require_playing()
        if self.roll_count == 0:
            raise MustRollFirst('Cannot hold dice before rolling')
        if not isinstance(die_index, int) or isinstance(die_index, bool) or not 0 <= die_index < DICE_COUNT:
            raise InvalidDieIndex()
        self.held[die_index] = not self.held[die_index]
        return list(self.held)

    def score(self, category: Category) -> ScoreResult:
        self._require_playing()
        if self.roll_count == 0:
            raise MustRollFirst()
        card = self.current_scorecard
        points = score_hand(self.dice, category)
        card.fill(category, points)
        return self._advance(category, points)

    def skip(self) -> ScoreResult:
        """Score 0 in the first unfilled category, in declared order."""
        self._require_playing()
        card = self.current_scorecard
        unfilled = card.unfilled()
        if not unfilled:
            raise NoCategoriesLeft()
        category = unfilled[0]
        card.fill(category, 0)
        result = self._advance(category, 0)
        result.skipped = True
        return result

    def abandon(self) -> List[dict]:
        """End the game early, ranking everyone on their current totals."""
        self._require_playing()
        self._finish()
        return self.final_ranking

    def _reset_hand(self):
        self.dice = [0] * DICE_COUNT
        self.held = [False] * DICE_COUNT
        self.roll_count = 0

    def _finish(self):
        self._reset_hand()
        self.finished = True
        self.final_ranking = rank_players(self.scorecards)

    def _advance(self, category: Category, points: int) -> ScoreResult:
        player = self.current_player
        if all(is_complete(card) for card in self.scorecards):
            self._finish()
            return ScoreResult(player, category, points, player, self.round, True, self.final_ranking)

        self._reset_hand()
        index = player
        # Pass over anyone already complete; at least one card is still open.
        while True:
            index = (index + 1) % self.player_count
            if index == 0:
                self.round += 1
            if not is_complete(self.scorecards[index]):
                break
        self.current_player = index
        return ScoreResult(player, category, points, index, self.round, False)
