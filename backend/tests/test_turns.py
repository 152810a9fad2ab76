import pytest

from conftest import ScriptedDice
from yahtzee.errors import (
    CategoryFilled,
    GameNotInProgress,
    InvalidDieIndex,
    MaxRollsReached,
    MustRollFirst,
)
from yahtzee.services.game.categories import ALL_CATEGORIES, Category
from yahtzee.services.game.scorecard import Scorecard
from yahtzee.services.game.turns import TurnMachine, TurnPhase, rank_players, roll_dice


def _full_card(value=0, leave_open=()):
    return Scorecard({c: (None if c in leave_open else value) for c in ALL_CATEGORIES})


def test_new_game_awaits_roll():
    machine = TurnMachine.new_game(3)
    assert machine.player_count == 3
    assert machine.phase is TurnPhase.AWAITING_ROLL
    assert machine.dice == [0, 0, 0, 0, 0]
    assert machine.round == 1


def test_roll_dice_keeps_held_values():
    rng = ScriptedDice(6)
    assert roll_dice([1, 2, 3, 4, 5], [True, False, True, False, False], rng) == [1, 6, 3, 6, 6]
    assert rng.calls == 3


def test_first_roll_ignores_held_mask():
    machine = TurnMachine.new_game(2)
    result = machine.roll(held=[True] * 5, rng=ScriptedDice(2, 3, 4, 5, 6))
    assert result.hand == [2, 3, 4, 5, 6]
    assert result.held == [False] * 5
    assert result.roll_count == 1
    assert result.available[Category.LARGE_STRAIGHT] == 40
    assert machine.phase is TurnPhase.MID_TURN


def test_reroll_with_held_mask():
    machine = TurnMachine.new_game(2)
    machine.roll(rng=ScriptedDice(4, 4, 1, 2, 4))
    result = machine.roll(held=[True, True, False, False, True], rng=ScriptedDice(4))
    assert result.hand == [4, 4, 4, 4, 4]
    assert result.roll_count == 2


def test_roll_rejected_after_three_rolls():
    machine = TurnMachine.new_game(2)
    for _ in range(3):
        machine.roll(rng=ScriptedDice(3))
    assert machine.phase is TurnPhase.AWAITING_CATEGORY
    dice_before = list(machine.dice)
    with pytest.raises(MaxRollsReached):
        machine.roll(rng=ScriptedDice(6))
    assert machine.dice == dice_before
    assert machine.roll_count == 3


def test_hold_before_roll_rejected():
    machine = TurnMachine.new_game(2)
    with pytest.raises(MustRollFirst):
        machine.toggle_hold(0)


def test_toggle_hold():
    machine = TurnMachine.new_game(2)
    machine.roll(rng=ScriptedDice(1))
    assert machine.toggle_hold(2) == [False, False, True, False, False]
    assert machine.toggle_hold(2) == [False] * 5


@pytest.mark.parametrize('index', [-1, 5, '1', True, None])
def test_toggle_hold_rejects_bad_index(index):
    machine = TurnMachine.new_game(2)
    machine.roll(rng=ScriptedDice(1))
    with pytest.raises(InvalidDieIndex):
        machine.toggle_hold(index)


def test_bad_held_mask_rejected():
    machine = TurnMachine.new_game(2)
    machine.roll(rng=ScriptedDice(1))
    with pytest.raises(InvalidDieIndex):
        machine.roll(held=[True, False])
    assert machine.roll_count == 1


def test_score_requires_a_roll():
    machine = TurnMachine.new_game(2)
    with pytest.raises(MustRollFirst):
        machine.score(Category.CHANCE)


def test_score_fills_and_advances():
    machine = TurnMachine.new_game(2)
    machine.roll(rng=ScriptedDice(5, 5, 5, 2, 2))
    result = machine.score(Category.FULL_HOUSE)
    assert result.score == 25
    assert result.player_index == 0
    assert result.next_player_index == 1
    assert result.round == 1
    assert not result.finished
    assert machine.scorecards[0][Category.FULL_HOUSE] == 25
    assert machine.phase is TurnPhase.AWAITING_ROLL
    assert machine.dice == [0] * 5


def test_round_advances_when_turn_wraps():
    machine = TurnMachine.new_game(2)
    for _ in range(2):
        machine.roll(rng=ScriptedDice(1))
        machine.score(Category.CHANCE if machine.current_player == 0 else Category.ONES)
    assert machine.current_player == 0
    assert machine.round == 2


def test_filled_category_rejected_without_mutation():
    machine = TurnMachine(scorecards=[Scorecard({Category.CHANCE: 9}), Scorecard()])
    machine.roll(rng=ScriptedDice(6))
    with pytest.raises(CategoryFilled):
        machine.score(Category.CHANCE)
    assert machine.current_player == 0
    assert machine.roll_count == 1
    assert machine.scorecards[0][Category.CHANCE] == 9


def test_skip_fills_first_open_category_with_zero():
    card = Scorecard({c: 4 for c in ALL_CATEGORIES if c is not Category.ONES})
    machine = TurnMachine(scorecards=[card, Scorecard()])
    result = machine.skip()
    assert result.category is Category.ONES
    assert result.score == 0
    assert result.skipped
    assert machine.scorecards[0][Category.ONES] == 0
    # Advances exactly like a normal score would
    assert result.next_player_index == 1
    assert machine.current_player == 1
    assert machine.phase is TurnPhase.AWAITING_ROLL


def test_skip_after_rolling_discards_hand():
    machine = TurnMachine.new_game(2)
    machine.roll(rng=ScriptedDice(6))
    result = machine.skip()
    assert result.category is Category.ONES
    assert result.score == 0
    assert machine.dice == [0] * 5


def test_game_waits_for_every_scorecard():
    # Player 0 is done, player 1 still has two categories open
    machine = TurnMachine(
        scorecards=[_full_card(0), _full_card(2, leave_open=(Category.CHANCE, Category.YAHTZEE))],
        current_player=1,
        round=12,
    )
    machine.roll(rng=ScriptedDice(3))
    result = machine.score(Category.CHANCE)
    assert not result.finished
    # Player 0 has nothing left, so the turn comes straight back
    assert result.next_player_index == 1
    assert machine.round == 13

    machine.roll(rng=ScriptedDice(1, 2, 3, 4, 6))
    result = machine.score(Category.YAHTZEE)
    assert result.finished
    assert machine.phase is TurnPhase.GAME_FINISHED
    assert [e['player_index'] for e in result.final_ranking] == [1, 0]


def test_finished_game_rejects_moves():
    machine = TurnMachine(scorecards=[_full_card(1), _full_card(0, leave_open=(Category.ONES,))], current_player=1)
    machine.skip()
    assert machine.finished
    with pytest.raises(GameNotInProgress):
        machine.roll()
    with pytest.raises(GameNotInProgress):
        machine.skip()


def test_rank_players_by_grand_total():
    cards = [_full_card(1), _full_card(5), _full_card(3)]
    ranking = rank_players(cards)
    assert [e['player_index'] for e in ranking] == [1, 2, 0]
    assert [e['rank'] for e in ranking] == [1, 2, 3]
    assert ranking[0]['is_winner'] and not ranking[1]['is_winner']
    assert ranking[0]['grand_total'] == 65


def test_rank_players_tie_goes_to_lower_index():
    ranking = rank_players([Scorecard({Category.CHANCE: 20}), Scorecard({Category.CHANCE: 20})])
    assert [e['player_index'] for e in ranking] == [0, 1]
    assert ranking[0]['is_winner']
    assert not ranking[1]['is_winner']


def test_abandon_ranks_partial_cards():
    machine = TurnMachine(scorecards=[Scorecard({Category.CHANCE: 10}), Scorecard({Category.SIXES: 24})])
    ranking = machine.abandon()
    assert machine.finished
    assert ranking[0]['player_index'] == 1
    assert ranking[0]['grand_total'] == 24


def test_snapshot_round_trip():
    machine = TurnMachine.new_game(2)
    machine.roll(rng=ScriptedDice(2, 2, 3, 3, 3))
    machine.toggle_hold(0)
    restored = TurnMachine.from_snapshot(machine.to_snapshot(), machine.current_player, machine.round)
    assert restored.dice == [2, 2, 3, 3, 3]
    assert restored.held == [True, False, False, False, False]
    assert restored.roll_count == 1
    assert restored.available() == machine.available()
