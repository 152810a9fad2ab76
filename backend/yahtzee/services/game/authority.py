"""Turn authority: the single writer for every room.

Each mutating operation takes the room's in-process lock, re-reads the
Room row fresh, validates the requester and the move, writes the whole
snapshot back and commits. The commit is a compare-and-swap on
``Room.version``. Only after a successful commit are the delta events
broadcast; a failed broadcast never undoes the commit.
"""
import json
import time
import uuid
from functools import wraps
from typing import List, Optional

from flask import current_app
from sqlalchemy.orm.exc import StaleDataError

from yahtzee import db
from yahtzee.errors import (
    ConcurrentModification,
    GameAlreadyStarted,
    GameError,
    GameNotInProgress,
    InvalidCategory,
    InvalidName,
    MissingSession,
    NotEnoughPlayers,
    NotHost,
    NotInGame,
    NotYourTurn,
    RoomFull,
    RoomNotAcceptingPlayers,
    RoomNotFound,
)
from yahtzee.models import GameScore, Player, Room, generate_room_code
from . import events
from .bot import play_turn
from .categories import Category
from .locks import forget_room, room_lock, with_room_lock
from .turns import ScoreResult, TurnMachine

MAX_NAME_LENGTH = 20
ROOM_CODE_ATTEMPTS = 10


class BotTurnOutcome:
    def __init__(self, result: ScoreResult, next_is_bot: bool):
        self.result = result
        self.next_is_bot = next_is_bot


def room_mutation(func):
    """Run one room mutation under the room lock, rolling back on any error.

    The wrapped function receives the upper-cased room code as its first
    argument and is responsible for its own commit.
    """
    @wraps(func)
    def wrapper(room_code, *args, **kwargs):
        code = (room_code or '').strip().upper()
        with room_lock(code):
            try:
                return func(code, *args, **kwargs)
            except GameError as exc:
                db.session.rollback()
                current_app.logger.info(f"[rejected] {func.__name__} room={code} code={exc.code}")
                raise
            except Exception as exc:
                current_app.logger.error(f"Transaction failed in {func.__name__}: {exc}", exc_info=True)
                db.session.rollback()
                raise
    return wrapper


# ---- reading and validating ----

def _load_room(code: str) -> Room:
    # Never trust the identity map; another writer may have committed.
    db.session.expire_all()
    room = with_room_lock(code).first()
    if not room:
        raise RoomNotFound(code)
    return room


def _member(room: Room, session_id: Optional[str]) -> Player:
    if not session_id:
        raise MissingSession()
    for player in room.players:
        if player.session_id == session_id:
            return player
    raise NotInGame()


def _player_at(room: Room, index: int) -> Optional[Player]:
    return next((p for p in room.players if p.player_index == index), None)


def _require_playing(room: Room) -> None:
    if room.status != 'playing':
        raise GameNotInProgress()


def _require_turn(room: Room, session_id: Optional[str]) -> Player:
    player = _member(room, session_id)
    if player.player_index != room.current_turn_player_index:
        raise NotYourTurn()
    return player


def _machine(room: Room) -> TurnMachine:
    return TurnMachine.from_snapshot(
        room.snapshot,
        room.current_turn_player_index,
        room.current_round,
        finished=room.status == 'finished',
    )


def _clean_name(name) -> str:
    if not isinstance(name, str) or not name.strip() or len(name.strip()) > MAX_NAME_LENGTH:
        raise InvalidName()
    return name.strip()


def _unique_name(name: str, taken: List[str]) -> str:
    if name not in taken:
        return name
    counter = 2
    while f"{name} {counter}" in taken:
        counter += 1
    return f"{name} {counter}"


def _free_index(players: List[Player]) -> int:
    used = {p.player_index for p in players}
    index = 0
    while index in used:
        index += 1
    return index


# ---- writing ----

def _store(room: Room, machine: TurnMachine) -> None:
    if machine.finished and room.status != 'finished':
        machine.final_ranking = _decorate_ranking(room, machine.final_ranking)
        room.status = 'finished'
        room.finished_at = time.time()
        _record_final_scores(room, machine)
    room.snapshot = machine.to_snapshot()
    room.current_turn_player_index = machine.current_player
    room.current_round = machine.round


def _decorate_ranking(room: Room, ranking: List[dict]) -> List[dict]:
    for entry in ranking:
        player = _player_at(room, entry['player_index'])
        entry['display_name'] = player.display_name if player else None
        entry['is_bot'] = bool(player and player.is_bot)
    return ranking


def _record_final_scores(room: Room, machine: TurnMachine) -> None:
    for entry in machine.final_ranking:
        player = _player_at(room, entry['player_index'])
        if player is None:
            continue
        card = machine.scorecards[entry['player_index']]
        room.scores.append(GameScore(
            player=player,
            upper_total=entry['upper_total'],
            upper_bonus=entry['bonus'],
            lower_total=entry['lower_total'],
            grand_total=entry['grand_total'],
            is_winner=entry['is_winner'],
            scorecard_data=json.dumps(card.to_dict()),
        ))


def _commit(room: Room) -> None:
    # Always touch the row so the version check guards every write.
    room.updated_at = time.time()
    try:
        db.session.commit()
    except StaleDataError:
        db.session.rollback()
        raise ConcurrentModification()


def _score_events(result: ScoreResult, hand: List[int], event_name: str) -> list:
    payload = result.to_dict()
    payload['hand'] = hand
    pending = [(event_name, payload)]
    if result.finished:
        pending.append((events.GAME_END, {
            'final_ranking': result.final_ranking,
            'winner': result.final_ranking[0]['player_index'],
            'finished': True,
        }))
    else:
        pending.append((events.TURN_CHANGE, {
            'player_index': result.next_player_index,
            'previous_player_index': result.player_index,
            'round': result.round,
            'finished': False,
        }))
    return pending


def _schedule_bots(code: str) -> None:
    from .scheduler import schedule_bot_turns
    schedule_bot_turns(current_app._get_current_object(), code)


def _next_is_bot(room: Room, machine: TurnMachine) -> bool:
    if machine.finished:
        return False
    player = _player_at(room, machine.current_player)
    return bool(player and player.is_bot)


# ---- lobby ----

def create_room(host_name, max_players=None) -> dict:
    name = _clean_name(host_name)
    cfg = current_app.config
    low, high = int(cfg.get('MIN_PLAYERS', 2)), int(cfg.get('MAX_PLAYERS', 4))
    try:
        capacity = int(max_players) if max_players is not None else high
    except (TypeError, ValueError):
        capacity = high
    capacity = min(max(capacity, low), high)

    for _ in range(ROOM_CODE_ATTEMPTS):
        code = generate_room_code()
        if not Room.query.filter_by(code=code).first():
            break
        current_app.logger.warning(f"Room code collision detected, regenerating: {code}")
    else:
        raise GameError('Failed to generate room code')

    session_id = uuid.uuid4().hex
    room = Room(code=code, host_session_id=session_id, max_players=capacity, status='lobby')
    room.players.append(Player(session_id=session_id, display_name=name, player_index=0))
    db.session.add(room)
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    current_app.logger.info(f"[room-created] room={code} max_players={capacity}")
    return {'room_code': code, 'room_id': room.id, 'session_id': session_id, 'player_index': 0}


def _add_player(room: Room, name: str, session_id: str, is_bot: bool) -> dict:
    if room.status != 'lobby':
        raise RoomNotAcceptingPlayers()
    if len(room.players) >= room.max_players:
        raise RoomFull(f"Room already has {room.max_players} players")
    player = Player(
        session_id=session_id,
        display_name=_unique_name(name, [p.display_name for p in room.players]),
        player_index=_free_index(room.players),
        is_bot=is_bot,
    )
    room.players.append(player)
    db.session.flush()
    return player.to_dict()


@room_mutation
def join_room(code, player_name, session_id=None) -> dict:
    room = _load_room(code)
    if session_id:
        existing = next((p for p in room.players if p.session_id == session_id), None)
        if existing:
            return {
                'room_id': room.id,
                'session_id': existing.session_id,
                'player_index': existing.player_index,
                'players': [p.to_dict() for p in room.players],
                'rejoined': True,
            }
    name = _clean_name(player_name)
    session_id = session_id or uuid.uuid4().hex
    player = _add_player(room, name, session_id, is_bot=False)
    response = {
        'room_id': room.id,
        'session_id': session_id,
        'player_index': player['player_index'],
        'players': [p.to_dict() for p in room.players],
    }
    _commit(room)
    current_app.logger.info(f"[join] room={code} player={player['player_index']} name={player['display_name']}")
    events.broadcast(code, events.PLAYER_JOINED, {'player': player})
    return response


@room_mutation
def add_bot(code, session_id, bot_name='Bot') -> dict:
    room = _load_room(code)
    if not session_id:
        raise MissingSession()
    if room.host_session_id != session_id:
        raise NotHost('Only the host can add bots')
    name = (bot_name or '').strip() or 'Bot'
    name = _clean_name(name)
    player = _add_player(room, name, f"bot-{uuid.uuid4().hex}", is_bot=True)
    _commit(room)
    current_app.logger.info(f"[bot-added] room={code} player={player['player_index']}")
    events.broadcast(code, events.PLAYER_JOINED, {'player': player})
    return player


@room_mutation
def leave_room(code, session_id) -> dict:
    room = _load_room(code)
    player = _member(room, session_id)
    if room.status != 'lobby':
        raise GameAlreadyStarted('Cannot leave after game has started')
    index = player.player_index
    room.players.remove(player)
    db.session.delete(player)

    remaining = list(room.players)
    if not remaining:
        db.session.delete(room)
        try:
            db.session.commit()
        except StaleDataError:
            db.session.rollback()
            raise ConcurrentModification()
        forget_room(code)
        current_app.logger.info(f"[room-deleted] room={code} last player left")
        events.broadcast(code, events.PLAYER_LEFT, {'player_index': index, 'room_deleted': True})
        return {'left': True, 'room_deleted': True}

    new_host = None
    if room.host_session_id == session_id:
        successor = next((p for p in remaining if not p.is_bot), remaining[0])
        room.host_session_id = successor.session_id
        new_host = successor.player_index
    _commit(room)
    events.broadcast(code, events.PLAYER_LEFT, {
        'player_index': index,
        'reason': 'left',
        'new_host_index': new_host,
        'room_deleted': False,
    })
    return {'left': True, 'room_deleted': False}


@room_mutation
def start_game(code, session_id=None) -> dict:
    room = _load_room(code)
    if session_id is not None and room.host_session_id != session_id:
        raise NotHost('Only the host can start the game')
    if room.status != 'lobby':
        raise GameAlreadyStarted()
    # Turn order is join order, whatever seat index a late joiner was given.
    players = sorted(room.players, key=lambda p: (p.joined_at, p.id))
    min_players = max(2, int(current_app.config.get('MIN_PLAYERS', 2)))
    if len(players) < min_players:
        raise NotEnoughPlayers(f"Need at least {min_players} players")

    # Renumber 0..n-1, via negatives so the unique index never clashes.
    for player in players:
        player.player_index = -1 - player.player_index
    db.session.flush()
    for index, player in enumerate(players):
        player.player_index = index

    machine = TurnMachine.new_game(len(players))
    room.status = 'playing'
    room.started_at = time.time()
    _store(room, machine)
    turn_order = [p.player_index for p in players]
    roster = [p.to_dict() for p in players]
    first_is_bot = players[0].is_bot
    _commit(room)

    current_app.logger.info(f"[game-start] room={code} players={len(players)}")
    events.broadcast(code, events.GAME_START, {
        'turn_order': turn_order,
        'first_player_index': 0,
        'round': 1,
        'players': roster,
    })
    if first_is_bot:
        _schedule_bots(code)
    return {'status': 'playing', 'turn_order': turn_order, 'first_player_index': 0}


# ---- turn operations ----

@room_mutation
def roll(code, session_id, held=None) -> dict:
    room = _load_room(code)
    _require_playing(room)
    _require_turn(room, session_id)
    machine = _machine(room)
    result = machine.roll(held=held)
    _store(room, machine)
    _commit(room)

    payload = result.to_dict()
    current_app.logger.info(f"[roll] room={code} player={result.player_index} roll={result.roll_count} hand={result.hand}")
    events.broadcast(code, events.DICE_ROLL, payload)
    payload.pop('player_index')
    return payload


@room_mutation
def toggle_hold(code, session_id, die_index) -> dict:
    room = _load_room(code)
    _require_playing(room)
    player = _require_turn(room, session_id)
    machine = _machine(room)
    held = machine.toggle_hold(die_index)
    _store(room, machine)
    _commit(room)
    events.broadcast(code, events.HOLD_UPDATE, {
        'player_index': player.player_index,
        'die_index': die_index,
        'held': held,
    })
    return {'held': held}


@room_mutation
def select_category(code, session_id, category) -> dict:
    parsed = Category.parse(category)
    if parsed is None:
        raise InvalidCategory()
    room = _load_room(code)
    _require_playing(room)
    _require_turn(room, session_id)
    machine = _machine(room)
    hand = list(machine.dice)
    result = machine.score(parsed)
    _store(room, machine)
    pending = _score_events(result, hand, events.SCORE_UPDATE)
    next_is_bot = _next_is_bot(room, machine)
    _commit(room)

    current_app.logger.info(
        f"[score] room={code} player={result.player_index} category={parsed.value} score={result.score} "
        f"next={result.next_player_index} round={result.round} finished={result.finished}"
    )
    events.broadcast_all(code, pending)
    if next_is_bot:
        _schedule_bots(code)
    return result.to_dict()


@room_mutation
def skip_turn(code) -> dict:
    """Forced zero for an unresponsive player; only the turn timer calls this."""
    room = _load_room(code)
    _require_playing(room)
    machine = _machine(room)
    hand = list(machine.dice)
    result = machine.skip()
    _store(room, machine)
    pending = _score_events(result, hand, events.TURN_TIMEOUT)
    next_is_bot = _next_is_bot(room, machine)
    _commit(room)

    current_app.logger.info(
        f"[skip] room={code} player={result.player_index} category={result.category.value} "
        f"next={result.next_player_index} round={result.round}"
    )
    events.broadcast_all(code, pending)
    if next_is_bot:
        _schedule_bots(code)
    return result.to_dict()


@room_mutation
def quit_game(code, session_id) -> dict:
    room = _load_room(code)
    _require_playing(room)
    player = _member(room, session_id)
    humans = [p for p in room.players if not p.is_bot]

    if len(humans) == 1 and humans[0] is player:
        machine = _machine(room)
        machine.abandon()
        _store(room, machine)
        ranking = machine.final_ranking
        _commit(room)
        current_app.logger.info(f"[game-abandoned] room={code} player={player.player_index}")
        events.broadcast(code, events.GAME_END, {
            'final_ranking': ranking,
            'winner': ranking[0]['player_index'],
            'finished': True,
            'early_end': True,
        })
        return {'action': 'finished', 'final_ranking': ranking, 'winner': ranking[0]['player_index']}

    index = player.player_index
    player.is_connected = False
    _commit(room)
    events.broadcast(code, events.PLAYER_LEFT, {'player_index': index, 'reason': 'quit'})
    return {'action': 'left'}


@room_mutation
def set_connected(code, session_id, connected: bool) -> None:
    room = _load_room(code)
    player = _member(room, session_id)
    if player.is_connected == connected:
        return
    player.is_connected = connected
    payload = player.to_dict()
    _commit(room)
    if connected:
        events.broadcast(code, events.PLAYER_JOINED, {'player': payload, 'reconnected': True})
    else:
        events.broadcast(code, events.PLAYER_LEFT, {'player_index': payload['player_index'], 'reason': 'disconnected'})


@room_mutation
def play_bot_turn(code, rng=None) -> Optional[BotTurnOutcome]:
    """Play the current bot's whole turn as one commit.

    Returns None when the room is not waiting on a bot (game over, or a
    human's turn), so a stale scheduler run is harmless.
    """
    room = _load_room(code)
    if room.status != 'playing':
        return None
    player = _player_at(room, room.current_turn_player_index)
    if player is None or not player.is_bot:
        return None

    machine = _machine(room)
    rolls, result = play_turn(machine, rng=rng)
    hand = rolls[-1].hand
    _store(room, machine)
    pending = [(events.DICE_ROLL, dict(r.to_dict(), bot=True)) for r in rolls]
    pending.append((events.BOT_TURN, {
        'player_index': result.player_index,
        'rolls': [r.hand for r in rolls],
        'hand': hand,
        'category': result.category.value,
        'score': result.score,
        'roll_count': len(rolls),
    }))
    pending.extend(_score_events(result, hand, events.SCORE_UPDATE))
    next_is_bot = _next_is_bot(room, machine)
    _commit(room)

    current_app.logger.info(
        f"[bot-turn] room={code} player={result.player_index} rolls={len(rolls)} "
        f"category={result.category.value} score={result.score} finished={result.finished}"
    )
    events.broadcast_all(code, pending)
    return BotTurnOutcome(result, next_is_bot)


# ---- reads ----

def room_snapshot(room_code: str) -> dict:
    """Full state for a (re)connecting observer; never mutates."""
    code = (room_code or '').strip().upper()
    db.session.expire_all()
    room = Room.query.filter_by(code=code).first()
    if not room:
        raise RoomNotFound(code)
    data = room.to_dict()
    data['phase'] = None
    data['available_categories'] = {}
    if room.status != 'lobby' and room.snapshot:
        machine = _machine(room)
        data['phase'] = machine.phase.value
        if room.status == 'playing' and machine.roll_count:
            data['available_categories'] = {c.value: s for c, s in machine.available().items()}
    return data
