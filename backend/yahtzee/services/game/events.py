"""Best-effort fan-out of committed room changes.

Events are sent at most once, after the commit, to the Socket.IO room
``game:<CODE>`` on ``/ws``. A failed emit is logged and dropped and never
undoes the commit. Observers that may have missed events (after a
reconnect, say) must resync from the full snapshot rather than replay.
"""
from typing import Iterable, Tuple

from flask import current_app

from yahtzee import socketio

NAMESPACE = '/ws'

DICE_ROLL = 'dice_roll'
HOLD_UPDATE = 'hold_update'
SCORE_UPDATE = 'score_update'
TURN_CHANGE = 'turn_change'
GAME_START = 'game_start'
GAME_END = 'game_end'
TURN_TIMEOUT = 'turn_timeout'
PLAYER_JOINED = 'player_joined'
PLAYER_LEFT = 'player_left'
BOT_TURN = 'bot_turn'


def room_channel(room_code: str) -> str:
    return f"game:{room_code.upper()}"


def broadcast(room_code: str, event: str, payload: dict) -> bool:
    payload = dict(payload, room_code=room_code)
    try:
        socketio.emit(event, payload, to=room_channel(room_code), namespace=NAMESPACE)
    except Exception as exc:
        current_app.logger.warning(f"[broadcast-failed] room={room_code} event={event} error={exc}")
        return False
    return True


def broadcast_all(room_code: str, events: Iterable[Tuple[str, dict]]) -> None:
    for event, payload in events:
        broadcast(room_code, event, payload)
