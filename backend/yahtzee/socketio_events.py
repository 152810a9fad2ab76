from flask_socketio import join_room, leave_room, emit
from flask import current_app, request
from typing import Dict, Any

from yahtzee.errors import GameError
from yahtzee.services.game import authority
from yahtzee.services.game.events import room_channel

_sid_to_ctx: Dict[str, Dict[str, Any]] = {}


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def handle_connect(auth=None):
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(reason=None):
    # A seated player's socket going away marks them disconnected
    ctx = _sid_to_ctx.pop(_get_sid(), None)
    if not ctx or not ctx.get('session_id'):
        return
    try:
        authority.set_connected(ctx['room_code'], ctx['session_id'], False)
    except GameError as exc:
        current_app.logger.info(f"[presence] room={ctx['room_code']} disconnect ignored: {exc.code}")


def handle_join_game(data):
    """Subscribe to a room's events and send the full snapshot to resync."""
    room_code = (data or {}).get('room_code')
    session_id = (data or {}).get('session_id')
    if not room_code:
        emit('error', {'message': 'room_code is required'})
        return
    room_code = room_code.upper()
    try:
        snapshot = authority.room_snapshot(room_code)
    except GameError as exc:
        emit('error', exc.to_dict())
        return
    join_room(room_channel(room_code))
    _sid_to_ctx[_get_sid()] = {'room_code': room_code, 'session_id': session_id}
    if session_id:
        try:
            authority.set_connected(room_code, session_id, True)
        except GameError:
            # Observers without a seat may watch
            _sid_to_ctx[_get_sid()]['session_id'] = None
    emit('joined', {'room': room_channel(room_code), 'state': snapshot})


def handle_resync(data):
    room_code = (data or {}).get('room_code')
    if not room_code:
        emit('error', {'message': 'room_code is required'})
        return
    try:
        emit('state', authority.room_snapshot(room_code))
    except GameError as exc:
        emit('error', exc.to_dict())


def handle_leave_game(data):
    room_code = (data or {}).get('room_code')
    if not room_code:
        emit('error', {'message': 'room_code is required'})
        return
    room = room_channel(room_code)
    leave_room(room)
    _sid_to_ctx.pop(_get_sid(), None)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    from yahtzee import socketio

    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
        socketio.on_event('join_game', handle_join_game, namespace=namespace)
        socketio.on_event('resync', handle_resync, namespace=namespace)
        socketio.on_event('leave_game', handle_leave_game, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
