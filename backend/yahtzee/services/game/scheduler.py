import threading
from typing import Set

from yahtzee import socketio
from yahtzee.errors import ConcurrentModification
from .authority import play_bot_turn


_active_rooms: Set[str] = set()
_rerun_rooms: Set[str] = set()
_guard = threading.Lock()


def schedule_bot_turns(app, room_code: str) -> None:
    """Play every consecutive bot turn in the room, in the background.

    - Runs inline in TESTING mode so tests see bot turns synchronously
    - Ensures a single runner per room; a request that arrives while one is
      running makes it re-check the room before it exits
    - Each bot turn goes through the authority, so it queues on the same
      room lock and version check as human requests
    """
    code = room_code.upper()
    with _guard:
        if code in _active_rooms:
            _rerun_rooms.add(code)
            app.logger.info(f"[bot-skip] room={code} runner already active, flagged for re-check")
            return
        _active_rooms.add(code)

    if app.config.get('TESTING'):
        _worker(app, code)
    else:
        socketio.start_background_task(_worker, app, code)


def _worker(app, code: str) -> None:
    while True:
        with app.app_context():
            _run_bot_turns(app, code)
        with _guard:
            if code in _rerun_rooms:
                _rerun_rooms.discard(code)
                continue
            _active_rooms.discard(code)
            return


def _run_bot_turns(app, code: str) -> None:
    # Bot failures are logged and dropped; no human request ever sees them.
    delay = float(app.config.get('BOT_TURN_DELAY_SEC', 0))
    while True:
        if delay > 0:
            socketio.sleep(delay)
        try:
            outcome = _play_with_retries(app, code)
        except Exception as exc:
            app.logger.error(f"[bot-error] room={code} error={exc}", exc_info=True)
            return
        if outcome is None or not outcome.next_is_bot:
            return


def _play_with_retries(app, code: str):
    retries = int(app.config.get('BOT_MAX_RETRIES', 3))
    attempt = 0
    while True:
        try:
            return play_bot_turn(code)
        except ConcurrentModification:
            attempt += 1
            if attempt > retries:
                raise
            app.logger.info(f"[bot-retry] room={code} attempt={attempt} lost version race")
