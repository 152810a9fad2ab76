"""Concurrency control for room mutations.

Two layers:
- ``room_lock``: an in-process, per-room reentrant lock. Human requests and
  background bot turns for the same room queue on it, so within one
  process they are applied strictly one after another.
- ``with_room_lock``: ``SELECT ... FOR UPDATE`` on the room row, for
  databases that support row locks. Across processes the Room row's
  version column is the final guard: a write based on a stale read fails.
"""
import threading
from contextlib import contextmanager
from typing import Dict

from yahtzee.models import Room

_room_locks: Dict[str, threading.RLock] = {}
_registry_lock = threading.Lock()


@contextmanager
def room_lock(room_code: str):
    """Serialize every mutation of one room inside this process.

    Reentrant, so a bot turn scheduled inline (TESTING) from inside a
    locked request does not deadlock.
    """
    with _registry_lock:
        lock = _room_locks.setdefault(room_code, threading.RLock())
    with lock:
        yield


def forget_room(room_code: str) -> None:
    with _registry_lock:
        _room_locks.pop(room_code, None)


def with_room_lock(room_code: str):
    """
    Row-lock a Room by code for the rest of the transaction.

    Returns the Query; call ``.first()`` on it. On SQLite FOR UPDATE is
    ignored and the version check alone protects the write.
    """
    return Room.query.filter_by(code=room_code).with_for_update(nowait=False)
