"""Typed rejections raised by the game core.

Every class carries a stable ``code`` and the HTTP ``status`` the rooms
blueprint answers with. Raising one of these never leaves a half-applied
mutation behind: callers validate before they write, and the authority
rolls the session back on any exception.
"""


class GameError(Exception):
    """Base class for every rejection."""
    code = 'GAME_ERROR'
    status = 400
    message = 'Request rejected'

    def __init__(self, message=None):
        self.message = message or self.message
        super().__init__(self.message)

    def to_dict(self):
        return {'code': self.code, 'message': self.message}


# ============ Turn ownership ============

class NotYourTurn(GameError):
    code = 'NOT_YOUR_TURN'
    status = 403
    message = 'It is not your turn'


class NotHost(GameError):
    code = 'NOT_HOST'
    status = 403
    message = 'Only the host can do that'


# ============ Preconditions ============

class PreconditionFailed(GameError):
    status = 409


class MustRollFirst(PreconditionFailed):
    code = 'MUST_ROLL_FIRST'
    message = 'Must roll at least once this turn'


class MaxRollsReached(PreconditionFailed):
    code = 'MAX_ROLLS_REACHED'
    message = 'Already rolled 3 times this turn'


class CategoryFilled(PreconditionFailed):
    code = 'CATEGORY_FILLED'

    def __init__(self, category):
        self.category = category
        super().__init__(f"Category {getattr(category, 'value', category)} already filled")


class NoCategoriesLeft(PreconditionFailed):
    code = 'NO_CATEGORIES'
    message = 'No categories left to fill'


class NotEnoughPlayers(PreconditionFailed):
    code = 'NOT_ENOUGH_PLAYERS'
    message = 'Need at least 2 players'


class GameAlreadyStarted(PreconditionFailed):
    code = 'GAME_STARTED'
    message = 'Game has already started'


class GameNotInProgress(PreconditionFailed):
    code = 'GAME_NOT_IN_PROGRESS'
    message = 'Game is not in progress'


# ============ Not found ============

class RoomNotFound(GameError):
    code = 'ROOM_NOT_FOUND'
    status = 404

    def __init__(self, room_code):
        self.room_code = room_code
        super().__init__(f"Room {room_code} not found")


class NotInGame(GameError):
    code = 'NOT_IN_GAME'
    status = 404
    message = 'You are not in this game'


# ============ Capacity ============

class RoomFull(GameError):
    code = 'ROOM_FULL'
    status = 409


class RoomNotAcceptingPlayers(GameError):
    code = 'GAME_STARTED'
    status = 409
    message = 'Room is not accepting players'


# ============ Bad input ============

class InvalidCategory(GameError):
    code = 'INVALID_CATEGORY'
    message = 'Invalid scoring category'


class InvalidName(GameError):
    code = 'INVALID_NAME'
    message = 'Name must be 1-20 characters'


class InvalidDieIndex(GameError):
    code = 'INVALID_DIE_INDEX'
    message = 'Die index must be between 0 and 4'


class MissingSession(GameError):
    code = 'MISSING_SESSION'
    message = 'Session ID is required'


# ============ Concurrency ============

class ConcurrentModification(GameError):
    """The room changed between our read and our write."""
    code = 'CONCURRENT_MODIFICATION'
    status = 409
    message = 'Room was modified by another request, reload and retry'
