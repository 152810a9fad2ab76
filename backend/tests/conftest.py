import os
import sys
import pytest

# Ensure the backend root (containing the `yahtzee` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from yahtzee import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    MIN_PLAYERS = 2
    MAX_PLAYERS = 4
    BOT_TURN_DELAY_SEC = 0
    BOT_MAX_RETRIES = 3


class ScriptedDice:
    """Stands in for the dice RNG; hands out faces in order, then repeats the last."""

    def __init__(self, *faces):
        self.faces = list(faces)
        self.calls = 0

    def randint(self, low, high):
        face = self.faces[min(self.calls, len(self.faces) - 1)]
        self.calls += 1
        return face


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import yahtzee.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


@pytest.fixture()
def lobby(flask_app):
    """A room with a host and one guest, not yet started."""
    from yahtzee.services.game import authority
    host = authority.create_room('Alice')
    guest = authority.join_room(host['room_code'], 'Bob')
    return {
        'code': host['room_code'],
        'host': host['session_id'],
        'guest': guest['session_id'],
    }


@pytest.fixture()
def started(lobby):
    from yahtzee.services.game import authority
    authority.start_game(lobby['code'], lobby['host'])
    return lobby
