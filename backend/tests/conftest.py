import itertools
import os
import sys
import pytest

# Ensure the backend root (containing the `rummikub` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from rummikub import create_app, socketio
from rummikub.models import PLAYING, BoardTile, GameSession, Player, Position
from rummikub.services.games.tiles import parse_tile


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    CORS_ORIGINS = ['http://localhost:5173']
    TURN_DURATION_SEC = 60
    HAND_SIZE = 14
    MIN_PLAYERS = 2
    MAX_PLAYERS = 4
    INITIAL_MELD_POINTS = 30
    TIMER_HEARTBEAT_SEC = 0
    LOG_LEVEL = 'DEBUG'


class RecordingBroadcast:
    """In-memory BroadcastPort: remembers every published snapshot."""

    def __init__(self):
        self.events = []

    def publish(self, table_id, snapshot):
        self.events.append(('state', table_id, snapshot))

    def publish_reset(self, table_id, snapshot):
        self.events.append(('reset', table_id, snapshot))

    def kinds(self):
        return [kind for kind, _, _ in self.events]


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        yield application


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
def recorder():
    return RecordingBroadcast()


@pytest.fixture()
def build_session():
    """Factory for a hand-arranged table.

    ``hands`` maps player id to tile labels ("red-3", "joker"), ``board``
    is a list of (label, x, y). Tile ids are t0, t1, ... in creation order.
    """
    def _build(hands, pool=(), board=(), phase=PLAYING, initial_played=(), now=1000.0):
        counter = itertools.count()

        def make(label):
            return parse_tile(label, tile_id=f"t{next(counter)}")

        players = [Player(id=pid, display_name=pid, has_played_initial=pid in initial_played) for pid in hands]
        session = GameSession(
            id='table-1',
            players=players,
            hands={pid: [make(label) for label in labels] for pid, labels in hands.items()},
            pool=[make(label) for label in pool],
        )
        for label, x, y in board:
            tile = make(label)
            session.board[tile.id] = BoardTile(tile, Position(x, y))
        session.turn_start_board = dict(session.board)
        if phase == PLAYING:
            session.phase = PLAYING
            session.turn_number = 1
            session.turn_deadline = now + session.turn_duration
        return session
    return _build


@pytest.fixture()
def tile_id():
    """Id of the first tile in ``player_id``'s hand (or on the board) with ``label``."""
    def _find(session, label, player_id=None):
        if player_id is not None:
            pool = session.hands[player_id]
        else:
            pool = [bt.tile for bt in session.board.values()]
        for tile in pool:
            if tile.label() == label:
                return tile.id
        raise AssertionError(f"{label} not found")
    return _find
