import os
import sys
import pytest

# Ensure the backend root (containing the `timekeeper` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from timekeeper import create_app, db, socketio
from timekeeper.services import sessions
from timekeeper.services.session import (
    GatewayResult,
    NotFoundError,
    PersistenceError,
    PersistenceGateway,
    SessionController,
    SessionPlayer,
)


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = ['http://localhost:3000']
    VICTORY_THRESHOLD = 30
    PENDING_VP_MIN = None
    PENDING_VP_MAX = None
    MIN_PLAYERS = 1
    CLOCK_TICK_SEC = 1
    AUTOSAVE_INTERVAL_SEC = 30


class FakeGateway(PersistenceGateway):
    """In-memory gateway recording every call; set fail=True to make writes fail."""

    def __init__(self):
        self.fail = False
        self.sessions = {}
        self.turns = {}
        self.totals = {}
        self.snapshots = {}
        self.calls = []

    def _guard(self, op):
        self.calls.append(op)
        if self.fail:
            return GatewayResult.failure(PersistenceError(f'{op} unavailable'))
        return None

    def create_session(self, setup):
        failed = self._guard('create_session')
        if failed is not None:
            return failed
        session_id = len(self.sessions) + 1
        self.sessions[session_id] = setup
        return GatewayResult.success(session_id)

    def load_session(self, session_id):
        if session_id not in self.sessions:
            return GatewayResult.failure(NotFoundError(f'{session_id} not found'))
        return GatewayResult.success(self.sessions[session_id])

    def append_turn(self, session_id, turn):
        failed = self._guard('append_turn')
        if failed is not None:
            return failed
        self.turns.setdefault(session_id, []).append(turn)
        return GatewayResult.success(len(self.turns[session_id]))

    def replace_turns(self, session_id, turns):
        failed = self._guard('replace_turns')
        if failed is not None:
            return failed
        self.turns[session_id] = list(turns)
        return GatewayResult.success(len(turns))

    def update_player_totals(self, session_id, player_id, total_vp):
        failed = self._guard('update_player_totals')
        if failed is not None:
            return failed
        self.totals[(session_id, player_id)] = total_vp
        return GatewayResult.success(total_vp)

    def save_session_snapshot(self, session_id, snapshot):
        failed = self._guard('save_session_snapshot')
        if failed is not None:
            return failed
        self.snapshots[session_id] = snapshot
        return GatewayResult.success(snapshot.status)


def _make_players(*names):
    return [SessionPlayer(id=i + 1, name=n) for i, n in enumerate(names)]


@pytest.fixture()
def make_players():
    return _make_players


@pytest.fixture()
def fake_gateway():
    return FakeGateway()


@pytest.fixture()
def controller():
    c = SessionController(victory_threshold=30)
    c.load(_make_players('Alice', 'Bob'))
    return c


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import timekeeper.models  # noqa: F401
        db.create_all()
        yield application
        sessions.clear()
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
def setup_payload():
    return {
        'gameName': 'Root',
        'location': 'Kitchen table',
        'notes': 'Autumn map',
        'players': [
            {'name': 'Alice', 'side': 'Marquise de Cat', 'color': '#FF3B30'},
            {'name': 'Bob', 'side': 'Eyrie Dynasties', 'color': 'Blue'},
        ],
    }
