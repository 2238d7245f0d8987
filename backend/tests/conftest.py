import os
import sys
import pytest

# Ensure the backend root (containing the `tictactoe` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from tictactoe import create_app, socketio
from tictactoe.services.games.registry import SessionRegistry
from tictactoe.services.games.coordinator import SessionCoordinator


NAMESPACE = '/ws'


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    CORS_ALLOWED_ORIGINS = ['*']
    SOCKETIO_NAMESPACE = NAMESPACE
    SESSION_ID_LENGTH = 6
    CREATE_ON_UNKNOWN_SESSION = False
    LOG_LEVEL = 'DEBUG'


class RecordingTransport:
    """In-memory transport that records group membership and sent messages."""

    def __init__(self):
        self.groups = {}
        self.sent = []

    def join_group(self, connection_id, group):
        self.groups.setdefault(group, set()).add(connection_id)

    def leave_group(self, connection_id, group):
        self.groups.get(group, set()).discard(connection_id)

    def send_to_group(self, group, event, payload):
        for member in sorted(self.groups.get(group, set())):
            self.sent.append((member, event, payload))

    def send_to_connection(self, connection_id, event, payload):
        self.sent.append((connection_id, event, payload))

    def received(self, connection_id, event=None):
        return [p for (c, e, p) in self.sent if c == connection_id and (event is None or e == event)]

    def clear(self):
        self.sent.clear()


def sequential_ids():
    counter = iter(range(1, 10_000))
    return lambda: f"s{next(counter):05d}"


@pytest.fixture()
def transport():
    return RecordingTransport()


@pytest.fixture()
def registry():
    return SessionRegistry(id_factory=sequential_ids())


@pytest.fixture()
def coordinator(registry, transport):
    return SessionCoordinator(registry, transport)


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


def _connect(flask_app):
    return socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace=NAMESPACE,
    )


@pytest.fixture()
def sio_factory(flask_app):
    clients = []

    def factory():
        test_client = _connect(flask_app)
        test_client.get_received(NAMESPACE)  # flush 'connected'
        clients.append(test_client)
        return test_client

    yield factory
    for test_client in clients:
        try:
            if test_client.is_connected(NAMESPACE):
                test_client.disconnect(namespace=NAMESPACE)
        except Exception:
            pass


@pytest.fixture()
def sio_client(sio_factory):
    return sio_factory()
