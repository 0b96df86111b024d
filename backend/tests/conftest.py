import heapq
import itertools
import os
import random
import sys
import pytest

# Ensure the backend root (containing the `pong` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from config import Config
from pong import create_app, socketio
from pong.game import GameServer
from pong.services.scheduler import ScheduledCall


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    CORS_ORIGINS = ['*']
    WEBSOCKET_ENABLED = False
    TIMER_HEARTBEAT_SEC = 0


class ManualScheduler:
    """Scheduler double driven by a simulated clock.

    ``clock_offset`` shifts what ``clock()`` reports without moving the
    due times of queued calls, to simulate a clock step.
    """

    def __init__(self, start=1000.0):
        self.now = start
        self.clock_offset = 0.0
        self._queue = []
        self._seq = itertools.count()

    def clock(self):
        return self.now + self.clock_offset

    def wall_clock(self):
        return self.now

    def _push(self, due, call, callback, args):
        heapq.heappush(self._queue, (due, next(self._seq), call, callback, args))

    def call_later(self, delay, callback, *args):
        call = ScheduledCall()
        self._push(self.now + delay, call, callback, args)
        return call

    def call_every(self, interval, callback, *args):
        call = ScheduledCall()

        def _repeat():
            callback(*args)
            if not call.cancelled:
                self._push(self.now + interval, call, _repeat, ())

        self._push(self.now + interval, call, _repeat, ())
        return call

    def advance(self, seconds):
        target = self.now + seconds
        while self._queue and self._queue[0][0] <= target:
            due, _, call, callback, args = heapq.heappop(self._queue)
            self.now = max(self.now, due)
            if not call.cancelled:
                callback(*args)
        self.now = max(self.now, target)

    def pending(self):
        return sum(1 for entry in self._queue if not entry[2].cancelled)


class RecordingConnection:
    """In-memory connection that records every event sent to it."""

    transport = 'test'

    def __init__(self):
        self.events = []
        self.closed = False

    def send(self, event, payload):
        if self.closed:
            raise ConnectionError('peer is gone')
        self.events.append((event, payload))

    def names(self):
        return [name for name, _ in self.events]

    def payloads(self, name):
        return [payload for event, payload in self.events if event == name]

    def last(self, name):
        found = self.payloads(name)
        return found[-1] if found else None

    def clear(self):
        self.events.clear()


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture()
def server(scheduler):
    settings = {key: getattr(TestConfig, key) for key in dir(TestConfig) if key.isupper()}
    return GameServer(scheduler=scheduler, settings=settings, rng=random.Random(7))


@pytest.fixture()
def connect(server):
    """Connect a recording client; returns (player_id, connection)."""
    def _connect():
        conn = RecordingConnection()
        player_id = server.connect(conn)
        return player_id, conn
    return _connect


@pytest.fixture()
def started_room(server, connect, scheduler):
    """Two players in a room who have both readied up."""
    host_id, host = connect()
    guest_id, guest = connect()
    server.handle(host_id, 'create_room', {'playerName': 'Alice'})
    code = host.last('room_created')['roomId']
    server.handle(guest_id, 'join_room', {'roomId': code, 'playerName': 'Bob'})
    server.handle(host_id, 'player_ready', {})
    server.handle(guest_id, 'player_ready', {})
    room = server.store.get(code)
    return {
        'room': room,
        'host_id': host_id,
        'host': host,
        'guest_id': guest_id,
        'guest': guest,
    }


@pytest.fixture()
def flask_app(scheduler):
    application = create_app(TestConfig, scheduler=scheduler)
    yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(flask_app, flask_test_client=flask_app.test_client())
    yield test_client
    try:
        test_client.disconnect()
    except Exception:
        pass
