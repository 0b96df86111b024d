import logging

from conftest import RecordingConnection
from pong.services.registry import ConnectionRegistry


def _registry():
    return ConnectionRegistry(logging.getLogger('pong.test'))


def test_register_assigns_unique_ids():
    registry = _registry()
    ids = {registry.register(RecordingConnection()) for _ in range(5)}
    assert len(ids) == 5
    assert registry.count() == 5


def test_send_delivers_and_unknown_player_is_false():
    registry = _registry()
    conn = RecordingConnection()
    pid = registry.register(conn)
    assert registry.send(pid, 'ping', {'n': 1}) is True
    assert conn.events == [('ping', {'n': 1})]
    assert registry.send('nobody', 'ping', {}) is False


def test_send_failure_is_logged_not_raised(caplog):
    registry = _registry()
    conn = RecordingConnection()
    pid = registry.register(conn)
    conn.closed = True
    with caplog.at_level(logging.WARNING, logger='pong.test'):
        assert registry.send(pid, 'ping', {}) is False
    assert any('[send-failed]' in rec.message for rec in caplog.records)


def test_close_runs_callback_exactly_once():
    registry = _registry()
    closed = []
    registry.on_close(closed.append)
    pid = registry.register(RecordingConnection())
    registry.bind_room(pid, 'ABC123')
    assert registry.lookup_room(pid) == 'ABC123'

    assert registry.close(pid) is True
    assert registry.close(pid) is False
    assert closed == [pid]
    assert registry.lookup_room(pid) is None
    assert not registry.is_connected(pid)


def test_room_binding_is_visible_to_close_callback():
    registry = _registry()
    seen = []
    registry.on_close(lambda pid: seen.append(registry.lookup_room(pid)))
    pid = registry.register(RecordingConnection())
    registry.bind_room(pid, 'ROOM01')
    registry.close(pid)
    assert seen == ['ROOM01']


def test_unbind_only_matching_room():
    registry = _registry()
    pid = registry.register(RecordingConnection())
    registry.bind_room(pid, 'NEW001')
    registry.unbind_room(pid, 'OLD001')
    assert registry.lookup_room(pid) == 'NEW001'
    registry.unbind_room(pid, 'NEW001')
    assert registry.lookup_room(pid) is None


def test_bind_room_refuses_a_closed_player():
    registry = _registry()
    pid = registry.register(RecordingConnection())
    assert registry.bind_room(pid, 'ROOM01') is True
    registry.close(pid)
    assert registry.bind_room(pid, 'ROOM02') is False
    assert registry.lookup_room(pid) is None
