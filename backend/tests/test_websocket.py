import json
import threading
import time

import pytest

from pong.websocket_server import InvalidFrame, WebSocketConnection, decode_frame, encode_frame, handle_connection


class FakeWebSocket:
    """Stands in for a websockets ServerConnection: iterates inbound frames."""

    def __init__(self, inbound=()):
        self.inbound = list(inbound)
        self.sent = []

    def __iter__(self):
        return iter(self.inbound)

    def send(self, message):
        self.sent.append(json.loads(message))

    def of_type(self, name):
        return [frame for frame in self.sent if frame['type'] == name]


def test_encode_frame_puts_type_alongside_payload():
    assert json.loads(encode_frame('opponent_move', {'y': 12})) == {'type': 'opponent_move', 'y': 12}


def test_decode_frame():
    assert decode_frame('{"type": "paddle_move", "y": 5}') == ('paddle_move', {'y': 5})
    assert decode_frame(b'{"type": "player_ready"}') == ('player_ready', {})


@pytest.mark.parametrize('raw', ['not json', '[1, 2]', '{"y": 1}', '{"type": 7}'])
def test_decode_frame_rejects_garbage(raw):
    with pytest.raises(InvalidFrame):
        decode_frame(raw)


def test_connection_lifecycle(server):
    ws = FakeWebSocket([
        json.dumps({'type': 'create_room', 'playerName': 'Wes'}),
        'garbage',
    ])
    handle_connection(server, ws)

    assert ws.sent[0]['type'] == 'connection'
    player_id = ws.sent[0]['playerId']
    assert ws.of_type('room_created')[0]['roomId']
    assert ws.of_type('error') == [{'type': 'error', 'message': 'Invalid message'}]
    # Peer closed after the last frame: room torn down, player gone
    assert len(server.store) == 0
    assert not server.registry.is_connected(player_id)


def test_raw_websocket_and_other_transport_share_a_room(server, connect):
    host_id, host = connect()
    server.handle(host_id, 'create_room', {'playerName': 'Alice'})
    code = host.last('room_created')['roomId']

    ws = FakeWebSocket([json.dumps({'type': 'join_room', 'roomId': code, 'playerName': 'Wes'})])
    handle_connection(server, ws)

    assert ws.of_type('room_joined') == [{'type': 'room_joined', 'roomId': code, 'hostName': 'Alice'}]
    assert host.last('player_joined')['playerName'] == 'Wes'
    assert host.last('opponent_disconnected') == {}


def test_websocket_connection_send_errors_are_swallowed_by_registry(server):
    class ClosedSocket:
        def send(self, message):
            raise ConnectionError('closed')

    connection = WebSocketConnection(ClosedSocket())
    player_id = server.connect(connection)
    # The failed write stops the writer; later sends are refused
    connection.close(timeout=5)
    assert server.registry.send(player_id, 'ping', {}) is False


def test_slow_peer_does_not_block_the_sender():
    release = threading.Event()

    class SlowSocket(FakeWebSocket):
        def send(self, message):
            release.wait(5)
            super().send(message)

    ws = SlowSocket()
    connection = WebSocketConnection(ws)
    started = time.monotonic()
    try:
        for remaining in (120, 119, 118):
            connection.send('timer_update', {'timeRemaining': remaining, 'currentSet': 1})
        assert time.monotonic() - started < 1
        assert ws.sent == []
    finally:
        release.set()
        connection.close(timeout=5)
    assert [frame['timeRemaining'] for frame in ws.of_type('timer_update')] == [120, 119, 118]
