from flask import request
from pong import socketio, game_server
from typing import Dict


class SocketIOConnection:
    """Delivers core events to one Socket.IO client by sid."""

    transport = 'socketio'

    def __init__(self, sid: str, namespace: str = '/'):
        self.sid = sid
        self.namespace = namespace

    def send(self, event: str, payload: dict) -> None:
        # Use socketio.emit since this may be called from a background task
        socketio.emit(event, payload, to=self.sid, namespace=self.namespace)


_sid_to_player: Dict[str, str] = {}


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def handle_connect(auth=None):
    sid = _get_sid()
    _sid_to_player[sid] = game_server.connect(SocketIOConnection(sid, request.namespace))


def handle_disconnect(reason=None):
    player_id = _sid_to_player.pop(_get_sid(), None)
    if player_id:
        game_server.disconnect(player_id)


def _make_event_handler(event: str):
    def _handler(data=None):
        player_id = _sid_to_player.get(_get_sid())
        if not player_id:
            return
        game_server.handle(player_id, event, data)
    _handler.__name__ = f'handle_{event}'
    return _handler


def register_socketio_handlers(namespace: str = '/') -> None:
    """Register connect/disconnect plus one handler per inbound game event."""
    socketio.on_event('connect', handle_connect, namespace=namespace)
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
    for event in game_server.events:
        socketio.on_event(event, _make_event_handler(event), namespace=namespace)
