"""Raw WebSocket transport: JSON frames of the form {"type": event, ...payload}.

Runs on its own thread next to the Socket.IO server and feeds the same
GameServer, so players on either transport can share a room.
"""

import json
import queue
import threading

from websockets.exceptions import ConnectionClosed
from websockets.sync.server import serve

# Upper bound on flushing queued frames once the peer is gone
WRITER_CLOSE_TIMEOUT_SEC = 5.0


class InvalidFrame(ValueError):
    pass


def encode_frame(event: str, payload: dict) -> str:
    return json.dumps({**payload, 'type': event})


def decode_frame(message):
    """Return (event, payload) for a text frame or raise InvalidFrame."""
    if isinstance(message, bytes):
        try:
            message = message.decode('utf-8')
        except UnicodeDecodeError as exc:
            raise InvalidFrame('frame is not utf-8') from exc
    try:
        data = json.loads(message)
    except ValueError as exc:
        raise InvalidFrame('frame is not valid JSON') from exc
    if not isinstance(data, dict):
        raise InvalidFrame('frame must be a JSON object')
    event = data.pop('type', None)
    if not isinstance(event, str) or not event:
        raise InvalidFrame('frame has no type')
    return event, data


class WebSocketConnection:
    """Delivers core events to one raw WebSocket peer.

    Frames are queued and written by a per-connection thread, so a peer
    with a full socket buffer never holds up the caller.
    """

    transport = 'websocket'

    def __init__(self, ws, logger=None):
        self.ws = ws
        self.logger = logger
        self._outbox = queue.Queue()
        self._closed = threading.Event()
        self._writer = threading.Thread(target=self._drain, name='pong-ws-writer', daemon=True)
        self._writer.start()

    def send(self, event: str, payload: dict) -> None:
        if self._closed.is_set():
            raise ConnectionError('websocket writer is closed')
        self._outbox.put(encode_frame(event, payload))

    def close(self, timeout: float = None) -> None:
        """Stop taking frames and wait for the queued ones to be written."""
        if not self._closed.is_set():
            self._closed.set()
            self._outbox.put(None)
        self._writer.join(timeout)

    def _drain(self) -> None:
        while True:
            frame = self._outbox.get()
            if frame is None:
                return
            try:
                self.ws.send(frame)
            except Exception as exc:
                self._closed.set()
                if self.logger is not None:
                    self.logger.warning(f"[ws-send-failed] error={exc!r}")
                return


def handle_connection(game_server, ws) -> None:
    """Serve one WebSocket peer until it closes."""
    connection = WebSocketConnection(ws, game_server.logger)
    player_id = game_server.connect(connection)
    try:
        for message in ws:
            try:
                event, payload = decode_frame(message)
            except InvalidFrame as exc:
                game_server.logger.warning(f"[ws-invalid-frame] player={player_id} error={exc}")
                game_server.registry.send(player_id, 'error', {'message': 'Invalid message'})
                continue
            game_server.handle(player_id, event, payload)
    except ConnectionClosed:
        pass
    finally:
        game_server.disconnect(player_id)
        connection.close(timeout=WRITER_CLOSE_TIMEOUT_SEC)


def create_server(game_server, host: str, port: int):
    return serve(lambda ws: handle_connection(game_server, ws), host, port)


def serve_forever(game_server, host: str, port: int) -> None:
    with create_server(game_server, host, port) as server:
        server.serve_forever()


def start_in_thread(game_server, host: str, port: int):
    """Start the listener on a daemon thread; returns the server handle."""
    server = create_server(game_server, host, port)
    thread = threading.Thread(target=server.serve_forever, name='pong-websocket', daemon=True)
    thread.start()
    game_server.logger.info(f"[ws-listen] ws://{host}:{port}")
    return server
