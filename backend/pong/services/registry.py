import threading
import uuid
from typing import Any, Callable, Dict, Optional


class ConnectionRegistry:
    """Live connections keyed by server-generated player id.

    A connection is any object with ``send(event, payload)``; the registry
    neither knows nor cares which transport it wraps. It also tracks which
    room each player currently sits in.
    """

    def __init__(self, logger):
        self.logger = logger
        self._lock = threading.Lock()
        self._connections: Dict[str, Any] = {}
        self._rooms: Dict[str, str] = {}
        self._on_close: Optional[Callable[[str], None]] = None

    def register(self, connection) -> str:
        player_id = str(uuid.uuid4())
        with self._lock:
            self._connections[player_id] = connection
        return player_id

    def on_close(self, callback: Callable[[str], None]) -> None:
        self._on_close = callback

    def is_connected(self, player_id: str) -> bool:
        with self._lock:
            return player_id in self._connections

    def count(self) -> int:
        with self._lock:
            return len(self._connections)

    def send(self, player_id: str, event: str, payload: Optional[dict] = None) -> bool:
        """Best-effort delivery. Failures are logged, never raised."""
        with self._lock:
            connection = self._connections.get(player_id)
        if connection is None:
            return False
        try:
            connection.send(event, payload or {})
        except Exception as exc:
            self.logger.warning(f"[send-failed] player={player_id} event={event} error={exc!r}")
            return False
        return True

    def bind_room(self, player_id: str, room_code: str) -> bool:
        """Record the player's room; False once the player has disconnected."""
        with self._lock:
            if player_id not in self._connections:
                return False
            self._rooms[player_id] = room_code
            return True

    def unbind_room(self, player_id: str, room_code: Optional[str] = None) -> None:
        with self._lock:
            if room_code is None or self._rooms.get(player_id) == room_code:
                self._rooms.pop(player_id, None)

    def lookup_room(self, player_id: str) -> Optional[str]:
        with self._lock:
            return self._rooms.get(player_id)

    def close(self, player_id: str) -> bool:
        """Drop the connection and run the cleanup callback exactly once."""
        with self._lock:
            if self._connections.pop(player_id, None) is None:
                return False
        if self._on_close is not None:
            self._on_close(player_id)
        with self._lock:
            self._rooms.pop(player_id, None)
        return True
