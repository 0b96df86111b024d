from typing import Iterable, Optional

from pong.models import Room


class Broadcaster:
    """Fan-out of outbound events to one, some or all members of a room."""

    def __init__(self, registry):
        self.registry = registry

    def to_player(self, player_id: str, event: str, payload: Optional[dict] = None) -> bool:
        return self.registry.send(player_id, event, payload)

    def to_players(self, player_ids: Iterable[str], event: str, payload: Optional[dict] = None) -> int:
        delivered = 0
        for pid in list(player_ids):
            if self.registry.send(pid, event, payload):
                delivered += 1
        return delivered

    def to_room(self, room: Room, event: str, payload: Optional[dict] = None, exclude: Optional[str] = None) -> int:
        return self.to_players((pid for pid in room.player_ids() if pid != exclude), event, payload)

    def to_opponent(self, room: Room, player_id: str, event: str, payload: Optional[dict] = None) -> bool:
        other = room.other_member(player_id)
        if other is None:
            return False
        return self.registry.send(other.id, event, payload)
