import threading
from collections import OrderedDict
from typing import List, Optional, Tuple

from pong.models import QueueEntry, Room


class MatchmakingQueue:
    """Players waiting for a quick match, oldest first.

    The two oldest entries are removed together under a single lock, so no
    other ``enqueue`` can see half a pairing. Seating them and every send
    happen after the lock is released.
    """

    def __init__(self, room_service, registry, broadcaster, logger):
        self.rooms = room_service
        self.registry = registry
        self.broadcast = broadcaster
        self.logger = logger
        self._lock = threading.Lock()
        self._waiting: "OrderedDict[str, QueueEntry]" = OrderedDict()

    def enqueue(self, player_id: str, name: str) -> Optional[Room]:
        with self._lock:
            entry = self._waiting.get(player_id)
            if entry is not None:
                # Already waiting: keep the original position
                entry.name = name
            else:
                self._waiting[player_id] = QueueEntry(player_id=player_id, name=name)
            pair = self._take_pair(player_id)
            waiting = len(self._waiting)

        if pair is None:
            self.logger.info(f"[queue-wait] player={player_id} waiting={waiting}")
            self.broadcast.to_player(player_id, 'waiting_for_opponent', {})
            return None

        while pair is not None:
            host, guest = pair
            room = self.rooms.open_match(host.player_id, host.name, guest.player_id, guest.name)
            if room is not None:
                return room
            pair = self._requeue(host, guest)
        return None

    def _take_pair(self, trigger: Optional[str] = None) -> Optional[Tuple[QueueEntry, QueueEntry]]:
        # Caller holds self._lock
        if len(self._waiting) < 2:
            return None
        first, second = (self._waiting.pop(pid) for pid in list(self._waiting)[:2])
        if second.player_id == trigger:
            return second, first
        return first, second

    def _requeue(self, host: QueueEntry, guest: QueueEntry):
        """Put the still-connected side of an aborted pairing back at the front."""
        survivors = [e for e in (host, guest) if self.registry.is_connected(e.player_id)]
        with self._lock:
            for entry in reversed(survivors):
                self._waiting.setdefault(entry.player_id, entry)
                self._waiting.move_to_end(entry.player_id, last=False)
            pair = self._take_pair()
            still_waiting = [e.player_id for e in survivors if e.player_id in self._waiting]
        for pid in still_waiting:
            self.logger.info(f"[queue-requeue] player={pid}")
            self.broadcast.to_player(pid, 'waiting_for_opponent', {})
        return pair

    def remove(self, player_id: str) -> bool:
        with self._lock:
            return self._waiting.pop(player_id, None) is not None

    def waiting(self) -> List[QueueEntry]:
        with self._lock:
            return list(self._waiting.values())

    def __contains__(self, player_id):
        with self._lock:
            return player_id in self._waiting

    def __len__(self):
        with self._lock:
            return len(self._waiting)
