import random
import string
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional

if TYPE_CHECKING:
    from pong.services.scheduler import MatchTimer, ScheduledCall


ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits


class RoomPhase(Enum):
    LOBBY = "lobby"
    STARTING = "starting"
    SET1_ACTIVE = "set1_active"
    REST = "rest"
    SET2_ACTIVE = "set2_active"
    FINISHED = "finished"


def generate_room_code(length=6, rng=random):
    """Generate a short room code from the base-36 alphabet."""
    return ''.join(rng.choice(ROOM_CODE_ALPHABET) for _ in range(length))


@dataclass
class Player:
    id: str
    name: str = "Player"
    ready: bool = False
    is_host: bool = False

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'ready': self.ready,
            'isHost': self.is_host,
        }


@dataclass
class Ball:
    x: float = 400
    y: float = 200
    speed_x: float = 0
    speed_y: float = 0

    @classmethod
    def from_dict(cls, data):
        return cls(x=data['x'], y=data['y'], speed_x=data['speedX'], speed_y=data['speedY'])

    def to_dict(self):
        return {'x': self.x, 'y': self.y, 'speedX': self.speed_x, 'speedY': self.speed_y}


@dataclass
class GameState:
    ball: Ball = field(default_factory=Ball)
    paddles: Dict[str, Dict[str, float]] = field(default_factory=dict)
    scores: Dict[str, int] = field(default_factory=dict)

    def to_dict(self):
        return {
            'ball': self.ball.to_dict(),
            'paddles': {pid: dict(p) for pid, p in self.paddles.items()},
            'scores': dict(self.scores),
        }


@dataclass
class MatchState:
    time_remaining: int
    last_tick: float
    last_tick_at: float = 0.0
    current_set: int = 1
    is_rest_period: bool = False
    rest_time_remaining: int = 0
    set1_scores: Dict[str, int] = field(default_factory=dict)
    set2_scores: Dict[str, int] = field(default_factory=dict)

    def to_dict(self):
        return {
            'currentSet': self.current_set,
            'timeRemaining': self.time_remaining,
            'isRestPeriod': self.is_rest_period,
            'restTimeRemaining': self.rest_time_remaining,
            'set1Scores': dict(self.set1_scores),
            'set2Scores': dict(self.set2_scores),
            'lastTickTimestamp': self.last_tick_at,
        }


@dataclass
class QueueEntry:
    player_id: str
    name: str


@dataclass(eq=False)
class Room:
    code: str
    players: Dict[str, Player] = field(default_factory=dict)
    game_state: GameState = field(default_factory=GameState)
    match_state: Optional[MatchState] = None
    game_started: bool = False
    phase: RoomPhase = RoomPhase.LOBBY
    closed: bool = False
    # Serializes the match timer against inbound handlers
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    timer: Optional["MatchTimer"] = field(default=None, repr=False)
    pending_calls: List["ScheduledCall"] = field(default_factory=list, repr=False)

    MAX_PLAYERS = 2

    @property
    def is_full(self):
        return len(self.players) >= self.MAX_PLAYERS

    @property
    def is_empty(self):
        return not self.players

    @property
    def host(self) -> Optional[Player]:
        for player in self.players.values():
            if player.is_host:
                return player
        return None

    def player_ids(self) -> List[str]:
        """Member ids, host first."""
        host = self.host
        ids = [host.id] if host else []
        ids.extend(pid for pid in self.players if not host or pid != host.id)
        return ids

    def other_member(self, player_id: str) -> Optional[Player]:
        if player_id not in self.players:
            return None
        others = [p for pid, p in self.players.items() if pid != player_id]
        return others[0] if others else None

    def all_ready(self):
        return len(self.players) == self.MAX_PLAYERS and all(p.ready for p in self.players.values())

    def player_names(self) -> Dict[str, str]:
        return {pid: p.name for pid, p in self.players.items()}

    def to_dict(self):
        return {
            'roomId': self.code,
            'players': [self.players[pid].to_dict() for pid in self.player_ids()],
            'gameState': self.game_state.to_dict(),
            'matchState': self.match_state.to_dict() if self.match_state else None,
            'gameStarted': self.game_started,
            'phase': self.phase.value,
        }
