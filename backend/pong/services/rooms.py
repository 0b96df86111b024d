import random
import threading
from typing import Dict, List, Optional

from pong.errors import RoomFull, RoomNotFound
from pong.models import Ball, Player, Room, RoomPhase, generate_room_code
from .scheduler import MatchTimer
from .scoring import apply_bulk_scores, award_point


class RoomStore:
    """Owned map of live rooms. Codes are redrawn on collision."""

    def __init__(self, code_length=6, rng=random):
        self.code_length = code_length
        self.rng = rng
        self._lock = threading.Lock()
        self._rooms: Dict[str, Room] = {}

    def create(self, players: List[Player]) -> Room:
        with self._lock:
            code = generate_room_code(self.code_length, self.rng)
            while code in self._rooms:
                code = generate_room_code(self.code_length, self.rng)
            room = Room(code=code, players={p.id: p for p in players})
            self._rooms[code] = room
        return room

    def get(self, code: Optional[str]) -> Optional[Room]:
        if not code:
            return None
        with self._lock:
            return self._rooms.get(code)

    def remove(self, room: Room) -> bool:
        with self._lock:
            if self._rooms.get(room.code) is room:
                del self._rooms[room.code]
                return True
        return False

    def all(self) -> List[Room]:
        with self._lock:
            return list(self._rooms.values())

    def __len__(self):
        with self._lock:
            return len(self._rooms)


class RoomService:
    """Room lifecycle and in-game handlers.

    Every mutation of a room happens under ``room.lock``. Handlers that
    reference a room or player that has gone away return quietly.
    """

    def __init__(self, store: RoomStore, registry, broadcaster, scheduler, logger, settings=None, rng=random):
        self.store = store
        self.registry = registry
        self.broadcast = broadcaster
        self.scheduler = scheduler
        self.logger = logger
        self.settings = dict(settings or {})
        self.rng = rng

    def _setting(self, key, default):
        return self.settings.get(key, default)

    def room_for(self, player_id: str) -> Optional[Room]:
        room = self.store.get(self.registry.lookup_room(player_id))
        if room is None or player_id not in room.players:
            return None
        return room

    # ---- lobby ----

    def create_room(self, player_id: str, name: str) -> Optional[Room]:
        self.leave(player_id)
        room = self.store.create([Player(id=player_id, name=name, is_host=True)])
        with room.lock:
            if not self.registry.bind_room(player_id, room.code):
                # Disconnected mid-request: nobody is left to own the room
                room.players.clear()
                self._teardown(room)
                return None
            self.logger.info(f"[room-created] room={room.code} host={player_id} name={name}")
            self.broadcast.to_player(player_id, 'room_created', {'roomId': room.code})
        return room

    def join_room(self, player_id: str, code: str, name: str) -> Optional[Room]:
        current = self.room_for(player_id)
        if current is not None and current.code == code:
            return current
        room = self.store.get(code)
        if room is None:
            self.logger.info(f"[join-failed] room={code} player={player_id} reason=not_found")
            raise RoomNotFound()
        if room.is_full:
            self.logger.info(f"[join-failed] room={code} player={player_id} reason=full")
            raise RoomFull()
        self.leave(player_id)
        with room.lock:
            if room.closed:
                raise RoomNotFound()
            if room.is_full:
                self.logger.info(f"[join-failed] room={code} player={player_id} reason=full")
                raise RoomFull()
            # Seat before binding so a concurrent disconnect always finds the seat
            room.players[player_id] = Player(id=player_id, name=name)
            if not self.registry.bind_room(player_id, room.code):
                del room.players[player_id]
                self.logger.info(f"[join-failed] room={code} player={player_id} reason=disconnected")
                return None
            if room.game_started:
                room.game_state.paddles.setdefault(player_id, {'y': self._setting('PADDLE_START_Y', 150)})
                room.game_state.scores.setdefault(player_id, 0)
            host = room.host
            self.logger.info(f"[room-joined] room={room.code} player={player_id} name={name}")
            self.broadcast.to_opponent(room, player_id, 'player_joined', {
                'playerId': player_id,
                'playerName': name,
            })
            self.broadcast.to_player(player_id, 'room_joined', {
                'roomId': room.code,
                'hostName': host.name if host else 'Host',
            })
        return room

    def open_match(self, host_id: str, host_name: str, guest_id: str, guest_name: str) -> Optional[Room]:
        """Seat two quick-match players in a fresh room and tell both.

        Returns None without seating anyone if either player disconnected
        before the room was bound; the caller decides what to do with the
        one still connected.
        """
        self.leave(host_id)
        self.leave(guest_id)
        room = self.store.create([
            Player(id=host_id, name=host_name, is_host=True),
            Player(id=guest_id, name=guest_name),
        ])
        with room.lock:
            bound = [pid for pid in (host_id, guest_id) if self.registry.bind_room(pid, room.code)]
            if len(bound) < 2:
                for pid in bound:
                    self.registry.unbind_room(pid, room.code)
                room.players.clear()
                self._teardown(room)
                self.logger.info(f"[match-aborted] room={room.code} host={host_id} guest={guest_id}")
                return None
            self.logger.info(f"[match-found] room={room.code} host={host_name} guest={guest_name}")
            self.broadcast.to_player(host_id, 'game_found', {
                'roomId': room.code,
                'isHost': True,
                'opponentName': guest_name,
            })
            self.broadcast.to_player(guest_id, 'game_found', {
                'roomId': room.code,
                'isHost': False,
                'opponentName': host_name,
            })
        return room

    def player_ready(self, player_id: str) -> None:
        room = self.room_for(player_id)
        if room is None:
            return
        with room.lock:
            player = room.players.get(player_id)
            if room.closed or player is None:
                return
            player.ready = True
            if not room.game_started and room.all_ready():
                self._start_match(room)

    def _start_match(self, room: Room) -> None:
        room.game_started = True
        room.phase = RoomPhase.STARTING
        ids = room.player_ids()
        paddle_y = self._setting('PADDLE_START_Y', 150)
        for pid in ids:
            room.game_state.paddles[pid] = {'y': paddle_y}
            room.game_state.scores[pid] = 0

        timer = MatchTimer(
            room, self.scheduler, self.broadcast, self.logger,
            set_duration=self._setting('SET_DURATION_SEC', 120),
            rest_duration=self._setting('REST_DURATION_SEC', 30),
            interval=self._setting('TICK_INTERVAL_SEC', 1),
            heartbeat=self._setting('TIMER_HEARTBEAT_SEC', 0),
        )
        room.timer = timer
        timer.start()
        self.logger.info(f"[game-starting] room={room.code} players={ids}")

        game_state = room.game_state.to_dict()
        names = room.player_names()
        for pid in ids:
            self.broadcast.to_player(pid, 'game_starting', {
                'gameState': game_state,
                'playerIds': list(ids),
                'playerNames': names,
                'yourId': pid,
            })

        room.pending_calls.append(
            self.scheduler.call_later(self._setting('BALL_RELEASE_DELAY_SEC', 2), self._release_ball, room)
        )

    def _release_ball(self, room: Room) -> None:
        with room.lock:
            if room.closed:
                return
            speed = self._setting('BALL_SPEED', 10)
            room.game_state.ball = Ball(
                x=self._setting('COURT_CENTER_X', 400),
                y=self._setting('COURT_CENTER_Y', 200),
                speed_x=speed * self.rng.choice((1, -1)),
                speed_y=speed * self.rng.choice((1, -1)),
            )
            if room.phase == RoomPhase.STARTING:
                room.phase = RoomPhase.SET1_ACTIVE
            self.logger.info(f"[ball-release] room={room.code} ball={room.game_state.ball.to_dict()}")
            self.broadcast.to_room(room, 'ball_moving', {'ball': room.game_state.ball.to_dict()})
            # Second copy in case the first one is dropped
            room.pending_calls.append(
                self.scheduler.call_later(self._setting('BALL_RESEND_DELAY_SEC', 0.5), self._resend_ball, room)
            )

    def _resend_ball(self, room: Room) -> None:
        with room.lock:
            if room.closed:
                return
            self.broadcast.to_room(room, 'ball_moving', {'ball': room.game_state.ball.to_dict()})

    # ---- in game ----

    def paddle_move(self, player_id: str, y) -> None:
        room = self.room_for(player_id)
        if room is None:
            return
        with room.lock:
            if room.closed or not room.game_started or player_id not in room.players:
                return
            room.game_state.paddles.setdefault(player_id, {})['y'] = y
            self.broadcast.to_opponent(room, player_id, 'opponent_move', {'y': y})

    def ball_update(self, player_id: str, ball: Ball) -> bool:
        room = self.room_for(player_id)
        if room is None:
            return False
        with room.lock:
            player = room.players.get(player_id)
            if room.closed or not room.game_started or player is None or not player.is_host:
                return False
            room.game_state.ball = ball
            self.broadcast.to_opponent(room, player_id, 'ball_update', {'ball': ball.to_dict()})
            return True

    def score_update(self, player_id: str, scores) -> None:
        room = self.room_for(player_id)
        if room is None:
            return
        with room.lock:
            if room.closed or player_id not in room.players:
                return
            current = apply_bulk_scores(room, scores)
            self.logger.info(f"[score-update] room={room.code} scores={current}")
            self.broadcast.to_room(room, 'score_update', {'scores': current})

    def player_scored(self, player_id: str, scoring_player: str) -> None:
        room = self.room_for(player_id)
        if room is None:
            return
        with room.lock:
            if room.closed or player_id not in room.players:
                return
            if not award_point(room, scoring_player):
                return
            current = dict(room.game_state.scores)
            self.logger.info(f"[player-scored] room={room.code} player={scoring_player} scores={current}")
            self.broadcast.to_room(room, 'score_update', {'scores': current})

    # ---- teardown ----

    def leave(self, player_id: str) -> bool:
        """Remove the player from their room, notifying whoever remains."""
        room = self.room_for(player_id)
        if room is None:
            return False
        with room.lock:
            player = room.players.pop(player_id, None)
            if player is None:
                return False
            self.registry.unbind_room(player_id, room.code)
            self.logger.info(f"[player-left] room={room.code} player={player_id}")
            if room.is_empty:
                self._teardown(room)
                return True
            if player.is_host:
                # Host authority passes to the remaining member
                for remaining in room.players.values():
                    remaining.is_host = True
            self.broadcast.to_room(room, 'opponent_disconnected', {})
        return True

    def _teardown(self, room: Room) -> None:
        room.closed = True
        if room.timer is not None:
            room.timer.stop()
        for call in room.pending_calls:
            call.cancel()
        room.pending_calls.clear()
        self.store.remove(room)
        self.logger.info(f"[room-closed] room={room.code}")
