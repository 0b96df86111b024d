import math
from typing import Any, Callable, Dict

from pong.errors import GameError, MalformedPayload
from pong.models import Ball


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _require_number(payload: Dict[str, Any], key: str):
    value = payload.get(key)
    if not _is_number(value):
        raise MalformedPayload(f'{key} must be a number')
    return value


def _require_text(payload: Dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise MalformedPayload(f'{key} is required')
    return value.strip()


def _parse_ball(payload: Dict[str, Any]) -> Ball:
    ball = payload.get('ball')
    if not isinstance(ball, dict):
        raise MalformedPayload('ball is required')
    for key in ('x', 'y', 'speedX', 'speedY'):
        _require_number(ball, key)
    return Ball.from_dict(ball)


class MessageRouter:
    """Maps an inbound (player, event, payload) triple to one handler.

    Unknown events are ignored. ``GameError`` goes back to the sender as an
    ``error`` event; anything else is logged and absorbed so one bad
    message never takes down the transport loop or another room.
    """

    def __init__(self, registry, room_service, matchmaking, broadcaster, logger, max_name_length=20):
        self.registry = registry
        self.rooms = room_service
        self.matchmaking = matchmaking
        self.broadcast = broadcaster
        self.logger = logger
        self.max_name_length = max_name_length
        self._handlers: Dict[str, Callable[[str, Dict[str, Any]], None]] = {
            'create_room': self._create_room,
            'join_room': self._join_room,
            'find_game': self._find_game,
            'player_ready': self._player_ready,
            'paddle_move': self._paddle_move,
            'ball_update': self._ball_update,
            'score_update': self._score_update,
            'player_scored': self._player_scored,
        }

    @property
    def events(self):
        return tuple(self._handlers)

    def dispatch(self, player_id: str, event: str, payload=None) -> None:
        handler = self._handlers.get(event)
        if handler is None:
            self.logger.debug(f"[router-ignore] player={player_id} event={event!r}")
            return
        if not self.registry.is_connected(player_id):
            return
        if not isinstance(payload, dict):
            payload = {}
        try:
            handler(player_id, payload)
        except GameError as exc:
            self.broadcast.to_player(player_id, 'error', {'message': exc.message})
        except Exception:
            self.logger.exception(f"[router-error] player={player_id} event={event}")

    def _player_name(self, payload: Dict[str, Any]) -> str:
        name = payload.get('playerName')
        if not isinstance(name, str):
            return 'Player'
        name = name.strip()[:self.max_name_length]
        return name or 'Player'

    def _create_room(self, player_id, payload):
        self.matchmaking.remove(player_id)
        self.rooms.create_room(player_id, self._player_name(payload))

    def _join_room(self, player_id, payload):
        code = _require_text(payload, 'roomId').upper()
        self.matchmaking.remove(player_id)
        self.rooms.join_room(player_id, code, self._player_name(payload))

    def _find_game(self, player_id, payload):
        self.rooms.leave(player_id)
        self.matchmaking.enqueue(player_id, self._player_name(payload))

    def _player_ready(self, player_id, payload):
        self.rooms.player_ready(player_id)

    def _paddle_move(self, player_id, payload):
        self.rooms.paddle_move(player_id, _require_number(payload, 'y'))

    def _ball_update(self, player_id, payload):
        self.rooms.ball_update(player_id, _parse_ball(payload))

    def _score_update(self, player_id, payload):
        if 'scores' not in payload:
            raise MalformedPayload('scores is required')
        self.rooms.score_update(player_id, payload['scores'])

    def _player_scored(self, player_id, payload):
        self.rooms.player_scored(player_id, _require_text(payload, 'scoringPlayer'))
