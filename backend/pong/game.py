import logging
import random

from pong.services.broadcast import Broadcaster
from pong.services.matchmaking import MatchmakingQueue
from pong.services.registry import ConnectionRegistry
from pong.services.rooms import RoomService, RoomStore
from pong.services.router import MessageRouter


SETTING_KEYS = (
    'SET_DURATION_SEC',
    'REST_DURATION_SEC',
    'TICK_INTERVAL_SEC',
    'BALL_RELEASE_DELAY_SEC',
    'BALL_RESEND_DELAY_SEC',
    'BALL_SPEED',
    'COURT_CENTER_X',
    'COURT_CENTER_Y',
    'PADDLE_START_Y',
    'ROOM_CODE_LENGTH',
    'MAX_NAME_LENGTH',
    'TIMER_HEARTBEAT_SEC',
)


class GameServer:
    """Transport-agnostic session core shared by every transport adapter.

    Can be built directly (``GameServer(scheduler=..., settings=...)``) or
    bound to a Flask app with ``init_app``, which takes its settings from
    ``app.config`` and logs through ``app.logger``.
    """

    def __init__(self, scheduler=None, settings=None, logger=None, rng=random):
        self.rng = rng
        self.registry = None
        if scheduler is not None:
            self.configure(scheduler, settings or {}, logger or logging.getLogger('pong'))

    def init_app(self, app, scheduler) -> None:
        settings = {key: app.config[key] for key in SETTING_KEYS if key in app.config}
        self.configure(scheduler, settings, app.logger)
        app.extensions['pong'] = self

    def configure(self, scheduler, settings, logger) -> None:
        self.scheduler = scheduler
        self.settings = dict(settings)
        self.logger = logger
        self.registry = ConnectionRegistry(logger)
        self.broadcast = Broadcaster(self.registry)
        self.store = RoomStore(code_length=self.settings.get('ROOM_CODE_LENGTH', 6), rng=self.rng)
        self.rooms = RoomService(
            self.store, self.registry, self.broadcast, scheduler, logger,
            settings=self.settings, rng=self.rng,
        )
        self.matchmaking = MatchmakingQueue(self.rooms, self.registry, self.broadcast, logger)
        self.router = MessageRouter(
            self.registry, self.rooms, self.matchmaking, self.broadcast, logger,
            max_name_length=self.settings.get('MAX_NAME_LENGTH', 20),
        )
        self.registry.on_close(self._cleanup)

    @property
    def events(self):
        return self.router.events

    def connect(self, connection) -> str:
        player_id = self.registry.register(connection)
        self.logger.info(f"[connect] player={player_id} transport={getattr(connection, 'transport', '?')}")
        self.registry.send(player_id, 'connection', {'playerId': player_id})
        return player_id

    def handle(self, player_id: str, event: str, payload=None) -> None:
        self.router.dispatch(player_id, event, payload)

    def disconnect(self, player_id: str) -> bool:
        return self.registry.close(player_id)

    def _cleanup(self, player_id: str) -> None:
        self.logger.info(f"[disconnect] player={player_id}")
        self.matchmaking.remove(player_id)
        try:
            self.rooms.leave(player_id)
        except Exception:
            self.logger.exception(f"[disconnect-error] player={player_id}")

    def stats(self) -> dict:
        rooms = self.store.all()
        return {
            'connections': self.registry.count(),
            'rooms': len(rooms),
            'started_rooms': sum(1 for r in rooms if r.game_started),
            'waiting_players': len(self.matchmaking),
        }
