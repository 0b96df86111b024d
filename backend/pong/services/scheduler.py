import threading
import time
from typing import Callable

from pong.models import MatchState, Room, RoomPhase
from .scoring import reset_scores, snapshot_scores


class ScheduledCall:
    """Handle for a deferred callback. Cancelling is idempotent."""

    def __init__(self):
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def wait(self, timeout: float) -> bool:
        return self._cancelled.wait(timeout)


class BackgroundScheduler:
    """Deferred and periodic callbacks run as Socket.IO background tasks.

    Every task sleeps on its call's cancel event, so cancelling wakes it up
    immediately and the callback never runs again.
    """

    def __init__(self, socketio, logger):
        self.socketio = socketio
        self.logger = logger

    def clock(self) -> float:
        """Monotonic seconds, for measuring elapsed time."""
        return time.monotonic()

    def wall_clock(self) -> float:
        return time.time()

    def call_later(self, delay: float, callback: Callable, *args) -> ScheduledCall:
        call = ScheduledCall()

        def _runner():
            if call.wait(max(0.0, delay)):
                return
            self._run(callback, args)

        self.socketio.start_background_task(_runner)
        return call

    def call_every(self, interval: float, callback: Callable, *args) -> ScheduledCall:
        """Run ``callback`` every ``interval`` seconds on one long-lived task."""
        call = ScheduledCall()

        def _worker():
            while not call.wait(interval):
                self._run(callback, args)

        self.socketio.start_background_task(_worker)
        return call

    def _run(self, callback, args) -> None:
        try:
            callback(*args)
        except Exception:
            self.logger.exception(f"[scheduler-error] callback={getattr(callback, '__name__', callback)}")


class MatchTimer:
    """Per-room periodic process driving set 1 -> rest -> set 2 -> finished.

    - Ticks every TICK_INTERVAL_SEC on one repeating scheduler call
    - Counts whole seconds elapsed since the last tick on the scheduler's
      monotonic clock, carrying the fractional remainder, so a late tick
      still reflects real time and a clock step never adds time back
    - Broadcasts timer_update / rest_period_update on ordinary ticks and the
      phase events on transitions
    - Stops for good after set 2 or when stopped by room teardown
    """

    def __init__(self, room: Room, scheduler, broadcaster, logger,
                 set_duration=120, rest_duration=30, interval=1.0, heartbeat=0):
        self.room = room
        self.scheduler = scheduler
        self.broadcast = broadcaster
        self.logger = logger
        self.set_duration = set_duration
        self.rest_duration = rest_duration
        self.interval = interval
        self.heartbeat = heartbeat
        self._call = None
        self._stopped = False
        self._ticks = 0

    @property
    def running(self) -> bool:
        return self._call is not None and not self._stopped

    def start(self) -> MatchState:
        room = self.room
        room.match_state = MatchState(
            time_remaining=self.set_duration,
            last_tick=self.scheduler.clock(),
            last_tick_at=self.scheduler.wall_clock(),
            set1_scores={pid: 0 for pid in room.players},
            set2_scores={pid: 0 for pid in room.players},
        )
        self.logger.info(
            f"[timer-set] room={room.code} set_duration={self.set_duration}s rest_duration={self.rest_duration}s"
        )
        if not self._stopped:
            self._call = self.scheduler.call_every(self.interval, self._tick)
        return room.match_state

    def stop(self) -> None:
        self._stopped = True
        if self._call is not None:
            self._call.cancel()

    def _tick(self) -> None:
        room = self.room
        with room.lock:
            if self._stopped or room.closed or room.match_state is None:
                return
            state = room.match_state
            now = self.scheduler.clock()
            if now < state.last_tick:
                # Clock went backwards: count nothing and measure from here
                state.last_tick = now
            elapsed = int(now - state.last_tick)
            state.last_tick += elapsed
            state.last_tick_at = self.scheduler.wall_clock()
            self._ticks += 1
            if self.heartbeat and self._ticks % self.heartbeat == 0:
                self.logger.info(
                    f"[timer-heartbeat] room={room.code} set={state.current_set} rest={state.is_rest_period} "
                    f"remaining={state.rest_time_remaining if state.is_rest_period else state.time_remaining}s"
                )
            if state.is_rest_period:
                self._advance_rest(state, elapsed)
            else:
                self._advance_set(state, elapsed)

    def _advance_set(self, state: MatchState, elapsed: int) -> None:
        room = self.room
        state.time_remaining -= elapsed
        if state.time_remaining > 0:
            self.broadcast.to_room(room, 'timer_update', {
                'timeRemaining': state.time_remaining,
                'currentSet': state.current_set,
            })
            return

        state.time_remaining = 0
        if state.current_set == 1:
            state.set1_scores = snapshot_scores(room)
            reset_scores(room)
            state.is_rest_period = True
            state.rest_time_remaining = self.rest_duration
            room.phase = RoomPhase.REST
            self.logger.info(f"[timer-fire] room={room.code} set=1 finished scores={state.set1_scores}")
            self.broadcast.to_room(room, 'rest_period_starting', {'matchState': state.to_dict()})
            return

        state.set2_scores = snapshot_scores(room)
        room.phase = RoomPhase.FINISHED
        self.stop()
        self.logger.info(
            f"[match-finished] room={room.code} set1={state.set1_scores} set2={state.set2_scores}"
        )
        self.broadcast.to_room(room, 'match_results', {'matchState': state.to_dict()})

    def _advance_rest(self, state: MatchState, elapsed: int) -> None:
        room = self.room
        state.rest_time_remaining -= elapsed
        if state.rest_time_remaining > 0:
            self.broadcast.to_room(room, 'rest_period_update', {
                'restTimeRemaining': state.rest_time_remaining,
            })
            return

        state.rest_time_remaining = 0
        state.is_rest_period = False
        state.current_set = 2
        state.time_remaining = self.set_duration
        reset_scores(room)
        room.phase = RoomPhase.SET2_ACTIVE
        self.logger.info(f"[timer-fire] room={room.code} rest finished, set 2 starting")
        self.broadcast.to_room(room, 'set2_starting', {'matchState': state.to_dict()})
