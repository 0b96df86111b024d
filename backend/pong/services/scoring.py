from typing import Dict

from pong.errors import MalformedPayload
from pong.models import Room


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def apply_bulk_scores(room: Room, scores) -> Dict[str, int]:
    """Overwrite live scores for room members from a client-reported map.

    Entries for ids that are not in the room are ignored. The payload is
    validated as a whole before anything is written.
    """
    if not isinstance(scores, dict):
        raise MalformedPayload('scores must be an object')
    updates = {}
    for pid, value in scores.items():
        if pid not in room.players:
            continue
        if not _is_int(value):
            raise MalformedPayload(f'score for {pid} must be an integer')
        updates[pid] = value
    room.game_state.scores.update(updates)
    return dict(room.game_state.scores)


def award_point(room: Room, scoring_player: str) -> bool:
    """+1 to the scoring member. Returns False when the id is not in the room."""
    if scoring_player not in room.players:
        return False
    scores = room.game_state.scores
    scores[scoring_player] = scores.get(scoring_player, 0) + 1
    return True


def snapshot_scores(room: Room) -> Dict[str, int]:
    snapshot = dict(room.game_state.scores)
    for pid in room.players:
        snapshot.setdefault(pid, 0)
    return snapshot


def reset_scores(room: Room) -> None:
    scores = room.game_state.scores
    for pid in list(scores):
        scores[pid] = 0
    for pid in room.players:
        scores[pid] = 0
