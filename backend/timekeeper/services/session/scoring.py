from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .errors import InvariantViolation
from .ledger import TurnRecord


@dataclass
class SessionPlayer:
    id: Any
    name: str
    side: Optional[str] = None
    side_icon: Optional[str] = None
    color: Optional[str] = None
    background_url: Optional[str] = None
    total_vp: int = 0
    pending_vp: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class VPPolicy:
    """Clamp range for pending VP entries. None means unbounded."""
    minimum: Optional[int] = None
    maximum: Optional[int] = None

    def clamp(self, value: int) -> int:
        value = int(value)
        if self.minimum is not None and value < self.minimum:
            value = self.minimum
        if self.maximum is not None and value > self.maximum:
            value = self.maximum
        return value


@dataclass
class PlayerStats:
    turn_count: int = 0
    total_duration: int = 0
    last_turn_duration: int = 0
    average_turn_duration: int = 0
    longest_turn_duration: int = 0
    share_percent: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def round_half_up(numerator: int, denominator: int) -> int:
    """Integer rounding of numerator/denominator, halves rounded up."""
    if denominator == 0:
        return 0
    return (2 * numerator + denominator) // (2 * denominator)


def compute_player_stats(turns: Iterable[TurnRecord], player_ids: Sequence[Any]) -> Dict[Any, PlayerStats]:
    """Derive per-player statistics from a ledger.

    Pure: the same turns and players always give the same result. Turns for
    players not in player_ids are ignored.
    """
    stats = {pid: PlayerStats() for pid in player_ids}
    for turn in turns:
        s = stats.get(turn.player_id)
        if s is None:
            continue
        s.turn_count += 1
        s.total_duration += turn.duration
        s.last_turn_duration = turn.duration
        s.longest_turn_duration = max(s.longest_turn_duration, turn.duration)

    grand_total = sum(s.total_duration for s in stats.values())
    for s in stats.values():
        s.average_turn_duration = round_half_up(s.total_duration, s.turn_count)
        s.share_percent = round_half_up(s.total_duration * 100, grand_total)
    return stats


class ScoreBoard:
    """Running VP totals and pending deltas for an ordered set of players."""

    def __init__(self, players: Iterable[SessionPlayer] = (), policy: Optional[VPPolicy] = None):
        self.policy = policy or VPPolicy()
        self._players: Dict[Any, SessionPlayer] = {}
        for p in players:
            self._players[p.id] = p

    @property
    def players(self) -> List[SessionPlayer]:
        return list(self._players.values())

    def get(self, player_id) -> SessionPlayer:
        try:
            return self._players[player_id]
        except KeyError:
            raise InvariantViolation(f"unknown player {player_id!r}") from None

    def set_pending_vp(self, player_id, value: int) -> int:
        player = self.get(player_id)
        player.pending_vp = self.policy.clamp(value)
        return player.pending_vp

    def commit_pending_vp(self, player_id) -> int:
        """Add pending VP to the total, floored at zero.

        Returns the change actually applied to the total, which differs from
        the pending value when the floor kicks in.
        """
        player = self.get(player_id)
        before = player.total_vp
        player.total_vp = max(0, before + player.pending_vp)
        player.pending_vp = 0
        return player.total_vp - before

    def leader(self) -> Optional[SessionPlayer]:
        if not self._players:
            return None
        return max(self._players.values(), key=lambda p: p.total_vp)



def crossed_threshold(before: int, after: int, threshold: Optional[int]) -> bool:
    """True when a total moved from below the threshold to at or above it."""
    if threshold is None:
        return False
    return before < threshold <= after
